"""In-app channel: the record itself is the inbox entry."""

from datetime import datetime

from infrastructure.notifications.models import InAppState


class InAppChannel:
    """Marks the in-app sub-record shown. Never fails and never calls out."""

    channel_name = "in_app"

    def show(self, state: InAppState, now: datetime) -> InAppState:
        """Return the shown state, keeping the first ``shown_at``."""
        if not state.enabled or state.shown:
            return state.model_copy()
        return state.model_copy(update={"shown": True, "shown_at": now})
