"""Template base class and text helpers."""

from dataclasses import dataclass, field
from typing import Any, Dict, FrozenSet, List, Optional, Tuple

from infrastructure.notifications.models import (
    MESSAGE_MAX_LENGTH,
    TITLE_MAX_LENGTH,
    DeliveryChannel,
    NotificationPriority,
    NotificationType,
)

PREVIEW_LENGTH = 100
ELLIPSIS = "..."


def truncate(text: Any, limit: int = PREVIEW_LENGTH, marker: str = ELLIPSIS) -> str:
    """Keep the first ``limit`` characters of ``text`` and append ``marker``.

    Text at or under the limit is returned unchanged (whitespace-stripped).
    """
    text = str(text or "").strip()
    if len(text) <= limit:
        return text
    return text[:limit].rstrip() + marker


def optional_str(value: Any) -> Optional[str]:
    return None if value is None or value == "" else str(value)


def fit(text: Any, max_length: int) -> str:
    """Truncate so the result including the marker fits ``max_length``."""
    return truncate(text, max_length - len(ELLIPSIS))


@dataclass
class RenderedNotification:
    title: str
    message: str
    data: Dict[str, Any] = field(default_factory=dict)
    action_url: Optional[str] = None
    related_order: Optional[str] = None
    related_comment: Optional[str] = None
    related_product: Optional[str] = None

    def __post_init__(self):
        self.title = fit(self.title, TITLE_MAX_LENGTH)
        self.message = fit(self.message, MESSAGE_MAX_LENGTH)


class NotificationTemplate:
    """Renders one notification type from an event payload.

    Subclasses set the class attributes and implement ``render``.
    """

    notification_type: NotificationType
    required_fields: Tuple[str, ...] = ()
    default_channels: FrozenSet[DeliveryChannel] = frozenset({DeliveryChannel.IN_APP})
    # Channels callers cannot switch off
    mandatory_channels: FrozenSet[DeliveryChannel] = frozenset()
    default_priority: NotificationPriority = NotificationPriority.NORMAL

    @classmethod
    def missing_fields(cls, payload: Dict[str, Any]) -> List[str]:
        return [
            name
            for name in cls.required_fields
            if payload.get(name) is None or str(payload.get(name)).strip() == ""
        ]

    @staticmethod
    def render(payload: Dict[str, Any]) -> RenderedNotification:
        raise NotImplementedError
