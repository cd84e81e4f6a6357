"""Read side of the notification inbox."""

from datetime import datetime
from typing import Any, Callable, Optional, Union

from pydantic import ValidationError as PydanticValidationError

from infrastructure.notifications.errors import ValidationError
from infrastructure.notifications.models import (
    ListOptions,
    ListResult,
    NotificationRecord,
    RecipientType,
    utc_now,
)
from infrastructure.notifications.store import NotificationStore


def _recipient_type(value: Union[str, RecipientType, None]) -> Optional[RecipientType]:
    if value is None or isinstance(value, RecipientType):
        return value
    try:
        return RecipientType(value)
    except ValueError:
        raise ValidationError(f"Unknown recipient type: {value}") from None


class NotificationQueries:
    """Unread counts, read state and paged listing for one recipient."""

    def __init__(self, store: NotificationStore, clock: Callable[[], datetime] = utc_now):
        self.store = store
        self.clock = clock

    def get_unread_count(
        self, recipient_id: str, recipient_type: Union[str, RecipientType, None] = None
    ) -> int:
        """Unread records that are neither cancelled nor expired."""
        return self.store.count_unread(
            recipient_id, _recipient_type(recipient_type), self.clock()
        )

    def mark_as_read(
        self,
        notification_id: str,
        recipient_id: str,
        recipient_type: Union[str, RecipientType, None] = None,
    ) -> NotificationRecord:
        """Mark one record read. The first ``read_at`` is kept.

        Raises:
            NotFoundError: no record with this id belongs to the recipient
        """
        return self.store.mark_read(
            notification_id, recipient_id, _recipient_type(recipient_type), self.clock()
        )

    def mark_all_as_read(
        self, recipient_id: str, recipient_type: Union[str, RecipientType, None] = None
    ) -> int:
        return self.store.mark_all_read(
            recipient_id, _recipient_type(recipient_type), self.clock()
        )

    def list_by_recipient(
        self, recipient_id: str, options: Union[ListOptions, dict, None] = None, **kwargs: Any
    ) -> ListResult:
        """Paged, filtered, sorted list of a recipient's records (newest first by default).

        Raises:
            ValidationError: invalid paging, filter or sort options
        """
        if not isinstance(options, ListOptions):
            try:
                options = ListOptions.model_validate({**(options or {}), **kwargs})
            except PydanticValidationError as e:
                raise ValidationError(f"Invalid list options: {e}") from e
        return self.store.list_for_recipient(recipient_id, options, self.clock())
