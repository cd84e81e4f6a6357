"""Notification pipeline exceptions.

Raised at the seams callers act on:

- ValidationError / RecipientResolutionError: bad input to the factory or
  read API. Nothing is persisted.
- NotFoundError: no record matches the id (and recipient).
- InfrastructureError: the store or the recipient directory is unreachable.
  The coordinator lets it propagate so no partial state is written.
- ConcurrentUpdateError: a conditional write lost against another writer.
- ChannelDeliveryError: a single channel failed. It never leaves the
  coordinator; it is recorded on the channel sub-record instead.
"""

from typing import Optional


class NotificationError(Exception):
    """Base class for notification pipeline errors."""


class ValidationError(NotificationError):
    """Unknown type, missing payload fields, or invalid options."""


class RecipientResolutionError(NotificationError):
    """No recipient could be resolved for an event."""


class NotFoundError(NotificationError):
    """No record matches the given identifiers."""


class InfrastructureError(NotificationError):
    """Store or directory failure."""


class ConcurrentUpdateError(InfrastructureError):
    """A conditional update was rejected because the record changed."""

    def __init__(self, notification_id: str, message: Optional[str] = None):
        self.notification_id = notification_id
        super().__init__(message or f"Notification {notification_id} changed concurrently")


class ChannelDeliveryError(NotificationError):
    """One channel failed to deliver.

    Attributes:
        channel: channel name (email, sms, push)
        error_code: optional machine code from the provider classification
    """

    def __init__(self, channel: str, message: str, error_code: Optional[str] = None):
        self.channel = channel
        self.error_code = error_code
        super().__init__(message)
