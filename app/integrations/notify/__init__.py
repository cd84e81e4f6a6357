"""GC Notify module for sending SMS through the Notify API."""

from .client import (
    epoch_seconds,
    create_jwt_token,
    create_authorization_header,
    post_event,
    send_sms,
)

__all__ = [
    "epoch_seconds",
    "create_jwt_token",
    "create_authorization_header",
    "post_event",
    "send_sms",
]
