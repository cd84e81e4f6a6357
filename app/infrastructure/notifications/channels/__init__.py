"""Notification channel implementations and the backend registry."""

from typing import Dict

from infrastructure.configuration.features import NotificationSettings
from infrastructure.notifications.channels.base import NotificationChannel
from infrastructure.notifications.channels.email import (
    EmailChannel,
    LoggingEmailTransport,
    SesEmailTransport,
)
from infrastructure.notifications.channels.in_app import InAppChannel
from infrastructure.notifications.channels.push import (
    LoggingPushTransport,
    PushChannel,
    SnsPushTransport,
)
from infrastructure.notifications.channels.sms import (
    LoggingSmsTransport,
    NotifySmsTransport,
    SMSChannel,
)
from infrastructure.notifications.models import DeliveryChannel


def build_channels(
    settings: NotificationSettings,
) -> Dict[DeliveryChannel, NotificationChannel]:
    """Build the external channels with the transports chosen in settings.

    Backend ``log`` selects the logging transport for any channel.
    """
    email_transport = (
        SesEmailTransport()
        if settings.email_backend == "ses"
        else LoggingEmailTransport()
    )
    sms_transport = (
        NotifySmsTransport(timeout=settings.sms_timeout_seconds)
        if settings.sms_backend == "notify"
        else LoggingSmsTransport()
    )
    push_transport = (
        SnsPushTransport() if settings.push_backend == "sns" else LoggingPushTransport()
    )
    return {
        DeliveryChannel.EMAIL: EmailChannel(
            email_transport, sender=settings.email_sender, base_url=settings.base_url
        ),
        DeliveryChannel.SMS: SMSChannel(sms_transport),
        DeliveryChannel.PUSH: PushChannel(push_transport),
    }


__all__ = [
    "NotificationChannel",
    "EmailChannel",
    "SMSChannel",
    "PushChannel",
    "InAppChannel",
    "build_channels",
]
