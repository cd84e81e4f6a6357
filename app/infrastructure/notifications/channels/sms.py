"""SMS channel implementation using GC Notify."""

from typing import Optional, Protocol
from uuid import uuid4

from infrastructure.logging import get_module_logger
from infrastructure.notifications.channels.base import NotificationChannel
from infrastructure.notifications.models import (
    Contact,
    DeliveryChannel,
    NotificationRecord,
)
from infrastructure.notifications.templates import truncate
from infrastructure.operations import OperationResult
from integrations.notify import client as notify

logger = get_module_logger()

SMS_MAX_LENGTH = 160


class SmsTransport(Protocol):
    def send_sms(
        self, phone_number: str, text: str, reference: Optional[str] = None
    ) -> OperationResult: ...


class NotifySmsTransport:
    """Sends through the GC Notify SMS API.

    Args:
        timeout: Socket timeout, kept under the channel deadline
    """

    def __init__(self, timeout: float = 5):
        self.timeout = timeout

    def send_sms(
        self, phone_number: str, text: str, reference: Optional[str] = None
    ) -> OperationResult:
        result = notify.send_sms(phone_number, text, reference=reference, timeout=self.timeout)
        if result.is_success:
            return OperationResult.success(
                message="SMS accepted by GC Notify",
                data={"provider_message_id": (result.data or {}).get("id")},
            )
        return result


class LoggingSmsTransport:
    """Development transport: logs the text instead of sending it."""

    def send_sms(
        self, phone_number: str, text: str, reference: Optional[str] = None
    ) -> OperationResult:
        message_id = f"log-{uuid4().hex}"
        logger.info("sms_logged", reference=reference, text=text, provider_message_id=message_id)
        return OperationResult.success(
            message="SMS logged", data={"provider_message_id": message_id}
        )


def render_sms(record: NotificationRecord) -> str:
    """Plain text: title, message and order number, capped at one SMS."""
    text = f"{record.title}: {record.message}"
    order_number = (record.data or {}).get("order_number")
    if order_number:
        text += f" (Order #{order_number})"
    return truncate(text, SMS_MAX_LENGTH - 3)


class SMSChannel(NotificationChannel):
    """SMS notification channel.

    Requires phone numbers in E.164 format (+15145550100), which the
    Contact model validates.
    """

    channel = DeliveryChannel.SMS

    def __init__(self, transport: SmsTransport):
        self.transport = transport

    def send(
        self, record: NotificationRecord, address: str, contact: Contact
    ) -> OperationResult:
        return self.transport.send_sms(address, render_sms(record), reference=record.id)
