"""Notification channel abstract base class.

Every external channel (email, SMS, push) implements this interface. A
channel turns one record plus the recipient's contact into one provider
call through an injected transport, so providers can be swapped (SES vs
log-only in development) without touching the coordinator.
"""

from abc import ABC, abstractmethod
from typing import Optional

from infrastructure.logging import get_module_logger
from infrastructure.notifications.errors import ChannelDeliveryError
from infrastructure.notifications.models import (
    Contact,
    DeliveryChannel,
    NotificationRecord,
)
from infrastructure.operations import OperationResult

logger = get_module_logger()


class NotificationChannel(ABC):
    """Abstract base class for notification channels.

    Example Implementation:
        class PagerChannel(NotificationChannel):
            channel = DeliveryChannel.SMS

            def send(self, record, address):
                return self.transport.page(address, record.title)
    """

    channel: DeliveryChannel

    @property
    def channel_name(self) -> str:
        """Channel identifier (email, sms, push) for routing and logging."""
        return self.channel.value

    def resolve_recipient(self, contact: Optional[Contact]) -> OperationResult:
        """Pick this channel's address out of the recipient's contact.

        Returns:
            OperationResult with the address in ``data["address"]``
            - Not Found: PERMANENT_ERROR with error_code="MISSING_ADDRESS"
        """
        if contact is None:
            return OperationResult.permanent_error(
                "Recipient not found in directory", error_code="RECIPIENT_NOT_FOUND"
            )
        address = contact.address_for(self.channel)
        if not address:
            return OperationResult.permanent_error(
                f"Recipient has no {self.channel_name} address",
                error_code="MISSING_ADDRESS",
            )
        return OperationResult.success(data={"address": address})

    @abstractmethod
    def send(
        self, record: NotificationRecord, address: str, contact: Contact
    ) -> OperationResult:
        """Make the provider call.

        Must return a failed OperationResult rather than raise for provider
        errors. Success carries ``data["provider_message_id"]`` when known.
        """

    def deliver(self, record: NotificationRecord, contact: Optional[Contact]) -> Optional[str]:
        """Resolve the address and send.

        Returns:
            Provider message id, if the provider returned one

        Raises:
            ChannelDeliveryError: address missing or provider call failed
        """
        resolved = self.resolve_recipient(contact)
        if not resolved.is_success:
            raise ChannelDeliveryError(self.channel_name, resolved.message, resolved.error_code)

        result = self.send(record, resolved.data["address"], contact)
        if not result.is_success:
            logger.warning(
                "channel_send_failed",
                channel=self.channel_name,
                notification_id=record.id,
                error=result.message,
                error_code=result.error_code,
            )
            raise ChannelDeliveryError(self.channel_name, result.message, result.error_code)

        logger.info(
            "channel_send_succeeded",
            channel=self.channel_name,
            notification_id=record.id,
        )
        return (result.data or {}).get("provider_message_id")

    def health_check(self) -> OperationResult:
        """Check channel health. Channels without a health check report healthy."""
        return OperationResult.success(message=f"{self.channel_name} channel configured")
