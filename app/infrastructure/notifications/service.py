"""Notification service for dependency injection.

Provides a class-based interface to the notification pipeline (creation,
delivery, retry sweep and the inbox read API) for easier DI and testing.
"""

from datetime import datetime, timedelta
from typing import Any, Callable, Dict, List, Mapping, Optional, TYPE_CHECKING, Union

from infrastructure.logging import get_module_logger
from infrastructure.notifications.coordinator import DeliveryCoordinator
from infrastructure.notifications.directory import RecipientDirectory
from infrastructure.notifications.errors import (
    InfrastructureError,
    NotFoundError,
    ValidationError,
)
from infrastructure.notifications.factory import NotificationFactory, RecipientSpec
from infrastructure.notifications.models import (
    DeliveryChannel,
    ListOptions,
    ListResult,
    NotificationRecord,
    NotificationType,
    RecipientType,
    utc_now,
)
from infrastructure.notifications.queries import NotificationQueries
from infrastructure.notifications.scheduler import RetryScheduler, SweepConfig
from infrastructure.notifications.store import NotificationStore

if TYPE_CHECKING:
    from infrastructure.configuration import Settings
    from infrastructure.notifications.channels.base import NotificationChannel

logger = get_module_logger()


class NotificationService:
    """Class-based notification service.

    This is a thin facade over the factory, the delivery coordinator, the
    retry scheduler and the read API, all sharing one store and one
    recipient directory.

    Usage:
        # Via dependency injection
        from infrastructure.services import NotificationServiceDep

        @router.get("/unread")
        def unread(notification_service: NotificationServiceDep, user_id: str):
            return {"count": notification_service.get_unread_count(user_id, "user")}

        # Direct instantiation
        service = NotificationService(
            settings, store=InMemoryNotificationStore(), directory=directory
        )
        records = service.create_notification(
            "order_comment",
            payload,
            RecipientSpec(recipients=[Party(id="42", type=RecipientType.USER)]),
        )
    """

    def __init__(
        self,
        settings: "Settings",
        store: NotificationStore,
        directory: RecipientDirectory,
        channels: Optional[Mapping[DeliveryChannel, "NotificationChannel"]] = None,
        clock: Callable[[], datetime] = utc_now,
        worker_id: Optional[str] = None,
    ):
        """Initialize notification service.

        Args:
            settings: Settings instance (required, passed from provider).
            store: Record store.
            directory: Recipient directory.
            channels: Optional external channels keyed by DeliveryChannel.
                     If not provided, builds them from settings.
            clock: Returns the current UTC time.
            worker_id: Identifier used for sweep claims.
        """
        if channels is None:
            # Import here to avoid circular dependency at module level
            from infrastructure.notifications.channels import build_channels

            channels = build_channels(settings.notifications)

        config = settings.notifications
        retry = settings.retry
        self._settings = settings
        self.store = store
        self.directory = directory
        self.clock = clock

        self.factory = NotificationFactory(
            store,
            directory,
            max_attempts=config.max_attempts,
            default_ttl=timedelta(days=config.default_ttl)
            if config.default_ttl
            else None,
            clock=clock,
        )
        self.coordinator = DeliveryCoordinator(
            store,
            directory,
            channels,
            timeouts=config.channel_timeouts,
            base_delay=timedelta(minutes=retry.base_delay_minutes),
            max_workers=config.max_workers,
            clock=clock,
        )
        self.scheduler = RetryScheduler(
            store,
            self.coordinator,
            config=SweepConfig(
                batch_size=retry.batch_size,
                claim_lease=timedelta(seconds=retry.claim_lease_seconds),
                pending_grace=timedelta(seconds=retry.pending_grace_seconds),
                retention=timedelta(days=config.retention_days),
            ),
            worker_id=worker_id,
            clock=clock,
        )
        self.queries = NotificationQueries(store, clock=clock)

    def create_notification(
        self,
        event_type: Union[str, NotificationType],
        payload: Dict[str, Any],
        recipient_spec: RecipientSpec,
        **options: Any,
    ) -> List[NotificationRecord]:
        """Create records for an event and deliver the ones that are due now.

        Options are passed to NotificationFactory.create (sender, channels,
        priority, scheduled_for, expires_at, tags). A store or directory
        failure during the inline attempt leaves the record pending; the
        retry sweep picks it up.
        """
        records = self.factory.create(event_type, payload, recipient_spec, **options)
        now = self.clock()
        results = []
        for record in records:
            if not record.is_due(now):
                results.append(record)
                continue
            try:
                results.append(self.coordinator.deliver(record))
            except InfrastructureError as e:
                logger.warning(
                    "inline_delivery_deferred",
                    notification_id=record.id,
                    error=str(e),
                )
                results.append(record)
        return results

    def deliver(self, record: NotificationRecord) -> NotificationRecord:
        return self.coordinator.deliver(record)

    def deliver_by_id(self, notification_id: str) -> NotificationRecord:
        """Run one delivery attempt for a stored record.

        Raises:
            NotFoundError: no record with this id
        """
        record = self.store.get(notification_id)
        if record is None:
            raise NotFoundError(f"Notification {notification_id} not found")
        return self.coordinator.deliver(record)

    def acknowledge_delivery(
        self,
        notification_id: str,
        channel: Union[str, DeliveryChannel],
        provider_message_id: Optional[str] = None,
    ) -> NotificationRecord:
        """Record an out-of-band channel success (e.g. a provider callback)."""
        try:
            channel = DeliveryChannel(channel)
        except ValueError:
            raise ValidationError(f"Unknown delivery channel: {channel}") from None
        if channel == DeliveryChannel.IN_APP:
            raise ValidationError("In-app delivery cannot be acknowledged")
        record = self.store.mark_channel_delivered(
            notification_id, channel, self.clock(), provider_message_id
        )
        logger.info(
            "delivery_acknowledged",
            notification_id=notification_id,
            channel=channel.value,
        )
        return record

    def cancel(self, notification_id: str) -> NotificationRecord:
        record = self.store.cancel(notification_id, self.clock())
        logger.info("notification_cancelled", notification_id=notification_id)
        return record

    def get_unread_count(
        self, recipient_id: str, recipient_type: Union[str, RecipientType, None] = None
    ) -> int:
        return self.queries.get_unread_count(recipient_id, recipient_type)

    def mark_as_read(
        self,
        notification_id: str,
        recipient_id: str,
        recipient_type: Union[str, RecipientType, None] = None,
    ) -> NotificationRecord:
        return self.queries.mark_as_read(notification_id, recipient_id, recipient_type)

    def mark_all_as_read(
        self, recipient_id: str, recipient_type: Union[str, RecipientType, None] = None
    ) -> int:
        return self.queries.mark_all_as_read(recipient_id, recipient_type)

    def list_by_recipient(
        self, recipient_id: str, options: Union[ListOptions, dict, None] = None, **kwargs: Any
    ) -> ListResult:
        return self.queries.list_by_recipient(recipient_id, options, **kwargs)

    def retry_failed(self) -> Dict[str, int]:
        """Run one retry sweep."""
        return self.scheduler.run_once()

    def cleanup(self) -> int:
        """Purge expired records and read records past retention."""
        return self.scheduler.cleanup()

    @property
    def settings(self) -> "Settings":
        return self._settings
