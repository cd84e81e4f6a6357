"""Delivery coordinator: one delivery attempt for one record.

Enabled external channels are attempted concurrently on a shared thread
pool, each bounded by its own deadline. The outcome of every channel lands
in the record's channel sub-records, and the whole attempt is written back
in one conditional store operation.
"""

import threading
import time
from concurrent.futures import Future, ThreadPoolExecutor
from concurrent.futures import TimeoutError as FutureTimeoutError
from datetime import datetime, timedelta
from typing import Callable, Dict, Mapping, Optional

from infrastructure.logging import get_module_logger
from infrastructure.notifications.backoff import DEFAULT_BASE_DELAY, compute_next_attempt
from infrastructure.notifications.channels.base import NotificationChannel
from infrastructure.notifications.channels.in_app import InAppChannel
from infrastructure.notifications.directory import RecipientDirectory
from infrastructure.notifications.errors import InfrastructureError, NotificationError
from infrastructure.notifications.models import (
    Contact,
    DeliveryChannel,
    DeliveryUpdate,
    NotificationRecord,
    NotificationStatus,
    utc_now,
)
from infrastructure.notifications.store import NotificationStore

logger = get_module_logger()

TIMEOUT_ERROR = "timeout"
DEFAULT_TIMEOUTS = {"email": 10.0, "sms": 5.0, "push": 3.0}
DEFAULT_MAX_WORKERS = 16

_executor: Optional[ThreadPoolExecutor] = None
_executor_lock = threading.Lock()


def _get_or_create_executor(max_workers: int = DEFAULT_MAX_WORKERS) -> ThreadPoolExecutor:
    """Return the shared channel executor, creating it on first use."""
    global _executor
    with _executor_lock:
        if _executor is None:
            _executor = ThreadPoolExecutor(
                max_workers=max_workers, thread_name_prefix="notification-channel"
            )
            logger.info("channel_executor_started", max_workers=max_workers)
        return _executor


def shutdown_executor(wait: bool = True) -> None:
    """Shut down the shared channel executor (application shutdown)."""
    global _executor
    with _executor_lock:
        if _executor is not None:
            _executor.shutdown(wait=wait, cancel_futures=True)
            _executor = None
            logger.info("channel_executor_stopped")


class DeliveryCoordinator:
    """Runs delivery attempts and records their outcome.

    Args:
        store: Record store used for the conditional write-back
        directory: Contact lookup
        channels: External channel implementations keyed by DeliveryChannel
        timeouts: Per-channel deadline in seconds, keyed by channel name
        base_delay: Backoff base delay
        max_workers: Size of the shared executor when it is first created
        clock: Returns the current UTC time
    """

    def __init__(
        self,
        store: NotificationStore,
        directory: RecipientDirectory,
        channels: Mapping[DeliveryChannel, NotificationChannel],
        timeouts: Optional[Mapping[str, float]] = None,
        base_delay: timedelta = DEFAULT_BASE_DELAY,
        max_workers: int = DEFAULT_MAX_WORKERS,
        clock: Callable[[], datetime] = utc_now,
    ):
        self.store = store
        self.directory = directory
        self.channels = dict(channels)
        self.in_app = InAppChannel()
        self.timeouts = {**DEFAULT_TIMEOUTS, **(timeouts or {})}
        self.base_delay = base_delay
        self.max_workers = max_workers
        self.clock = clock

    def should_attempt(self, record: NotificationRecord, now: datetime) -> bool:
        if record.status in (NotificationStatus.DELIVERED, NotificationStatus.CANCELLED):
            return False
        if record.attempts_exhausted or record.is_expired(now):
            return False
        return record.is_due(now)

    def deliver(self, record: NotificationRecord) -> NotificationRecord:
        """Make one delivery attempt for ``record``.

        Records that are final, exhausted, expired or deferred are returned
        unchanged.

        Raises:
            InfrastructureError: directory or store failure
            ConcurrentUpdateError: another writer changed the record
        """
        now = self.clock()
        log = logger.bind(notification_id=record.id, attempts=record.attempts)
        if not self.should_attempt(record, now):
            log.debug("delivery_skipped", status=record.status.value)
            return record

        contact = self._resolve_contact(record)
        channels = record.channels.model_copy(deep=True)

        results = self._run_external(record, contact)
        for channel, (message_id, error) in results.items():
            state = channels.state(channel)
            if error is None:
                state.sent = True
                state.sent_at = now
                state.error = None
                state.provider_message_id = message_id
            else:
                state.error = error

        if channels.in_app.enabled:
            channels.in_app = self.in_app.show(channels.in_app, now)

        external = channels.enabled_external()
        if external:
            succeeded = any(channels.state(c).sent for c in external)
        else:
            succeeded = channels.in_app.enabled

        attempts = record.attempts + 1
        next_attempt_at = None
        if succeeded:
            status = NotificationStatus.DELIVERED
        else:
            status = NotificationStatus.FAILED
            if attempts < record.max_attempts:
                next_attempt_at = now + compute_next_attempt(record.attempts, self.base_delay)

        update = DeliveryUpdate(
            channels=channels,
            status=status,
            attempts=attempts,
            last_attempt_at=now,
            next_attempt_at=next_attempt_at,
            expected_attempts=record.attempts,
        )
        updated = self.store.apply_delivery(record.id, update)
        log.info(
            "delivery_attempted",
            status=updated.status.value,
            attempts_after=updated.attempts,
            failed_channels=[c.value for c, (_, err) in results.items() if err],
            next_attempt_at=updated.next_attempt_at.isoformat()
            if updated.next_attempt_at
            else None,
        )
        return updated

    def _resolve_contact(self, record: NotificationRecord) -> Optional[Contact]:
        try:
            return self.directory.get_recipient(record.recipient.id, record.recipient.type)
        except InfrastructureError:
            raise
        except Exception as e:
            logger.error(
                "recipient_lookup_failed", notification_id=record.id, error=str(e)
            )
            raise InfrastructureError(f"Recipient directory unavailable: {e}") from e

    def _run_external(
        self, record: NotificationRecord, contact: Optional[Contact]
    ) -> Dict[DeliveryChannel, tuple]:
        """Attempt every enabled external channel.

        Returns:
            ``{channel: (provider_message_id, error)}`` with ``error`` None on success
        """
        enabled = record.channels.enabled_external()
        if not enabled:
            return {}

        results: Dict[DeliveryChannel, tuple] = {}
        futures: Dict[DeliveryChannel, Future] = {}
        started = time.monotonic()
        executor = _get_or_create_executor(self.max_workers)
        for channel in enabled:
            implementation = self.channels.get(channel)
            if implementation is None:
                results[channel] = (None, f"{channel.value} channel not configured")
                continue
            futures[channel] = executor.submit(implementation.deliver, record, contact)

        for channel, future in futures.items():
            remaining = max(0.0, self.timeouts[channel.value] - (time.monotonic() - started))
            try:
                results[channel] = (future.result(timeout=remaining), None)
            except FutureTimeoutError:
                future.cancel()
                logger.warning(
                    "channel_timed_out",
                    notification_id=record.id,
                    channel=channel.value,
                    timeout=self.timeouts[channel.value],
                )
                results[channel] = (None, TIMEOUT_ERROR)
            except NotificationError as e:
                results[channel] = (None, str(e))
            except Exception as e:
                logger.error(
                    "channel_raised",
                    notification_id=record.id,
                    channel=channel.value,
                    error=str(e),
                )
                results[channel] = (None, str(e))
        return results
