"""Notification record store.

Every mutation is a single atomic operation against the store: delivery
write-back is a compare-and-set on ``attempts``, read-state changes and
claims are conditional updates. No caller reads a record, edits it and
writes it back.
"""

import threading
from datetime import datetime
from typing import Dict, List, Optional, Protocol, Tuple

from infrastructure.logging import get_module_logger
from infrastructure.notifications.errors import (
    ConcurrentUpdateError,
    InfrastructureError,
    NotFoundError,
    ValidationError,
)
from infrastructure.notifications.models import (
    EXTERNAL_CHANNELS,
    ChannelSet,
    DeliveryChannel,
    DeliveryUpdate,
    ListOptions,
    ListResult,
    NotificationRecord,
    NotificationStatus,
    RecipientType,
)

logger = get_module_logger()


class NotificationStore(Protocol):
    """Persistence contract shared by the in-memory and DynamoDB stores."""

    def save(self, record: NotificationRecord) -> NotificationRecord: ...

    def get(self, notification_id: str) -> Optional[NotificationRecord]: ...

    def apply_delivery(
        self, notification_id: str, update: DeliveryUpdate
    ) -> NotificationRecord: ...

    def mark_channel_delivered(
        self,
        notification_id: str,
        channel: DeliveryChannel,
        now: datetime,
        provider_message_id: Optional[str] = None,
    ) -> NotificationRecord: ...

    def cancel(self, notification_id: str, now: datetime) -> NotificationRecord: ...

    def mark_read(
        self,
        notification_id: str,
        recipient_id: str,
        recipient_type: Optional[RecipientType],
        now: datetime,
    ) -> NotificationRecord: ...

    def mark_all_read(
        self, recipient_id: str, recipient_type: Optional[RecipientType], now: datetime
    ) -> int: ...

    def count_unread(
        self, recipient_id: str, recipient_type: Optional[RecipientType], now: datetime
    ) -> int: ...

    def list_for_recipient(
        self, recipient_id: str, options: ListOptions, now: datetime
    ) -> ListResult: ...

    def fetch_due(
        self, now: datetime, limit: int, pending_before: datetime
    ) -> List[NotificationRecord]: ...

    def claim(
        self,
        notification_id: str,
        worker_id: str,
        now: datetime,
        lease_until: datetime,
        expected_attempts: int,
        expected_status: NotificationStatus,
    ) -> Optional[NotificationRecord]: ...

    def release(self, notification_id: str, worker_id: str) -> None: ...

    def purge(self, read_before: datetime, now: datetime) -> int: ...


def merge_delivery(
    current: NotificationRecord, update: DeliveryUpdate
) -> Tuple[ChannelSet, NotificationStatus, Optional[datetime]]:
    """Combine a delivery outcome with the stored record.

    A channel success reported out of band while the attempt was running is
    kept, and a record already delivered (or cancelled) keeps its status.
    """
    channels = update.channels.model_copy(deep=True)
    for channel in EXTERNAL_CHANNELS:
        stored = current.channels.state(channel)
        if stored.sent and not channels.state(channel).sent:
            setattr(channels, channel.value, stored.model_copy())

    status = update.status
    next_attempt_at = update.next_attempt_at
    if current.status in (NotificationStatus.DELIVERED, NotificationStatus.CANCELLED):
        status = current.status
        next_attempt_at = None
    return channels, status, next_attempt_at


def is_due_for_sweep(
    record: NotificationRecord, now: datetime, pending_before: datetime
) -> bool:
    """Selection rule of the retry sweep.

    Failed records whose backoff elapsed, deferred records whose
    ``scheduled_for`` passed, and never-attempted records stranded in
    pending for longer than the grace period. Claimed and expired records
    are skipped.
    """
    if record.is_claimed(now) or record.is_expired(now):
        return False
    if record.is_retry_eligible(now):
        return True
    if record.status == NotificationStatus.PENDING and record.attempts == 0:
        if record.scheduled_for is not None:
            return record.scheduled_for <= now
        return record.created_at <= pending_before
    return False


def is_purgeable(record: NotificationRecord, read_before: datetime, now: datetime) -> bool:
    """Retention rule: expired records, and old read records with no pending retry."""
    if record.is_expired(now):
        return True
    if not record.is_read or record.created_at >= read_before:
        return False
    return not (
        record.status == NotificationStatus.FAILED and not record.attempts_exhausted
    )


def _replace(record: NotificationRecord, **changes) -> NotificationRecord:
    # Re-validate so every write goes through the model invariants
    return NotificationRecord.model_validate({**dict(record), **changes})


def _matches_recipient(
    record: NotificationRecord, recipient_id: str, recipient_type: Optional[RecipientType]
) -> bool:
    if record.recipient.id != recipient_id:
        return False
    return recipient_type is None or record.recipient.type == recipient_type


class InMemoryNotificationStore:
    """Thread-safe in-memory store for development and tests.

    All operations run under one lock, which makes each of them atomic.
    Records handed out are copies; mutating them does not touch the store.
    """

    def __init__(self):
        self._records: Dict[str, NotificationRecord] = {}
        self._lock = threading.Lock()

    def _require(self, notification_id: str) -> NotificationRecord:
        record = self._records.get(notification_id)
        if record is None:
            raise NotFoundError(f"Notification {notification_id} not found")
        return record

    def _put(self, record: NotificationRecord) -> NotificationRecord:
        self._records[record.id] = record
        return record.model_copy(deep=True)

    def save(self, record: NotificationRecord) -> NotificationRecord:
        with self._lock:
            if record.id in self._records:
                raise InfrastructureError(f"Notification {record.id} already exists")
            stored = self._put(record.model_copy(deep=True))
        logger.debug("notification_saved", notification_id=record.id)
        return stored

    def get(self, notification_id: str) -> Optional[NotificationRecord]:
        with self._lock:
            record = self._records.get(notification_id)
            return record.model_copy(deep=True) if record else None

    def apply_delivery(
        self, notification_id: str, update: DeliveryUpdate
    ) -> NotificationRecord:
        with self._lock:
            current = self._require(notification_id)
            if current.attempts != update.expected_attempts:
                raise ConcurrentUpdateError(notification_id)
            channels, status, next_attempt_at = merge_delivery(current, update)
            return self._put(
                _replace(
                    current,
                    channels=channels,
                    status=status,
                    attempts=update.attempts,
                    last_attempt_at=update.last_attempt_at,
                    next_attempt_at=next_attempt_at,
                    updated_at=update.last_attempt_at,
                )
            )

    def mark_channel_delivered(
        self,
        notification_id: str,
        channel: DeliveryChannel,
        now: datetime,
        provider_message_id: Optional[str] = None,
    ) -> NotificationRecord:
        with self._lock:
            current = self._require(notification_id)
            if current.status == NotificationStatus.CANCELLED:
                return current.model_copy(deep=True)
            channels = current.channels.model_copy(deep=True)
            state = channels.state(channel)
            if not state.sent:
                state.sent = True
                state.sent_at = now
                state.error = None
                state.provider_message_id = provider_message_id or state.provider_message_id
            return self._put(
                _replace(
                    current,
                    channels=channels,
                    status=NotificationStatus.DELIVERED,
                    next_attempt_at=None,
                    updated_at=now,
                )
            )

    def cancel(self, notification_id: str, now: datetime) -> NotificationRecord:
        with self._lock:
            current = self._require(notification_id)
            if current.status == NotificationStatus.DELIVERED:
                raise ValidationError(
                    f"Notification {notification_id} is already delivered"
                )
            return self._put(
                _replace(
                    current,
                    status=NotificationStatus.CANCELLED,
                    next_attempt_at=None,
                    updated_at=now,
                )
            )

    def mark_read(
        self,
        notification_id: str,
        recipient_id: str,
        recipient_type: Optional[RecipientType],
        now: datetime,
    ) -> NotificationRecord:
        with self._lock:
            current = self._records.get(notification_id)
            if current is None or not _matches_recipient(current, recipient_id, recipient_type):
                raise NotFoundError(
                    f"Notification {notification_id} not found for recipient {recipient_id}"
                )
            if current.is_read:
                return current.model_copy(deep=True)
            return self._put(_replace(current, is_read=True, read_at=now, updated_at=now))

    def mark_all_read(
        self, recipient_id: str, recipient_type: Optional[RecipientType], now: datetime
    ) -> int:
        changed = 0
        with self._lock:
            for record in list(self._records.values()):
                if record.is_read or not _matches_recipient(record, recipient_id, recipient_type):
                    continue
                self._put(_replace(record, is_read=True, read_at=now, updated_at=now))
                changed += 1
        return changed

    def count_unread(
        self, recipient_id: str, recipient_type: Optional[RecipientType], now: datetime
    ) -> int:
        with self._lock:
            return sum(
                1
                for record in self._records.values()
                if not record.is_read
                and record.is_active(now)
                and _matches_recipient(record, recipient_id, recipient_type)
            )

    def list_for_recipient(
        self, recipient_id: str, options: ListOptions, now: datetime
    ) -> ListResult:
        with self._lock:
            matching = [
                record
                for record in self._records.values()
                if record.recipient.id == recipient_id
                and not record.is_expired(now)
                and options.matches(record)
            ]
        matching.sort(key=options.sort_key, reverse=options.sort_order == "desc")
        page = matching[options.offset : options.offset + options.limit]
        return ListResult(
            records=[record.model_copy(deep=True) for record in page],
            total=len(matching),
            page=options.page,
            limit=options.limit,
        )

    def fetch_due(
        self, now: datetime, limit: int, pending_before: datetime
    ) -> List[NotificationRecord]:
        with self._lock:
            due = [
                record
                for record in self._records.values()
                if is_due_for_sweep(record, now, pending_before)
            ]
        due.sort(key=lambda r: r.next_attempt_at or r.scheduled_for or r.created_at)
        return [record.model_copy(deep=True) for record in due[:limit]]

    def claim(
        self,
        notification_id: str,
        worker_id: str,
        now: datetime,
        lease_until: datetime,
        expected_attempts: int,
        expected_status: NotificationStatus,
    ) -> Optional[NotificationRecord]:
        """Lease a record the sweep selected.

        Fails when the lease is held, or when another worker attempted or
        settled the record since it was fetched.
        """
        with self._lock:
            current = self._records.get(notification_id)
            if current is None or current.is_claimed(now):
                return None
            if (
                current.attempts != expected_attempts
                or current.status != expected_status
            ):
                return None
            return self._put(
                _replace(current, claimed_by=worker_id, claim_expires_at=lease_until)
            )

    def release(self, notification_id: str, worker_id: str) -> None:
        with self._lock:
            current = self._records.get(notification_id)
            if current is None or current.claimed_by != worker_id:
                return
            self._put(_replace(current, claimed_by=None, claim_expires_at=None))

    def purge(self, read_before: datetime, now: datetime) -> int:
        with self._lock:
            doomed = [
                record.id
                for record in self._records.values()
                if is_purgeable(record, read_before, now)
            ]
            for notification_id in doomed:
                del self._records[notification_id]
        return len(doomed)
