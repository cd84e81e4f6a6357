"""Unit tests for the in-memory notification store and its shared rules."""

from datetime import timedelta

import pytest

from infrastructure.notifications.errors import (
    ConcurrentUpdateError,
    InfrastructureError,
    NotFoundError,
    ValidationError,
)
from infrastructure.notifications.models import (
    ChannelSet,
    DeliveryChannel,
    DeliveryUpdate,
    ListOptions,
    NotificationPriority,
    NotificationStatus,
    NotificationType,
    RecipientType,
)
from infrastructure.notifications.store import is_due_for_sweep, is_purgeable
from tests.factories.notifications import make_party, make_record


def failed_update(record, now, next_attempt_at=None):
    channels = record.channels.model_copy(deep=True)
    channels.email.error = "boom"
    return DeliveryUpdate(
        channels=channels,
        status=NotificationStatus.FAILED,
        attempts=record.attempts + 1,
        last_attempt_at=now,
        next_attempt_at=next_attempt_at,
        expected_attempts=record.attempts,
    )


@pytest.mark.unit
class TestSaveAndGet:
    def test_roundtrip(self, store, record_factory):
        record = record_factory()
        store.save(record)
        assert store.get(record.id) == record

    def test_duplicate_id_rejected(self, store, record_factory):
        record = record_factory()
        store.save(record)
        with pytest.raises(InfrastructureError):
            store.save(record)

    def test_get_unknown_returns_none(self, store):
        assert store.get("nope") is None

    def test_returned_records_are_copies(self, store, saved_record):
        record = saved_record()
        record.channels.email.sent = True
        assert store.get(record.id).channels.email.sent is False


@pytest.mark.unit
class TestApplyDelivery:
    def test_applies_update(self, store, saved_record, now):
        record = saved_record()
        updated = store.apply_delivery(
            record.id, failed_update(record, now, now + timedelta(minutes=5))
        )
        assert updated.status == NotificationStatus.FAILED
        assert updated.attempts == 1
        assert updated.channels.email.error == "boom"
        assert updated.next_attempt_at == now + timedelta(minutes=5)

    def test_stale_attempts_rejected(self, store, saved_record, now):
        record = saved_record()
        store.apply_delivery(record.id, failed_update(record, now))
        with pytest.raises(ConcurrentUpdateError):
            store.apply_delivery(record.id, failed_update(record, now))

    def test_unknown_record(self, store, record_factory, now):
        with pytest.raises(NotFoundError):
            store.apply_delivery("nope", failed_update(record_factory(), now))

    def test_keeps_out_of_band_success(self, store, saved_record, now):
        record = saved_record()
        store.mark_channel_delivered(record.id, DeliveryChannel.EMAIL, now, "ses-1")
        updated = store.apply_delivery(record.id, failed_update(record, now))
        assert updated.status == NotificationStatus.DELIVERED
        assert updated.channels.email.sent is True
        assert updated.channels.email.provider_message_id == "ses-1"
        assert updated.next_attempt_at is None
        assert updated.attempts == 1

    def test_cancelled_status_kept(self, store, saved_record, now):
        record = saved_record()
        store.cancel(record.id, now)
        updated = store.apply_delivery(record.id, failed_update(record, now))
        assert updated.status == NotificationStatus.CANCELLED


@pytest.mark.unit
class TestCancel:
    def test_cancel_pending(self, store, saved_record, now):
        record = saved_record(next_attempt_at=None)
        cancelled = store.cancel(record.id, now)
        assert cancelled.status == NotificationStatus.CANCELLED
        assert cancelled.next_attempt_at is None

    def test_cancel_delivered_rejected(self, store, saved_record, now):
        record = saved_record(status=NotificationStatus.DELIVERED)
        with pytest.raises(ValidationError):
            store.cancel(record.id, now)

    def test_cancel_unknown(self, store, now):
        with pytest.raises(NotFoundError):
            store.cancel("nope", now)


@pytest.mark.unit
class TestReadState:
    def test_mark_read_keeps_first_timestamp(self, store, saved_record, now):
        record = saved_record()
        first = store.mark_read(record.id, "u1", RecipientType.USER, now)
        second = store.mark_read(
            record.id, "u1", RecipientType.USER, now + timedelta(hours=1)
        )
        assert first.is_read is True
        assert second.read_at == now

    def test_mark_read_other_recipient_not_found(self, store, saved_record, now):
        record = saved_record()
        with pytest.raises(NotFoundError):
            store.mark_read(record.id, "u2", None, now)

    def test_mark_read_wrong_type_not_found(self, store, saved_record, now):
        record = saved_record()
        with pytest.raises(NotFoundError):
            store.mark_read(record.id, "u1", RecipientType.ADMIN, now)

    def test_mark_all_read_counts_changes(self, store, saved_record, now):
        saved_record()
        saved_record()
        saved_record(recipient=make_party("u2"))
        assert store.mark_all_read("u1", RecipientType.USER, now) == 2
        assert store.mark_all_read("u1", RecipientType.USER, now) == 0

    def test_count_unread_skips_cancelled_and_expired(self, store, saved_record, now):
        saved_record()
        saved_record(status=NotificationStatus.CANCELLED)
        saved_record(expires_at=now - timedelta(minutes=1))
        saved_record(is_read=True, read_at=now)
        assert store.count_unread("u1", None, now) == 1


@pytest.mark.unit
class TestList:
    def test_pages_newest_first(self, store, saved_record, now):
        for minutes in range(5):
            saved_record(created_at=now - timedelta(minutes=minutes))

        result = store.list_for_recipient("u1", ListOptions(page=1, limit=2), now)
        assert result.total == 5
        assert result.pages == 3
        assert [r.created_at for r in result.records] == [
            now,
            now - timedelta(minutes=1),
        ]

        last = store.list_for_recipient("u1", ListOptions(page=3, limit=2), now)
        assert len(last.records) == 1

    def test_filters(self, store, saved_record, now):
        saved_record(type=NotificationType.SECURITY)
        saved_record(is_read=True, read_at=now)
        saved_record(recipient=make_party("u1", RecipientType.ADMIN))

        by_type = store.list_for_recipient(
            "u1", ListOptions(type=NotificationType.SECURITY), now
        )
        assert by_type.total == 1
        unread = store.list_for_recipient("u1", ListOptions(is_read=False), now)
        assert unread.total == 2
        admins = store.list_for_recipient(
            "u1", ListOptions(recipient_type=RecipientType.ADMIN), now
        )
        assert admins.total == 1

    def test_sort_by_priority(self, store, saved_record, now):
        saved_record(priority=NotificationPriority.LOW)
        saved_record(priority=NotificationPriority.URGENT)
        saved_record(priority=NotificationPriority.NORMAL)
        result = store.list_for_recipient(
            "u1", ListOptions(sort_by="priority", sort_order="desc"), now
        )
        assert [r.priority for r in result.records] == [
            NotificationPriority.URGENT,
            NotificationPriority.NORMAL,
            NotificationPriority.LOW,
        ]

    def test_expired_hidden(self, store, saved_record, now):
        saved_record(expires_at=now - timedelta(seconds=1))
        assert store.list_for_recipient("u1", ListOptions(), now).total == 0


@pytest.mark.unit
class TestSweepSelection:
    def test_failed_after_backoff_is_due(self, record_factory, now):
        record = record_factory(
            status=NotificationStatus.FAILED,
            attempts=1,
            last_attempt_at=now - timedelta(minutes=10),
            next_attempt_at=now - timedelta(minutes=1),
        )
        assert is_due_for_sweep(record, now, now) is True

    def test_failed_in_backoff_not_due(self, record_factory, now):
        record = record_factory(
            status=NotificationStatus.FAILED,
            attempts=1,
            last_attempt_at=now,
            next_attempt_at=now + timedelta(minutes=5),
        )
        assert is_due_for_sweep(record, now, now) is False

    def test_exhausted_not_due(self, record_factory, now):
        record = record_factory(
            status=NotificationStatus.FAILED, attempts=3, last_attempt_at=now
        )
        assert is_due_for_sweep(record, now, now) is False

    def test_stranded_pending_due_after_grace(self, record_factory, now):
        record = record_factory(created_at=now - timedelta(minutes=10))
        assert is_due_for_sweep(record, now, now - timedelta(minutes=5)) is True
        assert is_due_for_sweep(record, now, now - timedelta(minutes=15)) is False

    def test_scheduled_pending_due_when_time_comes(self, record_factory, now):
        record = record_factory(scheduled_for=now + timedelta(hours=1))
        assert is_due_for_sweep(record, now, now) is False
        later = now + timedelta(hours=1)
        assert is_due_for_sweep(record, later, later) is True

    def test_claimed_not_due(self, record_factory, now):
        record = record_factory(
            created_at=now - timedelta(hours=1),
            claimed_by="w1",
            claim_expires_at=now + timedelta(minutes=1),
        )
        assert is_due_for_sweep(record, now, now) is False

    def test_fetch_due_respects_limit(self, store, saved_record, now):
        for minutes in (30, 20, 10):
            saved_record(created_at=now - timedelta(minutes=minutes))
        due = store.fetch_due(now, 2, pending_before=now - timedelta(minutes=5))
        assert [r.created_at for r in due] == [
            now - timedelta(minutes=30),
            now - timedelta(minutes=20),
        ]


@pytest.mark.unit
class TestClaims:
    def claim(self, store, record, worker_id, now, lease):
        return store.claim(
            record.id,
            worker_id,
            now,
            lease,
            expected_attempts=record.attempts,
            expected_status=record.status,
        )

    def test_only_one_worker_claims(self, store, saved_record, now):
        record = saved_record()
        lease = now + timedelta(minutes=5)
        assert self.claim(store, record, "w1", now, lease) is not None
        assert self.claim(store, record, "w2", now, lease) is None

    def test_expired_lease_can_be_reclaimed(self, store, saved_record, now):
        record = saved_record()
        self.claim(store, record, "w1", now, now + timedelta(minutes=5))
        later = now + timedelta(minutes=6)
        claimed = self.claim(store, record, "w2", later, later + timedelta(minutes=5))
        assert claimed.claimed_by == "w2"

    def test_claim_rejected_after_another_attempt(self, store, saved_record, now):
        fetched = saved_record(
            status=NotificationStatus.FAILED,
            attempts=1,
            last_attempt_at=now - timedelta(minutes=10),
        )
        store.apply_delivery(fetched.id, failed_update(fetched, now))

        assert self.claim(store, fetched, "w1", now, now + timedelta(minutes=5)) is None
        assert store.get(fetched.id).claimed_by is None

    def test_claim_rejected_after_status_change(self, store, saved_record, now):
        fetched = saved_record(
            status=NotificationStatus.FAILED,
            attempts=1,
            last_attempt_at=now - timedelta(minutes=10),
        )
        store.cancel(fetched.id, now)

        assert self.claim(store, fetched, "w1", now, now + timedelta(minutes=5)) is None

    def test_release_only_by_owner(self, store, saved_record, now):
        record = saved_record()
        self.claim(store, record, "w1", now, now + timedelta(minutes=5))
        store.release(record.id, "w2")
        assert store.get(record.id).claimed_by == "w1"
        store.release(record.id, "w1")
        assert store.get(record.id).claimed_by is None



@pytest.mark.unit
class TestPurge:
    def test_purges_expired_and_old_read(self, store, saved_record, now):
        expired = saved_record(expires_at=now - timedelta(days=1))
        old_read = saved_record(
            created_at=now - timedelta(days=100), is_read=True, read_at=now
        )
        old_unread = saved_record(created_at=now - timedelta(days=100))
        fresh_read = saved_record(is_read=True, read_at=now)

        removed = store.purge(now - timedelta(days=90), now)

        assert removed == 2
        assert store.get(expired.id) is None
        assert store.get(old_read.id) is None
        assert store.get(old_unread.id) is not None
        assert store.get(fresh_read.id) is not None

    def test_pending_retry_is_kept(self, record_factory, now):
        record = record_factory(
            created_at=now - timedelta(days=100),
            is_read=True,
            read_at=now,
            status=NotificationStatus.FAILED,
            attempts=1,
            last_attempt_at=now,
        )
        assert is_purgeable(record, now - timedelta(days=90), now) is False


@pytest.mark.unit
def test_channel_set_enabled_external_order():
    channels = ChannelSet.from_enabled([DeliveryChannel.PUSH, DeliveryChannel.EMAIL])
    assert channels.enabled_external() == [DeliveryChannel.EMAIL, DeliveryChannel.PUSH]
