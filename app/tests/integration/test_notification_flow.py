"""End-to-end flow through the service with in-memory backends."""

from datetime import timedelta

import pytest

from infrastructure.notifications import NotificationService, RecipientSpec
from infrastructure.notifications.coordinator import shutdown_executor
from infrastructure.notifications.models import DeliveryChannel, NotificationStatus
from infrastructure.operations import OperationResult
from tests.factories.notifications import FakeChannel, make_party


@pytest.fixture(autouse=True)
def fresh_executor():
    yield
    shutdown_executor(wait=False)


class FlakyChannel(FakeChannel):
    """Fails the first ``failures`` sends, then succeeds."""

    def __init__(self, channel, failures):
        super().__init__(channel)
        self.failures = failures

    def send(self, record, address, contact):
        self.sent.append((record.id, address))
        if len(self.sent) <= self.failures:
            return OperationResult.transient_error("provider unavailable")
        return self.result


@pytest.mark.integration
def test_failed_email_is_retried_with_backoff_until_delivered(
    settings_factory, store, directory, clock, now
):
    settings = settings_factory(NOTIFICATIONS_MAX_ATTEMPTS=3, RETRY_PENDING_GRACE_SECONDS=0)
    email = FlakyChannel(DeliveryChannel.EMAIL, failures=2)
    service = NotificationService(
        settings, store, directory, channels={DeliveryChannel.EMAIL: email}, clock=clock
    )

    [record] = service.create_notification(
        "order_status",
        {"order_id": "ord-1", "order_number": "1001", "status": "shipped"},
        RecipientSpec(recipients=[make_party()]),
        channels={"push": False},
    )
    assert record.status == NotificationStatus.FAILED
    assert record.next_attempt_at == now + timedelta(minutes=5)
    assert record.channels.in_app.shown is True

    # Still in backoff
    assert service.retry_failed()["selected"] == 0

    clock.advance(minutes=5)
    assert service.retry_failed()["failed"] == 1
    assert store.get(record.id).next_attempt_at == clock.now + timedelta(minutes=10)

    clock.advance(minutes=10)
    assert service.retry_failed()["delivered"] == 1

    stored = store.get(record.id)
    assert stored.status == NotificationStatus.DELIVERED
    assert stored.attempts == 3
    assert stored.next_attempt_at is None
    assert len(email.sent) == 3

    clock.advance(minutes=60)
    assert service.retry_failed()["selected"] == 0


@pytest.mark.integration
def test_exhausted_record_stays_failed(settings_factory, store, directory, clock):
    settings = settings_factory(NOTIFICATIONS_MAX_ATTEMPTS=2)
    email = FlakyChannel(DeliveryChannel.EMAIL, failures=10)
    service = NotificationService(
        settings, store, directory, channels={DeliveryChannel.EMAIL: email}, clock=clock
    )
    [record] = service.create_notification(
        "order_payment",
        {"order_id": "ord-1", "order_number": "1001", "payment_status": "declined"},
        RecipientSpec(recipients=[make_party()]),
    )

    clock.advance(minutes=5)
    service.retry_failed()
    clock.advance(hours=1)

    assert service.retry_failed()["selected"] == 0
    stored = store.get(record.id)
    assert stored.status == NotificationStatus.FAILED
    assert stored.attempts == 2
    assert stored.next_attempt_at is None


@pytest.mark.integration
def test_inbox_lifecycle(settings, store, directory, fake_channels, clock, now):
    service = NotificationService(settings, store, directory, channels=fake_channels, clock=clock)
    spec = RecipientSpec(recipients=[make_party()])
    payload = {"order_id": "ord-1", "order_number": "1001", "comment_content": "Hi"}
    [first] = service.create_notification("order_comment", payload, spec)
    [second] = service.create_notification(
        "order_comment", payload, spec, expires_at=now + timedelta(days=1)
    )
    service.create_notification("order_comment", payload, spec)

    assert service.get_unread_count("u1", "user") == 3
    service.mark_as_read(first.id, "u1", "user")
    assert service.get_unread_count("u1", "user") == 2

    clock.advance(days=2)
    assert service.get_unread_count("u1", "user") == 1
    assert service.list_by_recipient("u1").total == 2

    assert service.cleanup() == 1
    assert store.get(second.id) is None
