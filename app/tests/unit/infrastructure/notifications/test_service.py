"""Unit tests for NotificationService."""

from datetime import timedelta
from unittest.mock import MagicMock, patch

import pytest

from infrastructure.notifications.coordinator import shutdown_executor
from infrastructure.notifications.errors import (
    InfrastructureError,
    NotFoundError,
    ValidationError,
)
from infrastructure.notifications.factory import RecipientSpec
from infrastructure.notifications.models import DeliveryChannel, NotificationStatus
from infrastructure.notifications.service import NotificationService
from tests.factories.notifications import make_party

PAYLOAD = {
    "order_id": "ord-1",
    "order_number": "1001",
    "comment_content": "Can you ship before Friday?",
}


@pytest.fixture(autouse=True)
def fresh_executor():
    yield
    shutdown_executor(wait=False)


@pytest.fixture
def service(settings, store, directory, fake_channels, clock):
    return NotificationService(
        settings, store, directory, channels=fake_channels, clock=clock, worker_id="w1"
    )


@pytest.mark.unit
class TestConstruction:
    def test_wires_settings(self, settings_factory, store, directory, fake_channels):
        settings = settings_factory(
            NOTIFICATIONS_MAX_ATTEMPTS=5,
            RETRY_BATCH_SIZE=7,
            RETRY_BASE_DELAY_MINUTES=2,
        )
        service = NotificationService(settings, store, directory, channels=fake_channels)
        assert service.factory.max_attempts == 5
        assert service.scheduler.config.batch_size == 7
        assert service.coordinator.base_delay == timedelta(minutes=2)
        assert service.settings is settings

    def test_builds_channels_from_settings(self, settings, store, directory):
        with patch(
            "infrastructure.notifications.channels.build_channels", return_value={}
        ) as mock_build:
            service = NotificationService(settings, store, directory)
        mock_build.assert_called_once_with(settings.notifications)
        assert service.coordinator.channels == {}


@pytest.mark.unit
class TestCreateNotification:
    def test_creates_and_delivers_inline(self, service, store):
        [record] = service.create_notification(
            "order_comment", PAYLOAD, RecipientSpec(recipients=[make_party()])
        )
        assert record.status == NotificationStatus.DELIVERED
        assert store.get(record.id).attempts == 1

    def test_scheduled_record_waits(self, service, now):
        [record] = service.create_notification(
            "order_comment",
            PAYLOAD,
            RecipientSpec(recipients=[make_party()]),
            scheduled_for=now + timedelta(hours=1),
        )
        assert record.status == NotificationStatus.PENDING
        assert record.attempts == 0

    def test_inline_infrastructure_failure_keeps_record(self, service, store):
        service.coordinator.deliver = MagicMock(side_effect=InfrastructureError("down"))
        [record] = service.create_notification(
            "order_comment", PAYLOAD, RecipientSpec(recipients=[make_party()])
        )
        assert record.status == NotificationStatus.PENDING
        assert store.get(record.id) is not None

    def test_validation_errors_propagate(self, service):
        with pytest.raises(ValidationError):
            service.create_notification("order_comment", {}, RecipientSpec(recipients=[make_party()]))


@pytest.mark.unit
class TestDeliveryOperations:
    def test_deliver_by_id(self, service, saved_record):
        record = saved_record()
        assert service.deliver_by_id(record.id).status == NotificationStatus.DELIVERED

    def test_deliver_by_unknown_id(self, service):
        with pytest.raises(NotFoundError):
            service.deliver_by_id("nope")

    def test_acknowledge_delivery(self, service, saved_record, now):
        record = saved_record(
            channels=[DeliveryChannel.SMS],
            status=NotificationStatus.FAILED,
            attempts=1,
            last_attempt_at=now,
            next_attempt_at=now + timedelta(minutes=5),
        )
        updated = service.acknowledge_delivery(record.id, "sms", "notify-42")
        assert updated.status == NotificationStatus.DELIVERED
        assert updated.channels.sms.sent is True
        assert updated.channels.sms.provider_message_id == "notify-42"
        assert updated.next_attempt_at is None

    @pytest.mark.parametrize("channel", ["in_app", "fax"])
    def test_acknowledge_rejects_channel(self, service, saved_record, channel):
        record = saved_record()
        with pytest.raises(ValidationError):
            service.acknowledge_delivery(record.id, channel)

    def test_cancel(self, service, saved_record):
        record = saved_record()
        assert service.cancel(record.id).status == NotificationStatus.CANCELLED

    def test_retry_failed_runs_sweep(self, service, saved_record, now):
        saved_record(
            status=NotificationStatus.FAILED,
            attempts=1,
            last_attempt_at=now - timedelta(minutes=10),
            next_attempt_at=now - timedelta(minutes=5),
        )
        assert service.retry_failed()["delivered"] == 1

    def test_cleanup(self, service, saved_record, now):
        saved_record(expires_at=now - timedelta(minutes=1))
        assert service.cleanup() == 1


@pytest.mark.unit
class TestReadOperations:
    def test_inbox_flow(self, service, saved_record):
        first = saved_record()
        saved_record()
        assert service.get_unread_count("u1", "user") == 2
        service.mark_as_read(first.id, "u1", "user")
        assert service.get_unread_count("u1") == 1
        assert service.mark_all_as_read("u1") == 1
        assert service.list_by_recipient("u1", is_read=True).total == 2
