"""Shared fixtures for the notification service test suite."""

from datetime import datetime
from typing import Callable

import pytest

from infrastructure.configuration import NotificationSettings, RetrySettings, Settings
from infrastructure.notifications.directory import InMemoryRecipientDirectory
from infrastructure.notifications.models import (
    Contact,
    DeliveryChannel,
    NotificationRecord,
    RecipientType,
)
from infrastructure.notifications.store import InMemoryNotificationStore
from tests.factories.notifications import (
    FIXED_NOW,
    FakeChannel,
    FakeClock,
    make_contact,
    make_party,
    make_record,
)


@pytest.fixture
def now() -> datetime:
    return FIXED_NOW


@pytest.fixture
def clock() -> FakeClock:
    return FakeClock()


@pytest.fixture
def settings_factory():
    """Factory for Settings with notification and retry overrides.

    Keys are environment variable names, e.g.
    ``settings_factory(NOTIFICATIONS_MAX_ATTEMPTS=5, RETRY_BATCH_SIZE=2)``.
    """

    def _factory(**overrides) -> Settings:
        notifications = {
            k: v for k, v in overrides.items() if k.startswith("NOTIFICATIONS_")
        }
        retry = {k: v for k, v in overrides.items() if k.startswith("RETRY_")}
        return Settings(
            notifications=NotificationSettings(**notifications),
            retry=RetrySettings(**retry),
        )

    return _factory


@pytest.fixture
def settings(settings_factory) -> Settings:
    return settings_factory()


@pytest.fixture
def store() -> InMemoryNotificationStore:
    return InMemoryNotificationStore()


@pytest.fixture
def contact() -> Contact:
    return make_contact()


@pytest.fixture
def directory(contact) -> InMemoryRecipientDirectory:
    """Directory with user u1 and admins a1, a2 (active) and a3 (inactive)."""
    directory = InMemoryRecipientDirectory()
    directory.register(make_party("u1"), contact)
    directory.register(
        make_party("a1", RecipientType.ADMIN),
        make_contact(email="a1@example.com", display_name="Admin One"),
    )
    directory.register(
        make_party("a2", RecipientType.ADMIN),
        make_contact(email="a2@example.com", display_name="Admin Two"),
    )
    directory.register(
        make_party("a3", RecipientType.ADMIN),
        make_contact(email="a3@example.com", active=False),
    )
    return directory


@pytest.fixture
def fake_channels():
    return {
        DeliveryChannel.EMAIL: FakeChannel(DeliveryChannel.EMAIL),
        DeliveryChannel.SMS: FakeChannel(DeliveryChannel.SMS),
        DeliveryChannel.PUSH: FakeChannel(DeliveryChannel.PUSH),
    }


@pytest.fixture
def record_factory():
    """Factory for NotificationRecord instances.

    Example:
        record = record_factory(channels=[DeliveryChannel.PUSH], attempts=1)
    """
    return make_record


@pytest.fixture
def saved_record(store, record_factory) -> Callable[..., NotificationRecord]:
    """Factory that builds a record and saves it in the in-memory store."""

    def _factory(**kwargs) -> NotificationRecord:
        return store.save(record_factory(**kwargs))

    return _factory
