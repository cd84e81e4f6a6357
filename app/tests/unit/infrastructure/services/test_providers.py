"""Unit tests for the dependency providers."""

from unittest.mock import patch

import pytest

from infrastructure.configuration import NotificationSettings, Settings
from infrastructure.notifications import (
    DynamoDBNotificationStore,
    DynamoDBRecipientDirectory,
    InMemoryNotificationStore,
    InMemoryRecipientDirectory,
    NotificationService,
)
from infrastructure.services import providers


@pytest.fixture(autouse=True)
def clear_provider_caches():
    for provider in (
        providers.get_settings,
        providers.get_notification_store,
        providers.get_recipient_directory,
        providers.get_channels,
        providers.get_notification_service,
    ):
        provider.cache_clear()
    yield
    for provider in (
        providers.get_settings,
        providers.get_notification_store,
        providers.get_recipient_directory,
        providers.get_channels,
        providers.get_notification_service,
    ):
        provider.cache_clear()


def settings_with(**notifications) -> Settings:
    return Settings(notifications=NotificationSettings(**notifications))


@pytest.mark.unit
class TestProviders:
    def test_settings_singleton(self):
        assert providers.get_settings() is providers.get_settings()

    def test_memory_backends_by_default(self):
        with patch.object(providers, "get_settings", return_value=settings_with()):
            assert isinstance(providers.get_notification_store(), InMemoryNotificationStore)
            assert isinstance(
                providers.get_recipient_directory(), InMemoryRecipientDirectory
            )

    def test_dynamodb_backends(self):
        settings = settings_with(
            NOTIFICATIONS_STORE_BACKEND="dynamodb",
            NOTIFICATIONS_DIRECTORY_BACKEND="dynamodb",
            NOTIFICATIONS_TABLE_NAME="notifications-test",
        )
        with patch.object(providers, "get_settings", return_value=settings):
            store = providers.get_notification_store()
            directory = providers.get_recipient_directory()
        assert isinstance(store, DynamoDBNotificationStore)
        assert store.table_name == "notifications-test"
        assert isinstance(directory, DynamoDBRecipientDirectory)

    def test_notification_service_singleton(self):
        with patch.object(providers, "get_settings", return_value=settings_with()):
            service = providers.get_notification_service()
            assert isinstance(service, NotificationService)
            assert providers.get_notification_service() is service
            assert service.store is providers.get_notification_store()
