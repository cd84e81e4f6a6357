"""
Factory functions for dependency injection.

Provides application-scoped singleton providers for core infrastructure services.
"""

from functools import lru_cache
from typing import Dict

from infrastructure.configuration import Settings
from infrastructure.notifications import (
    DynamoDBNotificationStore,
    DynamoDBRecipientDirectory,
    InMemoryNotificationStore,
    InMemoryRecipientDirectory,
    NotificationService,
    NotificationStore,
    RecipientDirectory,
)
from infrastructure.notifications.channels import NotificationChannel, build_channels
from infrastructure.notifications.models import DeliveryChannel


@lru_cache
def get_settings() -> Settings:
    """
    Get application-scoped settings singleton.

    This is the single source of truth for settings across the entire application.
    The @lru_cache decorator ensures only ONE instance is created per process,
    even if called from multiple packages.

    Application code should use the DI type alias for testability:
        from infrastructure.services import SettingsDep
        @router.get("/config")
        def get_config(settings: SettingsDep):
            return settings.model_dump()

    Returns:
        Settings: Cached settings instance loaded from environment.
    """
    return Settings()


@lru_cache
def get_notification_store() -> NotificationStore:
    """Record store selected by NOTIFICATIONS_STORE_BACKEND.

    The in-memory store only lives as long as the process; use it for local
    development and tests.
    """
    config = get_settings().notifications
    if config.store_backend == "dynamodb":
        return DynamoDBNotificationStore(table_name=config.table_name)
    return InMemoryNotificationStore()


@lru_cache
def get_recipient_directory() -> RecipientDirectory:
    """Recipient directory selected by NOTIFICATIONS_DIRECTORY_BACKEND."""
    config = get_settings().notifications
    if config.directory_backend == "dynamodb":
        return DynamoDBRecipientDirectory(
            users_table=config.users_table_name,
            admins_table=config.admins_table_name,
        )
    return InMemoryRecipientDirectory()


@lru_cache
def get_channels() -> Dict[DeliveryChannel, NotificationChannel]:
    """External delivery channels with the configured transports."""
    return build_channels(get_settings().notifications)


@lru_cache
def get_notification_service() -> NotificationService:
    """
    Get application-scoped notification service singleton.

    Returns:
        NotificationService: Service wired to the configured store, directory
        and channels.

    Usage:
        @router.get("/unread")
        def unread(service: NotificationServiceDep, user_id: str):
            return service.get_unread_count(user_id, "user")
    """
    return NotificationService(
        get_settings(),
        store=get_notification_store(),
        directory=get_recipient_directory(),
        channels=get_channels(),
    )
