"""
Dependency injection services.

Provides type aliases and provider functions for FastAPI dependency injection.
"""

from infrastructure.services.dependencies import (
    SettingsDep,
    NotificationServiceDep,
)
from infrastructure.services.providers import (
    get_settings,
    get_notification_store,
    get_recipient_directory,
    get_channels,
    get_notification_service,
)

__all__ = [
    "SettingsDep",
    "NotificationServiceDep",
    "get_settings",
    "get_notification_store",
    "get_recipient_directory",
    "get_channels",
    "get_notification_service",
]
