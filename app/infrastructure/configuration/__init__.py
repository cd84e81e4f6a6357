"""Infrastructure configuration module - public API.

Centralized configuration for the notification service using Pydantic
BaseSettings with domain-based organization.

Exports:
    settings: Singleton Settings instance (main configuration object)
    Settings: Main settings class (for testing/overrides)
    NotificationSettings: Notification pipeline settings class
    RetrySettings: Retry sweep settings class

Example:
    ```python
    from infrastructure.services import get_settings

    settings = get_settings()

    table = settings.notifications.table_name
    retry_enabled = settings.retry.enabled
    ```
"""

from infrastructure.configuration.settings import Settings, settings
from infrastructure.configuration.features.notifications import NotificationSettings
from infrastructure.configuration.infrastructure.retry import RetrySettings

__all__ = ["Settings", "settings", "NotificationSettings", "RetrySettings"]
