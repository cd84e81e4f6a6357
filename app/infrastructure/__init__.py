"""Infrastructure modules for the notification service.

Centralized infrastructure components:
- configuration: Settings management (settings, NotificationSettings, RetrySettings)
- logging: Structured logging (get_module_logger)
- notifications: Notification pipeline (factory, delivery, retry sweep, inbox)
- operations: Operation results and error classification
- services: Dependency injection services (SettingsDep, NotificationServiceDep)
"""

# Configuration
from infrastructure.configuration import settings

# Observability
from infrastructure.logging import get_module_logger

# Operations
from infrastructure.operations.result import OperationResult
from infrastructure.operations.status import OperationStatus

# Dependency Injection Services
from infrastructure.services import (
    NotificationServiceDep,
    SettingsDep,
    get_notification_service,
    get_settings,
)

__all__ = [
    # Configuration
    "settings",
    # Observability
    "get_module_logger",
    # Operations
    "OperationResult",
    "OperationStatus",
    # Dependency Injection Services
    "SettingsDep",
    "NotificationServiceDep",
    "get_settings",
    "get_notification_service",
]
