"""Marketplace notification pipeline.

Turns business events (order comments, status changes, payments,
security alerts, ...) into per-recipient notification records, delivers
them over email, SMS, push and in-app, retries failures with exponential
backoff and serves the recipient inbox.

Usage:
    from infrastructure.notifications import (
        NotificationService,
        Party,
        RecipientSpec,
        RecipientType,
    )

    records = service.create_notification(
        "order_comment",
        {
            "order_id": "ord-1",
            "order_number": "1001",
            "comment_id": "c-9",
            "comment_content": "Can you ship before Friday?",
        },
        RecipientSpec(recipients=[Party(id="42", type=RecipientType.USER)]),
    )

    unread = service.get_unread_count("42", RecipientType.USER)
"""

# Models
from infrastructure.notifications.models import (
    Contact,
    DeliveryChannel,
    ListOptions,
    ListResult,
    NotificationPriority,
    NotificationRecord,
    NotificationStatus,
    NotificationType,
    Party,
    RecipientType,
)

# Errors
from infrastructure.notifications.errors import (
    ConcurrentUpdateError,
    InfrastructureError,
    NotFoundError,
    NotificationError,
    RecipientResolutionError,
    ValidationError,
)

# Stores and directories
from infrastructure.notifications.store import (
    InMemoryNotificationStore,
    NotificationStore,
)
from infrastructure.notifications.dynamodb_store import DynamoDBNotificationStore
from infrastructure.notifications.directory import (
    DynamoDBRecipientDirectory,
    InMemoryRecipientDirectory,
    RecipientDirectory,
)

# Pipeline
from infrastructure.notifications.factory import NotificationFactory, RecipientSpec
from infrastructure.notifications.coordinator import DeliveryCoordinator
from infrastructure.notifications.scheduler import RetryScheduler, SweepConfig
from infrastructure.notifications.queries import NotificationQueries
from infrastructure.notifications.service import NotificationService

__all__ = [
    # Models
    "Contact",
    "DeliveryChannel",
    "ListOptions",
    "ListResult",
    "NotificationPriority",
    "NotificationRecord",
    "NotificationStatus",
    "NotificationType",
    "Party",
    "RecipientType",
    # Errors
    "ConcurrentUpdateError",
    "InfrastructureError",
    "NotFoundError",
    "NotificationError",
    "RecipientResolutionError",
    "ValidationError",
    # Stores and directories
    "InMemoryNotificationStore",
    "NotificationStore",
    "DynamoDBNotificationStore",
    "DynamoDBRecipientDirectory",
    "InMemoryRecipientDirectory",
    "RecipientDirectory",
    # Pipeline
    "NotificationFactory",
    "RecipientSpec",
    "DeliveryCoordinator",
    "RetryScheduler",
    "SweepConfig",
    "NotificationQueries",
    "NotificationService",
]
