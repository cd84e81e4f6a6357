"""Notification pipeline feature settings."""

from typing import Optional

from pydantic import Field, field_validator

from infrastructure.configuration.base import FeatureSettings

STORE_BACKENDS = ("memory", "dynamodb")
TRANSPORT_BACKENDS = ("log", "ses", "notify", "sns")


class NotificationSettings(FeatureSettings):
    """Configuration for notification creation, delivery and retention.

    Environment Variables:
        NOTIFICATIONS_STORE_BACKEND: Record store backend, 'memory' or 'dynamodb'
        NOTIFICATIONS_TABLE_NAME: DynamoDB table holding notification records
        NOTIFICATIONS_DIRECTORY_BACKEND: Recipient directory, 'memory' or 'dynamodb'
        NOTIFICATIONS_USERS_TABLE_NAME: DynamoDB table of marketplace users
        NOTIFICATIONS_ADMINS_TABLE_NAME: DynamoDB table of back-office admins
        NOTIFICATIONS_EMAIL_BACKEND: 'log' (development) or 'ses'
        NOTIFICATIONS_SMS_BACKEND: 'log' (development) or 'notify'
        NOTIFICATIONS_PUSH_BACKEND: 'log' (development) or 'sns'
        NOTIFICATIONS_EMAIL_SENDER: From address for outbound email
        NOTIFICATIONS_BASE_URL: Absolute prefix for action links in emails
        NOTIFICATIONS_EMAIL_TIMEOUT_SECONDS: Email channel deadline (default: 10)
        NOTIFICATIONS_SMS_TIMEOUT_SECONDS: SMS channel deadline (default: 5)
        NOTIFICATIONS_PUSH_TIMEOUT_SECONDS: Push channel deadline (default: 3)
        NOTIFICATIONS_MAX_WORKERS: Channel executor size (default: 16)
        NOTIFICATIONS_MAX_ATTEMPTS: Default delivery attempts per record (default: 3)
        NOTIFICATIONS_DEFAULT_TTL_DAYS: Default expiry, 0 disables (default: 0)
        NOTIFICATIONS_RETENTION_DAYS: Age after which read records are purged (default: 90)
        NOTIFICATIONS_CLEANUP_AT: Daily cleanup time, HH:MM (default: 03:00)

    Example:
        ```python
        from infrastructure.services import get_settings

        settings = get_settings()

        if settings.notifications.store_backend == "dynamodb":
            table = settings.notifications.table_name
        ```
    """

    store_backend: str = Field(default="memory", alias="NOTIFICATIONS_STORE_BACKEND")
    table_name: str = Field(
        default="marketplace-notifications", alias="NOTIFICATIONS_TABLE_NAME"
    )
    directory_backend: str = Field(
        default="memory", alias="NOTIFICATIONS_DIRECTORY_BACKEND"
    )
    users_table_name: str = Field(
        default="marketplace-users", alias="NOTIFICATIONS_USERS_TABLE_NAME"
    )
    admins_table_name: str = Field(
        default="marketplace-admins", alias="NOTIFICATIONS_ADMINS_TABLE_NAME"
    )

    email_backend: str = Field(default="log", alias="NOTIFICATIONS_EMAIL_BACKEND")
    sms_backend: str = Field(default="log", alias="NOTIFICATIONS_SMS_BACKEND")
    push_backend: str = Field(default="log", alias="NOTIFICATIONS_PUSH_BACKEND")
    email_sender: str = Field(
        default="no-reply@marketplace.example", alias="NOTIFICATIONS_EMAIL_SENDER"
    )
    base_url: str = Field(default="", alias="NOTIFICATIONS_BASE_URL")

    email_timeout_seconds: float = Field(
        default=10.0, alias="NOTIFICATIONS_EMAIL_TIMEOUT_SECONDS", gt=0
    )
    sms_timeout_seconds: float = Field(
        default=5.0, alias="NOTIFICATIONS_SMS_TIMEOUT_SECONDS", gt=0
    )
    push_timeout_seconds: float = Field(
        default=3.0, alias="NOTIFICATIONS_PUSH_TIMEOUT_SECONDS", gt=0
    )
    max_workers: int = Field(default=16, alias="NOTIFICATIONS_MAX_WORKERS", ge=1)

    max_attempts: int = Field(default=3, alias="NOTIFICATIONS_MAX_ATTEMPTS", ge=1)
    default_ttl_days: int = Field(
        default=0, alias="NOTIFICATIONS_DEFAULT_TTL_DAYS", ge=0
    )
    retention_days: int = Field(default=90, alias="NOTIFICATIONS_RETENTION_DAYS", ge=1)
    cleanup_at: str = Field(default="03:00", alias="NOTIFICATIONS_CLEANUP_AT")

    @field_validator("store_backend", "directory_backend")
    @classmethod
    def _check_store_backend(cls, value: str) -> str:
        if value not in STORE_BACKENDS:
            raise ValueError(f"backend must be one of {STORE_BACKENDS}, got {value!r}")
        return value

    @field_validator("email_backend", "sms_backend", "push_backend")
    @classmethod
    def _check_transport_backend(cls, value: str) -> str:
        if value not in TRANSPORT_BACKENDS:
            raise ValueError(
                f"transport backend must be one of {TRANSPORT_BACKENDS}, got {value!r}"
            )
        return value

    @property
    def channel_timeouts(self) -> dict[str, float]:
        """Per-channel delivery deadlines in seconds."""
        return {
            "email": self.email_timeout_seconds,
            "sms": self.sms_timeout_seconds,
            "push": self.push_timeout_seconds,
        }

    @property
    def default_ttl(self) -> Optional[int]:
        return self.default_ttl_days or None
