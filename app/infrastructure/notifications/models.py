"""Notification record models.

One record model is shared by the factory, the coordinator, the retry
scheduler and the read API. Pydantic validation enforces the record
invariants on every construction, so a record read back from a store is
checked the same way as a freshly created one.
"""

from dataclasses import dataclass
from datetime import datetime, timezone
from enum import Enum
from typing import Any, Dict, Iterable, List, Literal, Optional, Union
from uuid import uuid4

from pydantic import (
    BaseModel,
    ConfigDict,
    EmailStr,
    Field,
    field_validator,
    model_validator,
)

TITLE_MAX_LENGTH = 200
MESSAGE_MAX_LENGTH = 1000
DEFAULT_MAX_ATTEMPTS = 3


def utc_now() -> datetime:
    return datetime.now(timezone.utc)


class RecipientType(Enum):
    """Kind of party a record is addressed to (or sent by)."""

    USER = "user"
    ADMIN = "admin"
    SYSTEM = "system"


class NotificationType(Enum):
    """Closed set of event types the factory knows how to render."""

    ORDER_COMMENT = "order_comment"
    ORDER_STATUS = "order_status"
    ORDER_PAYMENT = "order_payment"
    ORDER_DELIVERY = "order_delivery"
    SYSTEM_ALERT = "system_alert"
    MARKETING = "marketing"
    SECURITY = "security"
    REMINDER = "reminder"
    USER_REGISTRATION = "user_registration"
    SUPPORT_MESSAGE = "support_message"


class NotificationPriority(Enum):
    """Notification priority levels, ordered from least to most urgent."""

    LOW = "low"
    NORMAL = "normal"
    HIGH = "high"
    URGENT = "urgent"

    @property
    def rank(self) -> int:
        return list(NotificationPriority).index(self)


class NotificationStatus(Enum):
    """Aggregate delivery status of a record.

    ``SENT`` is accepted for records written by other producers; the
    coordinator itself moves records from PENDING/FAILED straight to
    DELIVERED or FAILED.
    """

    PENDING = "pending"
    SENT = "sent"
    DELIVERED = "delivered"
    FAILED = "failed"
    CANCELLED = "cancelled"


class DeliveryChannel(Enum):
    EMAIL = "email"
    SMS = "sms"
    PUSH = "push"
    IN_APP = "in_app"


EXTERNAL_CHANNELS = (DeliveryChannel.EMAIL, DeliveryChannel.SMS, DeliveryChannel.PUSH)


class Party(BaseModel):
    """A recipient or sender reference: identifier plus its kind."""

    model_config = ConfigDict(frozen=True)

    id: str = Field(min_length=1)
    type: RecipientType

    @property
    def key(self) -> str:
        """Composite key used for indexing, e.g. ``user#42``."""
        return f"{self.type.value}#{self.id}"


class Contact(BaseModel):
    """Delivery addresses returned by the recipient directory.

    Attributes:
        email: Email address (validated with EmailStr)
        phone: Phone number for SMS (E.164, e.g. +15145550100)
        display_name: Name used in greetings
        push_endpoint: Push target (SNS platform endpoint ARN)
        active: Inactive contacts are excluded from broadcasts
    """

    email: Optional[EmailStr] = None
    phone: Optional[str] = None
    display_name: Optional[str] = None
    push_endpoint: Optional[str] = None
    active: bool = True

    @field_validator("phone")
    @classmethod
    def validate_phone(cls, v: Optional[str]) -> Optional[str]:
        """Validate E.164 phone format if provided."""
        if v is None:
            return v
        if not v.startswith("+") or not v[1:].isdigit():
            raise ValueError(f"Phone number must be in E.164 format: {v}")
        if len(v) < 8 or len(v) > 16:
            raise ValueError(f"Phone number length invalid: {v}")
        return v

    def address_for(self, channel: DeliveryChannel) -> Optional[str]:
        """Return the address used by ``channel``, or None when absent."""
        if channel == DeliveryChannel.EMAIL:
            return self.email
        if channel == DeliveryChannel.SMS:
            return self.phone
        if channel == DeliveryChannel.PUSH:
            return self.push_endpoint
        return None


class ChannelState(BaseModel):
    """Delivery sub-record of an external channel (email, sms, push)."""

    enabled: bool = False
    sent: bool = False
    sent_at: Optional[datetime] = None
    error: Optional[str] = None
    provider_message_id: Optional[str] = None


class InAppState(BaseModel):
    """In-app sub-record. Shown as soon as a delivery attempt runs."""

    enabled: bool = True
    shown: bool = False
    shown_at: Optional[datetime] = None


class ChannelSet(BaseModel):
    email: ChannelState = Field(default_factory=ChannelState)
    sms: ChannelState = Field(default_factory=ChannelState)
    push: ChannelState = Field(default_factory=ChannelState)
    in_app: InAppState = Field(default_factory=InAppState)

    @classmethod
    def from_enabled(cls, enabled: Iterable[DeliveryChannel]) -> "ChannelSet":
        enabled = set(enabled)
        return cls(
            email=ChannelState(enabled=DeliveryChannel.EMAIL in enabled),
            sms=ChannelState(enabled=DeliveryChannel.SMS in enabled),
            push=ChannelState(enabled=DeliveryChannel.PUSH in enabled),
            in_app=InAppState(enabled=DeliveryChannel.IN_APP in enabled),
        )

    def state(self, channel: DeliveryChannel) -> Union[ChannelState, InAppState]:
        return getattr(self, channel.value)

    def enabled_external(self) -> List[DeliveryChannel]:
        return [c for c in EXTERNAL_CHANNELS if self.state(c).enabled]

    @property
    def any_enabled(self) -> bool:
        return self.in_app.enabled or bool(self.enabled_external())


class NotificationRecord(BaseModel):
    """A persisted notification addressed to exactly one recipient.

    Invariants checked on construction:
        - ``is_read`` is True exactly when ``read_at`` is set
        - ``attempts`` never exceeds ``max_attempts``
        - ``next_attempt_at`` is later than ``last_attempt_at``
    """

    id: str = Field(default_factory=lambda: uuid4().hex)
    recipient: Party
    sender: Optional[Party] = None

    title: str = Field(min_length=1, max_length=TITLE_MAX_LENGTH)
    message: str = Field(min_length=1, max_length=MESSAGE_MAX_LENGTH)
    type: NotificationType
    priority: NotificationPriority = NotificationPriority.NORMAL

    related_order: Optional[str] = None
    related_comment: Optional[str] = None
    related_product: Optional[str] = None
    data: Dict[str, Any] = Field(default_factory=dict)
    action_url: Optional[str] = None
    tags: List[str] = Field(default_factory=list)

    is_read: bool = False
    read_at: Optional[datetime] = None

    status: NotificationStatus = NotificationStatus.PENDING
    channels: ChannelSet = Field(default_factory=ChannelSet)

    attempts: int = Field(default=0, ge=0)
    max_attempts: int = Field(default=DEFAULT_MAX_ATTEMPTS, ge=1)
    last_attempt_at: Optional[datetime] = None
    next_attempt_at: Optional[datetime] = None

    scheduled_for: Optional[datetime] = None
    expires_at: Optional[datetime] = None

    claimed_by: Optional[str] = None
    claim_expires_at: Optional[datetime] = None

    created_at: datetime = Field(default_factory=utc_now)
    updated_at: datetime = Field(default_factory=utc_now)

    @field_validator("title", "message", mode="before")
    @classmethod
    def strip_text(cls, v: Any) -> Any:
        return v.strip() if isinstance(v, str) else v

    @field_validator(
        "read_at",
        "last_attempt_at",
        "next_attempt_at",
        "scheduled_for",
        "expires_at",
        "claim_expires_at",
        "created_at",
        "updated_at",
    )
    @classmethod
    def ensure_utc(cls, v: Optional[datetime]) -> Optional[datetime]:
        if v is not None and v.tzinfo is None:
            return v.replace(tzinfo=timezone.utc)
        return v

    @model_validator(mode="after")
    def check_invariants(self) -> "NotificationRecord":
        if self.is_read != (self.read_at is not None):
            raise ValueError("is_read and read_at must be set together")
        if self.attempts > self.max_attempts:
            raise ValueError(
                f"attempts ({self.attempts}) exceeds max_attempts ({self.max_attempts})"
            )
        if (
            self.next_attempt_at is not None
            and self.last_attempt_at is not None
            and self.next_attempt_at <= self.last_attempt_at
        ):
            raise ValueError("next_attempt_at must be later than last_attempt_at")
        return self

    @property
    def attempts_exhausted(self) -> bool:
        return self.attempts >= self.max_attempts

    def is_expired(self, now: datetime) -> bool:
        return self.expires_at is not None and self.expires_at <= now

    def is_due(self, now: datetime) -> bool:
        return self.scheduled_for is None or self.scheduled_for <= now

    def is_claimed(self, now: datetime) -> bool:
        return (
            self.claimed_by is not None
            and self.claim_expires_at is not None
            and self.claim_expires_at > now
        )

    def is_retry_eligible(self, now: datetime) -> bool:
        """Failed, attempts left, and the backoff window has elapsed."""
        return (
            self.status == NotificationStatus.FAILED
            and not self.attempts_exhausted
            and (self.next_attempt_at is None or self.next_attempt_at <= now)
        )

    def is_active(self, now: datetime) -> bool:
        """Visible to the read API: not cancelled and not expired."""
        return self.status != NotificationStatus.CANCELLED and not self.is_expired(now)


@dataclass
class DeliveryUpdate:
    """Result of one delivery attempt, written back in a single store call.

    The store applies it only if the record still has ``expected_attempts``.
    """

    channels: ChannelSet
    status: NotificationStatus
    attempts: int
    last_attempt_at: datetime
    next_attempt_at: Optional[datetime]
    expected_attempts: int


SortField = Literal["created_at", "updated_at", "priority", "type", "status"]


class ListOptions(BaseModel):
    """Paging, filtering and sorting for a recipient's notification list."""

    page: int = Field(default=1, ge=1)
    limit: int = Field(default=20, ge=1, le=100)
    recipient_type: Optional[RecipientType] = None
    type: Optional[NotificationType] = None
    priority: Optional[NotificationPriority] = None
    is_read: Optional[bool] = None
    sort_by: SortField = "created_at"
    sort_order: Literal["asc", "desc"] = "desc"

    @property
    def offset(self) -> int:
        return (self.page - 1) * self.limit

    def matches(self, record: NotificationRecord) -> bool:
        if self.recipient_type is not None and record.recipient.type != self.recipient_type:
            return False
        if self.type is not None and record.type != self.type:
            return False
        if self.priority is not None and record.priority != self.priority:
            return False
        if self.is_read is not None and record.is_read != self.is_read:
            return False
        return True

    def sort_key(self, record: NotificationRecord):
        """Sort key with created_at as tie-breaker."""
        value = getattr(record, self.sort_by)
        if self.sort_by == "priority":
            value = value.rank
        elif isinstance(value, Enum):
            value = value.value
        return (value, record.created_at)


class ListResult(BaseModel):
    records: List[NotificationRecord]
    total: int
    page: int
    limit: int

    @property
    def pages(self) -> int:
        return (self.total + self.limit - 1) // self.limit
