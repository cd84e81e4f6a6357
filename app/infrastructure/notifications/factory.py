"""Notification factory: turns a business event into persisted records.

One record is created per resolved recipient, in ``pending`` state, with
content rendered by the event type's template.
"""

from dataclasses import dataclass, field
from datetime import datetime, timedelta
from typing import Any, Callable, Dict, List, Mapping, Optional, Union

from pydantic import ValidationError as PydanticValidationError

from infrastructure.logging import get_module_logger
from infrastructure.notifications.directory import RecipientDirectory
from infrastructure.notifications.errors import (
    InfrastructureError,
    RecipientResolutionError,
    ValidationError,
)
from infrastructure.notifications.models import (
    DEFAULT_MAX_ATTEMPTS,
    ChannelSet,
    DeliveryChannel,
    NotificationPriority,
    NotificationRecord,
    NotificationType,
    Party,
    RecipientType,
    utc_now,
)
from infrastructure.notifications.store import NotificationStore
from infrastructure.notifications.templates import get_template

logger = get_module_logger()


@dataclass
class RecipientSpec:
    """Who an event is addressed to.

    Attributes:
        recipients: Explicit recipients
        broadcast_to: Also address every active recipient of this type
    """

    recipients: List[Party] = field(default_factory=list)
    broadcast_to: Optional[RecipientType] = None


def resolve_channels(
    default_channels, mandatory_channels, overrides: Optional[Mapping[str, bool]]
) -> ChannelSet:
    """Template defaults, then caller overrides, then mandatory channels."""
    enabled = set(default_channels)
    for name, value in (overrides or {}).items():
        try:
            channel = DeliveryChannel(name)
        except ValueError:
            raise ValidationError(f"Unknown delivery channel: {name}") from None
        if value:
            enabled.add(channel)
        else:
            enabled.discard(channel)
    enabled |= set(mandatory_channels)
    if not enabled:
        raise ValidationError("At least one delivery channel must be enabled")
    return ChannelSet.from_enabled(enabled)


class NotificationFactory:
    """Creates notification records from events.

    Args:
        store: Where new records are saved
        directory: Resolves broadcast recipients
        max_attempts: Delivery attempts granted to each record
        default_ttl: Expiry applied when the caller passes none
        clock: Returns the current UTC time
    """

    def __init__(
        self,
        store: NotificationStore,
        directory: RecipientDirectory,
        max_attempts: int = DEFAULT_MAX_ATTEMPTS,
        default_ttl: Optional[timedelta] = None,
        clock: Callable[[], datetime] = utc_now,
    ):
        self.store = store
        self.directory = directory
        self.max_attempts = max_attempts
        self.default_ttl = default_ttl
        self.clock = clock

    def resolve_recipients(self, spec: RecipientSpec) -> List[Party]:
        """Explicit recipients plus one broadcast lookup, de-duplicated in order."""
        parties = list(spec.recipients)
        if spec.broadcast_to is not None:
            try:
                parties.extend(self.directory.list_active(spec.broadcast_to))
            except InfrastructureError:
                raise
            except Exception as e:
                raise InfrastructureError(f"Recipient directory unavailable: {e}") from e

        seen = set()
        unique = []
        for party in parties:
            if party.key in seen:
                continue
            seen.add(party.key)
            unique.append(party)
        return unique

    def create(
        self,
        event_type: Union[str, NotificationType],
        payload: Dict[str, Any],
        recipient_spec: RecipientSpec,
        sender: Optional[Party] = None,
        channels: Optional[Mapping[str, bool]] = None,
        priority: Optional[NotificationPriority] = None,
        scheduled_for: Optional[datetime] = None,
        expires_at: Optional[datetime] = None,
        tags: Optional[List[str]] = None,
    ) -> List[NotificationRecord]:
        """Render and persist one pending record per recipient.

        Raises:
            ValidationError: unknown type, missing payload fields, or no channel enabled
            RecipientResolutionError: nobody to notify
            InfrastructureError: directory or store failure
        """
        template = get_template(event_type)
        payload = payload or {}
        missing = template.missing_fields(payload)
        if missing:
            raise ValidationError(
                f"Missing required fields for {template.notification_type.value}: "
                f"{', '.join(missing)}"
            )

        channel_set = resolve_channels(
            template.default_channels, template.mandatory_channels, channels
        )
        rendered = template.render(payload)

        recipients = self.resolve_recipients(recipient_spec)
        if not recipients:
            raise RecipientResolutionError(
                f"No recipients resolved for {template.notification_type.value}"
            )

        now = self.clock()
        if expires_at is None and self.default_ttl:
            expires_at = now + self.default_ttl

        try:
            drafts = [
                NotificationRecord(
                    recipient=recipient,
                    sender=sender,
                    title=rendered.title,
                    message=rendered.message,
                    type=template.notification_type,
                    priority=priority or template.default_priority,
                    related_order=rendered.related_order,
                    related_comment=rendered.related_comment,
                    related_product=rendered.related_product,
                    data=rendered.data,
                    action_url=rendered.action_url,
                    tags=list(tags or []),
                    channels=channel_set.model_copy(deep=True),
                    max_attempts=self.max_attempts,
                    scheduled_for=scheduled_for,
                    expires_at=expires_at,
                    created_at=now,
                    updated_at=now,
                )
                for recipient in recipients
            ]
        except PydanticValidationError as e:
            raise ValidationError(str(e)) from e

        records = [self.store.save(draft) for draft in drafts]
        logger.info(
            "notifications_created",
            notification_type=template.notification_type.value,
            recipients=len(records),
            channels=[c.value for c in channel_set.enabled_external()]
            + (["in_app"] if channel_set.in_app.enabled else []),
        )
        return records
