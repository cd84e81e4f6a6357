"""Template registry - maps NotificationType to template classes.

Each template knows its required payload fields, default channels and
priority, and how to render record content from event payloads.
"""

from typing import Dict, Type, Union

from infrastructure.notifications.errors import ValidationError
from infrastructure.notifications.models import NotificationType
from infrastructure.notifications.templates.account import (
    MarketingTemplate,
    ReminderTemplate,
    SecurityTemplate,
    SystemAlertTemplate,
)
from infrastructure.notifications.templates.admin import (
    SupportMessageTemplate,
    UserRegistrationTemplate,
)
from infrastructure.notifications.templates.base import (
    NotificationTemplate,
    RenderedNotification,
    truncate,
)
from infrastructure.notifications.templates.orders import (
    OrderCommentTemplate,
    OrderDeliveryTemplate,
    OrderPaymentTemplate,
    OrderStatusTemplate,
)

TEMPLATE_REGISTRY: Dict[NotificationType, Type[NotificationTemplate]] = {
    NotificationType.ORDER_COMMENT: OrderCommentTemplate,
    NotificationType.ORDER_STATUS: OrderStatusTemplate,
    NotificationType.ORDER_PAYMENT: OrderPaymentTemplate,
    NotificationType.ORDER_DELIVERY: OrderDeliveryTemplate,
    NotificationType.SYSTEM_ALERT: SystemAlertTemplate,
    NotificationType.MARKETING: MarketingTemplate,
    NotificationType.SECURITY: SecurityTemplate,
    NotificationType.REMINDER: ReminderTemplate,
    NotificationType.USER_REGISTRATION: UserRegistrationTemplate,
    NotificationType.SUPPORT_MESSAGE: SupportMessageTemplate,
}


def resolve_type(notification_type: Union[str, NotificationType]) -> NotificationType:
    if isinstance(notification_type, NotificationType):
        return notification_type
    try:
        return NotificationType(notification_type)
    except ValueError:
        raise ValidationError(f"Unknown notification type: {notification_type}") from None


def get_template(
    notification_type: Union[str, NotificationType],
) -> Type[NotificationTemplate]:
    """Look up a template class by notification type."""
    resolved = resolve_type(notification_type)
    template_cls = TEMPLATE_REGISTRY.get(resolved)
    if template_cls is None:
        raise ValidationError(
            f"No template registered for notification type: {resolved.value}"
        )
    return template_cls


__all__ = [
    "TEMPLATE_REGISTRY",
    "NotificationTemplate",
    "RenderedNotification",
    "get_template",
    "resolve_type",
    "truncate",
]
