"""Account-level templates: alerts, marketing, security, reminders."""

from infrastructure.notifications.models import (
    DeliveryChannel,
    NotificationPriority,
    NotificationType,
)
from infrastructure.notifications.templates.base import (
    NotificationTemplate,
    RenderedNotification,
    optional_str,
)


class SystemAlertTemplate(NotificationTemplate):
    notification_type = NotificationType.SYSTEM_ALERT
    required_fields = ("message",)
    default_channels = frozenset({DeliveryChannel.EMAIL, DeliveryChannel.IN_APP})
    default_priority = NotificationPriority.HIGH

    @staticmethod
    def render(payload: dict) -> RenderedNotification:
        return RenderedNotification(
            title=payload.get("title") or "System alert",
            message=payload["message"],
            data={"severity": payload.get("severity")},
            action_url=payload.get("action_url"),
        )


class MarketingTemplate(NotificationTemplate):
    notification_type = NotificationType.MARKETING
    required_fields = ("subject", "body")
    default_channels = frozenset({DeliveryChannel.EMAIL, DeliveryChannel.IN_APP})
    default_priority = NotificationPriority.LOW

    @staticmethod
    def render(payload: dict) -> RenderedNotification:
        product_id = payload.get("product_id")
        return RenderedNotification(
            title=payload["subject"],
            message=payload["body"],
            data={"campaign": payload.get("campaign"), "product_id": product_id},
            action_url=payload.get("action_url")
            or (f"/products/{product_id}" if product_id else None),
            related_product=str(product_id) if product_id else None,
        )


class SecurityTemplate(NotificationTemplate):
    """Security events always land in the in-app inbox."""

    notification_type = NotificationType.SECURITY
    required_fields = ("event",)
    default_channels = frozenset(
        {DeliveryChannel.EMAIL, DeliveryChannel.SMS, DeliveryChannel.IN_APP}
    )
    mandatory_channels = frozenset({DeliveryChannel.IN_APP})
    default_priority = NotificationPriority.URGENT

    @staticmethod
    def render(payload: dict) -> RenderedNotification:
        event = payload["event"]
        details = payload.get("details")
        message = f"Security event on your account: {event}."
        if details:
            message += f" {details}"
        message += " If this was not you, reset your password now."
        return RenderedNotification(
            title=f"Security alert: {event}",
            message=message,
            data={
                "event": event,
                "details": details,
                "ip_address": payload.get("ip_address"),
            },
            action_url="/account/security",
        )


class ReminderTemplate(NotificationTemplate):
    notification_type = NotificationType.REMINDER
    required_fields = ("message",)
    default_channels = frozenset({DeliveryChannel.PUSH, DeliveryChannel.IN_APP})

    @staticmethod
    def render(payload: dict) -> RenderedNotification:
        due_at = payload.get("due_at")
        message = payload["message"]
        if due_at:
            message = f"{message} (due {due_at})"
        return RenderedNotification(
            title=payload.get("title") or "Reminder",
            message=message,
            data={"due_at": due_at},
            action_url=payload.get("action_url"),
            related_order=optional_str(payload.get("order_id")),
        )
