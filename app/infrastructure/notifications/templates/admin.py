"""Back-office templates, fanned out to every active admin."""

from infrastructure.notifications.models import (
    DeliveryChannel,
    NotificationPriority,
    NotificationType,
)
from infrastructure.notifications.templates.base import (
    NotificationTemplate,
    RenderedNotification,
    truncate,
)


class UserRegistrationTemplate(NotificationTemplate):
    notification_type = NotificationType.USER_REGISTRATION
    required_fields = ("user_id", "company_name")
    default_channels = frozenset({DeliveryChannel.EMAIL, DeliveryChannel.IN_APP})
    default_priority = NotificationPriority.HIGH

    @staticmethod
    def render(payload: dict) -> RenderedNotification:
        user_id = payload["user_id"]
        company_name = payload["company_name"]
        company_type = payload.get("company_type")
        country = payload.get("country")

        message = f"{company_name} registered"
        if company_type:
            message += f" as a {company_type}"
        if country:
            message += f" from {country}"
        message += " and is waiting for review."

        return RenderedNotification(
            title="New user registration",
            message=message,
            data={
                "user_id": user_id,
                "company_name": company_name,
                "email": payload.get("email"),
                "country": country,
                "company_type": company_type,
            },
            action_url=f"/admin/users/{user_id}",
        )


class SupportMessageTemplate(NotificationTemplate):
    notification_type = NotificationType.SUPPORT_MESSAGE
    required_fields = ("sender_id", "content")
    default_channels = frozenset({DeliveryChannel.EMAIL, DeliveryChannel.IN_APP})

    @staticmethod
    def render(payload: dict) -> RenderedNotification:
        sender_id = payload["sender_id"]
        subject = payload.get("subject")
        content = str(payload["content"])
        author = payload.get("sender_name") or "A user"
        return RenderedNotification(
            title=f"New support message: {subject}" if subject else "New support message",
            message=f"{author} wrote: {truncate(content)}",
            data={
                "sender_id": sender_id,
                "subject": subject,
                "content": content,
            },
            action_url=f"/admin/messages/{sender_id}",
        )
