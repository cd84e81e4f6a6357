"""Order lifecycle templates: comments, status, payment, delivery."""

from infrastructure.notifications.models import (
    DeliveryChannel,
    NotificationPriority,
    NotificationType,
)
from infrastructure.notifications.templates.base import (
    NotificationTemplate,
    RenderedNotification,
    optional_str,
    truncate,
)


def _order_url(order_id) -> str:
    return f"/orders/{order_id}"


class OrderCommentTemplate(NotificationTemplate):
    """Sent to the manufacturer when a buyer comments on one of its orders."""

    notification_type = NotificationType.ORDER_COMMENT
    required_fields = ("order_id", "order_number", "comment_content")
    default_channels = frozenset(
        {DeliveryChannel.EMAIL, DeliveryChannel.PUSH, DeliveryChannel.IN_APP}
    )

    @staticmethod
    def render(payload: dict) -> RenderedNotification:
        order_id = payload["order_id"]
        order_number = payload["order_number"]
        content = str(payload["comment_content"])
        is_update = bool(payload.get("is_update", False))
        author = payload.get("sender_name") or "A buyer"

        if is_update:
            title = f"Comment updated on order #{order_number}"
            verb = "updated a comment"
        else:
            title = f"New comment on order #{order_number}"
            verb = "commented"

        return RenderedNotification(
            title=title,
            message=f"{author} {verb} on order #{order_number}: {truncate(content)}",
            data={
                "order_id": order_id,
                "order_number": order_number,
                "comment_id": payload.get("comment_id"),
                "comment_content": content,
                "is_update": is_update,
            },
            action_url=f"/manufacturer/orders/{order_id}",
            related_order=str(order_id),
            related_comment=optional_str(payload.get("comment_id")),
        )


class OrderStatusTemplate(NotificationTemplate):
    notification_type = NotificationType.ORDER_STATUS
    required_fields = ("order_id", "order_number", "status")
    default_channels = frozenset(
        {DeliveryChannel.EMAIL, DeliveryChannel.PUSH, DeliveryChannel.IN_APP}
    )

    @staticmethod
    def render(payload: dict) -> RenderedNotification:
        order_number = payload["order_number"]
        status = payload["status"]
        previous = payload.get("previous_status")
        if previous:
            message = f"Order #{order_number} moved from {previous} to {status}."
        else:
            message = f"Order #{order_number} is now {status}."
        return RenderedNotification(
            title=f"Order #{order_number} updated",
            message=message,
            data={
                "order_id": payload["order_id"],
                "order_number": order_number,
                "status": status,
                "previous_status": previous,
            },
            action_url=_order_url(payload["order_id"]),
            related_order=str(payload["order_id"]),
        )


class OrderPaymentTemplate(NotificationTemplate):
    notification_type = NotificationType.ORDER_PAYMENT
    required_fields = ("order_id", "order_number", "payment_status")
    default_channels = frozenset({DeliveryChannel.EMAIL, DeliveryChannel.IN_APP})
    default_priority = NotificationPriority.HIGH

    @staticmethod
    def render(payload: dict) -> RenderedNotification:
        order_number = payload["order_number"]
        payment_status = payload["payment_status"]
        amount = payload.get("amount")
        currency = payload.get("currency", "")
        message = f"Payment for order #{order_number} is {payment_status}."
        if amount is not None:
            message = f"Payment of {amount} {currency}".rstrip() + (
                f" for order #{order_number} is {payment_status}."
            )
        return RenderedNotification(
            title=f"Payment {payment_status}: order #{order_number}",
            message=message,
            data={
                "order_id": payload["order_id"],
                "order_number": order_number,
                "payment_status": payment_status,
                "amount": amount,
                "currency": currency or None,
            },
            action_url=_order_url(payload["order_id"]),
            related_order=str(payload["order_id"]),
        )


class OrderDeliveryTemplate(NotificationTemplate):
    notification_type = NotificationType.ORDER_DELIVERY
    required_fields = ("order_id", "order_number", "delivery_status")
    default_channels = frozenset(
        {
            DeliveryChannel.EMAIL,
            DeliveryChannel.SMS,
            DeliveryChannel.PUSH,
            DeliveryChannel.IN_APP,
        }
    )

    @staticmethod
    def render(payload: dict) -> RenderedNotification:
        order_number = payload["order_number"]
        delivery_status = payload["delivery_status"]
        tracking_number = payload.get("tracking_number")
        message = f"Order #{order_number} delivery status: {delivery_status}."
        if tracking_number:
            message += f" Tracking number: {tracking_number}."
        estimated = payload.get("estimated_delivery")
        if estimated:
            message += f" Estimated delivery: {estimated}."
        return RenderedNotification(
            title=f"Delivery update for order #{order_number}",
            message=message,
            data={
                "order_id": payload["order_id"],
                "order_number": order_number,
                "delivery_status": delivery_status,
                "tracking_number": tracking_number,
                "estimated_delivery": estimated,
            },
            action_url=_order_url(payload["order_id"]),
            related_order=str(payload["order_id"]),
        )
