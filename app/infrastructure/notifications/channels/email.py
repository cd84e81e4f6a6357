"""Email channel: renders the HTML notification email and sends it."""

from html import escape
from typing import Optional, Protocol, Tuple
from uuid import uuid4

from infrastructure.logging import get_module_logger
from infrastructure.notifications.channels.base import NotificationChannel
from infrastructure.notifications.models import (
    Contact,
    DeliveryChannel,
    NotificationPriority,
    NotificationRecord,
)
from infrastructure.operations import OperationResult
from integrations.aws import ses_next

logger = get_module_logger()

PRIORITY_COLORS = {
    NotificationPriority.LOW: "#6c757d",
    NotificationPriority.NORMAL: "#0d6efd",
    NotificationPriority.HIGH: "#fd7e14",
    NotificationPriority.URGENT: "#dc3545",
}


class EmailTransport(Protocol):
    def send_email(
        self, sender: str, recipient: str, subject: str, html: str, text: str
    ) -> OperationResult: ...


class SesEmailTransport:
    """Sends through Amazon SES."""

    def send_email(
        self, sender: str, recipient: str, subject: str, html: str, text: str
    ) -> OperationResult:
        result = ses_next.send_email(
            sender=sender, recipient=recipient, subject=subject, html=html, text=text
        )
        if result.is_success:
            return OperationResult.success(
                message="Email accepted by SES",
                data={"provider_message_id": (result.data or {}).get("MessageId")},
            )
        return result


class LoggingEmailTransport:
    """Development transport: logs the email instead of sending it."""

    def send_email(
        self, sender: str, recipient: str, subject: str, html: str, text: str
    ) -> OperationResult:
        message_id = f"log-{uuid4().hex}"
        logger.info(
            "email_logged",
            sender=sender,
            subject=subject,
            body_preview=text,
            provider_message_id=message_id,
        )
        return OperationResult.success(
            message="Email logged", data={"provider_message_id": message_id}
        )


def _absolute(url: Optional[str], base_url: str) -> Optional[str]:
    if not url:
        return None
    if url.startswith(("http://", "https://")):
        return url
    return base_url.rstrip("/") + url


def render_email(
    record: NotificationRecord, contact: Contact, base_url: str = ""
) -> Tuple[str, str, str]:
    """Build subject, HTML body and plain-text body for a record.

    The HTML has a greeting, the notification box, order details and the
    full comment when present, an action button, and an unsubscribe footer.
    """
    name = contact.display_name or "there"
    data = record.data or {}
    order_number = data.get("order_number")
    comment = data.get("comment_content")
    action_url = _absolute(record.action_url, base_url)
    color = PRIORITY_COLORS[record.priority]

    sections = [
        f"<p>Hello {escape(str(name))},</p>",
        (
            f'<div style="border-left:4px solid {color};padding:12px;background:#f8f9fa">'
            f"<h2 style=\"margin:0 0 8px\">{escape(record.title)}</h2>"
            f"<p style=\"margin:0\">{escape(record.message)}</p>"
            "</div>"
        ),
    ]
    if order_number:
        sections.append(f"<p><strong>Order:</strong> #{escape(str(order_number))}</p>")
    if comment:
        sections.append(
            '<blockquote style="border-left:2px solid #ccc;margin:0;padding-left:12px">'
            f"{escape(str(comment))}</blockquote>"
        )
    if action_url:
        sections.append(
            f'<p><a href="{escape(action_url, quote=True)}" '
            f'style="background:{color};color:#fff;padding:10px 18px;'
            'text-decoration:none;border-radius:4px">View details</a></p>'
        )
    unsubscribe = _absolute("/account/notifications", base_url)
    sections.append(
        '<hr><p style="font-size:12px;color:#6c757d">'
        "You receive this email because notifications are enabled for your account. "
        f'<a href="{escape(unsubscribe, quote=True)}">Manage or unsubscribe</a>.</p>'
    )
    html = "<html><body>" + "\n".join(sections) + "</body></html>"

    text_lines = [f"Hello {name},", "", record.title, record.message]
    if order_number:
        text_lines.append(f"Order: #{order_number}")
    if action_url:
        text_lines.append(f"View details: {action_url}")
    return record.title, html, "\n".join(text_lines)


class EmailChannel(NotificationChannel):
    """Email notification channel."""

    channel = DeliveryChannel.EMAIL

    def __init__(self, transport: EmailTransport, sender: str, base_url: str = ""):
        self.transport = transport
        self.sender = sender
        self.base_url = base_url

    def send(
        self, record: NotificationRecord, address: str, contact: Contact
    ) -> OperationResult:
        subject, html, text = render_email(record, contact, self.base_url)
        return self.transport.send_email(
            sender=self.sender, recipient=address, subject=subject, html=html, text=text
        )
