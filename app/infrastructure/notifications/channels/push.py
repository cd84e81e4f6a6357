"""Push channel: mobile push through SNS platform endpoints."""

import json
from typing import Any, Dict, Protocol
from uuid import uuid4

from infrastructure.logging import get_module_logger
from infrastructure.notifications.channels.base import NotificationChannel
from infrastructure.notifications.models import (
    Contact,
    DeliveryChannel,
    NotificationRecord,
)
from infrastructure.notifications.templates import truncate
from infrastructure.operations import OperationResult
from integrations.aws import sns_next

logger = get_module_logger()


class PushTransport(Protocol):
    def send_push(
        self, endpoint: str, title: str, body: str, data: Dict[str, Any]
    ) -> OperationResult: ...


class SnsPushTransport:
    """Publishes to an SNS platform endpoint (FCM and APNs payloads)."""

    def send_push(
        self, endpoint: str, title: str, body: str, data: Dict[str, Any]
    ) -> OperationResult:
        message = {
            "default": body,
            "GCM": json.dumps(
                {"notification": {"title": title, "body": body}, "data": data}
            ),
            "APNS": json.dumps({"aps": {"alert": {"title": title, "body": body}}, **data}),
        }
        result = sns_next.publish_to_endpoint(endpoint, json.dumps(message))
        if result.is_success:
            return OperationResult.success(
                message="Push accepted by SNS",
                data={"provider_message_id": (result.data or {}).get("MessageId")},
            )
        return result


class LoggingPushTransport:
    """Development transport: logs the payload instead of sending it."""

    def send_push(
        self, endpoint: str, title: str, body: str, data: Dict[str, Any]
    ) -> OperationResult:
        message_id = f"log-{uuid4().hex}"
        logger.info("push_logged", title=title, body=body, data=data, provider_message_id=message_id)
        return OperationResult.success(
            message="Push logged", data={"provider_message_id": message_id}
        )


def render_push(record: NotificationRecord) -> Dict[str, Any]:
    """Build the ``{title, body, data}`` push payload."""
    return {
        "title": record.title,
        "body": truncate(record.message),
        "data": {
            "notification_id": record.id,
            "type": record.type.value,
            "order_id": record.related_order,
            "action_url": record.action_url,
        },
    }


class PushChannel(NotificationChannel):
    channel = DeliveryChannel.PUSH

    def __init__(self, transport: PushTransport):
        self.transport = transport

    def send(
        self, record: NotificationRecord, address: str, contact: Contact
    ) -> OperationResult:
        payload = render_push(record)
        return self.transport.send_push(
            address, payload["title"], payload["body"], payload["data"]
        )
