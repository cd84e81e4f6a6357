"""Recipient directory: contact lookup for users and admins.

The directory belongs to the surrounding marketplace (user and admin
accounts); the pipeline only reads from it. It is injected into the factory
(broadcast resolution) and the coordinator (contact resolution).
"""

import threading
from typing import Dict, List, Optional, Protocol, Tuple

from boto3.dynamodb.types import TypeDeserializer
from pydantic import ValidationError as PydanticValidationError

from infrastructure.logging import get_module_logger
from infrastructure.notifications.errors import InfrastructureError
from infrastructure.notifications.models import Contact, Party, RecipientType
from integrations.aws import dynamodb_next

logger = get_module_logger()


class RecipientDirectory(Protocol):
    """Contact lookup contract.

    Implementations raise InfrastructureError when the backing store is
    unreachable and return None for unknown recipients.
    """

    def get_recipient(
        self, recipient_id: str, recipient_type: RecipientType
    ) -> Optional[Contact]: ...

    def list_active(self, recipient_type: RecipientType) -> List[Party]: ...


class InMemoryRecipientDirectory:
    """Thread-safe in-memory directory for development and tests."""

    def __init__(self):
        self._contacts: Dict[Tuple[RecipientType, str], Contact] = {}
        self._lock = threading.Lock()

    def register(self, party: Party, contact: Contact) -> None:
        with self._lock:
            self._contacts[(party.type, party.id)] = contact

    def remove(self, party: Party) -> None:
        with self._lock:
            self._contacts.pop((party.type, party.id), None)

    def get_recipient(
        self, recipient_id: str, recipient_type: RecipientType
    ) -> Optional[Contact]:
        with self._lock:
            return self._contacts.get((recipient_type, recipient_id))

    def list_active(self, recipient_type: RecipientType) -> List[Party]:
        with self._lock:
            return [
                Party(id=recipient_id, type=kind)
                for (kind, recipient_id), contact in sorted(
                    self._contacts.items(), key=lambda item: item[0][1]
                )
                if kind == recipient_type and contact.active
            ]


class DynamoDBRecipientDirectory:
    """Directory backed by the marketplace user and admin tables.

    Table Schema (both tables):
        PK: id (String)
        Attributes: email, phone, display_name (or company_name),
                    push_endpoint, status ("active" for live accounts)

    System recipients have no contact row; lookups for them return None.
    """

    def __init__(self, users_table: str, admins_table: str):
        self.tables = {
            RecipientType.USER: users_table,
            RecipientType.ADMIN: admins_table,
        }
        self._deserializer = TypeDeserializer()

    def _item_to_contact(self, item: dict) -> Optional[Contact]:
        data = {key: self._deserializer.deserialize(value) for key, value in item.items()}
        try:
            return Contact(
                email=data.get("email") or None,
                phone=data.get("phone") or None,
                display_name=data.get("display_name") or data.get("company_name"),
                push_endpoint=data.get("push_endpoint") or None,
                active=data.get("status", "active") == "active",
            )
        except PydanticValidationError as exc:
            # A malformed address disables that contact, not the whole delivery
            logger.warning(
                "directory_contact_invalid",
                recipient_id=data.get("id"),
                error=str(exc),
            )
            return Contact(display_name=data.get("display_name"), active=False)

    def get_recipient(
        self, recipient_id: str, recipient_type: RecipientType
    ) -> Optional[Contact]:
        table = self.tables.get(recipient_type)
        if table is None:
            return None

        result = dynamodb_next.get_item(table_name=table, Key={"id": {"S": recipient_id}})
        if not result.is_success:
            logger.error(
                "directory_lookup_failed",
                recipient_id=recipient_id,
                recipient_type=recipient_type.value,
                error=result.message,
                error_code=result.error_code,
            )
            raise InfrastructureError(f"Recipient lookup failed: {result.message}")

        item = (result.data or {}).get("Item")
        if not item:
            return None
        return self._item_to_contact(item)

    def list_active(self, recipient_type: RecipientType) -> List[Party]:
        table = self.tables.get(recipient_type)
        if table is None:
            return []

        result = dynamodb_next.scan(
            table_name=table,
            FilterExpression="#status = :active",
            ProjectionExpression="id",
            ExpressionAttributeNames={"#status": "status"},
            ExpressionAttributeValues={":active": {"S": "active"}},
        )
        if not result.is_success:
            logger.error(
                "directory_list_active_failed",
                recipient_type=recipient_type.value,
                error=result.message,
            )
            raise InfrastructureError(f"Listing recipients failed: {result.message}")

        return [
            Party(id=item["id"]["S"], type=recipient_type) for item in result.data or []
        ]
