"""DynamoDB-backed notification store for multi-instance deployments.

Table Schema:
    PK: notification_id (String)
    Attributes: every NotificationRecord field (nested maps for recipient,
                sender, channels and data), plus
                recipient_key ("<type>#<id>"), recipient_id, ttl (epoch
                seconds, only when expires_at is set) and due_at (only while
                the record is waiting for the retry sweep)
    GSI: recipient_key-created_at-index (recipient_key + created_at)
    GSI: recipient_id-created_at-index (recipient_id + created_at)
    GSI: status-due_at-index (status + due_at, sparse, projection ALL)

Timestamps are stored as fixed-width UTC strings so string comparison in
condition expressions matches chronological order.
"""

from datetime import datetime, timezone
from decimal import Decimal
from enum import Enum
from typing import Any, Dict, List, Optional

from boto3.dynamodb.types import TypeDeserializer, TypeSerializer
from pydantic import BaseModel

from infrastructure.logging import get_module_logger
from infrastructure.notifications.errors import (
    ConcurrentUpdateError,
    InfrastructureError,
    NotFoundError,
    ValidationError,
)
from infrastructure.notifications.models import (
    DeliveryChannel,
    DeliveryUpdate,
    ListOptions,
    ListResult,
    NotificationRecord,
    NotificationStatus,
    RecipientType,
)
from infrastructure.notifications.store import (
    is_due_for_sweep,
    is_purgeable,
    merge_delivery,
)
from infrastructure.operations import OperationResult
from integrations.aws import dynamodb_next

logger = get_module_logger()

TIMESTAMP_FORMAT = "%Y-%m-%dT%H:%M:%S.%fZ"
RECIPIENT_KEY_INDEX = "recipient_key-created_at-index"
RECIPIENT_ID_INDEX = "recipient_id-created_at-index"
DUE_INDEX = "status-due_at-index"


def format_timestamp(value: datetime) -> str:
    return value.astimezone(timezone.utc).strftime(TIMESTAMP_FORMAT)


def sweep_due_at(record: NotificationRecord) -> Optional[datetime]:
    """Sort key of the sparse due index, or None when the sweep never needs the record.

    Failed records with attempts left are due at their backoff; never-attempted
    pending records at ``scheduled_for`` (or creation, subject to the grace
    period filter).
    """
    if record.status == NotificationStatus.FAILED and not record.attempts_exhausted:
        return record.next_attempt_at or record.last_attempt_at or record.created_at
    if record.status == NotificationStatus.PENDING and record.attempts == 0:
        return record.scheduled_for or record.created_at
    return None


def _to_dynamo(value: Any) -> Any:
    """Convert model values to types TypeSerializer accepts, dropping None."""
    if isinstance(value, BaseModel):
        value = dict(value)
    if isinstance(value, dict):
        return {k: _to_dynamo(v) for k, v in value.items() if v is not None}
    if isinstance(value, (list, tuple, set)):
        return [_to_dynamo(v) for v in value]
    if isinstance(value, datetime):
        return format_timestamp(value)
    if isinstance(value, Enum):
        return value.value
    if isinstance(value, float):
        return Decimal(str(value))
    return value


def _from_dynamo(value: Any) -> Any:
    if isinstance(value, dict):
        return {k: _from_dynamo(v) for k, v in value.items()}
    if isinstance(value, list):
        return [_from_dynamo(v) for v in value]
    if isinstance(value, Decimal):
        return int(value) if value == value.to_integral_value() else float(value)
    return value


class DynamoDBNotificationStore:
    """Notification store on DynamoDB using conditional writes.

    Args:
        table_name: DynamoDB table name
    """

    def __init__(self, table_name: str):
        self.table_name = table_name
        self._serializer = TypeSerializer()
        self._deserializer = TypeDeserializer()
        logger.info("dynamodb_notification_store_initialized", table_name=table_name)

    def _serialize(self, value: Any) -> Dict[str, Any]:
        return self._serializer.serialize(_to_dynamo(value))

    def _values(self, **values: Any) -> Dict[str, Any]:
        return {f":{name}": self._serialize(value) for name, value in values.items()}

    def _record_to_item(self, record: NotificationRecord) -> Dict[str, Any]:
        fields = _to_dynamo(record)
        fields["notification_id"] = fields.pop("id")
        fields["recipient_key"] = record.recipient.key
        fields["recipient_id"] = record.recipient.id
        if record.expires_at is not None:
            fields["ttl"] = int(record.expires_at.timestamp())
        due_at = sweep_due_at(record)
        if due_at is not None:
            fields["due_at"] = format_timestamp(due_at)
        return {key: self._serializer.serialize(value) for key, value in fields.items()}

    def _item_to_record(self, item: Dict[str, Any]) -> NotificationRecord:
        data = {k: _from_dynamo(self._deserializer.deserialize(v)) for k, v in item.items()}
        data["id"] = data.pop("notification_id")
        for derived in ("recipient_key", "recipient_id", "ttl", "due_at"):
            data.pop(derived, None)
        return NotificationRecord.model_validate(data)

    def _key(self, notification_id: str) -> Dict[str, Any]:
        return {"notification_id": {"S": notification_id}}

    def _fail(self, operation: str, result: OperationResult, **context) -> InfrastructureError:
        logger.error(
            f"dynamodb_{operation}_failed",
            error=result.message,
            error_code=result.error_code,
            **context,
        )
        return InfrastructureError(f"Notification store {operation} failed: {result.message}")

    def _attributes(self, result: OperationResult) -> NotificationRecord:
        return self._item_to_record(result.data["Attributes"])

    def save(self, record: NotificationRecord) -> NotificationRecord:
        result = dynamodb_next.put_item(
            table_name=self.table_name,
            Item=self._record_to_item(record),
            ConditionExpression="attribute_not_exists(notification_id)",
        )
        if result.is_success:
            logger.debug("notification_saved", notification_id=record.id)
            return record
        raise self._fail("save", result, notification_id=record.id)

    def get(self, notification_id: str) -> Optional[NotificationRecord]:
        result = dynamodb_next.get_item(
            table_name=self.table_name,
            Key=self._key(notification_id),
            ConsistentRead=True,
        )
        if not result.is_success:
            raise self._fail("get", result, notification_id=notification_id)
        item = (result.data or {}).get("Item")
        return self._item_to_record(item) if item else None

    def _write_delivery(
        self,
        notification_id: str,
        update: DeliveryUpdate,
        condition: str,
        channels,
        status: NotificationStatus,
        next_attempt_at: Optional[datetime],
        **condition_values,
    ) -> OperationResult:
        expression = (
            "SET channels = :channels, #status = :status, attempts = :attempts, "
            "last_attempt_at = :last, updated_at = :last"
        )
        values = self._values(
            channels=channels,
            status=status,
            attempts=update.attempts,
            last=update.last_attempt_at,
            expected=update.expected_attempts,
            **condition_values,
        )
        # A record with a scheduled retry stays in the due index at its backoff
        if next_attempt_at is not None:
            expression += ", next_attempt_at = :next, due_at = :next"
            values.update(self._values(next=next_attempt_at))
        else:
            expression += " REMOVE next_attempt_at, due_at"
        return dynamodb_next.update_item(
            table_name=self.table_name,
            Key=self._key(notification_id),
            UpdateExpression=expression,
            ConditionExpression=condition,
            ExpressionAttributeNames={"#status": "status"},
            ExpressionAttributeValues=values,
            ReturnValues="ALL_NEW",
        )

    def apply_delivery(
        self, notification_id: str, update: DeliveryUpdate
    ) -> NotificationRecord:
        result = self._write_delivery(
            notification_id,
            update,
            "attempts = :expected AND NOT #status IN (:delivered, :cancelled)",
            update.channels,
            update.status,
            update.next_attempt_at,
            delivered=NotificationStatus.DELIVERED,
            cancelled=NotificationStatus.CANCELLED,
        )
        if result.is_success:
            return self._attributes(result)
        if not result.is_conflict:
            raise self._fail("apply_delivery", result, notification_id=notification_id)

        # Either another writer won, or the record was settled out of band
        current = self.get(notification_id)
        if current is None:
            raise NotFoundError(f"Notification {notification_id} not found")
        if current.attempts != update.expected_attempts:
            raise ConcurrentUpdateError(notification_id)

        channels, status, next_attempt_at = merge_delivery(current, update)
        result = self._write_delivery(
            notification_id,
            update,
            "attempts = :expected AND #status = :current",
            channels,
            status,
            next_attempt_at,
            current=current.status,
        )
        if result.is_success:
            return self._attributes(result)
        if result.is_conflict:
            raise ConcurrentUpdateError(notification_id)
        raise self._fail("apply_delivery", result, notification_id=notification_id)

    def mark_channel_delivered(
        self,
        notification_id: str,
        channel: DeliveryChannel,
        now: datetime,
        provider_message_id: Optional[str] = None,
    ) -> NotificationRecord:
        path = f"channels.{channel.value}"
        expression = (
            f"SET {path}.sent = :true, {path}.sent_at = if_not_exists({path}.sent_at, :now), "
            "#status = :delivered, updated_at = :now"
        )
        values = self._values(true=True, now=now, delivered=NotificationStatus.DELIVERED)
        values.update(self._values(cancelled=NotificationStatus.CANCELLED))
        if provider_message_id:
            expression += f", {path}.provider_message_id = :provider_id"
            values.update(self._values(provider_id=provider_message_id))
        expression += f" REMOVE next_attempt_at, due_at, {path}.#error"

        result = dynamodb_next.update_item(
            table_name=self.table_name,
            Key=self._key(notification_id),
            UpdateExpression=expression,
            ConditionExpression="attribute_exists(notification_id) AND #status <> :cancelled",
            ExpressionAttributeNames={"#status": "status", "#error": "error"},
            ExpressionAttributeValues=values,
            ReturnValues="ALL_NEW",
        )
        if result.is_success:
            return self._attributes(result)
        if result.is_conflict:
            current = self.get(notification_id)
            if current is None:
                raise NotFoundError(f"Notification {notification_id} not found")
            return current
        raise self._fail("mark_channel_delivered", result, notification_id=notification_id)

    def cancel(self, notification_id: str, now: datetime) -> NotificationRecord:
        result = dynamodb_next.update_item(
            table_name=self.table_name,
            Key=self._key(notification_id),
            UpdateExpression=(
                "SET #status = :cancelled, updated_at = :now REMOVE next_attempt_at, due_at"
            ),
            ConditionExpression="attribute_exists(notification_id) AND #status <> :delivered",
            ExpressionAttributeNames={"#status": "status"},
            ExpressionAttributeValues=self._values(
                cancelled=NotificationStatus.CANCELLED,
                delivered=NotificationStatus.DELIVERED,
                now=now,
            ),
            ReturnValues="ALL_NEW",
        )
        if result.is_success:
            return self._attributes(result)
        if result.is_conflict:
            if self.get(notification_id) is None:
                raise NotFoundError(f"Notification {notification_id} not found")
            raise ValidationError(f"Notification {notification_id} is already delivered")
        raise self._fail("cancel", result, notification_id=notification_id)

    def mark_read(
        self,
        notification_id: str,
        recipient_id: str,
        recipient_type: Optional[RecipientType],
        now: datetime,
    ) -> NotificationRecord:
        if recipient_type is not None:
            condition = "recipient_key = :recipient"
            recipient = f"{recipient_type.value}#{recipient_id}"
        else:
            condition = "recipient_id = :recipient"
            recipient = recipient_id

        result = dynamodb_next.update_item(
            table_name=self.table_name,
            Key=self._key(notification_id),
            UpdateExpression=(
                "SET is_read = :true, read_at = if_not_exists(read_at, :now), "
                "updated_at = :now"
            ),
            ConditionExpression=f"attribute_exists(notification_id) AND {condition}",
            ExpressionAttributeValues=self._values(true=True, now=now, recipient=recipient),
            ReturnValues="ALL_NEW",
        )
        if result.is_success:
            return self._attributes(result)
        if result.is_conflict:
            raise NotFoundError(
                f"Notification {notification_id} not found for recipient {recipient_id}"
            )
        raise self._fail("mark_read", result, notification_id=notification_id)

    def _query_recipient(
        self,
        recipient_id: str,
        recipient_type: Optional[RecipientType],
        **kwargs,
    ) -> List[NotificationRecord]:
        if recipient_type is not None:
            index, key_name = RECIPIENT_KEY_INDEX, "recipient_key"
            key_value = f"{recipient_type.value}#{recipient_id}"
        else:
            index, key_name = RECIPIENT_ID_INDEX, "recipient_id"
            key_value = recipient_id

        values = kwargs.pop("ExpressionAttributeValues", {})
        values.update(self._values(recipient=key_value))
        result = dynamodb_next.query(
            table_name=self.table_name,
            IndexName=index,
            KeyConditionExpression=f"{key_name} = :recipient",
            ExpressionAttributeValues=values,
            **kwargs,
        )
        if not result.is_success:
            raise self._fail("query_recipient", result, recipient_id=recipient_id)
        return [self._item_to_record(item) for item in result.data or []]

    def _unread(
        self, recipient_id: str, recipient_type: Optional[RecipientType], now: datetime
    ) -> List[NotificationRecord]:
        records = self._query_recipient(
            recipient_id,
            recipient_type,
            FilterExpression="is_read = :false",
            ExpressionAttributeValues=self._values(false=False),
        )
        return [record for record in records if record.is_active(now)]

    def mark_all_read(
        self, recipient_id: str, recipient_type: Optional[RecipientType], now: datetime
    ) -> int:
        records = self._query_recipient(
            recipient_id,
            recipient_type,
            FilterExpression="is_read = :false",
            ExpressionAttributeValues=self._values(false=False),
        )
        changed = 0
        for record in records:
            result = dynamodb_next.update_item(
                table_name=self.table_name,
                Key=self._key(record.id),
                UpdateExpression="SET is_read = :true, read_at = :now, updated_at = :now",
                ConditionExpression="is_read = :false",
                ExpressionAttributeValues=self._values(true=True, false=False, now=now),
            )
            if result.is_success:
                changed += 1
            elif not result.is_conflict:
                raise self._fail("mark_all_read", result, notification_id=record.id)
        return changed

    def count_unread(
        self, recipient_id: str, recipient_type: Optional[RecipientType], now: datetime
    ) -> int:
        return len(self._unread(recipient_id, recipient_type, now))

    def list_for_recipient(
        self, recipient_id: str, options: ListOptions, now: datetime
    ) -> ListResult:
        records = [
            record
            for record in self._query_recipient(recipient_id, options.recipient_type)
            if not record.is_expired(now) and options.matches(record)
        ]
        records.sort(key=options.sort_key, reverse=options.sort_order == "desc")
        return ListResult(
            records=records[options.offset : options.offset + options.limit],
            total=len(records),
            page=options.page,
            limit=options.limit,
        )

    def _query_due(
        self, status: NotificationStatus, now: datetime, limit: int, **kwargs
    ) -> List[NotificationRecord]:
        values = kwargs.pop("ExpressionAttributeValues", {})
        values.update(self._values(status=status, now=now))
        result = dynamodb_next.query_page(
            table_name=self.table_name,
            IndexName=DUE_INDEX,
            KeyConditionExpression="#status = :status AND due_at <= :now",
            ExpressionAttributeNames={"#status": "status"},
            ExpressionAttributeValues=values,
            Limit=limit * 2,  # Query extra to account for claimed records
            **kwargs,
        )
        if not result.is_success:
            raise self._fail("fetch_due", result, status=status.value)
        items = result.data.get("Items", []) if result.data else []
        return [self._item_to_record(item) for item in items]

    def fetch_due(
        self, now: datetime, limit: int, pending_before: datetime
    ) -> List[NotificationRecord]:
        """Read one bounded page per status from the sparse due index."""
        candidates = self._query_due(NotificationStatus.FAILED, now, limit)
        candidates += self._query_due(
            NotificationStatus.PENDING,
            now,
            limit,
            FilterExpression="attribute_exists(scheduled_for) OR created_at <= :pending_before",
            ExpressionAttributeValues=self._values(pending_before=pending_before),
        )
        due = [record for record in candidates if is_due_for_sweep(record, now, pending_before)]
        due.sort(key=lambda r: r.next_attempt_at or r.scheduled_for or r.created_at)
        logger.debug("fetched_due_notifications", count=len(due), total_queried=len(candidates))
        return due[:limit]

    def claim(
        self,
        notification_id: str,
        worker_id: str,
        now: datetime,
        lease_until: datetime,
        expected_attempts: int,
        expected_status: NotificationStatus,
    ) -> Optional[NotificationRecord]:
        result = dynamodb_next.update_item(
            table_name=self.table_name,
            Key=self._key(notification_id),
            UpdateExpression="SET claimed_by = :worker, claim_expires_at = :expires",
            ConditionExpression=(
                "attribute_exists(notification_id) AND "
                "(attribute_not_exists(claimed_by) OR claim_expires_at <= :now) AND "
                "attempts = :expected AND #status = :status"
            ),
            ExpressionAttributeNames={"#status": "status"},
            ExpressionAttributeValues=self._values(
                worker=worker_id,
                expires=lease_until,
                now=now,
                expected=expected_attempts,
                status=expected_status,
            ),
            ReturnValues="ALL_NEW",
        )
        if result.is_success:
            logger.debug("notification_claimed", notification_id=notification_id, worker=worker_id)
            return self._attributes(result)
        if result.is_conflict:
            logger.debug(
                "notification_claim_failed",
                notification_id=notification_id,
                worker=worker_id,
            )
            return None
        raise self._fail("claim", result, notification_id=notification_id)

    def release(self, notification_id: str, worker_id: str) -> None:
        result = dynamodb_next.update_item(
            table_name=self.table_name,
            Key=self._key(notification_id),
            UpdateExpression="REMOVE claimed_by, claim_expires_at",
            ConditionExpression="claimed_by = :worker",
            ExpressionAttributeValues=self._values(worker=worker_id),
        )
        if not result.is_success and not result.is_conflict:
            raise self._fail("release", result, notification_id=notification_id)

    def purge(self, read_before: datetime, now: datetime) -> int:
        result = dynamodb_next.scan(
            table_name=self.table_name,
            FilterExpression="(is_read = :true AND created_at < :cutoff) OR expires_at <= :now",
            ExpressionAttributeValues=self._values(true=True, cutoff=read_before, now=now),
        )
        if not result.is_success:
            raise self._fail("purge_scan", result)

        deleted = 0
        for item in result.data or []:
            record = self._item_to_record(item)
            if not is_purgeable(record, read_before, now):
                continue
            delete = dynamodb_next.delete_item(
                table_name=self.table_name,
                Key=self._key(record.id),
                ConditionExpression="attempts = :attempts",
                ExpressionAttributeValues=self._values(attempts=record.attempts),
            )
            if delete.is_success:
                deleted += 1
            elif not delete.is_conflict:
                raise self._fail("purge_delete", delete, notification_id=record.id)
        return deleted
