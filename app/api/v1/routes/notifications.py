"""Notification HTTP endpoints.

Creation from business events, manual delivery, and the recipient inbox
(list, unread count, read state).
"""

from datetime import datetime
from typing import Any, Dict, List, Literal, Optional

from fastapi import APIRouter, Depends, HTTPException, Query
from pydantic import BaseModel, Field

from infrastructure.logging import get_module_logger
from infrastructure.notifications import (
    ConcurrentUpdateError,
    InfrastructureError,
    ListOptions,
    NotFoundError,
    NotificationPriority,
    NotificationRecord,
    NotificationType,
    Party,
    RecipientResolutionError,
    RecipientSpec,
    RecipientType,
    ValidationError,
)
from infrastructure.services import NotificationServiceDep

logger = get_module_logger()

router = APIRouter(prefix="/notifications", tags=["Notifications"])


class ChannelOverrides(BaseModel):
    email: Optional[bool] = None
    sms: Optional[bool] = None
    push: Optional[bool] = None
    in_app: Optional[bool] = None

    def as_overrides(self) -> Dict[str, bool]:
        return {k: v for k, v in self.model_dump().items() if v is not None}


class EventRequest(BaseModel):
    """Business event to turn into notifications."""

    type: NotificationType
    payload: Dict[str, Any] = Field(default_factory=dict)
    recipients: List[Party] = Field(default_factory=list)
    broadcast_to: Optional[RecipientType] = None
    sender: Optional[Party] = None
    channels: Optional[ChannelOverrides] = None
    priority: Optional[NotificationPriority] = None
    scheduled_for: Optional[datetime] = None
    expires_at: Optional[datetime] = None
    tags: List[str] = Field(default_factory=list)


class NotificationListResponse(BaseModel):
    notifications: List[NotificationRecord]
    total: int
    page: int
    limit: int
    pages: int


def list_options(
    page: int = Query(1),
    limit: int = Query(20),
    type: Optional[str] = Query(None),
    priority: Optional[str] = Query(None),
    is_read: Optional[bool] = Query(None),
    sort_by: str = Query("created_at"),
    sort_order: str = Query("desc"),
) -> Dict[str, Any]:
    options = {
        "page": page,
        "limit": limit,
        "type": type,
        "priority": priority,
        "is_read": is_read,
        "sort_by": sort_by,
        "sort_order": sort_order,
    }
    return {k: v for k, v in options.items() if v is not None}


def _to_http(exc: Exception) -> HTTPException:
    if isinstance(exc, (ValidationError, RecipientResolutionError)):
        return HTTPException(status_code=422, detail=str(exc))
    if isinstance(exc, NotFoundError):
        return HTTPException(status_code=404, detail=str(exc))
    if isinstance(exc, ConcurrentUpdateError):
        return HTTPException(status_code=503, detail=str(exc))
    logger.error("notification_request_failed", error=str(exc))
    return HTTPException(status_code=503, detail="Notification storage unavailable")


HANDLED_ERRORS = (
    ValidationError,
    RecipientResolutionError,
    NotFoundError,
    InfrastructureError,
)


@router.post("/events", status_code=201)
def create_from_event(event: EventRequest, service: NotificationServiceDep):
    """Create one notification per recipient and attempt immediate delivery."""
    try:
        records = service.create_notification(
            event.type,
            event.payload,
            RecipientSpec(recipients=event.recipients, broadcast_to=event.broadcast_to),
            sender=event.sender,
            channels=event.channels.as_overrides() if event.channels else None,
            priority=event.priority,
            scheduled_for=event.scheduled_for,
            expires_at=event.expires_at,
            tags=event.tags,
        )
    except HANDLED_ERRORS as e:
        raise _to_http(e) from e
    return {"notifications": records, "count": len(records)}


@router.post("/{notification_id}/deliver")
def deliver(notification_id: str, service: NotificationServiceDep):
    """Run one delivery attempt now."""
    try:
        return service.deliver_by_id(notification_id)
    except HANDLED_ERRORS as e:
        raise _to_http(e) from e


@router.get("/{recipient_type}/{recipient_id}", response_model=NotificationListResponse)
def list_notifications(
    recipient_type: RecipientType,
    recipient_id: str,
    service: NotificationServiceDep,
    options: Dict[str, Any] = Depends(list_options),
):
    try:
        result = service.list_by_recipient(
            recipient_id, {**options, "recipient_type": recipient_type}
        )
    except HANDLED_ERRORS as e:
        raise _to_http(e) from e
    return NotificationListResponse(
        notifications=result.records,
        total=result.total,
        page=result.page,
        limit=result.limit,
        pages=result.pages,
    )


@router.get("/{recipient_type}/{recipient_id}/unread-count")
def unread_count(
    recipient_type: RecipientType, recipient_id: str, service: NotificationServiceDep
):
    try:
        count = service.get_unread_count(recipient_id, recipient_type)
    except HANDLED_ERRORS as e:
        raise _to_http(e) from e
    return {"count": count}


@router.put("/{recipient_type}/{recipient_id}/read-all")
def mark_all_read(
    recipient_type: RecipientType, recipient_id: str, service: NotificationServiceDep
):
    try:
        updated = service.mark_all_as_read(recipient_id, recipient_type)
    except HANDLED_ERRORS as e:
        raise _to_http(e) from e
    return {"updated": updated}


@router.put("/{recipient_type}/{recipient_id}/{notification_id}/read")
def mark_read(
    recipient_type: RecipientType,
    recipient_id: str,
    notification_id: str,
    service: NotificationServiceDep,
):
    try:
        return service.mark_as_read(notification_id, recipient_id, recipient_type)
    except HANDLED_ERRORS as e:
        raise _to_http(e) from e
