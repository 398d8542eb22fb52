"""Pydantic schemas for notifications."""
from __future__ import annotations
from datetime import datetime
from typing import Any, Optional
from pydantic import BaseModel, Field

from hub.models.notification import NotificationType, NotificationChannel, NotificationPriority, DeliveryStatus


class NotificationPayload(BaseModel):
    """What a producer hands to notify(): the text plus free-form structured parts."""

    message: str = Field(min_length=1)
    data: Optional[dict[str, Any]] = None
    metadata: Optional[dict[str, Any]] = None
    sender: Optional[dict[str, Any]] = None


class NotificationCreate(BaseModel):
    user_id: str
    type: str
    channel: str = "IN_APP"
    priority: str = "NORMAL"
    payload: NotificationPayload
    linked_entity_type: Optional[str] = None
    linked_entity_id: Optional[str] = None


class MarkFailedIn(BaseModel):
    reason: Optional[str] = None


class NotificationOut(BaseModel):
    id: str
    user_id: str
    message: str
    type: NotificationType
    channel: NotificationChannel
    priority: NotificationPriority
    status: DeliveryStatus
    read_status: bool
    read_at: Optional[datetime] = None
    event_id: Optional[str] = None
    subscription_id: Optional[str] = None
    linked_entity_type: Optional[str] = None
    linked_entity_id: Optional[str] = None
    data: Optional[dict[str, Any]] = None
    metadata: Optional[dict[str, Any]] = Field(default=None, validation_alias="meta")
    sender: Optional[dict[str, Any]] = None
    sent_at: Optional[datetime] = None
    failed_at: Optional[datetime] = None
    failure_reason: Optional[str] = None
    created_at: Optional[datetime] = None

    model_config = {"from_attributes": True}
