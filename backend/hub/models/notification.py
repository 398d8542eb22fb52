"""Notification ORM model.

A notification targets one user and links to at most one of: an event, a
subscription, or an entity outside this database (linked_entity_type +
linked_entity_id). status tracks delivery; read_status is the user's own flag
and moves independently.
"""
import uuid
import enum
from sqlalchemy import Column, String, Text, Boolean, DateTime, JSON, ForeignKey, Enum as SAEnum
from sqlalchemy.sql import func
from hub.database import Base


class NotificationType(str, enum.Enum):
    EVENT_UPDATE = "EVENT_UPDATE"
    EVENT_REMINDER = "EVENT_REMINDER"
    EVENT_CANCELED = "EVENT_CANCELED"
    EVENT_INVITATION = "EVENT_INVITATION"
    REGISTRATION_CONFIRMED = "REGISTRATION_CONFIRMED"
    WAITLISTED = "WAITLISTED"
    PAYMENT_SUCCESS = "PAYMENT_SUCCESS"
    PAYMENT_FAILED = "PAYMENT_FAILED"
    PAYMENT_REFUNDED = "PAYMENT_REFUNDED"
    SUBSCRIPTION_RENEWAL = "SUBSCRIPTION_RENEWAL"
    SUBSCRIPTION_CANCELED = "SUBSCRIPTION_CANCELED"
    EVENT_LIKED = "EVENT_LIKED"
    POST_SAVED = "POST_SAVED"
    SYSTEM = "SYSTEM"


class NotificationChannel(str, enum.Enum):
    IN_APP = "IN_APP"
    EMAIL = "EMAIL"
    SMS = "SMS"
    PUSH = "PUSH"


class NotificationPriority(str, enum.Enum):
    LOW = "LOW"
    NORMAL = "NORMAL"
    HIGH = "HIGH"
    URGENT = "URGENT"


class DeliveryStatus(str, enum.Enum):
    PENDING = "PENDING"
    SENT = "SENT"
    FAILED = "FAILED"


class Notification(Base):
    __tablename__ = "notifications"

    id = Column(String(36), primary_key=True, default=lambda: str(uuid.uuid4()))
    user_id = Column(String(36), ForeignKey("users.id", ondelete="CASCADE"), nullable=False, index=True)
    message = Column(Text, nullable=False)
    type = Column(SAEnum(NotificationType, name="notification_type"), nullable=False, index=True)
    channel = Column(SAEnum(NotificationChannel, name="notification_channel"), nullable=False)
    priority = Column(
        SAEnum(NotificationPriority, name="notification_priority"), nullable=False,
        default=NotificationPriority.NORMAL,
    )
    status = Column(SAEnum(DeliveryStatus, name="delivery_status"), nullable=False, default=DeliveryStatus.PENDING, index=True)
    read_status = Column(Boolean, nullable=False, default=False, index=True)
    read_at = Column(DateTime(timezone=True), nullable=True)
    event_id = Column(String(36), ForeignKey("events.id", ondelete="CASCADE"), nullable=True)
    subscription_id = Column(String(36), ForeignKey("subscriptions.id", ondelete="CASCADE"), nullable=True)
    linked_entity_type = Column(String(50), nullable=True)
    linked_entity_id = Column(String(64), nullable=True, index=True)
    data = Column(JSON, nullable=True)
    meta = Column("metadata", JSON, nullable=True)  # column is 'metadata' in the DB
    sender = Column(JSON, nullable=True)
    sent_at = Column(DateTime(timezone=True), nullable=True)
    failed_at = Column(DateTime(timezone=True), nullable=True)
    failure_reason = Column(String(500), nullable=True)
    created_at = Column(DateTime(timezone=True), server_default=func.now(), index=True)
    updated_at = Column(DateTime(timezone=True), server_default=func.now(), onupdate=func.now())
