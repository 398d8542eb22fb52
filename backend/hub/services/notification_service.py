"""Notification dispatcher model.

Producers create PENDING notifications through notify(); channel senders move
them to SENT or FAILED. Creation never looks at channel availability, and a
failed delivery only updates the row, so the record that delivery was
attempted always survives.
"""
import logging
from dataclasses import dataclass, field
from typing import Any, Callable, Mapping, Optional, Union

from pydantic import ValidationError as PydanticValidationError
from sqlalchemy import update
from sqlalchemy.orm import Session

from hub.core.clock import utcnow
from hub.core.errors import InvalidTransition, NotFound, PermissionDenied, ValidationError
from hub.core.validation import coerce_enum
from hub.models.event import Event
from hub.models.notification import (
    Notification, NotificationType, NotificationChannel, NotificationPriority, DeliveryStatus,
)
from hub.models.subscription import Subscription
from hub.models.user import User
from hub.schemas.notification import NotificationPayload

logger = logging.getLogger(__name__)

ChannelSender = Callable[[Notification], None]


@dataclass(frozen=True)
class LinkedEntity:
    """What a notification points at: an event, a subscription, or something outside this database."""

    type: str
    id: str

    EVENT = "EVENT"
    SUBSCRIPTION = "SUBSCRIPTION"

    @classmethod
    def event(cls, event_id: str) -> "LinkedEntity":
        return cls(cls.EVENT, event_id)

    @classmethod
    def subscription(cls, subscription_id: str) -> "LinkedEntity":
        return cls(cls.SUBSCRIPTION, subscription_id)


@dataclass
class DispatchReport:
    sent: list[str] = field(default_factory=list)
    failed: list[str] = field(default_factory=list)


def _coerce_payload(payload: Union[NotificationPayload, Mapping[str, Any]]) -> NotificationPayload:
    if isinstance(payload, NotificationPayload):
        return payload
    try:
        return NotificationPayload.model_validate(payload)
    except PydanticValidationError as exc:
        raise ValidationError("Invalid notification payload", errors=[e["msg"] for e in exc.errors()]) from exc


def notify(
    db: Session,
    user_id: str,
    type: Union[NotificationType, str],
    channel: Union[NotificationChannel, str],
    payload: Union[NotificationPayload, Mapping[str, Any]],
    linked_entity: Optional[LinkedEntity] = None,
    priority: Union[NotificationPriority, str] = NotificationPriority.NORMAL,
    commit: bool = True,
) -> Notification:
    """Create a PENDING notification for one user.

    With commit=False the row joins the caller's transaction and is only
    flushed, so a producer can make it part of its own atomic unit.
    """
    notification_type = coerce_enum(NotificationType, type, "type")
    notification_channel = coerce_enum(NotificationChannel, channel, "channel")
    notification_priority = coerce_enum(NotificationPriority, priority, "priority")
    body = _coerce_payload(payload)

    if db.get(User, user_id) is None:
        raise NotFound(f"User not found: {user_id}", user_id=user_id)

    notification = Notification(
        user_id=user_id,
        message=body.message,
        type=notification_type,
        channel=notification_channel,
        priority=notification_priority,
        status=DeliveryStatus.PENDING,
        read_status=False,
        data=body.data,
        meta=body.metadata,
        sender=body.sender,
    )
    if linked_entity is not None:
        _attach_link(db, notification, linked_entity)

    db.add(notification)
    if commit:
        db.commit()
        db.refresh(notification)
    else:
        db.flush()
    logger.info(
        "Queued %s notification %s for user %s via %s",
        notification_type.value, notification.id, user_id, notification_channel.value,
    )
    return notification


def _attach_link(db: Session, notification: Notification, link: LinkedEntity) -> None:
    if link.type == LinkedEntity.EVENT:
        if db.get(Event, link.id) is None:
            raise NotFound(f"Event not found: {link.id}", event_id=link.id)
        notification.event_id = link.id
    elif link.type == LinkedEntity.SUBSCRIPTION:
        if db.get(Subscription, link.id) is None:
            raise NotFound(f"Subscription not found: {link.id}", subscription_id=link.id)
        notification.subscription_id = link.id
    notification.linked_entity_type = link.type
    notification.linked_entity_id = link.id


def get_notification(db: Session, notification_id: str, lock: bool = False) -> Notification:
    query = db.query(Notification).filter(Notification.id == notification_id)
    if lock:
        query = query.with_for_update()
    notification = query.first()
    if notification is None:
        raise NotFound(f"Notification not found: {notification_id}", notification_id=notification_id)
    return notification


def _finish_delivery(
    db: Session, notification_id: str, target: DeliveryStatus, reason: Optional[str] = None,
) -> Notification:
    notification = get_notification(db, notification_id, lock=True)
    if notification.status != DeliveryStatus.PENDING:
        raise InvalidTransition(
            f"Notification {notification_id} is already {notification.status.value}",
            notification_id=notification_id,
            from_status=notification.status.value,
            to_status=target.value,
        )
    notification.status = target
    if target == DeliveryStatus.SENT:
        notification.sent_at = utcnow()
    else:
        notification.failed_at = utcnow()
        notification.failure_reason = (reason or "")[:500] or None
    db.commit()
    db.refresh(notification)
    return notification


def mark_sent(db: Session, notification_id: str) -> Notification:
    notification = _finish_delivery(db, notification_id, DeliveryStatus.SENT)
    logger.info("Notification %s sent", notification_id)
    return notification


def mark_failed(db: Session, notification_id: str, reason: Optional[str] = None) -> Notification:
    notification = _finish_delivery(db, notification_id, DeliveryStatus.FAILED, reason)
    logger.warning("Notification %s failed: %s", notification_id, reason)
    return notification


def mark_read(db: Session, notification_id: str, user_id: Optional[str] = None) -> Notification:
    """Set the read flag. Idempotent and independent of delivery status."""
    notification = get_notification(db, notification_id)
    if user_id is not None and notification.user_id != user_id:
        raise PermissionDenied("Notification belongs to another user", notification_id=notification_id)
    if not notification.read_status:
        notification.read_status = True
        notification.read_at = utcnow()
        db.commit()
        db.refresh(notification)
    else:
        db.commit()
    return notification


def mark_all_read(db: Session, user_id: str) -> int:
    result = db.execute(
        update(Notification)
        .where(Notification.user_id == user_id, Notification.read_status.is_(False))
        .values(read_status=True, read_at=utcnow())
        .execution_options(synchronize_session=False)
    )
    db.commit()
    return result.rowcount


def list_notifications(
    db: Session,
    user_id: str,
    unread_only: bool = False,
    limit: int = 50,
) -> list[Notification]:
    query = db.query(Notification).filter(Notification.user_id == user_id)
    if unread_only:
        query = query.filter(Notification.read_status.is_(False))
    return query.order_by(Notification.created_at.desc(), Notification.id).limit(limit).all()


def dispatch_pending(
    db: Session,
    senders: Mapping[NotificationChannel, ChannelSender],
    limit: int = 100,
) -> DispatchReport:
    """Hand PENDING notifications to their channel sender and record the outcome.

    A sender signals failure by raising; the exception is recorded on the row
    as FAILED and does not propagate. Channels without a sender are left
    PENDING.
    """
    report = DispatchReport()
    if not senders:
        return report
    pending = (
        db.query(Notification)
        .filter(Notification.status == DeliveryStatus.PENDING, Notification.channel.in_(list(senders)))
        .order_by(Notification.created_at, Notification.id)
        .limit(limit)
        .all()
    )
    for notification in pending:
        notification_id = notification.id
        sender = senders[notification.channel]
        failure = None
        try:
            sender(notification)
        except Exception as exc:
            failure = f"{type(exc).__name__}: {exc}"
        try:
            if failure is None:
                mark_sent(db, notification_id)
            else:
                mark_failed(db, notification_id, failure)
        except InvalidTransition:
            # Finished by another dispatcher since the batch was read
            db.rollback()
            logger.info("Notification %s already delivered elsewhere; skipping", notification_id)
            continue
        (report.sent if failure is None else report.failed).append(notification_id)
    logger.info("Dispatched notifications: %d sent, %d failed", len(report.sent), len(report.failed))
    return report
