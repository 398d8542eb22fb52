"""Notification API routes."""
import logging
from fastapi import APIRouter, Depends, Query, status
from sqlalchemy.orm import Session

from hub.database import get_db
from hub.schemas.notification import NotificationCreate, MarkFailedIn, NotificationOut
from hub.services import notification_service
from hub.services.notification_service import LinkedEntity

logger = logging.getLogger(__name__)
router = APIRouter()


@router.post("/", response_model=NotificationOut, status_code=status.HTTP_201_CREATED)
def create_notification(payload: NotificationCreate, db: Session = Depends(get_db)):
    """Queue a PENDING notification."""
    link = None
    if payload.linked_entity_type and payload.linked_entity_id:
        link = LinkedEntity(payload.linked_entity_type, payload.linked_entity_id)
    return notification_service.notify(
        db,
        payload.user_id,
        payload.type,
        payload.channel,
        payload.payload,
        linked_entity=link,
        priority=payload.priority,
    )


@router.get("/", response_model=list[NotificationOut])
def list_notifications(
    user_id: str = Query(...),
    unread_only: bool = Query(False),
    limit: int = Query(50, ge=1, le=500),
    db: Session = Depends(get_db),
):
    return notification_service.list_notifications(db, user_id, unread_only, limit)


@router.post("/{notification_id}/sent", response_model=NotificationOut)
def mark_sent(notification_id: str, db: Session = Depends(get_db)):
    return notification_service.mark_sent(db, notification_id)


@router.post("/{notification_id}/failed", response_model=NotificationOut)
def mark_failed(notification_id: str, payload: MarkFailedIn, db: Session = Depends(get_db)):
    return notification_service.mark_failed(db, notification_id, payload.reason)


@router.post("/{notification_id}/read", response_model=NotificationOut)
def mark_read(notification_id: str, user_id: str = Query(None), db: Session = Depends(get_db)):
    return notification_service.mark_read(db, notification_id, user_id)


@router.post("/read-all")
def mark_all_read(user_id: str = Query(...), db: Session = Depends(get_db)):
    return {"updated": notification_service.mark_all_read(db, user_id)}
