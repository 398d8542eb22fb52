"""Event API routes — delegates to event_service for lifecycle enforcement."""
import logging
from typing import Optional
from fastapi import APIRouter, Depends, Query, status
from sqlalchemy.orm import Session

from hub.database import get_db
from hub.schemas.event import EventCreate, EventUpdate, EventStatusChange, EventOut
from hub.services import event_service

logger = logging.getLogger(__name__)
router = APIRouter()


@router.post("/", response_model=EventOut, status_code=status.HTTP_201_CREATED)
def create_event(
    payload: EventCreate,
    actor_user_id: str = Query(..., description="ID of the creating user"),
    db: Session = Depends(get_db),
):
    """Create a PENDING event owned by the actor."""
    return event_service.create_event(db, creator_id=actor_user_id, **payload.model_dump())


@router.get("/", response_model=list[EventOut])
def list_events(
    status_filter: Optional[str] = Query(None, alias="status"),
    category: Optional[str] = Query(None),
    tag: Optional[str] = Query(None),
    creator_id: Optional[str] = Query(None),
    upcoming_only: bool = Query(False),
    public_only: bool = Query(False),
    db: Session = Depends(get_db),
):
    return event_service.list_events(
        db,
        status=status_filter,
        category=category,
        tag=tag,
        creator_id=creator_id,
        upcoming_only=upcoming_only,
        public_only=public_only,
    )


@router.get("/{event_id}", response_model=EventOut)
def get_event(event_id: str, db: Session = Depends(get_db)):
    return event_service.get_event(db, event_id)


@router.patch("/{event_id}", response_model=EventOut)
def update_event(
    event_id: str,
    payload: EventUpdate,
    actor_user_id: str = Query(..., description="ID of the user performing the update"),
    db: Session = Depends(get_db),
):
    """Edit descriptive fields (creator or admin only)."""
    updates = payload.model_dump(exclude_unset=True)
    return event_service.update_event_details(db, event_id, actor_user_id, updates)


@router.post("/{event_id}/status", response_model=EventOut)
def change_status(
    event_id: str,
    payload: EventStatusChange,
    actor_user_id: str = Query(..., description="ID of the user performing the transition"),
    db: Session = Depends(get_db),
):
    """Move the event through its lifecycle: ACTIVE, COMPLETED or CANCELED."""
    return event_service.transition_event(db, event_id, payload.status, actor_user_id, payload.reason)


@router.delete("/{event_id}", status_code=status.HTTP_204_NO_CONTENT)
def delete_event(
    event_id: str,
    actor_user_id: str = Query(...),
    cascade: bool = Query(False),
    db: Session = Depends(get_db),
):
    event_service.delete_event(db, event_id, actor_user_id, cascade=cascade)
