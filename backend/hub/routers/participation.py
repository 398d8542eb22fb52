"""Participation API routes — RSVP, registration, check-in and feedback."""
import logging
from typing import Optional
from fastapi import APIRouter, Depends, Query
from sqlalchemy.orm import Session

from hub.core.errors import NotFound
from hub.database import get_db
from hub.schemas.participation import RsvpIn, RegistrationIn, CheckInIn, FeedbackIn, ParticipationOut
from hub.services import participation_service

logger = logging.getLogger(__name__)
router = APIRouter()


@router.post("/{event_id}/rsvp", response_model=ParticipationOut)
def set_rsvp(event_id: str, payload: RsvpIn, db: Session = Depends(get_db)):
    return participation_service.set_rsvp(db, payload.user_id, event_id, payload.status)


@router.post("/{event_id}/registration", response_model=ParticipationOut)
def set_registration(event_id: str, payload: RegistrationIn, db: Session = Depends(get_db)):
    """Request a registration status; a full event answers with WAITLISTED."""
    return participation_service.set_registration(db, payload.user_id, event_id, payload.status)


@router.post("/{event_id}/check-in", response_model=ParticipationOut)
def check_in(event_id: str, payload: CheckInIn, db: Session = Depends(get_db)):
    return participation_service.check_in(db, payload.user_id, event_id)


@router.post("/{event_id}/feedback", response_model=ParticipationOut)
def record_feedback(event_id: str, payload: FeedbackIn, db: Session = Depends(get_db)):
    return participation_service.record_feedback(db, payload.user_id, event_id, payload.rating, payload.feedback)


@router.get("/{event_id}/participants", response_model=list[ParticipationOut])
def list_participants(
    event_id: str,
    rsvp_status: Optional[str] = Query(None),
    registration_status: Optional[str] = Query(None),
    db: Session = Depends(get_db),
):
    return participation_service.list_participants(db, event_id, rsvp_status, registration_status)


@router.get("/{event_id}/participants/{user_id}", response_model=ParticipationOut)
def get_participation(event_id: str, user_id: str, db: Session = Depends(get_db)):
    row = participation_service.get_participation(db, user_id, event_id)
    if row is None:
        raise NotFound(f"No participation for user {user_id} in event {event_id}", user_id=user_id, event_id=event_id)
    return row
