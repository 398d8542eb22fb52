"""Pydantic schemas for event participation."""
from __future__ import annotations
from datetime import datetime
from typing import Optional
from pydantic import BaseModel

from hub.models.participation import RSVPStatus, RegistrationStatus


class RsvpIn(BaseModel):
    user_id: str
    status: str  # GOING, MAYBE, NOT_GOING


class RegistrationIn(BaseModel):
    user_id: str
    status: str  # REGISTERED, PENDING, CANCELED, WAITLISTED


class CheckInIn(BaseModel):
    user_id: str


class FeedbackIn(BaseModel):
    user_id: str
    rating: int
    feedback: Optional[str] = None


class ParticipationOut(BaseModel):
    id: str
    user_id: str
    event_id: str
    rsvp_status: Optional[RSVPStatus] = None
    registration_status: Optional[RegistrationStatus] = None
    registered_at: Optional[datetime] = None
    waitlisted_at: Optional[datetime] = None
    check_in_time: Optional[datetime] = None
    feedback: Optional[str] = None
    rating: Optional[int] = None

    model_config = {"from_attributes": True}
