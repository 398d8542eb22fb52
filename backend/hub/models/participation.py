"""EventParticipation ORM model: RSVP and registration as independent axes."""
import uuid
import enum
from sqlalchemy import (
    Column, String, Text, Integer, DateTime, ForeignKey, UniqueConstraint, CheckConstraint, Enum as SAEnum,
)
from sqlalchemy.sql import func
from hub.database import Base


class RSVPStatus(str, enum.Enum):
    GOING = "GOING"
    MAYBE = "MAYBE"
    NOT_GOING = "NOT_GOING"


class RegistrationStatus(str, enum.Enum):
    REGISTERED = "REGISTERED"
    PENDING = "PENDING"
    CANCELED = "CANCELED"
    WAITLISTED = "WAITLISTED"


class EventParticipation(Base):
    __tablename__ = "event_participations"

    id = Column(String(36), primary_key=True, default=lambda: str(uuid.uuid4()))
    user_id = Column(String(36), ForeignKey("users.id", ondelete="CASCADE"), nullable=False, index=True)
    event_id = Column(String(36), ForeignKey("events.id", ondelete="CASCADE"), nullable=False, index=True)
    rsvp_status = Column(SAEnum(RSVPStatus, name="rsvp_status"), nullable=True, index=True)
    registration_status = Column(
        SAEnum(RegistrationStatus, name="registration_status"), nullable=True, index=True,
    )
    registered_at = Column(DateTime(timezone=True), nullable=True)
    waitlisted_at = Column(DateTime(timezone=True), nullable=True)
    check_in_time = Column(DateTime(timezone=True), nullable=True)
    feedback = Column(Text, nullable=True)
    rating = Column(Integer, nullable=True)
    created_at = Column(DateTime(timezone=True), server_default=func.now())
    updated_at = Column(DateTime(timezone=True), server_default=func.now(), onupdate=func.now())

    __table_args__ = (
        UniqueConstraint("user_id", "event_id", name="uq_participation_user_event"),
        CheckConstraint("rating IS NULL OR (rating >= 1 AND rating <= 5)", name="ck_participation_rating_range"),
    )
