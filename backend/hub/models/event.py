"""Event ORM model and its tag association table."""
import uuid
import enum
from sqlalchemy import (
    Column, String, Text, DateTime, Integer, Float, Boolean, ForeignKey, CheckConstraint, Enum as SAEnum,
)
from sqlalchemy.ext.associationproxy import association_proxy
from sqlalchemy.sql import func
from sqlalchemy.orm import relationship
from hub.database import Base


class EventStatus(str, enum.Enum):
    PENDING = "PENDING"
    ACTIVE = "ACTIVE"
    COMPLETED = "COMPLETED"
    CANCELED = "CANCELED"


TERMINAL_EVENT_STATUSES = frozenset({EventStatus.COMPLETED, EventStatus.CANCELED})


class Event(Base):
    __tablename__ = "events"

    id = Column(String(36), primary_key=True, default=lambda: str(uuid.uuid4()))
    # Nullable: a deleted creator leaves the event behind with no owner
    creator_id = Column(String(36), ForeignKey("users.id", ondelete="SET NULL"), nullable=True, index=True)
    name = Column(String(255), nullable=False)
    description = Column(Text, nullable=True)
    category = Column(String(100), nullable=True, index=True)
    location = Column(String(500), nullable=True)
    latitude = Column(Float, nullable=True)
    longitude = Column(Float, nullable=True)
    start_date = Column(DateTime(timezone=True), nullable=False, index=True)
    end_date = Column(DateTime(timezone=True), nullable=False)
    capacity = Column(Integer, nullable=True)  # NULL = unbounded
    is_public = Column(Boolean, nullable=False, default=True)
    status = Column(SAEnum(EventStatus, name="event_status"), nullable=False, default=EventStatus.PENDING, index=True)
    like_count = Column(Integer, nullable=False, default=0)
    save_count = Column(Integer, nullable=False, default=0)
    activated_at = Column(DateTime(timezone=True), nullable=True)
    completed_at = Column(DateTime(timezone=True), nullable=True)
    canceled_at = Column(DateTime(timezone=True), nullable=True)
    canceled_by_user_id = Column(String(36), ForeignKey("users.id", ondelete="SET NULL"), nullable=True)
    created_at = Column(DateTime(timezone=True), server_default=func.now())
    updated_at = Column(DateTime(timezone=True), server_default=func.now(), onupdate=func.now())

    __table_args__ = (
        CheckConstraint("capacity IS NULL OR capacity > 0", name="ck_events_capacity_positive"),
        CheckConstraint("like_count >= 0", name="ck_events_like_count_non_negative"),
        CheckConstraint("save_count >= 0", name="ck_events_save_count_non_negative"),
    )

    tag_rows = relationship(
        "EventTag", back_populates="event", cascade="all, delete-orphan", order_by="EventTag.tag",
    )
    tags = association_proxy("tag_rows", "tag", creator=lambda tag: EventTag(tag=tag))

    @property
    def is_terminal(self) -> bool:
        return self.status in TERMINAL_EVENT_STATUSES


class EventTag(Base):
    __tablename__ = "event_tags"

    event_id = Column(String(36), ForeignKey("events.id", ondelete="CASCADE"), primary_key=True)
    tag = Column(String(64), primary_key=True, index=True)

    event = relationship("Event", back_populates="tag_rows")
