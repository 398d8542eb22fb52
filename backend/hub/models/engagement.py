"""Engagement join rows: likes and saves on events and posts.

Targets may live outside this database. `liked_events.event_id` therefore has
no foreign key: internal likes point at `events.id`, external ones
(`is_external`) at a document-store id. Saved posts always point at the
document store. Existence is checked on write and drift is repaired by
reconciliation.
"""
import uuid
from sqlalchemy import Column, String, Boolean, DateTime, ForeignKey, UniqueConstraint
from sqlalchemy.sql import func
from hub.database import Base


class LikedEvent(Base):
    __tablename__ = "liked_events"

    id = Column(String(36), primary_key=True, default=lambda: str(uuid.uuid4()))
    user_id = Column(String(36), ForeignKey("users.id", ondelete="CASCADE"), nullable=False, index=True)
    event_id = Column(String(64), nullable=False, index=True)
    is_external = Column(Boolean, nullable=False, default=False)
    liked_at = Column(DateTime(timezone=True), server_default=func.now())

    __table_args__ = (
        UniqueConstraint("user_id", "event_id", name="uq_liked_event_user_event"),
    )


class SavedEvent(Base):
    __tablename__ = "saved_events"

    id = Column(String(36), primary_key=True, default=lambda: str(uuid.uuid4()))
    user_id = Column(String(36), ForeignKey("users.id", ondelete="CASCADE"), nullable=False, index=True)
    event_id = Column(String(36), ForeignKey("events.id", ondelete="CASCADE"), nullable=False, index=True)
    saved_at = Column(DateTime(timezone=True), server_default=func.now())

    __table_args__ = (
        UniqueConstraint("user_id", "event_id", name="uq_saved_event_user_event"),
    )


class SavedPost(Base):
    __tablename__ = "saved_posts"

    id = Column(String(36), primary_key=True, default=lambda: str(uuid.uuid4()))
    user_id = Column(String(36), ForeignKey("users.id", ondelete="CASCADE"), nullable=False, index=True)
    post_id = Column(String(64), nullable=False, index=True)
    saved_at = Column(DateTime(timezone=True), server_default=func.now())

    __table_args__ = (
        UniqueConstraint("user_id", "post_id", name="uq_saved_post_user_post"),
    )
