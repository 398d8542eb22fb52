"""Engagement counter service: likes and saves with denormalized counters.

Every toggle is idempotent. A state-changing toggle inserts or deletes one
join row and moves the event counter by exactly one, in one transaction:

- the insert runs inside a SAVEPOINT and is guarded by the (user, target)
  unique constraint, so a concurrent duplicate loses with IntegrityError and
  becomes a no-op;
- the counter moves with `UPDATE ... SET like_count = like_count + 1`, never
  read-modify-write.

External targets are checked against the document store before anything is
written. Drift is repaired by reconcile_counters().
"""
import enum
import logging
from dataclasses import dataclass
from typing import Any, Optional

from sqlalchemy import delete, exists, select, update
from sqlalchemy.exc import IntegrityError
from sqlalchemy.orm import Session

from hub.core.errors import ExternalDependencyError, TargetNotFound
from hub.models.engagement import LikedEvent, SavedEvent, SavedPost
from hub.models.event import Event
from hub.models.notification import NotificationChannel, NotificationPriority, NotificationType
from hub.services import notification_service
from hub.services.counters import CounterCorrection, recount_event_counters
from hub.services.document_store import DocumentStoreClient
from hub.services.identity_service import get_user, require_usable_user
from hub.services.notification_service import LinkedEntity

logger = logging.getLogger(__name__)


class TargetStore(str, enum.Enum):
    INTERNAL = "INTERNAL"
    EXTERNAL = "EXTERNAL"


@dataclass(frozen=True)
class TargetRef:
    """An engagement target: an event in this database or a document in the document store."""

    store: TargetStore
    id: str

    @classmethod
    def internal(cls, target_id: str) -> "TargetRef":
        return cls(TargetStore.INTERNAL, target_id)

    @classmethod
    def external(cls, target_id: str) -> "TargetRef":
        return cls(TargetStore.EXTERNAL, target_id)

    @property
    def is_external(self) -> bool:
        return self.store is TargetStore.EXTERNAL


def _ensure_external_target(doc_store: Optional[DocumentStoreClient], target: TargetRef) -> None:
    """Runs before any database work so no lock is held across the network call."""
    if doc_store is None:
        raise ExternalDependencyError("No document store client configured", retry_after_seconds=None)
    if not doc_store.exists(target.id):
        raise TargetNotFound(f"External target not found: {target.id}", target_id=target.id)


def _ensure_internal_event(db: Session, event_id: str) -> Event:
    event = db.get(Event, event_id)
    if event is None:
        raise TargetNotFound(f"Event not found: {event_id}", target_id=event_id)
    return event


def _insert_once(db: Session, row) -> bool:
    """Insert a join row; False if the unique (user, target) constraint says it already exists."""
    try:
        with db.begin_nested():
            db.add(row)
    except IntegrityError:
        return False
    return True


def _bump(db: Session, column, event_id: str, delta: int) -> None:
    stmt = update(Event).where(Event.id == event_id)
    if delta < 0:
        # Floor at zero; a drifted counter is left for reconciliation
        stmt = stmt.where(column > 0)
    db.execute(stmt.values({column: column + delta}).execution_options(synchronize_session=False))


def _like(db: Session, user_id: str, target: TargetRef, doc_store: Optional[DocumentStoreClient]) -> bool:
    if target.is_external:
        _ensure_external_target(doc_store, target)
    require_usable_user(db, user_id)
    event = None if target.is_external else _ensure_internal_event(db, target.id)

    if db.query(LikedEvent.id).filter(LikedEvent.user_id == user_id, LikedEvent.event_id == target.id).first():
        db.commit()
        return False
    if not _insert_once(db, LikedEvent(user_id=user_id, event_id=target.id, is_external=target.is_external)):
        db.commit()
        logger.debug("Concurrent like of %s by %s resolved as no-op", target.id, user_id)
        return False

    if event is not None:
        _bump(db, Event.like_count, event.id, +1)
        if event.creator_id and event.creator_id != user_id:
            notification_service.notify(
                db,
                event.creator_id,
                NotificationType.EVENT_LIKED,
                NotificationChannel.IN_APP,
                {"message": f"Someone liked {event.name}", "data": {"event_id": event.id, "liked_by": user_id}},
                linked_entity=LinkedEntity.event(event.id),
                priority=NotificationPriority.LOW,
                commit=False,
            )
    db.commit()
    logger.info("User %s liked %s event %s", user_id, target.store.value.lower(), target.id)
    return True


def like_event(
    db: Session,
    user_id: str,
    event_id: str,
    is_external: bool = False,
    doc_store: Optional[DocumentStoreClient] = None,
) -> bool:
    """Like an event. Returns True if a like was added, False if it already existed."""
    target = TargetRef.external(event_id) if is_external else TargetRef.internal(event_id)
    return _like(db, user_id, target, doc_store)


def unlike_event(db: Session, user_id: str, event_id: str) -> bool:
    """Remove a like. Returns False (and changes nothing) if there was none."""
    get_user(db, user_id)
    existing = (
        db.query(LikedEvent.id, LikedEvent.is_external)
        .filter(LikedEvent.user_id == user_id, LikedEvent.event_id == event_id)
        .first()
    )
    if existing is None:
        db.commit()
        return False
    like_id, was_external = existing
    deleted = db.execute(
        delete(LikedEvent).where(LikedEvent.id == like_id).execution_options(synchronize_session=False)
    ).rowcount
    if not deleted:
        # Removed concurrently; the other caller owns the decrement
        db.commit()
        return False
    if not was_external:
        _bump(db, Event.like_count, event_id, -1)
    db.commit()
    logger.info("User %s unliked event %s", user_id, event_id)
    return True


def save_event(db: Session, user_id: str, event_id: str) -> bool:
    """Save an internal event. Returns True if newly saved."""
    require_usable_user(db, user_id)
    _ensure_internal_event(db, event_id)
    if db.query(SavedEvent.id).filter(SavedEvent.user_id == user_id, SavedEvent.event_id == event_id).first():
        db.commit()
        return False
    if not _insert_once(db, SavedEvent(user_id=user_id, event_id=event_id)):
        db.commit()
        return False
    _bump(db, Event.save_count, event_id, +1)
    db.commit()
    logger.info("User %s saved event %s", user_id, event_id)
    return True


def unsave_event(db: Session, user_id: str, event_id: str) -> bool:
    get_user(db, user_id)
    deleted = db.execute(
        delete(SavedEvent)
        .where(SavedEvent.user_id == user_id, SavedEvent.event_id == event_id)
        .execution_options(synchronize_session=False)
    ).rowcount
    if deleted:
        _bump(db, Event.save_count, event_id, -1)
    db.commit()
    if deleted:
        logger.info("User %s unsaved event %s", user_id, event_id)
    return bool(deleted)


def save_post(db: Session, user_id: str, post_id: str, doc_store: Optional[DocumentStoreClient]) -> bool:
    """Save a post from the document store. Returns True if newly saved."""
    _ensure_external_target(doc_store, TargetRef.external(post_id))
    require_usable_user(db, user_id)
    if db.query(SavedPost.id).filter(SavedPost.user_id == user_id, SavedPost.post_id == post_id).first():
        db.commit()
        return False
    inserted = _insert_once(db, SavedPost(user_id=user_id, post_id=post_id))
    db.commit()
    if inserted:
        logger.info("User %s saved post %s", user_id, post_id)
    return inserted


def unsave_post(db: Session, user_id: str, post_id: str) -> bool:
    get_user(db, user_id)
    deleted = db.execute(
        delete(SavedPost)
        .where(SavedPost.user_id == user_id, SavedPost.post_id == post_id)
        .execution_options(synchronize_session=False)
    ).rowcount
    db.commit()
    if deleted:
        logger.info("User %s unsaved post %s", user_id, post_id)
    return bool(deleted)


def is_liked(db: Session, user_id: str, event_id: str) -> bool:
    return bool(db.query(
        exists().where(LikedEvent.user_id == user_id, LikedEvent.event_id == event_id)
    ).scalar())


def list_saved_posts(
    db: Session, user_id: str, doc_store: Optional[DocumentStoreClient] = None,
) -> list[dict[str, Any]]:
    """Saved posts, newest first, with the document-store summary when a client is given."""
    rows = (
        db.query(SavedPost.post_id, SavedPost.saved_at)
        .filter(SavedPost.user_id == user_id)
        .order_by(SavedPost.saved_at.desc(), SavedPost.id)
        .all()
    )
    db.commit()
    return [
        {
            "post_id": post_id,
            "saved_at": saved_at,
            "summary": doc_store.get_summary(post_id) if doc_store is not None else None,
        }
        for post_id, saved_at in rows
    ]


def reconcile_counters(db: Session, event_id: Optional[str] = None) -> list[CounterCorrection]:
    """Recount like/save counters from the join rows, for one event or all of them."""
    corrections = recount_event_counters(db, [event_id] if event_id is not None else None)
    db.commit()
    logger.info("Reconciliation corrected %d event(s)", len(corrections))
    return corrections


def prune_dangling_targets(db: Session, doc_store: DocumentStoreClient) -> dict[str, int]:
    """Drop engagement rows whose target no longer exists, then reconcile counters.

    Internal likes are checked against the events table. External likes and
    saved posts are checked against the document store; every check is made
    before anything is deleted, so a store outage leaves the rows untouched.
    """
    external_likes = {
        target_id for (target_id,) in db.query(LikedEvent.event_id).filter(LikedEvent.is_external.is_(True)).distinct()
    }
    saved_posts = {post_id for (post_id,) in db.query(SavedPost.post_id).distinct()}
    db.commit()

    gone_external = {target_id for target_id in external_likes if not doc_store.exists(target_id)}
    gone_posts = {post_id for post_id in saved_posts if not doc_store.exists(post_id)}

    internal_removed = db.execute(
        delete(LikedEvent)
        .where(
            LikedEvent.is_external.is_(False),
            ~select(Event.id).where(Event.id == LikedEvent.event_id).correlate(LikedEvent).exists(),
        )
        .execution_options(synchronize_session=False)
    ).rowcount
    external_removed = 0
    if gone_external:
        external_removed = db.execute(
            delete(LikedEvent)
            .where(LikedEvent.is_external.is_(True), LikedEvent.event_id.in_(gone_external))
            .execution_options(synchronize_session=False)
        ).rowcount
    posts_removed = 0
    if gone_posts:
        posts_removed = db.execute(
            delete(SavedPost).where(SavedPost.post_id.in_(gone_posts)).execution_options(synchronize_session=False)
        ).rowcount
    recount_event_counters(db)
    db.commit()

    summary = {
        "internal_likes_removed": internal_removed,
        "external_likes_removed": external_removed,
        "saved_posts_removed": posts_removed,
    }
    logger.info("Pruned dangling engagement rows: %s", summary)
    return summary
