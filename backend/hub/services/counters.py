"""Recomputation of the denormalized like/save counters on events.

Counters are a cache over the join rows. The toggle path keeps them current
with atomic +/-1 updates; this module rebuilds them from the rows when they
drift (crash between steps, purged users, deleted targets).
"""
import logging
from dataclasses import dataclass
from typing import Iterable, Optional

from sqlalchemy import func, select, update
from sqlalchemy.orm import Session

from hub.models.engagement import LikedEvent, SavedEvent
from hub.models.event import Event

logger = logging.getLogger(__name__)


@dataclass(frozen=True)
class CounterCorrection:
    event_id: str
    like_count_before: int
    like_count_after: int
    save_count_before: int
    save_count_after: int


def _like_count_subquery():
    return (
        select(func.count(LikedEvent.id))
        .where(LikedEvent.event_id == Event.id, LikedEvent.is_external.is_(False))
        .correlate(Event)
        .scalar_subquery()
    )


def _save_count_subquery():
    return (
        select(func.count(SavedEvent.id))
        .where(SavedEvent.event_id == Event.id)
        .correlate(Event)
        .scalar_subquery()
    )


def find_drift(db: Session, event_ids: Optional[Iterable[str]] = None) -> list[CounterCorrection]:
    """Compare stored counters against join-row counts without writing anything."""
    query = select(Event.id, Event.like_count, Event.save_count, _like_count_subquery(), _save_count_subquery())
    if event_ids is not None:
        ids = list(event_ids)
        if not ids:
            return []
        query = query.where(Event.id.in_(ids))

    drift = []
    for event_id, likes, saves, actual_likes, actual_saves in db.execute(query):
        if likes != actual_likes or saves != actual_saves:
            drift.append(CounterCorrection(event_id, likes, actual_likes, saves, actual_saves))
    return drift


def recount_event_counters(db: Session, event_ids: Optional[Iterable[str]] = None) -> list[CounterCorrection]:
    """Rewrite drifted counters from the join rows. Does not commit.

    The write recounts inside the UPDATE itself rather than writing the values
    read by find_drift, so a toggle that commits between the two statements
    is not overwritten with a stale number.
    """
    drift = find_drift(db, event_ids)
    if not drift:
        return []
    db.execute(
        update(Event)
        .where(Event.id.in_([c.event_id for c in drift]))
        .values(like_count=_like_count_subquery(), save_count=_save_count_subquery())
        .execution_options(synchronize_session=False)
    )
    for correction in drift:
        logger.info(
            "Corrected counters for event %s: likes %d -> %d, saves %d -> %d",
            correction.event_id,
            correction.like_count_before,
            correction.like_count_after,
            correction.save_count_before,
            correction.save_count_after,
        )
    return drift
