"""Event lifecycle manager: enforces the event status machine.

PENDING -> ACTIVE -> COMPLETED | CANCELED, plus PENDING -> CANCELED.
COMPLETED and CANCELED are terminal. Only the creator or an admin may change
an event; the elapsed-event sweep runs without an actor. like_count and
save_count are read here but written only by the engagement service.
"""
import logging
from datetime import datetime
from typing import Any, Optional, Union

from sqlalchemy import delete, func
from sqlalchemy.orm import Session

from hub.core.clock import as_utc, utcnow
from hub.core.errors import ConflictError, InvalidTransition, NotFound, PermissionDenied, ValidationError
from hub.core.validation import coerce_enum
from hub.models.engagement import LikedEvent, SavedEvent
from hub.models.event import Event, EventStatus, EventTag
from hub.models.notification import Notification
from hub.models.participation import EventParticipation
from hub.models.user import User
from hub.services.identity_service import get_user, require_usable_user

logger = logging.getLogger(__name__)

_TRANSITIONS: dict[EventStatus, set[EventStatus]] = {
    EventStatus.PENDING: {EventStatus.ACTIVE, EventStatus.CANCELED},
    EventStatus.ACTIVE: {EventStatus.COMPLETED, EventStatus.CANCELED},
    EventStatus.COMPLETED: set(),
    EventStatus.CANCELED: set(),
}

_UPDATABLE_FIELDS = {
    "name", "description", "category", "location", "latitude", "longitude",
    "start_date", "end_date", "capacity", "is_public", "tags",
}


def _check_authorization(event: Event, actor: User) -> None:
    """Only the creator or an admin may modify an event."""
    if actor.is_admin or event.creator_id == actor.id:
        return
    raise PermissionDenied(
        "Only the event creator or an administrator may modify this event",
        event_id=event.id, actor_user_id=actor.id,
    )


def _ensure_transition(event: Event, target: EventStatus) -> None:
    if target not in _TRANSITIONS[event.status]:
        raise InvalidTransition(
            f"Cannot move event from {event.status.value} to {target.value}",
            event_id=event.id, from_status=event.status.value, to_status=target.value,
        )


def _validate_schedule(start_date: datetime, end_date: datetime) -> None:
    if as_utc(end_date) < as_utc(start_date):
        raise ValidationError("end_date must not be before start_date", field="end_date")


def _validate_capacity(capacity: Optional[int]) -> None:
    if capacity is not None and capacity < 1:
        raise ValidationError("capacity must be at least 1, or null for unbounded", field="capacity")


def _validate_coordinates(latitude: Optional[float], longitude: Optional[float]) -> None:
    if (latitude is None) != (longitude is None):
        raise ValidationError("latitude and longitude must be given together", field="latitude")
    if latitude is not None and not (-90 <= latitude <= 90 and -180 <= longitude <= 180):
        raise ValidationError("coordinates out of range", field="latitude")


def _normalize_tags(tags: Optional[list[str]]) -> list[str]:
    cleaned = {tag.strip().lower() for tag in (tags or []) if tag and tag.strip()}
    return sorted(cleaned)


def get_event(db: Session, event_id: str, lock: bool = False) -> Event:
    query = db.query(Event).filter(Event.id == event_id)
    if lock:
        query = query.with_for_update()
    event = query.first()
    if event is None:
        raise NotFound(f"Event not found: {event_id}", event_id=event_id)
    return event


def create_event(
    db: Session,
    creator_id: str,
    name: str,
    start_date: datetime,
    end_date: datetime,
    description: Optional[str] = None,
    category: Optional[str] = None,
    location: Optional[str] = None,
    latitude: Optional[float] = None,
    longitude: Optional[float] = None,
    capacity: Optional[int] = None,
    is_public: bool = True,
    tags: Optional[list[str]] = None,
) -> Event:
    """Create a PENDING event owned by `creator_id`."""
    if not name or not name.strip():
        raise ValidationError("name is required", field="name")
    _validate_schedule(start_date, end_date)
    _validate_capacity(capacity)
    _validate_coordinates(latitude, longitude)
    creator = require_usable_user(db, creator_id)

    event = Event(
        creator_id=creator.id,
        name=name.strip(),
        description=description,
        category=category,
        location=location,
        latitude=latitude,
        longitude=longitude,
        start_date=start_date,
        end_date=end_date,
        capacity=capacity,
        is_public=is_public,
        status=EventStatus.PENDING,
        like_count=0,
        save_count=0,
    )
    event.tag_rows = [EventTag(tag=tag) for tag in _normalize_tags(tags)]
    db.add(event)
    db.commit()
    db.refresh(event)
    logger.info("Created event '%s' (%s) by %s", event.name, event.id, creator.id)
    return event


def list_events(
    db: Session,
    status: Optional[Union[EventStatus, str]] = None,
    category: Optional[str] = None,
    tag: Optional[str] = None,
    creator_id: Optional[str] = None,
    upcoming_only: bool = False,
    public_only: bool = False,
) -> list[Event]:
    query = db.query(Event)
    if status is not None:
        query = query.filter(Event.status == coerce_enum(EventStatus, status, "status"))
    if category:
        query = query.filter(Event.category == category)
    if tag:
        query = query.filter(Event.tag_rows.any(EventTag.tag == tag.strip().lower()))
    if creator_id:
        query = query.filter(Event.creator_id == creator_id)
    if upcoming_only:
        query = query.filter(Event.start_date >= utcnow())
    if public_only:
        query = query.filter(Event.is_public.is_(True))
    return query.order_by(Event.start_date, Event.id).all()


def update_event_details(db: Session, event_id: str, actor_user_id: str, updates: dict[str, Any]) -> Event:
    """Edit descriptive fields. Status and counters are not editable here."""
    unknown = set(updates) - _UPDATABLE_FIELDS
    if unknown:
        raise ValidationError(f"Fields not updatable: {', '.join(sorted(unknown))}", fields=sorted(unknown))

    actor = get_user(db, actor_user_id)
    event = get_event(db, event_id, lock=True)
    _check_authorization(event, actor)
    if event.is_terminal:
        raise InvalidTransition(
            f"Event {event_id} is {event.status.value} and can no longer be edited", event_id=event_id,
        )

    _validate_schedule(updates.get("start_date", event.start_date), updates.get("end_date", event.end_date))
    if "capacity" in updates:
        _validate_capacity(updates["capacity"])
    if "latitude" in updates or "longitude" in updates:
        _validate_coordinates(updates.get("latitude", event.latitude), updates.get("longitude", event.longitude))
    if "name" in updates and not (updates["name"] or "").strip():
        raise ValidationError("name is required", field="name")

    for field, value in updates.items():
        if field == "tags":
            event.tag_rows = [EventTag(tag=tag) for tag in _normalize_tags(value)]
        else:
            setattr(event, field, value)
    db.commit()
    db.refresh(event)
    logger.info("Updated event %s fields: %s", event_id, ", ".join(sorted(updates)))
    return event


def activate_event(db: Session, event_id: str, actor_user_id: str) -> Event:
    """PENDING -> ACTIVE, only while the start date is still ahead."""
    actor = get_user(db, actor_user_id)
    event = get_event(db, event_id, lock=True)
    _check_authorization(event, actor)
    _ensure_transition(event, EventStatus.ACTIVE)
    if as_utc(event.start_date) <= utcnow():
        raise InvalidTransition(
            f"Event {event_id} has already started and can no longer be activated", event_id=event_id,
        )
    event.status = EventStatus.ACTIVE
    event.activated_at = utcnow()
    db.commit()
    db.refresh(event)
    logger.info("Activated event %s", event_id)
    return event


def complete_event(db: Session, event_id: str, actor_user_id: Optional[str] = None) -> Event:
    """ACTIVE -> COMPLETED.

    With an actor this is an explicit organizer action and is allowed at any
    time; without one (the scheduled sweep) the end date must have passed.
    """
    actor = get_user(db, actor_user_id) if actor_user_id is not None else None
    event = get_event(db, event_id, lock=True)
    if actor is not None:
        _check_authorization(event, actor)
    _ensure_transition(event, EventStatus.COMPLETED)
    if actor is None and as_utc(event.end_date) > utcnow():
        raise InvalidTransition(f"Event {event_id} has not ended yet", event_id=event_id)
    event.status = EventStatus.COMPLETED
    event.completed_at = utcnow()
    db.commit()
    db.refresh(event)
    logger.info("Completed event %s (%s)", event_id, "organizer" if actor else "schedule")
    return event


def cancel_event(db: Session, event_id: str, actor_user_id: str, reason: Optional[str] = None) -> Event:
    """PENDING | ACTIVE -> CANCELED, by the creator or an admin."""
    actor = get_user(db, actor_user_id)
    event = get_event(db, event_id, lock=True)
    _check_authorization(event, actor)
    _ensure_transition(event, EventStatus.CANCELED)
    event.status = EventStatus.CANCELED
    event.canceled_at = utcnow()
    event.canceled_by_user_id = actor.id
    db.commit()
    db.refresh(event)
    logger.info("Canceled event %s by %s (reason: %s)", event_id, actor.id, reason)
    return event


def transition_event(
    db: Session,
    event_id: str,
    status: Union[EventStatus, str],
    actor_user_id: str,
    reason: Optional[str] = None,
) -> Event:
    """Route a requested target status to the matching transition."""
    target = coerce_enum(EventStatus, status, "status")
    if target == EventStatus.ACTIVE:
        return activate_event(db, event_id, actor_user_id)
    if target == EventStatus.COMPLETED:
        return complete_event(db, event_id, actor_user_id)
    if target == EventStatus.CANCELED:
        return cancel_event(db, event_id, actor_user_id, reason)
    event = get_event(db, event_id)
    raise InvalidTransition(
        f"Cannot move event from {event.status.value} to {target.value}",
        event_id=event_id, from_status=event.status.value, to_status=target.value,
    )


def complete_elapsed_events(db: Session) -> list[str]:
    """Complete every ACTIVE event whose end date has passed. Returns their ids."""
    due = [
        event_id
        for (event_id,) in db.query(Event.id).filter(
            Event.status == EventStatus.ACTIVE, Event.end_date <= utcnow(),
        )
    ]
    db.commit()
    completed = []
    for event_id in due:
        try:
            complete_event(db, event_id)
        except InvalidTransition:
            # Canceled or completed by someone else since the scan
            db.rollback()
            continue
        completed.append(event_id)
    if completed:
        logger.info("Completed %d elapsed events", len(completed))
    return completed


def delete_event(db: Session, event_id: str, actor_user_id: str, cascade: bool = False) -> None:
    """Physically remove an event.

    Refused while participation or notification rows still reference it,
    unless cascade=True, in which case those rows go with it.
    """
    actor = get_user(db, actor_user_id)
    event = get_event(db, event_id, lock=True)
    _check_authorization(event, actor)

    participations = db.query(func.count(EventParticipation.id)).filter(
        EventParticipation.event_id == event_id,
    ).scalar()
    notifications = db.query(func.count(Notification.id)).filter(Notification.event_id == event_id).scalar()
    if (participations or notifications) and not cascade:
        raise ConflictError(
            f"Event {event_id} is still referenced",
            event_id=event_id, participations=participations, notifications=notifications,
        )

    for model in (EventParticipation, Notification, SavedEvent):
        db.execute(delete(model).where(model.event_id == event_id).execution_options(synchronize_session=False))
    db.execute(
        delete(LikedEvent)
        .where(LikedEvent.event_id == event_id, LikedEvent.is_external.is_(False))
        .execution_options(synchronize_session=False)
    )
    db.delete(event)
    db.commit()
    logger.info("Deleted event %s (cascade=%s)", event_id, cascade)
