"""Participation ledger: one row per (user, event), two independent axes.

rsvp_status is the user's stated intent; registration_status is the seat. The
only coupling between them is that check-in requires REGISTERED.
Registration decisions that compare the registered count to capacity are
taken with the event row locked so concurrent registrations cannot overbook.
"""
import logging
from typing import Optional, Union

from sqlalchemy import func, update
from sqlalchemy.exc import IntegrityError
from sqlalchemy.orm import Session

from hub.core.clock import utcnow
from hub.core.errors import InvalidRating, InvalidTransition
from hub.core.validation import coerce_enum
from hub.models.event import Event, EventStatus
from hub.models.notification import NotificationChannel, NotificationType
from hub.models.participation import EventParticipation, RSVPStatus, RegistrationStatus
from hub.services import notification_service
from hub.services.event_service import get_event
from hub.services.identity_service import require_usable_user
from hub.services.notification_service import LinkedEntity

logger = logging.getLogger(__name__)

# None = no registration recorded yet
_REGISTRATION_TRANSITIONS: dict[Optional[RegistrationStatus], set[RegistrationStatus]] = {
    None: {RegistrationStatus.PENDING, RegistrationStatus.REGISTERED, RegistrationStatus.CANCELED},
    RegistrationStatus.PENDING: {
        RegistrationStatus.REGISTERED, RegistrationStatus.WAITLISTED, RegistrationStatus.CANCELED,
    },
    RegistrationStatus.WAITLISTED: {RegistrationStatus.REGISTERED, RegistrationStatus.CANCELED},
    RegistrationStatus.REGISTERED: {RegistrationStatus.CANCELED},
    RegistrationStatus.CANCELED: {RegistrationStatus.PENDING, RegistrationStatus.REGISTERED},
}

_CLOSED_EVENT_STATUSES = {EventStatus.COMPLETED, EventStatus.CANCELED}


def get_participation(db: Session, user_id: str, event_id: str) -> Optional[EventParticipation]:
    return (
        db.query(EventParticipation)
        .filter(EventParticipation.user_id == user_id, EventParticipation.event_id == event_id)
        .first()
    )


def _get_or_create(db: Session, user_id: str, event_id: str) -> EventParticipation:
    """Upsert guard: a concurrent creator wins via the unique constraint and we re-read its row."""
    row = get_participation(db, user_id, event_id)
    if row is not None:
        return row
    try:
        with db.begin_nested():
            row = EventParticipation(user_id=user_id, event_id=event_id)
            db.add(row)
    except IntegrityError:
        logger.debug("Participation (%s, %s) created concurrently; re-reading", user_id, event_id)
        row = get_participation(db, user_id, event_id)
    return row


def _registered_count(db: Session, event_id: str) -> int:
    return db.query(func.count(EventParticipation.id)).filter(
        EventParticipation.event_id == event_id,
        EventParticipation.registration_status == RegistrationStatus.REGISTERED,
    ).scalar()


def _has_capacity(db: Session, event: Event) -> bool:
    if event.capacity is None:
        return True
    return _registered_count(db, event.id) < event.capacity


def _check_registration_transition(
    current: Optional[RegistrationStatus], requested: RegistrationStatus, user_id: str, event_id: str,
) -> None:
    if requested not in _REGISTRATION_TRANSITIONS[current]:
        raise InvalidTransition(
            f"Cannot move registration from {current.value if current else 'none'} to {requested.value}",
            user_id=user_id, event_id=event_id,
        )


def set_rsvp(
    db: Session, user_id: str, event_id: str, status: Union[RSVPStatus, str],
) -> EventParticipation:
    """Record the user's RSVP. Never touches registration."""
    rsvp = coerce_enum(RSVPStatus, status, "rsvp_status")
    require_usable_user(db, user_id)
    event = get_event(db, event_id)
    if event.status in _CLOSED_EVENT_STATUSES:
        raise InvalidTransition(f"Event {event_id} is {event.status.value}; RSVPs are closed", event_id=event_id)

    row = _get_or_create(db, user_id, event_id)
    if row.rsvp_status != rsvp:
        row.rsvp_status = rsvp
    db.commit()
    db.refresh(row)
    logger.info("User %s RSVP'd %s to event %s", user_id, rsvp.value, event_id)
    return row


def set_registration(
    db: Session, user_id: str, event_id: str, status: Union[RegistrationStatus, str],
) -> EventParticipation:
    """Move the user's registration, routing to WAITLISTED when the event is full."""
    requested = coerce_enum(RegistrationStatus, status, "registration_status")
    require_usable_user(db, user_id)
    event = get_event(db, event_id, lock=True)
    if event.status in _CLOSED_EVENT_STATUSES and requested != RegistrationStatus.CANCELED:
        raise InvalidTransition(
            f"Event {event_id} is {event.status.value}; registration is closed", event_id=event_id,
        )

    row = get_participation(db, user_id, event_id)
    current = row.registration_status if row is not None else None
    if requested == current:
        db.commit()
        return row
    _check_registration_transition(current, requested, user_id, event_id)
    if row is None:
        row = _get_or_create(db, user_id, event_id)
        if row.registration_status != current:
            # Lost the creation race; judge against the winner's status
            current = row.registration_status
            if requested == current:
                db.commit()
                return row
            _check_registration_transition(current, requested, user_id, event_id)

    target = requested
    if requested == RegistrationStatus.REGISTERED and not _has_capacity(db, event):
        target = RegistrationStatus.WAITLISTED

    if target != current:
        row.registration_status = target
        now = utcnow()
        if target == RegistrationStatus.REGISTERED:
            row.registered_at = now
        elif target == RegistrationStatus.WAITLISTED:
            row.waitlisted_at = now
        db.flush()
        if current == RegistrationStatus.REGISTERED and target == RegistrationStatus.CANCELED:
            _promote_from_waitlist(db, event)

    db.commit()
    db.refresh(row)
    logger.info(
        "User %s registration for event %s: %s -> %s",
        user_id, event_id, current.value if current else "none", row.registration_status.value,
    )
    return row


def _promote_from_waitlist(db: Session, event: Event) -> Optional[EventParticipation]:
    """Give a freed seat to the longest-waiting participant. Runs under the event lock."""
    if event.status in _CLOSED_EVENT_STATUSES or not _has_capacity(db, event):
        return None
    candidate = (
        db.query(EventParticipation)
        .filter(
            EventParticipation.event_id == event.id,
            EventParticipation.registration_status == RegistrationStatus.WAITLISTED,
        )
        .order_by(EventParticipation.waitlisted_at, EventParticipation.id)
        .first()
    )
    if candidate is None:
        return None
    candidate.registration_status = RegistrationStatus.REGISTERED
    candidate.registered_at = utcnow()
    notification_service.notify(
        db,
        candidate.user_id,
        NotificationType.REGISTRATION_CONFIRMED,
        NotificationChannel.IN_APP,
        {"message": f"A spot opened up: you are now registered for {event.name}", "data": {"event_id": event.id}},
        linked_entity=LinkedEntity.event(event.id),
        commit=False,
    )
    logger.info("Promoted user %s from waitlist for event %s", candidate.user_id, event.id)
    return candidate


def check_in(db: Session, user_id: str, event_id: str) -> EventParticipation:
    """Stamp check_in_time once. Repeated calls return the row unchanged."""
    require_usable_user(db, user_id)
    get_event(db, event_id)
    row = get_participation(db, user_id, event_id)
    if row is None or row.registration_status != RegistrationStatus.REGISTERED:
        raise InvalidTransition(
            "Only REGISTERED participants can check in", user_id=user_id, event_id=event_id,
        )
    # Only the first check-in stamps the time; a concurrent second one matches no row
    stamped = db.execute(
        update(EventParticipation)
        .where(EventParticipation.id == row.id, EventParticipation.check_in_time.is_(None))
        .values(check_in_time=utcnow())
        .execution_options(synchronize_session=False)
    ).rowcount
    db.commit()
    db.refresh(row)
    if stamped:
        logger.info("User %s checked in to event %s", user_id, event_id)
    return row


def record_feedback(
    db: Session, user_id: str, event_id: str, rating: int, text: Optional[str] = None,
) -> EventParticipation:
    """Store a 1-5 rating and optional feedback text."""
    if isinstance(rating, bool) or not isinstance(rating, int) or not 1 <= rating <= 5:
        raise InvalidRating(f"Rating must be an integer from 1 to 5, got {rating!r}", rating=rating)
    require_usable_user(db, user_id)
    get_event(db, event_id)

    row = _get_or_create(db, user_id, event_id)
    row.rating = rating
    row.feedback = text
    db.commit()
    db.refresh(row)
    logger.info("User %s rated event %s: %d", user_id, event_id, rating)
    return row


def list_participants(
    db: Session,
    event_id: str,
    rsvp_status: Optional[Union[RSVPStatus, str]] = None,
    registration_status: Optional[Union[RegistrationStatus, str]] = None,
) -> list[EventParticipation]:
    get_event(db, event_id)
    query = db.query(EventParticipation).filter(EventParticipation.event_id == event_id)
    if rsvp_status is not None:
        query = query.filter(EventParticipation.rsvp_status == coerce_enum(RSVPStatus, rsvp_status, "rsvp_status"))
    if registration_status is not None:
        query = query.filter(
            EventParticipation.registration_status
            == coerce_enum(RegistrationStatus, registration_status, "registration_status")
        )
    return query.order_by(EventParticipation.created_at, EventParticipation.id).all()
