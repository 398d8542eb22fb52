"""Identity & role store.

A user row and its role-profile row are written by a single flush of one
profile-class instance, so a user without a profile (or the reverse) is never
observable. Role is fixed at creation; there is no operation that changes it.
"""
import logging
from typing import Any, Optional, Union

from pydantic import ValidationError as PydanticValidationError
from sqlalchemy import delete
from sqlalchemy.exc import IntegrityError
from sqlalchemy.orm import Session

from hub.core.clock import utcnow
from hub.core.errors import (
    AuthenticationFailed, DuplicateEmail, InvalidRoleAttributes, InvalidTransition, NotFound, PermissionDenied,
)
from hub.core.security import hash_password, verify_password
from hub.core.validation import coerce_enum, normalize_email
from hub.models.engagement import LikedEvent, SavedEvent, SavedPost
from hub.models.notification import Notification
from hub.models.participation import EventParticipation
from hub.models.user import (
    User, Student, University, Company, Admin, UserRole, AccountStatus, ROLE_PROFILE_CLASSES,
)
from hub.schemas.user import UserProfileIn, ROLE_ATTRIBUTE_SCHEMAS
from hub.services.counters import recount_event_counters

logger = logging.getLogger(__name__)

RoleProfile = Union[Student, University, Company, Admin]

_STATUS_TRANSITIONS: dict[AccountStatus, set[AccountStatus]] = {
    AccountStatus.ACTIVE: {AccountStatus.VERIFIED, AccountStatus.SUSPENDED, AccountStatus.DELETED},
    AccountStatus.VERIFIED: {AccountStatus.ACTIVE, AccountStatus.SUSPENDED, AccountStatus.DELETED},
    AccountStatus.SUSPENDED: {AccountStatus.ACTIVE, AccountStatus.DELETED},
    AccountStatus.DELETED: set(),
}

# Statuses under which a user's activity rows are purged
_PURGING_STATUSES = {AccountStatus.SUSPENDED, AccountStatus.DELETED}

USABLE_STATUSES = frozenset({AccountStatus.ACTIVE, AccountStatus.VERIFIED})


def validate_role_attributes(role: UserRole, attributes: Optional[dict[str, Any]]) -> dict[str, Any]:
    """Validate the role-specific attribute bag against the role's schema."""
    schema = ROLE_ATTRIBUTE_SCHEMAS[role]
    try:
        return schema.model_validate(attributes or {}).model_dump()
    except PydanticValidationError as exc:
        raise InvalidRoleAttributes(
            f"Invalid attributes for role {role.value}",
            role=role.value,
            errors=[{"loc": list(e["loc"]), "msg": e["msg"]} for e in exc.errors()],
        ) from exc


def create_user(
    db: Session,
    profile: UserProfileIn,
    role: Union[UserRole, str],
    role_attributes: Optional[dict[str, Any]] = None,
) -> RoleProfile:
    """Register a user together with its role profile in one commit."""
    role = coerce_enum(UserRole, role, "role")
    attributes = validate_role_attributes(role, role_attributes)
    email = normalize_email(profile.email)

    if db.query(User.id).filter(User.email == email).first():
        raise DuplicateEmail(f"Email already registered: {email}", email=email)

    profile_cls = ROLE_PROFILE_CLASSES[role]
    user = profile_cls(
        email=email,
        password_hash=hash_password(profile.password),
        first_name=profile.first_name.strip(),
        last_name=profile.last_name.strip(),
        status=AccountStatus.ACTIVE,
        login_history=[],
        **attributes,
    )
    db.add(user)
    try:
        db.commit()
    except IntegrityError as exc:
        # A concurrent registration won the unique email index
        db.rollback()
        raise DuplicateEmail(f"Email already registered: {email}", email=email) from exc
    db.refresh(user)
    logger.info("Created %s user %s (%s)", role.value, user.id, email)
    return user


def get_user(db: Session, user_id: str) -> RoleProfile:
    user = db.get(User, user_id)
    if user is None:
        raise NotFound(f"User not found: {user_id}", user_id=user_id)
    return user


def require_usable_user(db: Session, user_id: str) -> RoleProfile:
    """Fetch a user that may still act on the platform (not suspended or deleted)."""
    user = get_user(db, user_id)
    if user.status not in USABLE_STATUSES:
        raise PermissionDenied(f"User {user_id} is {user.status.value}", user_id=user_id)
    return user


def get_role_profile(db: Session, user_id: str) -> RoleProfile:
    """Return the user's role profile; its concrete class is the role tag."""
    return get_user(db, user_id)


def set_account_status(db: Session, user_id: str, status: Union[AccountStatus, str]) -> RoleProfile:
    """Move a user to a new account status.

    Suspending or deleting removes the user's participation, engagement and
    notification rows in the same transaction and recounts the counters of
    every event they had liked or saved. Events they created stay.
    """
    target = coerce_enum(AccountStatus, status, "status")
    user = get_user(db, user_id)
    current = user.status
    if target == current:
        db.commit()
        return user
    if target not in _STATUS_TRANSITIONS[current]:
        raise InvalidTransition(
            f"Cannot move account from {current.value} to {target.value}",
            user_id=user_id, from_status=current.value, to_status=target.value,
        )

    user.status = target
    if target in _PURGING_STATUSES:
        _purge_user_activity(db, user_id)
    db.commit()
    db.refresh(user)
    logger.info("User %s status %s -> %s", user_id, current.value, target.value)
    return user


def _purge_user_activity(db: Session, user_id: str) -> None:
    touched = {
        event_id
        for (event_id,) in db.query(LikedEvent.event_id).filter(
            LikedEvent.user_id == user_id, LikedEvent.is_external.is_(False),
        )
    }
    touched |= {event_id for (event_id,) in db.query(SavedEvent.event_id).filter(SavedEvent.user_id == user_id)}

    for model in (LikedEvent, SavedEvent, SavedPost, EventParticipation, Notification):
        db.execute(delete(model).where(model.user_id == user_id).execution_options(synchronize_session=False))
    recount_event_counters(db, touched)
    logger.info("Purged activity for user %s (%d events recounted)", user_id, len(touched))


def record_login(db: Session, user_id: str, ip_address: Optional[str] = None) -> RoleProfile:
    """Append one entry to the user's login history."""
    # Locked so concurrent logins append rather than overwrite each other
    user = db.query(User).filter(User.id == user_id).with_for_update().populate_existing().first()
    if user is None:
        raise NotFound(f"User not found: {user_id}", user_id=user_id)
    entry = {"at": utcnow().isoformat(), "ip": ip_address}
    user.login_history = [*(user.login_history or []), entry]
    db.commit()
    db.refresh(user)
    return user


def authenticate(db: Session, email: str, password: str, ip_address: Optional[str] = None) -> RoleProfile:
    """Check credentials and record the login."""
    user = db.query(User).filter(User.email == normalize_email(email)).first()
    if user is None or not verify_password(user.password_hash, password):
        raise AuthenticationFailed("Invalid email or password")
    if user.status not in USABLE_STATUSES:
        raise PermissionDenied(f"Account is {user.status.value}", user_id=user.id)
    return record_login(db, user.id, ip_address)
