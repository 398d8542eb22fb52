"""Tests for the identity & role store.

Covers:
- User + role profile created together, one profile row per user
- Case-normalized duplicate email rejection
- Per-role attribute validation
- Account status machine and the purge on suspend/delete
- Login history and authentication
"""
from concurrent.futures import ThreadPoolExecutor

import pytest
from sqlalchemy import func

from hub.core.errors import (
    AuthenticationFailed, DuplicateEmail, InvalidRoleAttributes, InvalidTransition, NotFound, PermissionDenied,
    ValidationError,
)
from hub.models.engagement import LikedEvent, SavedEvent, SavedPost
from hub.models.event import Event
from hub.models.notification import Notification
from hub.models.participation import EventParticipation
from hub.schemas.user import UserProfileIn
from hub.models.user import User, Student, University, Company, Admin, AccountStatus
from hub.services import engagement_service, identity_service, notification_service, participation_service
from conftest import make_user, make_event, create_test_user

PROFILE_TABLES = (Student, University, Company, Admin)


def _profile_rows(db, user_id):
    return sum(
        db.query(func.count(cls.__table__.c.id)).filter(cls.__table__.c.id == user_id).scalar()
        for cls in PROFILE_TABLES
    )


class TestCreateUser:
    """User and role-profile creation."""

    def test_create_student(self, db):
        user = make_user(db, "STUDENT", email="alice@example.com", graduation_year=2027)
        assert isinstance(user, Student)
        assert user.role.value == "STUDENT"
        assert user.status == AccountStatus.ACTIVE
        assert user.university_name == "State University"
        assert user.graduation_year == 2027
        assert _profile_rows(db, user.id) == 1

    @pytest.mark.parametrize("role,cls", [
        ("STUDENT", Student), ("UNIVERSITY", University), ("COMPANY", Company), ("ADMIN", Admin),
    ])
    def test_exactly_one_profile_per_role(self, db, role, cls):
        user = make_user(db, role)
        assert isinstance(user, cls)
        loaded = identity_service.get_role_profile(db, user.id)
        assert type(loaded) is cls
        assert _profile_rows(db, user.id) == 1

    def test_email_is_normalized(self, db):
        user = make_user(db, email="  Bob@Example.COM ")
        assert user.email == "bob@example.com"

    def test_duplicate_email_case_insensitive(self, db):
        make_user(db, email="carol@example.com")
        with pytest.raises(DuplicateEmail):
            make_user(db, email="CAROL@example.com")
        assert db.query(func.count(User.id)).scalar() == 1

    def test_password_is_hashed(self, db):
        user = make_user(db, password="correct horse")
        assert user.password_hash != "correct horse"
        assert user.password_hash.startswith("$argon2")

    def test_unknown_role_attribute_rejected(self, db):
        with pytest.raises(InvalidRoleAttributes):
            make_user(db, "STUDENT", favourite_colour="green")
        assert db.query(func.count(User.id)).scalar() == 0

    def test_missing_required_role_attribute(self, db):
        with pytest.raises(InvalidRoleAttributes):
            make_user(db, "COMPANY", company_name="")

    def test_unknown_role(self, db):
        profile = UserProfileIn(email="x@example.com", password="s3cret-pass", first_name="X", last_name="Y")
        with pytest.raises(ValidationError):
            identity_service.create_user(db, profile, "PROFESSOR")

    def test_get_unknown_user(self, db):
        with pytest.raises(NotFound):
            identity_service.get_role_profile(db, "no-such-user")


class TestAccountStatus:
    """ACTIVE <-> VERIFIED, -> SUSPENDED, SUSPENDED -> ACTIVE, -> DELETED (terminal)."""

    def test_verify_and_back(self, db):
        user = make_user(db)
        assert identity_service.set_account_status(db, user.id, "VERIFIED").status == AccountStatus.VERIFIED
        assert identity_service.set_account_status(db, user.id, "ACTIVE").status == AccountStatus.ACTIVE

    def test_suspend_and_reinstate(self, db):
        user = make_user(db)
        identity_service.set_account_status(db, user.id, AccountStatus.SUSPENDED)
        assert identity_service.set_account_status(db, user.id, "ACTIVE").status == AccountStatus.ACTIVE

    def test_suspended_cannot_be_verified(self, db):
        user = make_user(db)
        identity_service.set_account_status(db, user.id, "SUSPENDED")
        with pytest.raises(InvalidTransition):
            identity_service.set_account_status(db, user.id, "VERIFIED")

    def test_deleted_is_terminal(self, db):
        user = make_user(db)
        identity_service.set_account_status(db, user.id, "DELETED")
        with pytest.raises(InvalidTransition):
            identity_service.set_account_status(db, user.id, "ACTIVE")
        # Soft delete: rows stay
        assert db.get(User, user.id) is not None
        assert _profile_rows(db, user.id) == 1

    def test_same_status_is_noop(self, db):
        user = make_user(db)
        assert identity_service.set_account_status(db, user.id, "ACTIVE").status == AccountStatus.ACTIVE

    def test_suspend_purges_activity_and_recounts(self, db):
        organizer = make_user(db, "UNIVERSITY")
        fan = make_user(db)
        other = make_user(db)
        event = make_event(db, organizer)
        engagement_service.like_event(db, fan.id, event.id)
        engagement_service.like_event(db, other.id, event.id)
        engagement_service.save_event(db, fan.id, event.id)
        participation_service.set_rsvp(db, fan.id, event.id, "GOING")
        notification_service.notify(db, fan.id, "SYSTEM", "IN_APP", {"message": "Welcome"})

        identity_service.set_account_status(db, fan.id, "SUSPENDED")

        db.expire_all()
        event = db.get(Event, event.id)
        assert event.like_count == 1
        assert event.save_count == 0
        for model in (LikedEvent, SavedEvent, EventParticipation, Notification):
            assert db.query(model).filter(model.user_id == fan.id).count() == 0
        # The organizer's EVENT_LIKED notifications are theirs to keep
        assert db.query(Notification).filter(Notification.user_id == organizer.id).count() == 2

    def test_suspended_user_cannot_create_events(self, db):
        user = make_user(db, "COMPANY")
        identity_service.set_account_status(db, user.id, "SUSPENDED")
        with pytest.raises(PermissionDenied):
            make_event(db, user)

    @pytest.mark.parametrize("status", ["SUSPENDED", "DELETED"])
    def test_purged_user_cannot_recreate_activity(self, db, doc_store, status):
        organizer = make_user(db, "UNIVERSITY")
        user = make_user(db)
        event = make_event(db, organizer)
        participation_service.set_registration(db, user.id, event.id, "REGISTERED")
        identity_service.set_account_status(db, user.id, status)

        with pytest.raises(PermissionDenied):
            engagement_service.like_event(db, user.id, event.id)
        with pytest.raises(PermissionDenied):
            engagement_service.save_event(db, user.id, event.id)
        with pytest.raises(PermissionDenied):
            engagement_service.save_post(db, user.id, "post-1", doc_store)
        with pytest.raises(PermissionDenied):
            participation_service.set_rsvp(db, user.id, event.id, "GOING")
        with pytest.raises(PermissionDenied):
            participation_service.set_registration(db, user.id, event.id, "REGISTERED")
        with pytest.raises(PermissionDenied):
            participation_service.check_in(db, user.id, event.id)
        with pytest.raises(PermissionDenied):
            participation_service.record_feedback(db, user.id, event.id, 4)
        db.rollback()

        db.expire_all()
        assert db.get(Event, event.id).like_count == 0
        assert db.get(Event, event.id).save_count == 0
        for model in (LikedEvent, SavedEvent, SavedPost, EventParticipation):
            assert db.query(model).filter(model.user_id == user.id).count() == 0


class TestAuthentication:
    """Credential checks and login history."""

    def test_record_login_appends(self, db):
        user = make_user(db)
        identity_service.record_login(db, user.id, "10.0.0.1")
        identity_service.record_login(db, user.id, "10.0.0.2")
        history = db.get(User, user.id).login_history
        assert [entry["ip"] for entry in history] == ["10.0.0.1", "10.0.0.2"]

    def test_concurrent_logins_keep_every_entry(self, db, session_factory):
        user_id = make_user(db).id
        db.close()

        def login(n):
            session = session_factory()
            try:
                identity_service.record_login(session, user_id, f"10.0.1.{n}")
            finally:
                session.close()

        with ThreadPoolExecutor(max_workers=6) as pool:
            list(pool.map(login, range(6)))

        check = session_factory()
        try:
            ips = sorted(entry["ip"] for entry in check.get(User, user_id).login_history)
        finally:
            check.close()
        assert ips == sorted(f"10.0.1.{n}" for n in range(6))

    def test_authenticate_success(self, db):
        user = make_user(db, email="dave@example.com", password="hunter2hunter2")
        authed = identity_service.authenticate(db, "DAVE@example.com", "hunter2hunter2", "127.0.0.1")
        assert authed.id == user.id
        assert len(authed.login_history) == 1

    def test_authenticate_wrong_password(self, db):
        make_user(db, email="erin@example.com", password="hunter2hunter2")
        with pytest.raises(AuthenticationFailed):
            identity_service.authenticate(db, "erin@example.com", "wrong-password")

    def test_authenticate_unknown_email(self, db):
        with pytest.raises(AuthenticationFailed):
            identity_service.authenticate(db, "nobody@example.com", "whatever1")

    def test_authenticate_suspended(self, db):
        user = make_user(db, email="frank@example.com", password="hunter2hunter2")
        identity_service.set_account_status(db, user.id, "SUSPENDED")
        with pytest.raises(PermissionDenied):
            identity_service.authenticate(db, "frank@example.com", "hunter2hunter2")


class TestUserAPI:
    """User endpoints and error mapping."""

    def test_create_and_fetch(self, client):
        user = create_test_user(client, "grace@example.com", "UNIVERSITY", {"institution_name": "Tech Institute"})
        assert user["role"] == "UNIVERSITY"
        assert "password_hash" not in user

        resp = client.get(f"/api/users/{user['id']}/profile")
        assert resp.status_code == 200
        body = resp.json()
        assert body["role"] == "UNIVERSITY"
        assert body["attributes"]["institution_name"] == "Tech Institute"

    def test_duplicate_email_409(self, client):
        create_test_user(client, "heidi@example.com")
        resp = client.post("/api/users/", json={
            "email": "Heidi@Example.com",
            "password": "s3cret-pass",
            "first_name": "Heidi",
            "last_name": "Again",
            "role": "STUDENT",
        })
        assert resp.status_code == 409
        assert resp.json()["detail"]["code"] == "duplicate_email"

    def test_invalid_role_attributes_422(self, client):
        resp = client.post("/api/users/", json={
            "email": "ivan@example.com",
            "password": "s3cret-pass",
            "first_name": "Ivan",
            "last_name": "Tester",
            "role": "COMPANY",
            "role_attributes": {"company_name": "Initech", "stock_ticker": "INTC"},
        })
        assert resp.status_code == 422
        assert resp.json()["detail"]["code"] == "invalid_role_attributes"

    def test_get_missing_user_404(self, client):
        resp = client.get("/api/users/does-not-exist")
        assert resp.status_code == 404
        assert resp.json()["detail"]["code"] == "not_found"

    def test_login(self, client):
        create_test_user(client, "judy@example.com", password="open-sesame")
        assert client.post("/api/users/login", json={
            "email": "judy@example.com", "password": "open-sesame",
        }).status_code == 200
        resp = client.post("/api/users/login", json={"email": "judy@example.com", "password": "nope-nope"})
        assert resp.status_code == 401

    def test_status_change(self, client):
        user = create_test_user(client, "kim@example.com")
        resp = client.post(f"/api/users/{user['id']}/status", json={"status": "DELETED"})
        assert resp.status_code == 200
        assert resp.json()["status"] == "DELETED"
        resp = client.post(f"/api/users/{user['id']}/status", json={"status": "ACTIVE"})
        assert resp.status_code == 409
