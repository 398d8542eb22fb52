"""Tests for the participation ledger.

Covers:
- RSVP and registration as independent axes on one row
- Registration transitions, capacity routing to WAITLISTED, waitlist promotion
- Check-in and feedback rules
"""
from concurrent.futures import ThreadPoolExecutor

import pytest

from hub.core.errors import InvalidRating, InvalidTransition, ValidationError
from hub.models.notification import Notification, NotificationType
from hub.models.participation import EventParticipation, RSVPStatus, RegistrationStatus
from hub.services import event_service, participation_service
from conftest import make_user, make_event, create_test_user, create_test_event


@pytest.fixture
def setup(db):
    organizer = make_user(db, "UNIVERSITY")
    student = make_user(db)
    event = make_event(db, organizer)
    return organizer, student, event


class TestRsvpAndRegistration:
    """The two axes stay independent."""

    def test_rsvp_creates_single_row(self, db, setup):
        _, student, event = setup
        participation_service.set_rsvp(db, student.id, event.id, "MAYBE")
        row = participation_service.set_rsvp(db, student.id, event.id, "GOING")
        assert row.rsvp_status == RSVPStatus.GOING
        assert row.registration_status is None
        assert db.query(EventParticipation).count() == 1

    def test_registration_leaves_rsvp_alone(self, db, setup):
        _, student, event = setup
        participation_service.set_rsvp(db, student.id, event.id, "NOT_GOING")
        row = participation_service.set_registration(db, student.id, event.id, "REGISTERED")
        assert row.registration_status == RegistrationStatus.REGISTERED
        assert row.rsvp_status == RSVPStatus.NOT_GOING
        assert row.registered_at is not None

    def test_pending_then_registered(self, db, setup):
        _, student, event = setup
        participation_service.set_registration(db, student.id, event.id, "PENDING")
        row = participation_service.set_registration(db, student.id, event.id, "REGISTERED")
        assert row.registration_status == RegistrationStatus.REGISTERED

    def test_same_status_is_noop(self, db, setup):
        _, student, event = setup
        first = participation_service.set_registration(db, student.id, event.id, "REGISTERED")
        registered_at = first.registered_at
        again = participation_service.set_registration(db, student.id, event.id, "REGISTERED")
        assert again.registered_at == registered_at

    def test_registered_cannot_go_back_to_pending(self, db, setup):
        _, student, event = setup
        participation_service.set_registration(db, student.id, event.id, "REGISTERED")
        with pytest.raises(InvalidTransition):
            participation_service.set_registration(db, student.id, event.id, "PENDING")

    def test_cannot_request_waitlist_directly(self, db, setup):
        _, student, event = setup
        with pytest.raises(InvalidTransition):
            participation_service.set_registration(db, student.id, event.id, "WAITLISTED")
        db.rollback()
        assert db.query(EventParticipation).count() == 0

    def test_canceled_can_reregister(self, db, setup):
        _, student, event = setup
        participation_service.set_registration(db, student.id, event.id, "REGISTERED")
        participation_service.set_registration(db, student.id, event.id, "CANCELED")
        row = participation_service.set_registration(db, student.id, event.id, "REGISTERED")
        assert row.registration_status == RegistrationStatus.REGISTERED

    def test_closed_event_rejects_registration(self, db, setup):
        organizer, student, event = setup
        event_service.cancel_event(db, event.id, organizer.id)
        with pytest.raises(InvalidTransition):
            participation_service.set_registration(db, student.id, event.id, "REGISTERED")
        with pytest.raises(InvalidTransition):
            participation_service.set_rsvp(db, student.id, event.id, "GOING")

    def test_invalid_status_string(self, db, setup):
        _, student, event = setup
        with pytest.raises(ValidationError):
            participation_service.set_rsvp(db, student.id, event.id, "PROBABLY")


class TestCapacity:
    """Capacity routing and the waitlist."""

    def test_101st_registration_is_waitlisted(self, db):
        organizer = make_user(db, "UNIVERSITY")
        event = make_event(db, organizer, capacity=100)
        students = [make_user(db) for _ in range(101)]
        statuses = [
            participation_service.set_registration(db, s.id, event.id, "REGISTERED").registration_status
            for s in students
        ]
        assert statuses[:100] == [RegistrationStatus.REGISTERED] * 100
        assert statuses[100] == RegistrationStatus.WAITLISTED
        assert participation_service._registered_count(db, event.id) == 100

    def test_cancel_promotes_oldest_waitlisted(self, db):
        organizer = make_user(db, "UNIVERSITY")
        event = make_event(db, organizer, capacity=1)
        first, second, third = make_user(db), make_user(db), make_user(db)
        participation_service.set_registration(db, first.id, event.id, "REGISTERED")
        participation_service.set_registration(db, second.id, event.id, "REGISTERED")
        participation_service.set_registration(db, third.id, event.id, "REGISTERED")

        participation_service.set_registration(db, first.id, event.id, "CANCELED")

        db.expire_all()
        assert participation_service.get_participation(db, second.id, event.id).registration_status \
            == RegistrationStatus.REGISTERED
        assert participation_service.get_participation(db, third.id, event.id).registration_status \
            == RegistrationStatus.WAITLISTED
        confirmations = db.query(Notification).filter(
            Notification.user_id == second.id,
            Notification.type == NotificationType.REGISTRATION_CONFIRMED,
        ).all()
        assert len(confirmations) == 1
        assert confirmations[0].event_id == event.id

    def test_unbounded_capacity(self, db):
        organizer = make_user(db, "UNIVERSITY")
        event = make_event(db, organizer)
        for _ in range(5):
            student = make_user(db)
            row = participation_service.set_registration(db, student.id, event.id, "REGISTERED")
            assert row.registration_status == RegistrationStatus.REGISTERED

    def test_concurrent_registrations_never_overbook(self, db, session_factory):
        organizer = make_user(db, "UNIVERSITY")
        event_id = make_event(db, organizer, capacity=3).id
        student_ids = [make_user(db).id for _ in range(7)]
        # Release this session's write lock before the workers start
        db.close()

        def register(student_id):
            session = session_factory()
            try:
                row = participation_service.set_registration(session, student_id, event_id, "REGISTERED")
                return row.registration_status
            finally:
                session.close()

        with ThreadPoolExecutor(max_workers=7) as pool:
            results = list(pool.map(register, student_ids))

        assert results.count(RegistrationStatus.REGISTERED) == 3
        assert results.count(RegistrationStatus.WAITLISTED) == 4
        check = session_factory()
        try:
            assert participation_service._registered_count(check, event_id) == 3
        finally:
            check.close()


class TestCheckInAndFeedback:
    """Check-in requires REGISTERED; ratings are 1-5."""

    def test_check_in_requires_registration(self, db, setup):
        _, student, event = setup
        participation_service.set_rsvp(db, student.id, event.id, "GOING")
        with pytest.raises(InvalidTransition):
            participation_service.check_in(db, student.id, event.id)

    def test_check_in_is_idempotent(self, db, setup):
        _, student, event = setup
        participation_service.set_registration(db, student.id, event.id, "REGISTERED")
        first = participation_service.check_in(db, student.id, event.id).check_in_time
        second = participation_service.check_in(db, student.id, event.id).check_in_time
        assert first is not None
        assert second == first

    def test_concurrent_check_ins_keep_first_timestamp(self, db, setup, session_factory):
        _, student, event = setup
        participation_service.set_registration(db, student.id, event.id, "REGISTERED")
        student_id, event_id = student.id, event.id
        db.close()

        def check_in(_):
            session = session_factory()
            try:
                return participation_service.check_in(session, student_id, event_id).check_in_time
            finally:
                session.close()

        with ThreadPoolExecutor(max_workers=6) as pool:
            stamps = list(pool.map(check_in, range(6)))

        assert stamps[0] is not None
        assert len(set(stamps)) == 1

    @pytest.mark.parametrize("rating", [0, 6, -1, True, 4.5])
    def test_rating_out_of_range(self, db, setup, rating):
        _, student, event = setup
        with pytest.raises(InvalidRating):
            participation_service.record_feedback(db, student.id, event.id, rating, "meh")
        assert db.query(EventParticipation).count() == 0

    def test_feedback_recorded(self, db, setup):
        _, student, event = setup
        row = participation_service.record_feedback(db, student.id, event.id, 5, "Great")
        assert row.rating == 5
        assert row.feedback == "Great"


class TestParticipationAPI:
    """Participation endpoints."""

    def test_flow(self, client):
        organizer = create_test_user(client, "dean@example.com", "UNIVERSITY")
        student = create_test_user(client, "sam@example.com")
        event = create_test_event(client, organizer["id"], capacity=1)
        base = f"/api/events/{event['id']}"

        resp = client.post(f"{base}/rsvp", json={"user_id": student["id"], "status": "GOING"})
        assert resp.status_code == 200
        resp = client.post(f"{base}/registration", json={"user_id": student["id"], "status": "REGISTERED"})
        assert resp.json()["registration_status"] == "REGISTERED"
        resp = client.post(f"{base}/check-in", json={"user_id": student["id"]})
        assert resp.json()["check_in_time"] is not None

        resp = client.get(f"{base}/participants", params={"registration_status": "REGISTERED"})
        assert [p["user_id"] for p in resp.json()] == [student["id"]]

    def test_full_event_waitlists(self, client):
        organizer = create_test_user(client, "dean2@example.com", "UNIVERSITY")
        a = create_test_user(client, "a2@example.com")
        b = create_test_user(client, "b2@example.com")
        event = create_test_event(client, organizer["id"], capacity=1)
        base = f"/api/events/{event['id']}/registration"
        client.post(base, json={"user_id": a["id"], "status": "REGISTERED"})
        resp = client.post(base, json={"user_id": b["id"], "status": "REGISTERED"})
        assert resp.status_code == 200
        assert resp.json()["registration_status"] == "WAITLISTED"

    def test_bad_rating_422(self, client):
        organizer = create_test_user(client, "dean3@example.com", "UNIVERSITY")
        student = create_test_user(client, "s3@example.com")
        event = create_test_event(client, organizer["id"])
        resp = client.post(
            f"/api/events/{event['id']}/feedback", json={"user_id": student["id"], "rating": 9},
        )
        assert resp.status_code == 422
        assert resp.json()["detail"]["code"] == "invalid_rating"
