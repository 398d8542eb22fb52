"""Tests for the maintenance jobs the scheduler runs."""
from datetime import timedelta

from sqlalchemy import update

from hub.core.clock import utcnow
from hub.jobs.maintenance_jobs import run_complete_elapsed_job, run_reconcile_job
from hub.models.event import Event, EventStatus
from hub.services import engagement_service, event_service
from conftest import make_user, make_event


class TestMaintenanceJobs:
    """Each job opens and closes its own session."""

    def test_reconcile_job(self, db, session_factory):
        organizer = make_user(db, "UNIVERSITY")
        event = make_event(db, organizer)
        engagement_service.like_event(db, make_user(db).id, event.id)
        db.execute(update(Event).where(Event.id == event.id).values(like_count=7))
        db.commit()
        event_id = event.id
        db.close()

        assert run_reconcile_job(session_factory) == 1
        assert run_reconcile_job(session_factory) == 0
        check = session_factory()
        try:
            assert check.get(Event, event_id).like_count == 1
        finally:
            check.close()

    def test_complete_elapsed_job(self, db, session_factory):
        organizer = make_user(db, "UNIVERSITY")
        event = make_event(db, organizer)
        event_service.activate_event(db, event.id, organizer.id)
        db.execute(
            update(Event).where(Event.id == event.id).values(end_date=utcnow() - timedelta(minutes=5))
        )
        db.commit()
        event_id = event.id
        db.close()

        assert run_complete_elapsed_job(session_factory) == 1
        check = session_factory()
        try:
            assert check.get(Event, event_id).status == EventStatus.COMPLETED
        finally:
            check.close()
