"""
Periodic maintenance: recount drifted like/save counters and complete events
whose end date has passed. Each run opens its own session.
"""
import logging
from typing import Callable, Optional

from sqlalchemy.orm import Session

from hub.database import SessionLocal
from hub.services import engagement_service, event_service

logger = logging.getLogger(__name__)

RECONCILE_JOB_ID = "reconcile_counters"
COMPLETE_ELAPSED_JOB_ID = "complete_elapsed_events"


def run_reconcile_job(session_factory: Optional[Callable[[], Session]] = None) -> int:
    db = (session_factory or SessionLocal)()
    try:
        corrections = engagement_service.reconcile_counters(db)
        if corrections:
            logger.info("Reconcile job corrected %d event(s)", len(corrections))
        return len(corrections)
    except Exception:
        db.rollback()
        logger.exception("Reconcile job failed")
        raise
    finally:
        db.close()


def run_complete_elapsed_job(session_factory: Optional[Callable[[], Session]] = None) -> int:
    db = (session_factory or SessionLocal)()
    try:
        return len(event_service.complete_elapsed_events(db))
    except Exception:
        db.rollback()
        logger.exception("Complete-elapsed job failed")
        raise
    finally:
        db.close()
