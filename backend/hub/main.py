"""FastAPI application entry point."""
import logging
from contextlib import asynccontextmanager

from apscheduler.schedulers.background import BackgroundScheduler
from fastapi import FastAPI, Request
from fastapi.middleware.cors import CORSMiddleware
from fastapi.responses import JSONResponse

from hub.config import settings
from hub.core.errors import HubError, hub_error_to_http
from hub.database import Base, engine
from hub.jobs.maintenance_jobs import (
    COMPLETE_ELAPSED_JOB_ID, RECONCILE_JOB_ID, run_complete_elapsed_job, run_reconcile_job,
)
from hub.routers import users, events, participation, engagement, subscriptions, notifications

# Import all models so Base.metadata knows about them
import hub.models  # noqa: F401

logging.basicConfig(
    level=getattr(logging, settings.LOG_LEVEL.upper(), logging.INFO),
    format="%(asctime)s %(levelname)s %(name)s: %(message)s",
)
logger = logging.getLogger(__name__)


def _start_scheduler() -> BackgroundScheduler:
    scheduler = BackgroundScheduler()
    scheduler.add_job(
        run_reconcile_job, "interval", minutes=settings.RECONCILE_INTERVAL_MINUTES, id=RECONCILE_JOB_ID,
    )
    scheduler.add_job(
        run_complete_elapsed_job, "interval", minutes=settings.RECONCILE_INTERVAL_MINUTES, id=COMPLETE_ELAPSED_JOB_ID,
    )
    scheduler.start()
    logger.info("Scheduler started: maintenance every %d minutes", settings.RECONCILE_INTERVAL_MINUTES)
    return scheduler


@asynccontextmanager
async def lifespan(app: FastAPI):
    # Create tables on startup for SQLite dev mode
    if settings.DATABASE_URL.startswith("sqlite"):
        Base.metadata.create_all(bind=engine)
    scheduler = _start_scheduler() if settings.ENABLE_SCHEDULER else None
    app.state.scheduler = scheduler
    yield
    if scheduler is not None:
        scheduler.shutdown(wait=False)


app = FastAPI(
    title="Hub Core",
    description="Identity, events, participation, engagement, billing and notifications for the community hub",
    version="0.1.0",
    lifespan=lifespan,
)

# CORS
app.add_middleware(
    CORSMiddleware,
    allow_origins=settings.CORS_ORIGINS.split(","),
    allow_credentials=True,
    allow_methods=["*"],
    allow_headers=["*"],
)


@app.exception_handler(HubError)
async def handle_hub_error(request: Request, exc: HubError):
    http_exc = hub_error_to_http(exc)
    if http_exc.status_code >= 500:
        logger.warning("%s %s failed: %s", request.method, request.url.path, exc.message)
    return JSONResponse(status_code=http_exc.status_code, content={"detail": http_exc.detail}, headers=http_exc.headers)


# Register routers
app.include_router(users.router, prefix="/api/users", tags=["Users"])
app.include_router(events.router, prefix="/api/events", tags=["Events"])
app.include_router(participation.router, prefix="/api/events", tags=["Participation"])
app.include_router(engagement.router, prefix="/api/engagement", tags=["Engagement"])
app.include_router(subscriptions.router, prefix="/api/subscriptions", tags=["Subscriptions"])
app.include_router(notifications.router, prefix="/api/notifications", tags=["Notifications"])


@app.get("/api/health")
def health_check():
    return {"status": "ok"}
