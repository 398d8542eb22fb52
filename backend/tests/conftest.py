"""Pytest fixtures — file-backed SQLite database, recreated for every test."""
import os

# Must be set before hub.config is imported
os.environ["DATABASE_URL"] = "sqlite:///./test_hub.db"
os.environ["PASSWORD_HASH_TIME_COST"] = "1"
os.environ["PASSWORD_HASH_MEMORY_COST"] = "1024"
os.environ["PASSWORD_HASH_PARALLELISM"] = "1"
os.environ["ENABLE_SCHEDULER"] = "false"

from datetime import timedelta
from typing import Optional

import pytest
from sqlalchemy import create_engine
from sqlalchemy.orm import sessionmaker
from fastapi.testclient import TestClient

from hub.core.clock import utcnow
from hub.database import Base, configure_sqlite, get_db
from hub.main import app
from hub.schemas.user import UserProfileIn
from hub.services import event_service, identity_service
from hub.services.document_store import get_document_store

# Import all models so they register with Base.metadata
import hub.models  # noqa: F401

SQLITE_URL = "sqlite:///./test_hub.db"

DEFAULT_ROLE_ATTRIBUTES = {
    "STUDENT": {"university_name": "State University", "specialization": "Computer Science"},
    "UNIVERSITY": {"institution_name": "State University"},
    "COMPANY": {"company_name": "Acme Corp", "industry": "Software"},
    "ADMIN": {"department": "Trust & Safety"},
}


class FakeDocumentStore:
    """In-memory stand-in for the document store: id -> summary dict."""

    def __init__(self, documents: Optional[dict] = None):
        self.documents = dict(documents or {})
        self.error: Optional[Exception] = None
        self.calls: list[str] = []

    def exists(self, document_id: str) -> bool:
        self.calls.append(document_id)
        if self.error is not None:
            raise self.error
        return document_id in self.documents

    def get_summary(self, document_id: str) -> Optional[dict]:
        if self.error is not None:
            raise self.error
        return self.documents.get(document_id)


@pytest.fixture(scope="function")
def db_engine():
    """Create a fresh SQLite engine for each test."""
    engine = create_engine(SQLITE_URL, connect_args={"check_same_thread": False, "timeout": 30})
    configure_sqlite(engine)
    Base.metadata.drop_all(bind=engine)
    Base.metadata.create_all(bind=engine)
    yield engine
    Base.metadata.drop_all(bind=engine)
    engine.dispose()


@pytest.fixture(scope="function")
def session_factory(db_engine):
    return sessionmaker(autocommit=False, autoflush=False, bind=db_engine)


@pytest.fixture(scope="function")
def db(session_factory):
    """Yield a database session.

    Every transaction on the test engine takes the write lock, so a test that
    mixes this session with the client or with threads must commit or close
    it first.
    """
    session = session_factory()
    try:
        yield session
    finally:
        session.close()


@pytest.fixture(scope="function")
def doc_store():
    return FakeDocumentStore({
        "post-1": {"title": "Resume tips", "author": "career-center"},
        "post-2": {"title": "Internship season", "author": "acme"},
        "ext-event-1": {"title": "City Hackathon", "source": "partner-feed"},
    })


@pytest.fixture(scope="function")
def client(session_factory, doc_store):
    """FastAPI TestClient with the database and document store overridden."""

    def _override_get_db():
        session = session_factory()
        try:
            yield session
        finally:
            session.close()

    app.dependency_overrides[get_db] = _override_get_db
    app.dependency_overrides[get_document_store] = lambda: doc_store
    with TestClient(app) as c:
        yield c
    app.dependency_overrides.clear()


# ---------------------------------------------------------------------------
# Helpers: build rows directly through the services
# ---------------------------------------------------------------------------
_counter = {"n": 0}


def make_user(db, role: str = "STUDENT", email: Optional[str] = None, password: str = "s3cret-pass", **attrs):
    """Helper — create_user with sensible per-role attributes."""
    _counter["n"] += 1
    profile = UserProfileIn(
        email=email or f"user{_counter['n']}@example.com",
        password=password,
        first_name="Test",
        last_name=f"User{_counter['n']}",
    )
    attributes = {**DEFAULT_ROLE_ATTRIBUTES[role], **attrs}
    return identity_service.create_user(db, profile, role, attributes)


def make_event(db, creator, name: str = "Career Fair", starts_in: timedelta = timedelta(days=7),
               duration: timedelta = timedelta(hours=4), **kwargs):
    """Helper — a PENDING event starting `starts_in` from now."""
    start = utcnow() + starts_in
    return event_service.create_event(
        db, creator.id, name=name, start_date=start, end_date=start + duration, **kwargs,
    )


# ---------------------------------------------------------------------------
# Helpers: the same through the API
# ---------------------------------------------------------------------------
def create_test_user(client: TestClient, email: str, role: str = "STUDENT",
                     role_attributes: Optional[dict] = None, password: str = "s3cret-pass") -> dict:
    """Helper — POST /api/users and return response JSON."""
    resp = client.post("/api/users/", json={
        "email": email,
        "password": password,
        "first_name": email.split("@")[0].capitalize(),
        "last_name": "Tester",
        "role": role,
        "role_attributes": DEFAULT_ROLE_ATTRIBUTES[role] if role_attributes is None else role_attributes,
    })
    assert resp.status_code == 201, resp.text
    return resp.json()


def create_test_event(client: TestClient, creator_id: str, name: str = "Career Fair",
                      starts_in: timedelta = timedelta(days=7), **extra) -> dict:
    """Helper — POST /api/events and return response JSON."""
    start = utcnow() + starts_in
    payload = {
        "name": name,
        "start_date": start.isoformat(),
        "end_date": (start + timedelta(hours=4)).isoformat(),
        **extra,
    }
    resp = client.post("/api/events/", params={"actor_user_id": creator_id}, json=payload)
    assert resp.status_code == 201, resp.text
    return resp.json()
