"""Pytest fixtures — per-test SQLite database for fast, isolated tests."""
from datetime import datetime, timezone, timedelta
import pytest
from sqlalchemy import create_engine, event
from sqlalchemy.orm import sessionmaker
from fastapi.testclient import TestClient

from scheduling.database import Base, get_db
from scheduling.main import app
from scheduling.services import event_service
from scheduling.services.messaging import get_gateway

# Import all models so they register with Base.metadata
from scheduling.models.community import Community              # noqa: F401
from scheduling.models.identity import Identity                # noqa: F401
from scheduling.models.event import Event                      # noqa: F401
from scheduling.models.participant import Participant          # noqa: F401
from scheduling.models.response_history import ResponseHistory  # noqa: F401
from scheduling.models.audit_log import AuditLogEntry          # noqa: F401

SQLITE_URL = "sqlite:///./test.db"

COMMUNITY = "guild-1"
ORGANIZER = "org-1"
# 15.01.2030 20:00 Europe/Berlin is 19:00 UTC
EVENT_DATE = "15.01.2030"
EVENT_TIME = "20:00"
EVENT_START_UTC = datetime(2030, 1, 15, 19, 0, tzinfo=timezone.utc)
T0 = datetime(2030, 1, 1, 12, 0, tzinfo=timezone.utc)


class RecordingGateway:
    """Messaging gateway that remembers what was sent; ``unreachable`` users fail."""

    def __init__(self, unreachable=()):
        self.unreachable = set(unreachable)
        self.direct = []
        self.channel = []

    def deliver_direct_message(self, user_id, content):
        if user_id in self.unreachable:
            return False
        self.direct.append((user_id, content))
        return True

    def deliver_channel_message(self, channel_id, content):
        self.channel.append((channel_id, content))
        return f"msg-{len(self.channel)}"

    def recipients(self):
        return [user_id for user_id, _ in self.direct]


@pytest.fixture(scope="function")
def db_engine():
    """Create a fresh SQLite engine for each test."""
    engine = create_engine(SQLITE_URL, connect_args={"check_same_thread": False})

    @event.listens_for(engine, "connect")
    def _set_sqlite_pragma(dbapi_conn, connection_record):
        cursor = dbapi_conn.cursor()
        cursor.execute("PRAGMA journal_mode=WAL")
        cursor.execute("PRAGMA foreign_keys=ON")
        cursor.close()

    Base.metadata.create_all(bind=engine)
    yield engine
    Base.metadata.drop_all(bind=engine)
    engine.dispose()


@pytest.fixture(scope="function")
def db(db_engine):
    """Yield a database session, closed after the test."""
    TestingSession = sessionmaker(autocommit=False, autoflush=False, bind=db_engine)
    session = TestingSession()
    try:
        yield session
    finally:
        session.close()


@pytest.fixture(scope="function")
def gateway():
    return RecordingGateway()


@pytest.fixture(scope="function")
def client(db_engine, gateway):
    """FastAPI TestClient with the database and gateway dependencies overridden."""
    TestingSession = sessionmaker(autocommit=False, autoflush=False, bind=db_engine)

    def _override_get_db():
        session = TestingSession()
        try:
            yield session
        finally:
            session.close()

    app.dependency_overrides[get_db] = _override_get_db
    app.dependency_overrides[get_gateway] = lambda: gateway
    with TestClient(app) as c:
        yield c
    app.dependency_overrides.clear()


# ---------------------------------------------------------------------------
# Helpers
# ---------------------------------------------------------------------------
def hours(n: float) -> timedelta:
    return timedelta(hours=n)


def make_event(
    db,
    invitees=("alice", "bob", "carol"),
    title: str = "Raid Night",
    date: str = EVENT_DATE,
    time: str = EVENT_TIME,
    community_id: str = COMMUNITY,
    organizer_id: str = ORGANIZER,
    now: datetime = T0,
    gateway=None,
    **kwargs,
) -> Event:
    """Helper — create an event through the service layer."""
    return event_service.create_event(
        db,
        community_id=community_id,
        title=title,
        date=date,
        time=time,
        organizer_id=organizer_id,
        invitees=list(invitees),
        gateway=gateway,
        now=now,
        **kwargs,
    )


def create_test_event(client: TestClient, invitees=("alice", "bob"), title: str = "Raid Night", **extra) -> dict:
    """Helper — POST /api/events and return response JSON."""
    payload = {
        "community_id": COMMUNITY,
        "community_name": "Test Guild",
        "title": title,
        "date": EVENT_DATE,
        "time": EVENT_TIME,
        "organizer_id": ORGANIZER,
        "organizer_name": "Organizer",
        "invitees": [{"user_id": uid, "username": uid.capitalize()} for uid in invitees],
    }
    payload.update(extra)
    resp = client.post("/api/events/", json=payload)
    assert resp.status_code == 201, resp.text
    return resp.json()
