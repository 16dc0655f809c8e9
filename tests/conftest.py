"""Shared test fixtures."""

from datetime import date, timedelta
from uuid import uuid4

import pytest
from fastapi.testclient import TestClient
from sqlmodel import Session, SQLModel, create_engine
from sqlmodel.pool import StaticPool

from app.core.database import get_session
from app.core.repository import EventStore
from app.main import app
from app.models import ArchivedEvent, Event


def future(days: int) -> date:
    """A date ``days`` from today, safely past the scheduling rules."""
    return date.today() + timedelta(days=days)


@pytest.fixture(name="engine")
def engine_fixture():
    """Create an in-memory SQLite database for testing."""
    engine = create_engine(
        "sqlite://",
        connect_args={"check_same_thread": False},
        poolclass=StaticPool,
    )
    SQLModel.metadata.create_all(engine)
    yield engine
    SQLModel.metadata.drop_all(engine)


@pytest.fixture(name="session")
def session_fixture(engine):
    """Create a new database session for each test."""
    with Session(engine) as session:
        yield session


@pytest.fixture(name="store")
def store_fixture(session: Session) -> EventStore:
    """Event store bound to the test session."""
    return EventStore(session)


@pytest.fixture(name="client")
def client_fixture(session: Session):
    """Create a test client with the test database session."""

    def get_session_override():
        return session

    app.dependency_overrides[get_session] = get_session_override
    client = TestClient(app)
    yield client
    app.dependency_overrides.clear()


@pytest.fixture(name="make_event")
def make_event_fixture(store: EventStore):
    """Factory committing an active event; keyword arguments override defaults."""

    def make(**fields) -> Event:
        data = {"title": "Lecture", "date": future(7), "time": "10:00"}
        data.update(fields)
        with store.transaction():
            return store.active.create(data)

    return make


@pytest.fixture(name="make_archived")
def make_archived_fixture(store: EventStore):
    """Factory committing an archived event row."""

    def make(**fields) -> ArchivedEvent:
        data = {"title": "Lecture", "date": future(7), "time": "10:00", "archived": True}
        data.update(fields)
        with store.transaction():
            return store.archived.create(data)

    return make


@pytest.fixture(name="weekly_series")
def weekly_series_fixture(make_event, make_archived):
    """Four weekly lectures linked by series_id; the third one is archived."""
    main_id = uuid4()
    first = make_event(id=main_id, series_id=main_id, date=future(7))
    second = make_event(series_id=main_id, date=future(14))
    third = make_archived(series_id=main_id, date=future(21), original_event_id=uuid4())
    fourth = make_event(series_id=main_id, date=future(28))
    return {"main_id": main_id, "active": [first, second, fourth], "archived": [third]}


@pytest.fixture(name="sample_event")
def sample_event_fixture(make_event) -> Event:
    """A one-off timed event."""
    return make_event(title="Office Hours", time="14:30", description="Room 204")
