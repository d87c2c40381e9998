"""Shared test fixtures."""

from datetime import UTC, datetime, timedelta

import pytest
from fastapi.testclient import TestClient
from sqlmodel import Session, SQLModel, create_engine
from sqlmodel.pool import StaticPool

from rollcall.core.config import settings
from rollcall.core.database import get_session
from rollcall.main import app
from rollcall.models import EventConfig, ExcuseLink, ModerationLink
from rollcall.verification.tokens import STATIC_TOKEN, generate_token


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


@pytest.fixture(name="client")
def client_fixture(session: Session):
    """Create a test client with the test database session."""

    def get_session_override():
        return session

    app.dependency_overrides[get_session] = get_session_override
    client = TestClient(app)
    yield client
    app.dependency_overrides.clear()


@pytest.fixture(name="organizer_headers")
def organizer_headers_fixture() -> dict:
    return {"X-Organizer-Key": settings.organizer_api_key}


@pytest.fixture(name="rotating_event")
def rotating_event_fixture(session: Session) -> EventConfig:
    """An active event with a freshly rotated token."""
    now = datetime.now(UTC)
    event = EventConfig(
        name="Rotating Event",
        active=True,
        rotation_enabled=True,
        rotation_interval_seconds=3,
        current_token=generate_token(now),
        token_expires_at=now + timedelta(seconds=30),
        host_device_id="display-1",
        host_lease_expires_at=now + timedelta(seconds=20),
    )
    session.add(event)
    session.commit()
    session.refresh(event)
    return event


@pytest.fixture(name="static_event")
def static_event_fixture(session: Session) -> EventConfig:
    """An active event accepting the fixed static token."""
    event = EventConfig(
        name="Static Event",
        active=True,
        rotation_enabled=False,
        current_token=STATIC_TOKEN,
    )
    session.add(event)
    session.commit()
    session.refresh(event)
    return event


@pytest.fixture(name="geofenced_event")
def geofenced_event_fixture(session: Session) -> EventConfig:
    """A static-token event with a 100m geofence at (40.0, -74.0)."""
    event = EventConfig(
        name="Geofenced Event",
        active=True,
        rotation_enabled=False,
        current_token=STATIC_TOKEN,
        geofence_enabled=True,
        geofence_lat=40.0,
        geofence_lng=-74.0,
        geofence_radius_meters=100,
    )
    session.add(event)
    session.commit()
    session.refresh(event)
    return event


@pytest.fixture(name="permissive_event")
def permissive_event_fixture(session: Session) -> EventConfig:
    """A static-token event that flags repeat identities instead of rejecting."""
    event = EventConfig(
        name="Permissive Event",
        active=True,
        rotation_enabled=False,
        current_token=STATIC_TOKEN,
        identity_collision_strict=False,
    )
    session.add(event)
    session.commit()
    session.refresh(event)
    return event


@pytest.fixture(name="moderated_event")
def moderated_event_fixture(session: Session) -> EventConfig:
    """A static-token event with moderation switched on."""
    event = EventConfig(
        name="Moderated Event",
        active=True,
        rotation_enabled=False,
        current_token=STATIC_TOKEN,
        moderation_enabled=True,
    )
    session.add(event)
    session.commit()
    session.refresh(event)
    return event


@pytest.fixture(name="moderation_link")
def moderation_link_fixture(session: Session, moderated_event: EventConfig) -> ModerationLink:
    link = ModerationLink(event_id=moderated_event.id, label="Door volunteers")
    session.add(link)
    session.commit()
    session.refresh(link)
    return link


@pytest.fixture(name="excuse_link")
def excuse_link_fixture(session: Session, moderated_event: EventConfig) -> ExcuseLink:
    link = ExcuseLink(event_id=moderated_event.id, label="Team chat")
    session.add(link)
    session.commit()
    session.refresh(link)
    return link
