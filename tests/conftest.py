"""Pytest fixtures: a SQLite file database per test, fast and isolated."""
import math
from datetime import datetime

import pytest
from sqlalchemy import create_engine, event, text
from fastapi.testclient import TestClient

from events_service.database import Base
from events_service.db.delegates import ProximitySearch
from events_service.dependencies import get_accessor
from events_service.main import app
from events_service.schemas.event import EventCreate, RSVPIn
from events_service.services.event_data_accessor import EventDataAccessor

# Import all models so they register with Base.metadata
from events_service.models.event import Event, EventGame  # noqa: F401
from events_service.models.rsvp import RSVP               # noqa: F401

EARTH_RADIUS_MILES = 3959.0


def _distance_miles(lat1, lon1, lat2, lon2):
    """Haversine distance, registered as a SQLite function."""
    if None in (lat1, lon1, lat2, lon2):
        return None
    phi1, phi2 = math.radians(lat1), math.radians(lat2)
    d_phi = math.radians(lat2 - lat1)
    d_lambda = math.radians(lon2 - lon1)
    a = math.sin(d_phi / 2) ** 2 + math.cos(phi1) * math.cos(phi2) * math.sin(d_lambda / 2) ** 2
    return 2 * EARTH_RADIUS_MILES * math.asin(math.sqrt(a))


class HaversineProximitySearch(ProximitySearch):
    """SQLite has no stored routines; rank events with a registered function instead."""

    def statement(self):
        return text(
            "SELECT id, distance_miles(latitude, longitude, :latitude, :longitude) AS distance "
            "FROM events "
            "WHERE distance_miles(latitude, longitude, :latitude, :longitude) <= :miles "
            "ORDER BY distance, id"
        )


def make_sqlite_engine(path, **kwargs):
    engine = create_engine(f"sqlite:///{path}", connect_args={"check_same_thread": False}, **kwargs)

    @event.listens_for(engine, "connect")
    def _register_functions(dbapi_conn, connection_record):
        dbapi_conn.create_function("distance_miles", 4, _distance_miles)

    Base.metadata.create_all(bind=engine)
    return engine


@pytest.fixture(scope="function")
def db_engine(tmp_path):
    """Create a fresh SQLite engine for each test."""
    engine = make_sqlite_engine(tmp_path / "events.db")
    yield engine
    Base.metadata.drop_all(bind=engine)
    engine.dispose()


@pytest.fixture(scope="function")
def accessor(db_engine):
    return EventDataAccessor(db_engine, proximity=HaversineProximitySearch())


@pytest.fixture(scope="function")
def client(accessor):
    """FastAPI TestClient with the accessor dependency overridden to use SQLite."""
    app.dependency_overrides[get_accessor] = lambda: accessor
    with TestClient(app) as c:
        yield c
    app.dependency_overrides.clear()


# ---------------------------------------------------------------------------
# Helpers
# ---------------------------------------------------------------------------
def make_event(**overrides) -> EventCreate:
    """An EventCreate for a picnic; keyword arguments replace fields."""
    fields = {
        "name": "Picnic",
        "emoji": "🧺",
        "description": "Lunch in the park",
        "host": 5,
        "start_time": datetime(2024, 6, 1, 12, 0, 0),
        "location": "Park",
        "latitude": 40.0,
        "longitude": -75.0,
        "is_public": True,
        "activities": [1, 2],
        "rsvps": [RSVPIn(user_id="u1")],
    }
    fields.update(overrides)
    return EventCreate(**fields)


def create_test_event(accessor: EventDataAccessor, **overrides) -> int:
    """Create an event through the accessor and return its id."""
    result = accessor.create_event(make_event(**overrides))
    assert result, result.message
    return result.event_id
