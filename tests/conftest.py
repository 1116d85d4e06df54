"""
Shared fixtures: an in-memory database per test and a scripted optimizer.
"""

import asyncio
import os
from datetime import date

import pytest
from sqlalchemy.ext.asyncio import AsyncSession, async_sessionmaker, create_async_engine
from sqlalchemy.pool import StaticPool

os.environ.setdefault("ENVIRONMENT", "testing")

from dayplanner.core.database import create_tables, drop_tables  # noqa: E402
from dayplanner.models import (  # noqa: E402
    CurrentSegmentInfo, SavedPlaceCreate, SavedPlaceResponse, TripCreate, TripSegmentCreate
)
from dayplanner.services.place_catalog import PlaceCatalog  # noqa: E402
from dayplanner.services.plan_store import PlanStore  # noqa: E402
from dayplanner.services.segment_service import SegmentService  # noqa: E402
from dayplanner.services.trip_service import TripService  # noqa: E402

TRIP_START = date(2024, 5, 1)


class FakeOptimizer:
    """Text-completion optimizer returning a scripted answer."""

    def __init__(self, response=None, error=None, delay=0.0):
        self.response = response
        self.error = error
        self.delay = delay
        self.prompts = []
        self.schemas = []

    async def complete(self, prompt, schema):
        self.prompts.append(prompt)
        self.schemas.append(schema)
        if self.delay:
            await asyncio.sleep(self.delay)
        if self.error is not None:
            raise self.error
        return self.response


def make_place(name, category="place", rating=None, must_visit=False, place_id=None, **extra):
    """Build a catalog place without touching the database."""
    return SavedPlaceResponse(
        id=place_id or name.lower().replace(" ", "-"),
        name=name,
        category=category,
        rating=rating,
        is_must_visit=must_visit,
        **extra
    )


NO_SEGMENT = CurrentSegmentInfo()


# =============================================================================
# DATABASE
# =============================================================================

@pytest.fixture
async def engine():
    """Fresh in-memory SQLite database with all tables."""
    test_engine = create_async_engine(
        "sqlite+aiosqlite:///:memory:",
        poolclass=StaticPool,
        connect_args={"check_same_thread": False},
    )
    await create_tables(test_engine)
    yield test_engine
    await drop_tables(test_engine)
    await test_engine.dispose()


@pytest.fixture
def session_factory(engine):
    return async_sessionmaker(engine, class_=AsyncSession, expire_on_commit=False)


@pytest.fixture
def trip_service(session_factory):
    return TripService(session_factory)


@pytest.fixture
def segment_service(session_factory):
    return SegmentService(session_factory)


@pytest.fixture
def catalog(session_factory):
    return PlaceCatalog(session_factory)


@pytest.fixture
def plan_store(session_factory, catalog):
    return PlanStore(session_factory, catalog)


@pytest.fixture
async def trip(trip_service):
    return await trip_service.create_trip(
        TripCreate(name="Kansai Spring", destination="Japan", start_date=TRIP_START,
                   end_date=date(2024, 5, 7)),
        created_by="user-1",
    )


@pytest.fixture
async def osaka_segment(segment_service, trip):
    return await segment_service.create_segment(
        trip.id,
        TripSegmentCreate(city="Osaka", country="Japan", timezone="Asia/Tokyo",
                          start_date=TRIP_START, end_date=date(2024, 5, 3),
                          accommodation_name="Namba Oriental Hotel"),
        created_by="user-1",
    )


@pytest.fixture
async def osaka_places(catalog, trip):
    """Three saved places in Osaka: one food, one must-visit sight, one shop."""
    created = {}
    for data in (
        SavedPlaceCreate(name="Ramen Shop", category="food", rating=4.5, area_name="Namba, Osaka"),
        SavedPlaceCreate(name="Osaka Castle", category="place", rating=4.8, is_must_visit=True,
                         area_name="Chuo, Osaka"),
        SavedPlaceCreate(name="Kuromon Market", category="shopping", rating=4.0,
                         location_name="Kuromon, Osaka"),
        SavedPlaceCreate(name="Sushi Bar", category="food", rating=4.2, area_name="Umeda, Osaka"),
    ):
        place = await catalog.add_place(trip.id, data, added_by="user-1")
        created[place.name] = place
    return created
