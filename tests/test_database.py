"""
Tests for database setup, sessions and models.
"""

from datetime import date

import pytest
from sqlalchemy import func, inspect, select
from sqlalchemy.exc import IntegrityError

from dayplanner.core.database import (
    check_database_connection, create_tables, drop_tables, get_database_url, get_db_session
)
from dayplanner.core.exceptions import (
    DatabaseError, DayPlannerException, NotFoundError, PlanNotFoundError, create_error_response,
    handle_async_exceptions
)
from dayplanner.models import DailyPlan, SavedPlaceCreate, SavedPlaceResponse, Stop, Trip


class TestDatabaseConnection:
    """Test database connection and URL handling."""

    @pytest.mark.database
    async def test_database_connection(self, engine):
        assert await check_database_connection(engine) is True

    @pytest.mark.parametrize("url,expected", [
        ("sqlite:///./day_planner.db", "sqlite+aiosqlite:///./day_planner.db"),
        ("postgresql://u:p@db/plans", "postgresql+asyncpg://u:p@db/plans"),
        ("postgres://u:p@db/plans", "postgresql+asyncpg://u:p@db/plans"),
        ("sqlite+aiosqlite:///:memory:", "sqlite+aiosqlite:///:memory:"),
    ])
    def test_async_driver_urls(self, url, expected):
        assert get_database_url(url) == expected

    @pytest.mark.database
    async def test_drop_and_recreate_tables(self, engine):
        async def table_names():
            async with engine.connect() as conn:
                return await conn.run_sync(lambda sync_conn: inspect(sync_conn).get_table_names())

        assert "daily_plans" in await table_names()

        await drop_tables(engine)
        assert await table_names() == []

        await create_tables(engine)
        assert "daily_plans" in await table_names()


class TestSessionManagement:
    """Test the commit/rollback session context manager."""

    @pytest.mark.database
    async def test_commit_on_success(self, session_factory):
        async with get_db_session(session_factory) as session:
            session.add(Trip(name="Trip", destination="Japan"))

        async with get_db_session(session_factory) as session:
            count = (await session.execute(select(func.count()).select_from(Trip))).scalar()
        assert count == 1

    @pytest.mark.database
    async def test_rollback_on_error(self, session_factory):
        with pytest.raises(RuntimeError):
            async with get_db_session(session_factory) as session:
                session.add(Trip(name="Trip", destination="Japan"))
                await session.flush()
                raise RuntimeError("boom")

        async with get_db_session(session_factory) as session:
            count = (await session.execute(select(func.count()).select_from(Trip))).scalar()
        assert count == 0


class TestModels:
    """Test model constraints and schemas."""

    @pytest.mark.database
    async def test_one_plan_per_trip_and_date(self, session_factory, trip):
        with pytest.raises(IntegrityError):
            async with get_db_session(session_factory) as session:
                session.add(DailyPlan(trip_id=trip.id, plan_date=date(2024, 5, 1), stops=[]))
                session.add(DailyPlan(trip_id=trip.id, plan_date=date(2024, 5, 1), stops=[]))

    def test_stop_time_format(self):
        assert Stop(planned_time="09:30").planned_time == "09:30"
        with pytest.raises(ValueError):
            Stop(planned_time="9:30am")

    def test_saved_place_rating_bounds(self):
        with pytest.raises(ValueError):
            SavedPlaceCreate(name="Bad", rating=7)

    def test_saved_place_visited_flag(self):
        place = SavedPlaceResponse(id="p1", name="Zoo", status="visited")
        assert place.is_visited is True


class TestExceptions:
    """Test the exception hierarchy and helpers."""

    def test_to_dict(self):
        error = PlanNotFoundError("Daily plan x not found", error_code="PLAN_NOT_FOUND", details={"plan_id": "x"})

        assert isinstance(error, NotFoundError)
        assert error.to_dict()["error_code"] == "PLAN_NOT_FOUND"
        assert error.to_dict()["details"] == {"plan_id": "x"}

    def test_create_error_response(self):
        response = create_error_response(PlanNotFoundError("missing", error_code="PLAN_NOT_FOUND"))

        assert response["success"] is False
        assert response["error"]["type"] == "PlanNotFoundError"

    async def test_handle_async_exceptions_wraps_unknown_errors(self):
        @handle_async_exceptions(DatabaseError, context="test")
        async def failing():
            raise KeyError("boom")

        with pytest.raises(DatabaseError) as exc_info:
            await failing()
        assert isinstance(exc_info.value.__cause__, KeyError)

    async def test_handle_async_exceptions_keeps_domain_errors(self):
        @handle_async_exceptions(DatabaseError, context="test")
        async def failing():
            raise PlanNotFoundError("missing")

        with pytest.raises(PlanNotFoundError):
            await failing()

        assert issubclass(DatabaseError, DayPlannerException)
