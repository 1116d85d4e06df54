"""
Daily plan persistence.

One plan per (trip, date). Every write that touches the stop list
re-sequences the stop orders to 0..n-1.
"""

from datetime import date, datetime
from typing import Any, Dict, List, Optional

from sqlalchemy import select
from sqlalchemy.dialects.postgresql import insert as postgresql_insert
from sqlalchemy.dialects.sqlite import insert as sqlite_insert
from sqlalchemy.ext.asyncio import async_sessionmaker

from ..core.database import AsyncSessionLocal, get_db_session, new_id
from ..core.exceptions import (
    DatabaseError, InvalidPlanStatusError, PlanNotFoundError, handle_async_exceptions
)
from ..core.logger import get_logger
from ..models.daily_plan import (
    DailyPlan, DailyPlanResponse, PlanPayload, PlanStatus, PopulatedDailyPlan,
    PopulatedStop, Stop, resequence_stops, serialize_stops
)
from ..models.saved_place import PlaceCategory, SavedPlaceResponse
from .place_catalog import PlaceCatalog

logger = get_logger(__name__)

VALID_STATUSES = {status.value for status in PlanStatus}


def _upsert_insert(dialect_name: str):
    if dialect_name == "postgresql":
        return postgresql_insert
    return sqlite_insert


def _stops_of(plan: DailyPlan) -> List[Stop]:
    return [Stop.model_validate(raw) for raw in plan.stops or []]


def _placeholder_place(plan: DailyPlanResponse, stop: Stop) -> SavedPlaceResponse:
    """Stand-in place for stops imported by name only."""
    return SavedPlaceResponse(
        id=f"placeholder-{stop.order}",
        trip_id=plan.trip_id,
        name=stop.place_name or stop.notes or f"Stop {stop.order + 1}",
        category=PlaceCategory.PLACE.value,
        description=stop.notes or "",
    )


class PlanStore:
    """Reads and writes daily plans."""

    def __init__(self, session_factory: async_sessionmaker = None, catalog: PlaceCatalog = None):
        """
        Args:
            session_factory: Async session factory
            catalog: Place catalog used to populate plans
        """
        self.session_factory = session_factory or AsyncSessionLocal
        self.catalog = catalog or PlaceCatalog(self.session_factory)

    async def _load(self, session, plan_id: str) -> DailyPlan:
        plan = await session.get(DailyPlan, plan_id)
        if plan is None:
            raise PlanNotFoundError(
                f"Daily plan {plan_id} not found",
                error_code="PLAN_NOT_FOUND",
                details={"plan_id": plan_id}
            )
        return plan

    # =========================================================================
    # WRITE
    # =========================================================================

    @handle_async_exceptions(DatabaseError, context="plan_store")
    async def upsert(self, trip_id: str, plan_date: date, payload: PlanPayload,
                     created_by: str = None) -> DailyPlanResponse:
        """
        Create the plan for (trip, date) or replace its content.

        On conflict the segment, title, stops, route data and totals are
        replaced; the id, status, creator and creation time are kept.

        Args:
            trip_id: Trip ID
            plan_date: Day of the plan
            payload: Plan content
            created_by: User creating the plan

        Returns:
            DailyPlanResponse: The stored plan
        """
        now = datetime.utcnow()
        content = {
            "segment_id": payload.segment_id,
            "title": payload.title,
            "stops": serialize_stops(resequence_stops(payload.stops)),
            "route_data": payload.route_data,
            "total_duration_minutes": payload.total_duration_minutes,
            "total_distance_meters": payload.total_distance_meters,
        }

        async with get_db_session(self.session_factory) as session:
            insert = _upsert_insert(session.bind.dialect.name)
            statement = insert(DailyPlan).values(
                id=new_id(),
                trip_id=trip_id,
                plan_date=plan_date,
                status=PlanStatus.ACTIVE.value,
                created_by=created_by,
                created_at=now,
                updated_at=now,
                **content
            )
            statement = statement.on_conflict_do_update(
                index_elements=["trip_id", "plan_date"],
                set_={
                    **{key: getattr(statement.excluded, key) for key in content},
                    "updated_at": now,
                }
            )
            await session.execute(statement)

            result = await session.execute(
                select(DailyPlan)
                .where(DailyPlan.trip_id == trip_id)
                .where(DailyPlan.plan_date == plan_date)
                .execution_options(populate_existing=True)
            )
            stored = DailyPlanResponse.model_validate(result.scalar_one())

        logger.info(f"Created/updated daily plan for {plan_date.isoformat()} ({len(stored.stops)} stops)")
        return stored

    @handle_async_exceptions(DatabaseError, context="plan_store")
    async def update_stops(
        self,
        plan_id: str,
        stops: List[Stop],
        route_data: Optional[Dict[str, Any]] = None,
        total_duration_minutes: Optional[int] = None,
        total_distance_meters: Optional[int] = None
    ) -> DailyPlanResponse:
        """Replace the stop list and route aggregate in one write."""
        async with get_db_session(self.session_factory) as session:
            plan = await self._load(session, plan_id)
            plan.stops = serialize_stops(resequence_stops(stops))
            plan.route_data = route_data
            plan.total_duration_minutes = total_duration_minutes
            plan.total_distance_meters = total_distance_meters
            plan.updated_at = datetime.utcnow()
            await session.flush()
            return DailyPlanResponse.model_validate(plan)

    async def _replace_stops(self, plan_id: str, edit) -> DailyPlanResponse:
        """Apply ``edit`` to the current stop list, keeping the route aggregate."""
        async with get_db_session(self.session_factory) as session:
            plan = await self._load(session, plan_id)
            plan.stops = serialize_stops(resequence_stops(edit(_stops_of(plan))))
            plan.updated_at = datetime.utcnow()
            await session.flush()
            return DailyPlanResponse.model_validate(plan)

    @handle_async_exceptions(DatabaseError, context="plan_store")
    async def update_status(self, plan_id: str, status: str) -> DailyPlanResponse:
        """
        Set the plan status.

        Raises:
            InvalidPlanStatusError: If status is not active, completed or cancelled
        """
        if status not in VALID_STATUSES:
            raise InvalidPlanStatusError(
                f"Invalid plan status: {status}",
                error_code="PLAN_INVALID_STATUS",
                details={"status": status, "allowed": sorted(VALID_STATUSES)}
            )

        async with get_db_session(self.session_factory) as session:
            plan = await self._load(session, plan_id)
            plan.status = status
            plan.updated_at = datetime.utcnow()
            await session.flush()
            logger.info(f"Plan {plan_id} status set to {status}")
            return DailyPlanResponse.model_validate(plan)

    @handle_async_exceptions(DatabaseError, context="plan_store")
    async def add_stop(self, plan_id: str, place_id: str, planned_time: Optional[str] = None,
                       duration_minutes: Optional[int] = None,
                       notes: Optional[str] = None) -> DailyPlanResponse:
        """Append a stop at the end of the plan."""
        new_stop = Stop(
            place_id=place_id,
            planned_time=planned_time,
            duration_minutes=duration_minutes,
            notes=notes,
        )
        return await self._replace_stops(plan_id, lambda stops: stops + [new_stop])

    @handle_async_exceptions(DatabaseError, context="plan_store")
    async def remove_stop(self, plan_id: str, place_id: str) -> DailyPlanResponse:
        """Remove every stop for ``place_id``."""
        return await self._replace_stops(
            plan_id, lambda stops: [s for s in stops if s.place_id != place_id]
        )

    @handle_async_exceptions(DatabaseError, context="plan_store")
    async def remove_stop_at(self, plan_id: str, order: int) -> DailyPlanResponse:
        """Remove the stop at position ``order``; used for stops without a place."""
        return await self._replace_stops(
            plan_id, lambda stops: [s for s in stops if s.order != order]
        )

    @handle_async_exceptions(DatabaseError, context="plan_store")
    async def swap_stop(self, plan_id: str, old_place_id: str, new_place_id: str) -> DailyPlanResponse:
        """Point the stops for ``old_place_id`` at ``new_place_id``, keeping time and duration."""
        return await self._replace_stops(
            plan_id,
            lambda stops: [
                s.model_copy(update={"place_id": new_place_id}) if s.place_id == old_place_id else s
                for s in stops
            ]
        )

    @handle_async_exceptions(DatabaseError, context="plan_store")
    async def reorder_stops(self, plan_id: str, place_ids: List[str]) -> DailyPlanResponse:
        """
        Put the stops in the order of ``place_ids``.

        Ids that are not in the plan are ignored; stops not listed keep
        their relative order after the listed ones.
        """
        def reorder(stops: List[Stop]) -> List[Stop]:
            rank = {place_id: index for index, place_id in enumerate(dict.fromkeys(place_ids))}
            listed = sorted((s for s in stops if s.place_id in rank), key=lambda s: rank[s.place_id])
            return listed + [s for s in stops if s.place_id not in rank]

        return await self._replace_stops(plan_id, reorder)

    @handle_async_exceptions(DatabaseError, context="plan_store")
    async def delete(self, plan_id: str) -> None:
        async with get_db_session(self.session_factory) as session:
            plan = await self._load(session, plan_id)
            await session.delete(plan)
        logger.info(f"Deleted daily plan {plan_id}")

    # =========================================================================
    # READ
    # =========================================================================

    @handle_async_exceptions(DatabaseError, context="plan_store")
    async def get_by_id(self, plan_id: str) -> Optional[DailyPlanResponse]:
        async with get_db_session(self.session_factory) as session:
            plan = await session.get(DailyPlan, plan_id)
            return DailyPlanResponse.model_validate(plan) if plan else None

    @handle_async_exceptions(DatabaseError, context="plan_store")
    async def get_by_date(self, trip_id: str, plan_date: date) -> Optional[DailyPlanResponse]:
        async with get_db_session(self.session_factory) as session:
            result = await session.execute(
                select(DailyPlan)
                .where(DailyPlan.trip_id == trip_id)
                .where(DailyPlan.plan_date == plan_date)
            )
            plan = result.scalar_one_or_none()
            return DailyPlanResponse.model_validate(plan) if plan else None

    @handle_async_exceptions(DatabaseError, context="plan_store")
    async def get_all_for_trip(self, trip_id: str) -> List[DailyPlanResponse]:
        """All plans of a trip, earliest date first."""
        async with get_db_session(self.session_factory) as session:
            result = await session.execute(
                select(DailyPlan)
                .where(DailyPlan.trip_id == trip_id)
                .order_by(DailyPlan.plan_date.asc())
            )
            return [DailyPlanResponse.model_validate(row) for row in result.scalars().all()]

    @handle_async_exceptions(DatabaseError, context="plan_store")
    async def get_all_for_segment(self, segment_id: str) -> List[DailyPlanResponse]:
        async with get_db_session(self.session_factory) as session:
            result = await session.execute(
                select(DailyPlan)
                .where(DailyPlan.segment_id == segment_id)
                .order_by(DailyPlan.plan_date.asc())
            )
            return [DailyPlanResponse.model_validate(row) for row in result.scalars().all()]

    @handle_async_exceptions(DatabaseError, context="plan_store")
    async def get_populated_plan(self, plan_id: str) -> Optional[PopulatedDailyPlan]:
        """
        Load a plan with each stop's place resolved.

        Stops without a place id get a placeholder place. Stops whose place
        no longer exists are left out of ``populated_stops``.
        """
        plan = await self.get_by_id(plan_id)
        if plan is None:
            return None

        places = await self.catalog.find_by_ids(plan.place_ids)
        by_id = {place.id: place for place in places}

        populated = []
        for stop in plan.stops:
            if stop.place_id is None:
                place = _placeholder_place(plan, stop)
            else:
                place = by_id.get(stop.place_id)
                if place is None:
                    logger.debug(f"Plan {plan_id} references missing place {stop.place_id}")
                    continue
            populated.append(PopulatedStop(**stop.model_dump(), place=place))

        return PopulatedDailyPlan(**plan.model_dump(), populated_stops=populated)
