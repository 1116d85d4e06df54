"""
Day planning service.

Entry point used by the surrounding controller layer: resolves the segment
for a date, picks the place pool, generates and persists plans, and routes
conversational edits to the plan mutator.
"""

from datetime import date, datetime, timedelta
from typing import Any, Dict, List, Optional, Sequence
from zoneinfo import ZoneInfo, ZoneInfoNotFoundError

from pydantic import BaseModel
from sqlalchemy.ext.asyncio import async_sessionmaker

from ..ai.gemini_service import GeminiService, TextCompletionPort
from ..core.config import settings
from ..core.logger import get_logger, log_async_function_call
from ..models.daily_plan import DailyPlanResponse, PlanPayload, PopulatedDailyPlan, Stop
from ..models.saved_place import PlaceStatus, SavedPlaceResponse
from ..models.trip_segment import CurrentSegmentInfo
from .anchor_parser import Anchor, parse_plan_request
from .place_catalog import PlaceCatalog
from .plan_generator import PlanGenerator, format_plan_message
from .plan_mutator import ModificationResult, PlanMutator
from .plan_store import PlanStore
from .segment_service import SegmentService
from .trip_service import TripService

logger = get_logger(__name__)

ALL_VISITED_MESSAGE = (
    "🎉 Amazing! You've visited all your saved places! Want to add more or explore something new?"
)

IMPORT_SLOT_TIMES = ["09:00", "10:30", "12:00", "14:00", "16:00", "18:00", "20:00"]


class PlanResult(BaseModel):
    plan: DailyPlanResponse
    message: str
    used_fallback: bool = False


def default_time_for_slot(slot_index: int) -> str:
    return IMPORT_SLOT_TIMES[min(slot_index, len(IMPORT_SLOT_TIMES) - 1)]


class DayPlanningService:
    """Generates, stores and edits daily plans for trips."""

    def __init__(self, session_factory: async_sessionmaker = None,
                 optimizer: Optional[TextCompletionPort] = None):
        """
        Initialize with service dependencies.

        Args:
            session_factory: Async session factory shared by all stores
            optimizer: Text-completion optimizer; None plans with the heuristic only
        """
        self.trips = TripService(session_factory)
        self.segments = SegmentService(session_factory)
        self.catalog = PlaceCatalog(session_factory)
        self.store = PlanStore(session_factory, self.catalog)
        self.generator = PlanGenerator(optimizer)
        self.mutator = PlanMutator(self.store, self.catalog)

    @classmethod
    def from_settings(cls, session_factory: async_sessionmaker = None) -> "DayPlanningService":
        """Build the service with the Gemini optimizer when an API key is configured."""
        optimizer = GeminiService() if settings.use_optimizer else None
        if optimizer is None:
            logger.warning("Gemini API key not configured, plans will use the fallback heuristic")
        return cls(session_factory, optimizer)

    # =========================================================================
    # GENERATION
    # =========================================================================

    async def _available_places(self, trip_id: str,
                                segment_info: CurrentSegmentInfo) -> List[SavedPlaceResponse]:
        """Unvisited places of the segment's city, or of the whole trip without a segment."""
        segment = segment_info.segment
        if segment:
            places = await self.catalog.find_by_city(trip_id, segment.city, segment.id)
        else:
            places = await self.catalog.find_by_trip(trip_id, status=PlaceStatus.SAVED.value)
        return [place for place in places if not place.is_visited]

    @staticmethod
    def _current_hour(segment_info: CurrentSegmentInfo, plan_date: date) -> int:
        """
        Hour the plan starts from.

        Today's plan starts at the current hour in the segment's timezone;
        plans for other days start at the beginning of the planning day.
        """
        tz = None
        if segment_info.segment and segment_info.segment.timezone:
            try:
                tz = ZoneInfo(segment_info.segment.timezone)
            except (ZoneInfoNotFoundError, ValueError):
                logger.warning(f"Unknown timezone {segment_info.segment.timezone!r}, using local time")

        now = datetime.now(tz)
        if now.date() != plan_date:
            return settings.planner_day_start_hour
        return now.hour

    async def _generate(self, trip_id: str, user_id: str, plan_date: date,
                        anchors: Sequence[Anchor], current_hour: Optional[int]) -> PlanResult:
        trip = await self.trips.get_trip(trip_id)
        segment_info = await self.segments.get_current_segment(trip_id, plan_date)
        segment_id = segment_info.segment.id if segment_info.segment else None

        places = await self._available_places(trip_id, segment_info)
        if not places:
            plan = await self.store.upsert(
                trip_id,
                plan_date,
                PlanPayload(segment_id=segment_id, title=f"Day Plan - {plan_date.isoformat()}"),
                created_by=user_id,
            )
            return PlanResult(plan=plan, message=ALL_VISITED_MESSAGE)

        if current_hour is None:
            current_hour = self._current_hour(segment_info, plan_date)

        generated = await self.generator.generate(
            places, segment_info, anchors=anchors, destination=trip.destination, current_hour=current_hour
        )

        plan = await self.store.upsert(
            trip_id,
            plan_date,
            PlanPayload(
                segment_id=segment_id,
                title=generated.title,
                stops=generated.to_stops(),
                total_duration_minutes=generated.total_duration_minutes,
                total_distance_meters=generated.total_distance_meters,
            ),
            created_by=user_id,
        )

        logger.info(f"Generated day plan for trip {trip_id} with {len(plan.stops)} stops")
        return PlanResult(
            plan=plan,
            message=format_plan_message(generated, segment_info, trip.destination),
            used_fallback=generated.used_fallback,
        )

    @log_async_function_call
    async def generate(self, trip_id: str, user_id: str, plan_date: Optional[date] = None,
                       request_text: Optional[str] = None,
                       current_hour: Optional[int] = None) -> PlanResult:
        """
        Generate and store the plan for a day.

        Args:
            trip_id: Trip ID
            user_id: User requesting the plan
            plan_date: Day to plan (default today)
            request_text: Optional message with activities the user wants
            current_hour: Hour to start from (default derived from the clock)

        Returns:
            PlanResult: Stored plan and the chat message describing it

        Raises:
            TripNotFoundError: If the trip does not exist
        """
        anchors = parse_plan_request(request_text).anchors if request_text else []
        return await self._generate(trip_id, user_id, plan_date or date.today(), anchors, current_hour)

    @log_async_function_call
    async def plan_from_message(self, trip_id: str, user_id: str, text: str,
                                current_hour: Optional[int] = None) -> PlanResult:
        """
        Plan from a chat message such as "plan day 3, museum in the morning".

        A day number is counted from the trip's start date (or today when
        the trip has none).
        """
        parsed = parse_plan_request(text)
        plan_date = date.today()
        if parsed.day_number:
            trip = await self.trips.get_trip(trip_id)
            plan_date = (trip.start_date or date.today()) + timedelta(days=parsed.day_number - 1)

        return await self._generate(trip_id, user_id, plan_date, parsed.anchors, current_hour)

    @log_async_function_call
    async def create_plan_from_place_names(
        self,
        trip_id: str,
        user_id: str,
        day_number: int,
        title: str,
        place_names: List[str],
        destination: Optional[str] = None
    ) -> DailyPlanResponse:
        """
        Store a plan made of named stops that are not saved places yet.

        Stops get fixed slot times and 90 minutes each; the plan date is
        counted from the trip's start date.
        """
        trip = await self.trips.get_trip(trip_id)
        plan_date = (trip.start_date or date.today()) + timedelta(days=day_number - 1)

        stops = [
            Stop(
                order=index,
                planned_time=default_time_for_slot(index),
                duration_minutes=90,
                notes=name,
                place_name=name,
            )
            for index, name in enumerate(place_names)
        ]

        plan = await self.store.upsert(
            trip_id,
            plan_date,
            PlanPayload(
                title=f"Day {day_number}: {title}",
                stops=stops,
                route_data={
                    "source": "place_names",
                    "destination": destination or trip.destination,
                    "place_names": list(place_names),
                },
            ),
            created_by=user_id,
        )
        logger.info(f"Created day plan from place names: Day {day_number} for trip {trip_id}")
        return plan

    # =========================================================================
    # READ
    # =========================================================================

    async def get_today(self, trip_id: str) -> Optional[PopulatedDailyPlan]:
        return await self.get_by_date(trip_id, date.today())

    async def get_by_date(self, trip_id: str, plan_date: date) -> Optional[PopulatedDailyPlan]:
        plan = await self.store.get_by_date(trip_id, plan_date)
        if plan is None:
            return None
        return await self.store.get_populated_plan(plan.id)

    async def get_all(self, trip_id: str) -> List[DailyPlanResponse]:
        return await self.store.get_all_for_trip(trip_id)

    # =========================================================================
    # EDIT
    # =========================================================================

    async def update_stops(self, plan_id: str, stops: List[Stop],
                           route_data: Optional[Dict[str, Any]] = None,
                           total_duration_minutes: Optional[int] = None,
                           total_distance_meters: Optional[int] = None) -> DailyPlanResponse:
        return await self.store.update_stops(
            plan_id, stops, route_data, total_duration_minutes, total_distance_meters
        )

    async def add_stop(self, plan_id: str, place_id: str, planned_time: Optional[str] = None,
                       duration_minutes: Optional[int] = None) -> DailyPlanResponse:
        return await self.store.add_stop(plan_id, place_id, planned_time, duration_minutes)

    async def remove_stop(self, plan_id: str, place_id: str) -> DailyPlanResponse:
        return await self.store.remove_stop(plan_id, place_id)

    async def swap_stop(self, plan_id: str, old_place_id: str, new_place_id: str) -> DailyPlanResponse:
        return await self.store.swap_stop(plan_id, old_place_id, new_place_id)

    async def update_status(self, plan_id: str, status: str) -> DailyPlanResponse:
        return await self.store.update_status(plan_id, status)

    async def delete(self, plan_id: str) -> None:
        await self.store.delete(plan_id)

    @log_async_function_call
    async def handle_modification(self, trip_id: str, user_id: str, text: str,
                                  plan_date: Optional[date] = None) -> ModificationResult:
        """Apply a free-text edit ("swap X with Y", "remove X", ...) to a day's plan."""
        return await self.mutator.handle_modification(trip_id, user_id, text, plan_date)
