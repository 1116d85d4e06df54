"""Trip segment management and current-segment lookup."""
from datetime import date
from typing import List, Optional

from sqlalchemy import func, select
from sqlalchemy.ext.asyncio import async_sessionmaker

from ..core.database import AsyncSessionLocal, get_db_session
from ..core.exceptions import (
    DatabaseError, InvalidSegmentDatesError, SegmentNotFoundError, handle_async_exceptions
)
from ..core.logger import get_logger
from ..models.saved_place import PlaceStatus, SavedPlace
from ..models.trip_segment import (
    CurrentSegmentInfo, TripSegment, TripSegmentCreate, TripSegmentResponse,
    TripSegmentUpdate, TripSegmentWithStats
)
from .segment_resolver import find_next_segment, resolve_current_segment

logger = get_logger(__name__)


def _place_in_city(place: SavedPlace, city: str) -> bool:
    city = city.lower()
    return any(city in (name or "").lower() for name in (place.area_name, place.location_name))


def _check_dates(start_date: date, end_date: date) -> None:
    if end_date < start_date:
        raise InvalidSegmentDatesError(
            "End date must not be before start date",
            error_code="SEGMENT_INVALID_DATES",
            details={"start_date": start_date.isoformat(), "end_date": end_date.isoformat()}
        )


class SegmentService:
    """Manages the city segments of a trip."""

    def __init__(self, session_factory: async_sessionmaker = None):
        """Initialize with an async session factory."""
        self.session_factory = session_factory or AsyncSessionLocal

    # =========================================================================
    # CRUD
    # =========================================================================

    @handle_async_exceptions(DatabaseError, context="segment_service")
    async def create_segment(self, trip_id: str, data: TripSegmentCreate,
                             created_by: str = None) -> TripSegmentResponse:
        """
        Create a segment at the end of the trip order and re-link places.

        Args:
            trip_id: Trip ID
            data: Segment fields
            created_by: User creating the segment

        Returns:
            TripSegmentResponse: The created segment

        Raises:
            InvalidSegmentDatesError: If end_date is before start_date
        """
        _check_dates(data.start_date, data.end_date)

        async with get_db_session(self.session_factory) as session:
            result = await session.execute(
                select(func.coalesce(func.max(TripSegment.order_index), -1))
                .where(TripSegment.trip_id == trip_id)
            )
            next_order = result.scalar_one() + 1

            segment = TripSegment(
                trip_id=trip_id,
                order_index=next_order,
                created_by=created_by,
                **data.model_dump()
            )
            session.add(segment)
            await session.flush()
            created = TripSegmentResponse.model_validate(segment)

        logger.info(f"Created trip segment: {created.city} for trip {trip_id}")
        await self.auto_link_places(trip_id)
        return created

    @handle_async_exceptions(DatabaseError, context="segment_service")
    async def list_segments(self, trip_id: str) -> List[TripSegmentResponse]:
        """Get all segments of a trip ordered by order_index, then start date."""
        async with get_db_session(self.session_factory) as session:
            result = await session.execute(
                select(TripSegment)
                .where(TripSegment.trip_id == trip_id)
                .order_by(TripSegment.order_index.asc(), TripSegment.start_date.asc())
            )
            return [TripSegmentResponse.model_validate(row) for row in result.scalars().all()]

    @handle_async_exceptions(DatabaseError, context="segment_service")
    async def list_segments_with_stats(self, trip_id: str) -> List[TripSegmentWithStats]:
        """Get segments with the number of saved and visited places in each city."""
        segments = await self.list_segments(trip_id)

        async with get_db_session(self.session_factory) as session:
            result = await session.execute(select(SavedPlace).where(SavedPlace.trip_id == trip_id))
            places = result.scalars().all()

        stats = []
        for segment in segments:
            in_segment = [
                p for p in places
                if p.segment_id == segment.id or _place_in_city(p, segment.city)
            ]
            stats.append(TripSegmentWithStats(
                **segment.model_dump(),
                places_count=len(in_segment),
                visited_count=sum(1 for p in in_segment if p.status == PlaceStatus.VISITED.value),
            ))
        return stats

    @handle_async_exceptions(DatabaseError, context="segment_service")
    async def get_segment(self, segment_id: str) -> TripSegmentResponse:
        """
        Load a segment.

        Raises:
            SegmentNotFoundError: If no segment has this id
        """
        async with get_db_session(self.session_factory) as session:
            segment = await session.get(TripSegment, segment_id)
            if segment is None:
                raise SegmentNotFoundError(
                    f"Segment {segment_id} not found",
                    error_code="SEGMENT_NOT_FOUND",
                    details={"segment_id": segment_id}
                )
            return TripSegmentResponse.model_validate(segment)

    @handle_async_exceptions(DatabaseError, context="segment_service")
    async def update_segment(self, segment_id: str, updates: TripSegmentUpdate) -> TripSegmentResponse:
        """Apply a partial update and re-link places to segments."""
        changes = updates.model_dump(exclude_unset=True)

        async with get_db_session(self.session_factory) as session:
            segment = await session.get(TripSegment, segment_id)
            if segment is None:
                raise SegmentNotFoundError(
                    f"Segment {segment_id} not found",
                    error_code="SEGMENT_NOT_FOUND",
                    details={"segment_id": segment_id}
                )

            _check_dates(
                changes.get("start_date", segment.start_date),
                changes.get("end_date", segment.end_date),
            )

            for field, value in changes.items():
                setattr(segment, field, value)
            await session.flush()
            updated = TripSegmentResponse.model_validate(segment)

        if changes:
            await self.auto_link_places(updated.trip_id)
        return updated

    @handle_async_exceptions(DatabaseError, context="segment_service")
    async def delete_segment(self, segment_id: str) -> None:
        async with get_db_session(self.session_factory) as session:
            segment = await session.get(TripSegment, segment_id)
            if segment is None:
                raise SegmentNotFoundError(
                    f"Segment {segment_id} not found",
                    error_code="SEGMENT_NOT_FOUND",
                    details={"segment_id": segment_id}
                )
            await session.delete(segment)
        logger.info(f"Deleted trip segment {segment_id}")

    @handle_async_exceptions(DatabaseError, context="segment_service")
    async def reorder_segments(self, trip_id: str, segment_ids: List[str]) -> List[TripSegmentResponse]:
        """Set order_index to each segment's position in ``segment_ids``."""
        async with get_db_session(self.session_factory) as session:
            result = await session.execute(
                select(TripSegment).where(TripSegment.trip_id == trip_id)
            )
            by_id = {segment.id: segment for segment in result.scalars().all()}
            for index, segment_id in enumerate(segment_ids):
                if segment_id in by_id:
                    by_id[segment_id].order_index = index

        return await self.list_segments(trip_id)

    # =========================================================================
    # PLACE LINKING
    # =========================================================================

    @handle_async_exceptions(DatabaseError, context="segment_service")
    async def auto_link_places(self, trip_id: str) -> int:
        """
        Link unlinked saved places to the first segment (by order) whose city
        appears in the place's area or location name.

        Returns:
            int: Number of places linked
        """
        async with get_db_session(self.session_factory) as session:
            segments_result = await session.execute(
                select(TripSegment)
                .where(TripSegment.trip_id == trip_id)
                .order_by(TripSegment.order_index.asc(), TripSegment.start_date.asc())
            )
            segments = segments_result.scalars().all()

            places_result = await session.execute(
                select(SavedPlace)
                .where(SavedPlace.trip_id == trip_id)
                .where(SavedPlace.segment_id.is_(None))
            )

            linked = 0
            for place in places_result.scalars().all():
                match = next((s for s in segments if _place_in_city(place, s.city)), None)
                if match is not None:
                    place.segment_id = match.id
                    linked += 1

        logger.info(f"Auto-linked {linked} places to segments for trip {trip_id}")
        return linked

    # =========================================================================
    # CURRENT / NEXT SEGMENT
    # =========================================================================

    async def get_current_segment(self, trip_id: str, as_of: Optional[date] = None) -> CurrentSegmentInfo:
        """Resolve the segment active on ``as_of`` (default today)."""
        segments = await self.list_segments(trip_id)
        return resolve_current_segment(segments, as_of or date.today())

    async def get_next_segment(self, trip_id: str, as_of: Optional[date] = None) -> Optional[TripSegmentResponse]:
        """Earliest segment starting after ``as_of`` (default today)."""
        segments = await self.list_segments(trip_id)
        return find_next_segment(segments, as_of or date.today())
