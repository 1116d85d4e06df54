"""Saved place catalog accessor used by the planner."""
from typing import Iterable, List, Optional

from sqlalchemy import or_, select
from sqlalchemy.ext.asyncio import async_sessionmaker

from ..core.database import AsyncSessionLocal, get_db_session
from ..core.exceptions import DatabaseError, handle_async_exceptions
from ..models.saved_place import SavedPlace, SavedPlaceCreate, SavedPlaceResponse


class PlaceCatalog:
    """Reads (and, for seeding, writes) the saved places of a trip."""

    def __init__(self, session_factory: async_sessionmaker = None):
        """Initialize with an async session factory."""
        self.session_factory = session_factory or AsyncSessionLocal

    @handle_async_exceptions(DatabaseError, context="place_catalog")
    async def add_place(self, trip_id: str, place: SavedPlaceCreate,
                        added_by: str = None) -> SavedPlaceResponse:
        """
        Save a place to a trip.

        Args:
            trip_id: Trip ID
            place: Place data
            added_by: User who saved it

        Returns:
            SavedPlaceResponse: The stored place
        """
        async with get_db_session(self.session_factory) as session:
            row = SavedPlace(trip_id=trip_id, added_by=added_by, **place.model_dump())
            session.add(row)
            await session.flush()
            return SavedPlaceResponse.model_validate(row)

    @handle_async_exceptions(DatabaseError, context="place_catalog")
    async def find_by_trip(self, trip_id: str, status: Optional[str] = None) -> List[SavedPlaceResponse]:
        """
        Get the saved places of a trip, optionally filtered by status.

        Args:
            trip_id: Trip ID
            status: "saved" or "visited"; None for all

        Returns:
            list: Places, newest first
        """
        query = select(SavedPlace).where(SavedPlace.trip_id == trip_id)
        if status:
            query = query.where(SavedPlace.status == status)
        query = query.order_by(SavedPlace.created_at.desc())

        async with get_db_session(self.session_factory) as session:
            result = await session.execute(query)
            return [SavedPlaceResponse.model_validate(row) for row in result.scalars().all()]

    @handle_async_exceptions(DatabaseError, context="place_catalog")
    async def find_by_city(self, trip_id: str, city: str,
                           segment_id: Optional[str] = None) -> List[SavedPlaceResponse]:
        """
        Get the places belonging to a segment's city.

        A place belongs to the city when it is linked to the segment directly
        or its area/location name contains the city name (case-insensitive).

        Args:
            trip_id: Trip ID
            city: Segment city
            segment_id: Segment ID for direct links

        Returns:
            list: Places, highest rated first
        """
        pattern = f"%{city}%"
        query = (
            select(SavedPlace)
            .where(SavedPlace.trip_id == trip_id)
            .where(or_(
                SavedPlace.segment_id == (segment_id or ""),
                SavedPlace.area_name.ilike(pattern),
                SavedPlace.location_name.ilike(pattern),
            ))
            .order_by(SavedPlace.rating.desc().nulls_last(), SavedPlace.created_at.desc())
        )

        async with get_db_session(self.session_factory) as session:
            result = await session.execute(query)
            return [SavedPlaceResponse.model_validate(row) for row in result.scalars().all()]

    @handle_async_exceptions(DatabaseError, context="place_catalog")
    async def find_by_ids(self, place_ids: Iterable[str]) -> List[SavedPlaceResponse]:
        """Get places by id; unknown ids are skipped."""
        ids = list(dict.fromkeys(place_ids))
        if not ids:
            return []

        async with get_db_session(self.session_factory) as session:
            result = await session.execute(select(SavedPlace).where(SavedPlace.id.in_(ids)))
            return [SavedPlaceResponse.model_validate(row) for row in result.scalars().all()]
