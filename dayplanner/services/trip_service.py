"""Trip lookup service."""
from sqlalchemy.ext.asyncio import async_sessionmaker

from ..core.database import AsyncSessionLocal, get_db_session
from ..core.exceptions import DatabaseError, TripNotFoundError, handle_async_exceptions
from ..core.logger import get_logger
from ..models.trip import Trip, TripCreate, TripResponse

logger = get_logger(__name__)


class TripService:
    """Creates and loads trips."""

    def __init__(self, session_factory: async_sessionmaker = None):
        """Initialize with an async session factory."""
        self.session_factory = session_factory or AsyncSessionLocal

    @handle_async_exceptions(DatabaseError, context="trip_service")
    async def create_trip(self, data: TripCreate, created_by: str = None) -> TripResponse:
        async with get_db_session(self.session_factory) as session:
            trip = Trip(created_by=created_by, **data.model_dump())
            session.add(trip)
            await session.flush()
            logger.info(f"Created trip {trip.id} ({trip.name})")
            return TripResponse.model_validate(trip)

    @handle_async_exceptions(DatabaseError, context="trip_service")
    async def get_trip(self, trip_id: str) -> TripResponse:
        """
        Load a trip.

        Raises:
            TripNotFoundError: If no trip has this id
        """
        async with get_db_session(self.session_factory) as session:
            trip = await session.get(Trip, trip_id)
            if trip is None:
                raise TripNotFoundError(
                    f"Trip {trip_id} not found",
                    error_code="TRIP_NOT_FOUND",
                    details={"trip_id": trip_id}
                )
            return TripResponse.model_validate(trip)
