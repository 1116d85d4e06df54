"""
Saved place model: the pool of places a plan is built from.
"""

from datetime import datetime
from enum import Enum
from typing import Optional

from pydantic import BaseModel, ConfigDict, Field
from sqlalchemy import Boolean, Float, ForeignKey, String, Text
from sqlalchemy.orm import Mapped, mapped_column

from ..core.database import Base


class PlaceCategory(str, Enum):
    FOOD = "food"
    ACCOMMODATION = "accommodation"
    PLACE = "place"
    SHOPPING = "shopping"
    ACTIVITY = "activity"
    TIP = "tip"


class PlaceStatus(str, Enum):
    SAVED = "saved"
    VISITED = "visited"


# =============================================================================
# SQLAlchemy ORM Model
# =============================================================================

class SavedPlace(Base):
    """A place saved to a trip."""

    __tablename__ = "saved_places"

    trip_id: Mapped[str] = mapped_column(
        String(36), ForeignKey("trips.id", ondelete="CASCADE"), index=True, nullable=False
    )
    segment_id: Mapped[Optional[str]] = mapped_column(
        String(36), ForeignKey("trip_segments.id", ondelete="SET NULL"), index=True
    )

    name: Mapped[str] = mapped_column(String(255), nullable=False)
    category: Mapped[str] = mapped_column(String(50), default=PlaceCategory.PLACE.value)
    description: Mapped[Optional[str]] = mapped_column(Text)

    # Location
    location_name: Mapped[Optional[str]] = mapped_column(String(255))
    area_name: Mapped[Optional[str]] = mapped_column(String(255))
    location_lat: Mapped[Optional[float]] = mapped_column(Float)
    location_lng: Mapped[Optional[float]] = mapped_column(Float)

    rating: Mapped[Optional[float]] = mapped_column(Float)
    is_must_visit: Mapped[bool] = mapped_column(Boolean, default=False)
    status: Mapped[str] = mapped_column(String(20), default=PlaceStatus.SAVED.value, index=True)
    added_by: Mapped[Optional[str]] = mapped_column(String(100))

    def __repr__(self):
        return f"<SavedPlace(id={self.id}, name='{self.name}', category='{self.category}')>"


# =============================================================================
# Pydantic Schemas
# =============================================================================

class SavedPlaceBase(BaseModel):
    """Base schema for SavedPlace."""

    name: str = Field(..., min_length=1, description="Display name")
    category: str = Field(default=PlaceCategory.PLACE.value, description="food, place, shopping, ...")
    description: Optional[str] = None
    location_name: Optional[str] = Field(None, description="Free-form location, often includes the city")
    area_name: Optional[str] = Field(None, description="Neighbourhood/city from geocoding")
    location_lat: Optional[float] = Field(None, ge=-90, le=90)
    location_lng: Optional[float] = Field(None, ge=-180, le=180)
    rating: Optional[float] = Field(None, ge=0, le=5)
    is_must_visit: bool = False
    status: str = PlaceStatus.SAVED.value


class SavedPlaceCreate(SavedPlaceBase):
    """Schema for saving a new place."""
    pass


class SavedPlaceResponse(SavedPlaceBase):
    """A place as seen by the planner."""

    model_config = ConfigDict(from_attributes=True)

    id: str
    trip_id: Optional[str] = None
    segment_id: Optional[str] = None
    created_at: Optional[datetime] = None

    @property
    def is_visited(self) -> bool:
        return self.status == PlaceStatus.VISITED.value
