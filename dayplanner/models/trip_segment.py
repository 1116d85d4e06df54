"""
Trip segment model.
A segment is a contiguous date range spent in one city of a multi-city trip.
"""

from datetime import date, datetime
from typing import Optional

from pydantic import BaseModel, ConfigDict, Field, field_validator
from sqlalchemy import Date, Float, ForeignKey, Integer, String, Text
from sqlalchemy.orm import Mapped, mapped_column

from ..core.database import Base


# =============================================================================
# SQLAlchemy ORM Model
# =============================================================================

class TripSegment(Base):
    """One city stay within a trip."""

    __tablename__ = "trip_segments"

    trip_id: Mapped[str] = mapped_column(
        String(36), ForeignKey("trips.id", ondelete="CASCADE"), index=True, nullable=False
    )

    # Location
    city: Mapped[str] = mapped_column(String(255), index=True, nullable=False)
    area: Mapped[Optional[str]] = mapped_column(String(255))
    country: Mapped[Optional[str]] = mapped_column(String(100))
    timezone: Mapped[str] = mapped_column(String(50), default="UTC")

    # Dates (inclusive)
    start_date: Mapped[date] = mapped_column(Date, nullable=False)
    end_date: Mapped[date] = mapped_column(Date, nullable=False)

    # Accommodation
    accommodation_name: Mapped[Optional[str]] = mapped_column(String(255))
    accommodation_address: Mapped[Optional[str]] = mapped_column(Text)
    accommodation_lat: Mapped[Optional[float]] = mapped_column(Float)
    accommodation_lng: Mapped[Optional[float]] = mapped_column(Float)
    accommodation_place_id: Mapped[Optional[str]] = mapped_column(String(255))

    order_index: Mapped[int] = mapped_column(Integer, default=0, index=True)
    notes: Mapped[Optional[str]] = mapped_column(Text)
    created_by: Mapped[Optional[str]] = mapped_column(String(100))

    def __repr__(self):
        return (
            f"<TripSegment(id={self.id}, city='{self.city}', "
            f"{self.start_date}..{self.end_date}, order={self.order_index})>"
        )


# =============================================================================
# Pydantic Schemas
# =============================================================================

class TripSegmentBase(BaseModel):
    """Base schema for TripSegment with common fields."""

    city: str = Field(..., description="City name, also used to match saved places")
    area: Optional[str] = Field(None, description="Neighbourhood or region")
    country: Optional[str] = Field(None, description="Country name")
    timezone: str = Field(default="UTC", description="IANA timezone of the city")
    start_date: date = Field(..., description="First day in this city (inclusive)")
    end_date: date = Field(..., description="Last day in this city (inclusive)")

    accommodation_name: Optional[str] = None
    accommodation_address: Optional[str] = None
    accommodation_lat: Optional[float] = Field(None, ge=-90, le=90)
    accommodation_lng: Optional[float] = Field(None, ge=-180, le=180)
    accommodation_place_id: Optional[str] = None

    notes: Optional[str] = None

    @field_validator("city")
    @classmethod
    def validate_city(cls, v):
        if not v or not v.strip():
            raise ValueError("city must not be empty")
        return v.strip()


class TripSegmentCreate(TripSegmentBase):
    """Schema for creating a segment. Date ordering is checked by the service."""
    pass


class TripSegmentUpdate(BaseModel):
    """Partial update for a segment; unset fields are left untouched."""

    city: Optional[str] = None
    area: Optional[str] = None
    country: Optional[str] = None
    timezone: Optional[str] = None
    start_date: Optional[date] = None
    end_date: Optional[date] = None
    accommodation_name: Optional[str] = None
    accommodation_address: Optional[str] = None
    accommodation_lat: Optional[float] = Field(None, ge=-90, le=90)
    accommodation_lng: Optional[float] = Field(None, ge=-180, le=180)
    accommodation_place_id: Optional[str] = None
    order_index: Optional[int] = Field(None, ge=0)
    notes: Optional[str] = None


class TripSegmentResponse(TripSegmentBase):
    """Schema for segment responses."""

    model_config = ConfigDict(from_attributes=True)

    id: str
    trip_id: str
    order_index: int = 0
    created_by: Optional[str] = None
    created_at: Optional[datetime] = None
    updated_at: Optional[datetime] = None


class TripSegmentWithStats(TripSegmentResponse):
    """Segment plus counts of the saved places that belong to its city."""

    places_count: int = 0
    visited_count: int = 0


class CurrentSegmentInfo(BaseModel):
    """Where the traveler is on a given date."""

    segment: Optional[TripSegmentResponse] = None
    day_number: int = 0
    total_days: int = 0
    days_remaining: int = 0
    is_transit_day: bool = False

    @property
    def is_last_day(self) -> bool:
        return self.segment is not None and self.days_remaining == 0
