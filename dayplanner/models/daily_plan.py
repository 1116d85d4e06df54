"""
Daily plan model.
One plan per (trip, date); the ordered stop list is stored as JSON and
exposed as typed Stop objects.
"""

import re
from datetime import date, datetime
from enum import Enum
from typing import Any, Dict, List, Optional

from pydantic import BaseModel, ConfigDict, Field, field_validator
from sqlalchemy import JSON, Date, ForeignKey, Integer, String, UniqueConstraint
from sqlalchemy.orm import Mapped, mapped_column

from ..core.database import Base
from .saved_place import SavedPlaceResponse

TIME_PATTERN = re.compile(r"^([01]\d|2[0-3]):[0-5]\d$")


class PlanStatus(str, Enum):
    ACTIVE = "active"
    COMPLETED = "completed"
    CANCELLED = "cancelled"


# =============================================================================
# SQLAlchemy ORM Model
# =============================================================================

class DailyPlan(Base):
    """A day's itinerary for a trip."""

    __tablename__ = "daily_plans"
    __table_args__ = (
        UniqueConstraint("trip_id", "plan_date", name="uq_daily_plans_trip_date"),
    )

    trip_id: Mapped[str] = mapped_column(
        String(36), ForeignKey("trips.id", ondelete="CASCADE"), index=True, nullable=False
    )
    segment_id: Mapped[Optional[str]] = mapped_column(
        String(36), ForeignKey("trip_segments.id", ondelete="CASCADE"), index=True
    )

    plan_date: Mapped[date] = mapped_column(Date, index=True, nullable=False)
    title: Mapped[Optional[str]] = mapped_column(String(255))

    # Ordered list of stops, see Stop below
    stops: Mapped[List[Dict[str, Any]]] = mapped_column(JSON, default=list, nullable=False)

    # Route aggregate
    route_data: Mapped[Optional[Dict[str, Any]]] = mapped_column(JSON)
    total_duration_minutes: Mapped[Optional[int]] = mapped_column(Integer)
    total_distance_meters: Mapped[Optional[int]] = mapped_column(Integer)

    status: Mapped[str] = mapped_column(String(20), default=PlanStatus.ACTIVE.value)
    created_by: Mapped[Optional[str]] = mapped_column(String(100))

    def __repr__(self):
        return f"<DailyPlan(id={self.id}, trip_id={self.trip_id}, date={self.plan_date}, stops={len(self.stops or [])})>"


# =============================================================================
# Pydantic Schemas
# =============================================================================

class Stop(BaseModel):
    """One scheduled visit in a daily plan."""

    place_id: Optional[str] = Field(None, description="SavedPlace id; None for placeholder stops")
    order: int = Field(0, ge=0, description="Dense 0-based position")
    planned_time: Optional[str] = Field(None, description="HH:MM")
    duration_minutes: Optional[int] = Field(None, ge=0)
    notes: Optional[str] = None
    place_name: Optional[str] = Field(None, description="Literal name for stops without a place_id")

    @field_validator("planned_time")
    @classmethod
    def validate_planned_time(cls, v):
        if v is not None and not TIME_PATTERN.match(v):
            raise ValueError("planned_time must be HH:MM")
        return v


class PlanPayload(BaseModel):
    """Everything an upsert replaces on an existing (trip, date) plan."""

    segment_id: Optional[str] = None
    title: Optional[str] = None
    stops: List[Stop] = Field(default_factory=list)
    route_data: Optional[Dict[str, Any]] = None
    total_duration_minutes: Optional[int] = Field(None, ge=0)
    total_distance_meters: Optional[int] = Field(None, ge=0)


class DailyPlanResponse(BaseModel):
    """Schema for daily plan responses."""

    model_config = ConfigDict(from_attributes=True)

    id: str
    trip_id: str
    segment_id: Optional[str] = None
    plan_date: date
    title: Optional[str] = None
    stops: List[Stop] = Field(default_factory=list)
    route_data: Optional[Dict[str, Any]] = None
    total_duration_minutes: Optional[int] = None
    total_distance_meters: Optional[int] = None
    status: str = PlanStatus.ACTIVE.value
    created_by: Optional[str] = None
    created_at: Optional[datetime] = None
    updated_at: Optional[datetime] = None

    @property
    def place_ids(self) -> List[str]:
        return [stop.place_id for stop in self.stops if stop.place_id]


class PopulatedStop(Stop):
    """A stop with its place resolved against the catalog."""

    place: SavedPlaceResponse


class PopulatedDailyPlan(DailyPlanResponse):
    """A plan whose stops carry their SavedPlace (or a placeholder)."""

    populated_stops: List[PopulatedStop] = Field(default_factory=list)


# =============================================================================
# Utility Functions
# =============================================================================

def resequence_stops(stops: List[Stop]) -> List[Stop]:
    """Return copies of ``stops`` numbered 0..n-1 in their current list order."""
    return [stop.model_copy(update={"order": index}) for index, stop in enumerate(stops)]


def serialize_stops(stops: List[Stop]) -> List[Dict[str, Any]]:
    """Convert stops to the JSON shape stored in the ``stops`` column."""
    return [stop.model_dump() for stop in stops]
