"""
Trip model: the container that segments, saved places and plans belong to.
"""

from datetime import date, datetime
from typing import Optional

from pydantic import BaseModel, ConfigDict, Field, field_validator
from sqlalchemy import Date, String
from sqlalchemy.orm import Mapped, mapped_column

from ..core.database import Base


# =============================================================================
# SQLAlchemy ORM Model
# =============================================================================

class Trip(Base):
    """A multi-city trip."""

    __tablename__ = "trips"

    name: Mapped[str] = mapped_column(String(255), nullable=False)
    destination: Mapped[str] = mapped_column(String(255), nullable=False)
    start_date: Mapped[Optional[date]] = mapped_column(Date)
    end_date: Mapped[Optional[date]] = mapped_column(Date)
    created_by: Mapped[Optional[str]] = mapped_column(String(100))

    def __repr__(self):
        return f"<Trip(id={self.id}, name='{self.name}', destination='{self.destination}')>"


# =============================================================================
# Pydantic Schemas
# =============================================================================

class TripCreate(BaseModel):
    """Schema for creating a trip."""

    name: str = Field(..., description="Trip name, e.g. 'Japan 2026'")
    destination: str = Field(..., description="Overall destination, e.g. 'Japan'")
    start_date: Optional[date] = Field(None, description="First day of the trip")
    end_date: Optional[date] = Field(None, description="Last day of the trip")

    @field_validator("name", "destination")
    @classmethod
    def validate_not_blank(cls, v):
        if not v or not v.strip():
            raise ValueError("must not be empty")
        return v.strip()


class TripResponse(TripCreate):
    """Schema for trip responses."""

    model_config = ConfigDict(from_attributes=True)

    id: str
    created_by: Optional[str] = None
    created_at: datetime
    updated_at: datetime
