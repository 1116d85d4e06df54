"""
Data models for Day Planner.
All database models and schemas are defined here.
"""

from .trip import Trip, TripCreate, TripResponse
from .trip_segment import (
    TripSegment, TripSegmentCreate, TripSegmentUpdate, TripSegmentResponse,
    TripSegmentWithStats, CurrentSegmentInfo
)
from .saved_place import (
    SavedPlace, SavedPlaceCreate, SavedPlaceResponse, PlaceCategory, PlaceStatus
)
from .daily_plan import (
    DailyPlan, DailyPlanResponse, PopulatedDailyPlan, PopulatedStop, PlanPayload,
    PlanStatus, Stop, resequence_stops, serialize_stops
)

__all__ = [
    "Trip",
    "TripCreate",
    "TripResponse",
    "TripSegment",
    "TripSegmentCreate",
    "TripSegmentUpdate",
    "TripSegmentResponse",
    "TripSegmentWithStats",
    "CurrentSegmentInfo",
    "SavedPlace",
    "SavedPlaceCreate",
    "SavedPlaceResponse",
    "PlaceCategory",
    "PlaceStatus",
    "DailyPlan",
    "DailyPlanResponse",
    "PopulatedDailyPlan",
    "PopulatedStop",
    "PlanPayload",
    "PlanStatus",
    "Stop",
    "resequence_stops",
    "serialize_stops",
]
