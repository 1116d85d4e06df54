"""
Day plan generation.

Plans are requested from a text-completion optimizer first. Whenever that
fails in any way the deterministic slot-filling heuristic below produces the
plan instead, so generation itself never fails.
"""

import asyncio
import json
import re
from datetime import datetime
from typing import Any, Dict, List, Optional, Sequence

from pydantic import BaseModel, Field, field_validator

from ..ai.gemini_service import TextCompletionPort
from ..core.config import settings
from ..core.exceptions import OptimizerResponseError
from ..core.logger import get_logger
from ..models.daily_plan import Stop
from ..models.saved_place import PlaceCategory, SavedPlaceResponse
from ..models.trip_segment import CurrentSegmentInfo
from ..utils.text_utils import format_clock, format_duration, names_match
from .anchor_parser import Anchor

logger = get_logger(__name__)

USER_REQUEST_ID = "user_request"

FOOD = PlaceCategory.FOOD.value
MORNING_CATEGORIES = (PlaceCategory.PLACE.value, PlaceCategory.ACTIVITY.value)
AFTERNOON_CATEGORIES = (
    PlaceCategory.SHOPPING.value, PlaceCategory.ACTIVITY.value, PlaceCategory.PLACE.value
)

ANCHOR_TIMES = {
    "morning": "10:00",
    "afternoon": "14:00",
    "evening": "18:00",
    "night": "20:00",
}

CATEGORY_EMOJIS = {
    "food": "🍽️",
    "shopping": "🛍️",
    "place": "📍",
    "activity": "🎯",
    "accommodation": "🏨",
    "tip": "💡",
}

TIME_LABELS = {
    "09": "☀️ Morning",
    "10": "☀️ Morning",
    "11": "☀️ Late Morning",
    "12": "🍱 Lunch",
    "13": "🍱 Lunch",
    "14": "☀️ Afternoon",
    "15": "☀️ Afternoon",
    "16": "☀️ Late Afternoon",
    "17": "🌆 Evening",
    "18": "🍽️ Dinner",
    "19": "🍽️ Dinner",
    "20": "🌙 Night",
    "21": "🌙 Night",
}

PLAN_RESPONSE_SCHEMA: Dict[str, Any] = {
    "type": "OBJECT",
    "properties": {
        "title": {"type": "STRING"},
        "stops": {
            "type": "ARRAY",
            "items": {
                "type": "OBJECT",
                "properties": {
                    "saved_item_id": {"type": "STRING"},
                    "name": {"type": "STRING"},
                    "category": {"type": "STRING"},
                    "planned_time": {"type": "STRING"},
                    "duration_minutes": {"type": "INTEGER"},
                    "notes": {"type": "STRING"},
                },
                "required": ["saved_item_id", "planned_time"],
            },
        },
        "summary": {"type": "STRING"},
        "totalDurationMinutes": {"type": "INTEGER"},
        "totalDistanceMeters": {"type": "INTEGER"},
    },
    "required": ["stops"],
}

_LOOSE_TIME = re.compile(r"^(\d{1,2}):([0-5]\d)$")


# =============================================================================
# Schemas
# =============================================================================

class PlannedStop(BaseModel):
    """A stop chosen by the generator, before it is persisted."""

    place_id: str
    name: str
    category: str = PlaceCategory.PLACE.value
    planned_time: str
    duration_minutes: int = 90
    notes: Optional[str] = None
    location_lat: Optional[float] = None
    location_lng: Optional[float] = None

    @property
    def is_user_request(self) -> bool:
        return self.place_id == USER_REQUEST_ID

    def to_stop(self, order: int) -> Stop:
        """Persistable stop; user requests become placeholder stops."""
        return Stop(
            place_id=None if self.is_user_request else self.place_id,
            order=order,
            planned_time=self.planned_time,
            duration_minutes=self.duration_minutes,
            notes=self.notes,
            place_name=self.name if self.is_user_request else None,
        )


class GeneratedPlan(BaseModel):
    title: str
    stops: List[PlannedStop] = Field(default_factory=list)
    summary: str = ""
    total_duration_minutes: int = 0
    total_distance_meters: int = 0
    used_fallback: bool = False

    def to_stops(self) -> List[Stop]:
        return [stop.to_stop(index) for index, stop in enumerate(self.stops)]


class MatchedAnchor(BaseModel):
    anchor: Anchor
    place: Optional[SavedPlaceResponse] = None


class OptimizerStop(BaseModel):
    saved_item_id: str
    name: Optional[str] = None
    category: Optional[str] = None
    planned_time: str
    duration_minutes: int = Field(default=60, ge=0)
    notes: Optional[str] = None

    @field_validator("planned_time")
    @classmethod
    def normalize_time(cls, v):
        match = _LOOSE_TIME.match(v.strip())
        if not match or int(match.group(1)) > 23:
            raise ValueError(f"planned_time must be HH:MM, got {v!r}")
        return f"{int(match.group(1)):02d}:{match.group(2)}"


class OptimizerResponse(BaseModel):
    title: Optional[str] = None
    stops: List[OptimizerStop] = Field(default_factory=list)
    summary: Optional[str] = None
    totalDurationMinutes: Optional[int] = None
    totalDistanceMeters: Optional[int] = None


# =============================================================================
# Helpers
# =============================================================================

def rank_places(places: Sequence[SavedPlaceResponse]) -> List[SavedPlaceResponse]:
    """Must-visit first, then highest rating; equal places keep their order."""
    return sorted(places, key=lambda p: (not p.is_must_visit, -(p.rating or 0)))


def match_anchors(anchors: Sequence[Anchor], places: Sequence[SavedPlaceResponse]) -> List[MatchedAnchor]:
    """Pair each anchor with the first place whose name overlaps the activity."""
    return [
        MatchedAnchor(
            anchor=anchor,
            place=next((p for p in places if names_match(p.name, anchor.activity)), None),
        )
        for anchor in anchors
    ]


def anchor_time(anchor: Anchor, index: int) -> str:
    if anchor.specific_time:
        return anchor.specific_time
    if anchor.time_hint in ANCHOR_TIMES:
        return ANCHOR_TIMES[anchor.time_hint]
    return format_clock(min(10 + index * 3, settings.planner_day_end_hour))


def _planned(place: SavedPlaceResponse, planned_time: str, duration: int,
             notes: Optional[str] = None) -> PlannedStop:
    return PlannedStop(
        place_id=place.id,
        name=place.name,
        category=place.category,
        planned_time=planned_time,
        duration_minutes=duration,
        notes=notes,
        location_lat=place.location_lat,
        location_lng=place.location_lng,
    )


def _city_name(segment_info: CurrentSegmentInfo) -> str:
    return segment_info.segment.city if segment_info.segment else "the city"


# =============================================================================
# Fallback heuristic
# =============================================================================

def build_fallback_plan(
    places: Sequence[SavedPlaceResponse],
    segment_info: CurrentSegmentInfo,
    current_hour: int,
    matched_anchors: Sequence[MatchedAnchor] = ()
) -> GeneratedPlan:
    """
    Deterministic slot-filling plan.

    Slots, in order: breakfast (before 11:00), up to two morning
    attractions, lunch at 12:30, up to two afternoon stops, dinner at
    18:30. Slots without an eligible place are left out. Places matched by
    anchors are pinned at their anchor time before the slots are filled.
    """
    pinned: List[PlannedStop] = []
    pinned_ids = set()
    for index, matched in enumerate(matched_anchors):
        place = matched.place
        if place is None or place.id in pinned_ids:
            continue
        pinned.append(_planned(place, anchor_time(matched.anchor, index), 90, notes="⭐ Your pick!"))
        pinned_ids.add(place.id)

    remaining = [p for p in rank_places(places) if p.id not in pinned_ids]

    def take(categories) -> Optional[SavedPlaceResponse]:
        for index, place in enumerate(remaining):
            if place.category in categories:
                return remaining.pop(index)
        return None

    stops: List[PlannedStop] = []
    clock = min(max(current_hour, settings.planner_day_start_hour), settings.planner_day_end_hour)

    # Breakfast
    if clock < 11:
        breakfast = take((FOOD,))
        if breakfast:
            stops.append(_planned(breakfast, format_clock(clock), 60))
            clock += 1

    # Morning attractions
    for _ in range(2):
        if clock >= 12:
            break
        place = take(MORNING_CATEGORIES)
        if not place:
            break
        stops.append(_planned(place, format_clock(clock), 90))
        clock += 2

    # Lunch; the afternoon starts at 14:00 whether or not lunch was found
    if clock <= 14:
        lunch = take((FOOD,))
        if lunch:
            stops.append(_planned(lunch, "12:30", 60))
        clock = 14

    # Afternoon
    for _ in range(2):
        if clock >= 18:
            break
        place = take(AFTERNOON_CATEGORIES)
        if not place:
            break
        stops.append(_planned(place, format_clock(clock), 90))
        clock += 2

    # Dinner
    dinner = take((FOOD,))
    if dinner:
        stops.append(_planned(dinner, "18:30", 90))

    if pinned:
        # Stable sort keeps pinned stops ahead of heuristic stops at the same time
        stops = sorted(pinned + stops, key=lambda s: s.planned_time)

    city = _city_name(segment_info)
    return GeneratedPlan(
        title=f"Exploring {city}",
        stops=stops,
        summary=f"A day of discovery in {city} with {len(stops)} amazing stops!",
        total_duration_minutes=sum(s.duration_minutes for s in stops),
        total_distance_meters=settings.placeholder_distance_meters,
        used_fallback=True,
    )


# =============================================================================
# Prompt
# =============================================================================

def build_plan_prompt(
    candidates: Sequence[SavedPlaceResponse],
    segment_info: CurrentSegmentInfo,
    destination: Optional[str],
    current_hour: int,
    matched_anchors: Sequence[MatchedAnchor] = ()
) -> str:
    place_list = [
        {
            "id": p.id,
            "name": p.name,
            "category": p.category,
            "rating": p.rating,
            "area": p.area_name or p.location_name,
            "lat": p.location_lat,
            "lng": p.location_lng,
            "isMustVisit": p.is_must_visit,
        }
        for p in candidates
    ]

    segment = segment_info.segment
    if segment:
        remaining = (
            "LAST DAY in this city!" if segment_info.days_remaining == 0
            else f"{segment_info.days_remaining} days remaining"
        )
        context = (
            f"- City: {segment.city}\n"
            f"- Day {segment_info.day_number} of {segment_info.total_days}\n"
            f"- {remaining}\n"
            f"- Hotel: {segment.accommodation_name or 'Unknown'}"
        )
    else:
        context = "- No specific segment"

    start = "9am" if current_hour < 10 else f"{current_hour}:00"

    anchor_section = ""
    anchor_rules = ""
    if matched_anchors:
        anchor_info = [
            {
                "activity": m.anchor.activity,
                "timeHint": m.anchor.time_hint,
                "specificTime": m.anchor.specific_time,
                "matchedPlaceId": m.place.id if m.place else None,
                "matchedPlaceName": m.place.name if m.place else None,
            }
            for m in matched_anchors
        ]
        anchor_section = (
            "\nUSER'S SPECIFIC REQUESTS (MUST INCLUDE THESE):\n"
            f"{json.dumps(anchor_info, indent=2)}\n"
        )
        anchor_rules = (
            "8. MUST include the user's requested activities at their preferred times\n"
            f"9. If a requested activity is not a saved place, include it with saved_item_id \"{USER_REQUEST_ID}\"\n"
        )

    return f"""You are a travel planning expert. Create an optimized day plan from these saved places.

CONTEXT:
- Destination: {destination or 'Unknown'}
{context}
- Current time: {current_hour}:00
- Available hours: {start} to 9pm
{anchor_section}
AVAILABLE PLACES ({len(candidates)} total):
{json.dumps(place_list, indent=2)}

RULES:
1. Select 4-6 places maximum for a comfortable day
2. Prioritize must-visit items and highest rated
3. Group nearby places together
4. Include meal stops (breakfast if morning, lunch around 12-2pm, dinner around 6-8pm)
5. Food places should align with meal times
6. Allow 1-2 hours per attraction, 1 hour for meals
7. If last day, prioritize must-visit items they haven't seen
{anchor_rules}
Use only ids from AVAILABLE PLACES. Return JSON with "title", "stops" (saved_item_id, name,
category, planned_time as HH:MM, duration_minutes, notes), "summary",
"totalDurationMinutes" and "totalDistanceMeters"."""


# =============================================================================
# Generator
# =============================================================================

class PlanGenerator:
    """Builds a day plan from a place pool, optimizer first, heuristic second."""

    def __init__(self, optimizer: Optional[TextCompletionPort] = None,
                 timeout_seconds: Optional[float] = None,
                 max_candidates: Optional[int] = None):
        """
        Args:
            optimizer: Text-completion optimizer; None means heuristic only
            timeout_seconds: Hard limit for one optimizer call
            max_candidates: How many pool places are offered to the optimizer
        """
        self.optimizer = optimizer
        self.timeout_seconds = timeout_seconds or settings.optimizer_timeout_seconds
        self.max_candidates = max_candidates or settings.max_plan_candidates

    async def generate(
        self,
        places: Sequence[SavedPlaceResponse],
        segment_info: CurrentSegmentInfo,
        anchors: Optional[Sequence[Anchor]] = None,
        destination: Optional[str] = None,
        current_hour: Optional[int] = None
    ) -> GeneratedPlan:
        """
        Generate a plan for one day.

        Args:
            places: Candidate pool (already limited to unvisited places)
            segment_info: Resolved segment for the plan date
            anchors: User-requested activities that must appear
            destination: Trip destination, for the prompt
            current_hour: Local hour the day starts from (default: now)

        Returns:
            GeneratedPlan: Never raises on optimizer problems
        """
        if current_hour is None:
            current_hour = datetime.now().hour

        if not places:
            return GeneratedPlan(
                title="Day Plan",
                summary="Every saved place has been visited.",
                used_fallback=False,
            )

        matched_anchors = match_anchors(anchors or [], places)

        if self.optimizer is not None:
            try:
                return await self._optimize(
                    places, segment_info, matched_anchors, destination, current_hour
                )
            except Exception as e:
                logger.warning(f"Optimizer plan failed, using fallback heuristic: {e}")
        else:
            logger.debug("No optimizer configured, using fallback heuristic")

        return build_fallback_plan(places, segment_info, current_hour, matched_anchors)

    async def _optimize(
        self,
        places: Sequence[SavedPlaceResponse],
        segment_info: CurrentSegmentInfo,
        matched_anchors: Sequence[MatchedAnchor],
        destination: Optional[str],
        current_hour: int
    ) -> GeneratedPlan:
        candidates = list(places)[:self.max_candidates]
        prompt = build_plan_prompt(candidates, segment_info, destination, current_hour, matched_anchors)

        raw = await asyncio.wait_for(
            self.optimizer.complete(prompt, PLAN_RESPONSE_SCHEMA),
            timeout=self.timeout_seconds,
        )
        response = OptimizerResponse.model_validate(raw)

        by_id = {p.id: p for p in places}
        stops: List[PlannedStop] = []
        seen = set()
        for proposed in response.stops:
            if proposed.saved_item_id in by_id and proposed.saved_item_id not in seen:
                place = by_id[proposed.saved_item_id]
                stops.append(_planned(place, proposed.planned_time, proposed.duration_minutes, proposed.notes))
                seen.add(place.id)
            elif proposed.saved_item_id == USER_REQUEST_ID and matched_anchors and proposed.name:
                stops.append(PlannedStop(
                    place_id=USER_REQUEST_ID,
                    name=proposed.name,
                    category=proposed.category or PlaceCategory.ACTIVITY.value,
                    planned_time=proposed.planned_time,
                    duration_minutes=proposed.duration_minutes,
                    notes=proposed.notes,
                ))
            else:
                logger.debug(f"Dropping optimizer stop with unknown id {proposed.saved_item_id!r}")

        if not stops:
            raise OptimizerResponseError("Optimizer returned no usable stops", error_code="OPTIMIZER_NO_STOPS")

        stops = self._ensure_anchors(stops, matched_anchors)
        stops.sort(key=lambda s: s.planned_time)

        logger.info(f"Optimizer produced {len(stops)} stops")
        return GeneratedPlan(
            title=response.title or "Day Plan",
            stops=stops,
            summary=response.summary or "Your optimized day plan",
            total_duration_minutes=sum(s.duration_minutes for s in stops),
            total_distance_meters=response.totalDistanceMeters or settings.placeholder_distance_meters,
            used_fallback=False,
        )

    @staticmethod
    def _ensure_anchors(stops: List[PlannedStop], matched_anchors: Sequence[MatchedAnchor]) -> List[PlannedStop]:
        """Add any anchor the optimizer left out at the anchor's own time."""
        result = list(stops)
        for index, matched in enumerate(matched_anchors):
            if matched.place is not None:
                if any(s.place_id == matched.place.id for s in result):
                    continue
                result.append(_planned(matched.place, anchor_time(matched.anchor, index), 90, notes="⭐ Your pick!"))
            else:
                activity = matched.anchor.activity
                if any(s.is_user_request and names_match(s.name, activity) for s in result):
                    continue
                result.append(PlannedStop(
                    place_id=USER_REQUEST_ID,
                    name=activity,
                    category=PlaceCategory.ACTIVITY.value,
                    planned_time=anchor_time(matched.anchor, index),
                    duration_minutes=90,
                    notes="⭐ Your pick!",
                ))
        return result


# =============================================================================
# Message formatting
# =============================================================================

def format_plan_message(plan: GeneratedPlan, segment_info: CurrentSegmentInfo,
                        destination: Optional[str] = None) -> str:
    """Render a generated plan as a chat message."""
    city_name = segment_info.segment.city if segment_info.segment else (destination or "your destination")
    day_info = f"Day {segment_info.day_number}" if segment_info.segment else "Today"

    lines = [f"🗓️ **{plan.title}**", f"*{day_info} in {city_name}*", ""]

    last_label = ""
    for index, stop in enumerate(plan.stops):
        label = TIME_LABELS.get(stop.planned_time.split(":")[0], "📍")
        if label != last_label:
            lines.append(f"**{label}**")
            last_label = label

        emoji = CATEGORY_EMOJIS.get(stop.category, "📍")
        lines.append(f"{index + 1}. {emoji} **{stop.name}** ({stop.planned_time})")
        if stop.notes:
            lines.append(f"   _{stop.notes}_")

    totals = f"\n📊 **Total:** {len(plan.stops)} stops · ~{format_duration(plan.total_duration_minutes)}"
    if plan.total_distance_meters > 0:
        totals += f" · {plan.total_distance_meters / 1000:.1f}km"
    lines.append(totals)

    lines.append(f"\n{plan.summary}")
    lines.append('\n_Want to modify? Say "swap X with Y" or "remove X"_')
    return "\n".join(lines)
