"""Extract "must include X at time Y" anchors from free-text plan requests."""
import re
from typing import List, Optional, Tuple

from pydantic import BaseModel, Field

TIMES_OF_DAY = ("morning", "afternoon", "evening")

# Family 1: "<time-of-day> ... go to/visit/at <place>"; "at" before a digit is a clock time
_TIME_FIRST_PATTERNS = [
    (time_hint, re.compile(rf"{time_hint}[^,]*?\b(?:go to|visit|at(?!\s+\d))\s+([^,.\n]+)", re.IGNORECASE))
    for time_hint in TIMES_OF_DAY
]

# Family 2: "go to/visit <place> in the morning"
_PLACE_FIRST_PATTERNS = [
    (time_hint, re.compile(rf"\b(?:go to|visit)\s+([^,]+?)\s+(?:in the\s+)?{time_hint}", re.IGNORECASE))
    for time_hint in TIMES_OF_DAY
]

# Family 3: "want to/have to/going to/need to go to/visit <place>"
_GO_TO_PATTERN = re.compile(
    r"\b(?:want to|have to|going to|need to)\s+(?:go to|visit)\s+([^,.\n]+)", re.IGNORECASE
)

# Family 4: "<X> then <Y>"
_THEN_PATTERN = re.compile(r"([^,]+)\s+then\s+([^,.\n]+)", re.IGNORECASE)

_DAY_NUMBER_PATTERN = re.compile(r"day\s*(\d+)", re.IGNORECASE)
_EXPLICIT_TIME_PATTERN = re.compile(
    r"\s*\bat\s+(\d{1,2})(?::([0-5]\d))?\s*(am|pm)?\b", re.IGNORECASE
)

PLAN_PHRASES = [
    "plan my day",
    "plan today",
    "plan the day",
    "create a plan",
    "make a plan",
    "itinerary for today",
    "what should i do today",
    "what to do today",
    "help me plan",
    "suggest a route",
    "where should i go",
    "daily itinerary",
    "day plan",
    "plan for tomorrow",
]

DAY_ACTIVITY_PATTERNS = [
    re.compile(r"day\s*\d+", re.IGNORECASE),
    re.compile(r"on\s+(monday|tuesday|wednesday|thursday|friday|saturday|sunday)", re.IGNORECASE),
    re.compile(r"tomorrow", re.IGNORECASE),
    re.compile(r"today.*want.*go", re.IGNORECASE),
    re.compile(r"morning.*evening", re.IGNORECASE),
    re.compile(r"want.*go.*to", re.IGNORECASE),
    re.compile(r"have\s*to\s*(go|visit)", re.IGNORECASE),
]

MODIFICATION_PHRASES = [
    "swap", "replace", "change",
    "remove", "delete", "skip",
    "add", "include",
    "lock", "confirm", "save plan",
    "modify", "update plan",
]


class Anchor(BaseModel):
    """A user-requested activity pinned to a time of day."""

    activity: str = Field(..., min_length=1)
    time_hint: Optional[str] = Field(None, description="morning, afternoon, evening or night")
    specific_time: Optional[str] = Field(None, description="HH:MM when the user named a clock time")


class ParsedPlanRequest(BaseModel):
    day_number: Optional[int] = None
    anchors: List[Anchor] = Field(default_factory=list)
    is_generic_plan: bool = True


def is_plan_intent(message: str) -> bool:
    """Check if message asks for a day plan."""
    lower = message.lower()
    return any(phrase in lower for phrase in PLAN_PHRASES)


def is_day_activity_intent(message: str) -> bool:
    """Check if message adds activities to a day, e.g. "Day 2 I want to go to Siam Center"."""
    return any(pattern.search(message) for pattern in DAY_ACTIVITY_PATTERNS)


def is_plan_modification_intent(message: str) -> bool:
    """Check if message edits an existing plan."""
    lower = message.lower()
    return any(phrase in lower for phrase in MODIFICATION_PHRASES)


def _split_explicit_time(activity: str) -> Tuple[str, Optional[str]]:
    """Pull "at 3pm" / "at 14:30" out of an activity."""
    match = _EXPLICIT_TIME_PATTERN.search(activity)
    if not match:
        return activity, None

    hour_text, minute_text, meridiem = match.groups()
    if not minute_text and not meridiem:
        # "at 7" alone is too ambiguous to be a clock time
        return activity, None

    hour = int(hour_text)
    if meridiem:
        if not 1 <= hour <= 12:
            return activity, None
        hour = hour % 12 + (12 if meridiem.lower() == "pm" else 0)
    if hour > 23:
        return activity, None

    cleaned = (activity[:match.start()] + activity[match.end():]).strip()
    return cleaned or activity, f"{hour:02d}:{minute_text or '00'}"


def _make_anchor(raw_activity: str, time_hint: Optional[str] = None) -> Optional[Anchor]:
    activity, specific_time = _split_explicit_time(raw_activity.strip())
    activity = activity.strip()
    if not activity:
        return None
    return Anchor(activity=activity, time_hint=time_hint, specific_time=specific_time)


def _collect(matches) -> List[Anchor]:
    return [anchor for anchor in matches if anchor is not None]


def extract_anchors(message: str) -> List[Anchor]:
    """
    Extract anchors using ordered pattern families; the first family that
    yields anything wins.

    Args:
        message: Free-text request, e.g. "morning visit Osaka Castle, evening go to Dotonbori"

    Returns:
        list: Anchors in the order they were found (may be empty)
    """
    # Family 1: time of day first
    anchors = _collect(
        _make_anchor(match.group(1), time_hint)
        for time_hint, pattern in _TIME_FIRST_PATTERNS
        for match in [pattern.search(message)]
        if match and match.group(1).strip()
    )
    if anchors:
        return anchors

    # Family 2: place first, time of day after
    anchors = _collect(
        _make_anchor(match.group(1), time_hint)
        for time_hint, pattern in _PLACE_FIRST_PATTERNS
        for match in [pattern.search(message)]
        if match and match.group(1).strip()
    )
    if anchors:
        return anchors

    # Family 3: every "want to go to X"
    anchors = _collect(
        _make_anchor(match.group(1))
        for match in _GO_TO_PATTERN.finditer(message)
        if match.group(1).strip()
    )
    if anchors:
        return anchors

    # Family 4: "X then Y"
    then_match = _THEN_PATTERN.search(message)
    if then_match:
        return _collect([
            _make_anchor(then_match.group(1), "morning"),
            _make_anchor(then_match.group(2), "evening"),
        ])

    return []


def parse_plan_request(message: str) -> ParsedPlanRequest:
    """Parse a day planning request into a day number and anchors."""
    day_match = _DAY_NUMBER_PATTERN.search(message)
    day_number = int(day_match.group(1)) if day_match else None

    anchors = extract_anchors(message)

    return ParsedPlanRequest(
        day_number=day_number,
        anchors=anchors,
        is_generic_plan=not anchors,
    )
