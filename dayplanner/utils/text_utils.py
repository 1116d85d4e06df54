"""
Text utilities for Day Planner.
Name normalization and matching used by the generator and the plan mutator.
"""

import re
import unicodedata
from typing import Iterable, Optional, TypeVar

T = TypeVar("T")


# =============================================================================
# TEXT CLEANING AND NORMALIZATION
# =============================================================================

def clean_text(text: str) -> str:
    """
    Normalize unicode and collapse whitespace.

    Args:
        text: Input text

    Returns:
        Cleaned text
    """
    if not text:
        return ""

    text = unicodedata.normalize('NFKC', text)
    text = re.sub(r'\s+', ' ', text)
    return text.strip()


def normalize_name(name: Optional[str]) -> str:
    """Lowercased, whitespace-collapsed form used for name comparison."""
    return clean_text(name or "").lower()


# =============================================================================
# NAME MATCHING
# =============================================================================

def names_match(first: Optional[str], second: Optional[str]) -> bool:
    """
    Case-insensitive bidirectional substring match.

    Empty names never match anything.
    """
    a = normalize_name(first)
    b = normalize_name(second)
    if not a or not b:
        return False
    return a in b or b in a


def find_mentioned(text: str, items: Iterable[T], name_of=lambda item: item.name) -> Optional[T]:
    """
    First item whose name matches ``text``.

    Args:
        text: Free-text message
        items: Candidates, in priority order
        name_of: Extracts the display name from an item

    Returns:
        The first matching item, or None
    """
    return next((item for item in items if names_match(name_of(item), text)), None)


# =============================================================================
# TIME FORMATTING
# =============================================================================

def format_clock(hour: int, minute: int = 0) -> str:
    """Format a wall-clock time as HH:MM."""
    return f"{hour:02d}:{minute:02d}"


def format_duration(minutes: int) -> str:
    """Format minutes as e.g. '2h 30m' or '45m'."""
    hours, mins = divmod(max(minutes, 0), 60)
    if hours and mins:
        return f"{hours}h {mins}m"
    if hours:
        return f"{hours}h"
    return f"{mins}m"
