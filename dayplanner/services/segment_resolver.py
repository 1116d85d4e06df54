"""Resolve which trip segment is active on a given date."""
from datetime import date
from typing import Iterable, List, Optional

from ..models.trip_segment import CurrentSegmentInfo, TripSegmentResponse


def _by_order(segments: Iterable[TripSegmentResponse]) -> List[TripSegmentResponse]:
    return sorted(segments, key=lambda s: (s.order_index, s.start_date))


def day_number_for(segment: TripSegmentResponse, as_of: date) -> int:
    """1-indexed day of ``as_of`` within ``segment``."""
    return (as_of - segment.start_date).days + 1


def total_days_for(segment: TripSegmentResponse) -> int:
    return (segment.end_date - segment.start_date).days + 1


def resolve_current_segment(
    segments: Iterable[TripSegmentResponse],
    as_of: date
) -> CurrentSegmentInfo:
    """
    Find the segment containing ``as_of``.

    Segments are scanned by order_index, so when two segments overlap the
    earlier one in the trip order wins. When no segment contains the date,
    ``is_transit_day`` is set only if one segment ends before the date and
    another starts after it; dates before or after the whole trip are not
    transit days.

    Args:
        segments: All segments of one trip
        as_of: Date to resolve

    Returns:
        CurrentSegmentInfo: segment plus day number, total days, days remaining
    """
    ordered = _by_order(segments)

    for segment in ordered:
        if segment.start_date <= as_of <= segment.end_date:
            day_number = day_number_for(segment, as_of)
            total_days = total_days_for(segment)
            return CurrentSegmentInfo(
                segment=segment,
                day_number=day_number,
                total_days=total_days,
                days_remaining=total_days - day_number,
                is_transit_day=False,
            )

    ended_before = any(s.end_date < as_of for s in ordered)
    starts_after = any(s.start_date > as_of for s in ordered)

    return CurrentSegmentInfo(
        segment=None,
        day_number=0,
        total_days=0,
        days_remaining=0,
        is_transit_day=ended_before and starts_after,
    )


def find_next_segment(
    segments: Iterable[TripSegmentResponse],
    as_of: date
) -> Optional[TripSegmentResponse]:
    """Earliest segment starting strictly after ``as_of``."""
    upcoming = [s for s in _by_order(segments) if s.start_date > as_of]
    if not upcoming:
        return None
    # min() keeps the first of equal start dates, i.e. the lower order_index
    return min(upcoming, key=lambda s: s.start_date)
