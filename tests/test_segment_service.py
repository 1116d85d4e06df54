"""
Tests for segment management and place linking.
"""

from datetime import date

import pytest

from dayplanner.core.exceptions import InvalidSegmentDatesError, SegmentNotFoundError
from dayplanner.models import SavedPlaceCreate, TripSegmentCreate, TripSegmentUpdate


def segment_data(city, start, end, **extra):
    return TripSegmentCreate(city=city, start_date=start, end_date=end, **extra)


class TestSegmentCrud:
    """Test create, read, update, delete and reorder."""

    @pytest.mark.database
    async def test_order_index_increments(self, segment_service, trip):
        first = await segment_service.create_segment(trip.id, segment_data("Tokyo", date(2024, 5, 1), date(2024, 5, 3)))
        second = await segment_service.create_segment(trip.id, segment_data("Kyoto", date(2024, 5, 4), date(2024, 5, 5)))

        assert first.order_index == 0
        assert second.order_index == 1
        assert first.timezone == "UTC"

    @pytest.mark.database
    async def test_end_before_start_is_rejected(self, segment_service, trip):
        with pytest.raises(InvalidSegmentDatesError) as exc_info:
            await segment_service.create_segment(trip.id, segment_data("Tokyo", date(2024, 5, 3), date(2024, 5, 1)))

        assert exc_info.value.error_code == "SEGMENT_INVALID_DATES"
        assert await segment_service.list_segments(trip.id) == []

    @pytest.mark.database
    async def test_update_checks_dates(self, segment_service, osaka_segment):
        with pytest.raises(InvalidSegmentDatesError):
            await segment_service.update_segment(osaka_segment.id, TripSegmentUpdate(end_date=date(2024, 4, 1)))

        updated = await segment_service.update_segment(osaka_segment.id, TripSegmentUpdate(notes="Bring umbrella"))
        assert updated.notes == "Bring umbrella"
        assert updated.city == "Osaka"

    @pytest.mark.database
    async def test_get_and_delete(self, segment_service, osaka_segment):
        assert (await segment_service.get_segment(osaka_segment.id)).city == "Osaka"

        await segment_service.delete_segment(osaka_segment.id)

        with pytest.raises(SegmentNotFoundError):
            await segment_service.get_segment(osaka_segment.id)

    @pytest.mark.database
    async def test_reorder(self, segment_service, trip):
        tokyo = await segment_service.create_segment(trip.id, segment_data("Tokyo", date(2024, 5, 1), date(2024, 5, 3)))
        kyoto = await segment_service.create_segment(trip.id, segment_data("Kyoto", date(2024, 5, 4), date(2024, 5, 5)))

        reordered = await segment_service.reorder_segments(trip.id, [kyoto.id, tokyo.id])

        assert [s.city for s in reordered] == ["Kyoto", "Tokyo"]


class TestPlaceLinking:
    """Test linking saved places to segments by city name."""

    @pytest.mark.database
    async def test_create_links_existing_places(self, segment_service, catalog, trip):
        castle = await catalog.add_place(trip.id, SavedPlaceCreate(name="Castle", area_name="Chuo, OSAKA"))
        temple = await catalog.add_place(trip.id, SavedPlaceCreate(name="Temple", location_name="Kyoto"))

        osaka = await segment_service.create_segment(trip.id, segment_data("Osaka", date(2024, 5, 1), date(2024, 5, 3)))

        linked = {p.id: p.segment_id for p in await catalog.find_by_trip(trip.id)}
        assert linked[castle.id] == osaka.id
        assert linked[temple.id] is None

    @pytest.mark.database
    async def test_auto_link_counts_and_skips_linked(self, segment_service, catalog, trip, osaka_segment):
        await catalog.add_place(trip.id, SavedPlaceCreate(name="Bar", area_name="Osaka"))

        assert await segment_service.auto_link_places(trip.id) == 1
        assert await segment_service.auto_link_places(trip.id) == 0

    @pytest.mark.database
    async def test_stats(self, segment_service, catalog, trip, osaka_segment):
        await catalog.add_place(trip.id, SavedPlaceCreate(name="Bar", area_name="Osaka"))
        await catalog.add_place(trip.id, SavedPlaceCreate(name="Zoo", area_name="Osaka", status="visited"))
        await catalog.add_place(trip.id, SavedPlaceCreate(name="Shrine", area_name="Nara"))

        stats = await segment_service.list_segments_with_stats(trip.id)

        assert stats[0].places_count == 2
        assert stats[0].visited_count == 1


class TestCurrentSegment:
    """Test store-backed current/next segment lookup."""

    @pytest.mark.database
    async def test_current_and_next(self, segment_service, trip, osaka_segment):
        kyoto = await segment_service.create_segment(trip.id, segment_data("Kyoto", date(2024, 5, 5), date(2024, 5, 7)))

        current = await segment_service.get_current_segment(trip.id, date(2024, 5, 2))
        assert current.segment.id == osaka_segment.id
        assert current.day_number == 2

        transit = await segment_service.get_current_segment(trip.id, date(2024, 5, 4))
        assert transit.segment is None
        assert transit.is_transit_day is True

        upcoming = await segment_service.get_next_segment(trip.id, date(2024, 5, 2))
        assert upcoming.id == kyoto.id
