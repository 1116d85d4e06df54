"""
Tests for daily plan persistence.
"""

from datetime import date

import pytest

from dayplanner.core.exceptions import InvalidPlanStatusError, PlanNotFoundError
from dayplanner.models import PlanPayload, Stop

PLAN_DATE = date(2024, 5, 2)


def stops_for(*place_ids, times=None):
    times = times or ["09:00", "11:00", "14:00", "18:30"]
    return [
        Stop(place_id=place_id, order=index, planned_time=times[index], duration_minutes=60)
        for index, place_id in enumerate(place_ids)
    ]


@pytest.fixture
async def plan(plan_store, trip, osaka_places):
    places = osaka_places
    return await plan_store.upsert(
        trip.id,
        PLAN_DATE,
        PlanPayload(
            title="Osaka day",
            stops=stops_for(places["Ramen Shop"].id, places["Osaka Castle"].id),
            total_duration_minutes=120,
            total_distance_meters=5000,
        ),
        created_by="user-1",
    )


class TestUpsert:
    """Test idempotent create-or-replace."""

    @pytest.mark.database
    async def test_create(self, plan, trip):
        assert plan.id
        assert plan.trip_id == trip.id
        assert plan.plan_date == PLAN_DATE
        assert plan.status == "active"
        assert [s.order for s in plan.stops] == [0, 1]
        assert plan.created_by == "user-1"

    @pytest.mark.database
    async def test_second_upsert_keeps_id_and_replaces_content(self, plan_store, plan, trip, osaka_places):
        again = await plan_store.upsert(
            trip.id,
            PLAN_DATE,
            PlanPayload(title="Market day", stops=stops_for(osaka_places["Kuromon Market"].id)),
            created_by="user-2",
        )

        assert again.id == plan.id
        assert again.title == "Market day"
        assert again.place_ids == [osaka_places["Kuromon Market"].id]
        assert again.total_duration_minutes is None
        assert again.created_by == "user-1"
        assert len(await plan_store.get_all_for_trip(trip.id)) == 1

    @pytest.mark.database
    async def test_upsert_keeps_status(self, plan_store, plan, trip):
        await plan_store.update_status(plan.id, "completed")

        again = await plan_store.upsert(trip.id, PLAN_DATE, PlanPayload(title="Redo"))

        assert again.status == "completed"

    @pytest.mark.database
    async def test_upsert_densifies_orders(self, plan_store, trip):
        stops = [Stop(place_id="x", order=5), Stop(place_id="y", order=9)]

        stored = await plan_store.upsert(trip.id, date(2024, 5, 3), PlanPayload(stops=stops))

        assert [(s.place_id, s.order) for s in stored.stops] == [("x", 0), ("y", 1)]


class TestReads:
    """Test plan lookups."""

    @pytest.mark.database
    async def test_get_by_id_and_date(self, plan_store, plan, trip):
        assert (await plan_store.get_by_id(plan.id)).id == plan.id
        assert (await plan_store.get_by_date(trip.id, PLAN_DATE)).id == plan.id
        assert await plan_store.get_by_date(trip.id, date(2024, 6, 1)) is None
        assert await plan_store.get_by_id("missing") is None

    @pytest.mark.database
    async def test_get_all_for_trip_sorted_by_date(self, plan_store, plan, trip):
        await plan_store.upsert(trip.id, date(2024, 5, 1), PlanPayload(title="First"))

        plans = await plan_store.get_all_for_trip(trip.id)

        assert [p.plan_date for p in plans] == [date(2024, 5, 1), PLAN_DATE]

    @pytest.mark.database
    async def test_get_all_for_segment(self, plan_store, trip, osaka_segment):
        await plan_store.upsert(trip.id, PLAN_DATE, PlanPayload(segment_id=osaka_segment.id))
        await plan_store.upsert(trip.id, date(2024, 5, 6), PlanPayload())

        plans = await plan_store.get_all_for_segment(osaka_segment.id)

        assert [p.plan_date for p in plans] == [PLAN_DATE]


class TestStopEdits:
    """Test stop list mutations."""

    @pytest.mark.database
    async def test_add_stop_appends(self, plan_store, plan, osaka_places):
        market = osaka_places["Kuromon Market"]

        updated = await plan_store.add_stop(plan.id, market.id, planned_time="15:00", duration_minutes=45)

        assert updated.place_ids[-1] == market.id
        assert updated.stops[-1].order == 2
        assert updated.stops[-1].planned_time == "15:00"

    @pytest.mark.database
    async def test_remove_stop_resequences(self, plan_store, plan, osaka_places):
        updated = await plan_store.remove_stop(plan.id, osaka_places["Ramen Shop"].id)

        assert updated.place_ids == [osaka_places["Osaka Castle"].id]
        assert updated.stops[0].order == 0
        assert updated.total_duration_minutes == 120

    @pytest.mark.database
    async def test_remove_stop_at(self, plan_store, plan, osaka_places):
        updated = await plan_store.remove_stop_at(plan.id, 0)

        assert updated.place_ids == [osaka_places["Osaka Castle"].id]

    @pytest.mark.database
    async def test_swap_keeps_slot(self, plan_store, plan, osaka_places):
        ramen, sushi = osaka_places["Ramen Shop"], osaka_places["Sushi Bar"]

        updated = await plan_store.swap_stop(plan.id, ramen.id, sushi.id)

        first = updated.stops[0]
        assert (first.place_id, first.order, first.planned_time, first.duration_minutes) == (
            sushi.id, 0, "09:00", 60
        )

    @pytest.mark.database
    async def test_reorder(self, plan_store, plan, osaka_places):
        castle, ramen = osaka_places["Osaka Castle"], osaka_places["Ramen Shop"]

        updated = await plan_store.reorder_stops(plan.id, [castle.id, "unknown", ramen.id])

        assert updated.place_ids == [castle.id, ramen.id]
        assert [s.order for s in updated.stops] == [0, 1]
        # Times travel with their stop
        assert updated.stops[0].planned_time == "11:00"

    @pytest.mark.database
    async def test_update_stops_replaces_route(self, plan_store, plan):
        updated = await plan_store.update_stops(
            plan.id,
            [Stop(place_id="z", order=3)],
            route_data={"polyline": "abc"},
            total_duration_minutes=30,
            total_distance_meters=1200,
        )

        assert [(s.place_id, s.order) for s in updated.stops] == [("z", 0)]
        assert updated.route_data == {"polyline": "abc"}
        assert updated.total_distance_meters == 1200
        assert updated.updated_at >= plan.updated_at

    @pytest.mark.database
    async def test_mutating_missing_plan_raises(self, plan_store):
        with pytest.raises(PlanNotFoundError):
            await plan_store.add_stop("missing", "x")

        with pytest.raises(PlanNotFoundError):
            await plan_store.delete("missing")


class TestStatus:
    """Test status changes."""

    @pytest.mark.database
    async def test_valid_status(self, plan_store, plan):
        updated = await plan_store.update_status(plan.id, "cancelled")
        assert updated.status == "cancelled"

    @pytest.mark.database
    async def test_invalid_status_is_rejected_without_write(self, plan_store, plan):
        with pytest.raises(InvalidPlanStatusError) as exc_info:
            await plan_store.update_status(plan.id, "archived")

        assert exc_info.value.error_code == "PLAN_INVALID_STATUS"
        assert (await plan_store.get_by_id(plan.id)).status == "active"


class TestPopulatedPlan:
    """Test resolving stops against the catalog."""

    @pytest.mark.database
    async def test_places_are_resolved(self, plan_store, plan, osaka_places):
        populated = await plan_store.get_populated_plan(plan.id)

        assert [s.place.name for s in populated.populated_stops] == ["Ramen Shop", "Osaka Castle"]

    @pytest.mark.database
    async def test_placeholder_and_vanished_places(self, plan_store, trip, osaka_places):
        stops = [
            Stop(place_id=osaka_places["Ramen Shop"].id, order=0),
            Stop(place_id=None, order=1, place_name="Dotonbori"),
            Stop(place_id="deleted-place", order=2),
            Stop(place_id=None, order=3),
        ]
        stored = await plan_store.upsert(trip.id, date(2024, 5, 4), PlanPayload(stops=stops))

        populated = await plan_store.get_populated_plan(stored.id)

        assert [s.place.name for s in populated.populated_stops] == ["Ramen Shop", "Dotonbori", "Stop 4"]
        assert populated.populated_stops[1].place.id == "placeholder-1"
        assert len(populated.stops) == 4

    @pytest.mark.database
    async def test_missing_plan(self, plan_store):
        assert await plan_store.get_populated_plan("missing") is None

    @pytest.mark.database
    async def test_delete(self, plan_store, plan):
        await plan_store.delete(plan.id)
        assert await plan_store.get_by_id(plan.id) is None
