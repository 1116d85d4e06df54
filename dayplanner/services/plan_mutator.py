"""Free-text edits to an existing day plan ("swap X with Y", "remove X", ...)."""
from datetime import date
from enum import Enum
from typing import List, Optional, Tuple

from pydantic import BaseModel

from ..core.logger import get_logger
from ..models.daily_plan import DailyPlanResponse, PopulatedStop
from ..models.saved_place import PlaceStatus, SavedPlaceResponse
from ..utils.text_utils import find_mentioned
from .place_catalog import PlaceCatalog
from .plan_store import PlanStore

logger = get_logger(__name__)

NO_PLAN_MESSAGE = "You don't have a plan for today yet. Say 'Plan my day' to create one!"
LOCKED_MESSAGE = "✅ Plan locked! Have an amazing day! I'll check in with you this evening. 🎉"
HELP_MESSAGE = (
    "I didn't understand that modification. Try:\n"
    "• 'Swap [place] with [other place]'\n"
    "• 'Remove [place]'\n"
    "• 'Add [place]'\n"
    "• 'Lock plan'"
)


class PlanIntent(str, Enum):
    SWAP = "swap"
    REMOVE = "remove"
    ADD = "add"
    LOCK = "lock"
    NONE = "none"


# Checked in this order; the first intent with a keyword in the text wins
INTENT_KEYWORDS: List[Tuple[PlanIntent, Tuple[str, ...]]] = [
    (PlanIntent.SWAP, ("swap", "replace")),
    (PlanIntent.REMOVE, ("remove", "delete", "skip")),
    (PlanIntent.ADD, ("add", "include")),
    (PlanIntent.LOCK, ("lock", "confirm", "save")),
]


def classify_intent(text: str) -> PlanIntent:
    lower = text.lower()
    for intent, keywords in INTENT_KEYWORDS:
        if any(keyword in lower for keyword in keywords):
            return intent
    return PlanIntent.NONE


class ModificationResult(BaseModel):
    success: bool
    message: str
    plan: Optional[DailyPlanResponse] = None


class PlanMutator:
    """Applies conversational edits to the plan of one day."""

    def __init__(self, store: PlanStore, catalog: PlaceCatalog):
        """
        Initialize with service dependencies.

        Args:
            store: PlanStore instance
            catalog: PlaceCatalog instance
        """
        self.store = store
        self.catalog = catalog

    async def handle_modification(self, trip_id: str, user_id: str, text: str,
                                  plan_date: Optional[date] = None) -> ModificationResult:
        """
        Interpret ``text`` as an edit to the plan for ``plan_date``.

        Args:
            trip_id: Trip ID
            user_id: User asking for the change
            text: Free-text command
            plan_date: Day of the plan (default today)

        Returns:
            ModificationResult: success flag, chat message and the updated plan
        """
        plan = await self.store.get_by_date(trip_id, plan_date or date.today())
        if plan is None:
            return ModificationResult(success=False, message=NO_PLAN_MESSAGE)

        intent = classify_intent(text)
        logger.debug(f"Plan modification from {user_id}: {intent.value}")

        if intent == PlanIntent.SWAP:
            return await self._swap(plan, text, trip_id)
        if intent == PlanIntent.REMOVE:
            return await self._remove(plan, text)
        if intent == PlanIntent.ADD:
            return await self._add(plan, text, trip_id)
        if intent == PlanIntent.LOCK:
            return ModificationResult(success=True, message=LOCKED_MESSAGE, plan=plan)
        return ModificationResult(success=False, message=HELP_MESSAGE)

    async def _populated_stops(self, plan: DailyPlanResponse) -> List[PopulatedStop]:
        populated = await self.store.get_populated_plan(plan.id)
        return populated.populated_stops if populated else []

    async def _unplanned_places(self, plan: DailyPlanResponse, trip_id: str) -> List[SavedPlaceResponse]:
        planned = set(plan.place_ids)
        saved = await self.catalog.find_by_trip(trip_id, status=PlaceStatus.SAVED.value)
        return [place for place in saved if place.id not in planned]

    async def _swap(self, plan: DailyPlanResponse, text: str, trip_id: str) -> ModificationResult:
        stops = [s for s in await self._populated_stops(plan) if s.place_id]
        target = find_mentioned(text, stops, name_of=lambda s: s.place.name)
        if target is None:
            return ModificationResult(
                success=False,
                message="I couldn't find that place in your plan. Which one did you want to swap?",
            )

        alternatives = [
            place for place in await self._unplanned_places(plan, trip_id)
            if place.category == target.place.category
        ]
        replacement = find_mentioned(text, alternatives)
        if replacement is not None:
            updated = await self.store.swap_stop(plan.id, target.place_id, replacement.id)
            return ModificationResult(
                success=True,
                message=f"✅ Swapped **{target.place.name}** with **{replacement.name}**!",
                plan=updated,
            )

        suggestions = ", ".join(place.name for place in alternatives[:3])
        return ModificationResult(
            success=False,
            message=f"What would you like to swap **{target.place.name}** with?\n\nSuggestions: {suggestions}",
        )

    async def _remove(self, plan: DailyPlanResponse, text: str) -> ModificationResult:
        target = find_mentioned(text, await self._populated_stops(plan), name_of=lambda s: s.place.name)
        if target is None:
            return ModificationResult(
                success=False, message="Which place did you want to remove from your plan?"
            )

        if target.place_id:
            updated = await self.store.remove_stop(plan.id, target.place_id)
        else:
            updated = await self.store.remove_stop_at(plan.id, target.order)
        return ModificationResult(
            success=True,
            message=f"✅ Removed **{target.place.name}** from your plan.",
            plan=updated,
        )

    async def _add(self, plan: DailyPlanResponse, text: str, trip_id: str) -> ModificationResult:
        available = await self._unplanned_places(plan, trip_id)
        place = find_mentioned(text, available)
        if place is not None:
            updated = await self.store.add_stop(plan.id, place.id)
            return ModificationResult(
                success=True, message=f"✅ Added **{place.name}** to your plan!", plan=updated
            )

        suggestions = "\n".join(f"• {p.name}" for p in available[:5])
        return ModificationResult(
            success=False, message=f"Which place would you like to add?\n\nAvailable:\n{suggestions}"
        )
