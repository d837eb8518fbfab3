from __future__ import annotations

import logging
import re
from datetime import date
from typing import Dict, List, Optional, Set, Tuple

from fitplan.config.constants import (
    COMPLETED_DIET_DAYS_KEY,
    COMPLETED_MEALS_KEY,
    DEFAULT_WATER_TARGET_ML,
    WATER_COMPLETED_KEY,
    WATER_INTAKE_KEY,
)
from fitplan.events import EventName, MealCompleted, WaterIntakeUpdated
from fitplan.models import CompletionId, DietDay, DietPlan, PlanKind
from fitplan.redis.cache import _store_get_json, _store_set_json
from fitplan.tools.completion import CompletionTracker

logger = logging.getLogger(__name__)


def water_target_ml(label: Optional[str]) -> int:
    """Daily water target in ml from a plan label such as "2-3 liters" or "2500 ml"."""
    if not label:
        return DEFAULT_WATER_TARGET_ML
    lower = label.lower()
    numbers = [float(n) for n in re.findall(r"\d+(?:\.\d+)?", lower)]
    if not numbers:
        return DEFAULT_WATER_TARGET_ML
    amount = max(numbers)
    if re.search(r"\bml\b|millilit", lower):
        return int(amount)
    if re.search(r"\b(l|liters?|litres?)\b", lower) or amount <= 10:
        return int(amount * 1000)
    return int(amount)


def meal_ids_for_day(day: DietDay) -> List[str]:
    return [CompletionId.meal(day.date, meal_type, item.name).key for meal_type, item in day.meals.slots()]


class MealCompletionTracker(CompletionTracker):
    kind = PlanKind.DIET
    items_key = COMPLETED_MEALS_KEY
    days_key = COMPLETED_DIET_DAYS_KEY
    progress_event = EventName.DIET_PROGRESS_UPDATED

    def __init__(self, *args, **kwargs) -> None:
        super().__init__(*args, **kwargs)
        self._water_intake: Dict[str, int] = {}
        self._water_completed: Dict[str, bool] = {}

    async def reload(self) -> None:
        await super().reload()
        intake = await _store_get_json(self.store, self.user.key(WATER_INTAKE_KEY))
        completed = await _store_get_json(self.store, self.user.key(WATER_COMPLETED_KEY))
        self._water_intake = {str(k): int(v) for k, v in intake.items()} if isinstance(intake, dict) else {}
        self._water_completed = {str(k): bool(v) for k, v in completed.items()} if isinstance(completed, dict) else {}

    def reset(self) -> None:
        super().reset()
        self._water_intake = {}
        self._water_completed = {}

    def item_ids_for_day(self, day: DietDay) -> List[str]:
        return meal_ids_for_day(day)

    def get_completed_meals(self) -> Set[str]:
        return self._completed_items()

    def is_meal_completed(self, meal_id: CompletionId) -> bool:
        return meal_id.key in self._items

    async def mark_meal_complete(
        self,
        meal_id: CompletionId,
        day_number: int,
        week_number: int,
        day: DietDay,
        today: Optional[date] = None,
    ) -> bool:
        """Check off one meal; only meals of the current day can be marked.

        The plan ``day`` auto-completes once enough of its meals are done.
        """
        today = today or self._today()
        await self.ensure_initialized()
        if meal_id.date != today.isoformat():
            logger.info("Ignoring meal mark for %s, only today (%s) is editable", meal_id.date, today)
            return False
        key = meal_id.key
        if key in self._items:
            return True
        self._items.add(key)
        await self.bus.publish(
            EventName.MEAL_COMPLETED,
            MealCompleted(
                meal_id=key,
                date=meal_id.date,
                day=day_number,
                week=week_number,
                meal_type=meal_id.category.value,
            ),
        )
        await self._persist_items()
        await self._commit(
            "item",
            lambda: self.api.mark_item_complete(key, day_number, week_number, meal_id.category.value),
        )
        await self._publish_progress()
        await self._maybe_cascade(day, week_number, today)
        return True

    def get_water_state(self, day_date: str) -> Tuple[int, bool]:
        return self._water_intake.get(day_date, 0), self._water_completed.get(day_date, False)

    async def toggle_water_completion(
        self,
        day_date: str,
        target_ml: Optional[int] = None,
        day_number: Optional[int] = None,
        week_number: Optional[int] = None,
        today: Optional[date] = None,
    ) -> bool:
        """Flip today's water goal between met (full target) and not met (zero)."""
        today = today or self._today()
        await self.ensure_initialized()
        if day_date != today.isoformat():
            logger.info("Water for %s is read-only", day_date)
            return self._water_completed.get(day_date, False)
        target = target_ml or DEFAULT_WATER_TARGET_ML
        completed = not self._water_completed.get(day_date, False)
        amount = target if completed else 0
        self._water_completed[day_date] = completed
        self._water_intake[day_date] = amount
        await _store_set_json(self.store, self.user.key(WATER_INTAKE_KEY), self._water_intake)
        await _store_set_json(self.store, self.user.key(WATER_COMPLETED_KEY), self._water_completed)
        await self.bus.publish(
            EventName.WATER_INTAKE_UPDATED,
            WaterIntakeUpdated(date=day_date, amount_ml=amount, completed=completed),
        )
        if day_number is not None and week_number is not None:
            await self._commit("water", lambda: self.api.log_water(day_number, week_number, amount))
        await self._publish_progress()
        return completed

    async def merge_plan_snapshot(self, plan: DietPlan) -> None:
        await self._merge_snapshot(
            self._snapshot_item_ids(plan.completed_meals, "mealId"),
            self._snapshot_day_ids(plan.completed_days),
        )
