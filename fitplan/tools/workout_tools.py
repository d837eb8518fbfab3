from __future__ import annotations

import logging
from datetime import date
from typing import List, Optional, Set

from fitplan.config.constants import COMPLETED_EXERCISES_KEY, COMPLETED_WORKOUT_DAYS_KEY
from fitplan.events import EventName, ExerciseCompleted
from fitplan.models import CompletionId, DayStatus, PlanKind, WorkoutDay, WorkoutPlan
from fitplan.tools.completion import CompletionTracker

logger = logging.getLogger(__name__)


def exercise_ids_for_day(day: WorkoutDay) -> List[str]:
    return [CompletionId.exercise(day.date, exercise.name).key for exercise in day.exercises]


def calories_burned(day: WorkoutDay, completed: Set[str]) -> int:
    total = 0
    for exercise in day.exercises:
        if CompletionId.exercise(day.date, exercise.name).key in completed:
            total += exercise.calories_burned
    return total


class ExerciseCompletionTracker(CompletionTracker):
    kind = PlanKind.WORKOUT
    items_key = COMPLETED_EXERCISES_KEY
    days_key = COMPLETED_WORKOUT_DAYS_KEY
    progress_event = EventName.WORKOUT_PROGRESS_UPDATED

    def item_ids_for_day(self, day: WorkoutDay) -> List[str]:
        return exercise_ids_for_day(day)

    def get_completed_exercises(self) -> Set[str]:
        return self._completed_items()

    def get_day_status(self, day: WorkoutDay, today: Optional[date] = None) -> DayStatus:
        if day.is_rest_day:
            return DayStatus.REST
        return super().get_day_status(day, today)

    async def mark_exercise_complete(
        self,
        exercise_id: CompletionId,
        day_number: int,
        week_number: int,
        day: WorkoutDay,
        today: Optional[date] = None,
    ) -> bool:
        today = today or self._today()
        await self.ensure_initialized()
        if exercise_id.date != today.isoformat():
            logger.info("Ignoring exercise mark for %s, only today (%s) is editable", exercise_id.date, today)
            return False
        key = exercise_id.key
        if key in self._items:
            return True
        self._items.add(key)
        await self.bus.publish(
            EventName.EXERCISE_COMPLETED,
            ExerciseCompleted(exercise_id=key, date=exercise_id.date, day=day_number, week=week_number),
        )
        await self._persist_items()
        await self._commit("item", lambda: self.api.mark_item_complete(key, day_number, week_number))
        await self._publish_progress()
        if not day.is_rest_day:
            await self._maybe_cascade(day, week_number, today)
        return True

    async def merge_plan_snapshot(self, plan: WorkoutPlan) -> None:
        await self._merge_snapshot(
            self._snapshot_item_ids(plan.completed_exercises, "exerciseId"),
            self._snapshot_day_ids(plan.completed_days),
        )
