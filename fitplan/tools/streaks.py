from __future__ import annotations

import logging
from datetime import date, timedelta
from typing import Callable, Iterable, List, Optional, Set

from pydantic import BaseModel, Field

from fitplan.config.constants import STREAK_HISTORY_DAYS
from fitplan.events import DayCompleted, EventBus, EventName
from fitplan.models import PlanKind
from fitplan.tools.meal_tools import MealCompletionTracker
from fitplan.tools.workout_tools import ExerciseCompletionTracker

logger = logging.getLogger(__name__)


class StreakDay(BaseModel):
    date: str
    workout_completed: bool
    diet_completed: bool
    overall_completed: bool


class StreakSummary(BaseModel):
    current_workout_streak: int = 0
    current_diet_streak: int = 0
    current_overall_streak: int = 0
    longest_workout_streak: int = 0
    longest_diet_streak: int = 0
    longest_overall_streak: int = 0
    weekly_consistency: int = 0
    total_active_days: int = 0
    history: List[StreakDay] = Field(default_factory=list)


def completed_dates(entries: Iterable[str]) -> Set[date]:
    """Calendar dates in a completed-day set; ``{day}-{week}`` aliases are skipped."""
    dates = set()
    for entry in entries:
        try:
            dates.add(date.fromisoformat(entry))
        except ValueError:
            continue
    return dates


def current_streak(days: Set[date], today: date) -> int:
    """Consecutive days ending at the latest completed one, 0 once a full day was skipped."""
    past = [day for day in days if day <= today]
    if not past:
        return 0
    latest = max(past)
    if (today - latest).days > 1:
        return 0
    streak = 0
    cursor = latest
    while cursor in days:
        streak += 1
        cursor -= timedelta(days=1)
    return streak


def longest_streak(days: Set[date]) -> int:
    longest = 0
    run = 0
    previous: Optional[date] = None
    for day in sorted(days):
        run = run + 1 if previous is not None and (day - previous).days == 1 else 1
        longest = max(longest, run)
        previous = day
    return longest


def build_history(
    workout_days: Set[date],
    diet_days: Set[date],
    today: date,
    start: Optional[date] = None,
) -> List[StreakDay]:
    earliest = today - timedelta(days=STREAK_HISTORY_DAYS - 1)
    first = max(start, earliest) if start is not None else earliest
    first = min(first, today)
    history = []
    for offset in range((today - first).days + 1):
        current = first + timedelta(days=offset)
        workout = current in workout_days
        diet = current in diet_days
        history.append(
            StreakDay(
                date=current.isoformat(),
                workout_completed=workout,
                diet_completed=diet,
                overall_completed=workout and diet,
            )
        )
    return history


def summarize(
    workout_days: Set[date],
    diet_days: Set[date],
    today: date,
    start: Optional[date] = None,
) -> StreakSummary:
    overall_days = workout_days & diet_days
    history = build_history(workout_days, diet_days, today, start)
    last_week = history[-7:]
    return StreakSummary(
        current_workout_streak=current_streak(workout_days, today),
        current_diet_streak=current_streak(diet_days, today),
        current_overall_streak=current_streak(overall_days, today),
        longest_workout_streak=longest_streak(workout_days),
        longest_diet_streak=longest_streak(diet_days),
        longest_overall_streak=longest_streak(overall_days),
        weekly_consistency=int(sum(1 for day in last_week if day.overall_completed) * 100 / 7 + 0.5),
        total_active_days=sum(1 for day in history if day.overall_completed),
        history=history,
    )


class StreakTracker:
    """Diet, workout and combined streaks over the trackers' completed-day sets.

    ``latest`` is refreshed whenever a day is completed.
    """

    def __init__(
        self,
        meals: MealCompletionTracker,
        exercises: ExerciseCompletionTracker,
        bus: EventBus,
        today: Callable[[], date] = date.today,
    ) -> None:
        self.meals = meals
        self.exercises = exercises
        self._today = today
        self.latest: Optional[StreakSummary] = None
        self._unsubscribe = bus.subscribe(EventName.DAY_COMPLETED, self._on_day_completed)

    async def _on_day_completed(self, event: DayCompleted) -> None:
        self.latest = await self.get_summary()
        streak = (
            self.latest.current_diet_streak if event.plan_kind == PlanKind.DIET else self.latest.current_workout_streak
        )
        logger.info("%s day %s completed, streak is now %s", event.plan_kind.value, event.date, streak)

    async def get_summary(self, today: Optional[date] = None, start: Optional[date] = None) -> StreakSummary:
        await self.meals.ensure_initialized()
        await self.exercises.ensure_initialized()
        return summarize(
            completed_dates(self.exercises.completed_days()),
            completed_dates(self.meals.completed_days()),
            today or self._today(),
            start,
        )

    def reset(self) -> None:
        self.latest = None

    def close(self) -> None:
        self._unsubscribe()
