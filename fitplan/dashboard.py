from __future__ import annotations

import logging
from datetime import date
from typing import Any, Callable, List, Optional

from pydantic import BaseModel, Field

from fitplan.events import EventBus, EventName
from fitplan.models import CompletionId, DayStatus, DietDay, DietPlan, WorkoutDay, WorkoutPlan
from fitplan.plan.calendar import (
    DIET_WEEK,
    WORKOUT_WEEK,
    find_day_for_date,
    get_current_week_days,
    get_plan_current_week,
    get_progress_percentage,
    get_total_weeks,
)
from fitplan.tools.meal_tools import MealCompletionTracker, water_target_ml
from fitplan.tools.plan_cache import PlanCacheService
from fitplan.tools.workout_tools import ExerciseCompletionTracker, calories_burned

logger = logging.getLogger(__name__)


class MealEntry(BaseModel):
    id: str
    meal_type: str
    name: str
    emoji: str
    calories: int
    protein: int
    completed: bool


class ExerciseEntry(BaseModel):
    id: str
    name: str
    emoji: str
    sets: int
    reps: int
    calories_burned: int
    completed: bool


class WeekDaySummary(BaseModel):
    date: str
    day: int
    day_name: str
    status: DayStatus
    completion_percentage: int


class DietSummary(BaseModel):
    day: Optional[int] = None
    week: int
    total_weeks: int
    progress_percentage: int
    meals: List[MealEntry] = Field(default_factory=list)
    calories_consumed: int = 0
    calories_target: int = 0
    protein_consumed: int = 0
    protein_target: int = 0
    remaining_calories: int = 0
    water_ml: int = 0
    water_target_ml: int = 0
    water_completed: bool = False
    week_days: List[WeekDaySummary] = Field(default_factory=list)


class WorkoutSummary(BaseModel):
    day: Optional[int] = None
    week: int
    total_weeks: int
    progress_percentage: int
    is_rest_day: bool = False
    exercises: List[ExerciseEntry] = Field(default_factory=list)
    exercises_done: int = 0
    calories_burned: int = 0
    week_days: List[WeekDaySummary] = Field(default_factory=list)


class DashboardSnapshot(BaseModel):
    date: str
    diet: Optional[DietSummary] = None
    workout: Optional[WorkoutSummary] = None


def _week_summary(days: List[Any], tracker: Any, today: date) -> List[WeekDaySummary]:
    return [
        WeekDaySummary(
            date=day.date,
            day=day.day,
            day_name=day.day_name,
            status=tracker.get_day_status(day, today),
            completion_percentage=tracker.get_day_completion_percentage(day),
        )
        for day in days
    ]


class DashboardAggregator:
    """Today's diet and workout picture, combined with completion state.

    A snapshot is rebuilt whenever a completion event arrives after the last
    build; otherwise the previous one is served.
    """

    def __init__(
        self,
        diet_plans: PlanCacheService,
        workout_plans: PlanCacheService,
        meals: MealCompletionTracker,
        exercises: ExerciseCompletionTracker,
        bus: EventBus,
        today: Callable[[], date] = date.today,
    ) -> None:
        self.diet_plans = diet_plans
        self.workout_plans = workout_plans
        self.meals = meals
        self.exercises = exercises
        self._today = today
        self._snapshot: Optional[DashboardSnapshot] = None
        self.stale = True
        self._unsubscribers = [bus.subscribe(name, self._mark_stale) for name in EventName]

    def _mark_stale(self, _event: Any) -> None:
        self.stale = True

    def close(self) -> None:
        for unsubscribe in self._unsubscribers:
            unsubscribe()
        self._unsubscribers = []

    async def build_today(self, today: Optional[date] = None, force: bool = False) -> DashboardSnapshot:
        today = today or self._today()
        if (
            not force
            and not self.stale
            and self._snapshot is not None
            and self._snapshot.date == today.isoformat()
        ):
            return self._snapshot
        self.stale = False
        diet_plan = await self.diet_plans.load()
        workout_plan = await self.workout_plans.load()
        await self.meals.ensure_initialized()
        await self.exercises.ensure_initialized()
        diet = None
        if isinstance(diet_plan, DietPlan):
            await self.meals.merge_plan_snapshot(diet_plan)
            diet = self._diet_summary(diet_plan, today)
        workout = None
        if isinstance(workout_plan, WorkoutPlan):
            await self.exercises.merge_plan_snapshot(workout_plan)
            workout = self._workout_summary(workout_plan, today)
        self._snapshot = DashboardSnapshot(date=today.isoformat(), diet=diet, workout=workout)
        logger.debug("Dashboard rebuilt for %s", today)
        return self._snapshot

    def _diet_summary(self, plan: DietPlan, today: date) -> DietSummary:
        total_weeks = get_total_weeks(plan)
        week = get_plan_current_week(plan, today)
        summary = DietSummary(
            week=week,
            total_weeks=total_weeks,
            progress_percentage=get_progress_percentage(week, total_weeks),
            week_days=_week_summary(get_current_week_days(plan, DIET_WEEK, today), self.meals, today),
        )
        day = find_day_for_date(plan, DIET_WEEK, today)
        if not isinstance(day, DietDay):
            return summary
        completed = self.meals.get_completed_meals()
        for meal_type, item in day.meals.slots():
            meal_id = CompletionId.meal(day.date, meal_type, item.name).key
            summary.meals.append(
                MealEntry(
                    id=meal_id,
                    meal_type=meal_type.value,
                    name=item.name,
                    emoji=item.emoji,
                    calories=item.calories,
                    protein=item.protein,
                    completed=meal_id in completed,
                )
            )
        done = [meal for meal in summary.meals if meal.completed]
        water_ml, water_done = self.meals.get_water_state(day.date)
        summary.day = day.day
        summary.calories_consumed = sum(meal.calories for meal in done)
        summary.protein_consumed = sum(meal.protein for meal in done)
        summary.calories_target = day.totals.calories or plan.target_macros.calories
        summary.protein_target = day.totals.protein or plan.target_macros.protein
        summary.remaining_calories = max(0, summary.calories_target - summary.calories_consumed)
        summary.water_ml = water_ml
        summary.water_target_ml = water_target_ml(day.water_intake)
        summary.water_completed = water_done
        return summary

    def _workout_summary(self, plan: WorkoutPlan, today: date) -> WorkoutSummary:
        total_weeks = get_total_weeks(plan)
        week = get_plan_current_week(plan, today)
        summary = WorkoutSummary(
            week=week,
            total_weeks=total_weeks,
            progress_percentage=get_progress_percentage(week, total_weeks),
            week_days=_week_summary(get_current_week_days(plan, WORKOUT_WEEK, today), self.exercises, today),
        )
        day = find_day_for_date(plan, WORKOUT_WEEK, today)
        if not isinstance(day, WorkoutDay):
            return summary
        completed = self.exercises.get_completed_exercises()
        for exercise in day.exercises:
            exercise_id = CompletionId.exercise(day.date, exercise.name).key
            summary.exercises.append(
                ExerciseEntry(
                    id=exercise_id,
                    name=exercise.name,
                    emoji=exercise.emoji,
                    sets=exercise.sets,
                    reps=exercise.reps,
                    calories_burned=exercise.calories_burned,
                    completed=exercise_id in completed,
                )
            )
        summary.day = day.day
        summary.is_rest_day = day.is_rest_day
        summary.exercises_done = sum(1 for entry in summary.exercises if entry.completed)
        summary.calories_burned = calories_burned(day, completed)
        return summary
