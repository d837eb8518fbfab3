from __future__ import annotations

import asyncio
from datetime import date, timedelta
from typing import Any, Dict, List, Optional

import pytest

from fitplan.events import EventBus
from fitplan.models import DayMeals, DietDay, DietPlan, Macros, MealItem, WorkoutDay, WorkoutExercise, WorkoutPlan
from fitplan.plan.calendar import DIET_WEEK, WORKOUT_WEEK, day_name
from fitplan.plan.parsing import day_totals
from fitplan.redis.cache import MemoryStore
from fitplan.user_context import UserContext

# 2026-10-19 is a Monday
MONDAY = date(2026, 10, 19)

DIET_TEXT = """**Goal:** Lose Fat
**Target Daily Calories:** 1800
**Country Cuisine:** Mediterranean

---
**Day 1: Monday**
**Breakfast:** Veggie Omelette – 350 kcal – 10 min
- Ingredients: eggs, spinach, tomato
- Instructions: Whisk and cook in a non-stick pan
**Lunch:** Grilled Chicken Salad – 500 kcal | Protein: 40g, Carbs: 45g, Fats: 15g | Prep: 20 min
- Ingredients: chicken breast, lettuce, olive oil
**Dinner:** Baked Salmon with Quinoa – 600 kcal
- Ingredients: salmon, quinoa, broccoli
**Snacks:**
- Snack 1: Greek Yogurt – 150 kcal
- Snack 2: Almonds – 200 kcal
**Water Intake:** 2.5 liters
**Notes:** Keep sodium low today
---
**Day 2: Tuesday**
**Breakfast:** Oatmeal with Berries – 400 kcal
**Lunch:** Turkey Wrap – 450 kcal
**Dinner:** Lentil Soup – 500 kcal
**Snacks:**
- Snack 1: Apple – 95 kcal
"""

WORKOUT_TEXT = """**Goal:** Build Muscle
---
**Day 1: Monday - Upper Body**
- Bench Press – 4×8-10 – Rest 90s – Muscles: Chest, Triceps – ~120 kcal
- Barbell Row – 4×10 – Rest 60s – Muscles: Back, Biceps – ~100 kcal
- Jump Rope – 3 Rounds × 60s – Rest 30s – Muscles: Calves – ~80 kcal
---
**Day 2: Tuesday - Rest Day 🛌**
Light walking and stretching.
---
**Day 3: Wednesday - Lower Body**
- Back Squat – 5×5 – Rest 120s – Muscles: Quads, Glutes – ~150 kcal
- Plank – 3×45 sec – Rest 30 sec – Muscles: Core – ~30 kcal
"""


def meal(name: str, calories: int = 400, protein: int = 25) -> MealItem:
    return MealItem(name=name, calories=calories, protein=protein, carbs=40, fats=12)


def make_diet_day(day_date: date, day_number: int = 1, snacks: int = 1) -> DietDay:
    meals = DayMeals(
        breakfast=meal("Oats"),
        lunch=meal("Chicken Bowl", 600, 45),
        dinner=meal("Salmon Plate", 700, 50),
        snacks=[meal(f"Snack {i + 1}", 100, 5) for i in range(snacks)],
    )
    return DietDay(
        day=day_number,
        day_name=day_name(day_date),
        date=day_date.isoformat(),
        totals=day_totals(meals),
        meals=meals,
        water_intake="3 liters",
    )


def make_workout_day(day_date: date, day_number: int = 1, rest: bool = False) -> WorkoutDay:
    exercises = [] if rest else [
        WorkoutExercise(name="Squat", sets=4, reps=8, calories_burned=120),
        WorkoutExercise(name="Bench Press", sets=4, reps=8, calories_burned=100),
        WorkoutExercise(name="Row", sets=3, reps=10, calories_burned=80),
    ]
    return WorkoutDay(
        day=day_number,
        day_name=day_name(day_date),
        date=day_date.isoformat(),
        is_rest_day=rest,
        exercises=exercises,
        total_calories=sum(e.calories_burned for e in exercises),
    )


def make_diet_plan(start: date = MONDAY, user_id: Optional[str] = "u1", total_weeks: int = 12) -> DietPlan:
    days: List[Any] = [None] * 7
    for offset in range(7):
        current = start + timedelta(days=offset)
        days[DIET_WEEK.index_of(current)] = make_diet_day(current, offset + 1)
    return DietPlan(
        id="diet-1",
        user_id=user_id,
        goal="Fat Loss",
        duration_label=f"{total_weeks} weeks",
        total_weeks=total_weeks,
        start_date=start.isoformat(),
        end_date=(start + timedelta(days=total_weeks * 7)).isoformat(),
        target_macros=Macros(calories=2000, protein=150, carbs=200, fats=60),
        weekly_pattern=days,
    )


def make_workout_plan(start: date = MONDAY, user_id: Optional[str] = "u1", total_weeks: int = 12) -> WorkoutPlan:
    days: List[Any] = [None] * 7
    for offset in range(7):
        current = start + timedelta(days=offset)
        days[WORKOUT_WEEK.index_of(current)] = make_workout_day(current, offset + 1, rest=current.weekday() == 6)
    return WorkoutPlan(
        id="workout-1",
        user_id=user_id,
        goal="Muscle Gain",
        duration_label=f"{total_weeks} weeks",
        total_weeks=total_weeks,
        start_date=start.isoformat(),
        end_date=(start + timedelta(days=total_weeks * 7)).isoformat(),
        weekly_pattern=days,
    )


class FakePlanApi:
    """Stands in for DietPlanApi / WorkoutPlanApi and records every call."""

    def __init__(self, active: Optional[Dict[str, Any]] = None) -> None:
        self.active = active
        self.calls: List[tuple] = []
        self.fail: set = set()
        self.create_failures = 0
        self.fetch_delay = 0.0

    def _record(self, name: str, *args: Any) -> None:
        self.calls.append((name,) + args)
        if name in self.fail:
            raise RuntimeError(f"{name} unavailable")

    def count(self, name: str) -> int:
        return sum(1 for call in self.calls if call[0] == name)

    async def get_active(self) -> Optional[Dict[str, Any]]:
        self._record("get_active")
        if self.fetch_delay:
            await asyncio.sleep(self.fetch_delay)
        return self.active

    async def create(self, plan: Dict[str, Any]) -> Optional[Dict[str, Any]]:
        self.calls.append(("create", plan))
        if self.create_failures > 0:
            self.create_failures -= 1
            raise RuntimeError("create unavailable")
        self.active = {**{k: v for k, v in plan.items() if k != "id"}, "_id": "saved-1"}
        return self.active

    async def clear_all(self) -> int:
        self._record("clear_all")
        removed = 1 if self.active else 0
        self.active = None
        return removed

    async def mark_item_complete(self, item_id: str, day: int, week: int, item_type: str = "exercise") -> Any:
        self._record("mark_item_complete", item_id, day, week, item_type)
        return {"ok": True}

    async def mark_day_complete(self, day: int, week: int) -> Any:
        self._record("mark_day_complete", day, week)
        return {"ok": True}

    async def log_water(self, day: int, week: int, amount_ml: int) -> Any:
        self._record("log_water", day, week, amount_ml)
        return {"ok": True}

    async def generate(self, prompt: str) -> str:
        self._record("generate", prompt)
        return DIET_TEXT


@pytest.fixture
def store() -> MemoryStore:
    return MemoryStore()


@pytest.fixture
def user() -> UserContext:
    return UserContext("u1")


@pytest.fixture
def bus() -> EventBus:
    return EventBus()


@pytest.fixture
def api() -> FakePlanApi:
    return FakePlanApi()


@pytest.fixture(autouse=True)
def _env_isolation(monkeypatch):
    for name in ("REDIS_URL", "UPSTASH_REDIS_REST_URL", "UPSTASH_REDIS_REST_TOKEN", "OPENAI_API_KEY", "OPENAI_BASE_URL"):
        monkeypatch.delenv(name, raising=False)
    yield
