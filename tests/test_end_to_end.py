import json
from datetime import timedelta
from types import SimpleNamespace

import httpx
from conftest import MONDAY

from fitplan.dashboard import DashboardAggregator
from fitplan.db.connection import PlanApiClient
from fitplan.models import CompletionId, DayStatus, UserProfile
from fitplan.plan.calendar import DIET_WEEK, find_day_for_date
from fitplan.plan.plan_generation import LangChainTextGenerator
from fitplan.redis.cache import MemoryStore
from fitplan.state import SessionContext

GAIN_TEXT = """**Goal:** Gain Muscle
**Target Daily Calories:** 2600
---
**Day 1: Monday**
**Breakfast:** Protein Pancakes – 450 kcal
**Lunch:** Chicken Rice Bowl – 700 kcal
**Dinner:** Beef Stir Fry – 650 kcal
**Snacks:**
- Snack 1: Protein Shake – 250 kcal
"""


class StubLLM:
    async def ainvoke(self, messages):
        return SimpleNamespace(content=GAIN_TEXT)


class Backend:
    def __init__(self):
        self.plans = {}
        self.requests = []

    def __call__(self, request):
        path = request.url.path.replace("/api", "", 1)
        body = json.loads(request.content) if request.content else None
        self.requests.append((request.method, path, body))
        if request.method == "POST" and path == "/diet-plans":
            self.plans["diet"] = {**body, "_id": "d1"}
            return httpx.Response(201, json={"success": True, "data": self.plans["diet"]})
        if request.method == "GET" and path.endswith("/active"):
            kind = "diet" if path.startswith("/diet") else "workout"
            return httpx.Response(200, json={"success": True, "data": self.plans.get(kind)})
        return httpx.Response(200, json={"success": True, "data": {}})


def _session(backend, user_id=None, store=None):
    client = PlanApiClient(base_url="http://api.test/api", transport=httpx.MockTransport(backend))
    return SessionContext(
        user_id=user_id,
        store=store or MemoryStore(),
        client=client,
        generator=LangChainTextGenerator(llm=StubLLM()),
        today=lambda: MONDAY,
    )


async def test_generate_then_complete_most_meals():
    backend = Backend()
    session = _session(backend, user_id="u1")
    profile = UserProfile(body_goal="Gain Muscle", current_weight_kg=60, target_weight_kg=65)

    plan = await session.generator.generate_diet_plan(profile, today=MONDAY)
    assert plan.goal == "Muscle Gain"
    assert plan.total_weeks == 25
    assert plan.duration_label == "6 months"
    assert plan.id == "d1"
    posted = next(body for method, path, body in backend.requests if method == "POST" and path == "/diet-plans")
    assert posted["duration"] == "6 months" and "weeklyPlan" in posted
    reloaded = await session.diet_plans.refresh()
    assert reloaded is not None and reloaded.id == "d1"

    day = find_day_for_date(plan, DIET_WEEK, MONDAY)
    for meal_type, item in day.meals.slots()[:3]:
        await session.meals.mark_meal_complete(CompletionId.meal(day.date, meal_type, item.name), day.day, 1, day=day)

    assert session.meals.get_day_completion_percentage(day) == 75
    assert session.meals.get_day_status(day) == DayStatus.IN_PROGRESS
    assert session.meals.get_day_status(day, MONDAY + timedelta(days=1)) == DayStatus.COMPLETED
    assert ("POST", "/diet-plans/day/complete", {"day": 1, "week": 1}) in backend.requests

    dashboard = DashboardAggregator(
        session.diet_plans, session.workout_plans, session.meals, session.exercises, session.bus, today=lambda: MONDAY
    )
    snapshot = await dashboard.build_today()
    assert snapshot.diet.calories_consumed == 1800
    assert snapshot.diet.remaining_calories == 250
    assert snapshot.workout is None
    await session.aclose()


async def test_guest_progress_moves_to_account_on_sign_in():
    store = MemoryStore()
    session = _session(Backend(), store=store)
    assert await session.meals.toggle_water_completion(MONDAY.isoformat())
    assert "temp_water_intake" in store.data

    await session.switch_user("u1", token="tok")
    assert "temp_water_intake" not in store.data
    await session.meals.ensure_initialized()
    assert session.meals.get_water_state(MONDAY.isoformat()) == (3000, True)

    await session.logout(clear_local=True)
    assert session.user.is_guest
    assert "user_u1_water_intake" not in store.data
    await session.meals.ensure_initialized()
    assert session.meals.get_water_state(MONDAY.isoformat()) == (0, False)
    await session.aclose()
