import asyncio
import json

import pytest
from conftest import FakePlanApi, make_diet_plan

from fitplan.models import DietPlan, PlanKind
from fitplan.tools.plan_cache import PlanCacheService
from fitplan.user_context import UserContext


class Clock:
    def __init__(self, now=1000.0):
        self.now = now

    def __call__(self):
        return self.now


def _service(store, api, user, clock=None, sleeps=None):
    async def sleep(seconds):
        if sleeps is not None:
            sleeps.append(seconds)

    return PlanCacheService(PlanKind.DIET, store, api, user, clock=clock or Clock(), sleep=sleep)


async def test_concurrent_loads_share_one_fetch(store, user):
    api = FakePlanApi(active=make_diet_plan(user_id=None).to_json())
    api.fetch_delay = 0.01
    service = _service(store, api, user)
    plans = await asyncio.gather(*(service.load() for _ in range(5)))
    assert api.count("get_active") == 1
    assert all(isinstance(plan, DietPlan) for plan in plans)
    assert all(plan.user_id == "u1" for plan in plans)


async def test_force_refresh_joins_in_flight_fetch(store, user):
    api = FakePlanApi(active=make_diet_plan().to_json())
    api.fetch_delay = 0.01
    service = _service(store, api, user)
    await asyncio.gather(service.load(), service.load(force_refresh=True))
    assert api.count("get_active") == 1


async def test_memory_tier_then_durable_tier(store, user):
    clock = Clock()
    api = FakePlanApi(active=make_diet_plan().to_json())
    service = _service(store, api, user, clock=clock)
    await service.load()
    await service.load()
    assert api.count("get_active") == 1
    assert "user_u1_cached_diet_plan" in store.data

    # memory expires, durable entry still answers
    clock.now += 31 * 60
    plan = await service.load()
    assert plan is not None
    assert api.count("get_active") == 1


async def test_refresh_goes_remote(store, user):
    api = FakePlanApi(active=make_diet_plan().to_json())
    service = _service(store, api, user)
    await service.load()
    await service.refresh()
    assert api.count("get_active") == 2


async def test_other_users_durable_plan_is_rejected(store):
    store.data["user_u2_cached_diet_plan"] = json.dumps(make_diet_plan(user_id="u1").to_json())
    api = FakePlanApi(active=None)
    service = _service(store, api, UserContext("u2"))
    assert await service.load() is None
    assert api.count("get_active") == 1


async def test_memory_plan_of_previous_user_is_not_served(store):
    user = UserContext("u1")
    api = FakePlanApi(active=make_diet_plan().to_json())
    service = _service(store, api, user)
    assert await service.load() is not None
    user.switch("u2")
    api.active = None
    assert await service.load() is None


async def test_remote_failure_falls_back_to_durable(store, user):
    store.data["user_u1_cached_diet_plan"] = json.dumps(make_diet_plan().to_json())
    api = FakePlanApi()
    api.fail.add("get_active")
    service = _service(store, api, user)
    plan = await service.refresh()
    assert plan is not None
    assert plan.id == "diet-1"


async def test_remote_failure_without_cache_returns_none(store, user):
    api = FakePlanApi()
    api.fail.add("get_active")
    assert await _service(store, api, user).load() is None


async def test_save_generated_retries_then_succeeds(store, user):
    api = FakePlanApi()
    api.create_failures = 2
    sleeps = []
    service = _service(store, api, user, sleeps=sleeps)
    saved = await service.save_generated(make_diet_plan(user_id=None))
    assert api.count("create") == 3
    assert sleeps == [1.0, 2.0]
    assert saved.id == "saved-1"
    assert saved.user_id == "u1"
    assert json.loads(store.data["user_u1_cached_diet_plan"])["id"] == "saved-1"


async def test_save_generated_keeps_plan_locally_when_remote_fails(store, user):
    api = FakePlanApi()
    api.create_failures = 5
    service = _service(store, api, user)
    saved = await service.save_generated(make_diet_plan(user_id=None))
    assert api.count("create") == 3
    assert saved.id == "diet-1"
    cached = await service.load()
    assert cached is not None and cached.user_id == "u1"


async def test_clear_removes_plan_but_not_completions(store, user):
    store.data["user_u1_completed_meals"] = json.dumps(["x"])
    api = FakePlanApi(active=make_diet_plan().to_json())
    service = _service(store, api, user)
    await service.load()
    await service.clear()
    assert "user_u1_cached_diet_plan" not in store.data
    assert "user_u1_completed_meals" in store.data
    assert await service.load() is None


@pytest.mark.parametrize("user_id,key", [("u1", "user_u1_cached_diet_plan"), (None, "temp_cached_diet_plan")])
async def test_durable_key_is_user_scoped(store, user_id, key):
    service = _service(store, FakePlanApi(), UserContext(user_id))
    assert service.durable_key == key


async def test_user_switch_during_fetch_does_not_leak_plan(store):
    user = UserContext("u1")
    api = FakePlanApi(active=make_diet_plan(user_id=None).to_json())
    api.fetch_delay = 0.05
    service = _service(store, api, user)
    first = asyncio.ensure_future(service.load())
    await asyncio.sleep(0)
    user.switch("u2")
    second = await service.load()
    assert second is not None and second.user_id == "u2"
    assert (await first).user_id == "u1"
    assert api.count("get_active") == 2


async def test_late_fetch_writes_under_the_user_that_started_it(store):
    other = make_diet_plan(user_id="u2").model_copy(update={"id": "b-plan"})
    store.data["user_u2_cached_diet_plan"] = json.dumps(other.to_json())
    user = UserContext("u1")
    api = FakePlanApi(active=make_diet_plan(user_id=None).model_copy(update={"id": "a-plan"}).to_json())
    api.fetch_delay = 0.05
    service = _service(store, api, user)
    first = asyncio.ensure_future(service.load())
    await asyncio.sleep(0)
    user.switch("u2")
    service.reset_memory()
    await first
    assert json.loads(store.data["user_u1_cached_diet_plan"])["id"] == "a-plan"
    kept = json.loads(store.data["user_u2_cached_diet_plan"])
    assert (kept["id"], kept["userId"]) == ("b-plan", "u2")
    plan = await service.load()
    assert plan is not None and plan.id == "b-plan"
