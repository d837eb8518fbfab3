import json

import pytest

from fitplan.errors import RateLimitExceeded
from fitplan.models import PlanKind
from fitplan.tools.rate_limit import GenerationRateLimiter


@pytest.fixture
def limiter(store, user):
    return GenerationRateLimiter(store, user, clock=lambda: 10_000.0)


async def test_first_generation_is_allowed(limiter):
    decision = await limiter.can_generate(PlanKind.DIET)
    assert decision.allowed
    assert decision.remaining_seconds == 0


async def test_cooldown_per_kind(limiter):
    await limiter.record_generation(PlanKind.DIET, now=10_000.0)
    decision = await limiter.can_generate(PlanKind.DIET, now=10_100.0)
    assert not decision.allowed
    assert decision.remaining_seconds == 200
    assert decision.message == "Please wait 3m 20s before generating a new diet plan."
    assert (await limiter.can_generate(PlanKind.WORKOUT, now=10_100.0)).allowed
    assert (await limiter.can_generate(PlanKind.DIET, now=10_300.0)).allowed


async def test_short_wait_message(limiter):
    await limiter.record_generation(PlanKind.WORKOUT, now=10_000.0)
    decision = await limiter.can_generate(PlanKind.WORKOUT, now=10_170.0)
    assert decision.message == "Please wait 10s before generating a new workout plan."


async def test_ensure_allowed_raises(limiter):
    await limiter.record_generation(PlanKind.DIET)
    with pytest.raises(RateLimitExceeded) as info:
        await limiter.ensure_allowed(PlanKind.DIET)
    assert info.value.remaining_seconds == 300


async def test_old_history_is_pruned(limiter, store):
    month = 30 * 24 * 60 * 60
    await limiter.record_generation(PlanKind.DIET, now=1.0)
    await limiter.record_generation(PlanKind.WORKOUT, now=1.0 + month + 10)
    history = json.loads(store.data["user_u1_ai_generation_history"])
    assert history == [{"timestamp": 1.0 + month + 10, "type": "workout"}]


async def test_stats_and_clear(limiter, store):
    await limiter.record_generation(PlanKind.DIET, now=100.0)
    await limiter.record_generation(PlanKind.DIET, now=500.0)
    stats = await limiter.get_generation_stats()
    assert stats["diet"] == {"total": 2, "last_generated": 500.0}
    assert stats["workout"] == {"total": 0, "last_generated": None}
    await limiter.clear_history()
    assert "user_u1_ai_generation_history" not in store.data
