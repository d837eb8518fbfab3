from __future__ import annotations

import logging
import math
import time
from typing import Any, Callable, Dict, List, Optional

from pydantic import BaseModel

from fitplan.config.constants import (
    DIET_GENERATION_COOLDOWN,
    GENERATION_HISTORY_KEY,
    GENERATION_HISTORY_RETENTION,
    WORKOUT_GENERATION_COOLDOWN,
)
from fitplan.errors import RateLimitExceeded
from fitplan.models import PlanKind
from fitplan.redis.cache import KeyValueStore, _store_get_json, _store_remove, _store_set_json
from fitplan.user_context import UserContext

logger = logging.getLogger(__name__)

COOLDOWNS = {
    PlanKind.DIET: DIET_GENERATION_COOLDOWN,
    PlanKind.WORKOUT: WORKOUT_GENERATION_COOLDOWN,
}


class RateLimitDecision(BaseModel):
    allowed: bool
    remaining_seconds: int = 0
    message: Optional[str] = None


def _wait_message(remaining: int, kind: PlanKind) -> str:
    minutes, seconds = divmod(remaining, 60)
    wait = f"{minutes}m {seconds}s" if minutes > 0 else f"{seconds}s"
    return f"Please wait {wait} before generating a new {kind.value} plan."


class GenerationRateLimiter:
    """Cooldown between plan generations, from a per-user generation history."""

    def __init__(self, store: KeyValueStore, user: UserContext, clock: Callable[[], float] = time.time) -> None:
        self.store = store
        self.user = user
        self._clock = clock

    async def _history(self) -> List[Dict[str, Any]]:
        raw = await _store_get_json(self.store, self.user.key(GENERATION_HISTORY_KEY))
        if not isinstance(raw, list):
            return []
        return [r for r in raw if isinstance(r, dict) and "timestamp" in r and "type" in r]

    async def can_generate(self, kind: PlanKind, now: Optional[float] = None) -> RateLimitDecision:
        now = self._clock() if now is None else now
        records = [r for r in await self._history() if r["type"] == kind.value]
        if not records:
            return RateLimitDecision(allowed=True)
        last = max(float(r["timestamp"]) for r in records)
        elapsed = now - last
        cooldown = COOLDOWNS[kind]
        if elapsed < cooldown:
            remaining = math.ceil(cooldown - elapsed)
            return RateLimitDecision(allowed=False, remaining_seconds=remaining, message=_wait_message(remaining, kind))
        return RateLimitDecision(allowed=True)

    async def ensure_allowed(self, kind: PlanKind) -> None:
        decision = await self.can_generate(kind)
        if not decision.allowed:
            raise RateLimitExceeded(decision.message or "Rate limited", decision.remaining_seconds)

    async def record_generation(self, kind: PlanKind, now: Optional[float] = None) -> None:
        now = self._clock() if now is None else now
        history = await self._history()
        history.append({"timestamp": now, "type": kind.value})
        cutoff = now - GENERATION_HISTORY_RETENTION
        history = [r for r in history if float(r["timestamp"]) > cutoff]
        await _store_set_json(self.store, self.user.key(GENERATION_HISTORY_KEY), history)

    async def get_generation_stats(self) -> Dict[str, Dict[str, Any]]:
        history = await self._history()
        stats: Dict[str, Dict[str, Any]] = {}
        for kind in PlanKind:
            stamps = [float(r["timestamp"]) for r in history if r["type"] == kind.value]
            stats[kind.value] = {
                "total": len(stamps),
                "last_generated": max(stamps) if stamps else None,
            }
        return stats

    async def clear_history(self) -> None:
        await _store_remove(self.store, self.user.key(GENERATION_HISTORY_KEY))
