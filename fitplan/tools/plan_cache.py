from __future__ import annotations

import asyncio
import logging
import time
from typing import Any, Awaitable, Callable, Dict, Optional, Type, Union

from pydantic import ValidationError

from fitplan.config.constants import (
    CACHED_DIET_PLAN_KEY,
    CACHED_WORKOUT_PLAN_KEY,
    CACHE_TTL_PLAN,
    PLAN_SAVE_ATTEMPTS,
    PLAN_SAVE_BACKOFF_SECONDS,
    _memory_plan_key,
    user_key,
)
from fitplan.db.plans import PlanApi
from fitplan.models import DietPlan, PlanKind, WorkoutPlan
from fitplan.redis.cache import KeyValueStore, _store_get_json, _store_remove, _store_set_json
from fitplan.user_context import UserContext, validate_cached_data

logger = logging.getLogger(__name__)

Plan = Union[DietPlan, WorkoutPlan]

_PLAN_MODELS: Dict[PlanKind, Type[Any]] = {
    PlanKind.DIET: DietPlan,
    PlanKind.WORKOUT: WorkoutPlan,
}
_DURABLE_KEYS = {
    PlanKind.DIET: CACHED_DIET_PLAN_KEY,
    PlanKind.WORKOUT: CACHED_WORKOUT_PLAN_KEY,
}


class PlanCacheService:
    """Cache-first access to the active plan of one kind.

    Reads go memory tier, then the durable per-user entry, then the remote
    API. Concurrent loads for the same user share one in-flight task, so at
    most one remote fetch per user and kind is outstanding. Every load and
    save is bound to the user that was current when it started. Nothing on
    the read path raises: remote failures fall back to the durable entry,
    then to ``None``.
    """

    def __init__(
        self,
        kind: PlanKind,
        store: KeyValueStore,
        api: PlanApi,
        user: UserContext,
        ttl_seconds: int = CACHE_TTL_PLAN,
        clock: Callable[[], float] = time.time,
        sleep: Callable[[float], Awaitable[None]] = asyncio.sleep,
    ) -> None:
        self.kind = kind
        self.store = store
        self.api = api
        self.user = user
        self.ttl_seconds = ttl_seconds
        self._clock = clock
        self._sleep = sleep
        self._model = _PLAN_MODELS[kind]
        self._cache_key = _memory_plan_key(kind.value)
        self._memory: Dict[str, Dict[str, Any]] = {}
        self._in_flight: Dict[str, asyncio.Task] = {}

    @property
    def durable_key(self) -> str:
        return self._durable_key_for(self.user.user_id)

    def _durable_key_for(self, user_id: Optional[str]) -> str:
        return user_key(_DURABLE_KEYS[self.kind], user_id)

    def _slot(self, user_id: Optional[str]) -> str:
        return f"{self._cache_key}:{user_id or 'guest'}"

    def _to_plan(self, payload: Any) -> Optional[Plan]:
        try:
            return self._model.model_validate(payload)
        except ValidationError as exc:
            logger.warning("Discarding unreadable cached %s plan: %s", self.kind.value, exc)
            return None

    def _owned(self, plan: Optional[Plan], user_id: Optional[str]) -> Optional[Plan]:
        if plan is None:
            return None
        if not validate_cached_data(plan.to_json(), user_id):
            logger.warning("Dropping %s plan loaded for another user", self.kind.value)
            return None
        return plan

    def _memory_get(self, user_id: Optional[str]) -> Optional[Plan]:
        slot = self._slot(user_id)
        entry = self._memory.get(slot)
        if not entry:
            return None
        if self._clock() - entry["ts"] >= self.ttl_seconds:
            self._memory.pop(slot, None)
            return None
        if not validate_cached_data(entry["value"], user_id):
            logger.warning("Memory %s plan belongs to another user, dropping it", self.kind.value)
            self._memory.pop(slot, None)
            return None
        return self._to_plan(entry["value"])

    def _memory_set(self, user_id: Optional[str], payload: Dict[str, Any]) -> None:
        self._memory[self._slot(user_id)] = {"ts": self._clock(), "value": payload}

    async def _durable_get(self, user_id: Optional[str]) -> Optional[Plan]:
        cached = await _store_get_json(self.store, self._durable_key_for(user_id))
        if not cached:
            return None
        if not validate_cached_data(cached, user_id):
            logger.warning("Durable %s plan belongs to another user, ignoring it", self.kind.value)
            return None
        plan = self._to_plan(cached)
        if plan is not None:
            self._memory_set(user_id, cached)
        return plan

    async def load(self, force_refresh: bool = False) -> Optional[Plan]:
        user_id = self.user.user_id
        slot = self._slot(user_id)
        in_flight = self._in_flight.get(slot)
        if in_flight is not None:
            return self._owned(await asyncio.shield(in_flight), user_id)
        if not force_refresh:
            cached = self._memory_get(user_id)
            if cached is not None:
                return cached
        task = asyncio.ensure_future(self._load_uncached(user_id, force_refresh))
        self._in_flight[slot] = task
        return self._owned(await asyncio.shield(task), user_id)

    async def refresh(self) -> Optional[Plan]:
        return await self.load(force_refresh=True)

    async def _load_uncached(self, user_id: Optional[str], force_refresh: bool) -> Optional[Plan]:
        slot = self._slot(user_id)
        durable_key = self._durable_key_for(user_id)
        try:
            if not force_refresh:
                cached = await self._durable_get(user_id)
                if cached is not None:
                    logger.debug("Loaded %s plan from durable cache", self.kind.value)
                    return cached
            try:
                data = await self.api.get_active()
            except Exception as exc:
                logger.warning("Could not load %s plan from remote: %s", self.kind.value, exc)
                return await self._durable_get(user_id)
            if not isinstance(data, dict):
                return None
            payload = dict(data)
            payload["userId"] = user_id
            plan = self._to_plan(payload)
            if plan is None:
                return None
            payload = plan.to_json()
            await _store_set_json(self.store, durable_key, payload)
            self._memory_set(user_id, payload)
            logger.info("Loaded %s plan from remote", self.kind.value)
            return plan
        finally:
            if self._in_flight.get(slot) is asyncio.current_task():
                self._in_flight.pop(slot, None)

    async def save_generated(self, plan: Plan) -> Plan:
        """Persist a freshly generated plan remotely (with retries) and locally (always)."""
        user_id = self.user.user_id
        durable_key = self._durable_key_for(user_id)
        plan = plan.model_copy(update={"user_id": user_id})
        payload = plan.to_json()
        for attempt in range(1, PLAN_SAVE_ATTEMPTS + 1):
            try:
                saved = await self.api.create(plan.to_record())
            except Exception as exc:
                logger.warning(
                    "Saving %s plan failed (attempt %s/%s): %s",
                    self.kind.value,
                    attempt,
                    PLAN_SAVE_ATTEMPTS,
                    exc,
                )
                if attempt < PLAN_SAVE_ATTEMPTS:
                    await self._sleep(PLAN_SAVE_BACKOFF_SECONDS * attempt)
                continue
            if isinstance(saved, dict):
                saved = dict(saved)
                if saved.get("_id") and not saved.get("id"):
                    saved["id"] = str(saved.pop("_id"))
                merged = self._to_plan({**payload, **saved, "userId": user_id})
                if merged is not None:
                    plan = merged
                    payload = plan.to_json()
            break
        else:
            logger.error("All %s plan save attempts failed, keeping it locally only", self.kind.value)
        self._in_flight.pop(self._slot(user_id), None)
        await _store_set_json(self.store, durable_key, payload)
        self._memory_set(user_id, payload)
        return plan

    async def clear(self) -> None:
        """Purge remote plans and local plan tiers. Completion data is kept."""
        user_id = self.user.user_id
        self._in_flight.pop(self._slot(user_id), None)
        try:
            removed = await self.api.clear_all()
            logger.info("Cleared %s remote %s plans", removed, self.kind.value)
        except Exception as exc:
            logger.warning("Could not clear %s plans remotely: %s", self.kind.value, exc)
        await _store_remove(self.store, self._durable_key_for(user_id))
        self._memory.pop(self._slot(user_id), None)

    def reset_memory(self) -> None:
        self._memory.clear()
        self._in_flight.clear()
