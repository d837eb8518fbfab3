from __future__ import annotations

import logging
from datetime import date
from typing import Callable, Optional

from fitplan.db.connection import PlanApiClient
from fitplan.db.plans import DietPlanApi, WorkoutPlanApi
from fitplan.events import EventBus
from fitplan.models import PlanKind
from fitplan.plan.plan_generation import BackendProxyGenerator, PlanGenerator, TextGenerator
from fitplan.redis.cache import KeyValueStore, build_store
from fitplan.tools.meal_tools import MealCompletionTracker
from fitplan.tools.plan_cache import PlanCacheService
from fitplan.tools.rate_limit import GenerationRateLimiter
from fitplan.tools.streaks import StreakTracker
from fitplan.tools.workout_tools import ExerciseCompletionTracker
from fitplan.user_context import UserContext, clear_user_data, migrate_guest_data

logger = logging.getLogger(__name__)


class SessionContext:
    """Everything one signed-in (or guest) session shares."""

    def __init__(
        self,
        user_id: Optional[str] = None,
        store: Optional[KeyValueStore] = None,
        client: Optional[PlanApiClient] = None,
        generator: Optional[TextGenerator] = None,
        today: Callable[[], date] = date.today,
    ) -> None:
        self.store = store if store is not None else build_store()
        self.client = client if client is not None else PlanApiClient()
        self.user = UserContext(user_id)
        self.bus = EventBus()
        self.diet_api = DietPlanApi(self.client)
        self.workout_api = WorkoutPlanApi(self.client)
        self.diet_plans = PlanCacheService(PlanKind.DIET, self.store, self.diet_api, self.user)
        self.workout_plans = PlanCacheService(PlanKind.WORKOUT, self.store, self.workout_api, self.user)
        self.meals = MealCompletionTracker(self.store, self.diet_api, self.user, self.bus, today=today)
        self.exercises = ExerciseCompletionTracker(self.store, self.workout_api, self.user, self.bus, today=today)
        self.streaks = StreakTracker(self.meals, self.exercises, self.bus, today=today)
        self.rate_limiter = GenerationRateLimiter(self.store, self.user)
        self.generator = PlanGenerator(
            self.diet_plans,
            self.workout_plans,
            self.rate_limiter,
            generator if generator is not None else BackendProxyGenerator(self.diet_api),
        )

    def _reset_memory(self) -> None:
        self.diet_plans.reset_memory()
        self.workout_plans.reset_memory()
        self.meals.reset()
        self.exercises.reset()
        self.streaks.reset()

    async def switch_user(self, user_id: Optional[str], token: Optional[str] = None) -> None:
        previous = self.user.switch(user_id)
        if previous == self.user.user_id:
            return
        if previous is None and self.user.user_id is not None:
            await migrate_guest_data(self.store, self.user.user_id)
        if token is not None:
            self.client.set_token(token)
        self._reset_memory()
        logger.info("Session switched from %s to %s", previous or "guest", self.user.user_id or "guest")

    async def logout(self, clear_local: bool = False) -> None:
        """Back to guest mode; optionally wipe the departing user's local data."""
        if clear_local and self.user.user_id is not None:
            await clear_user_data(self.store, self.user.user_id)
        self.client.set_token(None)
        await self.switch_user(None)

    async def aclose(self) -> None:
        self.bus.clear()
        await self.client.aclose()
