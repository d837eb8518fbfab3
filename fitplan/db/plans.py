from __future__ import annotations

import logging
from typing import Any, Dict, List, Optional

from fitplan.db import queries
from fitplan.db.connection import PlanApiClient
from fitplan.errors import PlanApiError
from fitplan.models import PlanKind

logger = logging.getLogger(__name__)


class PlanApi:
    """Remote CRUD and completion endpoints for one plan kind."""

    root = ""
    list_path = ""
    kind: PlanKind

    def __init__(self, client: PlanApiClient) -> None:
        self.client = client

    async def create(self, plan: Dict[str, Any]) -> Optional[Dict[str, Any]]:
        envelope = await self.client.request("POST", self.root, json=plan)
        return envelope.data

    async def get_active(self) -> Optional[Dict[str, Any]]:
        envelope = await self.client.request("GET", queries.ACTIVE_PLAN.format(root=self.root))
        return envelope.data or None

    async def list(self, page: int = 1, limit: int = 10) -> List[Dict[str, Any]]:
        envelope = await self.client.request("GET", self.list_path, params={"page": page, "limit": limit})
        data = envelope.data
        if isinstance(data, dict):
            data = data.get("workoutPlans") or data.get("dietPlans") or data.get("plans") or []
        return [item for item in data or [] if isinstance(item, dict)]

    async def delete(self, plan_id: str) -> None:
        await self.client.request("DELETE", queries.PLAN_BY_ID.format(root=self.root, plan_id=plan_id))

    async def clear_all(self) -> int:
        deleted = set()
        active = await self.get_active()
        if active:
            plan_id = active.get("_id") or active.get("id")
            if plan_id:
                await self.delete(plan_id)
                deleted.add(plan_id)
        for plan in await self.list(page=1, limit=queries.CLEAR_PAGE_LIMIT):
            plan_id = plan.get("_id") or plan.get("id")
            if not plan_id or plan_id in deleted:
                continue
            try:
                await self.delete(plan_id)
                deleted.add(plan_id)
            except PlanApiError as exc:
                logger.warning("Could not delete %s plan %s: %s", self.kind.value, plan_id, exc)
        return len(deleted)

    async def mark_day_complete(self, day: int, week: int) -> Any:
        envelope = await self.client.request(
            "POST",
            queries.DAY_COMPLETE.format(root=self.root),
            json={"day": day, "week": week},
        )
        return envelope.data

    async def generate(self, prompt: str) -> str:
        # generation is deliberately not time-limited
        envelope = await self.client.request(
            "POST",
            queries.GENERATE_PLAN.format(root=self.root),
            json={"prompt": prompt},
            timeout=None,
        )
        data = envelope.data or {}
        content = data.get("content") if isinstance(data, dict) else data
        if not content:
            raise PlanApiError("Empty generation response")
        return str(content)


class DietPlanApi(PlanApi):
    root = queries.DIET_PLANS
    list_path = queries.DIET_PLAN_LIST
    kind = PlanKind.DIET

    async def mark_item_complete(self, item_id: str, day: int, week: int, item_type: str) -> Any:
        envelope = await self.client.request(
            "POST",
            queries.MEAL_COMPLETE,
            json={"mealId": item_id, "day": day, "week": week, "mealType": item_type},
        )
        return envelope.data

    async def log_water(self, day: int, week: int, amount_ml: int) -> Any:
        envelope = await self.client.request(
            "POST",
            queries.WATER_LOG,
            json={"day": day, "week": week, "amount": amount_ml},
        )
        return envelope.data


class WorkoutPlanApi(PlanApi):
    root = queries.WORKOUT_PLANS
    list_path = queries.WORKOUT_PLAN_LIST
    kind = PlanKind.WORKOUT

    async def mark_item_complete(self, item_id: str, day: int, week: int, item_type: str = "exercise") -> Any:
        envelope = await self.client.request(
            "POST",
            queries.EXERCISE_COMPLETE,
            json={"exerciseId": item_id, "day": day, "week": week},
        )
        return envelope.data
