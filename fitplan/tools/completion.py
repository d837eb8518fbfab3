from __future__ import annotations

import logging
from abc import ABC, abstractmethod
from datetime import date
from enum import Enum
from typing import Any, Awaitable, Callable, Dict, List, Optional, Set, Tuple

from fitplan.config.constants import DAY_COMPLETION_THRESHOLD
from fitplan.db.plans import PlanApi
from fitplan.events import DayCompleted, EventBus, EventName, ProgressUpdated
from fitplan.models import DayStatus, PlanKind
from fitplan.plan.calendar import parse_iso_date, week_number_for_day
from fitplan.redis.cache import KeyValueStore, _store_get_json, _store_set_json
from fitplan.user_context import UserContext

logger = logging.getLogger(__name__)

_UNLOADED = object()


class RollbackPolicy(str, Enum):
    KEEP_LOCAL = "keep_local"
    REVERT = "revert"


# what happens to the local change when the remote write is not acknowledged
OPERATION_POLICIES: Dict[str, RollbackPolicy] = {
    "item": RollbackPolicy.KEEP_LOCAL,
    "day": RollbackPolicy.REVERT,
    "water": RollbackPolicy.KEEP_LOCAL,
}


def day_alias(day_number: int, week_number: int) -> str:
    return f"{day_number}-{week_number}"


def completion_percentage(completed: int, total: int) -> int:
    if total <= 0:
        return 0
    return int(completed * 100 / total + 0.5)


def meets_completion_threshold(completed: int, total: int) -> bool:
    # compared on the exact ratio, the rounded percentage is for display only
    return total > 0 and completed * 100 >= DAY_COMPLETION_THRESHOLD * total


class CompletionTracker(ABC):
    """Local-first completion state for one plan kind.

    Item and day sets live in memory, are persisted per user, and are only
    reloaded from local storage. Remote writes are best effort and follow
    ``OPERATION_POLICIES``.
    """

    kind: PlanKind
    items_key: str
    days_key: str
    progress_event: EventName

    def __init__(
        self,
        store: KeyValueStore,
        api: PlanApi,
        user: UserContext,
        bus: EventBus,
        today: Callable[[], date] = date.today,
    ) -> None:
        self.store = store
        self.api = api
        self.user = user
        self.bus = bus
        self._today = today
        self._items: Set[str] = set()
        self._days: Set[str] = set()
        self._loaded_for: Any = _UNLOADED

    async def ensure_initialized(self) -> None:
        if self._loaded_for is _UNLOADED or self._loaded_for != self.user.user_id:
            if self._loaded_for is not _UNLOADED:
                logger.info("User changed, resetting %s completion state", self.kind.value)
            self.reset()
            await self.reload()

    async def _load_set(self, base_key: str) -> Set[str]:
        raw = await _store_get_json(self.store, self.user.key(base_key))
        if not isinstance(raw, list):
            return set()
        return {str(item) for item in raw}

    async def reload(self) -> None:
        self._items = await self._load_set(self.items_key)
        self._days = await self._load_set(self.days_key)
        self._loaded_for = self.user.user_id

    def reset(self) -> None:
        self._items = set()
        self._days = set()
        self._loaded_for = _UNLOADED

    async def _persist_items(self) -> None:
        await _store_set_json(self.store, self.user.key(self.items_key), sorted(self._items))

    async def _persist_days(self) -> None:
        await _store_set_json(self.store, self.user.key(self.days_key), sorted(self._days))

    async def _commit(
        self,
        operation: str,
        confirm: Callable[[], Awaitable[Any]],
        revert: Optional[Callable[[], None]] = None,
    ) -> bool:
        """Second phase of a local-apply / remote-confirm / rollback write."""
        try:
            await confirm()
        except Exception as exc:
            policy = OPERATION_POLICIES[operation]
            logger.warning("%s %s write not acknowledged (%s): %s", self.kind.value, operation, policy.value, exc)
            if policy is RollbackPolicy.REVERT and revert is not None:
                revert()
                return False
        return True

    def _completed_items(self) -> Set[str]:
        return set(self._items)

    def completed_days(self) -> Set[str]:
        return set(self._days)

    def is_day_completed(self, day_date: str, day_number: Optional[int] = None, week_number: Optional[int] = None) -> bool:
        if day_date in self._days:
            return True
        if day_number is None:
            return False
        week = week_number if week_number is not None else week_number_for_day(day_number)
        return day_alias(day_number, week) in self._days

    @abstractmethod
    def item_ids_for_day(self, day: Any) -> List[str]:
        ...

    def _day_counts(self, day: Any) -> Tuple[int, int]:
        ids = self.item_ids_for_day(day)
        return sum(1 for item_id in ids if item_id in self._items), len(ids)

    def get_day_completion_percentage(self, day: Any) -> int:
        return completion_percentage(*self._day_counts(day))

    def day_threshold_met(self, day: Any) -> bool:
        return meets_completion_threshold(*self._day_counts(day))

    def get_day_status(self, day: Any, today: Optional[date] = None) -> DayStatus:
        today = today or self._today()
        day_date = parse_iso_date(day.date)
        if day_date == today:
            return DayStatus.IN_PROGRESS
        if day_date > today:
            return DayStatus.UPCOMING
        if self.is_day_completed(day.date, day.day):
            return DayStatus.COMPLETED
        if self.day_threshold_met(day):
            return DayStatus.COMPLETED
        return DayStatus.MISSED

    async def mark_day_complete(
        self,
        day_date: str,
        day_number: int,
        week_number: int,
    ) -> bool:
        await self.ensure_initialized()
        if self.is_day_completed(day_date, day_number, week_number):
            return True
        added = {day_date, day_alias(day_number, week_number)} - self._days
        self._days |= added
        confirmed = await self._commit(
            "day",
            lambda: self.api.mark_day_complete(day_number, week_number),
            revert=lambda: self._days.difference_update(added),
        )
        if not confirmed:
            return False
        await self._persist_days()
        await self.bus.publish(
            EventName.DAY_COMPLETED,
            DayCompleted(plan_kind=self.kind, date=day_date, day=day_number, week=week_number),
        )
        await self._publish_progress()
        return True

    async def _maybe_cascade(self, day: Any, week_number: int, today: date) -> None:
        if day.date != today.isoformat():
            return
        if self.is_day_completed(day.date, day.day, week_number):
            return
        if self.day_threshold_met(day):
            logger.info("%s day %s reached %s%%, marking it complete", self.kind.value, day.date, DAY_COMPLETION_THRESHOLD)
            await self.mark_day_complete(day.date, day.day, week_number)

    async def _publish_progress(self) -> None:
        await self.bus.publish(
            self.progress_event,
            ProgressUpdated(
                plan_kind=self.kind,
                completed_items=len(self._items),
                completed_days=len(self._days),
            ),
        )

    def _snapshot_day_ids(self, entries: List[Any]) -> Set[str]:
        ids = set()
        for entry in entries or []:
            if isinstance(entry, str):
                ids.add(entry)
            elif isinstance(entry, dict) and entry.get("day") is not None:
                week = entry.get("week") or week_number_for_day(int(entry["day"]))
                ids.add(day_alias(int(entry["day"]), int(week)))
        return ids

    def _snapshot_item_ids(self, entries: List[Any], field: str) -> Set[str]:
        ids = set()
        for entry in entries or []:
            if isinstance(entry, str):
                ids.add(entry)
            elif isinstance(entry, dict) and entry.get(field):
                ids.add(str(entry[field]))
        return ids

    async def _merge_snapshot(self, item_ids: Set[str], day_ids: Set[str]) -> None:
        await self.ensure_initialized()
        new_items = item_ids - self._items
        new_days = day_ids - self._days
        if new_items:
            self._items |= new_items
            await self._persist_items()
        if new_days:
            self._days |= new_days
            await self._persist_days()
