from __future__ import annotations

import asyncio
import inspect
import logging
from enum import Enum
from typing import Any, Awaitable, Callable, Dict, List, Optional, Type, Union

from pydantic import BaseModel

from fitplan.models import PlanKind

logger = logging.getLogger(__name__)


class EventName(str, Enum):
    MEAL_COMPLETED = "mealCompleted"
    DAY_COMPLETED = "dayCompleted"
    EXERCISE_COMPLETED = "exerciseCompleted"
    WATER_INTAKE_UPDATED = "waterIntakeUpdated"
    DIET_PROGRESS_UPDATED = "dietProgressUpdated"
    WORKOUT_PROGRESS_UPDATED = "workoutProgressUpdated"


class MealCompleted(BaseModel):
    meal_id: str
    date: str
    day: int
    week: int
    meal_type: str


class ExerciseCompleted(BaseModel):
    exercise_id: str
    date: str
    day: int
    week: int


class DayCompleted(BaseModel):
    plan_kind: PlanKind
    date: str
    day: int
    week: int


class WaterIntakeUpdated(BaseModel):
    date: str
    amount_ml: int
    completed: bool


class ProgressUpdated(BaseModel):
    plan_kind: PlanKind
    completed_items: int
    completed_days: int


EVENT_TYPES: Dict[EventName, Type[BaseModel]] = {
    EventName.MEAL_COMPLETED: MealCompleted,
    EventName.DAY_COMPLETED: DayCompleted,
    EventName.EXERCISE_COMPLETED: ExerciseCompleted,
    EventName.WATER_INTAKE_UPDATED: WaterIntakeUpdated,
    EventName.DIET_PROGRESS_UPDATED: ProgressUpdated,
    EventName.WORKOUT_PROGRESS_UPDATED: ProgressUpdated,
}

Handler = Callable[[Any], Union[None, Awaitable[None]]]


class EventBus:
    """In-process publish/subscribe channel with one payload model per event."""

    def __init__(self) -> None:
        self._subs: Dict[EventName, List[Handler]] = {name: [] for name in EventName}
        self.history: List[tuple] = []
        self._history_limit = 100

    def subscribe(self, name: EventName, handler: Handler) -> Callable[[], None]:
        self._subs[name].append(handler)

        def unsubscribe() -> None:
            if handler in self._subs[name]:
                self._subs[name].remove(handler)

        return unsubscribe

    def subscriber_count(self, name: Optional[EventName] = None) -> int:
        if name is not None:
            return len(self._subs[name])
        return sum(len(handlers) for handlers in self._subs.values())

    async def publish(self, name: EventName, event: BaseModel) -> None:
        expected = EVENT_TYPES[name]
        if not isinstance(event, expected):
            raise TypeError(f"{name.value} expects {expected.__name__}, got {type(event).__name__}")
        self.history.append((name, event))
        if len(self.history) > self._history_limit:
            self.history = self.history[-self._history_limit:]
        for handler in list(self._subs[name]):
            try:
                result = handler(event)
                if inspect.isawaitable(result):
                    await result
            except asyncio.CancelledError:
                raise
            except Exception as exc:
                logger.warning("Handler for %s failed: %s", name.value, exc)

    def clear(self) -> None:
        for handlers in self._subs.values():
            handlers.clear()
        self.history.clear()
