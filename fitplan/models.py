from __future__ import annotations

import datetime
import math
from enum import Enum
from typing import Any, List, Optional, Tuple

from pydantic import AliasChoices, BaseModel, ConfigDict, Field, model_validator
from pydantic.alias_generators import to_camel


class _Model(BaseModel):
    # camelCase on the wire, snake_case in Python
    model_config = ConfigDict(alias_generator=to_camel, populate_by_name=True)

    def to_json(self) -> dict[str, Any]:
        return self.model_dump(mode="json", by_alias=True)

    def to_record(self) -> dict[str, Any]:
        return self.to_json()


class PlanKind(str, Enum):
    DIET = "diet"
    WORKOUT = "workout"


class Gender(str, Enum):
    MALE = "Male"
    FEMALE = "Female"


class DayStatus(str, Enum):
    UPCOMING = "upcoming"
    IN_PROGRESS = "in_progress"
    COMPLETED = "completed"
    MISSED = "missed"
    REST = "rest"


class MealType(str, Enum):
    BREAKFAST = "breakfast"
    LUNCH = "lunch"
    DINNER = "dinner"
    SNACK = "snack"


class UserProfile(_Model):
    model_config = ConfigDict(frozen=True)

    age: int = 30
    gender: Gender = Gender.MALE
    height_cm: float = 170.0
    current_weight_kg: float
    target_weight_kg: float
    body_goal: str
    diet_preference: Optional[str] = None
    medical_conditions: Optional[str] = None
    country: Optional[str] = None
    available_equipment: Optional[str] = None

    @property
    def bmi(self) -> Optional[float]:
        height_m = self.height_cm / 100.0
        if height_m <= 0:
            return None
        return self.current_weight_kg / (height_m ** 2)


class PlanDuration(_Model):
    total_weeks: int
    label: str
    approx_months: float


class Macros(_Model):
    calories: int = 0
    protein: int = 0
    carbs: int = 0
    fats: int = 0


class MealItem(_Model):
    name: str
    emoji: str = "🍽️"
    ingredients: List[str] = Field(default_factory=list)
    calories: int = 0
    protein: int = 0
    carbs: int = 0
    fats: int = 0
    prep_time: str = Field(
        default="15 min",
        validation_alias=AliasChoices("prepTime", "preparationTime", "prep_time"),
        serialization_alias="prepTime",
    )
    serving_size: str = "1 serving"
    instructions: Optional[str] = None

    def to_record(self) -> dict[str, Any]:
        record = self.to_json()
        record["preparationTime"] = record.pop("prepTime")
        return record


class DayMeals(_Model):
    breakfast: MealItem
    lunch: MealItem
    dinner: MealItem
    snacks: List[MealItem] = Field(default_factory=list)

    def slots(self) -> List[Tuple[MealType, MealItem]]:
        items = [
            (MealType.BREAKFAST, self.breakfast),
            (MealType.LUNCH, self.lunch),
            (MealType.DINNER, self.dinner),
        ]
        items.extend((MealType.SNACK, snack) for snack in self.snacks)
        return items


class DietDay(_Model):
    day: int
    day_name: str
    date: str
    totals: Macros
    meals: DayMeals
    water_intake: str = "2-3 liters"
    notes: str = ""

    @model_validator(mode="before")
    @classmethod
    def _lift_totals(cls, data: Any) -> Any:
        # stored records keep totalCalories/totalProtein/... on the day itself
        if isinstance(data, dict) and "totals" not in data and "totalCalories" in data:
            data = {**data, "totals": _flat_macros(data, "total")}
        return data

    def to_record(self) -> dict[str, Any]:
        record = self.to_json()
        totals = record.pop("totals")
        record.update({f"total{name.capitalize()}": value for name, value in totals.items()})
        record["meals"] = {
            "breakfast": self.meals.breakfast.to_record(),
            "lunch": self.meals.lunch.to_record(),
            "dinner": self.meals.dinner.to_record(),
            "snacks": [snack.to_record() for snack in self.meals.snacks],
        }
        return record


class WorkoutExercise(_Model):
    name: str
    emoji: str = "💪"
    sets: int = 3
    reps: int = 10
    rest: str = "60s"
    target_muscles: List[str] = Field(default_factory=list)
    calories_burned: int = 0


class WorkoutDay(_Model):
    day: int
    day_name: str
    date: str
    is_rest_day: bool = False
    exercises: List[WorkoutExercise] = Field(default_factory=list)
    warm_up: str = ""
    cool_down: str = ""
    total_calories: int = 0


def _flat_macros(data: dict, prefix: str) -> dict:
    return {name: data.get(f"{prefix}{name.capitalize()}", 0) for name in ("calories", "protein", "carbs", "fats")}


def _weeks_between(start: Any, end: Any) -> Optional[int]:
    try:
        days = (datetime.date.fromisoformat(str(end)[:10]) - datetime.date.fromisoformat(str(start)[:10])).days
    except ValueError:
        return None
    return max(1, math.ceil(days / 7))


def _weekly_pattern_field() -> Any:
    return Field(
        validation_alias=AliasChoices("weeklyPattern", "weeklyPlan", "weekly_pattern"),
        serialization_alias="weeklyPattern",
    )


class _PlanBase(_Model):
    id: Optional[str] = Field(default=None, validation_alias=AliasChoices("id", "_id"))
    user_id: Optional[str] = None
    goal: str
    duration_label: str = Field(
        validation_alias=AliasChoices("durationLabel", "duration", "duration_label"),
        serialization_alias="durationLabel",
    )
    total_weeks: int
    start_date: str
    end_date: str
    completed_days: List[Any] = Field(default_factory=list)

    @model_validator(mode="before")
    @classmethod
    def _fill_total_weeks(cls, data: Any) -> Any:
        # workout records carry only the start and end dates
        if isinstance(data, dict) and "totalWeeks" not in data and "total_weeks" not in data:
            weeks = _weeks_between(data.get("startDate"), data.get("endDate"))
            if weeks is not None:
                data = {**data, "totalWeeks": weeks}
        return data

    def to_record(self) -> dict[str, Any]:
        """Document shape the plan service stores: ``duration``, ``weeklyPlan``, no ids."""
        record = self.to_json()
        for key in ("id", "userId"):
            record.pop(key, None)
        record["duration"] = record.pop("durationLabel")
        record.pop("weeklyPattern")
        record["weeklyPlan"] = [day.to_record() for day in self.weekly_pattern]
        return record


class DietPlan(_PlanBase):
    country: Optional[str] = None
    target_macros: Macros = Field(default_factory=Macros)
    weekly_pattern: List[DietDay] = _weekly_pattern_field()
    key_notes: List[str] = Field(default_factory=list)
    completed_meals: List[Any] = Field(default_factory=list)

    @model_validator(mode="before")
    @classmethod
    def _lift_targets(cls, data: Any) -> Any:
        if isinstance(data, dict) and "targetMacros" not in data and "targetCalories" in data:
            data = {**data, "targetMacros": _flat_macros(data, "target")}
        return data

    def to_record(self) -> dict[str, Any]:
        record = super().to_record()
        targets = record.pop("targetMacros")
        record.update({f"target{name.capitalize()}": value for name, value in targets.items()})
        return record


class WorkoutPlan(_PlanBase):
    weekly_pattern: List[WorkoutDay] = _weekly_pattern_field()
    completed_exercises: List[Any] = Field(default_factory=list)


class CompletionCategory(str, Enum):
    BREAKFAST = "breakfast"
    LUNCH = "lunch"
    DINNER = "dinner"
    SNACK = "snack"
    EXERCISE = "exercise"


class CompletionId(BaseModel):
    """Identity of one checked-off meal or exercise on a calendar date."""

    model_config = ConfigDict(frozen=True)

    date: str
    category: CompletionCategory
    name: str

    @classmethod
    def meal(cls, date: str, meal_type: MealType, name: str) -> "CompletionId":
        return cls(date=date, category=CompletionCategory(meal_type.value), name=name)

    @classmethod
    def exercise(cls, date: str, name: str) -> "CompletionId":
        return cls(date=date, category=CompletionCategory.EXERCISE, name=name)

    @property
    def key(self) -> str:
        if self.category == CompletionCategory.EXERCISE:
            return f"{self.date}-{self.name}"
        return f"{self.date}-{self.category.value}-{self.name}"


class ApiEnvelope(BaseModel):
    success: bool = False
    message: str = ""
    data: Optional[Any] = None
