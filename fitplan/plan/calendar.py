from __future__ import annotations

import math
from datetime import date, datetime, timedelta
from enum import Enum
from typing import List, Optional, Union

from fitplan.models import DietDay, DietPlan, WorkoutDay, WorkoutPlan

_MONDAY_FIRST_NAMES = [
    "Monday",
    "Tuesday",
    "Wednesday",
    "Thursday",
    "Friday",
    "Saturday",
    "Sunday",
]


class WeekIndexing(Enum):
    """How a plan kind maps weekdays onto its 7-entry weekly pattern."""

    SUNDAY_FIRST = "sunday_first"
    MONDAY_FIRST = "monday_first"

    def index_of(self, day: date) -> int:
        if self is WeekIndexing.SUNDAY_FIRST:
            return (day.weekday() + 1) % 7
        return day.weekday()

    def day_names(self) -> List[str]:
        if self is WeekIndexing.SUNDAY_FIRST:
            return ["Sunday"] + _MONDAY_FIRST_NAMES[:6]
        return list(_MONDAY_FIRST_NAMES)


DIET_WEEK = WeekIndexing.SUNDAY_FIRST
WORKOUT_WEEK = WeekIndexing.MONDAY_FIRST

Plan = Union[DietPlan, WorkoutPlan]
PlanDay = Union[DietDay, WorkoutDay]


def parse_iso_date(value: Union[str, date]) -> date:
    if isinstance(value, datetime):
        return value.date()
    if isinstance(value, date):
        return value
    return date.fromisoformat(str(value)[:10])


def day_name(day: date) -> str:
    return _MONDAY_FIRST_NAMES[day.weekday()]


def week_number_for_day(day_number: int) -> int:
    return max(1, math.ceil(day_number / 7))


def days_in_first_week(start: date) -> int:
    # start weekday through Sunday inclusive
    return 7 - start.weekday()


def get_total_weeks(plan: Plan) -> int:
    if plan.total_weeks:
        return plan.total_weeks
    start = parse_iso_date(plan.start_date)
    end = parse_iso_date(plan.end_date)
    return max(1, math.ceil((end - start).days / 7))


def get_current_week(start_date: Union[str, date], today: date, total_weeks: int) -> int:
    start = parse_iso_date(start_date)
    days_diff = (today - start).days
    if days_diff <= 0:
        return 1
    first_week = days_in_first_week(start)
    if days_diff < first_week:
        week = 1
    else:
        week = 2 + (days_diff - first_week) // 7
    return max(1, min(week, max(1, total_weeks)))


def get_plan_current_week(plan: Plan, today: Optional[date] = None) -> int:
    today = today or date.today()
    return get_current_week(plan.start_date, today, get_total_weeks(plan))


def get_progress_percentage(current_week: int, total_weeks: int) -> int:
    if total_weeks <= 0:
        return 0
    completed_weeks = max(0, current_week - 1)
    return round(max(0.0, min(100.0, 100 * completed_weeks / total_weeks)))


def pattern_day_for(plan: Plan, indexing: WeekIndexing, day: date) -> Optional[PlanDay]:
    index = indexing.index_of(day)
    if index >= len(plan.weekly_pattern):
        return None
    return plan.weekly_pattern[index]


def get_current_week_days(
    plan: Plan,
    indexing: WeekIndexing,
    today: Optional[date] = None,
) -> List[PlanDay]:
    """Calendar days of the live current week, re-indexed into the weekly pattern.

    Week 1 runs from the plan start through the following Sunday (a single
    day when the plan starts on a Sunday). Every later week is Monday to
    Sunday of the real calendar week containing ``today``, so this only
    answers for the week being lived, not for arbitrary past or future weeks.
    """
    if not plan.weekly_pattern:
        return []
    today = today or date.today()
    current_week = get_plan_current_week(plan, today)
    start = parse_iso_date(plan.start_date)
    days: List[PlanDay] = []
    if current_week == 1:
        for offset in range(days_in_first_week(start)):
            current = start + timedelta(days=offset)
            template = pattern_day_for(plan, indexing, current)
            if template is None:
                continue
            days.append(
                template.model_copy(
                    update={
                        "date": current.isoformat(),
                        "day": offset + 1,
                        "day_name": day_name(current),
                    }
                )
            )
        return days
    monday = today - timedelta(days=today.weekday())
    for offset in range(7):
        current = monday + timedelta(days=offset)
        template = pattern_day_for(plan, indexing, current)
        if template is None:
            continue
        days.append(
            template.model_copy(
                update={
                    "date": current.isoformat(),
                    "day": (current_week - 1) * 7 + offset + 1,
                    "day_name": day_name(current),
                }
            )
        )
    return days


def find_day_for_date(
    plan: Plan,
    indexing: WeekIndexing,
    day: date,
) -> Optional[PlanDay]:
    for entry in get_current_week_days(plan, indexing, today=day):
        if entry.date == day.isoformat():
            return entry
    return None
