from __future__ import annotations

import math
from typing import List, Optional, Tuple

from fitplan.config.constants import (
    GAIN_RATE_TIERS,
    HABIT_FLOOR_DELTA_KG,
    LOSS_RATE_TIERS,
    MAINTAIN_WEEKS,
    MAX_DELTA_RATIO,
    MAX_WEEKS,
    MAX_WEIGHT_KG,
    MIN_WEEKS,
    MIN_WEIGHT_KG,
    WEEKS_PER_MONTH,
)
from fitplan.models import PlanDuration, UserProfile

GOAL_LOSS = "loss"
GOAL_GAIN = "gain"
GOAL_OTHER = "other"


def classify_goal(body_goal: Optional[str]) -> str:
    lower = (body_goal or "").lower()
    if "lose" in lower or "fat" in lower:
        return GOAL_LOSS
    if "gain" in lower or "muscle" in lower:
        return GOAL_GAIN
    return GOAL_OTHER


def _weights_are_valid(goal_type: str, current: float, target: float) -> bool:
    for weight in (current, target):
        if weight < MIN_WEIGHT_KG or weight > MAX_WEIGHT_KG:
            return False
    if goal_type == GOAL_LOSS and target >= current:
        return False
    if goal_type == GOAL_GAIN and target <= current:
        return False
    return abs(target - current) <= MAX_DELTA_RATIO * current


def _weekly_rate(delta: float, tiers: List[Tuple[Optional[float], float]]) -> float:
    # tiers: (exclusive upper bound, rate); the middle tier includes its bound
    small_bound, small_rate = tiers[0]
    large_bound, default_rate = tiers[1]
    _, large_rate = tiers[2]
    if delta < small_bound:
        return small_rate
    if delta > large_bound:
        return large_rate
    return default_rate


def _clamp_weeks(weeks: int) -> int:
    return max(MIN_WEEKS, min(MAX_WEEKS, weeks))


def _non_weight_weeks(body_goal: str) -> int:
    lower = body_goal.lower()
    if any(k in lower for k in ["fitness", "training", "improve", "endurance"]):
        return MAX_WEEKS
    if "maintain" in lower:
        return MAINTAIN_WEEKS
    return MIN_WEEKS


def _weight_goal_weeks(goal_type: str, current: float, target: float) -> int:
    if not _weights_are_valid(goal_type, current, target):
        return MIN_WEEKS
    delta = abs(target - current)
    if delta < HABIT_FLOOR_DELTA_KG:
        return MIN_WEEKS
    tiers = LOSS_RATE_TIERS if goal_type == GOAL_LOSS else GAIN_RATE_TIERS
    rate = _weekly_rate(delta, tiers)
    # round first so 6 / 0.3 does not ceil to 21
    weeks = math.ceil(round(delta / rate, 6))
    return _clamp_weeks(weeks)


def format_duration_label(weeks: int) -> str:
    if weeks >= 24:
        return f"{round(weeks / WEEKS_PER_MONTH)} months"
    return f"{weeks} weeks"


def compute_duration(profile: UserProfile) -> PlanDuration:
    goal_type = classify_goal(profile.body_goal)
    if goal_type == GOAL_OTHER:
        weeks = _non_weight_weeks(profile.body_goal or "")
    else:
        weeks = _weight_goal_weeks(
            goal_type,
            float(profile.current_weight_kg),
            float(profile.target_weight_kg),
        )
    return PlanDuration(
        total_weeks=weeks,
        label=format_duration_label(weeks),
        approx_months=round(weeks / WEEKS_PER_MONTH, 1),
    )


def format_duration_for_prompt(duration: PlanDuration) -> str:
    return f"{duration.total_weeks} weeks (~{duration.approx_months:.1f} months)"
