from __future__ import annotations

import os
from pathlib import Path
from typing import Optional

from dotenv import load_dotenv

# BASE_DIR points to the project root
BASE_DIR = Path(__file__).resolve().parents[2]

load_dotenv(dotenv_path=BASE_DIR / ".env")

PLAN_API_BASE_URL = os.getenv("PLAN_API_BASE_URL", "http://localhost:5000/api")
PLAN_API_TOKEN = os.getenv("PLAN_API_TOKEN", "")
PLAN_API_TIMEOUT = float(os.getenv("PLAN_API_TIMEOUT", "30"))
LLM_MODEL = os.getenv("FITPLAN_LLM_MODEL", "gpt-4o")
LOG_LEVEL = os.getenv("FITPLAN_LOG_LEVEL", "INFO")

CACHE_TTL_PLAN = 30 * 60

PLAN_SAVE_ATTEMPTS = 3
PLAN_SAVE_BACKOFF_SECONDS = 1.0

# Plan duration policy
MIN_WEEKS = 12
MAX_WEEKS = 52
MAINTAIN_WEEKS = 16
MIN_WEIGHT_KG = 30.0
MAX_WEIGHT_KG = 200.0
MAX_DELTA_RATIO = 0.5
HABIT_FLOOR_DELTA_KG = 2.0
WEEKS_PER_MONTH = 4.33

# (upper bound of delta in kg, kg per week); last tier has no bound
LOSS_RATE_TIERS = [(5.0, 0.25), (20.0, 0.3), (None, 0.5)]
GAIN_RATE_TIERS = [(3.0, 0.15), (10.0, 0.2), (None, 0.25)]

DAY_COMPLETION_THRESHOLD = 50
STREAK_HISTORY_DAYS = 60
DEFAULT_WATER_TARGET_ML = 3000

DIET_GENERATION_COOLDOWN = 5 * 60
WORKOUT_GENERATION_COOLDOWN = 3 * 60
GENERATION_HISTORY_RETENTION = 30 * 24 * 60 * 60

CACHED_DIET_PLAN_KEY = "cached_diet_plan"
CACHED_WORKOUT_PLAN_KEY = "cached_workout_plan"
COMPLETED_MEALS_KEY = "completed_meals"
COMPLETED_DIET_DAYS_KEY = "completed_diet_days"
COMPLETED_EXERCISES_KEY = "completed_exercises"
COMPLETED_WORKOUT_DAYS_KEY = "completed_workout_days"
WATER_INTAKE_KEY = "water_intake"
WATER_COMPLETED_KEY = "water_completed"
GENERATION_HISTORY_KEY = "ai_generation_history"
TRAINER_CONVERSATIONS_KEY = "ai_trainer_conversations"
TRAINER_CURRENT_CONVERSATION_KEY = "ai_trainer_current_conversation"

USER_SCOPED_KEYS = [
    CACHED_DIET_PLAN_KEY,
    CACHED_WORKOUT_PLAN_KEY,
    COMPLETED_MEALS_KEY,
    COMPLETED_DIET_DAYS_KEY,
    COMPLETED_EXERCISES_KEY,
    COMPLETED_WORKOUT_DAYS_KEY,
    WATER_INTAKE_KEY,
    WATER_COMPLETED_KEY,
    GENERATION_HISTORY_KEY,
    TRAINER_CONVERSATIONS_KEY,
    TRAINER_CURRENT_CONVERSATION_KEY,
]


def user_key(base_key: str, user_id: Optional[str]) -> str:
    if not user_id:
        return f"temp_{base_key}"
    return f"user_{user_id}_{base_key}"


def _memory_plan_key(plan_kind: str) -> str:
    return f"{plan_kind}-plan-active"
