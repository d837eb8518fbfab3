from __future__ import annotations

DIET_PLANS = "/diet-plans"
WORKOUT_PLANS = "/workout-plans"

ACTIVE_PLAN = "{root}/active"
PLAN_BY_ID = "{root}/{plan_id}"
# diet lists live under /all, GET on the diet root returns the active plan
DIET_PLAN_LIST = "/diet-plans/all"
WORKOUT_PLAN_LIST = "/workout-plans"
GENERATE_PLAN = "{root}/generate"

MEAL_COMPLETE = "/diet-plans/meal/complete"
EXERCISE_COMPLETE = "/workout-plans/exercise/complete"
DAY_COMPLETE = "{root}/day/complete"
WATER_LOG = "/diet-plans/water/log"

CLEAR_PAGE_LIMIT = 100
