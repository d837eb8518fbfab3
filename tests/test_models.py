from conftest import FakePlanApi, make_diet_plan

from fitplan.models import DietPlan, PlanKind, WorkoutPlan
from fitplan.tools.plan_cache import PlanCacheService


def _meal(name, calories, prep="10 min"):
    return {
        "name": name,
        "emoji": "🍳",
        "ingredients": ["eggs"],
        "calories": calories,
        "protein": 20,
        "carbs": 30,
        "fats": 10,
        "preparationTime": prep,
        "servingSize": "1 plate",
        "instructions": "Cook it",
    }


DIET_RECORD = {
    "_id": "m1",
    "id": "m1",
    "userId": "64b7f0c2",
    "goal": "Fat Loss",
    "duration": "3 months",
    "country": "Italy",
    "keyNotes": ["Drink water"],
    "weeklyPlan": [
        {
            "day": 1,
            "dayName": "Monday",
            "date": "2026-10-19",
            "totalCalories": 1500,
            "totalProtein": 60,
            "totalCarbs": 90,
            "totalFats": 30,
            "meals": {
                "breakfast": _meal("Frittata", 400, "12 min"),
                "lunch": _meal("Panzanella", 500),
                "dinner": _meal("Sea Bass", 600),
                "snacks": [],
            },
            "waterIntake": "2 liters",
            "notes": "",
        }
    ],
    "startDate": "2026-10-19",
    "endDate": "2027-01-11",
    "totalWeeks": 12,
    "targetCalories": 1800,
    "targetProtein": 120,
    "targetCarbs": 180,
    "targetFats": 60,
    "isActive": True,
    "completedMeals": [{"mealId": "2026-10-19-breakfast-Frittata", "day": 1, "week": 1, "mealType": "breakfast"}],
    "completedDays": [{"day": 1, "week": 1}],
}

WORKOUT_RECORD = {
    "_id": "w1",
    "goal": "Muscle Gain",
    "duration": "12 weeks",
    "weeklyPlan": [
        {
            "day": 1,
            "dayName": "Monday",
            "date": "2026-10-19",
            "isRestDay": False,
            "exercises": [{"name": "Squat", "sets": 4, "reps": 8, "rest": "90s", "caloriesBurned": 120}],
            "warmUp": "Bike",
            "coolDown": "Stretch",
            "totalCalories": 120,
        }
    ],
    "startDate": "2026-10-19",
    "endDate": "2027-01-11",
}


def test_stored_diet_record_is_readable():
    plan = DietPlan.model_validate(DIET_RECORD)
    assert plan.id == "m1"
    assert plan.duration_label == "3 months"
    assert plan.target_macros.calories == 1800
    day = plan.weekly_pattern[0]
    assert (day.totals.calories, day.totals.protein) == (1500, 60)
    assert day.meals.breakfast.prep_time == "12 min"
    assert plan.to_json()["durationLabel"] == "3 months"


def test_workout_record_without_total_weeks_uses_dates():
    plan = WorkoutPlan.model_validate(WORKOUT_RECORD)
    assert plan.total_weeks == 12
    assert plan.weekly_pattern[0].exercises[0].calories_burned == 120


def test_record_shape_for_the_plan_service():
    record = make_diet_plan().to_record()
    assert "weeklyPattern" not in record and "id" not in record and "userId" not in record
    assert record["duration"] == "12 weeks"
    assert record["targetCalories"] == 2000
    day = record["weeklyPlan"][0]
    assert "totals" not in day and day["totalCalories"] > 0
    assert day["meals"]["breakfast"]["preparationTime"] == "15 min"
    assert DietPlan.model_validate(record).weekly_pattern == make_diet_plan().weekly_pattern


async def test_active_plan_from_the_plan_service_loads(store, user):
    service = PlanCacheService(PlanKind.DIET, store, FakePlanApi(active=DIET_RECORD), user)
    plan = await service.load()
    assert plan is not None
    assert plan.id == "m1"
    assert plan.user_id == "u1"
    assert plan.weekly_pattern[0].meals.lunch.name == "Panzanella"
