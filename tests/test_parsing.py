from datetime import date

from conftest import DIET_TEXT, MONDAY, WORKOUT_TEXT

from fitplan.models import UserProfile
from fitplan.plan.parsing import (
    day_totals,
    normalize_goal,
    parse_diet_days,
    parse_diet_plan,
    parse_exercises,
    parse_workout_days,
    parse_workout_plan,
)

PROFILE = UserProfile(body_goal="Lose Fat", current_weight_kg=80, target_weight_kg=70, country="Italy")


def test_diet_days_are_indexed_by_weekday_sunday_first():
    days = parse_diet_days(DIET_TEXT, MONDAY)
    assert len(days) == 7
    # Monday sits at index 1, the following Sunday (day 7) at index 0
    assert days[1].day == 1
    assert days[1].date == "2026-10-19"
    assert days[1].day_name == "Monday"
    assert days[0].day == 7
    assert days[0].day_name == "Sunday"


def test_labeled_meals_are_parsed():
    monday = parse_diet_days(DIET_TEXT, MONDAY)[1]
    breakfast = monday.meals.breakfast
    assert breakfast.name == "Veggie Omelette"
    assert breakfast.calories == 350
    assert (breakfast.protein, breakfast.carbs, breakfast.fats) == (18, 44, 12)
    assert breakfast.prep_time == "10 min"
    assert breakfast.ingredients == ["eggs", "spinach", "tomato"]
    assert breakfast.instructions == "Whisk and cook in a non-stick pan"

    lunch = monday.meals.lunch
    assert lunch.name == "Grilled Chicken Salad"
    assert (lunch.calories, lunch.protein, lunch.carbs, lunch.fats) == (500, 40, 45, 15)
    assert lunch.prep_time == "20 min"
    assert lunch.ingredients == ["chicken breast", "lettuce", "olive oil"]

    assert monday.meals.dinner.name == "Baked Salmon with Quinoa"
    assert monday.meals.dinner.ingredients == ["salmon", "quinoa", "broccoli"]


def test_snacks_and_day_fields():
    monday = parse_diet_days(DIET_TEXT, MONDAY)[1]
    assert [s.name for s in monday.meals.snacks] == ["Greek Yogurt", "Almonds"]
    assert monday.meals.snacks[0].protein == 6
    assert monday.water_intake == "2.5 liters"
    assert monday.notes == "Keep sodium low today"


def test_totals_match_meals():
    for day in parse_diet_days(DIET_TEXT, MONDAY):
        assert day.totals == day_totals(day.meals)
    monday = parse_diet_days(DIET_TEXT, MONDAY)[1]
    assert monday.totals.calories == 1800
    assert monday.totals.protein == 102


def test_missing_days_get_defaults():
    days = parse_diet_days(DIET_TEXT, MONDAY)
    wednesday = days[3]
    assert wednesday.day == 3
    assert wednesday.meals.breakfast.name == "Breakfast"
    assert wednesday.meals.breakfast.calories == 300
    assert wednesday.totals.calories == 1200


def test_empty_text_still_yields_a_week():
    days = parse_diet_days("", date(2026, 10, 18))
    assert len(days) == 7
    assert days[0].day == 1
    assert all(day.totals == day_totals(day.meals) for day in days)
    workout = parse_workout_days("", date(2026, 10, 18))
    assert len(workout) == 7
    assert all(day.is_rest_day for day in workout)


def test_diet_plan_header():
    plan = parse_diet_plan(DIET_TEXT, PROFILE, MONDAY)
    assert plan.goal == "Fat Loss"
    assert plan.country == "Mediterranean"
    assert plan.target_macros.calories == 1800
    assert (plan.target_macros.protein, plan.target_macros.carbs, plan.target_macros.fats) == (90, 225, 60)
    assert plan.total_weeks == 34
    assert plan.start_date == "2026-10-19"
    assert plan.end_date == "2027-06-14"
    assert len(plan.key_notes) == 5


def test_workout_days_and_exercises():
    days = parse_workout_days(WORKOUT_TEXT, MONDAY)
    assert len(days) == 7
    monday, tuesday, wednesday = days[0], days[1], days[2]
    assert monday.day == 1 and not monday.is_rest_day
    bench, row, rope = monday.exercises
    assert (bench.name, bench.sets, bench.reps, bench.rest) == ("Bench Press", 4, 10, "90s")
    assert bench.target_muscles == ["Chest", "Triceps"]
    assert bench.calories_burned == 120
    assert (row.sets, row.reps) == (4, 10)
    assert (rope.name, rope.sets, rope.reps, rope.rest) == ("Jump Rope", 3, 60, "30s")
    assert monday.total_calories == 300
    assert tuesday.is_rest_day and tuesday.exercises == []
    squat, plank = wednesday.exercises
    assert (squat.sets, squat.reps) == (5, 5)
    assert (plank.sets, plank.reps, plank.rest) == (3, 45, "30 sec")
    assert all(day.is_rest_day for day in days[3:])


def test_unparseable_exercise_lines_are_skipped():
    assert parse_exercises("- Stretch a bit\nrandom text") == []


def test_workout_plan_goal():
    plan = parse_workout_plan(WORKOUT_TEXT, PROFILE, MONDAY)
    assert plan.goal == "Muscle Gain"
    assert len(plan.weekly_pattern) == 7


def test_normalize_goal():
    assert normalize_goal("Gain muscle mass") == "Muscle Gain"
    assert normalize_goal("Lose weight") == "Fat Loss"
    assert normalize_goal("Build muscle") == "Muscle Gain"
    assert normalize_goal("Feel better") == "General Health"
