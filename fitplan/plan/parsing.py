from __future__ import annotations

import logging
import math
import re
from datetime import date, timedelta
from typing import List, Optional, Tuple

from fitplan.models import (
    DayMeals,
    DietDay,
    DietPlan,
    Macros,
    MealItem,
    MealType,
    UserProfile,
    WorkoutDay,
    WorkoutExercise,
    WorkoutPlan,
)
from fitplan.plan.calendar import DIET_WEEK, WORKOUT_WEEK, WeekIndexing, day_name
from fitplan.plan.duration import compute_duration

logger = logging.getLogger(__name__)

DEFAULT_TARGET_CALORIES = 2000
DEFAULT_WATER_INTAKE = "2-3 liters"
DEFAULT_DAY_NOTES = "Stay consistent with your nutrition goals"
DEFAULT_INSTRUCTIONS = "Prepare according to standard cooking methods"
DEFAULT_MEAL_INSTRUCTIONS = "Prepare with fresh, wholesome ingredients according to standard cooking methods"
DEFAULT_WARM_UP = "5-10 minutes light cardio and dynamic stretching"
DEFAULT_COOL_DOWN = "5-10 minutes static stretching and deep breathing"

DIET_KEY_NOTES = [
    "Stay hydrated - drink plenty of water throughout the day",
    "Eat slowly and mindfully to aid digestion",
    "Prepare meals in advance when possible",
    "Listen to your body and adjust portions as needed",
    "Include variety to ensure all nutrients are covered",
]

_MAIN_MEALS = [MealType.BREAKFAST, MealType.LUNCH, MealType.DINNER]

_DEFAULT_MEAL_EMOJI = {
    MealType.BREAKFAST: "🍳",
    MealType.LUNCH: "🥗",
    MealType.DINNER: "🍽️",
    MealType.SNACK: "🍎",
}

_MEAL_EMOJI = [
    (("egg", "omelette"), "🍳"),
    (("salad",), "🥗"),
    (("rice",), "🍚"),
    (("chicken",), "🍗"),
    (("fish", "salmon", "tuna"), "🐟"),
    (("soup",), "🍲"),
    (("smoothie", "shake"), "🥤"),
    (("fruit", "apple", "banana", "berries"), "🍎"),
    (("nuts", "almond"), "🥜"),
    (("yogurt",), "🥛"),
    (("bread", "toast"), "🍞"),
    (("pasta",), "🍝"),
    (("curry",), "🍛"),
]

_EXERCISE_EMOJI = [
    (("squat", "lunge"), "🦵"),
    (("bench", "press"), "🏋️"),
    (("deadlift", "curl"), "💪"),
    (("row",), "🚣"),
    (("plank", "stretch", "yoga"), "🧘"),
    (("run", "jog", "cardio"), "🏃"),
    (("push-up", "pushup", "push up", "burpee"), "🤸"),
    (("pull",), "🏋️"),
]

_SECTION_LABEL_RE = re.compile(
    r"(?:\*\*)?(?:breakfast|lunch|dinner|snacks?|daily totals|water intake|notes)\s*:",
    re.IGNORECASE,
)
_SNACK_RE = re.compile(r"-\s*Snack\s*\d+:\s*(.+?)\s*[–-]\s*(\d+)\s*kcal", re.IGNORECASE)
_GOAL_RE = re.compile(r"\*\*Goal:\*\*\s*(.+?)(?:\n|$)", re.IGNORECASE)
_TARGET_CALORIES_RE = re.compile(r"\*\*Target Daily Calories:\*\*\s*(\d+)", re.IGNORECASE)
_COUNTRY_RE = re.compile(r"\*\*Country Cuisine:\*\*\s*(.+?)(?:\n|$)", re.IGNORECASE)
_WATER_RE = re.compile(r"\*\*Water Intake:\*\*\s*([^\n]+)", re.IGNORECASE)
_NOTES_RE = re.compile(r"\*\*Notes:\*\*\s*([^\n]+)", re.IGNORECASE)
_DAY_HEADER_RE = re.compile(r"day\s+\d+\s*:", re.IGNORECASE)

_SEP = r"\s*[–-]\s*"
_EXERCISE_PATTERNS = [
    (
        "sets_reps",
        re.compile(
            r"^[-•]\s*(.+?)" + _SEP + r"(\d+)\s*[×x]\s*(\d+)(?:\s*[-–]\s*(\d+))?"
            + _SEP + r"Rest\s*(\d+)\s*s" + _SEP + r"Muscles:\s*([^–]+?)" + _SEP + r"~?\s*(\d+)\s*kcal",
            re.IGNORECASE,
        ),
    ),
    (
        "rounds",
        re.compile(
            r"^[-•]\s*(.+?)" + _SEP + r"(\d+)\s*Rounds?\s*[×x]\s*(\d+)\s*s"
            + _SEP + r"Rest\s*(\d+)\s*s" + _SEP + r"Muscles:\s*([^–]+?)" + _SEP + r"~?\s*(\d+)\s*kcal",
            re.IGNORECASE,
        ),
    ),
    (
        "generic",
        re.compile(
            r"^[-•]\s*(.+?)" + _SEP + r"(\d+)\s*[×x]\s*([^–]+?)"
            + _SEP + r"Rest\s*([^–]+?)" + _SEP + r"Muscles:\s*([^–]+?)" + _SEP + r"~?\s*(\d+)\s*kcal",
            re.IGNORECASE,
        ),
    ),
]


def _round_half_up(value: float) -> int:
    return int(math.floor(value + 0.5))


def _estimate_macros(calories: int, protein_share: float, carbs_share: float, fats_share: float) -> Tuple[int, int, int]:
    return (
        _round_half_up(calories * protein_share / 4),
        _round_half_up(calories * carbs_share / 4),
        _round_half_up(calories * fats_share / 9),
    )


def _emoji_for(name: str, table, default: str) -> str:
    lower = name.lower()
    for keywords, emoji in table:
        if any(keyword in lower for keyword in keywords):
            return emoji
    return default


def meal_emoji(name: str) -> str:
    return _emoji_for(name, _MEAL_EMOJI, "🍽️")


def exercise_emoji(name: str) -> str:
    return _emoji_for(name, _EXERCISE_EMOJI, "💪")


def normalize_goal(goal: str) -> str:
    lower = goal.lower()
    if "gain" in lower and "muscle" in lower:
        return "Muscle Gain"
    if "lose" in lower or "loss" in lower or "fat" in lower:
        return "Fat Loss"
    if "gain" in lower or "muscle" in lower:
        return "Muscle Gain"
    return "General Health"


def _split_sections(raw_text: str) -> List[str]:
    return [section for section in raw_text.split("---") if section.strip()]


def _find_day_section(sections: List[str], day_number: int) -> Optional[str]:
    needles = (f"day {day_number}:", f"**day {day_number}:", f"day {day_number} ")
    for section in sections:
        lower = section.lower()
        if any(needle in lower for needle in needles):
            return section
    return None


def _clean_name(value: str) -> str:
    return value.strip().strip("*").strip()


def _meal_block(section: str, meal: str) -> Optional[str]:
    label = re.search(rf"(?:\*\*)?{meal}\s*:", section, re.IGNORECASE)
    if not label:
        return None
    following = _SECTION_LABEL_RE.search(section, label.end())
    end = following.start() if following else len(section)
    return section[label.start():end]


def _extract_list_field(block: str, field: str) -> Optional[str]:
    match = re.search(rf"-\s*{field}:\s*([^\n]+)", block, re.IGNORECASE)
    if not match:
        return None
    return match.group(1).strip()


def _default_meal(name: str, emoji: str) -> MealItem:
    return MealItem(
        name=name,
        emoji=emoji,
        ingredients=["Healthy ingredients"],
        calories=300,
        protein=20,
        carbs=30,
        fats=10,
        prep_time="15 min",
        serving_size="1 serving",
        instructions=DEFAULT_MEAL_INSTRUCTIONS,
    )


def _labeled_meal_patterns(meal: str) -> List[re.Pattern]:
    head = rf"\*\*{meal}:\*\*\s*(.+?){_SEP}(\d+)\s*kcal"
    return [
        re.compile(
            head + r".*?protein:\s*(\d+)\s*g.*?carbs?:\s*(\d+)\s*g.*?fats?:\s*(\d+)\s*g.*?prep?:\s*([^\n]+)",
            re.IGNORECASE,
        ),
        re.compile(head + r".*?\bP:\s*(\d+)\s*g.*?\bC:\s*(\d+)\s*g.*?\bF:\s*(\d+)\s*g", re.IGNORECASE),
        re.compile(head, re.IGNORECASE),
        re.compile(rf"{meal}:\s*(.+?){_SEP}(\d+)\s*kcal", re.IGNORECASE),
    ]


def _parse_labeled_meal(block: str, meal_type: MealType) -> Optional[MealItem]:
    meal = meal_type.value
    match = None
    for pattern in _labeled_meal_patterns(meal):
        match = pattern.search(block)
        if match:
            break
    if not match:
        return None
    name = _clean_name(match.group(1))
    if not name or name.lower() == meal or len(name) <= 2:
        logger.debug("Rejected %s name %r", meal, name)
        return None
    calories = int(match.group(2))
    groups = match.groups()
    if len(groups) >= 5 and groups[2] and groups[3] and groups[4]:
        protein, carbs, fats = int(groups[2]), int(groups[3]), int(groups[4])
    else:
        protein, carbs, fats = _estimate_macros(calories, 0.2, 0.5, 0.3)
    if len(groups) >= 6 and groups[5]:
        prep_time = groups[5].strip()
    else:
        minutes = re.search(r"[–-]\s*(\d+)\s*min", block.split("\n", 1)[0], re.IGNORECASE)
        prep_time = f"{minutes.group(1)} min" if minutes else "15 min"
    ingredients_line = _extract_list_field(block, "Ingredients")
    ingredients = [item.strip() for item in ingredients_line.split(",")] if ingredients_line else []
    return MealItem(
        name=name,
        emoji=meal_emoji(name),
        ingredients=[item for item in ingredients if item] or ["Healthy ingredients"],
        calories=calories,
        protein=protein,
        carbs=carbs,
        fats=fats,
        prep_time=prep_time,
        serving_size="1 serving",
        instructions=_extract_list_field(block, "Instructions") or DEFAULT_INSTRUCTIONS,
    )


def _parse_named_meal(block: str, meal_type: MealType) -> Optional[MealItem]:
    meal = meal_type.value
    patterns = [
        rf"\*\*{meal}:\*\*\s*([A-Z][^–\n]+?)(?:\s*–|\s*\||\n|$)",
        rf"{meal}:\s*([A-Z][^–\n]+?)(?:\s*–|\s*\||\n|$)",
    ]
    for pattern in patterns:
        match = re.search(pattern, block, re.IGNORECASE)
        if not match:
            continue
        name = _clean_name(match.group(1))
        if not name or name.lower() == meal or len(name) <= 3:
            continue
        calories_match = re.search(r"(\d+)\s*kcal", block.split("\n", 1)[0], re.IGNORECASE)
        calories = int(calories_match.group(1)) if calories_match else 300
        protein, carbs, fats = _estimate_macros(calories, 0.2, 0.5, 0.3)
        ingredients_line = _extract_list_field(block, "Ingredients")
        return MealItem(
            name=name,
            emoji=meal_emoji(name),
            ingredients=[i.strip() for i in ingredients_line.split(",")] if ingredients_line else ["Various healthy ingredients"],
            calories=calories,
            protein=protein,
            carbs=carbs,
            fats=fats,
            instructions=_extract_list_field(block, "Instructions") or DEFAULT_INSTRUCTIONS,
        )
    return None


def _parse_meal(section: str, meal_type: MealType) -> MealItem:
    block = _meal_block(section, meal_type.value)
    if block:
        parsed = _parse_labeled_meal(block, meal_type) or _parse_named_meal(block, meal_type)
        if parsed:
            return parsed
    logger.debug("Using placeholder %s", meal_type.value)
    return _default_meal(meal_type.value.capitalize(), _DEFAULT_MEAL_EMOJI[meal_type])


def _parse_snacks(section: str) -> List[MealItem]:
    snacks: List[MealItem] = []
    for match in _SNACK_RE.finditer(section):
        name = _clean_name(match.group(1))
        calories = int(match.group(2)) or 100
        protein, carbs, fats = _estimate_macros(calories, 0.15, 0.6, 0.25)
        snacks.append(
            MealItem(
                name=name,
                emoji=meal_emoji(name),
                ingredients=[name],
                calories=calories,
                protein=protein,
                carbs=carbs,
                fats=fats,
                prep_time="5 min",
                instructions="Enjoy as a healthy snack",
            )
        )
    if not snacks:
        snacks.append(_default_meal("Healthy Snack", _DEFAULT_MEAL_EMOJI[MealType.SNACK]))
    return snacks


def day_totals(meals: DayMeals) -> Macros:
    totals = Macros()
    for _, item in meals.slots():
        totals.calories += item.calories
        totals.protein += item.protein
        totals.carbs += item.carbs
        totals.fats += item.fats
    return totals


def _labeled_line(pattern: re.Pattern, text: str, default: str) -> str:
    match = pattern.search(text)
    if not match:
        return default
    return match.group(1).strip() or default


def _parse_diet_day(section: Optional[str], day_number: int, current: date) -> DietDay:
    if section is None:
        logger.warning("Day %s missing from generated diet text, using defaults", day_number)
        meals = DayMeals(
            breakfast=_default_meal("Breakfast", _DEFAULT_MEAL_EMOJI[MealType.BREAKFAST]),
            lunch=_default_meal("Lunch", _DEFAULT_MEAL_EMOJI[MealType.LUNCH]),
            dinner=_default_meal("Dinner", _DEFAULT_MEAL_EMOJI[MealType.DINNER]),
            snacks=[_default_meal("Snack", _DEFAULT_MEAL_EMOJI[MealType.SNACK])],
        )
        return DietDay(
            day=day_number,
            day_name=day_name(current),
            date=current.isoformat(),
            totals=day_totals(meals),
            meals=meals,
            water_intake=DEFAULT_WATER_INTAKE,
            notes="Follow a balanced diet with variety",
        )
    meals = DayMeals(
        breakfast=_parse_meal(section, MealType.BREAKFAST),
        lunch=_parse_meal(section, MealType.LUNCH),
        dinner=_parse_meal(section, MealType.DINNER),
        snacks=_parse_snacks(section),
    )
    return DietDay(
        day=day_number,
        day_name=day_name(current),
        date=current.isoformat(),
        totals=day_totals(meals),
        meals=meals,
        water_intake=_labeled_line(_WATER_RE, section, DEFAULT_WATER_INTAKE),
        notes=_labeled_line(_NOTES_RE, section, DEFAULT_DAY_NOTES),
    )


def _index_by_weekday(days: list, indexing: WeekIndexing) -> list:
    slots: list = [None] * 7
    for entry in days:
        slots[indexing.index_of(date.fromisoformat(entry.date))] = entry
    return slots


def parse_diet_days(raw_text: str, today: Optional[date] = None) -> List[DietDay]:
    """Seven diet days starting today, ordered by weekday (Sunday first)."""
    today = today or date.today()
    sections = _split_sections(raw_text or "")
    days = []
    for offset in range(7):
        section = _find_day_section(sections, offset + 1)
        days.append(_parse_diet_day(section, offset + 1, today + timedelta(days=offset)))
    return _index_by_weekday(days, DIET_WEEK)


def _plan_header(raw_text: str, profile: UserProfile) -> str:
    goal = _labeled_line(_GOAL_RE, raw_text, profile.body_goal or "General Health")
    return normalize_goal(goal)


def parse_diet_plan(raw_text: str, profile: UserProfile, today: Optional[date] = None) -> DietPlan:
    today = today or date.today()
    raw_text = raw_text or ""
    duration = compute_duration(profile)
    calories_match = _TARGET_CALORIES_RE.search(raw_text)
    target_calories = int(calories_match.group(1)) if calories_match else DEFAULT_TARGET_CALORIES
    protein, carbs, fats = _estimate_macros(target_calories, 0.2, 0.5, 0.3)
    return DietPlan(
        goal=_plan_header(raw_text, profile),
        duration_label=duration.label,
        total_weeks=duration.total_weeks,
        start_date=today.isoformat(),
        end_date=(today + timedelta(days=duration.total_weeks * 7)).isoformat(),
        country=_labeled_line(_COUNTRY_RE, raw_text, profile.country or "International"),
        target_macros=Macros(calories=target_calories, protein=protein, carbs=carbs, fats=fats),
        weekly_pattern=parse_diet_days(raw_text, today),
        key_notes=list(DIET_KEY_NOTES),
    )


def _parse_exercise_line(line: str) -> Optional[WorkoutExercise]:
    for kind, pattern in _EXERCISE_PATTERNS:
        match = pattern.match(line)
        if not match:
            continue
        name = _clean_name(match.group(1))
        if kind == "sets_reps":
            _, sets, reps_min, reps_max, rest, muscles, calories = match.groups()
            reps = int(reps_max) if reps_max else int(reps_min)
            rest_label = f"{rest}s"
        elif kind == "rounds":
            _, sets, seconds, rest, muscles, calories = match.groups()
            reps = int(seconds)
            rest_label = f"{rest}s"
        else:
            _, sets, reps_text, rest, muscles, calories = match.groups()
            reps_match = re.search(r"(\d+)", reps_text)
            reps = int(reps_match.group(1)) if reps_match else 10
            rest_label = rest.strip()
        return WorkoutExercise(
            name=name,
            emoji=exercise_emoji(name),
            sets=int(sets) or 3,
            reps=reps or 10,
            rest=rest_label,
            target_muscles=[m.strip() for m in muscles.split(",") if m.strip()],
            calories_burned=int(calories) or 50,
        )
    return None


def parse_exercises(section: str) -> List[WorkoutExercise]:
    exercises = []
    for line in section.split("\n"):
        line = line.strip()
        if not line:
            continue
        exercise = _parse_exercise_line(line)
        if exercise:
            exercises.append(exercise)
    return exercises


def _is_rest_section(section: str) -> bool:
    header = ""
    for line in section.split("\n"):
        if _DAY_HEADER_RE.search(line):
            header = line.lower()
            break
    return any(token in header for token in ["rest", "recovery", "🛌"])


def _rest_day(day_number: int, current: date) -> WorkoutDay:
    return WorkoutDay(
        day=day_number,
        day_name=day_name(current),
        date=current.isoformat(),
        is_rest_day=True,
    )


def _parse_workout_day(section: Optional[str], day_number: int, current: date) -> WorkoutDay:
    if section is None:
        logger.warning("Day %s missing from generated workout text, using a rest day", day_number)
        return _rest_day(day_number, current)
    if _is_rest_section(section):
        return _rest_day(day_number, current)
    exercises = parse_exercises(section)
    return WorkoutDay(
        day=day_number,
        day_name=day_name(current),
        date=current.isoformat(),
        is_rest_day=False,
        exercises=exercises,
        warm_up=DEFAULT_WARM_UP,
        cool_down=DEFAULT_COOL_DOWN,
        total_calories=sum(exercise.calories_burned for exercise in exercises),
    )


def parse_workout_days(raw_text: str, today: Optional[date] = None) -> List[WorkoutDay]:
    """Seven workout days starting today, ordered by weekday (Monday first)."""
    today = today or date.today()
    sections = _split_sections(raw_text or "")
    days = []
    for offset in range(7):
        section = _find_day_section(sections, offset + 1)
        days.append(_parse_workout_day(section, offset + 1, today + timedelta(days=offset)))
    return _index_by_weekday(days, WORKOUT_WEEK)


def parse_workout_plan(raw_text: str, profile: UserProfile, today: Optional[date] = None) -> WorkoutPlan:
    today = today or date.today()
    raw_text = raw_text or ""
    duration = compute_duration(profile)
    return WorkoutPlan(
        goal=_plan_header(raw_text, profile),
        duration_label=duration.label,
        total_weeks=duration.total_weeks,
        start_date=today.isoformat(),
        end_date=(today + timedelta(days=duration.total_weeks * 7)).isoformat(),
        weekly_pattern=parse_workout_days(raw_text, today),
    )
