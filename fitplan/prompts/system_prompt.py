from __future__ import annotations

from datetime import date
from typing import List, Optional

from fitplan.models import DietPlan, UserProfile, WorkoutPlan
from fitplan.plan.calendar import get_plan_current_week, get_total_weeks

SYSTEM_PROMPT = """You are an AI Trainer assistant inside a fitness app.

Answer in plain conversational text. Keep answers short and practical, use
short bullet lists only when listing steps or foods.

Assume the user profile and the active diet and workout plans are provided in
a context message. Ground every recommendation in that context: the user's goal,
current and target weight, diet preference and available equipment.

Policy (nutrition + training constraints):
- Loss: target 0.25–0.5 kg/week; never recommend under 1200 kcal/day.
- Gain: target +0.15–0.25 kg/week with a +200 to +300 kcal/day surplus.
- Protein: 1.6–2.2 g/kg for gain, 1.4–2.0 g/kg otherwise.
- Training: 3–5 strength days/week, 10–20 hard sets per muscle, reps 6–12.

If the user mentions a medical condition, pain or injury, recommend seeing a
qualified professional before changing the plan.
If the user asks for a new plan, tell them to generate one from the diet or
workout screen instead of writing a full plan in chat.
"""


def _profile_lines(profile: UserProfile) -> List[str]:
    bmi = f"{profile.bmi:.1f}" if profile.bmi else "N/A"
    return [
        "USER PROFILE:",
        f"- Primary Goal: {profile.body_goal}",
        f"- Age: {profile.age} years",
        f"- Gender: {profile.gender.value}",
        f"- Current Weight: {profile.current_weight_kg}kg",
        f"- Target Weight: {profile.target_weight_kg}kg",
        f"- Height: {profile.height_cm}cm",
        f"- BMI: {bmi}",
        f"- Diet Preference: {profile.diet_preference or 'No restrictions'}",
        f"- Available Equipment: {profile.available_equipment or 'Not specified'}",
        f"- Medical Conditions: {profile.medical_conditions or 'None'}",
        f"- Country: {profile.country or 'International'}",
    ]


def _workout_lines(plan: WorkoutPlan, today: date) -> List[str]:
    lines = [
        "ACTIVE WORKOUT PLAN:",
        f"- Goal: {plan.goal}",
        f"- Week {get_plan_current_week(plan, today)} of {get_total_weeks(plan)} ({plan.duration_label})",
        f"- Days completed: {len(plan.completed_days)}",
    ]
    for day in plan.weekly_pattern:
        if day.is_rest_day:
            lines.append(f"- {day.day_name}: rest")
        else:
            names = ", ".join(exercise.name for exercise in day.exercises) or "no exercises"
            lines.append(f"- {day.day_name}: {names}")
    return lines


def _diet_lines(plan: DietPlan, today: date) -> List[str]:
    macros = plan.target_macros
    return [
        "ACTIVE DIET PLAN:",
        f"- Goal: {plan.goal}",
        f"- Week {get_plan_current_week(plan, today)} of {get_total_weeks(plan)} ({plan.duration_label})",
        f"- Daily targets: {macros.calories} kcal, {macros.protein}g protein, {macros.carbs}g carbs, {macros.fats}g fats",
        f"- Days completed: {len(plan.completed_days)}",
        f"- Meals completed: {len(plan.completed_meals)}",
    ]


def build_trainer_context(
    profile: Optional[UserProfile],
    diet_plan: Optional[DietPlan],
    workout_plan: Optional[WorkoutPlan],
    today: Optional[date] = None,
) -> str:
    today = today or date.today()
    sections = [f"Today is {today.isoformat()}."]
    if profile is not None:
        sections.append("\n".join(_profile_lines(profile)))
    if workout_plan is not None:
        sections.append("\n".join(_workout_lines(workout_plan, today)))
    else:
        sections.append("The user has no active workout plan.")
    if diet_plan is not None:
        sections.append("\n".join(_diet_lines(diet_plan, today)))
    else:
        sections.append("The user has no active diet plan.")
    return "\n\n".join(sections)
