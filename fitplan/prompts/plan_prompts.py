from __future__ import annotations

from typing import Optional

from fitplan.models import PlanDuration, UserProfile
from fitplan.plan.duration import classify_goal, format_duration_for_prompt, GOAL_GAIN, GOAL_LOSS


def _bmi_note(bmi: float) -> str:
    if bmi < 18.5:
        return "UNDERWEIGHT - FOCUS ON MUSCLE BUILDING"
    if bmi < 25:
        return "NORMAL - BALANCED APPROACH"
    if bmi < 30:
        return "OVERWEIGHT - EMPHASIZE CARDIO & FAT LOSS"
    return "OBESE - LOW-IMPACT, GRADUAL PROGRESSION"


def _age_note(age: int) -> str:
    if age < 25:
        return "Young adult - higher recovery, can handle intense training"
    if age < 40:
        return "Adult - balanced approach, moderate recovery"
    if age < 55:
        return "Middle-aged - focus on joint health, longer recovery"
    return "Mature - emphasize mobility, low-impact exercises"


def estimate_daily_calories(profile: UserProfile) -> int:
    base = 10 * profile.current_weight_kg + 6.25 * profile.height_cm - 5 * profile.age
    bmr = base - 161 if profile.gender.value.lower().startswith("f") else base + 5
    maintenance = bmr * 1.4
    goal_type = classify_goal(profile.body_goal)
    if goal_type == GOAL_LOSS:
        maintenance -= 500
    elif goal_type == GOAL_GAIN:
        maintenance += 300
    return int(5 * round(maintenance / 5))


def _target_weight_line(profile: UserProfile) -> Optional[str]:
    if classify_goal(profile.body_goal) in (GOAL_LOSS, GOAL_GAIN):
        return f"- Target Weight: {profile.target_weight_kg}kg"
    return None


def build_diet_prompt(profile: UserProfile, duration: PlanDuration) -> str:
    diet = profile.diet_preference or "No restriction"
    country = profile.country or "International"
    medical = profile.medical_conditions or "None"
    goal_type = classify_goal(profile.body_goal)
    if goal_type == GOAL_GAIN:
        focus = "High protein, caloric surplus"
    elif goal_type == GOAL_LOSS:
        focus = "High protein, caloric deficit"
    else:
        focus = "Balanced nutrition"
    target_line = _target_weight_line(profile)
    return f"""
You are a certified nutritionist. Create a **7-day diet plan** for this user:

**USER PROFILE:**
- Age: {profile.age}, Gender: {profile.gender.value}, Height: {profile.height_cm:.0f} cm, Weight: {profile.current_weight_kg}kg
- Goal: {profile.body_goal} (PRIORITY)
{target_line + chr(10) if target_line else ""}- Diet: {diet}
- Country: {country}
- Calories: {estimate_daily_calories(profile)} kcal/day
- Medical: {medical}

**REQUIREMENTS:**
- Follow {diet} diet strictly
- Use {country} cuisine with popular, authentic and healthy dishes
- {focus}
- {"Modify for: " + medical if profile.medical_conditions else "No medical restrictions"}

**PLAN DURATION:**
- This plan covers **{format_duration_for_prompt(duration)}**
- The 7-day plan repeats weekly for {duration.total_weeks} weeks
- Use Duration: **{duration.label}** in your output

**OUTPUT FORMAT:**

**Goal:** [goal]
**Duration:** {duration.label}
**Target Daily Calories:** [calories]

**Day 1: [Day Name]**
**Breakfast:** [SPECIFIC DISH NAME] – [Cal] kcal | P: [X]g | C: [X]g | F: [X]g – [Time] min
- Ingredients: [comma separated list]
- Instructions: [brief method]

**Lunch:** [SPECIFIC DISH NAME] – [Cal] kcal | P: [X]g | C: [X]g | F: [X]g – [Time] min
- Ingredients: [comma separated list]
- Instructions: [brief method]

**Dinner:** [SPECIFIC DISH NAME] – [Cal] kcal | P: [X]g | C: [X]g | F: [X]g – [Time] min
- Ingredients: [comma separated list]
- Instructions: [brief method]

**Snacks:**
- Snack 1: [SPECIFIC SNACK NAME] – [Cal] kcal
- Snack 2: [SPECIFIC SNACK NAME] – [Cal] kcal

**Daily Totals:** [Total] kcal | P: [X]g | C: [X]g | F: [X]g
**Water Intake:** [X] liters
**Notes:** [tips]

---

**Day 2: [Day Name]**
[Same format for the remaining 6 days, separated by ---]

Never use generic labels like "Breakfast" or "Meal 1" as a dish name.
Generate the complete 7-day plan now.
"""


def build_workout_prompt(profile: UserProfile, duration: PlanDuration) -> str:
    bmi = profile.bmi or 0.0
    equipment = profile.available_equipment or "No Equipment"
    medical = profile.medical_conditions or "None"
    return f"""
You are a certified fitness trainer. Create a personalized **7-day workout plan** for this user:

### USER PROFILE
- Age: {profile.age} years ({_age_note(profile.age)})
- Gender: {profile.gender.value}
- Height: {profile.height_cm:.0f} cm | Weight: {profile.current_weight_kg} kg → {profile.target_weight_kg} kg
- BMI: {bmi:.1f} ({_bmi_note(bmi)})
- PRIMARY GOAL: {profile.body_goal}
- Available Equipment: {equipment} (use ONLY this equipment)
- Medical Conditions: {medical}

### REQUIREMENTS
- 6 workout days + 1 active recovery day, each with a different focus
- Plan duration: **{format_duration_for_prompt(duration)}**, repeating weekly
- Include warm-up and cool-down guidance

### OUTPUT FORMAT (follow exactly)
**Goal:** [goal]
**Duration:** {duration.label}
---
**Day 1: [Workout Focus]**
- [Exercise Name] – [Sets] × [Reps] – Rest [X]s – Muscles: [muscle, muscle] – ~[cal] kcal
- [Exercise Name] – [Sets] × [Reps] – Rest [X]s – Muscles: [muscle, muscle] – ~[cal] kcal
---
**Day 2: [Workout Focus]**
[Same format through Day 6, separated by ---]
---
**Day 7: Rest/Recovery Day**
- Light stretching and mobility work

Generate the final personalized plan now.
"""
