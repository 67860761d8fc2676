"""
Energy calculations for FitTrackr

- BMR (Mifflin-St Jeor) -> TDEE (activity multiplier) -> daily calorie goal
- Exercise calorie burn from a MET table

Nothing here raises for bad input. Missing or out-of-range values come back
as a Calculation with `error` set and `value` left empty.
"""

import math
from enum import Enum
from typing import Any, Optional

from pydantic import BaseModel


class CalcError(str, Enum):
    missing_input = "missing_input"
    invalid_range = "invalid_range"


class Calculation(BaseModel):
    value: Optional[Any] = None
    error: Optional[CalcError] = None
    detail: Optional[str] = None

    @property
    def ok(self) -> bool:
        return self.error is None


class CaloriePlan(BaseModel):
    bmr: float
    maintenance_calories: int
    goal_calories: int


def _failed(error: CalcError, detail: str) -> Calculation:
    return Calculation(error=error, detail=detail)


def round_half_up(value: float) -> int:
    return int(math.floor(value + 0.5))


# -------- BMR / TDEE / goal ---------
ACTIVITY_MULTIPLIERS = {
    "sedentary": 1.2,
    "light": 1.375,
    "moderate": 1.55,
    "active": 1.725,
    "very_active": 1.9,
}
DEFAULT_ACTIVITY_MULTIPLIER = 1.2

GOAL_ADJUSTMENTS = {
    "gain": 300,
    "lose": -500,
}


def calculate_bmr(weight_kg: Optional[float], height_cm: Optional[float],
                  age: Optional[float], gender: Optional[str]) -> Calculation:
    inputs = {"weight_kg": weight_kg, "height_cm": height_cm, "age": age, "gender": gender}
    missing = [name for name, value in inputs.items() if value is None or value == ""]
    if missing:
        return _failed(CalcError.missing_input, "missing " + ", ".join(missing))

    invalid = [name for name in ("weight_kg", "height_cm", "age") if inputs[name] <= 0]
    if invalid:
        return _failed(CalcError.invalid_range, ", ".join(invalid) + " must be positive")

    # Mifflin-St Jeor
    bmr = 10 * weight_kg + 6.25 * height_cm - 5 * age
    if gender == "male":
        bmr += 5
    else:
        bmr -= 161
    return Calculation(value=bmr)


def activity_multiplier(level: Optional[str]) -> float:
    return ACTIVITY_MULTIPLIERS.get(level, DEFAULT_ACTIVITY_MULTIPLIER)


def calculate_tdee(bmr: float, activity_level: Optional[str]) -> float:
    return bmr * activity_multiplier(activity_level)


def calculate_calorie_goal(tdee: float, goal: Optional[str]) -> int:
    return round_half_up(tdee + GOAL_ADJUSTMENTS.get(goal, 0))


def calorie_plan(profile: Any) -> Calculation:
    """
    BMR, maintenance calories and goal calories for a profile-like object
    (anything with weight_kg, height_cm, age, gender, activity_level, goal).
    """
    bmr = calculate_bmr(
        getattr(profile, "weight_kg", None),
        getattr(profile, "height_cm", None),
        getattr(profile, "age", None),
        getattr(profile, "gender", None),
    )
    if not bmr.ok:
        return bmr

    tdee = calculate_tdee(bmr.value, getattr(profile, "activity_level", None))
    plan = CaloriePlan(
        bmr=bmr.value,
        maintenance_calories=round_half_up(tdee),
        goal_calories=calculate_calorie_goal(tdee, getattr(profile, "goal", None)),
    )
    return Calculation(value=plan)


def daily_calorie_goal(profile: Any) -> Calculation:
    plan = calorie_plan(profile)
    if not plan.ok:
        return plan
    return Calculation(value=plan.value.goal_calories)


def needs_goal_recompute(stored_goal: Optional[float]) -> bool:
    return stored_goal is None or stored_goal <= 0


# -------- Exercise burn ---------
# Declared order matters: the first key found inside the exercise name wins.
MET_VALUES = {
    # cardio
    "running": 8.0,
    "jogging": 7.0,
    "walking": 3.5,
    "cycling": 7.5,
    "swimming": 8.0,
    "hiking": 6.0,
    "dancing": 5.0,
    "aerobics": 6.5,
    "jump rope": 12.0,
    "elliptical": 7.0,
    "stair climbing": 8.5,
    # strength
    "weight lifting": 6.0,
    "bodyweight": 5.5,
    "resistance training": 5.0,
    "push ups": 5.5,
    "pull ups": 8.0,
    "squats": 5.5,
    # flexibility and mind-body
    "yoga": 3.0,
    "pilates": 4.0,
    "stretching": 2.5,
    "tai chi": 3.0,
    # sports
    "basketball": 8.0,
    "soccer": 10.0,
    "tennis": 7.0,
    "badminton": 5.5,
    "volleyball": 4.0,
    "cricket": 5.0,
    "football": 8.0,
    # exercise types
    "cardio": 7.0,
    "strength": 5.5,
    "flexibility": 3.0,
    "sports": 7.5,
    "other": 5.0,
}
DEFAULT_MET = 5.5


def lookup_met(exercise_name: Optional[str], exercise_type: Optional[str] = None) -> float:
    name = (exercise_name or "").lower()
    for key, met in MET_VALUES.items():
        if key in name:
            return met

    if exercise_type and exercise_type.lower() in MET_VALUES:
        return MET_VALUES[exercise_type.lower()]

    return DEFAULT_MET


def estimate_exercise_calories(exercise_name: Optional[str], exercise_type: Optional[str],
                               duration_minutes: Optional[float],
                               weight_kg: Optional[float]) -> Calculation:
    if weight_kg is None:
        return _failed(CalcError.missing_input, "profile weight is not set")
    if duration_minutes is None:
        return _failed(CalcError.missing_input, "duration is required")
    if duration_minutes <= 0:
        return _failed(CalcError.invalid_range, "duration must be positive")
    if weight_kg <= 0:
        return _failed(CalcError.invalid_range, "profile weight must be positive")

    met = lookup_met(exercise_name, exercise_type)
    # Calories = MET x weight(kg) x duration(hours)
    return Calculation(value=round_half_up(met * weight_kg * (duration_minutes / 60)))
