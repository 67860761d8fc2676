"""
Achievement unlock rules.

Each catalog entry carries a criteria_type and a criteria_value threshold.
Evaluation is pure: the caller gathers UserStats and the set of achievement
ids the user already holds, and persists whatever `pending_unlocks` returns.
"""

from enum import Enum
from typing import Any, Collection, Iterable, List

from pydantic import BaseModel


class CriteriaType(str, Enum):
    first_meal = "first_meal"
    total_meals = "total_meals"
    workouts_completed = "workouts_completed"
    total_exercise_minutes = "total_exercise_minutes"
    full_day_log = "full_day_log"


class UserStats(BaseModel):
    meal_count: int = 0
    exercise_count: int = 0
    exercise_minutes: float = 0
    has_meal_today: bool = False
    has_exercise_today: bool = False
    has_sleep_today: bool = False


DEFAULT_ACHIEVEMENTS = [
    {"key": "first_bite", "name": "First Bite", "description": "Log your first meal",
     "icon": "Utensils", "criteria_type": "first_meal", "criteria_value": 1},
    {"key": "meal_tracker", "name": "Meal Tracker", "description": "Log 10 meals",
     "icon": "Target", "criteria_type": "total_meals", "criteria_value": 10},
    {"key": "nutrition_pro", "name": "Nutrition Pro", "description": "Log 50 meals",
     "icon": "Crown", "criteria_type": "total_meals", "criteria_value": 50},
    {"key": "first_workout", "name": "First Workout", "description": "Complete your first workout",
     "icon": "Dumbbell", "criteria_type": "workouts_completed", "criteria_value": 1},
    {"key": "gym_regular", "name": "Gym Regular", "description": "Complete 10 workouts",
     "icon": "Flame", "criteria_type": "workouts_completed", "criteria_value": 10},
    {"key": "hour_of_power", "name": "Hour of Power", "description": "Exercise for 60 minutes in total",
     "icon": "Award", "criteria_type": "total_exercise_minutes", "criteria_value": 60},
    {"key": "marathoner", "name": "Marathoner", "description": "Exercise for 1000 minutes in total",
     "icon": "Trophy", "criteria_type": "total_exercise_minutes", "criteria_value": 1000},
    {"key": "full_day", "name": "Full Day", "description": "Log a meal, a workout and sleep on the same day",
     "icon": "Moon", "criteria_type": "full_day_log", "criteria_value": 1},
]


def _get(achievement: Any, name: str) -> Any:
    if isinstance(achievement, dict):
        return achievement.get(name)
    return getattr(achievement, name, None)


def achievement_id(achievement: Any) -> Any:
    return _get(achievement, "id") or _get(achievement, "_id")


def criteria_met(criteria_type: str, criteria_value: float, stats: UserStats) -> bool:
    threshold = criteria_value or 0
    if criteria_type == CriteriaType.first_meal:
        return stats.meal_count >= 1
    if criteria_type == CriteriaType.total_meals:
        return stats.meal_count >= threshold
    if criteria_type == CriteriaType.workouts_completed:
        return stats.exercise_count >= threshold
    if criteria_type == CriteriaType.total_exercise_minutes:
        return stats.exercise_minutes >= threshold
    if criteria_type == CriteriaType.full_day_log:
        return stats.has_meal_today and stats.has_exercise_today and stats.has_sleep_today
    # unknown criteria never unlock
    return False


def should_unlock(achievement: Any, stats: UserStats, unlocked_ids: Collection = ()) -> bool:
    if str(achievement_id(achievement)) in {str(i) for i in unlocked_ids}:
        return False
    return criteria_met(_get(achievement, "criteria_type"), _get(achievement, "criteria_value"), stats)


def pending_unlocks(catalog: Iterable[Any], stats: UserStats, unlocked_ids: Collection = ()) -> List[Any]:
    unlocked = {str(i) for i in unlocked_ids}
    return [a for a in catalog if should_unlock(a, stats, unlocked)]
