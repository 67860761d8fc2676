"""
Day and week roll-ups of logged meals, exercises and sleep.

Entries can be plain dicts (as they come back from MongoDB) or pydantic models.
"""

from datetime import date, datetime, timedelta
from typing import Any, Dict, Iterable, List, Optional, Sequence

from pydantic import BaseModel

MEAL_FIELDS = ("calories", "protein", "carbs", "fat")
EXERCISE_FIELDS = ("duration", "calories_burnt")


class DailySummary(BaseModel):
    date: str
    calorie_goal: Optional[int] = None
    meals: Dict[str, float]
    exercise: Dict[str, float]
    meal_count: int = 0
    exercise_count: int = 0
    sleep_hours: Optional[float] = None
    sleep_quality: Optional[str] = None
    net_calories: float = 0
    remaining_calories: Optional[float] = None
    calorie_status: Optional[str] = None


class DayProgress(BaseModel):
    date: str
    calories: float = 0
    exercise_minutes: float = 0
    sleep_hours: float = 0


class WeeklyTotals(BaseModel):
    total_calories: float = 0
    total_protein: float = 0
    total_exercise_minutes: float = 0
    avg_sleep_hours: float = 0
    meal_count: int = 0
    exercise_count: int = 0
    sleep_count: int = 0


def _field(entry: Any, name: str) -> Any:
    if isinstance(entry, dict):
        return entry.get(name)
    return getattr(entry, name, None)


def _day_key(value: Any) -> Optional[str]:
    if value is None:
        return None
    if isinstance(value, datetime):
        return value.date().isoformat()
    if isinstance(value, date):
        return value.isoformat()
    # ISO strings: "2024-05-01" or "2024-05-01T08:30:00"
    return str(value)[:10]


def aggregate(entries: Iterable[Any], fields: Sequence[str]) -> Dict[str, float]:
    totals = {name: 0.0 for name in fields}
    for e in entries:
        for name in fields:
            totals[name] += float(_field(e, name) or 0)
    return totals


def remaining_calories(goal: float, consumed: float) -> float:
    return goal - consumed


def calorie_status(remaining: float) -> str:
    return "remaining" if remaining >= 0 else "over_goal"


def daily_summary(day: str, goal: Optional[int], meals: List[Any], exercises: List[Any],
                  sleep: Optional[Any] = None) -> DailySummary:
    meal_totals = aggregate(meals, MEAL_FIELDS)
    exercise_totals = aggregate(exercises, EXERCISE_FIELDS)

    summary = DailySummary(
        date=day,
        calorie_goal=goal,
        meals=meal_totals,
        exercise=exercise_totals,
        meal_count=len(meals),
        exercise_count=len(exercises),
        net_calories=meal_totals["calories"] - exercise_totals["calories_burnt"],
    )
    if sleep is not None:
        summary.sleep_hours = _field(sleep, "hours_slept")
        summary.sleep_quality = _field(sleep, "sleep_quality")
    if goal:
        summary.remaining_calories = remaining_calories(goal, meal_totals["calories"])
        summary.calorie_status = calorie_status(summary.remaining_calories)
    return summary


def week_window(end: date, days: int = 7) -> List[date]:
    return [end - timedelta(days=days - 1 - i) for i in range(days)]


def weekly_progress(meals: Iterable[Any], exercises: Iterable[Any], sleep_logs: Iterable[Any],
                    end: date, days: int = 7) -> List[DayProgress]:
    """
    One point per calendar day ending at `end`, oldest first. Meals are
    bucketed by the date of consumed_at, exercises by exercise_date and sleep
    by sleep_date. Sleep is not summed: the entry for the day is reported.
    """
    points = {d.isoformat(): DayProgress(date=d.isoformat()) for d in week_window(end, days)}

    for meal in meals:
        point = points.get(_day_key(_field(meal, "consumed_at")))
        if point is not None:
            point.calories += float(_field(meal, "calories") or 0)

    for exercise in exercises:
        point = points.get(_day_key(_field(exercise, "exercise_date")))
        if point is not None:
            point.exercise_minutes += float(_field(exercise, "duration") or 0)

    for log in sleep_logs:
        point = points.get(_day_key(_field(log, "sleep_date")))
        if point is not None:
            point.sleep_hours = float(_field(log, "hours_slept") or 0)

    return list(points.values())


def weekly_totals(meals: List[Any], exercises: List[Any], sleep_logs: List[Any]) -> WeeklyTotals:
    meal_totals = aggregate(meals, ("calories", "protein"))
    minutes = aggregate(exercises, ("duration",))["duration"]
    sleep_hours = aggregate(sleep_logs, ("hours_slept",))["hours_slept"]

    return WeeklyTotals(
        total_calories=meal_totals["calories"],
        total_protein=meal_totals["protein"],
        total_exercise_minutes=minutes,
        avg_sleep_hours=sleep_hours / len(sleep_logs) if sleep_logs else 0,
        meal_count=len(meals),
        exercise_count=len(exercises),
        sleep_count=len(sleep_logs),
    )
