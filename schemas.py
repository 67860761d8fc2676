"""
Database Schemas for FitTrackr

Each Pydantic model corresponds to a MongoDB collection (lowercased class name).
- UserProfile -> "userprofile"
- Meal -> "meal"
- Exercise -> "exercise"
- SleepLog -> "sleeplog"
- Achievement -> "achievement"
- UserAchievement -> "userachievement"
"""

from datetime import datetime
from pydantic import BaseModel, Field
from typing import Optional, Literal


class UserProfile(BaseModel):
    """
    User profile and biometrics used for the calorie goal
    Collection: userprofile
    """
    email: str = Field(..., description="Unique email identifier")
    name: Optional[str] = Field(None, description="Full name")
    age: Optional[int] = Field(None, gt=0, le=120, description="Age in years")
    gender: Optional[Literal["male", "female", "other"]] = Field(None, description="Sex for BMR calc")
    height_cm: Optional[float] = Field(None, gt=0, description="Height in centimeters")
    weight_kg: Optional[float] = Field(None, gt=0, description="Current weight in kilograms")
    activity_level: Optional[Literal[
        "sedentary", "light", "moderate", "active", "very_active"
    ]] = Field(None, description="Activity multiplier for TDEE")
    goal: Optional[Literal["lose", "maintain", "gain"]] = Field(
        "maintain", description="Calorie goal direction"
    )
    daily_calorie_goal: Optional[int] = Field(None, description="Derived kcal target, 0 when incomplete")


class Meal(BaseModel):
    """
    Single logged meal
    Collection: meal
    """
    email: str = Field(..., description="User email")
    name: str = Field(..., min_length=1, description="Food name at time of logging")
    calories: float = Field(..., ge=0)
    protein: float = Field(0, ge=0)
    carbs: float = Field(0, ge=0)
    fat: float = Field(0, ge=0)
    meal_type: Literal["breakfast", "lunch", "dinner", "snack"] = "breakfast"
    consumed_at: Optional[datetime] = Field(None, description="Defaults to now")
    notes: Optional[str] = None


class Exercise(BaseModel):
    """
    Single logged workout
    Collection: exercise
    """
    email: str = Field(..., description="User email")
    exercise_name: str = Field(..., min_length=1)
    exercise_type: Optional[str] = Field(None, description="cardio, strength, flexibility, sports, other")
    duration: float = Field(..., gt=0, description="Minutes")
    calories_burnt: Optional[float] = Field(None, ge=0, description="Estimated from MET when omitted")
    exercise_date: str = Field(..., description="YYYY-MM-DD")
    notes: Optional[str] = None


class SleepLog(BaseModel):
    """
    One sleep log per user and date
    Collection: sleeplog
    """
    email: str = Field(..., description="User email")
    hours_slept: float = Field(..., gt=0, le=24)
    sleep_quality: Literal["poor", "fair", "good", "excellent"] = "good"
    sleep_date: str = Field(..., description="YYYY-MM-DD")
    notes: Optional[str] = None


class Achievement(BaseModel):
    """
    Badge catalog entry
    Collection: achievement
    """
    key: str = Field(..., description="Stable catalog key")
    name: str
    description: str = ""
    icon: str = "Trophy"
    criteria_type: str = Field(..., description="first_meal, total_meals, workouts_completed, ...")
    criteria_value: float = 0


class UserAchievement(BaseModel):
    """
    Unlock record, at most one per (email, achievement_id)
    Collection: userachievement
    """
    email: str
    achievement_id: str
    unlocked_at: datetime


class ExerciseEstimateRequest(BaseModel):
    email: str
    exercise_name: str
    exercise_type: Optional[str] = None
    duration: Optional[float] = None


class ExerciseEstimate(BaseModel):
    calories: int
    met: float
    exercise_info: str
