import logging
import os
from contextlib import asynccontextmanager
from datetime import date, datetime, time, timedelta, timezone
from typing import Dict, List, Optional

from bson import ObjectId
from bson.errors import InvalidId
from fastapi import FastAPI, HTTPException
from fastapi.middleware.cors import CORSMiddleware
from pymongo.errors import DuplicateKeyError, PyMongoError

from database import db, create_document, get_documents, ensure_indexes, utcnow, utc_today
from schemas import (
    UserProfile, Meal, Exercise, SleepLog, Achievement, UserAchievement,
    ExerciseEstimateRequest, ExerciseEstimate,
)
from energy import calorie_plan, estimate_exercise_calories, lookup_met, needs_goal_recompute
from aggregation import EXERCISE_FIELDS, aggregate, daily_summary, weekly_progress, weekly_totals, week_window
from achievements import DEFAULT_ACHIEVEMENTS, UserStats, pending_unlocks

logging.basicConfig(
    level=os.getenv("LOG_LEVEL", "INFO"),
    format="%(asctime)s %(levelname)s %(name)s: %(message)s",
)
logger = logging.getLogger(__name__)


@asynccontextmanager
async def lifespan(app: FastAPI):
    if db is not None:
        ensure_indexes(db)
        load_catalog()
    yield


app = FastAPI(title="FitTrackr API", version="1.0.0", lifespan=lifespan)

app.add_middleware(
    CORSMiddleware,
    allow_origins=["*"],
    allow_credentials=True,
    allow_methods=["*"],
    allow_headers=["*"],
)


@app.get("/")
def root():
    return {"message": "FitTrackr API is running"}


@app.get("/test")
def test_database():
    status = {
        "backend": "running",
        "database": "not configured",
        "database_name": None,
        "collections": [],
    }
    if db is None:
        return status

    status["database_name"] = db.name
    try:
        status["collections"] = sorted(db.list_collection_names())
        status["database"] = "connected"
    except PyMongoError as e:
        logger.error("Database check failed: %s", e)
        status["database"] = f"error: {str(e)[:50]}"
    return status


# -------- Utility: parsing ---------
def parse_day(value: str) -> date:
    try:
        return date.fromisoformat(value)
    except ValueError:
        raise HTTPException(status_code=400, detail="Date must be YYYY-MM-DD")


def parse_object_id(value: str) -> ObjectId:
    try:
        return ObjectId(value)
    except (InvalidId, TypeError):
        raise HTTPException(status_code=400, detail="Invalid id")


def day_range(day: date) -> Dict[str, datetime]:
    start = datetime.combine(day, time.min)
    return {"$gte": start, "$lt": start + timedelta(days=1)}


def to_naive_utc(value: Optional[datetime]) -> datetime:
    if value is None:
        return utcnow()
    if value.tzinfo is not None:
        return value.astimezone(timezone.utc).replace(tzinfo=None)
    return value


def calc_error(result) -> HTTPException:
    return HTTPException(status_code=400, detail={"error": result.error.value, "detail": result.detail})


# -------- Achievements: evaluation after writes ---------
def seed_catalog() -> int:
    """Insert any default achievement missing by key. Returns how many were added."""
    added = 0
    for item in DEFAULT_ACHIEVEMENTS:
        achievement = Achievement(**item)
        try:
            result = db["achievement"].update_one(
                {"key": achievement.key},
                {"$setOnInsert": {**achievement.model_dump(), "created_at": utcnow()}},
                upsert=True,
            )
        except DuplicateKeyError:
            continue
        if result.upserted_id is not None:
            added += 1
    if added:
        logger.info("Seeded %d achievements", added)
    return added


def load_catalog() -> List[dict]:
    catalog = get_documents("achievement", sort=[("created_at", 1), ("_id", 1)])
    if not catalog:
        seed_catalog()
        catalog = get_documents("achievement", sort=[("created_at", 1), ("_id", 1)])
    return catalog


def unlocked_achievements(email: str) -> Dict[str, datetime]:
    docs = db["userachievement"].find({"email": email}, {"achievement_id": 1, "unlocked_at": 1})
    return {d["achievement_id"]: d.get("unlocked_at") for d in docs}


def collect_stats(email: str, today: date) -> UserStats:
    durations = db["exercise"].find({"email": email}, {"duration": 1})
    today_str = today.isoformat()
    return UserStats(
        meal_count=db["meal"].count_documents({"email": email}),
        exercise_count=db["exercise"].count_documents({"email": email}),
        exercise_minutes=aggregate(durations, ("duration",))["duration"],
        has_meal_today=db["meal"].count_documents({"email": email, "consumed_at": day_range(today)}) > 0,
        has_exercise_today=db["exercise"].count_documents({"email": email, "exercise_date": today_str}) > 0,
        has_sleep_today=db["sleeplog"].count_documents({"email": email, "sleep_date": today_str}) > 0,
    )


def evaluate_achievements(email: str, today: Optional[date] = None) -> List[str]:
    """
    Unlock every achievement whose criteria the user now meets. Safe to run
    repeatedly: held achievements are skipped and the unlock itself is an
    upsert guarded by a unique (email, achievement_id) index.
    """
    catalog = load_catalog()
    unlocked = unlocked_achievements(email)
    if len(unlocked) >= len(catalog):
        return []

    stats = collect_stats(email, today or utc_today())
    newly_unlocked = []
    for achievement in pending_unlocks(catalog, stats, unlocked.keys()):
        achievement_id = achievement["_id"]
        record = UserAchievement(email=email, achievement_id=achievement_id, unlocked_at=utcnow())
        try:
            result = db["userachievement"].update_one(
                {"email": email, "achievement_id": achievement_id},
                {"$setOnInsert": record.model_dump()},
                upsert=True,
            )
        except DuplicateKeyError:
            # another evaluation got there first
            continue
        if result.upserted_id is not None:
            logger.info("Achievement %s unlocked for %s", achievement.get("key"), email)
            newly_unlocked.append(achievement_id)
    return newly_unlocked


# --------- Endpoints: Profiles ---------
@app.post("/api/profile")
def upsert_profile(profile: UserProfile):
    if db is None:
        raise HTTPException(status_code=500, detail="Database not configured")

    plan = calorie_plan(profile)
    if not plan.ok:
        logger.warning("Calorie goal not computed for %s: %s", profile.email, plan.detail)
    profile.daily_calorie_goal = plan.value.goal_calories if plan.ok else 0

    db["userprofile"].update_one(
        {"email": profile.email},
        {"$set": {**profile.model_dump(), "updated_at": utcnow()},
         "$setOnInsert": {"created_at": utcnow()}},
        upsert=True,
    )
    return {
        "profile": profile.model_dump(),
        "plan": plan.value.model_dump() if plan.ok else None,
        "plan_error": None if plan.ok else plan.error.value,
    }


@app.get("/api/profile/{email}")
def get_profile(email: str):
    if db is None:
        raise HTTPException(status_code=500, detail="Database not configured")
    doc = db["userprofile"].find_one({"email": email}, {"_id": 0, "created_at": 0, "updated_at": 0})
    if not doc:
        raise HTTPException(status_code=404, detail="Profile not found")

    profile = UserProfile(**doc)
    plan = calorie_plan(profile)
    if plan.ok and needs_goal_recompute(profile.daily_calorie_goal):
        profile.daily_calorie_goal = plan.value.goal_calories
        db["userprofile"].update_one(
            {"email": email},
            {"$set": {"daily_calorie_goal": profile.daily_calorie_goal, "updated_at": utcnow()}},
        )
        logger.info("Recomputed stored calorie goal for %s", email)

    return {
        "profile": profile.model_dump(),
        "plan": plan.value.model_dump() if plan.ok else None,
        "plan_error": None if plan.ok else plan.error.value,
    }


def profile_weight(email: str) -> Optional[float]:
    doc = db["userprofile"].find_one({"email": email}, {"weight_kg": 1})
    return doc.get("weight_kg") if doc else None


# --------- Endpoints: Meals ---------
@app.post("/api/meals")
def add_meal(meal: Meal):
    if db is None:
        raise HTTPException(status_code=500, detail="Database not configured")
    meal.consumed_at = to_naive_utc(meal.consumed_at)
    inserted_id = create_document("meal", meal)
    logger.info("Meal %s logged for %s", inserted_id, meal.email)
    return {"id": inserted_id, "unlocked": evaluate_achievements(meal.email)}


@app.get("/api/meals/{email}/{log_date}")
def list_meals(email: str, log_date: str):
    if db is None:
        raise HTTPException(status_code=500, detail="Database not configured")
    day = parse_day(log_date)
    meals = get_documents("meal", {"email": email, "consumed_at": day_range(day)},
                          sort=[("consumed_at", -1)])
    summary = daily_summary(day.isoformat(), current_goal(email), meals, [])
    return {
        "email": email,
        "date": day.isoformat(),
        "entries": meals,
        "totals": summary.meals,
        "remaining_calories": summary.remaining_calories,
        "calorie_status": summary.calorie_status,
    }


@app.delete("/api/meals/{meal_id}")
def delete_meal(meal_id: str):
    if db is None:
        raise HTTPException(status_code=500, detail="Database not configured")
    result = db["meal"].delete_one({"_id": parse_object_id(meal_id)})
    if result.deleted_count == 0:
        raise HTTPException(status_code=404, detail="Meal not found")
    return {"status": "deleted"}


# --------- Endpoints: Exercises ---------
@app.post("/api/exercises/estimate", response_model=ExerciseEstimate)
def estimate_exercise(payload: ExerciseEstimateRequest):
    if db is None:
        raise HTTPException(status_code=500, detail="Database not configured")
    weight = profile_weight(payload.email)
    result = estimate_exercise_calories(payload.exercise_name, payload.exercise_type, payload.duration, weight)
    if not result.ok:
        raise calc_error(result)

    met = lookup_met(payload.exercise_name, payload.exercise_type)
    return ExerciseEstimate(
        calories=result.value,
        met=met,
        exercise_info=f"Based on your weight ({weight}kg) and a MET value of {met}",
    )


@app.post("/api/exercises")
def add_exercise(exercise: Exercise):
    if db is None:
        raise HTTPException(status_code=500, detail="Database not configured")
    exercise.exercise_date = parse_day(exercise.exercise_date).isoformat()

    if exercise.calories_burnt is None:
        result = estimate_exercise_calories(
            exercise.exercise_name, exercise.exercise_type, exercise.duration, profile_weight(exercise.email)
        )
        if not result.ok:
            raise calc_error(result)
        exercise.calories_burnt = result.value

    inserted_id = create_document("exercise", exercise)
    logger.info("Exercise %s logged for %s", inserted_id, exercise.email)
    return {
        "id": inserted_id,
        "calories_burnt": exercise.calories_burnt,
        "unlocked": evaluate_achievements(exercise.email),
    }


@app.get("/api/exercises/{email}/{log_date}")
def list_exercises(email: str, log_date: str):
    if db is None:
        raise HTTPException(status_code=500, detail="Database not configured")
    day = parse_day(log_date).isoformat()
    exercises = get_documents("exercise", {"email": email, "exercise_date": day},
                              sort=[("created_at", -1)])
    return {
        "email": email,
        "date": day,
        "entries": exercises,
        "totals": aggregate(exercises, EXERCISE_FIELDS),
    }


@app.delete("/api/exercises/{exercise_id}")
def delete_exercise(exercise_id: str):
    if db is None:
        raise HTTPException(status_code=500, detail="Database not configured")
    result = db["exercise"].delete_one({"_id": parse_object_id(exercise_id)})
    if result.deleted_count == 0:
        raise HTTPException(status_code=404, detail="Exercise not found")
    return {"status": "deleted"}


# --------- Endpoints: Sleep ---------
@app.put("/api/sleep")
def upsert_sleep(log: SleepLog):
    if db is None:
        raise HTTPException(status_code=500, detail="Database not configured")
    log.sleep_date = parse_day(log.sleep_date).isoformat()

    now = utcnow()
    result = db["sleeplog"].update_one(
        {"email": log.email, "sleep_date": log.sleep_date},
        {"$set": {**log.model_dump(), "updated_at": now}, "$setOnInsert": {"created_at": now}},
        upsert=True,
    )
    status = "created" if result.upserted_id is not None else "updated"
    logger.info("Sleep log %s for %s on %s", status, log.email, log.sleep_date)
    return {"status": status, "unlocked": evaluate_achievements(log.email)}


@app.get("/api/sleep/{email}/{log_date}")
def get_sleep(email: str, log_date: str):
    if db is None:
        raise HTTPException(status_code=500, detail="Database not configured")
    day = parse_day(log_date).isoformat()
    doc = db["sleeplog"].find_one({"email": email, "sleep_date": day})
    if doc:
        doc["_id"] = str(doc["_id"])
    return doc


# --------- Endpoints: Dashboard & progress ---------
def current_goal(email: str) -> Optional[int]:
    doc = db["userprofile"].find_one({"email": email}, {"daily_calorie_goal": 1})
    return doc.get("daily_calorie_goal") if doc else None


@app.get("/api/dashboard/{email}/{log_date}")
def get_dashboard(email: str, log_date: str):
    if db is None:
        raise HTTPException(status_code=500, detail="Database not configured")
    day = parse_day(log_date)

    meals = get_documents("meal", {"email": email, "consumed_at": day_range(day)})
    exercises = get_documents("exercise", {"email": email, "exercise_date": day.isoformat()})
    sleep = db["sleeplog"].find_one({"email": email, "sleep_date": day.isoformat()})
    return daily_summary(day.isoformat(), current_goal(email), meals, exercises, sleep).model_dump()


@app.get("/api/progress/{email}/weekly")
def get_weekly_progress(email: str, end: Optional[str] = None):
    if db is None:
        raise HTTPException(status_code=500, detail="Database not configured")
    end_day = parse_day(end) if end else utc_today()
    days = week_window(end_day)
    first, last = days[0], days[-1]

    meals = get_documents("meal", {
        "email": email,
        "consumed_at": {"$gte": datetime.combine(first, time.min), "$lt": datetime.combine(last + timedelta(days=1), time.min)},
    })
    date_filter = {"$gte": first.isoformat(), "$lte": last.isoformat()}
    exercises = get_documents("exercise", {"email": email, "exercise_date": date_filter})
    sleep_logs = get_documents("sleeplog", {"email": email, "sleep_date": date_filter})

    return {
        "email": email,
        "days": [p.model_dump() for p in weekly_progress(meals, exercises, sleep_logs, end_day)],
        "totals": weekly_totals(meals, exercises, sleep_logs).model_dump(),
    }


# --------- Endpoints: Achievements ---------
@app.get("/api/achievements")
def list_achievements():
    if db is None:
        raise HTTPException(status_code=500, detail="Database not configured")
    return load_catalog()


@app.get("/api/achievements/{email}")
def user_achievements(email: str):
    if db is None:
        raise HTTPException(status_code=500, detail="Database not configured")
    catalog = load_catalog()
    unlocked = unlocked_achievements(email)

    items = []
    for a in catalog:
        items.append({
            **a,
            "unlocked": a["_id"] in unlocked,
            "unlocked_at": unlocked.get(a["_id"]),
        })
    return {
        "email": email,
        "achievements": items,
        "unlocked_count": sum(1 for i in items if i["unlocked"]),
        "total": len(items),
    }


@app.post("/api/achievements/{email}/evaluate")
def evaluate(email: str):
    if db is None:
        raise HTTPException(status_code=500, detail="Database not configured")
    return {"email": email, "unlocked": evaluate_achievements(email)}


if __name__ == "__main__":
    import uvicorn
    port = int(os.getenv("PORT", 8000))
    uvicorn.run(app, host="0.0.0.0", port=port)
