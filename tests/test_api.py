import sys
import time as clock
from datetime import date, datetime, time, timedelta

import pytest
from fastapi.testclient import TestClient

import main
from database import utc_today

EMAIL = "sam@example.com"


def today_at(hour):
    return datetime.combine(utc_today(), time(hour)).isoformat()


def catalog_ids(client):
    return {a["key"]: a["_id"] for a in client.get("/api/achievements").json()}


def test_root(client):
    assert client.get("/").json() == {"message": "FitTrackr API is running"}


def test_database_not_configured(monkeypatch):
    monkeypatch.setattr(main, "db", None)
    r = TestClient(main.app).get(f"/api/profile/{EMAIL}")
    assert r.status_code == 500
    assert r.json()["detail"] == "Database not configured"


def test_profile_upsert_computes_goal(client, mongo, profile):
    r = client.post("/api/profile", json=profile)
    assert r.status_code == 200
    body = r.json()
    assert body["profile"]["daily_calorie_goal"] == 2094
    assert body["plan"] == {"bmr": 1673.75, "maintenance_calories": 2594, "goal_calories": 2094}

    profile["goal"] = "gain"
    client.post("/api/profile", json=profile)
    assert mongo["userprofile"].count_documents({"email": EMAIL}) == 1
    assert mongo["userprofile"].find_one({"email": EMAIL})["daily_calorie_goal"] == 2894


def test_incomplete_profile_gets_zero_goal(client, profile):
    del profile["weight_kg"]
    body = client.post("/api/profile", json=profile).json()
    assert body["profile"]["daily_calorie_goal"] == 0
    assert body["plan"] is None
    assert body["plan_error"] == "missing_input"


def test_profile_rejects_negative_weight(client, profile):
    profile["weight_kg"] = -70
    assert client.post("/api/profile", json=profile).status_code == 422


def test_get_profile_recomputes_invalid_stored_goal(client, mongo, profile):
    mongo["userprofile"].insert_one({**profile, "daily_calorie_goal": 0})
    body = client.get(f"/api/profile/{EMAIL}").json()
    assert body["profile"]["daily_calorie_goal"] == 2094
    assert mongo["userprofile"].find_one({"email": EMAIL})["daily_calorie_goal"] == 2094


def test_get_profile_missing(client):
    assert client.get("/api/profile/nobody@example.com").status_code == 404


def test_meals_day_totals_and_remaining(client, profile):
    client.post("/api/profile", json=profile)
    for calories, protein in ((500, 30), (700, 40)):
        r = client.post("/api/meals", json={
            "email": EMAIL, "name": "food", "calories": calories, "protein": protein,
            "meal_type": "lunch", "consumed_at": today_at(12),
        })
        assert r.status_code == 200

    body = client.get(f"/api/meals/{EMAIL}/{utc_today().isoformat()}").json()
    assert len(body["entries"]) == 2
    assert body["totals"]["calories"] == 1200
    assert body["totals"]["protein"] == 70
    assert body["remaining_calories"] == 894
    assert body["calorie_status"] == "remaining"


def test_meal_rejects_negative_calories(client):
    r = client.post("/api/meals", json={"email": EMAIL, "name": "x", "calories": -1})
    assert r.status_code == 422


def test_first_meal_unlocks_once(client, mongo):
    ids = catalog_ids(client)
    r = client.post("/api/meals", json={"email": EMAIL, "name": "oats", "calories": 300, "consumed_at": today_at(8)})
    assert r.json()["unlocked"] == [ids["first_bite"]]

    r = client.post("/api/meals", json={"email": EMAIL, "name": "eggs", "calories": 200, "consumed_at": today_at(9)})
    assert r.json()["unlocked"] == []
    assert client.post(f"/api/achievements/{EMAIL}/evaluate").json()["unlocked"] == []
    assert mongo["userachievement"].count_documents({"email": EMAIL, "achievement_id": ids["first_bite"]}) == 1


def test_delete_meal(client):
    meal_id = client.post("/api/meals", json={"email": EMAIL, "name": "oats", "calories": 300}).json()["id"]
    assert client.delete(f"/api/meals/{meal_id}").json() == {"status": "deleted"}
    assert client.delete(f"/api/meals/{meal_id}").status_code == 404
    assert client.delete("/api/meals/not-an-id").status_code == 400


def test_exercise_estimated_from_profile_weight(client, profile):
    client.post("/api/profile", json=profile)
    r = client.post("/api/exercises", json={
        "email": EMAIL, "exercise_name": "Running", "duration": 30, "exercise_date": utc_today().isoformat(),
    })
    assert r.status_code == 200
    assert r.json()["calories_burnt"] == 280


def test_exercise_keeps_entered_calories(client):
    r = client.post("/api/exercises", json={
        "email": EMAIL, "exercise_name": "Rowing", "duration": 20, "calories_burnt": 150,
        "exercise_date": "2024-05-01",
    })
    assert r.json()["calories_burnt"] == 150


def test_exercise_without_profile_weight(client):
    r = client.post("/api/exercises", json={
        "email": EMAIL, "exercise_name": "Running", "duration": 30, "exercise_date": "2024-05-01",
    })
    assert r.status_code == 400
    assert r.json()["detail"]["error"] == "missing_input"


def test_exercise_rejects_zero_duration(client):
    r = client.post("/api/exercises", json={
        "email": EMAIL, "exercise_name": "Running", "duration": 0, "exercise_date": "2024-05-01",
    })
    assert r.status_code == 422


def test_exercise_estimate(client, profile):
    profile["weight_kg"] = 80
    client.post("/api/profile", json=profile)
    r = client.post("/api/exercises/estimate", json={
        "email": EMAIL, "exercise_name": "unknown activity xyz", "exercise_type": "cardio", "duration": 60,
    })
    assert r.json() == {
        "calories": 560,
        "met": 7.0,
        "exercise_info": "Based on your weight (80.0kg) and a MET value of 7.0",
    }

    r = client.post("/api/exercises/estimate", json={"email": EMAIL, "exercise_name": "yoga", "duration": -5})
    assert r.status_code == 400
    assert r.json()["detail"]["error"] == "invalid_range"


def test_list_exercises(client):
    for minutes in (30, 15):
        client.post("/api/exercises", json={
            "email": EMAIL, "exercise_name": "Cycling", "duration": minutes, "calories_burnt": minutes * 5,
            "exercise_date": "2024-05-01",
        })
    body = client.get(f"/api/exercises/{EMAIL}/2024-05-01").json()
    assert len(body["entries"]) == 2
    assert body["totals"] == {"duration": 45, "calories_burnt": 225}
    assert client.get(f"/api/exercises/{EMAIL}/May-1").status_code == 400


def test_sleep_is_one_entry_per_day(client, mongo):
    log = {"email": EMAIL, "hours_slept": 6.5, "sleep_quality": "fair", "sleep_date": "2024-05-01"}
    assert client.put("/api/sleep", json=log).json()["status"] == "created"

    log.update(hours_slept=8, sleep_quality="excellent")
    assert client.put("/api/sleep", json=log).json()["status"] == "updated"

    assert mongo["sleeplog"].count_documents({"email": EMAIL}) == 1
    stored = client.get(f"/api/sleep/{EMAIL}/2024-05-01").json()
    assert stored["hours_slept"] == 8
    assert stored["sleep_quality"] == "excellent"
    assert client.get(f"/api/sleep/{EMAIL}/2024-05-02").json() is None


def test_full_day_log_unlocks(client, profile):
    ids = catalog_ids(client)
    today = utc_today().isoformat()
    client.post("/api/profile", json=profile)

    client.post("/api/meals", json={"email": EMAIL, "name": "oats", "calories": 300, "consumed_at": today_at(8)})
    r = client.post("/api/exercises", json={
        "email": EMAIL, "exercise_name": "Walking", "duration": 60, "exercise_date": today,
    })
    assert ids["full_day"] not in r.json()["unlocked"]
    assert ids["first_workout"] in r.json()["unlocked"]
    assert ids["hour_of_power"] in r.json()["unlocked"]

    r = client.put("/api/sleep", json={"email": EMAIL, "hours_slept": 7, "sleep_date": today})
    assert r.json()["unlocked"] == [ids["full_day"]]

    body = client.get(f"/api/achievements/{EMAIL}").json()
    assert body["unlocked_count"] == 4
    assert body["total"] == 8
    unlocked = {a["key"] for a in body["achievements"] if a["unlocked"]}
    assert unlocked == {"first_bite", "first_workout", "hour_of_power", "full_day"}


def test_dashboard(client, profile):
    client.post("/api/profile", json=profile)
    today = utc_today().isoformat()
    client.post("/api/meals", json={"email": EMAIL, "name": "pasta", "calories": 2300, "consumed_at": today_at(19)})
    client.post("/api/exercises", json={
        "email": EMAIL, "exercise_name": "Running", "duration": 30, "exercise_date": today,
    })
    client.put("/api/sleep", json={"email": EMAIL, "hours_slept": 7.5, "sleep_date": today})

    body = client.get(f"/api/dashboard/{EMAIL}/{today}").json()
    assert body["calorie_goal"] == 2094
    assert body["meals"]["calories"] == 2300
    assert body["exercise"]["calories_burnt"] == 280
    assert body["net_calories"] == 2020
    assert body["remaining_calories"] == -206
    assert body["calorie_status"] == "over_goal"
    assert body["sleep_hours"] == 7.5


def test_weekly_progress(client):
    end = date(2024, 5, 7)
    client.post("/api/meals", json={"email": EMAIL, "name": "a", "calories": 500, "protein": 20,
                                    "consumed_at": "2024-05-07T08:00:00"})
    client.post("/api/meals", json={"email": EMAIL, "name": "b", "calories": 800, "protein": 30,
                                    "consumed_at": "2024-05-01T20:00:00"})
    client.post("/api/meals", json={"email": EMAIL, "name": "old", "calories": 999,
                                    "consumed_at": "2024-04-30T20:00:00"})
    client.post("/api/exercises", json={"email": EMAIL, "exercise_name": "Swimming", "duration": 40,
                                        "calories_burnt": 300, "exercise_date": "2024-05-05"})
    client.put("/api/sleep", json={"email": EMAIL, "hours_slept": 6, "sleep_date": "2024-05-06"})
    client.put("/api/sleep", json={"email": EMAIL, "hours_slept": 8, "sleep_date": "2024-05-07"})

    body = client.get(f"/api/progress/{EMAIL}/weekly", params={"end": end.isoformat()}).json()
    days = {d["date"]: d for d in body["days"]}
    assert list(days) == [(end - timedelta(days=6 - i)).isoformat() for i in range(7)]
    assert days["2024-05-07"]["calories"] == 500
    assert days["2024-05-01"]["calories"] == 800
    assert days["2024-05-05"]["exercise_minutes"] == 40
    assert days["2024-05-06"]["sleep_hours"] == 6

    totals = body["totals"]
    assert totals["total_calories"] == 1300
    assert totals["total_protein"] == 50
    assert totals["avg_sleep_hours"] == 7
    assert totals["meal_count"] == 2


def test_catalog_seeded_once(client, mongo):
    client.get("/api/achievements")
    client.get("/api/achievements")
    assert mongo["achievement"].count_documents({}) == 8


def test_database_diagnostics(client, mongo):
    client.get("/api/achievements")
    body = client.get("/test").json()
    assert body["database"] == "connected"
    assert body["database_name"] == "fittrackr_test"
    assert "achievement" in body["collections"]


def test_database_diagnostics_unconfigured(monkeypatch):
    monkeypatch.setattr(main, "db", None)
    assert TestClient(main.app).get("/test").json()["database"] == "not configured"


@pytest.fixture
def far_from_utc(monkeypatch):
    if not hasattr(clock, "tzset"):
        pytest.skip("time.tzset is not available on this platform")
    monkeypatch.setenv("TZ", "Pacific/Pago_Pago")
    clock.tzset()
    yield
    monkeypatch.undo()
    clock.tzset()


def test_full_day_log_uses_one_calendar_day_outside_utc(client, profile, far_from_utc):
    ids = catalog_ids(client)
    today = utc_today().isoformat()
    client.post("/api/profile", json=profile)

    client.post("/api/meals", json={"email": EMAIL, "name": "toast", "calories": 250})
    client.post("/api/exercises", json={
        "email": EMAIL, "exercise_name": "Yoga", "duration": 20, "exercise_date": today,
    })
    r = client.put("/api/sleep", json={"email": EMAIL, "hours_slept": 8, "sleep_date": today})
    assert ids["full_day"] in r.json()["unlocked"]


@pytest.mark.skipif(sys.version_info < (3, 11), reason="compact ISO dates are parsed from 3.11")
def test_compact_dates_are_stored_canonical(client, mongo):
    r = client.post("/api/exercises", json={
        "email": EMAIL, "exercise_name": "Rowing", "duration": 20, "calories_burnt": 150,
        "exercise_date": "20240501",
    })
    assert r.status_code == 200
    client.put("/api/sleep", json={"email": EMAIL, "hours_slept": 7, "sleep_date": "20240501"})

    assert mongo["exercise"].find_one({"email": EMAIL})["exercise_date"] == "2024-05-01"
    assert mongo["sleeplog"].find_one({"email": EMAIL})["sleep_date"] == "2024-05-01"

    body = client.get(f"/api/dashboard/{EMAIL}/2024-05-01").json()
    assert body["exercise_count"] == 1
    assert body["sleep_hours"] == 7
    assert client.get(f"/api/exercises/{EMAIL}/20240501").json()["date"] == "2024-05-01"


def test_seeding_twice_keeps_one_catalog(client, mongo):
    assert main.seed_catalog() == 8
    assert main.seed_catalog() == 0
    assert mongo["achievement"].count_documents({}) == 8
    assert client.get(f"/api/achievements/{EMAIL}").json()["total"] == 8


def test_unlock_record_shape(client, mongo):
    ids = catalog_ids(client)
    client.post("/api/meals", json={"email": EMAIL, "name": "oats", "calories": 300})
    record = mongo["userachievement"].find_one({"email": EMAIL})
    assert record["achievement_id"] == ids["first_bite"]
    assert isinstance(record["unlocked_at"], datetime)
