import mongomock
import pytest
from fastapi.testclient import TestClient

import database
import main


@pytest.fixture
def mongo(monkeypatch):
    """In-memory MongoDB swapped in for the module-level `db`."""
    fake = mongomock.MongoClient()["fittrackr_test"]
    database.ensure_indexes(fake)
    monkeypatch.setattr(database, "db", fake)
    monkeypatch.setattr(main, "db", fake)
    return fake


@pytest.fixture
def client(mongo):
    return TestClient(main.app)


@pytest.fixture
def profile():
    return {
        "email": "sam@example.com",
        "name": "Sam",
        "age": 30,
        "gender": "male",
        "height_cm": 175,
        "weight_kg": 70,
        "activity_level": "moderate",
        "goal": "lose",
    }
