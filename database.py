"""
MongoDB access for FitTrackr

`db` is None when DATABASE_URL is not set; callers check before use.
"""

import logging
import os
from datetime import date, datetime, timezone
from typing import Any, Dict, List, Optional, Union

from dotenv import load_dotenv
from pydantic import BaseModel
from pymongo import ASCENDING, MongoClient

load_dotenv()

logger = logging.getLogger(__name__)

DATABASE_URL = os.getenv("DATABASE_URL")
DATABASE_NAME = os.getenv("DATABASE_NAME", "fittrackr")

_client = None
db = None

if DATABASE_URL:
    try:
        _client = MongoClient(DATABASE_URL)
        db = _client[DATABASE_NAME]
    except Exception as e:
        logger.error("Could not connect to MongoDB: %s", e)
        db = None


def ensure_indexes(database) -> None:
    database["userprofile"].create_index([("email", ASCENDING)], unique=True)
    database["achievement"].create_index([("key", ASCENDING)], unique=True)
    database["sleeplog"].create_index([("email", ASCENDING), ("sleep_date", ASCENDING)], unique=True)
    database["userachievement"].create_index(
        [("email", ASCENDING), ("achievement_id", ASCENDING)], unique=True
    )
    database["meal"].create_index([("email", ASCENDING), ("consumed_at", ASCENDING)])
    database["exercise"].create_index([("email", ASCENDING), ("exercise_date", ASCENDING)])


def utcnow() -> datetime:
    # naive UTC, the way pymongo hands datetimes back
    return datetime.now(timezone.utc).replace(tzinfo=None)


def utc_today() -> date:
    # calendar day used for every "today" check, matching how consumed_at is stored
    return utcnow().date()


def create_document(collection_name: str, data: Union[BaseModel, Dict[str, Any]]) -> str:
    if db is None:
        raise RuntimeError("Database not configured")

    doc = data.model_dump() if isinstance(data, BaseModel) else dict(data)
    now = utcnow()
    doc.setdefault("created_at", now)
    doc["updated_at"] = now

    inserted_id = db[collection_name].insert_one(doc).inserted_id
    return str(inserted_id)


def get_documents(collection_name: str, filter_dict: Optional[Dict[str, Any]] = None,
                  limit: Optional[int] = None, sort: Optional[List] = None) -> List[Dict[str, Any]]:
    if db is None:
        raise RuntimeError("Database not configured")

    cursor = db[collection_name].find(filter_dict or {})
    if sort:
        cursor = cursor.sort(sort)
    if limit:
        cursor = cursor.limit(limit)

    docs = []
    for d in cursor:
        d["_id"] = str(d["_id"])
        docs.append(d)
    return docs
