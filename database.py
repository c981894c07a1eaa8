"""
Database helpers for Happy Thoughts

MongoDB access through pymongo. Collections are named after the lowercase
schema class (User -> "user", Thought -> "thought").
"""

import logging
import os
from typing import Optional, Union

from pydantic import BaseModel
from pymongo import ASCENDING, DESCENDING, MongoClient
from pymongo.database import Database
from pymongo.errors import PyMongoError

logger = logging.getLogger(__name__)

DATABASE_URL = os.getenv("DATABASE_URL") or os.getenv("MONGO_URL") or "mongodb://localhost:27017"
DATABASE_NAME = os.getenv("DATABASE_NAME", "happy_thoughts")
SERVER_SELECTION_TIMEOUT_MS = int(os.getenv("SERVER_SELECTION_TIMEOUT_MS", "5000"))

db: Optional[Database] = None

try:
    # MongoClient connects lazily, so this only fails on a malformed URL
    client = MongoClient(DATABASE_URL, serverSelectionTimeoutMS=SERVER_SELECTION_TIMEOUT_MS)
    db = client[DATABASE_NAME]
except PyMongoError as e:
    logger.error("Could not configure MongoDB client for %s: %s", DATABASE_NAME, e)
    client = None


def get_db() -> Optional[Database]:
    return db


def create_document(database: Database, collection_name: str, data: Union[BaseModel, dict]) -> dict:
    """Insert a document and return it as stored, including its ``_id``."""
    if isinstance(data, BaseModel):
        doc = data.model_dump()
    else:
        doc = dict(data)
    res = database[collection_name].insert_one(doc)
    doc["_id"] = res.inserted_id
    return doc


def ensure_indexes(database: Database) -> None:
    database["user"].create_index([("email", ASCENDING)], unique=True)
    database["user"].create_index([("accessToken", ASCENDING)])
    database["thought"].create_index([("createdAt", DESCENDING)])


def migrate_hearts(database: Database) -> int:
    """Turn legacy integer ``hearts`` counters into anonymous like-records.

    A counter of N becomes a list of N ``{"userId": None}`` entries, so the
    like count read back afterwards is unchanged.
    """
    migrated = 0
    for doc in database["thought"].find({}, {"hearts": 1}):
        hearts = doc.get("hearts")
        if isinstance(hearts, list):
            continue
        if isinstance(hearts, (int, float)) and not isinstance(hearts, bool):
            likes = [{"userId": None} for _ in range(max(int(hearts), 0))]
        else:
            likes = []
        database["thought"].update_one(
            {"_id": doc["_id"]},
            {"$set": {"hearts": likes}},
        )
        migrated += 1
    return migrated
