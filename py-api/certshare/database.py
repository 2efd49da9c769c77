"""MongoDB connection management for the completion store."""

from __future__ import annotations

import os
from typing import Optional

from pymongo import ASCENDING, MongoClient
from pymongo.collection import Collection
from pymongo.database import Database

COMPLETION_COLLECTION = "completion_records"

_client: Optional[MongoClient] = None
_database: Optional[Database] = None


def mongodb_enabled() -> bool:
    """Return True when completion records should live in MongoDB."""
    return os.getenv("ENABLE_MONGODB", "false").lower() == "true"


def get_mongo_client() -> MongoClient:
    """Get or create the shared MongoDB client."""
    global _client
    if _client is None:
        mongo_uri = os.getenv("MONGODB_URI", "mongodb://localhost:27017/")
        _client = MongoClient(mongo_uri, serverSelectionTimeoutMS=2000)
    return _client


def get_database() -> Database:
    """Get the MongoDB database holding completion records."""
    global _database
    if _database is None:
        client = get_mongo_client()
        db_name = os.getenv("MONGODB_DATABASE", "certificate_share")
        _database = client[db_name]
    return _database


def get_completion_collection() -> Collection:
    return get_database()[COMPLETION_COLLECTION]


def create_indexes() -> None:
    """One document per storage key."""
    get_completion_collection().create_index([("key", ASCENDING)], unique=True)

