"""
MongoDB access helpers.

The client is created once per process (see the lifespan in main.py) and the
database handle is handed to routes through the ``get_db`` dependency.
"""
import logging
from typing import Any, Dict, List, Optional

from bson import ObjectId
from bson.errors import InvalidId
from fastapi import HTTPException, Request
from pydantic import BaseModel
from pymongo import ASCENDING, MongoClient
from pymongo.database import Database

from config import ConfigError, Settings

logger = logging.getLogger("problemtracker")

# Collections:
# - problem
# - user
PROBLEMS = "problem"
USERS = "user"


def connect(settings: Settings) -> MongoClient:
    if not settings.database_url:
        raise ConfigError("DATABASE_URL is not set")
    return MongoClient(settings.database_url)


def ensure_indexes(db: Database) -> None:
    db[USERS].create_index([("username", ASCENDING)], unique=True)
    db[PROBLEMS].create_index([("tags", ASCENDING)])
    logger.info("Indexes ensured on %s and %s", USERS, PROBLEMS)


def get_db(request: Request) -> Database:
    db = getattr(request.app.state, "db", None)
    if db is None:
        raise HTTPException(status_code=500, detail="Database not configured")
    return db


def create_document(db: Database, collection: str, data: BaseModel) -> str:
    """Insert a model and return the new id as a string."""
    result = db[collection].insert_one(data.model_dump())
    return str(result.inserted_id)


def get_documents(db: Database, collection: str, filter_dict: Optional[Dict[str, Any]] = None) -> List[Dict[str, Any]]:
    return [to_str_id(d) for d in db[collection].find(filter_dict or {})]


def oid(value: str) -> Optional[ObjectId]:
    """Parse a path identifier; malformed values yield None."""
    try:
        return ObjectId(str(value))
    except (InvalidId, TypeError):
        return None


def to_str_id(doc):
    d = dict(doc)
    if "_id" in d:
        d["_id"] = str(d["_id"])
    return d
