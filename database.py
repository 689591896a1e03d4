"""
MongoDB access

The client is opened explicitly by the application at startup and closed at
shutdown; services receive the ``Database`` handle in their constructors.
Every document carries an application level ``id`` string which is what all
lookups use. The driver's ``_id`` never leaves this layer.
"""

import logging
import uuid
from datetime import datetime, timezone
from typing import Any, Dict, List, Optional, Tuple, Union

from pydantic import BaseModel
from pymongo import ASCENDING, MongoClient
from pymongo.database import Database

from config import Settings

logger = logging.getLogger(__name__)

USERS = "users"
SESSIONS = "sessions"
POSTS = "posts"
PROJECTS = "projects"
PROFILES = "profiles"

# Exclude the driver id from every read
PUBLIC = {"_id": 0}


def utcnow() -> datetime:
    return datetime.now(timezone.utc)


def new_id(prefix: str = "") -> str:
    return f"{prefix}{uuid.uuid4().hex}"


def connect(settings: Settings) -> Tuple[MongoClient, Database]:
    client: MongoClient = MongoClient(settings.mongodb_uri)
    # Fail at startup rather than on the first request
    client.admin.command("ping")
    db = client.get_default_database(default=settings.database_name)
    logger.info("MongoDB connected (database=%s)", db.name)
    return client, db


def close(client: MongoClient) -> None:
    client.close()
    logger.info("MongoDB connection closed")


def ensure_indexes(db: Database) -> None:
    for name in (USERS, POSTS, PROJECTS, PROFILES):
        db[name].create_index([("id", ASCENDING)], unique=True)
    db[USERS].create_index([("username", ASCENDING)], unique=True)
    db[USERS].create_index([("email", ASCENDING)], unique=True)
    db[USERS].create_index([("phone_number", ASCENDING)], unique=True)
    db[SESSIONS].create_index([("token", ASCENDING)], unique=True)
    db[SESSIONS].create_index([("user_id", ASCENDING)])
    db[POSTS].create_index([("is_published", ASCENDING), ("created_at", ASCENDING)])
    db[PROJECTS].create_index([("status", ASCENDING)])


def create_document(db: Database, collection: str, data: Union[BaseModel, Dict[str, Any]]) -> Dict[str, Any]:
    """Insert a document stamped with created_at/updated_at and return it without ``_id``."""
    doc = data.model_dump() if isinstance(data, BaseModel) else dict(data)
    now = utcnow()
    doc.setdefault("created_at", now)
    doc["updated_at"] = now
    db[collection].insert_one(doc)
    doc.pop("_id", None)
    return doc


def get_documents(
    db: Database,
    collection: str,
    filter_dict: Optional[Dict[str, Any]] = None,
    limit: Optional[int] = None,
    sort: Optional[List[Tuple[str, int]]] = None,
) -> List[Dict[str, Any]]:
    cursor = db[collection].find(filter_dict or {}, PUBLIC)
    if sort:
        cursor = cursor.sort(sort)
    if limit:
        cursor = cursor.limit(limit)
    return list(cursor)
