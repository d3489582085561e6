"""
MongoDB access helpers.

The client is created once in the application lifespan and handed to request
handlers through the ``get_db`` dependency. Documents are stored with the
collection name being the lowercased model name (User -> user).
"""

import logging
from datetime import datetime, timezone
from typing import Any, Dict, List, Optional, Union

from bson import ObjectId
from fastapi import HTTPException, Request
from pydantic import BaseModel
from pymongo import ASCENDING, MongoClient
from pymongo.database import Database

logger = logging.getLogger(__name__)

# (collection, field) pairs that must stay unique
UNIQUE_FIELDS = [
    ("user", "email"),
    ("propertytype", "name"),
    ("amenities", "name"),
    ("listings", "name"),
]


class Mongo:
    def __init__(self, url: str, name: str):
        self.url = url
        self.name = name
        self.client: Optional[MongoClient] = None

    def connect(self) -> Database:
        self.client = MongoClient(self.url)
        db = self.client[self.name]
        ensure_indexes(db)
        logger.info("MongoDB connected: %s", self.name)
        return db

    def close(self) -> None:
        if self.client is not None:
            self.client.close()
            self.client = None


def get_db(request: Request) -> Database:
    return request.app.state.db


def ensure_indexes(db: Database) -> None:
    for collection, field in UNIQUE_FIELDS:
        db[collection].create_index([(field, ASCENDING)], unique=True)


def now_utc() -> datetime:
    # naive UTC, the form pymongo hands datetimes back in
    return datetime.now(timezone.utc).replace(tzinfo=None)


def to_object_id(value: Any, message: str = "Invalid ID") -> ObjectId:
    """Parse a path or body identifier, answering 400 when it is malformed."""
    if isinstance(value, ObjectId):
        return value
    if not isinstance(value, str) or not ObjectId.is_valid(value):
        raise HTTPException(status_code=400, detail=message)
    return ObjectId(value)


def create_document(db: Database, collection_name: str, data: Union[BaseModel, dict]) -> dict:
    """Insert a document with timestamps and return it, ``_id`` included."""
    if isinstance(data, BaseModel):
        doc = data.model_dump(by_alias=True)
    else:
        doc = dict(data)
    stamp = now_utc()
    doc["createdAt"] = stamp
    doc["updatedAt"] = stamp
    result = db[collection_name].insert_one(doc)
    doc["_id"] = result.inserted_id
    return doc


def update_document(db: Database, collection_name: str, doc_id: ObjectId, changes: Dict[str, Any]) -> Optional[dict]:
    changes = dict(changes)
    changes["updatedAt"] = now_utc()
    db[collection_name].update_one({"_id": doc_id}, {"$set": changes})
    return db[collection_name].find_one({"_id": doc_id})


def get_documents(db: Database, collection_name: str, filter_dict: Optional[dict] = None,
                  limit: Optional[int] = None) -> List[dict]:
    cursor = db[collection_name].find(filter_dict or {})
    if limit:
        cursor = cursor.limit(limit)
    return list(cursor)


def serialize(value: Any) -> Any:
    """Stringify ObjectIds (nested ones too) so documents can be returned as JSON."""
    if isinstance(value, ObjectId):
        return str(value)
    if isinstance(value, dict):
        return {k: serialize(v) for k, v in value.items()}
    if isinstance(value, list):
        return [serialize(v) for v in value]
    return value


def clear_expired_otps(db: Database, now: Optional[datetime] = None) -> int:
    now = now or now_utc()
    result = db["user"].update_many(
        {"otpExpiresAt": {"$ne": None, "$lte": now}},
        {"$set": {"otp": None, "otpExpiresAt": None}},
    )
    if result.modified_count:
        logger.info("Cleared %d expired one-time codes", result.modified_count)
    return result.modified_count
