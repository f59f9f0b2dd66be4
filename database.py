"""
MongoDB access layer

The client is owned by the application lifespan (see main.py) and handed to
request handlers through the `get_db` dependency. Collection names are the
lower-cased schema class names (User -> "user").
"""
import logging
from datetime import datetime, timezone
from typing import Any, Dict, List, Optional, Union

from bson import ObjectId
from fastapi import Request
from pydantic import BaseModel
from pymongo import ASCENDING, MongoClient
from pymongo.database import Database

from config import DATABASE_NAME, DATABASE_URL, MONGO_TIMEOUT_MS

logger = logging.getLogger(__name__)

# collection -> field carrying a unique index
UNIQUE_FIELDS = {
    "user": "email",
    "category": "name",
    "subcategory": "name",
    "product": "title",
}


def connect(url: str = DATABASE_URL, name: str = DATABASE_NAME) -> MongoClient:
    """Open the client and make sure the server answers before serving requests."""
    client = MongoClient(url, serverSelectionTimeoutMS=MONGO_TIMEOUT_MS, tz_aware=True)
    try:
        client.admin.command("ping")
    except Exception:
        client.close()
        logger.error("Mongo Db connection failed (%s)", name)
        raise
    logger.info("Mongo Db connected (%s)", name)
    ensure_indexes(client[name])
    return client


def close(client: Optional[MongoClient]) -> None:
    if client is not None:
        client.close()
        logger.info("Mongo Db connection closed")


def ensure_indexes(db: Database) -> None:
    for collection, field in UNIQUE_FIELDS.items():
        db[collection].create_index([(field, ASCENDING)], unique=True)


def get_db(request: Request) -> Database:
    return request.app.state.db


def to_object_id(value: Any) -> Optional[ObjectId]:
    """Return an ObjectId for `value`, or None when it cannot name a document."""
    if isinstance(value, ObjectId):
        return value
    if isinstance(value, str) and ObjectId.is_valid(value):
        return ObjectId(value)
    return None


def create_document(db: Database, collection_name: str, data: Union[BaseModel, Dict[str, Any]]) -> ObjectId:
    """Insert a document, stamping created_at/updated_at, and return its id."""
    doc = data.model_dump() if isinstance(data, BaseModel) else dict(data)
    now = datetime.now(timezone.utc)
    doc["created_at"] = now
    doc["updated_at"] = now
    result = db[collection_name].insert_one(doc)
    return result.inserted_id


def get_documents(db: Database, collection_name: str, filter_dict: Optional[Dict[str, Any]] = None) -> List[Dict[str, Any]]:
    return list(db[collection_name].find(filter_dict or {}))


def find_by_id(db: Database, collection_name: str, doc_id: Any) -> Optional[Dict[str, Any]]:
    obj_id = to_object_id(doc_id)
    if obj_id is None:
        return None
    return db[collection_name].find_one({"_id": obj_id})


def serialize_doc(doc: Any) -> Any:
    """Turn a Mongo document into JSON-friendly data (`_id` -> `id`, ObjectIds -> str)."""
    if isinstance(doc, ObjectId):
        return str(doc)
    if isinstance(doc, list):
        return [serialize_doc(v) for v in doc]
    if not isinstance(doc, dict):
        return doc
    out: Dict[str, Any] = {}
    for k, v in doc.items():
        if k == "_id":
            out["id"] = serialize_doc(v)
        else:
            out[k] = serialize_doc(v)
    return out
