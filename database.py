"""
MongoDB access

The client is created once at import time from DATABASE_URL and
DATABASE_NAME. ``db`` stays ``None`` when either is missing; routes reach
the database through ``get_db``/``collection`` so they fail with a clean
500 instead of an AttributeError.
"""

import logging
import math
import time
from datetime import datetime, timezone
from typing import Any, Dict, List, Optional, Sequence, Tuple, Union

from bson import ObjectId
from pydantic import BaseModel
from pymongo import ASCENDING, DESCENDING, MongoClient

import config
from errors import BadRequestError, DatabaseError

logger = logging.getLogger(__name__)

_client = None
db = None

if config.DATABASE_URL and config.DATABASE_NAME:
    try:
        _client = MongoClient(config.DATABASE_URL, tz_aware=True)
        db = _client[config.DATABASE_NAME]
        logger.info("MongoDB client created for database %s", config.DATABASE_NAME)
    except Exception as e:
        logger.error("Could not create MongoDB client: %s", e)
        db = None


def utcnow() -> datetime:
    return datetime.now(timezone.utc)


def as_utc(value: Optional[datetime]) -> Optional[datetime]:
    """Attach UTC to naive datetimes coming back from the driver."""
    if value is None or value.tzinfo is not None:
        return value
    return value.replace(tzinfo=timezone.utc)


def get_db():
    if db is None:
        raise DatabaseError("Database not available. Set DATABASE_URL and DATABASE_NAME")
    return db


def collection(name: str):
    return get_db()[name]


# -----------------
# Serialization helpers
# -----------------

def serialize(value: Any) -> Any:
    """Make a Mongo document JSON friendly: ObjectId -> str and ``_id`` -> ``id``."""
    if isinstance(value, ObjectId):
        return str(value)
    if isinstance(value, dict):
        out = {}
        for k, v in value.items():
            if k == "_id":
                out["id"] = serialize(v)
            else:
                out[k] = serialize(v)
        return out
    if isinstance(value, (list, tuple)):
        return [serialize(v) for v in value]
    if isinstance(value, datetime):
        return as_utc(value)
    return value


def is_object_id(value: Any) -> bool:
    return isinstance(value, str) and ObjectId.is_valid(value) and len(value) == 24


def to_object_id(value: Union[str, ObjectId], message: str = "Invalid ID format") -> ObjectId:
    if isinstance(value, ObjectId):
        return value
    if not is_object_id(value):
        raise BadRequestError(message)
    return ObjectId(value)


def _to_dict(data: Union[BaseModel, dict]) -> dict:
    if isinstance(data, BaseModel):
        return data.model_dump()
    return dict(data)


# -----------------
# CRUD
# -----------------

def create_document(collection_name: str, data: Union[BaseModel, dict]) -> str:
    """Insert a document stamped with created_at/updated_at and return its id."""
    doc = _to_dict(data)
    now = utcnow()
    doc.setdefault("created_at", now)
    doc["updated_at"] = now
    result = collection(collection_name).insert_one(doc)
    logger.debug("Inserted %s into %s", result.inserted_id, collection_name)
    return str(result.inserted_id)


def get_documents(collection_name: str, filter_dict: Optional[dict] = None, limit: Optional[int] = None) -> List[dict]:
    cursor = collection(collection_name).find(filter_dict or {})
    if limit:
        cursor = cursor.limit(limit)
    return list(cursor)


def get_by_id(collection_name: str, doc_id: str, message: str = "Invalid ID format") -> Optional[dict]:
    return collection(collection_name).find_one({"_id": to_object_id(doc_id, message)})


def update_document(collection_name: str, doc_id: Union[str, ObjectId], changes: dict,
                    unset: Optional[Sequence[str]] = None) -> Optional[dict]:
    """Apply ``$set`` (plus optional ``$unset``) and return the updated document."""
    oid = to_object_id(doc_id)
    update: Dict[str, Any] = {"$set": {**changes, "updated_at": utcnow()}}
    if unset:
        update["$unset"] = {field: "" for field in unset}
    coll = collection(collection_name)
    result = coll.update_one({"_id": oid}, update)
    if result.matched_count == 0:
        return None
    return coll.find_one({"_id": oid})


def delete_document(collection_name: str, doc_id: Union[str, ObjectId]) -> bool:
    result = collection(collection_name).delete_one({"_id": to_object_id(doc_id)})
    return result.deleted_count > 0


def parse_sort(sort: Optional[str], default: str = "-created_at") -> List[Tuple[str, int]]:
    """``-field`` sorts descending, ``field`` ascending; comma separated keys allowed."""
    spec = []
    for key in (sort or default).split(","):
        key = key.strip()
        if not key:
            continue
        if key.startswith("-"):
            spec.append((key[1:], DESCENDING))
        else:
            spec.append((key, ASCENDING))
    return spec


def clamp_pagination(page: Optional[int], limit: Optional[int], default_limit: int = config.DEFAULT_LIMIT) -> Tuple[int, int]:
    page = max(int(page or config.DEFAULT_PAGE), 1)
    limit = int(limit or default_limit)
    limit = min(max(limit, 1), config.MAX_LIMIT)
    return page, limit


def find_paginated(collection_name: str, filter_dict: Optional[dict] = None, page: Optional[int] = 1,
                   limit: Optional[int] = None, sort: Optional[str] = None,
                   projection: Optional[dict] = None) -> Dict[str, Any]:
    """Return one page of documents plus totals for the response ``meta`` block."""
    page, limit = clamp_pagination(page, limit)
    coll = collection(collection_name)
    filter_dict = filter_dict or {}
    started = time.perf_counter()
    total = coll.count_documents(filter_dict)
    cursor = coll.find(filter_dict, projection).sort(parse_sort(sort)).skip((page - 1) * limit).limit(limit)
    items = list(cursor)
    logger.debug(
        "find_paginated %s page=%d limit=%d total=%d in %.1f ms",
        collection_name, page, limit, total, (time.perf_counter() - started) * 1000,
    )
    return {
        "data": items,
        "total": total,
        "page": page,
        "limit": limit,
        "total_pages": math.ceil(total / limit) if limit else 0,
    }


def ensure_indexes() -> None:
    """Create the unique and lookup indexes the API relies on."""
    database = get_db()
    database["user"].create_index("email", unique=True)
    database["session"].create_index("token", unique=True)
    database["blogpost"].create_index("slug", unique=True)
    database["blogpost"].create_index([("publish_type", ASCENDING), ("published_at", DESCENDING)])
    database["blogcategory"].create_index("slug", unique=True)
    database["category"].create_index("slug", unique=True)
    database["product"].create_index("slug", unique=True)
    database["product"].create_index([("publish_type", ASCENDING), ("visibility", ASCENDING)])
    database["blogcomment"].create_index([("post_id", ASCENDING), ("status", ASCENDING)])
    database["formsubmission"].create_index([("status", ASCENDING), ("created_at", DESCENDING)])
    database["formsubmission"].create_index([("metadata.ip_address", ASCENDING), ("created_at", DESCENDING)])
    database["cmspage"].create_index("page", unique=True)
    logger.info("MongoDB indexes ensured")
