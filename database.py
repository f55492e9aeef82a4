"""
MongoDB access helpers.

`db` is None when no DATABASE_URL is configured; callers go through
`get_db()` which turns that into a `DatabaseUnavailable` error so the
public read paths can fall back to compiled-in data.
"""

import logging
from datetime import datetime, timezone
from typing import Any, Dict, List, Optional, Sequence, Tuple, Union

from pydantic import BaseModel
from pymongo import MongoClient
from pymongo.errors import ConnectionFailure, PyMongoError

from config import settings

logger = logging.getLogger(__name__)

client: Optional[MongoClient] = None
db = None

if settings.database_url:
    client = MongoClient(
        settings.database_url,
        serverSelectionTimeoutMS=settings.database_timeout_ms,
    )
    db = client[settings.database_name]


class DatabaseUnavailable(ConnectionFailure):
    """Raised when no database handle is configured."""


def get_db():
    if db is None:
        raise DatabaseUnavailable("Database not available")
    return db


def now() -> datetime:
    return datetime.now(timezone.utc)


def create_document(collection_name: str, data: Union[BaseModel, dict]) -> dict:
    """Insert a document stamped with createdAt/updatedAt and return it with its _id."""
    if isinstance(data, BaseModel):
        doc = data.model_dump()
    else:
        doc = dict(data)
    stamp = now()
    doc.setdefault("createdAt", stamp)
    doc["updatedAt"] = stamp
    result = get_db()[collection_name].insert_one(doc)
    doc["_id"] = result.inserted_id
    return doc


def get_documents(
    collection_name: str,
    filter_dict: Optional[dict] = None,
    sort: Optional[Sequence[Tuple[str, int]]] = None,
    skip: int = 0,
    limit: Optional[int] = None,
) -> List[dict]:
    cursor = get_db()[collection_name].find(filter_dict or {})
    if sort:
        cursor = cursor.sort(list(sort))
    if skip:
        cursor = cursor.skip(skip)
    if limit:
        cursor = cursor.limit(limit)
    return list(cursor)


def serialize(doc: Optional[dict]) -> Optional[Dict[str, Any]]:
    if doc is None:
        return None
    out = dict(doc)
    if "_id" in out:
        out["_id"] = str(out["_id"])
    return out


def ensure_indexes() -> None:
    try:
        get_db()["user"].create_index("email", unique=True)
    except PyMongoError as exc:
        logger.warning("Could not create indexes: %s", exc)


def status() -> Dict[str, Any]:
    """Connection diagnostics for the /test probe.

    In production only the connection state is reported.
    """
    report: Dict[str, Any] = {
        "database": "not-available",
        "database_url": "set" if settings.database_url else "not-set",
    }
    if not settings.is_production:
        report["database_name"] = settings.database_name
        report["collections"] = []
    if db is None:
        return report
    try:
        collections = db.list_collection_names()[:10]
        report["database"] = "connected"
    except PyMongoError as exc:
        logger.warning("Database probe failed: %s", exc)
        report["database"] = "error" if settings.is_production else f"error: {str(exc)[:80]}"
        return report
    if not settings.is_production:
        report["collections"] = collections
    return report
