from __future__ import annotations

from contextlib import contextmanager
from datetime import datetime
from typing import Any, Dict, Iterator, Optional

from bson import ObjectId
from pymongo import ASCENDING, MongoClient
from pymongo.database import Database

from storefront.schema import INDEXES
from storefront.util.time import iso


def _debug(msg: str) -> None:
    print(f"[db] {msg}")


def create_client(mongo_uri: str) -> MongoClient:
    """Create a pooled client. The driver connects lazily on first use.

    `tz_aware=True` keeps createdAt values as aware UTC datetimes on read.
    """
    return MongoClient(mongo_uri, tz_aware=True)


@contextmanager
def connect(mongo_uri: str, db_name: str) -> Iterator[Database]:
    """Open a short-lived client for scripts; the API keeps one per process."""
    client = create_client(mongo_uri)
    try:
        yield client[db_name]
    finally:
        client.close()


def init_db(db: Database) -> None:
    """Create indexes (idempotent)."""
    _debug(f"Ensuring indexes on database {db.name}")
    for collection, fields in INDEXES.items():
        for field, unique in fields:
            db[collection].create_index([(field, ASCENDING)], unique=unique)


def parse_object_id(value: Any) -> Optional[ObjectId]:
    """Return an ObjectId for a 24-char hex string (or ObjectId), else None."""
    if isinstance(value, ObjectId):
        return value
    if isinstance(value, str) and ObjectId.is_valid(value):
        return ObjectId(value)
    return None


def to_json(value: Any) -> Any:
    """Make a document (or list of them) JSON-friendly.

    ObjectIds become hex strings and datetimes ISO-8601 strings; `_id` keeps
    its name so clients see the same shape the store holds.
    """
    if isinstance(value, ObjectId):
        return str(value)
    if isinstance(value, datetime):
        return iso(value)
    if isinstance(value, dict):
        return {k: to_json(v) for k, v in value.items()}
    if isinstance(value, (list, tuple)):
        return [to_json(v) for v in value]
    return value


def public_doc(doc: Optional[Dict[str, Any]]) -> Optional[Dict[str, Any]]:
    return None if doc is None else to_json(doc)
