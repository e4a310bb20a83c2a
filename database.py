"""
MongoDB access for the Innexora backend.

The main database holds the hotel registry; every hotel (tenant) gets its own
database named `<prefix>_<subdomain>` holding guests, orders, bills, tickets
and staff users. Collection names are the lowercase schema class names.
"""

from datetime import datetime, timezone
from typing import Any, Dict, List, Optional, Union

from bson import ObjectId
from pydantic import BaseModel
from pymongo import MongoClient
from pymongo.database import Database

from config import Settings, get_settings

_settings = get_settings()

client: Optional[MongoClient] = MongoClient(_settings.database_url) if _settings.database_url else None
db: Optional[Database] = client[_settings.database_name] if client is not None else None


def utcnow() -> datetime:
    return datetime.now(timezone.utc)


def get_client() -> MongoClient:
    if client is None:
        raise RuntimeError("Database not available. Check DATABASE_URL.")
    return client


def tenant_database(mongo: MongoClient, subdomain: str, settings: Optional[Settings] = None) -> Database:
    settings = settings or get_settings()
    return mongo[f"{settings.tenant_database_prefix}_{subdomain.lower()}"]


def create_document(collection_name: str, data: Union[BaseModel, Dict[str, Any]], database: Optional[Database] = None) -> str:
    """Insert a document stamped with created_at/updated_at and return its id."""
    target = database if database is not None else db
    if target is None:
        raise RuntimeError("Database not available. Check DATABASE_URL.")
    if isinstance(data, BaseModel):
        data_dict = data.model_dump()
    else:
        data_dict = dict(data)
    now = utcnow()
    data_dict["created_at"] = now
    data_dict["updated_at"] = now
    result = target[collection_name].insert_one(data_dict)
    return str(result.inserted_id)


def get_documents(
    collection_name: str,
    filter_dict: Optional[Dict[str, Any]] = None,
    limit: Optional[int] = None,
    database: Optional[Database] = None,
) -> List[Dict[str, Any]]:
    target = database if database is not None else db
    if target is None:
        raise RuntimeError("Database not available. Check DATABASE_URL.")
    cursor = target[collection_name].find(filter_dict or {})
    if limit:
        cursor = cursor.limit(limit)
    return list(cursor)


def parse_object_id(value: Any) -> ObjectId:
    if isinstance(value, ObjectId):
        return value
    try:
        return ObjectId(str(value))
    except Exception:
        raise ValueError(f"Invalid ObjectId: {value}")


def serialize_doc(doc: Optional[Dict[str, Any]]) -> Optional[Dict[str, Any]]:
    if not doc:
        return doc
    doc = dict(doc)
    if "_id" in doc:
        doc["id"] = str(doc.pop("_id"))
    # Convert nested ObjectIds if any
    for k, v in list(doc.items()):
        if isinstance(v, ObjectId):
            doc[k] = str(v)
        elif isinstance(v, dict):
            doc[k] = serialize_doc(v)
        elif isinstance(v, list):
            new_list = []
            for item in v:
                if isinstance(item, dict):
                    item = serialize_doc(item)
                elif isinstance(item, ObjectId):
                    item = str(item)
                new_list.append(item)
            doc[k] = new_list
    return doc
