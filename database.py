"""
MongoDB access for EstateEase

One process-wide MongoClient, opened by the app lifespan and handed to
request handlers through the get_db dependency.
"""
from datetime import datetime, timezone
from typing import Any, Dict, List, Optional, Union

from bson import ObjectId
from bson.errors import InvalidId
from fastapi import HTTPException
from pydantic import BaseModel
from pymongo import MongoClient
from pymongo.database import Database
from pymongo.errors import PyMongoError
from pymongo.results import UpdateResult
from pymongo.server_api import ServerApi

from logger import get_logger, log_db_operation

client: Optional[MongoClient] = None
db: Optional[Database] = None

logger = get_logger("db")


def init_db(database_url: str, database_name: str) -> Database:
    """Connect and ping; raises if the deployment is unreachable."""
    global client, db
    client = MongoClient(database_url, server_api=ServerApi("1"), tz_aware=True)
    client.admin.command("ping")
    db = client[database_name]
    logger.info("Pinged MongoDB deployment, using database %s", database_name)
    return db


def close_db() -> None:
    global client, db
    if client is not None:
        client.close()
    client = None
    db = None


def get_db() -> Database:
    if db is None:
        raise RuntimeError("Database is not initialized")
    return db


def now_utc() -> datetime:
    return datetime.now(timezone.utc)


def parse_object_id(value: str) -> ObjectId:
    try:
        return ObjectId(value)
    except (InvalidId, TypeError):
        raise HTTPException(status_code=400, detail="Invalid id")


def serialize_document(doc: Dict[str, Any]) -> Dict[str, Any]:
    out = {}
    for key, value in doc.items():
        if isinstance(value, ObjectId):
            value = str(value)
        elif isinstance(value, datetime):
            if value.tzinfo is None:
                value = value.replace(tzinfo=timezone.utc)
            value = value.isoformat()
        out[key] = value
    return out


def create_document(database: Database, collection_name: str, data: Union[BaseModel, Dict[str, Any]]) -> str:
    data_dict = data.model_dump() if isinstance(data, BaseModel) else dict(data)
    try:
        result = database[collection_name].insert_one(data_dict)
    except PyMongoError as e:
        log_db_operation("INSERT", collection_name, False, error=str(e))
        raise
    log_db_operation("INSERT", collection_name, True, rows=1)
    return str(result.inserted_id)


def get_documents(database: Database, collection_name: str, filter_dict: Optional[Dict[str, Any]] = None) -> List[Dict[str, Any]]:
    try:
        docs = list(database[collection_name].find(filter_dict or {}))
    except PyMongoError as e:
        log_db_operation("FIND", collection_name, False, error=str(e))
        raise
    log_db_operation("FIND", collection_name, True, rows=len(docs))
    return [serialize_document(d) for d in docs]


def get_document(database: Database, collection_name: str, filter_dict: Dict[str, Any]) -> Optional[Dict[str, Any]]:
    try:
        doc = database[collection_name].find_one(filter_dict)
    except PyMongoError as e:
        log_db_operation("FIND_ONE", collection_name, False, error=str(e))
        raise
    log_db_operation("FIND_ONE", collection_name, True, rows=0 if doc is None else 1)
    return doc


def update_document(database: Database, collection_name: str, filter_dict: Dict[str, Any], update: Dict[str, Any], upsert: bool = False) -> UpdateResult:
    try:
        result = database[collection_name].update_one(filter_dict, update, upsert=upsert)
    except PyMongoError as e:
        log_db_operation("UPDATE", collection_name, False, error=str(e))
        raise
    log_db_operation("UPDATE", collection_name, True, rows=result.modified_count)
    return result


def delete_document(database: Database, collection_name: str, filter_dict: Dict[str, Any]) -> int:
    try:
        result = database[collection_name].delete_one(filter_dict)
    except PyMongoError as e:
        log_db_operation("DELETE", collection_name, False, error=str(e))
        raise
    log_db_operation("DELETE", collection_name, True, rows=result.deleted_count)
    return result.deleted_count
