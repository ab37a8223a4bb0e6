"""
Database Helper Functions

MongoDB helpers used by the API routes: generic CRUD plus the restaurant
settings, delivery fee and order lookups the routes need.
"""

import logging
import os
import time
from datetime import datetime, timezone
from typing import Any, Dict, List, Optional, Union

from bson import ObjectId
from bson.errors import InvalidId
from dotenv import load_dotenv
from pydantic import BaseModel
from pymongo import ASCENDING, DESCENDING, MongoClient

from schemas import Deliveryfee, Order, PreorderSchedule, Restaurant, Voucher

# Load environment variables from .env file
load_dotenv()

logger = logging.getLogger(__name__)

_client = None
db = None

database_url = os.getenv("DATABASE_URL")
database_name = os.getenv("DATABASE_NAME")

if database_url and database_name:
    _client = MongoClient(database_url)
    db = _client[database_name]
    logger.info("Using MongoDB database %s", database_name)


class DatabaseUnavailable(Exception):
    """Raised when DATABASE_URL / DATABASE_NAME are not configured."""


def _ensure_db():
    if db is None:
        raise DatabaseUnavailable("Database not available. Check DATABASE_URL and DATABASE_NAME environment variables.")


def _to_dict(data: Union[BaseModel, dict]) -> dict:
    if isinstance(data, BaseModel):
        return data.model_dump(exclude_none=True)
    return dict(data)


def _now_ms() -> int:
    return int(time.time() * 1000)


# CRUD helpers

def create_document(collection_name: str, data: Union[BaseModel, dict]) -> str:
    _ensure_db()
    payload = _to_dict(data)
    payload.pop("id", None)
    payload["creation_time"] = _now_ms()
    payload["updated_at"] = datetime.now(timezone.utc)
    result = db[collection_name].insert_one(payload)
    logger.info("Inserted %s %s", collection_name, result.inserted_id)
    return str(result.inserted_id)


def get_documents(collection_name: str, filter_dict: Optional[dict] = None, limit: Optional[int] = None, sort: Optional[list] = None) -> List[dict]:
    _ensure_db()
    cursor = db[collection_name].find(filter_dict or {})
    if sort:
        cursor = cursor.sort(sort)
    if limit:
        cursor = cursor.limit(int(limit))
    return [serialize_doc(doc) for doc in cursor]


def get_document_by_id(collection_name: str, _id: str) -> Optional[dict]:
    _ensure_db()
    try:
        oid = ObjectId(_id)
    except InvalidId:
        return None
    return serialize_doc(db[collection_name].find_one({"_id": oid}))


def update_document(collection_name: str, _id: str, update_data: Dict[str, Any]) -> bool:
    _ensure_db()
    try:
        oid = ObjectId(_id)
    except InvalidId:
        return False
    update = {"$set": _to_dict(update_data)}
    update["$set"]["updated_at"] = datetime.now(timezone.utc)
    result = db[collection_name].update_one({"_id": oid}, update)
    return result.matched_count > 0


def delete_document(collection_name: str, _id: str) -> bool:
    _ensure_db()
    try:
        oid = ObjectId(_id)
    except InvalidId:
        return False
    result = db[collection_name].delete_one({"_id": oid})
    if result.deleted_count:
        logger.info("Deleted %s %s", collection_name, _id)
    return result.deleted_count > 0


def ensure_indexes() -> None:
    """Create the lookup indexes the order and delivery fee queries rely on."""
    _ensure_db()
    db["order"].create_index([("customer_id", ASCENDING)])
    db["order"].create_index([("status", ASCENDING)])
    db["order"].create_index([("status", ASCENDING), ("creation_time", DESCENDING)])
    db["deliveryfee"].create_index([("barangay", ASCENDING)], unique=True)
    db["voucher"].create_index([("code", ASCENDING)], unique=True)


# Restaurant settings (a single document)

def get_restaurant() -> Restaurant:
    _ensure_db()
    doc = db["restaurant"].find_one({})
    return Restaurant.model_validate(doc or {})


def get_preorder_schedule() -> PreorderSchedule:
    return get_restaurant().preorder_schedule


def save_preorder_schedule(schedule: PreorderSchedule) -> PreorderSchedule:
    _ensure_db()
    db["restaurant"].update_one(
        {},
        {
            "$set": {"preorder_schedule": schedule.model_dump(), "updated_at": datetime.now(timezone.utc)},
            "$setOnInsert": {"creation_time": _now_ms()},
        },
        upsert=True,
    )
    logger.info(
        "Saved pre-order schedule (restrictions=%s, %d dates)",
        schedule.restrictions_enabled,
        len(schedule.dates),
    )
    return schedule


# Delivery fees

def get_delivery_fees() -> List[Deliveryfee]:
    return [Deliveryfee.model_validate(doc) for doc in get_documents("deliveryfee", sort=[["barangay", 1]])]


def upsert_delivery_fee(fee: Deliveryfee) -> Deliveryfee:
    _ensure_db()
    db["deliveryfee"].update_one(
        {"barangay": fee.barangay},
        {
            "$set": {"fee": fee.fee, "updated_at": datetime.now(timezone.utc)},
            "$setOnInsert": {"creation_time": _now_ms()},
        },
        upsert=True,
    )
    return fee


def delete_delivery_fee(barangay: str) -> bool:
    _ensure_db()
    result = db["deliveryfee"].delete_one({"barangay": barangay})
    return result.deleted_count > 0


# Vouchers

def get_vouchers() -> List[Voucher]:
    return [Voucher.model_validate(doc) for doc in get_documents("voucher", sort=[["code", 1]])]


def get_voucher_by_code(code: str) -> Optional[Voucher]:
    _ensure_db()
    doc = db["voucher"].find_one({"code": code.strip().upper()})
    return Voucher.model_validate(serialize_doc(doc)) if doc else None


def create_voucher(voucher: Voucher) -> Optional[str]:
    """Insert a new voucher; None when the code is already taken."""
    if get_voucher_by_code(voucher.code) is not None:
        return None
    return create_document("voucher", voucher)


def increment_voucher_usage(voucher: Voucher) -> bool:
    """Count one use, unless the usage limit was reached in the meantime."""
    _ensure_db()
    result = db["voucher"].update_one(
        {"code": voucher.code, "usage_count": {"$lt": voucher.usage_limit}},
        {"$inc": {"usage_count": 1}, "$set": {"updated_at": datetime.now(timezone.utc)}},
    )
    return result.matched_count > 0


# Orders

def find_orders(customer_id: Optional[str] = None, status: Optional[str] = None) -> List[Order]:
    """Candidate orders narrowed by the customer_id / status indexes.

    Fine-grained filtering and ordering happen in order_filter_utils.
    """
    filt = {}
    if customer_id:
        filt["customer_id"] = customer_id
    if status:
        filt["status"] = status
    return [Order.model_validate(doc) for doc in get_documents("order", filt)]


def get_order(order_id: str) -> Optional[Order]:
    doc = get_document_by_id("order", order_id)
    return Order.model_validate(doc) if doc else None


# Utility

def serialize_doc(doc: Optional[dict]) -> Optional[dict]:
    if not doc:
        return None
    d = dict(doc)
    if "_id" in d:
        d["_id"] = str(d["_id"])  # convert ObjectId to string
    return d
