"""MongoDB access: client lifecycle, indexes and document helpers."""
from datetime import datetime, timezone
from typing import Any, Optional

from bson import ObjectId
from motor.motor_asyncio import AsyncIOMotorClient, AsyncIOMotorDatabase
from pymongo import ASCENDING
from structlog import get_logger

from marketplace.config import settings

logger = get_logger()

_client: Optional[AsyncIOMotorClient] = None


def get_client() -> AsyncIOMotorClient:
    global _client
    if _client is None:
        _client = AsyncIOMotorClient(settings.MONGODB_URL)
    return _client


async def get_db() -> AsyncIOMotorDatabase:
    return get_client()[settings.MONGODB_DB]


def close_client():
    global _client
    if _client is not None:
        _client.close()
        _client = None


async def ensure_indexes(db: AsyncIOMotorDatabase):
    await db.categories.create_index([("slug", ASCENDING)], unique=True, name="uniq_category_slug")
    await db.categories.create_index([("isActive", ASCENDING), ("sortOrder", ASCENDING)])
    await db.subcategories.create_index(
        [("categoryId", ASCENDING), ("slug", ASCENDING)], unique=True, name="uniq_subcategory_slug"
    )
    await db.users.create_index([("email", ASCENDING)], unique=True, name="uniq_user_email")
    await db.properties.create_index([("status", ASCENDING), ("approvalStatus", ASCENDING)])
    await db.properties.create_index([("propertyType", ASCENDING), ("subCategory", ASCENDING)])
    await db.conversations.create_index(
        [("property", ASCENDING), ("buyer", ASCENDING), ("seller", ASCENDING)]
    )
    await db.messages.create_index([("conversationId", ASCENDING), ("createdAt", ASCENDING)])
    await db.transactions.create_index([("merchantTransactionId", ASCENDING)], sparse=True)
    await db.transactions.create_index([("razorpayOrderId", ASCENDING)], sparse=True)
    logger.info("MongoDB indexes ensured")


def utcnow() -> datetime:
    return datetime.now(timezone.utc)


def parse_object_id(value: Any) -> Optional[ObjectId]:
    """Return an ObjectId for a valid id string (or ObjectId), else None."""
    if isinstance(value, ObjectId):
        return value
    if isinstance(value, str) and ObjectId.is_valid(value):
        return ObjectId(value)
    return None


def serialize(value: Any) -> Any:
    """Make a Mongo document JSON friendly (ObjectId -> str, recursively)."""
    if isinstance(value, ObjectId):
        return str(value)
    if isinstance(value, dict):
        return {k: serialize(v) for k, v in value.items()}
    if isinstance(value, (list, tuple)):
        return [serialize(v) for v in value]
    return value


def pagination(page: int, limit: int, total: int) -> dict:
    return {
        "page": page,
        "limit": limit,
        "total": total,
        "pages": (total + limit - 1) // limit if limit else 0,
    }
