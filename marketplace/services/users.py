import asyncio
import re
from typing import Optional

from pymongo import DESCENDING
from structlog import get_logger

from marketplace.core.errors import NotFoundError
from marketplace.db import pagination, parse_object_id, utcnow
from marketplace.schemas.admin import UserStatus

logger = get_logger()

# never leaves the database
HIDDEN_FIELDS = {"password": 0}


async def admin_list_users(db, user_type: Optional[str] = None, search: str = "", page: int = 1, limit: int = 20) -> dict:
    query = {}
    if user_type:
        query["userType"] = user_type
    if search:
        pattern = re.escape(search)
        query["$or"] = [
            {"name": {"$regex": pattern, "$options": "i"}},
            {"email": {"$regex": pattern, "$options": "i"}},
            {"phone": {"$regex": pattern, "$options": "i"}},
        ]
    users, total = await asyncio.gather(
        db.users.find(query, HIDDEN_FIELDS).sort("createdAt", DESCENDING)
        .skip((page - 1) * limit).limit(limit).to_list(length=None),
        db.users.count_documents(query),
    )
    return {"users": users, "pagination": pagination(page, limit, total)}


async def set_user_status(db, user_id: str, status: UserStatus) -> dict:
    oid = parse_object_id(user_id)
    if oid is None:
        raise NotFoundError("User not found")
    result = await db.users.update_one({"_id": oid}, {"$set": {"status": status.value, "updatedAt": utcnow()}})
    if result.matched_count == 0:
        raise NotFoundError("User not found")
    logger.info("User status changed", user_id=user_id, status=status.value)
    return await db.users.find_one({"_id": oid}, HIDDEN_FIELDS)
