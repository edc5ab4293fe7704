import asyncio
import re
from typing import List, Optional

from pymongo import DESCENDING
from structlog import get_logger

from marketplace.core.errors import ForbiddenError, InvalidRequestError, NotFoundError
from marketplace.db import pagination, parse_object_id, utcnow
from marketplace.schemas.properties import ApprovalRequest, ApprovalStatus, PropertyCreate, PropertyQuery, PropertyUpdate

logger = get_logger()

PUBLIC_FILTER = {"status": "active", "approvalStatus": ApprovalStatus.approved.value}
LISTING_SORT = [("premium", DESCENDING), ("featured", DESCENDING), ("createdAt", DESCENDING)]
FEATURED_LIMIT = 12


def is_admin(user: Optional[dict]) -> bool:
    return bool(user) and str(user.get("userType", "")).lower() == "admin"


def owner_of(doc: dict) -> Optional[str]:
    # older listings stored the owner under several names
    for key in ("ownerId", "owner", "seller", "postedBy", "user", "createdBy", "sellerId"):
        value = doc.get(key)
        if value:
            return str(value)
    return None


def build_public_filter(query: PropertyQuery) -> dict:
    mongo_filter = dict(PUBLIC_FILTER)
    if query.propertyType:
        mongo_filter["propertyType"] = query.propertyType
    if query.subCategory:
        mongo_filter["subCategory"] = query.subCategory
    if query.featured is not None:
        mongo_filter["featured"] = query.featured
    if query.premium is not None:
        mongo_filter["premium"] = query.premium
    price = {}
    if query.minPrice is not None:
        price["$gte"] = query.minPrice
    if query.maxPrice is not None:
        price["$lte"] = query.maxPrice
    if price:
        mongo_filter["price"] = price
    if query.q:
        mongo_filter["title"] = {"$regex": re.escape(query.q), "$options": "i"}
    return mongo_filter


async def list_properties(db, query: PropertyQuery, extra_filter: Optional[dict] = None) -> dict:
    if query.minPrice is not None and query.maxPrice is not None and query.minPrice > query.maxPrice:
        raise InvalidRequestError("minPrice cannot be greater than maxPrice")

    mongo_filter = build_public_filter(query)
    if extra_filter:
        mongo_filter.update(extra_filter)
    docs, total = await asyncio.gather(
        db.properties.find(mongo_filter).sort(LISTING_SORT)
        .skip((query.page - 1) * query.limit).limit(query.limit).to_list(length=None),
        db.properties.count_documents(mongo_filter),
    )
    return {"properties": docs, "pagination": pagination(query.page, query.limit, total)}


async def list_featured(db) -> List[dict]:
    mongo_filter = dict(PUBLIC_FILTER, featured=True)
    return await db.properties.find(mongo_filter).sort(LISTING_SORT).limit(FEATURED_LIMIT).to_list(length=None)


async def _load(db, property_id: str) -> dict:
    oid = parse_object_id(property_id)
    doc = await db.properties.find_one({"_id": oid}) if oid else None
    if not doc:
        raise NotFoundError("Property not found")
    return doc


async def get_property(db, property_id: str, user: Optional[dict] = None) -> dict:
    doc = await _load(db, property_id)
    publicly_visible = doc.get("status") == "active" and doc.get("approvalStatus") == ApprovalStatus.approved.value
    if not publicly_visible:
        viewer = str(user.get("id")) if user else None
        if not (is_admin(user) or (viewer and viewer == owner_of(doc))):
            # unapproved listings do not exist for the public
            raise NotFoundError("Property not found")
    return doc


async def create_property(db, payload: PropertyCreate, user: dict) -> dict:
    if str(user.get("userType", "")).lower() not in ("seller", "agent", "admin"):
        raise ForbiddenError("Only sellers and agents can post properties")

    now = utcnow()
    doc = payload.model_dump()
    doc.update({
        "ownerId": str(user["id"]),
        "status": "active",
        "approvalStatus": ApprovalStatus.pending.value,
        "featured": False,
        "premium": False,
        "createdAt": now,
        "updatedAt": now,
    })
    result = await db.properties.insert_one(doc)
    doc["_id"] = result.inserted_id
    logger.info("Property created", property_id=str(result.inserted_id), owner_id=doc["ownerId"])
    return doc


async def update_property(db, property_id: str, payload: PropertyUpdate, user: dict) -> dict:
    doc = await _load(db, property_id)
    if owner_of(doc) != str(user.get("id")):
        raise ForbiddenError("Only the owner can edit this property")

    changes = {k: v for k, v in payload.model_dump(exclude_unset=True).items() if v is not None}
    if not changes:
        raise InvalidRequestError("No fields to update")
    # edits go back through moderation
    changes.update({"approvalStatus": ApprovalStatus.pending.value, "updatedAt": utcnow()})
    await db.properties.update_one({"_id": doc["_id"]}, {"$set": changes})
    return await db.properties.find_one({"_id": doc["_id"]})


async def retire_property(db, property_id: str, user: dict):
    doc = await _load(db, property_id)
    if not (is_admin(user) or owner_of(doc) == str(user.get("id"))):
        raise ForbiddenError("Only the owner can remove this property")
    await db.properties.update_one(
        {"_id": doc["_id"]}, {"$set": {"status": "inactive", "updatedAt": utcnow()}}
    )
    logger.info("Property retired", property_id=property_id, by=user.get("id"))


async def list_user_properties(db, user_id: str) -> List[dict]:
    return await db.properties.find({"ownerId": str(user_id)}).sort("createdAt", DESCENDING).to_list(length=None)


async def admin_list_properties(db, approval_status: Optional[str] = None, page: int = 1, limit: int = 20) -> dict:
    mongo_filter = {"approvalStatus": approval_status} if approval_status else {}
    docs, total = await asyncio.gather(
        db.properties.find(mongo_filter).sort("createdAt", DESCENDING)
        .skip((page - 1) * limit).limit(limit).to_list(length=None),
        db.properties.count_documents(mongo_filter),
    )
    return {"properties": docs, "pagination": pagination(page, limit, total)}


async def set_approval(db, property_id: str, request: ApprovalRequest, admin: dict) -> dict:
    doc = await _load(db, property_id)
    now = utcnow()
    update = {
        "approvalStatus": request.approvalStatus.value,
        "updatedAt": now,
        "moderatedBy": str(admin.get("id")),
    }
    if request.approvalStatus == ApprovalStatus.approved:
        update["approvedAt"] = now
    elif request.approvalStatus == ApprovalStatus.rejected:
        update["rejectionReason"] = request.rejectionReason or ""
    await db.properties.update_one({"_id": doc["_id"]}, {"$set": update})
    logger.info("Property moderated", property_id=property_id, approval_status=request.approvalStatus.value)
    return await db.properties.find_one({"_id": doc["_id"]})
