from typing import List, Optional

from pymongo import ASCENDING, DESCENDING
from structlog import get_logger

from marketplace.core.errors import InvalidRequestError, NotFoundError
from marketplace.db import parse_object_id, utcnow
from marketplace.schemas.admin import BannerCreate, BannerUpdate
from marketplace.services.normalize import DEFAULT_SORT_ORDER

logger = get_logger()

PLACEHOLDER_IMAGE = "/uploads/placeholder.svg"


def present_banner(doc: dict) -> dict:
    banner = dict(doc)
    image = doc.get("imageUrl") or doc.get("image") or doc.get("url")
    banner["imageUrl"] = image or PLACEHOLDER_IMAGE
    if not isinstance(doc.get("sortOrder"), int):
        banner["sortOrder"] = DEFAULT_SORT_ORDER
    return banner


async def list_banners(db, active: Optional[bool] = None, position: Optional[str] = None) -> List[dict]:
    query = {}
    if active is not None:
        query["isActive"] = active
    if position:
        query["position"] = position
    docs = await db.banners.find(query).sort([("sortOrder", ASCENDING), ("createdAt", DESCENDING)]).to_list(length=None)
    banners = [present_banner(d) for d in docs]
    # legacy banners without a sortOrder go last
    banners.sort(key=lambda b: b["sortOrder"])
    return banners


async def create_banner(db, payload: BannerCreate) -> dict:
    now = utcnow()
    doc = dict(payload.model_dump(), createdAt=now, updatedAt=now)
    result = await db.banners.insert_one(doc)
    doc["_id"] = result.inserted_id
    logger.info("Banner created", banner_id=str(result.inserted_id), position=doc["position"])
    return present_banner(doc)


async def update_banner(db, banner_id: str, payload: BannerUpdate) -> dict:
    oid = parse_object_id(banner_id)
    if oid is None:
        raise NotFoundError("Banner not found")
    changes = {k: v for k, v in payload.model_dump(exclude_unset=True).items() if v is not None}
    if not changes:
        raise InvalidRequestError("No fields to update")
    changes["updatedAt"] = utcnow()
    result = await db.banners.update_one({"_id": oid}, {"$set": changes})
    if result.matched_count == 0:
        raise NotFoundError("Banner not found")
    return present_banner(await db.banners.find_one({"_id": oid}))


async def delete_banner(db, banner_id: str):
    oid = parse_object_id(banner_id)
    result = await db.banners.delete_one({"_id": oid}) if oid else None
    if result is None or result.deleted_count == 0:
        raise NotFoundError("Banner not found")
    logger.info("Banner deleted", banner_id=banner_id)
