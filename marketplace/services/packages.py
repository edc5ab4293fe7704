from typing import List

from pymongo import ASCENDING
from structlog import get_logger

from marketplace.core.errors import InvalidRequestError, NotFoundError
from marketplace.db import parse_object_id, utcnow
from marketplace.schemas.admin import PackageCreate, PackageUpdate

logger = get_logger()


async def list_active_packages(db) -> List[dict]:
    return await db.ad_packages.find({"isActive": True}).sort(
        [("sortOrder", ASCENDING), ("price", ASCENDING)]
    ).to_list(length=None)


async def get_package(db, package_id: str) -> dict:
    oid = parse_object_id(package_id)
    if oid is None:
        raise InvalidRequestError("Invalid package ID")
    package = await db.ad_packages.find_one({"_id": oid})
    if not package:
        raise NotFoundError("Package not found")
    return package


async def create_package(db, payload: PackageCreate) -> dict:
    now = utcnow()
    doc = dict(payload.model_dump(mode="json"), createdAt=now, updatedAt=now)
    result = await db.ad_packages.insert_one(doc)
    doc["_id"] = result.inserted_id
    logger.info("Package created", package_id=str(result.inserted_id), type=doc["type"])
    return doc


async def update_package(db, package_id: str, payload: PackageUpdate) -> dict:
    package = await get_package(db, package_id)
    changes = {k: v for k, v in payload.model_dump(mode="json", exclude_unset=True).items() if v is not None}
    if not changes:
        raise InvalidRequestError("No fields to update")
    changes["updatedAt"] = utcnow()
    await db.ad_packages.update_one({"_id": package["_id"]}, {"$set": changes})
    return await db.ad_packages.find_one({"_id": package["_id"]})


async def delete_package(db, package_id: str):
    package = await get_package(db, package_id)
    await db.ad_packages.delete_one({"_id": package["_id"]})
    logger.info("Package deleted", package_id=package_id)
