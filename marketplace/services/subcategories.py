import asyncio

from pymongo import ASCENDING, DESCENDING
from pymongo.errors import DuplicateKeyError
from structlog import get_logger

from marketplace.core.errors import ConflictError, InvalidRequestError, NotFoundError
from marketplace.db import pagination, parse_object_id, utcnow
from marketplace.schemas.categories import SubcategoryCreate, SubcategoryUpdate
from marketplace.services.categories import resolve_slug, search_filter
from marketplace.services.normalize import normalize_subcategory

logger = get_logger()


async def _parent_category(db, category_id: str) -> dict:
    oid = parse_object_id(category_id)
    category = await db.categories.find_one({"_id": oid}) if oid else None
    if not category:
        raise InvalidRequestError("Parent category not found")
    return category


async def admin_list_subcategories(db, search: str = "", page: int = 1, limit: int = 10, category_id: str = None) -> dict:
    query = search_filter(search)
    if category_id:
        query["categoryId"] = category_id
    docs, total = await asyncio.gather(
        db.subcategories.find(query).sort([("sortOrder", ASCENDING), ("createdAt", DESCENDING)])
        .skip((page - 1) * limit).limit(limit).to_list(length=None),
        db.subcategories.count_documents(query),
    )

    subcategories = []
    for doc in docs:
        sub = normalize_subcategory(doc)
        parent_id = parse_object_id(doc.get("categoryId"))
        parent = await db.categories.find_one({"_id": parent_id}) if parent_id else None
        sub["category"] = (
            {"_id": parent["_id"], "name": parent.get("name"), "slug": parent.get("slug")} if parent else None
        )
        subcategories.append(sub)
    return {"subcategories": subcategories, "pagination": pagination(page, limit, total)}


async def create_subcategory(db, payload: SubcategoryCreate) -> dict:
    category_id = payload.categoryId.strip()
    await _parent_category(db, category_id)

    now = utcnow()
    doc = {
        "categoryId": category_id,
        "name": payload.name.strip(),
        "slug": resolve_slug(payload.slug, payload.name),
        "iconUrl": payload.iconUrl.strip(),
        "sortOrder": payload.sortOrder,
        "isActive": payload.isActive,
        "createdAt": now,
        "updatedAt": now,
    }
    try:
        result = await db.subcategories.insert_one(doc)
    except DuplicateKeyError:
        raise ConflictError("Subcategory slug already exists in this category")
    doc["_id"] = result.inserted_id
    logger.info("Subcategory created", subcategory_id=str(result.inserted_id), category_id=category_id)
    return doc


async def update_subcategory(db, subcategory_id: str, payload: SubcategoryUpdate) -> dict:
    oid = parse_object_id(subcategory_id)
    current = await db.subcategories.find_one({"_id": oid}) if oid else None
    if not current:
        raise NotFoundError("Subcategory not found")

    changes = payload.model_dump(exclude_unset=True)
    update = {"updatedAt": utcnow()}
    if changes.get("categoryId") and changes["categoryId"] != current.get("categoryId"):
        await _parent_category(db, changes["categoryId"])
        update["categoryId"] = changes["categoryId"]
    if changes.get("name") is not None:
        update["name"] = changes["name"].strip()
    if changes.get("slug") or changes.get("name") or "categoryId" in update:
        update["slug"] = resolve_slug(changes.get("slug"), changes.get("name") or current.get("name", ""))
    if changes.get("iconUrl") is not None:
        update["iconUrl"] = changes["iconUrl"].strip()
    for field in ("sortOrder", "isActive"):
        if changes.get(field) is not None:
            update[field] = changes[field]

    try:
        await db.subcategories.update_one({"_id": oid}, {"$set": update})
    except DuplicateKeyError:
        raise ConflictError("Subcategory slug already exists in this category")
    return normalize_subcategory(await db.subcategories.find_one({"_id": oid}))


async def delete_subcategory(db, subcategory_id: str):
    oid = parse_object_id(subcategory_id)
    if oid is None:
        raise NotFoundError("Subcategory not found")
    result = await db.subcategories.delete_one({"_id": oid})
    if result.deleted_count == 0:
        raise NotFoundError("Subcategory not found")
    logger.info("Subcategory deleted", subcategory_id=subcategory_id)
