import asyncio
import re
from typing import List, Optional, Tuple

from pymongo import ASCENDING, DESCENDING
from pymongo.errors import DuplicateKeyError
from structlog import get_logger

from marketplace.core.errors import ConflictError, InvalidRequestError, NotFoundError
from marketplace.db import pagination, parse_object_id, utcnow
from marketplace.schemas.categories import CategoryCreate, CategoryUpdate, SortOrderItem
from marketplace.services.category_cache import clear_categories_cache, get_cached_categories
from marketplace.services.normalize import normalize_category, normalize_subcategory, slugify

logger = get_logger()

PUBLIC_SORT = [("sortOrder", ASCENDING), ("createdAt", ASCENDING)]


def search_filter(search: str) -> dict:
    if not search:
        return {}
    pattern = re.escape(search)
    return {"$or": [
        {"name": {"$regex": pattern, "$options": "i"}},
        {"slug": {"$regex": pattern, "$options": "i"}},
    ]}


def resolve_slug(slug: Optional[str], name: str) -> str:
    resolved = slugify(slug if slug else name)
    if not resolved:
        raise InvalidRequestError("Slug must contain at least one letter or digit")
    return resolved


async def _subcategories_of(db, category_id: str, active_only: bool) -> List[dict]:
    query = {"categoryId": category_id}
    if active_only:
        query["isActive"] = True
    docs = await db.subcategories.find(query).sort(PUBLIC_SORT).to_list(length=None)
    return [normalize_subcategory(d) for d in docs]


async def _find_category(db, category_id: str) -> dict:
    oid = parse_object_id(category_id)
    category = await db.categories.find_one({"_id": oid}) if oid else None
    if not category:
        raise NotFoundError("Category not found")
    return category


async def list_public_categories(db, active: bool, with_sub: bool) -> Tuple[List[dict], Optional[bool]]:
    """Return ``(categories, from_cache)``.

    ``from_cache`` is None when the request bypassed the cache.
    """
    if active and not with_sub:
        cached = await get_cached_categories(db)
        return [normalize_category(c) for c in cached.data], cached.from_cache

    query = {"isActive": True} if active else {}
    docs = await db.categories.find(query).sort(PUBLIC_SORT).to_list(length=None)
    categories = [normalize_category(d) for d in docs]
    if with_sub:
        subs = await asyncio.gather(*[
            _subcategories_of(db, str(c["_id"]), active_only=active) for c in categories
        ])
        for category, children in zip(categories, subs):
            category["subcategories"] = children
    return categories, None


async def get_category_by_slug(db, slug: str) -> dict:
    category = await db.categories.find_one({"slug": slug, "isActive": True})
    if not category:
        raise NotFoundError("Category not found")
    result = normalize_category(category)
    result["subcategories"] = await _subcategories_of(db, str(category["_id"]), active_only=True)
    return result


async def list_subcategories_for_slug(db, slug: str) -> List[dict]:
    category = await db.categories.find_one({"slug": slug, "isActive": True})
    if not category:
        raise NotFoundError("Category not found")
    return await _subcategories_of(db, str(category["_id"]), active_only=True)


async def resolve_listing_filter(db, slug: str, subcategory: Optional[str] = None) -> Tuple[dict, dict]:
    """Map a public category slug (and optional subcategory slug) to
    ``(category, property_filter)``."""
    category = await get_category_by_slug(db, slug)
    listing_filter = {"propertyType": category["slug"]}
    if subcategory:
        match = next((s for s in category["subcategories"] if s.get("slug") == subcategory), None)
        if match is None:
            raise NotFoundError("Subcategory not found")
        listing_filter["subCategory"] = match["slug"]
    return category, listing_filter


async def admin_list_categories(db, search: str = "", page: int = 1, limit: int = 10, with_sub: bool = False) -> dict:
    query = search_filter(search)
    skip = (page - 1) * limit
    docs, total = await asyncio.gather(
        db.categories.find(query).sort([("sortOrder", ASCENDING), ("createdAt", DESCENDING)])
        .skip(skip).limit(limit).to_list(length=None),
        db.categories.count_documents(query),
    )

    categories = []
    for doc in docs:
        category = normalize_category(doc)
        subs = await _subcategories_of(db, str(doc["_id"]), active_only=False)
        sub_slugs = [s["slug"] for s in subs if s.get("slug")]
        prop_filter = {"$or": [{"propertyType": category["slug"]}]}
        if sub_slugs:
            prop_filter["$or"].append({"subCategory": {"$in": sub_slugs}})
        properties_count = await db.properties.count_documents(prop_filter)
        category["subcategories"] = subs if with_sub else []
        category["subcategoryCount"] = len(subs)
        category["propertiesCount"] = properties_count
        categories.append(category)

    return {"categories": categories, "pagination": pagination(page, limit, total)}


async def create_category(db, payload: CategoryCreate) -> dict:
    now = utcnow()
    doc = {
        "name": payload.name.strip(),
        "slug": resolve_slug(payload.slug, payload.name),
        "iconUrl": payload.iconUrl.strip(),
        "description": payload.description.strip(),
        "sortOrder": payload.sortOrder,
        "isActive": payload.isActive,
        "createdAt": now,
        "updatedAt": now,
    }
    try:
        result = await db.categories.insert_one(doc)
    except DuplicateKeyError:
        logger.warning("Duplicate category slug", slug=doc["slug"])
        raise ConflictError(f"Category slug '{doc['slug']}' already exists")

    clear_categories_cache()
    doc["_id"] = result.inserted_id
    logger.info("Category created", category_id=str(result.inserted_id), slug=doc["slug"])
    return doc


async def update_category(db, category_id: str, payload: CategoryUpdate) -> dict:
    oid = parse_object_id(category_id)
    if oid is None:
        raise NotFoundError("Category not found")

    changes = payload.model_dump(exclude_unset=True)
    update = {"updatedAt": utcnow()}
    if changes.get("name") is not None:
        update["name"] = changes["name"].strip()
    if changes.get("slug") or changes.get("name"):
        update["slug"] = resolve_slug(changes.get("slug"), changes.get("name") or "")
    for field in ("iconUrl", "description"):
        if changes.get(field) is not None:
            update[field] = changes[field].strip()
    for field in ("sortOrder", "isActive"):
        if changes.get(field) is not None:
            update[field] = changes[field]

    try:
        result = await db.categories.update_one({"_id": oid}, {"$set": update})
    except DuplicateKeyError:
        raise ConflictError(f"Category slug '{update.get('slug')}' already exists")
    if result.matched_count == 0:
        raise NotFoundError("Category not found")

    clear_categories_cache()
    return normalize_category(await db.categories.find_one({"_id": oid}))


async def delete_category(db, category_id: str):
    oid = parse_object_id(category_id)
    if oid is None:
        raise NotFoundError("Category not found")

    # Read-then-decide: a subcategory inserted between the count and the
    # delete is not caught.
    subcategory_count = await db.subcategories.count_documents({"categoryId": category_id})
    if subcategory_count > 0:
        raise InvalidRequestError(
            f"Cannot delete category. It has {subcategory_count} subcategories. Delete subcategories first."
        )

    result = await db.categories.delete_one({"_id": oid})
    if result.deleted_count == 0:
        raise NotFoundError("Category not found")
    clear_categories_cache()
    logger.info("Category deleted", category_id=category_id)


async def toggle_category(db, category_id: str) -> dict:
    category = normalize_category(await _find_category(db, category_id))
    await db.categories.update_one(
        {"_id": category["_id"]},
        {"$set": {"isActive": not category["isActive"], "updatedAt": utcnow()}},
    )
    clear_categories_cache()
    return normalize_category(await db.categories.find_one({"_id": category["_id"]}))


async def update_sort_order(db, updates: List[SortOrderItem]) -> int:
    now = utcnow()
    updated = 0
    for item in updates:
        oid = parse_object_id(item.id)
        if oid is None:
            raise InvalidRequestError(f"Invalid category id: {item.id}")
        result = await db.categories.update_one(
            {"_id": oid}, {"$set": {"sortOrder": item.sortOrder, "updatedAt": now}}
        )
        updated += result.matched_count
    clear_categories_cache()
    return updated
