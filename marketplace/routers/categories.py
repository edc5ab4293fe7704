import hashlib
import json
from typing import Optional

from fastapi import APIRouter, Depends, HTTPException, Query, Response, status
from structlog import get_logger

from marketplace.core.errors import ServiceError, to_http
from marketplace.db import get_db, serialize, utcnow
from marketplace.services.categories import (
    get_category_by_slug,
    list_public_categories,
    list_subcategories_for_slug,
    resolve_listing_filter,
)
from marketplace.schemas.properties import PropertyQuery
from marketplace.services.properties import list_properties

logger = get_logger()
router = APIRouter(prefix="/api/categories", tags=["categories"])


def _etag(categories) -> str:
    body = json.dumps(serialize(categories), sort_keys=True, default=str)
    return hashlib.md5(body.encode("utf-8")).hexdigest()


def _last_updated(categories) -> str:
    stamps = [c["updatedAt"] for c in categories if c.get("updatedAt")]
    return (max(stamps) if stamps else utcnow()).isoformat()


@router.get("")
async def list_categories(
    response: Response,
    active: bool = Query(False),
    withSub: bool = Query(False),
    db=Depends(get_db),
):
    try:
        categories, from_cache = await list_public_categories(db, active=active, with_sub=withSub)
    except Exception as e:
        logger.error("Failed to list categories", active=active, with_sub=withSub, error=str(e), exc_info=True)
        raise HTTPException(status_code=status.HTTP_500_INTERNAL_SERVER_ERROR, detail="Failed to fetch categories")

    body = {"success": True, "data": serialize(categories)}
    if from_cache is not None:
        etag = _etag(categories)
        response.headers["ETag"] = f'"{etag}"'
        response.headers["Cache-Control"] = "public, max-age=60"
        body["meta"] = {"fromCache": from_cache, "updatedAt": _last_updated(categories), "etag": etag}
    return body


@router.get("/{slug}")
async def get_category(slug: str, db=Depends(get_db)):
    try:
        category = await get_category_by_slug(db, slug.lower())
        return {"success": True, "data": serialize(category)}
    except ServiceError as e:
        raise to_http(e)
    except Exception as e:
        logger.error("Failed to fetch category", slug=slug, error=str(e), exc_info=True)
        raise HTTPException(status_code=status.HTTP_500_INTERNAL_SERVER_ERROR, detail="Failed to fetch category")


@router.get("/{slug}/subcategories")
async def get_subcategories(slug: str, db=Depends(get_db)):
    try:
        subcategories = await list_subcategories_for_slug(db, slug.lower())
        return {"success": True, "data": serialize(subcategories)}
    except ServiceError as e:
        raise to_http(e)
    except Exception as e:
        logger.error("Failed to fetch subcategories", slug=slug, error=str(e), exc_info=True)
        raise HTTPException(status_code=status.HTTP_500_INTERNAL_SERVER_ERROR, detail="Failed to fetch subcategories")


@router.get("/{slug}/properties")
async def get_category_properties(
    slug: str,
    subcategory: Optional[str] = None,
    page: int = Query(1, ge=1),
    limit: int = Query(20, ge=1, le=100),
    db=Depends(get_db),
):
    try:
        category, listing_filter = await resolve_listing_filter(db, slug.lower(), subcategory)
        result = await list_properties(db, PropertyQuery(page=page, limit=limit), extra_filter=listing_filter)
        logger.info("Category listing served", slug=slug, subcategory=subcategory, result_count=len(result["properties"]))
        return {
            "success": True,
            "data": {
                "category": serialize(category),
                "filter": listing_filter,
                "properties": serialize(result["properties"]),
                "pagination": result["pagination"],
            },
        }
    except ServiceError as e:
        raise to_http(e)
    except Exception as e:
        logger.error("Failed to fetch category listing", slug=slug, error=str(e), exc_info=True)
        raise HTTPException(status_code=status.HTTP_500_INTERNAL_SERVER_ERROR, detail="Failed to fetch properties")
