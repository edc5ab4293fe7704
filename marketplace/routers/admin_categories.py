from typing import Optional

from fastapi import APIRouter, Depends, HTTPException, Query, status
from structlog import get_logger

from marketplace.core.errors import ServiceError, to_http
from marketplace.db import get_db, serialize
from marketplace.dependencies.auth import require_admin
from marketplace.schemas.categories import (
    CategoryCreate,
    CategoryUpdate,
    SortOrderUpdate,
    SubcategoryCreate,
    SubcategoryUpdate,
)
from marketplace.services import categories as category_service
from marketplace.services import subcategories as subcategory_service
from marketplace.services.category_cache import clear_categories_cache

logger = get_logger()
router = APIRouter(prefix="/api/admin", tags=["admin-categories"], dependencies=[Depends(require_admin)])


def _internal(message: str, e: Exception, **context) -> HTTPException:
    logger.error(message, error=str(e), exc_info=True, **context)
    return HTTPException(status_code=status.HTTP_500_INTERNAL_SERVER_ERROR, detail=message)


@router.get("/categories")
async def list_categories(
    search: str = "",
    page: int = Query(1, ge=1),
    limit: int = Query(10, ge=1, le=100),
    withSub: bool = False,
    db=Depends(get_db),
):
    try:
        result = await category_service.admin_list_categories(db, search=search, page=page, limit=limit, with_sub=withSub)
        return {"success": True, "data": serialize(result)}
    except Exception as e:
        raise _internal("Failed to fetch categories", e, search=search)


@router.post("/categories", status_code=status.HTTP_201_CREATED)
async def create_category(payload: CategoryCreate, db=Depends(get_db)):
    try:
        category = await category_service.create_category(db, payload)
        return {"success": True, "data": serialize(category)}
    except ServiceError as e:
        raise to_http(e)
    except Exception as e:
        raise _internal("Failed to create category", e, name=payload.name)


@router.put("/categories/sort-order")
async def update_sort_order(payload: SortOrderUpdate, db=Depends(get_db)):
    try:
        updated = await category_service.update_sort_order(db, payload.updates)
        return {"success": True, "data": {"updated": updated}}
    except ServiceError as e:
        raise to_http(e)
    except Exception as e:
        raise _internal("Failed to update sort order", e)


@router.post("/categories/cache/clear")
async def clear_cache():
    clear_categories_cache()
    logger.info("Category cache cleared by admin")
    return {"success": True, "message": "Category cache cleared"}


@router.put("/categories/{category_id}")
async def update_category(category_id: str, payload: CategoryUpdate, db=Depends(get_db)):
    try:
        category = await category_service.update_category(db, category_id, payload)
        return {"success": True, "data": serialize(category)}
    except ServiceError as e:
        raise to_http(e)
    except Exception as e:
        raise _internal("Failed to update category", e, category_id=category_id)


@router.delete("/categories/{category_id}")
async def delete_category(category_id: str, db=Depends(get_db)):
    try:
        await category_service.delete_category(db, category_id)
        return {"success": True, "message": "Category deleted"}
    except ServiceError as e:
        raise to_http(e)
    except Exception as e:
        raise _internal("Failed to delete category", e, category_id=category_id)


@router.patch("/categories/{category_id}/toggle")
async def toggle_category(category_id: str, db=Depends(get_db)):
    try:
        category = await category_service.toggle_category(db, category_id)
        return {"success": True, "data": serialize(category)}
    except ServiceError as e:
        raise to_http(e)
    except Exception as e:
        raise _internal("Failed to toggle category", e, category_id=category_id)


@router.get("/subcategories")
async def list_subcategories(
    search: str = "",
    page: int = Query(1, ge=1),
    limit: int = Query(10, ge=1, le=100),
    categoryId: Optional[str] = None,
    db=Depends(get_db),
):
    try:
        result = await subcategory_service.admin_list_subcategories(
            db, search=search, page=page, limit=limit, category_id=categoryId
        )
        return {"success": True, "data": serialize(result)}
    except Exception as e:
        raise _internal("Failed to fetch subcategories", e, category_id=categoryId)


@router.post("/subcategories", status_code=status.HTTP_201_CREATED)
async def create_subcategory(payload: SubcategoryCreate, db=Depends(get_db)):
    try:
        subcategory = await subcategory_service.create_subcategory(db, payload)
        return {"success": True, "data": serialize(subcategory)}
    except ServiceError as e:
        raise to_http(e)
    except Exception as e:
        raise _internal("Failed to create subcategory", e, category_id=payload.categoryId)


@router.put("/subcategories/{subcategory_id}")
async def update_subcategory(subcategory_id: str, payload: SubcategoryUpdate, db=Depends(get_db)):
    try:
        subcategory = await subcategory_service.update_subcategory(db, subcategory_id, payload)
        return {"success": True, "data": serialize(subcategory)}
    except ServiceError as e:
        raise to_http(e)
    except Exception as e:
        raise _internal("Failed to update subcategory", e, subcategory_id=subcategory_id)


@router.delete("/subcategories/{subcategory_id}")
async def delete_subcategory(subcategory_id: str, db=Depends(get_db)):
    try:
        await subcategory_service.delete_subcategory(db, subcategory_id)
        return {"success": True, "message": "Subcategory deleted"}
    except ServiceError as e:
        raise to_http(e)
    except Exception as e:
        raise _internal("Failed to delete subcategory", e, subcategory_id=subcategory_id)
