from typing import Optional

from fastapi import APIRouter, Depends, HTTPException, Query, status
from structlog import get_logger

from marketplace.core.errors import ServiceError, to_http
from marketplace.db import get_db, serialize
from marketplace.dependencies.auth import require_admin
from marketplace.schemas.admin import BannerCreate, BannerUpdate, PackageCreate, PackageUpdate, UserStatusUpdate
from marketplace.schemas.properties import ApprovalRequest, ApprovalStatus
from marketplace.services import banners as banner_service
from marketplace.services import packages as package_service
from marketplace.services import properties as property_service
from marketplace.services import users as user_service

logger = get_logger()
router = APIRouter(prefix="/api/admin", tags=["admin"], dependencies=[Depends(require_admin)])


def _failed(message: str, e: Exception, **context) -> HTTPException:
    logger.error(message, error=str(e), exc_info=True, **context)
    return HTTPException(status_code=status.HTTP_500_INTERNAL_SERVER_ERROR, detail=message)


@router.get("/properties")
async def list_properties(
    approvalStatus: Optional[ApprovalStatus] = None,
    page: int = Query(1, ge=1),
    limit: int = Query(20, ge=1, le=100),
    db=Depends(get_db),
):
    try:
        result = await property_service.admin_list_properties(
            db, approval_status=approvalStatus.value if approvalStatus else None, page=page, limit=limit
        )
        return {"success": True, "data": serialize(result)}
    except Exception as e:
        raise _failed("Failed to fetch properties", e)


@router.put("/properties/{property_id}/approval")
async def moderate_property(property_id: str, payload: ApprovalRequest, admin: dict = Depends(require_admin), db=Depends(get_db)):
    try:
        doc = await property_service.set_approval(db, property_id, payload, admin)
        return {"success": True, "data": serialize(doc)}
    except ServiceError as e:
        raise to_http(e)
    except Exception as e:
        raise _failed("Failed to update approval", e, property_id=property_id)


@router.get("/users")
async def list_users(
    userType: Optional[str] = None,
    search: str = "",
    page: int = Query(1, ge=1),
    limit: int = Query(20, ge=1, le=100),
    db=Depends(get_db),
):
    try:
        result = await user_service.admin_list_users(db, user_type=userType, search=search, page=page, limit=limit)
        return {"success": True, "data": serialize(result)}
    except Exception as e:
        raise _failed("Failed to fetch users", e)


@router.put("/users/{user_id}/status")
async def update_user_status(user_id: str, payload: UserStatusUpdate, db=Depends(get_db)):
    try:
        user = await user_service.set_user_status(db, user_id, payload.status)
        return {"success": True, "data": serialize(user)}
    except ServiceError as e:
        raise to_http(e)
    except Exception as e:
        raise _failed("Failed to update user status", e, user_id=user_id)


@router.get("/banners")
async def list_banners(db=Depends(get_db)):
    try:
        return {"success": True, "data": serialize(await banner_service.list_banners(db))}
    except Exception as e:
        raise _failed("Failed to fetch banners", e)


@router.post("/banners", status_code=status.HTTP_201_CREATED)
async def create_banner(payload: BannerCreate, db=Depends(get_db)):
    try:
        return {"success": True, "data": serialize(await banner_service.create_banner(db, payload))}
    except Exception as e:
        raise _failed("Failed to create banner", e)


@router.put("/banners/{banner_id}")
async def update_banner(banner_id: str, payload: BannerUpdate, db=Depends(get_db)):
    try:
        return {"success": True, "data": serialize(await banner_service.update_banner(db, banner_id, payload))}
    except ServiceError as e:
        raise to_http(e)
    except Exception as e:
        raise _failed("Failed to update banner", e, banner_id=banner_id)


@router.delete("/banners/{banner_id}")
async def delete_banner(banner_id: str, db=Depends(get_db)):
    try:
        await banner_service.delete_banner(db, banner_id)
        return {"success": True, "message": "Banner deleted"}
    except ServiceError as e:
        raise to_http(e)
    except Exception as e:
        raise _failed("Failed to delete banner", e, banner_id=banner_id)


@router.post("/packages", status_code=status.HTTP_201_CREATED)
async def create_package(payload: PackageCreate, db=Depends(get_db)):
    try:
        return {"success": True, "data": serialize(await package_service.create_package(db, payload))}
    except Exception as e:
        raise _failed("Failed to create package", e)


@router.put("/packages/{package_id}")
async def update_package(package_id: str, payload: PackageUpdate, db=Depends(get_db)):
    try:
        return {"success": True, "data": serialize(await package_service.update_package(db, package_id, payload))}
    except ServiceError as e:
        raise to_http(e)
    except Exception as e:
        raise _failed("Failed to update package", e, package_id=package_id)


@router.delete("/packages/{package_id}")
async def delete_package(package_id: str, db=Depends(get_db)):
    try:
        await package_service.delete_package(db, package_id)
        return {"success": True, "message": "Package deleted"}
    except ServiceError as e:
        raise to_http(e)
    except Exception as e:
        raise _failed("Failed to delete package", e, package_id=package_id)
