from fastapi import APIRouter, Depends, HTTPException, status
from structlog import get_logger

from marketplace.core.errors import ServiceError, to_http
from marketplace.db import get_db, serialize
from marketplace.dependencies.auth import get_current_user, get_optional_user
from marketplace.schemas.properties import PropertyCreate, PropertyQuery, PropertyUpdate
from marketplace.services import properties as property_service

logger = get_logger()
router = APIRouter(prefix="/api", tags=["properties"])


@router.get("/properties")
async def list_properties(query: PropertyQuery = Depends(), db=Depends(get_db)):
    try:
        result = await property_service.list_properties(db, query)
        logger.info("Properties listed", query=query.model_dump(exclude_none=True), result_count=len(result["properties"]))
        return {"success": True, "data": serialize(result)}
    except ServiceError as e:
        raise to_http(e)
    except Exception as e:
        logger.error("Property listing failed", query=query.model_dump(exclude_none=True), error=str(e), exc_info=True)
        raise HTTPException(status_code=status.HTTP_500_INTERNAL_SERVER_ERROR, detail="Failed to fetch properties")


@router.get("/properties/featured")
async def featured_properties(db=Depends(get_db)):
    try:
        return {"success": True, "data": serialize(await property_service.list_featured(db))}
    except Exception as e:
        logger.error("Featured listing failed", error=str(e), exc_info=True)
        raise HTTPException(status_code=status.HTTP_500_INTERNAL_SERVER_ERROR, detail="Failed to fetch featured properties")


@router.get("/properties/{property_id}")
async def get_property(property_id: str, user=Depends(get_optional_user), db=Depends(get_db)):
    try:
        doc = await property_service.get_property(db, property_id, user)
        return {"success": True, "data": serialize(doc)}
    except ServiceError as e:
        raise to_http(e)
    except Exception as e:
        logger.error("Get property failed", property_id=property_id, error=str(e), exc_info=True)
        raise HTTPException(status_code=status.HTTP_500_INTERNAL_SERVER_ERROR, detail="Failed to fetch property")


@router.post("/properties", status_code=status.HTTP_201_CREATED)
async def create_property(payload: PropertyCreate, user: dict = Depends(get_current_user), db=Depends(get_db)):
    try:
        doc = await property_service.create_property(db, payload, user)
        return {"success": True, "data": serialize(doc)}
    except ServiceError as e:
        raise to_http(e)
    except Exception as e:
        logger.error("Create property failed", user_id=user.get("id"), error=str(e), exc_info=True)
        raise HTTPException(status_code=status.HTTP_500_INTERNAL_SERVER_ERROR, detail="Failed to create property")


@router.put("/properties/{property_id}")
async def update_property(property_id: str, payload: PropertyUpdate, user: dict = Depends(get_current_user), db=Depends(get_db)):
    try:
        doc = await property_service.update_property(db, property_id, payload, user)
        return {"success": True, "data": serialize(doc)}
    except ServiceError as e:
        raise to_http(e)
    except Exception as e:
        logger.error("Update property failed", property_id=property_id, error=str(e), exc_info=True)
        raise HTTPException(status_code=status.HTTP_500_INTERNAL_SERVER_ERROR, detail="Failed to update property")


@router.delete("/properties/{property_id}")
async def delete_property(property_id: str, user: dict = Depends(get_current_user), db=Depends(get_db)):
    try:
        await property_service.retire_property(db, property_id, user)
        return {"success": True, "message": "Property removed"}
    except ServiceError as e:
        raise to_http(e)
    except Exception as e:
        logger.error("Delete property failed", property_id=property_id, error=str(e), exc_info=True)
        raise HTTPException(status_code=status.HTTP_500_INTERNAL_SERVER_ERROR, detail="Failed to remove property")


@router.get("/user/properties")
async def my_properties(user: dict = Depends(get_current_user), db=Depends(get_db)):
    try:
        docs = await property_service.list_user_properties(db, user["id"])
        return {"success": True, "data": serialize(docs)}
    except Exception as e:
        logger.error("User property listing failed", user_id=user.get("id"), error=str(e), exc_info=True)
        raise HTTPException(status_code=status.HTTP_500_INTERNAL_SERVER_ERROR, detail="Failed to fetch your properties")
