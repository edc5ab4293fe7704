from typing import Optional

from fastapi import APIRouter, Depends, HTTPException, status
from structlog import get_logger

from marketplace.db import get_db, serialize
from marketplace.services.banners import list_banners
from marketplace.services.packages import list_active_packages

logger = get_logger()
router = APIRouter(prefix="/api", tags=["catalog"])


@router.get("/banners")
async def get_banners(active: Optional[bool] = None, position: Optional[str] = None, db=Depends(get_db)):
    try:
        banners = await list_banners(db, active=active, position=position)
        return {"success": True, "data": serialize(banners)}
    except Exception as e:
        logger.error("Banner listing failed", position=position, error=str(e), exc_info=True)
        raise HTTPException(status_code=status.HTTP_500_INTERNAL_SERVER_ERROR, detail="Failed to fetch banners")


@router.get("/packages")
async def get_packages(db=Depends(get_db)):
    try:
        return {"success": True, "data": serialize(await list_active_packages(db))}
    except Exception as e:
        logger.error("Package listing failed", error=str(e), exc_info=True)
        raise HTTPException(status_code=status.HTTP_500_INTERNAL_SERVER_ERROR, detail="Failed to fetch packages")
