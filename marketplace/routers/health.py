import time
from datetime import datetime, timezone

from fastapi import APIRouter, Depends
from structlog import get_logger
from redis.asyncio import Redis

from marketplace.config import settings
from marketplace.db import get_db

logger = get_logger()
router = APIRouter(prefix="/api", tags=["health"])

STARTED_AT = time.monotonic()

@router.get("/ping")
async def ping(db=Depends(get_db)):
    started = time.perf_counter()
    try:
        await db.command("ping")
        db_state = "connected"
    except Exception as e:
        logger.warning("ping db fail", error=str(e))
        db_state = "failed"
    return {
        "success": True,
        "message": "pong",
        "db": db_state,
        "latencyMs": round((time.perf_counter() - started) * 1000, 2),
        "timestamp": datetime.now(timezone.utc).isoformat(),
    }

@router.get("/health")
async def health(db=Depends(get_db)):
    details = {"status": "ok", "checks": {}}

    # Database check
    try:
        await db.command("ping")
        details["checks"]["database"] = "ok"
    except Exception as e:
        logger.warning("health db fail", error=str(e))
        details["checks"]["database"] = f"fail: {str(e)}"
        details["status"] = "degraded"

    # Redis check
    try:
        redis = Redis.from_url(settings.REDIS_URL, encoding="utf-8", decode_responses=True)
        pong = await redis.ping()
        await redis.aclose()
        details["checks"]["redis"] = "ok" if pong else "fail"
    except Exception as e:
        logger.warning("health redis fail", error=str(e))
        details["checks"]["redis"] = f"fail: {str(e)}"
        details["status"] = "degraded"

    details["timestamp"] = datetime.now(timezone.utc).isoformat()
    details["uptime"] = round(time.monotonic() - STARTED_AT, 1)
    details["environment"] = settings.ENVIRONMENT
    return details
