from fastapi import FastAPI, Request, status
from fastapi.exceptions import RequestValidationError
from fastapi.middleware.cors import CORSMiddleware
from fastapi.responses import JSONResponse
from starlette.exceptions import HTTPException as StarletteHTTPException
from marketplace.routers import admin, admin_categories, catalog, categories, conversations, health, payments, properties
from marketplace.core.logging import setup_logging
from marketplace.db import close_client, ensure_indexes, get_db
from marketplace.dependencies.rate_limit import message_rate_limit, payment_rate_limit
from fastapi_limiter import FastAPILimiter
from redis.asyncio import Redis
from marketplace.config import settings
from structlog import get_logger

logger = get_logger()

app = FastAPI(title="Property Marketplace API")
app.add_middleware(
    CORSMiddleware,
    allow_origins=settings.CORS_ORIGINS,
    allow_credentials=True,
    allow_methods=["*"],
    allow_headers=["*"],
)
app.include_router(health.router)
app.include_router(categories.router)
app.include_router(admin_categories.router)
app.include_router(properties.router)
app.include_router(conversations.router)
app.include_router(catalog.router)
app.include_router(admin.router)
app.include_router(payments.router)

async def _no_rate_limit():
    return None

@app.exception_handler(StarletteHTTPException)
async def http_exception_handler(request: Request, exc: StarletteHTTPException):
    return JSONResponse(
        status_code=exc.status_code,
        content={"success": False, "error": exc.detail},
        headers=getattr(exc, "headers", None),
    )

@app.exception_handler(RequestValidationError)
async def validation_exception_handler(request: Request, exc: RequestValidationError):
    errors = exc.errors()
    first = errors[0] if errors else {}
    field = ".".join(str(part) for part in first.get("loc", ()) if part not in ("body", "query", "path"))
    message = f"{field}: {first.get('msg')}" if field else first.get("msg", "Invalid request")
    logger.warning("Request validation failed", path=request.url.path, errors=len(errors))
    return JSONResponse(status_code=status.HTTP_400_BAD_REQUEST, content={"success": False, "error": message})

@app.on_event("startup")
async def startup_event():
    setup_logging()
    await ensure_indexes(await get_db())
    if settings.RATE_LIMIT_ENABLED:
        redis = await Redis.from_url(settings.REDIS_URL, encoding="utf-8", decode_responses=True)
        await FastAPILimiter.init(redis)
    else:
        logger.warning("Rate limiting disabled")
        app.dependency_overrides[payment_rate_limit] = _no_rate_limit
        app.dependency_overrides[message_rate_limit] = _no_rate_limit

@app.on_event("shutdown")
async def shutdown_event():
    if settings.RATE_LIMIT_ENABLED:
        await FastAPILimiter.close()
    close_client()
