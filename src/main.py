"""FastAPI application entry point.

Run with: uvicorn src.main:app --reload --port 8000
"""

# ruff: noqa: E402  -- uvloop.install() must run before other imports

import uvloop

uvloop.install()

import logging
from collections.abc import AsyncGenerator
from contextlib import asynccontextmanager

from fastapi import FastAPI, Request
from fastapi.responses import JSONResponse

from config.settings import settings
from src.em_account.api.router import router as account_router
from src.em_admin.api.router import router as admin_router
from src.em_common.database import engine, ping_database
from src.em_common.errors import AppError
from src.em_common.redis_client import close_redis, ping_redis
from src.em_common.response import error_response, with_request_id
from src.em_gateway.api.router import router as auth_router
from src.em_gateway.middleware.request_log import RequestLogMiddleware
from src.em_listing.api.router import router as listing_router
from src.em_messaging.api.router import inbox_router
from src.em_messaging.api.router import router as messaging_router
from src.em_order.api.router import router as order_router
from src.em_payment.api.router import router as payment_router

logging.basicConfig(
    level=settings.LOG_LEVEL.upper(),
    format="%(asctime)s %(levelname)s %(name)s: %(message)s",
)
logger = logging.getLogger("em.app")


@asynccontextmanager
async def lifespan(app: FastAPI) -> AsyncGenerator[None, None]:
    """Startup: verify DB + Redis connections. Shutdown: dispose."""
    await ping_database()
    await ping_redis()
    logger.info("%s started (payments_production=%s)", settings.APP_NAME, settings.PAYMENTS_PRODUCTION)
    yield
    await engine.dispose()
    await close_redis()


app = FastAPI(
    title=settings.APP_NAME,
    version="0.1.0",
    lifespan=lifespan,
)


app.add_middleware(RequestLogMiddleware)


@app.exception_handler(AppError)
async def app_error_handler(request: Request, exc: AppError) -> JSONResponse:
    if exc.http_status >= 500:
        logger.error("Unhandled app error code=%s: %s", exc.code, exc.message)
    resp = with_request_id(error_response(exc.code, exc.message), request)
    return JSONResponse(
        status_code=exc.http_status,
        content=resp.model_dump(),
    )


app.include_router(auth_router, prefix="/api/v1")
app.include_router(account_router, prefix="/api/v1")
app.include_router(listing_router, prefix="/api/v1")
app.include_router(order_router, prefix="/api/v1")
app.include_router(messaging_router, prefix="/api/v1")
app.include_router(inbox_router, prefix="/api/v1")
app.include_router(payment_router, prefix="/api/v1")
app.include_router(admin_router, prefix="/api/v1")


@app.get("/health")
async def health() -> dict[str, str]:
    return {"status": "ok", "version": "0.1.0"}
