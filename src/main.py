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
from sqlalchemy import text
from sqlalchemy.exc import DBAPIError

from config.settings import settings
from src.cm_admin.api.router import router as admin_router
from src.cm_cart.api.router import router as cart_router
from src.cm_common.database import engine
from src.cm_common.errors import AppError, ConcurrentUpdateError, InternalError
from src.cm_common.redis_client import close_redis, get_redis
from src.cm_common.response import error_response
from src.cm_fee.api.router import router as fee_router
from src.cm_gateway.middleware.request_log import RequestLogMiddleware
from src.cm_gig.api.router import router as gig_router
from src.cm_order.api.router import router as order_router
from src.cm_wallet.api.router import router as wallet_router

logger = logging.getLogger(__name__)

# serialization_failure, deadlock_detected
_RETRYABLE_SQLSTATES = frozenset({"40001", "40P01"})


@asynccontextmanager
async def lifespan(app: FastAPI) -> AsyncGenerator[None, None]:
    """Startup: verify DB + Redis connections. Shutdown: dispose."""
    # Startup
    async with engine.connect() as conn:
        await conn.execute(text("SELECT 1"))
    redis = await get_redis()
    await redis.ping()
    yield
    # Shutdown
    await engine.dispose()
    await close_redis()


app = FastAPI(
    title=settings.APP_NAME,
    version="0.1.0",
    lifespan=lifespan,
)


app.add_middleware(RequestLogMiddleware)


def _app_error_json(exc: AppError) -> JSONResponse:
    resp = error_response(exc.code, exc.message, exc.details)
    return JSONResponse(
        status_code=exc.http_status,
        content=resp.model_dump(),
    )


@app.exception_handler(AppError)
async def app_error_handler(request: Request, exc: AppError) -> JSONResponse:
    return _app_error_json(exc)


@app.exception_handler(DBAPIError)
async def db_error_handler(request: Request, exc: DBAPIError) -> JSONResponse:
    sqlstate = getattr(exc.orig, "sqlstate", None) or getattr(exc.orig, "pgcode", None)
    if sqlstate in _RETRYABLE_SQLSTATES:
        logger.warning("Concurrent update on %s %s: %s", request.method, request.url.path, sqlstate)
        return _app_error_json(ConcurrentUpdateError())
    logger.exception("Database error on %s %s", request.method, request.url.path)
    return _app_error_json(InternalError())


app.include_router(wallet_router, prefix="/api/v1")
app.include_router(fee_router, prefix="/api/v1")
app.include_router(cart_router, prefix="/api/v1")
app.include_router(order_router, prefix="/api/v1")
app.include_router(gig_router, prefix="/api/v1")
app.include_router(admin_router, prefix="/api/v1")


@app.get("/health")
async def health() -> dict[str, str]:
    return {"status": "ok", "version": "0.1.0"}
