"""FastAPI application entry point.

Run with: uvicorn src.main:app --port 8000
"""

# ruff: noqa: E402  -- uvloop.install() must run before other imports

import uvloop

uvloop.install()

import logging
from collections.abc import AsyncGenerator
from contextlib import asynccontextmanager

from fastapi import FastAPI, Request
from fastapi.exceptions import RequestValidationError
from fastapi.responses import JSONResponse
from redis.exceptions import RedisError

from config.settings import settings
from src.pv_common.database import check_database, engine
from src.pv_common.errors import AppError
from src.pv_common.redis_client import close_redis, get_redis
from src.pv_common.response import error_response
from src.pv_gateway.middleware.rate_limit import RateLimitMiddleware
from src.pv_gateway.middleware.request_log import RequestLogMiddleware
from src.pv_ledger.api.router import router as ledger_router
from src.pv_queue.api.router import router as queue_router
from src.pv_settlement.api.router import router as settlement_router

logger = logging.getLogger(__name__)

VERSION = "0.1.0"


@asynccontextmanager
async def lifespan(app: FastAPI) -> AsyncGenerator[None, None]:
    """Startup: PostgreSQL must be reachable, Redis only warns. Shutdown: dispose both."""
    await check_database()
    try:
        await (await get_redis()).ping()
    except RedisError as exc:
        logger.warning("Redis unreachable at startup, rate limiting disabled until it returns: %s", exc)
    yield
    await engine.dispose()
    await close_redis()


app = FastAPI(title=settings.APP_NAME, version=VERSION, lifespan=lifespan)

app.add_middleware(RateLimitMiddleware)
app.add_middleware(RequestLogMiddleware)


@app.exception_handler(AppError)
async def app_error_handler(request: Request, exc: AppError) -> JSONResponse:
    if exc.http_status >= 500:
        logger.error("%s on %s: %s", type(exc).__name__, request.url.path, exc.message)
    resp = error_response(exc.code, exc.message, request)
    return JSONResponse(status_code=exc.http_status, content=resp.model_dump())


@app.exception_handler(RequestValidationError)
async def request_validation_handler(
    request: Request, exc: RequestValidationError
) -> JSONResponse:
    detail = "; ".join(
        f"{'.'.join(str(p) for p in e.get('loc', ()))}: {e.get('msg')}" for e in exc.errors()
    )
    resp = error_response(4001, f"Invalid request: {detail}", request)
    return JSONResponse(status_code=422, content=resp.model_dump())


app.include_router(settlement_router, prefix="/api/v1")
app.include_router(queue_router, prefix="/api/v1")
app.include_router(ledger_router, prefix="/api/v1")


@app.get("/health")
async def health() -> dict[str, str]:
    return {"status": "ok", "version": VERSION}
