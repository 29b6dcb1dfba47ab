"""Fixed-window rate limiting for the queue trigger endpoints.

Trigger adapters (cron, webhook, admin) can fire in bursts; each burst only
needs one drain, so anything beyond RATE_LIMIT_PER_MINUTE per client per
minute is rejected with 429 instead of stacking redundant drains.

Redis logic (one counter per client per window):
    count = INCR ratelimit:{client}:queue:{window}
    if count == 1: EXPIRE key 60
    if count > limit: 429

If Redis is unreachable the request is let through; the queue itself is
safe under concurrent drains, the limiter only sheds load.
"""

import logging
import time

from redis.exceptions import RedisError
from starlette.middleware.base import BaseHTTPMiddleware, RequestResponseEndpoint
from starlette.requests import Request
from starlette.responses import JSONResponse, Response

from config.settings import settings
from src.pv_common.errors import RateLimitError
from src.pv_common.redis_client import get_redis
from src.pv_common.response import error_response

logger = logging.getLogger(__name__)

_WINDOW_SECONDS = 60
# Trigger endpoints only; order placement is storefront traffic
_LIMITED_PATHS = ("/api/v1/queue/process", "/api/v1/queue/webhook", "/api/v1/queue/status")


def _client_id(request: Request) -> str:
    forwarded = request.headers.get("x-forwarded-for")
    if forwarded:
        return forwarded.split(",")[0].strip()
    return request.client.host if request.client else "unknown"


class RateLimitMiddleware(BaseHTTPMiddleware):
    async def dispatch(self, request: Request, call_next: RequestResponseEndpoint) -> Response:
        if request.url.path not in _LIMITED_PATHS:
            return await call_next(request)

        window = int(time.time()) // _WINDOW_SECONDS
        key = f"ratelimit:{_client_id(request)}:queue:{window}"
        try:
            redis = await get_redis()
            count = await redis.incr(key)
            if count == 1:
                await redis.expire(key, _WINDOW_SECONDS)
        except RedisError as exc:
            logger.warning("Rate limiter unavailable, allowing request: %s", exc)
            return await call_next(request)

        if count > settings.RATE_LIMIT_PER_MINUTE:
            err = RateLimitError()
            return JSONResponse(
                status_code=err.http_status,
                content=error_response(err.code, err.message, request).model_dump(),
                headers={"Retry-After": str(_WINDOW_SECONDS)},
            )
        return await call_next(request)
