"""Per-user rate limiting for trade endpoints.

Fixed-window counter in Redis:
    count = INCR ratelimit:{user_or_ip}:trades:{window}
    EXPIRE on first hit
    count > limit -> 429 RateLimitError (9001) with Retry-After

The caller is identified by the Bearer token subject when one decodes, else by
client IP (X-Forwarded-For aware). If Redis is unreachable the request is let
through and a warning is logged; trading must not depend on Redis being up.
"""

import logging
import time
from collections.abc import Awaitable, Callable

import redis.asyncio as aioredis
from redis.exceptions import RedisError
from starlette.middleware.base import BaseHTTPMiddleware, RequestResponseEndpoint
from starlette.requests import Request
from starlette.responses import JSONResponse, Response
from starlette.types import ASGIApp

from config.settings import settings
from src.pm_common.errors import AppError, RateLimitError
from src.pm_common.redis_client import get_redis
from src.pm_common.response import error_response
from src.pm_gateway.auth.jwt_handler import decode_token

logger = logging.getLogger(__name__)

TRADE_PATH_PREFIX = "/api/v1/trades"
WINDOW_SECONDS = 60


class FixedWindowLimiter:
    def __init__(self, redis: aioredis.Redis, limit: int, window_seconds: int = WINDOW_SECONDS) -> None:
        self._redis = redis
        self._limit = limit
        self._window = window_seconds

    async def hit(self, identity: str, group: str, now: float | None = None) -> tuple[bool, int]:
        """Count one request; returns (allowed, seconds until the window resets)."""
        now = time.time() if now is None else now
        window = int(now // self._window)
        key = f"ratelimit:{identity}:{group}:{window}"
        count = await self._redis.incr(key)
        if count == 1:
            await self._redis.expire(key, self._window)
        retry_after = self._window - int(now % self._window)
        return count <= self._limit, retry_after


def client_identity(request: Request) -> str:
    auth = request.headers.get("authorization", "")
    if auth.lower().startswith("bearer "):
        try:
            return f"user:{decode_token(auth[7:].strip())['sub']}"
        except AppError as exc:
            logger.debug("Bearer token rejected for rate limiting (%s), keying by client address", exc.message)
    forwarded = request.headers.get("x-forwarded-for")
    if forwarded:
        return f"ip:{forwarded.split(',')[0].strip()}"
    return f"ip:{request.client.host if request.client else 'unknown'}"


class RateLimitMiddleware(BaseHTTPMiddleware):
    def __init__(
        self,
        app: ASGIApp,
        limit: int | None = None,
        redis_factory: Callable[[], Awaitable[aioredis.Redis]] = get_redis,
    ) -> None:
        super().__init__(app)
        self._limit = limit or settings.TRADE_RATE_LIMIT_PER_MINUTE
        self._redis_factory = redis_factory

    async def dispatch(self, request: Request, call_next: RequestResponseEndpoint) -> Response:
        if request.method != "POST" or not request.url.path.startswith(TRADE_PATH_PREFIX):
            return await call_next(request)

        identity = client_identity(request)
        try:
            limiter = FixedWindowLimiter(await self._redis_factory(), self._limit)
            allowed, retry_after = await limiter.hit(identity, "trades")
        except (RedisError, OSError) as exc:
            logger.warning("Rate limiter unavailable, allowing %s: %s", identity, exc)
            return await call_next(request)

        if not allowed:
            logger.info("Rate limit exceeded: %s %s", identity, request.url.path)
            err = RateLimitError()
            body = error_response(err.code, err.message, request)
            return JSONResponse(
                status_code=err.http_status,
                content=body.model_dump(),
                headers={"Retry-After": str(retry_after)},
            )
        return await call_next(request)
