"""Rate limiting middleware using Redis with a Lua sliding window."""

import logging
import random
import time
from typing import Callable

from fastapi import Request, Response
from redis.exceptions import RedisError
from starlette.middleware.base import BaseHTTPMiddleware
from starlette.responses import JSONResponse

from vendorhub.core.config import settings
from vendorhub.core.redis import get_redis
from vendorhub.core.security import decode_access_token

logger = logging.getLogger(__name__)


class RateLimitMiddleware(BaseHTTPMiddleware):
    """Per-IP and per-actor rate limiting backed by one atomic Lua call.

    Money-moving endpoints (top-up, pay, group-order contributions) are the
    ones worth protecting; the limiter applies to every request though.
    When Redis is unreachable requests are let through.
    """

    RATE_LIMIT_SCRIPT = """
    local key = KEYS[1]
    local now = tonumber(ARGV[1])
    local window = tonumber(ARGV[2])
    local limit = tonumber(ARGV[3])
    local request_id = ARGV[4]
    local window_start = now - window

    redis.call('ZREMRANGEBYSCORE', key, 0, window_start)

    local count = redis.call('ZCARD', key)

    if count < limit then
        redis.call('ZADD', key, now, request_id)
        redis.call('EXPIRE', key, window + 1)
        return {1, 0}
    else
        local oldest = redis.call('ZRANGE', key, 0, 0, 'WITHSCORES')
        local retry_after = 1
        if oldest and #oldest >= 2 then
            retry_after = math.ceil(oldest[2] + window - now) + 1
            if retry_after < 1 then retry_after = 1 end
        end
        return {0, retry_after}
    end
    """

    def __init__(self, app, user_limit: int | None = None, ip_limit: int | None = None):
        super().__init__(app)
        self.user_limit = user_limit or settings.RATE_LIMIT_USER
        self.ip_limit = ip_limit or settings.RATE_LIMIT_IP
        self._rate_limit_script = None

    async def _get_rate_limit_script(self, redis):
        if self._rate_limit_script is None:
            self._rate_limit_script = redis.register_script(self.RATE_LIMIT_SCRIPT)
        return self._rate_limit_script

    async def dispatch(self, request: Request, call_next: Callable) -> Response:
        if not settings.RATE_LIMIT_ENABLED or request.url.path in ("/health", "/metrics"):
            return await call_next(request)

        client_ip = request.client.host if request.client else "unknown"

        try:
            redis = await get_redis()

            ip_allowed, ip_retry_after = await self._check_rate_limit_lua(
                redis, f"ratelimit:ip:{client_ip}", self.ip_limit
            )
            if not ip_allowed:
                return self._too_many("Too many requests from this IP", ip_retry_after)

            actor_id = self._actor_from_header(request.headers.get("Authorization", ""))
            if actor_id is not None:
                user_allowed, user_retry_after = await self._check_rate_limit_lua(
                    redis, f"ratelimit:user:{actor_id}", self.user_limit
                )
                if not user_allowed:
                    return self._too_many("Too many requests for this user", user_retry_after)
        except (RedisError, OSError) as e:
            logger.warning(f"Rate limiter unavailable, allowing request: {e}")

        return await call_next(request)

    @staticmethod
    def _actor_from_header(auth_header: str) -> str | None:
        if not auth_header.startswith("Bearer "):
            return None
        payload = decode_access_token(auth_header[7:])
        if payload is None:
            return None
        return payload.get("sub")

    @staticmethod
    def _too_many(detail: str, retry_after: int) -> JSONResponse:
        return JSONResponse(
            status_code=429,
            content={"detail": {"code": "RATE_LIMITED", "message": detail}},
            headers={"Retry-After": str(retry_after)},
        )

    async def _check_rate_limit_lua(
        self, redis, key: str, limit: int, window: int = 1
    ) -> tuple[bool, int]:
        """Check rate limit using atomic Lua script.

        Args:
            redis: Redis client
            key: Rate limit key
            limit: Maximum requests per window
            window: Window size in seconds

        Returns:
            Tuple of (allowed, retry_after_seconds)
        """
        now = time.time()
        request_id = f"{now}:{random.randint(0, 999999)}"

        script = await self._get_rate_limit_script(redis)
        result = await script(
            keys=[key],
            args=[now, window, limit, request_id],
        )

        return bool(result[0]), int(result[1])
