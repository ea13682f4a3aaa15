"""Rate limiting middleware for the Beacon API.

Provides Redis-backed sliding window rate limiting per client IP.
"""

from __future__ import annotations

import logging
import time
from dataclasses import dataclass, field
from typing import TYPE_CHECKING

from fastapi.responses import ORJSONResponse
from starlette.middleware.base import BaseHTTPMiddleware, RequestResponseEndpoint
from starlette.requests import Request
from starlette.responses import Response
from starlette.types import ASGIApp

from beacon.api.errors import error_body
from beacon.cache.redis import get_redis

if TYPE_CHECKING:
    from redis.asyncio import Redis

logger = logging.getLogger(__name__)


@dataclass
class RateLimitConfig:
    """Rate limiting configuration."""

    # Maximum requests per window
    requests_per_window: int = 100
    # Window duration in seconds
    window_seconds: int = 900
    # Only paths under these prefixes are limited
    include_prefixes: list[str] = field(default_factory=lambda: ["/api/"])
    # Path prefixes to bypass (health checks)
    bypass_prefixes: list[str] = field(default_factory=lambda: ["/api/health"])


class SlidingWindowRateLimiter:
    """Redis-backed sliding window rate limiter.

    Uses sorted sets to implement accurate sliding window counting.
    """

    def __init__(self, redis: Redis, config: RateLimitConfig):
        self.redis = redis
        self.config = config

    async def is_allowed(self, key: str) -> tuple[bool, dict[str, str]]:
        """Check if request is allowed.

        Returns:
            Tuple of (allowed, headers) where headers contains
            rate limit information.
        """
        now = time.time()
        window_start = now - self.config.window_seconds

        pipe = self.redis.pipeline()
        pipe.zremrangebyscore(key, 0, window_start)
        pipe.zcard(key)
        pipe.zadd(key, {str(now): now})
        pipe.expire(key, self.config.window_seconds + 1)
        results = await pipe.execute()
        current_count = results[1]

        limit = self.config.requests_per_window
        remaining = max(0, limit - current_count - 1)
        reset_at = int(now) + self.config.window_seconds

        headers = {
            "X-RateLimit-Limit": str(limit),
            "X-RateLimit-Remaining": str(remaining),
            "X-RateLimit-Reset": str(reset_at),
        }

        allowed = current_count < limit
        if not allowed:
            headers["Retry-After"] = str(self.config.window_seconds)

        return allowed, headers


class RateLimitMiddleware(BaseHTTPMiddleware):
    """Per-IP rate limiting for API routes.

    Redis is fetched lazily at request time; if it is unavailable the
    request is allowed without rate limit headers.
    """

    def __init__(self, app: ASGIApp, config: RateLimitConfig | None = None):
        super().__init__(app)
        self.config = config or RateLimitConfig()
        self._limiter: SlidingWindowRateLimiter | None = None

    def _get_limiter(self, redis: Redis) -> SlidingWindowRateLimiter:
        if self._limiter is None:
            self._limiter = SlidingWindowRateLimiter(redis, self.config)
        return self._limiter

    async def dispatch(self, request: Request, call_next: RequestResponseEndpoint) -> Response:
        """Apply rate limiting to request."""
        path = request.url.path
        if not any(path.startswith(prefix) for prefix in self.config.include_prefixes):
            return await call_next(request)
        if any(path.startswith(prefix) for prefix in self.config.bypass_prefixes):
            return await call_next(request)

        key = f"ratelimit:ip:{self._get_client_ip(request)}"

        try:
            limiter = self._get_limiter(await get_redis())
            allowed, headers = await limiter.is_allowed(key)
        except Exception as e:
            logger.debug("Rate limiter unavailable, allowing request: %s", e)
            return await call_next(request)

        if not allowed:
            return ORJSONResponse(
                status_code=429,
                content=error_body(
                    "TooManyRequests", "Too many requests from this IP, please try again later."
                ).model_dump(),
                headers=headers,
            )

        response = await call_next(request)

        for name, value in headers.items():
            response.headers[name] = value

        return response

    def _get_client_ip(self, request: Request) -> str:
        """Extract client IP, handling proxies."""
        forwarded = request.headers.get("x-forwarded-for")
        if forwarded:
            return forwarded.split(",")[0].strip()

        real_ip = request.headers.get("x-real-ip")
        if real_ip:
            return real_ip

        if request.client:
            return request.client.host

        return "unknown"
