"""Redis-backed expiring cache for Beacon.

Entries are written with ``SET ... PX`` so Redis evicts them on its own,
and each value carries an 8-byte big-endian absolute expiry (epoch ms)
so reads apply the same lazy-expiry rule as the database store even when
Redis and the application disagree on time.
"""

from __future__ import annotations

import logging
import struct
from datetime import timedelta
from typing import TYPE_CHECKING

import redis.asyncio as redis

from beacon.cache.keys import CacheKeys
from beacon.cache.store import CacheStore, Clock, utc_clock
from beacon.config import settings

if TYPE_CHECKING:
    from redis.asyncio import Redis

logger = logging.getLogger(__name__)

# Module-level connection pool
_redis_client: Redis | None = None

_EXPIRY_HEADER = struct.Struct(">q")


async def get_redis() -> Redis:
    """Get or create the Redis client.

    Uses connection pooling for efficient connection management.
    """
    global _redis_client
    if _redis_client is None:
        _redis_client = redis.from_url(  # type: ignore[no-untyped-call]
            settings.redis_url,
            encoding="utf-8",
            decode_responses=False,  # We're storing bytes
        )
    return _redis_client


async def close_redis() -> None:
    """Close Redis connections."""
    global _redis_client
    if _redis_client is not None:
        await _redis_client.aclose()
        _redis_client = None


class RedisCacheStore(CacheStore):
    """Expiring cache on a shared Redis instance."""

    def __init__(self, client: Redis, clock: Clock = utc_clock):
        self.client = client
        self._clock = clock

    def _now_ms(self) -> int:
        return int(self._clock().timestamp() * 1000)

    async def get(self, key: str) -> bytes | None:
        try:
            raw = await self.client.get(key)
        except Exception:
            logger.exception("Cache get failed for key %s", key)
            return None

        if raw is None:
            return None
        if len(raw) < _EXPIRY_HEADER.size:
            logger.warning("Discarding malformed cache entry %s", key)
            await self.delete(key)
            return None

        (expires_ms,) = _EXPIRY_HEADER.unpack_from(raw)
        if expires_ms < self._now_ms():
            await self.delete(key)
            return None
        return bytes(raw[_EXPIRY_HEADER.size :])

    async def set(self, key: str, value: bytes, ttl: timedelta) -> bool:
        ttl_ms = max(int(ttl.total_seconds() * 1000), 1)
        payload = _EXPIRY_HEADER.pack(self._now_ms() + ttl_ms) + value
        try:
            await self.client.set(key, payload, px=ttl_ms)
        except Exception:
            logger.exception("Cache set failed for key %s", key)
            return False
        return True

    async def delete(self, key: str) -> None:
        try:
            await self.client.delete(key)
        except Exception:
            logger.exception("Cache delete failed for key %s", key)

    async def sweep(self) -> int:
        removed = 0
        now_ms = self._now_ms()
        try:
            async for key in self.client.scan_iter(match=CacheKeys.namespace_pattern()):
                raw = await self.client.get(key)
                if raw is None:
                    continue
                if len(raw) < _EXPIRY_HEADER.size:
                    logger.warning("Discarding malformed cache entry %s", key)
                    removed += await self.client.delete(key)
                    continue
                (expires_ms,) = _EXPIRY_HEADER.unpack_from(raw)
                if expires_ms < now_ms:
                    removed += await self.client.delete(key)
        except Exception:
            logger.exception("Cache sweep failed")
            return removed
        logger.info("Cache sweep removed %d expired entries", removed)
        return removed

    async def health_check(self) -> bool:
        try:
            await self.client.ping()
            return True
        except Exception:
            return False
