"""Cache-aside wrapper shared by every upstream provider.

fetch(key) flow:
1. Cache hit: decode with the namespace's model and return.
2. Miss: call the provider, bounded by ``timeout``.
3. A non-None result is written back with the namespace TTL.
4. Provider failure returns the caller's fallback; nothing is cached.

Concurrent misses on one key within this process share a single provider
call. Across processes a racing miss only costs an extra provider call.
"""

from __future__ import annotations

import asyncio
import logging
from collections.abc import Awaitable, Callable
from datetime import timedelta
from typing import TypeVar

import httpx
import orjson
from pydantic import BaseModel, ValidationError

from beacon.cache.store import CacheStore
from beacon.upstream.base import UpstreamError

logger = logging.getLogger(__name__)

T = TypeVar("T", bound=BaseModel)


class CachedUpstream:
    """Runs provider calls behind the expiring cache."""

    def __init__(self, store: CacheStore, timeout: float = 10.0):
        self.store = store
        self.timeout = timeout
        self._inflight: dict[str, asyncio.Future[BaseModel | None]] = {}

    async def fetch(
        self,
        key: str,
        model: type[T],
        ttl: timedelta,
        call: Callable[[], Awaitable[T | None]],
        fallback: Callable[[], T | None],
    ) -> T | None:
        cached = await self.store.get(key)
        if cached is not None:
            try:
                result = model.model_validate_json(cached)
            except ValidationError:
                logger.warning("Discarding undecodable cache entry %s", key)
            else:
                logger.debug("Cache hit for %s", key)
                return result

        inflight = self._inflight.get(key)
        if inflight is None:
            inflight = asyncio.ensure_future(self._refresh(key, ttl, call, fallback))
            self._inflight[key] = inflight
            inflight.add_done_callback(lambda _: self._inflight.pop(key, None))
        else:
            logger.debug("Joining in-flight call for %s", key)

        # Shielded so one cancelled caller doesn't cancel the call for the others.
        return await asyncio.shield(inflight)  # type: ignore[return-value]

    async def _refresh(
        self,
        key: str,
        ttl: timedelta,
        call: Callable[[], Awaitable[T | None]],
        fallback: Callable[[], T | None],
    ) -> T | None:
        try:
            result = await asyncio.wait_for(call(), timeout=self.timeout)
        except TimeoutError:
            logger.warning("Upstream call for %s timed out after %ss", key, self.timeout)
            return fallback()
        except (UpstreamError, httpx.HTTPError) as e:
            logger.warning("Upstream call for %s failed: %s", key, e)
            return fallback()

        if result is None:
            return None

        await self.store.set(key, orjson.dumps(result.model_dump(mode="json")), ttl)
        return result
