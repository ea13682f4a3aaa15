"""Runtime wiring for the Beacon expiring cache."""

from __future__ import annotations

import logging

from beacon.cache.redis import RedisCacheStore, get_redis
from beacon.cache.store import CacheStore, DatabaseCacheStore
from beacon.config import settings
from beacon.persistence.db import get_engine

logger = logging.getLogger(__name__)


async def create_cache_store(backend: str | None = None) -> CacheStore:
    """Create a cache store based on configuration."""
    backend = (backend or settings.cache_backend).lower()

    if backend in {"database", "db", "sql"}:
        store: CacheStore = DatabaseCacheStore(get_engine())
    elif backend == "redis":
        store = RedisCacheStore(await get_redis())
    else:
        raise ValueError("Unsupported cache_backend. Supported values: database, redis.")

    logger.info("Cache store created (%s)", type(store).__name__)
    return store
