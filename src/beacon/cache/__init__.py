"""Expiring cache for Beacon.

This module provides:
- CacheStore interface with database and Redis backends
- Deterministic key derivation for upstream calls
- A background sweeper for expired entries
"""

from beacon.cache.keys import CacheKeys
from beacon.cache.redis import RedisCacheStore, close_redis, get_redis
from beacon.cache.runtime import create_cache_store
from beacon.cache.store import CacheStore, DatabaseCacheStore
from beacon.cache.sweeper import CacheSweeper

__all__ = [
    "CacheKeys",
    "CacheStore",
    "CacheSweeper",
    "DatabaseCacheStore",
    "RedisCacheStore",
    "close_redis",
    "create_cache_store",
    "get_redis",
]
