"""Expiring cache store for Beacon.

A persistent, process-shared key/value store with per-entry absolute
expiry. Values are opaque bytes; callers own serialization.

Failure policy: the cache is a side channel. Every operation logs backend
errors and degrades (a failed read is a miss, a failed write returns
False) so that callers never fail the request they are serving because of
the cache.
"""

from __future__ import annotations

import logging
from abc import ABC, abstractmethod
from collections.abc import Callable
from datetime import UTC, datetime, timedelta

from sqlalchemy import delete, select
from sqlalchemy.dialects.postgresql import insert as pg_insert
from sqlalchemy.dialects.sqlite import insert as sqlite_insert
from sqlalchemy.ext.asyncio import AsyncEngine, AsyncSession, async_sessionmaker

from beacon.persistence.tables import CacheTable

logger = logging.getLogger(__name__)

Clock = Callable[[], datetime]


def utc_clock() -> datetime:
    return datetime.now(UTC)


def as_utc(value: datetime) -> datetime:
    """Attach UTC to naive timestamps read back from drivers without tz support."""
    if value.tzinfo is None:
        return value.replace(tzinfo=UTC)
    return value


class CacheStore(ABC):
    """Abstract expiring cache interface."""

    @abstractmethod
    async def get(self, key: str) -> bytes | None:
        """Return the cached value, or None on a miss.

        An entry past its expiry is a miss and is removed.
        """

    @abstractmethod
    async def set(self, key: str, value: bytes, ttl: timedelta) -> bool:
        """Upsert ``value`` expiring ``ttl`` from now. Returns False on failure."""

    @abstractmethod
    async def delete(self, key: str) -> None:
        """Remove an entry. Deleting an absent key is a no-op."""

    @abstractmethod
    async def sweep(self) -> int:
        """Remove every expired entry and return how many were removed."""

    async def health_check(self) -> bool:
        """Check backend connectivity."""
        return True

    async def close(self) -> None:
        """Release backend resources."""
        return None


class DatabaseCacheStore(CacheStore):
    """Cache entries stored in the ``cache`` table.

    Writes use INSERT ... ON CONFLICT (key) DO UPDATE so concurrent writers
    from any process converge on the last fully-written value.
    """

    def __init__(self, engine: AsyncEngine, clock: Clock = utc_clock):
        self._engine = engine
        self._session_factory = async_sessionmaker(
            engine, class_=AsyncSession, expire_on_commit=False
        )
        self._clock = clock
        self._dialect = engine.dialect.name

    async def get(self, key: str) -> bytes | None:
        try:
            async with self._session_factory() as session:
                stmt = select(CacheTable.value, CacheTable.expires_at).where(
                    CacheTable.key == key
                )
                row = (await session.execute(stmt)).first()
        except Exception:
            logger.exception("Cache get failed for key %s", key)
            return None

        if row is None:
            return None

        now = self._clock()
        if as_utc(row.expires_at) < now:
            await self._delete_expired(key, now)
            return None

        return row.value

    async def set(self, key: str, value: bytes, ttl: timedelta) -> bool:
        expires_at = self._clock() + ttl
        try:
            async with self._session_factory() as session, session.begin():
                await self._upsert(session, key, value, expires_at)
        except Exception:
            logger.exception("Cache set failed for key %s", key)
            return False
        return True

    async def delete(self, key: str) -> None:
        try:
            async with self._session_factory() as session, session.begin():
                await session.execute(delete(CacheTable).where(CacheTable.key == key))
        except Exception:
            logger.exception("Cache delete failed for key %s", key)

    async def sweep(self) -> int:
        now = self._clock()
        try:
            async with self._session_factory() as session, session.begin():
                result = await session.execute(
                    delete(CacheTable).where(CacheTable.expires_at < now)
                )
        except Exception:
            logger.exception("Cache sweep failed")
            return 0
        removed = result.rowcount or 0
        logger.info("Cache sweep removed %d expired entries", removed)
        return removed

    async def health_check(self) -> bool:
        try:
            async with self._session_factory() as session:
                await session.execute(select(CacheTable.key).limit(1))
            return True
        except Exception:
            return False

    async def _delete_expired(self, key: str, now: datetime) -> None:
        """Remove ``key`` only if it is still expired.

        A concurrent ``set`` that landed after our read is left intact.
        """
        try:
            async with self._session_factory() as session, session.begin():
                await session.execute(
                    delete(CacheTable).where(CacheTable.key == key, CacheTable.expires_at < now)
                )
        except Exception:
            logger.exception("Cache expiry removal failed for key %s", key)

    async def _upsert(
        self, session: AsyncSession, key: str, value: bytes, expires_at: datetime
    ) -> None:
        if self._dialect in ("postgresql", "sqlite"):
            insert = pg_insert if self._dialect == "postgresql" else sqlite_insert
            stmt = insert(CacheTable).values(key=key, value=value, expires_at=expires_at)
            stmt = stmt.on_conflict_do_update(
                index_elements=[CacheTable.key],
                set_={"value": stmt.excluded.value, "expires_at": stmt.excluded.expires_at},
            )
            await session.execute(stmt)
        else:
            await session.merge(CacheTable(key=key, value=value, expires_at=expires_at))
