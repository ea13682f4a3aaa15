"""Periodic removal of expired cache entries.

Lazy expiry only removes entries that are read again; the sweeper bounds
the size of the store for keys nobody asks for twice.
"""

from __future__ import annotations

import asyncio
import logging

from beacon.cache.store import CacheStore

logger = logging.getLogger(__name__)


class CacheSweeper:
    """Background task calling ``CacheStore.sweep`` on a fixed interval."""

    def __init__(self, store: CacheStore, interval: float):
        self.store = store
        self.interval = interval
        self._running = False
        self._task: asyncio.Task[None] | None = None

    @property
    def running(self) -> bool:
        return self._running

    async def start(self) -> None:
        """Start sweeping."""
        if self._running:
            return

        self._running = True
        self._task = asyncio.create_task(self._sweep_loop())
        logger.info("Cache sweeper started (interval=%ss)", self.interval)

    async def stop(self) -> None:
        """Stop sweeping."""
        self._running = False

        if self._task:
            self._task.cancel()
            try:
                await self._task
            except asyncio.CancelledError:
                pass
            self._task = None

    async def sweep_once(self) -> int:
        return await self.store.sweep()

    async def _sweep_loop(self) -> None:
        while self._running:
            try:
                await asyncio.sleep(self.interval)
                await self.sweep_once()
            except asyncio.CancelledError:
                break
            except Exception:
                logger.exception("Error in cache sweep loop")
