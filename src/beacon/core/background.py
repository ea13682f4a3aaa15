"""Fire-and-forget tasks for best-effort side effects.

The event loop only keeps weak references to tasks, so spawned tasks are
held here until they finish. Failures are logged, never raised.
"""

from __future__ import annotations

import asyncio
import logging
from collections.abc import Coroutine
from typing import Any

logger = logging.getLogger(__name__)

_tasks: set[asyncio.Task[Any]] = set()


def spawn(coro: Coroutine[Any, Any, Any], name: str | None = None) -> asyncio.Task[Any]:
    """Schedule ``coro`` without awaiting it."""
    task = asyncio.create_task(coro, name=name)
    _tasks.add(task)
    task.add_done_callback(_finished)
    return task


def _finished(task: asyncio.Task[Any]) -> None:
    _tasks.discard(task)
    if task.cancelled():
        return
    exc = task.exception()
    if exc is not None:
        logger.error("Background task %s failed", task.get_name(), exc_info=exc)


async def drain() -> None:
    """Wait for every pending background task (used at shutdown and in tests)."""
    if _tasks:
        await asyncio.gather(*list(_tasks), return_exceptions=True)


def pending_count() -> int:
    return len(_tasks)
