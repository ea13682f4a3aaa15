"""Health check endpoints for Beacon.

- /api/health       - Liveness (always OK if the process is running)
- /api/health/ready - Readiness (checks database and cache store)
"""

from __future__ import annotations

import asyncio
import time
from collections.abc import Awaitable, Callable
from dataclasses import dataclass
from datetime import UTC, datetime
from enum import Enum
from typing import Any

from fastapi import APIRouter
from fastapi.responses import ORJSONResponse

from beacon.api.deps import BroadcasterDep, CacheStoreDep
from beacon.persistence.db import health_check as db_health_check

router = APIRouter(prefix="/api/health", tags=["health"])

CHECK_TIMEOUT = 5.0


class HealthStatus(str, Enum):
    """Health check status."""

    HEALTHY = "healthy"
    UNHEALTHY = "unhealthy"


@dataclass
class ComponentHealth:
    """Health status of a single component."""

    name: str
    status: HealthStatus
    latency_ms: float
    message: str | None = None

    def to_dict(self) -> dict[str, Any]:
        result: dict[str, Any] = {
            "status": self.status.value,
            "latency_ms": round(self.latency_ms, 2),
        }
        if self.message:
            result["message"] = self.message
        return result


async def check_component(name: str, probe: Callable[[], Awaitable[bool]]) -> ComponentHealth:
    start = time.monotonic()
    try:
        healthy = await asyncio.wait_for(probe(), timeout=CHECK_TIMEOUT)
        message = None if healthy else f"{name} check failed"
    except TimeoutError:
        healthy = False
        message = f"{name} check timed out"
    except Exception as e:
        healthy = False
        message = str(e)
    return ComponentHealth(
        name=name,
        status=HealthStatus.HEALTHY if healthy else HealthStatus.UNHEALTHY,
        latency_ms=(time.monotonic() - start) * 1000,
        message=message,
    )


@router.get("")
async def live(broadcaster: BroadcasterDep) -> dict[str, Any]:
    """Liveness probe."""
    return {
        "status": "ok",
        "timestamp": datetime.now(UTC).isoformat(),
        "connected_clients": broadcaster.connection_count,
    }


@router.get("/ready")
async def ready(cache_store: CacheStoreDep) -> ORJSONResponse:
    """Readiness probe. Returns 503 if the database or cache store is unreachable."""
    components = await asyncio.gather(
        check_component("database", db_health_check),
        check_component("cache", cache_store.health_check),
    )
    all_healthy = all(c.status == HealthStatus.HEALTHY for c in components)
    overall = HealthStatus.HEALTHY if all_healthy else HealthStatus.UNHEALTHY
    return ORJSONResponse(
        content={"status": overall.value, "checks": {c.name: c.to_dict() for c in components}},
        status_code=200 if all_healthy else 503,
    )
