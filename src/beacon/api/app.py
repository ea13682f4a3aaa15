"""FastAPI application factory for Beacon.

Creates the application with:
- Disaster, resource, social media, official update, verification and
  geocoding routers under /api
- WebSocket endpoint (/ws) served by the event broadcaster
- Lifecycle management for the database, cache store, cache sweeper,
  upstream HTTP client and broadcaster heartbeat
- Consistent JSON error bodies
- ORJSON for fast JSON serialization
"""

from __future__ import annotations

import logging
from contextlib import asynccontextmanager
from typing import AsyncIterator, cast

from fastapi import FastAPI
from fastapi.exceptions import RequestValidationError
from fastapi.middleware.cors import CORSMiddleware
from fastapi.responses import ORJSONResponse
from starlette.types import ExceptionHandler

from beacon import __version__
from beacon.api.errors import (
    ApiError,
    api_error_handler,
    generic_exception_handler,
    request_validation_handler,
)
from beacon.api.middleware import CorrelationMiddleware, RateLimitConfig, RateLimitMiddleware
from beacon.api.routers import (
    disasters,
    geocoding,
    health,
    resources,
    social_media,
    updates,
    verification,
    websocket,
)
from beacon.cache import CacheSweeper, close_redis, create_cache_store
from beacon.config import settings
from beacon.core.background import drain
from beacon.events import Broadcaster
from beacon.observability import configure_logging
from beacon.persistence.db import close_db, init_db
from beacon.upstream import create_upstream_services

logger = logging.getLogger(__name__)


@asynccontextmanager
async def lifespan(app: FastAPI) -> AsyncIterator[None]:
    """Manage application lifecycle.

    On startup:
    - Configure structured logging
    - Create tables
    - Build the cache store, upstream clients and broadcaster
    - Start the cache sweeper and broadcaster heartbeat

    On shutdown:
    - Stop background loops
    - Wait for pending background writes
    - Close HTTP, Redis and database connections
    """
    configure_logging(
        json_format=settings.env != "dev",
        level=settings.log_level,
    )

    logger.info("Starting Beacon (%s)", settings.env)
    await init_db()

    cache_store = await create_cache_store()
    upstream = create_upstream_services(cache_store, settings)
    broadcaster = Broadcaster(
        heartbeat_interval=settings.heartbeat_interval,
        send_timeout=settings.send_timeout,
    )
    sweeper = CacheSweeper(cache_store, settings.cache_sweep_interval)

    app.state.cache_store = cache_store
    app.state.upstream = upstream
    app.state.broadcaster = broadcaster

    await broadcaster.start()
    await sweeper.start()
    logger.info("Beacon startup complete")

    yield

    logger.info("Shutting down Beacon")
    await sweeper.stop()
    await broadcaster.stop()
    await drain()
    await upstream.aclose()
    await cache_store.close()
    await close_redis()
    await close_db()
    logger.info("Beacon shutdown complete")


def create_app() -> FastAPI:
    """Create and configure the FastAPI application."""
    app = FastAPI(
        title="Beacon",
        description="Real-time disaster coordination backend",
        version=__version__,
        default_response_class=ORJSONResponse,
        lifespan=lifespan,
    )

    # CorrelationMiddleware is innermost to set context for all other middleware
    app.add_middleware(CorrelationMiddleware)

    if settings.enable_rate_limiting:
        app.add_middleware(
            RateLimitMiddleware,
            config=RateLimitConfig(
                requests_per_window=settings.rate_limit_requests,
                window_seconds=settings.rate_limit_window,
            ),
        )

    app.add_middleware(
        CORSMiddleware,
        allow_origins=settings.cors_origins,
        allow_credentials=True,
        allow_methods=["*"],
        allow_headers=["*"],
    )

    app.add_exception_handler(ApiError, cast(ExceptionHandler, api_error_handler))
    app.add_exception_handler(
        RequestValidationError, cast(ExceptionHandler, request_validation_handler)
    )
    app.add_exception_handler(Exception, cast(ExceptionHandler, generic_exception_handler))

    app.include_router(health.router)
    app.include_router(disasters.router)
    app.include_router(resources.router)
    app.include_router(social_media.router)
    app.include_router(updates.router)
    app.include_router(verification.router)
    app.include_router(geocoding.router)
    app.include_router(websocket.router)

    return app
