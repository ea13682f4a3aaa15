"""Global pytest configuration and fixtures.

Database-backed tests run against a throwaway SQLite file per test, with
the same table metadata the application creates at startup.
"""

from __future__ import annotations

from collections.abc import AsyncIterator
from contextlib import asynccontextmanager
from datetime import UTC, datetime, timedelta
from pathlib import Path
from typing import Any, cast

import httpx
import orjson
import pytest
from fastapi import FastAPI
from fastapi.exceptions import RequestValidationError
from fastapi.responses import ORJSONResponse
from sqlalchemy.ext.asyncio import (
    AsyncEngine,
    AsyncSession,
    async_sessionmaker,
    create_async_engine,
)
from starlette.types import ExceptionHandler

from beacon.api.errors import (
    ApiError,
    api_error_handler,
    generic_exception_handler,
    request_validation_handler,
)
from beacon.api.routers import (
    disasters,
    geocoding,
    health,
    resources,
    social_media,
    updates,
    verification,
)
from beacon.cache.store import DatabaseCacheStore
from beacon.config import Settings
from beacon.events.broadcaster import Broadcaster
from beacon.persistence.db import get_session
from beacon.persistence.tables import Base
from beacon.upstream.services import UpstreamServices, create_upstream_services


class FakeClock:
    """Manually advanced UTC clock."""

    def __init__(self, start: datetime | None = None):
        self.now = start or datetime(2026, 1, 1, 12, 0, tzinfo=UTC)

    def __call__(self) -> datetime:
        return self.now

    def advance(self, **kwargs: float) -> None:
        self.now += timedelta(**kwargs)


@pytest.fixture
async def engine(tmp_path: Path) -> AsyncIterator[AsyncEngine]:
    """Create a fresh SQLite database with all tables."""
    engine = create_async_engine(f"sqlite+aiosqlite:///{tmp_path / 'beacon.db'}")
    async with engine.begin() as conn:
        await conn.run_sync(Base.metadata.create_all)
    yield engine
    await engine.dispose()


@pytest.fixture
def session_factory(engine: AsyncEngine) -> async_sessionmaker[AsyncSession]:
    return async_sessionmaker(engine, class_=AsyncSession, expire_on_commit=False)


@pytest.fixture
async def session(
    session_factory: async_sessionmaker[AsyncSession],
) -> AsyncIterator[AsyncSession]:
    async with session_factory() as session:
        yield session


@pytest.fixture
def clock() -> FakeClock:
    return FakeClock()


@pytest.fixture
def cache_store(engine: AsyncEngine, clock: FakeClock) -> DatabaseCacheStore:
    """Database cache store driven by the fake clock."""
    return DatabaseCacheStore(engine, clock=clock)


# -----------------------------------------------------------------------------
# API fixtures
# -----------------------------------------------------------------------------


class FakeProviders:
    """Serves Gemini and Nominatim over ``httpx.MockTransport`` and counts calls."""

    PLACES = {
        "Manhattan, NYC": {"lat": "40.7831", "lon": "-73.9712", "display_name": "Manhattan"},
        "Paris": {"lat": "48.8566", "lon": "2.3522", "display_name": "Paris, France"},
    }

    def __init__(self) -> None:
        self.location = "Manhattan, NYC"
        self.extract_calls = 0
        self.verify_calls = 0
        self.geocode_calls = 0

    def __call__(self, request: httpx.Request) -> httpx.Response:
        if request.url.host == "generativelanguage.googleapis.com":
            prompt = orjson.loads(request.content)["contents"][0]["parts"][0]["text"]
            if prompt.startswith("Extract the location"):
                self.extract_calls += 1
                text = self.location
            else:
                self.verify_calls += 1
                text = "No signs of manipulation detected."
            return httpx.Response(
                200, json={"candidates": [{"content": {"parts": [{"text": text}]}}]}
            )

        if request.url.host == "nominatim.openstreetmap.org":
            self.geocode_calls += 1
            place = self.PLACES.get(request.url.params["q"])
            return httpx.Response(200, json=[place] if place else [])

        return httpx.Response(404)


class RecordingWebSocket:
    """WebSocket double collecting frames sent by the broadcaster."""

    def __init__(self) -> None:
        self.sent: list[str] = []

    async def accept(self) -> None:
        pass

    async def send_text(self, text: str) -> None:
        self.sent.append(text)

    def events(self) -> list[dict[str, Any]]:
        return [orjson.loads(t) for t in self.sent]


@pytest.fixture
def providers() -> FakeProviders:
    return FakeProviders()


@pytest.fixture
async def upstream(
    cache_store: DatabaseCacheStore, providers: FakeProviders
) -> AsyncIterator[UpstreamServices]:
    test_settings = Settings(GEMINI_API_KEY="test-key", nominatim_min_interval=0)
    http = httpx.AsyncClient(transport=httpx.MockTransport(providers))
    services = create_upstream_services(cache_store, test_settings, http=http)
    yield services
    await services.aclose()


@pytest.fixture
def broadcaster() -> Broadcaster:
    return Broadcaster(send_timeout=1.0)


@pytest.fixture
async def listener(broadcaster: Broadcaster) -> RecordingWebSocket:
    """An observer connected to the broadcaster, joined to no topics."""
    ws = RecordingWebSocket()
    await broadcaster.connect(ws)  # type: ignore[arg-type]
    return ws


@pytest.fixture
def app(
    session_factory: async_sessionmaker[AsyncSession],
    cache_store: DatabaseCacheStore,
    upstream: UpstreamServices,
    broadcaster: Broadcaster,
    monkeypatch: pytest.MonkeyPatch,
) -> FastAPI:
    """Application with every router, backed by the test database."""
    app = FastAPI(default_response_class=ORJSONResponse)
    app.add_exception_handler(ApiError, cast(ExceptionHandler, api_error_handler))
    app.add_exception_handler(
        RequestValidationError, cast(ExceptionHandler, request_validation_handler)
    )
    app.add_exception_handler(Exception, cast(ExceptionHandler, generic_exception_handler))
    for module in (disasters, resources, social_media, updates, verification, geocoding, health):
        app.include_router(module.router)

    app.state.cache_store = cache_store
    app.state.upstream = upstream
    app.state.broadcaster = broadcaster

    async def override_session() -> AsyncIterator[AsyncSession]:
        async with session_factory() as session:
            yield session

    @asynccontextmanager
    async def test_session_context() -> AsyncIterator[AsyncSession]:
        async with session_factory() as session:
            yield session
            await session.commit()

    app.dependency_overrides[get_session] = override_session
    monkeypatch.setattr(verification, "session_context", test_session_context)
    return app


@pytest.fixture
async def client(app: FastAPI) -> AsyncIterator[httpx.AsyncClient]:
    transport = httpx.ASGITransport(app=app, raise_app_exceptions=False)
    async with httpx.AsyncClient(transport=transport, base_url="http://test") as client:
        yield client


@pytest.fixture
def join_listener(broadcaster: Broadcaster):
    """Connect a recording observer and join it to ``topic``."""

    async def factory(topic: str) -> RecordingWebSocket:
        ws = RecordingWebSocket()
        observer = await broadcaster.connect(ws)  # type: ignore[arg-type]
        await observer.join(topic)
        return ws

    return factory
