"""Shared FastAPI dependencies for Beacon routers.

Long-lived components are built once in the application lifespan and kept
on ``app.state``; these dependencies hand them to request handlers (and
let tests swap them through ``app.dependency_overrides``).
"""

from __future__ import annotations

from typing import Annotated

from fastapi import Depends, Request, WebSocket
from sqlalchemy.ext.asyncio import AsyncSession

from beacon.cache.store import CacheStore
from beacon.events.broadcaster import Broadcaster
from beacon.persistence.db import get_session
from beacon.upstream.services import UpstreamServices


def get_broadcaster(request: Request) -> Broadcaster:
    return request.app.state.broadcaster


def get_ws_broadcaster(websocket: WebSocket) -> Broadcaster:
    return websocket.app.state.broadcaster


def get_cache_store(request: Request) -> CacheStore:
    return request.app.state.cache_store


def get_upstream(request: Request) -> UpstreamServices:
    return request.app.state.upstream


SessionDep = Annotated[AsyncSession, Depends(get_session)]
BroadcasterDep = Annotated[Broadcaster, Depends(get_broadcaster)]
CacheStoreDep = Annotated[CacheStore, Depends(get_cache_store)]
UpstreamDep = Annotated[UpstreamServices, Depends(get_upstream)]


def parse_keywords(raw: str | None) -> list[str]:
    """Split a comma-separated ``keywords`` query value."""
    if not raw:
        return []
    return [k.strip() for k in raw.split(",") if k.strip()]
