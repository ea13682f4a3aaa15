"""Official updates from relief agencies."""

from __future__ import annotations

from typing import Any

from fastapi import APIRouter

from beacon.api.deps import UpstreamDep

router = APIRouter(prefix="/api", tags=["official-updates"])


@router.get("/disasters/{disaster_id}/official-updates")
async def disaster_official_updates(
    disaster_id: str, upstream: UpstreamDep, type: str = "general"
) -> dict[str, Any]:
    feed = await upstream.official.get_official_updates(type)
    return feed.model_dump(mode="json")


@router.get("/official-updates")
async def official_updates(upstream: UpstreamDep, type: str = "general") -> dict[str, Any]:
    feed = await upstream.official.get_official_updates(type)
    return feed.model_dump(mode="json")
