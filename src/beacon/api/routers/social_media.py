"""Social media signal for disasters."""

from __future__ import annotations

from typing import Any, Literal

from fastapi import APIRouter

from beacon.api.deps import BroadcasterDep, UpstreamDep, parse_keywords
from beacon.events.schemas import OutboundEvent, disaster_topic

router = APIRouter(prefix="/api", tags=["social-media"])


@router.get("/disasters/{disaster_id}/social-media")
async def disaster_social_media(
    disaster_id: str,
    upstream: UpstreamDep,
    broadcaster: BroadcasterDep,
    keywords: str | None = None,
    source: Literal["mock", "twitter", "bluesky"] = "mock",
) -> dict[str, Any]:
    """Reports for a disaster; observers of the disaster receive them too."""
    feed = await upstream.social.get_reports(disaster_id, parse_keywords(keywords), source)
    payload = feed.model_dump(mode="json")

    await broadcaster.publish(
        disaster_topic(disaster_id),
        OutboundEvent.SOCIAL_MEDIA_UPDATED,
        {"disaster_id": disaster_id, "reports": payload["reports"], "source": source},
    )
    return payload


@router.get("/mock-social-media")
async def mock_social_media(upstream: UpstreamDep, keywords: str | None = None) -> dict[str, Any]:
    feed = await upstream.social.get_reports("general", parse_keywords(keywords))
    return feed.model_dump(mode="json")
