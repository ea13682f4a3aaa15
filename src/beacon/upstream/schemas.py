"""Result models for upstream providers.

Each cache namespace stores exactly one of these models, serialized with
orjson and decoded with ``model_validate_json``.
"""

from __future__ import annotations

from datetime import UTC, datetime
from typing import Literal

from pydantic import BaseModel, Field


def now_iso() -> str:
    return datetime.now(UTC).isoformat()


class LocationExtraction(BaseModel):
    location: str | None = None
    confidence: float = 0.0


class ImageVerification(BaseModel):
    analysis: str
    status: Literal["analyzed", "error"]
    timestamp: str = Field(default_factory=now_iso)


class Coordinates(BaseModel):
    lat: float
    lng: float
    formatted_address: str | None = None
    service: str


class SocialMediaReport(BaseModel):
    id: str
    user: str
    content: str
    timestamp: str
    urgency: str
    location_mentioned: str | None = None
    engagement: int = 0
    verified: bool = False


class SocialFeed(BaseModel):
    reports: list[SocialMediaReport] = Field(default_factory=list)
    total: int = 0
    last_updated: str = Field(default_factory=now_iso)
    source: str


class OfficialUpdate(BaseModel):
    id: str | None = None
    source: str
    title: str
    content: str
    url: str
    timestamp: str = Field(default_factory=now_iso)
    priority: str | None = None
    category: str | None = None


class OfficialFeed(BaseModel):
    updates: list[OfficialUpdate] = Field(default_factory=list)
    total: int = 0
    last_updated: str = Field(default_factory=now_iso)
    sources: list[str] = Field(default_factory=list)
