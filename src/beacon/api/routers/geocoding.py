"""Location extraction and geocoding endpoints."""

from __future__ import annotations

from typing import Any

from fastapi import APIRouter

from beacon.api.deps import UpstreamDep
from beacon.api.errors import ValidationError
from beacon.core.models import ExtractLocationRequest, GeocodeRequest

router = APIRouter(prefix="/api/geocode", tags=["geocoding"])


@router.post("")
async def geocode(body: GeocodeRequest, upstream: UpstreamDep) -> dict[str, Any]:
    """Resolve ``location_name`` (or a location extracted from ``text``) to coordinates."""
    if not body.text and not body.location_name:
        raise ValidationError("Either text or location_name is required")

    location_name = body.location_name
    extraction = None
    if body.text and not location_name:
        extraction = await upstream.gemini.extract_location(body.text)
        location_name = extraction.location

    coordinates = await upstream.geocoding.geocode(location_name) if location_name else None

    return {
        "input_text": body.text,
        "location_extraction": extraction.model_dump(mode="json") if extraction else None,
        "location_name": location_name,
        "coordinates": coordinates.model_dump(mode="json") if coordinates else None,
        "success": coordinates is not None,
    }


@router.post("/extract-location")
async def extract_location(body: ExtractLocationRequest, upstream: UpstreamDep) -> dict[str, Any]:
    if not body.text:
        raise ValidationError("Text is required")
    extraction = await upstream.gemini.extract_location(body.text)
    return extraction.model_dump(mode="json")
