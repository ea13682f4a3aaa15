"""Resources (shelters, aid stations, supplies) and radius search."""

from __future__ import annotations

import logging
from typing import Any

from fastapi import APIRouter, Query

from beacon.api.deps import BroadcasterDep, SessionDep, UpstreamDep
from beacon.api.errors import NotFoundError, ValidationError
from beacon.core.geo import within_radius
from beacon.core.models import ResourceCreate, ResourceOut
from beacon.events.schemas import OutboundEvent, disaster_topic
from beacon.persistence.repositories import DisasterRepository, ResourceRepository
from beacon.persistence.tables import ResourceTable
from beacon.security.deps import CurrentUser

logger = logging.getLogger(__name__)

router = APIRouter(prefix="/api", tags=["resources"])

DEFAULT_RADIUS_METERS = 10000


def resource_payload(row: ResourceTable) -> dict[str, Any]:
    return ResourceOut.model_validate(row).model_dump(mode="json")


@router.get("/disasters/{disaster_id}/resources")
async def list_disaster_resources(
    disaster_id: str,
    session: SessionDep,
    lat: float | None = None,
    lon: float | None = None,
    radius: float = Query(default=DEFAULT_RADIUS_METERS, gt=0),
) -> dict[str, Any]:
    """Resources of a disaster, optionally limited to a radius around ``lat``/``lon``."""
    rows = await ResourceRepository(session).list_for_disaster(disaster_id)

    center = None
    if lat is not None and lon is not None:
        center = {"lat": lat, "lon": lon}
        rows = [r for r in rows if within_radius(r.lat, r.lng, lat, lon, radius)]

    logger.info("Resources fetched for disaster %s, found: %d", disaster_id, len(rows))
    return {
        "resources": [resource_payload(r) for r in rows],
        "total": len(rows),
        "center": center,
        "radius_meters": radius,
    }


@router.post("/disasters/{disaster_id}/resources", status_code=201)
async def create_resource(
    disaster_id: str,
    body: ResourceCreate,
    user: CurrentUser,
    session: SessionDep,
    upstream: UpstreamDep,
    broadcaster: BroadcasterDep,
) -> dict[str, Any]:
    if not body.name or not body.type:
        raise ValidationError("Name and type are required")
    if not await DisasterRepository(session).exists(disaster_id):
        raise NotFoundError("Disaster not found")

    coordinates = (
        await upstream.geocoding.geocode(body.location_name) if body.location_name else None
    )

    row = await ResourceRepository(session).create(
        disaster_id=disaster_id,
        name=body.name,
        location_name=body.location_name,
        type=body.type,
        description=body.description,
        capacity=body.capacity,
        contact_info=body.contact_info,
        created_by=user.sub,
        lat=coordinates.lat if coordinates else None,
        lng=coordinates.lng if coordinates else None,
    )
    await session.commit()

    payload = resource_payload(row)
    await broadcaster.publish(
        disaster_topic(disaster_id),
        OutboundEvent.RESOURCES_UPDATED,
        {"action": "create", "disaster_id": disaster_id, "resource": payload},
    )
    logger.info("Resource created: %s for disaster %s by %s", body.name, disaster_id, user.sub)
    return payload


@router.get("/resources/nearby")
async def nearby_resources(
    session: SessionDep,
    lat: float | None = None,
    lon: float | None = None,
    radius: float = Query(default=DEFAULT_RADIUS_METERS, gt=0),
    type: str | None = None,
) -> dict[str, Any]:
    """Resources of any disaster within ``radius`` meters of a point."""
    if lat is None or lon is None:
        raise ValidationError("Latitude and longitude are required")

    rows = await ResourceRepository(session).list_all(resource_type=type)
    nearby = [r for r in rows if within_radius(r.lat, r.lng, lat, lon, radius)]

    logger.info("Nearby resources found: %d within %sm of %s, %s", len(nearby), radius, lat, lon)
    return {
        "resources": [resource_payload(r) for r in nearby],
        "total": len(nearby),
        "center": {"lat": lat, "lon": lon},
        "radius_meters": radius,
    }
