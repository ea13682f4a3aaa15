"""Disaster records.

Create and update resolve a location name (extracted from the description
when absent) to coordinates through the cached upstream wrappers. Every
mutation extends the audit trail and is announced to all observers as
``disaster_updated`` once committed.
"""

from __future__ import annotations

import logging
from typing import Any

from fastapi import APIRouter, Query, Response

from beacon.api.deps import BroadcasterDep, SessionDep, UpstreamDep
from beacon.api.errors import (
    ConflictError,
    ForbiddenError,
    NotFoundError,
    ValidationError,
)
from beacon.core.models import (
    DisasterCreate,
    DisasterDetailOut,
    DisasterOut,
    DisasterUpdate,
    ReportOut,
    ResourceOut,
)
from beacon.events.schemas import OutboundEvent
from beacon.persistence.repositories import (
    ConcurrentUpdateError,
    DisasterRepository,
    ReportRepository,
    ResourceRepository,
)
from beacon.persistence.tables import DisasterTable
from beacon.security.deps import CurrentUser
from beacon.upstream.schemas import Coordinates

logger = logging.getLogger(__name__)

router = APIRouter(prefix="/api/disasters", tags=["disasters"])


def disaster_payload(row: DisasterTable) -> dict[str, Any]:
    return DisasterOut.model_validate(row).model_dump(mode="json")


async def _get_or_404(repo: DisasterRepository, disaster_id: str) -> DisasterTable:
    row = await repo.get(disaster_id)
    if row is None:
        raise NotFoundError("Disaster not found")
    return row


async def _get_for_update_or_404(repo: DisasterRepository, disaster_id: str) -> DisasterTable:
    row = await repo.get_for_update(disaster_id)
    if row is None:
        raise NotFoundError("Disaster not found")
    return row


@router.get("")
async def list_disasters(
    session: SessionDep,
    tag: str | None = None,
    owner_id: str | None = None,
    limit: int = Query(default=50, ge=1, le=500),
    offset: int = Query(default=0, ge=0),
) -> dict[str, Any]:
    """List disasters newest first, each with its report count."""
    page = await DisasterRepository(session).list_paged(
        tag=tag, owner_id=owner_id, limit=limit, offset=offset
    )
    disasters = [
        {**disaster_payload(row), "report_count": report_count}
        for row, report_count in page.items
    ]
    return {"disasters": disasters, "total": page.total, "limit": limit, "offset": offset}


@router.get("/{disaster_id}")
async def get_disaster(disaster_id: str, session: SessionDep) -> dict[str, Any]:
    """Get one disaster with its reports and resources."""
    row = await _get_or_404(DisasterRepository(session), disaster_id)
    reports = await ReportRepository(session).list_for_disaster(disaster_id)
    resources = await ResourceRepository(session).list_for_disaster(disaster_id)

    detail = DisasterDetailOut(
        **DisasterOut.model_validate(row).model_dump(),
        reports=[ReportOut.model_validate(r) for r in reports],
        resources=[ResourceOut.model_validate(r) for r in resources],
    )
    return detail.model_dump(mode="json")


@router.post("", status_code=201)
async def create_disaster(
    body: DisasterCreate,
    user: CurrentUser,
    session: SessionDep,
    upstream: UpstreamDep,
    broadcaster: BroadcasterDep,
) -> dict[str, Any]:
    if not body.title or not body.description:
        raise ValidationError("Title and description are required")

    location_name = body.location_name
    if not location_name:
        extraction = await upstream.gemini.extract_location(body.description)
        location_name = extraction.location

    coordinates = await upstream.geocoding.geocode(location_name) if location_name else None

    row = await DisasterRepository(session).create(
        title=body.title,
        description=body.description,
        owner_id=user.sub,
        location_name=location_name,
        tags=body.tags,
        lat=coordinates.lat if coordinates else None,
        lng=coordinates.lng if coordinates else None,
    )
    await session.commit()

    payload = disaster_payload(row)
    await broadcaster.publish_all(
        OutboundEvent.DISASTER_UPDATED, {"action": "create", "disaster": payload}
    )
    logger.info("Disaster created: %s by %s", body.title, user.sub)
    return payload


@router.put("/{disaster_id}")
async def update_disaster(
    disaster_id: str,
    body: DisasterUpdate,
    user: CurrentUser,
    session: SessionDep,
    upstream: UpstreamDep,
    broadcaster: BroadcasterDep,
) -> dict[str, Any]:
    """Apply a partial update; only fields present in the body are considered.

    A new location name that cannot be geocoded keeps the previous
    coordinates; clearing the name clears them.
    """
    repo = DisasterRepository(session)
    row = await _get_or_404(repo, disaster_id)
    if not user.can_modify(row.owner_id):
        raise ForbiddenError("Not authorized to update this disaster")

    provided = body.model_fields_set
    resolved: Coordinates | None = None
    if "location_name" in provided and body.location_name != row.location_name:
        # Resolved before the row lock is taken.
        resolved = (
            await upstream.geocoding.geocode(body.location_name) if body.location_name else None
        )

    row = await _get_for_update_or_404(repo, disaster_id)
    changes: dict[str, Any] = {}

    for field_name in ("title", "description"):
        if field_name in provided:
            value = getattr(body, field_name)
            if not value:
                raise ValidationError(f"{field_name.capitalize()} cannot be empty")
            if value != getattr(row, field_name):
                changes[field_name] = value

    if "tags" in provided and body.tags is not None and body.tags != row.tags:
        changes["tags"] = body.tags

    coordinates: tuple[float, float] | None = None
    clear_location = False
    if "location_name" in provided and body.location_name != row.location_name:
        changes["location_name"] = body.location_name
        if not body.location_name:
            clear_location = True
        elif resolved is not None:
            coordinates = (resolved.lat, resolved.lng)

    try:
        row = await repo.update(
            row,
            user_id=user.sub,
            changes=changes,
            coordinates=coordinates,
            clear_location=clear_location,
        )
        await session.commit()
    except ConcurrentUpdateError as e:
        await session.rollback()
        logger.warning("Concurrent update rejected: %s", e)
        raise ConflictError("Disaster was modified concurrently, retry the update") from e

    payload = disaster_payload(row)
    await broadcaster.publish_all(
        OutboundEvent.DISASTER_UPDATED, {"action": "update", "disaster": payload}
    )
    logger.info("Disaster updated: %s by %s", disaster_id, user.sub)
    return payload


@router.delete("/{disaster_id}", status_code=204)
async def delete_disaster(
    disaster_id: str,
    user: CurrentUser,
    session: SessionDep,
    broadcaster: BroadcasterDep,
) -> Response:
    repo = DisasterRepository(session)
    row = await _get_for_update_or_404(repo, disaster_id)
    if not user.can_modify(row.owner_id):
        raise ForbiddenError("Not authorized to delete this disaster")

    try:
        await repo.delete(row)
        await session.commit()
    except ConcurrentUpdateError as e:
        await session.rollback()
        logger.warning("Concurrent delete rejected: %s", e)
        raise ConflictError("Disaster was modified concurrently, retry the delete") from e

    await broadcaster.publish_all(
        OutboundEvent.DISASTER_UPDATED, {"action": "delete", "disaster_id": disaster_id}
    )
    logger.info("Disaster deleted: %s by %s", disaster_id, user.sub)
    return Response(status_code=204)
