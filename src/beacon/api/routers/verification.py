"""Image verification for disaster reports.

The verification result is returned to the caller regardless of what
happens to its side effects: the report status update is logged on
failure, and the verification log row is written in the background.
"""

from __future__ import annotations

import logging
from datetime import UTC, datetime
from typing import Any

from fastapi import APIRouter

from beacon.api.deps import SessionDep, UpstreamDep
from beacon.api.errors import ValidationError
from beacon.core.background import spawn
from beacon.core.models import VerificationLogOut, VerifyImageRequest
from beacon.persistence.db import session_context
from beacon.persistence.repositories import ReportRepository, VerificationLogRepository
from beacon.security.deps import CurrentUser
from beacon.upstream.schemas import ImageVerification

logger = logging.getLogger(__name__)

router = APIRouter(prefix="/api", tags=["verification"])


async def record_report_verification(
    report_id: str, disaster_id: str, verification: ImageVerification
) -> None:
    try:
        async with session_context() as session:
            found = await ReportRepository(session).update_verification(
                report_id,
                disaster_id,
                status=verification.status,
                details=verification.model_dump(mode="json"),
            )
        if not found:
            logger.warning("Report %s not found under disaster %s", report_id, disaster_id)
    except Exception:
        logger.exception("Failed to update verification status of report %s", report_id)


async def write_verification_log(
    disaster_id: str,
    report_id: str | None,
    image_url: str,
    verification: ImageVerification,
    verified_by: str,
) -> None:
    async with session_context() as session:
        await VerificationLogRepository(session).add(
            disaster_id=disaster_id,
            report_id=report_id,
            image_url=image_url,
            verification_result=verification.model_dump(mode="json"),
            verified_by=verified_by,
        )


@router.post("/disasters/{disaster_id}/verify-image")
async def verify_image(
    disaster_id: str,
    body: VerifyImageRequest,
    user: CurrentUser,
    upstream: UpstreamDep,
) -> dict[str, Any]:
    if not body.image_url:
        raise ValidationError("Image URL is required")

    verification = await upstream.gemini.verify_image(body.image_url, body.context)

    if body.report_id:
        await record_report_verification(body.report_id, disaster_id, verification)

    spawn(
        write_verification_log(
            disaster_id, body.report_id, body.image_url, verification, user.sub
        ),
        name=f"verification-log:{disaster_id}",
    )

    logger.info("Image verification for disaster %s: %s", disaster_id, verification.status)
    return {
        "verification": verification.model_dump(mode="json"),
        "disaster_id": disaster_id,
        "report_id": body.report_id,
        "verified_by": user.sub,
        "timestamp": datetime.now(UTC).isoformat(),
    }


@router.get("/disasters/{disaster_id}/verifications")
async def list_verifications(disaster_id: str, session: SessionDep) -> dict[str, Any]:
    rows = await VerificationLogRepository(session).list_for_disaster(disaster_id)
    return {
        "verifications": [
            VerificationLogOut.model_validate(r).model_dump(mode="json") for r in rows
        ],
        "total": len(rows),
    }
