"""Pydantic models for Beacon records and request bodies.

Request bodies keep their fields optional so handlers can reject missing
input with the API's own validation messages.
"""

from __future__ import annotations

from datetime import UTC, datetime
from enum import Enum
from typing import Any

from pydantic import BaseModel, ConfigDict, Field


class AuditAction(str, Enum):
    """Lifecycle transitions recorded in a disaster's audit trail."""

    CREATE = "create"
    UPDATE = "update"
    DELETE = "delete"


class AuditTrailEntry(BaseModel):
    """One append-only provenance entry."""

    action: AuditAction
    user_id: str
    timestamp: str = Field(default_factory=lambda: datetime.now(UTC).isoformat())
    changes: dict[str, Any] | None = None

    def to_record(self) -> dict[str, Any]:
        return self.model_dump(mode="json", exclude_none=True)


# -----------------------------------------------------------------------------
# Request bodies
# -----------------------------------------------------------------------------


class DisasterCreate(BaseModel):
    title: str | None = None
    location_name: str | None = None
    description: str | None = None
    tags: list[str] = Field(default_factory=list)


class DisasterUpdate(BaseModel):
    """Partial update; only fields present in the request body are applied."""

    title: str | None = None
    location_name: str | None = None
    description: str | None = None
    tags: list[str] | None = None


class ResourceCreate(BaseModel):
    name: str | None = None
    location_name: str | None = None
    type: str | None = None
    description: str | None = None
    capacity: int | None = None
    contact_info: str | None = None


class VerifyImageRequest(BaseModel):
    image_url: str | None = None
    report_id: str | None = None
    context: str = ""


class GeocodeRequest(BaseModel):
    text: str | None = None
    location_name: str | None = None


class ExtractLocationRequest(BaseModel):
    text: str | None = None


# -----------------------------------------------------------------------------
# Response bodies
# -----------------------------------------------------------------------------


class RecordOut(BaseModel):
    model_config = ConfigDict(from_attributes=True)


class DisasterOut(RecordOut):
    id: str
    title: str
    location_name: str | None = None
    description: str
    tags: list[str] = Field(default_factory=list)
    owner_id: str
    lat: float | None = None
    lng: float | None = None
    audit_trail: list[AuditTrailEntry] = Field(default_factory=list)
    created_at: datetime
    updated_at: datetime


class ResourceOut(RecordOut):
    id: str
    disaster_id: str
    name: str
    location_name: str | None = None
    type: str
    description: str | None = None
    capacity: int | None = None
    contact_info: str | None = None
    created_by: str
    lat: float | None = None
    lng: float | None = None
    created_at: datetime


class ReportOut(RecordOut):
    id: str
    disaster_id: str
    user_id: str
    content: str
    image_url: str | None = None
    verification_status: str
    verification_details: dict[str, Any] | None = None
    created_at: datetime


class VerificationLogOut(RecordOut):
    id: str
    disaster_id: str
    report_id: str | None = None
    image_url: str
    verification_result: dict[str, Any]
    verified_by: str
    created_at: datetime


class DisasterDetailOut(DisasterOut):
    reports: list[ReportOut] = Field(default_factory=list)
    resources: list[ResourceOut] = Field(default_factory=list)
