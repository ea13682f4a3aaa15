"""SQLAlchemy ORM models for the Beacon record store.

Collections:
- disasters: reported incidents with their append-only audit trail
- resources: shelters, aid stations, supplies attached to a disaster
- reports: citizen reports, optionally carrying an image verification
- verification_log: history of image verification requests
- cache: expiring key/value entries shielding upstream providers

JSON columns use JSONB on PostgreSQL and plain JSON elsewhere.
Coordinates are stored as two float columns.
"""

from __future__ import annotations

from datetime import UTC, datetime
from typing import Any
from uuid import uuid4

from sqlalchemy import (
    JSON,
    DateTime,
    Float,
    ForeignKey,
    Index,
    Integer,
    LargeBinary,
    String,
    Text,
)
from sqlalchemy.dialects.postgresql import JSONB
from sqlalchemy.orm import DeclarativeBase, Mapped, mapped_column

JsonType = JSON().with_variant(JSONB(), "postgresql")


def utcnow() -> datetime:
    return datetime.now(UTC)


def new_id() -> str:
    return str(uuid4())


class Base(DeclarativeBase):
    """Base class for all ORM models."""

    pass


class DisasterTable(Base):
    """Disaster records.

    ``audit_trail`` is append-only: every write replaces it with the previous
    sequence plus exactly one new entry. ``version`` is checked on every
    UPDATE and DELETE, so a write based on a stale trail fails instead of
    overwriting a concurrent one.
    """

    __tablename__ = "disasters"

    id: Mapped[str] = mapped_column(String(36), primary_key=True, default=new_id)
    title: Mapped[str] = mapped_column(Text, nullable=False)
    location_name: Mapped[str | None] = mapped_column(Text, nullable=True)
    description: Mapped[str] = mapped_column(Text, nullable=False)
    tags: Mapped[list[str]] = mapped_column(JsonType, nullable=False, default=list)
    owner_id: Mapped[str] = mapped_column(String(255), nullable=False, index=True)

    lat: Mapped[float | None] = mapped_column(Float, nullable=True)
    lng: Mapped[float | None] = mapped_column(Float, nullable=True)

    audit_trail: Mapped[list[dict[str, Any]]] = mapped_column(
        JsonType, nullable=False, default=list
    )
    version: Mapped[int] = mapped_column(Integer, nullable=False)

    created_at: Mapped[datetime] = mapped_column(
        DateTime(timezone=True), nullable=False, default=utcnow
    )
    updated_at: Mapped[datetime] = mapped_column(
        DateTime(timezone=True), nullable=False, default=utcnow, onupdate=utcnow
    )

    __table_args__ = (Index("idx_disasters_created_at", "created_at"),)

    __mapper_args__ = {"version_id_col": version}


class ResourceTable(Base):
    """Resources (shelters, aid stations, supplies) for a disaster."""

    __tablename__ = "resources"

    id: Mapped[str] = mapped_column(String(36), primary_key=True, default=new_id)
    disaster_id: Mapped[str] = mapped_column(
        String(36), ForeignKey("disasters.id", ondelete="CASCADE"), nullable=False, index=True
    )
    name: Mapped[str] = mapped_column(Text, nullable=False)
    location_name: Mapped[str | None] = mapped_column(Text, nullable=True)
    type: Mapped[str] = mapped_column(String(100), nullable=False, index=True)
    description: Mapped[str | None] = mapped_column(Text, nullable=True)
    capacity: Mapped[int | None] = mapped_column(Integer, nullable=True)
    contact_info: Mapped[str | None] = mapped_column(Text, nullable=True)
    created_by: Mapped[str] = mapped_column(String(255), nullable=False)

    lat: Mapped[float | None] = mapped_column(Float, nullable=True)
    lng: Mapped[float | None] = mapped_column(Float, nullable=True)

    created_at: Mapped[datetime] = mapped_column(
        DateTime(timezone=True), nullable=False, default=utcnow
    )


class ReportTable(Base):
    """Citizen reports attached to a disaster."""

    __tablename__ = "reports"

    id: Mapped[str] = mapped_column(String(36), primary_key=True, default=new_id)
    disaster_id: Mapped[str] = mapped_column(
        String(36), ForeignKey("disasters.id", ondelete="CASCADE"), nullable=False, index=True
    )
    user_id: Mapped[str] = mapped_column(String(255), nullable=False)
    content: Mapped[str] = mapped_column(Text, nullable=False)
    image_url: Mapped[str | None] = mapped_column(Text, nullable=True)
    verification_status: Mapped[str] = mapped_column(
        String(50), nullable=False, default="pending"
    )
    verification_details: Mapped[dict[str, Any] | None] = mapped_column(JsonType, nullable=True)

    created_at: Mapped[datetime] = mapped_column(
        DateTime(timezone=True), nullable=False, default=utcnow
    )


class VerificationLogTable(Base):
    """Image verification history (best-effort writes)."""

    __tablename__ = "verification_log"

    id: Mapped[str] = mapped_column(String(36), primary_key=True, default=new_id)
    disaster_id: Mapped[str] = mapped_column(String(36), nullable=False, index=True)
    report_id: Mapped[str | None] = mapped_column(String(36), nullable=True)
    image_url: Mapped[str] = mapped_column(Text, nullable=False)
    verification_result: Mapped[dict[str, Any]] = mapped_column(JsonType, nullable=False)
    verified_by: Mapped[str] = mapped_column(String(255), nullable=False)

    created_at: Mapped[datetime] = mapped_column(
        DateTime(timezone=True), nullable=False, default=utcnow
    )


class CacheTable(Base):
    """Expiring cache entries.

    ``key`` is unique and written with upsert semantics; ``expires_at`` is an
    absolute UTC timestamp used by lazy expiry and the periodic sweep.
    """

    __tablename__ = "cache"

    key: Mapped[str] = mapped_column(String(512), primary_key=True)
    value: Mapped[bytes] = mapped_column(LargeBinary, nullable=False)
    expires_at: Mapped[datetime] = mapped_column(
        DateTime(timezone=True), nullable=False, index=True
    )
