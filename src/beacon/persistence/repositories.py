"""Repository pattern for the Beacon record store.

Repositories wrap an ``AsyncSession`` and only ``flush``; the calling
handler owns the transaction and commits once the primary mutation is
complete.

Disaster writes go through ``DisasterRepository`` so the audit trail is
always extended by exactly one entry per lifecycle transition. Writers load
the row with ``get_for_update``; where the database has no row locks the
version check on ``DisasterTable`` turns a lost update into
``ConcurrentUpdateError``.
"""

from __future__ import annotations

from dataclasses import dataclass
from typing import Any

from sqlalchemy import func, select, type_coerce
from sqlalchemy.dialects.postgresql import JSONB
from sqlalchemy.ext.asyncio import AsyncSession
from sqlalchemy.orm.exc import StaleDataError

from beacon.core.models import AuditAction, AuditTrailEntry
from beacon.persistence.tables import (
    DisasterTable,
    ReportTable,
    ResourceTable,
    VerificationLogTable,
)


class ConcurrentUpdateError(Exception):
    """The record was changed by another transaction since it was loaded."""

    def __init__(self, record_id: str):
        self.record_id = record_id
        super().__init__(f"Record {record_id} was modified concurrently")


@dataclass
class PagedDisasters:
    """One page of disasters with their report counts."""

    items: list[tuple[DisasterTable, int]]
    total: int


class BaseRepository:
    """Base repository holding the session."""

    def __init__(self, session: AsyncSession):
        self.session = session

    def _dialect_name(self) -> str:
        return self.session.get_bind().dialect.name


class DisasterRepository(BaseRepository):
    """Repository for disasters and their audit trail."""

    async def get(self, disaster_id: str) -> DisasterTable | None:
        stmt = select(DisasterTable).where(DisasterTable.id == disaster_id)
        result = await self.session.execute(stmt)
        return result.scalar_one_or_none()

    async def get_for_update(self, disaster_id: str) -> DisasterTable | None:
        """Load a disaster and hold its row lock until the transaction ends."""
        stmt = (
            select(DisasterTable)
            .where(DisasterTable.id == disaster_id)
            .with_for_update()
            .execution_options(populate_existing=True)
        )
        result = await self.session.execute(stmt)
        return result.scalar_one_or_none()

    async def exists(self, disaster_id: str) -> bool:
        stmt = select(DisasterTable.id).where(DisasterTable.id == disaster_id)
        result = await self.session.execute(stmt)
        return result.scalar_one_or_none() is not None

    async def list_paged(
        self,
        tag: str | None = None,
        owner_id: str | None = None,
        limit: int = 50,
        offset: int = 0,
    ) -> PagedDisasters:
        """List disasters newest first with report counts.

        Tag containment is evaluated by PostgreSQL (JSONB ``@>``); other
        dialects filter in Python before paginating.
        """
        report_counts = (
            select(ReportTable.disaster_id, func.count(ReportTable.id).label("report_count"))
            .group_by(ReportTable.disaster_id)
            .subquery()
        )
        stmt = (
            select(DisasterTable, func.coalesce(report_counts.c.report_count, 0))
            .outerjoin(report_counts, report_counts.c.disaster_id == DisasterTable.id)
            .order_by(DisasterTable.created_at.desc())
        )
        if owner_id:
            stmt = stmt.where(DisasterTable.owner_id == owner_id)

        sql_tag_filter = tag is not None and self._dialect_name() == "postgresql"
        if sql_tag_filter:
            stmt = stmt.where(type_coerce(DisasterTable.tags, JSONB).contains([tag]))

        if tag is None or sql_tag_filter:
            count_stmt = select(func.count()).select_from(stmt.subquery())
            total = (await self.session.execute(count_stmt)).scalar_one()
            result = await self.session.execute(stmt.limit(limit).offset(offset))
            items = [(row[0], int(row[1])) for row in result.all()]
            return PagedDisasters(items=items, total=total)

        result = await self.session.execute(stmt)
        matching = [(row[0], int(row[1])) for row in result.all() if tag in (row[0].tags or [])]
        return PagedDisasters(items=matching[offset : offset + limit], total=len(matching))

    async def create(
        self,
        *,
        title: str,
        description: str,
        owner_id: str,
        location_name: str | None = None,
        tags: list[str] | None = None,
        lat: float | None = None,
        lng: float | None = None,
    ) -> DisasterTable:
        """Create a disaster whose trail starts with a single ``create`` entry."""
        entry = AuditTrailEntry(action=AuditAction.CREATE, user_id=owner_id)
        row = DisasterTable(
            title=title,
            description=description,
            owner_id=owner_id,
            location_name=location_name,
            tags=list(tags or []),
            lat=lat,
            lng=lng,
            audit_trail=[entry.to_record()],
        )
        self.session.add(row)
        await self.session.flush()
        return row

    async def update(
        self,
        row: DisasterTable,
        *,
        user_id: str,
        changes: dict[str, Any],
        coordinates: tuple[float, float] | None = None,
        clear_location: bool = False,
    ) -> DisasterTable:
        """Apply ``changes`` and append one ``update`` entry to the trail.

        ``coordinates`` sets a new ``(lat, lng)``; ``clear_location`` removes it.
        """
        for field_name, value in changes.items():
            setattr(row, field_name, value)

        if clear_location:
            row.lat = None
            row.lng = None
        elif coordinates is not None:
            row.lat, row.lng = coordinates

        entry = AuditTrailEntry(action=AuditAction.UPDATE, user_id=user_id, changes=changes)
        # A new list is assigned so the JSON column is marked dirty.
        row.audit_trail = [*(row.audit_trail or []), entry.to_record()]

        await self._flush(row)
        return row

    async def delete(self, row: DisasterTable) -> None:
        """Delete a disaster; its trail is removed with it."""
        await self.session.delete(row)
        await self._flush(row)

    async def _flush(self, row: DisasterTable) -> None:
        record_id = row.id
        try:
            await self.session.flush()
        except StaleDataError as e:
            raise ConcurrentUpdateError(record_id) from e


class ResourceRepository(BaseRepository):
    """Repository for disaster resources."""

    async def list_for_disaster(self, disaster_id: str) -> list[ResourceTable]:
        stmt = (
            select(ResourceTable)
            .where(ResourceTable.disaster_id == disaster_id)
            .order_by(ResourceTable.created_at.desc())
        )
        result = await self.session.execute(stmt)
        return list(result.scalars().all())

    async def list_all(self, resource_type: str | None = None) -> list[ResourceTable]:
        stmt = select(ResourceTable).order_by(ResourceTable.created_at.desc())
        if resource_type:
            stmt = stmt.where(ResourceTable.type == resource_type)
        result = await self.session.execute(stmt)
        return list(result.scalars().all())

    async def create(self, **fields: Any) -> ResourceTable:
        row = ResourceTable(**fields)
        self.session.add(row)
        await self.session.flush()
        return row


class ReportRepository(BaseRepository):
    """Repository for citizen reports."""

    async def list_for_disaster(self, disaster_id: str) -> list[ReportTable]:
        stmt = (
            select(ReportTable)
            .where(ReportTable.disaster_id == disaster_id)
            .order_by(ReportTable.created_at.desc())
        )
        result = await self.session.execute(stmt)
        return list(result.scalars().all())

    async def create(self, **fields: Any) -> ReportTable:
        row = ReportTable(**fields)
        self.session.add(row)
        await self.session.flush()
        return row

    async def update_verification(
        self,
        report_id: str,
        disaster_id: str,
        status: str,
        details: dict[str, Any],
    ) -> bool:
        """Record a verification outcome on a report.

        Returns:
            True if the report exists under ``disaster_id``.
        """
        stmt = select(ReportTable).where(
            ReportTable.id == report_id, ReportTable.disaster_id == disaster_id
        )
        result = await self.session.execute(stmt)
        row = result.scalar_one_or_none()
        if row is None:
            return False
        row.verification_status = status
        row.verification_details = details
        await self.session.flush()
        return True


class VerificationLogRepository(BaseRepository):
    """Repository for the image verification log."""

    async def add(self, **fields: Any) -> VerificationLogTable:
        row = VerificationLogTable(**fields)
        self.session.add(row)
        await self.session.flush()
        return row

    async def list_for_disaster(self, disaster_id: str) -> list[VerificationLogTable]:
        stmt = (
            select(VerificationLogTable)
            .where(VerificationLogTable.disaster_id == disaster_id)
            .order_by(VerificationLogTable.created_at.desc())
        )
        result = await self.session.execute(stmt)
        return list(result.scalars().all())
