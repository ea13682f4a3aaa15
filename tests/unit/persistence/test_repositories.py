"""Tests for the record store repositories."""

from __future__ import annotations

import pytest
from sqlalchemy.ext.asyncio import AsyncSession, async_sessionmaker

from beacon.persistence.repositories import (
    ConcurrentUpdateError,
    DisasterRepository,
    ReportRepository,
    ResourceRepository,
    VerificationLogRepository,
)


async def create_disaster(session: AsyncSession, **overrides) -> str:
    fields = {
        "title": "NYC Flood",
        "description": "Heavy flooding in Manhattan",
        "owner_id": "netrunnerX",
        "tags": ["flood", "urgent"],
    }
    fields.update(overrides)
    row = await DisasterRepository(session).create(**fields)
    await session.commit()
    return row.id


class TestAuditTrail:
    """Test the append-only audit trail."""

    async def test_create_starts_trail(self, session: AsyncSession) -> None:
        """A new disaster has exactly one create entry."""
        disaster_id = await create_disaster(session)

        row = await DisasterRepository(session).get(disaster_id)
        assert row is not None
        assert len(row.audit_trail) == 1
        assert row.audit_trail[0]["action"] == "create"
        assert row.audit_trail[0]["user_id"] == "netrunnerX"
        assert "changes" not in row.audit_trail[0]

    async def test_updates_append_in_order(self, session: AsyncSession) -> None:
        """N updates give N+1 entries with earlier entries unchanged."""
        repo = DisasterRepository(session)
        disaster_id = await create_disaster(session)

        snapshots: list[list[dict]] = []
        for i in range(3):
            row = await repo.get(disaster_id)
            assert row is not None
            snapshots.append(list(row.audit_trail))
            await repo.update(row, user_id="reliefAdmin", changes={"title": f"Flood v{i}"})
            await session.commit()

        row = await repo.get(disaster_id)
        assert row is not None
        trail = row.audit_trail
        assert len(trail) == 4
        assert [e["action"] for e in trail] == ["create", "update", "update", "update"]
        for snapshot in snapshots:
            assert trail[: len(snapshot)] == snapshot
        assert trail[-1]["changes"] == {"title": "Flood v2"}
        timestamps = [e["timestamp"] for e in trail]
        assert timestamps == sorted(timestamps)

    async def test_interleaved_updates_lose_no_entries(
        self, session: AsyncSession, session_factory: async_sessionmaker[AsyncSession]
    ) -> None:
        """A write based on a stale trail is rejected instead of dropping an entry."""
        disaster_id = await create_disaster(session)

        async with session_factory() as first, session_factory() as second:
            first_repo, second_repo = DisasterRepository(first), DisasterRepository(second)
            first_row = await first_repo.get(disaster_id)
            second_row = await second_repo.get(disaster_id)
            assert first_row is not None and second_row is not None

            await first_repo.update(first_row, user_id="netrunnerX", changes={"title": "A"})
            await first.commit()

            with pytest.raises(ConcurrentUpdateError):
                await second_repo.update(second_row, user_id="reliefAdmin", changes={"title": "B"})
            await second.rollback()

            retry = await second_repo.get_for_update(disaster_id)
            assert retry is not None
            await second_repo.update(retry, user_id="reliefAdmin", changes={"title": "B"})
            await second.commit()

        async with session_factory() as fresh:
            row = await DisasterRepository(fresh).get(disaster_id)
        assert row is not None
        assert [(e["action"], e["user_id"]) for e in row.audit_trail] == [
            ("create", "netrunnerX"),
            ("update", "netrunnerX"),
            ("update", "reliefAdmin"),
        ]
        assert row.title == "B"

    async def test_get_for_update_sees_committed_changes(
        self, session: AsyncSession, session_factory: async_sessionmaker[AsyncSession]
    ) -> None:
        """A locked read refreshes a row already loaded in the session."""
        disaster_id = await create_disaster(session)
        repo = DisasterRepository(session)
        stale = await repo.get(disaster_id)
        assert stale is not None

        async with session_factory() as other:
            other_repo = DisasterRepository(other)
            row = await other_repo.get(disaster_id)
            assert row is not None
            await other_repo.update(row, user_id="reliefAdmin", changes={"title": "Other"})
            await other.commit()

        locked = await repo.get_for_update(disaster_id)
        assert locked is stale
        assert len(locked.audit_trail) == 2
        await repo.update(locked, user_id="netrunnerX", changes={"title": "Mine"})
        await session.commit()
        assert len(locked.audit_trail) == 3

    async def test_update_coordinates(self, session: AsyncSession) -> None:
        """Coordinates are set or cleared alongside the update."""
        repo = DisasterRepository(session)
        disaster_id = await create_disaster(session, lat=1.0, lng=2.0)
        row = await repo.get(disaster_id)
        assert row is not None

        await repo.update(row, user_id="netrunnerX", changes={}, coordinates=(40.7, -74.0))
        assert (row.lat, row.lng) == (40.7, -74.0)

        await repo.update(row, user_id="netrunnerX", changes={}, clear_location=True)
        assert (row.lat, row.lng) == (None, None)

    async def test_delete(self, session: AsyncSession) -> None:
        """Deleted disasters are gone."""
        repo = DisasterRepository(session)
        disaster_id = await create_disaster(session)
        row = await repo.get(disaster_id)
        assert row is not None

        await repo.delete(row)
        await session.commit()

        assert await repo.get(disaster_id) is None
        assert not await repo.exists(disaster_id)


class TestListPaged:
    """Test disaster listing."""

    async def test_report_counts_and_total(self, session: AsyncSession) -> None:
        """Each disaster carries its number of reports."""
        first = await create_disaster(session, title="First")
        await create_disaster(session, title="Second")
        reports = ReportRepository(session)
        for _ in range(2):
            await reports.create(disaster_id=first, user_id="citizen1", content="Need water")
        await session.commit()

        page = await DisasterRepository(session).list_paged()

        counts = {row.title: count for row, count in page.items}
        assert page.total == 2
        assert counts == {"First": 2, "Second": 0}

    async def test_tag_and_owner_filters(self, session: AsyncSession) -> None:
        """Tag and owner narrow the listing."""
        await create_disaster(session, title="Flood", tags=["flood"])
        await create_disaster(session, title="Fire", tags=["wildfire"], owner_id="reliefAdmin")
        repo = DisasterRepository(session)

        by_tag = await repo.list_paged(tag="wildfire")
        by_owner = await repo.list_paged(owner_id="netrunnerX")

        assert [row.title for row, _ in by_tag.items] == ["Fire"]
        assert by_tag.total == 1
        assert [row.title for row, _ in by_owner.items] == ["Flood"]

    async def test_pagination(self, session: AsyncSession) -> None:
        """Limit and offset slice the listing; total counts everything."""
        for i in range(5):
            await create_disaster(session, title=f"D{i}")

        page = await DisasterRepository(session).list_paged(limit=2, offset=1)

        assert page.total == 5
        assert len(page.items) == 2


class TestOtherRepositories:
    """Test resources, reports and the verification log."""

    async def test_resources_by_disaster_and_type(self, session: AsyncSession) -> None:
        """Resources list per disaster and filter by type."""
        disaster_id = await create_disaster(session)
        repo = ResourceRepository(session)
        await repo.create(
            disaster_id=disaster_id, name="Red Cross Shelter", type="shelter", created_by="u"
        )
        await repo.create(disaster_id=disaster_id, name="Clinic", type="medical", created_by="u")
        await session.commit()

        assert len(await repo.list_for_disaster(disaster_id)) == 2
        assert [r.name for r in await repo.list_all(resource_type="shelter")] == [
            "Red Cross Shelter"
        ]

    async def test_update_verification(self, session: AsyncSession) -> None:
        """Verification is recorded only for a report of that disaster."""
        disaster_id = await create_disaster(session)
        reports = ReportRepository(session)
        report = await reports.create(disaster_id=disaster_id, user_id="u", content="Photo")
        await session.commit()

        assert await reports.update_verification(
            report.id, disaster_id, "analyzed", {"analysis": "ok"}
        )
        assert not await reports.update_verification(report.id, "other", "analyzed", {})
        assert report.verification_status == "analyzed"

    async def test_verification_log(self, session: AsyncSession) -> None:
        """Log entries are listed per disaster."""
        log = VerificationLogRepository(session)
        await log.add(
            disaster_id="d1",
            image_url="https://example.com/a.jpg",
            verification_result={"status": "analyzed"},
            verified_by="netrunnerX",
        )
        await session.commit()

        assert len(await log.list_for_disaster("d1")) == 1
        assert await log.list_for_disaster("d2") == []
