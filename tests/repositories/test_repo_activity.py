"""Tests for interaction, deal and resource assignment repositories."""

from datetime import timedelta

import pytest
from uuid_extensions import uuid7

from contextguard.models.common import utc_now
from contextguard.repositories.activity import (
    DealRepository,
    InteractionRepository,
    ResourceAssignmentRepository,
)


class TestInteractionRepository:
    @pytest.mark.anyio
    async def test_count_and_recent(self, db_session, seeded) -> None:
        repo = InteractionRepository(db_session)
        assert await repo.count_for_contact(seeded.contact_id, seeded.organization_id) == 3
        recent = await repo.list_recent(seeded.contact_id, seeded.organization_id, limit=2)
        assert [i.sentiment_score for i in recent] == [0.6, 0.4]

    @pytest.mark.anyio
    async def test_scoped_by_organization(self, db_session, seeded) -> None:
        repo = InteractionRepository(db_session)
        assert await repo.count_for_contact(
            seeded.contact_id, seeded.other_organization_id,
        ) == 0


class TestDealRepository:
    @pytest.mark.anyio
    async def test_create_defaults(self, db_session, seeded) -> None:
        repo = DealRepository(db_session)
        deal = await repo.create(
            deal_id=uuid7(), contact_id=seeded.contact_id,
            organization_id=seeded.organization_id,
            title="Harbor view", stage="offer", amount=900.0,
            opened_at=utc_now() - timedelta(days=1),
        )
        assert deal.status == "OPEN"
        assert deal.closed_at is None

    @pytest.mark.anyio
    async def test_list_oldest_first(self, db_session, seeded) -> None:
        deals = await DealRepository(db_session).list_for_contact(
            seeded.contact_id, seeded.organization_id,
        )
        assert [d.title for d in deals] == [
            "Downtown loft", "Suburban duplex", "Lakeside condo",
        ]


class TestResourceAssignmentRepository:
    @pytest.mark.anyio
    async def test_create_defaults_and_list(self, db_session, seeded) -> None:
        repo = ResourceAssignmentRepository(db_session)
        row = await repo.create(
            assignment_id=uuid7(), contact_id=seeded.contact_id,
            organization_id=seeded.organization_id, provider_id=uuid7(),
            provider_name="Quick Movers", service_type="moving",
        )
        assert row.status == "ACTIVE"
        assert row.assigned_at is not None
        assert row.completed_at is None
        assert row.notes == ""

        rows = await repo.list_for_contact(seeded.contact_id, seeded.organization_id)
        assert len(rows) == 3
