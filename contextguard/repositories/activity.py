"""Interaction, deal, and resource assignment repositories.

Read paths are tenant-scoped: every query filters on organization_id
as well as contact_id, and returns rows in a stable order.
"""

from datetime import datetime
from uuid import UUID

from sqlalchemy import func, select
from sqlalchemy.ext.asyncio import AsyncSession

from contextguard.db.tables import DealRow, InteractionRow, ResourceAssignmentRow
from contextguard.models.common import utc_now


class InteractionRepository:
    def __init__(self, session: AsyncSession) -> None:
        self._session = session

    async def create(self, *, interaction_id: UUID, contact_id: UUID,
                     organization_id: UUID, channel: str,
                     occurred_at: datetime,
                     sentiment_score: float | None = None,
                     buying_signals: list | None = None,
                     urgency: str | None = None) -> InteractionRow:
        row = InteractionRow(
            interaction_id=interaction_id, contact_id=contact_id,
            organization_id=organization_id, channel=channel,
            sentiment_score=sentiment_score,
            buying_signals=buying_signals or [], urgency=urgency,
            occurred_at=occurred_at,
        )
        self._session.add(row)
        await self._session.flush()
        return row

    async def count_for_contact(self, contact_id: UUID, organization_id: UUID) -> int:
        result = await self._session.execute(
            select(func.count()).select_from(InteractionRow).where(
                InteractionRow.contact_id == contact_id,
                InteractionRow.organization_id == organization_id,
            )
        )
        return int(result.scalar_one())

    async def list_recent(self, contact_id: UUID, organization_id: UUID,
                          limit: int) -> list[InteractionRow]:
        """Most recent first."""
        result = await self._session.execute(
            select(InteractionRow)
            .where(
                InteractionRow.contact_id == contact_id,
                InteractionRow.organization_id == organization_id,
            )
            .order_by(InteractionRow.occurred_at.desc(),
                      InteractionRow.interaction_id.desc())
            .limit(limit)
        )
        return list(result.scalars().all())


class DealRepository:
    def __init__(self, session: AsyncSession) -> None:
        self._session = session

    async def create(self, *, deal_id: UUID, contact_id: UUID,
                     organization_id: UUID, title: str, stage: str,
                     amount: float, status: str = "OPEN",
                     opened_at: datetime | None = None,
                     closed_at: datetime | None = None) -> DealRow:
        row = DealRow(
            deal_id=deal_id, contact_id=contact_id,
            organization_id=organization_id, title=title, stage=stage,
            status=status, amount=amount,
            opened_at=opened_at or utc_now(), closed_at=closed_at,
        )
        self._session.add(row)
        await self._session.flush()
        return row

    async def list_for_contact(self, contact_id: UUID,
                               organization_id: UUID) -> list[DealRow]:
        """Oldest first."""
        result = await self._session.execute(
            select(DealRow)
            .where(
                DealRow.contact_id == contact_id,
                DealRow.organization_id == organization_id,
            )
            .order_by(DealRow.opened_at, DealRow.deal_id)
        )
        return list(result.scalars().all())


class ResourceAssignmentRepository:
    def __init__(self, session: AsyncSession) -> None:
        self._session = session

    async def create(self, *, assignment_id: UUID, contact_id: UUID,
                     organization_id: UUID, provider_id: UUID,
                     provider_name: str, service_type: str,
                     status: str = "ACTIVE",
                     assigned_at: datetime | None = None,
                     completed_at: datetime | None = None,
                     notes: str = "") -> ResourceAssignmentRow:
        row = ResourceAssignmentRow(
            assignment_id=assignment_id, contact_id=contact_id,
            organization_id=organization_id, provider_id=provider_id,
            provider_name=provider_name, service_type=service_type,
            status=status, assigned_at=assigned_at or utc_now(),
            completed_at=completed_at, notes=notes,
        )
        self._session.add(row)
        await self._session.flush()
        return row

    async def list_for_contact(self, contact_id: UUID,
                               organization_id: UUID) -> list[ResourceAssignmentRow]:
        """Oldest first."""
        result = await self._session.execute(
            select(ResourceAssignmentRow)
            .where(
                ResourceAssignmentRow.contact_id == contact_id,
                ResourceAssignmentRow.organization_id == organization_id,
            )
            .order_by(ResourceAssignmentRow.assigned_at,
                      ResourceAssignmentRow.assignment_id)
        )
        return list(result.scalars().all())
