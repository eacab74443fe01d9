"""Access audit log repository — append-only.

Rows are never updated or deleted.
"""

from uuid import UUID

from sqlalchemy import select
from sqlalchemy.ext.asyncio import AsyncSession

from contextguard.db.tables import AccessAuditLogRow
from contextguard.models.audit import AuditRecord


class AccessAuditRepository:
    def __init__(self, session: AsyncSession) -> None:
        self._session = session

    async def append(self, record: AuditRecord) -> AccessAuditLogRow:
        row = AccessAuditLogRow(
            audit_id=record.audit_id,
            requester_id=record.requester_id,
            contact_id=record.contact_id,
            organization_id=record.organization_id,
            access_level=record.access_level.value,
            outcome=record.outcome.value,
            reason=record.reason,
            security_level=(
                record.security_level.value if record.security_level is not None else None
            ),
            applied_filters=[
                f.model_dump(mode="json", by_alias=True) for f in record.applied_filters
            ],
            fetch_errors=[
                e.model_dump(mode="json", by_alias=True) for e in record.fetch_errors
            ],
            client_ip=record.client_ip,
            user_agent=record.user_agent,
            recorded_at=record.recorded_at,
        )
        self._session.add(row)
        await self._session.flush()
        return row

    async def get(self, audit_id: UUID) -> AccessAuditLogRow | None:
        return await self._session.get(AccessAuditLogRow, audit_id)

    async def list_by_contact(self, contact_id: UUID,
                              organization_id: UUID) -> list[AccessAuditLogRow]:
        """Compliance review trail for one contact, oldest first."""
        result = await self._session.execute(
            select(AccessAuditLogRow)
            .where(
                AccessAuditLogRow.contact_id == contact_id,
                AccessAuditLogRow.organization_id == organization_id,
            )
            .order_by(AccessAuditLogRow.recorded_at, AccessAuditLogRow.audit_id)
        )
        return list(result.scalars().all())

    async def list_by_requester(self, requester_id: UUID) -> list[AccessAuditLogRow]:
        result = await self._session.execute(
            select(AccessAuditLogRow)
            .where(AccessAuditLogRow.requester_id == requester_id)
            .order_by(AccessAuditLogRow.recorded_at, AccessAuditLogRow.audit_id)
        )
        return list(result.scalars().all())
