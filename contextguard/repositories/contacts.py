"""Organization, user, contact, and collaborator repositories."""

from datetime import datetime
from uuid import UUID

from sqlalchemy import select
from sqlalchemy.ext.asyncio import AsyncSession

from contextguard.db.tables import (
    ContactCollaboratorRow,
    ContactRow,
    OrganizationRow,
    UserRow,
)
from contextguard.models.common import CollaboratorRole, utc_now

# Roles granted personal data access unless the grant says otherwise
PERSONAL_DATA_ROLES = frozenset({CollaboratorRole.TEAM_LEAD.value})


class OrganizationRepository:
    def __init__(self, session: AsyncSession) -> None:
        self._session = session

    async def create(self, *, organization_id: UUID, name: str) -> OrganizationRow:
        row = OrganizationRow(
            organization_id=organization_id, name=name,
            is_deleted=False, created_at=utc_now(),
        )
        self._session.add(row)
        await self._session.flush()
        return row

    async def get(self, organization_id: UUID) -> OrganizationRow | None:
        return await self._session.get(OrganizationRow, organization_id)

    async def get_active(self, organization_id: UUID) -> OrganizationRow | None:
        row = await self.get(organization_id)
        if row is None or row.is_deleted:
            return None
        return row


class UserRepository:
    def __init__(self, session: AsyncSession) -> None:
        self._session = session

    async def create(self, *, user_id: UUID, organization_id: UUID,
                     display_name: str, is_admin: bool = False) -> UserRow:
        row = UserRow(
            user_id=user_id, organization_id=organization_id,
            display_name=display_name, is_admin=is_admin,
            is_active=True, created_at=utc_now(),
        )
        self._session.add(row)
        await self._session.flush()
        return row

    async def get(self, user_id: UUID) -> UserRow | None:
        return await self._session.get(UserRow, user_id)

    async def is_org_admin(self, user_id: UUID, organization_id: UUID) -> bool:
        result = await self._session.execute(
            select(UserRow.user_id).where(
                UserRow.user_id == user_id,
                UserRow.organization_id == organization_id,
                UserRow.is_admin.is_(True),
                UserRow.is_active.is_(True),
            )
        )
        return result.scalar_one_or_none() is not None


class ContactRepository:
    def __init__(self, session: AsyncSession) -> None:
        self._session = session

    async def create(self, *, contact_id: UUID, organization_id: UUID,
                     first_name: str, relationship_state: str,
                     last_name: str = "",
                     assigned_agent_id: UUID | None = None,
                     preferred_name: str | None = None,
                     company: str | None = None,
                     job_title: str | None = None,
                     emails: list | None = None,
                     phones: list | None = None,
                     tags: list | None = None,
                     preferences: dict | None = None,
                     field_privacy_tags: dict | None = None,
                     email_opt_in: bool | None = None,
                     sms_opt_in: bool | None = None,
                     consent_updated_at: datetime | None = None,
                     do_not_contact: bool = False,
                     preferred_channels: list | None = None) -> ContactRow:
        now = utc_now()
        row = ContactRow(
            contact_id=contact_id, organization_id=organization_id,
            assigned_agent_id=assigned_agent_id,
            first_name=first_name, last_name=last_name,
            preferred_name=preferred_name, company=company, job_title=job_title,
            emails=emails or [], phones=phones or [],
            relationship_state=relationship_state,
            tags=tags or [], preferences=preferences,
            field_privacy_tags=field_privacy_tags or {},
            email_opt_in=email_opt_in, sms_opt_in=sms_opt_in,
            consent_updated_at=consent_updated_at,
            do_not_contact=do_not_contact,
            preferred_channels=preferred_channels or [],
            is_deleted=False, created_at=now, updated_at=now,
        )
        self._session.add(row)
        await self._session.flush()
        return row

    async def get(self, contact_id: UUID) -> ContactRow | None:
        return await self._session.get(ContactRow, contact_id)

    async def get_in_organization(self, contact_id: UUID,
                                  organization_id: UUID) -> ContactRow | None:
        """Tenant-scoped lookup; soft-deleted contacts are invisible."""
        result = await self._session.execute(
            select(ContactRow).where(
                ContactRow.contact_id == contact_id,
                ContactRow.organization_id == organization_id,
                ContactRow.is_deleted.is_(False),
            )
        )
        return result.scalar_one_or_none()


class CollaboratorRepository:
    def __init__(self, session: AsyncSession) -> None:
        self._session = session

    async def grant(self, *, collaboration_id: UUID, contact_id: UUID,
                    organization_id: UUID, collaborator_id: UUID,
                    granted_by: UUID, role: str,
                    can_access_personal_data: bool | None = None,
                    expires_at: datetime | None = None) -> ContactCollaboratorRow:
        """Grant collaboration access.

        Personal data access defaults to the role: only team leads get it.
        """
        if can_access_personal_data is None:
            can_access_personal_data = role in PERSONAL_DATA_ROLES
        row = ContactCollaboratorRow(
            collaboration_id=collaboration_id, contact_id=contact_id,
            organization_id=organization_id, collaborator_id=collaborator_id,
            granted_by=granted_by, role=role,
            can_access_personal_data=can_access_personal_data, is_active=True,
            expires_at=expires_at, created_at=utc_now(),
        )
        self._session.add(row)
        await self._session.flush()
        return row

    async def list_for_contact(self, contact_id: UUID,
                               organization_id: UUID) -> list[ContactCollaboratorRow]:
        """All grants on a contact, active or not, oldest first."""
        result = await self._session.execute(
            select(ContactCollaboratorRow)
            .where(
                ContactCollaboratorRow.contact_id == contact_id,
                ContactCollaboratorRow.organization_id == organization_id,
            )
            .order_by(ContactCollaboratorRow.created_at,
                      ContactCollaboratorRow.collaboration_id)
        )
        return list(result.scalars().all())
