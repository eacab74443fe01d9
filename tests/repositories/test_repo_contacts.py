"""Tests for organization, user, contact and collaborator repositories."""

import pytest
from uuid_extensions import uuid7

from contextguard.repositories.contacts import (
    CollaboratorRepository,
    ContactRepository,
    OrganizationRepository,
    UserRepository,
)


@pytest.fixture
async def org_id(db_session):
    oid = uuid7()
    await OrganizationRepository(db_session).create(organization_id=oid, name="Acme")
    return oid


class TestOrganizationRepository:
    @pytest.mark.anyio
    async def test_deleted_hidden_from_get_active(self, db_session, org_id) -> None:
        repo = OrganizationRepository(db_session)
        assert await repo.get_active(org_id) is not None
        (await repo.get(org_id)).is_deleted = True
        await db_session.flush()
        assert await repo.get_active(org_id) is None
        assert (await repo.get(org_id)).is_deleted is True


class TestUserRepository:
    @pytest.mark.anyio
    async def test_is_org_admin(self, db_session, org_id) -> None:
        repo = UserRepository(db_session)
        admin, agent = uuid7(), uuid7()
        await repo.create(user_id=admin, organization_id=org_id,
                          display_name="Admin", is_admin=True)
        await repo.create(user_id=agent, organization_id=org_id, display_name="Agent")
        assert await repo.is_org_admin(admin, org_id) is True
        assert await repo.is_org_admin(agent, org_id) is False
        assert await repo.is_org_admin(admin, uuid7()) is False

    @pytest.mark.anyio
    async def test_inactive_admin_is_not_admin(self, db_session, org_id) -> None:
        repo = UserRepository(db_session)
        admin = uuid7()
        row = await repo.create(user_id=admin, organization_id=org_id,
                                display_name="Admin", is_admin=True)
        row.is_active = False
        await db_session.flush()
        assert await repo.is_org_admin(admin, org_id) is False


class TestContactRepository:
    @pytest.mark.anyio
    async def test_create_defaults(self, db_session, org_id) -> None:
        cid = uuid7()
        row = await ContactRepository(db_session).create(
            contact_id=cid, organization_id=org_id,
            first_name="Dana", relationship_state="Lead",
        )
        assert row.emails == []
        assert row.preferences is None
        assert row.field_privacy_tags == {}
        assert row.do_not_contact is False
        assert row.is_deleted is False

    @pytest.mark.anyio
    async def test_get_in_organization_is_tenant_scoped(self, db_session, org_id) -> None:
        repo = ContactRepository(db_session)
        cid = uuid7()
        await repo.create(contact_id=cid, organization_id=org_id,
                          first_name="Dana", relationship_state="Lead")
        assert await repo.get_in_organization(cid, org_id) is not None
        assert await repo.get_in_organization(cid, uuid7()) is None

    @pytest.mark.anyio
    async def test_soft_deleted_contact_invisible(self, db_session, org_id) -> None:
        repo = ContactRepository(db_session)
        cid = uuid7()
        await repo.create(contact_id=cid, organization_id=org_id,
                          first_name="Dana", relationship_state="Lead")
        row = await repo.get(cid)
        row.is_deleted = True
        await db_session.flush()
        assert await repo.get_in_organization(cid, org_id) is None


class TestCollaboratorRepository:
    @pytest.mark.anyio
    async def test_personal_access_defaults_from_role(self, db_session, org_id) -> None:
        cid = uuid7()
        await ContactRepository(db_session).create(
            contact_id=cid, organization_id=org_id,
            first_name="Dana", relationship_state="Client",
        )
        repo = CollaboratorRepository(db_session)
        lead = await repo.grant(
            collaboration_id=uuid7(), contact_id=cid, organization_id=org_id,
            collaborator_id=uuid7(), granted_by=uuid7(), role="TeamLead",
        )
        specialist = await repo.grant(
            collaboration_id=uuid7(), contact_id=cid, organization_id=org_id,
            collaborator_id=uuid7(), granted_by=uuid7(), role="Specialist",
        )
        explicit = await repo.grant(
            collaboration_id=uuid7(), contact_id=cid, organization_id=org_id,
            collaborator_id=uuid7(), granted_by=uuid7(), role="Mentor",
            can_access_personal_data=True,
        )
        assert lead.can_access_personal_data is True
        assert specialist.can_access_personal_data is False
        assert explicit.can_access_personal_data is True

        grants = await repo.list_for_contact(cid, org_id)
        assert len(grants) == 3
        assert await repo.list_for_contact(cid, uuid7()) == []

    @pytest.mark.anyio
    async def test_inactive_grants_still_listed(self, db_session, org_id) -> None:
        cid = uuid7()
        await ContactRepository(db_session).create(
            contact_id=cid, organization_id=org_id,
            first_name="Dana", relationship_state="Client",
        )
        repo = CollaboratorRepository(db_session)
        grant = await repo.grant(
            collaboration_id=uuid7(), contact_id=cid, organization_id=org_id,
            collaborator_id=uuid7(), granted_by=uuid7(), role="Observer",
        )
        grant.is_active = False
        await db_session.flush()
        [listed] = await repo.list_for_contact(cid, org_id)
        assert listed.is_active is False
