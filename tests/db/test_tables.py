"""Tests for SQLAlchemy ORM models — contextguard/db/tables.py.

Tests verify:
- All 8 tables are created
- FlexJSON columns round-trip lists and mappings on SQLite
- Contact soft-delete and privacy tag override columns
"""

import pytest
from sqlalchemy import inspect

from contextguard.db.tables import AccessAuditLogRow, ContactRow, OrganizationRow
from contextguard.models.common import new_uuid7, utc_now


# ---------------------------------------------------------------------------
# Table existence
# ---------------------------------------------------------------------------


class TestTableCreation:
    EXPECTED_TABLES = {
        "organizations",
        "users",
        "contacts",
        "contact_collaborators",
        "interactions",
        "deals",
        "resource_assignments",
        "access_audit_logs",
    }

    @pytest.mark.anyio
    async def test_all_tables_exist(self, db_engine):
        async with db_engine.connect() as conn:
            table_names = await conn.run_sync(
                lambda sync_conn: inspect(sync_conn).get_table_names()
            )
        assert self.EXPECTED_TABLES == set(table_names), (
            f"Table mismatch: {self.EXPECTED_TABLES ^ set(table_names)}"
        )


# ---------------------------------------------------------------------------
# ContactRow
# ---------------------------------------------------------------------------


class TestContactRow:
    @pytest.mark.anyio
    async def test_json_columns_round_trip(self, db_session):
        org = OrganizationRow(
            organization_id=new_uuid7(), name="Acme", is_deleted=False, created_at=utc_now(),
        )
        db_session.add(org)
        contact = ContactRow(
            contact_id=new_uuid7(),
            organization_id=org.organization_id,
            first_name="Dana",
            relationship_state="Client",
            emails=["dana@acme.example"],
            preferences={"tone": "formal", "languages": ["en", "es"]},
            field_privacy_tags={"contactProfile.tags": ["Private"]},
            created_at=utc_now(),
            updated_at=utc_now(),
        )
        db_session.add(contact)
        await db_session.flush()
        await db_session.refresh(contact)

        result = await db_session.get(ContactRow, contact.contact_id)
        assert result.emails == ["dana@acme.example"]
        assert result.preferences == {"tone": "formal", "languages": ["en", "es"]}
        assert result.field_privacy_tags == {"contactProfile.tags": ["Private"]}
        assert result.is_deleted is False
        assert result.do_not_contact is False


# ---------------------------------------------------------------------------
# AccessAuditLogRow (IMMUTABLE)
# ---------------------------------------------------------------------------


class TestAccessAuditLogRow:
    @pytest.mark.anyio
    async def test_create_audit_row(self, db_session):
        row = AccessAuditLogRow(
            audit_id=new_uuid7(),
            requester_id=new_uuid7(),
            contact_id=new_uuid7(),
            organization_id=new_uuid7(),
            access_level="NoAccess",
            outcome="Denied",
            reason="cross-tenant",
            applied_filters=[],
            fetch_errors=[],
            recorded_at=utc_now(),
        )
        db_session.add(row)
        await db_session.flush()
        fetched = await db_session.get(AccessAuditLogRow, row.audit_id)
        assert fetched.outcome == "Denied"
        assert fetched.security_level is None
