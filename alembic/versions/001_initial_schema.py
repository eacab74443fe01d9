"""Initial schema — tenancy, contacts, activity, access audit log.

Revision ID: 001
Revises:
Create Date: 2026-10-19
"""
from typing import Sequence, Union

from alembic import op
import sqlalchemy as sa
from sqlalchemy.dialects.postgresql import JSONB, UUID

revision: str = "001"
down_revision: Union[str, None] = None
branch_labels: Union[str, Sequence[str], None] = None
depends_on: Union[str, Sequence[str], None] = None


def upgrade() -> None:
    # -- Tenancy --
    op.create_table(
        "organizations",
        sa.Column("organization_id", UUID(as_uuid=True), primary_key=True),
        sa.Column("name", sa.String(255), nullable=False),
        sa.Column("is_deleted", sa.Boolean, server_default=sa.false(), nullable=False),
        sa.Column("created_at", sa.DateTime(timezone=True), nullable=False),
    )

    op.create_table(
        "users",
        sa.Column("user_id", UUID(as_uuid=True), primary_key=True),
        sa.Column("organization_id", UUID(as_uuid=True),
                  sa.ForeignKey("organizations.organization_id"), nullable=False),
        sa.Column("display_name", sa.String(255), nullable=False),
        sa.Column("is_admin", sa.Boolean, server_default=sa.false(), nullable=False),
        sa.Column("is_active", sa.Boolean, server_default=sa.true(), nullable=False),
        sa.Column("created_at", sa.DateTime(timezone=True), nullable=False),
    )

    # -- Contact --
    op.create_table(
        "contacts",
        sa.Column("contact_id", UUID(as_uuid=True), primary_key=True),
        sa.Column("organization_id", UUID(as_uuid=True),
                  sa.ForeignKey("organizations.organization_id"), nullable=False),
        sa.Column("assigned_agent_id", UUID(as_uuid=True), nullable=True),
        sa.Column("first_name", sa.String(255), nullable=False),
        sa.Column("last_name", sa.String(255), server_default=""),
        sa.Column("preferred_name", sa.String(255), nullable=True),
        sa.Column("company", sa.String(255), nullable=True),
        sa.Column("job_title", sa.String(255), nullable=True),
        sa.Column("emails", JSONB, server_default="[]"),
        sa.Column("phones", JSONB, server_default="[]"),
        sa.Column("relationship_state", sa.String(50), nullable=False),
        sa.Column("tags", JSONB, server_default="[]"),
        sa.Column("preferences", JSONB, nullable=True),
        sa.Column("field_privacy_tags", JSONB, server_default="{}"),
        sa.Column("email_opt_in", sa.Boolean, nullable=True),
        sa.Column("sms_opt_in", sa.Boolean, nullable=True),
        sa.Column("consent_updated_at", sa.DateTime(timezone=True), nullable=True),
        sa.Column("do_not_contact", sa.Boolean, server_default=sa.false(), nullable=False),
        sa.Column("preferred_channels", JSONB, server_default="[]"),
        sa.Column("is_deleted", sa.Boolean, server_default=sa.false(), nullable=False),
        sa.Column("deleted_at", sa.DateTime(timezone=True), nullable=True),
        sa.Column("created_at", sa.DateTime(timezone=True), nullable=False),
        sa.Column("updated_at", sa.DateTime(timezone=True), nullable=False),
    )
    op.create_index("ix_contacts_organization_id", "contacts", ["organization_id"])

    op.create_table(
        "contact_collaborators",
        sa.Column("collaboration_id", UUID(as_uuid=True), primary_key=True),
        sa.Column("contact_id", UUID(as_uuid=True),
                  sa.ForeignKey("contacts.contact_id"), nullable=False),
        sa.Column("organization_id", UUID(as_uuid=True), nullable=False),
        sa.Column("collaborator_id", UUID(as_uuid=True), nullable=False),
        sa.Column("granted_by", UUID(as_uuid=True), nullable=False),
        sa.Column("role", sa.String(50), nullable=False),
        sa.Column("can_access_personal_data", sa.Boolean,
                  server_default=sa.false(), nullable=False),
        sa.Column("is_active", sa.Boolean, server_default=sa.true(), nullable=False),
        sa.Column("expires_at", sa.DateTime(timezone=True), nullable=True),
        sa.Column("created_at", sa.DateTime(timezone=True), nullable=False),
    )
    op.create_index(
        "ix_contact_collaborators_contact_id", "contact_collaborators", ["contact_id"],
    )

    # -- Activity --
    op.create_table(
        "interactions",
        sa.Column("interaction_id", UUID(as_uuid=True), primary_key=True),
        sa.Column("contact_id", UUID(as_uuid=True),
                  sa.ForeignKey("contacts.contact_id"), nullable=False),
        sa.Column("organization_id", UUID(as_uuid=True), nullable=False),
        sa.Column("channel", sa.String(50), nullable=False),
        sa.Column("sentiment_score", sa.Float, nullable=True),
        sa.Column("buying_signals", JSONB, server_default="[]"),
        sa.Column("urgency", sa.String(20), nullable=True),
        sa.Column("occurred_at", sa.DateTime(timezone=True), nullable=False),
    )
    op.create_index(
        "ix_interactions_contact_time", "interactions", ["contact_id", "occurred_at"],
    )

    op.create_table(
        "deals",
        sa.Column("deal_id", UUID(as_uuid=True), primary_key=True),
        sa.Column("contact_id", UUID(as_uuid=True),
                  sa.ForeignKey("contacts.contact_id"), nullable=False),
        sa.Column("organization_id", UUID(as_uuid=True), nullable=False),
        sa.Column("title", sa.String(255), nullable=False),
        sa.Column("stage", sa.String(100), nullable=False),
        sa.Column("status", sa.String(20), nullable=False),
        sa.Column("amount", sa.Float, server_default="0", nullable=False),
        sa.Column("opened_at", sa.DateTime(timezone=True), nullable=False),
        sa.Column("closed_at", sa.DateTime(timezone=True), nullable=True),
    )
    op.create_index("ix_deals_contact_id", "deals", ["contact_id"])

    op.create_table(
        "resource_assignments",
        sa.Column("assignment_id", UUID(as_uuid=True), primary_key=True),
        sa.Column("contact_id", UUID(as_uuid=True),
                  sa.ForeignKey("contacts.contact_id"), nullable=False),
        sa.Column("organization_id", UUID(as_uuid=True), nullable=False),
        sa.Column("provider_id", UUID(as_uuid=True), nullable=False),
        sa.Column("provider_name", sa.String(255), nullable=False),
        sa.Column("service_type", sa.String(100), nullable=False),
        sa.Column("status", sa.String(20), nullable=False),
        sa.Column("assigned_at", sa.DateTime(timezone=True), nullable=False),
        sa.Column("completed_at", sa.DateTime(timezone=True), nullable=True),
        sa.Column("notes", sa.Text, server_default=""),
    )
    op.create_index(
        "ix_resource_assignments_contact_id", "resource_assignments", ["contact_id"],
    )

    # -- Audit (IMMUTABLE) --
    op.create_table(
        "access_audit_logs",
        sa.Column("audit_id", UUID(as_uuid=True), primary_key=True),
        sa.Column("requester_id", UUID(as_uuid=True), nullable=False),
        sa.Column("contact_id", UUID(as_uuid=True), nullable=False),
        sa.Column("organization_id", UUID(as_uuid=True), nullable=False),
        sa.Column("access_level", sa.String(50), nullable=False),
        sa.Column("outcome", sa.String(50), nullable=False),
        sa.Column("reason", sa.String(500), nullable=False),
        sa.Column("security_level", sa.String(50), nullable=True),
        sa.Column("applied_filters", JSONB, server_default="[]"),
        sa.Column("fetch_errors", JSONB, server_default="[]"),
        sa.Column("client_ip", sa.String(45), nullable=True),
        sa.Column("user_agent", sa.String(500), nullable=True),
        sa.Column("recorded_at", sa.DateTime(timezone=True), nullable=False),
    )
    op.create_index(
        "ix_access_audit_contact_time", "access_audit_logs", ["contact_id", "recorded_at"],
    )


def downgrade() -> None:
    op.drop_table("access_audit_logs")
    op.drop_table("resource_assignments")
    op.drop_table("deals")
    op.drop_table("interactions")
    op.drop_table("contact_collaborators")
    op.drop_table("contacts")
    op.drop_table("users")
    op.drop_table("organizations")
