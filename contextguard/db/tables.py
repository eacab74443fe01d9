"""SQLAlchemy ORM table models for ContextGuard.

All tables defined in a single file. Uses FlexJSON (JSONB on Postgres,
JSON on SQLite) for list and mapping columns.

Categories:
- TENANCY: Organization, User
- CONTACT: Contact, ContactCollaborator
- ACTIVITY: Interaction, Deal, ResourceAssignment (read by the fetchers)
- IMMUTABLE: AccessAuditLog (append-only)
"""

from datetime import datetime
from uuid import UUID

from sqlalchemy import (
    Boolean,
    DateTime,
    Float,
    ForeignKey,
    Index,
    String,
    Text,
)
from sqlalchemy.dialects.postgresql import JSONB
from sqlalchemy.orm import Mapped, mapped_column
from sqlalchemy.types import JSON

from contextguard.db.session import Base

# JSONB on PostgreSQL, plain JSON on SQLite (for tests)
FlexJSON = JSONB().with_variant(JSON(), "sqlite")


# ---------------------------------------------------------------------------
# Tenancy
# ---------------------------------------------------------------------------


class OrganizationRow(Base):
    __tablename__ = "organizations"

    organization_id: Mapped[UUID] = mapped_column(primary_key=True)
    name: Mapped[str] = mapped_column(String(255), nullable=False)
    is_deleted: Mapped[bool] = mapped_column(Boolean, default=False, nullable=False)
    created_at: Mapped[datetime] = mapped_column(DateTime(timezone=True), nullable=False)


class UserRow(Base):
    """Agents and administrators. Admin rights are per organization."""

    __tablename__ = "users"

    user_id: Mapped[UUID] = mapped_column(primary_key=True)
    organization_id: Mapped[UUID] = mapped_column(
        ForeignKey("organizations.organization_id"), nullable=False,
    )
    display_name: Mapped[str] = mapped_column(String(255), nullable=False)
    is_admin: Mapped[bool] = mapped_column(Boolean, default=False, nullable=False)
    is_active: Mapped[bool] = mapped_column(Boolean, default=True, nullable=False)
    created_at: Mapped[datetime] = mapped_column(DateTime(timezone=True), nullable=False)


# ---------------------------------------------------------------------------
# Contact
# ---------------------------------------------------------------------------


class ContactRow(Base):
    """A business contact.

    field_privacy_tags maps an output field path to extra privacy tags,
    e.g. {"contactProfile.preferences": ["Private"]}.
    """

    __tablename__ = "contacts"

    contact_id: Mapped[UUID] = mapped_column(primary_key=True)
    organization_id: Mapped[UUID] = mapped_column(
        ForeignKey("organizations.organization_id"), nullable=False, index=True,
    )
    assigned_agent_id: Mapped[UUID | None] = mapped_column(nullable=True)
    first_name: Mapped[str] = mapped_column(String(255), nullable=False)
    last_name: Mapped[str] = mapped_column(String(255), default="")
    preferred_name: Mapped[str | None] = mapped_column(String(255), nullable=True)
    company: Mapped[str | None] = mapped_column(String(255), nullable=True)
    job_title: Mapped[str | None] = mapped_column(String(255), nullable=True)
    emails: Mapped[list] = mapped_column(FlexJSON, default=list)
    phones: Mapped[list] = mapped_column(FlexJSON, default=list)
    relationship_state: Mapped[str] = mapped_column(String(50), nullable=False)
    tags: Mapped[list] = mapped_column(FlexJSON, default=list)
    preferences: Mapped[dict | None] = mapped_column(FlexJSON, nullable=True)
    field_privacy_tags: Mapped[dict] = mapped_column(FlexJSON, default=dict)
    # Communication
    email_opt_in: Mapped[bool | None] = mapped_column(Boolean, nullable=True)
    sms_opt_in: Mapped[bool | None] = mapped_column(Boolean, nullable=True)
    consent_updated_at: Mapped[datetime | None] = mapped_column(
        DateTime(timezone=True), nullable=True,
    )
    do_not_contact: Mapped[bool] = mapped_column(Boolean, default=False, nullable=False)
    preferred_channels: Mapped[list] = mapped_column(FlexJSON, default=list)
    # Soft delete
    is_deleted: Mapped[bool] = mapped_column(Boolean, default=False, nullable=False)
    deleted_at: Mapped[datetime | None] = mapped_column(DateTime(timezone=True), nullable=True)
    created_at: Mapped[datetime] = mapped_column(DateTime(timezone=True), nullable=False)
    updated_at: Mapped[datetime] = mapped_column(DateTime(timezone=True), nullable=False)


class ContactCollaboratorRow(Base):
    """Collaboration grant on a contact. Only active, unexpired grants count."""

    __tablename__ = "contact_collaborators"

    collaboration_id: Mapped[UUID] = mapped_column(primary_key=True)
    contact_id: Mapped[UUID] = mapped_column(
        ForeignKey("contacts.contact_id"), nullable=False, index=True,
    )
    organization_id: Mapped[UUID] = mapped_column(nullable=False)
    collaborator_id: Mapped[UUID] = mapped_column(nullable=False)
    granted_by: Mapped[UUID] = mapped_column(nullable=False)
    role: Mapped[str] = mapped_column(String(50), nullable=False)
    can_access_personal_data: Mapped[bool] = mapped_column(
        Boolean, default=False, nullable=False,
    )
    is_active: Mapped[bool] = mapped_column(Boolean, default=True, nullable=False)
    expires_at: Mapped[datetime | None] = mapped_column(DateTime(timezone=True), nullable=True)
    created_at: Mapped[datetime] = mapped_column(DateTime(timezone=True), nullable=False)


# ---------------------------------------------------------------------------
# Activity
# ---------------------------------------------------------------------------


class InteractionRow(Base):
    __tablename__ = "interactions"
    __table_args__ = (Index("ix_interactions_contact_time", "contact_id", "occurred_at"),)

    interaction_id: Mapped[UUID] = mapped_column(primary_key=True)
    contact_id: Mapped[UUID] = mapped_column(ForeignKey("contacts.contact_id"), nullable=False)
    organization_id: Mapped[UUID] = mapped_column(nullable=False)
    channel: Mapped[str] = mapped_column(String(50), nullable=False)
    sentiment_score: Mapped[float | None] = mapped_column(Float, nullable=True)
    buying_signals: Mapped[list] = mapped_column(FlexJSON, default=list)
    urgency: Mapped[str | None] = mapped_column(String(20), nullable=True)
    occurred_at: Mapped[datetime] = mapped_column(DateTime(timezone=True), nullable=False)


class DealRow(Base):
    """Deal lifecycle: OPEN -> WON | LOST."""

    __tablename__ = "deals"

    deal_id: Mapped[UUID] = mapped_column(primary_key=True)
    contact_id: Mapped[UUID] = mapped_column(
        ForeignKey("contacts.contact_id"), nullable=False, index=True,
    )
    organization_id: Mapped[UUID] = mapped_column(nullable=False)
    title: Mapped[str] = mapped_column(String(255), nullable=False)
    stage: Mapped[str] = mapped_column(String(100), nullable=False)
    status: Mapped[str] = mapped_column(String(20), nullable=False)
    amount: Mapped[float] = mapped_column(Float, default=0.0, nullable=False)
    opened_at: Mapped[datetime] = mapped_column(DateTime(timezone=True), nullable=False)
    closed_at: Mapped[datetime | None] = mapped_column(DateTime(timezone=True), nullable=True)


class ResourceAssignmentRow(Base):
    """A service provider assigned to a contact (e.g. inspector, lender)."""

    __tablename__ = "resource_assignments"

    assignment_id: Mapped[UUID] = mapped_column(primary_key=True)
    contact_id: Mapped[UUID] = mapped_column(
        ForeignKey("contacts.contact_id"), nullable=False, index=True,
    )
    organization_id: Mapped[UUID] = mapped_column(nullable=False)
    provider_id: Mapped[UUID] = mapped_column(nullable=False)
    provider_name: Mapped[str] = mapped_column(String(255), nullable=False)
    service_type: Mapped[str] = mapped_column(String(100), nullable=False)
    status: Mapped[str] = mapped_column(String(20), nullable=False)
    assigned_at: Mapped[datetime] = mapped_column(DateTime(timezone=True), nullable=False)
    completed_at: Mapped[datetime | None] = mapped_column(DateTime(timezone=True), nullable=True)
    notes: Mapped[str] = mapped_column(Text, default="")


# ---------------------------------------------------------------------------
# Audit: IMMUTABLE
# ---------------------------------------------------------------------------


class AccessAuditLogRow(Base):
    """One row per context build. Never updated."""

    __tablename__ = "access_audit_logs"
    __table_args__ = (Index("ix_access_audit_contact_time", "contact_id", "recorded_at"),)

    audit_id: Mapped[UUID] = mapped_column(primary_key=True)
    requester_id: Mapped[UUID] = mapped_column(nullable=False)
    contact_id: Mapped[UUID] = mapped_column(nullable=False)
    organization_id: Mapped[UUID] = mapped_column(nullable=False)
    access_level: Mapped[str] = mapped_column(String(50), nullable=False)
    outcome: Mapped[str] = mapped_column(String(50), nullable=False)
    reason: Mapped[str] = mapped_column(String(500), nullable=False)
    security_level: Mapped[str | None] = mapped_column(String(50), nullable=True)
    applied_filters: Mapped[list] = mapped_column(FlexJSON, default=list)
    fetch_errors: Mapped[list] = mapped_column(FlexJSON, default=list)
    client_ip: Mapped[str | None] = mapped_column(String(45), nullable=True)
    user_agent: Mapped[str | None] = mapped_column(String(500), nullable=True)
    recorded_at: Mapped[datetime] = mapped_column(DateTime(timezone=True), nullable=False)
