"""Audit models — one immutable AuditRecord per context build."""

from uuid import UUID

from pydantic import Field

from contextguard.models.common import (
    AccessLevel,
    AuditOutcome,
    ContextGuardBase,
    PrivacyTag,
    UTCTimestamp,
    UUIDv7,
    new_uuid7,
    utc_now,
)
from contextguard.models.context import AppliedFilter, FetchError


class AuditRecord(ContextGuardBase):
    """Immutable record of a resolution + filter decision.

    Created once per build, never mutated, persisted append-only.
    """

    model_config = {**ContextGuardBase.model_config, "frozen": True}

    audit_id: UUIDv7 = Field(default_factory=new_uuid7)
    requester_id: UUID
    contact_id: UUID
    organization_id: UUID
    access_level: AccessLevel
    outcome: AuditOutcome
    reason: str = Field(..., min_length=1, max_length=500)
    security_level: PrivacyTag | None = None
    applied_filters: tuple[AppliedFilter, ...] = ()
    fetch_errors: tuple[FetchError, ...] = ()
    client_ip: str | None = Field(default=None, max_length=45)
    user_agent: str | None = Field(default=None, max_length=500)
    recorded_at: UTCTimestamp = Field(default_factory=utc_now)


class AuditWriteFailure(ContextGuardBase):
    """Soft warning returned when an audit record could not be persisted."""

    audit_id: UUID
    error_type: str
    message: str
