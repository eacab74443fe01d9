"""Fatal context-build errors.

Each error carries a stable ``kind`` string. Non-fatal conditions
(fetch failures, audit write failures) are values, not exceptions.
"""

from uuid import UUID

from contextguard.models.audit import AuditRecord, AuditWriteFailure


class ContextError(Exception):
    """Base class for errors that abort a context build.

    The assembler attaches the Denied audit record (and any audit write
    failure) before re-raising.
    """

    kind = "ContextError"
    # Recorded as the audit reason when the build is denied.
    audit_reason = "context-error"

    def __init__(self, message: str, *, contact_id: UUID, organization_id: UUID) -> None:
        super().__init__(message)
        self.contact_id = contact_id
        self.organization_id = organization_id
        self.audit_record: AuditRecord | None = None
        self.audit_failure: AuditWriteFailure | None = None


class CrossTenantError(ContextError):
    """Contact belongs to a different organization than the request names."""

    kind = "CrossTenant"
    audit_reason = "cross-tenant"


class ContactNotFoundError(ContextError):
    """Contact or organization missing or soft-deleted."""

    kind = "NotFound"
    audit_reason = "not-found"


class AccessResolutionError(ContextError):
    """Access could not be resolved in time or the backend failed."""

    kind = "AccessResolutionFailed"
    audit_reason = "access-resolution-failed"


class ContextUnavailableError(ContextError):
    """No context section could be loaded."""

    kind = "ContextUnavailable"
    audit_reason = "context-unavailable"
