"""FastAPI context endpoints.

POST /v1/organizations/{organization_id}/contacts/{contact_id}/context
    — build the filtered context envelope (versioned JSON)
GET  /v1/organizations/{organization_id}/contacts/{contact_id}/context/audit
    — access audit trail for compliance review

The requester id comes from the calling security context: the
authenticating gateway stamps it into the X-Requester-Id header (see
``get_requester_id``). Request bodies carry options only.
"""

import logging
from uuid import UUID

from fastapi import APIRouter, Depends, HTTPException, Request, Response
from pydantic import BaseModel, Field

from contextguard.api.dependencies import (
    get_access_audit_repo,
    get_context_assembler,
    get_requester_id,
)
from contextguard.context.assembler import BuildOptions, ContextAssembler
from contextguard.context.errors import (
    AccessResolutionError,
    ContactNotFoundError,
    ContextError,
    ContextUnavailableError,
    CrossTenantError,
)
from contextguard.context.serializer import SCHEMA_VERSION, envelope_payload
from contextguard.privacy.masking import loggable_payload
from contextguard.repositories.audit import AccessAuditRepository

logger = logging.getLogger(__name__)

router = APIRouter(
    prefix="/v1/organizations/{organization_id}/contacts/{contact_id}/context",
    tags=["context"],
)

_ERROR_STATUS: dict[type[ContextError], int] = {
    CrossTenantError: 403,
    ContactNotFoundError: 404,
    AccessResolutionError: 503,
    ContextUnavailableError: 503,
}


# ---------------------------------------------------------------------------
# Request / Response schemas
# ---------------------------------------------------------------------------


class BuildContextRequest(BaseModel):
    include_personal_data: bool = True


class AuditEntryResponse(BaseModel):
    audit_id: str
    requester_id: str
    access_level: str
    outcome: str
    reason: str
    security_level: str | None = None
    applied_filters: list[dict] = Field(default_factory=list)
    fetch_errors: list[dict] = Field(default_factory=list)
    recorded_at: str


class AuditTrailResponse(BaseModel):
    contact_id: str
    entries: list[AuditEntryResponse]
    total: int


# ---------------------------------------------------------------------------
# Endpoints
# ---------------------------------------------------------------------------


@router.post("")
async def build_context(
    organization_id: UUID,
    contact_id: UUID,
    request: Request,
    body: BuildContextRequest | None = None,
    requester_id: UUID = Depends(get_requester_id),
    assembler: ContextAssembler = Depends(get_context_assembler),
) -> Response:
    options = BuildOptions(
        include_personal_data=body.include_personal_data if body is not None else True,
        client_ip=request.client.host if request.client else None,
        user_agent=request.headers.get("user-agent"),
    )
    try:
        result = await assembler.build(
            requester_id, contact_id, organization_id, options,
        )
    except ContextError as exc:
        status = _ERROR_STATUS.get(type(exc), 500)
        raise HTTPException(
            status_code=status,
            detail={"error": exc.kind, "message": str(exc)},
        ) from exc

    if logger.isEnabledFor(logging.DEBUG):
        logger.debug(
            "Context payload for %s: %s",
            contact_id,
            loggable_payload(result.envelope, envelope_payload(result.envelope)),
        )

    headers = {
        "X-Context-Schema-Version": SCHEMA_VERSION,
        "X-Audit-Id": str(result.audit.audit_id),
    }
    if result.warnings:
        headers["X-Context-Warnings"] = ",".join(result.warnings)
    return Response(content=result.to_json(), media_type="application/json", headers=headers)


@router.get("/audit", response_model=AuditTrailResponse)
async def get_audit_trail(
    organization_id: UUID,
    contact_id: UUID,
    repo: AccessAuditRepository = Depends(get_access_audit_repo),
) -> AuditTrailResponse:
    rows = await repo.list_by_contact(contact_id, organization_id)
    entries = [
        AuditEntryResponse(
            audit_id=str(r.audit_id),
            requester_id=str(r.requester_id),
            access_level=r.access_level,
            outcome=r.outcome,
            reason=r.reason,
            security_level=r.security_level,
            applied_filters=list(r.applied_filters or []),
            fetch_errors=list(r.fetch_errors or []),
            recorded_at=r.recorded_at.isoformat(),
        )
        for r in rows
    ]
    return AuditTrailResponse(contact_id=str(contact_id), entries=entries, total=len(entries))
