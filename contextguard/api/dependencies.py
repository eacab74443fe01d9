"""FastAPI dependency injection factories.

The assembler takes a session factory rather than a session: its fetchers
run concurrently and each needs its own session.
"""

import logging
from uuid import UUID

from fastapi import Depends, Header, HTTPException, Request
from sqlalchemy.ext.asyncio import AsyncSession

from contextguard.config.settings import Settings, get_settings
from contextguard.context.assembler import ContextAssembler
from contextguard.db.session import SessionFactory, get_async_session, get_session_factory
from contextguard.repositories.audit import AccessAuditRepository

logger = logging.getLogger(__name__)

# ---------------------------------------------------------------------------
# Caller identity
# ---------------------------------------------------------------------------


async def get_requester_id(
    request: Request,
    x_requester_id: str = Header(default=""),
) -> UUID:
    """Requester identity, as stamped by the authenticating gateway.

    The gateway strips any client-supplied X-Requester-Id and sets its own;
    this service never accepts identity from the request body.
    """
    if not x_requester_id:
        logger.warning("Context request without requester identity on %s", request.url.path)
        raise HTTPException(status_code=401, detail="Missing requester identity.")
    try:
        return UUID(x_requester_id)
    except ValueError:
        logger.warning("Malformed requester identity on %s", request.url.path)
        raise HTTPException(status_code=401, detail="Invalid requester identity.") from None


# ---------------------------------------------------------------------------
# Context
# ---------------------------------------------------------------------------


async def get_context_assembler(
    session_factory: SessionFactory = Depends(get_session_factory),
    settings: Settings = Depends(get_settings),
) -> ContextAssembler:
    return ContextAssembler.from_settings(session_factory, settings)


# ---------------------------------------------------------------------------
# Audit
# ---------------------------------------------------------------------------


async def get_access_audit_repo(
    session: AsyncSession = Depends(get_async_session),
) -> AccessAuditRepository:
    return AccessAuditRepository(session)
