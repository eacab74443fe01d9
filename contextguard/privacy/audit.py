"""Audit logging for context builds.

AuditLogger.record() is best-effort: a failed or slow write is logged as a
warning and returned as an AuditWriteFailure, never raised to the caller.
The write is awaited so the audit id handed back with a response names a
stored row, but the wait is capped at the logger timeout
(AUDIT_WRITE_TIMEOUT_SECONDS, 0.25s by default). A stalled audit store
costs each response at most that long.

SqlAuditSink writes in its own session and commits it, so audit rows for
denied builds persist even when the request's unit of work rolls back.
"""

import asyncio
import logging
from typing import Protocol

from contextguard.db.session import SessionFactory
from contextguard.models.audit import AuditRecord, AuditWriteFailure
from contextguard.repositories.audit import AccessAuditRepository

logger = logging.getLogger(__name__)


class AuditSink(Protocol):
    """Append-only destination for audit records."""

    async def write(self, record: AuditRecord) -> None:
        ...


class SqlAuditSink:
    """Persist audit records to the access_audit_logs table."""

    def __init__(self, session_factory: SessionFactory) -> None:
        self._session_factory = session_factory

    async def write(self, record: AuditRecord) -> None:
        async with self._session_factory() as session:
            await AccessAuditRepository(session).append(record)
            await session.commit()


class AuditLogger:
    """Record one AuditRecord per build without ever failing the build."""

    def __init__(self, sink: AuditSink, *, timeout: float = 0.25) -> None:
        self._sink = sink
        self._timeout = timeout

    async def record(self, record: AuditRecord) -> AuditWriteFailure | None:
        try:
            await asyncio.wait_for(self._sink.write(record), timeout=self._timeout)
        except Exception as exc:
            logger.warning(
                "Audit write failed for %s (contact %s, outcome %s): %s: %s",
                record.audit_id, record.contact_id, record.outcome.value,
                type(exc).__name__, exc,
            )
            return AuditWriteFailure(
                audit_id=record.audit_id,
                error_type=type(exc).__name__,
                message=str(exc) or "audit write failed",
            )

        logger.info(
            "Context access %s: requester=%s contact=%s level=%s reason=%s filters=%d",
            record.outcome.value, record.requester_id, record.contact_id,
            record.access_level.value, record.reason, len(record.applied_filters),
        )
        return None
