"""Tests for AuditLogger and the SQL audit sink."""

import asyncio
import logging

import pytest
from uuid_extensions import uuid7

from contextguard.models.audit import AuditRecord
from contextguard.models.common import AccessLevel, AuditOutcome
from contextguard.privacy.audit import AuditLogger, SqlAuditSink
from contextguard.repositories.audit import AccessAuditRepository


def _record(**overrides) -> AuditRecord:
    data = {
        "requester_id": uuid7(),
        "contact_id": uuid7(),
        "organization_id": uuid7(),
        "access_level": AccessLevel.ASSIGNED_AGENT,
        "outcome": AuditOutcome.GRANTED,
        "reason": "assigned-agent",
    }
    data.update(overrides)
    return AuditRecord(**data)


class _MemorySink:
    def __init__(self) -> None:
        self.records: list[AuditRecord] = []

    async def write(self, record: AuditRecord) -> None:
        self.records.append(record)


class _BrokenSink:
    async def write(self, record: AuditRecord) -> None:
        raise ConnectionError("audit store unreachable")


class _SlowSink:
    async def write(self, record: AuditRecord) -> None:
        await asyncio.sleep(5)


class TestAuditLogger:
    @pytest.mark.anyio
    async def test_writes_to_sink(self) -> None:
        sink = _MemorySink()
        record = _record()
        failure = await AuditLogger(sink).record(record)
        assert failure is None
        assert sink.records == [record]

    @pytest.mark.anyio
    async def test_sink_error_is_returned_not_raised(self, caplog) -> None:
        record = _record()
        with caplog.at_level(logging.WARNING, logger="contextguard.privacy.audit"):
            failure = await AuditLogger(_BrokenSink()).record(record)
        assert failure is not None
        assert failure.audit_id == record.audit_id
        assert failure.error_type == "ConnectionError"
        assert failure.message == "audit store unreachable"
        assert "Audit write failed" in caplog.text

    @pytest.mark.anyio
    async def test_slow_sink_times_out(self) -> None:
        failure = await AuditLogger(_SlowSink(), timeout=0.05).record(_record())
        assert failure is not None
        assert failure.error_type == "TimeoutError"


class TestSqlAuditSink:
    @pytest.mark.anyio
    async def test_persists_record(self, session_factory, db_session) -> None:
        record = _record(client_ip="10.0.0.7", user_agent="pytest")
        await SqlAuditSink(session_factory).write(record)

        row = await AccessAuditRepository(db_session).get(record.audit_id)
        assert row is not None
        assert row.outcome == "Granted"
        assert row.client_ip == "10.0.0.7"
        assert row.applied_filters == []
