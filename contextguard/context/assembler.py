"""Context assembler — resolver + fetcher fan-out, filter, audit.

One build is one task that fans out to at most seven child tasks
(the access resolver and the six domain fetchers) and joins them under a
single aggregate deadline. Each child writes only its own result slot.

Failure semantics:
- Resolver failure (CrossTenant, NotFound, timeout, backend error) is
  fatal: pending fetchers are cancelled, a Denied audit is recorded and
  the error is raised. No envelope leaves the engine.
- Fetcher failure or deadline overrun is degradation: the section is
  missing and a FetchError names it.
- Zero loaded sections is fatal (ContextUnavailable).
- Audit write failure is a warning on the result, never an error.

No retries and no caching happen here. Caller cancellation cancels every
in-flight child; their partial results are discarded.
"""

import asyncio
import logging
from collections.abc import Callable, Sequence
from dataclasses import dataclass, field
from datetime import datetime
from typing import Protocol
from uuid import UUID

from contextguard.config.settings import Settings
from contextguard.context.access import AccessResolution, AccessResolver
from contextguard.context.errors import (
    AccessResolutionError,
    ContextError,
    ContextUnavailableError,
)
from contextguard.context.fetchers import FetchOutcome, default_fetchers
from contextguard.context.serializer import emit
from contextguard.db.session import SessionFactory
from contextguard.models.audit import AuditRecord
from contextguard.models.common import (
    AccessLevel,
    AuditOutcome,
    ContextSection,
    FetchErrorKind,
    utc_now,
)
from contextguard.models.context import SECTION_LAYOUT, ContextEnvelope, FetchError, SafeEnvelope
from contextguard.privacy.audit import AuditLogger, SqlAuditSink
from contextguard.privacy.filter import PrivacyFilter

logger = logging.getLogger(__name__)

_SECTION_ORDER: list[ContextSection] = list(SECTION_LAYOUT)


class Resolver(Protocol):
    async def resolve(
        self, requester_id: UUID, contact_id: UUID, organization_id: UUID,
    ) -> AccessResolution:
        ...


class Fetcher(Protocol):
    section_name: ContextSection

    async def fetch_safely(
        self, contact_id: UUID, organization_id: UUID, *, timeout: float,
    ) -> FetchOutcome:
        ...


@dataclass(frozen=True)
class BuildOptions:
    """Per-request knobs supplied by the calling security context."""

    include_personal_data: bool = True
    client_ip: str | None = None
    user_agent: str | None = None


@dataclass(frozen=True)
class ContextBuildResult:
    """Safe envelope, its audit record, and any soft warnings."""

    envelope: SafeEnvelope
    audit: AuditRecord
    warnings: list[str] = field(default_factory=list)

    def to_json(self) -> bytes:
        return emit(self.envelope)


class ContextAssembler:
    """Build a filtered, audited context envelope for one contact."""

    def __init__(
        self,
        *,
        resolver: Resolver,
        fetchers: Sequence[Fetcher],
        audit_logger: AuditLogger,
        privacy_filter: PrivacyFilter | None = None,
        deadline: float = 2.0,
        fetch_timeout: float = 1.5,
        clock: Callable[[], datetime] = utc_now,
    ) -> None:
        self._resolver = resolver
        self._fetchers = list(fetchers)
        self._audit_logger = audit_logger
        self._filter = privacy_filter or PrivacyFilter()
        self._deadline = deadline
        self._fetch_timeout = fetch_timeout
        self._clock = clock

    @classmethod
    def from_settings(
        cls,
        session_factory: SessionFactory,
        settings: Settings,
        *,
        clock: Callable[[], datetime] = utc_now,
    ) -> "ContextAssembler":
        """Wire the SQL-backed resolver, fetchers and audit sink."""
        return cls(
            resolver=AccessResolver(session_factory, clock=clock),
            fetchers=default_fetchers(
                session_factory,
                recent_window=settings.CONTEXT_RECENT_INTERACTION_WINDOW,
                clock=clock,
            ),
            audit_logger=AuditLogger(
                SqlAuditSink(session_factory),
                timeout=settings.AUDIT_WRITE_TIMEOUT_SECONDS,
            ),
            deadline=settings.CONTEXT_BUILD_DEADLINE_SECONDS,
            fetch_timeout=settings.CONTEXT_FETCH_TIMEOUT_SECONDS,
            clock=clock,
        )

    async def build(
        self,
        requester_id: UUID,
        contact_id: UUID,
        organization_id: UUID,
        options: BuildOptions | None = None,
    ) -> ContextBuildResult:
        options = options or BuildOptions()
        loop = asyncio.get_running_loop()
        deadline_at = loop.time() + self._deadline

        resolver_task = asyncio.create_task(
            self._resolver.resolve(requester_id, contact_id, organization_id),
            name=f"resolve-access:{contact_id}",
        )
        fetch_tasks = [
            asyncio.create_task(
                fetcher.fetch_safely(contact_id, organization_id, timeout=self._fetch_timeout),
                name=f"fetch-{fetcher.section_name.value}:{contact_id}",
            )
            for fetcher in self._fetchers
        ]

        try:
            try:
                resolution = await self._await_resolution(
                    resolver_task, contact_id, organization_id, deadline_at - loop.time(),
                )
            except ContextError as exc:
                await _cancel_pending(fetch_tasks)
                await self._record_denied(
                    exc, requester_id, AccessLevel.NO_ACCESS, options,
                )
                raise

            raw = await self._collect(
                fetch_tasks, contact_id, organization_id, deadline_at - loop.time(),
            )
        finally:
            await _cancel_pending([resolver_task, *fetch_tasks])

        if not raw.loaded_sections():
            exc = ContextUnavailableError(
                f"No context section could be loaded for contact {contact_id}.",
                contact_id=contact_id, organization_id=organization_id,
            )
            await self._record_denied(exc, requester_id, resolution.level, options)
            raise exc

        safe = self._filter.apply(
            raw, resolution.level,
            withheld_tags=resolution.withheld_tags,
            include_personal_data=options.include_personal_data,
        )

        if (
            resolution.level == AccessLevel.NO_ACCESS
            or safe.applied_filters
            or safe.fetch_errors
        ):
            outcome = AuditOutcome.GRANTED_PARTIAL
        else:
            outcome = AuditOutcome.GRANTED

        record = AuditRecord(
            requester_id=requester_id,
            contact_id=contact_id,
            organization_id=organization_id,
            access_level=resolution.level,
            outcome=outcome,
            reason=resolution.reason,
            security_level=safe.security_level,
            applied_filters=tuple(safe.applied_filters),
            fetch_errors=tuple(safe.fetch_errors),
            client_ip=options.client_ip,
            user_agent=options.user_agent,
            recorded_at=self._clock(),
        )
        warnings: list[str] = []
        # Waits at most the audit logger timeout; a failed write becomes a warning.
        failure = await self._audit_logger.record(record)
        if failure is not None:
            warnings.append(f"audit-write-failed: {failure.error_type}")

        logger.info(
            "Built context for contact %s: level=%s sections=%d/%d filters=%d security=%s",
            contact_id, resolution.level.value, len(raw.loaded_sections()),
            len(SECTION_LAYOUT), len(safe.applied_filters), safe.security_level.value,
        )
        return ContextBuildResult(envelope=safe, audit=record, warnings=warnings)

    async def _await_resolution(
        self,
        task: "asyncio.Task[AccessResolution]",
        contact_id: UUID,
        organization_id: UUID,
        remaining: float,
    ) -> AccessResolution:
        try:
            return await asyncio.wait_for(task, timeout=max(0.0, remaining))
        except ContextError:
            raise
        except TimeoutError:
            logger.warning("Access resolution timed out for contact %s", contact_id)
            raise AccessResolutionError(
                f"Access resolution timed out for contact {contact_id}.",
                contact_id=contact_id, organization_id=organization_id,
            ) from None
        except Exception as exc:
            logger.exception("Access resolution failed for contact %s", contact_id)
            raise AccessResolutionError(
                f"Access resolution failed for contact {contact_id}.",
                contact_id=contact_id, organization_id=organization_id,
            ) from exc

    async def _collect(
        self,
        tasks: list["asyncio.Task[FetchOutcome]"],
        contact_id: UUID,
        organization_id: UUID,
        remaining: float,
    ) -> ContextEnvelope:
        done: set[asyncio.Task[FetchOutcome]] = set()
        if tasks:
            done, _ = await asyncio.wait(tasks, timeout=max(0.0, remaining))

        sections: dict[str, object] = {}
        errors: list[FetchError] = []
        for fetcher, task in zip(self._fetchers, tasks):
            name = fetcher.section_name
            if task not in done:
                logger.warning(
                    "Fetcher %s missed the build deadline for contact %s",
                    name.value, contact_id,
                )
                errors.append(FetchError(section=name, kind=FetchErrorKind.TIMEOUT))
                continue
            if task.exception() is not None:
                logger.error(
                    "Fetcher %s raised for contact %s: %r",
                    name.value, contact_id, task.exception(),
                )
                errors.append(FetchError(section=name, kind=FetchErrorKind.BACKEND_ERROR))
                continue
            outcome = task.result()
            if outcome.error is not None:
                errors.append(outcome.error)
            elif outcome.section is not None:
                attr, _ = SECTION_LAYOUT[name]
                sections[attr] = outcome.section

        errors.sort(key=lambda e: _SECTION_ORDER.index(e.section))
        return ContextEnvelope(
            contact_id=contact_id,
            organization_id=organization_id,
            fetch_errors=errors,
            **sections,
        )

    async def _record_denied(
        self,
        exc: ContextError,
        requester_id: UUID,
        level: AccessLevel,
        options: BuildOptions,
    ) -> None:
        record = AuditRecord(
            requester_id=requester_id,
            contact_id=exc.contact_id,
            organization_id=exc.organization_id,
            access_level=level,
            outcome=AuditOutcome.DENIED,
            reason=exc.audit_reason,
            client_ip=options.client_ip,
            user_agent=options.user_agent,
            recorded_at=self._clock(),
        )
        failure = await self._audit_logger.record(record)
        exc.audit_record = record
        exc.audit_failure = failure


async def _cancel_pending(tasks: Sequence[asyncio.Task]) -> None:
    """Cancel unfinished tasks and wait for them to unwind."""
    pending = [t for t in tasks if not t.done()]
    for task in pending:
        task.cancel()
    if pending:
        await asyncio.gather(*pending, return_exceptions=True)
