"""Domain fetchers — one read-only loader per context section.

Each fetcher:
- opens its own session (sessions are never shared between concurrent fetches)
- receives IDs only and returns a flat section DTO, never ORM rows
- scopes every query by organization
- tags every field with its default privacy tags, escalated by the
  contact's field_privacy_tags overrides
- makes no access-control decision; that is the privacy filter's job

fetch_safely() wraps fetch() with the per-fetch timeout and turns any
failure into a FetchError instead of raising.
"""

import asyncio
import logging
from abc import ABC, abstractmethod
from collections.abc import Callable
from dataclasses import dataclass
from datetime import datetime
from statistics import fmean
from uuid import UUID

from sqlalchemy.ext.asyncio import AsyncSession

from contextguard.context.access import grant_is_current
from contextguard.db.session import SessionFactory
from contextguard.db.tables import ContactRow
from contextguard.models.common import (
    AssignmentStatus,
    CollaboratorRole,
    ContextSection,
    DealStatus,
    FetchErrorKind,
    PrivacyTag,
    RelationshipState,
    SentimentTrend,
    UrgencyLevel,
    as_utc,
    utc_now,
)
from contextguard.models.context import (
    SECTION_LAYOUT,
    BasicInfo,
    BusinessActivitySection,
    CollaboratorSummary,
    CommunicationSection,
    ConsentStatus,
    DealSummary,
    FetchError,
    ProfileSection,
    RelationshipSection,
    ResourceSection,
    ResourceSummary,
    SectionModel,
    TaggedField,
    TransactionSection,
)
from contextguard.repositories.activity import (
    DealRepository,
    InteractionRepository,
    ResourceAssignmentRepository,
)
from contextguard.repositories.contacts import CollaboratorRepository, ContactRepository

logger = logging.getLogger(__name__)

# Sentiment mean thresholds for the trend label
POSITIVE_SENTIMENT_THRESHOLD = 0.2
NEGATIVE_SENTIMENT_THRESHOLD = -0.2

BUYING_SIGNAL_WINDOW = 10

_URGENCY_ORDER: tuple[UrgencyLevel, ...] = tuple(UrgencyLevel)


@dataclass(frozen=True)
class FetchOutcome:
    """Result slot for one fetcher: exactly one of section / error is set."""

    section_name: ContextSection
    section: SectionModel | None = None
    error: FetchError | None = None


def parse_tag_overrides(raw: dict | None) -> dict[str, frozenset[PrivacyTag]]:
    """Turn a contact's field_privacy_tags column into typed tag sets.

    A bare string is one tag name. Overrides only ever escalate, so an
    unrecognised tag name (or a malformed entry) is read as Private.
    """
    parsed: dict[str, frozenset[PrivacyTag]] = {}
    for path, names in (raw or {}).items():
        if names is None:
            continue
        if isinstance(names, str):
            names = [names]
        elif not isinstance(names, (list, tuple)):
            logger.warning(
                "Malformed privacy tag override %r on field %s; treating as Private",
                names, path,
            )
            names = [PrivacyTag.PRIVATE.value]
        tags: set[PrivacyTag] = set()
        for name in names:
            try:
                tags.add(PrivacyTag(name))
            except ValueError:
                logger.warning(
                    "Unknown privacy tag %r on field %s; treating as Private", name, path,
                )
                tags.add(PrivacyTag.PRIVATE)
        if tags:
            parsed[str(path)] = frozenset(tags)
    return parsed


def apply_tag_overrides(
    section_name: ContextSection,
    section: SectionModel,
    overrides: dict[str, frozenset[PrivacyTag]],
) -> SectionModel:
    """Union per-field override tags into a section's default tags."""
    _, section_key = SECTION_LAYOUT[section_name]
    updates: dict[str, TaggedField] = {}
    for attr, alias, tagged in section.tagged_fields():
        extra = overrides.get(f"{section_key}.{alias}")
        if extra:
            updates[attr] = tagged.with_extra_tags(extra)
    if not updates:
        return section
    return section.model_copy(update=updates)


class DomainFetcher(ABC):
    """Uniform capability: fetch(contact_id, organization_id) -> section."""

    section_name: ContextSection

    def __init__(self, session_factory: SessionFactory) -> None:
        self._session_factory = session_factory

    async def fetch(self, contact_id: UUID, organization_id: UUID) -> SectionModel:
        async with self._session_factory() as session:
            contact = await ContactRepository(session).get_in_organization(
                contact_id, organization_id,
            )
            if contact is None:
                raise LookupError(
                    f"Contact {contact_id} not visible in organization {organization_id}."
                )
            section = await self._load(session, contact)
            overrides = parse_tag_overrides(contact.field_privacy_tags)
        return apply_tag_overrides(self.section_name, section, overrides)

    async def fetch_safely(
        self,
        contact_id: UUID,
        organization_id: UUID,
        *,
        timeout: float,
    ) -> FetchOutcome:
        """Run fetch() under a timeout. Never raises except on cancellation."""
        try:
            section = await asyncio.wait_for(
                self.fetch(contact_id, organization_id), timeout=timeout,
            )
        except TimeoutError:
            logger.warning(
                "Fetcher %s timed out after %.2fs for contact %s",
                self.section_name.value, timeout, contact_id,
            )
            return FetchOutcome(
                self.section_name,
                error=FetchError(section=self.section_name, kind=FetchErrorKind.TIMEOUT),
            )
        except Exception:
            logger.exception(
                "Fetcher %s failed for contact %s", self.section_name.value, contact_id,
            )
            return FetchOutcome(
                self.section_name,
                error=FetchError(section=self.section_name, kind=FetchErrorKind.BACKEND_ERROR),
            )
        return FetchOutcome(self.section_name, section=section)

    @abstractmethod
    async def _load(self, session: AsyncSession, contact: ContactRow) -> SectionModel:
        ...


class ProfileFetcher(DomainFetcher):
    section_name = ContextSection.PROFILE

    async def _load(self, session: AsyncSession, contact: ContactRow) -> ProfileSection:
        basic_info = BasicInfo(
            first_name=contact.first_name,
            last_name=contact.last_name or "",
            preferred_name=contact.preferred_name,
            company=contact.company,
            job_title=contact.job_title,
            emails=list(contact.emails or []),
            phones=list(contact.phones or []),
        )
        return ProfileSection(
            basic_info=TaggedField.of(basic_info, PrivacyTag.BUSINESS),
            preferences=TaggedField.of(
                dict(contact.preferences) if contact.preferences is not None else None,
                PrivacyTag.PERSONAL,
            ),
            tags=TaggedField.of(list(contact.tags or []), PrivacyTag.BUSINESS),
        )


class RelationshipFetcher(DomainFetcher):
    section_name = ContextSection.RELATIONSHIP

    def __init__(
        self,
        session_factory: SessionFactory,
        *,
        clock: Callable[[], datetime] = utc_now,
    ) -> None:
        super().__init__(session_factory)
        self._clock = clock

    async def _load(self, session: AsyncSession, contact: ContactRow) -> RelationshipSection:
        grants = await CollaboratorRepository(session).list_for_contact(
            contact.contact_id, contact.organization_id,
        )
        now = self._clock()
        collaborators = [
            CollaboratorSummary(
                collaborator_id=g.collaborator_id,
                role=CollaboratorRole(g.role),
                expires_at=as_utc(g.expires_at) if g.expires_at is not None else None,
            )
            for g in grants
            if grant_is_current(g, g.collaborator_id, now)
        ]
        return RelationshipSection(
            relationship_state=TaggedField.identity_field(
                RelationshipState(contact.relationship_state)
            ),
            assigned_agent_id=TaggedField.of(contact.assigned_agent_id, PrivacyTag.BUSINESS),
            collaborators=TaggedField.of(collaborators, PrivacyTag.BUSINESS),
        )


def sentiment_trend(scores: list[float]) -> SentimentTrend:
    """Label the mean of recent sentiment scores."""
    if not scores:
        return SentimentTrend.NEUTRAL
    mean = fmean(scores)
    if mean > POSITIVE_SENTIMENT_THRESHOLD:
        return SentimentTrend.POSITIVE
    if mean < NEGATIVE_SENTIMENT_THRESHOLD:
        return SentimentTrend.NEGATIVE
    return SentimentTrend.NEUTRAL


def highest_urgency(values: list[str | None]) -> UrgencyLevel:
    """Highest recognised urgency; Low when none is recorded."""
    levels: list[UrgencyLevel] = []
    for value in values:
        try:
            levels.append(UrgencyLevel(value))
        except ValueError:
            continue
    if not levels:
        return UrgencyLevel.LOW
    return max(levels, key=_URGENCY_ORDER.index)


class BusinessActivityFetcher(DomainFetcher):
    section_name = ContextSection.BUSINESS_ACTIVITY

    def __init__(self, session_factory: SessionFactory, *, recent_window: int = 5) -> None:
        super().__init__(session_factory)
        self._recent_window = recent_window

    async def _load(
        self, session: AsyncSession, contact: ContactRow,
    ) -> BusinessActivitySection:
        repo = InteractionRepository(session)
        total = await repo.count_for_contact(contact.contact_id, contact.organization_id)
        recent = await repo.list_recent(
            contact.contact_id, contact.organization_id,
            limit=max(self._recent_window, BUYING_SIGNAL_WINDOW),
        )
        window = recent[: self._recent_window]

        signals: list[str] = []
        for interaction in recent[:BUYING_SIGNAL_WINDOW]:
            for signal in interaction.buying_signals or []:
                if signal not in signals:
                    signals.append(signal)

        scores = [i.sentiment_score for i in window if i.sentiment_score is not None]
        return BusinessActivitySection(
            total_interactions=TaggedField.of(total, PrivacyTag.BUSINESS),
            sentiment_trend=TaggedField.of(sentiment_trend(scores), PrivacyTag.BUSINESS),
            buying_signals=TaggedField.of(signals, PrivacyTag.BUSINESS),
            urgency_level=TaggedField.of(
                highest_urgency([i.urgency for i in window]), PrivacyTag.BUSINESS,
            ),
        )


class CommunicationFetcher(DomainFetcher):
    section_name = ContextSection.COMMUNICATION

    async def _load(self, session: AsyncSession, contact: ContactRow) -> CommunicationSection:
        consent: ConsentStatus | None = None
        if contact.email_opt_in is not None or contact.sms_opt_in is not None:
            consent = ConsentStatus(
                email_opt_in=contact.email_opt_in,
                sms_opt_in=contact.sms_opt_in,
                updated_at=(
                    as_utc(contact.consent_updated_at)
                    if contact.consent_updated_at is not None else None
                ),
            )
        return CommunicationSection(
            consent_status=TaggedField.of(consent, PrivacyTag.CONFIDENTIAL),
            do_not_contact=TaggedField.of(bool(contact.do_not_contact), PrivacyTag.BUSINESS),
            preferred_channels=TaggedField.of(
                list(contact.preferred_channels or []), PrivacyTag.BUSINESS,
            ),
        )


class TransactionFetcher(DomainFetcher):
    section_name = ContextSection.TRANSACTION

    async def _load(self, session: AsyncSession, contact: ContactRow) -> TransactionSection:
        deals = await DealRepository(session).list_for_contact(
            contact.contact_id, contact.organization_id,
        )
        summaries = [
            DealSummary(
                deal_id=d.deal_id, title=d.title, stage=d.stage, status=d.status,
                amount=d.amount, opened_at=as_utc(d.opened_at),
                closed_at=as_utc(d.closed_at) if d.closed_at is not None else None,
            )
            for d in deals
        ]
        active = [s for s in summaries if s.status == DealStatus.OPEN]
        past = [s for s in summaries if s.status != DealStatus.OPEN]
        lifetime_value = round(sum(s.amount for s in past if s.status == DealStatus.WON), 2)
        return TransactionSection(
            active_deals=TaggedField.of(active, PrivacyTag.CONFIDENTIAL),
            past_transactions=TaggedField.of(past, PrivacyTag.CONFIDENTIAL),
            lifetime_value=TaggedField.of(lifetime_value, PrivacyTag.CONFIDENTIAL),
        )


class ResourceFetcher(DomainFetcher):
    section_name = ContextSection.RESOURCE

    async def _load(self, session: AsyncSession, contact: ContactRow) -> ResourceSection:
        rows = await ResourceAssignmentRepository(session).list_for_contact(
            contact.contact_id, contact.organization_id,
        )
        summaries = [
            ResourceSummary(
                assignment_id=r.assignment_id, provider_id=r.provider_id,
                provider_name=r.provider_name, service_type=r.service_type,
                status=r.status, assigned_at=as_utc(r.assigned_at),
                completed_at=as_utc(r.completed_at) if r.completed_at is not None else None,
            )
            for r in rows
        ]
        return ResourceSection(
            assigned_resources=TaggedField.of(
                [s for s in summaries if s.status == AssignmentStatus.ACTIVE],
                PrivacyTag.BUSINESS,
            ),
            service_history=TaggedField.of(
                [s for s in summaries if s.status == AssignmentStatus.COMPLETED],
                PrivacyTag.BUSINESS,
            ),
        )


def default_fetchers(
    session_factory: SessionFactory,
    *,
    recent_window: int = 5,
    clock: Callable[[], datetime] = utc_now,
) -> list[DomainFetcher]:
    """The six fetchers in envelope order."""
    return [
        ProfileFetcher(session_factory),
        RelationshipFetcher(session_factory, clock=clock),
        BusinessActivityFetcher(session_factory, recent_window=recent_window),
        CommunicationFetcher(session_factory),
        TransactionFetcher(session_factory),
        ResourceFetcher(session_factory),
    ]
