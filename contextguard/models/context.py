"""Context envelope models — tagged fields, section DTOs, raw and safe envelopes.

Every non-identity field in a section is a TaggedField: a (value, tags)
pair. Sections are flat DTOs built from repository rows; they never hold
ORM objects.
"""

from collections.abc import Iterator
from datetime import datetime
from enum import StrEnum
from typing import Any
from uuid import UUID

from pydantic import Field, model_validator

from contextguard.models.common import (
    AccessLevel,
    CollaboratorRole,
    ContextGuardBase,
    ContextSection,
    FetchErrorKind,
    PrivacyTag,
)


# ---------------------------------------------------------------------------
# Tagged field
# ---------------------------------------------------------------------------


class TaggedField(ContextGuardBase):
    """A context value with its privacy tags.

    Identity fields carry no tags and always survive filtering.
    value=None means the raw source had nothing for this field.
    """

    model_config = {**ContextGuardBase.model_config, "frozen": True}

    value: Any = None
    tags: frozenset[PrivacyTag] = Field(default_factory=frozenset)
    identity: bool = False

    @model_validator(mode="after")
    def _check_tags(self) -> "TaggedField":
        if self.identity and self.tags:
            raise ValueError("Identity fields cannot carry privacy tags.")
        if not self.identity and not self.tags:
            raise ValueError("Non-identity fields need at least one privacy tag.")
        return self

    @classmethod
    def of(cls, value: Any, *tags: PrivacyTag) -> "TaggedField":
        return cls(value=value, tags=frozenset(tags))

    @classmethod
    def identity_field(cls, value: Any) -> "TaggedField":
        return cls(value=value, identity=True)

    def with_extra_tags(self, extra: frozenset[PrivacyTag]) -> "TaggedField":
        if self.identity or not extra:
            return self
        return self.model_copy(update={"tags": self.tags | extra})

    def redacted(self) -> "TaggedField":
        return self.model_copy(update={"value": None})


# ---------------------------------------------------------------------------
# Value DTOs
# ---------------------------------------------------------------------------


class BasicInfo(ContextGuardBase):
    first_name: str
    last_name: str = ""
    preferred_name: str | None = None
    company: str | None = None
    job_title: str | None = None
    emails: list[str] = Field(default_factory=list)
    phones: list[str] = Field(default_factory=list)


class CollaboratorSummary(ContextGuardBase):
    collaborator_id: UUID
    role: CollaboratorRole
    expires_at: datetime | None = None


class ConsentStatus(ContextGuardBase):
    email_opt_in: bool | None = None
    sms_opt_in: bool | None = None
    updated_at: datetime | None = None


class DealSummary(ContextGuardBase):
    deal_id: UUID
    title: str
    stage: str
    status: str
    amount: float
    opened_at: datetime
    closed_at: datetime | None = None


class ResourceSummary(ContextGuardBase):
    assignment_id: UUID
    provider_id: UUID
    provider_name: str
    service_type: str
    status: str
    assigned_at: datetime
    completed_at: datetime | None = None


# ---------------------------------------------------------------------------
# Sections
# ---------------------------------------------------------------------------


class SectionModel(ContextGuardBase):
    """Base for context sections. All declared fields are TaggedField."""

    def tagged_fields(self) -> Iterator[tuple[str, str, TaggedField]]:
        """Yield (attribute name, serialized name, field) in declaration order."""
        for name, info in type(self).model_fields.items():
            yield name, info.alias or name, getattr(self, name)


class ProfileSection(SectionModel):
    basic_info: TaggedField
    preferences: TaggedField
    tags: TaggedField


class RelationshipSection(SectionModel):
    relationship_state: TaggedField
    assigned_agent_id: TaggedField
    collaborators: TaggedField


class BusinessActivitySection(SectionModel):
    total_interactions: TaggedField
    sentiment_trend: TaggedField
    buying_signals: TaggedField
    urgency_level: TaggedField


class CommunicationSection(SectionModel):
    consent_status: TaggedField
    do_not_contact: TaggedField
    preferred_channels: TaggedField


class TransactionSection(SectionModel):
    active_deals: TaggedField
    past_transactions: TaggedField
    lifetime_value: TaggedField


class ResourceSection(SectionModel):
    assigned_resources: TaggedField
    service_history: TaggedField


# Envelope attribute and serialized key for each section, in envelope order.
SECTION_LAYOUT: dict[ContextSection, tuple[str, str]] = {
    ContextSection.PROFILE: ("profile", "contactProfile"),
    ContextSection.RELATIONSHIP: ("relationship", "relationshipContext"),
    ContextSection.BUSINESS_ACTIVITY: ("business_activity", "businessActivity"),
    ContextSection.COMMUNICATION: ("communication", "communicationContext"),
    ContextSection.TRANSACTION: ("transaction", "transactionContext"),
    ContextSection.RESOURCE: ("resource", "resourceContext"),
}


# ---------------------------------------------------------------------------
# Envelopes
# ---------------------------------------------------------------------------


class FilterReason(StrEnum):
    ACCESS_LEVEL_INSUFFICIENT = "access-level-insufficient"
    CALLER_OPTED_OUT = "caller-opted-out"


class AppliedFilter(ContextGuardBase):
    """One redaction performed by the privacy filter."""

    model_config = {**ContextGuardBase.model_config, "frozen": True}

    field: str
    tag: PrivacyTag
    reason: FilterReason
    access_level: AccessLevel


class FetchError(ContextGuardBase):
    """A section that failed to load."""

    model_config = {**ContextGuardBase.model_config, "frozen": True}

    section: ContextSection
    kind: FetchErrorKind


class ContextEnvelope(ContextGuardBase):
    """Raw aggregation result for one request. Never persisted."""

    contact_id: UUID
    organization_id: UUID
    profile: ProfileSection | None = None
    relationship: RelationshipSection | None = None
    business_activity: BusinessActivitySection | None = None
    communication: CommunicationSection | None = None
    transaction: TransactionSection | None = None
    resource: ResourceSection | None = None
    fetch_errors: list[FetchError] = Field(default_factory=list)

    def section(self, name: ContextSection) -> SectionModel | None:
        attr, _ = SECTION_LAYOUT[name]
        return getattr(self, attr)

    def loaded_sections(self) -> list[ContextSection]:
        return [name for name in SECTION_LAYOUT if self.section(name) is not None]


class SafeEnvelope(ContextEnvelope):
    """Filtered envelope: redacted values are None."""

    security_level: PrivacyTag = PrivacyTag.PUBLIC
    applied_filters: list[AppliedFilter] = Field(default_factory=list)
