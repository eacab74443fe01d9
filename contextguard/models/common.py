"""Shared types, enums, and base models used across ContextGuard domain models."""

from datetime import datetime, timezone
from enum import StrEnum
from typing import Annotated
from uuid import UUID

from pydantic import BaseModel, Field
from pydantic.alias_generators import to_camel
from uuid_extensions import uuid7


def utc_now() -> datetime:
    """Return the current UTC timestamp (timezone-aware)."""
    return datetime.now(tz=timezone.utc)


def as_utc(value: datetime) -> datetime:
    """Attach UTC to naive timestamps (SQLite drops tzinfo on read)."""
    if value.tzinfo is None:
        return value.replace(tzinfo=timezone.utc)
    return value.astimezone(timezone.utc)


def new_uuid7() -> UUID:
    """Generate a new time-sortable UUID v7."""
    return uuid7()


# --- Reusable annotated types ---

UUIDv7 = Annotated[UUID, Field(description="Time-sortable UUID v7.")]
UTCTimestamp = Annotated[
    datetime, Field(description="UTC timezone-aware timestamp.")
]


# --- Access & classification ---


class AccessLevel(StrEnum):
    """Resolved relationship between a requester and a contact.

    Declared most to least privileged.
    """

    ASSIGNED_AGENT = "AssignedAgent"
    COLLABORATOR = "Collaborator"
    ORG_ADMIN = "OrgAdmin"
    NO_ACCESS = "NoAccess"


class PrivacyTag(StrEnum):
    """Field-level classification. Declared most to least restrictive."""

    PRIVATE = "Private"
    PERSONAL = "Personal"
    CONFIDENTIAL = "Confidential"
    BUSINESS = "Business"
    PUBLIC = "Public"


# Index 0 is the most restrictive tag.
TAG_RESTRICTIVENESS: tuple[PrivacyTag, ...] = tuple(PrivacyTag)


class AuditOutcome(StrEnum):
    """Outcome stamped on every audit record."""

    GRANTED = "Granted"
    GRANTED_PARTIAL = "GrantedPartial"
    DENIED = "Denied"


class ContextSection(StrEnum):
    """Context sections, in envelope order."""

    PROFILE = "Profile"
    RELATIONSHIP = "Relationship"
    BUSINESS_ACTIVITY = "BusinessActivity"
    COMMUNICATION = "Communication"
    TRANSACTION = "Transaction"
    RESOURCE = "Resource"


class FetchErrorKind(StrEnum):
    """Why a section failed to load."""

    TIMEOUT = "Timeout"
    BACKEND_ERROR = "BackendError"


# --- Contact domain enums ---


class RelationshipState(StrEnum):
    LEAD = "Lead"
    CLIENT = "Client"
    SERVICE_PROVIDER = "ServiceProvider"


class SentimentTrend(StrEnum):
    POSITIVE = "Positive"
    NEUTRAL = "Neutral"
    NEGATIVE = "Negative"


class UrgencyLevel(StrEnum):
    """Urgency of the most recent interactions, lowest first."""

    LOW = "Low"
    MEDIUM = "Medium"
    HIGH = "High"


class CollaboratorRole(StrEnum):
    """Type of collaboration granted on a contact."""

    BACKUP_AGENT = "BackupAgent"
    SPECIALIST = "Specialist"
    MENTOR = "Mentor"
    ASSISTANT = "Assistant"
    TEAM_LEAD = "TeamLead"
    OBSERVER = "Observer"


class DealStatus(StrEnum):
    OPEN = "OPEN"
    WON = "WON"
    LOST = "LOST"


class AssignmentStatus(StrEnum):
    ACTIVE = "ACTIVE"
    COMPLETED = "COMPLETED"
    CANCELLED = "CANCELLED"


# --- Base model ---


class ContextGuardBase(BaseModel):
    """Base model with common configuration for all ContextGuard Pydantic models.

    Fields serialize under camelCase aliases, the naming of the
    prompt-construction contract.
    """

    model_config = {
        "populate_by_name": True,
        "alias_generator": to_camel,
        "protected_namespaces": (),
    }
