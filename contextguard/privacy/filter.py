"""Privacy filter — access-level and tag driven field redaction.

Precedence per field:
1. Identity fields always survive.
2. Private       -> AssignedAgent only
3. Personal      -> AssignedAgent, Collaborator
4. Confidential  -> AssignedAgent, OrgAdmin
5. Business      -> every level except NoAccess
6. Public        -> every level
7. NoAccess therefore keeps identity + Public only.

First match wins: a multi-tag field is governed by its most restrictive
tag, which is also the tag reported when the field is dropped.

Tags withheld by the resolution (a collaborator grant without personal
data access withholds Personal) are denied as if the level lacked them.

Callers can opt out of Personal/Private data regardless of level.

Deterministic — pure function of (envelope, level, withheld tags, opt-out flag).
"""

from dataclasses import dataclass

from contextguard.models.common import TAG_RESTRICTIVENESS, AccessLevel, PrivacyTag
from contextguard.models.context import (
    SECTION_LAYOUT,
    AppliedFilter,
    ContextEnvelope,
    FilterReason,
    SafeEnvelope,
    TaggedField,
)

_ALL_LEVELS = frozenset(AccessLevel)

PERMITTED_LEVELS: dict[PrivacyTag, frozenset[AccessLevel]] = {
    PrivacyTag.PRIVATE: frozenset({AccessLevel.ASSIGNED_AGENT}),
    PrivacyTag.PERSONAL: frozenset({AccessLevel.ASSIGNED_AGENT, AccessLevel.COLLABORATOR}),
    PrivacyTag.CONFIDENTIAL: frozenset({AccessLevel.ASSIGNED_AGENT, AccessLevel.ORG_ADMIN}),
    PrivacyTag.BUSINESS: _ALL_LEVELS - {AccessLevel.NO_ACCESS},
    PrivacyTag.PUBLIC: _ALL_LEVELS,
}

# Tags withheld when the caller passes include_personal_data=False
PERSONAL_DATA_TAGS = frozenset({PrivacyTag.PRIVATE, PrivacyTag.PERSONAL})


@dataclass(frozen=True)
class FieldDecision:
    """Outcome of evaluating one field."""

    retain: bool
    tag: PrivacyTag | None = None
    reason: FilterReason | None = None


_RETAIN = FieldDecision(retain=True)


def decide_field(
    field: TaggedField,
    level: AccessLevel,
    *,
    withheld_tags: frozenset[PrivacyTag] = frozenset(),
    include_personal_data: bool = True,
) -> FieldDecision:
    """Apply the precedence table to a single field.

    Opt-out and withheld tags are checked against every tag the field
    carries; the level is checked against the most restrictive tag only.
    """
    if field.identity:
        return _RETAIN
    carried = [tag for tag in TAG_RESTRICTIVENESS if tag in field.tags]
    if not include_personal_data:
        for tag in carried:
            if tag in PERSONAL_DATA_TAGS:
                return FieldDecision(False, tag, FilterReason.CALLER_OPTED_OUT)
    for tag in carried:
        if tag in withheld_tags:
            return FieldDecision(False, tag, FilterReason.ACCESS_LEVEL_INSUFFICIENT)
    governing = carried[0]
    if level not in PERMITTED_LEVELS[governing]:
        return FieldDecision(False, governing, FilterReason.ACCESS_LEVEL_INSUFFICIENT)
    return _RETAIN


def most_restrictive(tags: frozenset[PrivacyTag]) -> PrivacyTag:
    return min(tags, key=TAG_RESTRICTIVENESS.index)


class PrivacyFilter:
    """Turn a raw ContextEnvelope into a SafeEnvelope plus its filter trail."""

    def apply(
        self,
        raw: ContextEnvelope,
        level: AccessLevel,
        *,
        withheld_tags: frozenset[PrivacyTag] = frozenset(),
        include_personal_data: bool = True,
    ) -> SafeEnvelope:
        applied: list[AppliedFilter] = []
        retained_tags: set[PrivacyTag] = set()
        sections: dict[str, object] = {}

        for name, (attr, section_key) in SECTION_LAYOUT.items():
            section = raw.section(name)
            if section is None:
                sections[attr] = None
                continue

            updates: dict[str, TaggedField] = {}
            for field_attr, alias, tagged in section.tagged_fields():
                decision = decide_field(
                    tagged, level,
                    withheld_tags=withheld_tags,
                    include_personal_data=include_personal_data,
                )
                if decision.retain:
                    if tagged.value is not None and not tagged.identity:
                        retained_tags.add(most_restrictive(tagged.tags))
                    continue
                # Nothing to redact when the source had no value.
                if tagged.value is None:
                    continue
                updates[field_attr] = tagged.redacted()
                applied.append(AppliedFilter(
                    field=f"{section_key}.{alias}",
                    tag=decision.tag,
                    reason=decision.reason,
                    access_level=level,
                ))
            sections[attr] = section.model_copy(update=updates) if updates else section

        security_level = (
            most_restrictive(frozenset(retained_tags)) if retained_tags else PrivacyTag.PUBLIC
        )
        return SafeEnvelope(
            contact_id=raw.contact_id,
            organization_id=raw.organization_id,
            fetch_errors=list(raw.fetch_errors),
            security_level=security_level,
            applied_filters=applied,
            **sections,
        )
