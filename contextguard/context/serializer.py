"""Versioned JSON emission of a SafeEnvelope.

Key names and order are a compatibility contract with the prompt builder.
Bump SCHEMA_VERSION on any change to the shape.

Deterministic — same envelope, same bytes.
"""

import json
from typing import Any

from pydantic_core import to_jsonable_python

from contextguard.models.context import SECTION_LAYOUT, SafeEnvelope

SCHEMA_VERSION = "1.0"


def _jsonable(value: Any) -> Any:
    return to_jsonable_python(value, by_alias=True)


def envelope_payload(envelope: SafeEnvelope) -> dict[str, Any]:
    """Build the ordered JSON-ready mapping for an envelope."""
    payload: dict[str, Any] = {
        "schemaVersion": SCHEMA_VERSION,
        "contactId": str(envelope.contact_id),
        "organizationId": str(envelope.organization_id),
    }
    for name, (_, key) in SECTION_LAYOUT.items():
        section = envelope.section(name)
        if section is None:
            payload[key] = None
            continue
        payload[key] = {
            alias: _jsonable(tagged.value) for _, alias, tagged in section.tagged_fields()
        }
    payload["securityLevel"] = envelope.security_level.value
    payload["appliedFilters"] = [
        {
            "field": f.field,
            "tag": f.tag.value,
            "reason": f.reason.value,
            "accessLevel": f.access_level.value,
        }
        for f in envelope.applied_filters
    ]
    payload["fetchErrors"] = [
        {"section": e.section.value, "kind": e.kind.value}
        for e in envelope.fetch_errors
    ]
    return payload


def emit(envelope: SafeEnvelope) -> bytes:
    """Serialize an envelope to compact UTF-8 JSON."""
    return json.dumps(
        envelope_payload(envelope),
        ensure_ascii=False,
        separators=(",", ":"),
        allow_nan=False,
    ).encode("utf-8")
