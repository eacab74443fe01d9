"""Masking helpers for writing context payloads to logs.

An envelope whose security level is Business or Public may be logged
verbatim. Anything more sensitive has every string value masked first.
"""

import re
from enum import IntEnum
from typing import Any

from contextguard.models.common import PrivacyTag
from contextguard.models.context import SafeEnvelope

_EMAIL_RE = re.compile(r"\b[A-Za-z0-9._%+-]+@[A-Za-z0-9.-]+\.[A-Za-z]{2,}\b")
_PHONE_RE = re.compile(r"\b\d{3}[-.\s]?\d{3}[-.\s]?\d{4}\b")
_NAME_RE = re.compile(r"\b[A-Z][a-z]{2,}\b")

# Payload keys that are identifiers or enum labels, kept as-is.
_STRUCTURAL_KEYS = frozenset({
    "schemaVersion", "contactId", "organizationId", "securityLevel",
    "relationshipState", "sentimentTrend", "urgencyLevel",
    "field", "tag", "reason", "accessLevel", "section", "kind",
})

LOG_SAFE_LEVELS = frozenset({PrivacyTag.BUSINESS, PrivacyTag.PUBLIC})


class MaskingLevel(IntEnum):
    NONE = 0
    PARTIAL = 1
    STANDARD = 2
    FULL = 3


def mask_text(text: str, level: MaskingLevel = MaskingLevel.STANDARD) -> str:
    """Mask emails and phone numbers; STANDARD also masks capitalised names.

    FULL replaces the whole string.
    """
    if not text or level == MaskingLevel.NONE:
        return text
    if level == MaskingLevel.FULL:
        return "[MASKED]"
    partial = level == MaskingLevel.PARTIAL
    masked = _EMAIL_RE.sub("***@***.com" if partial else "[EMAIL_MASKED]", text)
    masked = _PHONE_RE.sub("XXX-XXX-XXXX" if partial else "[PHONE_MASKED]", masked)
    if level == MaskingLevel.STANDARD:
        masked = _NAME_RE.sub("[NAME]", masked)
    return masked


def mask_payload(value: Any, level: MaskingLevel = MaskingLevel.STANDARD) -> Any:
    """Recursively mask string leaves of a JSON-ready structure."""
    if isinstance(value, str):
        return mask_text(value, level)
    if isinstance(value, list):
        return [mask_payload(v, level) for v in value]
    if isinstance(value, dict):
        return {
            k: v if k in _STRUCTURAL_KEYS else mask_payload(v, level)
            for k, v in value.items()
        }
    return value


def is_log_safe(envelope: SafeEnvelope) -> bool:
    return envelope.security_level in LOG_SAFE_LEVELS


def loggable_payload(envelope: SafeEnvelope, payload: dict[str, Any],
                     level: MaskingLevel = MaskingLevel.STANDARD) -> dict[str, Any]:
    """Return the payload as-is when log-safe, otherwise a masked copy."""
    if is_log_safe(envelope):
        return payload
    return mask_payload(payload, level)
