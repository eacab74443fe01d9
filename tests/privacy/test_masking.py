"""Tests for log masking of context payloads."""

import pytest
from uuid_extensions import uuid7

from contextguard.models.common import PrivacyTag
from contextguard.models.context import SafeEnvelope
from contextguard.privacy.masking import (
    MaskingLevel,
    is_log_safe,
    loggable_payload,
    mask_payload,
    mask_text,
)


class TestMaskText:
    def test_none_level_is_passthrough(self) -> None:
        assert mask_text("dana@acme.example", MaskingLevel.NONE) == "dana@acme.example"

    def test_full_replaces_everything(self) -> None:
        assert mask_text("anything at all", MaskingLevel.FULL) == "[MASKED]"

    def test_partial_masks_email_and_phone(self) -> None:
        masked = mask_text("reach dana@acme.example or 555-010-2000", MaskingLevel.PARTIAL)
        assert masked == "reach ***@***.com or XXX-XXX-XXXX"

    def test_standard_masks_names(self) -> None:
        masked = mask_text("Call Dana at 555 010 2000", MaskingLevel.STANDARD)
        assert "Dana" not in masked
        assert "[NAME]" in masked
        assert "[PHONE_MASKED]" in masked

    def test_standard_masks_email(self) -> None:
        assert mask_text("dana@acme.example") == "[EMAIL_MASKED]"

    def test_empty_string(self) -> None:
        assert mask_text("", MaskingLevel.FULL) == ""


class TestMaskPayload:
    def test_masks_nested_strings(self) -> None:
        payload = {"contactProfile": {"basicInfo": {"emails": ["dana@acme.example"]}}}
        masked = mask_payload(payload)
        assert masked["contactProfile"]["basicInfo"]["emails"] == ["[EMAIL_MASKED]"]

    def test_structural_keys_untouched(self) -> None:
        payload = {"securityLevel": "Personal", "appliedFilters": [
            {"field": "contactProfile.preferences", "tag": "Personal",
             "reason": "access-level-insufficient", "accessLevel": "Collaborator"},
        ]}
        assert mask_payload(payload) == payload

    def test_non_strings_kept(self) -> None:
        assert mask_payload({"totalInteractions": 3, "doNotContact": False}) == {
            "totalInteractions": 3, "doNotContact": False,
        }


class TestLoggablePayload:
    @pytest.mark.parametrize("level, safe", [
        (PrivacyTag.PUBLIC, True),
        (PrivacyTag.BUSINESS, True),
        (PrivacyTag.CONFIDENTIAL, False),
        (PrivacyTag.PERSONAL, False),
        (PrivacyTag.PRIVATE, False),
    ])
    def test_is_log_safe(self, level: PrivacyTag, safe: bool) -> None:
        envelope = SafeEnvelope(
            contact_id=uuid7(), organization_id=uuid7(), security_level=level,
        )
        assert is_log_safe(envelope) is safe

    def test_business_envelope_logged_verbatim(self) -> None:
        envelope = SafeEnvelope(
            contact_id=uuid7(), organization_id=uuid7(),
            security_level=PrivacyTag.BUSINESS,
        )
        payload = {"note": "Dana"}
        assert loggable_payload(envelope, payload) is payload

    def test_personal_envelope_masked(self) -> None:
        envelope = SafeEnvelope(
            contact_id=uuid7(), organization_id=uuid7(),
            security_level=PrivacyTag.PERSONAL,
        )
        assert loggable_payload(envelope, {"note": "Dana"}) == {"note": "[NAME]"}
