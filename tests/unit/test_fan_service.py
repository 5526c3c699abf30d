"""
Unit tests for consent affirmation
"""
import pytest

from src.core.exceptions import NotFoundException
from src.core.moderation import is_consented
from src.models.entities import AuditAction
from src.services.fan_service import AGE_AFFIRMATION, ROMANTIC_CONTENT_AFFIRMATION, consent_from_affirmations


class TestConsentFromAffirmations:
    def test_both_phrases(self):
        consent = consent_from_affirmations([AGE_AFFIRMATION, ROMANTIC_CONTENT_AFFIRMATION])

        assert consent.age_affirmed is True
        assert consent.romantic_content is True
        assert consent.affirmed_at is not None

    def test_unknown_phrases_are_ignored(self):
        consent = consent_from_affirmations(["yes please", AGE_AFFIRMATION])

        assert consent.age_affirmed is True
        assert consent.romantic_content is False


class TestRecordConsent:
    @pytest.mark.asyncio
    async def test_records_and_audits(self, fan_service, fan_repo, audit_repo):
        fan = fan_repo.add(boundaries=["no_pet_names"])

        consent = await fan_service.record_consent(fan.id, [AGE_AFFIRMATION, ROMANTIC_CONTENT_AFFIRMATION])

        stored = await fan_repo.get_by_id(fan.id)
        assert stored.consent_status == consent
        assert stored.boundaries == ["no_pet_names"]
        assert is_consented(stored)
        (entry,) = audit_repo.by_action(AuditAction.FAN_INTERACTION)
        assert entry.details["interactionType"] == "consent_affirmed"

    @pytest.mark.asyncio
    async def test_partial_affirmation_does_not_pass_gate(self, fan_service, fan_repo):
        fan = fan_repo.add()

        await fan_service.record_consent(fan.id, [AGE_AFFIRMATION])

        assert not is_consented(await fan_repo.get_by_id(fan.id))

    @pytest.mark.asyncio
    async def test_reaffirmation_replaces_whole_record(self, fan_service, fan_repo, full_consent):
        fan = fan_repo.add(consent=full_consent)

        consent = await fan_service.record_consent(fan.id, [ROMANTIC_CONTENT_AFFIRMATION])

        assert consent.age_affirmed is False
        assert consent.romantic_content is True

    @pytest.mark.asyncio
    async def test_unknown_fan(self, fan_service, audit_repo):
        with pytest.raises(NotFoundException):
            await fan_service.record_consent("missing", [AGE_AFFIRMATION])

        assert audit_repo.entries == []
