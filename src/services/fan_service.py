"""
Fan service - consent affirmation
"""
from loguru import logger

from src.core.exceptions import NotFoundException
from src.db.base import utc_now
from src.db.repositories import FanRepository
from src.models.entities import ConsentStatus
from src.models.internal import RequestContext
from src.services.audit_service import AuditService

AGE_AFFIRMATION = "I am 18+"
ROMANTIC_CONTENT_AFFIRMATION = "I consent to romantic messages"


def consent_from_affirmations(affirmations: list[str]) -> ConsentStatus:
    """Map affirmation phrases to a complete consent record stamped now"""
    phrases = {phrase.strip() for phrase in affirmations}
    return ConsentStatus(
        age_affirmed=AGE_AFFIRMATION in phrases,
        romantic_content=ROMANTIC_CONTENT_AFFIRMATION in phrases,
        affirmed_at=utc_now(),
    )


class FanService:
    """Service for fan operations"""

    def __init__(self, fan_repo: FanRepository | None = None, audit_service: AuditService | None = None):
        self.fan_repo = fan_repo or FanRepository()
        self.audit_service = audit_service or AuditService()

    async def record_consent(
        self,
        fan_id: str,
        affirmations: list[str],
        request_context: RequestContext | None = None,
    ) -> ConsentStatus:
        """
        Replace a fan's consent record from the phrases they affirmed

        The whole record is written in one column update, so a concurrent
        affirmation can win or lose but never leave a mixed record.
        """
        fan = await self.fan_repo.get_by_id(fan_id)
        if not fan:
            raise NotFoundException("Fan not found")

        consent = consent_from_affirmations(affirmations)
        updated = await self.fan_repo.update(fan_id, consent_status=consent)
        if updated is None:
            raise NotFoundException("Fan not found")

        logger.info(
            f"Consent recorded for fan {fan_id}: "
            f"age_affirmed={consent.age_affirmed}, romantic_content={consent.romantic_content}"
        )

        await self.audit_service.log_fan_interaction(
            fan_id,
            "consent_affirmed",
            {"affirmations": affirmations},
            request_context=request_context,
        )

        return updated.consent_status or consent
