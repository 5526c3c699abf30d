"""
Compliance service - queue-scoped score and audit-scoped creator reports
"""
from datetime import datetime

from loguru import logger

from src.db.repositories import AuditLogRepository, ModerationRepository
from src.models.entities import AuditAction, AuditLogEntry
from src.models.internal import ComplianceReport, ModerationAction

KEY_EVENT_ACTIONS = frozenset({
    AuditAction.MODERATION_ACTION,
    AuditAction.PAYMENT_EVENT,
    AuditAction.STOP_REQUEST,
})
KEY_EVENT_LIMIT = 20

# Verdicts written by the pipeline; reviewer decisions use resolve_<status>
PIPELINE_VERDICTS = frozenset({
    ModerationAction.BLOCK.value,
    ModerationAction.REVIEW.value,
    ModerationAction.ESCALATE.value,
})


def compute_compliance_score(total: int, blocked: int, critical: int) -> float:
    """
    100 - min(100, 100 * (blocked + 2 * critical) / total), rounded to one decimal

    Defined as 100 when there is nothing to score.
    """
    if total <= 0:
        return 100.0
    violation_rate = (blocked + 2 * critical) / total
    return round(100 - min(100.0, violation_rate * 100), 1)


class ComplianceService:
    """
    Service for compliance scoring

    The score reads the moderation queue; the report reads the audit trail.
    The two use the same formula over different populations.
    """

    def __init__(
        self,
        moderation_repo: ModerationRepository | None = None,
        audit_repo: AuditLogRepository | None = None,
    ):
        self.moderation_repo = moderation_repo or ModerationRepository()
        self.audit_repo = audit_repo or AuditLogRepository()

    async def compliance_score(self) -> float:
        """Score over every queue item: blocked items count once, critical ones twice"""
        total, blocked, critical = await self.moderation_repo.compliance_counts()
        score = compute_compliance_score(total, blocked, critical)
        logger.debug(f"Compliance score {score} (total={total}, blocked={blocked}, critical={critical})")
        return score

    async def generate_report(self, creator_id: str, start: datetime, end: datetime) -> ComplianceReport:
        """
        Summarize a creator's audit trail between start and end (inclusive)

        Entries belong to the creator when the creator is the actor or the
        entry's details name the creator.
        """
        entries = [
            entry for entry in await self.audit_repo.list_between(start, end)
            if _belongs_to_creator(entry, creator_id)
        ]

        verdicts = [
            entry.details.get("action")
            for entry in entries
            if entry.action == AuditAction.MODERATION_ACTION
            and entry.details.get("action") in PIPELINE_VERDICTS
        ]

        total_interactions = sum(1 for entry in entries if entry.action == AuditAction.AI_CONVERSATION)
        blocked = verdicts.count(ModerationAction.BLOCK.value)
        escalations = verdicts.count(ModerationAction.ESCALATE.value)

        key_events = [entry for entry in entries if entry.action in KEY_EVENT_ACTIONS][:KEY_EVENT_LIMIT]

        return ComplianceReport(
            total_interactions=total_interactions,
            moderated_messages=len(verdicts),
            blocked_messages=blocked,
            escalations=escalations,
            compliance_score=compute_compliance_score(total_interactions, blocked, escalations),
            key_events=key_events,
        )


def _belongs_to_creator(entry: AuditLogEntry, creator_id: str) -> bool:
    return entry.user_id == creator_id or entry.details.get("creatorId") == creator_id
