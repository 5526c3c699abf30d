"""
Audit service - append-only trail of safety-relevant actions
"""
from datetime import timedelta
from typing import Any, Literal

from loguru import logger

from src.core.exceptions import BadRequestException
from src.core.metrics import side_effect_failures_total
from src.db.base import utc_now
from src.db.repositories import AuditLogRepository
from src.models.entities import AUDIT_REQUIRED_DETAILS, AuditAction, AuditLogEntry
from src.models.internal import ModerationResult, RequestContext

# Conversation texts stored on audit entries are cut to this many characters
AUDIT_TEXT_LIMIT = 200

SecurityTimeframe = Literal["hour", "day", "week"]

SECURITY_TIMEFRAMES: dict[str, timedelta] = {
    "hour": timedelta(hours=1),
    "day": timedelta(days=1),
    "week": timedelta(days=7),
}

SECURITY_ACTIONS = (
    AuditAction.STOP_REQUEST,
    AuditAction.CONSENT_VIOLATION,
    AuditAction.MODERATION_ACTION,
)


class AuditValidationError(ValueError):
    """Audit details are missing keys required for their action"""


def validate_details(action: AuditAction, details: dict[str, Any]) -> None:
    missing = AUDIT_REQUIRED_DETAILS.get(action, frozenset()) - details.keys()
    if missing:
        raise AuditValidationError(f"{action.value} audit entry is missing details: {sorted(missing)}")


class AuditService:
    """
    Service for writing and reading the audit trail

    Writes never raise: a failed append is logged and reported as None so the
    caller's flow continues. Reads propagate storage errors.
    """

    def __init__(self, audit_repo: AuditLogRepository | None = None):
        self.audit_repo = audit_repo or AuditLogRepository()

    async def log_action(
        self,
        action: AuditAction,
        entity_type: str,
        entity_id: str,
        details: dict[str, Any] | None = None,
        user_id: str | None = None,
        fan_id: str | None = None,
        request_context: RequestContext | None = None,
    ) -> AuditLogEntry | None:
        """
        Append an audit entry

        Returns:
            Stored entry, or None if validation or storage failed
        """
        details = dict(details or {})
        details.setdefault("timestamp", utc_now().isoformat())
        context = request_context or RequestContext()

        try:
            validate_details(action, details)
            return await self.audit_repo.append(
                action=action,
                entity_type=entity_type,
                entity_id=entity_id,
                details=details,
                user_id=user_id,
                fan_id=fan_id,
                ip_address=context.ip_address,
                user_agent=context.user_agent,
            )
        except Exception as e:
            side_effect_failures_total.labels(kind="audit").inc()
            logger.error(f"Failed to append {action.value} audit entry for {entity_type} {entity_id}: {e}")
            return None

    async def log_conversation(
        self,
        conversation_id: str,
        message_id: str,
        fan_message: str,
        ai_response: str,
        moderation_result: ModerationResult,
        fan_id: str | None = None,
        creator_id: str | None = None,
        request_context: RequestContext | None = None,
    ) -> AuditLogEntry | None:
        """Record both sides of a responded exchange"""
        return await self.log_action(
            AuditAction.AI_CONVERSATION,
            "conversation",
            conversation_id,
            {
                "messageId": message_id,
                "fanMessage": fan_message[:AUDIT_TEXT_LIMIT],
                "aiResponse": ai_response[:AUDIT_TEXT_LIMIT],
                "moderationResult": moderation_result.model_dump(mode="json"),
                "creatorId": creator_id,
            },
            fan_id=fan_id,
            request_context=request_context,
        )

    async def log_payment(
        self,
        payment_id: str,
        fan_id: str,
        amount_cents: int,
        product_type: str,
        status: str,
        creator_id: str | None = None,
    ) -> AuditLogEntry | None:
        return await self.log_action(
            AuditAction.PAYMENT_EVENT,
            "payment",
            payment_id,
            {
                "fanId": fan_id,
                "amountCents": amount_cents,
                "productType": product_type,
                "status": status,
                "creatorId": creator_id,
            },
            fan_id=fan_id,
        )

    async def log_content_access(
        self,
        content_id: str,
        fan_id: str,
        access_type: Literal["view", "download", "purchase"],
    ) -> AuditLogEntry | None:
        return await self.log_action(
            AuditAction.CONTENT_ACCESS,
            "content_item",
            content_id,
            {"accessType": access_type},
            fan_id=fan_id,
        )

    async def log_persona_update(
        self, persona_id: str, user_id: str, changes: dict[str, Any]
    ) -> AuditLogEntry | None:
        return await self.log_action(
            AuditAction.PERSONA_UPDATED,
            "persona",
            persona_id,
            {"changes": changes},
            user_id=user_id,
        )

    async def log_moderation_action(
        self,
        entity_type: str,
        entity_id: str,
        action: str,
        reason: str | None,
        severity: str,
        fan_id: str | None = None,
        creator_id: str | None = None,
        reviewed_by: str | None = None,
        extra: dict[str, Any] | None = None,
        request_context: RequestContext | None = None,
    ) -> AuditLogEntry | None:
        """Record a classifier verdict or a reviewer decision"""
        details = {
            "action": action,
            "reason": reason,
            "severity": severity,
            "creatorId": creator_id,
        }
        if reviewed_by:
            details["reviewedBy"] = reviewed_by
        if extra:
            details.update(extra)

        return await self.log_action(
            AuditAction.MODERATION_ACTION,
            entity_type,
            entity_id,
            details,
            user_id=reviewed_by,
            fan_id=fan_id,
            request_context=request_context,
        )

    async def log_fan_interaction(
        self,
        fan_id: str,
        interaction_type: str,
        details: dict[str, Any] | None = None,
        request_context: RequestContext | None = None,
    ) -> AuditLogEntry | None:
        return await self.log_action(
            AuditAction.FAN_INTERACTION,
            "fan",
            fan_id,
            {"interactionType": interaction_type, **(details or {})},
            fan_id=fan_id,
            request_context=request_context,
        )

    async def log_stop_request(
        self,
        fan_id: str,
        reason: str = "user_requested_stop",
        creator_id: str | None = None,
        request_context: RequestContext | None = None,
    ) -> AuditLogEntry | None:
        return await self.log_action(
            AuditAction.STOP_REQUEST,
            "fan",
            fan_id,
            {"reason": reason, "creatorId": creator_id},
            fan_id=fan_id,
            request_context=request_context,
        )

    async def log_consent_violation(
        self,
        fan_id: str,
        reason: str,
        creator_id: str | None = None,
        request_context: RequestContext | None = None,
    ) -> AuditLogEntry | None:
        return await self.log_action(
            AuditAction.CONSENT_VIOLATION,
            "fan",
            fan_id,
            {"reason": reason, "creatorId": creator_id},
            fan_id=fan_id,
            request_context=request_context,
        )

    async def get_audit_trail(self, entity_type: str, entity_id: str, limit: int = 100) -> list[AuditLogEntry]:
        """Entries for one entity, newest first"""
        return await self.audit_repo.list_for_entity(entity_type, entity_id, limit)

    async def get_security_events(self, timeframe: SecurityTimeframe = "day") -> list[AuditLogEntry]:
        """
        Stop requests, consent violations and critical moderation actions
        within the given window, newest first
        """
        window = SECURITY_TIMEFRAMES.get(timeframe)
        if window is None:
            raise BadRequestException(f"Unknown timeframe: {timeframe}")

        entries = await self.audit_repo.list_since(utc_now() - window, SECURITY_ACTIONS)
        return [entry for entry in entries if _is_security_event(entry)]


def _is_security_event(entry: AuditLogEntry) -> bool:
    if entry.action == AuditAction.MODERATION_ACTION:
        return entry.details.get("severity") == "critical"
    return True
