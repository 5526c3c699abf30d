"""
Moderation service - classifier side effects, review queue and opt-outs
"""
from datetime import date

from loguru import logger

from src.core.exceptions import InvalidTransitionException, NotFoundException
from src.core.metrics import moderation_verdicts_total, side_effect_failures_total
from src.core.moderation import STOP_ALL_MESSAGES, RuleMatch, classify_match
from src.db.base import utc_now
from src.db.repositories import FanRepository, MessageRepository, ModerationRepository
from src.models.entities import Fan, ModerationQueueItem, ModerationStatus
from src.models.internal import ModerationAction, ModerationResult, ModerationStats, RequestContext
from src.services.audit_service import AuditService

# Statuses a reviewer may move a pending item to
RESOLVED_STATUSES = frozenset({ModerationStatus.APPROVED, ModerationStatus.BLOCKED})


class ModerationService:
    """Service for moderation operations"""

    def __init__(
        self,
        moderation_repo: ModerationRepository | None = None,
        fan_repo: FanRepository | None = None,
        message_repo: MessageRepository | None = None,
        audit_service: AuditService | None = None,
    ):
        self.moderation_repo = moderation_repo or ModerationRepository()
        self.fan_repo = fan_repo or FanRepository()
        self.message_repo = message_repo or MessageRepository()
        self.audit_service = audit_service or AuditService()

    async def moderate_message(
        self,
        content: str,
        fan_id: str | None = None,
        message_id: str | None = None,
    ) -> ModerationResult:
        """
        Classify a message and queue it for review when it is not allowed

        The verdict is returned even if the queue write fails.

        message_id links the queue item to a message that is already stored,
        such as a persona reply flagged after the fact by an outside caller.
        The inbound pipeline never stores flagged fan text, so its items carry
        no message_id.
        """
        result, match = classify_match(content)
        moderation_verdicts_total.labels(action=result.action.value).inc()

        if result.action == ModerationAction.ALLOW or match is None:
            return result

        if result.action == ModerationAction.ESCALATE:
            logger.critical(f"ESCALATION: {match.flag_reason} (fan: {fan_id})")
        else:
            logger.warning(f"Message flagged as {result.action.value}: {match.flag_reason} (fan: {fan_id})")

        await self._queue_flagged(content, match, fan_id, message_id)
        return result

    async def _queue_flagged(
        self,
        content: str,
        match: RuleMatch,
        fan_id: str | None,
        message_id: str | None,
    ) -> ModerationQueueItem | None:
        try:
            item = await self.moderation_repo.create(
                content=content,
                flag_reason=match.flag_reason,
                severity=match.tier.severity,
                fan_id=fan_id,
                message_id=message_id,
            )
        except Exception as e:
            side_effect_failures_total.labels(kind="moderation_queue").inc()
            logger.error(f"Failed to queue flagged message (fan: {fan_id}, reason: {match.flag_reason}): {e}")
            return None
        else:
            logger.info(f"Queued moderation item {item.id} with severity {item.severity.value}")
            return item

    async def list_queue(self, status: ModerationStatus | None = None) -> list[ModerationQueueItem]:
        """List queue items newest first"""
        return await self.moderation_repo.list_items(status)

    async def resolve(
        self,
        item_id: str,
        status: ModerationStatus,
        reviewer_id: str,
        request_context: RequestContext | None = None,
    ) -> ModerationQueueItem:
        """
        Apply a reviewer decision to a pending queue item

        Items linked to a stored message also copy the decision onto that
        message's moderation_status.

        Raises:
            InvalidTransitionException: Target status is not approved/blocked,
                or the item was already resolved
            NotFoundException: Item does not exist
        """
        if status not in RESOLVED_STATUSES:
            raise InvalidTransitionException(f"Cannot move a queue item to '{status.value}'")

        item = await self.moderation_repo.get_by_id(item_id)
        if not item:
            raise NotFoundException("Moderation item not found")

        if item.status != ModerationStatus.PENDING:
            raise InvalidTransitionException(
                f"Moderation item already resolved as '{item.status.value}'",
                current_status=item.status.value,
            )

        resolved = await self.moderation_repo.resolve(item_id, status, reviewer_id)
        if resolved is None:
            # Another reviewer resolved it between the read and the conditional update
            current = await self.moderation_repo.get_by_id(item_id)
            raise InvalidTransitionException(
                "Moderation item already resolved",
                current_status=current.status.value if current else None,
            )

        logger.info(f"Moderation item {item_id} resolved as {status.value} by {reviewer_id}")

        if resolved.message_id:
            await self._apply_status_to_message(resolved.message_id, status)

        await self.audit_service.log_moderation_action(
            entity_type="moderation_item",
            entity_id=resolved.id,
            action=f"resolve_{status.value}",
            reason=resolved.flag_reason,
            severity=resolved.severity.value,
            fan_id=resolved.fan_id,
            reviewed_by=reviewer_id,
            extra={"messageId": resolved.message_id} if resolved.message_id else None,
            request_context=request_context,
        )

        return resolved

    async def _apply_status_to_message(self, message_id: str, status: ModerationStatus) -> None:
        try:
            updated = await self.message_repo.update_moderation_status(message_id, status)
        except Exception as e:
            side_effect_failures_total.labels(kind="message_status").inc()
            logger.error(f"Failed to update moderation status of message {message_id}: {e}")
            return

        if not updated:
            logger.warning(f"Message {message_id} referenced by a queue item no longer exists")

    async def process_stop_request(
        self,
        fan: Fan,
        creator_id: str | None = None,
        request_context: RequestContext | None = None,
    ) -> Fan:
        """
        Opt a fan out of all messages

        Boundaries are replaced, not extended; other preferences are kept.
        The fan update propagates failures, the audit entry does not.
        """
        preferences = {**fan.preferences, "opted_out": True}
        updated = await self.fan_repo.update(
            fan.id,
            boundaries=[STOP_ALL_MESSAGES],
            preferences=preferences,
        )
        if updated is None:
            raise NotFoundException("Fan not found")

        await self.audit_service.log_stop_request(
            fan.id,
            creator_id=creator_id,
            request_context=request_context,
        )

        logger.info(f"Stop request processed for fan: {fan.id}")
        return updated

    async def moderation_stats(self, day: date | None = None) -> ModerationStats:
        """Queue counts for items created on a UTC day (defaults to today)"""
        day = day or utc_now().date()
        counts = await self.moderation_repo.counts_by_status(day)

        return ModerationStats(
            day=day,
            moderated=sum(counts.values()),
            pending=counts[ModerationStatus.PENDING],
            approved=counts[ModerationStatus.APPROVED],
            blocked=counts[ModerationStatus.BLOCKED],
        )
