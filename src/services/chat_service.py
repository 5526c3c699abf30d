"""
Chat service - the inbound fan message pipeline

Each message runs once through: stop check, classifier, opt-out check, consent gate, then
reply generation. Every step gates the next and none is skipped.
"""
import asyncio
from collections.abc import AsyncIterator
from contextlib import asynccontextmanager

from loguru import logger

from src.config import settings
from src.core.exceptions import NotFoundException
from src.core.metrics import pipeline_outcomes_total, side_effect_failures_total
from src.core.moderation import is_consented, is_opted_out, is_stop_request
from src.db.repositories import ConversationRepository, FanRepository, MessageRepository, PersonaRepository
from src.models.entities import Conversation, Fan, Message, MessageSender, Persona
from src.models.internal import (
    ModerationAction,
    ModerationResult,
    PersonaReply,
    PipelineResult,
    RequestContext,
    TerminalState,
)
from src.services.audit_service import AuditService
from src.services.llm_client import LLMClient
from src.services.moderation_service import ModerationService

STOP_ACKNOWLEDGMENT = "I understand you'd like to stop our conversations. You've been unsubscribed. Take care! 💕"
CONSENT_PROMPT = (
    "Before we chat, I need to confirm you're 18+ and okay with receiving romantic messages. "
    "Are you over 18 and interested in flirty conversation? 💕"
)
BLOCKED_NOTICE = "Message blocked by moderation system"
ESCALATED_NOTICE = "Message flagged for review"
REVIEW_NOTICE = "Thanks for your message! It's being reviewed before I can reply. 💕"
FALLBACK_REPLY = "Sorry, I'm having trouble responding right now. Let me try again in a moment! 💕"
OPTED_OUT_NOTICE = "You're unsubscribed, so I won't send any more messages. 💕"

VERDICT_STATES = {
    ModerationAction.BLOCK: TerminalState.BLOCKED,
    ModerationAction.ESCALATE: TerminalState.ESCALATED,
    ModerationAction.REVIEW: TerminalState.REVIEW,
}


class ConversationLocks:
    """In-process locks serializing turns of the same fan and persona

    An entry lives only while some turn holds or waits on it.
    """

    def __init__(self):
        self._locks: dict[tuple[str, str], asyncio.Lock] = {}
        self._holders: dict[tuple[str, str], int] = {}

    @asynccontextmanager
    async def hold(self, fan_id: str, persona_id: str) -> AsyncIterator[None]:
        key = (fan_id, persona_id)
        lock = self._locks.setdefault(key, asyncio.Lock())
        self._holders[key] = self._holders.get(key, 0) + 1
        try:
            async with lock:
                yield
        finally:
            self._holders[key] -= 1
            if self._holders[key] == 0:
                del self._holders[key]
                del self._locks[key]


conversation_locks = ConversationLocks()


class ChatService:
    """Service for processing inbound fan messages"""

    def __init__(
        self,
        llm_client: LLMClient,
        fan_repo: FanRepository | None = None,
        persona_repo: PersonaRepository | None = None,
        conversation_repo: ConversationRepository | None = None,
        message_repo: MessageRepository | None = None,
        moderation_service: ModerationService | None = None,
        audit_service: AuditService | None = None,
        locks: ConversationLocks | None = None,
    ):
        self.llm_client = llm_client
        self.fan_repo = fan_repo or FanRepository()
        self.persona_repo = persona_repo or PersonaRepository()
        self.conversation_repo = conversation_repo or ConversationRepository()
        self.message_repo = message_repo or MessageRepository()
        self.audit_service = audit_service or AuditService()
        self.moderation_service = moderation_service or ModerationService(
            fan_repo=self.fan_repo,
            message_repo=self.message_repo,
            audit_service=self.audit_service,
        )
        self.locks = locks or conversation_locks

    async def submit_fan_message(
        self,
        fan_id: str,
        persona_id: str,
        text: str,
        request_context: RequestContext | None = None,
    ) -> PipelineResult:
        """
        Run one inbound fan message to a terminal state

        Args:
            fan_id: Sending fan
            persona_id: Persona addressed
            text: Message text, already validated as non-empty
            request_context: Provenance recorded on audit entries

        Returns:
            Reply text, terminal state and suggested actions

        Raises:
            NotFoundException: Unknown fan or persona (no side effects)
        """
        fan = await self.fan_repo.get_by_id(fan_id)
        if not fan:
            raise NotFoundException("Fan not found")

        persona = await self.persona_repo.get_by_id(persona_id)
        if not persona:
            raise NotFoundException("Persona not found")

        result = await self._run_pipeline(fan, persona, text, request_context)

        pipeline_outcomes_total.labels(terminal_state=result.terminal_state.value).inc()
        logger.info(
            f"Message from fan {fan.id} to persona {persona.id} reached {result.terminal_state.value}"
        )
        return result

    async def _run_pipeline(
        self,
        fan: Fan,
        persona: Persona,
        text: str,
        request_context: RequestContext | None,
    ) -> PipelineResult:
        # Opt-out wins over every moderation rule
        if is_stop_request(text):
            await self.moderation_service.process_stop_request(
                fan, creator_id=persona.creator_id, request_context=request_context
            )
            return PipelineResult(reply_text=STOP_ACKNOWLEDGMENT, terminal_state=TerminalState.STOPPED)

        moderation = await self.moderation_service.moderate_message(text, fan_id=fan.id)
        if moderation.action != ModerationAction.ALLOW:
            return await self._reject(fan, persona, moderation, request_context)

        # No generated replies after an opt-out
        if is_opted_out(fan):
            logger.info(f"Fan {fan.id} has opted out, not replying")
            return PipelineResult(
                reply_text=OPTED_OUT_NOTICE,
                terminal_state=TerminalState.STOPPED,
                moderation=moderation,
            )

        if not is_consented(fan):
            await self.audit_service.log_consent_violation(
                fan.id,
                reason=_consent_gap(fan),
                creator_id=persona.creator_id,
                request_context=request_context,
            )
            return PipelineResult(
                reply_text=CONSENT_PROMPT,
                terminal_state=TerminalState.CONSENT_REQUIRED,
                moderation=moderation,
            )

        return await self._respond(fan, persona, text, moderation, request_context)

    async def _reject(
        self,
        fan: Fan,
        persona: Persona,
        moderation: ModerationResult,
        request_context: RequestContext | None,
    ) -> PipelineResult:
        """Terminal handling for block, review and escalate verdicts"""
        await self.audit_service.log_moderation_action(
            entity_type="fan",
            entity_id=fan.id,
            action=moderation.action.value,
            reason=moderation.reason,
            severity=moderation.severity.value,
            fan_id=fan.id,
            creator_id=persona.creator_id,
            extra={"personaId": persona.id, "confidence": moderation.confidence},
            request_context=request_context,
        )

        state = VERDICT_STATES[moderation.action]
        if state == TerminalState.BLOCKED:
            reply_text = f"{BLOCKED_NOTICE}: {moderation.reason}"
        elif state == TerminalState.ESCALATED:
            # Never reveal what was detected
            reply_text = ESCALATED_NOTICE
        else:
            reply_text = REVIEW_NOTICE

        return PipelineResult(reply_text=reply_text, terminal_state=state, moderation=moderation)

    async def _respond(
        self,
        fan: Fan,
        persona: Persona,
        text: str,
        moderation: ModerationResult,
        request_context: RequestContext | None,
    ) -> PipelineResult:
        async with self.locks.hold(fan.id, persona.id):
            conversation, is_new = await self.conversation_repo.get_or_create(fan.id, persona.id)
            if is_new:
                logger.info(f"Created new conversation: {conversation.id}")

            history = await self.message_repo.get_recent_for_context(
                conversation.id, limit=settings.recent_message_limit
            )
            reply = await self._generate_reply(persona, fan, history, conversation.thread_summary, text)

            # The reply is stored before it is returned; everything after is best-effort
            await self.message_repo.create(conversation_id=conversation.id, sender=MessageSender.FAN, content=text)
            ai_message = await self.message_repo.create(
                conversation_id=conversation.id,
                sender=MessageSender.AI,
                content=reply.text,
            )

            await self._refresh_conversation(conversation, text)

        await self.audit_service.log_conversation(
            conversation_id=conversation.id,
            message_id=ai_message.id,
            fan_message=text,
            ai_response=reply.text,
            moderation_result=moderation,
            fan_id=fan.id,
            creator_id=persona.creator_id,
            request_context=request_context,
        )

        return PipelineResult(
            reply_text=reply.text,
            terminal_state=TerminalState.RESPONDED,
            queued_actions=reply.suggested_actions,
            moderation=moderation,
            conversation_id=conversation.id,
        )

    async def _generate_reply(
        self,
        persona: Persona,
        fan: Fan,
        history: list[Message],
        summary: str,
        text: str,
    ) -> PersonaReply:
        try:
            return await self.llm_client.generate_reply(persona, fan, history, summary, text)
        except Exception as e:
            logger.error(f"Reply generation failed for fan {fan.id}, sending fallback: {e}")
            return PersonaReply(text=FALLBACK_REPLY)

    async def _refresh_conversation(self, conversation: Conversation, fan_text: str) -> None:
        """Recompute sentiment and rolling summary; last write wins"""
        try:
            sentiment = await self.llm_client.analyze_sentiment(fan_text)
            recent = await self.message_repo.get_recent_for_context(
                conversation.id, limit=settings.recent_message_limit
            )
            summary = await self.llm_client.summarize_thread(recent)
            await self.conversation_repo.update_summary_and_sentiment(
                conversation.id,
                sentiment,
                thread_summary=summary or None,
            )
        except Exception as e:
            side_effect_failures_total.labels(kind="conversation_refresh").inc()
            logger.error(f"Failed to refresh conversation {conversation.id}: {e}")


def _consent_gap(fan: Fan) -> str:
    consent = fan.consent_status
    if consent is None:
        return "consent_not_recorded"
    if not consent.age_affirmed:
        return "age_not_affirmed"
    if not consent.romantic_content:
        return "romantic_content_not_affirmed"
    return "affirmation_not_timestamped"
