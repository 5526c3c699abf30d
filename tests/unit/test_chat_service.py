"""
Unit tests for the inbound message pipeline
"""
import asyncio
from datetime import UTC, datetime

import pytest

from src.core.exceptions import AIServiceException, NotFoundException
from src.core.moderation import STOP_ALL_MESSAGES
from src.models.entities import AuditAction, ConsentStatus, MessageSender, Sentiment, Severity
from src.models.internal import PersonaReply, SuggestedAction, SuggestedActionType, TerminalState
from src.services.chat_service import (
    BLOCKED_NOTICE,
    CONSENT_PROMPT,
    ESCALATED_NOTICE,
    FALLBACK_REPLY,
    OPTED_OUT_NOTICE,
    STOP_ACKNOWLEDGMENT,
)


class TestStopRequests:
    """Opt-outs have the highest precedence"""

    @pytest.mark.asyncio
    async def test_trailing_stop_word(self, chat_service, consented_fan, persona, fan_repo, audit_repo, llm):
        result = await chat_service.submit_fan_message(consented_fan.id, persona.id, "hey STOP")

        assert result.terminal_state == TerminalState.STOPPED
        assert result.reply_text == STOP_ACKNOWLEDGMENT
        fan = await fan_repo.get_by_id(consented_fan.id)
        assert fan.boundaries == [STOP_ALL_MESSAGES]
        assert fan.preferences["opted_out"] is True
        assert len(audit_repo.by_action(AuditAction.STOP_REQUEST)) == 1
        assert llm.generate_calls == []

    @pytest.mark.asyncio
    async def test_stop_wins_over_escalation_pattern(self, chat_service, consented_fan, persona, moderation_repo):
        result = await chat_service.submit_fan_message(consented_fan.id, persona.id, "stop or I will kill you")

        assert result.terminal_state == TerminalState.STOPPED
        assert moderation_repo.items == {}

    @pytest.mark.asyncio
    async def test_stop_works_without_consent(self, chat_service, fan_repo, persona):
        fan = fan_repo.add()

        result = await chat_service.submit_fan_message(fan.id, persona.id, "unsubscribe")

        assert result.terminal_state == TerminalState.STOPPED

    @pytest.mark.asyncio
    async def test_opted_out_fan_gets_no_reply(self, chat_service, consented_fan, persona, message_repo, llm):
        await chat_service.submit_fan_message(consented_fan.id, persona.id, "hey stop")

        result = await chat_service.submit_fan_message(consented_fan.id, persona.id, "you're so sweet today")

        assert result.terminal_state == TerminalState.STOPPED
        assert result.reply_text == OPTED_OUT_NOTICE
        assert llm.generate_calls == []
        assert message_repo.messages == []

    @pytest.mark.asyncio
    async def test_opted_out_fan_flagged_message_is_still_queued(self, chat_service, fan_repo, persona, moderation_repo):
        fan = fan_repo.add(boundaries=[STOP_ALL_MESSAGES], preferences={"opted_out": True})

        result = await chat_service.submit_fan_message(fan.id, persona.id, "what the fuck")

        assert result.terminal_state == TerminalState.BLOCKED
        assert len(moderation_repo.items) == 1


class TestModerationOutcomes:
    """Block, review and escalate verdicts are terminal"""

    @pytest.mark.asyncio
    async def test_meetup_is_blocked(self, chat_service, consented_fan, persona, moderation_repo, audit_repo, message_repo, llm):
        result = await chat_service.submit_fan_message(
            consented_fan.id, persona.id, "let's meet at my hotel, here's my address"
        )

        assert result.terminal_state == TerminalState.BLOCKED
        assert result.reply_text == f"{BLOCKED_NOTICE}: meetup_solicitation"
        (item,) = moderation_repo.items.values()
        assert item.severity == Severity.HIGH
        (entry,) = audit_repo.by_action(AuditAction.MODERATION_ACTION)
        assert entry.details["action"] == "block"
        assert entry.details["creatorId"] == persona.creator_id
        assert message_repo.messages == []
        assert llm.generate_calls == []

    @pytest.mark.asyncio
    async def test_escalation_never_reveals_detection(self, chat_service, consented_fan, persona, moderation_repo, audit_repo, llm):
        result = await chat_service.submit_fan_message(consented_fan.id, persona.id, "are you a minor")

        assert result.terminal_state == TerminalState.ESCALATED
        assert result.reply_text == ESCALATED_NOTICE
        assert "minor" not in result.reply_text.lower()
        (item,) = moderation_repo.items.values()
        assert item.severity == Severity.CRITICAL
        (entry,) = audit_repo.by_action(AuditAction.MODERATION_ACTION)
        assert entry.details["action"] == "escalate"
        assert entry.details["severity"] == "critical"
        assert llm.generate_calls == []

    @pytest.mark.asyncio
    async def test_review_does_not_reach_responder(self, chat_service, consented_fan, persona, conversation_repo, llm):
        result = await chat_service.submit_fan_message(consented_fan.id, persona.id, "hey daddy")

        assert result.terminal_state == TerminalState.REVIEW
        assert conversation_repo.conversations == {}
        assert llm.generate_calls == []

    @pytest.mark.asyncio
    async def test_moderation_runs_before_consent_gate(self, chat_service, fan_repo, persona, moderation_repo):
        fan = fan_repo.add()

        result = await chat_service.submit_fan_message(fan.id, persona.id, "what the fuck")

        assert result.terminal_state == TerminalState.BLOCKED
        assert len(moderation_repo.items) == 1

    @pytest.mark.asyncio
    async def test_one_queue_item_and_one_audit_entry_per_flagged_message(
        self, chat_service, consented_fan, persona, moderation_repo, audit_repo
    ):
        texts = ["what the fuck", "hey daddy", "are you underage"]
        for text in texts:
            await chat_service.submit_fan_message(consented_fan.id, persona.id, text)

        assert len(moderation_repo.items) == len(texts)
        assert len(audit_repo.by_action(AuditAction.MODERATION_ACTION)) == len(texts)

    @pytest.mark.asyncio
    async def test_side_effect_failures_do_not_abort(self, chat_service, consented_fan, persona, moderation_repo, audit_repo):
        moderation_repo.fail_creates = True
        audit_repo.fail_appends = True

        result = await chat_service.submit_fan_message(consented_fan.id, persona.id, "what the fuck")

        assert result.terminal_state == TerminalState.BLOCKED


class TestConsentGate:
    """Allowed content still needs full consent"""

    @pytest.mark.asyncio
    async def test_partial_consent_requires_prompt(self, chat_service, fan_repo, persona, conversation_repo, message_repo, audit_repo, llm):
        fan = fan_repo.add(consent=ConsentStatus(
            age_affirmed=True, romantic_content=False, affirmed_at=datetime.now(UTC)
        ))

        result = await chat_service.submit_fan_message(fan.id, persona.id, "you're so sweet today")

        assert result.terminal_state == TerminalState.CONSENT_REQUIRED
        assert result.reply_text == CONSENT_PROMPT
        assert conversation_repo.conversations == {}
        assert message_repo.messages == []
        assert llm.generate_calls == []
        (entry,) = audit_repo.by_action(AuditAction.CONSENT_VIOLATION)
        assert entry.details["reason"] == "romantic_content_not_affirmed"

    @pytest.mark.asyncio
    async def test_missing_consent_record(self, chat_service, fan_repo, persona, audit_repo):
        fan = fan_repo.add()

        result = await chat_service.submit_fan_message(fan.id, persona.id, "you're so sweet today")

        assert result.terminal_state == TerminalState.CONSENT_REQUIRED
        (entry,) = audit_repo.by_action(AuditAction.CONSENT_VIOLATION)
        assert entry.details["reason"] == "consent_not_recorded"

    @pytest.mark.asyncio
    async def test_consent_without_timestamp_requires_prompt(self, chat_service, fan_repo, persona, audit_repo, llm):
        fan = fan_repo.add(consent=ConsentStatus(age_affirmed=True, romantic_content=True, affirmed_at=None))

        result = await chat_service.submit_fan_message(fan.id, persona.id, "you're so sweet today")

        assert result.terminal_state == TerminalState.CONSENT_REQUIRED
        assert llm.generate_calls == []
        (entry,) = audit_repo.by_action(AuditAction.CONSENT_VIOLATION)
        assert entry.details["reason"] == "affirmation_not_timestamped"


class TestResponded:
    """Happy path"""

    @pytest.mark.asyncio
    async def test_reply_is_persisted_and_audited(
        self, chat_service, consented_fan, persona, message_repo, conversation_repo, audit_repo, llm
    ):
        result = await chat_service.submit_fan_message(consented_fan.id, persona.id, "you're so sweet today")

        assert result.terminal_state == TerminalState.RESPONDED
        assert result.reply_text == llm.reply.text
        senders = [message.sender for message in message_repo.messages]
        assert senders == [MessageSender.FAN, MessageSender.AI]
        assert message_repo.messages[0].content == "you're so sweet today"
        assert message_repo.messages[1].content == llm.reply.text

        conversation = await conversation_repo.get_by_id(result.conversation_id)
        assert conversation.sentiment == Sentiment.POSITIVE
        assert conversation.last_message_at is not None

        (entry,) = audit_repo.by_action(AuditAction.AI_CONVERSATION)
        assert entry.entity_id == conversation.id
        assert entry.details["messageId"] == message_repo.messages[1].id
        assert entry.details["creatorId"] == persona.creator_id
        assert entry.details["moderationResult"]["action"] == "allow"

    @pytest.mark.asyncio
    async def test_suggested_actions_are_returned(self, chat_service, consented_fan, persona, llm):
        llm.reply = PersonaReply(
            text="Want to see my beach set? 💕",
            suggested_actions=[SuggestedAction(type=SuggestedActionType.OFFER_MENU, data={"sku": "pic-set-1"})],
        )

        result = await chat_service.submit_fan_message(consented_fan.id, persona.id, "what have you been up to?")

        assert result.queued_actions[0].type == SuggestedActionType.OFFER_MENU

    @pytest.mark.asyncio
    async def test_conversation_is_reused(self, chat_service, consented_fan, persona, conversation_repo, llm):
        first = await chat_service.submit_fan_message(consented_fan.id, persona.id, "good morning!")
        second = await chat_service.submit_fan_message(consented_fan.id, persona.id, "how did you sleep?")

        assert first.conversation_id == second.conversation_id
        assert len(conversation_repo.conversations) == 1
        # The second turn sees the first exchange as context
        assert [m.content for m in llm.generate_calls[1]["recent_messages"]] == [
            "good morning!",
            llm.reply.text,
        ]

    @pytest.mark.asyncio
    async def test_summary_updates_after_enough_messages(self, chat_service, consented_fan, persona, conversation_repo, llm):
        first = await chat_service.submit_fan_message(consented_fan.id, persona.id, "good morning!")
        conversation = await conversation_repo.get_by_id(first.conversation_id)
        assert conversation.thread_summary == ""

        await chat_service.submit_fan_message(consented_fan.id, persona.id, "how did you sleep?")
        conversation = await conversation_repo.get_by_id(first.conversation_id)
        assert conversation.thread_summary == llm.summary

    @pytest.mark.asyncio
    async def test_generator_failure_falls_back(self, chat_service, consented_fan, persona, message_repo, llm):
        llm.error = AIServiceException("provider timeout")

        result = await chat_service.submit_fan_message(consented_fan.id, persona.id, "you're so sweet today")

        assert result.terminal_state == TerminalState.RESPONDED
        assert result.reply_text == FALLBACK_REPLY
        assert result.queued_actions == []
        assert message_repo.messages[-1].content == FALLBACK_REPLY

    @pytest.mark.asyncio
    async def test_refresh_failure_does_not_lose_reply(self, chat_service, consented_fan, persona, conversation_repo, message_repo):
        conversation_repo.fail_updates = True

        result = await chat_service.submit_fan_message(consented_fan.id, persona.id, "you're so sweet today")

        assert result.terminal_state == TerminalState.RESPONDED
        assert len(message_repo.messages) == 2

    @pytest.mark.asyncio
    async def test_concurrent_turns_share_one_conversation(self, chat_service, consented_fan, persona, conversation_repo, message_repo):
        await asyncio.gather(*(
            chat_service.submit_fan_message(consented_fan.id, persona.id, f"message number {i}")
            for i in range(5)
        ))

        assert len(conversation_repo.conversations) == 1
        assert len(message_repo.messages) == 10

    @pytest.mark.asyncio
    async def test_locks_are_released_after_turns(self, chat_service, fan_repo, full_consent, persona):
        fans = [fan_repo.add(consent=full_consent) for _ in range(50)]

        for fan in fans:
            result = await chat_service.submit_fan_message(fan.id, persona.id, "you're so sweet today")
            assert result.terminal_state == TerminalState.RESPONDED
        await asyncio.gather(*(
            chat_service.submit_fan_message(fans[0].id, persona.id, f"message number {i}")
            for i in range(5)
        ))

        assert chat_service.locks._locks == {}
        assert chat_service.locks._holders == {}


class TestNotFound:
    """Unknown ids fail before any side effect"""

    @pytest.mark.asyncio
    async def test_unknown_fan(self, chat_service, persona, audit_repo, moderation_repo):
        with pytest.raises(NotFoundException):
            await chat_service.submit_fan_message("missing", persona.id, "what the fuck")

        assert audit_repo.entries == []
        assert moderation_repo.items == {}

    @pytest.mark.asyncio
    async def test_unknown_persona(self, chat_service, consented_fan, fan_repo, audit_repo):
        with pytest.raises(NotFoundException):
            await chat_service.submit_fan_message(consented_fan.id, "missing", "stop")

        assert audit_repo.entries == []
        assert fan_repo.update_calls == []
