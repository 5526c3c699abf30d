"""
Repository tests against the SQLite schema
"""
import asyncio
import sqlite3
from datetime import timedelta

import pytest

from src.db.base import DatabaseIntegrityError, utc_now
from src.db.repositories import (
    AuditLogRepository,
    ConversationRepository,
    FanRepository,
    MessageRepository,
    ModerationRepository,
    PersonaRepository,
)
from src.models.entities import (
    AuditAction,
    ConsentStatus,
    MessageSender,
    ModerationStatus,
    OfferMenuItem,
    Sentiment,
    Severity,
    SpendTier,
)


@pytest.mark.asyncio
async def test_persona_round_trip(database):
    repo = PersonaRepository(database)

    persona = await repo.create(
        creator_id="creator-1",
        name="Luna",
        voice_keywords=["playful"],
        offer_menu=[OfferMenuItem(sku="set-1", label="Beach set", price_cents=1500)],
        disclosure="AI assistant for Luna",
    )

    stored = await repo.get_by_id(persona.id)
    assert stored.voice_keywords == ["playful"]
    assert stored.offer_menu[0].price_cents == 1500
    assert await repo.get_by_id("missing") is None


@pytest.mark.asyncio
async def test_fan_partial_update_keeps_other_fields(database):
    repo = FanRepository(database)
    consent = ConsentStatus(age_affirmed=True, romantic_content=True, affirmed_at=utc_now())
    fan = await repo.create(x_user_id="x-1", handle="@sunny", consent_status=consent, preferences={"likes": "sunsets"})

    updated = await repo.update(fan.id, boundaries=["stop_all_messages"])

    assert updated.boundaries == ["stop_all_messages"]
    assert updated.consent_status == consent
    assert updated.preferences == {"likes": "sunsets"}
    assert await repo.get_by_x_user_id("x-1") == updated


@pytest.mark.asyncio
async def test_fan_update_unknown_fan_and_field(database):
    repo = FanRepository(database)

    assert await repo.update("missing", boundaries=[]) is None
    with pytest.raises(ValueError):
        await repo.update("missing", x_user_id="x-2")


@pytest.mark.asyncio
async def test_fan_x_user_id_is_unique(database):
    repo = FanRepository(database)
    await repo.create(x_user_id="x-1", handle="@sunny")

    with pytest.raises(DatabaseIntegrityError):
        await repo.create(x_user_id="x-1", handle="@other")


@pytest.mark.asyncio
async def test_list_by_spend_tier(database):
    repo = FanRepository(database)
    vip = await repo.create(x_user_id="x-1", handle="@big", spend_tier=SpendTier.VIP)
    await repo.create(x_user_id="x-2", handle="@small")

    fans = await repo.list_by_spend_tier(SpendTier.VIP)

    assert [fan.id for fan in fans] == [vip.id]


@pytest.mark.asyncio
async def test_one_active_conversation_per_pair(database):
    fan = await FanRepository(database).create(x_user_id="x-1", handle="@sunny")
    persona = await PersonaRepository(database).create(creator_id="creator-1", name="Luna")
    repo = ConversationRepository(database)

    results = await asyncio.gather(*(repo.get_or_create(fan.id, persona.id) for _ in range(4)))

    assert len({conversation.id for conversation, _ in results}) == 1
    assert sum(1 for _, is_new in results if is_new) == 1


@pytest.mark.asyncio
async def test_summary_and_sentiment_update(database):
    fan = await FanRepository(database).create(x_user_id="x-1", handle="@sunny")
    persona = await PersonaRepository(database).create(creator_id="creator-1", name="Luna")
    repo = ConversationRepository(database)
    conversation, _ = await repo.get_or_create(fan.id, persona.id)

    await repo.update_summary_and_sentiment(conversation.id, Sentiment.POSITIVE, "Fan loves sunsets.")
    await repo.update_summary_and_sentiment(conversation.id, Sentiment.NEGATIVE)

    stored = await repo.get_by_id(conversation.id)
    assert stored.sentiment == Sentiment.NEGATIVE
    assert stored.thread_summary == "Fan loves sunsets."


@pytest.mark.asyncio
async def test_recent_messages_oldest_first(database):
    fan = await FanRepository(database).create(x_user_id="x-1", handle="@sunny")
    persona = await PersonaRepository(database).create(creator_id="creator-1", name="Luna")
    conversation, _ = await ConversationRepository(database).get_or_create(fan.id, persona.id)
    repo = MessageRepository(database)

    for i in range(5):
        sender = MessageSender.FAN if i % 2 == 0 else MessageSender.AI
        await repo.create(conversation.id, sender, f"message {i}")

    recent = await repo.get_recent_for_context(conversation.id, limit=3)

    assert [message.content for message in recent] == ["message 2", "message 3", "message 4"]
    assert await repo.count_by_conversation(conversation.id) == 5


@pytest.mark.asyncio
async def test_message_moderation_status_update(database):
    fan = await FanRepository(database).create(x_user_id="x-1", handle="@sunny")
    persona = await PersonaRepository(database).create(creator_id="creator-1", name="Luna")
    conversation, _ = await ConversationRepository(database).get_or_create(fan.id, persona.id)
    repo = MessageRepository(database)
    message = await repo.create(conversation.id, MessageSender.AI, "hi")

    assert await repo.update_moderation_status(message.id, ModerationStatus.BLOCKED) is True
    assert (await repo.get_by_id(message.id)).moderation_status == ModerationStatus.BLOCKED
    assert await repo.update_moderation_status("missing", ModerationStatus.BLOCKED) is False


@pytest.mark.asyncio
async def test_queue_item_resolves_once(database):
    repo = ModerationRepository(database)
    item = await repo.create("what the fuck", "banned_pattern:profanity", Severity.HIGH, fan_id="fan-1")
    assert item.status == ModerationStatus.PENDING

    first, second = await asyncio.gather(
        repo.resolve(item.id, ModerationStatus.BLOCKED, "reviewer-1"),
        repo.resolve(item.id, ModerationStatus.APPROVED, "reviewer-2"),
    )

    winners = [result for result in (first, second) if result is not None]
    assert len(winners) == 1
    stored = await repo.get_by_id(item.id)
    assert stored.status == winners[0].status
    assert stored.reviewed_by == winners[0].reviewed_by
    assert stored.reviewed_at is not None


@pytest.mark.asyncio
async def test_queue_listing_and_counts(database):
    repo = ModerationRepository(database)
    blocked = await repo.create("a", "banned_pattern:profanity", Severity.HIGH)
    await repo.resolve(blocked.id, ModerationStatus.BLOCKED, "reviewer-1")
    await repo.create("b", "escalation_pattern:minor_reference", Severity.CRITICAL)
    newest = await repo.create("c", "suspicious_pattern:age_play", Severity.MEDIUM)

    pending = await repo.list_items(ModerationStatus.PENDING)
    assert [item.content for item in pending] == ["c", "b"]
    assert (await repo.list_items())[0].id == newest.id

    counts = await repo.counts_by_status(utc_now().date())
    assert counts[ModerationStatus.PENDING] == 2
    assert counts[ModerationStatus.BLOCKED] == 1
    assert counts[ModerationStatus.APPROVED] == 0

    assert await repo.compliance_counts() == (3, 1, 1)


@pytest.mark.asyncio
async def test_compliance_counts_on_empty_queue(database):
    assert await ModerationRepository(database).compliance_counts() == (0, 0, 0)


@pytest.mark.asyncio
async def test_audit_log_is_append_only(database):
    repo = AuditLogRepository(database)
    entry = await repo.append(AuditAction.STOP_REQUEST, "fan", "fan-1", {"reason": "user_requested_stop"}, fan_id="fan-1")

    with pytest.raises((DatabaseIntegrityError, sqlite3.Error)):
        await database.execute("UPDATE audit_logs SET entity_id = $1 WHERE id = $2", "fan-2", entry.id)
    with pytest.raises((DatabaseIntegrityError, sqlite3.Error)):
        await database.execute("DELETE FROM audit_logs WHERE id = $1", entry.id)

    (stored,) = await repo.list_for_entity("fan", "fan-1")
    assert stored.details == {"reason": "user_requested_stop"}


@pytest.mark.asyncio
async def test_audit_queries(database):
    repo = AuditLogRepository(database)
    start = utc_now()
    await repo.append(AuditAction.STOP_REQUEST, "fan", "fan-1", {"reason": "user_requested_stop"})
    await repo.append(AuditAction.FAN_INTERACTION, "fan", "fan-1", {"interactionType": "consent_affirmed"})
    await repo.append(AuditAction.CONSENT_VIOLATION, "fan", "fan-2", {"reason": "consent_not_recorded"})

    assert len(await repo.list_for_entity("fan", "fan-1")) == 2
    assert len(await repo.list_for_entity("fan")) == 3
    assert len(await repo.list_for_entity(limit=1)) == 1

    between = await repo.list_between(start - timedelta(seconds=1), utc_now() + timedelta(seconds=1))
    assert [entry.action for entry in between] == [
        AuditAction.CONSENT_VIOLATION,
        AuditAction.FAN_INTERACTION,
        AuditAction.STOP_REQUEST,
    ]
    assert await repo.list_between(start - timedelta(days=2), start - timedelta(days=1)) == []

    since = await repo.list_since(start - timedelta(seconds=1), [AuditAction.STOP_REQUEST, AuditAction.CONSENT_VIOLATION])
    assert {entry.action for entry in since} == {AuditAction.STOP_REQUEST, AuditAction.CONSENT_VIOLATION}
    assert await repo.list_since(start, []) == []
