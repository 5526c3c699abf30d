"""
Domain entity models
"""
from datetime import datetime
from enum import Enum
from typing import Any

from pydantic import BaseModel, ConfigDict, Field


class SpendTier(str, Enum):
    """Fan spend tier, ordered from lowest to highest"""
    FREE = "free"
    REGULAR = "regular"
    PREMIUM = "premium"
    VIP = "vip"

    @property
    def rank(self) -> int:
        return list(SpendTier).index(self)


class MessageSender(str, Enum):
    """Message sender enumeration"""
    AI = "ai"
    FAN = "fan"


class MessageType(str, Enum):
    """Message type enumeration"""
    TEXT = "text"
    MEDIA = "media"
    PAYMENT_LINK = "payment_link"


class ModerationStatus(str, Enum):
    """Moderation status shared by messages and queue items"""
    PENDING = "pending"
    APPROVED = "approved"
    BLOCKED = "blocked"


class Severity(str, Enum):
    """Severity of a moderation flag, totally ordered"""
    LOW = "low"
    MEDIUM = "medium"
    HIGH = "high"
    CRITICAL = "critical"

    @property
    def rank(self) -> int:
        return list(Severity).index(self)


class Sentiment(str, Enum):
    """Conversation sentiment label"""
    POSITIVE = "positive"
    NEUTRAL = "neutral"
    NEGATIVE = "negative"


class AuditAction(str, Enum):
    """Audit log action tags"""
    AI_CONVERSATION = "ai_conversation"
    PAYMENT_EVENT = "payment_event"
    CONTENT_ACCESS = "content_access"
    PERSONA_UPDATED = "persona_updated"
    MODERATION_ACTION = "moderation_action"
    FAN_INTERACTION = "fan_interaction"
    STOP_REQUEST = "stop_request"
    CONSENT_VIOLATION = "consent_violation"


# Detail keys every entry of a given action must carry
AUDIT_REQUIRED_DETAILS: dict[AuditAction, frozenset[str]] = {
    AuditAction.AI_CONVERSATION: frozenset({"messageId", "fanMessage", "aiResponse", "moderationResult"}),
    AuditAction.PAYMENT_EVENT: frozenset({"amountCents", "status"}),
    AuditAction.CONTENT_ACCESS: frozenset({"accessType"}),
    AuditAction.PERSONA_UPDATED: frozenset({"changes"}),
    AuditAction.MODERATION_ACTION: frozenset({"action", "reason", "severity"}),
    AuditAction.FAN_INTERACTION: frozenset({"interactionType"}),
    AuditAction.STOP_REQUEST: frozenset({"reason"}),
    AuditAction.CONSENT_VIOLATION: frozenset({"reason"}),
}


class OfferMenuItem(BaseModel):
    """Paid offer a persona can suggest"""
    sku: str
    label: str
    price_cents: int = Field(..., ge=0)


class Persona(BaseModel):
    """Creator-authored AI persona"""
    model_config = ConfigDict(from_attributes=True)

    id: str
    creator_id: str
    name: str
    bio: str | None = None
    voice_keywords: list[str] = Field(default_factory=list)
    do_say: list[str] = Field(default_factory=list)
    dont_say: list[str] = Field(default_factory=list)
    offer_menu: list[OfferMenuItem] = Field(default_factory=list)
    disclosure: str | None = None
    is_active: bool = True
    created_at: datetime
    updated_at: datetime


class ConsentStatus(BaseModel):
    """Age and romantic-content affirmation recorded for a fan"""
    age_affirmed: bool = False
    romantic_content: bool = False
    affirmed_at: datetime | None = None


class Fan(BaseModel):
    """Chat participant"""
    model_config = ConfigDict(from_attributes=True)

    id: str
    x_user_id: str
    handle: str
    display_name: str | None = None
    timezone: str | None = None
    spend_tier: SpendTier = SpendTier.FREE
    boundaries: list[str] = Field(default_factory=list)
    consent_status: ConsentStatus | None = None
    preferences: dict[str, Any] = Field(default_factory=dict)
    created_at: datetime
    updated_at: datetime


class Conversation(BaseModel):
    """One persona-fan thread"""
    model_config = ConfigDict(from_attributes=True)

    id: str
    fan_id: str
    persona_id: str
    thread_summary: str = ""
    sentiment: Sentiment = Sentiment.NEUTRAL
    last_message_at: datetime | None = None
    is_active: bool = True
    created_at: datetime
    updated_at: datetime


class Message(BaseModel):
    """One turn in a conversation"""
    model_config = ConfigDict(from_attributes=True)

    id: str
    conversation_id: str
    sender: MessageSender
    content: str
    message_type: MessageType = MessageType.TEXT
    moderation_status: ModerationStatus = ModerationStatus.APPROVED
    scheduled_at: datetime | None = None
    sent_at: datetime | None = None
    created_at: datetime


class ModerationQueueItem(BaseModel):
    """Flagged content awaiting human disposition"""
    model_config = ConfigDict(from_attributes=True)

    id: str
    message_id: str | None = None
    fan_id: str | None = None
    content: str
    flag_reason: str
    severity: Severity
    status: ModerationStatus = ModerationStatus.PENDING
    reviewed_by: str | None = None
    reviewed_at: datetime | None = None
    created_at: datetime


class AuditLogEntry(BaseModel):
    """Append-only compliance fact"""
    model_config = ConfigDict(from_attributes=True)

    id: str
    action: AuditAction
    entity_type: str
    entity_id: str
    user_id: str | None = None
    fan_id: str | None = None
    details: dict[str, Any] = Field(default_factory=dict)
    ip_address: str | None = None
    user_agent: str | None = None
    created_at: datetime
