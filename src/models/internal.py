"""
Internal Pydantic models for service layer
"""
from datetime import date
from enum import Enum
from typing import Any

from pydantic import BaseModel, ConfigDict, Field

from src.models.entities import AuditLogEntry, Severity


class ModerationAction(str, Enum):
    """Verdict of the pattern classifier"""
    ALLOW = "allow"
    REVIEW = "review"
    BLOCK = "block"
    ESCALATE = "escalate"


class TerminalState(str, Enum):
    """Terminal states of the inbound message pipeline"""
    RESPONDED = "responded"
    BLOCKED = "blocked"
    ESCALATED = "escalated"
    REVIEW = "review"
    STOPPED = "stopped"
    CONSENT_REQUIRED = "consent_required"


class SuggestedActionType(str, Enum):
    """Follow-up actions the responder may suggest"""
    OFFER_MENU = "offer_menu"
    CREATE_PAYMENT_LINK = "create_payment_link"
    SEND_MEDIA = "send_media"


class ModerationResult(BaseModel):
    """Classifier verdict"""

    action: ModerationAction
    reason: str | None = None
    severity: Severity
    confidence: float = Field(..., ge=0.0, le=1.0)


class CircuitBreakerState(BaseModel):
    """Circuit breaker state information"""

    model_config = ConfigDict(from_attributes=True)

    state: str = Field(..., description="Circuit breaker state: closed, open, or half_open")
    failure_count: int = Field(..., description="Number of consecutive failures")
    last_failure_time: float | None = Field(None, description="Timestamp of last failure")


class AIProviderHealth(BaseModel):
    """AI Provider API health check result"""

    model_config = ConfigDict(from_attributes=True)

    status: str = Field(..., description="Service status: up or down")
    latency_ms: int | None = Field(None, description="API call latency in milliseconds")
    error: str | None = Field(None, description="Error message if status is down")


class SuggestedAction(BaseModel):
    """Action suggested alongside a persona reply"""

    type: SuggestedActionType
    data: dict[str, Any] = Field(default_factory=dict)


class PersonaReply(BaseModel):
    """Output of the response generator"""

    text: str
    suggested_actions: list[SuggestedAction] = Field(default_factory=list)


class RequestContext(BaseModel):
    """Provenance of the request that triggered an audited action"""

    ip_address: str | None = None
    user_agent: str | None = None


class PipelineResult(BaseModel):
    """Outcome of one inbound fan message"""

    reply_text: str
    terminal_state: TerminalState
    queued_actions: list[SuggestedAction] = Field(default_factory=list)
    moderation: ModerationResult | None = None
    conversation_id: str | None = None


class ComplianceReport(BaseModel):
    """Audit-derived compliance summary for one creator and time window"""

    total_interactions: int = 0
    moderated_messages: int = 0
    blocked_messages: int = 0
    escalations: int = 0
    compliance_score: float = 100.0
    key_events: list[AuditLogEntry] = Field(default_factory=list)


class ModerationStats(BaseModel):
    """Queue counts for one UTC day"""

    day: date
    moderated: int = 0
    pending: int = 0
    approved: int = 0
    blocked: int = 0
