"""
Response models for API endpoints
"""
from datetime import datetime
from typing import Any

from pydantic import BaseModel, ConfigDict, Field

from src.models.entities import AuditAction, ModerationStatus, Severity
from src.models.internal import SuggestedAction, TerminalState


class SubmitMessageResponse(BaseModel):
    """Result of submitting a fan message"""
    model_config = ConfigDict(from_attributes=True, use_enum_values=True)

    reply_text: str = Field(..., description="Text to deliver to the fan")
    terminal_state: TerminalState = Field(..., description="Pipeline terminal state", examples=["responded"])
    queued_actions: list[SuggestedAction] = Field(default_factory=list)


class ConsentStatusResponse(BaseModel):
    """Stored consent record"""
    model_config = ConfigDict(from_attributes=True)

    fan_id: str
    age_affirmed: bool
    romantic_content: bool
    affirmed_at: datetime | None = None


class ModerationItemResponse(BaseModel):
    """Moderation queue item"""
    model_config = ConfigDict(from_attributes=True, use_enum_values=True)

    id: str
    message_id: str | None = None
    fan_id: str | None = None
    content: str
    flag_reason: str
    severity: Severity
    status: ModerationStatus
    reviewed_by: str | None = None
    reviewed_at: datetime | None = None
    created_at: datetime


class ListModerationResponse(BaseModel):
    """Response for listing the moderation queue"""
    model_config = ConfigDict(from_attributes=True)

    items: list[ModerationItemResponse]
    total: int


class ComplianceScoreResponse(BaseModel):
    """Queue-derived compliance score"""

    compliance_score: float = Field(..., ge=0, le=100)


class AuditLogResponse(BaseModel):
    """Audit entry"""
    model_config = ConfigDict(from_attributes=True, use_enum_values=True)

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


class ComplianceReportResponse(BaseModel):
    """Audit-derived compliance report"""
    model_config = ConfigDict(from_attributes=True)

    creator_id: str
    start: datetime
    end: datetime
    total_interactions: int
    moderated_messages: int
    blocked_messages: int
    escalations: int
    compliance_score: float
    key_events: list[AuditLogResponse]


class ListAuditLogsResponse(BaseModel):
    """Response for audit trail queries"""

    entries: list[AuditLogResponse]
    total: int


class ServiceHealth(BaseModel):
    """Individual service health"""
    status: str = Field(..., description="Service status: up or down")
    latency_ms: int | None = Field(None, description="Latency in milliseconds")
    error: str | None = Field(None, description="Error message if down")


class HealthResponse(BaseModel):
    """Health check response"""
    status: str = Field(..., description="Overall status: healthy or unhealthy")
    timestamp: datetime
    services: dict[str, ServiceHealth]
