"""Pydantic models package"""
from src.models.entities import (
    AuditAction,
    AuditLogEntry,
    ConsentStatus,
    Conversation,
    Fan,
    Message,
    MessageSender,
    ModerationQueueItem,
    ModerationStatus,
    Persona,
    Sentiment,
    Severity,
    SpendTier,
)
from src.models.internal import ModerationAction, ModerationResult, PipelineResult, TerminalState
from src.models.requests import ConsentAffirmationRequest, ResolveModerationRequest, SubmitMessageRequest
from src.models.responses import (
    ComplianceReportResponse,
    ConsentStatusResponse,
    ModerationItemResponse,
    SubmitMessageResponse,
)

__all__ = [
    # Entities
    "AuditAction",
    "AuditLogEntry",
    "ConsentStatus",
    "Conversation",
    "Fan",
    "Message",
    "MessageSender",
    "ModerationQueueItem",
    "ModerationStatus",
    "Persona",
    "Sentiment",
    "Severity",
    "SpendTier",
    # Internal
    "ModerationAction",
    "ModerationResult",
    "PipelineResult",
    "TerminalState",
    # Requests
    "ConsentAffirmationRequest",
    "ResolveModerationRequest",
    "SubmitMessageRequest",
    # Responses
    "ComplianceReportResponse",
    "ConsentStatusResponse",
    "ModerationItemResponse",
    "SubmitMessageResponse",
]
