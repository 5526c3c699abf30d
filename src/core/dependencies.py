"""
Central dependency injection for FastAPI
"""
from typing import Annotated

from fastapi import Depends, Request

from src.db.repositories import (
    AuditLogRepository,
    ConversationRepository,
    FanRepository,
    MessageRepository,
    ModerationRepository,
    PersonaRepository,
)
from src.middleware.logging import get_request_context
from src.models.internal import RequestContext
from src.services.audit_service import AuditService
from src.services.chat_service import ChatService
from src.services.compliance_service import ComplianceService
from src.services.fan_service import FanService
from src.services.llm_client import LLMClient
from src.services.moderation_service import ModerationService


# Repository Dependencies
def get_fan_repository() -> FanRepository:
    """Get fan repository instance"""
    return FanRepository()


def get_persona_repository() -> PersonaRepository:
    """Get persona repository instance"""
    return PersonaRepository()


def get_conversation_repository() -> ConversationRepository:
    """Get conversation repository instance"""
    return ConversationRepository()


def get_message_repository() -> MessageRepository:
    """Get message repository instance"""
    return MessageRepository()


def get_moderation_repository() -> ModerationRepository:
    """Get moderation queue repository instance"""
    return ModerationRepository()


def get_audit_repository() -> AuditLogRepository:
    """Get audit log repository instance"""
    return AuditLogRepository()


# Service Dependencies
def get_llm_client() -> LLMClient:
    """Get LLM client singleton"""
    from src.services.llm_client import llm_client
    return llm_client


def get_audit_service(
    audit_repo: Annotated[AuditLogRepository, Depends(get_audit_repository)],
) -> AuditService:
    """Get audit service instance with injected dependencies"""
    return AuditService(audit_repo=audit_repo)


def get_moderation_service(
    moderation_repo: Annotated[ModerationRepository, Depends(get_moderation_repository)],
    fan_repo: Annotated[FanRepository, Depends(get_fan_repository)],
    message_repo: Annotated[MessageRepository, Depends(get_message_repository)],
    audit_service: Annotated[AuditService, Depends(get_audit_service)],
) -> ModerationService:
    """Get moderation service instance with injected dependencies"""
    return ModerationService(
        moderation_repo=moderation_repo,
        fan_repo=fan_repo,
        message_repo=message_repo,
        audit_service=audit_service,
    )


def get_chat_service(
    llm_client: Annotated[LLMClient, Depends(get_llm_client)],
    fan_repo: Annotated[FanRepository, Depends(get_fan_repository)],
    persona_repo: Annotated[PersonaRepository, Depends(get_persona_repository)],
    conversation_repo: Annotated[ConversationRepository, Depends(get_conversation_repository)],
    message_repo: Annotated[MessageRepository, Depends(get_message_repository)],
    moderation_service: Annotated[ModerationService, Depends(get_moderation_service)],
    audit_service: Annotated[AuditService, Depends(get_audit_service)],
) -> ChatService:
    """Get chat service instance with injected dependencies"""
    return ChatService(
        llm_client=llm_client,
        fan_repo=fan_repo,
        persona_repo=persona_repo,
        conversation_repo=conversation_repo,
        message_repo=message_repo,
        moderation_service=moderation_service,
        audit_service=audit_service,
    )


def get_fan_service(
    fan_repo: Annotated[FanRepository, Depends(get_fan_repository)],
    audit_service: Annotated[AuditService, Depends(get_audit_service)],
) -> FanService:
    """Get fan service instance with injected dependencies"""
    return FanService(fan_repo=fan_repo, audit_service=audit_service)


def get_compliance_service(
    moderation_repo: Annotated[ModerationRepository, Depends(get_moderation_repository)],
    audit_repo: Annotated[AuditLogRepository, Depends(get_audit_repository)],
) -> ComplianceService:
    """Get compliance service instance with injected dependencies"""
    return ComplianceService(moderation_repo=moderation_repo, audit_repo=audit_repo)


def get_request_context_dep(request: Request) -> RequestContext:
    """Request provenance for audit entries"""
    return get_request_context(request)


# Type aliases for cleaner endpoint signatures
ChatServiceDep = Annotated[ChatService, Depends(get_chat_service)]
FanServiceDep = Annotated[FanService, Depends(get_fan_service)]
ModerationServiceDep = Annotated[ModerationService, Depends(get_moderation_service)]
ComplianceServiceDep = Annotated[ComplianceService, Depends(get_compliance_service)]
AuditServiceDep = Annotated[AuditService, Depends(get_audit_service)]
LLMClientDep = Annotated[LLMClient, Depends(get_llm_client)]
RequestContextDep = Annotated[RequestContext, Depends(get_request_context_dep)]
