"""Repository package"""
from src.db.repositories.audit_repository import AuditLogRepository
from src.db.repositories.conversation_repository import ConversationRepository
from src.db.repositories.fan_repository import FanRepository
from src.db.repositories.message_repository import MessageRepository
from src.db.repositories.moderation_repository import ModerationRepository
from src.db.repositories.persona_repository import PersonaRepository

__all__ = [
    "AuditLogRepository",
    "ConversationRepository",
    "FanRepository",
    "MessageRepository",
    "ModerationRepository",
    "PersonaRepository",
]
