"""
Fixtures for unit tests
"""
from datetime import UTC, datetime

import pytest

from src.models.entities import ConsentStatus
from src.services.audit_service import AuditService
from src.services.chat_service import ChatService, ConversationLocks
from src.services.compliance_service import ComplianceService
from src.services.fan_service import FanService
from src.services.moderation_service import ModerationService
from tests.mock_providers import (
    FakeAuditLogRepository,
    FakeConversationRepository,
    FakeFanRepository,
    FakeMessageRepository,
    FakeModerationRepository,
    FakePersonaRepository,
    MockLLMClient,
    sample_offer_menu,
)


@pytest.fixture
def full_consent():
    return ConsentStatus(age_affirmed=True, romantic_content=True, affirmed_at=datetime.now(UTC))


@pytest.fixture
def fan_repo():
    return FakeFanRepository()


@pytest.fixture
def persona_repo():
    return FakePersonaRepository()


@pytest.fixture
def conversation_repo():
    return FakeConversationRepository()


@pytest.fixture
def message_repo():
    return FakeMessageRepository()


@pytest.fixture
def moderation_repo():
    return FakeModerationRepository()


@pytest.fixture
def audit_repo():
    return FakeAuditLogRepository()


@pytest.fixture
def llm():
    return MockLLMClient()


@pytest.fixture
def persona(persona_repo):
    return persona_repo.add(
        creator_id="creator-1",
        name="Luna",
        voice_keywords=["playful", "warm"],
        offer_menu=sample_offer_menu(),
        disclosure="You're chatting with Luna's AI assistant",
    )


@pytest.fixture
def consented_fan(fan_repo, full_consent):
    return fan_repo.add(consent=full_consent, preferences={"likes": "sunsets"})


@pytest.fixture
def audit_service(audit_repo):
    return AuditService(audit_repo=audit_repo)


@pytest.fixture
def moderation_service(moderation_repo, fan_repo, message_repo, audit_service):
    return ModerationService(
        moderation_repo=moderation_repo,
        fan_repo=fan_repo,
        message_repo=message_repo,
        audit_service=audit_service,
    )


@pytest.fixture
def fan_service(fan_repo, audit_service):
    return FanService(fan_repo=fan_repo, audit_service=audit_service)


@pytest.fixture
def compliance_service(moderation_repo, audit_repo):
    return ComplianceService(moderation_repo=moderation_repo, audit_repo=audit_repo)


@pytest.fixture
def chat_service(
    llm,
    fan_repo,
    persona_repo,
    conversation_repo,
    message_repo,
    moderation_service,
    audit_service,
):
    return ChatService(
        llm_client=llm,
        fan_repo=fan_repo,
        persona_repo=persona_repo,
        conversation_repo=conversation_repo,
        message_repo=message_repo,
        moderation_service=moderation_service,
        audit_service=audit_service,
        locks=ConversationLocks(),
    )
