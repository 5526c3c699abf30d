"""
Health check endpoints
"""
from datetime import UTC, datetime

from fastapi import APIRouter

from src.core.dependencies import LLMClientDep
from src.db.base import db
from src.models.responses import HealthResponse, ServiceHealth

router = APIRouter(tags=["Health"])


@router.get("/health", response_model=HealthResponse)
async def health_check(llm_client: LLMClientDep):
    """
    Health check endpoint

    Returns status of the database and the LLM provider. The service stays
    usable with the provider down (replies fall back), so only the database
    decides overall health.
    """
    db_health = await db.health_check()
    llm_health = await llm_client.health_check()

    overall_status = "healthy" if db_health["status"] == "up" else "unhealthy"

    return HealthResponse(
        status=overall_status,
        timestamp=datetime.now(UTC),
        services={
            "database": ServiceHealth(**db_health),
            "llm_api": ServiceHealth(**llm_health.model_dump()),
        }
    )
