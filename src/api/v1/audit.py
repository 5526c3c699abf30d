"""
Audit trail endpoints
"""
from typing import Literal

from fastapi import APIRouter, Query

from src.core.dependencies import AuditServiceDep
from src.models.responses import AuditLogResponse, ListAuditLogsResponse

router = APIRouter(prefix="/api/v1/audit", tags=["Audit"])


@router.get(
    "/security-events",
    response_model=ListAuditLogsResponse,
    operation_id="getSecurityEvents",
    summary="Recent stop requests, consent violations and critical moderation actions",
)
async def security_events(
    audit_service: AuditServiceDep,
    timeframe: Literal["hour", "day", "week"] = Query("day"),
):
    """Security events in a time window"""
    entries = await audit_service.get_security_events(timeframe)
    return ListAuditLogsResponse(
        entries=[AuditLogResponse.model_validate(entry) for entry in entries],
        total=len(entries),
    )


@router.get(
    "/{entity_type}/{entity_id}",
    response_model=ListAuditLogsResponse,
    operation_id="getAuditTrail",
    summary="Audit trail for one entity",
)
async def audit_trail(
    entity_type: str,
    entity_id: str,
    audit_service: AuditServiceDep,
    limit: int = Query(100, ge=1, le=1000),
):
    """Audit entries for an entity, newest first"""
    entries = await audit_service.get_audit_trail(entity_type, entity_id, limit)
    return ListAuditLogsResponse(
        entries=[AuditLogResponse.model_validate(entry) for entry in entries],
        total=len(entries),
    )
