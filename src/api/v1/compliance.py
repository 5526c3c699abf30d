"""
Compliance endpoints
"""
from datetime import UTC, datetime

from fastapi import APIRouter, Query

from src.core.dependencies import ComplianceServiceDep
from src.core.exceptions import BadRequestException
from src.models.responses import AuditLogResponse, ComplianceReportResponse, ComplianceScoreResponse

router = APIRouter(prefix="/api/v1/compliance", tags=["Compliance"])


@router.get(
    "/score",
    response_model=ComplianceScoreResponse,
    operation_id="getComplianceScore",
    summary="Compliance score over the moderation queue",
)
async def compliance_score(compliance_service: ComplianceServiceDep):
    """Queue-derived compliance score"""
    score = await compliance_service.compliance_score()
    return ComplianceScoreResponse(compliance_score=score)


@router.get(
    "/report",
    response_model=ComplianceReportResponse,
    operation_id="getComplianceReport",
    summary="Audit-derived compliance report for a creator",
    responses={
        400: {"description": "start is after end"},
    }
)
async def compliance_report(
    compliance_service: ComplianceServiceDep,
    creator_id: str = Query(..., min_length=1),
    start: datetime = Query(..., description="Window start (inclusive)"),
    end: datetime = Query(..., description="Window end (inclusive)"),
):
    """Compliance report"""
    start = _as_utc(start)
    end = _as_utc(end)
    if start > end:
        raise BadRequestException("start must not be after end")

    report = await compliance_service.generate_report(creator_id, start, end)

    return ComplianceReportResponse(
        creator_id=creator_id,
        start=start,
        end=end,
        total_interactions=report.total_interactions,
        moderated_messages=report.moderated_messages,
        blocked_messages=report.blocked_messages,
        escalations=report.escalations,
        compliance_score=report.compliance_score,
        key_events=[AuditLogResponse.model_validate(entry) for entry in report.key_events],
    )


def _as_utc(value: datetime) -> datetime:
    """Naive query timestamps are UTC"""
    return value if value.tzinfo else value.replace(tzinfo=UTC)
