"""
Consent endpoints
"""
from fastapi import APIRouter

from src.core.dependencies import FanServiceDep, RequestContextDep
from src.models.requests import ConsentAffirmationRequest
from src.models.responses import ConsentStatusResponse

router = APIRouter(prefix="/api/v1/consent", tags=["Consent"])


@router.post(
    "/affirm",
    response_model=ConsentStatusResponse,
    operation_id="affirmConsent",
    summary="Record a fan's consent affirmation",
    description="""
    Replace the fan's consent record from the affirmation phrases supplied.

    `"I am 18+"` sets `age_affirmed`; `"I consent to romantic messages"` sets
    `romantic_content`. A phrase left out clears its flag.
    """,
    responses={
        404: {"description": "Fan not found"},
        422: {"description": "Validation error - Request body validation failed"},
    }
)
async def affirm_consent(
    request: ConsentAffirmationRequest,
    fan_service: FanServiceDep,
    request_context: RequestContextDep,
):
    """Record consent affirmation"""
    consent = await fan_service.record_consent(
        fan_id=request.fan_id,
        affirmations=request.affirmations,
        request_context=request_context,
    )

    return ConsentStatusResponse(
        fan_id=request.fan_id,
        age_affirmed=consent.age_affirmed,
        romantic_content=consent.romantic_content,
        affirmed_at=consent.affirmed_at,
    )
