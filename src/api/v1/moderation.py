"""
Moderation queue endpoints
"""
from datetime import date

from fastapi import APIRouter, Query

from src.core.dependencies import ModerationServiceDep, RequestContextDep
from src.models.entities import ModerationStatus
from src.models.internal import ModerationStats
from src.models.requests import ResolveModerationRequest
from src.models.responses import ListModerationResponse, ModerationItemResponse

router = APIRouter(prefix="/api/v1/moderation", tags=["Moderation"])


@router.get(
    "/queue",
    response_model=ListModerationResponse,
    operation_id="listModerationQueue",
    summary="List moderation queue items",
)
async def list_queue(
    moderation_service: ModerationServiceDep,
    status: ModerationStatus | None = Query(None, description="Only items with this status"),
):
    """List queue items, newest first"""
    items = await moderation_service.list_queue(status)

    return ListModerationResponse(
        items=[ModerationItemResponse.model_validate(item) for item in items],
        total=len(items),
    )


@router.put(
    "/queue/{item_id}",
    response_model=ModerationItemResponse,
    operation_id="resolveModerationItem",
    summary="Resolve a pending moderation item",
    description="""
    Move a pending item to `approved` or `blocked`.

    Resolving an item that is no longer pending, or moving it to any other
    status, is rejected with 409.
    """,
    responses={
        404: {"description": "Moderation item not found"},
        409: {"description": "Item already resolved or invalid target status"},
    }
)
async def resolve_item(
    item_id: str,
    request: ResolveModerationRequest,
    moderation_service: ModerationServiceDep,
    request_context: RequestContextDep,
):
    """Resolve a moderation item"""
    item = await moderation_service.resolve(
        item_id=item_id,
        status=request.status,
        reviewer_id=request.reviewer_id,
        request_context=request_context,
    )
    return ModerationItemResponse.model_validate(item)


@router.get(
    "/stats",
    response_model=ModerationStats,
    operation_id="getModerationStats",
    summary="Queue counts for one UTC day",
)
async def moderation_stats(
    moderation_service: ModerationServiceDep,
    day: date | None = Query(None, description="UTC day, defaults to today"),
):
    """Moderation stats"""
    return await moderation_service.moderation_stats(day)
