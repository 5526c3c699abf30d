"""
Chat endpoints
"""
from fastapi import APIRouter

from src.core.dependencies import ChatServiceDep, RequestContextDep
from src.models.requests import SubmitMessageRequest
from src.models.responses import SubmitMessageResponse

router = APIRouter(prefix="/api/v1/chat", tags=["Chat"])


@router.post(
    "/reply",
    response_model=SubmitMessageResponse,
    operation_id="submitFanMessage",
    summary="Submit a fan message to a persona",
    description="""
    Run a fan message through the safety pipeline and return the text to
    deliver to the fan.

    Policy outcomes (stopped, blocked, review, escalated, consent_required)
    are successful responses; `terminal_state` says which one was reached.
    """,
    responses={
        200: {
            "description": "Message processed",
            "content": {
                "application/json": {
                    "example": {
                        "reply_text": "Aww, you always know how to make me smile 💕",
                        "terminal_state": "responded",
                        "queued_actions": []
                    }
                }
            }
        },
        404: {"description": "Fan or persona not found"},
        422: {"description": "Validation error - Request body validation failed"},
        500: {"description": "Internal server error"}
    }
)
async def submit_fan_message(
    request: SubmitMessageRequest,
    chat_service: ChatServiceDep,
    request_context: RequestContextDep,
):
    """Submit a fan message for a persona"""
    result = await chat_service.submit_fan_message(
        fan_id=request.fan_id,
        persona_id=request.persona_id,
        text=request.text,
        request_context=request_context,
    )

    return SubmitMessageResponse(
        reply_text=result.reply_text,
        terminal_state=result.terminal_state,
        queued_actions=result.queued_actions,
    )
