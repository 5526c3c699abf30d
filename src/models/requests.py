"""
Request models for API endpoints
"""
from pydantic import BaseModel, ConfigDict, Field, field_validator

from src.models.entities import ModerationStatus

MAX_MESSAGE_LENGTH = 4000


class SubmitMessageRequest(BaseModel):
    """Inbound fan message for a persona"""
    model_config = ConfigDict(
        str_strip_whitespace=True,
        validate_assignment=True,
        json_schema_extra={
            "examples": [
                {
                    "fan_id": "2b9c7f4e-1f7a-4a52-9b1e-0f3d8a6c1e11",
                    "persona_id": "7d1e3a52-5c4b-4f0e-8a77-3c2b1d0e9f66",
                    "text": "you're so sweet today"
                }
            ]
        }
    )

    fan_id: str = Field(..., min_length=1, description="Fan identifier")
    persona_id: str = Field(..., min_length=1, description="Persona identifier")
    text: str = Field(..., description="Message text from the fan")

    @field_validator("text")
    @classmethod
    def validate_text(cls, v: str) -> str:
        """Reject empty or oversized messages"""
        if not v:
            raise ValueError("text is required")
        if len(v) > MAX_MESSAGE_LENGTH:
            raise ValueError(f"text exceeds {MAX_MESSAGE_LENGTH} characters")
        return v


class ConsentAffirmationRequest(BaseModel):
    """Fan-initiated consent affirmation"""
    model_config = ConfigDict(
        str_strip_whitespace=True,
        json_schema_extra={
            "examples": [
                {
                    "fan_id": "2b9c7f4e-1f7a-4a52-9b1e-0f3d8a6c1e11",
                    "affirmations": ["I am 18+", "I consent to romantic messages"]
                }
            ]
        }
    )

    fan_id: str = Field(..., min_length=1)
    affirmations: list[str] = Field(default_factory=list, max_length=10)


class ResolveModerationRequest(BaseModel):
    """Human review decision for a queue item"""
    model_config = ConfigDict(str_strip_whitespace=True)

    status: ModerationStatus = Field(..., description="New status: approved or blocked")
    reviewer_id: str = Field(..., min_length=1, description="Identity of the reviewer")
