"""
Custom exceptions
"""
from typing import Any

from fastapi import HTTPException


class BaseAPIException(HTTPException):
    """Base API exception with a structured error payload"""

    error_code = "error"

    def __init__(self, message: str, status_code: int, details: dict[str, Any] | None = None):
        super().__init__(
            status_code=status_code,
            detail={
                "error": self.error_code,
                "message": message,
                "details": details or {},
            },
        )
        self.message = message


class NotFoundException(BaseAPIException):
    """Resource not found exception"""

    error_code = "not_found"

    def __init__(self, message: str = "Resource not found"):
        super().__init__(message, status_code=404)


class BadRequestException(BaseAPIException):
    """Malformed input exception"""

    error_code = "bad_request"

    def __init__(self, message: str = "Bad request"):
        super().__init__(message, status_code=400)


class InvalidTransitionException(BaseAPIException):
    """Rejected state transition (e.g. resolving an already-resolved item)"""

    error_code = "invalid_transition"

    def __init__(self, message: str = "Invalid state transition", current_status: str | None = None):
        details = {"current_status": current_status} if current_status else None
        super().__init__(message, status_code=409, details=details)


class AIServiceException(BaseAPIException):
    """AI service error exception"""

    error_code = "ai_service_error"

    def __init__(self, message: str = "AI service error"):
        super().__init__(message, status_code=502)
