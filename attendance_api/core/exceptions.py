"""Application exceptions.

Every exception renders as::

    {"success": false, "error": {"code": ..., "message": ..., "details": {...}}}
"""

from typing import Any

from fastapi import HTTPException, status


class AppException(HTTPException):
    """Base application exception; subclasses set the status and code."""

    status_code = status.HTTP_500_INTERNAL_SERVER_ERROR
    code = "INTERNAL_ERROR"
    default_message = "An internal server error occurred"

    def __init__(
        self,
        message: str | None = None,
        details: dict[str, Any] | None = None,
        status_code: int | None = None,
    ):
        self.message = message or self.default_message
        self.details = details or {}
        super().__init__(
            status_code=status_code or type(self).status_code,
            detail=self.error_body(),
        )

    def error_body(self) -> dict[str, Any]:
        return {
            "success": False,
            "error": {
                "code": self.code,
                "message": self.message,
                "details": self.details,
            },
        }


class ValidationError(AppException):
    """Data validation failed."""

    status_code = status.HTTP_422_UNPROCESSABLE_ENTITY
    code = "VALIDATION_ERROR"
    default_message = "Validation error"


class NotFoundError(AppException):
    status_code = status.HTTP_404_NOT_FOUND
    code = "NOT_FOUND"

    def __init__(self, resource: str = "Resource", identifier: str | None = None):
        super().__init__(
            f"{resource} not found",
            details={"identifier": identifier} if identifier else None,
        )


class ConflictError(AppException):
    """Resource collides with an existing unique value."""

    status_code = status.HTTP_409_CONFLICT
    code = "CONFLICT"
    default_message = "Resource already exists"


class UpstreamServiceError(AppException):
    """External text-generation service failed.

    ``message`` is what the caller sees and must be safe to show to an end
    user; ``reason`` carries the raw upstream cause for logging only.
    """

    status_code = status.HTTP_502_BAD_GATEWAY
    code = "UPSTREAM_ERROR"

    NOT_CONFIGURED = "AI service is not configured. Please contact the administrator."
    AUTH_FAILED = "The AI service authentication failed. Please check the API key configuration."
    GENERIC = "Sorry, I encountered an error processing your request."
    default_message = GENERIC

    def __init__(
        self,
        message: str | None = None,
        reason: str | None = None,
        status_code: int | None = None,
    ):
        self.reason = reason
        super().__init__(message, status_code=status_code)

    @classmethod
    def not_configured(cls) -> "UpstreamServiceError":
        return cls(
            cls.NOT_CONFIGURED,
            reason="GROQ_API_KEY is not configured",
            status_code=status.HTTP_503_SERVICE_UNAVAILABLE,
        )

    @classmethod
    def auth_failed(cls, reason: str | None = None) -> "UpstreamServiceError":
        return cls(cls.AUTH_FAILED, reason=reason)
