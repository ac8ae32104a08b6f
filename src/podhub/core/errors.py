"""Error handling module for podhub.

This module defines error codes, exception classes, and response models.

Error Response Format:
{
    "error": {
        "code": "INVALID_ACTION",
        "message": "Invalid action specified"
    }
}

Provider-side errors (ConfigurationMissingError, ProviderUnavailableError,
InstanceNotFoundError) are raised inside the RunPod client and converted to
sentinel return values at its boundary. They never reach the API layer.

Usage:
    from podhub.core.errors import InvalidActionError

    raise InvalidActionError()
"""

from enum import Enum

from pydantic import BaseModel


class ErrorCode(str, Enum):
    """Error codes."""

    CONFIGURATION_MISSING = "CONFIGURATION_MISSING"
    PROVIDER_UNAVAILABLE = "PROVIDER_UNAVAILABLE"
    INSTANCE_NOT_FOUND = "INSTANCE_NOT_FOUND"
    POD_NOT_ACTIVE = "POD_NOT_ACTIVE"
    INVALID_ACTION = "INVALID_ACTION"


class ErrorDetail(BaseModel):
    """Error detail containing code and message."""

    code: str
    message: str


class ErrorResponse(BaseModel):
    """Error response format."""

    error: ErrorDetail


class PodHubError(Exception):
    """Base exception for podhub.

    Attributes:
        code: The error code from ErrorCode enum
        message: Human-readable error message
        status_code: HTTP status code to return
    """

    def __init__(self, code: ErrorCode, message: str, status_code: int) -> None:
        self.code = code
        self.message = message
        self.status_code = status_code
        super().__init__(message)

    def to_response(self) -> ErrorResponse:
        """Convert exception to ErrorResponse model."""
        return ErrorResponse(
            error=ErrorDetail(code=self.code.value, message=self.message)
        )


class ConfigurationMissingError(PodHubError):
    """500 - Required configuration (API credential) is absent."""

    def __init__(self, message: str = "RUNPOD_API_KEY is not set") -> None:
        super().__init__(ErrorCode.CONFIGURATION_MISSING, message, 500)


class ProviderUnavailableError(PodHubError):
    """502 Bad Gateway - Provider API unreachable or returned an error."""

    def __init__(
        self,
        message: str = "Provider API unavailable",
        provider_status: int | None = None,
    ) -> None:
        self.provider_status = provider_status
        super().__init__(ErrorCode.PROVIDER_UNAVAILABLE, message, 502)


class InstanceNotFoundError(PodHubError):
    """404 Not Found - Pod no longer exists at the provider."""

    def __init__(self, pod_id: str, message: str | None = None) -> None:
        self.pod_id = pod_id
        super().__init__(
            ErrorCode.INSTANCE_NOT_FOUND, message or f"Pod {pod_id} not found", 404
        )


class PodNotActiveError(PodHubError):
    """404 Not Found - No pod is currently in service."""

    def __init__(self, message: str = "No active pod") -> None:
        super().__init__(ErrorCode.POD_NOT_ACTIVE, message, 404)


class InvalidActionError(PodHubError):
    """400 Bad Request - Unknown pod-session action."""

    def __init__(
        self,
        message: str = 'Invalid action specified. Use "register" or "unregister".',
    ) -> None:
        super().__init__(ErrorCode.INVALID_ACTION, message, 400)
