"""
Shared error handling for the chat gateway.
"""

from typing import Dict, Any, Optional
from pydantic import BaseModel


class ErrorResponse(BaseModel):
    """Standard error response format."""

    error: str


class GatewayException(Exception):
    """Base exception for gateway services."""

    status_code: int = 500

    def __init__(
        self,
        code: str,
        message: str,
        details: Optional[Dict[str, Any]] = None,
        status_code: Optional[int] = None,
    ):
        self.code = code
        self.message = message
        self.details = details or {}
        if status_code is not None:
            self.status_code = status_code
        super().__init__(message)

    def to_response(self) -> ErrorResponse:
        """Convert to error response."""
        return ErrorResponse(error=self.message)


class ValidationError(GatewayException):
    """Malformed request body."""

    status_code = 400

    def __init__(self, message: str = "Validation failed", details: Optional[Dict[str, Any]] = None):
        super().__init__("VALIDATION_ERROR", message, details)


class MethodNotAllowedError(GatewayException):
    """HTTP method not served by the endpoint."""

    status_code = 405

    def __init__(self, message: str = "Method Not Allowed", details: Optional[Dict[str, Any]] = None):
        super().__init__("METHOD_NOT_ALLOWED", message, details)


class RateLimitError(GatewayException):
    """Local per-client rate limit exceeded."""

    status_code = 429

    def __init__(self, message: str = "Too many requests, please slow down", details: Optional[Dict[str, Any]] = None):
        super().__init__("RATE_LIMIT_ERROR", message, details)


class UpstreamOverloadedError(GatewayException):
    """The completion service signalled overload (HTTP 429)."""

    status_code = 429

    def __init__(self, message: str = "AI is busy, please try again later", details: Optional[Dict[str, Any]] = None):
        super().__init__("UPSTREAM_OVERLOADED", message, details)


class UpstreamError(GatewayException):
    """The completion service failed or answered with an error payload."""

    status_code = 500

    def __init__(self, message: str = "Upstream API Error", details: Optional[Dict[str, Any]] = None):
        super().__init__("UPSTREAM_ERROR", message, details)


class ConfigurationError(GatewayException):
    """Required deployment configuration is missing."""

    status_code = 500

    def __init__(self, message: str = "Configuration error", details: Optional[Dict[str, Any]] = None):
        super().__init__("CONFIGURATION_ERROR", message, details)
