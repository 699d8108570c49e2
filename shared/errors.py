"""
Shared error handling for the Relief Intelligence Layer.

Only InputError is meant to reach API callers. UpstreamError, CacheError and
RelayUnavailable are raised inside the layer and absorbed where they occur.
"""

from typing import Dict, Any, Optional

from pydantic import BaseModel

from shared.logging import request_id_var


class ErrorResponse(BaseModel):
    """Standard error response format."""

    request_id: Optional[str] = None
    code: str
    message: str
    details: Dict[str, Any] = {}


class ReliefLayerException(Exception):
    """Base exception for Relief Intelligence Layer services."""

    status_code = 500

    def __init__(self, code: str, message: str, details: Optional[Dict[str, Any]] = None):
        self.code = code
        self.message = message
        self.details = details or {}
        super().__init__(message)

    def to_response(self) -> ErrorResponse:
        """Convert to error response."""
        return ErrorResponse(
            request_id=request_id_var.get(),
            code=self.code,
            message=self.message,
            details=self.details
        )


class InputError(ReliefLayerException):
    """Malformed caller input to a resolver."""

    status_code = 400

    def __init__(self, message: str = "Invalid input", details: Optional[Dict[str, Any]] = None):
        super().__init__("INPUT_ERROR", message, details)


class UpstreamError(ReliefLayerException):
    """Failure of an external provider call."""

    status_code = 502

    def __init__(self, provider: str, message: str = "Upstream call failed", details: Optional[Dict[str, Any]] = None):
        self.provider = provider
        super().__init__("UPSTREAM_ERROR", f"{provider}: {message}", details)


class CacheError(ReliefLayerException):
    """Storage-layer failure in the cache store."""

    def __init__(self, message: str = "Cache operation failed", details: Optional[Dict[str, Any]] = None):
        super().__init__("CACHE_ERROR", message, details)


class RelayUnavailable(ReliefLayerException):
    """The realtime relay could not be reached."""

    status_code = 503

    def __init__(self, message: str = "Realtime relay unavailable", details: Optional[Dict[str, Any]] = None):
        super().__init__("RELAY_UNAVAILABLE", message, details)
