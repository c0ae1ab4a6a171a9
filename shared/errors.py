"""
Shared error handling for the Employee Platform.

Recoverable-degraded errors (CacheUnavailable, TransportError, DecodeError) are
absorbed by the component that owns the dependency. Fatal errors (StoreError,
ValidationError, DuplicateKeyError) propagate to the caller.
"""

from typing import Dict, Any, Optional
from pydantic import BaseModel, Field

from shared.logging import request_id_var


class ErrorResponse(BaseModel):
    """Standard error response format."""

    request_id: Optional[str] = None
    code: str
    message: str
    details: Dict[str, Any] = Field(default_factory=dict)


class PlatformException(Exception):
    """Base exception for Employee Platform services."""

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


class ValidationError(PlatformException):
    """Request failed validation before touching storage."""

    status_code = 400

    def __init__(self, message: str = "Validation failed", details: Optional[Dict[str, Any]] = None):
        super().__init__("VALIDATION_ERROR", message, details)


class DuplicateKeyError(PlatformException):
    """A unique constraint rejected the write."""

    status_code = 409

    def __init__(self, message: str = "Duplicate key", details: Optional[Dict[str, Any]] = None):
        super().__init__("DUPLICATE_KEY", message, details)


class StoreError(PlatformException):
    """Ground-truth datastore unreachable or query failure."""

    status_code = 503

    def __init__(self, message: str = "Record store error", details: Optional[Dict[str, Any]] = None):
        super().__init__("STORE_ERROR", message, details)


class CacheUnavailable(PlatformException):
    """Shared cache could not serve the operation."""

    status_code = 503

    def __init__(self, message: str = "Cache unavailable", details: Optional[Dict[str, Any]] = None):
        super().__init__("CACHE_UNAVAILABLE", message, details)


class TransportError(PlatformException):
    """Event bus connect, publish or listen failure."""

    status_code = 503

    def __init__(self, message: str = "Event transport error", details: Optional[Dict[str, Any]] = None):
        super().__init__("TRANSPORT_ERROR", message, details)


class DecodeError(PlatformException):
    """Malformed event payload."""

    status_code = 400

    def __init__(self, message: str = "Malformed event", details: Optional[Dict[str, Any]] = None):
        super().__init__("DECODE_ERROR", message, details)
