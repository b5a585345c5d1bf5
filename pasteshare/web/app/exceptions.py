"""
Domain errors raised by the PasteShare services.

Each error carries the HTTP status it maps to; the application-level handler
in ``main.py`` renders them as ``{"message": ..., **extra}``.
"""
from typing import Any, Dict, Optional

from fastapi import status


class PasteShareError(Exception):
    """Base class for all service-level errors."""

    status_code: int = status.HTTP_500_INTERNAL_SERVER_ERROR

    def __init__(self, message: str, extra: Optional[Dict[str, Any]] = None):
        super().__init__(message)
        self.message = message
        self.extra = extra or {}

    def to_dict(self) -> Dict[str, Any]:
        return {"message": self.message, **self.extra}


class NotFoundError(PasteShareError):
    """Missing or expired resource."""
    status_code = status.HTTP_404_NOT_FOUND


class ForbiddenError(PasteShareError):
    """Edit not allowed, or password required/invalid."""
    status_code = status.HTTP_403_FORBIDDEN


class ValidationError(PasteShareError):
    """Malformed or empty payload after normalization."""
    status_code = status.HTTP_400_BAD_REQUEST


class ConflictError(PasteShareError):
    """Duplicate or reserved custom URL."""
    status_code = status.HTTP_409_CONFLICT


class PayloadTooLargeError(PasteShareError):
    status_code = status.HTTP_413_REQUEST_ENTITY_TOO_LARGE


class UnsupportedMediaTypeError(PasteShareError):
    status_code = status.HTTP_415_UNSUPPORTED_MEDIA_TYPE


class StorageError(PasteShareError):
    """Unexpected transaction or infrastructure failure."""

    def __init__(self, message: str, cause: Optional[BaseException] = None):
        super().__init__(message)
        self.cause = cause

    def to_dict(self) -> Dict[str, Any]:
        body = super().to_dict()
        if self.cause is not None:
            body["error"] = str(self.cause)
        return body
