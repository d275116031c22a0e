"""Exception hierarchy shared by the API client, workspace and import pipeline."""
from __future__ import annotations

from typing import Optional


class LeadboardError(Exception):
    """Base class for every error raised by :mod:`leadboard`."""


class ValidationError(LeadboardError, ValueError):
    """Raised for input that is rejected before any network call is made."""


class FileValidationError(ValidationError):
    """Raised when an uploaded spreadsheet fails the type, size or content gate."""


class LeadNotLoadedError(LeadboardError, KeyError):
    """Raised when a mutation targets a lead that no projection holds."""

    def __init__(self, lead_id: str) -> None:
        self.lead_id = lead_id
        super().__init__(lead_id)

    def __str__(self) -> str:
        return f"Lead '{self.lead_id}' is not loaded in any view"


class ApiError(LeadboardError):
    """Raised when the remote record store rejects a request."""

    default_message = "Request failed"

    def __init__(self, message: Optional[str] = None, *, status_code: Optional[int] = None) -> None:
        self.message = message or self.default_message
        self.status_code = status_code
        super().__init__(self.message)

    @property
    def user_message(self) -> str:
        return self.message


class AuthenticationError(ApiError):
    default_message = "Authentication required. Please log in again."

    @property
    def user_message(self) -> str:
        return self.default_message


class PermissionDeniedError(ApiError):
    default_message = "Permission denied"

    @property
    def user_message(self) -> str:
        if self.message and self.message != self.default_message:
            return f"Permission denied: {self.message}"
        return self.default_message


class NotFoundError(ApiError):
    default_message = "Not found"


class NetworkError(ApiError):
    """Transport level failure (connection refused, timeout, ...)."""

    default_message = "Network error"


__all__ = [
    "LeadboardError",
    "ValidationError",
    "FileValidationError",
    "LeadNotLoadedError",
    "ApiError",
    "AuthenticationError",
    "PermissionDeniedError",
    "NotFoundError",
    "NetworkError",
]
