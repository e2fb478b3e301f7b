"""
Error types shared by the service, the analyzer and the chat client.

Every error carries the HTTP status it maps to so routers can let them
propagate and the app-level handler renders ``{"error": message}``.
"""
from typing import Optional


class CropWatchError(Exception):
    """Base class for errors surfaced to API callers."""

    status_code = 500

    def __init__(self, message: str, status_code: Optional[int] = None):
        super().__init__(message)
        self.message = message
        if status_code is not None:
            self.status_code = status_code


class AuthorizationError(CropWatchError):
    """Missing or invalid credentials."""

    status_code = 401


class NotFoundError(CropWatchError):
    """Resource absent or not owned by the caller."""

    status_code = 404


class ExternalServiceError(CropWatchError):
    """A downstream store, weather or model call failed."""

    status_code = 502


class ParseError(CropWatchError):
    """A payload from an external service did not match its schema."""

    status_code = 502
