"""
Error taxonomy for the calendar sync service.

Every error carries the HTTP status and the short "error" kind used in
response bodies: {"error": <kind>, "message": <text>}.
"""

from typing import Optional


class CalendarSyncError(Exception):
    """Base class for all domain errors."""
    status_code = 500
    error = "InternalError"

    def __init__(self, message: str = "", status_code: Optional[int] = None):
        super().__init__(message or self.__class__.__doc__ or self.error)
        self.message = message or (self.__class__.__doc__ or self.error).strip()
        if status_code is not None:
            self.status_code = status_code

    def to_dict(self) -> dict:
        return {"error": self.error, "message": self.message}


class Unauthorized(CalendarSyncError):
    """No user found."""
    status_code = 401
    error = "Unauthorized"


class NoCredential(Unauthorized):
    """No Google connection found."""
    error = "NoCredential"


class RefreshFailed(Unauthorized):
    """Token refresh failed. Please reconnect your Google account."""
    error = "RefreshFailed"


class BadRequest(CalendarSyncError):
    """Malformed request."""
    status_code = 400
    error = "BadRequest"


class MissingCode(BadRequest):
    """Missing authorization code"""


class TokenExchangeFailed(CalendarSyncError):
    """Failed to exchange code"""
    status_code = 400
    error = "TokenExchange"


class NotFound(CalendarSyncError):
    """Resource not found."""
    status_code = 404
    error = "NotFound"


class ConfigurationError(CalendarSyncError):
    """Google Client ID not configured"""
    status_code = 500
    error = "Configuration"


class StoreError(CalendarSyncError):
    """Local store write failed."""
    status_code = 500
    error = "StoreError"


class ProviderError(CalendarSyncError):
    """
    Transport or API failure from Google.

    The original HTTP status is kept so the API can pass it through.
    """
    error = "GoogleAPI"

    def __init__(self, status: Optional[int], message: str):
        # Transport failures have no provider status
        super().__init__(message, status_code=status or 502)
        self.status = status
