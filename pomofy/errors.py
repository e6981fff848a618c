"""
Exception taxonomy for Pomofy.

Engine errors (``ConfigError``) are raised straight to the caller. Auth and
API errors come out of the Spotify client and are turned into
``ServiceResult`` failures by the service layer.
"""

from typing import Optional


class PomofyError(Exception):
    """Base class for all Pomofy errors."""


class ConfigError(PomofyError):
    """Invalid duration or cadence input."""

    def __init__(self, field_name: str, message: str):
        self.field_name = field_name
        self.message = message
        super().__init__(f"{field_name}: {message}")


class AuthError(PomofyError):
    """Authorization callback rejected (state mismatch or malformed)."""


class AuthRequiredError(PomofyError):
    """No usable access token is available."""


class AuthFailedError(PomofyError):
    """Token refresh after a 401 did not recover the session."""


class ApiError(PomofyError):
    """Non-auth failure reported by the Spotify Web API."""

    def __init__(self, status_code: Optional[int], message: str):
        self.status_code = status_code
        self.message = message
        super().__init__(f"[{status_code}] {message}" if status_code is not None else message)


class TransportError(ApiError):
    """The request never produced an HTTP response."""

    def __init__(self, message: str):
        super().__init__(None, message)
