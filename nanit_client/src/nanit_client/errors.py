# src/nanit_client/errors.py

from typing import Optional


class NanitError(Exception):
    """Base class for every failure surfaced by the Nanit client."""

    def __init__(self, message: str):
        self.message = message
        super().__init__(message)


class NotAuthenticated(NanitError):
    def __init__(self, message: str = "Not authenticated"):
        super().__init__(message)


class SessionExpired(NanitError):
    """The session could not be renewed. Raised only after the session was cleared."""

    def __init__(self, message: str = "Session expired. Please sign in again."):
        super().__init__(message)


class Unauthorized(NanitError):
    """The vendor answered an authenticated call with HTTP 401."""

    def __init__(self, message: str = "Unauthorized"):
        super().__init__(message)


class UpstreamError(NanitError):
    """
    A non-401 failure from the vendor (or the proxy in front of it).
    status_code is None when no HTTP response was received at all.
    """

    def __init__(self, message: str, status_code: Optional[int] = None):
        self.status_code = status_code
        super().__init__(message)

    def __str__(self) -> str:
        if self.status_code is None:
            return self.message
        return f"{self.status_code}: {self.message}"


class InvalidResponse(NanitError):
    """A success status whose body lacks the expected token field."""


class FlowStateError(NanitError):
    """A login step was submitted while the flow was in a different state."""


def requires_login(error: BaseException) -> bool:
    """True when the UI should send the user back to the sign-in screen."""
    return isinstance(error, (NotAuthenticated, SessionExpired))
