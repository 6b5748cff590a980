"""
Error Types for the Room Client

Exceptions raised or carried by the room client. Validation failures are
never raised out of the RoomGate; they travel on the Invalid validation
state so the presentation layer can show the reason.
"""

from typing import Optional


class RoomClientError(Exception):
    """Base class for all room client errors."""


class PreconditionMissing(RoomClientError):
    """Raised when the session cannot start (no identity, room not valid)."""


class RoomValidationError(RoomClientError):
    """
    Base class for room directory check failures.

    Attributes:
        reason: Human-readable reason shown to the user
    """

    def __init__(self, reason: str):
        super().__init__(reason)
        self.reason = reason


class RoomNotFound(RoomValidationError):
    """
    The directory answered with a non-success status.

    Attributes:
        reason: Server-supplied reason, status text, or a generic fallback
        status_code: HTTP status code of the response
    """

    def __init__(self, reason: str, status_code: Optional[int] = None):
        super().__init__(reason)
        self.status_code = status_code


class DirectoryUnreachable(RoomValidationError):
    """The directory could not be reached at all."""
