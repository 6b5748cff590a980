"""
Room Gate

This module decides, once per room ID, whether the client may open a
streaming connection for that room. It asks the room directory
(``GET /rooms/{roomId}``) and records the answer as a ValidationState:

    Checking -> Valid
    Checking -> Invalid(reason)

Both terminal states are final for that room ID. Failures are not raised;
they are carried on the Invalid state together with the typed error that
produced them (RoomNotFound or DirectoryUnreachable).

Usage:
    gate = RoomGate("http://localhost:3000", identity)
    state = await gate.check(" abc ")
    if state.is_valid:
        ...
"""

import asyncio
import enum
import logging
from dataclasses import dataclass
from typing import Callable, Optional
from urllib.parse import quote

import httpx

from .config import DEFAULT_CHECK_TIMEOUT
from .errors import (
    DirectoryUnreachable,
    PreconditionMissing,
    RoomNotFound,
    RoomValidationError,
)
from .identity import Identity
from .schemas import RoomErrorBody

logger = logging.getLogger(__name__)

DIRECTORY_UNREACHABLE_REASON = "Error connecting to server"
ROOM_NOT_FOUND_REASON = "Room not found"


class ValidationStatus(enum.Enum):
    """Phase of the room directory check."""

    CHECKING = "checking"
    VALID = "valid"
    INVALID = "invalid"


@dataclass(frozen=True)
class ValidationState:
    """
    Outcome of the room directory check.

    Attributes:
        status: Current phase
        reason: User-facing reason, set only when INVALID
        error: Typed failure, set only when INVALID
    """

    status: ValidationStatus
    reason: Optional[str] = None
    error: Optional[RoomValidationError] = None

    @classmethod
    def checking(cls) -> "ValidationState":
        return cls(ValidationStatus.CHECKING)

    @classmethod
    def valid(cls) -> "ValidationState":
        return cls(ValidationStatus.VALID)

    @classmethod
    def invalid(cls, error: RoomValidationError) -> "ValidationState":
        return cls(ValidationStatus.INVALID, reason=error.reason, error=error)

    @property
    def is_valid(self) -> bool:
        return self.status is ValidationStatus.VALID

    @property
    def is_invalid(self) -> bool:
        return self.status is ValidationStatus.INVALID


class RoomGate:
    """
    Validates a room ID against the room directory.

    Only one directory request is ever issued per distinct room ID. Asking
    again for the same ID returns the recorded state, or waits for the
    request already in flight; a different ID starts a new check.

    Attributes:
        server_url: Base URL of the room directory
        identity: The local user; required
        room_id: Trimmed ID of the room being validated
        state: Current ValidationState (None before the first check)
    """

    def __init__(
        self,
        server_url: str,
        identity: Optional[Identity],
        http_client: Optional[httpx.AsyncClient] = None,
        timeout: float = DEFAULT_CHECK_TIMEOUT,
    ):
        """
        Initialize the gate.

        Args:
            server_url: Base URL of the room directory
            identity: The local user
            http_client: Optional client to issue requests with (for
                dependency injection/testing). The caller owns it.
            timeout: Request timeout when the gate creates its own client
        """
        self.server_url = server_url.rstrip("/")
        self.identity = identity
        self.room_id: Optional[str] = None
        self.state: Optional[ValidationState] = None
        self._http_client = http_client
        self._timeout = timeout
        self._check_task: Optional[asyncio.Task] = None
        self._on_state_changed: Optional[
            Callable[[ValidationState], None]
        ] = None

    def set_on_state_changed(
        self, callback: Callable[[ValidationState], None]
    ) -> None:
        """
        Register callback for validation state transitions.

        Args:
            callback: Function that receives each new ValidationState
        """
        self._on_state_changed = callback

    async def check(self, room_id: str) -> ValidationState:
        """
        Validate a room ID, issuing at most one request per distinct ID.

        Args:
            room_id: Room ID as supplied; surrounding whitespace is removed

        Returns:
            The terminal ValidationState for the room

        Raises:
            PreconditionMissing: If there is no identity
            ValueError: If the room ID is empty after trimming
        """
        if self.identity is None:
            raise PreconditionMissing("No identity available; log in first")

        room_id = room_id.strip()
        if not room_id:
            raise ValueError("Room ID must not be empty")

        if room_id == self.room_id and self._check_task is not None:
            logger.debug("Reusing directory check for room '%s'", room_id)
            return await self._check_task

        self.room_id = room_id
        self._set_state(ValidationState.checking())
        self._check_task = asyncio.ensure_future(self._run_check(room_id))
        return await self._check_task

    async def _run_check(self, room_id: str) -> ValidationState:
        state = await self._lookup(room_id)
        # A newer room ID may have replaced this one while we waited
        if room_id == self.room_id:
            self._set_state(state)
        return state

    async def _lookup(self, room_id: str) -> ValidationState:
        """
        Issue the directory request and interpret the response.

        Args:
            room_id: Trimmed room ID

        Returns:
            VALID or INVALID ValidationState
        """
        url = f"{self.server_url}/rooms/{quote(room_id, safe='')}"
        logger.info("Checking room '%s' at %s", room_id, url)

        try:
            if self._http_client is not None:
                response = await self._http_client.get(url)
            else:
                async with httpx.AsyncClient(timeout=self._timeout) as client:
                    response = await client.get(url)
        except (httpx.HTTPError, httpx.InvalidURL) as e:
            logger.error("Room directory unreachable: %s", e)
            return ValidationState.invalid(
                DirectoryUnreachable(DIRECTORY_UNREACHABLE_REASON)
            )

        if response.is_success:
            logger.info("Room '%s' found", room_id)
            return ValidationState.valid()

        try:
            body = RoomErrorBody.from_dict(response.json())
        except ValueError:
            body = RoomErrorBody()

        reason = body.msg or response.reason_phrase or ROOM_NOT_FOUND_REASON
        logger.warning(
            "Room '%s' rejected (%s): %s",
            room_id,
            response.status_code,
            reason,
        )
        return ValidationState.invalid(
            RoomNotFound(reason, status_code=response.status_code)
        )

    def _set_state(self, state: ValidationState) -> None:
        self.state = state
        if self._on_state_changed:
            self._on_state_changed(state)
