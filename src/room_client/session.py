"""
Room Session

This module provides the RoomSession class, which owns the streaming
connection to a room once the RoomGate has validated it. It announces
membership, sends chat messages, and folds inbound events into two view
models: the MessageLog and the Roster.

Architecture:
    - One websocket per session, opened by start() and released by close()
    - Supports dependency injection for the network layer (for testability)
    - One receive task processes frames in delivery order
    - Explicit transition functions: handle_event() for inbound events,
      dispatch() for local commands

State machine:
    IDLE -> JOINING -> JOINED -> ENDED

There is no way back from ENDED; open a new session for a new room.

Usage:
    async with RoomSession(room_id, identity, state, ws_url) as session:
        await session.send("hello")
"""

import asyncio
import enum
import logging
from typing import Any, Callable, Optional, Tuple

import websockets
from websockets.exceptions import ConnectionClosed

from .config import DEFAULT_OPEN_TIMEOUT
from .errors import PreconditionMissing
from .events import (
    ChatReceived,
    Command,
    InboundEvent,
    Join,
    Leave,
    PresenceReceived,
    Send,
    parse_event,
)
from .gate import ValidationState
from .identity import Identity
from .schemas import JoinRoomRequest, RosterEntry, SendMessageRequest
from .views import Message, MessageLog, Roster

logger = logging.getLogger(__name__)

LEFT_ROOM_REASON = "Left room"


class SessionState(enum.Enum):
    """Lifecycle phase of a RoomSession."""

    IDLE = "idle"
    JOINING = "joining"
    JOINED = "joined"
    ENDED = "ended"


class RoomSession:
    """
    Live connection to one validated room.

    Attributes:
        room_id: Trimmed ID of the room
        identity: The local user
        validation: ValidationState produced by the RoomGate
        ws_url: URL of the messaging channel
        websocket: Active connection (None unless JOINED)
        state: Current SessionState
        messages: Append-only log of received chat messages
        roster: Latest presence snapshot
        closed_reason: Why the session ended, None while it is alive
    """

    def __init__(
        self,
        room_id: str,
        identity: Optional[Identity],
        validation: Optional[ValidationState],
        ws_url: str,
        websocket_factory: Optional[Callable] = None,
        open_timeout: float = DEFAULT_OPEN_TIMEOUT,
    ):
        """
        Initialize the session without connecting.

        Args:
            room_id: ID of the room; surrounding whitespace is removed
            identity: The local user
            validation: ValidationState from the RoomGate for this room
            ws_url: URL of the messaging channel
            websocket_factory: Optional factory for creating WebSocket
                             connections (for dependency injection/testing)
            open_timeout: Timeout for the websocket handshake

        Raises:
            PreconditionMissing: If there is no identity
        """
        if identity is None:
            raise PreconditionMissing("No identity available; log in first")

        self.room_id = room_id.strip()
        self.identity = identity
        self.validation = validation
        self.ws_url = ws_url
        self.websocket: Optional[Any] = None
        self.state = SessionState.IDLE
        self.messages = MessageLog()
        self.roster = Roster()
        self.closed_reason: Optional[str] = None
        self._websocket_factory = websocket_factory or websockets.connect
        self._open_timeout = open_timeout
        self._receive_task: Optional[asyncio.Task] = None

        # Callbacks for UI integration
        self._on_message: Optional[Callable[[Message], None]] = None
        self._on_roster: Optional[
            Callable[[Tuple[RosterEntry, ...]], None]
        ] = None
        self._on_state_changed: Optional[
            Callable[[SessionState], None]
        ] = None

        logger.info(
            "RoomSession created for room '%s' as %s",
            self.room_id,
            identity.name,
        )

    @property
    def is_connected(self) -> bool:
        """Check if the session currently holds an open connection."""
        return self.state is SessionState.JOINED and self.websocket is not None

    def set_on_message(self, callback: Callable[[Message], None]) -> None:
        """
        Register callback for each message appended to the log.

        Args:
            callback: Function that receives the new Message
        """
        self._on_message = callback

    def set_on_roster(
        self, callback: Callable[[Tuple[RosterEntry, ...]], None]
    ) -> None:
        """
        Register callback for roster replacements.

        Args:
            callback: Function that receives the new snapshot
        """
        self._on_roster = callback

    def set_on_state_changed(
        self, callback: Callable[[SessionState], None]
    ) -> None:
        """
        Register callback for session state transitions.

        Args:
            callback: Function that receives the new SessionState
        """
        self._on_state_changed = callback

    async def dispatch(self, command: Command) -> Any:
        """
        Apply a local command.

        Args:
            command: Join, Send or Leave

        Returns:
            For Send, whether the message was transmitted; otherwise None

        Raises:
            TypeError: If the command is not one of the known kinds
        """
        if isinstance(command, Join):
            return await self.start()
        if isinstance(command, Send):
            return await self.send(command.text)
        if isinstance(command, Leave):
            return await self.close()
        raise TypeError(f"Unknown command: {command!r}")

    async def start(self) -> None:
        """
        Open the connection and announce membership.

        The join announcement is fire-and-forget: the session is JOINED
        as soon as it is written. Membership is confirmed only by the
        roster events that follow.

        Raises:
            PreconditionMissing: If the room has not been validated
            RuntimeError: If the session was already started
            ConnectionError: If the connection cannot be opened
        """
        if self.state is not SessionState.IDLE:
            raise RuntimeError(
                f"Session for room '{self.room_id}' is already "
                f"{self.state.value}"
            )
        if self.validation is None or not self.validation.is_valid:
            raise PreconditionMissing(
                f"Room '{self.room_id}' has not been validated"
            )

        self._set_state(SessionState.JOINING)

        try:
            logger.info("Connecting to %s...", self.ws_url)
            websocket = await self._websocket_factory(
                self.ws_url, open_timeout=self._open_timeout
            )
        except Exception as e:
            logger.error("Failed to connect to %s: %s", self.ws_url, e)
            await self._end(f"Could not connect: {e}")
            raise ConnectionError(
                f"Could not connect to {self.ws_url}: {e}"
            ) from e

        if self.state is SessionState.ENDED:
            # close() ran while the handshake was in progress
            await websocket.close()
            return

        self.websocket = websocket
        request = JoinRoomRequest(
            room_id=self.room_id, username=self.identity.name
        )
        try:
            await websocket.send(request.to_json())
        except Exception as e:
            if self.state is SessionState.ENDED:
                return
            logger.error("Failed to join room '%s': %s", self.room_id, e)
            await self._end(f"Could not join: {e}")
            raise ConnectionError(
                f"Could not join room '{self.room_id}': {e}"
            ) from e

        if self.state is SessionState.ENDED:
            # close() ran while the join announcement was being written
            return

        self._set_state(SessionState.JOINED)
        logger.info("Joined room '%s'", self.room_id)
        self._receive_task = asyncio.create_task(self.receive_messages())

    async def send(self, text: str) -> bool:
        """
        Send a chat message to the room.

        Nothing is added to the message log here: the server broadcasts
        the message back to every member, the sender included.

        Args:
            text: Message text as typed

        Returns:
            True if the message was written to the connection, False if it
            was skipped (blank text, or no open connection)
        """
        if not text or not text.strip():
            logger.debug("Skipping blank message")
            return False
        if not self.is_connected:
            logger.debug("Skipping message: not connected")
            return False

        request = SendMessageRequest(
            room_id=self.room_id,
            message=text,
            username=self.identity.name,
        )
        try:
            await self.websocket.send(request.to_json())
        except ConnectionClosed as e:
            logger.warning("Message not sent, connection closed: %s", e)
            return False

        logger.debug("Sent message to room '%s'", self.room_id)
        return True

    async def receive_messages(self) -> None:
        """
        Receive and process frames until the connection goes away.

        Transport errors are logged and end the session; they are never
        raised to the caller.
        """
        logger.info("Starting message receive loop")
        reason = "Connection closed by server"

        try:
            async for frame in self.websocket:
                self._process_incoming_message(frame)
        except ConnectionClosed as e:
            logger.warning("Connection closed by server: %s", e)
        except Exception as e:
            logger.exception("Error in message receive loop: %s", e)
            reason = f"Connection error: {e}"

        await self._end(reason)

    def _process_incoming_message(self, frame: Any) -> None:
        """
        Parse one frame and apply it.

        Args:
            frame: Raw frame from the websocket
        """
        event = parse_event(frame)
        if event is not None:
            self.handle_event(event)

    def handle_event(self, event: InboundEvent) -> None:
        """
        Apply an inbound event to the view models.

        A chat event appends exactly one message; a presence event
        replaces the whole roster. Events arriving after the session has
        ended are ignored.

        Args:
            event: ChatReceived or PresenceReceived
        """
        if self.state is SessionState.ENDED:
            logger.debug("Ignoring %s after session end", type(event).__name__)
            return

        if isinstance(event, ChatReceived):
            message = self.messages.append(
                event.username, event.message, own_name=self.identity.name
            )
            self._notify(self._on_message, message)
        elif isinstance(event, PresenceReceived):
            self.roster.replace(event.users)
            self._notify(self._on_roster, self.roster.entries)
        else:
            logger.debug("Ignoring unknown event: %r", event)

    async def close(self) -> None:
        """
        Close the connection and end the session.

        Safe to call any number of times, and before start().
        """
        task = self._receive_task
        self._receive_task = None
        if task is not None and task is not asyncio.current_task():
            task.cancel()
            try:
                await task
            except asyncio.CancelledError:
                pass

        await self._end(LEFT_ROOM_REASON)

    async def _end(self, reason: str) -> None:
        """Release the connection and move to ENDED (once)."""
        websocket = self.websocket
        self.websocket = None

        if websocket is not None:
            try:
                await websocket.close()
            except Exception as e:
                logger.warning("Error while closing connection: %s", e)

        if self.state is SessionState.ENDED:
            return

        self.closed_reason = reason
        logger.info("Session for room '%s' ended: %s", self.room_id, reason)
        self._set_state(SessionState.ENDED)

    def _set_state(self, state: SessionState) -> None:
        self.state = state
        self._notify(self._on_state_changed, state)

    def _notify(self, callback: Optional[Callable], value: Any) -> None:
        if callback is None:
            return
        try:
            callback(value)
        except Exception:
            logger.exception("UI callback failed")

    async def __aenter__(self) -> "RoomSession":
        await self.start()
        return self

    async def __aexit__(self, exc_type, exc, tb) -> None:
        await self.close()
