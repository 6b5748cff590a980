"""
Room Client Package

This package provides the client side of a real-time chat room:

    - RoomGate: checks that a room exists before anything connects
    - RoomSession: owns the websocket to a validated room and keeps the
      message log and roster up to date
    - ui: the Textual terminal interface

Schemas are organized in the `schemas` subpackage by category:
    - room: Room directory responses
    - member: Join announcement and roster snapshots
    - message: Chat message operations
"""

from .config import ClientConfig
from .errors import (
    DirectoryUnreachable,
    PreconditionMissing,
    RoomClientError,
    RoomNotFound,
    RoomValidationError,
)
from .events import (
    ChatReceived,
    Join,
    Leave,
    PresenceReceived,
    Send,
    parse_event,
)
from .gate import RoomGate, ValidationState, ValidationStatus
from .identity import Identity, load_identity
from .session import RoomSession, SessionState
from .views import Message, MessageLog, Roster
from .schemas import (
    JoinRoomRequest,
    ReceiveMessageNotification,
    RoomErrorBody,
    RoomUsersNotification,
    RosterEntry,
    SendMessageRequest,
)

__all__ = [
    # Configuration and identity
    "ClientConfig",
    "Identity",
    "load_identity",
    # Errors
    "RoomClientError",
    "PreconditionMissing",
    "RoomValidationError",
    "RoomNotFound",
    "DirectoryUnreachable",
    # Gate
    "RoomGate",
    "ValidationState",
    "ValidationStatus",
    # Session
    "RoomSession",
    "SessionState",
    "Message",
    "MessageLog",
    "Roster",
    # Events and commands
    "ChatReceived",
    "PresenceReceived",
    "Join",
    "Send",
    "Leave",
    "parse_event",
    # Schemas
    "JoinRoomRequest",
    "SendMessageRequest",
    "ReceiveMessageNotification",
    "RoomUsersNotification",
    "RosterEntry",
    "RoomErrorBody",
]
