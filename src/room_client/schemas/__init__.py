"""
Schemas Package

This package contains the wire schemas for the room directory and the
messaging channel, organized by category: room, member, and message.

The base module holds the JSON envelope helpers shared by every event.
"""

from .base import (
    BaseEvent,
    BaseRequest,
    decode_envelope,
    encode_envelope,
    wire_field,
)
from .room import RoomErrorBody
from .member import JoinRoomRequest, RosterEntry, RoomUsersNotification
from .message import ReceiveMessageNotification, SendMessageRequest

__all__ = [
    # Base classes and helpers
    "BaseEvent",
    "BaseRequest",
    "decode_envelope",
    "encode_envelope",
    "wire_field",
    # Room schemas
    "RoomErrorBody",
    # Member schemas
    "JoinRoomRequest",
    "RosterEntry",
    "RoomUsersNotification",
    # Message schemas
    "ReceiveMessageNotification",
    "SendMessageRequest",
]
