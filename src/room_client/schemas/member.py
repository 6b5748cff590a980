"""
Member Schema Definitions

This module defines the event structures for room membership: the join
announcement and the presence (roster) snapshot pushed by the server.
"""

from dataclasses import dataclass
from typing import Any, Optional, Tuple

from .base import BaseEvent, BaseRequest, wire_field


@dataclass
class JoinRoomRequest(BaseRequest):
    """
    Announcement that this client joins a room.

    Attributes:
        room_id: ID of the room to join
        username: Name of the joining user
    """

    room_id: str = wire_field("roomId")
    username: str = wire_field("username")

    @property
    def _message_type(self) -> str:
        """Return the event name for join announcements."""
        return "join_room"


@dataclass(frozen=True)
class RosterEntry:
    """
    One participant in a presence snapshot.

    Attributes:
        id: Server-assigned identifier (opaque)
        username: Display name, None if the server omitted it
        online: Whether the participant is currently connected
    """

    id: Any
    username: Optional[str]
    online: bool

    @classmethod
    def from_dict(cls, data: Any) -> "RosterEntry":
        """Create from a roster item dictionary."""
        if not isinstance(data, dict):
            raise ValueError(f"Roster entry must be an object, got {data!r}")
        return cls(
            id=data.get("id"),
            username=data.get("username"),
            online=bool(data.get("online", False)),
        )


@dataclass(frozen=True)
class RoomUsersNotification(BaseEvent):
    """
    Full roster snapshot for the room.

    Attributes:
        users: Current participants, in server order
    """

    users: Tuple[RosterEntry, ...]

    @classmethod
    def _from_data(cls, data: Any) -> "RoomUsersNotification":
        """Create from the room_users payload (a list of entries)."""
        if not isinstance(data, list):
            raise ValueError("room_users payload must be a list")
        return cls(users=tuple(RosterEntry.from_dict(item) for item in data))
