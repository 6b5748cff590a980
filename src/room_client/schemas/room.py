"""
Room Schema Definitions

This module defines the body the room directory returns when a room
lookup fails.
"""

from dataclasses import dataclass
from typing import Any, Optional


@dataclass(frozen=True)
class RoomErrorBody:
    """
    Error body of a failed ``GET /rooms/{roomId}``.

    Attributes:
        msg: Human-readable reason, None if absent or empty
    """

    msg: Optional[str] = None

    @classmethod
    def from_dict(cls, data: Any) -> "RoomErrorBody":
        """Create from a decoded JSON body of any shape."""
        if not isinstance(data, dict):
            return cls()
        msg = data.get("msg")
        if not isinstance(msg, str) or not msg:
            return cls()
        return cls(msg=msg)
