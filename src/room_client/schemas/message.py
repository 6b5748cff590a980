"""
Message Schema Definitions

This module defines the event structures for chat messages: the outbound
send request and the inbound broadcast every member receives.
"""

from dataclasses import dataclass
from typing import Any

from .base import BaseEvent, BaseRequest, wire_field


@dataclass
class SendMessageRequest(BaseRequest):
    """
    Request to send a message to a room.

    Attributes:
        room_id: ID of the room to send the message to
        message: The message text, as typed
        username: Name of the sender
    """

    room_id: str = wire_field("roomId")
    message: str = wire_field("message")
    username: str = wire_field("username")

    @property
    def _message_type(self) -> str:
        """Return the event name for send message requests."""
        return "send_message"


@dataclass(frozen=True)
class ReceiveMessageNotification(BaseEvent):
    """
    A chat message broadcast to the room, including back to its sender.

    Attributes:
        username: Name of the sender
        message: The message text
    """

    username: str
    message: str

    @classmethod
    def _from_data(cls, data: Any) -> "ReceiveMessageNotification":
        """Create from the receive_message payload."""
        if not isinstance(data, dict):
            raise ValueError("receive_message payload must be an object")
        return cls(
            username=data["username"],
            message=data["message"],
        )
