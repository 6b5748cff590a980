"""
Inbound Events and Local Commands

The session reacts to exactly two kinds of inbound events and three kinds
of local commands:

    Inbound:  ChatReceived | PresenceReceived
    Commands: Join | Send | Leave

Inbound events are parsed from websocket frames by parse_event(); commands
are created by the presentation layer and passed to RoomSession.dispatch().
"""

import logging
from dataclasses import dataclass
from typing import Dict, Optional, Type, Union

from .schemas import (
    BaseEvent,
    ReceiveMessageNotification,
    RoomUsersNotification,
    decode_envelope,
)

logger = logging.getLogger(__name__)

ChatReceived = ReceiveMessageNotification
PresenceReceived = RoomUsersNotification

InboundEvent = Union[ChatReceived, PresenceReceived]

EVENT_TYPES: Dict[str, Type[BaseEvent]] = {
    "receive_message": ChatReceived,
    "room_users": PresenceReceived,
}


@dataclass(frozen=True)
class Join:
    """Open the connection and announce membership."""


@dataclass(frozen=True)
class Send:
    """
    Send a chat message.

    Attributes:
        text: Message text as typed by the user
    """

    text: str


@dataclass(frozen=True)
class Leave:
    """Close the connection and end the session."""


Command = Union[Join, Send, Leave]


def parse_event(raw: Union[str, bytes]) -> Optional[InboundEvent]:
    """
    Parse one websocket frame into an inbound event.

    Frames that are malformed or of an unknown type are logged and
    dropped; they never raise.

    Args:
        raw: Raw frame received from the websocket

    Returns:
        The parsed event, or None if the frame should be ignored
    """
    try:
        event_type, data = decode_envelope(raw)
    except (UnicodeDecodeError, ValueError) as e:
        logger.error("Failed to parse frame: %s", e)
        return None

    event_class = EVENT_TYPES.get(event_type)
    if event_class is None:
        logger.debug("Unhandled event type: %s", event_type)
        return None

    try:
        return event_class.from_dict(data)
    except (KeyError, TypeError, ValueError) as e:
        logger.error("Malformed %s event: %s", event_type, e)
        return None
