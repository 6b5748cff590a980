"""
View Models for the Room Session

This module provides the two view models a RoomSession derives from the
inbound event stream:

    - MessageLog: chat messages in client arrival order, append-only
    - Roster: the latest presence snapshot, replaced wholesale

Neither model mutates an entry after insertion. The presentation layer
reads them; only the session writes to them.

Usage:
    log = MessageLog()
    log.append("alice", "hi", own_name="alice")
    for message in log:
        print(message.sender, message.text)
"""

import logging
import uuid
from dataclasses import dataclass
from typing import Iterable, Iterator, List, Tuple

from .schemas import RosterEntry

logger = logging.getLogger(__name__)


@dataclass(frozen=True)
class Message:
    """
    A chat message as shown to the user.

    Attributes:
        id: Unique identifier generated on receipt
        sender: Name of the sender
        text: Message text
        is_self: True if the sender name equals this client's identity name
    """

    id: str
    sender: str
    text: str
    is_self: bool


class MessageLog:
    """
    Append-only log of received chat messages.

    Attributes:
        messages: All messages in arrival order
    """

    def __init__(self):
        self.messages: List[Message] = []

    def append(self, sender: str, text: str, own_name: str) -> Message:
        """
        Append one message.

        ``is_self`` is decided here, by string equality against the identity
        name at receipt time.

        Args:
            sender: Name the server reported as sender
            text: Message text
            own_name: This client's identity name

        Returns:
            The newly created Message
        """
        message = Message(
            id=uuid.uuid4().hex,
            sender=sender,
            text=text,
            is_self=sender == own_name,
        )
        self.messages.append(message)
        logger.debug("Appended message %s from %s", message.id, sender)
        return message

    def __len__(self) -> int:
        return len(self.messages)

    def __iter__(self) -> Iterator[Message]:
        return iter(self.messages)


class Roster:
    """
    Latest presence snapshot of the room.

    The whole snapshot is replaced on every presence event; entries are
    never merged with a previous snapshot.
    """

    def __init__(self):
        self._entries: Tuple[RosterEntry, ...] = ()

    @property
    def entries(self) -> Tuple[RosterEntry, ...]:
        """Current snapshot."""
        return self._entries

    def replace(self, entries: Iterable[RosterEntry]) -> None:
        """Replace the snapshot with ``entries`` verbatim."""
        self._entries = tuple(entries)
        logger.debug("Roster replaced with %d entries", len(self._entries))

    def __len__(self) -> int:
        return len(self._entries)

    def __iter__(self) -> Iterator[RosterEntry]:
        return iter(self._entries)
