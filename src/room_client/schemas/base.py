"""
Base Schema Classes

This module provides base classes for outbound and inbound event schemas
with the shared JSON envelope used on the messaging channel:

    {
        "type": "event_name",
        "data": { ... event-specific payload ... }
    }

Dataclass fields use snake_case names in Python. A field may declare its
wire name through ``wire_field("roomId")``.
"""

import json
from dataclasses import dataclass, field, fields
from typing import Any, Dict, Tuple, TypeVar

T = TypeVar("T", bound="BaseEvent")


def wire_field(name: str, **kwargs: Any) -> Any:
    """Declare a dataclass field that is serialized under ``name``."""
    metadata = dict(kwargs.pop("metadata", {}))
    metadata["wire"] = name
    return field(metadata=metadata, **kwargs)


def encode_envelope(event_type: str, data: Any) -> str:
    """Encode an event type and payload into a JSON text frame."""
    return json.dumps({"type": event_type, "data": data})


def decode_envelope(raw: str) -> Tuple[str, Any]:
    """
    Decode a JSON text frame into its event type and payload.

    Args:
        raw: Raw frame received from the websocket

    Returns:
        Tuple of (event_type, data). ``data`` is None when absent.

    Raises:
        ValueError: If the frame is not JSON or not an envelope object
    """
    if isinstance(raw, bytes):
        raw = raw.decode("utf-8")
    message = json.loads(raw)
    if not isinstance(message, dict) or not isinstance(
        message.get("type"), str
    ):
        raise ValueError("Frame is not an event envelope")
    return message["type"], message.get("data")


class BaseRequest:
    """
    Base class for client -> server events.

    Provides common serialization methods for converting request objects
    to dictionary and JSON formats.
    """

    def to_dict(self) -> Dict[str, Any]:
        """
        Convert to dictionary for JSON serialization.

        Returns:
            Dictionary with 'type' key and 'data' key holding the payload
            keyed by wire names.
        """
        data = {
            f.metadata.get("wire", f.name): getattr(self, f.name)
            for f in fields(self)
        }
        return {"type": self._message_type, "data": data}

    def to_json(self) -> str:
        """Convert to JSON string."""
        message = self.to_dict()
        return encode_envelope(message["type"], message["data"])

    @property
    def _message_type(self) -> str:
        """
        Event name for the request.

        Should be overridden by subclasses to provide the specific type.
        """
        raise NotImplementedError("Subclasses must define _message_type")


@dataclass(frozen=True)
class BaseEvent:
    """
    Base class for server -> client events.

    Provides common deserialization methods for creating event objects
    from the envelope payload.
    """

    @classmethod
    def from_dict(cls: type[T], data: Any) -> T:
        """
        Create instance from an envelope dict or a bare payload.

        Raises:
            ValueError: If the payload does not have the expected shape
        """
        if isinstance(data, dict) and "type" in data and "data" in data:
            data = data["data"]
        return cls._from_data(data)

    @classmethod
    def _from_data(cls: type[T], data: Any) -> T:
        """
        Create instance from payload data.

        Should be overridden by subclasses for custom deserialization.
        """
        raise NotImplementedError("Subclasses must define _from_data")
