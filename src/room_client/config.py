"""
Client Configuration

Defaults for the room client, overridable from the environment:

    ROOM_SERVER_URL     base URL of the room directory (http)
    ROOM_WS_URL         messaging channel URL (defaults from ROOM_SERVER_URL)
    ROOM_IDENTITY_FILE  path of the persisted user record
    ROOM_CHECK_TIMEOUT  seconds to wait for the room directory
    ROOM_OPEN_TIMEOUT   seconds to wait for the websocket handshake
"""

import os
from dataclasses import dataclass
from pathlib import Path
from typing import Mapping, Optional

DEFAULT_SERVER_URL = "http://localhost:3000"
DEFAULT_IDENTITY_FILE = str(Path.home() / ".room_client" / "user.json")
DEFAULT_CHECK_TIMEOUT = 10.0
DEFAULT_OPEN_TIMEOUT = 10.0


def websocket_url_for(server_url: str) -> str:
    """Derive the websocket URL from an http(s) server URL."""
    if server_url.startswith("https://"):
        return "wss://" + server_url[len("https://"):]
    if server_url.startswith("http://"):
        return "ws://" + server_url[len("http://"):]
    if "://" not in server_url:
        return f"ws://{server_url}"
    return server_url


@dataclass
class ClientConfig:
    """
    Settings shared by the gate, the session and the UI.

    Attributes:
        server_url: Base URL of the room directory
        ws_url: Messaging channel URL; derived from server_url if None
        identity_file: Path of the persisted user record
        check_timeout: Timeout for the room directory request
        open_timeout: Timeout for opening the websocket
    """

    server_url: str = DEFAULT_SERVER_URL
    ws_url: Optional[str] = None
    identity_file: str = DEFAULT_IDENTITY_FILE
    check_timeout: float = DEFAULT_CHECK_TIMEOUT
    open_timeout: float = DEFAULT_OPEN_TIMEOUT

    def __post_init__(self):
        self.server_url = self.server_url.rstrip("/")
        if not self.ws_url:
            self.ws_url = websocket_url_for(self.server_url)

    @classmethod
    def from_env(
        cls, environ: Optional[Mapping[str, str]] = None
    ) -> "ClientConfig":
        """
        Build a configuration from environment variables.

        Args:
            environ: Mapping to read from (defaults to os.environ)

        Raises:
            ValueError: If a timeout variable is not a number
        """
        env = os.environ if environ is None else environ
        return cls(
            server_url=env.get("ROOM_SERVER_URL", DEFAULT_SERVER_URL),
            ws_url=env.get("ROOM_WS_URL") or None,
            identity_file=env.get("ROOM_IDENTITY_FILE", DEFAULT_IDENTITY_FILE),
            check_timeout=float(
                env.get("ROOM_CHECK_TIMEOUT", DEFAULT_CHECK_TIMEOUT)
            ),
            open_timeout=float(
                env.get("ROOM_OPEN_TIMEOUT", DEFAULT_OPEN_TIMEOUT)
            ),
        )
