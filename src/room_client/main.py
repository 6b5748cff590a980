#!/usr/bin/env python3
"""
Room Client Application

Opens one chat room in a terminal user interface built with Textual.

Usage:
    room-client abc
    room-client abc --server http://localhost:3000 --name alice
"""

import argparse
import logging
import sys
from typing import List, Optional

from .config import ClientConfig
from .identity import Identity, load_identity

logger = logging.getLogger(__name__)


def build_parser() -> argparse.ArgumentParser:
    """Create the command-line parser."""
    parser = argparse.ArgumentParser(
        description="Join a chat room from the terminal"
    )
    parser.add_argument("room_id", help="ID of the room to join")
    parser.add_argument(
        "--server",
        help="Base URL of the room server (env: ROOM_SERVER_URL)",
    )
    parser.add_argument(
        "--ws-url",
        help="Messaging channel URL (env: ROOM_WS_URL)",
    )
    parser.add_argument(
        "--identity",
        help="Path of the stored user record (env: ROOM_IDENTITY_FILE)",
    )
    parser.add_argument(
        "--name",
        help="Use this name instead of the stored user record",
    )
    parser.add_argument(
        "--log-file",
        default="room_client.log",
        help="File to write logs to",
    )
    parser.add_argument(
        "--log-level",
        default="WARNING",
        choices=["DEBUG", "INFO", "WARNING", "ERROR"],
        help="Logging level",
    )
    return parser


def resolve_config(args: argparse.Namespace) -> ClientConfig:
    """Apply command-line overrides on top of the environment."""
    config = ClientConfig.from_env()
    if args.server:
        config = ClientConfig(
            server_url=args.server,
            ws_url=args.ws_url,
            identity_file=config.identity_file,
            check_timeout=config.check_timeout,
            open_timeout=config.open_timeout,
        )
    elif args.ws_url:
        config.ws_url = args.ws_url
    if args.identity:
        config.identity_file = args.identity
    return config


def resolve_identity(
    args: argparse.Namespace, config: ClientConfig
) -> Optional[Identity]:
    """Take the identity from --name, else from the stored user record."""
    if args.name and args.name.strip():
        return Identity(name=args.name.strip())
    return load_identity(config.identity_file)


def main(argv: Optional[List[str]] = None) -> None:
    """Main entry point for the room client."""
    args = build_parser().parse_args(argv)

    # Log to file to avoid interfering with UI
    logging.basicConfig(
        level=getattr(logging, args.log_level),
        format="%(asctime)s - %(name)s - %(levelname)s - %(message)s",
        handlers=[logging.FileHandler(args.log_file, mode="a")],
    )

    try:
        config = resolve_config(args)
    except ValueError as e:
        print(f"Error: invalid configuration: {e}", file=sys.stderr)
        sys.exit(2)

    if not args.room_id.strip():
        print("Error: room ID must not be empty", file=sys.stderr)
        sys.exit(2)

    identity = resolve_identity(args, config)
    if identity is None:
        print(
            f"Error: no user record found at {config.identity_file}. "
            "Log in first or pass --name.",
            file=sys.stderr,
        )
        sys.exit(2)

    logger.info("Starting room client for room '%s'", args.room_id.strip())

    from .ui import RoomApp

    app = RoomApp(config, identity, args.room_id)
    try:
        app.run()
    except KeyboardInterrupt:
        print("\nExiting...")
        sys.exit(0)


if __name__ == "__main__":
    main()
