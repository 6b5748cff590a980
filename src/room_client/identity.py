"""
Identity of the Local User

The identity is read once, before a room is opened, from the persisted
user record written by the login flow. It is passed explicitly to the
gate and the session.
"""

import json
import logging
from dataclasses import dataclass
from pathlib import Path
from typing import Optional, Union

logger = logging.getLogger(__name__)


@dataclass(frozen=True)
class Identity:
    """
    The local user.

    Attributes:
        name: Display name sent with every join and message
    """

    name: str


def load_identity(path: Union[str, Path]) -> Optional[Identity]:
    """
    Read the persisted user record.

    The record is a JSON object with at least a non-empty ``name`` key;
    other keys are ignored.

    Args:
        path: Location of the user record

    Returns:
        The Identity, or None if the record is missing or unusable
    """
    path = Path(path)
    try:
        record = json.loads(path.read_text(encoding="utf-8"))
    except FileNotFoundError:
        logger.info("No stored user record at %s", path)
        return None
    except (OSError, ValueError) as e:
        logger.warning("Could not read user record %s: %s", path, e)
        return None

    name = record.get("name") if isinstance(record, dict) else None
    if not isinstance(name, str) or not name.strip():
        logger.warning("User record %s has no name", path)
        return None

    logger.info("Loaded identity for user: %s", name)
    return Identity(name=name)
