"""
UI Package for the Room Client

This package provides the terminal user interface for a chat room using
the Textual framework.
"""

from .app import RoomApp

__all__ = ["RoomApp"]
