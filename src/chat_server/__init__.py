"""
Chat Server Package

This package provides the chat server: the session/room coordination
engine and the WebSocket, XML-RPC and storage collaborators around it.
"""

from .registry import ConnectionRegistry, Session
from .rooms import RoomDirectory, Room, DEFAULT_ROOM
from .message_store import (
    MessageStore,
    Message,
    Reactions,
    DEFAULT_CAPACITY,
)
from .presence import PresenceTracker
from .notifications import NotificationDispatcher
from .coordinator import SessionCoordinator, DEFAULT_HISTORY_LIMIT
from .utils import InvalidPayload, UnknownEvent
from .websocket_server import WebSocketServer
from .query_server import QueryServer
from .persistence import SqliteMessageSink

__all__ = [
    "ConnectionRegistry",
    "Session",
    "RoomDirectory",
    "Room",
    "DEFAULT_ROOM",
    "MessageStore",
    "Message",
    "Reactions",
    "DEFAULT_CAPACITY",
    "PresenceTracker",
    "NotificationDispatcher",
    "SessionCoordinator",
    "DEFAULT_HISTORY_LIMIT",
    "InvalidPayload",
    "UnknownEvent",
    "WebSocketServer",
    "QueryServer",
    "SqliteMessageSink",
]
