"""
Client Service for the Chat Server

This module provides the client service class that talks to a chat
server over a WebSocket connection. It sends one request per protocol
event and dispatches incoming events to registered callbacks.

Architecture:
    - Uses WebSocket for real-time bidirectional communication
    - Supports dependency injection for the network layer (for testability)
    - Async/await pattern for non-blocking I/O operations
"""

import json
import logging
from typing import Any, Callable, Dict, List, Optional

import websockets

from .schemas import (
    BaseRequest,
    JoinRequest,
    JoinRoomRequest,
    LeaveRoomRequest,
    LoadMoreRequest,
    PrivateMessageRequest,
    ReactionRequest,
    ReadRequest,
    SearchRequest,
    SendRequest,
    TypingRequest,
)

logger = logging.getLogger(__name__)

EventHandler = Callable[[Any], None]


class ClientService:
    """
    Client for interacting with a chat server.

    Attributes:
        server_url: WebSocket URL of the server (e.g., ws://localhost:8080)
        websocket: Active WebSocket connection (None if not connected)
        username: Username used for the current session
        room: Room the client last joined
    """

    def __init__(
        self,
        server_url: str,
        websocket_factory: Optional[Callable] = None,
    ):
        """
        Initialize the client service.

        Args:
            server_url: WebSocket URL of the chat server
            websocket_factory: Optional factory for creating WebSocket
                             connections (for dependency injection/testing)
        """
        self.server_url = server_url
        self.websocket = None
        self.username: Optional[str] = None
        self.room: Optional[str] = None
        self._websocket_factory = websocket_factory or websockets.connect
        self._handlers: Dict[str, List[EventHandler]] = {}
        self._connected = False

        logger.info(f"ClientService initialized for server: {server_url}")

    async def connect(self) -> None:
        """
        Establish WebSocket connection to the chat server.

        Raises:
            ConnectionError: If connection fails
        """
        try:
            logger.info(f"Connecting to {self.server_url}...")
            self.websocket = await self._websocket_factory(self.server_url)
            self._connected = True
            logger.info("Successfully connected to chat server")
        except Exception as e:
            logger.error(f"Failed to connect to server: {e}")
            raise ConnectionError(
                f"Could not connect to {self.server_url}: {e}"
            )

    async def disconnect(self) -> None:
        """Close the WebSocket connection."""
        if self.websocket:
            await self.websocket.close()
            self.websocket = None
            self._connected = False
            logger.info("Disconnected from chat server")

    @property
    def is_connected(self) -> bool:
        """Check if currently connected to a server."""
        return self._connected and self.websocket is not None

    def on(self, event: str, handler: EventHandler) -> None:
        """
        Register a callback for one outbound server event.

        Args:
            event: Event name, e.g. "receive_message" or "room_users"
            handler: Callback receiving the event's data
        """
        self._handlers.setdefault(event, []).append(handler)

    async def _send(self, request: BaseRequest) -> None:
        if not self.is_connected:
            raise ConnectionError("Not connected to a chat server")
        await self.websocket.send(request.to_json())

    async def join(self, username: str, room: Optional[str] = None) -> None:
        await self._send(JoinRequest(username, room))
        self.username = username
        self.room = room or self.room

    async def send_message(self, text: str, room: Optional[str] = None) -> None:
        await self._send(SendRequest(text, room))

    async def set_typing(
        self, is_typing: bool, room: Optional[str] = None
    ) -> None:
        await self._send(TypingRequest(is_typing, room))

    async def send_private_message(self, to: str, text: str) -> None:
        await self._send(PrivateMessageRequest(to, text))

    async def join_room(self, room: str) -> None:
        await self._send(JoinRoomRequest(room))
        self.room = room

    async def leave_room(self, room: str) -> None:
        await self._send(LeaveRoomRequest(room))

    async def react(self, message_id: int, emoji: str) -> None:
        await self._send(ReactionRequest(message_id, emoji))

    async def mark_read(self, message_id: int) -> None:
        await self._send(ReadRequest(message_id))

    async def load_more(
        self, before_timestamp: str, room: Optional[str] = None
    ) -> None:
        await self._send(LoadMoreRequest(before_timestamp, room))

    async def search(self, query: str, room: Optional[str] = None) -> None:
        await self._send(SearchRequest(query, room))

    def dispatch(self, frame: str) -> Optional[str]:
        """
        Decode one server frame and invoke its callbacks.

        Returns:
            The event type, or None if the frame could not be decoded
        """
        try:
            message = json.loads(frame)
        except json.JSONDecodeError as e:
            logger.warning(f"Ignoring malformed frame: {e}")
            return None
        if not isinstance(message, dict):
            logger.warning(f"Ignoring non-object frame: {frame}")
            return None

        event = message.get("type")
        data = message.get("data")
        if event == "error":
            logger.warning(f"Server error: {data}")
        for handler in self._handlers.get(event, []):
            handler(data)
        return event

    async def receive_events(self) -> None:
        """
        Listen for incoming events until the connection is closed.

        Raises:
            ConnectionError: If not connected
        """
        if not self.is_connected:
            raise ConnectionError("Not connected to a chat server")

        logger.info("Starting event loop")

        try:
            async for frame in self.websocket:
                logger.debug(f"Received frame: {frame}")
                self.dispatch(frame)
        except websockets.exceptions.ConnectionClosed:
            logger.warning("Connection closed by server")
        finally:
            self._connected = False
