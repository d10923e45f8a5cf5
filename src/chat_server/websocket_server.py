"""
WebSocket Server for the Chat Node

Accepts client connections, assigns each a connection id, feeds decoded
events to the SessionCoordinator and delivers outbound events.

Architecture:
    - One outbound queue and writer task per connection keeps frames in
      order without ever blocking the coordinator
    - Frames on the wire are JSON objects: {"type": ..., "data": ...}
    - Closing a connection triggers the coordinator's disconnect handling
"""

import asyncio
import json
import logging
import uuid
from typing import Any, Dict, Optional

import websockets

from .coordinator import SessionCoordinator
from .schemas import create_error_response, encode_frame
from .utils.validation import InvalidPayload

logger = logging.getLogger(__name__)


class ClientConnection:
    """
    A connected client and its outbound queue.

    Attributes:
        conn_id: Connection id shared with the coordinator
        websocket: The underlying WebSocket connection
        outbox: Encoded frames waiting to be sent
    """

    def __init__(self, conn_id: str, websocket):
        self.conn_id = conn_id
        self.websocket = websocket
        self.outbox: asyncio.Queue = asyncio.Queue()
        self.writer: Optional[asyncio.Task] = None

    async def write_loop(self):
        """Send queued frames until the connection closes."""
        while True:
            frame = await self.outbox.get()
            try:
                await self.websocket.send(frame)
            except websockets.exceptions.ConnectionClosed:
                logger.debug(f"Dropping frames for closed connection {self.conn_id}")
                return


class WebSocketServer:
    """
    WebSocket transport for the chat node.

    Implements the broadcast channel the coordinator sends through
    (`deliver`) and translates socket lifecycle into coordinator events.
    """

    def __init__(
        self,
        host: str,
        port: int,
        coordinator: Optional[SessionCoordinator] = None,
    ):
        """
        Initialize the WebSocket server.

        Args:
            host: Host address to bind to
            port: Port to listen on
            coordinator: Coordinator receiving inbound events. May be set
                         later with set_coordinator().
        """
        self.host = host
        self.port = port
        self.coordinator = coordinator
        self.server = None
        self._connections: Dict[str, ClientConnection] = {}

    def set_coordinator(self, coordinator: SessionCoordinator):
        self.coordinator = coordinator

    @property
    def connection_count(self) -> int:
        return len(self._connections)

    async def start(self):
        """Start the WebSocket server."""
        self.server = await websockets.serve(
            self.handle_client, self.host, self.port
        )
        logger.info(f"WebSocket server started on ws://{self.host}:{self.port}")

    async def stop(self):
        """Stop the WebSocket server."""
        if self.server:
            self.server.close()
            await self.server.wait_closed()
            logger.info("WebSocket server stopped")

    def deliver(self, conn_id: str, event: str, payload: Any):
        """
        Queue one event for one connection.

        Events for connections that are gone are dropped.
        """
        connection = self._connections.get(conn_id)
        if connection is None:
            logger.debug(f"Dropping {event} for unknown connection {conn_id}")
            return
        connection.outbox.put_nowait(encode_frame(event, payload))

    def register_connection(self, websocket) -> ClientConnection:
        conn_id = str(uuid.uuid4())
        connection = ClientConnection(conn_id, websocket)
        self._connections[conn_id] = connection
        return connection

    def unregister_connection(self, conn_id: str):
        connection = self._connections.pop(conn_id, None)
        if connection and connection.writer:
            connection.writer.cancel()

    async def handle_client(self, websocket):
        """
        Handle a client connection.

        Args:
            websocket: The WebSocket connection
        """
        connection = self.register_connection(websocket)
        connection.writer = asyncio.create_task(connection.write_loop())
        conn_id = connection.conn_id
        logger.info(f"Client {conn_id} connected")

        try:
            async for message in websocket:
                self.process_message(conn_id, message)
        except websockets.exceptions.ConnectionClosed:
            logger.info(f"Client {conn_id} connection closed")
        except Exception as e:
            logger.error(f"Error handling client {conn_id}: {e}")
        finally:
            self.coordinator.disconnect(conn_id)
            self.unregister_connection(conn_id)
            logger.info(f"Client {conn_id} disconnected")

    def process_message(self, conn_id: str, message: str):
        """
        Process an incoming frame from a client.

        Args:
            conn_id: Connection the frame arrived on
            message: The frame text (JSON)
        """
        try:
            data = json.loads(message)
        except (json.JSONDecodeError, TypeError) as e:
            logger.warning(f"Invalid JSON from {conn_id}: {e}")
            self.send_error(conn_id, "Invalid JSON format", "INVALID_JSON")
            return

        if not isinstance(data, dict) or not isinstance(data.get("type"), str):
            self.send_error(
                conn_id, "Frame must be an object with a type", "INVALID_PAYLOAD"
            )
            return

        event = data["type"]
        try:
            self.coordinator.handle(conn_id, event, data.get("data"))
        except InvalidPayload as e:
            logger.warning(f"Rejected {event} from {conn_id}: {e}")
            self.send_error(conn_id, str(e), e.error_code)
        except Exception as e:
            logger.error(f"Error processing {event} from {conn_id}: {e}")
            self.send_error(conn_id, "Internal server error", "INTERNAL_ERROR")

    def send_error(self, conn_id: str, error: str, error_code: str):
        connection = self._connections.get(conn_id)
        if connection is None:
            return
        connection.outbox.put_nowait(
            json.dumps(create_error_response(error, error_code))
        )
