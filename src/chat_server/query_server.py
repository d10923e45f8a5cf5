"""
XML-RPC Query Server

Read-only snapshot surface for operators and dashboards. Exposes the
current messages, connected users and room summaries held by the
SessionCoordinator, plus a health check.
"""

import logging
import time
from threading import Thread
from typing import Any, Dict, List, Optional
from xmlrpc.server import SimpleXMLRPCServer

from .coordinator import SessionCoordinator
from .schemas import utc_now

logger = logging.getLogger(__name__)


class QueryServer:
    """
    XML-RPC server exposing snapshots of chat state.

    Runs in a background thread; every call goes through the
    coordinator's lock, so a snapshot never sees a half-applied event.
    """

    def __init__(
        self,
        coordinator: SessionCoordinator,
        host: str,
        port: int,
        database: Optional[str] = None,
    ):
        """
        Initialize the query server.

        Args:
            coordinator: Coordinator to read state from
            host: Host address to bind to
            port: Port to listen on
            database: Path of the message database, if persistence is on
        """
        self.coordinator = coordinator
        self.host = host
        self.port = port
        self.database = database
        self.server = None
        self.server_thread = None
        self._started_at = time.monotonic()

    def start(self):
        """Start the XML-RPC server in a background thread."""
        self.server = SimpleXMLRPCServer(
            (self.host, self.port),
            allow_none=True,
            logRequests=False,
        )

        # Register methods
        self.server.register_function(self.get_messages, "get_messages")
        self.server.register_function(self.get_users, "get_users")
        self.server.register_function(self.get_rooms, "get_rooms")
        self.server.register_function(self.health, "health")

        self.server_thread = Thread(target=self._run_server, daemon=True)
        self.server_thread.start()

        logger.info(f"XML-RPC query server started on {self.host}:{self.port}")

    def _run_server(self):
        """Run the XML-RPC server (called in background thread)."""
        self.server.serve_forever()

    def stop(self):
        """Stop the XML-RPC server."""
        if self.server:
            logger.info("Stopping XML-RPC query server")
            self.server.shutdown()
            self.server.server_close()
            if self.server_thread:
                self.server_thread.join(timeout=2)
            logger.info("XML-RPC query server stopped")

    def get_messages(self) -> List[Dict[str, Any]]:
        """All stored messages, oldest first."""
        return self.coordinator.get_messages()

    def get_users(self) -> List[Dict[str, Any]]:
        """All live sessions."""
        return self.coordinator.get_users()

    def get_rooms(self) -> List[Dict[str, Any]]:
        """
        Summaries of all known rooms.

        Returns:
            list: [{'name': str, 'memberCount': int, 'createdAt': str}, ...]
        """
        return self.coordinator.get_rooms()

    def health(self) -> Dict[str, Any]:
        return {
            "status": "ok",
            "timestamp": utc_now(),
            "uptime": round(time.monotonic() - self._started_at, 3),
            "database": "configured" if self.database else "not configured",
        }
