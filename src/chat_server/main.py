#!/usr/bin/env python3
"""
Chat Node Server

Real-time chat server: WebSocket transport, session coordinator,
optional SQLite message sink and XML-RPC query surface.
"""

import asyncio
import logging
import os
import sys
from typing import Optional

from .coordinator import DEFAULT_HISTORY_LIMIT, SessionCoordinator
from .message_store import DEFAULT_CAPACITY
from .persistence import SqliteMessageSink
from .query_server import QueryServer
from .websocket_server import WebSocketServer

# Configure logging
logging.basicConfig(
    level=os.environ.get("LOG_LEVEL", "INFO").upper(),
    format="%(asctime)s - %(name)s - %(levelname)s - %(message)s",
)

logger = logging.getLogger(__name__)

DEFAULT_TYPING_SWEEP_INTERVAL = 5  # seconds between typing expiry runs


async def run_server(
    ws_host: str,
    ws_port: int,
    query_host: str,
    query_port: int,
    capacity: int = DEFAULT_CAPACITY,
    history_limit: int = DEFAULT_HISTORY_LIMIT,
    typing_timeout: float = 0,
    typing_sweep_interval: float = DEFAULT_TYPING_SWEEP_INTERVAL,
    db_path: Optional[str] = None,
):
    """
    Run the chat server until cancelled.

    Args:
        ws_host: WebSocket host address to bind to
        ws_port: WebSocket port to listen on
        query_host: XML-RPC host address to bind to
        query_port: XML-RPC port to listen on (0 disables the query server)
        capacity: Maximum number of stored messages
        history_limit: Page size for history, paging and search
        typing_timeout: Seconds after which a typing flag is cleared
                        server-side (0 disables expiry)
        typing_sweep_interval: Seconds between typing expiry runs
        db_path: SQLite file for write-behind persistence, or None
    """
    sink = None
    if db_path:
        sink = SqliteMessageSink(db_path)
        await sink.start()

    ws_server = WebSocketServer(ws_host, ws_port)
    coordinator = SessionCoordinator(
        ws_server.deliver,
        capacity=capacity,
        history_limit=history_limit,
        sink=sink,
    )
    if sink:
        last_id = await sink.last_id()
        coordinator.messages.resume_after(last_id)
        logger.info(f"Resuming message ids after {last_id}")
    ws_server.set_coordinator(coordinator)

    query_server = None
    if query_port:
        query_server = QueryServer(coordinator, query_host, query_port, db_path)
        query_server.start()

    await ws_server.start()
    logger.info(f"Chat server listening on ws://{ws_host}:{ws_port}")

    typing_task = None
    if typing_timeout > 0:
        typing_task = asyncio.create_task(
            typing_expiry(coordinator, typing_timeout, typing_sweep_interval)
        )

    try:
        # Wait indefinitely
        await asyncio.Event().wait()
    except asyncio.CancelledError:
        logger.info("Server shutdown requested")
    finally:
        if typing_task:
            typing_task.cancel()
            try:
                await typing_task
            except asyncio.CancelledError:
                pass
        await ws_server.stop()
        if query_server:
            query_server.stop()
        if sink:
            await sink.stop()
        logger.info("Chat server stopped")


async def typing_expiry(
    coordinator: SessionCoordinator,
    timeout: float,
    interval: float,
):
    """
    Periodic task clearing typing flags older than `timeout` seconds.

    Covers clients that stop typing without ever sending isTyping=false.
    """
    logger.info(f"Starting typing expiry task (timeout {timeout}s)")

    while True:
        try:
            await asyncio.sleep(interval)
            coordinator.expire_typing(timeout)
        except asyncio.CancelledError:
            logger.info("Typing expiry task cancelled")
            raise
        except Exception as e:
            logger.error(f"Error in typing expiry: {e}")


def main():
    """Main entry point for the chat server."""
    logger.info("Starting chat server...")

    # Get configuration from environment or use defaults
    ws_host = os.environ.get("CHAT_HOST", "0.0.0.0")
    ws_port = int(os.environ.get("CHAT_PORT", "8080"))

    query_host = os.environ.get("QUERY_HOST", "0.0.0.0")
    query_port = int(os.environ.get("QUERY_PORT", "9090"))

    capacity = int(os.environ.get("MESSAGE_CAPACITY", str(DEFAULT_CAPACITY)))
    history_limit = int(
        os.environ.get("HISTORY_LIMIT", str(DEFAULT_HISTORY_LIMIT))
    )
    typing_timeout = float(os.environ.get("TYPING_TIMEOUT", "0"))
    typing_sweep_interval = float(
        os.environ.get(
            "TYPING_SWEEP_INTERVAL", str(DEFAULT_TYPING_SWEEP_INTERVAL)
        )
    )
    db_path = os.environ.get("CHAT_DB_PATH") or None

    try:
        asyncio.run(
            run_server(
                ws_host,
                ws_port,
                query_host,
                query_port,
                capacity=capacity,
                history_limit=history_limit,
                typing_timeout=typing_timeout,
                typing_sweep_interval=typing_sweep_interval,
                db_path=db_path,
            )
        )
    except KeyboardInterrupt:
        logger.info("Shutting down chat server...")
        sys.exit(0)


if __name__ == "__main__":
    main()
