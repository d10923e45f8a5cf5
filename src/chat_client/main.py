#!/usr/bin/env python3
"""
Chat Client Application

Client application for connecting to the chat server. Provides a
terminal-based user interface using the Textual framework.
"""

import argparse
import logging
import sys
from typing import List, Optional

from .ui import ChatApp
from .ui.app import DEFAULT_ROOM, DEFAULT_SERVER_URL

# Configure logging to file to avoid interfering with UI
logging.basicConfig(
    level=logging.WARNING,
    format="%(asctime)s - %(name)s - %(levelname)s - %(message)s",
    handlers=[logging.FileHandler("chat_client.log", mode="a")],
)

logger = logging.getLogger(__name__)


def main(argv: Optional[List[str]] = None):
    """Main entry point for the chat client."""
    parser = argparse.ArgumentParser(description="Terminal chat client")
    parser.add_argument("--url", default=DEFAULT_SERVER_URL)
    parser.add_argument("--username")
    parser.add_argument("--room", default=DEFAULT_ROOM)
    args = parser.parse_args(argv)

    logger.info("Starting chat client...")

    app = ChatApp(server_url=args.url, username=args.username, room=args.room)
    try:
        app.run()
    except KeyboardInterrupt:
        print("\nExiting...")
        sys.exit(0)


if __name__ == "__main__":
    main()
