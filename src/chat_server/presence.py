"""
Typing presence tracking.

Liveness is client driven: a connection stays "typing" until it sends
isTyping=false or disconnects. Every isTyping=true refreshes the flag, so
server-side expiry measures time since the last keystroke.
"""

import logging
from datetime import datetime, timezone
from typing import Dict, List

from .registry import ConnectionRegistry

logger = logging.getLogger(__name__)


class PresenceTracker:
    """Global set of typing connections, resolved per room on demand."""

    def __init__(self, registry: ConnectionRegistry):
        self._registry = registry
        # conn_id -> when the typing flag was last refreshed
        self._typing: Dict[str, datetime] = {}

    def set_typing(self, conn_id: str, is_typing: bool):
        if is_typing:
            self._typing[conn_id] = datetime.now(timezone.utc)
        else:
            self._typing.pop(conn_id, None)

    def clear(self, conn_id: str) -> bool:
        """Drop a connection's typing flag. Returns True if it was set."""
        return self._typing.pop(conn_id, None) is not None

    def typing_usernames(self, room: str) -> List[str]:
        usernames = []
        for conn_id in self._typing:
            session = self._registry.get(conn_id)
            if session is not None and session.room == room:
                usernames.append(session.username)
        return usernames

    def stale(self, older_than: datetime) -> List[str]:
        """Connections whose flag was last refreshed before `older_than`."""
        return [
            conn_id
            for conn_id, since in self._typing.items()
            if since < older_than
        ]
