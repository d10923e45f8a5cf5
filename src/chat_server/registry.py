"""
Connection Registry

Maps a live connection id to the session bound to it (username and
active room). Lookups for unknown ids return None instead of raising;
callers decide what absence means.
"""

import logging
from dataclasses import dataclass, field
from datetime import datetime, timezone
from typing import Any, Dict, List, Optional

logger = logging.getLogger(__name__)


@dataclass
class Session:
    """
    Server-side record binding a connection to a username and room.

    Attributes:
        conn_id: Connection id assigned by the transport
        username: Display name chosen on join
        room: Name of the active room
        joined_at: When the session was created
    """

    conn_id: str
    username: str
    room: str
    joined_at: datetime = field(
        default_factory=lambda: datetime.now(timezone.utc)
    )

    def to_dict(self) -> Dict[str, Any]:
        """Convert to dictionary for serialization."""
        return {
            "id": self.conn_id,
            "username": self.username,
            "room": self.room,
            "joinedAt": self.joined_at.isoformat(),
        }


class ConnectionRegistry:
    """Holds one Session per connected client."""

    def __init__(self):
        self._sessions: Dict[str, Session] = {}

    def register(self, conn_id: str, username: str, room: str) -> Session:
        """
        Create a session for a connection, replacing any existing one.

        Args:
            conn_id: Connection id
            username: Username for the session
            room: Initial room name

        Returns:
            The new Session
        """
        session = Session(conn_id=conn_id, username=username, room=room)
        self._sessions[conn_id] = session
        logger.info(f"Registered session {conn_id} as {username} in {room}")
        return session

    def update_room(self, conn_id: str, room: str):
        session = self._sessions.get(conn_id)
        if session:
            session.room = room

    def remove(self, conn_id: str) -> Optional[Session]:
        return self._sessions.pop(conn_id, None)

    def get(self, conn_id: str) -> Optional[Session]:
        return self._sessions.get(conn_id)

    def all(self) -> List[Session]:
        return list(self._sessions.values())

    def __len__(self) -> int:
        return len(self._sessions)
