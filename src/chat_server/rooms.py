"""
Room Directory

Tracks the chat rooms known to this server and which connections are
members of each. Rooms are created lazily on first join and are kept
for the lifetime of the process even when they become empty.
"""

import logging
from dataclasses import dataclass, field
from datetime import datetime, timezone
from typing import Any, Dict, List

from .registry import ConnectionRegistry, Session

logger = logging.getLogger(__name__)

DEFAULT_ROOM = "general"


@dataclass
class Room:
    """
    Represents a chat room.

    Attributes:
        name: Unique room name
        members: Connection ids in join order (dict used as ordered set)
        created_at: When the room was first joined
    """

    name: str
    members: Dict[str, None] = field(default_factory=dict)
    created_at: datetime = field(
        default_factory=lambda: datetime.now(timezone.utc)
    )

    def to_dict(self) -> Dict[str, Any]:
        """Convert room to its summary form."""
        return {
            "name": self.name,
            "memberCount": len(self.members),
            "createdAt": self.created_at.isoformat(),
        }


class RoomDirectory:
    """
    Maps room names to their member sets.

    Member lookups resolve connection ids through the ConnectionRegistry
    so that the roster always reflects live sessions.
    """

    def __init__(self, registry: ConnectionRegistry):
        """
        Initialize the room directory.

        Args:
            registry: Registry used to resolve member ids to sessions
        """
        self._registry = registry
        self._rooms: Dict[str, Room] = {}

    def ensure_room(self, name: str) -> Room:
        """
        Get a room by name, creating it if it does not exist yet.

        Args:
            name: The room name

        Returns:
            The existing or newly created Room
        """
        room = self._rooms.get(name)
        if room is None:
            room = Room(name=name)
            self._rooms[name] = room
            logger.info(f"Created room '{name}'")
        return room

    def add_member(self, name: str, conn_id: str):
        self.ensure_room(name).members[conn_id] = None

    def remove_member(self, name: str, conn_id: str) -> bool:
        """
        Remove a connection from a room.

        Returns:
            True if the connection was a member, False otherwise
            (including when the room does not exist)
        """
        room = self._rooms.get(name)
        if room is None or conn_id not in room.members:
            return False
        del room.members[conn_id]
        return True

    def member_ids(self, name: str) -> List[str]:
        room = self._rooms.get(name)
        return list(room.members) if room else []

    def members(self, name: str) -> List[Session]:
        """
        Get the sessions of all members of a room, in join order.

        Ids without a live session are skipped.
        """
        sessions = []
        for conn_id in self.member_ids(name):
            session = self._registry.get(conn_id)
            if session is not None:
                sessions.append(session)
        return sessions

    def summaries(self) -> List[Dict[str, Any]]:
        return [room.to_dict() for room in self._rooms.values()]

    def __contains__(self, name: str) -> bool:
        return name in self._rooms
