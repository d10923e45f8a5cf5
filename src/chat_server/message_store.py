"""
Message Store

Bounded, append-only log of chat messages with per-room indexing,
reactions and read receipts.

Architecture:
    - A single global deque holds messages in arrival order
    - Each room keeps its own deque of the same Message objects
    - An id index gives O(1) lookup for reaction/read updates
    - When the global capacity is exceeded the oldest message is evicted
      from every index, regardless of room

Usage:
    store = MessageStore(capacity=1000)
    store.append(message)
    page, has_more = store.page_before("general", before, 50)
"""

import itertools
import logging
from collections import deque
from dataclasses import dataclass, field
from datetime import datetime, timezone
from typing import Any, Deque, Dict, Iterator, List, Optional, Tuple

logger = logging.getLogger(__name__)

# Maximum number of messages kept across all rooms
DEFAULT_CAPACITY = 1000


class Reactions:
    """
    Emoji reactions on a message.

    Maps an emoji token to the connection ids that reacted with it.
    An emoji is only present while at least one connection holds it,
    so an empty reactor list is never stored.
    """

    def __init__(self):
        self._by_emoji: Dict[str, List[str]] = {}

    def toggle(self, emoji: str, conn_id: str) -> bool:
        """
        Add or remove a connection's reaction.

        Returns:
            True if the reaction was added, False if it was removed
        """
        reactors = self._by_emoji.get(emoji)
        if reactors is None:
            self._by_emoji[emoji] = [conn_id]
            return True
        if conn_id in reactors:
            reactors.remove(conn_id)
            if not reactors:
                del self._by_emoji[emoji]
            return False
        reactors.append(conn_id)
        return True

    def to_dict(self) -> Dict[str, List[str]]:
        return {emoji: list(ids) for emoji, ids in self._by_emoji.items()}

    def __len__(self) -> int:
        return len(self._by_emoji)


@dataclass
class Message:
    """
    A chat message, either posted to a room or sent privately.

    Attributes:
        id: Store-assigned id, unique for the store's lifetime
        sender: Username of the sender
        sender_id: Connection id of the sender
        text: Message body
        room: Room name, None for private messages
        timestamp: When the message was accepted (UTC)
        is_private: True for direct messages
        recipient: Recipient username for private messages
        recipient_id: Recipient connection id for private messages
        read_by: Connection ids that have read the message, in order
        reactions: Emoji reactions
    """

    id: int
    sender: str
    sender_id: str
    text: str
    room: Optional[str] = None
    timestamp: datetime = field(
        default_factory=lambda: datetime.now(timezone.utc)
    )
    is_private: bool = False
    recipient: Optional[str] = None
    recipient_id: Optional[str] = None
    read_by: List[str] = field(default_factory=list)
    reactions: Reactions = field(default_factory=Reactions)

    def __post_init__(self):
        """The sender has always read their own message."""
        if self.sender_id not in self.read_by:
            self.read_by.insert(0, self.sender_id)

    def to_dict(self) -> Dict[str, Any]:
        """Convert to dictionary for serialization."""
        return {
            "id": self.id,
            "sender": self.sender,
            "senderId": self.sender_id,
            "room": self.room,
            "text": self.text,
            "timestamp": self.timestamp.isoformat(),
            "isPrivate": self.is_private,
            "recipient": self.recipient,
            "recipientId": self.recipient_id,
            "readBy": list(self.read_by),
            "reactions": self.reactions.to_dict(),
        }


class MessageStore:
    """
    In-memory message log shared by all rooms.

    Private messages (room=None) are kept in the global log and the id
    index but are never part of any room's history.
    """

    def __init__(self, capacity: int = DEFAULT_CAPACITY):
        """
        Initialize the message store.

        Args:
            capacity: Maximum number of messages kept. Older messages
                      are evicted silently once exceeded.
        """
        if capacity < 1:
            raise ValueError("capacity must be at least 1")
        self.capacity = capacity
        self._messages: Deque[Message] = deque()
        self._by_room: Dict[str, Deque[Message]] = {}
        self._by_id: Dict[int, Message] = {}
        self._ids: Iterator[int] = itertools.count(1)

    def next_id(self) -> int:
        """Allocate the next message id."""
        return next(self._ids)

    def resume_after(self, last_id: int):
        """
        Continue id allocation after `last_id`.

        Used when a durable store already holds messages from an earlier
        run. Never moves the generator backwards.
        """
        upcoming = self.next_id()
        self._ids = itertools.count(max(upcoming, last_id + 1))

    def append(self, message: Message):
        """
        Add a message at the tail of the log.

        Evicts from the head while the log is over capacity.
        """
        self._messages.append(message)
        self._by_id[message.id] = message
        if message.room is not None:
            self._by_room.setdefault(message.room, deque()).append(message)

        while len(self._messages) > self.capacity:
            self._evict_oldest()

    def _evict_oldest(self):
        oldest = self._messages.popleft()
        self._by_id.pop(oldest.id, None)
        if oldest.room is not None:
            room_log = self._by_room.get(oldest.room)
            # Room logs preserve global order, so the oldest is at the head
            if room_log and room_log[0] is oldest:
                room_log.popleft()
            elif room_log:
                room_log.remove(oldest)
        logger.debug(f"Evicted message {oldest.id} (capacity {self.capacity})")

    def by_id(self, message_id: int) -> Optional[Message]:
        return self._by_id.get(message_id)

    def recent(self, room: str, limit: int) -> List[Message]:
        """Get the last `limit` messages of a room, oldest first."""
        room_log = self._by_room.get(room)
        if not room_log or limit <= 0:
            return []
        return list(room_log)[-limit:]

    def page_before(
        self, room: str, before: datetime, limit: int
    ) -> Tuple[List[Message], bool]:
        """
        Get one page of room history older than a timestamp.

        The page is the most recent `limit` messages strictly earlier
        than `before`, returned oldest first.

        Args:
            room: Room name
            before: Exclusive upper bound on message timestamps
            limit: Page size

        Returns:
            tuple: (messages, has_more)
                - has_more is True when the page is full. A full page does
                  not guarantee that older messages remain.
        """
        if limit <= 0:
            return [], False
        earlier = [
            message
            for message in self._by_room.get(room, ())
            if message.timestamp < before
        ]
        page = earlier[-limit:]
        return page, len(page) == limit

    def search(self, room: str, query: str, limit: int) -> List[Message]:
        """
        Find room messages whose text or sender contains `query`.

        Matching is case-insensitive. At most the `limit` most recent
        matches are returned, oldest first.
        """
        if limit <= 0:
            return []
        needle = query.lower()
        matches = [
            message
            for message in self._by_room.get(room, ())
            if needle in message.text.lower()
            or needle in message.sender.lower()
        ]
        return matches[-limit:]

    def toggle_reaction(
        self, message_id: int, conn_id: str, emoji: str
    ) -> Optional[Message]:
        """
        Toggle a connection's emoji reaction on a message.

        Returns:
            The updated Message, or None if the id is unknown
        """
        message = self._by_id.get(message_id)
        if message is None:
            return None
        message.reactions.toggle(emoji, conn_id)
        return message

    def mark_read(self, message_id: int, conn_id: str) -> Optional[Message]:
        """
        Record that a connection has read a message.

        Returns:
            The updated Message, or None if the id is unknown or the
            connection had already read it
        """
        message = self._by_id.get(message_id)
        if message is None or conn_id in message.read_by:
            return None
        message.read_by.append(conn_id)
        return message

    def all(self) -> List[Message]:
        return list(self._messages)

    def __len__(self) -> int:
        return len(self._messages)
