"""
Session Coordinator

The protocol layer of the chat server. Receives inbound events for a
connection, validates them against the registry and room directory,
applies one state mutation and emits the resulting outbound events.

Architecture:
    - Sole owner of ConnectionRegistry, RoomDirectory, MessageStore,
      PresenceTracker and NotificationDispatcher
    - Every public entry point runs under a single re-entrant lock, so
      each event is applied atomically with respect to all others
    - Broadcasts are handed to the transport's channel and never awaited

Events from connections without a session, and references to unknown
messages or recipients, are ignored without a response.
"""

import logging
import threading
from datetime import datetime, timedelta, timezone
from typing import Any, Callable, Dict, List, Optional

from .message_store import DEFAULT_CAPACITY, Message, MessageStore
from .notifications import BroadcastChannel, NotificationDispatcher, preview
from .presence import PresenceTracker
from .registry import ConnectionRegistry, Session
from .rooms import DEFAULT_ROOM, RoomDirectory
from .schemas import (
    create_membership_event,
    create_more_messages,
    serialize_messages,
)
from .utils.validation import (
    UnknownEvent,
    get_bool,
    get_message_id,
    get_name,
    get_query,
    get_text,
    get_timestamp,
    require_dict,
)

logger = logging.getLogger(__name__)

# Number of messages sent on join, per load_more page and per search
DEFAULT_HISTORY_LIMIT = 50


class SessionCoordinator:
    """
    Coordinates sessions, rooms and messages for all connections.

    Attributes:
        registry: Connection id -> Session
        rooms: Room name -> members
        messages: Bounded message log
        presence: Typing indicators
        notifier: Outbound event fan-out
        history_limit: Page size for history, paging and search
    """

    def __init__(
        self,
        channel: BroadcastChannel,
        capacity: int = DEFAULT_CAPACITY,
        history_limit: int = DEFAULT_HISTORY_LIMIT,
        sink=None,
    ):
        """
        Initialize the coordinator.

        Args:
            channel: Transport function delivering (conn_id, event, payload)
            capacity: Maximum number of stored messages
            history_limit: Page size for history, paging and search
            sink: Optional durable store with a `record(message)` method,
                  called after every message change
        """
        self.registry = ConnectionRegistry()
        self.rooms = RoomDirectory(self.registry)
        self.messages = MessageStore(capacity)
        self.presence = PresenceTracker(self.registry)
        self.notifier = NotificationDispatcher(channel, self.rooms)
        self.history_limit = history_limit
        self.sink = sink
        self._lock = threading.RLock()
        self._handlers: Dict[str, Callable[[str, Dict[str, Any]], None]] = {
            "join": self.handle_join,
            "send": self.handle_send,
            "room_message": self.handle_send,
            "typing": self.handle_typing,
            "private_message": self.handle_private_message,
            "join_room": self.handle_join_room,
            "leave_room": self.handle_leave_room,
            "reaction": self.handle_reaction,
            "read": self.handle_read,
            "load_more": self.handle_load_more,
            "search": self.handle_search,
        }
        logger.info(
            f"SessionCoordinator initialized (capacity={capacity}, "
            f"history_limit={history_limit})"
        )

    @property
    def events(self) -> List[str]:
        """Names of the inbound events this coordinator understands."""
        return list(self._handlers)

    def handle(self, conn_id: str, event: str, payload: Any = None):
        """
        Process one inbound event from a connection.

        Args:
            conn_id: Connection the event arrived on
            event: Inbound event name
            payload: Event data

        Raises:
            UnknownEvent: If the event name is not part of the protocol.
                          `disconnect` comes from the transport only and
                          is rejected here
            InvalidPayload: If the event data is malformed. No state is
                            changed in that case.
        """
        handler = self._handlers.get(event)
        if handler is None:
            raise UnknownEvent(f"Unknown event type: {event}")
        data = require_dict(payload)
        with self._lock:
            handler(conn_id, data)

    def _session(self, conn_id: str, event: str) -> Optional[Session]:
        session = self.registry.get(conn_id)
        if session is None:
            logger.debug(f"Ignoring {event} from unknown session {conn_id}")
        return session

    # ===== Membership =====

    def handle_join(self, conn_id: str, data: Dict[str, Any]):
        username = get_name(data, "username")
        room = get_name(data, "room", DEFAULT_ROOM)

        previous = self.registry.get(conn_id)
        if previous is not None and previous.room != room:
            if self.rooms.remove_member(previous.room, conn_id):
                self._send_roster(previous.room)

        self.registry.register(conn_id, username, room)
        self.rooms.add_member(room, conn_id)

        self.notifier.to_room(
            room, "user_joined", create_membership_event(conn_id, username, room)
        )
        self._send_roster(room)
        self.notifier.room_notification(room, f"{username} joined the room")
        self._send_history(conn_id, room)

        logger.info(f"{username} joined room {room}")

    def handle_join_room(self, conn_id: str, data: Dict[str, Any]):
        session = self._session(conn_id, "join_room")
        if session is None:
            return
        room = get_name(data, "room")

        previous = session.room
        left_previous = self.rooms.remove_member(previous, conn_id)
        self.rooms.add_member(room, conn_id)
        self.registry.update_room(conn_id, room)

        if left_previous and previous != room:
            self._send_roster(previous)

        self.notifier.to_room(
            room,
            "user_joined_room",
            create_membership_event(conn_id, session.username, room),
        )
        self._send_roster(room)
        self.notifier.room_notification(
            room, f"{session.username} joined the room"
        )
        self._send_history(conn_id, room)

        logger.info(f"{session.username} switched from {previous} to {room}")

    def handle_leave_room(self, conn_id: str, data: Dict[str, Any]):
        session = self._session(conn_id, "leave_room")
        if session is None:
            return
        room = get_name(data, "room")

        # Only join and join_room reassign session.room
        self.rooms.remove_member(room, conn_id)

        self.notifier.to_room(
            room,
            "user_left_room",
            create_membership_event(conn_id, session.username, room),
        )
        self.notifier.room_notification(
            room, f"{session.username} left the room"
        )

        logger.info(f"{session.username} left room {room}")

    def disconnect(self, conn_id: str):
        """
        Tear down a connection's session, if it has one.

        Remaining members of its room are told who left and receive the
        updated roster.
        """
        with self._lock:
            session = self.registry.get(conn_id)
            if session is None:
                return

            room = session.room
            self.rooms.remove_member(room, conn_id)
            was_typing = self.presence.clear(conn_id)
            self.registry.remove(conn_id)

            self.notifier.to_room(
                room,
                "user_left",
                create_membership_event(conn_id, session.username, room),
            )
            self._send_roster(room)
            self.notifier.room_notification(
                room, f"{session.username} disconnected"
            )
            if was_typing:
                self._send_typing(room)

            logger.info(f"{session.username} disconnected")

    # ===== Messaging =====

    def handle_send(self, conn_id: str, data: Dict[str, Any]):
        session = self._session(conn_id, "send")
        if session is None:
            return
        text = get_text(data)
        room = get_name(data, "room", session.room)

        message = Message(
            id=self.messages.next_id(),
            sender=session.username,
            sender_id=conn_id,
            text=text,
            room=room,
        )
        self.messages.append(message)
        self._persist(message)

        self.notifier.to_room(room, "receive_message", message.to_dict())
        self.notifier.sound_to_room(room, "message")
        body = f"{session.username}: {preview(text)}"
        for member_id in self.rooms.member_ids(room):
            if member_id != conn_id:
                self.notifier.browser_notification(member_id, "New Message", body)

        logger.info(f"Message {message.id} from {session.username} in {room}")

    def handle_private_message(self, conn_id: str, data: Dict[str, Any]):
        sender = self._session(conn_id, "private_message")
        if sender is None:
            return
        recipient_id = get_name(data, "to")
        text = get_text(data)

        recipient = self.registry.get(recipient_id)
        if recipient is None:
            logger.debug(f"Ignoring private message to unknown {recipient_id}")
            return

        message = Message(
            id=self.messages.next_id(),
            sender=sender.username,
            sender_id=conn_id,
            text=text,
            is_private=True,
            recipient=recipient.username,
            recipient_id=recipient_id,
        )
        self.messages.append(message)
        self._persist(message)

        payload = message.to_dict()
        self.notifier.to_connection(recipient_id, "private_message", payload)
        self.notifier.to_connection(conn_id, "private_message", payload)
        self.notifier.sound_to_connection(recipient_id, "private_message")
        self.notifier.browser_notification(
            recipient_id,
            "Private Message",
            f"{sender.username}: {preview(text)}",
        )

        logger.info(
            f"Private message {message.id} from {sender.username} "
            f"to {recipient.username}"
        )

    def handle_typing(self, conn_id: str, data: Dict[str, Any]):
        session = self._session(conn_id, "typing")
        if session is None:
            return
        is_typing = get_bool(data, "isTyping")
        room = get_name(data, "room", session.room)

        self.presence.set_typing(conn_id, is_typing)
        self._send_typing(room)

    # ===== Message metadata =====

    def handle_reaction(self, conn_id: str, data: Dict[str, Any]):
        session = self._session(conn_id, "reaction")
        if session is None:
            return
        message_id = get_message_id(data)
        emoji = get_name(data, "emoji")

        message = self.messages.toggle_reaction(message_id, conn_id, emoji)
        if message is None:
            logger.debug(f"Ignoring reaction to unknown message {message_id}")
            return
        self._persist(message)

        self._publish_update(message)
        if message.sender_id != conn_id:
            self.notifier.browser_notification(
                message.sender_id,
                "Reaction",
                f"{session.username} reacted to your message",
            )

    def handle_read(self, conn_id: str, data: Dict[str, Any]):
        session = self._session(conn_id, "read")
        if session is None:
            return
        message_id = get_message_id(data)

        message = self.messages.mark_read(message_id, conn_id)
        if message is None:
            return
        self._persist(message)
        self._publish_update(message)

    # ===== History queries =====

    def handle_load_more(self, conn_id: str, data: Dict[str, Any]):
        session = self._session(conn_id, "load_more")
        if session is None:
            return
        room = get_name(data, "room", session.room)
        before = get_timestamp(data, "beforeTimestamp")

        page, has_more = self.messages.page_before(
            room, before, self.history_limit
        )
        self.notifier.to_connection(
            conn_id, "more_messages", create_more_messages(page, has_more)
        )

    def handle_search(self, conn_id: str, data: Dict[str, Any]):
        session = self._session(conn_id, "search")
        if session is None:
            return
        room = get_name(data, "room", session.room)
        query = get_query(data)

        results = self.messages.search(room, query, self.history_limit)
        self.notifier.to_connection(
            conn_id, "search_results", serialize_messages(results)
        )

    # ===== Maintenance and snapshots =====

    def expire_typing(self, timeout: float) -> int:
        """
        Clear typing flags that have been raised for longer than `timeout`
        seconds and refresh the typing list of every affected room.

        Returns:
            Number of connections whose flag was cleared
        """
        with self._lock:
            cutoff = datetime.now(timezone.utc) - timedelta(seconds=timeout)
            rooms = []
            stale = self.presence.stale(cutoff)
            for conn_id in stale:
                self.presence.clear(conn_id)
                session = self.registry.get(conn_id)
                if session is not None and session.room not in rooms:
                    rooms.append(session.room)
            for room in rooms:
                self._send_typing(room)
            if stale:
                logger.info(f"Expired {len(stale)} stale typing indicators")
            return len(stale)

    def get_messages(self) -> List[Dict[str, Any]]:
        with self._lock:
            return serialize_messages(self.messages.all())

    def get_users(self) -> List[Dict[str, Any]]:
        with self._lock:
            return [session.to_dict() for session in self.registry.all()]

    def get_rooms(self) -> List[Dict[str, Any]]:
        with self._lock:
            return self.rooms.summaries()

    def snapshot(self) -> Dict[str, Any]:
        """Read-only view of current messages, users and rooms."""
        with self._lock:
            return {
                "messages": self.get_messages(),
                "users": self.get_users(),
                "rooms": self.get_rooms(),
            }

    # ===== Helpers =====

    def _send_roster(self, room: str):
        roster = [session.to_dict() for session in self.rooms.members(room)]
        self.notifier.to_room(room, "room_users", roster)

    def _send_typing(self, room: str):
        self.notifier.to_room(
            room, "typing_users", self.presence.typing_usernames(room)
        )

    def _send_history(self, conn_id: str, room: str):
        recent = self.messages.recent(room, self.history_limit)
        self.notifier.to_connection(
            conn_id, "room_messages", serialize_messages(recent)
        )

    def _publish_update(self, message: Message):
        payload = message.to_dict()
        if message.room is not None:
            self.notifier.to_room(message.room, "message_updated", payload)
            return
        # Private messages are only visible to their two participants
        for participant in dict.fromkeys(
            [message.sender_id, message.recipient_id]
        ):
            if participant:
                self.notifier.to_connection(
                    participant, "message_updated", payload
                )

    def _persist(self, message: Message):
        if self.sink is None:
            return
        try:
            self.sink.record(message)
        except Exception as e:
            logger.error(f"Failed to queue message {message.id} for storage: {e}")
