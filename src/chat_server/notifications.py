"""
Notification Dispatcher

Fans events out to a room or to a single connection through a broadcast
channel supplied by the transport. Delivery is best effort: there are no
acknowledgements and no retries.
"""

import logging
from typing import Any, Callable, List

from .rooms import RoomDirectory
from .schemas import (
    create_browser_notification,
    create_room_notification,
    create_sound_notification,
)

logger = logging.getLogger(__name__)

DEFAULT_ICON = "/notification-icon.png"
PREVIEW_LENGTH = 50

# Signature of the transport's delivery function: (conn_id, event, payload)
BroadcastChannel = Callable[[str, str, Any], None]


def preview(text: str, length: int = PREVIEW_LENGTH) -> str:
    """Shorten message text for notification bodies."""
    if len(text) > length:
        return text[:length] + "..."
    return text


class NotificationDispatcher:
    """
    Emits named events to connections.

    `to_room` and `to_connection` are the only primitives; the
    notification helpers below are built on top of them.
    """

    def __init__(self, channel: BroadcastChannel, rooms: RoomDirectory):
        """
        Initialize the dispatcher.

        Args:
            channel: Function delivering one event to one connection
            rooms: Directory used to resolve room members
        """
        self._channel = channel
        self._rooms = rooms

    def to_room(self, room: str, event: str, payload: Any) -> int:
        """
        Send an event to every current member of a room.

        Returns:
            Number of connections the event was handed to
        """
        recipients: List[str] = self._rooms.member_ids(room)
        for conn_id in recipients:
            self._deliver(conn_id, event, payload)
        logger.debug(f"Sent {event} to {len(recipients)} members of {room}")
        return len(recipients)

    def to_connection(self, conn_id: str, event: str, payload: Any):
        self._deliver(conn_id, event, payload)

    def _deliver(self, conn_id: str, event: str, payload: Any):
        try:
            self._channel(conn_id, event, payload)
        except Exception as e:
            logger.error(f"Failed to deliver {event} to {conn_id}: {e}")

    def room_notification(self, room: str, message: str, kind: str = "info"):
        self.to_room(
            room, "room_notification", create_room_notification(message, kind)
        )

    def sound_to_room(self, room: str, sound: str = "message"):
        self.to_room(
            room, "sound_notification", create_sound_notification(sound)
        )

    def sound_to_connection(self, conn_id: str, sound: str = "message"):
        self.to_connection(
            conn_id, "sound_notification", create_sound_notification(sound)
        )

    def browser_notification(
        self, conn_id: str, title: str, body: str, icon: str = DEFAULT_ICON
    ):
        self.to_connection(
            conn_id,
            "browser_notification",
            create_browser_notification(title, body, icon),
        )
