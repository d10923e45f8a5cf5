"""
Event Schema Definitions

Contains functions for creating the payloads of presence events
(join/leave) and notification events.
"""

from datetime import datetime, timezone
from typing import Any, Dict, Optional


def utc_now() -> str:
    """Current time as an ISO 8601 UTC string."""
    return datetime.now(timezone.utc).isoformat()


def create_membership_event(
    conn_id: str,
    username: str,
    room: str,
    timestamp: Optional[str] = None,
) -> Dict[str, Any]:
    """
    Create the payload shared by user_joined, user_joined_room,
    user_left_room and user_left.

    Args:
        conn_id: Connection id of the member
        username: Username of the member
        room: Room the event concerns
        timestamp: Optional ISO 8601 timestamp, defaults to now

    Returns:
        dict: Event data
    """
    return {
        "id": conn_id,
        "username": username,
        "room": room,
        "timestamp": timestamp or utc_now(),
    }


def create_room_notification(
    message: str,
    kind: str = "info",
) -> Dict[str, Any]:
    """
    Create a room_notification payload.

    Args:
        message: Human readable text, e.g. "alice joined the room"
        kind: Notification type shown by the client

    Returns:
        dict: Notification data
    """
    return {
        "message": message,
        "type": kind,
        "timestamp": utc_now(),
    }


def create_sound_notification(sound: str = "message") -> Dict[str, Any]:
    return {
        "sound": sound,
        "timestamp": utc_now(),
    }


def create_browser_notification(
    title: str,
    body: str,
    icon: str,
) -> Dict[str, Any]:
    """
    Create a browser_notification payload.

    Args:
        title: Notification title
        body: Notification body
        icon: Icon path shown by the client

    Returns:
        dict: Notification data
    """
    return {
        "title": title,
        "body": body,
        "icon": icon,
        "timestamp": utc_now(),
    }
