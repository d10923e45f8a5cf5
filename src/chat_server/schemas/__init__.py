"""
Schemas for the Chat Server

This module contains the payload builders for outbound events and the
envelope used on the wire.
"""

from .events import (
    utc_now,
    create_membership_event,
    create_room_notification,
    create_sound_notification,
    create_browser_notification,
)
from .messages import (
    serialize_messages,
    create_more_messages,
)
from .responses import (
    create_frame,
    encode_frame,
    create_error_response,
)

__all__ = [
    "utc_now",
    "create_membership_event",
    "create_room_notification",
    "create_sound_notification",
    "create_browser_notification",
    "serialize_messages",
    "create_more_messages",
    "create_frame",
    "encode_frame",
    "create_error_response",
]
