"""
Message Schema Definitions

Contains functions for creating message list payloads sent back to a
single requester.
"""

from typing import Any, Dict, Iterable, List


def serialize_messages(messages: Iterable) -> List[Dict[str, Any]]:
    """Convert Message objects to their wire form, preserving order."""
    return [message.to_dict() for message in messages]


def create_more_messages(
    messages: Iterable,
    has_more: bool,
) -> Dict[str, Any]:
    """
    Create a more_messages payload.

    Args:
        messages: One page of history, oldest first
        has_more: Whether the client may request an older page

    Returns:
        dict: Page data
    """
    return {
        "messages": serialize_messages(messages),
        "hasMore": has_more,
    }
