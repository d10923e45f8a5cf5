"""
Validation Utilities

Contains helpers that pull typed fields out of inbound event payloads.
Every helper raises InvalidPayload when a field is missing or has the
wrong type, so handlers never act on a malformed event.
"""

from datetime import datetime, timezone
from typing import Any, Dict, Optional, Tuple

# Message validation constants
MAX_MESSAGE_LENGTH = 5000
MAX_NAME_LENGTH = 64


class InvalidPayload(ValueError):
    """An inbound event payload is malformed."""

    error_code = "INVALID_PAYLOAD"


class UnknownEvent(InvalidPayload):
    """An inbound event type is not part of the protocol."""

    error_code = "UNKNOWN_EVENT"


def validate_message_content(content: str) -> Tuple[bool, Optional[str]]:
    """
    Validate message content.

    Args:
        content: The message content to validate

    Returns:
        tuple: (is_valid, error_message)
            - is_valid: True if content is valid, False otherwise
            - error_message: Error message if invalid, None if valid
    """
    if not content or not content.strip():
        return False, "Message content cannot be empty"

    if len(content) > MAX_MESSAGE_LENGTH:
        return (
            False,
            f"Message content too long (max {MAX_MESSAGE_LENGTH} characters)",
        )

    return True, None


def require_dict(payload: Any) -> Dict[str, Any]:
    if payload is None:
        return {}
    if not isinstance(payload, dict):
        raise InvalidPayload("Event data must be an object")
    return payload


def get_name(
    payload: Dict[str, Any], key: str, default: Optional[str] = None
) -> str:
    """
    Get a non-empty name field (username, room).

    Falls back to `default` when the key is absent or null.
    """
    value = payload.get(key)
    if value is None:
        value = default
    if not isinstance(value, str) or not value.strip():
        raise InvalidPayload(f"{key} must be a non-empty string")
    value = value.strip()
    if len(value) > MAX_NAME_LENGTH:
        raise InvalidPayload(
            f"{key} too long (max {MAX_NAME_LENGTH} characters)"
        )
    return value


def get_text(payload: Dict[str, Any], key: str = "text") -> str:
    value = payload.get(key)
    if not isinstance(value, str):
        raise InvalidPayload(f"{key} must be a string")
    is_valid, error = validate_message_content(value)
    if not is_valid:
        raise InvalidPayload(error)
    return value


def get_bool(payload: Dict[str, Any], key: str) -> bool:
    value = payload.get(key)
    if not isinstance(value, bool):
        raise InvalidPayload(f"{key} must be a boolean")
    return value


def get_message_id(payload: Dict[str, Any], key: str = "messageId") -> int:
    value = payload.get(key)
    # bool is a subclass of int and is never a valid id
    if isinstance(value, bool) or not isinstance(value, int):
        raise InvalidPayload(f"{key} must be an integer")
    return value


def get_query(payload: Dict[str, Any], key: str = "query") -> str:
    value = payload.get(key)
    if not isinstance(value, str) or not value.strip():
        raise InvalidPayload(f"{key} must be a non-empty string")
    return value.strip()


def get_timestamp(payload: Dict[str, Any], key: str) -> datetime:
    """
    Parse an ISO 8601 timestamp field.

    A trailing "Z" is accepted and naive values are taken as UTC.
    """
    value = payload.get(key)
    if not isinstance(value, str):
        raise InvalidPayload(f"{key} must be an ISO 8601 string")
    try:
        parsed = datetime.fromisoformat(value.replace("Z", "+00:00"))
    except ValueError:
        raise InvalidPayload(f"{key} is not a valid ISO 8601 timestamp")
    if parsed.tzinfo is None:
        parsed = parsed.replace(tzinfo=timezone.utc)
    return parsed
