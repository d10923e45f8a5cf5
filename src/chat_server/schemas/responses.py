"""
Response Schema Definitions

Contains functions for creating the envelope of frames sent to clients.
"""

import json
from typing import Any, Dict


def create_frame(event: str, payload: Any) -> Dict[str, Any]:
    """
    Wrap an event payload in the wire envelope.

    Args:
        event: Outbound event name
        payload: Event data (dict or list)

    Returns:
        dict: {"type": event, "data": payload}
    """
    return {
        "type": event,
        "data": payload,
    }


def encode_frame(event: str, payload: Any) -> str:
    return json.dumps(create_frame(event, payload))


def create_error_response(
    error_message: str,
    error_code: str,
) -> Dict[str, Any]:
    """
    Create an error response.

    Args:
        error_message: Error message text
        error_code: Machine readable code (INVALID_JSON, INVALID_PAYLOAD,
                    UNKNOWN_EVENT)

    Returns:
        dict: Error response
    """
    return create_frame(
        "error",
        {
            "error_code": error_code,
            "message": error_message,
        },
    )
