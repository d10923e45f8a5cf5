"""
Utilities for the Chat Server

This module contains payload validation helpers and the error types
raised for malformed inbound events.
"""

from .validation import (
    InvalidPayload,
    UnknownEvent,
    validate_message_content,
)

__all__ = [
    "InvalidPayload",
    "UnknownEvent",
    "validate_message_content",
]
