"""
Client Package

This package provides the client side of the chat system: the
ClientService for connecting to a server and the request/response
schemas of the protocol. The Textual user interface lives in the `ui`
subpackage.
"""

from .service import ClientService
from .schemas import (
    BaseRequest,
    BaseResponse,
    JoinRequest,
    SendRequest,
    TypingRequest,
    PrivateMessageRequest,
    JoinRoomRequest,
    LeaveRoomRequest,
    ReactionRequest,
    ReadRequest,
    LoadMoreRequest,
    SearchRequest,
    ChatMessage,
)

__all__ = [
    "ClientService",
    "BaseRequest",
    "BaseResponse",
    "JoinRequest",
    "SendRequest",
    "TypingRequest",
    "PrivateMessageRequest",
    "JoinRoomRequest",
    "LeaveRoomRequest",
    "ReactionRequest",
    "ReadRequest",
    "LoadMoreRequest",
    "SearchRequest",
    "ChatMessage",
]
