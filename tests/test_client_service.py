"""
Tests for Client Service

Tests for:
- Request serialization to the wire envelope
- Sending requests through an injected WebSocket
- Dispatching server frames to registered callbacks
"""

import json
from unittest.mock import AsyncMock, MagicMock

import pytest

from src.chat_client import (
    ChatMessage,
    ClientService,
    JoinRequest,
    LoadMoreRequest,
    ReactionRequest,
    TypingRequest,
)


def make_factory():
    websocket = MagicMock()
    websocket.send = AsyncMock()
    websocket.close = AsyncMock()
    factory = AsyncMock(return_value=websocket)
    return factory, websocket


def sent_frames(websocket):
    return [json.loads(call.args[0]) for call in websocket.send.call_args_list]


# ----------------------------------------------------------------------------
# Request schemas
# ----------------------------------------------------------------------------


def test_join_request_omits_missing_room():
    assert JoinRequest("alice").to_dict() == {
        "type": "join",
        "data": {"username": "alice"},
    }
    assert JoinRequest("alice", "lobby").to_dict()["data"]["room"] == "lobby"


def test_requests_use_camel_case_keys():
    assert TypingRequest(True).to_dict()["data"] == {"isTyping": True}
    assert ReactionRequest(3, "👍").to_dict()["data"] == {
        "messageId": 3,
        "emoji": "👍",
    }
    data = LoadMoreRequest("2025-11-23T10:00:00Z", "general").to_dict()["data"]
    assert data == {
        "beforeTimestamp": "2025-11-23T10:00:00Z",
        "room": "general",
    }


def test_chat_message_from_wire_form():
    message = ChatMessage.from_dict(
        {
            "type": "receive_message",
            "data": {
                "id": 1,
                "sender": "alice",
                "senderId": "A",
                "text": "hi",
                "timestamp": "2025-11-23T10:00:00+00:00",
                "room": "general",
                "isPrivate": False,
                "recipient": None,
                "recipientId": None,
                "readBy": ["A"],
                "reactions": {},
            },
        }
    )
    assert message.sender_id == "A"
    assert message.read_by == ["A"]
    assert message.room == "general"


# ----------------------------------------------------------------------------
# ClientService
# ----------------------------------------------------------------------------


def test_client_service_starts_disconnected():
    service = ClientService(server_url="ws://localhost:8080")
    assert service.server_url == "ws://localhost:8080"
    assert not service.is_connected


@pytest.mark.asyncio
async def test_connect_and_send_requests():
    factory, websocket = make_factory()
    service = ClientService("ws://chat", websocket_factory=factory)
    await service.connect()
    factory.assert_awaited_once_with("ws://chat")
    assert service.is_connected

    await service.join("alice", "general")
    await service.send_message("hello")
    await service.send_private_message("B", "psst")
    await service.mark_read(4)

    frames = sent_frames(websocket)
    assert [f["type"] for f in frames] == [
        "join",
        "send",
        "private_message",
        "read",
    ]
    assert frames[2]["data"] == {"to": "B", "text": "psst"}
    assert frames[3]["data"] == {"messageId": 4}
    assert service.username == "alice"
    assert service.room == "general"

    await service.disconnect()
    websocket.close.assert_awaited_once()
    assert not service.is_connected


@pytest.mark.asyncio
async def test_connect_failure_raises_connection_error():
    factory = AsyncMock(side_effect=OSError("refused"))
    service = ClientService("ws://chat", websocket_factory=factory)
    with pytest.raises(ConnectionError):
        await service.connect()
    assert not service.is_connected


@pytest.mark.asyncio
async def test_send_requires_connection():
    service = ClientService("ws://chat")
    with pytest.raises(ConnectionError):
        await service.send_message("hello")


def test_dispatch_invokes_handlers():
    service = ClientService("ws://chat")
    received = []
    service.on("typing_users", received.append)

    event = service.dispatch(
        json.dumps({"type": "typing_users", "data": ["alice"]})
    )
    assert event == "typing_users"
    assert received == [["alice"]]


def test_dispatch_ignores_malformed_frames():
    service = ClientService("ws://chat")
    assert service.dispatch("{oops") is None


@pytest.mark.parametrize("frame", ["[]", "42", "\"text\"", "null"])
def test_dispatch_ignores_non_object_frames(frame):
    service = ClientService("ws://chat")
    received = []
    service.on("error", received.append)
    assert service.dispatch(frame) is None
    assert received == []
