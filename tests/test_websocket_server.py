"""
Tests for the WebSocket transport

Tests for:
- Frame decoding and error frames (INVALID_JSON, INVALID_PAYLOAD, UNKNOWN_EVENT)
- Per-connection outbound queues and writer tasks
- Disconnect handling when a client goes away
- An end-to-end exchange over a real socket
"""

import asyncio
import json

import pytest
import websockets

from src.chat_server import SessionCoordinator, WebSocketServer


class MockWebSocket:
    """Mock WebSocket for testing."""

    def __init__(self, incoming=None):
        self.sent_messages = []
        self._incoming = list(incoming or [])

    async def send(self, message):
        self.sent_messages.append(message)

    def __aiter__(self):
        return self

    async def __anext__(self):
        if not self._incoming:
            raise StopAsyncIteration
        return self._incoming.pop(0)


def drain(connection):
    frames = []
    while not connection.outbox.empty():
        frames.append(json.loads(connection.outbox.get_nowait()))
    return frames


def frame(event, data=None):
    return json.dumps({"type": event, "data": data or {}})


@pytest.fixture
def server():
    ws_server = WebSocketServer("localhost", 0)
    ws_server.set_coordinator(SessionCoordinator(ws_server.deliver))
    return ws_server


def test_process_message_routes_to_coordinator(server):
    connection = server.register_connection(MockWebSocket())
    server.process_message(
        connection.conn_id, frame("join", {"username": "alice"})
    )

    types = [f["type"] for f in drain(connection)]
    assert types == [
        "user_joined",
        "room_users",
        "room_notification",
        "room_messages",
    ]
    assert server.coordinator.registry.get(connection.conn_id).username == "alice"


def test_invalid_json_returns_error(server):
    connection = server.register_connection(MockWebSocket())
    server.process_message(connection.conn_id, "{not json")

    frames = drain(connection)
    assert frames[0]["type"] == "error"
    assert frames[0]["data"]["error_code"] == "INVALID_JSON"


def test_frame_without_type_is_rejected(server):
    connection = server.register_connection(MockWebSocket())
    server.process_message(connection.conn_id, json.dumps(["join"]))
    assert drain(connection)[0]["data"]["error_code"] == "INVALID_PAYLOAD"


def test_invalid_payload_returns_error(server):
    connection = server.register_connection(MockWebSocket())
    server.process_message(connection.conn_id, frame("join", {"username": ""}))

    error = drain(connection)[0]
    assert error["type"] == "error"
    assert error["data"]["error_code"] == "INVALID_PAYLOAD"
    assert "username" in error["data"]["message"]


def test_unknown_event_returns_error(server):
    connection = server.register_connection(MockWebSocket())
    server.process_message(connection.conn_id, frame("teleport"))
    assert drain(connection)[0]["data"]["error_code"] == "UNKNOWN_EVENT"


def test_client_cannot_send_disconnect(server):
    connection = server.register_connection(MockWebSocket())
    server.process_message(
        connection.conn_id, frame("join", {"username": "alice"})
    )
    drain(connection)

    server.process_message(connection.conn_id, frame("disconnect"))

    frames = drain(connection)
    assert [f["type"] for f in frames] == ["error"]
    assert frames[0]["data"]["error_code"] == "UNKNOWN_EVENT"
    assert server.coordinator.registry.get(connection.conn_id) is not None


def test_deliver_to_unknown_connection_is_dropped(server):
    server.deliver("missing", "room_users", [])
    assert server.connection_count == 0


@pytest.mark.asyncio
async def test_write_loop_sends_in_order():
    ws_server = WebSocketServer("localhost", 0)
    websocket = MockWebSocket()
    connection = ws_server.register_connection(websocket)
    connection.writer = asyncio.create_task(connection.write_loop())

    for i in range(3):
        ws_server.deliver(connection.conn_id, "typing_users", [f"user{i}"])
    for _ in range(5):
        await asyncio.sleep(0)

    sent = [json.loads(m)["data"] for m in websocket.sent_messages]
    assert sent == [["user0"], ["user1"], ["user2"]]

    ws_server.unregister_connection(connection.conn_id)
    await asyncio.sleep(0)
    assert connection.writer.cancelled() or connection.writer.done()


@pytest.mark.asyncio
async def test_handle_client_disconnect_notifies_room(server):
    bob = server.register_connection(MockWebSocket())
    server.process_message(bob.conn_id, frame("join", {"username": "bob"}))
    drain(bob)

    alice_socket = MockWebSocket(
        incoming=[frame("join", {"username": "alice"})]
    )
    await server.handle_client(alice_socket)

    types = [f["type"] for f in drain(bob)]
    assert "user_joined" in types
    assert "user_left" in types
    assert server.connection_count == 1
    assert len(server.coordinator.registry) == 1


@pytest.mark.asyncio
async def test_end_to_end_over_socket():
    ws_server = WebSocketServer("127.0.0.1", 0)
    ws_server.set_coordinator(SessionCoordinator(ws_server.deliver))
    await ws_server.start()
    port = list(ws_server.server.sockets)[0].getsockname()[1]

    async def receive_until(websocket, event):
        while True:
            message = json.loads(await websocket.recv())
            if message["type"] == event:
                return message["data"]

    try:
        async with websockets.connect(f"ws://127.0.0.1:{port}") as alice, \
                websockets.connect(f"ws://127.0.0.1:{port}") as bob:
            await alice.send(frame("join", {"username": "alice"}))
            await asyncio.wait_for(receive_until(alice, "room_messages"), 5)
            await bob.send(frame("join", {"username": "bob"}))
            await asyncio.wait_for(receive_until(bob, "room_messages"), 5)

            await alice.send(frame("send", {"text": "hi"}))
            message = await asyncio.wait_for(
                receive_until(bob, "receive_message"), 5
            )
            assert message["sender"] == "alice"
            assert message["text"] == "hi"
    finally:
        await ws_server.stop()
