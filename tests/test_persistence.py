"""
Tests for the SQLite write-behind message sink
"""

import pytest

from src.chat_server import SessionCoordinator, SqliteMessageSink


@pytest.mark.asyncio
async def test_sink_writes_and_updates_messages(tmp_path, channel):
    sink = SqliteMessageSink(str(tmp_path / "chat.db"))
    await sink.start()
    try:
        coordinator = SessionCoordinator(channel, sink=sink)
        coordinator.handle("A", "join", {"username": "alice"})
        coordinator.handle("B", "join", {"username": "bob"})
        coordinator.handle("A", "send", {"text": "hi"})
        message_id = coordinator.messages.all()[0].id
        coordinator.handle("B", "read", {"messageId": message_id})
        coordinator.handle(
            "B", "reaction", {"messageId": message_id, "emoji": "👍"}
        )

        await sink._queue.join()

        assert await sink.count() == 1
        stored = await sink.load(message_id)
        assert stored["sender"] == "alice"
        assert stored["room"] == "general"
        assert stored["readBy"] == ["A", "B"]
        assert stored["reactions"] == {"👍": ["B"]}
        assert stored["isPrivate"] is False
        assert sink.written == 3
        assert sink.dropped == 0
    finally:
        await sink.stop()


@pytest.mark.asyncio
async def test_sink_stores_private_messages(tmp_path, channel):
    sink = SqliteMessageSink(str(tmp_path / "chat.db"))
    await sink.start()
    try:
        coordinator = SessionCoordinator(channel, sink=sink)
        coordinator.handle("A", "join", {"username": "alice"})
        coordinator.handle("B", "join", {"username": "bob"})
        coordinator.handle("A", "private_message", {"to": "B", "text": "psst"})
        await sink._queue.join()

        stored = await sink.load(1)
        assert stored["isPrivate"] is True
        assert stored["room"] is None
        assert stored["recipient"] == "bob"
        assert await sink.load(2) is None
    finally:
        await sink.stop()


@pytest.mark.asyncio
async def test_full_queue_drops_without_raising(tmp_path, channel):
    sink = SqliteMessageSink(str(tmp_path / "chat.db"), max_pending=1)
    coordinator = SessionCoordinator(channel, sink=sink)
    coordinator.handle("A", "join", {"username": "alice"})
    coordinator.handle("A", "send", {"text": "one"})
    coordinator.handle("A", "send", {"text": "two"})

    assert sink.dropped == 1
    assert len(coordinator.messages) == 2
    assert not sink.is_running


@pytest.mark.asyncio
async def test_ids_continue_across_restarts(tmp_path, channel):
    path = str(tmp_path / "chat.db")

    sink = SqliteMessageSink(path)
    await sink.start()
    first_run = SessionCoordinator(channel, sink=sink)
    first_run.messages.resume_after(await sink.last_id())
    first_run.handle("A", "join", {"username": "alice"})
    first_run.handle("A", "send", {"text": "before restart"})
    await sink.stop()

    sink = SqliteMessageSink(path)
    await sink.start()
    try:
        assert await sink.last_id() == 1
        second_run = SessionCoordinator(channel, sink=sink)
        second_run.messages.resume_after(await sink.last_id())
        second_run.handle("X", "join", {"username": "zed"})
        second_run.handle("X", "send", {"text": "after restart"})
        await sink._queue.join()

        assert second_run.messages.all()[0].id == 2
        assert await sink.count() == 2
        old = await sink.load(1)
        assert (old["sender"], old["text"]) == ("alice", "before restart")
        assert old["readBy"] == ["A"]
        new = await sink.load(2)
        assert (new["sender"], new["text"]) == ("zed", "after restart")
    finally:
        await sink.stop()


@pytest.mark.asyncio
async def test_colliding_id_keeps_stored_message(tmp_path, channel):
    path = str(tmp_path / "chat.db")

    sink = SqliteMessageSink(path)
    await sink.start()
    first_run = SessionCoordinator(channel, sink=sink)
    first_run.handle("A", "join", {"username": "alice"})
    first_run.handle("A", "send", {"text": "original"})
    await sink.stop()

    sink = SqliteMessageSink(path)
    await sink.start()
    try:
        # Without resume_after the new message reuses id 1
        second_run = SessionCoordinator(channel, sink=sink)
        second_run.handle("X", "join", {"username": "zed"})
        second_run.handle("X", "send", {"text": "newcomer"})
        second_run.handle("Y", "join", {"username": "yan"})
        second_run.handle("Y", "read", {"messageId": 1})
        await sink._queue.join()

        stored = await sink.load(1)
        assert stored["sender"] == "alice"
        assert stored["text"] == "original"
        assert stored["readBy"] == ["A"]
    finally:
        await sink.stop()
