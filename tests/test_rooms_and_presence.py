"""
Tests for ConnectionRegistry, RoomDirectory and PresenceTracker
"""

from datetime import datetime, timedelta, timezone

import pytest

from src.chat_server import ConnectionRegistry, PresenceTracker, RoomDirectory


@pytest.fixture
def registry():
    return ConnectionRegistry()


@pytest.fixture
def rooms(registry):
    return RoomDirectory(registry)


# ----------------------------------------------------------------------------
# ConnectionRegistry
# ----------------------------------------------------------------------------


def test_register_and_get(registry):
    session = registry.register("A", "alice", "general")
    assert registry.get("A") is session
    assert session.to_dict()["username"] == "alice"
    assert session.to_dict()["id"] == "A"


def test_register_overwrites(registry):
    registry.register("A", "alice", "general")
    registry.register("A", "alicia", "random")
    assert registry.get("A").username == "alicia"
    assert len(registry) == 1


def test_unknown_ids_do_not_raise(registry):
    assert registry.get("missing") is None
    assert registry.remove("missing") is None
    registry.update_room("missing", "general")


def test_update_room_and_remove(registry):
    registry.register("A", "alice", "general")
    registry.update_room("A", "random")
    assert registry.get("A").room == "random"
    assert registry.remove("A").username == "alice"
    assert registry.get("A") is None


# ----------------------------------------------------------------------------
# RoomDirectory
# ----------------------------------------------------------------------------


def test_ensure_room_is_idempotent(rooms):
    first = rooms.ensure_room("general")
    assert rooms.ensure_room("general") is first
    assert len(rooms.summaries()) == 1


def test_members_resolve_sessions_in_join_order(registry, rooms):
    registry.register("B", "bob", "general")
    registry.register("A", "alice", "general")
    rooms.add_member("general", "B")
    rooms.add_member("general", "A")
    assert [s.username for s in rooms.members("general")] == ["bob", "alice"]


def test_members_skip_ids_without_session(registry, rooms):
    registry.register("A", "alice", "general")
    rooms.add_member("general", "A")
    rooms.add_member("general", "ghost")
    assert [s.conn_id for s in rooms.members("general")] == ["A"]
    assert rooms.member_ids("general") == ["A", "ghost"]


def test_remove_member_from_unknown_room_is_noop(rooms):
    assert rooms.remove_member("nowhere", "A") is False
    assert "nowhere" not in rooms


def test_empty_rooms_are_kept(rooms):
    rooms.add_member("general", "A")
    assert rooms.remove_member("general", "A") is True
    summary = rooms.summaries()[0]
    assert summary["name"] == "general"
    assert summary["memberCount"] == 0
    assert "createdAt" in summary


# ----------------------------------------------------------------------------
# PresenceTracker
# ----------------------------------------------------------------------------


def test_typing_usernames_are_room_scoped(registry):
    presence = PresenceTracker(registry)
    registry.register("A", "alice", "general")
    registry.register("B", "bob", "random")
    presence.set_typing("A", True)
    presence.set_typing("B", True)

    assert presence.typing_usernames("general") == ["alice"]
    assert presence.typing_usernames("random") == ["bob"]


def test_typing_false_clears_flag(registry):
    presence = PresenceTracker(registry)
    registry.register("A", "alice", "general")
    presence.set_typing("A", True)
    presence.set_typing("A", False)
    assert presence.typing_usernames("general") == []
    assert presence.clear("A") is False


def test_stale_lists_old_flags_only(registry):
    presence = PresenceTracker(registry)
    presence.set_typing("A", True)
    now = datetime.now(timezone.utc)
    assert presence.stale(now - timedelta(minutes=1)) == []
    assert presence.stale(now + timedelta(seconds=1)) == ["A"]
