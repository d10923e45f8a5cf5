"""Shared fixtures for the chat server tests."""

import pytest

from src.chat_server import SessionCoordinator


class RecordingChannel:
    """Broadcast channel that records every delivered event."""

    def __init__(self):
        self.sent = []

    def __call__(self, conn_id, event, payload):
        self.sent.append((conn_id, event, payload))

    def events_for(self, conn_id, event=None):
        return [
            payload
            for target, name, payload in self.sent
            if target == conn_id and (event is None or name == event)
        ]

    def names_for(self, conn_id):
        return [name for target, name, _ in self.sent if target == conn_id]

    def last(self, conn_id, event):
        payloads = self.events_for(conn_id, event)
        return payloads[-1] if payloads else None

    def clear(self):
        self.sent.clear()


@pytest.fixture
def channel():
    return RecordingChannel()


@pytest.fixture
def coordinator(channel):
    return SessionCoordinator(channel, capacity=1000, history_limit=50)

