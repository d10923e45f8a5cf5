"""
SQLite Message Sink

Optional write-behind store for chat messages. The coordinator calls
`record()` synchronously after every message change; the message is
snapshotted onto a queue and a background task writes it to SQLite.
Storage failures are logged and dropped so they never affect the
in-memory broadcast path. An update only touches the row whose id,
sender and timestamp all match, so an id reused by a later run cannot
overwrite an earlier message.

Usage:
    sink = SqliteMessageSink("chat.db")
    await sink.start()
    coordinator = SessionCoordinator(channel, sink=sink)
    coordinator.messages.resume_after(await sink.last_id())
    ...
    await sink.stop()
"""

import asyncio
import json
import logging
from typing import Any, Dict, Optional

import aiosqlite

logger = logging.getLogger(__name__)

# Maximum number of pending writes before new ones are dropped
DEFAULT_MAX_PENDING = 10000

SCHEMA = """
CREATE TABLE IF NOT EXISTS messages (
    id INTEGER PRIMARY KEY,
    sender TEXT NOT NULL,
    sender_id TEXT NOT NULL,
    room TEXT,
    text TEXT NOT NULL,
    timestamp TEXT NOT NULL,
    is_private INTEGER NOT NULL DEFAULT 0,
    recipient TEXT,
    recipient_id TEXT,
    read_by TEXT NOT NULL DEFAULT '[]',
    reactions TEXT NOT NULL DEFAULT '{}'
);
CREATE INDEX IF NOT EXISTS idx_messages_room_ts ON messages (room, timestamp);
CREATE INDEX IF NOT EXISTS idx_messages_sender_ts ON messages (sender_id, timestamp);
"""

UPSERT = """
INSERT INTO messages (
    id, sender, sender_id, room, text, timestamp,
    is_private, recipient, recipient_id, read_by, reactions
) VALUES (?, ?, ?, ?, ?, ?, ?, ?, ?, ?, ?)
ON CONFLICT(id) DO UPDATE SET
    read_by = excluded.read_by,
    reactions = excluded.reactions
WHERE messages.sender_id = excluded.sender_id
    AND messages.timestamp = excluded.timestamp
"""


def message_row(data: Dict[str, Any]) -> tuple:
    """Flatten a serialized message into an UPSERT parameter tuple."""
    return (
        data["id"],
        data["sender"],
        data["senderId"],
        data["room"],
        data["text"],
        data["timestamp"],
        1 if data["isPrivate"] else 0,
        data["recipient"],
        data["recipientId"],
        json.dumps(data["readBy"]),
        json.dumps(data["reactions"], ensure_ascii=False),
    )


class SqliteMessageSink:
    """
    Write-behind message sink backed by aiosqlite.

    Attributes:
        path: SQLite database file
        written: Number of rows written since start
        dropped: Number of writes discarded (queue full or storage error)
    """

    def __init__(self, path: str, max_pending: int = DEFAULT_MAX_PENDING):
        self.path = path
        self.written = 0
        self.dropped = 0
        self._queue: asyncio.Queue = asyncio.Queue(maxsize=max_pending)
        self._db: Optional[aiosqlite.Connection] = None
        self._task: Optional[asyncio.Task] = None

    @property
    def is_running(self) -> bool:
        return self._task is not None and not self._task.done()

    async def start(self):
        """Open the database, create the schema and start the writer."""
        self._db = await aiosqlite.connect(self.path)
        await self._db.execute("PRAGMA journal_mode=WAL;")
        await self._db.executescript(SCHEMA)
        await self._db.commit()
        self._task = asyncio.create_task(self._writer())
        logger.info(f"Message sink started at {self.path}")

    async def stop(self):
        """Flush pending writes, then close the database."""
        if self._task:
            await self._queue.join()
            self._task.cancel()
            try:
                await self._task
            except asyncio.CancelledError:
                pass
            self._task = None
        if self._db:
            await self._db.close()
            self._db = None
        logger.info(
            f"Message sink stopped ({self.written} written, "
            f"{self.dropped} dropped)"
        )

    def record(self, message):
        """
        Queue the current state of a message for storage.

        Never blocks; when the queue is full the write is dropped.
        """
        try:
            self._queue.put_nowait(message.to_dict())
        except asyncio.QueueFull:
            self.dropped += 1
            logger.warning(f"Storage queue full, dropping message {message.id}")

    async def _writer(self):
        while True:
            data = await self._queue.get()
            try:
                await self._db.execute(UPSERT, message_row(data))
                await self._db.commit()
                self.written += 1
            except Exception as e:
                self.dropped += 1
                logger.error(f"Failed to store message {data.get('id')}: {e}")
            finally:
                self._queue.task_done()

    async def last_id(self) -> int:
        """Highest stored message id, 0 for an empty database."""
        async with self._db.execute("SELECT MAX(id) FROM messages") as cursor:
            row = await cursor.fetchone()
        return row[0] or 0

    async def count(self) -> int:
        """Number of stored messages."""
        async with self._db.execute("SELECT COUNT(*) FROM messages") as cursor:
            row = await cursor.fetchone()
        return row[0]

    async def load(self, message_id: int) -> Optional[Dict[str, Any]]:
        """Read one stored message back in its wire form."""
        async with self._db.execute(
            "SELECT id, sender, sender_id, room, text, timestamp, is_private, "
            "recipient, recipient_id, read_by, reactions "
            "FROM messages WHERE id = ?",
            (message_id,),
        ) as cursor:
            row = await cursor.fetchone()
        if row is None:
            return None
        return {
            "id": row[0],
            "sender": row[1],
            "senderId": row[2],
            "room": row[3],
            "text": row[4],
            "timestamp": row[5],
            "isPrivate": bool(row[6]),
            "recipient": row[7],
            "recipientId": row[8],
            "readBy": json.loads(row[9]),
            "reactions": json.loads(row[10]),
        }
