"""SQLite chat history backend.

Provides persistent chat history using a SQLite database file.
Uses aiosqlite for async access. A database file that cannot be opened
(corrupted or not a database) is deleted and recreated empty.
"""

import logging
import sqlite3
from datetime import datetime
from pathlib import Path

import aiosqlite

from .base import HistoryStore
from .models import Sender, StoredMessage

logger = logging.getLogger(__name__)


class SQLiteHistoryStore(HistoryStore):
    """SQLite-backed chat history.

    Records are ordered by an autoincrement ``seq`` column, which is also
    the eviction order.
    """

    def __init__(
        self,
        path: str | Path = "./scibot_history.db",
        **limits: int
    ):
        super().__init__(**limits)
        self._db_path = Path(path)
        self._connection: aiosqlite.Connection | None = None

    async def connect(self) -> None:
        """Open the database, recreating it if the file is unreadable."""
        self._db_path.parent.mkdir(parents=True, exist_ok=True)
        try:
            await self._open()
        except sqlite3.DatabaseError as e:
            logger.warning("History database %s unreadable (%s); recreating it", self._db_path, e)
            await self.disconnect()
            self._db_path.unlink(missing_ok=True)
            await self._open()

    async def _open(self) -> None:
        self._connection = await aiosqlite.connect(self._db_path)
        await self._create_schema()

    async def _create_schema(self) -> None:
        """Create database tables."""
        await self._connection.execute("""
            CREATE TABLE IF NOT EXISTS chat_messages (
                seq INTEGER PRIMARY KEY AUTOINCREMENT,
                id TEXT NOT NULL UNIQUE,
                sender TEXT NOT NULL,
                text TEXT NOT NULL,
                timestamp TEXT NOT NULL,
                character_id TEXT NOT NULL,
                context TEXT
            )
        """)

        await self._connection.execute("""
            CREATE INDEX IF NOT EXISTS idx_chat_messages_character
            ON chat_messages(character_id, seq)
        """)

        await self._connection.commit()

    async def disconnect(self) -> None:
        """Close database connection."""
        if self._connection:
            await self._connection.close()
            self._connection = None

    async def append(self, record: StoredMessage) -> None:
        await self._connection.execute("""
            INSERT INTO chat_messages (id, sender, text, timestamp, character_id, context)
            VALUES (?, ?, ?, ?, ?, ?)
            ON CONFLICT(id) DO UPDATE SET
                sender = excluded.sender,
                text = excluded.text,
                timestamp = excluded.timestamp,
                character_id = excluded.character_id,
                context = excluded.context
        """, (
            record.id,
            record.sender.value,
            record.text,
            record.timestamp.isoformat(),
            record.character_id,
            record.context,
        ))

        # Per-character cap first, then the global cap
        await self._connection.execute("""
            DELETE FROM chat_messages
            WHERE character_id = ? AND seq NOT IN (
                SELECT seq FROM chat_messages
                WHERE character_id = ?
                ORDER BY seq DESC
                LIMIT ?
            )
        """, (record.character_id, record.character_id, self._per_character_limit))

        await self._connection.execute("""
            DELETE FROM chat_messages
            WHERE seq NOT IN (
                SELECT seq FROM chat_messages
                ORDER BY seq DESC
                LIMIT ?
            )
        """, (self._max_records,))

        await self._connection.commit()

    async def load(self, character_id: str, limit: int | None = None) -> list[StoredMessage]:
        if limit is None:
            query = """
                SELECT id, sender, text, timestamp, character_id, context
                FROM chat_messages
                WHERE character_id = ?
                ORDER BY seq ASC
            """
            params: tuple = (character_id,)
        else:
            query = """
                SELECT id, sender, text, timestamp, character_id, context FROM (
                    SELECT seq, id, sender, text, timestamp, character_id, context
                    FROM chat_messages
                    WHERE character_id = ?
                    ORDER BY seq DESC
                    LIMIT ?
                ) ORDER BY seq ASC
            """
            params = (character_id, max(limit, 0))

        async with self._connection.execute(query, params) as cursor:
            rows = await cursor.fetchall()

        records = []
        for row in rows:
            record_id, sender, text, ts, char_id, context = row
            records.append(StoredMessage(
                id=record_id,
                sender=Sender(sender),
                text=text,
                timestamp=datetime.fromisoformat(ts),
                character_id=char_id,
                context=context,
            ))
        return records

    async def delete(self, record_id: str) -> None:
        await self._connection.execute(
            "DELETE FROM chat_messages WHERE id = ?",
            (record_id,)
        )
        await self._connection.commit()

    async def delete_character(self, character_id: str) -> int:
        cursor = await self._connection.execute(
            "DELETE FROM chat_messages WHERE character_id = ?",
            (character_id,)
        )
        deleted = cursor.rowcount
        await cursor.close()
        await self._connection.commit()
        return deleted

    async def clear(self) -> None:
        await self._connection.execute("DELETE FROM chat_messages")
        await self._connection.commit()

    async def count(self, character_id: str | None = None) -> int:
        if character_id is None:
            query, params = "SELECT COUNT(*) FROM chat_messages", ()
        else:
            query = "SELECT COUNT(*) FROM chat_messages WHERE character_id = ?"
            params = (character_id,)

        async with self._connection.execute(query, params) as cursor:
            row = await cursor.fetchone()
        return row[0]

    @property
    def backend_type(self) -> str:
        return "sqlite"

    @property
    def db_path(self) -> Path:
        return self._db_path
