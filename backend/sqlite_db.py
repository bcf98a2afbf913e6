"""
SQLite adapter for the chat relay.

A single aiosqlite connection shared by the whole process. Reads go straight
through; writes are serialized behind an asyncio.Lock so concurrent stream
sessions touching the same conversation row never interleave inside a
transaction (last write wins).

Architecture:
  - users, conversations and messages are plain tables
  - messages reference conversations with ON DELETE CASCADE
  - messages carry an autoincrement `seq` so rows created within the same
    timestamp still have a stable creation order

Usage:
    db = get_database()
    row = await db.fetch_one("SELECT * FROM users WHERE email = ?", (email,))
"""

import asyncio
import logging
import uuid
import aiosqlite
from pathlib import Path
from typing import Any, Dict, List, Optional, Sequence

logger = logging.getLogger(__name__)


def new_id() -> str:
    """Generate a 24-character hex identifier."""
    return uuid.uuid4().hex[:24]


# ============================================================
# Schema
# ============================================================

_SCHEMA = """
CREATE TABLE IF NOT EXISTS users (
    id TEXT PRIMARY KEY,
    email TEXT NOT NULL UNIQUE,
    name TEXT NOT NULL,
    password_hash TEXT NOT NULL,
    created_at TEXT NOT NULL
);

CREATE TABLE IF NOT EXISTS conversations (
    id TEXT PRIMARY KEY,
    user_id TEXT NOT NULL,
    title TEXT,
    created_at TEXT NOT NULL,
    updated_at TEXT NOT NULL
);
CREATE INDEX IF NOT EXISTS idx_conversations_user
    ON conversations (user_id, updated_at);

CREATE TABLE IF NOT EXISTS messages (
    seq INTEGER PRIMARY KEY AUTOINCREMENT,
    id TEXT NOT NULL UNIQUE,
    conversation_id TEXT NOT NULL
        REFERENCES conversations (id) ON DELETE CASCADE,
    user_id TEXT NOT NULL,
    role TEXT NOT NULL CHECK (role IN ('user', 'assistant')),
    content TEXT NOT NULL,
    created_at TEXT NOT NULL
);
CREATE INDEX IF NOT EXISTS idx_messages_conversation
    ON messages (conversation_id, created_at, seq);
"""


# ============================================================
# Database
# ============================================================

class SQLiteDatabase:
    """Async SQLite database with a serialized write path.

    Rows come back as plain dicts keyed by column name.
    """

    def __init__(self, db_path: str):
        self._db_path = db_path
        self._conn: Optional[aiosqlite.Connection] = None
        self._write_lock = asyncio.Lock()

    async def connect(self) -> None:
        """Open the SQLite connection and create the schema."""
        if self._db_path != ":memory:":
            Path(self._db_path).parent.mkdir(parents=True, exist_ok=True)
        self._conn = await aiosqlite.connect(self._db_path, timeout=30.0)
        self._conn.row_factory = aiosqlite.Row
        # WAL for concurrent readers while a stream session writes
        await self._conn.execute("PRAGMA journal_mode=WAL")
        await self._conn.execute("PRAGMA foreign_keys=ON")
        await self._conn.execute("PRAGMA busy_timeout=5000")
        await self._conn.executescript(_SCHEMA)
        await self._conn.commit()
        logger.info(f"SQLite database connected: {self._db_path}")

    async def close(self) -> None:
        """Close the SQLite connection."""
        if self._conn:
            await self._conn.close()
            self._conn = None
            logger.info("SQLite database closed")

    def _get_conn(self) -> aiosqlite.Connection:
        if self._conn is None:
            raise RuntimeError("Database not connected. Call connect() first.")
        return self._conn

    async def command(self, cmd: str) -> Dict:
        """Liveness probe (`ping`)."""
        if cmd == "ping":
            await self._get_conn().execute("SELECT 1")
        return {"ok": 1}

    async def fetch_one(self, sql: str, params: Sequence[Any] = ()) -> Optional[Dict[str, Any]]:
        """Run a query and return the first row as a dict (or None)."""
        async with self._get_conn().execute(sql, params) as cursor:
            row = await cursor.fetchone()
        return dict(row) if row else None

    async def fetch_all(self, sql: str, params: Sequence[Any] = ()) -> List[Dict[str, Any]]:
        """Run a query and return every row as a dict."""
        async with self._get_conn().execute(sql, params) as cursor:
            rows = await cursor.fetchall()
        return [dict(r) for r in rows]

    async def execute(self, sql: str, params: Sequence[Any] = ()) -> int:
        """Run a single write statement and commit.

        Returns:
            Number of rows affected.
        """
        conn = self._get_conn()
        async with self._write_lock:
            cursor = await conn.execute(sql, params)
            await conn.commit()
            return cursor.rowcount

    async def insert(self, table: str, row: Dict[str, Any]) -> None:
        """Insert one row given as a column → value dict."""
        columns = ", ".join(row)
        placeholders = ", ".join("?" for _ in row)
        await self.execute(
            f"INSERT INTO {table} ({columns}) VALUES ({placeholders})",
            tuple(row.values()),
        )
