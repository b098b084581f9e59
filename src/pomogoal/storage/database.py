"""SQLite database management for the goal and session store."""

from __future__ import annotations

import asyncio
import logging
from pathlib import Path
from typing import Any

import aiosqlite

logger = logging.getLogger(__name__)

# Schema version for migrations
SCHEMA_VERSION = 1

# Database schema
SCHEMA = """
-- Schema version tracking
CREATE TABLE IF NOT EXISTS schema_version (
    version INTEGER PRIMARY KEY,
    applied_at DATETIME DEFAULT CURRENT_TIMESTAMP
);

-- Goals
CREATE TABLE IF NOT EXISTS goals (
    id INTEGER PRIMARY KEY AUTOINCREMENT,
    user_id TEXT NOT NULL,
    title TEXT NOT NULL,
    description TEXT,
    category TEXT,
    priority TEXT DEFAULT 'Medium',
    status TEXT DEFAULT 'Pending',
    deadline DATE,
    estimated_pomodoros INTEGER DEFAULT 1,
    created_at DATETIME DEFAULT CURRENT_TIMESTAMP
);

CREATE INDEX IF NOT EXISTS idx_goals_user_status ON goals(user_id, status);

-- Completed work intervals
CREATE TABLE IF NOT EXISTS pomodoro_sessions (
    id INTEGER PRIMARY KEY AUTOINCREMENT,
    user_id TEXT NOT NULL,
    goal_id INTEGER REFERENCES goals(id) ON DELETE SET NULL,
    start_time DATETIME NOT NULL,
    end_time DATETIME,
    completed BOOLEAN DEFAULT FALSE,
    pomodoro_number INTEGER DEFAULT 1,
    total_pomodoros INTEGER DEFAULT 1
);

CREATE INDEX IF NOT EXISTS idx_sessions_user_start ON pomodoro_sessions(user_id, start_time);
"""


PRAGMAS = (
    "PRAGMA journal_mode=WAL",
    "PRAGMA synchronous=NORMAL",
    # Sessions outlive deleted goals (ON DELETE SET NULL)
    "PRAGMA foreign_keys=ON",
    "PRAGMA busy_timeout=5000",
)


class Database:
    """Async SQLite store for goals and pomodoro sessions.

    Runs in autocommit mode with WAL; writes are serialized by a lock,
    reads go straight to the connection.
    """

    def __init__(self, db_path: Path | str):
        self.db_path = db_path if str(db_path) == ":memory:" else Path(db_path)
        self._connection: aiosqlite.Connection | None = None
        self._write_lock = asyncio.Lock()

    @property
    def is_connected(self) -> bool:
        return self._connection is not None

    @property
    def conn(self) -> aiosqlite.Connection:
        """Open connection; raises RuntimeError before connect()."""
        if self._connection is None:
            raise RuntimeError("Database not connected")
        return self._connection

    async def connect(self) -> None:
        """Open the connection and make sure the schema exists."""
        if self.is_connected:
            return

        if isinstance(self.db_path, Path):
            self.db_path.parent.mkdir(parents=True, exist_ok=True)

        self._connection = await aiosqlite.connect(self.db_path, isolation_level=None)
        for pragma in PRAGMAS:
            await self._connection.execute(pragma)
        self._connection.row_factory = aiosqlite.Row

        await self._migrate()
        logger.info(f"Goal store database opened: {self.db_path}")

    async def _migrate(self) -> None:
        await self.conn.executescript(SCHEMA)

        row = await self.fetch_one("SELECT MAX(version) AS version FROM schema_version")
        current = (row or {}).get("version") or 0
        if current < SCHEMA_VERSION:
            await self.execute(
                "INSERT INTO schema_version (version) VALUES (?)", (SCHEMA_VERSION,)
            )
            logger.info(f"Goal store schema at version {SCHEMA_VERSION}")

    async def close(self) -> None:
        if self._connection is None:
            return
        await self._connection.close()
        self._connection = None
        logger.info("Goal store database closed")

    # Writes

    async def _write(self, query: str, params: tuple[Any, ...]) -> aiosqlite.Cursor:
        async with self._write_lock:
            return await self.conn.execute(query, params)

    async def execute(self, query: str, params: tuple[Any, ...] = ()) -> int:
        """Run a statement; returns the last inserted row id (0 if none)."""
        cursor = await self._write(query, params)
        return cursor.lastrowid or 0

    async def execute_rowcount(self, query: str, params: tuple[Any, ...] = ()) -> int:
        """Run a statement; returns how many rows it changed."""
        cursor = await self._write(query, params)
        return cursor.rowcount

    async def insert(self, table: str, data: dict[str, Any]) -> int:
        """Insert one row from a column->value mapping and return its id."""
        columns = ", ".join(data)
        placeholders = ", ".join("?" for _ in data)
        return await self.execute(
            f"INSERT INTO {table} ({columns}) VALUES ({placeholders})", tuple(data.values())
        )

    # Reads

    async def fetch_one(self, query: str, params: tuple[Any, ...] = ()) -> dict[str, Any] | None:
        async with self.conn.execute(query, params) as cursor:
            row = await cursor.fetchone()
        return dict(row) if row else None

    async def fetch_all(self, query: str, params: tuple[Any, ...] = ()) -> list[dict[str, Any]]:
        async with self.conn.execute(query, params) as cursor:
            rows = await cursor.fetchall()
        return [dict(row) for row in rows]

    async def get_size_mb(self) -> float:
        """Size of the database file in MB (0 for in-memory databases)."""
        if isinstance(self.db_path, Path) and self.db_path.exists():
            return self.db_path.stat().st_size / (1024 * 1024)
        return 0.0
