"""Async SQLite access for worldgrid.

A thin aiosqlite wrapper: one connection, explicit transactions, and the
schema version kept in SQLite's ``user_version`` pragma. The key-value store
is layered on top of this.
"""

from __future__ import annotations

import asyncio
import logging
from contextlib import asynccontextmanager
from pathlib import Path
from typing import TYPE_CHECKING, Any, AsyncIterator

import aiosqlite

if TYPE_CHECKING:
    from collections.abc import Sequence

logger = logging.getLogger(__name__)

Row = aiosqlite.Row

MEMORY_PATH = ":memory:"

# Seconds to wait on a locked database file before failing
BUSY_TIMEOUT = 5.0


class Database:
    """One aiosqlite connection to the registry database.

    Usage:
        async with Database(Path("data/worldgrid.db")) as db:
            row = await db.fetch_one("SELECT value FROM kv_strings WHERE key = ?", ("village:grid:0,0",))
    """

    def __init__(self, path: Path):
        self.path = path
        self._conn: aiosqlite.Connection | None = None
        # Serializes transactions across tasks sharing this connection
        self._write_lock = asyncio.Lock()
        self._owner: asyncio.Task[Any] | None = None

    @property
    def is_memory(self) -> bool:
        return str(self.path) == MEMORY_PATH

    async def connect(self) -> None:
        """Open the connection. Calling it twice is harmless."""
        if self._conn is not None:
            return

        if not self.is_memory:
            self.path.parent.mkdir(parents=True, exist_ok=True)

        conn = await aiosqlite.connect(self.path, timeout=BUSY_TIMEOUT)
        conn.row_factory = aiosqlite.Row
        if not self.is_memory:
            await conn.execute("PRAGMA journal_mode=WAL")
        self._conn = conn
        logger.debug(f"Opened {self.path}")

    async def close(self) -> None:
        if self._conn is None:
            return
        await self._conn.close()
        self._conn = None
        logger.debug(f"Closed {self.path}")

    async def __aenter__(self) -> Database:
        await self.connect()
        return self

    async def __aexit__(self, exc_type: Any, exc_val: Any, exc_tb: Any) -> None:
        await self.close()

    @property
    def connection(self) -> aiosqlite.Connection:
        """The open connection.

        Raises:
            RuntimeError: If connect() has not been called
        """
        if self._conn is None:
            raise RuntimeError(f"Database {self.path} is not connected")
        return self._conn

    async def execute(self, sql: str, params: Sequence[Any] = ()) -> aiosqlite.Cursor:
        return await self.connection.execute(sql, params)

    async def executemany(self, sql: str, rows: Sequence[Sequence[Any]]) -> aiosqlite.Cursor:
        return await self.connection.executemany(sql, rows)

    async def executescript(self, sql: str) -> aiosqlite.Cursor:
        return await self.connection.executescript(sql)

    async def fetch_one(self, sql: str, params: Sequence[Any] = ()) -> Row | None:
        cursor = await self.execute(sql, params)
        return await cursor.fetchone()

    async def fetch_all(self, sql: str, params: Sequence[Any] = ()) -> list[Row]:
        cursor = await self.execute(sql, params)
        return list(await cursor.fetchall())

    @property
    def in_transaction(self) -> bool:
        """True when the calling task holds the open transaction."""
        return self._owner is not None and self._owner is asyncio.current_task()

    @asynccontextmanager
    async def transaction(self) -> AsyncIterator[None]:
        """Run the block's statements as one unit: all commit or none do.

        Tasks sharing the connection take turns; a second task waits here
        until the first block has committed or rolled back.

        Raises:
            RuntimeError: If the calling task already holds a transaction
        """
        if self.in_transaction:
            raise RuntimeError("Nested transactions are not supported")

        async with self._write_lock:
            self._owner = asyncio.current_task()
            try:
                await self.execute("BEGIN")
                try:
                    yield
                except BaseException:
                    await self.execute("ROLLBACK")
                    raise
                else:
                    await self.execute("COMMIT")
            finally:
                self._owner = None

    @asynccontextmanager
    async def write(self) -> AsyncIterator[None]:
        """Scope for a single write: joins the caller's open transaction,
        otherwise runs in a transaction of its own."""
        if self.in_transaction:
            yield
            return
        async with self.transaction():
            yield

    async def table_exists(self, table_name: str) -> bool:
        row = await self.fetch_one(
            "SELECT 1 FROM sqlite_master WHERE type = 'table' AND name = ?",
            (table_name,),
        )
        return row is not None

    async def get_schema_version(self) -> int:
        """Applied schema version; 0 for a fresh database."""
        row = await self.fetch_one("PRAGMA user_version")
        return int(row[0]) if row is not None else 0

    async def set_schema_version(self, version: int) -> None:
        # PRAGMA does not accept bound parameters
        async with self.write():
            await self.execute(f"PRAGMA user_version = {int(version)}")
