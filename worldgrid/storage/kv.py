"""Key-value store for worldgrid.

A Redis-shaped interface (plain keys, hashes, sets) so the village store can
be written against one contract. SqliteKeyValueStore implements it on the
async SQLite database; a write outside a transaction commits on its own.
"""

from __future__ import annotations

import logging
from contextlib import AbstractAsyncContextManager
from typing import TYPE_CHECKING, Mapping, Protocol, Sequence

from worldgrid.logging_config import log_storage

if TYPE_CHECKING:
    from .database import Database

logger = logging.getLogger(__name__)


class KeyValueStore(Protocol):
    """Operations the village store needs from its persistence layer."""

    async def get(self, key: str) -> str | None: ...

    async def mget(self, keys: Sequence[str]) -> list[str | None]: ...

    async def set(self, key: str, value: str) -> None: ...

    async def delete(self, *keys: str) -> int: ...

    async def hgetall(self, key: str) -> dict[str, str]: ...

    async def hset(self, key: str, mapping: Mapping[str, str]) -> None: ...

    async def sadd(self, key: str, *members: str) -> int: ...

    async def srem(self, key: str, *members: str) -> int: ...

    async def smembers(self, key: str) -> set[str]: ...

    def transaction(self) -> AbstractAsyncContextManager[None]: ...


class SqliteKeyValueStore:
    """KeyValueStore backed by the kv_* tables.

    ``delete`` removes a key of any kind, like Redis DEL.
    """

    def __init__(self, db: Database):
        self.db = db

    def transaction(self) -> AbstractAsyncContextManager[None]:
        """Group reads and writes so they commit or roll back together.

        Other tasks cannot write through the same database until the block
        ends, so checks made inside it still hold at commit.
        """
        return self.db.transaction()

    # --- Plain keys ---

    async def get(self, key: str) -> str | None:
        row = await self.db.fetch_one("SELECT value FROM kv_strings WHERE key = ?", (key,))
        return None if row is None else row["value"]

    async def mget(self, keys: Sequence[str]) -> list[str | None]:
        """Values for several keys, in order, None where missing."""
        if not keys:
            return []
        placeholders = ",".join("?" for _ in keys)
        rows = await self.db.fetch_all(
            f"SELECT key, value FROM kv_strings WHERE key IN ({placeholders})",
            tuple(keys),
        )
        found = {row["key"]: row["value"] for row in rows}
        return [found.get(key) for key in keys]

    async def set(self, key: str, value: str) -> None:
        async with self.db.write():
            await self.db.execute(
                """
                INSERT INTO kv_strings (key, value) VALUES (?, ?)
                ON CONFLICT(key) DO UPDATE SET value = excluded.value
                """,
                (key, value),
            )
        log_storage(logger, "SET", key, details=value)

    async def delete(self, *keys: str) -> int:
        """Delete keys of any kind. Returns how many keys existed."""
        removed = 0
        async with self.db.write():
            for key in keys:
                existed = False
                for table in ("kv_strings", "kv_hashes", "kv_sets"):
                    cursor = await self.db.execute(f"DELETE FROM {table} WHERE key = ?", (key,))
                    if cursor.rowcount:
                        existed = True
                removed += int(existed)
        log_storage(logger, "DEL", ",".join(keys), details=f"removed={removed}")
        return removed

    # --- Hashes ---

    async def hgetall(self, key: str) -> dict[str, str]:
        """All fields of a hash; empty dict if the key does not exist."""
        rows = await self.db.fetch_all(
            "SELECT field, value FROM kv_hashes WHERE key = ?", (key,)
        )
        return {row["field"]: row["value"] for row in rows}

    async def hset(self, key: str, mapping: Mapping[str, str]) -> None:
        """Set several hash fields, leaving other fields untouched."""
        if not mapping:
            return
        async with self.db.write():
            await self.db.executemany(
                """
                INSERT INTO kv_hashes (key, field, value) VALUES (?, ?, ?)
                ON CONFLICT(key, field) DO UPDATE SET value = excluded.value
                """,
                [(key, field, str(value)) for field, value in mapping.items()],
            )
        log_storage(logger, "HSET", key, details=f"fields={len(mapping)}")

    # --- Sets ---

    async def sadd(self, key: str, *members: str) -> int:
        """Add members; returns how many were new."""
        added = 0
        async with self.db.write():
            for member in members:
                cursor = await self.db.execute(
                    "INSERT OR IGNORE INTO kv_sets (key, member) VALUES (?, ?)",
                    (key, member),
                )
                added += cursor.rowcount
        log_storage(logger, "SADD", key, details=f"added={added}")
        return added

    async def srem(self, key: str, *members: str) -> int:
        """Remove members; returns how many were present."""
        removed = 0
        async with self.db.write():
            for member in members:
                cursor = await self.db.execute(
                    "DELETE FROM kv_sets WHERE key = ? AND member = ?",
                    (key, member),
                )
                removed += cursor.rowcount
        log_storage(logger, "SREM", key, details=f"removed={removed}")
        return removed

    async def smembers(self, key: str) -> set[str]:
        rows = await self.db.fetch_all("SELECT member FROM kv_sets WHERE key = ?", (key,))
        return {row["member"] for row in rows}
