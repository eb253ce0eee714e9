"""Storage layer for worldgrid.

Provides persistence via SQLite behind a key-value interface, plus blob
access for village assets.

Usage:
    storage = Storage(Path("data"))
    await storage.connect()
    try:
        await storage.villages.save(village)
        nearby = await storage.villages.get_nearby(0, 0)
    finally:
        await storage.close()
"""

from __future__ import annotations

import logging
from pathlib import Path
from typing import Any

from .database import Database, MEMORY_PATH
from .kv import KeyValueStore, SqliteKeyValueStore
from .blobs import (
    BlobStore,
    BlobStoreError,
    BlobNotFoundError,
    BlobFetchError,
    FileBlobStore,
    HttpBlobStore,
    join_url,
    open_blob_store,
)
from .repositories import VillageRepository, VillageStoreError, GridOccupiedError
from .migrations import ensure_schema

logger = logging.getLogger(__name__)

__all__ = [
    "Storage",
    "Database",
    "KeyValueStore",
    "SqliteKeyValueStore",
    "BlobStore",
    "BlobStoreError",
    "BlobNotFoundError",
    "BlobFetchError",
    "FileBlobStore",
    "HttpBlobStore",
    "join_url",
    "open_blob_store",
    "VillageRepository",
    "VillageStoreError",
    "GridOccupiedError",
]

DB_FILE_NAME = "worldgrid.db"


class Storage:
    """Unified storage facade for worldgrid.

    Provides:
    - Database connection management and schema migration
    - The key-value store
    - Domain repositories (villages)
    """

    def __init__(self, data_dir: Path | None = None, in_memory: bool = False):
        """Initialize storage.

        Args:
            data_dir: Directory for the database file
            in_memory: Use an in-memory database (tests, probes)
        """
        if data_dir is None and not in_memory:
            raise ValueError("data_dir is required unless in_memory=True")
        self.data_dir = data_dir
        db_path = Path(MEMORY_PATH) if in_memory else data_dir / DB_FILE_NAME
        self.db = Database(db_path)

        self._kv: SqliteKeyValueStore | None = None
        self._villages: VillageRepository | None = None

    @property
    def kv(self) -> SqliteKeyValueStore:
        """Get the key-value store.

        Raises:
            RuntimeError: If not connected
        """
        if self._kv is None:
            raise RuntimeError("Storage not connected. Call connect() first.")
        return self._kv

    @property
    def villages(self) -> VillageRepository:
        """Get the village repository.

        Raises:
            RuntimeError: If not connected
        """
        if self._villages is None:
            raise RuntimeError("Storage not connected. Call connect() first.")
        return self._villages

    async def connect(self) -> None:
        """Connect, run migrations and set up repositories."""
        if self.data_dir is not None and not self.db.is_memory:
            self.data_dir.mkdir(parents=True, exist_ok=True)

        await self.db.connect()
        version = await ensure_schema(self.db)
        logger.info(f"Database schema at version {version}")

        self._kv = SqliteKeyValueStore(self.db)
        self._villages = VillageRepository(self._kv)
        logger.info(f"Storage connected: {self.db.path}")

    async def close(self) -> None:
        await self.db.close()
        self._kv = None
        self._villages = None
        logger.info("Storage closed")

    async def __aenter__(self) -> "Storage":
        await self.connect()
        return self

    async def __aexit__(self, exc_type: Any, exc_val: Any, exc_tb: Any) -> None:
        await self.close()

    @property
    def is_connected(self) -> bool:
        return self._kv is not None
