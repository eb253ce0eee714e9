"""Schema migrations for the worldgrid key-value database."""

from __future__ import annotations

import logging
from typing import TYPE_CHECKING

from ..schema import CURRENT_VERSION, KV_TABLES, get_migration_sql, get_pending_versions

if TYPE_CHECKING:
    from ..database import Database

logger = logging.getLogger(__name__)


async def ensure_schema(db: Database) -> int:
    """Apply every pending migration and return the resulting version.

    A database written by a newer worldgrid is left untouched.

    Raises:
        RuntimeError: If a migration is missing or its SQL fails
    """
    current = await db.get_schema_version()
    if current > CURRENT_VERSION:
        logger.warning(f"Database schema v{current} is newer than supported v{CURRENT_VERSION}")
        return current

    for version in get_pending_versions(current):
        sql = get_migration_sql(version)
        if sql is None:
            raise RuntimeError(f"No migration SQL for version {version}")
        try:
            await db.executescript(sql)
            await db.set_schema_version(version)
        except Exception as e:
            raise RuntimeError(f"Migration v{version} failed: {e}") from e
        logger.info(f"Schema migrated to v{version} ({', '.join(KV_TABLES)})")

    return await db.get_schema_version()
