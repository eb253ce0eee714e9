"""Database schema definitions for worldgrid.

SQLite backs a small key-value model with three value kinds:
- kv_strings: plain key -> string (grid reverse index)
- kv_hashes: key -> {field: value} (village records)
- kv_sets: key -> set of members (village slug enumeration)
"""

from __future__ import annotations

CURRENT_VERSION = 1

SCHEMA_V1 = """
CREATE TABLE IF NOT EXISTS kv_strings (
    key TEXT PRIMARY KEY,
    value TEXT NOT NULL
);

CREATE TABLE IF NOT EXISTS kv_hashes (
    key TEXT NOT NULL,
    field TEXT NOT NULL,
    value TEXT NOT NULL,
    PRIMARY KEY (key, field)
);

CREATE TABLE IF NOT EXISTS kv_sets (
    key TEXT NOT NULL,
    member TEXT NOT NULL,
    PRIMARY KEY (key, member)
);
"""

KV_TABLES = ("kv_strings", "kv_hashes", "kv_sets")

MIGRATIONS: dict[int, str] = {
    1: SCHEMA_V1,
}


def get_migration_sql(version: int) -> str | None:
    """SQL for one migration version, or None if unknown."""
    return MIGRATIONS.get(version)


def get_pending_versions(current: int) -> list[int]:
    """Migration versions newer than current, in order."""
    return [v for v in sorted(MIGRATIONS.keys()) if v > current]
