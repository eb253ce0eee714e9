"""Base repository with common patterns.

Provides the key-value store reference and tolerant field decoding used by
the domain repositories.
"""

from __future__ import annotations

from typing import TYPE_CHECKING

if TYPE_CHECKING:
    from ..kv import KeyValueStore


class BaseRepository:
    """Base class for repositories built on a KeyValueStore."""

    def __init__(self, kv: KeyValueStore):
        """Initialize repository.

        Args:
            kv: Key-value store (connected)
        """
        self.kv = kv

    # --- Field Helpers ---

    def _encode_int(self, value: int) -> str:
        return str(int(value))

    def _decode_int(self, raw: str | None, default: int) -> int:
        """Parse an integer field, falling back on missing or garbage values.

        A parsed value of 0 also falls back, so a size field of "0" becomes
        the default size.
        """
        if raw is None:
            return default
        try:
            return int(raw) or default
        except ValueError:
            try:
                return int(float(raw)) or default
            except ValueError:
                return default
