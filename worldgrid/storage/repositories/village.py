"""Village repository for worldgrid.

Persists village metadata and the grid-cell reverse index in the key-value
store:
- village:<slug>          hash with the village record (camelCase fields)
- village:grid:<gx,gy>    plain key -> slug, one per occupied cell
- villages:all            set of every registered slug

save() keeps the reverse index consistent on its own: cells a village no
longer covers are released, and cells owned by another village are refused.
"""

from __future__ import annotations

import logging

from worldgrid.core.constants import (
    VILLAGE_GRID_PREFIX,
    VILLAGE_KEY_PREFIX,
    VILLAGES_ALL_KEY,
)
from worldgrid.core.coords import grid_key, nearby_cells
from worldgrid.core.types import GridCell, VillageSlug
from worldgrid.core.village import VillageMetadata

from .base import BaseRepository

logger = logging.getLogger(__name__)


# -----------------------------------------------------------------------------
# Exceptions
# -----------------------------------------------------------------------------


class VillageStoreError(Exception):
    """Base exception for village store errors."""

    pass


class GridOccupiedError(VillageStoreError):
    """A grid cell is already claimed by a different village."""

    def __init__(self, cell: GridCell, occupant: str, slug: str):
        super().__init__(
            f"Grid position ({cell.grid_x}, {cell.grid_y}) is already occupied "
            f"by village {occupant!r} (while saving {slug!r})"
        )
        self.cell = cell
        self.occupant = occupant
        self.slug = slug


# -----------------------------------------------------------------------------
# Key helpers
# -----------------------------------------------------------------------------


def village_key(slug: str) -> str:
    return f"{VILLAGE_KEY_PREFIX}{slug}"


def grid_cell_key(cell: GridCell) -> str:
    return f"{VILLAGE_GRID_PREFIX}{grid_key(cell.grid_x, cell.grid_y)}"


# -----------------------------------------------------------------------------
# VillageRepository
# -----------------------------------------------------------------------------


class VillageRepository(BaseRepository):
    """Durable village metadata with a grid-cell -> slug reverse index."""

    # --- Record encoding ---

    def _to_hash(self, village: VillageMetadata) -> dict[str, str]:
        return {
            "slug": village.slug,
            "name": village.name,
            "gridX": self._encode_int(village.grid_x),
            "gridY": self._encode_int(village.grid_y),
            "gridWidth": self._encode_int(village.grid_width),
            "gridHeight": self._encode_int(village.grid_height),
            "tmjUrl": village.tmj_url,
            "tilesetBaseUrl": village.tileset_base_url,
            "createdAt": self._encode_int(village.created_at),
            "updatedAt": self._encode_int(village.updated_at),
        }

    def _from_hash(self, slug: str, data: dict[str, str]) -> VillageMetadata:
        """Decode a record, tolerating missing or malformed fields."""
        return VillageMetadata(
            slug=VillageSlug(data.get("slug") or slug),
            name=data.get("name", ""),
            grid_x=self._decode_int(data.get("gridX"), 0),
            grid_y=self._decode_int(data.get("gridY"), 0),
            grid_width=max(1, self._decode_int(data.get("gridWidth"), 1)),
            grid_height=max(1, self._decode_int(data.get("gridHeight"), 1)),
            tmj_url=data.get("tmjUrl", ""),
            tileset_base_url=data.get("tilesetBaseUrl", ""),
            created_at=self._decode_int(data.get("createdAt"), 0),
            updated_at=self._decode_int(data.get("updatedAt"), 0),
        )

    # --- Queries ---

    async def get(self, slug: str) -> VillageMetadata | None:
        """Get a village by slug, or None."""
        data = await self.kv.hgetall(village_key(slug))
        if not data:
            return None
        return self._from_hash(slug, data)

    async def exists(self, slug: str) -> bool:
        return bool(await self.kv.hgetall(village_key(slug)))

    async def get_by_grid(self, grid_x: int, grid_y: int) -> VillageMetadata | None:
        """Get the village occupying a grid cell, or None."""
        slug = await self.kv.get(grid_cell_key(GridCell(grid_x, grid_y)))
        if slug is None:
            return None
        return await self.get(slug)

    async def get_nearby(self, grid_x: int, grid_y: int) -> list[VillageMetadata]:
        """Villages occupying any cell of the 3x3 neighbourhood.

        Each village appears once even if it covers several neighbourhood
        cells. Order follows the neighbourhood: self, orthogonal, diagonal.
        """
        cells = nearby_cells(grid_x, grid_y)
        slugs = await self.kv.mget([grid_cell_key(cell) for cell in cells])

        unique_slugs = list(dict.fromkeys(s for s in slugs if s is not None))
        villages = []
        for slug in unique_slugs:
            village = await self.get(slug)
            if village is not None:
                villages.append(village)
        return villages

    async def get_all(self) -> list[VillageMetadata]:
        """Every registered village, sorted by slug.

        Slugs listed in the set but lacking a record are skipped.
        """
        slugs = await self.kv.smembers(VILLAGES_ALL_KEY)
        villages = []
        for slug in sorted(slugs):
            village = await self.get(slug)
            if village is None:
                logger.warning(f"Village {slug!r} listed in {VILLAGES_ALL_KEY} has no record")
                continue
            villages.append(village)
        return villages

    # --- Mutations ---

    async def save(self, village: VillageMetadata) -> None:
        """Create or replace a village and index its cells.

        When the village already exists with a different rectangle, cells it
        no longer covers are released. Occupancy is checked inside the write
        transaction, so two overlapping saves cannot both succeed.

        Raises:
            GridOccupiedError: A target cell belongs to another village.
                Nothing is written in that case.
        """
        target_cells = village.occupied_cells()

        async with self.kv.transaction():
            owners = await self.kv.mget([grid_cell_key(cell) for cell in target_cells])
            for cell, owner in zip(target_cells, owners):
                if owner is not None and owner != village.slug:
                    raise GridOccupiedError(cell, owner, village.slug)

            stale_cells: list[GridCell] = []
            previous = await self.get(village.slug)
            if previous is not None:
                target_set = set(target_cells)
                candidates = [c for c in previous.occupied_cells() if c not in target_set]
                current = await self.kv.mget([grid_cell_key(c) for c in candidates])
                stale_cells = [c for c, owner in zip(candidates, current) if owner == village.slug]

            await self.kv.hset(village_key(village.slug), self._to_hash(village))
            for cell in target_cells:
                await self.kv.set(grid_cell_key(cell), village.slug)
            if stale_cells:
                await self.kv.delete(*(grid_cell_key(c) for c in stale_cells))
            await self.kv.sadd(VILLAGES_ALL_KEY, village.slug)

        logger.info(
            f"Saved village {village.slug!r} at grid ({village.grid_x}, {village.grid_y}) "
            f"size {village.grid_width}x{village.grid_height}"
            + (f", released {len(stale_cells)} cell(s)" if stale_cells else "")
        )

    async def update(
        self,
        slug: str,
        name: str | None = None,
        tmj_url: str | None = None,
        tileset_base_url: str | None = None,
    ) -> VillageMetadata | None:
        """Change a village's name and/or asset URLs.

        Geometry cannot be changed here; use save().

        Returns:
            The updated village, or None if the slug is unknown
        """
        async with self.kv.transaction():
            existing = await self.get(slug)
            if existing is None:
                return None
            updated = existing.with_updates(
                name=name, tmj_url=tmj_url, tileset_base_url=tileset_base_url
            )
            await self.kv.hset(village_key(slug), self._to_hash(updated))
        return updated

    async def delete(self, slug: str) -> bool:
        """Remove a village, its reverse-index cells and its set membership.

        Returns:
            True if the village existed, False otherwise (no-op)
        """
        async with self.kv.transaction():
            existing = await self.get(slug)
            if existing is None:
                return False

            cells = existing.occupied_cells()
            owners = await self.kv.mget([grid_cell_key(c) for c in cells])
            owned = [grid_cell_key(c) for c, owner in zip(cells, owners) if owner == slug]

            await self.kv.delete(village_key(slug), *owned)
            await self.kv.srem(VILLAGES_ALL_KEY, slug)

        logger.info(f"Deleted village {slug!r} ({len(owned)} cell(s) released)")
        return True

    async def clear(self) -> int:
        """Delete every village. Returns how many were removed."""
        removed = 0
        for village in await self.get_all():
            if await self.delete(village.slug):
                removed += 1
        # Drop orphan slugs left without records
        await self.kv.delete(VILLAGES_ALL_KEY)
        return removed
