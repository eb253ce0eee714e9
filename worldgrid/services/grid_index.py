"""In-memory grid cell -> village slug index.

Grows as village lists arrive (start village, nearby queries, full list).
update() merges; entries only disappear through remove().
"""

from __future__ import annotations

from typing import Iterable

from worldgrid.core.coords import grid_key
from worldgrid.core.types import VillageSlug
from worldgrid.core.village import VillageMetadata


class GridIndex:
    """Cell key -> slug mapping.

    Overlapping villages are not detected here; the last update wins for a
    contested cell.
    """

    def __init__(self) -> None:
        self._cells: dict[str, VillageSlug] = {}

    def update(self, villages: Iterable[VillageMetadata]) -> None:
        """Index every cell each village covers."""
        for village in villages:
            for cell in village.occupied_cells():
                self._cells[cell.key] = village.slug

    def remove(self, village: VillageMetadata | str) -> int:
        """Drop every cell mapped to a village. Returns cells removed."""
        slug = village.slug if isinstance(village, VillageMetadata) else village
        keys = [key for key, owner in self._cells.items() if owner == slug]
        for key in keys:
            del self._cells[key]
        return len(keys)

    def lookup(self, grid_x: int, grid_y: int) -> VillageSlug | None:
        return self._cells.get(grid_key(grid_x, grid_y))

    def cells_for(self, slug: str) -> list[str]:
        """Cell keys currently mapped to a slug."""
        return [key for key, owner in self._cells.items() if owner == slug]

    def snapshot(self) -> dict[str, VillageSlug]:
        """Copy of the whole mapping."""
        return dict(self._cells)

    def clear(self) -> None:
        self._cells.clear()

    def __contains__(self, cell: object) -> bool:
        if isinstance(cell, tuple) and len(cell) == 2:
            return grid_key(cell[0], cell[1]) in self._cells
        return cell in self._cells

    def __len__(self) -> int:
        return len(self._cells)
