"""Village models for worldgrid.

A village is a tile map placed on the world grid. It occupies a rectangle of
grid cells starting at its origin (grid_x, grid_y). Two villages must never
share a cell.
"""

from __future__ import annotations

import time

from pydantic import BaseModel, ConfigDict, Field
from pydantic.alias_generators import to_camel

from .coords import grid_to_world_range, rect_cells
from .types import GridCell, VillageSlug, WorldPoint, WorldRange


def now_ms() -> int:
    """Current wall-clock time in epoch milliseconds."""
    return int(time.time() * 1000)


class VillageMetadata(BaseModel):
    """Persistent description of a village.

    Serialized with camelCase aliases (gridX, tmjUrl, ...) to match the
    village records produced by the upload API.
    """

    model_config = ConfigDict(
        frozen=True,
        alias_generator=to_camel,
        populate_by_name=True,
    )

    slug: VillageSlug
    name: str = ""
    grid_x: int = 0
    grid_y: int = 0
    grid_width: int = Field(default=1, ge=1)
    grid_height: int = Field(default=1, ge=1)
    tmj_url: str = ""
    tileset_base_url: str = ""
    created_at: int = 0
    updated_at: int = 0

    def occupied_cells(self) -> list[GridCell]:
        """Every grid cell this village covers."""
        return rect_cells(self.grid_x, self.grid_y, self.grid_width, self.grid_height)

    def contains_cell(self, cell: GridCell) -> bool:
        """Check if a grid cell is inside this village's rectangle."""
        return (
            self.grid_x <= cell.grid_x < self.grid_x + self.grid_width
            and self.grid_y <= cell.grid_y < self.grid_y + self.grid_height
        )

    def world_range(self) -> WorldRange:
        """Inclusive world bounds of the village."""
        return grid_to_world_range(
            self.grid_x, self.grid_y, self.grid_width, self.grid_height
        )

    def center(self) -> WorldPoint:
        """Center tile of the village in world coordinates."""
        return self.world_range().center

    def with_updates(
        self,
        name: str | None = None,
        tmj_url: str | None = None,
        tileset_base_url: str | None = None,
        updated_at: int | None = None,
    ) -> VillageMetadata:
        """Return a copy with name and/or asset URLs replaced."""
        updates: dict[str, object] = {
            "updated_at": updated_at if updated_at is not None else now_ms()
        }
        if name is not None:
            updates["name"] = name
        if tmj_url is not None:
            updates["tmj_url"] = tmj_url
        if tileset_base_url is not None:
            updates["tileset_base_url"] = tileset_base_url
        return self.model_copy(update=updates)
