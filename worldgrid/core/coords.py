"""Coordinate transforms between world, grid and village-local space.

Grid cell (gx, gy) covers world tiles [gx*VILLAGE_SIZE, gx*VILLAGE_SIZE + VILLAGE_SIZE - 1]
on each axis. A village occupying several cells is addressed from its
top-left (origin) cell, so its local tile map starts at the origin's corner.

All functions are pure. Division is floor division, so negative world
coordinates land in negative cells (world -1 is in cell -1, not cell 0).
"""

from __future__ import annotations

from .constants import VILLAGE_SIZE
from .types import GridCell, LocalPoint, WorldPoint, WorldRange


def world_to_grid(world_x: int, world_y: int) -> GridCell:
    """Return the grid cell containing a world position."""
    return GridCell(world_x // VILLAGE_SIZE, world_y // VILLAGE_SIZE)


def world_to_local_in_village(
    world_x: int,
    world_y: int,
    village_grid_x: int,
    village_grid_y: int,
) -> LocalPoint:
    """Convert a world position to tile-map coordinates of a village.

    Must be given the village's origin cell, not the cell being queried:
    a 2x1 village at origin (0, 0) maps world (25, 5) to local (25, 5).
    """
    return LocalPoint(
        world_x - village_grid_x * VILLAGE_SIZE,
        world_y - village_grid_y * VILLAGE_SIZE,
    )


def local_to_world(
    grid_x: int,
    grid_y: int,
    local_x: int,
    local_y: int,
) -> WorldPoint:
    """Inverse of world_to_local_in_village."""
    return WorldPoint(
        grid_x * VILLAGE_SIZE + local_x,
        grid_y * VILLAGE_SIZE + local_y,
    )


def grid_to_world_range(
    grid_x: int,
    grid_y: int,
    grid_width: int = 1,
    grid_height: int = 1,
) -> WorldRange:
    """World bounds (inclusive) of a grid_width x grid_height block of cells."""
    start_x = grid_x * VILLAGE_SIZE
    start_y = grid_y * VILLAGE_SIZE
    return WorldRange(
        start_x,
        start_y,
        start_x + grid_width * VILLAGE_SIZE - 1,
        start_y + grid_height * VILLAGE_SIZE - 1,
    )


def grid_key(grid_x: int, grid_y: int) -> str:
    """Canonical key for a grid cell, e.g. ``"-1,0"``."""
    return f"{grid_x},{grid_y}"


def parse_grid_key(key: str) -> GridCell:
    """Parse a key produced by grid_key.

    Raises:
        ValueError: If the key is not two comma-separated integers
    """
    parts = key.split(",")
    if len(parts) != 2:
        raise ValueError(f"Invalid grid key: {key!r}")
    return GridCell(int(parts[0]), int(parts[1]))


# Neighbourhood order: self, orthogonal (N, S, W, E), diagonal
_NEIGHBOURHOOD: tuple[tuple[int, int], ...] = (
    (0, 0),
    (0, -1),
    (0, 1),
    (-1, 0),
    (1, 0),
    (-1, -1),
    (1, -1),
    (-1, 1),
    (1, 1),
)


def nearby_cells(grid_x: int, grid_y: int) -> list[GridCell]:
    """The 3x3 neighbourhood around a cell, self first then orthogonal then diagonal."""
    return [GridCell(grid_x + dx, grid_y + dy) for dx, dy in _NEIGHBOURHOOD]


def rect_cells(
    grid_x: int,
    grid_y: int,
    grid_width: int = 1,
    grid_height: int = 1,
) -> list[GridCell]:
    """All cells of a rectangle of cells, row-major from the origin."""
    return [
        GridCell(grid_x + dx, grid_y + dy)
        for dy in range(grid_height)
        for dx in range(grid_width)
    ]
