"""Foundational types for worldgrid.

This module defines the coordinate types used throughout the system:
- WorldPoint: a game-tile position in world space
- GridCell: a village grid cell (VILLAGE_SIZE x VILLAGE_SIZE world tiles)
- LocalPoint: a tile position inside one village's tile map
- WorldRange: inclusive world-space bounds of a block of grid cells
- Type aliases for domain identifiers
"""

from __future__ import annotations

from typing import NewType, NamedTuple

# Type aliases for domain identifiers
VillageSlug = NewType("VillageSlug", str)
AgentUrl = NewType("AgentUrl", str)


class WorldPoint(NamedTuple):
    """A position in world tile coordinates.

    The world is unbounded in every direction; x grows to the right and
    y grows downward, matching tile-map row order.
    """

    x: int
    y: int

    def __add__(self, other: object) -> WorldPoint:
        """Offset by a (dx, dy) tuple."""
        if isinstance(other, tuple) and len(other) == 2:
            return WorldPoint(self.x + other[0], self.y + other[1])
        return NotImplemented

    def manhattan_to(self, other: WorldPoint) -> int:
        """Manhattan distance to another point."""
        return abs(self.x - other.x) + abs(self.y - other.y)


class GridCell(NamedTuple):
    """A village grid cell."""

    grid_x: int
    grid_y: int

    @property
    def key(self) -> str:
        """Canonical string key, e.g. ``"-1,2"``."""
        return f"{self.grid_x},{self.grid_y}"

    def offset(self, dx: int, dy: int) -> GridCell:
        """Return the cell dx, dy away."""
        return GridCell(self.grid_x + dx, self.grid_y + dy)


class LocalPoint(NamedTuple):
    """A tile position inside a village's tile map (0-based)."""

    local_x: int
    local_y: int

    @property
    def key(self) -> str:
        """Collision-set key, e.g. ``"3,7"``."""
        return f"{self.local_x},{self.local_y}"


class WorldRange(NamedTuple):
    """Inclusive world-space bounds covered by a block of grid cells."""

    start_x: int
    start_y: int
    end_x: int
    end_y: int

    @property
    def center(self) -> WorldPoint:
        """Center tile (rounded toward negative infinity)."""
        return WorldPoint(
            (self.start_x + self.end_x) // 2,
            (self.start_y + self.end_y) // 2,
        )

    def contains(self, point: WorldPoint) -> bool:
        """Check if a world point is inside these bounds."""
        return (
            self.start_x <= point.x <= self.end_x
            and self.start_y <= point.y <= self.end_y
        )

    @property
    def width(self) -> int:
        return self.end_x - self.start_x + 1

    @property
    def height(self) -> int:
        return self.end_y - self.start_y + 1
