"""Nearest walkable position search."""

from __future__ import annotations

from typing import Callable, Iterator

from worldgrid.core.constants import SPAWN_SEARCH_RADIUS
from worldgrid.core.types import WorldPoint

PositionCheck = Callable[[int, int], bool]


def ring_points(center: WorldPoint, radius: int) -> list[WorldPoint]:
    """Points at exactly Chebyshev distance ``radius`` from center.

    Ordered by Manhattan distance, then y, then x.
    """
    if radius == 0:
        return [center]

    points = []
    for dy in range(-radius, radius + 1):
        for dx in range(-radius, radius + 1):
            if max(abs(dx), abs(dy)) == radius:
                points.append(center + (dx, dy))
    points.sort(key=lambda p: (p.manhattan_to(center), p.y, p.x))
    return points


def iter_spawn_candidates(center: WorldPoint, max_radius: int) -> Iterator[WorldPoint]:
    for radius in range(max_radius + 1):
        yield from ring_points(center, radius)


def find_available_spawn_position(
    is_valid: PositionCheck,
    center: WorldPoint | tuple[int, int],
    max_radius: int = SPAWN_SEARCH_RADIUS,
) -> WorldPoint | None:
    """First valid position at or around center, or None within max_radius."""
    center = WorldPoint(*center)
    for point in iter_spawn_candidates(center, max_radius):
        if is_valid(point.x, point.y):
            return point
    return None
