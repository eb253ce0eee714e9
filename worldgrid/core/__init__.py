"""Core domain models for worldgrid.

Pure models and coordinate math with no I/O. Models are immutable
(frozen Pydantic models or frozen dataclasses).

Usage:
    from worldgrid.core import VillageMetadata, world_to_grid, GridCell
"""

# Types
from .types import (
    VillageSlug,
    AgentUrl,
    WorldPoint,
    GridCell,
    LocalPoint,
    WorldRange,
)

# Coordinates
from .coords import (
    world_to_grid,
    world_to_local_in_village,
    local_to_world,
    grid_to_world_range,
    grid_key,
    parse_grid_key,
    nearby_cells,
    rect_cells,
)

# Villages
from .village import VillageMetadata, now_ms

# Tile maps
from .tilemap import (
    TileLayer,
    TilesetRef,
    TiledMap,
    ResolvedTileset,
    LoadedVillageMap,
    LoadedVillage,
    get_actual_gid,
    derive_collision_tiles,
)

# Agents
from .agent import (
    MovementMode,
    DEFAULT_MOVEMENT_MODE,
    AgentPlacement,
    SpawnEvent,
)

__all__ = [
    # Types
    "VillageSlug",
    "AgentUrl",
    "WorldPoint",
    "GridCell",
    "LocalPoint",
    "WorldRange",
    # Coordinates
    "world_to_grid",
    "world_to_local_in_village",
    "local_to_world",
    "grid_to_world_range",
    "grid_key",
    "parse_grid_key",
    "nearby_cells",
    "rect_cells",
    # Villages
    "VillageMetadata",
    "now_ms",
    # Tile maps
    "TileLayer",
    "TilesetRef",
    "TiledMap",
    "ResolvedTileset",
    "LoadedVillageMap",
    "LoadedVillage",
    "get_actual_gid",
    "derive_collision_tiles",
    # Agents
    "MovementMode",
    "DEFAULT_MOVEMENT_MODE",
    "AgentPlacement",
    "SpawnEvent",
]
