"""Stateful services for worldgrid."""

from .map_loader import (
    VillageMapLoader,
    MapLoadError,
    TilesetError,
)
from .alpha_collision import (
    collision_from_alpha_sampled,
    collision_from_alpha_ratio,
    load_alpha_collision,
)
from .grid_index import GridIndex
from .world_grid import (
    WorldGridRuntime,
    WorldGridError,
    VillageNotFoundError,
    VillageLoadState,
)
from .spawn_search import find_available_spawn_position
from .spawn_gate import AgentSpawnGate
from .agent_source import (
    AgentSource,
    AgentSourceError,
    HttpAgentSource,
    StaticAgentSource,
)

__all__ = [
    # Map Loader
    "VillageMapLoader",
    "MapLoadError",
    "TilesetError",
    # Alpha Collision
    "collision_from_alpha_sampled",
    "collision_from_alpha_ratio",
    "load_alpha_collision",
    # World Grid
    "GridIndex",
    "WorldGridRuntime",
    "WorldGridError",
    "VillageNotFoundError",
    "VillageLoadState",
    # Spawning
    "find_available_spawn_position",
    "AgentSpawnGate",
    "AgentSource",
    "AgentSourceError",
    "HttpAgentSource",
    "StaticAgentSource",
]
