"""World grid runtime for worldgrid.

The live view of which villages are known, which are loaded, and what is
walkable. Owns three pieces of state and is their only writer:
- loaded_villages: slug -> LoadedVillage
- grid_index: grid cell -> slug
- nearby_villages: metadata of the villages around the player

Collision queries fail closed: unknown territory and villages that are not
loaded yet are both blocked.
"""

from __future__ import annotations

import asyncio
import logging
import time
from enum import Enum
from typing import TYPE_CHECKING, Callable, Iterable, Protocol

from worldgrid.core.coords import world_to_grid, world_to_local_in_village
from worldgrid.core.tilemap import LoadedVillage
from worldgrid.core.types import GridCell, VillageSlug
from worldgrid.core.village import VillageMetadata
from worldgrid.logging_config import log_collision, log_village_load

from .grid_index import GridIndex
from .map_loader import MapLoadError

if TYPE_CHECKING:
    from .map_loader import VillageMapLoader

logger = logging.getLogger(__name__)


# -----------------------------------------------------------------------------
# Exceptions
# -----------------------------------------------------------------------------


class WorldGridError(Exception):
    """Base exception for world grid errors."""

    pass


class VillageNotFoundError(WorldGridError):
    """No village is registered under the slug."""

    def __init__(self, slug: str):
        super().__init__(f"Village {slug!r} not found")
        self.slug = slug


# -----------------------------------------------------------------------------
# Types
# -----------------------------------------------------------------------------


class VillageLoadState(Enum):
    """Runtime view of one village. Never moves backwards past METADATA_KNOWN."""

    UNKNOWN = "unknown"
    METADATA_KNOWN = "metadata_known"
    LOADING = "loading"
    LOADED = "loaded"


class VillageDirectory(Protocol):
    """Where the runtime looks up village metadata (the village repository)."""

    async def get(self, slug: str) -> VillageMetadata | None: ...

    async def get_nearby(self, grid_x: int, grid_y: int) -> list[VillageMetadata]: ...


LoadedListener = Callable[[frozenset[str]], None]


# -----------------------------------------------------------------------------
# WorldGridRuntime
# -----------------------------------------------------------------------------


class WorldGridRuntime:
    """Loaded villages, the grid index, and collision queries over them.

    Usage:
        runtime = WorldGridRuntime(storage.villages, VillageMapLoader(blobs))
        await runtime.initialize("happy-village")
        runtime.is_collision_at(10, 5)
    """

    def __init__(self, directory: VillageDirectory, loader: VillageMapLoader):
        self._directory = directory
        self._loader = loader

        self._loaded_villages: dict[VillageSlug, LoadedVillage] = {}
        self._grid_index = GridIndex()
        self._nearby_villages: dict[VillageSlug, VillageMetadata] = {}
        self._states: dict[str, VillageLoadState] = {}
        self._inflight: dict[str, asyncio.Task[LoadedVillage | None]] = {}
        self._listeners: list[LoadedListener] = []

        self.current_village: VillageMetadata | None = None
        self.is_current_village_loaded: bool = False

    # -------------------------------------------------------------------------
    # Read-only views
    # -------------------------------------------------------------------------

    @property
    def loaded_villages(self) -> dict[VillageSlug, LoadedVillage]:
        """Snapshot of loaded villages."""
        return dict(self._loaded_villages)

    @property
    def loaded_slugs(self) -> frozenset[str]:
        return frozenset(self._loaded_villages)

    @property
    def nearby_villages(self) -> dict[VillageSlug, VillageMetadata]:
        return dict(self._nearby_villages)

    @property
    def grid_index(self) -> GridIndex:
        return self._grid_index

    def get_state(self, slug: str) -> VillageLoadState:
        return self._states.get(slug, VillageLoadState.UNKNOWN)

    def is_loaded(self, slug: str) -> bool:
        return slug in self._loaded_villages

    # -------------------------------------------------------------------------
    # Grid queries
    # -------------------------------------------------------------------------

    def get_village_slug_at_grid(self, grid_x: int, grid_y: int) -> VillageSlug | None:
        return self._grid_index.lookup(grid_x, grid_y)

    def get_loaded_village_at_grid(self, grid_x: int, grid_y: int) -> LoadedVillage | None:
        slug = self._grid_index.lookup(grid_x, grid_y)
        if slug is None:
            return None
        return self._loaded_villages.get(slug)

    def has_village_at(self, world_x: int, world_y: int) -> bool:
        """True if a known village covers the position, loaded or not."""
        cell = world_to_grid(world_x, world_y)
        return cell in self._grid_index

    def is_collision_at(self, world_x: int, world_y: int) -> bool:
        """Whether movement into a world tile is blocked."""
        cell = world_to_grid(world_x, world_y)
        slug = self._grid_index.lookup(*cell)
        if slug is None:
            log_collision(logger, world_x, world_y, True, f"no village at grid{tuple(cell)}")
            return True

        village = self._loaded_villages.get(slug)
        if village is None:
            log_collision(logger, world_x, world_y, True, f"village {slug} not loaded")
            return True

        # Local coordinates are relative to the village origin, not this cell
        local = world_to_local_in_village(
            world_x, world_y, village.metadata.grid_x, village.metadata.grid_y
        )
        blocked = local.key in village.collision_tiles
        log_collision(logger, world_x, world_y, blocked, f"village {slug} local({local.key})")
        return blocked

    # -------------------------------------------------------------------------
    # Metadata
    # -------------------------------------------------------------------------

    def register_villages(self, villages: Iterable[VillageMetadata]) -> None:
        """Make villages known to the grid index without loading them."""
        villages = list(villages)
        self._grid_index.update(villages)
        for village in villages:
            if self.get_state(village.slug) is VillageLoadState.UNKNOWN:
                self._states[village.slug] = VillageLoadState.METADATA_KNOWN

    # -------------------------------------------------------------------------
    # Loading
    # -------------------------------------------------------------------------

    async def load_village(self, metadata: VillageMetadata) -> LoadedVillage | None:
        """Load a village's map and publish it.

        Returns the loaded village, or None if its map could not be loaded.
        Concurrent calls for the same slug share one load.
        """
        existing = self._loaded_villages.get(metadata.slug)
        if existing is not None:
            return existing

        task = self._inflight.get(metadata.slug)
        if task is None:
            task = asyncio.ensure_future(self._load(metadata))
            self._inflight[metadata.slug] = task
        return await task

    async def _load(self, metadata: VillageMetadata) -> LoadedVillage | None:
        slug = metadata.slug
        self.register_villages([metadata])
        self._states[slug] = VillageLoadState.LOADING
        log_village_load(logger, slug, "LOADING", details=metadata.tmj_url)
        started = time.monotonic()

        try:
            try:
                loaded_map = await self._loader.load(metadata.tmj_url, metadata.tileset_base_url)
            except MapLoadError as e:
                logger.error(f"Failed to load village {slug}: {e}")
                return None

            village = LoadedVillage.from_map(metadata, loaded_map)
            # Publish in one step; readers see the old or the new mapping, never a partial village
            self._loaded_villages = {**self._loaded_villages, slug: village}
            self._states[slug] = VillageLoadState.LOADED
        finally:
            self._inflight.pop(slug, None)
            # Failed loads stay retryable
            if self._states.get(slug) is VillageLoadState.LOADING:
                self._states[slug] = VillageLoadState.METADATA_KNOWN

        elapsed_ms = int((time.monotonic() - started) * 1000)
        log_village_load(
            logger, slug, "LOADED", elapsed_ms,
            details=f"blocked={len(village.collision_tiles)} tilesets={len(village.tilesets)}",
        )
        self._notify()
        return village

    async def initialize(self, slug: str, load_nearby: bool = True) -> LoadedVillage | None:
        """Enter the world at a village: load it first, then its neighbours.

        Raises:
            VillageNotFoundError: If the slug is not registered
        """
        metadata = await self._directory.get(slug)
        if metadata is None:
            raise VillageNotFoundError(slug)

        self.current_village = metadata
        self.register_villages([metadata])
        village = await self.load_village(metadata)
        self.is_current_village_loaded = village is not None

        if load_nearby:
            await self.load_nearby(metadata.grid_x, metadata.grid_y)
        return village

    async def load_nearby(self, grid_x: int, grid_y: int) -> list[VillageMetadata]:
        """Fetch and load the villages around a cell.

        Orthogonal neighbours load first (concurrently), diagonal ones after.
        Villages already loaded stay loaded.
        """
        villages = await self._directory.get_nearby(grid_x, grid_y)
        self._nearby_villages = {v.slug: v for v in villages}
        self.register_villages(villages)

        center = GridCell(grid_x, grid_y)
        orthogonal: list[VillageMetadata] = []
        diagonal: list[VillageMetadata] = []
        for village in villages:
            if _cell_distance(village, center) <= 1:
                orthogonal.append(village)
            else:
                diagonal.append(village)

        await asyncio.gather(*(self.load_village(v) for v in orthogonal))
        await asyncio.gather(*(self.load_village(v) for v in diagonal))
        return villages

    async def update_position(self, world_x: int, world_y: int) -> VillageMetadata | None:
        """Follow the player across village boundaries.

        When the player leaves the current village, the village at the new
        cell becomes current (if its metadata is known) and the
        neighbourhood is reloaded. Returns the current village afterwards.
        """
        if self.current_village is None:
            return None

        cell = world_to_grid(world_x, world_y)
        if self.current_village.contains_cell(cell):
            return self.current_village

        slug = self._grid_index.lookup(*cell)
        if slug is None:
            # Unclaimed territory; neighbours may still exist
            logger.debug(f"Player at empty grid{tuple(cell)}, refreshing neighbourhood")
            await self.load_nearby(*cell)
            return self.current_village

        metadata = self._nearby_villages.get(slug)
        if metadata is None:
            logger.debug(f"No nearby metadata for {slug}; staying in {self.current_village.slug}")
            return self.current_village

        logger.info(f"Entering village {slug} from {self.current_village.slug}")
        self.current_village = metadata
        await self.load_nearby(*cell)
        return self.current_village

    # -------------------------------------------------------------------------
    # Listeners
    # -------------------------------------------------------------------------

    def add_listener(self, listener: LoadedListener) -> None:
        """Call listener with the loaded slug set after every village publish."""
        self._listeners.append(listener)

    def remove_listener(self, listener: LoadedListener) -> None:
        if listener in self._listeners:
            self._listeners.remove(listener)

    def _notify(self) -> None:
        slugs = self.loaded_slugs
        for listener in list(self._listeners):
            listener(slugs)


def _cell_distance(village: VillageMetadata, center: GridCell) -> int:
    """Manhattan distance from a cell to the nearest cell of a village."""
    dx = max(village.grid_x - center.grid_x, 0, center.grid_x - (village.grid_x + village.grid_width - 1))
    dy = max(village.grid_y - center.grid_y, 0, center.grid_y - (village.grid_y + village.grid_height - 1))
    return dx + dy
