"""Tile-map models for worldgrid.

Models the subset of the Tiled JSON map format (TMJ) that villages use:
- TiledMap: map dimensions, layers and tileset references
- TileLayer: a flat, row-major array of gids
- TilesetRef: either an external TSX reference or an inline descriptor
- ResolvedTileset: a tileset whose image has been fetched and measured
- LoadedVillage: a village ready for collision queries

Gids carry flip flags in their top 3 bits; get_actual_gid strips them.
"""

from __future__ import annotations

from dataclasses import dataclass, field

from pydantic import BaseModel, ConfigDict, Field

from .constants import (
    COLLISION_LAYER_PREFIX,
    DEFAULT_TILESET_COLUMNS,
    DEFAULT_TILESET_TILECOUNT,
    DEFAULT_TILESET_TILE_SIZE,
    FLIP_MASK,
)
from .types import LocalPoint
from .village import VillageMetadata


def get_actual_gid(raw_gid: int) -> int:
    """Strip the horizontal, vertical and diagonal flip flags from a gid."""
    return raw_gid & FLIP_MASK


class TileLayer(BaseModel):
    """One layer of a tile map.

    Object groups and image layers have no ``data``. Obstacles come from
    ``layer1...`` tile layers, or from ``layer1...`` image layers whose
    alpha channel marks the blocked tiles.
    """

    model_config = ConfigDict(frozen=True, extra="allow")

    name: str = ""
    type: str = "tilelayer"
    data: list[int] | None = None
    image: str | None = None
    width: int | None = None
    height: int | None = None
    visible: bool = True
    opacity: float = 1.0

    @property
    def is_tile_layer(self) -> bool:
        return self.type == "tilelayer" and self.data is not None

    @property
    def is_collision_layer(self) -> bool:
        """Obstacle layers are tile layers named ``layer1...`` (any case)."""
        return self.is_tile_layer and self.name.lower().startswith(COLLISION_LAYER_PREFIX)

    @property
    def is_collision_image(self) -> bool:
        return (
            self.type == "imagelayer"
            and bool(self.image)
            and self.name.lower().startswith(COLLISION_LAYER_PREFIX)
        )


class TilesetRef(BaseModel):
    """A tileset entry as it appears in the map document."""

    model_config = ConfigDict(frozen=True, extra="allow")

    firstgid: int
    source: str | None = None
    image: str | None = None
    columns: int | None = None
    tilecount: int | None = None
    tilewidth: int | None = None
    tileheight: int | None = None
    imagewidth: int | None = None
    imageheight: int | None = None

    @property
    def is_external(self) -> bool:
        return self.source is not None


class TiledMap(BaseModel):
    """A parsed Tiled map document."""

    model_config = ConfigDict(frozen=True, extra="allow")

    width: int
    height: int
    tilewidth: int = DEFAULT_TILESET_TILE_SIZE
    tileheight: int = DEFAULT_TILESET_TILE_SIZE
    layers: list[TileLayer] = Field(default_factory=list)
    tilesets: list[TilesetRef] = Field(default_factory=list)

    def collision_layers(self) -> list[TileLayer]:
        return [layer for layer in self.layers if layer.is_collision_layer]

    def collision_images(self) -> list[TileLayer]:
        return [layer for layer in self.layers if layer.is_collision_image]


class ResolvedTileset(BaseModel):
    """A tileset with its image fetched and measured.

    ``image_scale`` is actual image width / declared width, so renderers can
    tolerate assets that were re-exported at a different resolution.
    """

    model_config = ConfigDict(frozen=True)

    firstgid: int
    image_url: str
    image_width: int
    image_height: int
    columns: int = DEFAULT_TILESET_COLUMNS
    tilecount: int = DEFAULT_TILESET_TILECOUNT
    tilewidth: int = DEFAULT_TILESET_TILE_SIZE
    tileheight: int = DEFAULT_TILESET_TILE_SIZE
    image_scale: float = 1.0


def derive_collision_tiles(tiled_map: TiledMap) -> frozenset[str]:
    """Collect local ``"x,y"`` keys of every non-empty obstacle tile.

    Layer data shorter than width * height is treated as zero-padded.
    """
    width, height = tiled_map.width, tiled_map.height
    blocked: set[str] = set()

    for layer in tiled_map.collision_layers():
        data = layer.data or []
        for index, raw_gid in enumerate(data[: width * height]):
            if get_actual_gid(raw_gid) != 0:
                local_y, local_x = divmod(index, width)
                blocked.add(LocalPoint(local_x, local_y).key)

    return frozenset(blocked)


@dataclass(frozen=True)
class LoadedVillageMap:
    """Output of the map loader: parsed map, usable tilesets, collision set."""

    map_data: TiledMap
    tilesets: tuple[ResolvedTileset, ...]
    collision_tiles: frozenset[str]


@dataclass(frozen=True)
class LoadedVillage:
    """A village whose map and collision set are fully available."""

    metadata: VillageMetadata
    map_data: TiledMap
    tilesets: tuple[ResolvedTileset, ...] = ()
    collision_tiles: frozenset[str] = field(default_factory=frozenset)

    @classmethod
    def from_map(cls, metadata: VillageMetadata, loaded: LoadedVillageMap) -> LoadedVillage:
        return cls(
            metadata=metadata,
            map_data=loaded.map_data,
            tilesets=loaded.tilesets,
            collision_tiles=loaded.collision_tiles,
        )

    @property
    def slug(self) -> str:
        return self.metadata.slug

    def is_blocked_local(self, local_x: int, local_y: int) -> bool:
        return LocalPoint(local_x, local_y).key in self.collision_tiles
