"""Village map loader for worldgrid.

Fetches a village's Tiled map (TMJ), resolves its tilesets in parallel and
derives the village's local collision set from its obstacle layers and
obstacle images.

A broken primary map document fails the load. A broken tileset does not:
it is logged and left out, so the village still loads (with missing
visuals) and collision still comes from the map's layers.
"""

from __future__ import annotations

import asyncio
import io
import logging
import time
import xml.etree.ElementTree as ET
from typing import TYPE_CHECKING

from PIL import Image
from pydantic import ValidationError

from worldgrid.core.constants import (
    DEFAULT_TILESET_COLUMNS,
    DEFAULT_TILESET_TILECOUNT,
    DEFAULT_TILESET_TILE_SIZE,
)
from worldgrid.core.tilemap import (
    LoadedVillageMap,
    ResolvedTileset,
    TiledMap,
    TilesetRef,
    derive_collision_tiles,
)
from worldgrid.storage.blobs import BlobStoreError, join_url

from .alpha_collision import load_alpha_collision

if TYPE_CHECKING:
    from worldgrid.storage.blobs import BlobStore

logger = logging.getLogger(__name__)


class MapLoadError(Exception):
    """The primary map document could not be fetched or parsed."""

    def __init__(self, message: str, url: str):
        super().__init__(message)
        self.url = url


class TilesetError(Exception):
    """A tileset descriptor is unusable."""

    pass


def _parse_int(raw: str | None, default: int) -> int:
    if raw is None:
        return default
    try:
        return int(raw) or default
    except ValueError:
        return default


def measure_image(data: bytes) -> tuple[int, int]:
    """Decode an image header and return (width, height)."""
    with Image.open(io.BytesIO(data)) as image:
        return image.size


class VillageMapLoader:
    """Loads village tile maps from a blob store.

    Usage:
        loader = VillageMapLoader(FileBlobStore("assets"))
        loaded = await loader.load("villages/happy/map.tmj", "villages/happy/tilesets")
        "3,4" in loaded.collision_tiles
    """

    def __init__(self, blobs: BlobStore):
        self._blobs = blobs

    async def load(self, tmj_url: str, tileset_base_url: str) -> LoadedVillageMap:
        """Load a map, its tilesets, and its collision set.

        Raises:
            MapLoadError: If the map document cannot be fetched or parsed
        """
        started = time.monotonic()
        tiled_map = await self.fetch_map(tmj_url)

        results = await asyncio.gather(
            *(self._resolve_tileset(ref, tileset_base_url) for ref in tiled_map.tilesets)
        )
        tilesets = tuple(ts for ts in results if ts is not None)
        if len(tilesets) < len(results):
            logger.warning(
                f"{tmj_url}: {len(results) - len(tilesets)} of {len(results)} tileset(s) failed to load"
            )

        collision_tiles = derive_collision_tiles(tiled_map)
        collision_tiles |= await self._image_collision(tiled_map, tmj_url)

        elapsed_ms = int((time.monotonic() - started) * 1000)
        logger.debug(
            f"Loaded map {tmj_url}: {tiled_map.width}x{tiled_map.height}, "
            f"{len(tilesets)} tileset(s), {len(collision_tiles)} blocked tile(s), {elapsed_ms}ms"
        )
        return LoadedVillageMap(
            map_data=tiled_map,
            tilesets=tilesets,
            collision_tiles=collision_tiles,
        )

    async def fetch_map(self, tmj_url: str) -> TiledMap:
        """Fetch and validate the TMJ document."""
        try:
            raw = await self._blobs.fetch_json(tmj_url)
        except BlobStoreError as e:
            raise MapLoadError(f"Failed to fetch map {tmj_url}: {e}", tmj_url) from e

        try:
            return TiledMap.model_validate(raw)
        except ValidationError as e:
            raise MapLoadError(f"Invalid map document {tmj_url}: {e}", tmj_url) from e

    # -------------------------------------------------------------------------
    # Tilesets
    # -------------------------------------------------------------------------

    async def _resolve_tileset(
        self, ref: TilesetRef, tileset_base_url: str
    ) -> ResolvedTileset | None:
        """Resolve one tileset; None (logged) on any failure."""
        try:
            if ref.is_external:
                return await self._load_external(ref, tileset_base_url)
            return await self._load_inline(ref, tileset_base_url)
        except Exception as e:
            logger.warning(f"Error loading tileset firstgid={ref.firstgid}: {type(e).__name__}: {e}")
            return None

    async def _load_external(self, ref: TilesetRef, tileset_base_url: str) -> ResolvedTileset:
        """Tileset described by a TSX file next to the map's tilesets."""
        tsx_url = join_url(tileset_base_url, ref.source or "")
        root = ET.fromstring(await self._blobs.fetch_text(tsx_url))
        if root.tag != "tileset":
            raise TilesetError(f"{tsx_url}: root element is <{root.tag}>, expected <tileset>")

        image_el = root.find("image")
        if image_el is None or not image_el.get("source"):
            raise TilesetError(f"{tsx_url}: tileset has no image")

        image_url = join_url(tileset_base_url, image_el.get("source", ""))
        width, height = measure_image(await self._blobs.fetch_bytes(image_url))
        declared_width = _parse_int(image_el.get("width"), width)

        return ResolvedTileset(
            firstgid=ref.firstgid,
            image_url=image_url,
            image_width=width,
            image_height=height,
            columns=_parse_int(root.get("columns"), DEFAULT_TILESET_COLUMNS),
            tilecount=_parse_int(root.get("tilecount"), DEFAULT_TILESET_TILECOUNT),
            tilewidth=_parse_int(root.get("tilewidth"), DEFAULT_TILESET_TILE_SIZE),
            tileheight=_parse_int(root.get("tileheight"), DEFAULT_TILESET_TILE_SIZE),
            image_scale=width / declared_width,
        )

    async def _load_inline(self, ref: TilesetRef, tileset_base_url: str) -> ResolvedTileset:
        """Tileset embedded in the map document."""
        if not ref.image:
            raise TilesetError(f"Inline tileset firstgid={ref.firstgid} has no image")

        image_url = join_url(tileset_base_url, ref.image)
        width, height = measure_image(await self._blobs.fetch_bytes(image_url))

        return ResolvedTileset(
            firstgid=ref.firstgid,
            image_url=image_url,
            image_width=width,
            image_height=height,
            columns=ref.columns or DEFAULT_TILESET_COLUMNS,
            tilecount=ref.tilecount or DEFAULT_TILESET_TILECOUNT,
            tilewidth=ref.tilewidth or DEFAULT_TILESET_TILE_SIZE,
            tileheight=ref.tileheight or DEFAULT_TILESET_TILE_SIZE,
            image_scale=1.0,
        )

    # -------------------------------------------------------------------------
    # Obstacle images
    # -------------------------------------------------------------------------

    async def _image_collision(self, tiled_map: TiledMap, tmj_url: str) -> frozenset[str]:
        """Blocked tiles from ``layer1...`` image layers.

        Image paths are relative to the map document. An image that cannot
        be loaded contributes nothing; the tile layers still apply.
        """
        layers = tiled_map.collision_images()
        if not layers:
            return frozenset()

        map_dir = tmj_url.rsplit("/", 1)[0] if "/" in tmj_url else ""
        blocked: set[str] = set()
        for layer in layers:
            image_url = join_url(map_dir, layer.image or "")
            try:
                blocked |= await load_alpha_collision(self._blobs, image_url, tile_size=tiled_map.tilewidth)
            except Exception as e:
                logger.warning(f"Error loading obstacle image {image_url}: {type(e).__name__}: {e}")
        return frozenset(blocked)
