"""Collision from image alpha channels.

Maps drawn as a single transparent obstacle image (rather than a tile layer)
get their collision by looking at how opaque each game tile's pixels are.
Two strategies:
- sampled: any of a samples x samples grid of pixel probes is opaque
- ratio: at least a given fraction of the tile's pixels are opaque

Images without an alpha channel are fully opaque.
"""

from __future__ import annotations

import io
import logging
from typing import TYPE_CHECKING

from PIL import Image

from worldgrid.core.constants import (
    ALPHA_OPAQUE_RATIO,
    ALPHA_SAMPLES_PER_SIDE,
    ALPHA_THRESHOLD,
    TILE_SIZE,
)
from worldgrid.core.types import LocalPoint

if TYPE_CHECKING:
    from worldgrid.storage.blobs import BlobStore

logger = logging.getLogger(__name__)


def _alpha_band(image: Image.Image) -> Image.Image:
    if image.mode in ("RGBA", "LA", "PA"):
        return image.getchannel("A")
    if image.mode == "P" and "transparency" in image.info:
        return image.convert("RGBA").getchannel("A")
    return Image.new("L", image.size, 255)


def collision_from_alpha_sampled(
    image: Image.Image,
    tile_size: int = TILE_SIZE,
    samples: int = ALPHA_SAMPLES_PER_SIDE,
    alpha_threshold: int = ALPHA_THRESHOLD,
) -> frozenset[str]:
    """Blocked tiles where any sampled pixel has alpha above the threshold.

    Only whole tiles are considered; a partial strip on the right or bottom
    edge is ignored.
    """
    alpha = _alpha_band(image)
    pixels = alpha.load()
    width, height = alpha.size
    tiles_x, tiles_y = width // tile_size, height // tile_size
    step = max(1, tile_size // samples)

    blocked: set[str] = set()
    for tile_y in range(tiles_y):
        for tile_x in range(tiles_x):
            for sy in range(samples):
                py = tile_y * tile_size + sy * step + step // 2
                if py >= height:
                    continue
                if any(
                    pixels[px, py] > alpha_threshold
                    for px in (tile_x * tile_size + sx * step + step // 2 for sx in range(samples))
                    if px < width
                ):
                    blocked.add(LocalPoint(tile_x, tile_y).key)
                    break
    return frozenset(blocked)


def collision_from_alpha_ratio(
    image: Image.Image,
    tile_size: int = TILE_SIZE,
    alpha_threshold: int = ALPHA_THRESHOLD,
    opaque_ratio: float = ALPHA_OPAQUE_RATIO,
    origin: tuple[int, int] = (0, 0),
) -> frozenset[str]:
    """Blocked tiles whose fraction of opaque pixels reaches opaque_ratio.

    Keys are offset by ``origin`` (in tiles) so that one sheet of a larger
    image split into sheets lands at its place in the whole.
    """
    alpha = _alpha_band(image)
    width, height = alpha.size
    tiles_x, tiles_y = width // tile_size, height // tile_size
    opaque = alpha.point(lambda a: 255 if a > alpha_threshold else 0)

    blocked: set[str] = set()
    for tile_y in range(tiles_y):
        for tile_x in range(tiles_x):
            box = (
                tile_x * tile_size,
                tile_y * tile_size,
                (tile_x + 1) * tile_size,
                (tile_y + 1) * tile_size,
            )
            histogram = opaque.crop(box).histogram()
            total = sum(histogram)
            if total and histogram[255] / total >= opaque_ratio:
                blocked.add(LocalPoint(origin[0] + tile_x, origin[1] + tile_y).key)
    return frozenset(blocked)


async def load_alpha_collision(
    blobs: BlobStore,
    url: str,
    tile_size: int = TILE_SIZE,
    samples: int = ALPHA_SAMPLES_PER_SIDE,
    alpha_threshold: int = ALPHA_THRESHOLD,
) -> frozenset[str]:
    """Fetch an obstacle image and derive its collision set (sampled strategy)."""
    data = await blobs.fetch_bytes(url)
    with Image.open(io.BytesIO(data)) as image:
        image.load()
        blocked = collision_from_alpha_sampled(image, tile_size, samples, alpha_threshold)
    logger.debug(f"Alpha collision for {url}: {len(blocked)} blocked tile(s)")
    return blocked
