"""Shared test fixtures for worldgrid."""

import json
import tempfile
from pathlib import Path
from typing import AsyncGenerator, Callable, Iterable

import pytest
import pytest_asyncio
from PIL import Image

from worldgrid.core import VillageMetadata
from worldgrid.core.constants import VILLAGE_SIZE
from worldgrid.storage import FileBlobStore, Storage


def pytest_configure(config):
    """Register custom markers."""
    config.addinivalue_line("markers", "slow: marks tests as slow (skipped by default, run with --run-slow)")


def pytest_addoption(parser):
    """Add --run-slow option to pytest."""
    parser.addoption(
        "--run-slow",
        action="store_true",
        default=False,
        help="Run slow tests (skipped by default)",
    )


def pytest_collection_modifyitems(config, items):
    """Skip slow tests unless --run-slow is passed."""
    if config.getoption("--run-slow"):
        return

    skip_slow = pytest.mark.skip(reason="Slow test (use --run-slow to run)")
    for item in items:
        if "slow" in item.keywords:
            item.add_marker(skip_slow)


# =============================================================================
# Directories and storage
# =============================================================================


@pytest.fixture
def temp_data_dir() -> Path:
    """Create a temporary data directory for tests."""
    with tempfile.TemporaryDirectory(prefix="worldgrid_test_") as tmpdir:
        yield Path(tmpdir)


@pytest.fixture
def asset_root(temp_data_dir: Path) -> Path:
    """Directory that stands in for the asset bucket."""
    root = temp_data_dir / "assets"
    root.mkdir()
    return root


@pytest.fixture
def blobs(asset_root: Path) -> FileBlobStore:
    return FileBlobStore(asset_root)


@pytest_asyncio.fixture
async def storage(temp_data_dir: Path) -> AsyncGenerator[Storage, None]:
    """Create a fully initialized Storage instance."""
    store = Storage(temp_data_dir)
    await store.connect()
    yield store
    await store.close()


# =============================================================================
# Village assets
# =============================================================================

TSX_TEMPLATE = """<?xml version="1.0"?>
<tileset version="1.10" name="ground" tilewidth="40" tileheight="40" tilecount="2" columns="2">
 <image source="ground.png" width="{declared_width}" height="40"/>
</tileset>
"""


def write_village_assets(
    root: Path,
    slug: str,
    width: int = VILLAGE_SIZE,
    height: int = VILLAGE_SIZE,
    blocked: Iterable[tuple[int, int]] = (),
    external_tileset: bool = True,
    obstacle_layer: str = "Layer1_obstacles",
    declared_width: int = 80,
    blocked_image: Iterable[tuple[int, int]] | None = None,
) -> tuple[str, str]:
    """Write map.tmj, a tileset and its image for a village.

    With blocked_image, an obstacle image layer is added whose opaque
    40px squares mark those tiles.

    Returns:
        (tmj_url, tileset_base_url) relative to root
    """
    village_dir = root / "villages" / slug
    tilesets_dir = village_dir / "tilesets"
    tilesets_dir.mkdir(parents=True, exist_ok=True)

    Image.new("RGBA", (80, 40), (40, 160, 60, 255)).save(tilesets_dir / "ground.png")

    if external_tileset:
        (tilesets_dir / "ground.tsx").write_text(TSX_TEMPLATE.format(declared_width=declared_width))
        tileset = {"firstgid": 1, "source": "ground.tsx"}
    else:
        tileset = {
            "firstgid": 1,
            "image": "ground.png",
            "columns": 2,
            "tilecount": 2,
            "tilewidth": 40,
            "tileheight": 40,
        }

    obstacles = [0] * (width * height)
    for x, y in blocked:
        obstacles[y * width + x] = 2

    tmj = {
        "width": width,
        "height": height,
        "tilewidth": 40,
        "tileheight": 40,
        "layers": [
            {"name": "Ground", "type": "tilelayer", "data": [1] * (width * height), "width": width, "height": height},
            {"name": obstacle_layer, "type": "tilelayer", "data": obstacles, "width": width, "height": height},
            {"name": "Spawns", "type": "objectgroup", "objects": []},
        ],
        "tilesets": [tileset],
    }
    if blocked_image is not None:
        obstacles_png = Image.new("RGBA", (width * 40, height * 40), (0, 0, 0, 0))
        for x, y in blocked_image:
            obstacles_png.paste((120, 80, 40, 255), (x * 40, y * 40, (x + 1) * 40, (y + 1) * 40))
        obstacles_png.save(village_dir / "obstacles.png")
        tmj["layers"].append({"name": "Layer1_image", "type": "imagelayer", "image": "obstacles.png"})

    (village_dir / "map.tmj").write_text(json.dumps(tmj))
    return f"villages/{slug}/map.tmj", f"villages/{slug}/tilesets"


@pytest.fixture
def make_village(asset_root: Path) -> Callable[..., VillageMetadata]:
    """Factory for villages with assets written under asset_root.

    Usage:
        village = make_village("happy-village", 0, 0, blocked=[(3, 4)])
    """

    def _make(
        slug: str,
        grid_x: int = 0,
        grid_y: int = 0,
        grid_width: int = 1,
        grid_height: int = 1,
        blocked: Iterable[tuple[int, int]] = (),
        with_assets: bool = True,
        blocked_image: Iterable[tuple[int, int]] | None = None,
    ) -> VillageMetadata:
        if with_assets:
            tmj_url, tileset_base_url = write_village_assets(
                asset_root,
                slug,
                width=grid_width * VILLAGE_SIZE,
                height=grid_height * VILLAGE_SIZE,
                blocked=blocked,
                blocked_image=blocked_image,
            )
        else:
            tmj_url, tileset_base_url = f"villages/{slug}/map.tmj", f"villages/{slug}/tilesets"
        return VillageMetadata(
            slug=slug,
            name=slug.replace("-", " ").title(),
            grid_x=grid_x,
            grid_y=grid_y,
            grid_width=grid_width,
            grid_height=grid_height,
            tmj_url=tmj_url,
            tileset_base_url=tileset_base_url,
            created_at=1_700_000_000_000,
            updated_at=1_700_000_000_000,
        )

    return _make


@pytest.fixture
def village_assets(asset_root: Path) -> Callable[..., tuple[str, str]]:
    """write_village_assets bound to asset_root."""

    def _write(slug: str, **kwargs) -> tuple[str, str]:
        return write_village_assets(asset_root, slug, **kwargs)

    return _write
