"""Runtime configuration for worldgrid.

Settings come from environment variables (a .env file is honoured via
python-dotenv). Village seed lists are YAML files:

    villages:
      - slug: happy-village
        name: Happy Village
        grid_x: 0
        grid_y: 0
        grid_width: 1
        grid_height: 1
        tmj_url: villages/happy-village/map.tmj   # optional
"""

from __future__ import annotations

import os
from dataclasses import dataclass
from pathlib import Path
from typing import Any

import yaml
from dotenv import load_dotenv
from pydantic import ValidationError

from worldgrid.core.village import VillageMetadata, now_ms

ENV_PREFIX = "WORLDGRID_"
DEFAULT_DATA_DIR = "data"
DEFAULT_HTTP_TIMEOUT = 10.0
PUBLIC_BUCKET_HOST = "https://storage.googleapis.com"


class ConfigError(Exception):
    """Configuration or seed file is invalid."""

    pass


@dataclass(frozen=True)
class WorldGridConfig:
    data_dir: Path = Path(DEFAULT_DATA_DIR)
    asset_base_url: str = ""
    agents_url: str = ""
    storage_bucket: str = ""
    http_timeout: float = DEFAULT_HTTP_TIMEOUT

    @property
    def asset_location(self) -> str:
        """Where village assets are read from: a URL, or a local directory."""
        return self.asset_base_url or str(self.data_dir / "assets")

    def village_asset_urls(self, slug: str) -> tuple[str, str]:
        """Default (tmj_url, tileset_base_url) for a village.

        With a storage bucket these are public bucket URLs; otherwise they
        are relative to the asset location.
        """
        prefix = f"villages/{slug}"
        if self.storage_bucket:
            prefix = f"{PUBLIC_BUCKET_HOST}/{self.storage_bucket}/{prefix}"
        return f"{prefix}/map.tmj", f"{prefix}/tilesets"


def load_config(env_file: Path | None = None) -> WorldGridConfig:
    """Build the config from the environment.

    Raises:
        ConfigError: If WORLDGRID_HTTP_TIMEOUT is not a number
    """
    load_dotenv(env_file)

    raw_timeout = os.environ.get(f"{ENV_PREFIX}HTTP_TIMEOUT", "")
    try:
        timeout = float(raw_timeout) if raw_timeout else DEFAULT_HTTP_TIMEOUT
    except ValueError as e:
        raise ConfigError(f"{ENV_PREFIX}HTTP_TIMEOUT must be a number, got {raw_timeout!r}") from e

    return WorldGridConfig(
        data_dir=Path(os.environ.get(f"{ENV_PREFIX}DATA_DIR") or DEFAULT_DATA_DIR),
        asset_base_url=os.environ.get(f"{ENV_PREFIX}ASSET_BASE_URL", ""),
        agents_url=os.environ.get(f"{ENV_PREFIX}AGENTS_URL", ""),
        storage_bucket=os.environ.get(f"{ENV_PREFIX}STORAGE_BUCKET", ""),
        http_timeout=timeout,
    )


def _village_from_seed(entry: dict[str, Any], config: WorldGridConfig, timestamp: int) -> VillageMetadata:
    if not isinstance(entry, dict):
        raise ConfigError(f"Seed entry must be a mapping, got {entry!r}")
    slug = entry.get("slug")
    if not slug:
        raise ConfigError(f"Seed entry without slug: {entry!r}")

    default_tmj, default_tilesets = config.village_asset_urls(slug)
    try:
        return VillageMetadata(
            slug=slug,
            name=entry.get("name") or slug,
            grid_x=entry.get("grid_x", 0),
            grid_y=entry.get("grid_y", 0),
            grid_width=entry.get("grid_width", 1),
            grid_height=entry.get("grid_height", 1),
            tmj_url=entry.get("tmj_url") or default_tmj,
            tileset_base_url=entry.get("tileset_base_url") or default_tilesets,
            created_at=timestamp,
            updated_at=timestamp,
        )
    except ValidationError as e:
        raise ConfigError(f"Invalid seed entry for {slug!r}: {e}") from e


def load_village_seeds(path: Path, config: WorldGridConfig | None = None) -> list[VillageMetadata]:
    """Read village metadata from a YAML seed file.

    Raises:
        ConfigError: If the file is missing or malformed
    """
    config = config or WorldGridConfig()
    if not path.exists():
        raise ConfigError(f"Seed file not found: {path}")

    with open(path) as f:
        try:
            data = yaml.safe_load(f)
        except yaml.YAMLError as e:
            raise ConfigError(f"Seed file {path} is not valid YAML: {e}") from e

    if not data or "villages" not in data:
        raise ConfigError(f"Seed file {path} has no 'villages' list")
    entries = data["villages"]
    if not isinstance(entries, list):
        raise ConfigError(f"'villages' in {path} must be a list")

    timestamp = now_ms()
    return [_village_from_seed(entry, config, timestamp) for entry in entries]
