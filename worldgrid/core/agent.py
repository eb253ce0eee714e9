"""Agent placement models for worldgrid.

Agents are deployed A2A endpoints placed somewhere in the world. The world
grid does not own them; it reads placements and emits spawn events once an
agent's village is ready.
"""

from __future__ import annotations

from enum import Enum
from typing import Any

from pydantic import BaseModel, ConfigDict, model_validator
from pydantic.alias_generators import to_camel

from .constants import DEFAULT_AGENT_NAME, DEFAULT_MOVE_INTERVAL_MS, DEFAULT_SPRITE_HEIGHT
from .types import AgentUrl, VillageSlug, WorldPoint


class MovementMode(str, Enum):
    """How a spawned agent wanders."""

    STATIONARY = "stationary"  # fixed position
    SPAWN_CENTERED = "spawn_centered"  # stays near its spawn point
    VILLAGE_WIDE = "village_wide"  # roams its whole village


DEFAULT_MOVEMENT_MODE = MovementMode.STATIONARY


class AgentPlacement(BaseModel):
    """A persisted agent placement, as returned by the agent list API.

    Accepts either the flat shape or the stored record shape
    ``{url, card: {name}, state: {x, y, mapName, ...}, spriteUrl, isPlaced}``.
    """

    model_config = ConfigDict(
        frozen=True,
        alias_generator=to_camel,
        populate_by_name=True,
    )

    url: AgentUrl
    name: str = DEFAULT_AGENT_NAME
    x: int = 0
    y: int = 0
    map_name: VillageSlug | None = None
    movement_mode: MovementMode | None = None
    spawn_x: int | None = None
    spawn_y: int | None = None
    color: str | None = None
    move_interval: int | None = None
    sprite_url: str | None = None
    sprite_height: int | None = None
    is_placed: bool = False

    @model_validator(mode="before")
    @classmethod
    def _flatten_stored_record(cls, data: Any) -> Any:
        if not isinstance(data, dict) or "state" not in data:
            return data

        flat = {k: v for k, v in data.items() if k not in ("state", "card")}
        state = data.get("state") or {}
        card = data.get("card") or {}
        for key, value in state.items():
            flat.setdefault(key, value)
        if card.get("name"):
            flat.setdefault("name", card["name"])
        # Blank strings in stored records mean "unset"
        for key in ("mapName", "movementMode"):
            if flat.get(key) == "":
                flat[key] = None
        return flat

    @property
    def position(self) -> WorldPoint:
        """Stored world position."""
        return WorldPoint(self.x, self.y)


class SpawnEvent(BaseModel):
    """Emitted exactly once per agent when it enters the live world."""

    model_config = ConfigDict(frozen=True)

    agent_id: str
    agent_url: AgentUrl
    name: str
    x: int
    y: int
    spawn_x: int
    spawn_y: int
    village: VillageSlug
    movement_mode: MovementMode = DEFAULT_MOVEMENT_MODE
    move_interval: int = DEFAULT_MOVE_INTERVAL_MS
    sprite_url: str | None = None
    sprite_height: int = DEFAULT_SPRITE_HEIGHT
    color: str | None = None

    @property
    def position(self) -> WorldPoint:
        return WorldPoint(self.x, self.y)
