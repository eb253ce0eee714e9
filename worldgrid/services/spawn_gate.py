"""Agent spawn gate for worldgrid.

Decides when each placed agent may enter the live world. An agent spawns
only once its village is loaded and it has a walkable position; agents that
are not ready are deferred and reconsidered on the next pass. Passes run
after the agent list arrives and after every change to the loaded village
set, so the order in which agents and villages load does not matter.

Each agent url spawns at most once per gate.
"""

from __future__ import annotations

import logging
import uuid
from typing import TYPE_CHECKING, Callable

from worldgrid.core.agent import DEFAULT_MOVEMENT_MODE, AgentPlacement, SpawnEvent
from worldgrid.core.constants import DEFAULT_MOVE_INTERVAL_MS, DEFAULT_SPRITE_HEIGHT
from worldgrid.core.coords import world_to_grid
from worldgrid.core.types import AgentUrl, VillageSlug, WorldPoint
from worldgrid.logging_config import log_spawn

from .spawn_search import find_available_spawn_position

if TYPE_CHECKING:
    from .agent_source import AgentSource
    from .world_grid import WorldGridRuntime

logger = logging.getLogger(__name__)

AGENT_ID_PREFIX = "a2a-deployed-"

PositionCheck = Callable[[int, int], bool]
PositionSearch = Callable[[int, int], WorldPoint | None]
LiveCheck = Callable[[str], bool]
SpawnCallback = Callable[[SpawnEvent], None]


def new_agent_id() -> str:
    return f"{AGENT_ID_PREFIX}{uuid.uuid4().hex[:12]}"


class AgentSpawnGate:
    """Spawns placed agents once their villages are ready.

    Usage:
        gate = AgentSpawnGate(runtime, on_spawn=world.add_agent)
        gate.attach()
        await gate.fetch_agents(HttpAgentSource(agents_url))
        # passes now run by themselves as villages load
    """

    def __init__(
        self,
        runtime: WorldGridRuntime,
        on_spawn: SpawnCallback | None = None,
        is_position_valid: PositionCheck | None = None,
        find_spawn_position: PositionSearch | None = None,
        is_already_live: LiveCheck | None = None,
    ):
        self._runtime = runtime
        self._on_spawn = on_spawn
        self._is_position_valid = is_position_valid or self._not_blocked
        self._find_spawn_position = find_spawn_position or self._search_near
        self._is_already_live = is_already_live or (lambda url: False)

        self._agents: list[AgentPlacement] | None = None
        self._spawned: set[str] = set()
        self._attached = False

    # -------------------------------------------------------------------------
    # Collaborator defaults
    # -------------------------------------------------------------------------

    def _not_blocked(self, x: int, y: int) -> bool:
        return not self._runtime.is_collision_at(x, y)

    def _search_near(self, x: int, y: int) -> WorldPoint | None:
        return find_available_spawn_position(self._is_position_valid, WorldPoint(x, y))

    # -------------------------------------------------------------------------
    # Agent list
    # -------------------------------------------------------------------------

    @property
    def agents_fetched(self) -> bool:
        return self._agents is not None

    @property
    def spawned_urls(self) -> frozenset[str]:
        return frozenset(self._spawned)

    @property
    def pending(self) -> list[AgentPlacement]:
        """Agents not spawned yet."""
        return [a for a in self._agents or [] if a.url not in self._spawned]

    def set_agents(self, agents: list[AgentPlacement]) -> list[SpawnEvent]:
        """Provide the agent list and run a pass right away."""
        self._agents = list(agents)
        logger.info(f"Spawn gate received {len(self._agents)} agent(s)")
        return self.run()

    async def fetch_agents(self, source: AgentSource) -> list[SpawnEvent]:
        """Fetch the agent list from a source and run a pass.

        Raises:
            AgentSourceError: If the source fails; the gate stays unfetched
        """
        agents = await source.fetch()
        return self.set_agents(agents)

    # -------------------------------------------------------------------------
    # Runtime subscription
    # -------------------------------------------------------------------------

    def attach(self) -> None:
        """Re-run the gate whenever the runtime publishes a village."""
        if not self._attached:
            self._runtime.add_listener(self._on_loaded_changed)
            self._attached = True

    def detach(self) -> None:
        if self._attached:
            self._runtime.remove_listener(self._on_loaded_changed)
            self._attached = False

    def _on_loaded_changed(self, loaded_slugs: frozenset[str]) -> None:
        if self._agents is None:
            return
        logger.debug(f"Loaded villages changed ({len(loaded_slugs)}), re-running spawn gate")
        self.run()

    # -------------------------------------------------------------------------
    # Gate pass
    # -------------------------------------------------------------------------

    def run(self) -> list[SpawnEvent]:
        """One pass over the agent list. Returns the events emitted."""
        if self._agents is None:
            return []

        events = []
        for agent in self._agents:
            event = self._consider(agent)
            if event is not None:
                events.append(event)
                if self._on_spawn is not None:
                    self._on_spawn(event)

        if events:
            logger.info(f"Spawned {len(events)} agent(s), {len(self.pending)} still pending")
        return events

    def _resolve_village(self, agent: AgentPlacement) -> VillageSlug | None:
        if agent.map_name:
            return agent.map_name
        cell = world_to_grid(agent.x, agent.y)
        return self._runtime.get_village_slug_at_grid(*cell)

    def _consider(self, agent: AgentPlacement) -> SpawnEvent | None:
        if agent.url in self._spawned:
            return None

        village = self._resolve_village(agent)
        if village is None:
            log_spawn(logger, agent.url, "DEFERRED", details=f"no village at ({agent.x},{agent.y})")
            return None

        if not self._runtime.is_loaded(village):
            log_spawn(logger, agent.url, "DEFERRED", village, "village not loaded")
            return None

        if self._is_already_live(agent.url):
            self._spawned.add(agent.url)
            log_spawn(logger, agent.url, "ALREADY_LIVE", village)
            return None

        position = agent.position
        if not self._is_position_valid(position.x, position.y):
            found = self._find_spawn_position(position.x, position.y)
            if found is None:
                log_spawn(logger, agent.url, "DEFERRED", village, "no walkable position nearby")
                return None
            log_spawn(
                logger, agent.url, "RELOCATED", village,
                f"({position.x},{position.y}) -> ({found.x},{found.y})",
            )
            position = found

        self._spawned.add(agent.url)
        event = SpawnEvent(
            agent_id=new_agent_id(),
            agent_url=AgentUrl(agent.url),
            name=agent.name,
            x=position.x,
            y=position.y,
            spawn_x=agent.spawn_x if agent.spawn_x is not None else position.x,
            spawn_y=agent.spawn_y if agent.spawn_y is not None else position.y,
            village=village,
            movement_mode=agent.movement_mode or DEFAULT_MOVEMENT_MODE,
            move_interval=agent.move_interval or DEFAULT_MOVE_INTERVAL_MS,
            sprite_url=agent.sprite_url,
            sprite_height=agent.sprite_height or DEFAULT_SPRITE_HEIGHT,
            color=agent.color,
        )
        log_spawn(logger, agent.url, "SPAWNED", village, f"at ({position.x},{position.y}) id={event.agent_id}")
        return event
