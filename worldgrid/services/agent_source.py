"""Agent placement sources.

The spawn gate reads the agent list once per session. In production that
list comes from the agents API; tests and offline tools use a static list.
"""

from __future__ import annotations

import logging
from typing import Any, Iterable, Protocol

import httpx
from pydantic import ValidationError

from worldgrid.core.agent import AgentPlacement

logger = logging.getLogger(__name__)

AGENTS_PATH = "/api/agents"


class AgentSourceError(Exception):
    """The agent list could not be fetched or understood."""

    pass


class AgentSource(Protocol):
    async def fetch(self) -> list[AgentPlacement]: ...


def placed_agents(records: Iterable[AgentPlacement | dict[str, Any]], source: str) -> list[AgentPlacement]:
    """Placed agents from a raw agent list.

    Records are filtered on their ``isPlaced`` flag before validation, so an
    unplaced record with a broken state never matters. A placed record that
    fails validation is logged and skipped; the rest still load.
    """
    placed: list[AgentPlacement] = []
    for record in records:
        if isinstance(record, AgentPlacement):
            if record.is_placed:
                placed.append(record)
            continue
        if not isinstance(record, dict):
            logger.warning(f"Skipping non-object agent record from {source}: {record!r:.100}")
            continue
        if not record.get("isPlaced", record.get("is_placed")):
            continue
        try:
            placed.append(AgentPlacement.model_validate(record))
        except ValidationError as e:
            logger.warning(
                f"Skipping malformed agent record {record.get('url')!r} from {source}: "
                f"{e.error_count()} error(s)"
            )
    return placed


class StaticAgentSource:
    """A fixed agent list."""

    def __init__(self, agents: Iterable[AgentPlacement | dict[str, Any]]):
        self._agents = placed_agents(agents, "static list")

    async def fetch(self) -> list[AgentPlacement]:
        return list(self._agents)


class HttpAgentSource:
    """Agent list from the agents API.

    Expects ``GET {base_url}/api/agents`` to answer
    ``{"success": true, "agents": [...]}``. Only placed agents are returned.
    """

    def __init__(
        self,
        base_url: str,
        timeout: float = 10.0,
        client: httpx.AsyncClient | None = None,
    ):
        self.base_url = base_url.rstrip("/")
        self._client = client
        self._owns_client = client is None
        self._timeout = timeout

    def _get_client(self) -> httpx.AsyncClient:
        if self._client is None:
            self._client = httpx.AsyncClient(timeout=self._timeout, follow_redirects=True)
        return self._client

    async def fetch(self) -> list[AgentPlacement]:
        """Fetch placed agents.

        Raises:
            AgentSourceError: On transport errors, non-2xx responses or an
                unexpected response shape
        """
        url = f"{self.base_url}{AGENTS_PATH}"
        try:
            response = await self._get_client().get(url)
            response.raise_for_status()
            payload = response.json()
        except httpx.HTTPStatusError as e:
            raise AgentSourceError(f"Agent list request failed: HTTP {e.response.status_code}") from e
        except httpx.HTTPError as e:
            raise AgentSourceError(f"Agent list request failed: {e}") from e
        except ValueError as e:
            raise AgentSourceError(f"Agent list is not JSON: {e}") from e

        if not isinstance(payload, dict) or not payload.get("success"):
            raise AgentSourceError(f"Agent list request was not successful: {payload!r:.200}")
        raw_agents = payload.get("agents")
        if not isinstance(raw_agents, list):
            raise AgentSourceError("Agent list response has no 'agents' array")

        placed = placed_agents(raw_agents, url)
        logger.info(f"Fetched {len(raw_agents)} agent(s) from {url}, {len(placed)} placed")
        return placed

    async def close(self) -> None:
        if self._client is not None and self._owns_client:
            await self._client.aclose()
            self._client = None

    async def __aenter__(self) -> "HttpAgentSource":
        return self

    async def __aexit__(self, *exc: Any) -> None:
        await self.close()
