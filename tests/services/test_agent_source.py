"""Tests for agent list sources."""

import httpx
import pytest

from worldgrid.core import AgentPlacement
from worldgrid.services import AgentSourceError, HttpAgentSource, StaticAgentSource


def mock_client(handler) -> httpx.AsyncClient:
    return httpx.AsyncClient(transport=httpx.MockTransport(handler))


STORED_AGENTS = [
    {
        "url": "https://agent-one.example",
        "card": {"name": "One"},
        "state": {"x": 10, "y": 5, "mapName": "happy-village"},
        "isPlaced": True,
    },
    {
        "url": "https://agent-two.example",
        "card": {"name": "Two"},
        "state": {"x": 0, "y": 0},
        "isPlaced": False,
    },
]


class TestHttpAgentSource:
    """Fetching from the agents API."""

    async def test_fetch_placed_agents(self):
        requested = []

        def handler(request: httpx.Request) -> httpx.Response:
            requested.append(str(request.url))
            return httpx.Response(200, json={"success": True, "agents": STORED_AGENTS})

        async with HttpAgentSource("https://world.example/", client=mock_client(handler)) as source:
            agents = await source.fetch()

        assert requested == ["https://world.example/api/agents"]
        assert [a.url for a in agents] == ["https://agent-one.example"]
        assert agents[0].name == "One"
        assert agents[0].map_name == "happy-village"

    async def test_http_error(self):
        source = HttpAgentSource("https://world.example", client=mock_client(lambda r: httpx.Response(500)))
        with pytest.raises(AgentSourceError):
            await source.fetch()

    async def test_transport_error(self):
        def handler(request: httpx.Request) -> httpx.Response:
            raise httpx.ConnectError("refused", request=request)

        source = HttpAgentSource("https://world.example", client=mock_client(handler))
        with pytest.raises(AgentSourceError):
            await source.fetch()

    async def test_unsuccessful_payload(self):
        source = HttpAgentSource(
            "https://world.example",
            client=mock_client(lambda r: httpx.Response(200, json={"success": False, "error": "nope"})),
        )
        with pytest.raises(AgentSourceError):
            await source.fetch()

    async def test_missing_agents_array(self):
        source = HttpAgentSource(
            "https://world.example",
            client=mock_client(lambda r: httpx.Response(200, json={"success": True})),
        )
        with pytest.raises(AgentSourceError):
            await source.fetch()

    async def test_not_json(self):
        source = HttpAgentSource(
            "https://world.example",
            client=mock_client(lambda r: httpx.Response(200, text="<html>")),
        )
        with pytest.raises(AgentSourceError):
            await source.fetch()

    async def test_malformed_placed_agent_skipped(self):
        records = [
            STORED_AGENTS[0],
            {"url": "https://broken.example", "state": {"x": "far"}, "isPlaced": True},
        ]
        source = HttpAgentSource(
            "https://world.example",
            client=mock_client(lambda r: httpx.Response(200, json={"success": True, "agents": records})),
        )
        agents = await source.fetch()
        assert [a.url for a in agents] == ["https://agent-one.example"]

    async def test_broken_unplaced_agent_ignored(self):
        records = [
            STORED_AGENTS[0],
            {"url": "https://parked.example", "state": {"x": None}, "isPlaced": False},
        ]
        source = HttpAgentSource(
            "https://world.example",
            client=mock_client(lambda r: httpx.Response(200, json={"success": True, "agents": records})),
        )
        agents = await source.fetch()
        assert [a.url for a in agents] == ["https://agent-one.example"]

    async def test_missing_is_placed_means_unplaced(self):
        records = [STORED_AGENTS[0], {"url": "https://unknown.example", "state": {"x": 1, "y": 1}}]
        source = HttpAgentSource(
            "https://world.example",
            client=mock_client(lambda r: httpx.Response(200, json={"success": True, "agents": records})),
        )
        agents = await source.fetch()
        assert [a.url for a in agents] == ["https://agent-one.example"]


class TestStaticAgentSource:
    """Fixed lists."""

    async def test_accepts_models_and_dicts(self):
        source = StaticAgentSource([
            AgentPlacement(url="https://a.example", is_placed=True),
            AgentPlacement(url="https://parked.example"),
            *STORED_AGENTS,
        ])
        agents = await source.fetch()
        assert [a.url for a in agents] == ["https://a.example", "https://agent-one.example"]

    async def test_skips_malformed_records(self):
        source = StaticAgentSource([
            {"url": "https://broken.example", "x": "far", "isPlaced": True},
            "not-a-record",
            STORED_AGENTS[0],
        ])
        assert [a.url for a in await source.fetch()] == ["https://agent-one.example"]
