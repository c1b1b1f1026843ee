"""Tests for the HTTP gateway."""

import pytest
from fastapi.testclient import TestClient

from agentnet.agent import Agent
from agentnet.api import create_fastapi_app
from agentnet.models import CapabilitySchema

from conftest import ScriptedProvider, wait_for


@pytest.fixture
def agent(make_config):
    async def lookup(context, args):
        context.state["looked_up"] = args.get("sku")
        context.state["_cache"] = "hit"
        return {"stock": 3}

    agent = Agent(
        make_config(),
        provider=ScriptedProvider(
            [{"calls": [{"name": "lookup", "args": {"sku": "A1"}}]}, {"answer": "3 in stock"}]
        ),
    )
    agent.add_tool(CapabilitySchema(name="lookup"), lookup)
    return agent


@pytest.fixture
def client(agent):
    with TestClient(create_fastapi_app(agent)) as test_client:
        yield test_client


class TestQueryRoutes:
    """Tests for /api/query and /api/agents/{network}/query."""

    def test_query_local_agent(self, client):
        response = client.post(
            "/api/query", json={"content": "stock of A1?", "session": {"id": "s1"}}
        )

        assert response.status_code == 200
        body = response.json()
        assert body["content"] == "3 in stock"
        assert body["session"] == {"id": "s1", "looked_up": "A1"}

    def test_query_over_transport(self, client):
        response = client.post(
            "/api/agents/sales.frontDesk/query", json={"content": "stock?"}
        )

        assert response.status_code == 200
        assert response.json()["session"]["id"]

    def test_unreachable_agent_is_bad_gateway(self, client):
        response = client.post("/api/agents/sales.nobody/query", json={"content": "hi"})

        assert response.status_code == 502
        assert response.json()["detail"]["type"] == "HandoffError"

    def test_missing_content_rejected(self, client):
        response = client.post("/api/query", json={"session": {}})
        assert response.status_code == 422


class TestObservabilityRoutes:
    """Tests for trace events, capabilities and sessions."""

    def test_trace_events_after_query(self, client):
        client.post("/api/query", json={"content": "stock?", "session": {"id": "s1"}})

        response = client.get("/api/trace-events", params={"event_type": "executorEnd"})

        assert response.status_code == 200
        events = response.json()
        assert len(events) == 1
        assert events[0]["actor"] == "sales.frontDesk"
        assert events[0]["data"]["response"] == "3 in stock"

    def test_invalid_after_timestamp(self, client):
        response = client.get("/api/trace-events", params={"after": "yesterday"})
        assert response.status_code == 400

    def test_capabilities_empty(self, client):
        response = client.get("/api/capabilities")
        assert response.status_code == 200
        assert response.json() == []

    def test_session_hides_private_state(self, client):
        client.post("/api/query", json={"content": "stock?", "session": {"id": "s1"}})

        response = client.get("/api/sessions/s1")

        assert response.json() == {
            "id": "s1",
            "state": {"looked_up": "A1"},
            "conversation_length": 4,
        }

    def test_health_while_running(self, client):
        response = client.get("/api/health")
        assert response.json() == {"network": "sales.frontDesk", "running": True}

    def test_health_after_transport_loss(self, client, agent):
        async def lose_transport():
            await agent.transport.disconnect()
            await wait_for(lambda: not agent.is_running)

        client.portal.call(lose_transport)
        response = client.get("/api/health")

        assert response.status_code == 503
        assert response.json()["detail"]["running"] is False
        assert response.json()["detail"]["error"]
