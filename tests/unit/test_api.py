"""
HTTP API — Unit Tests
=====================

Runs the FastAPI app in-process with ``TestClient`` so the lifespan starts
and stops the coordination system. Collaborations are formed through the
client's portal, on the same event loop as the running bus.
"""

import time
from functools import partial

import pytest
from fastapi.testclient import TestClient

from agentmesh.api.main import create_app
from agentmesh.collaboration.models import CollaborationMessage
from agentmesh.core.config import get_settings
from agentmesh.core.types import MessageType
from agentmesh.system import CoordinationSystem

PRIMARY = "glm-45-primary"
SPECIALIST = "gemini-specialist"


def eventually(predicate, attempts=200, delay=0.01):
    for _ in range(attempts):
        if predicate():
            return True
        time.sleep(delay)
    return False


@pytest.fixture
def system():
    return CoordinationSystem(get_settings(
        ENVIRONMENT="testing",
        SEED_DEFAULT_AGENTS=True,
        SIMULATED_DELAY_MIN_S=0.0,
        SIMULATED_DELAY_MAX_S=0.0,
        MESSAGE_TICK_S=0.01,
    ))


@pytest.fixture
def client(system):
    with TestClient(create_app(system)) as test_client:
        yield test_client


@pytest.fixture
def collaboration_id(client, system):
    collab = client.portal.call(partial(
        system.collaborations.create,
        "review", "quarterly review", "knowledge-exchange", [PRIMARY, SPECIALIST],
    ))
    return collab.id


class TestService:

    def test_root(self, client):
        body = client.get("/").json()
        assert body["version"] == "1.0.0"
        assert body["api_version"] == "v1"

    def test_health_reports_running(self, client):
        body = client.get("/health").json()
        assert body["status"] == "healthy"
        assert body["agents"] == 2
        assert set(body["periodic_tasks"]) == {
            "health_check", "agent_optimization", "collaboration_optimization"
        }

    def test_metrics_exposition(self, client):
        response = client.get("/metrics")
        assert response.status_code == 200
        assert response.headers["content-type"].startswith("text/plain")
        assert "agentmesh_registry_agents 2.0" in response.text

    def test_system_stopped_after_lifespan(self, system):
        with TestClient(create_app(system)):
            assert system.running
        assert not system.running


class TestAgentRoutes:

    def test_list_agents(self, client):
        body = client.get("/api/v1/agents").json()
        assert body["count"] == 2
        assert {a["id"] for a in body["agents"]} == {PRIMARY, SPECIALIST}

    def test_filter_by_type(self, client):
        body = client.get("/api/v1/agents", params={"type": "specialist"}).json()
        assert [a["id"] for a in body["agents"]] == [SPECIALIST]
        assert client.get("/api/v1/agents", params={"type": "wizard"}).status_code == 422

    def test_available(self, client):
        assert client.get("/api/v1/agents/available").json()["count"] == 2

    def test_get_agent(self, client):
        body = client.get(f"/api/v1/agents/{PRIMARY}").json()
        assert body["type"] == "primary"
        assert body["config"]["max_concurrent_tasks"] == 5

    def test_unknown_agent_is_404(self, client):
        response = client.get("/api/v1/agents/ghost")
        assert response.status_code == 404
        assert response.json()["error"] == "AGENT_NOT_FOUND"
        assert client.get("/api/v1/agents/ghost/collaborations").status_code == 404

    def test_agent_health(self, client):
        body = client.get(f"/api/v1/agents/{SPECIALIST}/health").json()
        assert body["agent_id"] == SPECIALIST
        assert 0.0 <= body["health_score"] <= 1.0
        assert body["needs_maintenance"] is False


class TestCollaborationRoutes:

    def test_collaboration_becomes_coordinating(self, client, collaboration_id):
        def coordinating():
            body = client.get(f"/api/v1/collaborations/{collaboration_id}").json()
            return body["status"] == "coordinating" and len(body["messages"]) == 3

        assert eventually(coordinating)
        listing = client.get("/api/v1/collaborations", params={"status": "coordinating"}).json()
        assert [c["id"] for c in listing["collaborations"]] == [collaboration_id]
        assert listing["collaborations"][0]["message_count"] == 3

        after = client.get(f"/api/v1/collaborations/{collaboration_id}/messages",
                           params={"after": 1}).json()
        assert [m["sequence"] for m in after["messages"]] == [2, 3]

        mine = client.get(f"/api/v1/agents/{PRIMARY}/collaborations").json()
        assert mine["count"] == 1

    def test_unknown_collaboration_is_404(self, client):
        response = client.get("/api/v1/collaborations/collab-missing")
        assert response.status_code == 404
        assert response.json()["error"] == "COLLABORATION_NOT_FOUND"

    def test_shared_knowledge_visible(self, client, system, collaboration_id):
        client.portal.call(
            system.collaborations.send,
            collaboration_id,
            CollaborationMessage(
                from_agent=SPECIALIST,
                type=MessageType.INFORMATION,
                payload={"shareable": True, "tags": ["revenue"], "knowledge_type": "insight"},
            ),
        )

        def shared():
            return client.get("/api/v1/knowledge", params={"tag": "revenue"}).json()["count"] == 1

        assert eventually(shared)
        scoped = client.get(f"/api/v1/collaborations/{collaboration_id}/knowledge",
                            params={"knowledge_type": "insight"}).json()
        assert scoped["knowledge"][0]["agent_id"] == SPECIALIST
        assert scoped["knowledge"][0]["tags"] == ["revenue"]

    def test_stats(self, client, collaboration_id):
        stats = client.get("/api/v1/stats/collaborations").json()
        assert stats["total_collaborations"] == 1
        system_stats = client.get("/api/v1/stats/system").json()
        assert system_stats["total_agents"] == 2
