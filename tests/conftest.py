"""Shared fixtures for AgentMesh tests."""

from typing import Any

import pytest

from agentmesh.agents.models import Agent, AgentConfig, AgentState, Intelligence
from agentmesh.agents.registry import AgentRegistry
from agentmesh.collaboration.models import Collaboration, CollaborationMessage
from agentmesh.core.config import get_settings
from agentmesh.core.types import AgentStatus, AgentType
from agentmesh.infra.telemetry import MetricsCollector


class ImmediateExecutor:
    """Capability executor that answers at once with a fixed payload."""

    def __init__(self, payload: dict[str, Any] | None = None):
        self.payload = payload or {"processed": True}
        self.calls: list[str] = []

    async def execute(self, request: CollaborationMessage, collaboration: Collaboration) -> dict[str, Any]:
        self.calls.append(request.id)
        return dict(self.payload)


class FailingExecutor:
    async def execute(self, request: CollaborationMessage, collaboration: Collaboration) -> dict[str, Any]:
        raise RuntimeError("provider unavailable")


def _make_agent(agent_id: str, *, max_tasks: int = 3, agent_type: AgentType = AgentType.COLLABORATIVE,
               status: AgentStatus = AgentStatus.ACTIVE, **intelligence: float) -> Agent:
    return Agent(
        id=agent_id,
        name=f"Agent {agent_id}",
        type=agent_type,
        intelligence=Intelligence(**intelligence),
        state=AgentState(status=status),
        config=AgentConfig(max_concurrent_tasks=max_tasks),
    )


@pytest.fixture
def make_agent():
    """Factory for minimal agents: make_agent(id, max_tasks=.., **intelligence)."""
    return _make_agent


@pytest.fixture
def immediate_executor():
    return ImmediateExecutor()


@pytest.fixture
def metrics():
    return MetricsCollector()


@pytest.fixture
def registry(metrics):
    return AgentRegistry(max_agents=10, metrics=metrics)


@pytest.fixture
def test_settings():
    return get_settings(
        ENVIRONMENT="testing",
        SEED_DEFAULT_AGENTS=False,
        SIMULATED_DELAY_MIN_S=0.0,
        SIMULATED_DELAY_MAX_S=0.0,
        MESSAGE_TICK_S=0.01,
    )
