"""
Agent Registry & Lifecycle Manager
==================================

Owns every Agent. Handles registration, lookup, lifecycle control and the
aggregate system metrics read by dashboards.

Concurrency:
- One lock per agent (from the injectable lock factory); every mutation of
  an agent happens while holding it.
- A registry-level lock guards the id -> agent table itself.
- Readers get deep-copied snapshots, never the live aggregate.
"""

from __future__ import annotations

import contextlib
import time
from collections.abc import Callable, Iterator
from contextlib import contextmanager
from typing import Any

from agentmesh.agents.models import Agent, clamp
from agentmesh.core.exceptions import AgentNotFoundError, CapacityError, ValidationError
from agentmesh.core.types import AgentStatus, AgentType, ControlAction, parse_enum
from agentmesh.infra.telemetry import MetricsCollector, get_logger
from agentmesh.utils.lock_factory import LockType, create_lock

logger = get_logger(__name__)

# Agents above this load are not offered as available
AVAILABILITY_LOAD_CEILING = 0.8

ACTIVE_STATUSES = frozenset({
    AgentStatus.ACTIVE,
    AgentStatus.COLLABORATING,
    AgentStatus.PROCESSING,
})

class AgentRegistry:
    """
    Registry for all agents. Explicitly constructed and passed to dependents;
    there is no module-level instance.
    """

    def __init__(
        self,
        *,
        max_agents: int = 10,
        metrics: MetricsCollector | None = None,
        clock: Callable[[], float] = time.time,
    ) -> None:
        self._agents: dict[str, Agent] = {}
        self._locks: dict[str, LockType] = {}
        self._table_lock = create_lock()
        self._max_agents = max_agents
        self._metrics = metrics
        self._clock = clock

    # ── Registration ──────────────────────────────────────────────

    def register(self, agent: Agent) -> Agent:
        """Register an agent. Returns a snapshot of the stored record."""
        if not agent.id:
            raise ValidationError("Agent id must be a non-empty string")
        if agent.config.max_concurrent_tasks < 1:
            raise ValidationError(
                f"Agent {agent.id} must allow at least one concurrent task"
            )
        with self._table_lock:
            if agent.id in self._agents:
                raise ValidationError(f"Agent {agent.id} is already registered")
            if len(self._agents) >= self._max_agents:
                raise CapacityError(
                    f"Registry is full ({self._max_agents} agents)", resource_id=agent.id
                )
            agent.normalize()
            self._agents[agent.id] = agent
            self._locks[agent.id] = create_lock()
            count = len(self._agents)

        if self._metrics:
            self._metrics.agents_registered.set(count)
        logger.info("agent_registered", agent_id=agent.id, type=agent.type.value)
        return agent.snapshot()

    def unregister(self, agent_id: str) -> None:
        with self._table_lock:
            if agent_id not in self._agents:
                raise AgentNotFoundError(agent_id)
            del self._agents[agent_id]
            del self._locks[agent_id]
            count = len(self._agents)
        if self._metrics:
            self._metrics.agents_registered.set(count)
            with contextlib.suppress(KeyError):
                self._metrics.agent_health.remove(agent_id)
        logger.info("agent_unregistered", agent_id=agent_id)

    def clear(self) -> None:
        """Drop every agent (manager teardown)."""
        with self._table_lock:
            self._agents.clear()
            self._locks.clear()
        if self._metrics:
            self._metrics.agents_registered.set(0)

    # ── Lookup ───────────────────────────────────────────────────

    def __contains__(self, agent_id: object) -> bool:
        return agent_id in self._agents

    def __len__(self) -> int:
        return len(self._agents)

    def exists(self, agent_id: str) -> bool:
        return agent_id in self._agents

    def get(self, agent_id: str) -> Agent:
        """Return a snapshot of an agent. Raises AgentNotFoundError."""
        with self.locked(agent_id) as agent:
            return agent.snapshot()

    def ids(self) -> list[str]:
        with self._table_lock:
            return list(self._agents)

    @contextmanager
    def locked(self, agent_id: str) -> Iterator[Agent]:
        """Yield the live agent while holding its lock.

        Only lifecycle, admission and health code should use this.
        """
        with self._table_lock:
            agent = self._agents.get(agent_id)
            lock = self._locks.get(agent_id)
        if agent is None or lock is None:
            raise AgentNotFoundError(agent_id)
        with lock:
            yield agent

    def list_agents(self) -> list[Agent]:
        snapshots = []
        for agent_id in self.ids():
            with contextlib.suppress(AgentNotFoundError):
                snapshots.append(self.get(agent_id))
        return snapshots

    def list_by_type(self, agent_type: AgentType | str) -> list[Agent]:
        agent_type = parse_enum(AgentType, agent_type, "agent type")
        return [a for a in self.list_agents() if a.type == agent_type]

    def list_available(self) -> list[Agent]:
        """Agents that are active, below capacity and not overloaded."""
        return [
            a for a in self.list_agents()
            if a.state.status == AgentStatus.ACTIVE
            and a.has_capacity
            and a.state.cognitive_load < AVAILABILITY_LOAD_CEILING
        ]

    # ── Lifecycle ────────────────────────────────────────────────

    def control(self, agent_id: str, action: ControlAction | str) -> Agent:
        """Apply a lifecycle action. Unknown ids raise before any mutation."""
        action = parse_enum(ControlAction, action, "control action")

        with self.locked(agent_id) as agent:
            state = agent.state
            if action == ControlAction.START:
                state.status = AgentStatus.ACTIVE
                state.motivation = clamp(state.motivation + 0.1)
            elif action == ControlAction.PAUSE:
                state.status = AgentStatus.IDLE
                state.cognitive_load = clamp(state.cognitive_load - 0.2)
            elif action == ControlAction.RESTART:
                state.status = AgentStatus.ACTIVE
                agent.tasks.active = 0
                state.cognitive_load = 0.0
                state.energy = 1.0
                state.focus = 1.0
                state.motivation = 1.0
                state.health_score = 1.0
            agent.touch(self._clock())
            snapshot = agent.snapshot()

        if self._metrics:
            self._metrics.control_actions.labels(action=action.value).inc()
        logger.info("agent_control", agent_id=agent_id, action=action.value,
                    status=snapshot.state.status.value)
        return snapshot

    # ── Aggregates ───────────────────────────────────────────────

    def get_system_metrics(self) -> dict[str, Any]:
        """Aggregate counts, averages and composite intelligence indices."""
        agents = self.list_agents()
        n = len(agents)

        def avg(values) -> float:
            values = list(values)
            return sum(values) / n if n else 0.0

        def pct(values) -> int:
            return round(avg(values) * 100)

        return {
            "total_agents": n,
            "active_agents": sum(1 for a in agents if a.state.status in ACTIVE_STATUSES),
            "total_tasks": sum(a.tasks.active + a.tasks.completed + a.tasks.failed for a in agents),
            "completed_tasks": sum(a.tasks.completed for a in agents),
            "average_health_score": avg(a.state.health_score for a in agents),
            "average_cognitive_load": avg(a.state.cognitive_load for a in agents),
            "system_intelligence": {
                "overall_iq": round(avg(a.intelligence.overall_iq for a in agents)),
                "collective_intelligence": pct(a.intelligence.collaboration for a in agents),
                "adaptability": pct(a.intelligence.adaptability for a in agents),
                "innovation": pct(a.intelligence.innovation for a in agents),
            },
            "resource_utilization": {
                "cpu": pct(a.resources.cpu for a in agents),
                "memory": pct(a.resources.memory for a in agents),
                "network": pct(a.resources.network for a in agents),
                "energy": pct(a.resources.energy for a in agents),
            },
        }
