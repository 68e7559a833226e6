"""
Health & Performance Monitor
============================

Periodic recomputation of agent health with automatic partial recovery,
plus the slower performance-optimization sweep.

``compute_health`` is a pure function of an agent snapshot; the monitor
applies its verdict under the agent's lock.

Health score:
    performance = avg(accuracy, efficiency, success_rate)
    resource    = 1 - avg(cpu, memory, resources.energy)
    state       = avg(state.energy, focus, motivation)
    health      = avg(performance, resource, state)

Agents below MAINTENANCE_THRESHOLD are moved to maintenance, shed some load
and regain some energy. This is recovery, not failure.
"""

from __future__ import annotations

import contextlib
import time
from collections.abc import Callable
from dataclasses import dataclass
from typing import Any

from agentmesh.agents.models import (
    Agent,
    clamp,
    performance_score,
    resource_score,
    state_score,
)
from agentmesh.agents.registry import AgentRegistry
from agentmesh.agents.sources import MetricsSource, StaticMetricsSource
from agentmesh.core.exceptions import AgentNotFoundError
from agentmesh.core.types import AgentStatus
from agentmesh.infra.telemetry import MetricsCollector, get_logger

logger = get_logger(__name__)

MAINTENANCE_THRESHOLD = 0.5
RECOVERY_LOAD_RELIEF = 0.3
RECOVERY_ENERGY_BOOST = 0.2

@dataclass(frozen=True)
class HealthReport:
    """Result of a single health computation."""
    agent_id: str
    performance_score: float
    resource_score: float
    state_score: float
    health_score: float

    @property
    def needs_maintenance(self) -> bool:
        return self.health_score < MAINTENANCE_THRESHOLD

    def to_dict(self) -> dict[str, Any]:
        return {
            "agent_id": self.agent_id,
            "performance_score": round(self.performance_score, 4),
            "resource_score": round(self.resource_score, 4),
            "state_score": round(self.state_score, 4),
            "health_score": round(self.health_score, 4),
            "needs_maintenance": self.needs_maintenance,
        }

def compute_health(agent: Agent) -> HealthReport:
    """Pure health computation for one agent snapshot."""
    perf = performance_score(agent)
    res = resource_score(agent)
    st = state_score(agent)
    return HealthReport(
        agent_id=agent.id,
        performance_score=perf,
        resource_score=res,
        state_score=st,
        health_score=(perf + res + st) / 3,
    )

def apply_health(agent: Agent, report: HealthReport, now: float) -> bool:
    """Write a report back into a live agent. Returns True on maintenance transition."""
    agent.state.health_score = clamp(report.health_score)
    entered_maintenance = False
    if report.needs_maintenance:
        entered_maintenance = agent.state.status != AgentStatus.MAINTENANCE
        agent.state.status = AgentStatus.MAINTENANCE
        agent.state.cognitive_load = clamp(agent.state.cognitive_load - RECOVERY_LOAD_RELIEF)
        agent.state.energy = clamp(agent.state.energy + RECOVERY_ENERGY_BOOST)
    agent.metadata.last_updated = now
    return entered_maintenance

class HealthMonitor:
    """
    Sweeps every registered agent: refresh telemetry, recompute health,
    trigger auto-recovery. Scheduled by the composition root.
    """

    def __init__(
        self,
        registry: AgentRegistry,
        *,
        source: MetricsSource | None = None,
        metrics: MetricsCollector | None = None,
        clock: Callable[[], float] = time.time,
    ) -> None:
        self._registry = registry
        self._source = source or StaticMetricsSource()
        self._metrics = metrics
        self._clock = clock
        self.last_reports: dict[str, HealthReport] = {}

    @property
    def source(self) -> MetricsSource:
        return self._source

    def check_agent(self, agent_id: str) -> HealthReport:
        with self._registry.locked(agent_id) as agent:
            resources = self._source.sample(agent)
            if resources is not None:
                agent.resources = resources
                agent.normalize()
            report = compute_health(agent)
            entered = apply_health(agent, report, self._clock())

        self.last_reports[agent_id] = report
        if self._metrics:
            self._metrics.agent_health.labels(agent=agent_id).set(report.health_score)
            if entered:
                self._metrics.maintenance_transitions.inc()
        if entered:
            logger.warning("agent_entered_maintenance", agent_id=agent_id,
                           health_score=round(report.health_score, 3))
        return report

    def check_all(self) -> list[HealthReport]:
        """One health sweep. A failure on one agent does not skip the others."""
        try:
            self._source.refresh()
        except Exception as exc:
            logger.error("metrics_source_refresh_failed", exc=exc)
        reports = []
        for agent_id in self._registry.ids():
            try:
                reports.append(self.check_agent(agent_id))
            except AgentNotFoundError:
                continue  # unregistered mid-sweep
            except Exception as exc:
                logger.error("health_check_failed", exc=exc, agent_id=agent_id)
        if self._metrics:
            self._metrics.health_checks.inc()
        logger.debug("health_sweep_complete", agents=len(reports))
        return reports

class PerformanceOptimizer:
    """Slow sweep nudging efficiency, focus and learning traits of agents."""

    def __init__(self, registry: AgentRegistry, *, clock: Callable[[], float] = time.time) -> None:
        self._registry = registry
        self._clock = clock

    @staticmethod
    def optimize(agent: Agent) -> bool:
        """Apply one optimization step. Returns False if auto-optimization is off."""
        if not agent.config.auto_optimization:
            return False
        if agent.resources.cpu > 0.8:
            agent.performance.efficiency = max(0.5, agent.performance.efficiency - 0.05)
        if agent.state.cognitive_load > 0.7:
            agent.state.focus = max(0.3, agent.state.focus - 0.1)
        if agent.config.learning_enabled and agent.state.status == AgentStatus.IDLE:
            agent.intelligence.learning_speed = clamp(agent.intelligence.learning_speed + 0.01)
            agent.intelligence.adaptability = clamp(agent.intelligence.adaptability + 0.005)
        return True

    def optimize_all(self) -> int:
        optimized = 0
        for agent_id in self._registry.ids():
            with contextlib.suppress(AgentNotFoundError), self._registry.locked(agent_id) as agent:
                if self.optimize(agent):
                    agent.metadata.last_updated = self._clock()
                    optimized += 1
        logger.debug("agent_optimization_complete", optimized=optimized)
        return optimized
