"""
Coordination System
===================

Composition root. Builds the registry, admission controller, health
monitor, message bus and collaboration manager from one ``Settings``
object, wires their metrics and owns every periodic activity.

Usage:
    async with CoordinationSystem(get_settings(ENVIRONMENT="testing")) as system:
        collab = await system.collaborations.create(
            "analysis", "quarterly review", "task-sharing",
            ["glm-45-primary", "gemini-specialist"],
        )

There is no module-level instance; the API layer and tests construct their own.
"""

from __future__ import annotations

import time
from collections.abc import Callable
from typing import Any

from agentmesh.agents.admission import AdmissionController
from agentmesh.agents.defaults import default_agents
from agentmesh.agents.health import HealthMonitor, PerformanceOptimizer
from agentmesh.agents.models import Agent
from agentmesh.agents.registry import AgentRegistry
from agentmesh.agents.sources import HostMetricsSource, MetricsSource, StaticMetricsSource
from agentmesh.collaboration.bus import MessageBus
from agentmesh.collaboration.executor import CapabilityExecutor, SimulatedCapabilityExecutor
from agentmesh.collaboration.metrics import EmergencePolicy
from agentmesh.collaboration.models import Collaboration
from agentmesh.collaboration.sessions import CollaborationManager
from agentmesh.core.config import Settings, get_settings
from agentmesh.core.types import AgentType, CollaborationStatus, ControlAction
from agentmesh.infra.scheduler import PeriodicTask
from agentmesh.infra.telemetry import MetricsCollector, get_logger

logger = get_logger(__name__)

class CoordinationSystem:
    """Owns the coordination services and their background tasks."""

    def __init__(
        self,
        settings: Settings | None = None,
        *,
        executor: CapabilityExecutor | None = None,
        source: MetricsSource | None = None,
        metrics: MetricsCollector | None = None,
        clock: Callable[[], float] = time.time,
    ) -> None:
        self.settings = settings or get_settings()
        self.metrics = metrics or MetricsCollector()
        self._clock = clock
        s = self.settings

        self.registry = AgentRegistry(max_agents=s.MAX_AGENTS, metrics=self.metrics, clock=clock)
        self.admission = AdmissionController(self.registry, metrics=self.metrics, clock=clock)
        self.health = HealthMonitor(
            self.registry,
            source=source or self._default_source(),
            metrics=self.metrics,
            clock=clock,
        )
        self.optimizer = PerformanceOptimizer(self.registry, clock=clock)
        self.bus = MessageBus(
            handler_timeout_s=s.HANDLER_TIMEOUT_S,
            tick_s=s.MESSAGE_TICK_S,
            metrics=self.metrics,
        )
        self.collaborations = CollaborationManager(
            self.registry,
            self.bus,
            executor=executor or SimulatedCapabilityExecutor(
                s.SIMULATED_DELAY_MIN_S, s.SIMULATED_DELAY_MAX_S
            ),
            policy=EmergencePolicy.from_settings(s),
            max_concurrent=s.MAX_CONCURRENT_COLLABORATIONS,
            knowledge_sharing=s.KNOWLEDGE_SHARING_ENABLED,
            emergent_detection=s.EMERGENT_PROPERTY_DETECTION,
            response_timeout_s=s.RESPONSE_TIMEOUT_S,
            metrics=self.metrics,
            clock=clock,
        )

        self._periodic: list[PeriodicTask] = []
        if s.HEALTH_MONITORING:
            self._periodic.append(PeriodicTask(
                "health_check", s.HEALTH_CHECK_INTERVAL_S, self.health.check_all,
                metrics=self.metrics,
            ))
        if s.PERFORMANCE_OPTIMIZATION:
            self._periodic.append(PeriodicTask(
                "agent_optimization", s.AGENT_OPTIMIZATION_INTERVAL_S,
                self.optimizer.optimize_all, metrics=self.metrics,
            ))
            self._periodic.append(PeriodicTask(
                "collaboration_optimization", s.COLLABORATION_OPTIMIZATION_INTERVAL_S,
                self.collaborations.optimize_collaborations, metrics=self.metrics,
            ))

        if s.SEED_DEFAULT_AGENTS:
            for agent in default_agents(clock()):
                self.registry.register(agent)

        self._started_at: float | None = None

    def _default_source(self) -> MetricsSource:
        if self.settings.METRICS_SOURCE == "host":
            return HostMetricsSource()
        return StaticMetricsSource()

    # ── Lifecycle ─────────────────────────────────────────────────

    @property
    def running(self) -> bool:
        return self.bus.running

    @property
    def periodic_tasks(self) -> list[PeriodicTask]:
        return list(self._periodic)

    async def start(self) -> None:
        """Start the bus drain loop and every periodic task."""
        if self.running:
            return
        self.bus.start()
        for task in self._periodic:
            task.start()
        self._started_at = self._clock()
        logger.info(
            "coordination_system_started",
            agents=len(self.registry),
            periodic=[t.task_name for t in self._periodic],
        )

    async def stop(self) -> None:
        """Cancel periodic tasks, outstanding actions and the bus loop."""
        for task in self._periodic:
            await task.stop()
        cancelled = await self.collaborations.shutdown()
        await self.bus.stop()
        self._started_at = None
        logger.info("coordination_system_stopped", cancelled_actions=cancelled)

    async def __aenter__(self) -> CoordinationSystem:
        await self.start()
        return self

    async def __aexit__(self, *exc_info: object) -> None:
        await self.stop()

    # ── Read-only snapshots ───────────────────────────────────────

    def get_agent(self, agent_id: str) -> Agent:
        return self.registry.get(agent_id)

    def list_agents(self, agent_type: AgentType | str | None = None) -> list[Agent]:
        if agent_type is not None:
            return self.registry.list_by_type(agent_type)
        return self.registry.list_agents()

    def list_available_agents(self) -> list[Agent]:
        return self.registry.list_available()

    def get_collaboration(self, collaboration_id: str) -> Collaboration:
        return self.collaborations.get_collaboration(collaboration_id)

    def list_collaborations(self) -> list[Collaboration]:
        return self.collaborations.list_collaborations()

    def get_collaborations_by_status(self, status: CollaborationStatus | str) -> list[Collaboration]:
        return self.collaborations.get_collaborations_by_status(status)

    def get_collaborations_for_agent(self, agent_id: str) -> list[Collaboration]:
        return self.collaborations.get_collaborations_for_agent(agent_id)

    def get_system_metrics(self) -> dict[str, Any]:
        return self.registry.get_system_metrics()

    def get_collaboration_stats(self) -> dict[str, Any]:
        return self.collaborations.get_collaboration_stats()

    def get_status(self) -> dict[str, Any]:
        """Service-level status for health endpoints."""
        now = self._clock()
        return {
            "running": self.running,
            "uptime_s": round(now - self._started_at, 1) if self._started_at else 0.0,
            "agents": len(self.registry),
            "queue_depth": self.bus.pending,
            "pending_actions": self.bus.action_count,
            "periodic_tasks": {
                t.task_name: {
                    "running": t.running,
                    "iterations": t.iterations,
                    "failures": t.failures,
                }
                for t in self._periodic
            },
        }

    # ── Operations for external routing layers ───────────────────

    def assign(self, agent_id: str, complexity: float = 0.5) -> bool:
        return self.admission.assign(agent_id, complexity)

    def complete(self, agent_id: str, success: bool = True, processing_time: float = 1000.0) -> bool:
        return self.admission.complete(agent_id, success, processing_time)

    def control(self, agent_id: str, action: ControlAction | str) -> Agent:
        return self.registry.control(agent_id, action)
