"""
Admission Control (Task Assignment Engine)
==========================================

Decides whether an agent may accept a unit of work and books the result
back when the work finishes.

The check and the mutation happen under the same agent lock, so a refusal
never leaves a partial update behind.
"""

from __future__ import annotations

import time
from collections.abc import Callable

from agentmesh.agents.models import Agent, clamp
from agentmesh.agents.registry import AgentRegistry
from agentmesh.core.exceptions import AgentNotFoundError, CapacityError, ValidationError
from agentmesh.infra.telemetry import MetricsCollector, get_logger

logger = get_logger(__name__)

# load + complexity above this is refused
ADMISSION_LOAD_CEILING = 0.9
LOAD_PER_COMPLEXITY = 0.3
FOCUS_COST_PER_COMPLEXITY = 0.1
MIN_FOCUS = 0.1
COMPLETION_LOAD_RELIEF = 0.2

class AdmissionController:
    """Assigns and completes tasks against individual registry agents."""

    def __init__(
        self,
        registry: AgentRegistry,
        *,
        metrics: MetricsCollector | None = None,
        clock: Callable[[], float] = time.time,
    ) -> None:
        self._registry = registry
        self._metrics = metrics
        self._clock = clock

    def admit(self, agent_id: str, complexity: float = 0.5) -> Agent:
        """Assign a task or raise.

        Raises:
            ValidationError: complexity outside [0, 1]
            AgentNotFoundError: unknown agent
            CapacityError: concurrency limit reached or cognitive load too high
        """
        if not 0.0 <= complexity <= 1.0:
            raise ValidationError(f"Task complexity must be within [0, 1], got {complexity}")

        with self._registry.locked(agent_id) as agent:
            if agent.tasks.active >= agent.config.max_concurrent_tasks:
                raise CapacityError(
                    f"Agent {agent_id} is at its concurrency limit "
                    f"({agent.config.max_concurrent_tasks})",
                    resource_id=agent_id,
                )
            if agent.state.cognitive_load + complexity > ADMISSION_LOAD_CEILING:
                raise CapacityError(
                    f"Agent {agent_id} lacks cognitive capacity "
                    f"(load={agent.state.cognitive_load:.2f}, complexity={complexity:.2f})",
                    resource_id=agent_id,
                )

            agent.tasks.active += 1
            agent.state.cognitive_load = clamp(
                agent.state.cognitive_load + complexity * LOAD_PER_COMPLEXITY
            )
            agent.state.focus = clamp(
                max(MIN_FOCUS, agent.state.focus - complexity * FOCUS_COST_PER_COMPLEXITY)
            )
            agent.metadata.total_operations += 1
            agent.touch(self._clock())
            return agent.snapshot()

    def assign(self, agent_id: str, complexity: float = 0.5) -> bool:
        """Try to assign a task. Returns False instead of raising on refusal."""
        try:
            self.admit(agent_id, complexity)
        except AgentNotFoundError:
            self._record(False, "not_found")
            logger.warning("assignment_refused", agent_id=agent_id, reason="not_found")
            return False
        except CapacityError as exc:
            self._record(False, "capacity")
            logger.info("assignment_refused", agent_id=agent_id, reason=exc.detail)
            return False
        except ValidationError as exc:
            self._record(False, "invalid")
            logger.warning("assignment_refused", agent_id=agent_id, reason=exc.detail)
            return False
        self._record(True)
        logger.debug("task_assigned", agent_id=agent_id, complexity=complexity)
        return True

    def complete(self, agent_id: str, success: bool = True, processing_time: float = 1000.0) -> bool:
        """Book a finished task. No-op (False) when the agent has nothing active."""
        if processing_time < 0:
            raise ValidationError("processing_time must be non-negative")
        try:
            with self._registry.locked(agent_id) as agent:
                tasks, state = agent.tasks, agent.state
                if tasks.active == 0:
                    return False

                tasks.active -= 1
                if success:
                    tasks.completed += 1
                    state.motivation = clamp(state.motivation + 0.05)
                    state.focus = clamp(state.focus + 0.02)
                else:
                    tasks.failed += 1
                    state.motivation = clamp(state.motivation - 0.1)

                tasks.total_processing_time += processing_time
                tasks.avg_processing_time = (
                    tasks.total_processing_time / tasks.completed if tasks.completed else 0.0
                )
                finished = tasks.completed + tasks.failed
                tasks.success_rate = tasks.completed / finished if finished else 0.0
                state.cognitive_load = clamp(state.cognitive_load - COMPLETION_LOAD_RELIEF)
                agent.touch(self._clock())
        except AgentNotFoundError:
            logger.warning("completion_ignored", agent_id=agent_id, reason="not_found")
            return False

        if self._metrics:
            self._metrics.record_completion(success)
        logger.debug("task_completed", agent_id=agent_id, success=success,
                     processing_time=processing_time)
        return True

    def _record(self, admitted: bool, reason: str = "ok") -> None:
        if self._metrics:
            self._metrics.record_admission(admitted, reason)
