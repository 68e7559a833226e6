"""
Coordination System — Unit Tests
================================

Composition from settings, periodic task wiring and the facade operations.
"""

import pytest

from agentmesh.agents.sources import HostMetricsSource, StaticMetricsSource
from agentmesh.collaboration.executor import SimulatedCapabilityExecutor
from agentmesh.core.config import get_settings
from agentmesh.core.exceptions import AgentNotFoundError
from agentmesh.core.types import AgentStatus
from agentmesh.system import CoordinationSystem


class TestComposition:

    def test_seeds_default_agents(self):
        system = CoordinationSystem(get_settings(ENVIRONMENT="testing"))
        assert {a.id for a in system.list_agents()} == {"glm-45-primary", "gemini-specialist"}
        assert [a.id for a in system.list_agents("specialist")] == ["gemini-specialist"]
        assert system.get_system_metrics()["total_agents"] == 2

    def test_no_seed(self, test_settings):
        system = CoordinationSystem(test_settings)
        assert system.list_agents() == []
        assert system.get_collaboration_stats()["total_collaborations"] == 0

    def test_periodic_tasks_follow_flags(self, test_settings):
        names = [t.task_name for t in CoordinationSystem(test_settings).periodic_tasks]
        assert names == ["health_check", "agent_optimization", "collaboration_optimization"]

        quiet = get_settings(
            ENVIRONMENT="testing", SEED_DEFAULT_AGENTS=False,
            HEALTH_MONITORING=False, PERFORMANCE_OPTIMIZATION=False,
        )
        assert CoordinationSystem(quiet).periodic_tasks == []

    def test_metrics_source_selection(self, test_settings):
        assert isinstance(CoordinationSystem(test_settings).health.source, StaticMetricsSource)
        host = get_settings(ENVIRONMENT="testing", SEED_DEFAULT_AGENTS=False, METRICS_SOURCE="host")
        assert isinstance(CoordinationSystem(host).health.source, HostMetricsSource)

    def test_simulated_executor_uses_settings(self):
        settings = get_settings(
            ENVIRONMENT="testing", SEED_DEFAULT_AGENTS=False,
            SIMULATED_DELAY_MIN_S=0.1, SIMULATED_DELAY_MAX_S=0.2,
        )
        executor = CoordinationSystem(settings).collaborations.executor
        assert isinstance(executor, SimulatedCapabilityExecutor)
        assert (executor.min_delay_s, executor.max_delay_s) == (0.1, 0.2)

    def test_systems_do_not_share_metrics(self, test_settings):
        first = CoordinationSystem(test_settings)
        second = CoordinationSystem(test_settings)
        assert first.metrics.registry is not second.metrics.registry


class TestFacade:

    def test_admission_and_control(self, test_settings, make_agent):
        system = CoordinationSystem(test_settings, clock=lambda: 50.0)
        system.registry.register(make_agent("A"))

        assert system.assign("A", 0.4)
        assert system.complete("A", success=False)
        assert system.get_agent("A").tasks.failed == 1

        paused = system.control("A", "pause")
        assert paused.state.status == AgentStatus.IDLE
        assert system.list_available_agents() == []

        with pytest.raises(AgentNotFoundError):
            system.control("ghost", "start")

    @pytest.mark.asyncio
    async def test_start_stop(self, test_settings):
        system = CoordinationSystem(test_settings)
        assert system.get_status()["running"] is False

        await system.start()
        await system.start()
        status = system.get_status()
        assert status["running"] is True
        assert all(t["running"] for t in status["periodic_tasks"].values())

        await system.stop()
        assert not system.running
        assert not any(t.running for t in system.periodic_tasks)
