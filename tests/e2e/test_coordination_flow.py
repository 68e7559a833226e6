"""
E2E Integration Test for the Coordination System
Tests complete flow: register → admit → form → coordinate → exchange → share → complete
with the bus drain loop and periodic tasks running for real.
"""
import asyncio

import pytest

from agentmesh.agents.models import Resources
from agentmesh.collaboration.models import CollaborationMessage
from agentmesh.core.config import get_settings
from agentmesh.core.types import (
    ActionStatus,
    AgentStatus,
    CollaborationStatus,
    MessageType,
)
from agentmesh.system import CoordinationSystem


async def eventually(predicate, timeout=3.0, delay=0.01):
    """Poll ``predicate`` until it holds or ``timeout`` elapses."""
    loop = asyncio.get_running_loop()
    deadline = loop.time() + timeout
    while loop.time() < deadline:
        if predicate():
            return True
        await asyncio.sleep(delay)
    return predicate()


class BlockingExecutor:
    """Never answers; used to leave actions pending."""

    async def execute(self, request, collaboration):
        await asyncio.Event().wait()


@pytest.fixture
def quiet_settings():
    return get_settings(
        ENVIRONMENT="testing",
        SEED_DEFAULT_AGENTS=False,
        MESSAGE_TICK_S=0.01,
        HEALTH_MONITORING=False,
        PERFORMANCE_OPTIMIZATION=False,
    )


@pytest.fixture
def trio(make_agent):
    return [make_agent(agent_id) for agent_id in ("A", "B", "C")]


@pytest.mark.asyncio
async def test_full_collaboration_lifecycle(quiet_settings, trio, immediate_executor):
    """Agents form a collaboration, exchange work and share knowledge until completion."""
    system = CoordinationSystem(quiet_settings, executor=immediate_executor)
    for agent in trio:
        system.registry.register(agent)

    async with system:
        assert system.running
        assert system.assign("A", 0.5)

        collab = await system.collaborations.create(
            "incident", "triage outage", "collective-intelligence", ["A", "B", "C", "ghost"]
        )
        cid = collab.id
        assert collab.participants == ("A", "B", "C")

        def status():
            return system.get_collaboration(cid).status

        assert await eventually(lambda: status() == CollaborationStatus.COORDINATING)

        for pid in ("A", "B", "C"):
            await system.collaborations.send(cid, CollaborationMessage(
                from_agent=pid, type=MessageType.STATUS, payload={"status": "ready"}
            ))
        assert await eventually(lambda: status() == CollaborationStatus.ACTIVE)

        for n, requester in enumerate(("A", "C", "A"), start=1):
            await system.collaborations.send(cid, CollaborationMessage(
                from_agent=requester, to_agent="B", type=MessageType.REQUEST,
                payload={"step": n},
            ))
            assert await eventually(lambda n=n: sum(
                1 for m in system.get_collaboration(cid).messages
                if m.type == MessageType.RESPONSE
            ) == n)

        await system.collaborations.send(cid, CollaborationMessage(
            from_agent="C", type=MessageType.INFORMATION,
            payload={"shareable": True, "tags": ["root-cause"], "finding": "disk full"},
        ))
        assert await eventually(lambda: len(system.get_collaboration(cid).knowledge) == 1)

        snapshot = system.get_collaboration(cid)
        assert snapshot.profiles["A"].trust("B") == pytest.approx(0.6)
        assert snapshot.profiles["C"].trust("B") == pytest.approx(0.55)
        assert all(a.status == ActionStatus.COMPLETED for a in snapshot.actions.values())
        assert snapshot.metrics.synergy == 1.0
        assert {"enhanced-reasoning", "cross-domain-insights", "collective-intelligence"} <= set(
            snapshot.emergent_properties
        )
        assert [e.tags for e in system.collaborations.query_knowledge(tag="root-cause")] == [
            ("root-cause",)
        ]

        assert system.complete("A", success=True, processing_time=800.0)
        agent = system.get_agent("A")
        assert (agent.tasks.active, agent.tasks.completed) == (0, 1)

        done = await system.collaborations.complete(cid)
        assert done.status == CollaborationStatus.COMPLETED
        assert done.actual_duration is not None

        stats = system.get_collaboration_stats()
        assert stats["by_status"]["completed"] == 1
        assert stats["total_knowledge"] == 1

    assert not system.running
    assert system.get_status()["uptime_s"] == 0.0


@pytest.mark.asyncio
async def test_stop_cancels_outstanding_actions(quiet_settings, trio):
    """Shutting the system down cancels responses that are still being produced."""
    system = CoordinationSystem(quiet_settings, executor=BlockingExecutor())
    for agent in trio:
        system.registry.register(agent)

    await system.start()
    collab = await system.collaborations.create("stuck", "", "task-sharing", ["A", "B"])
    await system.collaborations.send(collab.id, CollaborationMessage(
        from_agent="A", to_agent="B", type=MessageType.REQUEST, payload={}
    ))
    assert await eventually(lambda: system.bus.action_count == 1)
    assert system.get_status()["pending_actions"] == 1

    await system.stop()

    (action,) = system.get_collaboration(collab.id).actions.values()
    assert action.status == ActionStatus.CANCELLED
    assert system.bus.action_count == 0


@pytest.mark.asyncio
async def test_health_loop_moves_strained_agent_to_maintenance(make_agent):
    """The periodic health sweep puts an unhealthy agent into maintenance."""
    settings = get_settings(
        ENVIRONMENT="testing",
        SEED_DEFAULT_AGENTS=False,
        MESSAGE_TICK_S=0.01,
        HEALTH_CHECK_INTERVAL_S=0.01,
        PERFORMANCE_OPTIMIZATION=False,
    )
    strained = make_agent("strained")
    strained.resources = Resources(cpu=0.9, memory=0.9, energy=0.9)
    strained.state.energy = 0.5
    strained.state.focus = 0.5
    strained.state.motivation = 0.5
    healthy = make_agent("healthy")

    async with CoordinationSystem(settings) as system:
        system.registry.register(strained)
        system.registry.register(healthy)
        assert await eventually(
            lambda: system.get_agent("strained").state.status == AgentStatus.MAINTENANCE
        )
        assert system.get_agent("healthy").state.status == AgentStatus.ACTIVE
        assert system.get_status()["periodic_tasks"]["health_check"]["iterations"] >= 1
