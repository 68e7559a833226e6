"""
Agent API Routes
================

Read-only views of the agent registry.

Endpoints:
- GET /agents              — All agents, optionally filtered by type
- GET /agents/available    — Agents able to accept work right now
- GET /agents/{agent_id}   — One agent snapshot
- GET /agents/{agent_id}/health — Latest health report
- GET /agents/{agent_id}/collaborations — Collaborations the agent is part of
"""

from fastapi import APIRouter, Depends

from agentmesh.agents.health import compute_health
from agentmesh.api.deps import get_system
from agentmesh.core.types import AgentType
from agentmesh.system import CoordinationSystem

from .collaborations import summarize

router = APIRouter(prefix="/agents", tags=["agents"])


@router.get("")
async def list_agents(
    type: AgentType | None = None,  # noqa: A002
    system: CoordinationSystem = Depends(get_system),
):
    agents = system.list_agents(type)
    return {"agents": [a.to_dict() for a in agents], "count": len(agents)}


@router.get("/available")
async def list_available_agents(system: CoordinationSystem = Depends(get_system)):
    agents = system.list_available_agents()
    return {"agents": [a.to_dict() for a in agents], "count": len(agents)}


@router.get("/{agent_id}")
async def get_agent(agent_id: str, system: CoordinationSystem = Depends(get_system)):
    return system.get_agent(agent_id).to_dict()


@router.get("/{agent_id}/health")
async def agent_health(agent_id: str, system: CoordinationSystem = Depends(get_system)):
    """Health recomputed from the current snapshot; does not trigger recovery."""
    return compute_health(system.get_agent(agent_id)).to_dict()


@router.get("/{agent_id}/collaborations")
async def agent_collaborations(agent_id: str, system: CoordinationSystem = Depends(get_system)):
    system.get_agent(agent_id)
    collaborations = system.get_collaborations_for_agent(agent_id)
    return {
        "collaborations": [summarize(c) for c in collaborations],
        "count": len(collaborations),
    }
