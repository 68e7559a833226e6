"""
Collaboration Profiles
======================

Deterministic derivation of an agent's collaboration style, communication
preference and invitation role from its Intelligence profile.
"""

from agentmesh.agents.models import Agent
from agentmesh.collaboration.models import CollaborationProfile
from agentmesh.core.types import (
    AgentType,
    CollaborationRole,
    CollaborationStyle,
    CommunicationPreference,
)

_ROLE_BY_STYLE = {
    CollaborationStyle.LEADER: CollaborationRole.COORDINATOR,
    CollaborationStyle.FACILITATOR: CollaborationRole.FACILITATOR,
    CollaborationStyle.SPECIALIST: CollaborationRole.EXPERT,
    CollaborationStyle.INTEGRATOR: CollaborationRole.INTEGRATOR,
}

def determine_style(agent: Agent) -> CollaborationStyle:
    iq = agent.intelligence
    if iq.collaboration > 0.9 and iq.problem_solving > 0.9:
        return CollaborationStyle.LEADER
    if iq.emotional_intelligence > 0.85:
        return CollaborationStyle.FACILITATOR
    if agent.type == AgentType.SPECIALIST:
        return CollaborationStyle.SPECIALIST
    if iq.creativity > 0.85:
        return CollaborationStyle.CONTRIBUTOR
    return CollaborationStyle.INTEGRATOR

def determine_communication_preference(agent: Agent) -> CommunicationPreference:
    iq = agent.intelligence
    if iq.problem_solving > iq.creativity:
        return CommunicationPreference.ANALYTICAL
    if iq.creativity > 0.85:
        return CommunicationPreference.CREATIVE
    if iq.emotional_intelligence > 0.85:
        return CommunicationPreference.DIRECT
    return CommunicationPreference.STRUCTURED

def role_for(profile: CollaborationProfile | None) -> CollaborationRole:
    """Invitation role; participants without a profile join as contributors."""
    if profile is None:
        return CollaborationRole.CONTRIBUTOR
    return _ROLE_BY_STYLE.get(profile.style, CollaborationRole.CONTRIBUTOR)

def build_profile(agent: Agent) -> CollaborationProfile:
    return CollaborationProfile(
        agent_id=agent.id,
        style=determine_style(agent),
        communication_preference=determine_communication_preference(agent),
        expertise_areas=agent.capability_names,
    )
