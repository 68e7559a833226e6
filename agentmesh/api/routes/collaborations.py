"""
Collaboration API Routes
========================

Read-only views of collaborations and their shared knowledge.

Endpoints:
- GET /collaborations                    — Summaries, optionally filtered by status
- GET /collaborations/{id}               — Full snapshot incl. message log
- GET /collaborations/{id}/messages      — Message log, optionally after a sequence
- GET /collaborations/{id}/knowledge     — Knowledge ledger of one collaboration
- GET /knowledge                         — Knowledge across all collaborations
"""

from dataclasses import asdict
from typing import Any

from fastapi import APIRouter, Depends, Query

from agentmesh.api.deps import get_system
from agentmesh.collaboration.knowledge import filter_entries
from agentmesh.collaboration.models import Collaboration
from agentmesh.core.types import AccessLevel, CollaborationStatus, KnowledgeType
from agentmesh.system import CoordinationSystem

router = APIRouter(tags=["collaborations"])


def summarize(collaboration: Collaboration) -> dict[str, Any]:
    """Compact view without message and knowledge payloads."""
    return {
        "id": collaboration.id,
        "name": collaboration.name,
        "type": collaboration.type.value,
        "status": collaboration.status.value,
        "participants": list(collaboration.participants),
        "metrics": asdict(collaboration.metrics),
        "emergent_properties": list(collaboration.emergent_properties),
        "message_count": len(collaboration.messages),
        "knowledge_count": len(collaboration.knowledge),
        "last_activity": collaboration.last_activity,
    }


@router.get("/collaborations")
async def list_collaborations(
    status: CollaborationStatus | None = None,
    system: CoordinationSystem = Depends(get_system),
):
    if status is not None:
        collaborations = system.get_collaborations_by_status(status)
    else:
        collaborations = system.list_collaborations()
    return {
        "collaborations": [summarize(c) for c in collaborations],
        "count": len(collaborations),
    }


@router.get("/collaborations/{collaboration_id}")
async def get_collaboration(
    collaboration_id: str, system: CoordinationSystem = Depends(get_system)
):
    return system.get_collaboration(collaboration_id).to_dict()


@router.get("/collaborations/{collaboration_id}/messages")
async def collaboration_messages(
    collaboration_id: str,
    after: int = Query(0, ge=0, description="Only messages with a higher sequence"),
    system: CoordinationSystem = Depends(get_system),
):
    messages = [
        m.to_dict() for m in system.get_collaboration(collaboration_id).messages
        if m.sequence > after
    ]
    return {"messages": messages, "count": len(messages)}


@router.get("/collaborations/{collaboration_id}/knowledge")
async def collaboration_knowledge(
    collaboration_id: str,
    tag: str | None = None,
    access_level: AccessLevel | None = None,
    agent_id: str | None = None,
    knowledge_type: KnowledgeType | None = None,
    system: CoordinationSystem = Depends(get_system),
):
    entries = filter_entries(
        system.get_collaboration(collaboration_id).knowledge.entries(),
        tag=tag,
        access_level=access_level,
        agent_id=agent_id,
        knowledge_type=knowledge_type,
    )
    result = [e.to_dict() for e in entries]
    return {"knowledge": result, "count": len(result)}


@router.get("/knowledge")
async def query_knowledge(
    tag: str | None = None,
    access_level: AccessLevel | None = None,
    agent_id: str | None = None,
    knowledge_type: KnowledgeType | None = None,
    system: CoordinationSystem = Depends(get_system),
):
    entries = system.collaborations.query_knowledge(
        tag=tag, access_level=access_level, agent_id=agent_id, knowledge_type=knowledge_type
    )
    return {"knowledge": [e.to_dict() for e in entries], "count": len(entries)}
