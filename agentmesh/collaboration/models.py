"""
Collaboration Data Model
========================

Collaborations, their messages, per-participant profiles, metrics and the
records of scheduled asynchronous actions.

Messages and knowledge entries are immutable once appended.
"""

from __future__ import annotations

import copy
import time
import uuid
from dataclasses import asdict, dataclass, field
from typing import Any

from agentmesh.collaboration.knowledge import KnowledgeStore
from agentmesh.collaboration.tasks import CollaborationTask
from agentmesh.core.types import (
    ActionStatus,
    CollaborationStatus,
    CollaborationStyle,
    CollaborationType,
    CommunicationPreference,
    MessagePriority,
    MessageType,
)

NEUTRAL_METRIC = 0.5

def new_id(prefix: str) -> str:
    return f"{prefix}-{uuid.uuid4().hex[:12]}"

@dataclass(frozen=True)
class CollaborationMessage:
    """
    Typed message exchanged inside a collaboration.

    Immutable after creation. ``to_agent`` None means broadcast.
    ``id``, ``sequence`` and ``timestamp`` are stamped by the bus on send.
    """
    from_agent: str
    type: MessageType
    payload: dict[str, Any] = field(default_factory=dict)
    to_agent: str | None = None
    priority: MessagePriority = MessagePriority.MEDIUM
    response_to: str | None = None
    requires_response: bool = False
    id: str = ""
    sequence: int = 0
    timestamp: float = 0.0
    collaboration_id: str = ""

    @property
    def is_broadcast(self) -> bool:
        return self.to_agent is None

    def reply(self, payload: dict[str, Any],
              msg_type: MessageType = MessageType.RESPONSE) -> CollaborationMessage:
        """Create an unsent reply addressed back to this message's sender."""
        return CollaborationMessage(
            from_agent=self.to_agent or "",
            to_agent=self.from_agent,
            type=msg_type,
            payload=payload,
            priority=self.priority,
            response_to=self.id,
        )

    def to_dict(self) -> dict[str, Any]:
        return asdict(self)

@dataclass
class CollaborationHistory:
    total_collaborations: int = 0
    successful_collaborations: int = 0
    average_synergy: float = NEUTRAL_METRIC
    preferred_roles: list[str] = field(default_factory=list)

@dataclass
class CollaborationProfile:
    """Per agent, per collaboration. Trust/compatibility keyed by peer id."""
    agent_id: str
    style: CollaborationStyle
    communication_preference: CommunicationPreference
    expertise_areas: list[str] = field(default_factory=list)
    history: CollaborationHistory = field(default_factory=CollaborationHistory)
    trust_scores: dict[str, float] = field(default_factory=dict)
    compatibility_scores: dict[str, float] = field(default_factory=dict)

    def trust(self, peer_id: str, default: float = NEUTRAL_METRIC) -> float:
        return self.trust_scores.get(peer_id, default)

@dataclass
class CollaborationMetrics:
    synergy: float = NEUTRAL_METRIC
    efficiency: float = NEUTRAL_METRIC
    communication_quality: float = NEUTRAL_METRIC
    knowledge_integration: float = NEUTRAL_METRIC
    conflict_resolution: float = NEUTRAL_METRIC
    innovation_level: float = NEUTRAL_METRIC
    overall_performance: float = NEUTRAL_METRIC

@dataclass
class ActionRecord:
    """A scheduled asynchronous action, e.g. the pending response to a request."""
    id: str
    collaboration_id: str
    request_id: str
    agent_id: str
    status: ActionStatus = ActionStatus.PENDING
    created_at: float = field(default_factory=time.time)
    finished_at: float | None = None
    error: str | None = None
    response_id: str | None = None

    @property
    def done(self) -> bool:
        return self.status != ActionStatus.PENDING

@dataclass
class Collaboration:
    """A bounded group of agents cooperating through message exchange."""
    id: str
    name: str
    description: str
    type: CollaborationType
    participants: tuple[str, ...]
    status: CollaborationStatus = CollaborationStatus.FORMING
    messages: list[CollaborationMessage] = field(default_factory=list)
    knowledge: KnowledgeStore = field(default_factory=KnowledgeStore)
    profiles: dict[str, CollaborationProfile] = field(default_factory=dict)
    metrics: CollaborationMetrics = field(default_factory=CollaborationMetrics)
    emergent_properties: list[str] = field(default_factory=list)
    shared_context: dict[str, Any] = field(default_factory=dict)
    tasks: dict[str, CollaborationTask] = field(default_factory=dict)
    actions: dict[str, ActionRecord] = field(default_factory=dict)
    optimization_notes: list[str] = field(default_factory=list)
    created_at: float = field(default_factory=time.time)
    last_activity: float = field(default_factory=time.time)
    estimated_duration: float | None = None
    actual_duration: float | None = None

    @property
    def is_open(self) -> bool:
        """Open collaborations still accept messages."""
        return self.status not in (CollaborationStatus.DISSOLVING, CollaborationStatus.COMPLETED)

    def add_emergent(self, properties) -> list[str]:
        """Add properties not yet present. Returns the newly added ones."""
        added = [p for p in properties if p not in self.emergent_properties]
        self.emergent_properties.extend(added)
        return added

    def snapshot(self) -> Collaboration:
        return copy.deepcopy(self)

    def to_dict(self) -> dict[str, Any]:
        return {
            "id": self.id,
            "name": self.name,
            "description": self.description,
            "type": self.type.value,
            "participants": list(self.participants),
            "status": self.status.value,
            "messages": [m.to_dict() for m in self.messages],
            "shared_knowledge": [e.to_dict() for e in self.knowledge.entries()],
            "profiles": {k: asdict(v) for k, v in self.profiles.items()},
            "metrics": asdict(self.metrics),
            "emergent_properties": list(self.emergent_properties),
            "shared_context": self.shared_context,
            "tasks": {k: v.to_dict() for k, v in self.tasks.items()},
            "actions": {k: asdict(v) for k, v in self.actions.items()},
            "optimization_notes": list(self.optimization_notes),
            "created_at": self.created_at,
            "last_activity": self.last_activity,
            "estimated_duration": self.estimated_duration,
            "actual_duration": self.actual_duration,
        }
