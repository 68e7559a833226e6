"""
Canonical Type Definitions
===========================

Single source of truth for shared enums used across the coordination
subsystem. Dataclasses live in their domain modules but use these enums.

This module defines:
- AgentType / AgentStatus / ControlAction: agent identity and lifecycle
- CollaborationType / CollaborationStatus: collaboration lifecycle
- MessageType / MessagePriority: bus message classification
- CollaborationStyle / CommunicationPreference / CollaborationRole: profiles
- KnowledgeType / AccessLevel: shared knowledge ledger
- ActionStatus: outcome of scheduled asynchronous actions
"""

from enum import StrEnum
from typing import TypeVar

from agentmesh.core.exceptions import ValidationError

__all__ = [
    "AccessLevel",
    "ActionStatus",
    "AgentStatus",
    "AgentType",
    "CollaborationRole",
    "CollaborationStatus",
    "CollaborationStyle",
    "CollaborationType",
    "CommunicationPreference",
    "ControlAction",
    "KnowledgeType",
    "MessagePriority",
    "MessageType",
    "SecurityLevel",
    "SubtaskStatus",
    "TaskStatus",
    "parse_enum",
]

SYSTEM_SENDER = "system"


class AgentType(StrEnum):
    """Kinds of agents the registry knows about."""

    PRIMARY = "primary"
    SPECIALIST = "specialist"
    COLLABORATIVE = "collaborative"
    QUANTUM_ENHANCED = "quantum-enhanced"
    LEARNING = "learning"


class AgentStatus(StrEnum):
    """Agent lifecycle states."""

    ACTIVE = "active"
    IDLE = "idle"
    LEARNING = "learning"
    COLLABORATING = "collaborating"
    PROCESSING = "processing"
    ERROR = "error"
    MAINTENANCE = "maintenance"


class ControlAction(StrEnum):
    START = "start"
    PAUSE = "pause"
    RESTART = "restart"


class SecurityLevel(StrEnum):
    LOW = "low"
    MEDIUM = "medium"
    HIGH = "high"
    CRITICAL = "critical"


class CollaborationType(StrEnum):
    TASK_SHARING = "task-sharing"
    KNOWLEDGE_EXCHANGE = "knowledge-exchange"
    COLLECTIVE_INTELLIGENCE = "collective-intelligence"
    QUANTUM_ENTANGLEMENT = "quantum-entanglement"


class CollaborationStatus(StrEnum):
    """Collaboration lifecycle. COMPLETED is terminal."""

    FORMING = "forming"
    COORDINATING = "coordinating"
    ACTIVE = "active"
    DISSOLVING = "dissolving"
    COMPLETED = "completed"


class MessageType(StrEnum):
    """Message types exchanged inside a collaboration."""

    REQUEST = "request"
    RESPONSE = "response"
    INFORMATION = "information"
    COORDINATION = "coordination"
    STATUS = "status"


class MessagePriority(StrEnum):
    LOW = "low"
    MEDIUM = "medium"
    HIGH = "high"
    CRITICAL = "critical"


class CollaborationStyle(StrEnum):
    LEADER = "leader"
    CONTRIBUTOR = "contributor"
    FACILITATOR = "facilitator"
    SPECIALIST = "specialist"
    INTEGRATOR = "integrator"


class CommunicationPreference(StrEnum):
    DIRECT = "direct"
    STRUCTURED = "structured"
    CREATIVE = "creative"
    ANALYTICAL = "analytical"


class CollaborationRole(StrEnum):
    """Role an invited participant plays, derived from its style."""

    COORDINATOR = "coordinator"
    FACILITATOR = "facilitator"
    EXPERT = "expert"
    INTEGRATOR = "integrator"
    CONTRIBUTOR = "contributor"


class KnowledgeType(StrEnum):
    INSIGHT = "insight"
    PATTERN = "pattern"
    SOLUTION = "solution"
    DATA = "data"
    EXPERIENCE = "experience"


class AccessLevel(StrEnum):
    PUBLIC = "public"
    RESTRICTED = "restricted"
    PRIVATE = "private"


class ActionStatus(StrEnum):
    """Outcome of a scheduled asynchronous action (e.g. a pending response)."""

    PENDING = "pending"
    COMPLETED = "completed"
    FAILED = "failed"
    CANCELLED = "cancelled"


class TaskStatus(StrEnum):
    FORMING = "forming"
    COORDINATING = "coordinating"
    EXECUTING = "executing"
    SYNTHESIZING = "synthesizing"
    COMPLETED = "completed"
    FAILED = "failed"


class SubtaskStatus(StrEnum):
    PENDING = "pending"
    ASSIGNED = "assigned"
    IN_PROGRESS = "in-progress"
    COMPLETED = "completed"
    FAILED = "failed"

E = TypeVar("E", bound=StrEnum)

def parse_enum(enum_cls: type[E], value: E | str, label: str) -> E:
    """Convert ``value`` to ``enum_cls``; unknown values raise ValidationError."""
    try:
        return enum_cls(value)
    except ValueError:
        allowed = ", ".join(m.value for m in enum_cls)
        raise ValidationError(f"Unknown {label} {value!r} (expected one of: {allowed})") from None
