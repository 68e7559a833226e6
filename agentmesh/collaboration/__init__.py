"""
AgentMesh Collaboration Framework
=================================

Forms groups of registry agents, routes typed messages between them and
derives collective-behavior metrics from the message log.

Components:
- CollaborationManager: formation, lifecycle, handlers, queries
- MessageBus: single FIFO queue with per-type handlers and tracked actions
- KnowledgeStore: append-only shared knowledge ledger
- EmergencePolicy: thresholds for metric-derived emergent properties
- CapabilityExecutor: pluggable producer of request responses
"""

from .bus import MessageBus
from .executor import CapabilityExecutor, SimulatedCapabilityExecutor
from .knowledge import KnowledgeStore, SharedKnowledgeEntry
from .metrics import EmergencePolicy, compute_metrics, detect_emergent_properties
from .models import (
    ActionRecord,
    Collaboration,
    CollaborationMessage,
    CollaborationMetrics,
    CollaborationProfile,
)
from .profiles import build_profile
from .sessions import CollaborationManager
from .tasks import CollaborationTask, Subtask

__all__ = [
    "ActionRecord",
    "CapabilityExecutor",
    "Collaboration",
    "CollaborationManager",
    "CollaborationMessage",
    "CollaborationMetrics",
    "CollaborationProfile",
    "CollaborationTask",
    "EmergencePolicy",
    "KnowledgeStore",
    "MessageBus",
    "SharedKnowledgeEntry",
    "SimulatedCapabilityExecutor",
    "Subtask",
    "build_profile",
    "compute_metrics",
    "detect_emergent_properties",
]
