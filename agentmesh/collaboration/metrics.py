"""
Collaboration Metrics & Emergent Properties
============================================

Derives synergy, efficiency and communication quality from a collaboration's
message log, and labels collaborations whose metrics cross policy thresholds.

Both computations are pure: they read a message log and a policy and return
new values. The session manager applies the results under the collaboration
lock after every processed message.
"""

from __future__ import annotations

from collections.abc import Sequence
from dataclasses import dataclass, replace

from agentmesh.collaboration.models import CollaborationMessage, CollaborationMetrics
from agentmesh.core.config import Settings
from agentmesh.core.types import CollaborationType, MessageType

ENHANCED_REASONING = "enhanced-reasoning"
CROSS_DOMAIN_INSIGHTS = "cross-domain-insights"
COLLECTIVE_INTELLIGENCE = "collective-intelligence"

@dataclass(frozen=True)
class EmergencePolicy:
    """Thresholds and tags for metric derivation and emergent-property labels."""

    communication_window_s: float = 300.0
    communication_saturation: int = 10
    response_time_budget_ms: float = 5000.0
    synergy_threshold: float = 0.8
    communication_threshold: float = 0.7
    efficiency_threshold: float = 0.8
    min_participants: int = 3
    quantum_tags: tuple[str, ...] = ("quantum-coherence", "superposition-thinking")

    @classmethod
    def from_settings(cls, settings: Settings) -> EmergencePolicy:
        return cls(
            communication_window_s=settings.COMMUNICATION_WINDOW_S,
            communication_saturation=settings.COMMUNICATION_SATURATION,
            response_time_budget_ms=settings.RESPONSE_TIME_BUDGET_MS,
            synergy_threshold=settings.EMERGENT_SYNERGY_THRESHOLD,
            communication_threshold=settings.EMERGENT_COMMUNICATION_THRESHOLD,
            efficiency_threshold=settings.EMERGENT_EFFICIENCY_THRESHOLD,
            min_participants=settings.EMERGENT_MIN_PARTICIPANTS,
            quantum_tags=tuple(settings.QUANTUM_TAGS),
        )

def average_response_ms(messages: Sequence[CollaborationMessage]) -> float | None:
    """
    Mean request→response delay over adjacent pairs in the log.

    A response only pairs with the request directly before it, and only when
    its ``response_to`` (if set) names that request. Returns None when the
    log holds no such pair.
    """
    deltas = []
    for prev, current in zip(messages, messages[1:]):
        if prev.type != MessageType.REQUEST or current.type != MessageType.RESPONSE:
            continue
        if current.response_to and current.response_to != prev.id:
            continue
        deltas.append(max(0.0, current.timestamp - prev.timestamp) * 1000.0)
    if not deltas:
        return None
    return sum(deltas) / len(deltas)

def compute_metrics(
    messages: Sequence[CollaborationMessage],
    participant_count: int,
    now: float,
    current: CollaborationMetrics | None = None,
    policy: EmergencePolicy | None = None,
) -> CollaborationMetrics:
    """Recompute derived metrics from the full message log."""
    policy = policy or EmergencePolicy()
    current = current or CollaborationMetrics()

    window_start = now - policy.communication_window_s
    recent = sum(1 for m in messages if m.timestamp >= window_start)
    communication_quality = min(1.0, recent / policy.communication_saturation)

    exchanges = sum(
        1 for m in messages if m.type in (MessageType.REQUEST, MessageType.RESPONSE)
    )
    synergy = min(1.0, exchanges / (max(participant_count, 1) * 2))

    avg_ms = average_response_ms(messages)
    if avg_ms is None:
        efficiency = current.efficiency
    else:
        efficiency = max(0.0, 1.0 - avg_ms / policy.response_time_budget_ms)

    overall = (synergy + efficiency + communication_quality) / 3
    return replace(
        current,
        synergy=synergy,
        efficiency=efficiency,
        communication_quality=communication_quality,
        overall_performance=overall,
    )

def detect_emergent_properties(
    collaboration_type: CollaborationType,
    participant_count: int,
    metrics: CollaborationMetrics,
    policy: EmergencePolicy | None = None,
) -> list[str]:
    """Labels the given metrics qualify for. Callers only ever add these."""
    policy = policy or EmergencePolicy()
    found = []
    if metrics.synergy > policy.synergy_threshold:
        found.append(ENHANCED_REASONING)
    if participant_count >= policy.min_participants:
        if metrics.communication_quality > policy.communication_threshold:
            found.append(CROSS_DOMAIN_INSIGHTS)
        if metrics.efficiency > policy.efficiency_threshold:
            found.append(COLLECTIVE_INTELLIGENCE)
    if collaboration_type == CollaborationType.QUANTUM_ENTANGLEMENT:
        found.extend(policy.quantum_tags)
    return found
