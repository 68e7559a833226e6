"""
Collaboration Metrics & Emergent Properties — Unit Tests
"""

import pytest

from agentmesh.collaboration.metrics import (
    COLLECTIVE_INTELLIGENCE,
    CROSS_DOMAIN_INSIGHTS,
    ENHANCED_REASONING,
    EmergencePolicy,
    average_response_ms,
    compute_metrics,
    detect_emergent_properties,
)
from agentmesh.collaboration.models import CollaborationMessage, CollaborationMetrics
from agentmesh.core.config import get_settings
from agentmesh.core.types import CollaborationType, MessageType

NOW = 1_000.0


def msg(msg_type, ts, msg_id="", response_to=None):
    return CollaborationMessage(
        from_agent="A", to_agent="B", type=msg_type, id=msg_id,
        timestamp=ts, response_to=response_to,
    )


class TestComputeMetrics:

    def test_synergy_counts_request_and_response(self):
        log = [msg(MessageType.REQUEST, NOW), msg(MessageType.RESPONSE, NOW),
               msg(MessageType.INFORMATION, NOW)]
        metrics = compute_metrics(log, participant_count=2, now=NOW)
        assert metrics.synergy == pytest.approx(0.5)

    def test_synergy_saturates_and_never_decreases(self):
        log = []
        previous = 0.0
        for i in range(12):
            log.append(msg(MessageType.REQUEST if i % 2 == 0 else MessageType.RESPONSE, NOW))
            synergy = compute_metrics(log, participant_count=2, now=NOW).synergy
            assert previous <= synergy <= 1.0
            previous = synergy
        assert previous == 1.0

    def test_communication_quality_uses_window(self):
        old = [msg(MessageType.INFORMATION, NOW - 400) for _ in range(10)]
        recent = [msg(MessageType.INFORMATION, NOW - 10) for _ in range(3)]
        metrics = compute_metrics(old + recent, participant_count=2, now=NOW)
        assert metrics.communication_quality == pytest.approx(0.3)

        busy = [msg(MessageType.STATUS, NOW) for _ in range(25)]
        assert compute_metrics(busy, 2, NOW).communication_quality == 1.0

    def test_efficiency_from_adjacent_pairs(self):
        log = [
            msg(MessageType.REQUEST, NOW, "r1"),
            msg(MessageType.RESPONSE, NOW + 1.0, response_to="r1"),
            msg(MessageType.REQUEST, NOW + 2.0, "r2"),
            msg(MessageType.RESPONSE, NOW + 5.0),
        ]
        assert average_response_ms(log) == pytest.approx(2000.0)
        metrics = compute_metrics(log, 2, NOW + 5.0)
        assert metrics.efficiency == pytest.approx(0.6)

    def test_mismatched_response_is_not_paired(self):
        log = [
            msg(MessageType.REQUEST, NOW, "r1"),
            msg(MessageType.RESPONSE, NOW + 1.0, response_to="other"),
        ]
        assert average_response_ms(log) is None

    def test_efficiency_unchanged_without_pairs(self):
        current = CollaborationMetrics(efficiency=0.42)
        log = [msg(MessageType.RESPONSE, NOW), msg(MessageType.REQUEST, NOW)]
        metrics = compute_metrics(log, 2, NOW, current)
        assert metrics.efficiency == 0.42
        assert current.synergy == 0.5

    def test_slow_responses_floor_at_zero(self):
        log = [msg(MessageType.REQUEST, NOW, "r1"),
               msg(MessageType.RESPONSE, NOW + 60, response_to="r1")]
        assert compute_metrics(log, 2, NOW + 60).efficiency == 0.0

    def test_overall_is_mean(self):
        log = [msg(MessageType.REQUEST, NOW, "r1"),
               msg(MessageType.RESPONSE, NOW, response_to="r1")]
        m = compute_metrics(log, 1, NOW)
        assert m.overall_performance == pytest.approx(
            (m.synergy + m.efficiency + m.communication_quality) / 3
        )


class TestEmergentProperties:

    def test_three_participants_crossing_thresholds(self):
        metrics = CollaborationMetrics(synergy=0.5, communication_quality=0.75, efficiency=0.85)
        found = detect_emergent_properties(CollaborationType.TASK_SHARING, 3, metrics)
        assert found == [CROSS_DOMAIN_INSIGHTS, COLLECTIVE_INTELLIGENCE]

    def test_two_participants_only_get_enhanced_reasoning(self):
        metrics = CollaborationMetrics(synergy=0.9, communication_quality=0.9, efficiency=0.9)
        found = detect_emergent_properties(CollaborationType.TASK_SHARING, 2, metrics)
        assert found == [ENHANCED_REASONING]

    def test_thresholds_are_strict(self):
        metrics = CollaborationMetrics(synergy=0.8, communication_quality=0.7, efficiency=0.8)
        assert detect_emergent_properties(CollaborationType.TASK_SHARING, 5, metrics) == []

    def test_quantum_tags(self):
        found = detect_emergent_properties(
            CollaborationType.QUANTUM_ENTANGLEMENT, 2, CollaborationMetrics()
        )
        assert found == ["quantum-coherence", "superposition-thinking"]

    def test_policy_from_settings(self):
        policy = EmergencePolicy.from_settings(get_settings(
            EMERGENT_MIN_PARTICIPANTS=2, EMERGENT_SYNERGY_THRESHOLD=0.4,
            QUANTUM_TAGS=("entangled",),
        ))
        metrics = CollaborationMetrics(synergy=0.5, communication_quality=0.75, efficiency=0.1)
        found = detect_emergent_properties(
            CollaborationType.QUANTUM_ENTANGLEMENT, 2, metrics, policy
        )
        assert found == [ENHANCED_REASONING, CROSS_DOMAIN_INSIGHTS, "entangled"]
