"""
Metrics Collector — Prometheus Exposition
==========================================

Metrics registry for the coordination subsystem. Each ``CoordinationSystem``
owns one ``MetricsCollector`` backed by its own ``CollectorRegistry`` so that
several systems (e.g. in tests) never collide on metric names.

Metric Naming Convention:
  - agentmesh_{component}_{metric}_{unit}
  - e.g., agentmesh_bus_message_latency_seconds
"""

from __future__ import annotations

import time
from collections.abc import Generator
from contextlib import contextmanager
from typing import Any

from prometheus_client import (
    CollectorRegistry,
    Counter,
    Gauge,
    Histogram,
    generate_latest,
)

from agentmesh.infra.telemetry.logger import get_logger

logger = get_logger(__name__)

class MetricsCollector:
    """
    Centralized metrics collection.

    Pre-defines all coordination metrics with proper labels.
    """

    def __init__(self, registry: CollectorRegistry | None = None) -> None:
        self.registry = registry or CollectorRegistry()

        # ── Registry / Admission ──
        self.agents_registered = Gauge(
            "agentmesh_registry_agents",
            "Number of registered agents",
            registry=self.registry,
        )
        self.admissions = Counter(
            "agentmesh_admission_decisions_total",
            "Task admission decisions",
            labelnames=["outcome"],
            registry=self.registry,
        )
        self.completions = Counter(
            "agentmesh_admission_completions_total",
            "Task completions reported back to agents",
            labelnames=["result"],
            registry=self.registry,
        )
        self.control_actions = Counter(
            "agentmesh_registry_control_actions_total",
            "Lifecycle control actions applied",
            labelnames=["action"],
            registry=self.registry,
        )

        # ── Health ──
        self.health_checks = Counter(
            "agentmesh_health_checks_total",
            "Health check sweeps executed",
            registry=self.registry,
        )
        self.maintenance_transitions = Counter(
            "agentmesh_health_maintenance_total",
            "Agents moved into maintenance by auto-recovery",
            registry=self.registry,
        )
        self.agent_health = Gauge(
            "agentmesh_health_agent_score",
            "Latest health score per agent (0-1)",
            labelnames=["agent"],
            registry=self.registry,
        )

        # ── Bus ──
        self.messages_sent = Counter(
            "agentmesh_bus_messages_sent_total",
            "Messages appended to collaboration logs",
            labelnames=["type"],
            registry=self.registry,
        )
        self.messages_processed = Counter(
            "agentmesh_bus_messages_processed_total",
            "Messages drained from the queue",
            labelnames=["type", "status"],
            registry=self.registry,
        )
        self.message_latency = Histogram(
            "agentmesh_bus_message_latency_seconds",
            "Handler latency per message",
            labelnames=["type"],
            buckets=(0.0005, 0.001, 0.005, 0.01, 0.05, 0.1, 0.5, 1.0, 5.0),
            registry=self.registry,
        )
        self.queue_depth = Gauge(
            "agentmesh_bus_queue_depth",
            "Messages waiting to be processed",
            registry=self.registry,
        )
        self.actions = Counter(
            "agentmesh_bus_actions_total",
            "Scheduled asynchronous actions by final status",
            labelnames=["status"],
            registry=self.registry,
        )

        # ── Collaboration ──
        self.collaborations = Gauge(
            "agentmesh_collaboration_count",
            "Collaborations by status",
            labelnames=["status"],
            registry=self.registry,
        )
        self.emergent_properties = Counter(
            "agentmesh_collaboration_emergent_properties_total",
            "Emergent properties detected",
            labelnames=["property"],
            registry=self.registry,
        )
        self.periodic_failures = Counter(
            "agentmesh_scheduler_iteration_failures_total",
            "Periodic callback iterations that raised",
            labelnames=["task"],
            registry=self.registry,
        )

    # ── Recording Methods ──────────────────────────────────────────

    def record_admission(self, admitted: bool, reason: str = "ok") -> None:
        self.admissions.labels(outcome="admitted" if admitted else reason).inc()

    def record_completion(self, success: bool) -> None:
        self.completions.labels(result="success" if success else "failure").inc()

    @contextmanager
    def track_message(self, msg_type: str) -> Generator[dict[str, Any], None, None]:
        """Context manager timing a handler and counting its outcome."""
        meta: dict[str, Any] = {"start": time.monotonic(), "status": "ok"}
        try:
            yield meta
        except Exception:
            meta["status"] = "error"
            raise
        finally:
            self.message_latency.labels(type=msg_type).observe(
                time.monotonic() - meta["start"]
            )
            self.messages_processed.labels(type=msg_type, status=meta["status"]).inc()

    def record_collaboration_counts(self, counts: dict[str, int]) -> None:
        for status, count in counts.items():
            self.collaborations.labels(status=status).set(count)

    def export_prometheus(self) -> bytes:
        """Export metrics in Prometheus text format."""
        return generate_latest(self.registry)
