"""
AgentMesh Agent Layer
=====================

Agent model, registry/lifecycle, admission control and health monitoring.

Components:
- AgentRegistry: owns agents, lifecycle control, system metrics
- AdmissionController: assign/complete tasks against individual agents
- HealthMonitor: periodic health recomputation with auto-recovery
- PerformanceOptimizer: slow sweep adjusting efficiency/focus/learning
- MetricsSource: pluggable resource telemetry (static or psutil-backed)
"""

from .admission import AdmissionController
from .health import HealthMonitor, HealthReport, PerformanceOptimizer, compute_health
from .models import (
    Agent,
    AgentConfig,
    AgentMetadata,
    AgentState,
    Capability,
    Intelligence,
    Performance,
    Resources,
    TaskStats,
)
from .registry import AgentRegistry
from .sources import HostMetricsSource, MetricsSource, StaticMetricsSource

__all__ = [
    "AdmissionController",
    "Agent",
    "AgentConfig",
    "AgentMetadata",
    "AgentRegistry",
    "AgentState",
    "Capability",
    "HealthMonitor",
    "HealthReport",
    "HostMetricsSource",
    "Intelligence",
    "MetricsSource",
    "Performance",
    "PerformanceOptimizer",
    "Resources",
    "StaticMetricsSource",
    "TaskStats",
    "compute_health",
]
