"""
Telemetry Layer — Unified Observability
========================================

Provides:
  - Structured logging with coordination context (collaboration/agent/action ids)
  - Prometheus metrics for registry, admission, health and bus activity

Usage:
    from agentmesh.infra.telemetry import get_logger

    logger = get_logger(__name__)
    logger.info("collaboration_created", collaboration_id=collab.id)
"""

from agentmesh.infra.telemetry.logger import (
    StructuredLogger,
    get_logger,
    log_context,
    setup_logging,
)
from agentmesh.infra.telemetry.metrics import MetricsCollector

__all__ = [
    "MetricsCollector",
    "StructuredLogger",
    "get_logger",
    "log_context",
    "setup_logging",
]
