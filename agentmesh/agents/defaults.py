"""Seed agents registered when SEED_DEFAULT_AGENTS is enabled."""

import time

from agentmesh.agents.models import (
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
from agentmesh.core.types import AgentStatus, AgentType, SecurityLevel

DAY_S = 86_400

def _capabilities(now: float, *specs: tuple[str, float, float, float]) -> list[Capability]:
    return [
        Capability(name=name, expertise=expertise, experience_years=years,
                   success_rate=success, last_used=now)
        for name, expertise, years, success in specs
    ]

def primary_orchestrator(now: float | None = None) -> Agent:
    now = now if now is not None else time.time()
    return Agent(
        id="glm-45-primary",
        name="GLM-4.5 Primary Orchestrator",
        type=AgentType.PRIMARY,
        version="4.5.0",
        capabilities=_capabilities(
            now,
            ("natural-language-processing", 0.95, 3, 0.98),
            ("reasoning", 0.92, 3, 0.96),
            ("orchestration", 0.90, 2, 0.94),
            ("analysis", 0.88, 3, 0.92),
        ),
        performance=Performance(
            accuracy=0.95, efficiency=0.92, response_time=45, success_rate=0.98,
            cognitive_load=0.65, throughput=125, error_rate=0.02, availability=0.99,
        ),
        resources=Resources(cpu=0.45, memory=0.38, network=0.22, energy=0.78,
                            storage=0.15, bandwidth=0.30),
        intelligence=Intelligence(
            overall_iq=145, emotional_intelligence=0.88, creativity=0.92,
            problem_solving=0.95, adaptability=0.90, collaboration=0.87,
            learning_speed=0.85, innovation=0.89,
        ),
        tasks=TaskStats(completed=1247, active=3, failed=12, avg_processing_time=1200,
                        total_processing_time=1_514_400, success_rate=0.99),
        state=AgentState(status=AgentStatus.ACTIVE, cognitive_load=0.65, energy=0.78,
                         focus=0.85, motivation=0.90, last_activity=now, uptime=DAY_S,
                         health_score=0.95),
        config=AgentConfig(max_concurrent_tasks=5, security_level=SecurityLevel.HIGH),
        metadata=AgentMetadata(created_at=now - DAY_S, last_updated=now,
                               total_operations=1262, model_type="GLM-4.5", provider="Z.AI"),
    )

def analytics_specialist(now: float | None = None) -> Agent:
    now = now if now is not None else time.time()
    return Agent(
        id="gemini-specialist",
        name="Gemini Analytics Specialist",
        type=AgentType.SPECIALIST,
        version="1.5.0",
        capabilities=_capabilities(
            now,
            ("data-analysis", 0.91, 4, 0.96),
            ("pattern-recognition", 0.89, 4, 0.94),
            ("insight-generation", 0.87, 3, 0.92),
            ("reporting", 0.85, 3, 0.90),
        ),
        performance=Performance(
            accuracy=0.91, efficiency=0.89, response_time=38, success_rate=0.96,
            cognitive_load=0.58, throughput=98, error_rate=0.04, availability=0.97,
        ),
        resources=Resources(cpu=0.32, memory=0.41, network=0.18, energy=0.82,
                            storage=0.25, bandwidth=0.22),
        intelligence=Intelligence(
            overall_iq=138, emotional_intelligence=0.82, creativity=0.85,
            problem_solving=0.91, adaptability=0.88, collaboration=0.84,
            learning_speed=0.87, innovation=0.83,
        ),
        tasks=TaskStats(completed=892, active=2, failed=8, avg_processing_time=950,
                        total_processing_time=852_600, success_rate=0.99),
        state=AgentState(status=AgentStatus.ACTIVE, cognitive_load=0.58, energy=0.82,
                         focus=0.80, motivation=0.85, last_activity=now, uptime=DAY_S,
                         health_score=0.92),
        config=AgentConfig(max_concurrent_tasks=3, security_level=SecurityLevel.MEDIUM),
        metadata=AgentMetadata(created_at=now - DAY_S, last_updated=now,
                               total_operations=902, model_type="Gemini", provider="Google"),
    )

def default_agents(now: float | None = None) -> list[Agent]:
    return [primary_orchestrator(now), analytics_specialist(now)]
