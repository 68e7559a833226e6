"""
Capability & Agent Model
========================

Static description of what an agent is plus its mutable runtime state.

All normalized fields live in [0, 1]. Mutations go through ``clamp`` so a
sequence of increments can never overflow the range. Agents are owned by the
registry; outside callers only ever see deep-copied snapshots.
"""

import copy
import time
from dataclasses import asdict, dataclass, field
from typing import Any

from agentmesh.core.types import AgentStatus, AgentType, SecurityLevel

def clamp(value: float, low: float = 0.0, high: float = 1.0) -> float:
    """Clamp ``value`` into [low, high]."""
    return max(low, min(high, value))

def _mean(*values: float) -> float:
    return sum(values) / len(values)

@dataclass
class Capability:
    name: str
    expertise: float = 0.5
    experience_years: float = 0.0
    success_rate: float = 0.5
    last_used: float = field(default_factory=time.time)

@dataclass
class Performance:
    accuracy: float = 0.5
    efficiency: float = 0.5
    response_time: float = 0.0  # milliseconds
    success_rate: float = 0.5
    cognitive_load: float = 0.0
    throughput: float = 0.0
    error_rate: float = 0.0
    availability: float = 1.0

@dataclass
class Resources:
    """Normalized resource usage, each in [0, 1]."""
    cpu: float = 0.0
    memory: float = 0.0
    network: float = 0.0
    energy: float = 0.0
    storage: float = 0.0
    bandwidth: float = 0.0

@dataclass
class Intelligence:
    overall_iq: float = 100.0
    emotional_intelligence: float = 0.5
    creativity: float = 0.5
    problem_solving: float = 0.5
    adaptability: float = 0.5
    collaboration: float = 0.5
    learning_speed: float = 0.5
    innovation: float = 0.5

@dataclass
class TaskStats:
    completed: int = 0
    active: int = 0
    failed: int = 0
    avg_processing_time: float = 0.0
    total_processing_time: float = 0.0
    success_rate: float = 0.0

@dataclass
class AgentState:
    status: AgentStatus = AgentStatus.IDLE
    cognitive_load: float = 0.0
    energy: float = 1.0
    focus: float = 1.0
    motivation: float = 1.0
    last_activity: float = field(default_factory=time.time)
    uptime: float = 0.0
    health_score: float = 1.0

@dataclass
class AgentConfig:
    max_concurrent_tasks: int = 1
    learning_enabled: bool = True
    auto_optimization: bool = True
    collaboration_enabled: bool = True
    security_level: SecurityLevel = SecurityLevel.MEDIUM

@dataclass
class AgentMetadata:
    created_at: float = field(default_factory=time.time)
    last_updated: float = field(default_factory=time.time)
    total_operations: int = 0
    model_type: str = ""
    provider: str = ""

@dataclass
class Agent:
    """A registered unit with capabilities, resource usage and a lifecycle state."""

    id: str
    name: str
    type: AgentType = AgentType.COLLABORATIVE
    version: str = "1.0.0"
    capabilities: list[Capability] = field(default_factory=list)
    performance: Performance = field(default_factory=Performance)
    resources: Resources = field(default_factory=Resources)
    intelligence: Intelligence = field(default_factory=Intelligence)
    tasks: TaskStats = field(default_factory=TaskStats)
    state: AgentState = field(default_factory=AgentState)
    config: AgentConfig = field(default_factory=AgentConfig)
    metadata: AgentMetadata = field(default_factory=AgentMetadata)

    def touch(self, now: float | None = None) -> None:
        """Stamp last_activity / last_updated."""
        now = now if now is not None else time.time()
        self.state.last_activity = now
        self.metadata.last_updated = now

    @property
    def has_capacity(self) -> bool:
        return self.tasks.active < self.config.max_concurrent_tasks

    @property
    def capability_names(self) -> list[str]:
        return [cap.name for cap in self.capabilities]

    def normalize(self) -> None:
        """Clamp every normalized field into [0, 1] and counters to >= 0."""
        for section in (self.performance, self.resources):
            for key, value in vars(section).items():
                if key in ("response_time", "throughput"):
                    setattr(section, key, max(0.0, value))
                else:
                    setattr(section, key, clamp(value))
        for key, value in vars(self.intelligence).items():
            if key != "overall_iq":
                setattr(self.intelligence, key, clamp(value))
        for key in ("cognitive_load", "energy", "focus", "motivation", "health_score"):
            setattr(self.state, key, clamp(getattr(self.state, key)))
        for cap in self.capabilities:
            cap.expertise = clamp(cap.expertise)
            cap.success_rate = clamp(cap.success_rate)
        self.tasks.active = max(0, min(self.tasks.active, self.config.max_concurrent_tasks))
        self.tasks.success_rate = clamp(self.tasks.success_rate)

    def snapshot(self) -> "Agent":
        return copy.deepcopy(self)

    def to_dict(self) -> dict[str, Any]:
        return asdict(self)

def performance_score(agent: Agent) -> float:
    p = agent.performance
    return _mean(p.accuracy, p.efficiency, p.success_rate)

def resource_score(agent: Agent) -> float:
    r = agent.resources
    return 1.0 - _mean(r.cpu, r.memory, r.energy)

def state_score(agent: Agent) -> float:
    s = agent.state
    return _mean(s.energy, s.focus, s.motivation)
