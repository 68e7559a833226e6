"""
Telemetry Sources
=================

Pluggable providers of resource telemetry applied to agents before each
health sweep. Tests inject deterministic values; deployments can sample the
host the agents are co-located with.
"""

from __future__ import annotations

import time
from dataclasses import dataclass
from typing import Protocol, runtime_checkable

import psutil

from agentmesh.agents.models import Agent, Resources, clamp

@runtime_checkable
class MetricsSource(Protocol):
    """
    Returns a fresh Resources reading for an agent, or None to keep the current one.

    ``refresh`` runs once at the start of every health sweep, before any
    ``sample`` call of that sweep.
    """

    def refresh(self) -> None: ...

    def sample(self, agent: Agent) -> Resources | None: ...

class StaticMetricsSource:
    """Keeps whatever resource snapshot the agent already carries.

    ``overrides`` maps agent id -> Resources for deterministic tests.
    """

    def __init__(self, overrides: dict[str, Resources] | None = None) -> None:
        self._overrides = dict(overrides or {})

    def set(self, agent_id: str, resources: Resources) -> None:
        self._overrides[agent_id] = resources

    def refresh(self) -> None:
        pass

    def sample(self, agent: Agent) -> Resources | None:
        resources = self._overrides.get(agent.id)
        if resources is None:
            return None
        return Resources(**vars(resources))

@dataclass(frozen=True)
class HostReading:
    cpu: float
    memory: float
    network: float

class HostMetricsSource:
    """
    Samples host CPU, memory and network utilization with psutil.

    One host reading is taken per sweep (``refresh``) and shared by every
    agent co-located on the host; energy, storage and bandwidth stay as the
    agent reported them. Network is the observed throughput normalized
    against ``network_capacity_bps`` and reads 0 on hosts without interfaces.
    """

    def __init__(self, network_capacity_bps: float = 125_000_000.0) -> None:  # 1 Gbit/s
        self._capacity = network_capacity_bps
        self._last_io: tuple[float, int] | None = None
        self._network = 0.0
        self._reading: HostReading | None = None
        psutil.cpu_percent(interval=None)  # prime the non-blocking counter

    @property
    def reading(self) -> HostReading | None:
        return self._reading

    def _sample_network(self) -> float:
        counters = psutil.net_io_counters()
        if counters is None:
            self._last_io = None
            self._network = 0.0
            return self._network
        total = counters.bytes_sent + counters.bytes_recv
        now = time.monotonic()
        if self._last_io is not None:
            elapsed = now - self._last_io[0]
            if elapsed > 0:
                rate = (total - self._last_io[1]) / elapsed
                self._network = clamp(rate / self._capacity)
        self._last_io = (now, total)
        return self._network

    def refresh(self) -> None:
        self._reading = HostReading(
            cpu=clamp(psutil.cpu_percent(interval=None) / 100.0),
            memory=clamp(psutil.virtual_memory().percent / 100.0),
            network=self._sample_network(),
        )

    def sample(self, agent: Agent) -> Resources | None:
        if self._reading is None:
            self.refresh()
        reading = self._reading
        current = agent.resources
        return Resources(
            cpu=reading.cpu,
            memory=reading.memory,
            network=reading.network,
            energy=current.energy,
            storage=current.storage,
            bandwidth=current.bandwidth,
        )
