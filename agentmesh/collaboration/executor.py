"""
Capability Executors
====================

A directed ``request`` message is answered by a capability executor running
as a tracked asyncio task. The executor stands in for the external provider
that actually produces results; this package ships a simulated one.
"""

from __future__ import annotations

import asyncio
import random
from typing import Any, Protocol, runtime_checkable

from agentmesh.collaboration.models import Collaboration, CollaborationMessage

@runtime_checkable
class CapabilityExecutor(Protocol):
    async def execute(
        self, request: CollaborationMessage, collaboration: Collaboration
    ) -> dict[str, Any]:
        """Produce the payload of the response to ``request``."""
        ...

class SimulatedCapabilityExecutor:
    """
    Sleeps for a bounded delay then echoes the request back as processed.

    Pass a seeded ``rng`` or equal min/max delays for reproducible runs.
    """

    def __init__(
        self,
        min_delay_s: float = 0.5,
        max_delay_s: float = 1.5,
        rng: random.Random | None = None,
    ) -> None:
        if min_delay_s < 0 or max_delay_s < min_delay_s:
            raise ValueError("Delay range must satisfy 0 <= min <= max")
        self.min_delay_s = min_delay_s
        self.max_delay_s = max_delay_s
        self._rng = rng or random.Random()

    def next_delay(self) -> float:
        if self.max_delay_s == self.min_delay_s:
            return self.min_delay_s
        return self._rng.uniform(self.min_delay_s, self.max_delay_s)

    async def execute(
        self, request: CollaborationMessage, collaboration: Collaboration
    ) -> dict[str, Any]:
        await asyncio.sleep(self.next_delay())
        return {
            "processed": request.payload,
            "insights": f"Processed {request.payload.get('task', 'request')} "
                        f"for {collaboration.name}",
            "confidence": round(0.8 + self._rng.random() * 0.2, 3),
        }
