"""
Periodic Tasks
==============

Cancellable ticker tasks for the subsystem's background activities
(health checks, agent optimization, collaboration optimization).

Each ticker owns one ``asyncio.Task``. ``stop()`` cancels and awaits it so
teardown never leaves an orphaned timer. An exception raised by a callback
is logged for that iteration only; the ticker keeps running on the next tick.
"""

from __future__ import annotations

import asyncio
import contextlib
import inspect
from collections.abc import Awaitable, Callable
from typing import Any

from agentmesh.core.exceptions import InternalError
from agentmesh.infra.telemetry import MetricsCollector, get_logger

logger = get_logger(__name__)

TickCallback = Callable[[], Any | Awaitable[Any]]

class PeriodicTask:
    """Runs ``callback`` every ``interval_s`` seconds until stopped."""

    def __init__(
        self,
        task_name: str,
        interval_s: float,
        callback: TickCallback,
        *,
        metrics: MetricsCollector | None = None,
        run_immediately: bool = False,
    ) -> None:
        if interval_s <= 0:
            raise ValueError("interval_s must be positive")
        self.task_name = task_name
        self.interval_s = interval_s
        self._callback = callback
        self._metrics = metrics
        self._run_immediately = run_immediately
        self._task: asyncio.Task | None = None
        self.iterations = 0
        self.failures = 0
        self.last_error: InternalError | None = None

    @property
    def running(self) -> bool:
        return self._task is not None and not self._task.done()

    def start(self) -> None:
        """Start the ticker. Must be called from a running event loop."""
        if self.running:
            return
        self._task = asyncio.create_task(self._loop(), name=f"periodic-{self.task_name}")
        logger.info("periodic_task_started", task=self.task_name, interval_s=self.interval_s)

    async def stop(self) -> None:
        """Cancel the ticker and wait for it to finish."""
        if self._task:
            self._task.cancel()
            with contextlib.suppress(asyncio.CancelledError):
                await self._task
            self._task = None
            logger.info(
                "periodic_task_stopped",
                task=self.task_name,
                iterations=self.iterations,
                failures=self.failures,
            )

    async def run_once(self) -> bool:
        """Run a single iteration. Returns False if the callback raised."""
        self.iterations += 1
        try:
            result = self._callback()
            if inspect.isawaitable(result):
                await result
            return True
        except asyncio.CancelledError:
            raise
        except Exception as exc:
            self.failures += 1
            self.last_error = InternalError(str(exc), task_name=self.task_name, original_error=exc)
            if self._metrics:
                self._metrics.periodic_failures.labels(task=self.task_name).inc()
            logger.error("periodic_task_iteration_failed", exc=exc, task=self.task_name)
            return False

    async def _loop(self) -> None:
        if self._run_immediately:
            await self.run_once()
        while True:
            await asyncio.sleep(self.interval_s)
            await self.run_once()
