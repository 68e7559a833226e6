"""
Message Bus
===========

Ordered asynchronous delivery of collaboration messages.

Contract:
- One FIFO queue, drained one message at a time by a single consumer, so
  messages of a collaboration are handled strictly in arrival order
- Handlers are subscribed per message type and bounded by a timeout; a slow
  or failing handler is logged and the queue moves on
- Broadcast messages are additionally fanned out to broadcast listeners
- Long-running work (e.g. producing a response) runs as tracked tasks keyed
  by action id and grouped by collaboration, so a group can be cancelled
"""

from __future__ import annotations

import asyncio
import contextlib
import inspect
import time
from collections.abc import Awaitable, Callable, Coroutine
from dataclasses import dataclass, field
from typing import Any

from agentmesh.collaboration.models import CollaborationMessage
from agentmesh.core.types import MessageType
from agentmesh.infra.telemetry import MetricsCollector, get_logger, log_context

logger = get_logger(__name__)

MessageHandler = Callable[[str, CollaborationMessage], Awaitable[None]]
BroadcastListener = Callable[[str, CollaborationMessage], Any]

@dataclass(frozen=True)
class Envelope:
    collaboration_id: str
    message: CollaborationMessage
    enqueued_at: float = field(default_factory=time.monotonic)

class MessageBus:
    """Single-consumer FIFO bus with per-type handlers and tracked actions."""

    def __init__(
        self,
        *,
        handler_timeout_s: float = 5.0,
        tick_s: float = 0.1,
        metrics: MetricsCollector | None = None,
    ) -> None:
        self.handler_timeout_s = handler_timeout_s
        self.tick_s = tick_s
        self._metrics = metrics
        self._queue: asyncio.Queue[Envelope] = asyncio.Queue()
        self._handlers: dict[MessageType, MessageHandler] = {}
        self._broadcast_listeners: list[BroadcastListener] = []
        self._actions: dict[str, asyncio.Task] = {}
        self._groups: dict[str, set[str]] = {}
        self._task: asyncio.Task | None = None
        self.processed_count = 0
        self.error_count = 0

    # ── Wiring ───────────────────────────────────────────────────────

    def subscribe(self, msg_type: MessageType, handler: MessageHandler) -> None:
        """Register the handler for a message type, replacing any previous one."""
        self._handlers[MessageType(msg_type)] = handler

    def add_broadcast_listener(self, listener: BroadcastListener) -> None:
        self._broadcast_listeners.append(listener)

    def remove_broadcast_listener(self, listener: BroadcastListener) -> None:
        with contextlib.suppress(ValueError):
            self._broadcast_listeners.remove(listener)

    # ── Queue ────────────────────────────────────────────────────────

    def enqueue(self, collaboration_id: str, message: CollaborationMessage) -> None:
        """Queue an already-logged message for processing. Never blocks."""
        self._queue.put_nowait(Envelope(collaboration_id, message))
        if self._metrics:
            self._metrics.queue_depth.set(self._queue.qsize())

    @property
    def pending(self) -> int:
        return self._queue.qsize()

    @property
    def running(self) -> bool:
        return self._task is not None and not self._task.done()

    def start(self) -> None:
        """Start the drain loop. Must be called from a running event loop."""
        if self.running:
            return
        self._task = asyncio.create_task(self._run_loop(), name="message-bus")
        logger.info("message_bus_started", tick_s=self.tick_s)

    async def stop(self, *, cancel_actions: bool = True) -> None:
        """Stop the drain loop and, by default, cancel all tracked actions."""
        if self._task:
            self._task.cancel()
            with contextlib.suppress(asyncio.CancelledError):
                await self._task
            self._task = None
        if cancel_actions:
            await self.cancel_all()
        logger.info(
            "message_bus_stopped",
            processed=self.processed_count,
            errors=self.error_count,
            pending=self.pending,
        )

    async def process_next(self) -> bool:
        """Process one queued message if there is one. Returns False when empty."""
        try:
            envelope = self._queue.get_nowait()
        except asyncio.QueueEmpty:
            return False
        await self._dispatch(envelope)
        return True

    async def drain(self, max_messages: int | None = None) -> int:
        """
        Process queued messages, including ones queued by handlers meanwhile,
        until the queue is empty. For use when the drain loop is not running.
        """
        if self.running:
            raise RuntimeError("drain() cannot run while the bus loop is active")
        count = 0
        while max_messages is None or count < max_messages:
            if not await self.process_next():
                break
            count += 1
        return count

    async def settle(self, max_rounds: int = 100) -> int:
        """
        Drain the queue and wait for tracked actions, repeatedly, until both
        are empty. Returns the number of messages processed.
        """
        total = 0
        for _ in range(max_rounds):
            total += await self.drain()
            tasks = list(self._actions.values())
            if not tasks:
                if not self.pending:
                    break
                continue
            await asyncio.gather(*tasks, return_exceptions=True)
        return total

    # ── Actions ──────────────────────────────────────────────────────

    def spawn_action(
        self, action_id: str, group: str, work: Coroutine[Any, Any, Any]
    ) -> asyncio.Task:
        """Run ``work`` as a tracked task that ``cancel_group(group)`` can cancel."""
        if action_id in self._actions:
            work.close()
            raise ValueError(f"Action {action_id} is already scheduled")
        task = asyncio.create_task(work, name=f"action-{action_id}")
        self._actions[action_id] = task
        self._groups.setdefault(group, set()).add(action_id)
        task.add_done_callback(lambda _t: self._forget(action_id, group))
        return task

    def has_action(self, action_id: str) -> bool:
        return action_id in self._actions

    @property
    def action_count(self) -> int:
        return len(self._actions)

    async def cancel_group(self, group: str) -> int:
        """Cancel and await every tracked action of ``group``."""
        tasks = [self._actions[a] for a in list(self._groups.get(group, ())) if a in self._actions]
        return await self._cancel(tasks)

    async def cancel_all(self) -> int:
        return await self._cancel(list(self._actions.values()))

    # ── Internal ─────────────────────────────────────────────────────

    async def _cancel(self, tasks: list[asyncio.Task]) -> int:
        for task in tasks:
            task.cancel()
        if tasks:
            await asyncio.gather(*tasks, return_exceptions=True)
        return len(tasks)

    def _forget(self, action_id: str, group: str) -> None:
        self._actions.pop(action_id, None)
        members = self._groups.get(group)
        if members is not None:
            members.discard(action_id)
            if not members:
                del self._groups[group]

    async def _run_loop(self) -> None:
        """Main drain loop."""
        while True:
            try:
                envelope = await asyncio.wait_for(self._queue.get(), timeout=self.tick_s)
            except TimeoutError:
                continue
            await self._dispatch(envelope)

    async def _dispatch(self, envelope: Envelope) -> None:
        message = envelope.message
        if self._metrics:
            self._metrics.queue_depth.set(self._queue.qsize())

        with log_context(collaboration_id=envelope.collaboration_id):
            handler = self._handlers.get(message.type)
            try:
                if self._metrics:
                    with self._metrics.track_message(message.type.value):
                        await self._invoke(handler, envelope)
                else:
                    await self._invoke(handler, envelope)
            except TimeoutError:
                self.error_count += 1
                logger.error(
                    "message_handler_timeout",
                    message_id=message.id,
                    msg_type=message.type.value,
                    timeout_s=self.handler_timeout_s,
                )
            except Exception as exc:  # isolate poison messages
                self.error_count += 1
                logger.error(
                    "message_handler_failed",
                    exc=exc,
                    message_id=message.id,
                    msg_type=message.type.value,
                )
            self.processed_count += 1

            if message.is_broadcast:
                await self._fan_out(envelope)

    async def _invoke(self, handler: MessageHandler | None, envelope: Envelope) -> None:
        if handler is None:
            return
        await asyncio.wait_for(
            handler(envelope.collaboration_id, envelope.message),
            timeout=self.handler_timeout_s,
        )

    async def _fan_out(self, envelope: Envelope) -> None:
        for listener in list(self._broadcast_listeners):
            try:
                result = listener(envelope.collaboration_id, envelope.message)
                if inspect.isawaitable(result):
                    await result
            except Exception as exc:
                logger.warning(
                    "broadcast_listener_failed",
                    exc_type=type(exc).__name__,
                    error=str(exc),
                    message_id=envelope.message.id,
                )
