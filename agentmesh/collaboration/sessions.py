"""
Collaboration Session Manager
=============================

Forms collaborations from registry agents and evolves them as messages flow
through the bus.

Lifecycle:
    forming → coordinating → active → dissolving → completed

- ``create`` validates participants, builds profiles and sends the
  system ``collaboration-formed`` coordination message
- handling that message moves the collaboration to coordinating and invites
  every participant with a role derived from its style
- once every participant has reported ``ready`` it becomes active
- ``dissolve`` / ``complete`` cancel outstanding actions

Every mutation of a collaboration happens under that collaboration's lock;
readers get deep-copied snapshots.
"""

from __future__ import annotations

import asyncio
import copy
import time
from collections.abc import Callable, Iterable, Iterator
from contextlib import contextmanager
from dataclasses import replace
from typing import Any

from agentmesh.agents.registry import AgentRegistry
from agentmesh.collaboration.bus import MessageBus
from agentmesh.collaboration.executor import CapabilityExecutor, SimulatedCapabilityExecutor
from agentmesh.collaboration.knowledge import KnowledgeStore, SharedKnowledgeEntry, filter_entries
from agentmesh.collaboration.metrics import (
    EmergencePolicy,
    compute_metrics,
    detect_emergent_properties,
)
from agentmesh.collaboration.models import (
    ActionRecord,
    Collaboration,
    CollaborationMessage,
    new_id,
)
from agentmesh.collaboration.profiles import build_profile, role_for
from agentmesh.collaboration.tasks import CollaborationTask, Subtask, build_task
from agentmesh.core.exceptions import (
    CapacityError,
    CollaborationNotFoundError,
    NotFoundError,
    ProcessingError,
    ValidationError,
)
from agentmesh.core.types import (
    SYSTEM_SENDER,
    AccessLevel,
    ActionStatus,
    CollaborationStatus,
    CollaborationType,
    KnowledgeType,
    MessagePriority,
    MessageType,
    SubtaskStatus,
    parse_enum,
)
from agentmesh.infra.telemetry import MetricsCollector, get_logger, log_context
from agentmesh.utils.lock_factory import LockType, create_lock

logger = get_logger(__name__)

FORMED_ACTION = "collaboration-formed"
INVITE_ACTION = "invite-to-collaboration"
READY_STATUS = "ready"

DEFAULT_KNOWLEDGE_CONFIDENCE = 0.8
DEFAULT_KNOWLEDGE_RELEVANCE = 0.7
TRUST_INCREMENT = 0.05

# Active collaborations below these get optimization suggestions
LOW_COMMUNICATION_QUALITY = 0.5
LOW_SYNERGY = 0.6

COMMUNICATION_SUGGESTIONS = (
    "Increase communication frequency",
    "Use more structured communication protocols",
)
ROLE_SUGGESTIONS = (
    "Rebalance participant roles",
    "Introduce a dedicated coordinator",
)

class CollaborationManager:
    """
    Owns all collaborations. Explicitly constructed by the composition root
    together with the registry and bus it depends on.
    """

    def __init__(
        self,
        registry: AgentRegistry,
        bus: MessageBus,
        *,
        executor: CapabilityExecutor | None = None,
        policy: EmergencePolicy | None = None,
        max_concurrent: int = 10,
        knowledge_sharing: bool = True,
        emergent_detection: bool = True,
        response_timeout_s: float | None = 30.0,
        metrics: MetricsCollector | None = None,
        clock: Callable[[], float] = time.time,
    ) -> None:
        self._registry = registry
        self._bus = bus
        self._executor = executor or SimulatedCapabilityExecutor()
        self._policy = policy or EmergencePolicy()
        self._max_concurrent = max_concurrent
        self._knowledge_sharing = knowledge_sharing
        self._emergent_detection = emergent_detection
        self._response_timeout_s = response_timeout_s
        self._metrics = metrics
        self._clock = clock

        self._collaborations: dict[str, Collaboration] = {}
        self._locks: dict[str, LockType] = {}
        self._table_lock = create_lock()

        self._handlers = {
            MessageType.COORDINATION: self._on_coordination,
            MessageType.REQUEST: self._on_request,
            MessageType.RESPONSE: self._on_response,
            MessageType.INFORMATION: self._on_information,
            MessageType.STATUS: self._on_status,
        }
        for msg_type in self._handlers:
            bus.subscribe(msg_type, self._handle)

    @property
    def executor(self) -> CapabilityExecutor:
        return self._executor

    # ── Formation ─────────────────────────────────────────────────

    async def create(
        self,
        name: str,
        description: str,
        collaboration_type: CollaborationType | str,
        participant_ids: Iterable[str],
        *,
        shared_context: dict[str, Any] | None = None,
        estimated_duration: float | None = None,
    ) -> Collaboration:
        """
        Form a collaboration from the registered subset of ``participant_ids``.

        Raises:
            ValidationError: fewer than two participants resolve in the registry
            CapacityError: the concurrent collaboration limit is reached
        """
        collaboration_type = parse_enum(CollaborationType, collaboration_type, "collaboration type")
        valid = [pid for pid in dict.fromkeys(participant_ids) if self._registry.exists(pid)]
        if len(valid) < 2:
            raise ValidationError(
                f"A collaboration needs at least 2 registered participants, got {len(valid)}"
            )
        profiles = {pid: build_profile(self._registry.get(pid)) for pid in valid}

        now = self._clock()
        collaboration_id = new_id("collab")
        collaboration = Collaboration(
            id=collaboration_id,
            name=name,
            description=description,
            type=collaboration_type,
            participants=tuple(valid),
            knowledge=KnowledgeStore(collaboration_id=collaboration_id),
            profiles=profiles,
            shared_context=dict(shared_context or {}),
            created_at=now,
            last_activity=now,
            estimated_duration=estimated_duration,
        )

        with self._table_lock:
            open_count = sum(
                1 for c in self._collaborations.values()
                if c.status != CollaborationStatus.COMPLETED
            )
            if open_count >= self._max_concurrent:
                raise CapacityError(
                    f"Concurrent collaboration limit reached ({self._max_concurrent})"
                )
            self._collaborations[collaboration_id] = collaboration
            self._locks[collaboration_id] = create_lock()

        logger.info(
            "collaboration_created",
            collaboration_id=collaboration_id,
            collaboration_type=collaboration_type.value,
            participants=list(valid),
        )
        self._publish_counts()

        await self.send(collaboration_id, CollaborationMessage(
            from_agent=SYSTEM_SENDER,
            type=MessageType.COORDINATION,
            payload={
                "action": FORMED_ACTION,
                "collaboration_id": collaboration_id,
                "participants": list(valid),
                "type": collaboration_type.value,
                "shared_context": dict(shared_context or {}),
            },
            priority=MessagePriority.HIGH,
        ))
        return self.get_collaboration(collaboration_id)

    # ── Messaging ─────────────────────────────────────────────────

    async def send(self, collaboration_id: str, message: CollaborationMessage) -> CollaborationMessage:
        """
        Stamp, log and enqueue a message. Returns a copy of the stamped message.

        The log keeps its own deep copy of the payload, so later edits to the
        caller's dict or to the returned message never reach it.

        Raises:
            CollaborationNotFoundError: unknown collaboration
            ValidationError: collaboration closed, sender/recipient not a participant,
                or unknown message type / priority
        """
        stamped = self._post(collaboration_id, message)
        await asyncio.sleep(0)  # yield to event loop
        return copy.deepcopy(stamped)

    def _post(self, collaboration_id: str, message: CollaborationMessage) -> CollaborationMessage:
        """Synchronous half of ``send``: validate, append to the log and enqueue."""
        msg_type = parse_enum(MessageType, message.type, "message type")
        priority = parse_enum(MessagePriority, message.priority, "message priority")
        with self._locked(collaboration_id) as collaboration:
            if not collaboration.is_open:
                raise ValidationError(
                    f"Collaboration {collaboration_id} is {collaboration.status} "
                    "and no longer accepts messages"
                )
            members = set(collaboration.participants)
            if message.from_agent != SYSTEM_SENDER and message.from_agent not in members:
                raise ValidationError(
                    f"Sender {message.from_agent} is not a participant of {collaboration_id}"
                )
            if message.to_agent is not None and message.to_agent not in members:
                raise ValidationError(
                    f"Recipient {message.to_agent} is not a participant of {collaboration_id}"
                )

            now = self._clock()
            stamped = replace(
                message,
                type=msg_type,
                priority=priority,
                payload=copy.deepcopy(message.payload),
                id=message.id or new_id("msg"),
                sequence=len(collaboration.messages) + 1,
                timestamp=now,
                collaboration_id=collaboration_id,
            )
            collaboration.messages.append(stamped)
            collaboration.last_activity = now

        if self._metrics:
            self._metrics.messages_sent.labels(type=stamped.type.value).inc()
        self._bus.enqueue(collaboration_id, stamped)
        return stamped

    async def _handle(self, collaboration_id: str, message: CollaborationMessage) -> None:
        """Bus entry point: run the type handler, then refresh metrics."""
        handler = self._handlers[message.type]
        try:
            await handler(collaboration_id, message)
        finally:
            self._refresh_metrics(collaboration_id)

    async def _on_coordination(self, collaboration_id: str, message: CollaborationMessage) -> None:
        if message.payload.get("action") != FORMED_ACTION:
            return
        with self._locked(collaboration_id) as collaboration:
            if collaboration.status == CollaborationStatus.FORMING:
                collaboration.status = CollaborationStatus.COORDINATING
            invites = [
                (pid, role_for(collaboration.profiles.get(pid)))
                for pid in collaboration.participants
                if pid != message.from_agent
            ]
        self._publish_counts()

        # no await between invites: all of them are logged or none
        for participant_id, role in invites:
            self._post(collaboration_id, CollaborationMessage(
                from_agent=SYSTEM_SENDER,
                to_agent=participant_id,
                type=MessageType.COORDINATION,
                payload={
                    "action": INVITE_ACTION,
                    "collaboration_id": collaboration_id,
                    "role": role.value,
                },
                priority=MessagePriority.HIGH,
            ))
        logger.info("collaboration_coordinating", invited=len(invites))

    async def _on_request(self, collaboration_id: str, message: CollaborationMessage) -> None:
        if message.is_broadcast:
            return
        with self._locked(collaboration_id) as collaboration:
            if not collaboration.is_open:
                return
            record = ActionRecord(
                id=new_id("action"),
                collaboration_id=collaboration_id,
                request_id=message.id,
                agent_id=message.to_agent,
                created_at=self._clock(),
            )
            collaboration.actions[record.id] = record

        self._bus.spawn_action(
            record.id, collaboration_id, self._run_request(collaboration_id, record.id, message)
        )
        logger.debug("request_action_scheduled", action_id=record.id, request_id=message.id)

    async def _run_request(
        self, collaboration_id: str, action_id: str, request: CollaborationMessage
    ) -> None:
        """Produce the response to a directed request via the capability executor."""
        with log_context(
            collaboration_id=collaboration_id, agent_id=request.to_agent, action_id=action_id
        ):
            try:
                snapshot = self.get_collaboration(collaboration_id)
                result = await asyncio.wait_for(
                    self._executor.execute(request, snapshot),
                    timeout=self._response_timeout_s,
                )
                response = await self.send(collaboration_id, request.reply({
                    **result,
                    "request_id": request.id,
                }))
            except asyncio.CancelledError:
                self._finish_action(collaboration_id, action_id, ActionStatus.CANCELLED,
                                    error="cancelled")
                raise
            except TimeoutError as exc:
                error = ProcessingError(
                    f"no response within {self._response_timeout_s}s",
                    action_id=action_id, original_error=exc,
                )
                self._fail_action(collaboration_id, error)
            except Exception as exc:
                error = ProcessingError(str(exc) or type(exc).__name__,
                                        action_id=action_id, original_error=exc)
                self._fail_action(collaboration_id, error)
            else:
                self._finish_action(collaboration_id, action_id, ActionStatus.COMPLETED,
                                    response_id=response.id)

    async def _on_response(self, collaboration_id: str, message: CollaborationMessage) -> None:
        if message.to_agent is None:
            return
        with self._locked(collaboration_id) as collaboration:
            requester = collaboration.profiles.get(message.to_agent)
            if requester is None or message.from_agent not in collaboration.profiles:
                return
            trust = min(1.0, requester.trust(message.from_agent) + TRUST_INCREMENT)
            requester.trust_scores[message.from_agent] = trust
        logger.debug(
            "trust_updated", requester=message.to_agent, responder=message.from_agent, trust=trust
        )

    async def _on_information(self, collaboration_id: str, message: CollaborationMessage) -> None:
        payload = message.payload
        if not (self._knowledge_sharing and payload.get("shareable")):
            return
        entry = SharedKnowledgeEntry(
            agent_id=message.from_agent,
            type=payload.get("knowledge_type", KnowledgeType.DATA),
            payload=copy.deepcopy(payload),
            confidence=payload.get("confidence", DEFAULT_KNOWLEDGE_CONFIDENCE),
            relevance=payload.get("relevance", DEFAULT_KNOWLEDGE_RELEVANCE),
            tags=tuple(payload.get("tags", ())),
            access_level=payload.get("access_level", AccessLevel.PUBLIC),
        )
        with self._locked(collaboration_id) as collaboration:
            stored = collaboration.knowledge.record(entry, now=self._clock())
        logger.info("knowledge_shared", knowledge_id=stored.id, agent_id=stored.agent_id)

    async def _on_status(self, collaboration_id: str, message: CollaborationMessage) -> None:
        if message.payload.get("status") != READY_STATUS:
            return
        with self._locked(collaboration_id) as collaboration:
            ready = {
                m.from_agent for m in collaboration.messages
                if m.type == MessageType.STATUS and m.payload.get("status") == READY_STATUS
            }
            all_ready = all(pid in ready for pid in collaboration.participants)
            activated = all_ready and collaboration.status == CollaborationStatus.COORDINATING
            if activated:
                collaboration.status = CollaborationStatus.ACTIVE
        if activated:
            logger.info("collaboration_active")
            self._publish_counts()

    # ── Metrics ───────────────────────────────────────────────────

    def _refresh_metrics(self, collaboration_id: str) -> None:
        with self._locked(collaboration_id) as collaboration:
            participant_count = len(collaboration.participants)
            collaboration.metrics = compute_metrics(
                collaboration.messages,
                participant_count,
                self._clock(),
                collaboration.metrics,
                self._policy,
            )
            added: list[str] = []
            if self._emergent_detection:
                added = collaboration.add_emergent(detect_emergent_properties(
                    collaboration.type, participant_count, collaboration.metrics, self._policy
                ))
        for prop in added:
            if self._metrics:
                self._metrics.emergent_properties.labels(property=prop).inc()
            logger.info("emergent_property_detected", emergent_property=prop)

    def optimize_collaborations(self) -> dict[str, list[str]]:
        """
        Suggest improvements for active collaborations with weak metrics.
        Suggestions are logged and appended to ``optimization_notes`` once.
        """
        suggestions: dict[str, list[str]] = {}
        for collaboration_id in self._ids():
            try:
                with self._locked(collaboration_id) as collaboration:
                    if collaboration.status != CollaborationStatus.ACTIVE:
                        continue
                    found: list[str] = []
                    if collaboration.metrics.communication_quality < LOW_COMMUNICATION_QUALITY:
                        found.extend(COMMUNICATION_SUGGESTIONS)
                    if collaboration.metrics.synergy < LOW_SYNERGY:
                        found.extend(ROLE_SUGGESTIONS)
                    new = [s for s in found if s not in collaboration.optimization_notes]
                    collaboration.optimization_notes.extend(new)
            except CollaborationNotFoundError:
                continue
            if found:
                suggestions[collaboration_id] = found
            if new:
                logger.info(
                    "collaboration_optimization_suggested",
                    collaboration_id=collaboration_id,
                    suggestions=new,
                )
        return suggestions

    # ── Lifecycle ─────────────────────────────────────────────────

    async def dissolve(self, collaboration_id: str) -> Collaboration:
        """Move to dissolving and cancel outstanding actions."""
        with self._locked(collaboration_id) as collaboration:
            if collaboration.status in (CollaborationStatus.DISSOLVING, CollaborationStatus.COMPLETED):
                raise ValidationError(
                    f"Collaboration {collaboration_id} is already {collaboration.status}"
                )
            collaboration.status = CollaborationStatus.DISSOLVING
            self._cancel_pending(collaboration)
        await self._bus.cancel_group(collaboration_id)
        logger.info("collaboration_dissolving", collaboration_id=collaboration_id)
        self._publish_counts()
        return self.get_collaboration(collaboration_id)

    async def complete(self, collaboration_id: str) -> Collaboration:
        """Finish a collaboration. Completed collaborations are kept for reads."""
        with self._locked(collaboration_id) as collaboration:
            if collaboration.status == CollaborationStatus.COMPLETED:
                raise ValidationError(f"Collaboration {collaboration_id} is already completed")
            now = self._clock()
            collaboration.status = CollaborationStatus.COMPLETED
            collaboration.actual_duration = now - collaboration.created_at
            collaboration.last_activity = now
            self._cancel_pending(collaboration)
        await self._bus.cancel_group(collaboration_id)
        logger.info("collaboration_completed", collaboration_id=collaboration_id)
        self._publish_counts()
        return self.get_collaboration(collaboration_id)

    async def shutdown(self) -> int:
        """Cancel every outstanding action. Returns how many tasks were cancelled."""
        for collaboration_id in self._ids():
            with self._locked(collaboration_id) as collaboration:
                self._cancel_pending(collaboration)
        return await self._bus.cancel_all()

    # ── Tasks ─────────────────────────────────────────────────────

    def add_task(
        self,
        collaboration_id: str,
        title: str,
        subtasks: Iterable[Subtask],
        *,
        description: str = "",
        estimated_duration: float | None = None,
    ) -> CollaborationTask:
        """Attach a decomposed task. Subtasks must be assigned to participants."""
        subtasks = [copy.deepcopy(s) for s in subtasks]
        with self._locked(collaboration_id) as collaboration:
            if not collaboration.is_open:
                raise ValidationError(f"Collaboration {collaboration_id} is {collaboration.status}")
            task = build_task(
                new_id("task"),
                title,
                subtasks,
                collaboration.participants,
                description=description,
                estimated_duration=estimated_duration,
                now=self._clock(),
            )
            collaboration.tasks[task.id] = task
            snapshot = copy.deepcopy(task)
        logger.info("collaboration_task_added", task_id=task.id, subtasks=len(task.subtasks))
        return snapshot

    def update_subtask(
        self,
        collaboration_id: str,
        task_id: str,
        subtask_id: str,
        *,
        progress: float | None = None,
        status: SubtaskStatus | str | None = None,
        result: Any = None,
    ) -> CollaborationTask:
        with self._locked(collaboration_id) as collaboration:
            task = collaboration.tasks.get(task_id)
            if task is None:
                raise NotFoundError(f"Task with ID {task_id} not found", error_code="TASK_NOT_FOUND")
            task.update_subtask(
                subtask_id, progress=progress, status=status, result=result, now=self._clock()
            )
            collaboration.last_activity = self._clock()
            return copy.deepcopy(task)

    # ── Queries ───────────────────────────────────────────────────

    def exists(self, collaboration_id: str) -> bool:
        with self._table_lock:
            return collaboration_id in self._collaborations

    def get_collaboration(self, collaboration_id: str) -> Collaboration:
        with self._locked(collaboration_id) as collaboration:
            return collaboration.snapshot()

    def list_collaborations(self) -> list[Collaboration]:
        result = []
        for collaboration_id in self._ids():
            try:
                result.append(self.get_collaboration(collaboration_id))
            except CollaborationNotFoundError:
                continue
        return result

    def get_collaborations_by_status(self, status: CollaborationStatus | str) -> list[Collaboration]:
        status = parse_enum(CollaborationStatus, status, "collaboration status")
        return [c for c in self.list_collaborations() if c.status == status]

    def get_collaborations_for_agent(self, agent_id: str) -> list[Collaboration]:
        return [c for c in self.list_collaborations() if agent_id in c.participants]

    def query_knowledge(
        self,
        *,
        tag: str | None = None,
        access_level: AccessLevel | str | None = None,
        agent_id: str | None = None,
        knowledge_type: KnowledgeType | str | None = None,
    ) -> list[SharedKnowledgeEntry]:
        """Knowledge across every collaboration, ordered by collaboration then sequence."""
        found: list[SharedKnowledgeEntry] = []
        for collaboration_id in self._ids():
            try:
                with self._locked(collaboration_id) as collaboration:
                    entries = collaboration.knowledge.entries()
            except CollaborationNotFoundError:
                continue
            found.extend(filter_entries(
                entries,
                tag=tag,
                access_level=access_level,
                agent_id=agent_id,
                knowledge_type=knowledge_type,
            ))
        return found

    def get_collaboration_stats(self) -> dict[str, Any]:
        collaborations = self.list_collaborations()
        total = len(collaborations)
        by_status = {status.value: 0 for status in CollaborationStatus}
        for c in collaborations:
            by_status[c.status.value] += 1
        return {
            "total_collaborations": total,
            "active_collaborations": by_status[CollaborationStatus.ACTIVE.value],
            "by_status": by_status,
            "average_synergy": (
                sum(c.metrics.synergy for c in collaborations) / total if total else 0.0
            ),
            "average_efficiency": (
                sum(c.metrics.efficiency for c in collaborations) / total if total else 0.0
            ),
            "total_messages": sum(len(c.messages) for c in collaborations),
            "total_knowledge": sum(len(c.knowledge) for c in collaborations),
            "total_emergent_properties": sum(len(c.emergent_properties) for c in collaborations),
        }

    # ── Internal ──────────────────────────────────────────────────

    def _ids(self) -> list[str]:
        with self._table_lock:
            return list(self._collaborations)

    @contextmanager
    def _locked(self, collaboration_id: str) -> Iterator[Collaboration]:
        with self._table_lock:
            collaboration = self._collaborations.get(collaboration_id)
            lock = self._locks.get(collaboration_id)
        if collaboration is None or lock is None:
            raise CollaborationNotFoundError(collaboration_id)
        with lock:
            yield collaboration

    def _cancel_pending(self, collaboration: Collaboration) -> None:
        now = self._clock()
        for record in collaboration.actions.values():
            if not record.done:
                self._close_record(record, ActionStatus.CANCELLED, now, error="cancelled")

    def _finish_action(
        self,
        collaboration_id: str,
        action_id: str,
        status: ActionStatus,
        *,
        error: str | None = None,
        response_id: str | None = None,
    ) -> None:
        try:
            with self._locked(collaboration_id) as collaboration:
                record = collaboration.actions.get(action_id)
                if record is None or record.done:
                    return
                self._close_record(record, status, self._clock(),
                                   error=error, response_id=response_id)
        except CollaborationNotFoundError:
            return

    def _fail_action(self, collaboration_id: str, error: ProcessingError) -> None:
        self._finish_action(collaboration_id, error.action_id, ActionStatus.FAILED,
                            error=error.detail)
        logger.warning("request_action_failed", **error.to_dict())

    def _close_record(
        self,
        record: ActionRecord,
        status: ActionStatus,
        now: float,
        *,
        error: str | None = None,
        response_id: str | None = None,
    ) -> None:
        record.status = status
        record.finished_at = now
        record.error = error
        record.response_id = response_id
        if self._metrics:
            self._metrics.actions.labels(status=status.value).inc()

    def _publish_counts(self) -> None:
        if not self._metrics:
            return
        counts = {status.value: 0 for status in CollaborationStatus}
        with self._table_lock:
            for collaboration in self._collaborations.values():
                counts[collaboration.status.value] += 1
        self._metrics.record_collaboration_counts(counts)
