"""
Collaboration Tasks
===================

Optional hierarchical decomposition of collaborative work: a task owns
subtasks, each assigned to one participant, linked by dependency edges.

Rules:
- Dependencies must name subtasks of the same task; cycles are rejected.
- A subtask cannot start or complete before all its dependencies complete.
- Completed and failed subtasks are final.
- Task progress is the mean subtask progress. The task is executing once any
  subtask has started, completed when all are, failed as soon as one fails.
"""

from __future__ import annotations

import time
from collections.abc import Iterable
from dataclasses import asdict, dataclass, field
from typing import Any

from agentmesh.core.exceptions import ValidationError
from agentmesh.core.types import SubtaskStatus, TaskStatus, parse_enum

_FINAL = (SubtaskStatus.COMPLETED, SubtaskStatus.FAILED)
_STARTED = (SubtaskStatus.IN_PROGRESS, SubtaskStatus.COMPLETED, SubtaskStatus.FAILED)

@dataclass
class Subtask:
    id: str
    title: str
    assigned_agent: str
    description: str = ""
    dependencies: tuple[str, ...] = ()
    status: SubtaskStatus = SubtaskStatus.ASSIGNED
    progress: float = 0.0
    result: Any = None
    estimated_duration: float | None = None
    started_at: float | None = None
    finished_at: float | None = None

    @property
    def actual_duration(self) -> float | None:
        if self.started_at is None or self.finished_at is None:
            return None
        return self.finished_at - self.started_at

    def to_dict(self) -> dict[str, Any]:
        data = asdict(self)
        data["dependencies"] = list(self.dependencies)
        data["actual_duration"] = self.actual_duration
        return data

@dataclass
class CollaborationTask:
    id: str
    title: str
    description: str = ""
    subtasks: dict[str, Subtask] = field(default_factory=dict)
    status: TaskStatus = TaskStatus.FORMING
    progress: float = 0.0
    result: Any = None
    created_at: float = field(default_factory=time.time)
    started_at: float | None = None
    completed_at: float | None = None
    estimated_duration: float | None = None

    @property
    def actual_duration(self) -> float | None:
        if self.started_at is None or self.completed_at is None:
            return None
        return self.completed_at - self.started_at

    def ready_subtasks(self) -> list[Subtask]:
        """Unstarted subtasks whose dependencies have all completed."""
        return [
            s for s in self.subtasks.values()
            if s.status not in _STARTED and self._dependencies_met(s)
        ]

    def update_subtask(
        self,
        subtask_id: str,
        *,
        progress: float | None = None,
        status: SubtaskStatus | str | None = None,
        result: Any = None,
        now: float | None = None,
    ) -> Subtask:
        """
        Apply a progress/status change to one subtask and roll it up.

        Raises ValidationError for unknown subtasks, out-of-range progress,
        updates to final subtasks, or starting before dependencies complete.
        Nothing is mutated when a ValidationError is raised.
        """
        subtask = self.subtasks.get(subtask_id)
        if subtask is None:
            raise ValidationError(f"Task {self.id} has no subtask {subtask_id}")
        if subtask.status in _FINAL:
            raise ValidationError(f"Subtask {subtask_id} is already {subtask.status}")
        if progress is not None and not 0.0 <= progress <= 1.0:
            raise ValidationError(f"Subtask progress must be within [0, 1], got {progress}")

        new_status = subtask.status
        if status is not None:
            new_status = parse_enum(SubtaskStatus, status, "subtask status")
        if progress is not None and progress > 0 and new_status not in _STARTED:
            new_status = SubtaskStatus.IN_PROGRESS
        if new_status in (SubtaskStatus.IN_PROGRESS, SubtaskStatus.COMPLETED):
            if not self._dependencies_met(subtask):
                pending = [d for d in subtask.dependencies
                           if self.subtasks[d].status != SubtaskStatus.COMPLETED]
                raise ValidationError(
                    f"Subtask {subtask_id} is blocked on dependencies: {pending}"
                )

        now = now if now is not None else time.time()
        if new_status in _STARTED and subtask.started_at is None:
            subtask.started_at = now
        if new_status in _FINAL:
            subtask.finished_at = now
        if new_status == SubtaskStatus.COMPLETED:
            progress = 1.0
        if progress is not None:
            subtask.progress = progress
        if result is not None:
            subtask.result = result
        subtask.status = new_status

        self._roll_up(now)
        return subtask

    def to_dict(self) -> dict[str, Any]:
        return {
            "id": self.id,
            "title": self.title,
            "description": self.description,
            "status": self.status.value,
            "progress": self.progress,
            "result": self.result,
            "subtasks": [s.to_dict() for s in self.subtasks.values()],
            "created_at": self.created_at,
            "started_at": self.started_at,
            "completed_at": self.completed_at,
            "estimated_duration": self.estimated_duration,
            "actual_duration": self.actual_duration,
        }

    # ── Internal ─────────────────────────────────────────────────────

    def _dependencies_met(self, subtask: Subtask) -> bool:
        return all(
            self.subtasks[d].status == SubtaskStatus.COMPLETED for d in subtask.dependencies
        )

    def _roll_up(self, now: float) -> None:
        subtasks = list(self.subtasks.values())
        self.progress = sum(s.progress for s in subtasks) / len(subtasks)

        if any(s.status == SubtaskStatus.FAILED for s in subtasks):
            self.status = TaskStatus.FAILED
            self.completed_at = now
        elif all(s.status == SubtaskStatus.COMPLETED for s in subtasks):
            self.status = TaskStatus.COMPLETED
            self.completed_at = now
        elif any(s.status in _STARTED for s in subtasks):
            self.status = TaskStatus.EXECUTING

        if self.status != TaskStatus.FORMING and self.started_at is None:
            self.started_at = now

def validate_subtasks(subtasks: Iterable[Subtask], participants: Iterable[str]) -> None:
    """Ensure unique ids, participant assignees, known dependencies and no cycles."""
    subtasks = list(subtasks)
    if not subtasks:
        raise ValidationError("A collaboration task needs at least one subtask")

    members = set(participants)
    by_id: dict[str, Subtask] = {}
    for s in subtasks:
        if not s.id:
            raise ValidationError("Subtasks need an id")
        if s.id in by_id:
            raise ValidationError(f"Duplicate subtask id: {s.id}")
        if s.assigned_agent not in members:
            raise ValidationError(
                f"Subtask '{s.id}' is assigned to non-participant {s.assigned_agent}"
            )
        by_id[s.id] = s

    for s in subtasks:
        unknown = set(s.dependencies) - by_id.keys()
        if unknown:
            raise ValidationError(f"Subtask '{s.id}' depends on unknown subtasks: {unknown}")

    # Topological cycle check (Kahn's algorithm)
    in_deg = {s.id: len(set(s.dependencies)) for s in subtasks}
    adj: dict[str, list[str]] = {s.id: [] for s in subtasks}
    for s in subtasks:
        for dep in set(s.dependencies):
            adj[dep].append(s.id)
    queue = [n for n, d in in_deg.items() if d == 0]
    visited = 0
    while queue:
        node = queue.pop(0)
        visited += 1
        for child in adj[node]:
            in_deg[child] -= 1
            if in_deg[child] == 0:
                queue.append(child)

    if visited != len(subtasks):
        raise ValidationError("Subtask dependencies contain a cycle")

def build_task(
    task_id: str,
    title: str,
    subtasks: Iterable[Subtask],
    participants: Iterable[str],
    *,
    description: str = "",
    estimated_duration: float | None = None,
    now: float | None = None,
) -> CollaborationTask:
    """Validate ``subtasks`` against ``participants`` and assemble a task."""
    subtasks = list(subtasks)
    validate_subtasks(subtasks, participants)
    for s in subtasks:
        s.dependencies = tuple(s.dependencies)
    return CollaborationTask(
        id=task_id,
        title=title,
        description=description,
        subtasks={s.id: s for s in subtasks},
        estimated_duration=estimated_duration,
        created_at=now if now is not None else time.time(),
    )
