"""
Collaboration Tasks — Unit Tests
================================

Subtask validation (assignees, dependencies, cycles) and progress roll-up.
"""

import pytest

from agentmesh.collaboration.tasks import Subtask, build_task, validate_subtasks
from agentmesh.core.exceptions import ValidationError
from agentmesh.core.types import SubtaskStatus, TaskStatus

PARTICIPANTS = ("A", "B", "C")


def subtask(sid, agent="A", deps=()):
    return Subtask(id=sid, title=sid.title(), assigned_agent=agent, dependencies=deps)


@pytest.fixture
def pipeline():
    """collect → (clean, enrich) → report"""
    return build_task(
        "task-1",
        "Quarterly report",
        [
            subtask("collect", "A"),
            subtask("clean", "B", ("collect",)),
            subtask("enrich", "C", ("collect",)),
            subtask("report", "A", ["clean", "enrich"]),
        ],
        PARTICIPANTS,
        now=0.0,
    )


class TestValidation:

    def test_valid_dag(self, pipeline):
        assert pipeline.status == TaskStatus.FORMING
        assert pipeline.subtasks["report"].dependencies == ("clean", "enrich")
        assert [s.id for s in pipeline.ready_subtasks()] == ["collect"]

    @pytest.mark.parametrize("subtasks", [
        [],
        [subtask("")],
        [subtask("a"), subtask("a")],
        [subtask("a", agent="Z")],
        [subtask("a", deps=("ghost",))],
        [subtask("a", deps=("b",)), subtask("b", deps=("a",))],
        [subtask("a", deps=("a",))],
    ], ids=["empty", "no-id", "duplicate", "non-participant", "unknown-dep",
            "cycle", "self-loop"])
    def test_rejected(self, subtasks):
        with pytest.raises(ValidationError):
            validate_subtasks(subtasks, PARTICIPANTS)

    def test_cycle_message(self):
        with pytest.raises(ValidationError, match="cycle"):
            validate_subtasks(
                [subtask("a", deps=("c",)), subtask("b", deps=("a",)), subtask("c", deps=("b",))],
                PARTICIPANTS,
            )


class TestProgress:

    def test_blocked_subtask_cannot_start(self, pipeline):
        with pytest.raises(ValidationError, match="blocked"):
            pipeline.update_subtask("clean", progress=0.2)
        with pytest.raises(ValidationError):
            pipeline.update_subtask("report", status=SubtaskStatus.COMPLETED)
        assert pipeline.subtasks["clean"].status == SubtaskStatus.ASSIGNED
        assert pipeline.progress == 0.0

    def test_roll_up(self, pipeline):
        pipeline.update_subtask("collect", progress=0.4, now=1.0)
        assert pipeline.subtasks["collect"].status == SubtaskStatus.IN_PROGRESS
        assert pipeline.status == TaskStatus.EXECUTING
        assert pipeline.started_at == 1.0
        assert pipeline.progress == pytest.approx(0.1)

        pipeline.update_subtask("collect", status="completed", result={"rows": 10}, now=3.0)
        collect = pipeline.subtasks["collect"]
        assert collect.progress == 1.0
        assert collect.actual_duration == 2.0
        assert collect.result == {"rows": 10}
        assert {s.id for s in pipeline.ready_subtasks()} == {"clean", "enrich"}

        for sid in ("clean", "enrich", "report"):
            pipeline.update_subtask(sid, status=SubtaskStatus.COMPLETED, now=10.0)
        assert pipeline.status == TaskStatus.COMPLETED
        assert pipeline.progress == 1.0
        assert pipeline.actual_duration == 9.0

    def test_failure_is_final_and_fails_task(self, pipeline):
        pipeline.update_subtask("collect", status=SubtaskStatus.FAILED)
        assert pipeline.status == TaskStatus.FAILED
        with pytest.raises(ValidationError):
            pipeline.update_subtask("collect", progress=0.5)

    @pytest.mark.parametrize("progress", [-0.1, 1.01])
    def test_progress_range(self, pipeline, progress):
        with pytest.raises(ValidationError):
            pipeline.update_subtask("collect", progress=progress)

    def test_unknown_subtask(self, pipeline):
        with pytest.raises(ValidationError):
            pipeline.update_subtask("publish", progress=0.1)

    def test_to_dict(self, pipeline):
        data = pipeline.to_dict()
        assert data["status"] == "forming"
        assert [s["id"] for s in data["subtasks"]] == ["collect", "clean", "enrich", "report"]
        assert data["subtasks"][3]["dependencies"] == ["clean", "enrich"]
