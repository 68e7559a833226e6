"""Custom exception classes for AgentMesh.

Includes:
- Base exception carrying an error code and HTTP-style status
- Validation / not-found / capacity errors raised synchronously by operations
- Processing and internal errors captured by the bus and the schedulers
"""

from datetime import UTC, datetime
from typing import Any


class AgentMeshException(Exception):
    """Base exception for all AgentMesh errors."""

    def __init__(
        self, detail: str, status_code: int = 500, error_code: str = "INTERNAL_ERROR"
    ):
        self.detail = detail
        self.status_code = status_code
        self.error_code = error_code
        self.timestamp = datetime.now(UTC).isoformat()
        super().__init__(detail)

    def to_dict(self) -> dict[str, Any]:
        """Convert exception to dictionary for API response."""
        return {
            "error": self.error_code,
            "detail": self.detail,
            "status_code": self.status_code,
            "timestamp": self.timestamp,
        }


class ValidationError(AgentMeshException):
    """Raised when input validation fails. No state is mutated."""

    def __init__(self, detail: str):
        super().__init__(detail=detail, status_code=422, error_code="VALIDATION_ERROR")


class NotFoundError(AgentMeshException):
    """Raised when an agent or collaboration id does not resolve."""

    def __init__(self, detail: str, error_code: str = "NOT_FOUND"):
        super().__init__(detail=detail, status_code=404, error_code=error_code)


class AgentNotFoundError(NotFoundError):
    def __init__(self, agent_id: str):
        self.agent_id = agent_id
        super().__init__(
            detail=f"Agent with ID {agent_id} not found",
            error_code="AGENT_NOT_FOUND",
        )


class CollaborationNotFoundError(NotFoundError):
    def __init__(self, collaboration_id: str):
        self.collaboration_id = collaboration_id
        super().__init__(
            detail=f"Collaboration with ID {collaboration_id} not found",
            error_code="COLLABORATION_NOT_FOUND",
        )


class CapacityError(AgentMeshException):
    """Raised when admission is refused because of load or concurrency limits.

    Not fatal: the caller may retry later or pick another agent.
    """

    def __init__(self, detail: str, resource_id: str | None = None):
        self.resource_id = resource_id
        super().__init__(
            detail=detail, status_code=429, error_code="CAPACITY_EXCEEDED"
        )


class ProcessingError(AgentMeshException):
    """Raised when a scheduled action or message handler fails.

    The bus records it on the action itself; it never escapes the queue.
    """

    def __init__(self, detail: str, action_id: str | None = None,
                 original_error: Exception | None = None):
        self.action_id = action_id
        self.original_error = original_error
        super().__init__(
            detail=f"Processing failed: {detail}",
            status_code=500,
            error_code="PROCESSING_ERROR",
        )

    def to_dict(self) -> dict[str, Any]:
        base = super().to_dict()
        base["action_id"] = self.action_id
        return base


class InternalError(AgentMeshException):
    """Wraps an exception raised inside a periodic callback."""

    def __init__(self, detail: str, task_name: str = "unknown",
                 original_error: Exception | None = None):
        self.task_name = task_name
        self.original_error = original_error
        super().__init__(
            detail=detail, status_code=500, error_code=f"{task_name.upper()}_INTERNAL_ERROR"
        )
