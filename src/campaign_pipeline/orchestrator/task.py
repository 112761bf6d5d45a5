"""Per-agent lifecycle state for one run."""

from __future__ import annotations

from dataclasses import dataclass
from datetime import datetime, timezone
from enum import Enum
from typing import Any, Dict, Optional

from ..clients.base import PipelineException, TaskError
from .results import AgentResult


class InvalidTransitionError(PipelineException):
    """A TaskState was asked to move backwards or leave a terminal state."""


class TaskStatus(str, Enum):
    IDLE = "idle"
    WORKING = "working"
    DONE = "done"
    ERROR = "error"

    @property
    def is_terminal(self) -> bool:
        return self in (TaskStatus.DONE, TaskStatus.ERROR)


@dataclass(frozen=True)
class ErrorDetail:
    kind: str
    message: str
    status_code: Optional[int] = None

    @classmethod
    def from_exception(cls, exc: BaseException) -> "ErrorDetail":
        if isinstance(exc, TaskError):
            return cls(kind=exc.kind, message=exc.message, status_code=exc.status_code)
        # Anything else escaping an agent call is treated as a dropped call.
        return cls(kind="transport", message=f"{type(exc).__name__}: {exc}")

    def to_dict(self) -> Dict[str, Any]:
        return {"kind": self.kind, "message": self.message, "status_code": self.status_code}


def _utcnow() -> datetime:
    return datetime.now(timezone.utc)


class TaskState:
    """
    Mutable lifecycle record for one agent in one run.

    Status only moves forward: idle -> working -> done | error. Once
    terminal, the state is frozen for the rest of the run.
    """

    def __init__(self, agent_id: str) -> None:
        self.agent_id = agent_id
        self.status = TaskStatus.IDLE
        self.last_message = ""
        self.result: Optional[AgentResult] = None
        self.error_detail: Optional[ErrorDetail] = None
        self.started_at: Optional[datetime] = None
        self.finished_at: Optional[datetime] = None

    @property
    def is_terminal(self) -> bool:
        return self.status.is_terminal

    @property
    def duration_ms(self) -> Optional[int]:
        if not self.started_at or not self.finished_at:
            return None
        return int((self.finished_at - self.started_at).total_seconds() * 1000)

    def mark_working(self) -> None:
        self._require(TaskStatus.IDLE, "start")
        self.status = TaskStatus.WORKING
        self.started_at = _utcnow()

    def set_message(self, message: str) -> None:
        self._require(TaskStatus.WORKING, "report progress")
        self.last_message = message

    def mark_done(self, result: AgentResult, message: Optional[str] = None) -> None:
        self._require(TaskStatus.WORKING, "finish")
        self.status = TaskStatus.DONE
        self.result = result
        self.finished_at = _utcnow()
        if message is not None:
            self.last_message = message

    def mark_error(self, detail: ErrorDetail) -> None:
        self._require(TaskStatus.WORKING, "fail")
        self.status = TaskStatus.ERROR
        self.error_detail = detail
        self.finished_at = _utcnow()
        self.last_message = f"Error: {detail.message}"

    def _require(self, expected: TaskStatus, action: str) -> None:
        if self.status != expected:
            raise InvalidTransitionError(
                f"Cannot {action} agent '{self.agent_id}' while {self.status.value}"
            )

    def to_dict(self) -> Dict[str, Any]:
        return {
            "id": self.agent_id,
            "status": self.status.value,
            "last_message": self.last_message,
            "result": self.result.to_dict() if self.result else None,
            "error": self.error_detail.to_dict() if self.error_detail else None,
            "started_at": self.started_at.isoformat() if self.started_at else None,
            "finished_at": self.finished_at.isoformat() if self.finished_at else None,
            "duration_ms": self.duration_ms,
        }
