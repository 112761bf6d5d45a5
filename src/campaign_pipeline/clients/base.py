"""Shared types and exceptions for agent endpoint clients."""

from __future__ import annotations

from dataclasses import dataclass, field
from enum import Enum
from typing import Any, Dict, Optional, Protocol


class PipelineException(Exception):
    """Base exception for the campaign pipeline."""


class TaskError(PipelineException):
    """An agent call failed. Scoped to the single agent that raised it."""

    kind = "task"

    def __init__(self, message: str, status_code: Optional[int] = None) -> None:
        super().__init__(message)
        self.message = message
        self.status_code = status_code


class TransportError(TaskError):
    """Connection could not be established, dropped mid-stream, or timed out."""

    kind = "transport"


class ProtocolError(TaskError):
    """A frame or response body could not be decoded into the expected shape."""

    kind = "protocol"


class UpstreamError(TaskError):
    """The remote endpoint explicitly reported a failure."""

    kind = "upstream"


class PersistenceError(PipelineException):
    """The end-of-run aggregate write failed."""


class RunCancelledError(PipelineException):
    """The whole run was cancelled before completion."""


class EventType(str, Enum):
    PROGRESS = "PROGRESS"
    STREAMING_URL = "STREAMING_URL"
    COMPLETE = "COMPLETE"
    ERROR = "ERROR"


@dataclass(frozen=True)
class StreamEvent:
    """One decoded data frame from a streaming endpoint."""

    type: EventType
    message: Optional[str] = None
    url: Optional[str] = None
    data: Dict[str, Any] = field(default_factory=dict)

    @property
    def is_terminal(self) -> bool:
        return self.type in (EventType.COMPLETE, EventType.ERROR)


@dataclass(frozen=True)
class CallResult:
    """Outcome of a unary call: a parsed payload or a structured failure."""

    payload: Optional[Dict[str, Any]] = None
    error: Optional[TaskError] = None
    status_code: Optional[int] = None
    latency_ms: Optional[int] = None

    @property
    def succeeded(self) -> bool:
        return self.error is None

    @classmethod
    def success(cls, payload: Dict[str, Any], status_code: Optional[int] = None, latency_ms: Optional[int] = None) -> "CallResult":
        return cls(payload=payload, status_code=status_code, latency_ms=latency_ms)

    @classmethod
    def failure(cls, error: TaskError, latency_ms: Optional[int] = None) -> "CallResult":
        return cls(error=error, status_code=error.status_code, latency_ms=latency_ms)


class UnaryClient(Protocol):
    """Anything that can perform a single request/response agent call."""

    async def call(
        self,
        endpoint: str,
        payload: Dict[str, Any],
        timeout: Optional[float] = None,
    ) -> CallResult:
        ...
