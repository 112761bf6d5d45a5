"""Agent endpoint clients."""

from .base import (
    CallResult,
    EventType,
    PersistenceError,
    PipelineException,
    ProtocolError,
    RunCancelledError,
    StreamEvent,
    TaskError,
    TransportError,
    UnaryClient,
    UpstreamError,
)
from .frames import EventFrameDecoder, aiter_events, iter_events
from .router import ClientRouter
from .streaming import StreamingTaskClient
from .unary import FakeUnaryTaskClient, UnaryTaskClient

__all__ = [
    "CallResult",
    "ClientRouter",
    "EventFrameDecoder",
    "EventType",
    "FakeUnaryTaskClient",
    "PersistenceError",
    "PipelineException",
    "ProtocolError",
    "RunCancelledError",
    "StreamEvent",
    "StreamingTaskClient",
    "TaskError",
    "TransportError",
    "UnaryClient",
    "UnaryTaskClient",
    "UpstreamError",
    "aiter_events",
    "iter_events",
]
