"""Orchestration components."""

from .activity import ActivityCategory, ActivityEntry, ActivityLog
from .agents import (
    DEFAULT_AGENTS,
    AgentContext,
    AgentDefinition,
    ExecutionKind,
    PipelineDefinition,
    PipelineDefinitionError,
    default_pipeline,
)
from .orchestrator import PipelineOrchestrator, PipelineStateError, build_orchestrator
from .results import AgentResult, UnknownResult, decode_result
from .task import ErrorDetail, InvalidTransitionError, TaskState, TaskStatus

__all__ = [
    "ActivityCategory",
    "ActivityEntry",
    "ActivityLog",
    "AgentContext",
    "AgentDefinition",
    "AgentResult",
    "DEFAULT_AGENTS",
    "ErrorDetail",
    "ExecutionKind",
    "InvalidTransitionError",
    "PipelineDefinition",
    "PipelineDefinitionError",
    "PipelineOrchestrator",
    "PipelineStateError",
    "TaskState",
    "TaskStatus",
    "UnknownResult",
    "build_orchestrator",
    "decode_result",
]
