"""Run storage."""

from .persistence import Persistence
from .runs import InMemoryRunStore, JsonRunStore, ResultPersister, RunResult, RunStore

__all__ = ["Persistence", "InMemoryRunStore", "JsonRunStore", "ResultPersister", "RunResult", "RunStore"]
