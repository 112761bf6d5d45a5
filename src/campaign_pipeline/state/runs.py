"""Run results and the end-of-run persistence path."""

from __future__ import annotations

from dataclasses import dataclass, field
from datetime import datetime
from pathlib import Path
from typing import Any, Dict, List, Optional, Protocol, Set

from ..clients.base import PersistenceError
from .persistence import Persistence


@dataclass(frozen=True)
class RunResult:
    """Aggregate outcome of one run. Created once, after every agent is terminal."""

    run_id: str
    input: str
    results: Dict[str, Optional[Dict[str, Any]]]
    started_at: datetime
    completed_at: datetime
    statuses: Dict[str, str] = field(default_factory=dict)
    errors: Dict[str, Dict[str, Any]] = field(default_factory=dict)

    def to_dict(self) -> Dict[str, Any]:
        return {
            "run_id": self.run_id,
            "input": self.input,
            "results": self.results,
            "statuses": self.statuses,
            "errors": self.errors,
            "started_at": self.started_at.isoformat(),
            "completed_at": self.completed_at.isoformat(),
        }

    @staticmethod
    def from_dict(data: Dict[str, Any]) -> "RunResult":
        return RunResult(
            run_id=data["run_id"],
            input=data.get("input", ""),
            results=dict(data.get("results") or {}),
            statuses=dict(data.get("statuses") or {}),
            errors=dict(data.get("errors") or {}),
            started_at=datetime.fromisoformat(data["started_at"]),
            completed_at=datetime.fromisoformat(data["completed_at"]),
        )


class RunStore(Protocol):
    """Where run results end up. ``save`` returns the persisted id or raises."""

    def save(self, run: RunResult) -> str:
        ...


class InMemoryRunStore:
    """Run store for tests and offline runs."""

    def __init__(self) -> None:
        self.runs: Dict[str, RunResult] = {}
        self.save_calls = 0

    def save(self, run: RunResult) -> str:
        self.save_calls += 1
        if run.run_id in self.runs:
            raise FileExistsError(run.run_id)
        self.runs[run.run_id] = run
        return run.run_id

    def load(self, run_id: str) -> Optional[RunResult]:
        return self.runs.get(run_id)


class JsonRunStore:
    """One JSON document per run under ``runs_dir``; never overwrites a stored run."""

    def __init__(self, runs_dir: Path) -> None:
        self.runs_dir = Path(runs_dir).expanduser()

    def path_for(self, run_id: str) -> Path:
        return self.runs_dir / f"{run_id}.json"

    def save(self, run: RunResult) -> str:
        Persistence.save_json(self.path_for(run.run_id), run.to_dict(), overwrite=False)
        return run.run_id

    def load(self, run_id: str) -> Optional[RunResult]:
        data = Persistence.load_json(self.path_for(run_id))
        if not data:
            return None
        try:
            return RunResult.from_dict(data)
        except (KeyError, ValueError):
            return None

    def list_runs(self) -> List[str]:
        """Stored run ids, newest first."""
        if not self.runs_dir.exists():
            return []
        files = sorted(self.runs_dir.glob("*.json"), key=lambda p: p.stat().st_mtime, reverse=True)
        return [path.stem for path in files]


class ResultPersister:
    """
    Writes a run's aggregate result at most once.

    A second call for a run id that was already persisted returns the stored
    id without touching the store. Store failures surface as
    :class:`PersistenceError`.
    """

    def __init__(self, store: RunStore) -> None:
        self.store = store
        self._persisted: Dict[str, str] = {}
        self._in_flight: Set[str] = set()

    def is_persisted(self, run_id: str) -> bool:
        return run_id in self._persisted

    def persist(self, run: RunResult) -> str:
        if run.run_id in self._persisted:
            return self._persisted[run.run_id]
        if run.run_id in self._in_flight:
            raise PersistenceError(f"Run {run.run_id} is already being persisted")

        self._in_flight.add(run.run_id)
        try:
            persisted_id = self.store.save(run)
        except Exception as exc:
            raise PersistenceError(f"Failed to persist run {run.run_id}: {exc}") from exc
        finally:
            self._in_flight.discard(run.run_id)

        self._persisted[run.run_id] = persisted_id
        return persisted_id
