"""JSON-lines run logger."""

from __future__ import annotations

from datetime import datetime, timezone
from pathlib import Path
from typing import Any, Dict, Optional

from ..state.persistence import Persistence


class RunLogger:
    """Writes run and agent lifecycle events to ``<runs_dir>/logs/<run_id>.log``."""

    def __init__(self, runs_dir: Path) -> None:
        self.logs_dir = Path(runs_dir).expanduser() / "logs"
        self.run_id: Optional[str] = None

    @property
    def path(self) -> Optional[Path]:
        return self.logs_dir / f"{self.run_id}.log" if self.run_id else None

    def _write(self, payload: Dict[str, Any]) -> None:
        if self.path is None:
            return
        entry = {"timestamp": datetime.now(timezone.utc).isoformat(), "run_id": self.run_id, **payload}
        Persistence.append_line(self.path, entry)

    def log_run_start(self, run_id: str, target: str) -> None:
        self.run_id = run_id
        self._write({"event": "run_start", "input": target})

    def log_agent_start(self, agent_id: str, endpoint: str) -> None:
        self._write({"event": "agent_start", "agent_id": agent_id, "endpoint": endpoint})

    def log_agent_complete(self, agent_id: str, duration_ms: Optional[int]) -> None:
        self._write({"event": "agent_complete", "agent_id": agent_id, "duration_ms": duration_ms})

    def log_agent_failed(self, agent_id: str, kind: str, reason: str) -> None:
        self._write({"event": "agent_failed", "agent_id": agent_id, "kind": kind, "reason": reason})

    def log_run_complete(self, statuses: Dict[str, str]) -> None:
        self._write({"event": "run_complete", "statuses": statuses})

    def log_persist_failed(self, reason: str) -> None:
        self._write({"event": "persist_failed", "reason": reason})
