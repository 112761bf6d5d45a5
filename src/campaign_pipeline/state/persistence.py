"""Atomic JSON file helpers used by the run store and logs."""

from __future__ import annotations

import json
import os
import shutil
import tempfile
from datetime import datetime
from pathlib import Path
from typing import Any, Dict


def _encode(value: Any) -> Any:
    if isinstance(value, datetime):
        return value.isoformat()
    if isinstance(value, (set, tuple)):
        return list(value)
    raise TypeError(f"Object of type {type(value).__name__} is not JSON serializable")


class Persistence:
    """Handles atomic JSON file operations."""

    @staticmethod
    def load_json(file_path: Path) -> Dict[str, Any]:
        """Load a JSON object from file; missing or unreadable files give ``{}``."""
        if not file_path.exists():
            return {}

        try:
            with file_path.open("r", encoding="utf-8") as fp:
                data = json.load(fp)
            return data if isinstance(data, dict) else {}
        except (OSError, json.JSONDecodeError):
            return {}

    @staticmethod
    def save_json(file_path: Path, data: Dict[str, Any], *, overwrite: bool = True) -> None:
        """
        Atomically write JSON via a temp file in the same directory.

        With ``overwrite=False`` an existing file is left untouched and
        :class:`FileExistsError` is raised.
        """
        Persistence.ensure_dir(file_path.parent)
        if not overwrite and file_path.exists():
            raise FileExistsError(str(file_path))

        tmp_fd, tmp_path = tempfile.mkstemp(dir=file_path.parent, suffix=".tmp")
        try:
            with os.fdopen(tmp_fd, "w", encoding="utf-8") as fp:
                json.dump(data, fp, indent=2, default=_encode)
                fp.flush()
                os.fsync(fp.fileno())
            shutil.move(tmp_path, file_path)
        finally:
            if os.path.exists(tmp_path):
                os.remove(tmp_path)

    @staticmethod
    def append_line(file_path: Path, data: Dict[str, Any]) -> None:
        """Append one JSON object as a line (JSON-lines logs)."""
        Persistence.ensure_dir(file_path.parent)
        with file_path.open("a", encoding="utf-8") as fp:
            fp.write(json.dumps(data, default=_encode) + "\n")

    @staticmethod
    def ensure_dir(dir_path: Path) -> None:
        """Create directory if it doesn't exist."""
        dir_path.mkdir(parents=True, exist_ok=True)
