"""Configuration loader (global + project TOML with environment overrides)."""

from __future__ import annotations

import os
import platform
import tomllib
from pathlib import Path
from typing import Any, Dict, Optional

APP_NAME = "campaign-pipeline"
ENV_PREFIX = "CAMPAIGN_PIPELINE_"

_TRUE = {"1", "true", "yes", "on"}
_FALSE = {"0", "false", "no", "off", ""}

DEFAULT_CONFIG_TOML = """\
[general]
version = "1.0.0"

[endpoints]
base_url = "http://localhost:3000"
api_key = ""
connect_timeout_seconds = 10.0

[pipeline]
# 0 disables the per-agent timeout
default_timeout_seconds = 120.0
location = "United States"
country = "US"
fake_delay_seconds = 1.0

[storage]
# empty: <config dir>/runs
runs_dir = ""

# Agents without a live endpoint yet answer from canned data.
[agents.planner]
fake = true

[agents.launch]
fake = true

[agents.deployer]
fake = true

[agents.reporter]
fake = true
"""


class ConfigLoader:
    """
    Resolves settings from several sources.

    Priority (highest first):
    1. Environment variables (CAMPAIGN_PIPELINE_SECTION__KEY, ``__`` nests)
    2. Project config (.campaign-pipeline/config.toml, searched upward)
    3. Global config ($XDG_CONFIG_HOME/campaign-pipeline/config.toml)
    4. Built-in defaults

    Command-line flags are applied by the caller on top of this.
    """

    def __init__(
        self,
        global_dir: Optional[Path] = None,
        project_dir: Optional[Path] = None,
        create_defaults: bool = True,
    ) -> None:
        self.global_dir = Path(global_dir) if global_dir else self.get_global_config_dir()
        self.project_dir = Path(project_dir) if project_dir else self.get_project_config_dir()
        self.create_defaults = create_defaults

        self.config: Dict[str, Any] = tomllib.loads(DEFAULT_CONFIG_TOML)
        self._load()

    def get(self, key: str, default: Any = None) -> Any:
        """Get config value by dot-separated key."""
        node: Any = self.config
        for part in key.split("."):
            if not isinstance(node, dict):
                return default
            node = node.get(part)
        return default if node is None else node

    def get_bool(self, key: str, default: bool = False) -> bool:
        value = self.get(key)
        if value is None:
            return default
        if isinstance(value, bool):
            return value
        text = str(value).strip().lower()
        if text in _TRUE:
            return True
        if text in _FALSE:
            return False
        raise ValueError(f"Config value {key}={value!r} is not a boolean")

    def get_float(self, key: str, default: Optional[float] = None) -> Optional[float]:
        value = self.get(key)
        if value is None:
            return default
        try:
            return float(value)
        except (TypeError, ValueError) as exc:
            raise ValueError(f"Config value {key}={value!r} is not a number") from exc

    @property
    def runs_dir(self) -> Path:
        configured = self.get("storage.runs_dir")
        return Path(configured).expanduser() if configured else self.global_dir / "runs"

    def agent_timeout(self, agent_id: str, agent_default: Optional[float] = None) -> Optional[float]:
        """Per-agent timeout; ``0`` means no timeout."""
        timeout = self.get_float(f"agents.{agent_id}.timeout_seconds", agent_default)
        if timeout is None:
            timeout = self.get_float("pipeline.default_timeout_seconds")
        return timeout or None

    # ------------------------------------------------------------------ #
    # Loading
    # ------------------------------------------------------------------ #
    def _load(self) -> None:
        global_file = self.global_dir / "config.toml"
        if global_file.exists():
            _merge(self.config, _read_toml(global_file))
        elif self.create_defaults:
            self.global_dir.mkdir(parents=True, exist_ok=True)
            global_file.write_text(DEFAULT_CONFIG_TOML, encoding="utf-8")

        if self.project_dir:
            project_file = self.project_dir / "config.toml"
            if project_file.exists():
                _merge(self.config, _read_toml(project_file))

        for name, value in os.environ.items():
            if name.startswith(ENV_PREFIX):
                path = name[len(ENV_PREFIX) :].lower().replace("__", ".")
                _set_nested(self.config, path, value)

    @staticmethod
    def get_global_config_dir() -> Path:
        """Platform config directory (XDG on Linux/macOS, APPDATA on Windows)."""
        if platform.system() == "Windows":
            base = Path(os.environ.get("APPDATA", "~\\AppData\\Roaming")).expanduser()
        else:
            base = Path(os.environ.get("XDG_CONFIG_HOME", "~/.config")).expanduser()
        return base / APP_NAME

    @staticmethod
    def get_project_config_dir() -> Optional[Path]:
        """Nearest ``.campaign-pipeline`` directory at or above the cwd."""
        cwd = Path.cwd()
        for directory in (cwd, *cwd.parents):
            candidate = directory / f".{APP_NAME}"
            if candidate.is_dir():
                return candidate
        return None


def _read_toml(path: Path) -> Dict[str, Any]:
    with path.open("rb") as fp:
        return tomllib.load(fp)


def _merge(base: Dict[str, Any], override: Dict[str, Any]) -> None:
    for key, value in override.items():
        if isinstance(base.get(key), dict) and isinstance(value, dict):
            _merge(base[key], value)
        else:
            base[key] = value


def _set_nested(tree: Dict[str, Any], path: str, value: Any) -> None:
    *parents, leaf = path.split(".")
    for key in parents:
        node = tree.get(key)
        if not isinstance(node, dict):
            node = tree[key] = {}
        tree = node
    tree[leaf] = value


Config = ConfigLoader

__all__ = ["ConfigLoader", "Config", "DEFAULT_CONFIG_TOML"]
