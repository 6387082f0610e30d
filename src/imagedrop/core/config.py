#!/usr/bin/env python3
"""
IMAGEDROP CONFIG
----------------
Settings are resolved once at process start from the environment and then
passed explicitly into every component as an immutable value.

Author: ImageDrop Team
Date: 2026-10-19
"""

import os
from dataclasses import dataclass, replace
from pathlib import Path
from typing import Mapping, Optional

from imagedrop.core.errors import ConfigError

DEFAULT_WATCH_DIR = "pgGo/storage"
DEFAULT_LOG_DIR = "pgGo/log"
DEFAULT_MANIFEST = "docker-compose.yml"
DEFAULT_COMPOSE_COMMAND = "docker-compose"

_TRUTHY = {"1", "true", "yes", "on"}
_FALSY = {"0", "false", "no", "off", ""}


@dataclass(frozen=True)
class AgentConfig:
    """
    Immutable agent settings.

    Environment variables (with defaults):
        WATCH_DIR            directory tree watched for image archives
        LOG_DIR              directory holding history.log
        DOCKER_COMPOSE_FILE  compose manifest patched on every deployment
        COMPOSE_COMMAND      compose CLI ('docker-compose' or 'docker compose')
        IMAGEDROP_DRY_RUN    log runtime commands instead of executing them
        IMAGEDROP_WORKERS    0 runs pipelines inline on the event loop
    """
    watch_dir: Path = Path(DEFAULT_WATCH_DIR)
    log_dir: Path = Path(DEFAULT_LOG_DIR)
    manifest_path: Path = Path(DEFAULT_MANIFEST)
    compose_command: str = DEFAULT_COMPOSE_COMMAND
    dry_run: bool = False
    workers: int = 0
    poll_interval: float = 0.5

    @property
    def history_log(self) -> Path:
        return self.log_dir / "history.log"

    @classmethod
    def from_env(cls, environ: Optional[Mapping[str, str]] = None) -> "AgentConfig":
        env = os.environ if environ is None else environ
        return cls(
            watch_dir=Path(env.get("WATCH_DIR", DEFAULT_WATCH_DIR)),
            log_dir=Path(env.get("LOG_DIR", DEFAULT_LOG_DIR)),
            manifest_path=Path(env.get("DOCKER_COMPOSE_FILE", DEFAULT_MANIFEST)),
            compose_command=env.get("COMPOSE_COMMAND", DEFAULT_COMPOSE_COMMAND),
            dry_run=_parse_bool("IMAGEDROP_DRY_RUN", env.get("IMAGEDROP_DRY_RUN", "")),
            workers=_parse_workers(env.get("IMAGEDROP_WORKERS", "0")),
        )

    def with_overrides(self, **overrides) -> "AgentConfig":
        """Returns a copy with every non-None override applied (CLI flags)."""
        changes = {k: v for k, v in overrides.items() if v is not None}
        for key in ("watch_dir", "log_dir", "manifest_path"):
            if key in changes:
                changes[key] = Path(changes[key])
        if "workers" in changes:
            changes["workers"] = _parse_workers(str(changes["workers"]))
        return replace(self, **changes)


def _parse_bool(name: str, raw: str) -> bool:
    value = raw.strip().lower()
    if value in _TRUTHY:
        return True
    if value in _FALSY:
        return False
    raise ConfigError(f"{name} must be a boolean, got '{raw}'")


def _parse_workers(raw: str) -> int:
    try:
        workers = int(raw)
    except ValueError:
        raise ConfigError(f"IMAGEDROP_WORKERS must be an integer, got '{raw}'")
    if workers < 0:
        raise ConfigError(f"IMAGEDROP_WORKERS cannot be negative, got {workers}")
    return workers
