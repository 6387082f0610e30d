"""Shared fakes and fixtures for the ImageDrop suite."""

import os
from pathlib import Path
from typing import Callable, Dict, List, Optional

import pytest

from imagedrop.core.config import AgentConfig
from imagedrop.manifest.store import ManifestStore
from imagedrop.watching.backend import WatchBackend

COMPOSE_YAML = """\
# Production stack
services:
  cache-main:
    image: cache:2.0
    container_name: cache
    hostname: cache-host
    networks:
      - backend
    environment:
      - CACHE_SIZE=512
    volumes:
      - cache-data:/data
    command: redis-server --appendonly yes
    restart: always
  web-a:
    image: web:1.0
    restart: unless-stopped
  web-b:
    image: "web:1.0"  # pinned by ops
  db:
    image: postgres:15
    environment:
      POSTGRES_PASSWORD: secret
networks:
  backend:
    driver: bridge
    ipam:
      config:
        - subnet: 172.28.0.0/16
volumes:
  cache-data: {}
x-custom:
  anchors: [1, 2, 3]
"""


class FakeBackend(WatchBackend):
    """In-memory backend; registrations recorded, optional per-path hooks."""

    def __init__(self):
        super().__init__()
        self.calls: List[str] = []
        self.released: List[str] = []
        self.failures: Dict[str, OSError] = {}
        self.before_register: Optional[Callable[[str], None]] = None
        self.alive = False

    def register(self, path: str) -> None:
        if self.before_register is not None:
            self.before_register(path)
        self.calls.append(path)
        if path in self.failures:
            raise self.failures[path]
        if not os.path.isdir(path):
            raise FileNotFoundError(path)

    def release(self, paths) -> None:
        self.released.extend(paths)

    def start(self) -> None:
        self.alive = True

    def stop(self) -> None:
        self.alive = False

    def is_alive(self) -> bool:
        return self.alive


class FakeRuntime:
    """Records every runtime call; results are configurable per operation."""

    def __init__(self, load_ok: bool = True, pull_ok: bool = True,
                 recreate_ok: bool = True, prune_ok: bool = True):
        self.results = {"load": load_ok, "pull": pull_ok, "recreate": recreate_ok, "prune": prune_ok}
        self.calls: List[tuple] = []

    def load(self, archive_path) -> bool:
        self.calls.append(("load", str(archive_path)))
        return self.results["load"]

    def pull(self, manifest_path) -> bool:
        self.calls.append(("pull", str(manifest_path)))
        return self.results["pull"]

    def recreate(self, manifest_path) -> bool:
        self.calls.append(("recreate", str(manifest_path)))
        return self.results["recreate"]

    def prune_images(self) -> bool:
        self.calls.append(("prune",))
        return self.results["prune"]

    @property
    def operations(self) -> List[str]:
        return [call[0] for call in self.calls]


@pytest.fixture
def manifest_path(tmp_path: Path) -> Path:
    path = tmp_path / "docker-compose.yml"
    path.write_text(COMPOSE_YAML, encoding="utf-8")
    return path


@pytest.fixture
def store(manifest_path: Path) -> ManifestStore:
    return ManifestStore(manifest_path)


@pytest.fixture
def config(tmp_path: Path, manifest_path: Path) -> AgentConfig:
    return AgentConfig(
        watch_dir=tmp_path / "storage",
        log_dir=tmp_path / "log",
        manifest_path=manifest_path,
        poll_interval=0.01,
    )


@pytest.fixture
def backend() -> FakeBackend:
    return FakeBackend()


@pytest.fixture
def runtime() -> FakeRuntime:
    return FakeRuntime()
