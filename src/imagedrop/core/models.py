#!/usr/bin/env python3
"""
IMAGEDROP CORE MODELS
---------------------
Defines the fundamental data structures passed between the watcher,
the classifier, the manifest store and the deployment pipeline.

Author: ImageDrop Team
Date: 2026-10-19
"""

from dataclasses import dataclass, field
from enum import Enum
from typing import Any, Dict, List, Optional, Union


@dataclass(frozen=True)
class ArtifactIdentity:
    """
    Logical name and version tag parsed from an archive name.

    'cache-2.1.tar' -> ArtifactIdentity(name='cache', version='2.1')
    """
    name: str
    version: str

    @property
    def reference(self) -> str:
        """The image reference written into the manifest ('name:version')."""
        return f"{self.name}:{self.version}"


# --- Raw notifications (watch backend -> supervisor) ---

class Op(Enum):
    CREATE = "create"
    WRITE = "write"
    REMOVE = "remove"
    RENAME = "rename"
    OTHER = "other"


@dataclass(frozen=True)
class RawEvent:
    """A single (path, operation) notification from the watch backend."""
    path: str
    op: Op


@dataclass(frozen=True)
class WatchError:
    """An item on the backend's error stream."""
    message: str
    path: Optional[str] = None


# --- Semantic events (classifier output) ---

@dataclass(frozen=True)
class ArtifactArrived:
    path: str
    identity: ArtifactIdentity


@dataclass(frozen=True)
class DirectoryAppeared:
    path: str


@dataclass(frozen=True)
class PathRemoved:
    path: str


@dataclass(frozen=True)
class PathRenamed:
    """The moved-from half of a rename; the destination arrives as its own event."""
    path: str


@dataclass(frozen=True)
class Ignored:
    path: str
    reason: str


SemanticEvent = Union[ArtifactArrived, DirectoryAppeared, PathRemoved, PathRenamed, Ignored]


# --- Watch registration ---

@dataclass
class RegistrationResult:
    """Outcome of one recursive registration walk."""
    root: str
    registered: List[str] = field(default_factory=list)
    skipped: List[str] = field(default_factory=list)   # vanished before we got there
    failed: Dict[str, str] = field(default_factory=dict)  # path -> error text

    @property
    def ok(self) -> bool:
        return not self.failed


# --- Manifest ---

@dataclass
class ServiceEntry:
    """
    Read-only snapshot of one compose service.

    The live document is never rebuilt from this snapshot; the store patches
    the underlying node in place. Keys the snapshot does not name land in
    'extra'.
    """
    name: str
    image: Optional[str] = None
    container_name: Optional[str] = None
    hostname: Optional[str] = None
    networks: Any = None
    environment: Any = None
    volumes: Any = None
    command: Any = None
    restart: Optional[str] = None
    extra: Dict[str, Any] = field(default_factory=dict)


@dataclass(frozen=True)
class PatchOutcome:
    matched: List[str]
    changed: bool


# --- Pipeline runs ---

class RunState(Enum):
    DETECTED = "detected"
    LOADING = "loading"
    PATCHING = "patching"
    REDEPLOYING = "redeploying"
    DONE = "done"
    FAILED = "failed"


@dataclass
class StepOutcome:
    step: str
    ok: bool
    detail: str = ""


@dataclass
class PipelineRun:
    """One execution of the redeploy sequence for a single archive."""
    artifact_path: str
    identity: Optional[ArtifactIdentity] = None
    state: RunState = RunState.DETECTED
    steps: List[StepOutcome] = field(default_factory=list)

    def record(self, step: str, ok: bool, detail: str = "") -> StepOutcome:
        outcome = StepOutcome(step=step, ok=ok, detail=detail)
        self.steps.append(outcome)
        return outcome

    @property
    def succeeded(self) -> bool:
        return self.state is RunState.DONE

    @property
    def failed_step(self) -> Optional[str]:
        if self.state is not RunState.FAILED:
            return None
        for outcome in reversed(self.steps):
            if not outcome.ok:
                return outcome.step
        return None
