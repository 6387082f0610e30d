#!/usr/bin/env python3
"""
IMAGEDROP SUPERVISOR - The Event Loop
-------------------------------------
Owns the watch backend and runs the single event loop worker:

    raw notification -> EventClassifier -> WatchTree (structural events)
                                        -> dispatcher (artifact arrivals)

One item is handled at a time. A shutdown signal sets a stop flag; the
loop exits once the item in progress (including a pipeline run) is done.

Author: ImageDrop Team
Date: 2026-10-19
"""

import logging
import signal
import threading
from typing import Optional

from imagedrop.core.config import AgentConfig
from imagedrop.core.errors import StartupError
from imagedrop.core.models import (
    ArtifactArrived,
    DirectoryAppeared,
    Ignored,
    PathRemoved,
    PathRenamed,
    RawEvent,
    WatchError,
)
from imagedrop.watching.backend import WatchBackend
from imagedrop.watching.classifier import EventClassifier
from imagedrop.watching.tree import WatchTree

logger = logging.getLogger("imagedrop.supervisor")

EXIT_OK = 0
EXIT_FAILURE = 1


class Supervisor:

    def __init__(self, config: AgentConfig, backend: WatchBackend, dispatcher,
                 tree: Optional[WatchTree] = None,
                 classifier: Optional[EventClassifier] = None):
        self.config = config
        self.backend = backend
        self.dispatcher = dispatcher
        self.tree = tree or WatchTree(backend)
        self.classifier = classifier or EventClassifier()
        self._stop = threading.Event()
        self._failed = False

    # --- Lifecycle ---

    def start(self) -> None:
        """Prepares the watch root and registers it. Raises StartupError."""
        root = self.config.watch_dir
        try:
            root.mkdir(parents=True, exist_ok=True)
        except OSError as e:
            raise StartupError(f"Cannot create watch directory: {e}", str(root))

        try:
            self.backend.start()
        except OSError as e:
            raise StartupError(f"Cannot start filesystem watcher: {e}", str(root))

        result = self.tree.register_root(str(root))
        if not result.ok:
            logger.warning(f"{len(result.failed)} directories under {root} could not be watched")
        logger.info(f"=== Watching directory: {root} ({len(self.tree)} dirs) ===")

    def install_signal_handlers(self) -> None:
        """SIGINT/SIGTERM request a graceful stop. Main thread only."""
        for signum in (signal.SIGINT, signal.SIGTERM):
            signal.signal(signum, self._on_signal)

    def _on_signal(self, signum, frame) -> None:
        logger.info(f"Received signal {signal.Signals(signum).name}, shutting down...")
        self.request_stop()

    def request_stop(self) -> None:
        self._stop.set()

    def run(self) -> int:
        """Processes notifications until stopped. Returns the exit code."""
        while not self._stop.is_set():
            item = self.backend.get(timeout=self.config.poll_interval)
            if item is None:
                self._check_backend()
                continue
            self.handle(item)
        return EXIT_FAILURE if self._failed else EXIT_OK

    def shutdown(self) -> None:
        self.dispatcher.close()
        self.backend.stop()
        logger.info("Agent stopped.")

    # --- Dispatch ---

    def handle(self, item) -> None:
        if isinstance(item, WatchError):
            logger.error(f"Watcher error: {item.message}" + (f" ({item.path})" if item.path else ""))
            return
        if not isinstance(item, RawEvent):
            logger.warning(f"Unexpected queue item discarded: {item!r}")
            return

        event = self.classifier.classify(item)

        if isinstance(event, ArtifactArrived):
            logger.info(f"[FILE DETECTED] {event.path} | Type: {item.op.name}")
            self.dispatcher.submit(event.path)
        elif isinstance(event, DirectoryAppeared):
            logger.info(f"Directory appeared: {event.path}")
            self.tree.absorb(event)
        elif isinstance(event, PathRemoved):
            logger.info(f"Removed: {event.path}")
            self.tree.absorb(event)
        elif isinstance(event, PathRenamed):
            logger.info(f"Moved away: {event.path}")
            self.tree.absorb(event)
        elif isinstance(event, Ignored):
            logger.debug(f"Ignored {event.path}: {event.reason}")

    def _check_backend(self) -> None:
        if not self.backend.is_alive():
            logger.error("Watcher error: filesystem observer is no longer running")
            self._failed = True
            self._stop.set()
