#!/usr/bin/env python3
"""
IMAGEDROP WATCH BACKEND
-----------------------
The OS-level notification collaborator. Exposes per-directory registration
and a single queue carrying both the event stream (RawEvent) and the
error stream (WatchError) to the supervisor.

WatchdogBackend schedules every directory non-recursively on one watchdog
Observer, so registration coverage is owned by WatchTree and not by the
observer's own recursive walk.

Author: ImageDrop Team
Date: 2026-10-19
"""

import logging
import os
import queue
from abc import ABC, abstractmethod
from threading import RLock
from typing import Any, Dict, Iterable, Optional, Union

from watchdog.events import FileSystemEvent, FileSystemEventHandler
from watchdog.observers import Observer

from imagedrop.core.models import Op, RawEvent, WatchError

logger = logging.getLogger("imagedrop.backend")

QueueItem = Union[RawEvent, WatchError]

# watchdog event_type -> our operation kinds; 'moved' is split separately
_OPS = {
    "created": Op.CREATE,
    "modified": Op.WRITE,
    "deleted": Op.REMOVE,
}


def _decode(path: Union[str, bytes]) -> str:
    if isinstance(path, bytes):
        return path.decode("utf-8", errors="replace")
    return path


class WatchBackend(ABC):
    """Abstract notification source consumed by the supervisor."""

    def __init__(self, maxsize: int = 0):
        self.queue: "queue.Queue[QueueItem]" = queue.Queue(maxsize=maxsize)

    @abstractmethod
    def register(self, path: str) -> None:
        """Starts watching a single directory. Raises OSError on failure."""

    @abstractmethod
    def release(self, paths: Iterable[str]) -> None:
        """Stops watching the given directories. Unknown paths are ignored."""

    @abstractmethod
    def start(self) -> None:
        pass

    @abstractmethod
    def stop(self) -> None:
        pass

    @abstractmethod
    def is_alive(self) -> bool:
        pass

    def get(self, timeout: float) -> Optional[QueueItem]:
        """Blocks up to 'timeout' seconds for the next event or error."""
        try:
            return self.queue.get(timeout=timeout)
        except queue.Empty:
            return None

    def emit(self, item: QueueItem) -> None:
        try:
            self.queue.put_nowait(item)
        except queue.Full:
            logger.error(f"Event queue full, dropping notification: {item}")

    def report_error(self, message: str, path: Optional[str] = None) -> None:
        self.emit(WatchError(message=message, path=path))


class _ForwardingHandler(FileSystemEventHandler):
    """Translates watchdog events into RawEvents on the backend queue."""

    def __init__(self, backend: "WatchdogBackend"):
        super().__init__()
        self.backend = backend

    def on_any_event(self, event: FileSystemEvent) -> None:
        try:
            src = _decode(event.src_path)
            if event.event_type == "moved":
                # Old name reported as renamed, new name as created
                self.backend.emit(RawEvent(path=src, op=Op.RENAME))
                self.backend.emit(RawEvent(path=_decode(event.dest_path), op=Op.CREATE))
                return
            self.backend.emit(RawEvent(path=src, op=_OPS.get(event.event_type, Op.OTHER)))
        except Exception as e:
            self.backend.report_error(f"Failed to translate {event!r}: {e}")


class WatchdogBackend(WatchBackend):
    """Production backend built on a single watchdog Observer."""

    def __init__(self, maxsize: int = 0, observer: Any = None):
        super().__init__(maxsize=maxsize)
        self.observer = observer if observer is not None else Observer()
        self.handler = _ForwardingHandler(self)
        self._watches: Dict[str, Any] = {}
        self._lock = RLock()
        self._started = False

    def start(self) -> None:
        if not self._started:
            self.observer.start()
            self._started = True
            logger.debug("watchdog observer started")

    def stop(self) -> None:
        if self._started:
            self.observer.stop()
            self.observer.join(timeout=5.0)
            self._started = False
            logger.debug("watchdog observer stopped")

    def is_alive(self) -> bool:
        return self._started and self.observer.is_alive()

    def register(self, path: str) -> None:
        path = os.path.abspath(path)
        if not os.path.isdir(path):
            raise FileNotFoundError(f"No such directory: {path}")

        with self._lock:
            # A directory removed and recreated under the same name keeps a
            # dead emitter in the observer; replace it with a live one.
            stale = self._watches.pop(path, None)
            if stale is not None:
                try:
                    self.observer.unschedule(stale)
                except KeyError:
                    pass
            self._watches[path] = self.observer.schedule(self.handler, path, recursive=False)

    def release(self, paths: Iterable[str]) -> None:
        # inotify watches follow the inode, so a directory renamed within the
        # tree would keep reporting under its old name until unscheduled
        with self._lock:
            for path in paths:
                watch = self._watches.pop(os.path.abspath(path), None)
                if watch is None:
                    continue
                try:
                    self.observer.unschedule(watch)
                except KeyError:
                    pass
                logger.debug(f"watch released: {path}")
