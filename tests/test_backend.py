#!/usr/bin/env python3
"""
IMAGEDROP WATCHDOG BACKEND SUITE
--------------------------------
Event translation and watch bookkeeping, plus live observer checks.
"""

import os
import time

import pytest
from watchdog.events import DirCreatedEvent, FileClosedEvent, FileCreatedEvent, FileDeletedEvent, \
    FileModifiedEvent, FileMovedEvent

from imagedrop.core.models import DirectoryAppeared, Op, PathRenamed, RawEvent, WatchError
from imagedrop.watching.backend import WatchdogBackend
from imagedrop.watching.tree import WatchTree


def drain(backend):
    items = []
    while True:
        item = backend.get(timeout=0)
        if item is None:
            return items
        items.append(item)


@pytest.fixture
def watchdog_backend():
    backend = WatchdogBackend()
    yield backend
    backend.stop()


def test_translation(watchdog_backend):
    handler = watchdog_backend.handler
    handler.dispatch(FileCreatedEvent("/drop/a-1.0.tar"))
    handler.dispatch(FileModifiedEvent("/drop/a-1.0.tar"))
    handler.dispatch(FileDeletedEvent("/drop/a-1.0.tar"))
    handler.dispatch(DirCreatedEvent("/drop/sub"))
    handler.dispatch(FileClosedEvent("/drop/a-1.0.tar"))

    assert drain(watchdog_backend) == [
        RawEvent("/drop/a-1.0.tar", Op.CREATE),
        RawEvent("/drop/a-1.0.tar", Op.WRITE),
        RawEvent("/drop/a-1.0.tar", Op.REMOVE),
        RawEvent("/drop/sub", Op.CREATE),
        RawEvent("/drop/a-1.0.tar", Op.OTHER),
    ]


def test_move_reports_old_and_new_names(watchdog_backend):
    watchdog_backend.handler.dispatch(FileMovedEvent("/drop/a.part", "/drop/a-1.0.tar"))
    assert drain(watchdog_backend) == [
        RawEvent("/drop/a.part", Op.RENAME),
        RawEvent("/drop/a-1.0.tar", Op.CREATE),
    ]


def test_bytes_paths_are_decoded(watchdog_backend):
    watchdog_backend.handler.dispatch(FileCreatedEvent(b"/drop/b-2.0.tar"))
    assert drain(watchdog_backend) == [RawEvent("/drop/b-2.0.tar", Op.CREATE)]


def test_report_error_goes_to_the_same_queue(watchdog_backend):
    watchdog_backend.report_error("overflow", "/drop")
    assert drain(watchdog_backend) == [WatchError("overflow", "/drop")]


def test_register_missing_directory_raises(tmp_path, watchdog_backend):
    watchdog_backend.start()
    with pytest.raises(FileNotFoundError):
        watchdog_backend.register(str(tmp_path / "missing"))


def test_live_observer_reports_new_archive(tmp_path, watchdog_backend):
    watchdog_backend.start()
    watchdog_backend.register(str(tmp_path))
    archive = tmp_path / "web-2.0.tar"
    archive.write_bytes(b"layer")

    deadline = time.monotonic() + 5
    seen = []
    while time.monotonic() < deadline:
        item = watchdog_backend.get(timeout=0.1)
        if item is not None:
            seen.append(item)
            if isinstance(item, RawEvent) and item.path == str(archive):
                break

    assert any(isinstance(i, RawEvent) and i.path == str(archive) and i.op in (Op.CREATE, Op.WRITE)
               for i in seen)


def test_reregistering_a_recreated_directory(tmp_path, watchdog_backend):
    watchdog_backend.start()
    sub = tmp_path / "sub"
    sub.mkdir()
    watchdog_backend.register(str(sub))
    sub.rmdir()
    sub.mkdir()

    watchdog_backend.register(str(sub))

    assert watchdog_backend.is_alive()


class RecordingObserver:
    def __init__(self):
        self.scheduled = []
        self.unscheduled = []

    def schedule(self, handler, path, recursive=False):
        watch = ("watch", path)
        self.scheduled.append(watch)
        return watch

    def unschedule(self, watch):
        if watch in self.unscheduled:
            raise KeyError(watch)
        self.unscheduled.append(watch)


def test_release_unschedules_stored_watches(tmp_path):
    observer = RecordingObserver()
    backend = WatchdogBackend(observer=observer)
    (tmp_path / "sub").mkdir()
    backend.register(str(tmp_path))
    backend.register(str(tmp_path / "sub"))

    backend.release([str(tmp_path / "sub"), str(tmp_path / "never-registered")])
    backend.release([str(tmp_path / "sub")])

    assert observer.unscheduled == [("watch", str(tmp_path / "sub"))]


def test_renamed_directory_stops_reporting_old_path(tmp_path, watchdog_backend):
    """A directory renamed inside the tree reports only under its new name."""
    sub = tmp_path / "sub"
    sub.mkdir()
    watchdog_backend.start()
    tree = WatchTree(watchdog_backend)
    tree.register_root(str(tmp_path))

    moved = tmp_path / "moved"
    os.rename(sub, moved)
    tree.absorb(PathRenamed(str(sub)))
    tree.absorb(DirectoryAppeared(str(moved)))
    # let the rename notifications for the old name itself pass
    time.sleep(1.0)
    drain(watchdog_backend)

    archive = moved / "web-2.0.tar"
    archive.write_bytes(b"layer")

    seen = []
    deadline = time.monotonic() + 5
    while time.monotonic() < deadline:
        item = watchdog_backend.get(timeout=0.1)
        if item is not None:
            seen.append(item)
            if isinstance(item, RawEvent) and item.path == str(archive):
                # late duplicates from a leftover watch would arrive right behind
                deadline = min(deadline, time.monotonic() + 1.0)

    paths = [i.path for i in seen if isinstance(i, RawEvent)]
    assert str(archive) in paths
    assert not any(p.startswith(str(sub) + os.sep) for p in paths)
