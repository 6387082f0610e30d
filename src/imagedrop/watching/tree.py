#!/usr/bin/env python3
"""
IMAGEDROP WATCH TREE - Registration Bookkeeper
----------------------------------------------
Keeps a watch on every directory below the configured root, including
directories that appear (or are moved in) while the agent is running.

Recursive registration races with the filesystem: a directory may vanish
between listing its parent and adding the watch, or be created and filled
before its watch is in place. The policy is to over-register: attempt
eagerly, treat vanished paths as benign, never let one bad subdirectory
abort the rest of the walk. A missed watch silently drops deployments,
which is the worse failure.

A removed or renamed-away directory has its watches released for the
whole subtree. A renamed directory keeps its inode, so its old watch would
otherwise go on reporting events under the old path. Late notifications
for paths that are already gone are tolerated.

Author: ImageDrop Team
Date: 2026-10-19
"""

import logging
import os
from typing import Iterator, List, Set

from imagedrop.core.errors import WatchRootError
from imagedrop.core.models import (
    DirectoryAppeared,
    PathRemoved,
    PathRenamed,
    RegistrationResult,
    SemanticEvent,
)
from imagedrop.watching.backend import WatchBackend

logger = logging.getLogger("imagedrop.watchtree")


class WatchTree:
    """Owns the set of registered directories for one watched tree."""

    def __init__(self, backend: WatchBackend):
        self.backend = backend
        self._registered: Set[str] = set()

    def __contains__(self, path: str) -> bool:
        return os.path.abspath(path) in self._registered

    def __len__(self) -> int:
        return len(self._registered)

    @property
    def registered(self) -> List[str]:
        return sorted(self._registered)

    def register_root(self, root: str) -> RegistrationResult:
        """
        Startup registration. The root itself must be watchable; anything
        that goes wrong below it is logged and tolerated.
        """
        root = os.path.abspath(root)
        result = self.register_recursive(root)
        if root not in result.registered:
            reason = result.failed.get(root, "directory does not exist")
            raise WatchRootError(f"Cannot watch root directory: {reason}", root)
        return result

    def register_recursive(self, root: str) -> RegistrationResult:
        """
        Registers 'root' and every directory below it.

        Walks an explicit stack rather than recursing so deep trees cannot
        exhaust the interpreter stack and per-directory failures stay local.
        """
        root = os.path.abspath(root)
        result = RegistrationResult(root=root)
        pending = [root]

        while pending:
            path = pending.pop()

            try:
                self.backend.register(path)
            except FileNotFoundError:
                logger.info(f"Directory no longer exists: {path}, skipping.")
                result.skipped.append(path)
                continue
            except OSError as e:
                logger.warning(f"Cannot add watch for directory {path}: {e}")
                result.failed[path] = str(e)
                continue

            self._registered.add(path)
            result.registered.append(path)
            logger.info(f"Watching directory: {path}")

            pending.extend(reversed(list(self._child_dirs(path, result))))

        return result

    def absorb(self, event: SemanticEvent) -> None:
        """Keeps registrations consistent with a structural event."""
        if isinstance(event, DirectoryAppeared):
            result = self.register_recursive(event.path)
            if result.registered:
                logger.info(f"Extended watch to new directory tree {event.path} "
                            f"({len(result.registered)} dirs)")
        elif isinstance(event, (PathRemoved, PathRenamed)):
            forgotten = self._forget(event.path)
            if forgotten:
                logger.info(f"Directory gone: {event.path} ({forgotten} watches retired)")

    def _child_dirs(self, path: str, result: RegistrationResult) -> Iterator[str]:
        try:
            with os.scandir(path) as entries:
                children = []
                for entry in entries:
                    try:
                        # Symlinked directories are not followed (loop safety)
                        if entry.is_dir(follow_symlinks=False):
                            children.append(entry.path)
                    except OSError as e:
                        logger.warning(f"Cannot inspect {entry.path}: {e}")
        except FileNotFoundError:
            logger.info(f"Directory vanished while listing: {path}")
            return iter(())
        except OSError as e:
            logger.warning(f"Cannot list subdirectories of {path}: {e}")
            result.failed[path] = str(e)
            return iter(())
        return iter(sorted(children))

    def _forget(self, path: str) -> int:
        path = os.path.abspath(path)
        prefix = path + os.sep
        gone = [p for p in self._registered if p == path or p.startswith(prefix)]
        for p in gone:
            self._registered.discard(p)
        if gone:
            self.backend.release(gone)
        return len(gone)
