#!/usr/bin/env python3
"""
IMAGEDROP EVENT CLASSIFIER
--------------------------
Maps raw (path, op) notifications onto semantic events.

Creation and write both count as "artifact arrived": depending on how the
archive was transferred we may see create-then-write or only one of them.
Downstream steps are idempotent, so duplicates are harmless.

At most one stat call is made per event.

Author: ImageDrop Team
Date: 2026-10-19
"""

import logging
import os
import stat
from typing import Optional

from imagedrop.core.models import (
    ArtifactArrived,
    DirectoryAppeared,
    Ignored,
    Op,
    PathRemoved,
    PathRenamed,
    RawEvent,
    SemanticEvent,
)
from imagedrop.watching.matcher import PathMatcher

logger = logging.getLogger("imagedrop.classifier")


class EventClassifier:

    def __init__(self, matcher: Optional[PathMatcher] = None):
        self.matcher = matcher or PathMatcher()

    def classify(self, event: RawEvent) -> SemanticEvent:
        path = event.path

        if event.op is Op.CREATE and self._is_dir(path):
            # A directory may carry an archive-shaped name
            return DirectoryAppeared(path=path)

        if event.op in (Op.CREATE, Op.WRITE):
            identity = self.matcher.identify(path)
            if identity is not None:
                return ArtifactArrived(path=path, identity=identity)
            return Ignored(path=path, reason=f"{event.op.value}: not an artifact")

        if event.op is Op.REMOVE:
            return PathRemoved(path=path)

        if event.op is Op.RENAME:
            mode = self._stat_mode(path)
            if mode is None:
                return PathRenamed(path=path)
            if stat.S_ISDIR(mode):
                return DirectoryAppeared(path=path)
            return Ignored(path=path, reason="rename: path still present and not a directory")

        return Ignored(path=path, reason=f"unhandled operation '{event.op.value}'")

    def _is_dir(self, path: str) -> bool:
        mode = self._stat_mode(path)
        return mode is not None and stat.S_ISDIR(mode)

    def _stat_mode(self, path: str) -> Optional[int]:
        """st_mode of the path, or None if it is gone or cannot be stat'ed."""
        try:
            return os.stat(path).st_mode
        except FileNotFoundError:
            return None
        except OSError as e:
            logger.debug(f"stat failed for {path}: {e}")
            return None
