#!/usr/bin/env python3
"""
IMAGEDROP PATH MATCHER
----------------------
Recognizes image archives by name: '<name>-<version>.tar'.

Author: ImageDrop Team
Date: 2026-10-19
"""

import os
import re
from typing import Optional

from imagedrop.core.models import ArtifactIdentity

ARTIFACT_EXTENSION = ".tar"

# Group 1: logical name, Group 2: dotted numeric version
ARTIFACT_PATTERN = re.compile(r'^([A-Za-z0-9_-]+)-(\d+(?:\.\d+)*)' + re.escape(ARTIFACT_EXTENSION) + r'$')


class PathMatcher:
    """Classifies file names as candidate artifacts. Pure, never raises."""

    def __init__(self, pattern: "re.Pattern[str]" = ARTIFACT_PATTERN):
        self.pattern = pattern

    def identify(self, file_name: str) -> Optional[ArtifactIdentity]:
        """Returns the parsed identity, or None when the name does not match."""
        match = self.pattern.match(os.path.basename(file_name))
        if not match:
            return None
        return ArtifactIdentity(name=match.group(1), version=match.group(2))
