#!/usr/bin/env python3
"""
IMAGEDROP ERRORS
----------------
Exception taxonomy shared by every ImageDrop component.

Structural and classification problems are logged where they happen and
never raised. What remains here are the failures that end something:
a pipeline run (manifest errors) or the whole process (startup errors).

Author: ImageDrop Team
Date: 2026-10-19
"""

from typing import Optional


class ImageDropError(Exception):
    """Base class for every error raised by ImageDrop."""

    def __init__(self, message: str, path: Optional[str] = None):
        super().__init__(message)
        self.message = message
        self.path = path

    def __str__(self) -> str:
        if self.path:
            return f"{self.message} ({self.path})"
        return self.message


class ConfigError(ImageDropError):
    """A configuration value could not be interpreted."""


class StartupError(ImageDropError):
    """The agent cannot perform its function at all. Fatal."""


class WatchRootError(StartupError):
    """The configured watch root could not be registered."""


class ManifestError(ImageDropError):
    """Base for manifest failures. Terminates the current pipeline run."""


class ManifestUnreadable(ManifestError):
    """The manifest file could not be read."""


class ManifestMalformed(ManifestError):
    """The manifest was read but is not a valid compose document."""


class ManifestWriteFailed(ManifestError):
    """The patched manifest could not be persisted. The live file is untouched."""
