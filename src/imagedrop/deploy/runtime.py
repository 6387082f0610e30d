#!/usr/bin/env python3
"""
IMAGEDROP CONTAINER RUNTIME
---------------------------
Thin wrapper over the docker / compose CLIs. Every operation is an external
process that inherits our stdout/stderr and reports only success/failure.

Author: ImageDrop Team
Date: 2026-10-19
"""

import logging
import shlex
import subprocess
from pathlib import Path
from typing import List, Union

from imagedrop.core.config import AgentConfig

logger = logging.getLogger("imagedrop.runtime")


class ComposeRuntime:
    """docker load / compose pull / compose up --force-recreate / image prune."""

    def __init__(self, config: AgentConfig):
        self.compose = shlex.split(config.compose_command)
        self.dry_run = config.dry_run

    def load(self, archive_path: Union[str, Path]) -> bool:
        return self._run(["docker", "load", "-i", str(archive_path)])

    def pull(self, manifest_path: Union[str, Path]) -> bool:
        return self._run(self.compose + ["-f", str(manifest_path), "pull"])

    def recreate(self, manifest_path: Union[str, Path]) -> bool:
        return self._run(self.compose + ["-f", str(manifest_path), "up", "-d", "--force-recreate"])

    def prune_images(self) -> bool:
        # -f: never prompt, we have no terminal to answer on
        return self._run(["docker", "image", "prune", "-a", "-f"])

    def _run(self, argv: List[str]) -> bool:
        command = " ".join(argv)
        if self.dry_run:
            logger.info(f"[dry-run] Would execute: {command}")
            return True

        logger.info(f"Executing: {command}")
        try:
            result = subprocess.run(argv, check=False)
        except OSError as e:
            logger.error(f"Cannot execute '{command}': {e}")
            return False

        if result.returncode != 0:
            logger.error(f"Command '{command}' failed with exit status {result.returncode}")
            return False

        logger.info(f"Command '{command}' completed.")
        return True
