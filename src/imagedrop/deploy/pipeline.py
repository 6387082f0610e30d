#!/usr/bin/env python3
"""
IMAGEDROP DEPLOYMENT PIPELINE - The Redeploy Sequence
-----------------------------------------------------
Runs the ordered side effects for one arrived archive:

    DETECTED -> LOADING -> PATCHING -> REDEPLOYING -> DONE

A run ends in FAILED if the name cannot be parsed, the load fails, or the
manifest cannot be read, parsed or written.

The manifest is never touched for an image that did not load. Redeploy
commands are best-effort: each one is attempted even if the previous failed,
because there is no rollback to fall back on.

Author: ImageDrop Team
Date: 2026-10-19
"""

import logging
from pathlib import Path
from typing import Optional, Union

from imagedrop.core.config import AgentConfig
from imagedrop.core.errors import ManifestError
from imagedrop.core.models import PipelineRun, RunState
from imagedrop.deploy.runtime import ComposeRuntime
from imagedrop.manifest.store import ManifestStore
from imagedrop.watching.matcher import PathMatcher

logger = logging.getLogger("imagedrop.pipeline")


class DeploymentPipeline:

    def __init__(self, config: AgentConfig, store: ManifestStore, runtime: ComposeRuntime,
                 matcher: Optional[PathMatcher] = None):
        self.config = config
        self.store = store
        self.runtime = runtime
        self.matcher = matcher or PathMatcher()

    def run(self, artifact_path: Union[str, Path]) -> PipelineRun:
        run = PipelineRun(artifact_path=str(artifact_path))
        logger.info(f"Processing new image archive: {run.artifact_path}")

        # --- DETECTED: parse the archive name ---
        run.identity = self.matcher.identify(run.artifact_path)
        if run.identity is None:
            run.record("identify", False, "name does not match '<name>-<version>.tar'")
            return self._fail(run)
        run.record("identify", True, run.identity.reference)
        logger.info(f"Parsed: name={run.identity.name}, tag={run.identity.version}, "
                    f"image={run.identity.reference}")

        # --- LOADING ---
        self._enter(run, RunState.LOADING)
        if not self.runtime.load(run.artifact_path):
            run.record("load", False, "docker load failed")
            return self._fail(run)
        run.record("load", True)

        # --- PATCHING ---
        self._enter(run, RunState.PATCHING)
        try:
            outcome = self.store.apply(run.identity)
        except ManifestError as e:
            run.record("patch", False, str(e))
            return self._fail(run)

        if not outcome.matched:
            run.record("patch", True, f"no service matches '{run.identity.name}'")
            logger.info(f"No service in {self.store.path} matches '{run.identity.name}', "
                        f"nothing to redeploy.")
            return self._enter(run, RunState.DONE)

        detail = "updated" if outcome.changed else "already current"
        run.record("patch", True, f"{detail}: {', '.join(outcome.matched)}")

        # --- REDEPLOYING ---
        self._enter(run, RunState.REDEPLOYING)
        manifest = self.store.path
        for step, action in (("pull", lambda: self.runtime.pull(manifest)),
                             ("recreate", lambda: self.runtime.recreate(manifest)),
                             ("prune", self.runtime.prune_images)):
            ok = action()
            run.record(step, ok, "" if ok else "command failed, continuing")

        return self._enter(run, RunState.DONE)

    def _enter(self, run: PipelineRun, state: RunState) -> PipelineRun:
        run.state = state
        logger.info(f"[{run.identity.reference if run.identity else run.artifact_path}] -> {state.name}")
        return run

    def _fail(self, run: PipelineRun) -> PipelineRun:
        run.state = RunState.FAILED
        last = run.steps[-1]
        logger.error(f"Pipeline failed at '{last.step}' for {run.artifact_path}: {last.detail}")
        return run
