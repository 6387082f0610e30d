#!/usr/bin/env python3
"""
IMAGEDROP DISPATCH
------------------
Decides where a pipeline run executes.

InlineDispatcher (default) runs it on the event loop worker: no further
notifications are classified until it finishes, and the OS buffers them
meanwhile (dropping beyond its own capacity).

PooledDispatcher hands runs to a small thread pool with a bounded backlog.
This changes behaviour under load: runs that do not fit the backlog are
dropped here instead of notifications being dropped by the OS. Manifest
writes stay serialized by ManifestStore's lock.

Author: ImageDrop Team
Date: 2026-10-19
"""

import logging
from concurrent.futures import Future, ThreadPoolExecutor
from threading import BoundedSemaphore
from typing import List, Optional

from imagedrop.core.models import PipelineRun
from imagedrop.deploy.pipeline import DeploymentPipeline

logger = logging.getLogger("imagedrop.dispatch")


class InlineDispatcher:

    def __init__(self, pipeline: DeploymentPipeline):
        self.pipeline = pipeline

    def submit(self, artifact_path: str) -> Optional[PipelineRun]:
        return self.pipeline.run(artifact_path)

    def close(self) -> None:
        pass


class PooledDispatcher:

    def __init__(self, pipeline: DeploymentPipeline, workers: int = 2, backlog: int = 8):
        if workers < 1:
            raise ValueError("PooledDispatcher needs at least one worker")
        self.pipeline = pipeline
        self.executor = ThreadPoolExecutor(max_workers=workers, thread_name_prefix="imagedrop-pipeline")
        # Slots for running + queued runs
        self._slots = BoundedSemaphore(workers + backlog)
        self.dropped: List[str] = []

    def submit(self, artifact_path: str) -> Optional[Future]:
        if not self._slots.acquire(blocking=False):
            logger.error(f"Pipeline backlog full, dropping deployment of {artifact_path}")
            self.dropped.append(artifact_path)
            return None

        future = self.executor.submit(self._run, artifact_path)
        future.add_done_callback(lambda _: self._slots.release())
        return future

    def _run(self, artifact_path: str) -> PipelineRun:
        try:
            return self.pipeline.run(artifact_path)
        except Exception:
            logger.exception(f"Unexpected error while deploying {artifact_path}")
            raise

    def close(self) -> None:
        """Waits for in-flight and queued runs; nothing is cancelled."""
        self.executor.shutdown(wait=True)
