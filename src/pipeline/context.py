"""
Pipeline Run Context

Everything a stage needs for one run: settings, the shared server pool and
throttles, the downloader, decoder and store, plus the run summary.
"""

import asyncio
import logging
from typing import Dict, Optional

from .config import PipelineSettings
from .lease import ArtifactLease
from .server_pool import ServerPool
from .throttle import StageThrottles
from .utils import init_results_dict, log_summary

logger = logging.getLogger(__name__)

STAGES = ("fetch", "extract", "publish", "product")


class RunSummary:
    """Per-stage success/failed/skipped counters."""

    def __init__(self):
        self.results: Dict[str, Dict[str, int]] = {stage: init_results_dict() for stage in STAGES}

    def record(self, stage: str, outcome: str) -> None:
        self.results[stage][outcome] += 1

    def count(self, stage: str, outcome: str) -> int:
        return self.results[stage][outcome]

    @property
    def failed(self) -> int:
        return sum(results['failed'] for results in self.results.values())

    def log(self) -> None:
        for stage in STAGES:
            log_summary(f"{stage.capitalize()} Summary", self.results[stage])


class PipelineContext:
    """Shared state for the stages of one run."""

    def __init__(
        self,
        settings: PipelineSettings,
        downloader,
        decoder,
        store,
        pool: Optional[ServerPool] = None,
        throttles: Optional[StageThrottles] = None,
    ):
        """
        Args:
            settings: Run settings (roots, limits, S3 destination)
            downloader: Object with download(url, fileobj, on_progress) -> DownloadResult
            decoder: Object with async run(recipe_filter, output_path, input_path) -> int
            store: Object with upload_file(path, key, metadata, should_upload, cache_control)
            pool: Server pool (built from settings.servers if not provided)
            throttles: Stage throttles (built from settings and the pool if not provided)
        """
        self.settings = settings
        self.downloader = downloader
        self.decoder = decoder
        self.store = store
        self.pool = pool or ServerPool(settings.servers)
        self.throttles = throttles or StageThrottles.create(
            fetch_limit=self.pool.size,
            extract_limit=settings.extract_concurrency,
            publish_limit=settings.publish_concurrency,
        )
        self.summary = RunSummary()
        self._artifact_locks: Dict[str, asyncio.Lock] = {}

    @property
    def recipes(self):
        return self.settings.recipes

    def lease(self, name: str) -> ArtifactLease:
        return ArtifactLease(self.settings.lease_dir, name, self.settings.lease_stale_seconds)

    def artifact_lock(self, name: str) -> asyncio.Lock:
        """In-process lock for one artifact; the file lease covers other runs."""
        lock = self._artifact_locks.get(name)
        if lock is None:
            lock = self._artifact_locks[name] = asyncio.Lock()
        return lock
