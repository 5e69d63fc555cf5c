"""
Release pipeline - fan-out of platform jobs, fan-in through the aggregator.

Jobs run on a thread pool with one worker each and share nothing but the
artifact store. Cancelling the pipeline stops the remaining jobs
cooperatively; artifacts already uploaded stay in the store.
"""

import logging
import threading
import uuid
from concurrent.futures import Future, ThreadPoolExecutor
from pathlib import Path
from typing import Callable

from papercraft_release.artifacts.storage import ArtifactStore, FileSystemArtifactStore
from papercraft_release.core.config import PipelineConfig
from papercraft_release.core.models import (
    JobResult,
    Platform,
    ReleaseManifest,
    validate_release_tag,
)
from papercraft_release.orchestrator.aggregator import (
    AggregatorState,
    ReleaseAggregator,
    ReleaseSummary,
)
from papercraft_release.orchestrator.jobs import JobRunner, PlatformJob
from papercraft_release.publishing import ReleasePublisher, create_publisher

logger = logging.getLogger(__name__)


class ReleasePipeline:
    """
    Multi-platform release orchestration.

    Executes one PlatformJob per configured platform in parallel, then
    hands every job future to a ReleaseAggregator.
    """

    def __init__(
        self,
        config: PipelineConfig,
        *,
        publisher: ReleasePublisher | None = None,
        job_runner: JobRunner | None = None,
        on_state_change: Callable[[AggregatorState], None] | None = None,
        on_job_complete: Callable[[JobResult], None] | None = None,
    ):
        """Initialize the pipeline; the publisher is created lazily from config."""
        self._config = config
        self._publisher = publisher
        self._job_runner = job_runner or JobRunner(config)
        self._on_state_change = on_state_change
        self._on_job_complete = on_job_complete
        self._cancel_event = threading.Event()

    def cancel(self) -> None:
        """Ask all still-running jobs to stop."""
        logger.warning("Cancelling release pipeline")
        self._cancel_event.set()

    @property
    def cancelled(self) -> bool:
        return self._cancel_event.is_set()

    def build_jobs(self, release_tag: str, platforms: list[Platform] | None = None) -> list[PlatformJob]:
        """Create the PlatformJobs of a release."""
        platforms = platforms or self._config.platforms
        return [PlatformJob.create(p, release_tag, self._config) for p in platforms]

    def create_store(self, release_tag: str, run_id: str) -> ArtifactStore:
        """Artifact store namespaced by release tag and run."""
        return FileSystemArtifactStore(
            self._config.store_dir / release_tag / run_id, run_id=run_id
        )

    def _run_dir(self, release_tag: str, run_id: str) -> Path:
        return self._config.work_dir / release_tag / run_id

    def run(self, release_tag: str) -> ReleaseSummary:
        """
        Build, package and publish every configured platform.

        Args:
            release_tag: Version tag used in every artifact name

        Returns:
            ReleaseSummary with per-platform results and publish outcome

        Raises:
            ValidationError: If the release tag is malformed
            ConfigurationError: If the publisher cannot be configured
        """
        validate_release_tag(release_tag)
        publisher = self._publisher or create_publisher(self._config)
        run_id = str(uuid.uuid4())
        run_dir = self._run_dir(release_tag, run_id)
        store = self.create_store(release_tag, run_id)
        jobs = self.build_jobs(release_tag)
        manifest = ReleaseManifest.for_platforms(
            release_tag, [job.platform for job in jobs], self._config.app_name
        )

        logger.info(
            "Release %s run %s: %s",
            release_tag,
            run_id,
            ", ".join(job.platform.value for job in jobs),
        )

        aggregator = ReleaseAggregator(
            store,
            publisher,
            collect_dir=run_dir / "release",
            on_state_change=self._on_state_change,
        )

        executor = ThreadPoolExecutor(
            max_workers=len(jobs), thread_name_prefix="platform-job"
        )
        try:
            futures: dict[Platform, Future[JobResult]] = {}
            for job in jobs:
                future = executor.submit(
                    self._job_runner.run,
                    job,
                    store=store,
                    work_dir=run_dir / "jobs",
                    cancel_event=self._cancel_event,
                )
                if self._on_job_complete:
                    future.add_done_callback(self._notify_job_complete)
                futures[job.platform] = future

            try:
                return aggregator.run(
                    manifest,
                    futures,
                    run_id=run_id,
                    cancel_event=self._cancel_event,
                )
            except KeyboardInterrupt:
                if aggregator.state != AggregatorState.WAITING:
                    raise
                self.cancel()
                # Jobs stop at their next checkpoint; still join them
                return aggregator.run(
                    manifest,
                    futures,
                    run_id=run_id,
                    cancel_event=self._cancel_event,
                )
        finally:
            executor.shutdown(wait=True)

    def run_single(self, release_tag: str, platform: Platform | str) -> JobResult:
        """
        Run one platform job without aggregating or publishing.

        The artifact is left in the store under the tag's "manual" namespace.
        """
        job = PlatformJob.create(platform, release_tag, self._config)
        store = self.create_store(release_tag, "manual")
        return self._job_runner.run(
            job,
            store=store,
            work_dir=self._run_dir(release_tag, "manual") / "jobs",
            cancel_event=self._cancel_event,
        )

    def _notify_job_complete(self, future: "Future[JobResult]") -> None:
        if future.exception() is None and self._on_job_complete:
            self._on_job_complete(future.result())
