"""
Platform jobs - the provision, build, package, upload chain of one platform.

Each job runs strictly sequentially. Any error is caught at the job boundary
and reported as a JobResult, so a failing platform never disturbs its
siblings.
"""

import logging
import threading
import time
from dataclasses import dataclass
from pathlib import Path

from papercraft_release.artifacts.storage import ArtifactStore
from papercraft_release.build.builder import PlatformBuilder, default_build_command
from papercraft_release.core.config import PipelineConfig
from papercraft_release.core.exceptions import (
    ArtifactStoreError,
    PipelineCancelledError,
    PlatformJobError,
)
from papercraft_release.core.models import (
    JobResult,
    JobStage,
    JobStatus,
    Platform,
    artifact_name,
    validate_release_tag,
)
from papercraft_release.packagers import Packager, get_packager
from papercraft_release.toolchain.provisioner import ToolchainProvisioner

logger = logging.getLogger(__name__)


@dataclass(frozen=True)
class PlatformJob:
    """Immutable description of one platform's release job."""

    platform: Platform
    release_tag: str
    artifact_name: str
    build_command: tuple[str, ...]
    env_overrides: tuple[tuple[str, str], ...]
    packager_class: type[Packager]

    @classmethod
    def create(
        cls,
        platform: Platform | str,
        release_tag: str,
        config: PipelineConfig,
    ) -> "PlatformJob":
        """Derive a job for ``platform`` from the release tag and config."""
        platform = Platform.parse(platform)
        validate_release_tag(release_tag)
        return cls(
            platform=platform,
            release_tag=release_tag,
            artifact_name=artifact_name(release_tag, platform, config.app_name),
            build_command=tuple(default_build_command(platform)),
            env_overrides=platform.spec.env_overrides,
            packager_class=get_packager(platform),
        )


class JobRunner:
    """
    Executes PlatformJobs.

    Holds no per-job state; every call gets its own job directory, so one
    runner can serve all platforms concurrently.
    """

    def __init__(
        self,
        config: PipelineConfig,
        provisioner: ToolchainProvisioner | None = None,
        builder: PlatformBuilder | None = None,
        packagers: dict[Platform, Packager] | None = None,
    ):
        self._config = config
        self._provisioner = provisioner or ToolchainProvisioner(config)
        self._builder = builder or PlatformBuilder(config)
        self._packagers = packagers or {}

    def _packager_for(self, job: PlatformJob) -> Packager:
        packager = self._packagers.get(job.platform)
        if packager is None:
            packager = job.packager_class(self._config)
        return packager

    def run(
        self,
        job: PlatformJob,
        *,
        store: ArtifactStore,
        work_dir: Path,
        cancel_event: threading.Event | None = None,
    ) -> JobResult:
        """
        Run a job to a terminal state.

        Returns:
            JobResult with SUCCEEDED, FAILED or CANCELLED status
        """
        start_time = time.time()
        job_dir = work_dir / job.platform.value
        stage = JobStage.PROVISION
        platform_id = job.platform.value

        def checkpoint() -> None:
            if cancel_event is not None and cancel_event.is_set():
                raise PipelineCancelledError(
                    f"Cancelled before {stage.value}", platform=platform_id
                )

        logger.info("Starting %s job for %s", platform_id, job.release_tag)
        try:
            checkpoint()
            toolchain = self._provisioner.provision(job.platform, job_dir)

            stage = JobStage.BUILD
            checkpoint()
            executable = self._builder.build(
                job.platform,
                toolchain,
                job_dir,
                command=list(job.build_command),
                env_overrides=dict(job.env_overrides),
                cancel_event=cancel_event,
            )

            stage = JobStage.PACKAGE
            checkpoint()
            packaged = self._packager_for(job).package(
                executable,
                self._config.resolved_assets(),
                job.release_tag,
                job_dir / "dist",
                toolchain=toolchain,
                cancel_event=cancel_event,
            )

            stage = JobStage.UPLOAD
            checkpoint()
            store.put(
                job.artifact_name,
                packaged,
                platform=job.platform,
                release_tag=job.release_tag,
            )
        except PipelineCancelledError as e:
            logger.warning("%s job cancelled during %s", platform_id, stage.value)
            return self._result(job, JobStatus.CANCELLED, start_time, stage, e)
        except (PlatformJobError, ArtifactStoreError) as e:
            logger.error("%s job failed during %s: %s", platform_id, stage.value, e)
            return self._result(job, JobStatus.FAILED, start_time, stage, e)
        except Exception as e:
            # Wrap unexpected exceptions
            logger.exception("%s job crashed during %s", platform_id, stage.value)
            return self._result(
                job,
                JobStatus.FAILED,
                start_time,
                stage,
                e,
                message=f"Unexpected error: {e}",
            )

        logger.info("%s job uploaded %s", platform_id, job.artifact_name)
        return self._result(job, JobStatus.SUCCEEDED, start_time)

    @staticmethod
    def _result(
        job: PlatformJob,
        status: JobStatus,
        start_time: float,
        stage: JobStage | None = None,
        error: Exception | None = None,
        message: str | None = None,
    ) -> JobResult:
        return JobResult(
            platform=job.platform,
            status=status,
            artifact_name=job.artifact_name,
            failed_stage=stage if error is not None else None,
            error_message=message or (str(error) if error is not None else None),
            error_type=type(error).__name__ if error is not None else None,
            execution_time_ms=(time.time() - start_time) * 1000,
        )
