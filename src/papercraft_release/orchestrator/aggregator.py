"""
Release aggregator - the fan-in half of the pipeline.

Waits for every platform job to reach a terminal state, collects the
uploaded artifacts and publishes them in a single call.

State machine::

    WAITING -> COLLECTING -> PUBLISHING -> DONE | FAILED

Platform failures do not block the release: whatever was collected is
still published as a pre-release. A job that reported success but whose
artifact is missing from the store is excluded from the release.
"""

import json
import logging
import shutil
import threading
import uuid
from collections.abc import Mapping
from concurrent.futures import ALL_COMPLETED, Future, wait
from enum import Enum
from pathlib import Path
from typing import Any, Callable

from pydantic import BaseModel, Field

from papercraft_release.artifacts.storage import ArtifactStore
from papercraft_release.core.exceptions import (
    ArtifactNotFoundError,
    PublishError,
    StateTransitionError,
)
from papercraft_release.core.models import (
    ExitCode,
    JobResult,
    JobStatus,
    Platform,
    ReleaseManifest,
)
from papercraft_release.publishing.base import ReleasePublisher

logger = logging.getLogger(__name__)


class AggregatorState(Enum):
    """States of the release aggregator."""

    WAITING = "waiting"
    COLLECTING = "collecting"
    PUBLISHING = "publishing"
    DONE = "done"
    FAILED = "failed"


_TRANSITIONS: dict[AggregatorState, frozenset[AggregatorState]] = {
    AggregatorState.WAITING: frozenset({AggregatorState.COLLECTING}),
    AggregatorState.COLLECTING: frozenset(
        {AggregatorState.PUBLISHING, AggregatorState.FAILED}
    ),
    AggregatorState.PUBLISHING: frozenset({AggregatorState.DONE, AggregatorState.FAILED}),
    AggregatorState.DONE: frozenset(),
    AggregatorState.FAILED: frozenset(),
}


class ReleaseSummary(BaseModel):
    """Outcome of a pipeline run, as reported to the caller."""

    run_id: str
    release_tag: str
    state: AggregatorState
    jobs: list[JobResult] = Field(default_factory=list)
    expected: list[str] = Field(default_factory=list)
    collected: list[str] = Field(default_factory=list)
    missing: list[Platform] = Field(default_factory=list)
    cancelled: bool = False
    published: bool = False
    prerelease: bool = True
    release_url: str | None = None
    publish_error: str | None = None

    @property
    def succeeded(self) -> list[Platform]:
        return [
            r.platform for r in self.jobs
            if r.is_success() and r.platform not in self.missing
        ]

    @property
    def failed(self) -> list[Platform]:
        return [r.platform for r in self.jobs if not r.is_success()]

    @property
    def exit_code(self) -> ExitCode:
        """SUCCESS if everything shipped, PARTIAL if a subset shipped."""
        if not self.published:
            return ExitCode.FAILURE
        if self.state == AggregatorState.DONE:
            return ExitCode.SUCCESS
        return ExitCode.PARTIAL

    def to_dict(self) -> dict[str, Any]:
        return {
            "run_id": self.run_id,
            "release_tag": self.release_tag,
            "state": self.state.value,
            "exit_code": int(self.exit_code),
            "succeeded": [p.value for p in self.succeeded],
            "failed": [p.value for p in self.failed],
            "missing": [p.value for p in self.missing],
            "cancelled": self.cancelled,
            "published": self.published,
            "prerelease": self.prerelease,
            "release_url": self.release_url,
            "publish_error": self.publish_error,
            "expected": self.expected,
            "collected": self.collected,
            "jobs": [r.to_summary() for r in self.jobs],
        }


class ReleaseAggregator:
    """
    Joins all platform jobs and publishes their artifacts once.

    An aggregator instance drives one release; create a new one per run.
    """

    def __init__(
        self,
        store: ArtifactStore,
        publisher: ReleasePublisher,
        collect_dir: Path,
        on_state_change: Callable[[AggregatorState], None] | None = None,
    ):
        self._store = store
        self._publisher = publisher
        self._collect_dir = collect_dir
        self._on_state_change = on_state_change
        self._state = AggregatorState.WAITING

    @property
    def state(self) -> AggregatorState:
        return self._state

    def _transition(self, target: AggregatorState) -> None:
        if target not in _TRANSITIONS[self._state]:
            raise StateTransitionError(self._state.value, target.value)
        logger.info("Aggregator %s -> %s", self._state.value, target.value)
        self._state = target
        if self._on_state_change:
            self._on_state_change(target)

    def run(
        self,
        manifest: ReleaseManifest,
        jobs: Mapping[Platform, "Future[JobResult]"],
        *,
        run_id: str | None = None,
        cancel_event: threading.Event | None = None,
    ) -> ReleaseSummary:
        """
        Drive the release through the state machine.

        Args:
            manifest: Expected artifact names per platform
            jobs: One future per platform job
            run_id: Identifier recorded on the summary
            cancel_event: If set once the barrier is passed, nothing is published

        Returns:
            ReleaseSummary describing the outcome
        """
        if self._state != AggregatorState.WAITING:
            raise StateTransitionError(self._state.value, AggregatorState.WAITING.value)

        summary = ReleaseSummary(
            run_id=run_id or str(uuid.uuid4()),
            release_tag=manifest.release_tag,
            state=self._state,
            expected=sorted(manifest.names.values()),
        )

        # Barrier: every job must be terminal before anything else happens
        wait(list(jobs.values()), return_when=ALL_COMPLETED)
        summary.jobs = [
            self._settled(platform, future, manifest)
            for platform, future in jobs.items()
        ]
        summary.cancelled = bool(cancel_event and cancel_event.is_set())

        self._transition(AggregatorState.COLLECTING)
        files = self._collect(summary, manifest)

        if summary.cancelled or not files:
            reason = "cancelled" if summary.cancelled else "no platform succeeded"
            logger.error("Release %s not published: %s", manifest.release_tag, reason)
            self._transition(AggregatorState.FAILED)
            summary.state = self._state
            return summary

        self._transition(AggregatorState.PUBLISHING)
        try:
            result = self._publisher.publish(
                manifest.release_tag, files, prerelease=summary.prerelease
            )
        except PublishError as e:
            logger.error("Publish of %s failed: %s", manifest.release_tag, e)
            summary.publish_error = str(e)
            self._transition(AggregatorState.FAILED)
            summary.state = self._state
            return summary

        summary.published = True
        summary.release_url = result.url
        if manifest.is_complete(set(summary.collected)):
            self._transition(AggregatorState.DONE)
        else:
            self._transition(AggregatorState.FAILED)
        summary.state = self._state
        return summary

    @staticmethod
    def _settled(
        platform: Platform, future: "Future[JobResult]", manifest: ReleaseManifest
    ) -> JobResult:
        """Return a job's result, turning a crashed future into a failure."""
        error = future.exception()
        if error is None:
            return future.result()
        return JobResult(
            platform=platform,
            status=JobStatus.FAILED,
            artifact_name=manifest.names[platform],
            error_message=f"Unexpected error: {error}",
            error_type=type(error).__name__,
        )

    def _collect(self, summary: ReleaseSummary, manifest: ReleaseManifest) -> list[Path]:
        """Pull every successful job's artifact into the collection dir."""
        if self._collect_dir.exists():
            shutil.rmtree(self._collect_dir)
        self._collect_dir.mkdir(parents=True)

        for result in summary.jobs:
            if not result.is_success():
                continue
            try:
                artifact = self._store.get(result.artifact_name)
            except ArtifactNotFoundError:
                logger.error(
                    "%s reported success but %s is not in the store",
                    result.platform.value,
                    result.artifact_name,
                )
                summary.missing.append(result.platform)
                continue
            artifact.copy_to(self._collect_dir)

        files = sorted(self._collect_dir.glob(manifest.glob))
        summary.collected = [f.name for f in files]
        return files


def summary_text(summary: ReleaseSummary) -> str:
    """Generate a human-readable summary of a release run."""
    lines = [
        f"Release: {summary.release_tag}",
        f"State: {summary.state.value}",
        f"Published: {'yes (pre-release)' if summary.published else 'no'}",
    ]
    for result in summary.jobs:
        status_symbol = "✓" if result.is_success() and result.platform not in summary.missing else "✗"
        lines.append(
            f"  {status_symbol} {result.platform.value}: {result.status.value}"
        )
        if result.platform in summary.missing:
            lines.append(f"      Missing from store: {result.artifact_name}")
        if result.failed_stage:
            lines.append(f"      Stage: {result.failed_stage.value}")
        if result.error_message:
            lines.append(f"      Error: {result.error_message}")
    if summary.publish_error:
        lines.append(f"Publish error: {summary.publish_error}")
    return "\n".join(lines)


def persist_summary(summary: ReleaseSummary, output_dir: Path) -> Path:
    """Persist a release summary to disk as JSON."""
    output_dir.mkdir(parents=True, exist_ok=True)
    output_path = output_dir / f"release_{summary.release_tag}_{summary.run_id}.json"
    output_path.write_text(json.dumps(summary.to_dict(), indent=2))
    return output_path
