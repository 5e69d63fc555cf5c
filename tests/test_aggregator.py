"""Tests for the release aggregator."""

import json
import threading
from concurrent.futures import Future
from pathlib import Path

import pytest

from papercraft_release.artifacts import FileSystemArtifactStore
from papercraft_release.core.exceptions import PublishError, StateTransitionError
from papercraft_release.core.models import (
    ExitCode,
    JobResult,
    JobStage,
    JobStatus,
    Platform,
    ReleaseManifest,
)
from papercraft_release.orchestrator.aggregator import (
    AggregatorState,
    ReleaseAggregator,
    ReleaseSummary,
    persist_summary,
    summary_text,
)
from papercraft_release.publishing.base import PublishResult, ReleasePublisher

TAG = "v1.2.0"


class RecordingPublisher(ReleasePublisher):
    """Publisher that records its calls instead of publishing."""

    def __init__(self, error: PublishError | None = None):
        self.calls: list[tuple[str, list[str], bool]] = []
        self.error = error

    def publish(self, release_tag, files, *, prerelease=True):
        self.calls.append((release_tag, [f.name for f in files], prerelease))
        if self.error is not None:
            raise self.error
        return PublishResult(
            release_tag=release_tag,
            prerelease=prerelease,
            assets=[f.name for f in files],
            url=f"https://example.invalid/{release_tag}",
        )


@pytest.fixture
def manifest() -> ReleaseManifest:
    return ReleaseManifest.for_platforms(TAG)


@pytest.fixture
def store(temp_dir: Path) -> FileSystemArtifactStore:
    return FileSystemArtifactStore(temp_dir / "store", run_id="run-1")


@pytest.fixture
def publisher() -> RecordingPublisher:
    return RecordingPublisher()


@pytest.fixture
def aggregator(store, publisher, temp_dir: Path) -> ReleaseAggregator:
    return ReleaseAggregator(store, publisher, collect_dir=temp_dir / "collect")


def _succeeded(platform: Platform, manifest: ReleaseManifest, store=None) -> "Future[JobResult]":
    name = manifest.names[platform]
    if store is not None:
        store.put(name, platform.value.encode(), platform=platform, release_tag=TAG)
    future: Future[JobResult] = Future()
    future.set_result(JobResult(platform=platform, status=JobStatus.SUCCEEDED, artifact_name=name))
    return future


def _failed(platform: Platform, manifest: ReleaseManifest) -> "Future[JobResult]":
    future: Future[JobResult] = Future()
    future.set_result(
        JobResult(
            platform=platform,
            status=JobStatus.FAILED,
            artifact_name=manifest.names[platform],
            failed_stage=JobStage.BUILD,
            error_message="cargo exited with 101",
            error_type="BuildError",
        )
    )
    return future


# =============================================================================
# Barrier
# =============================================================================


def test_waits_for_every_job_before_publishing(manifest, store, publisher, aggregator) -> None:
    """Publishing never starts while a job is still running."""
    futures: dict[Platform, Future[JobResult]] = {p: Future() for p in Platform}
    states: list[AggregatorState] = []
    aggregator._on_state_change = states.append

    holder: dict[str, ReleaseSummary] = {}
    thread = threading.Thread(
        target=lambda: holder.setdefault("summary", aggregator.run(manifest, futures))
    )
    thread.start()

    platforms = list(Platform)
    for platform in platforms[:-1]:
        store.put(manifest.names[platform], b"x", platform=platform, release_tag=TAG)
        futures[platform].set_result(
            JobResult(
                platform=platform,
                status=JobStatus.SUCCEEDED,
                artifact_name=manifest.names[platform],
            )
        )
    thread.join(timeout=0.3)
    assert thread.is_alive()
    assert aggregator.state == AggregatorState.WAITING
    assert publisher.calls == []

    last = platforms[-1]
    store.put(manifest.names[last], b"x", platform=last, release_tag=TAG)
    futures[last].set_result(
        JobResult(platform=last, status=JobStatus.SUCCEEDED, artifact_name=manifest.names[last])
    )
    thread.join(timeout=10)
    assert not thread.is_alive()

    summary = holder["summary"]
    assert summary.state == AggregatorState.DONE
    assert states == [
        AggregatorState.COLLECTING,
        AggregatorState.PUBLISHING,
        AggregatorState.DONE,
    ]
    assert len(publisher.calls) == 1


# =============================================================================
# Outcomes
# =============================================================================


class TestOutcomes:
    def test_all_succeeded(self, manifest, store, publisher, aggregator) -> None:
        futures = {p: _succeeded(p, manifest, store) for p in Platform}
        summary = aggregator.run(manifest, futures, run_id="run-1")

        assert summary.state == AggregatorState.DONE
        assert summary.published
        assert summary.exit_code == ExitCode.SUCCESS
        assert summary.collected == sorted(manifest.names.values())
        assert summary.release_url == f"https://example.invalid/{TAG}"
        tag, files, prerelease = publisher.calls[0]
        assert tag == TAG
        assert prerelease is True
        assert sorted(files) == sorted(manifest.names.values())

    def test_partial_release(self, manifest, store, publisher, aggregator) -> None:
        """Three of four platforms still publish as a pre-release."""
        futures = {
            p: _failed(p, manifest) if p == Platform.WIN32 else _succeeded(p, manifest, store)
            for p in Platform
        }
        summary = aggregator.run(manifest, futures)

        assert summary.published
        assert summary.state == AggregatorState.FAILED
        assert summary.exit_code == ExitCode.PARTIAL
        assert summary.failed == [Platform.WIN32]
        assert len(summary.collected) == 3
        assert manifest.names[Platform.WIN32] not in publisher.calls[0][1]

    def test_nothing_succeeded(self, manifest, publisher, aggregator) -> None:
        futures = {p: _failed(p, manifest) for p in Platform}
        summary = aggregator.run(manifest, futures)

        assert publisher.calls == []
        assert summary.state == AggregatorState.FAILED
        assert not summary.published
        assert summary.exit_code == ExitCode.FAILURE

    def test_success_without_artifact_is_excluded(self, manifest, store, publisher, aggregator) -> None:
        futures = {
            p: _succeeded(p, manifest, None if p == Platform.MACOS else store)
            for p in Platform
        }
        summary = aggregator.run(manifest, futures)

        assert summary.missing == [Platform.MACOS]
        assert Platform.MACOS not in summary.succeeded
        assert manifest.names[Platform.MACOS] not in publisher.calls[0][1]
        assert summary.exit_code == ExitCode.PARTIAL

    def test_publish_error(self, manifest, store, temp_dir) -> None:
        publisher = RecordingPublisher(
            error=PublishError("rejected", release_tag=TAG, status_code=422)
        )
        aggregator = ReleaseAggregator(store, publisher, collect_dir=temp_dir / "collect")
        futures = {p: _succeeded(p, manifest, store) for p in Platform}
        summary = aggregator.run(manifest, futures)

        assert len(publisher.calls) == 1
        assert summary.state == AggregatorState.FAILED
        assert not summary.published
        assert "rejected" in summary.publish_error
        assert summary.exit_code == ExitCode.FAILURE

    def test_cancelled_run_does_not_publish(self, manifest, store, publisher, aggregator) -> None:
        cancel_event = threading.Event()
        cancel_event.set()
        futures = {p: _succeeded(p, manifest, store) for p in Platform}
        summary = aggregator.run(manifest, futures, cancel_event=cancel_event)

        assert summary.cancelled
        assert publisher.calls == []
        assert summary.state == AggregatorState.FAILED

    def test_crashed_future_counts_as_failure(self, manifest, store, publisher, aggregator) -> None:
        futures = {p: _succeeded(p, manifest, store) for p in Platform}
        crashed: Future[JobResult] = Future()
        crashed.set_exception(RuntimeError("worker died"))
        futures[Platform.LINUX_X86_64] = crashed

        summary = aggregator.run(manifest, futures)

        result = next(r for r in summary.jobs if r.platform == Platform.LINUX_X86_64)
        assert result.status == JobStatus.FAILED
        assert result.error_type == "RuntimeError"
        assert "worker died" in result.error_message
        assert summary.exit_code == ExitCode.PARTIAL

    def test_stale_collection_dir_is_cleared(self, manifest, store, publisher, aggregator, temp_dir) -> None:
        stale = temp_dir / "collect" / f"Papercraft-{TAG}-stale.zip"
        stale.parent.mkdir(parents=True)
        stale.write_bytes(b"old")

        futures = {p: _succeeded(p, manifest, store) for p in Platform}
        summary = aggregator.run(manifest, futures)
        assert stale.name not in summary.collected


def test_aggregator_runs_once(manifest, store, aggregator) -> None:
    futures = {p: _succeeded(p, manifest, store) for p in Platform}
    aggregator.run(manifest, futures)
    with pytest.raises(StateTransitionError):
        aggregator.run(manifest, futures)


def test_illegal_transition(aggregator) -> None:
    with pytest.raises(StateTransitionError) as exc_info:
        aggregator._transition(AggregatorState.PUBLISHING)
    assert exc_info.value.current == "waiting"
    assert exc_info.value.target == "publishing"


# =============================================================================
# Reporting
# =============================================================================


class TestReporting:
    @pytest.fixture
    def summary(self, manifest, store, aggregator) -> ReleaseSummary:
        futures = {
            p: _failed(p, manifest) if p == Platform.WIN32 else _succeeded(p, manifest, store)
            for p in Platform
        }
        return aggregator.run(manifest, futures, run_id="run-42")

    def test_summary_text(self, summary: ReleaseSummary) -> None:
        text = summary_text(summary)
        assert f"Release: {TAG}" in text
        assert "Published: yes (pre-release)" in text
        assert "✗ win32: failed" in text
        assert "Stage: build" in text
        assert "✓ win64: succeeded" in text

    def test_to_dict(self, summary: ReleaseSummary) -> None:
        data = summary.to_dict()
        assert data["exit_code"] == 3
        assert data["failed"] == ["win32"]
        assert data["state"] == "failed"
        assert len(data["jobs"]) == 4

    def test_persist_summary(self, summary: ReleaseSummary, temp_dir: Path) -> None:
        path = persist_summary(summary, temp_dir / "runs")
        assert path.name == f"release_{TAG}_run-42.json"
        data = json.loads(path.read_text())
        assert data["run_id"] == "run-42"
        assert data["published"] is True
