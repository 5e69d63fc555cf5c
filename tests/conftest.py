"""Pytest configuration and fixtures."""

import tempfile
import threading
from collections.abc import Mapping
from pathlib import Path
from typing import Callable, Generator

import pytest

from papercraft_release.core.config import PipelineConfig
from papercraft_release.core.exceptions import PlatformJobError
from papercraft_release.core.process import CommandResult


@pytest.fixture(autouse=True)
def clean_environment(monkeypatch: pytest.MonkeyPatch) -> None:
    """Keep host configuration variables out of the tests."""
    for var in (
        "PCR_SOURCE_DIR",
        "PCR_WORK_DIR",
        "PCR_STORE_DIR",
        "PCR_RELEASE_DIR",
        "PCR_PUBLISHER",
        "PCR_PLATFORMS",
        "PCR_LINUXDEPLOY_URL",
        "PCR_GITHUB_API_URL",
        "PCR_TIMEOUT_SECONDS",
        "PCR_GITHUB_REPOSITORY",
        "GITHUB_REPOSITORY",
        "GITHUB_TOKEN",
    ):
        monkeypatch.delenv(var, raising=False)


@pytest.fixture
def temp_dir() -> Generator[Path, None, None]:
    """Provide a temporary directory that is cleaned up after the test."""
    with tempfile.TemporaryDirectory() as tmpdir:
        yield Path(tmpdir)


@pytest.fixture
def source_dir(temp_dir: Path) -> Path:
    """Provide an application checkout with the static packaging assets."""
    src = temp_dir / "papercraft"
    (src / "distro" / "docker").mkdir(parents=True)
    (src / "src").mkdir()

    (src / "Cargo.toml").write_text('[package]\nname = "papercraft"\n')
    (src / "distro" / "papercraft.desktop").write_text(
        "[Desktop Entry]\nName=Papercraft\nExec=papercraft\nIcon=papercraft\nType=Application\n"
    )
    (src / "distro" / "com.rodrigorc.papercraft.appdata.xml").write_text("<component/>")
    (src / "distro" / "papercraft.icns").write_bytes(b"icns")
    (src / "distro" / "docker" / "apprun").write_text("#!/bin/sh\nexec papercraft\n")
    (src / "src" / "papercraft.png").write_bytes(b"\x89PNG")
    return src


@pytest.fixture
def config(temp_dir: Path, source_dir: Path) -> PipelineConfig:
    """Provide a pipeline configuration rooted in the temporary directory."""
    return PipelineConfig(
        source_dir=source_dir,
        work_dir=temp_dir / "work",
        store_dir=temp_dir / "store",
        release_dir=temp_dir / "published",
        linuxdeploy_url="https://example.invalid/linuxdeploy-x86_64.AppImage",
        timeout_seconds=60,
    )


class FakeRunner:
    """
    Stand-in for run_command.

    Records every call and dispatches on the executable name to an
    optional handler, which may create files or raise.
    """

    def __init__(self) -> None:
        self.calls: list[dict] = []
        self.handlers: dict[str, Callable[..., None]] = {}
        self._lock = threading.Lock()

    def on(self, executable: str, handler: Callable[..., None]) -> None:
        self.handlers[executable] = handler

    def __call__(
        self,
        command: list[str],
        *,
        cwd: Path | None = None,
        env: Mapping[str, str] | None = None,
        error_cls: type[PlatformJobError] = PlatformJobError,
        platform: str | None = None,
        cancel_event: threading.Event | None = None,
        timeout: float | None = None,
    ) -> CommandResult:
        with self._lock:
            self.calls.append(
                {"command": list(command), "cwd": cwd, "env": dict(env or {}), "platform": platform}
            )
        handler = self.handlers.get(Path(command[0]).name)
        if handler is not None:
            handler(command, cwd=cwd, env=env, error_cls=error_cls, platform=platform)
        return CommandResult(command=list(command), returncode=0, output="", duration_ms=1.0)


@pytest.fixture
def fake_runner() -> FakeRunner:
    """Provide a recording command runner."""
    return FakeRunner()
