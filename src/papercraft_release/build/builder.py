"""
Platform builder.

Invokes the application's native release build for one platform with a
private cargo target directory, so parallel jobs never share build state.
"""

import logging
import threading
from pathlib import Path

from papercraft_release.core.config import PipelineConfig
from papercraft_release.core.exceptions import BuildError
from papercraft_release.core.models import Platform
from papercraft_release.core.process import CommandRunner, run_command
from papercraft_release.toolchain.provisioner import Toolchain

logger = logging.getLogger(__name__)


def default_build_command(platform: Platform) -> list[str]:
    """Return the release build command for ``platform``."""
    command = ["cargo", "build", "--release"]
    triple = platform.spec.target_triple
    if triple:
        command.append(f"--target={triple}")
    return command


class PlatformBuilder:
    """Builds one release-mode executable per call."""

    def __init__(
        self,
        config: PipelineConfig,
        runner: CommandRunner = run_command,
    ):
        self._config = config
        self._runner = runner

    def build(
        self,
        platform: Platform,
        toolchain: Toolchain,
        job_dir: Path,
        *,
        command: list[str] | None = None,
        env_overrides: dict[str, str] | None = None,
        cancel_event: threading.Event | None = None,
    ) -> Path:
        """
        Build the application for ``platform``.

        Args:
            platform: Target platform
            toolchain: Provisioned toolchain whose bin dir leads PATH
            job_dir: Private directory of this job
            command: Build command, defaults to cargo for the platform triple
            env_overrides: Extra environment for the build only
            cancel_event: Set to abort the build

        Returns:
            Path to the compiled executable

        Raises:
            BuildError: On compiler failure or missing output
        """
        source_dir = self._config.source_dir
        if not source_dir.is_dir():
            raise BuildError(
                f"Source directory does not exist: {source_dir}",
                platform=platform.value,
            )

        target_dir = job_dir / "target"
        env = toolchain.environment()
        env["CARGO_TARGET_DIR"] = str(target_dir)
        env.update(dict(platform.spec.env_overrides))
        env.update(env_overrides or {})

        command = command or default_build_command(platform)
        logger.info("Building %s: %s", platform.value, " ".join(command))
        result = self._runner(
            command,
            cwd=source_dir,
            env=env,
            error_cls=BuildError,
            platform=platform.value,
            cancel_event=cancel_event,
            timeout=self._config.timeout_seconds,
        )

        executable = self.executable_path(platform, target_dir)
        if not executable.is_file():
            raise BuildError(
                f"Build succeeded but produced no executable at {executable}",
                platform=platform.value,
                command=command,
            )

        logger.info(
            "Built %s in %.0fms: %s", platform.value, result.duration_ms, executable
        )
        return executable

    def executable_path(self, platform: Platform, target_dir: Path) -> Path:
        """Location of the release executable inside ``target_dir``."""
        spec = platform.spec
        release_dir = target_dir / spec.target_triple if spec.target_triple else target_dir
        return release_dir / "release" / f"{self._config.binary_name}{spec.executable_suffix}"
