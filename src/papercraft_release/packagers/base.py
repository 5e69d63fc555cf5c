"""
Base packager class.

All packagers inherit from Packager and implement _assemble(). The base
class owns the staging directory: nothing reaches the output directory
unless the whole packaging run succeeded.
"""

import logging
import shutil
import tempfile
import threading
from abc import ABC, abstractmethod
from pathlib import Path

from papercraft_release.core.config import AssetPaths, PipelineConfig
from papercraft_release.core.exceptions import PackagingError, PipelineCancelledError
from papercraft_release.core.models import Platform, artifact_name
from papercraft_release.core.process import CommandRunner, run_command
from papercraft_release.toolchain.provisioner import Toolchain

logger = logging.getLogger(__name__)


class Packager(ABC):
    """
    Abstract base class for platform packagers.

    Subclasses set ``platform`` and implement ``_assemble``, which builds
    the distributable inside a private staging directory and returns its
    path there.
    """

    platform: Platform

    def __init__(
        self,
        config: PipelineConfig,
        runner: CommandRunner = run_command,
    ):
        self._config = config
        self._runner = runner

    def artifact_name(self, tag: str) -> str:
        return artifact_name(tag, self.platform, self._config.app_name)

    def package(
        self,
        executable: Path,
        assets: AssetPaths,
        tag: str,
        output_dir: Path,
        *,
        toolchain: Toolchain | None = None,
        cancel_event: threading.Event | None = None,
    ) -> Path:
        """
        Wrap ``executable`` into this platform's distributable.

        Returns:
            Path of ``output_dir/<AppName>-<tag>-<suffix>.<ext>``

        Raises:
            PackagingError: If packaging fails; partial output is removed
        """
        if not executable.is_file():
            raise PackagingError(
                f"Executable not found: {executable}",
                platform=self.platform.value,
            )

        name = self.artifact_name(tag)
        output_dir.mkdir(parents=True, exist_ok=True)
        target = output_dir / name
        staging = Path(tempfile.mkdtemp(prefix=f"pkg-{self.platform.value}-", dir=output_dir))

        try:
            produced = self._assemble(
                executable,
                assets,
                tag,
                staging,
                toolchain=toolchain,
                cancel_event=cancel_event,
            )
            if not produced.is_file() or produced.stat().st_size == 0:
                raise PackagingError(
                    f"Packaging produced no output for {name}",
                    platform=self.platform.value,
                )
            produced.replace(target)
        except (PackagingError, PipelineCancelledError):
            target.unlink(missing_ok=True)
            raise
        except OSError as e:
            target.unlink(missing_ok=True)
            raise PackagingError(
                f"Packaging {name} failed: {e}", platform=self.platform.value
            ) from e
        finally:
            shutil.rmtree(staging, ignore_errors=True)

        logger.info("Packaged %s (%d bytes)", target.name, target.stat().st_size)
        return target

    @abstractmethod
    def _assemble(
        self,
        executable: Path,
        assets: AssetPaths,
        tag: str,
        staging: Path,
        *,
        toolchain: Toolchain | None,
        cancel_event: threading.Event | None,
    ) -> Path:
        """Build the distributable inside ``staging`` and return its path."""

    def _require_asset(self, path: Path | None, label: str) -> Path:
        if path is None or not path.is_file():
            raise PackagingError(
                f"Missing {label}: {path}", platform=self.platform.value
            )
        return path

    def _run(
        self,
        command: list[str],
        *,
        cwd: Path,
        env: dict[str, str] | None = None,
        cancel_event: threading.Event | None = None,
    ) -> None:
        self._runner(
            command,
            cwd=cwd,
            env=env,
            error_cls=PackagingError,
            platform=self.platform.value,
            cancel_event=cancel_event,
            timeout=self._config.timeout_seconds,
        )
