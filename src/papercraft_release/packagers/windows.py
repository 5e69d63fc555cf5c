"""
Windows packagers.

Thin packaging only: the 32-bit build ships as a zip holding the
executable, the 64-bit build as the renamed executable itself.
"""

import shutil
import threading
import zipfile
from pathlib import Path

from papercraft_release.core.config import AssetPaths
from papercraft_release.core.models import Platform
from papercraft_release.packagers.base import Packager
from papercraft_release.toolchain.provisioner import Toolchain


class Win32ZipPackager(Packager):
    """Packages the 32-bit Windows build as a zip archive."""

    platform = Platform.WIN32

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
        archive = staging / self.artifact_name(tag)
        with zipfile.ZipFile(archive, "w", compression=zipfile.ZIP_DEFLATED) as zf:
            zf.write(executable, arcname=f"{self._config.binary_name}.exe")
        return archive


class Win64ExePackager(Packager):
    """Copies the 64-bit Windows executable under its release name."""

    platform = Platform.WIN64

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
        target = staging / self.artifact_name(tag)
        shutil.copy2(executable, target)
        return target
