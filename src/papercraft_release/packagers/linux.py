"""
Linux AppImage packager.

Lays out an AppDir with the desktop entry, appdata and icon, then has
linuxdeploy wrap it into a self-mounting image with a custom AppRun.
"""

import shutil
import threading
from pathlib import Path

from papercraft_release.core.config import AssetPaths
from papercraft_release.core.exceptions import PackagingError
from papercraft_release.core.models import Platform
from papercraft_release.packagers.base import Packager
from papercraft_release.toolchain.provisioner import Toolchain

# Always present on target systems; bundling it causes version clashes.
EXCLUDED_LIBRARY = "libglib-2.0.*"
ICON_SIZE = "128x128"


class AppImagePackager(Packager):
    """Packages the Linux x86_64 build as an AppImage."""

    platform = Platform.LINUX_X86_64

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
        if toolchain is None:
            raise PackagingError(
                "AppImage packaging needs a provisioned toolchain",
                platform=self.platform.value,
            )
        linuxdeploy = str(toolchain.tool("linuxdeploy"))
        desktop = self._require_asset(assets.desktop_file, "desktop entry")
        appdata = self._require_asset(assets.appdata_file, "appdata metainfo")
        icon = self._require_asset(assets.icon_png, "icon")
        apprun = self._require_asset(assets.apprun, "AppRun launcher")

        env = toolchain.environment()
        env["LINUXDEPLOY_OUTPUT_VERSION"] = tag
        env["ARCH"] = "x86_64"

        appdir = staging / "AppDir"
        # First pass only creates the directory skeleton
        self._run(
            [linuxdeploy, f"--appdir={appdir}"],
            cwd=staging,
            env=env,
            cancel_event=cancel_event,
        )

        usr = appdir / "usr"
        applications = usr / "share" / "applications"
        metainfo = usr / "share" / "metainfo"
        icons = usr / "share" / "icons" / "hicolor" / ICON_SIZE / "apps"
        for directory in (applications, metainfo, icons, usr / "bin"):
            directory.mkdir(parents=True, exist_ok=True)

        shutil.copy2(desktop, applications / desktop.name)
        shutil.copy2(appdata, metainfo / appdata.name)
        shutil.copy2(executable, usr / "bin" / self._config.binary_name)
        shutil.copy2(icon, icons / icon.name)

        self._run(
            [
                linuxdeploy,
                f"--appdir={appdir}",
                f"--desktop-file={applications / desktop.name}",
                "--output",
                "appimage",
                f"--exclude-library={EXCLUDED_LIBRARY}",
                f"--custom-apprun={apprun}",
            ],
            cwd=staging,
            env=env,
            cancel_event=cancel_event,
        )

        images = sorted(staging.glob("*.AppImage"))
        if len(images) != 1:
            raise PackagingError(
                f"Expected one AppImage from linuxdeploy, found {len(images)}",
                platform=self.platform.value,
                details={"found": [p.name for p in images]},
            )
        return images[0]
