"""
macOS disk image packager.

Builds a Papercraft.app bundle and wraps it with hdiutil.
"""

import plistlib
import shutil
import threading
from pathlib import Path

from papercraft_release.core.config import AssetPaths
from papercraft_release.core.models import Platform
from papercraft_release.packagers.base import Packager
from papercraft_release.toolchain.provisioner import Toolchain

BUNDLE_IDENTIFIER = "com.rodrigorc.papercraft"


class DmgPackager(Packager):
    """Packages the macOS build as a compressed disk image."""

    platform = Platform.MACOS

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
        app_name = self._config.app_name
        volume = staging / "volume"
        self.build_bundle(volume, executable, assets, tag)

        hdiutil = str(toolchain.tool("hdiutil")) if toolchain else "hdiutil"
        image = staging / self.artifact_name(tag)
        self._run(
            [
                hdiutil,
                "create",
                "-volname",
                app_name,
                "-srcfolder",
                str(volume),
                "-ov",
                "-format",
                "UDZO",
                str(image),
            ],
            cwd=staging,
            cancel_event=cancel_event,
        )
        return image

    def build_bundle(
        self, parent: Path, executable: Path, assets: AssetPaths, tag: str
    ) -> Path:
        """Create ``<AppName>.app`` under ``parent`` and return its path."""
        app_name = self._config.app_name
        binary = self._config.binary_name
        contents = parent / f"{app_name}.app" / "Contents"
        macos_dir = contents / "MacOS"
        resources = contents / "Resources"
        macos_dir.mkdir(parents=True)
        resources.mkdir(parents=True)

        shutil.copy2(executable, macos_dir / binary)

        info = {
            "CFBundleName": app_name,
            "CFBundleDisplayName": app_name,
            "CFBundleExecutable": binary,
            "CFBundleIdentifier": BUNDLE_IDENTIFIER,
            "CFBundlePackageType": "APPL",
            "CFBundleShortVersionString": tag.lstrip("v"),
            "CFBundleVersion": tag,
            "NSHighResolutionCapable": True,
        }
        icon = assets.icon_icns
        if icon is not None and icon.is_file():
            shutil.copy2(icon, resources / icon.name)
            info["CFBundleIconFile"] = icon.name

        with open(contents / "Info.plist", "wb") as f:
            plistlib.dump(info, f)
        return contents.parent
