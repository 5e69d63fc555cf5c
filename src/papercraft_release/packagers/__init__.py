"""
Papercraft Release Packagers.

One packager per platform, selected when a PlatformJob is constructed.
"""

from papercraft_release.core.exceptions import ValidationError
from papercraft_release.core.models import Platform
from papercraft_release.packagers.base import Packager
from papercraft_release.packagers.linux import AppImagePackager
from papercraft_release.packagers.macos import DmgPackager
from papercraft_release.packagers.windows import Win32ZipPackager, Win64ExePackager

__all__ = [
    "Packager",
    "AppImagePackager",
    "Win32ZipPackager",
    "Win64ExePackager",
    "DmgPackager",
    "PACKAGER_REGISTRY",
    "get_packager",
    "register_packager",
]

PACKAGER_REGISTRY: dict[Platform, type[Packager]] = {
    Platform.LINUX_X86_64: AppImagePackager,
    Platform.WIN32: Win32ZipPackager,
    Platform.WIN64: Win64ExePackager,
    Platform.MACOS: DmgPackager,
}


def get_packager(platform: Platform | str) -> type[Packager]:
    """Get packager class for a platform."""
    platform = Platform.parse(platform)
    try:
        return PACKAGER_REGISTRY[platform]
    except KeyError:
        raise ValidationError(
            f"No packager registered for {platform.value}", field="platform"
        ) from None


def register_packager(platform: Platform, packager_class: type[Packager]) -> None:
    """Register a replacement packager for a platform."""
    PACKAGER_REGISTRY[platform] = packager_class
