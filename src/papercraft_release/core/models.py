"""
Core data models for the release pipeline.

Platforms, release tags, deterministic artifact naming and job results.
"""

import re
from dataclasses import dataclass, field
from datetime import datetime, timezone
from enum import Enum, IntEnum
from typing import Any

from pydantic import BaseModel, Field

from papercraft_release.core.exceptions import ValidationError

APP_NAME = "Papercraft"

_TAG_PATTERN = re.compile(r"^[A-Za-z0-9][A-Za-z0-9._+-]*$")


class Platform(Enum):
    """The four supported platform/architecture targets."""

    LINUX_X86_64 = "linux-x86_64"
    WIN32 = "win32"
    WIN64 = "win64"
    MACOS = "macos"

    @classmethod
    def parse(cls, value: "str | Platform") -> "Platform":
        """Convert a platform id to Platform, rejecting unknown ids."""
        if isinstance(value, Platform):
            return value
        try:
            return cls(value.lower())
        except ValueError:
            raise ValidationError(
                f"Unsupported platform '{value}'",
                field="platform",
                value=value,
            ) from None

    @property
    def spec(self) -> "PlatformSpec":
        """Return the static build/packaging parameters for this platform."""
        return PlatformSpec.for_platform(self)


@dataclass(frozen=True)
class PlatformSpec:
    """Immutable build and naming parameters of a platform."""

    suffix: str
    extension: str
    target_triple: str | None = None
    executable_suffix: str = ""
    env_overrides: tuple[tuple[str, str], ...] = ()

    @property
    def artifact_suffix(self) -> str:
        return f"{self.suffix}.{self.extension}"

    @staticmethod
    def for_platform(platform: Platform) -> "PlatformSpec":
        """Return parameters for a given platform."""
        match platform:
            case Platform.LINUX_X86_64:
                return PlatformSpec(suffix="x86_64", extension="AppImage")
            case Platform.WIN32:
                return PlatformSpec(
                    suffix="win32",
                    extension="zip",
                    target_triple="i686-pc-windows-msvc",
                    executable_suffix=".exe",
                )
            case Platform.WIN64:
                return PlatformSpec(
                    suffix="win64",
                    extension="exe",
                    target_triple="x86_64-pc-windows-msvc",
                    executable_suffix=".exe",
                    env_overrides=(
                        ("RUSTFLAGS", "-Ctarget-feature=+crt-static"),
                        ("RC", "rc.exe"),
                    ),
                )
            case Platform.MACOS:
                return PlatformSpec(suffix="MacOS", extension="dmg")
            case _:
                raise ValidationError(
                    f"No platform spec for {platform}", field="platform"
                )


def validate_release_tag(tag: str) -> str:
    """
    Validate a release tag.

    The tag is used verbatim in file names and as the release key, so it
    must be non-empty and contain no whitespace or path separators.
    """
    if not tag or not _TAG_PATTERN.match(tag):
        raise ValidationError(
            f"Invalid release tag '{tag}'",
            field="release_tag",
            value=tag,
        )
    return tag


def artifact_name(tag: str, platform: "Platform | str", app_name: str = APP_NAME) -> str:
    """Return the deterministic artifact name for a tag and platform."""
    validate_release_tag(tag)
    spec = Platform.parse(platform).spec
    return f"{app_name}-{tag}-{spec.artifact_suffix}"


def release_glob(tag: str, app_name: str = APP_NAME) -> str:
    """Glob pattern matching every artifact of a release."""
    return f"{app_name}-{tag}-*"


@dataclass(frozen=True)
class ReleaseManifest:
    """The set of artifact names expected for a release tag."""

    release_tag: str
    names: dict[Platform, str] = field(default_factory=dict)
    app_name: str = APP_NAME

    @classmethod
    def for_platforms(
        cls,
        tag: str,
        platforms: "list[Platform] | None" = None,
        app_name: str = APP_NAME,
    ) -> "ReleaseManifest":
        platforms = platforms or list(Platform)
        return cls(
            release_tag=validate_release_tag(tag),
            names={p: artifact_name(tag, p, app_name) for p in platforms},
            app_name=app_name,
        )

    def is_complete(self, present: set[str]) -> bool:
        """True when every expected name is in ``present``."""
        return set(self.names.values()) <= present

    @property
    def glob(self) -> str:
        """Pattern matching every artifact of this release."""
        return release_glob(self.release_tag, self.app_name)


class JobStatus(Enum):
    """Possible states of a PlatformJob."""

    PENDING = "pending"
    RUNNING = "running"
    SUCCEEDED = "succeeded"
    FAILED = "failed"
    CANCELLED = "cancelled"

    @property
    def is_terminal(self) -> bool:
        return self in (JobStatus.SUCCEEDED, JobStatus.FAILED, JobStatus.CANCELLED)


class JobStage(Enum):
    """Sequential stages of a PlatformJob."""

    PROVISION = "provision"
    BUILD = "build"
    PACKAGE = "package"
    UPLOAD = "upload"


class JobResult(BaseModel):
    """Terminal result of one PlatformJob."""

    platform: Platform
    status: JobStatus
    artifact_name: str
    failed_stage: JobStage | None = None
    error_message: str | None = None
    error_type: str | None = None
    execution_time_ms: float | None = None
    timestamp: str = Field(default_factory=lambda: _iso_timestamp())

    def is_success(self) -> bool:
        """Return True if the job uploaded its artifact."""
        return self.status == JobStatus.SUCCEEDED and self.error_message is None

    def to_summary(self) -> dict[str, Any]:
        return {
            "platform": self.platform.value,
            "status": self.status.value,
            "artifact": self.artifact_name,
            "failed_stage": self.failed_stage.value if self.failed_stage else None,
            "error": self.error_message,
            "duration_ms": self.execution_time_ms,
        }


class ExitCode(IntEnum):
    """Process exit status reported to the invoking caller."""

    SUCCESS = 0
    FAILURE = 1
    # 2 is reserved for usage errors by the CLI framework
    PARTIAL = 3


def _iso_timestamp() -> str:
    """Generate ISO 8601 timestamp."""
    return datetime.now(timezone.utc).isoformat()
