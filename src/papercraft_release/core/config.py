"""
Pipeline configuration.

Values are resolved with precedence: explicit overrides, YAML config file,
environment (``PCR_`` prefix), then defaults.

Environment variables:
- PCR_SOURCE_DIR: Application source checkout
- PCR_WORK_DIR: Scratch directory for per-job build trees
- PCR_STORE_DIR: Artifact store root
- PCR_RELEASE_DIR: Output directory of the local publisher
- PCR_PUBLISHER: "local" or "github"
- PCR_PLATFORMS: Comma-separated subset of platform ids
- PCR_GITHUB_REPOSITORY / GITHUB_REPOSITORY: owner/name of the release repo
- GITHUB_TOKEN: Token used by the GitHub publisher
- PCR_LOG_LEVEL: Logging level for the CLI
"""

import os
from enum import Enum
from pathlib import Path
from typing import Any

import yaml
from pydantic import BaseModel, Field, field_validator
from pydantic import ValidationError as PydanticValidationError

from papercraft_release.core.exceptions import ConfigurationError, ValidationError
from papercraft_release.core.models import APP_NAME, Platform

DEFAULT_LINUXDEPLOY_URL = (
    "https://github.com/linuxdeploy/linuxdeploy/releases/download/"
    "continuous/linuxdeploy-x86_64.AppImage"
)


class PublisherKind(Enum):
    """Where the aggregated release is published."""

    LOCAL = "local"
    GITHUB = "github"


class AssetPaths(BaseModel):
    """Static assets consumed by the packagers, relative to the source dir."""

    desktop_file: Path = Path("distro/papercraft.desktop")
    appdata_file: Path = Path("distro/com.rodrigorc.papercraft.appdata.xml")
    icon_png: Path = Path("src/papercraft.png")
    icon_icns: Path = Path("distro/papercraft.icns")
    apprun: Path = Path("distro/docker/apprun")
    compiler_shim: Path | None = None

    def resolve(self, root: Path) -> "AssetPaths":
        """Return a copy with every relative path anchored at ``root``."""
        data = {}
        for name, value in self.model_dump().items():
            if value is not None and not Path(value).is_absolute():
                value = root / value
            data[name] = value
        return AssetPaths(**data)


class PipelineConfig(BaseModel):
    """Configuration for a release pipeline run."""

    app_name: str = APP_NAME
    binary_name: str = "papercraft"
    source_dir: Path = Field(default_factory=Path.cwd)
    work_dir: Path = Path("var/release/work")
    store_dir: Path = Path("var/artifacts")
    release_dir: Path = Path("var/release/published")
    assets: AssetPaths = Field(default_factory=AssetPaths)
    platforms: list[Platform] = Field(default_factory=lambda: list(Platform))
    publisher: PublisherKind = PublisherKind.LOCAL
    linuxdeploy_url: str = DEFAULT_LINUXDEPLOY_URL
    github_repository: str | None = None
    github_token: str = ""
    github_api_url: str = "https://api.github.com"
    github_upload_url: str = "https://uploads.github.com"
    timeout_seconds: int = Field(default=3600, ge=1)
    download_timeout_seconds: int = Field(default=120, ge=1)

    @field_validator("platforms", mode="before")
    @classmethod
    def validate_platforms(cls, v):
        """Accept comma-separated strings and platform ids."""
        if isinstance(v, str):
            v = [p.strip() for p in v.split(",") if p.strip()]
        if not v:
            raise ValueError("at least one platform is required")
        try:
            parsed = [Platform.parse(p) for p in v]
        except ValidationError as e:
            raise ValueError(e.message) from None
        # Keep declaration order, drop duplicates
        return [p for p in Platform if p in parsed]

    @field_validator("github_repository")
    @classmethod
    def validate_repository(cls, v):
        if v is not None and v.count("/") != 1:
            raise ValueError("github_repository must look like 'owner/name'")
        return v

    def resolved_assets(self) -> AssetPaths:
        return self.assets.resolve(self.source_dir)

    @classmethod
    def load(
        cls,
        config_file: Path | None = None,
        **overrides: Any,
    ) -> "PipelineConfig":
        """
        Build configuration from environment, an optional YAML file and overrides.

        Args:
            config_file: Optional YAML file with PipelineConfig keys
            **overrides: Explicit values; ``None`` values are ignored

        Raises:
            ConfigurationError: If the file is unreadable or a value is invalid
        """
        data = _from_environment()
        if config_file is not None:
            data.update(_from_yaml(config_file))
        data.update({k: v for k, v in overrides.items() if v is not None})

        try:
            return cls(**data)
        except PydanticValidationError as e:
            first = e.errors()[0]
            key = ".".join(str(part) for part in first["loc"])
            raise ConfigurationError(
                f"Invalid configuration value: {first['msg']}",
                config_file=str(config_file) if config_file else None,
                config_key=key,
            ) from e


def _from_environment() -> dict[str, Any]:
    """Collect configuration values from environment variables."""
    mapping = {
        "PCR_SOURCE_DIR": "source_dir",
        "PCR_WORK_DIR": "work_dir",
        "PCR_STORE_DIR": "store_dir",
        "PCR_RELEASE_DIR": "release_dir",
        "PCR_PUBLISHER": "publisher",
        "PCR_PLATFORMS": "platforms",
        "PCR_LINUXDEPLOY_URL": "linuxdeploy_url",
        "PCR_GITHUB_API_URL": "github_api_url",
        "PCR_TIMEOUT_SECONDS": "timeout_seconds",
    }
    data: dict[str, Any] = {}
    for env_var, key in mapping.items():
        value = os.getenv(env_var)
        if value:
            data[key] = value

    repository = os.getenv("PCR_GITHUB_REPOSITORY") or os.getenv("GITHUB_REPOSITORY")
    if repository:
        data["github_repository"] = repository
    token = os.getenv("GITHUB_TOKEN")
    if token:
        data["github_token"] = token
    return data


def _from_yaml(path: Path) -> dict[str, Any]:
    """Load configuration values from a YAML file."""
    try:
        content = path.read_text()
    except OSError as e:
        raise ConfigurationError(
            f"Cannot read configuration file: {e}", config_file=str(path)
        ) from e

    try:
        data = yaml.safe_load(content)
    except yaml.YAMLError as e:
        raise ConfigurationError(
            f"Malformed YAML: {e}", config_file=str(path)
        ) from e

    if data is None:
        return {}
    if not isinstance(data, dict):
        raise ConfigurationError(
            "Configuration file must contain a mapping", config_file=str(path)
        )
    return data
