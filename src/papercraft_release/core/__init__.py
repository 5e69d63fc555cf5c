"""
Papercraft Release Core Module.

Provides foundational types, configuration and exceptions for the pipeline.
"""

__all__ = [
    "APP_NAME",
    "ExitCode",
    "JobResult",
    "JobStage",
    "JobStatus",
    "Platform",
    "PlatformSpec",
    "ReleaseManifest",
    "artifact_name",
    "release_glob",
    "validate_release_tag",
    "PipelineConfig",
    "PublisherKind",
    # Exceptions
    "ReleaseError",
    "PlatformJobError",
    "ProvisioningError",
    "BuildError",
    "PackagingError",
    "ArtifactStoreError",
    "ArtifactNotFoundError",
    "ArtifactImmutableError",
    "PublishError",
    "ConfigurationError",
    "ValidationError",
    "PipelineCancelledError",
    "StateTransitionError",
]

from papercraft_release.core.config import PipelineConfig, PublisherKind
from papercraft_release.core.exceptions import (
    ArtifactImmutableError,
    ArtifactNotFoundError,
    ArtifactStoreError,
    BuildError,
    ConfigurationError,
    PackagingError,
    PipelineCancelledError,
    PlatformJobError,
    ProvisioningError,
    PublishError,
    ReleaseError,
    StateTransitionError,
    ValidationError,
)
from papercraft_release.core.models import (
    APP_NAME,
    ExitCode,
    JobResult,
    JobStage,
    JobStatus,
    Platform,
    PlatformSpec,
    ReleaseManifest,
    artifact_name,
    release_glob,
    validate_release_tag,
)
