"""
Papercraft Release Publishing Module.

Publishers attach the aggregated artifact set to a release record.
"""

from papercraft_release.core.config import PipelineConfig, PublisherKind
from papercraft_release.publishing.base import PublishResult, ReleasePublisher
from papercraft_release.publishing.github import GitHubReleasePublisher
from papercraft_release.publishing.local import LocalReleasePublisher

__all__ = [
    "PublishResult",
    "ReleasePublisher",
    "GitHubReleasePublisher",
    "LocalReleasePublisher",
    "create_publisher",
]


def create_publisher(config: PipelineConfig) -> ReleasePublisher:
    """Create the publisher selected by ``config.publisher``."""
    if config.publisher == PublisherKind.GITHUB:
        return GitHubReleasePublisher.from_config(config)
    return LocalReleasePublisher(config.release_dir)
