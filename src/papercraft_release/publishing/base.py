"""
Base publisher class.

A publisher attaches a complete set of artifacts to the release record
of a tag in one call. Calling it twice for the same tag is not
idempotent on the hosting side.
"""

from abc import ABC, abstractmethod
from dataclasses import dataclass, field
from pathlib import Path


@dataclass
class PublishResult:
    """Outcome of a successful publish call."""

    release_tag: str
    prerelease: bool
    assets: list[str] = field(default_factory=list)
    url: str | None = None


class ReleasePublisher(ABC):
    """Abstract base class for release publishers."""

    publisher_type: str = "base"

    @abstractmethod
    def publish(
        self,
        release_tag: str,
        files: list[Path],
        *,
        prerelease: bool = True,
    ) -> PublishResult:
        """
        Create or update the release for ``release_tag`` with all ``files``.

        Raises:
            PublishError: If the release host rejects the publish
        """
