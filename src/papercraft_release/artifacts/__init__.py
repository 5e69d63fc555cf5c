"""
Papercraft Release Artifacts Module.

Keyed artifact storage shared by the platform jobs and the aggregator.
"""

from .models import Artifact, ArtifactMetadata
from .storage import ArtifactStore, FileSystemArtifactStore

__all__ = [
    # Models
    "Artifact",
    "ArtifactMetadata",
    # Storage
    "ArtifactStore",
    "FileSystemArtifactStore",
]
