"""
Pydantic models for the artifact store.

Defines the metadata recorded alongside every stored artifact.
"""

import shutil
from datetime import datetime, timezone
from pathlib import Path

from pydantic import BaseModel, Field

from papercraft_release.core.models import Platform


class ArtifactMetadata(BaseModel):
    """Metadata associated with a stored artifact."""

    name: str = Field(description="Logical artifact name, unique per release")
    platform: Platform = Field(description="Platform of the producing job")
    release_tag: str = Field(description="Release the artifact belongs to")
    content_hash: str = Field(description="SHA256 hash of content")
    size_bytes: int = Field(ge=0, description="Size in bytes")
    storage_path: Path | None = Field(
        default=None, description="Content location inside the store"
    )
    run_id: str | None = Field(default=None, description="Pipeline run that uploaded it")
    created_at: str = Field(
        default_factory=lambda: datetime.now(timezone.utc).isoformat(),
        description="ISO timestamp of upload",
    )


class Artifact(BaseModel):
    """A stored artifact: metadata plus the location of its content."""

    metadata: ArtifactMetadata
    path: Path

    @property
    def name(self) -> str:
        return self.metadata.name

    def read_bytes(self) -> bytes:
        """Return the artifact content."""
        return self.path.read_bytes()

    def copy_to(self, directory: Path) -> Path:
        """Copy the content to ``directory/<name>`` and return the new path."""
        directory.mkdir(parents=True, exist_ok=True)
        target = directory / self.metadata.name
        shutil.copyfile(self.path, target)
        return target
