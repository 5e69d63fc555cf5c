"""
Artifact storage backend.

Keyed blob storage used to hand packaged artifacts from the platform jobs
to the aggregator. Layout under the store root:

- {root}/{name}/content
- {root}/{name}/metadata.json

An artifact directory is staged under a temporary name and renamed into
place, so a name is either fully present or absent.
"""

import hashlib
import logging
import shutil
import threading
import uuid
from abc import ABC, abstractmethod
from pathlib import Path

from pydantic import ValidationError as PydanticValidationError

from papercraft_release.core.exceptions import (
    ArtifactImmutableError,
    ArtifactNotFoundError,
    ArtifactStoreError,
)
from papercraft_release.core.models import Platform

from .models import Artifact, ArtifactMetadata

logger = logging.getLogger(__name__)

CONTENT_FILE = "content"
METADATA_FILE = "metadata.json"


class ArtifactStore(ABC):
    """put/get/exists interface over named artifacts."""

    @abstractmethod
    def put(
        self,
        name: str,
        source: bytes | Path,
        *,
        platform: Platform,
        release_tag: str,
    ) -> ArtifactMetadata:
        """Store ``source`` under ``name``; idempotent for identical content."""

    @abstractmethod
    def get(self, name: str) -> Artifact:
        """Return the artifact, or raise ArtifactNotFoundError."""

    @abstractmethod
    def exists(self, name: str) -> bool:
        """Return True if ``name`` is stored."""

    @abstractmethod
    def list_names(self, prefix: str = "") -> list[str]:
        """Return stored names starting with ``prefix``, sorted."""


class FileSystemArtifactStore(ArtifactStore):
    """
    Directory-backed artifact store.

    Thread-safe; uploads are visible to ``get``/``exists`` as soon as
    ``put`` returns. Stored artifacts are never modified.
    """

    def __init__(self, root: Path, run_id: str | None = None):
        """
        Initialize artifact storage.

        Args:
            root: Directory holding this store's artifacts
            run_id: Pipeline run recorded on uploaded metadata
        """
        self._root = root
        self._run_id = run_id
        self._lock = threading.RLock()
        self._root.mkdir(parents=True, exist_ok=True)

    @property
    def root(self) -> Path:
        return self._root

    def _artifact_dir(self, name: str) -> Path:
        if not name or "/" in name or "\\" in name or name.startswith("."):
            raise ArtifactStoreError(
                f"Invalid artifact name '{name}'", name=name, operation="resolve"
            )
        return self._root / name

    @staticmethod
    def _compute_hash(data: bytes) -> str:
        """Compute SHA256 hash of data."""
        return hashlib.sha256(data).hexdigest()

    @staticmethod
    def _compute_hash_streaming(file_path: Path) -> str:
        """Compute SHA256 hash of a file with streaming."""
        hasher = hashlib.sha256()
        with open(file_path, "rb") as f:
            for chunk in iter(lambda: f.read(65536), b""):
                hasher.update(chunk)
        return hasher.hexdigest()

    def put(
        self,
        name: str,
        source: bytes | Path,
        *,
        platform: Platform,
        release_tag: str,
    ) -> ArtifactMetadata:
        """
        Store an artifact.

        Args:
            name: Logical artifact name
            source: Content bytes or path of a file to copy
            platform: Platform of the producing job
            release_tag: Release the artifact belongs to

        Returns:
            Metadata of the stored artifact

        Raises:
            ArtifactImmutableError: If ``name`` holds different content
            ArtifactStoreError: On I/O failure
        """
        artifact_dir = self._artifact_dir(name)

        with self._lock:
            try:
                if isinstance(source, Path):
                    content_hash = self._compute_hash_streaming(source)
                    size_bytes = source.stat().st_size
                else:
                    content_hash = self._compute_hash(source)
                    size_bytes = len(source)
            except OSError as e:
                raise ArtifactStoreError(
                    f"Cannot read upload source: {e}", name=name, operation="put"
                ) from e

            if self.exists(name):
                existing = self._read_metadata(name)
                if existing.content_hash != content_hash:
                    raise ArtifactImmutableError(
                        name=name,
                        expected=existing.content_hash,
                        actual=content_hash,
                    )
                logger.debug("Artifact %s already stored, skipping", name)
                return existing

            staging = self._root / f".staging-{uuid.uuid4().hex}"
            try:
                staging.mkdir()
                content_path = staging / CONTENT_FILE
                if isinstance(source, Path):
                    shutil.copyfile(source, content_path)
                else:
                    content_path.write_bytes(source)

                metadata = ArtifactMetadata(
                    name=name,
                    platform=platform,
                    release_tag=release_tag,
                    content_hash=content_hash,
                    size_bytes=size_bytes,
                    storage_path=artifact_dir / CONTENT_FILE,
                    run_id=self._run_id,
                )
                (staging / METADATA_FILE).write_text(metadata.model_dump_json(indent=2))
                staging.rename(artifact_dir)
            except OSError as e:
                raise ArtifactStoreError(
                    f"Failed to store artifact: {e}", name=name, operation="put"
                ) from e
            finally:
                shutil.rmtree(staging, ignore_errors=True)

        logger.info("Stored artifact %s (%d bytes)", name, size_bytes)
        return metadata

    def get(self, name: str) -> Artifact:
        """
        Retrieve an artifact by name.

        Raises:
            ArtifactNotFoundError: If the name is not stored
        """
        if not self.exists(name):
            raise ArtifactNotFoundError(f"Artifact '{name}' not in store", name=name)
        metadata = self._read_metadata(name)
        return Artifact(metadata=metadata, path=self._artifact_dir(name) / CONTENT_FILE)

    def exists(self, name: str) -> bool:
        return (self._artifact_dir(name) / METADATA_FILE).is_file()

    def list_names(self, prefix: str = "") -> list[str]:
        if not self._root.exists():
            return []
        return sorted(
            entry.name
            for entry in self._root.iterdir()
            if not entry.name.startswith(".")
            and entry.name.startswith(prefix)
            and (entry / METADATA_FILE).is_file()
        )

    def verify(self, name: str) -> bool:
        """Return True if stored content still matches its recorded hash."""
        artifact = self.get(name)
        return self._compute_hash_streaming(artifact.path) == artifact.metadata.content_hash

    def _read_metadata(self, name: str) -> ArtifactMetadata:
        path = self._artifact_dir(name) / METADATA_FILE
        try:
            return ArtifactMetadata.model_validate_json(path.read_text())
        except (OSError, PydanticValidationError) as e:
            raise ArtifactStoreError(
                f"Corrupt metadata for artifact: {e}", name=name, operation="get"
            ) from e
