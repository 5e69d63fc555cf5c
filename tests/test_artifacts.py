"""Tests for the artifact store."""

import threading
from pathlib import Path

import pytest

from papercraft_release.artifacts import Artifact, ArtifactMetadata, FileSystemArtifactStore
from papercraft_release.core.exceptions import (
    ArtifactImmutableError,
    ArtifactNotFoundError,
    ArtifactStoreError,
)
from papercraft_release.core.models import Platform, artifact_name


# =============================================================================
# Fixtures
# =============================================================================


@pytest.fixture
def store(temp_dir: Path) -> FileSystemArtifactStore:
    """Provide a store rooted in a temporary directory."""
    return FileSystemArtifactStore(temp_dir / "store", run_id="run-1")


@pytest.fixture
def packaged_file(temp_dir: Path) -> Path:
    path = temp_dir / "Papercraft-v1-win64.exe"
    path.write_bytes(b"MZ" + b"\x00" * 1024)
    return path


# =============================================================================
# put / get / exists
# =============================================================================


class TestPutGet:
    def test_put_bytes_then_get(self, store: FileSystemArtifactStore) -> None:
        metadata = store.put(
            "Papercraft-v1-win32.zip", b"zipdata", platform=Platform.WIN32, release_tag="v1"
        )
        assert isinstance(metadata, ArtifactMetadata)
        assert metadata.size_bytes == 7
        assert metadata.run_id == "run-1"

        artifact = store.get("Papercraft-v1-win32.zip")
        assert isinstance(artifact, Artifact)
        assert artifact.read_bytes() == b"zipdata"
        assert artifact.metadata.platform == Platform.WIN32
        assert artifact.metadata.release_tag == "v1"
        assert artifact.metadata.content_hash == metadata.content_hash

    def test_put_file(self, store: FileSystemArtifactStore, packaged_file: Path) -> None:
        store.put(packaged_file.name, packaged_file, platform=Platform.WIN64, release_tag="v1")
        artifact = store.get(packaged_file.name)
        assert artifact.read_bytes() == packaged_file.read_bytes()
        assert store.verify(packaged_file.name)

    def test_visible_immediately(self, store: FileSystemArtifactStore) -> None:
        """Uploaded artifacts are queryable as soon as put returns."""
        name = artifact_name("v1", Platform.MACOS)
        assert not store.exists(name)
        store.put(name, b"dmg", platform=Platform.MACOS, release_tag="v1")
        assert store.exists(name)

    def test_get_missing(self, store: FileSystemArtifactStore) -> None:
        with pytest.raises(ArtifactNotFoundError) as exc_info:
            store.get("Papercraft-v1-MacOS.dmg")
        assert exc_info.value.name == "Papercraft-v1-MacOS.dmg"

    def test_copy_to(self, store: FileSystemArtifactStore, temp_dir: Path) -> None:
        store.put("a.zip", b"abc", platform=Platform.WIN32, release_tag="v1")
        copied = store.get("a.zip").copy_to(temp_dir / "out")
        assert copied == temp_dir / "out" / "a.zip"
        assert copied.read_bytes() == b"abc"

    @pytest.mark.parametrize("name", ["", "../escape", "a/b", ".hidden"])
    def test_invalid_names(self, store: FileSystemArtifactStore, name: str) -> None:
        with pytest.raises(ArtifactStoreError):
            store.put(name, b"x", platform=Platform.WIN32, release_tag="v1")

    def test_unreadable_source(self, store: FileSystemArtifactStore, temp_dir: Path) -> None:
        with pytest.raises(ArtifactStoreError):
            store.put("a.zip", temp_dir / "absent", platform=Platform.WIN32, release_tag="v1")
        assert not store.exists("a.zip")


class TestImmutability:
    """Stored artifacts are never mutated."""

    def test_same_content_is_idempotent(self, store: FileSystemArtifactStore) -> None:
        first = store.put("a.zip", b"same", platform=Platform.WIN32, release_tag="v1")
        second = store.put("a.zip", b"same", platform=Platform.WIN32, release_tag="v1")
        assert first.content_hash == second.content_hash
        assert first.created_at == second.created_at

    def test_different_content_rejected(self, store: FileSystemArtifactStore) -> None:
        store.put("a.zip", b"original", platform=Platform.WIN32, release_tag="v1")
        with pytest.raises(ArtifactImmutableError):
            store.put("a.zip", b"changed", platform=Platform.WIN32, release_tag="v1")
        assert store.get("a.zip").read_bytes() == b"original"

    def test_verify_detects_tampering(self, store: FileSystemArtifactStore) -> None:
        store.put("a.zip", b"original", platform=Platform.WIN32, release_tag="v1")
        store.get("a.zip").path.write_bytes(b"tampered")
        assert not store.verify("a.zip")


class TestListing:
    def test_list_names(self, store: FileSystemArtifactStore) -> None:
        store.put("Papercraft-v1-win32.zip", b"1", platform=Platform.WIN32, release_tag="v1")
        store.put("Papercraft-v1-win64.exe", b"2", platform=Platform.WIN64, release_tag="v1")
        store.put("Other-v1-win64.exe", b"3", platform=Platform.WIN64, release_tag="v1")

        assert store.list_names() == [
            "Other-v1-win64.exe",
            "Papercraft-v1-win32.zip",
            "Papercraft-v1-win64.exe",
        ]
        assert store.list_names("Papercraft-v1-") == [
            "Papercraft-v1-win32.zip",
            "Papercraft-v1-win64.exe",
        ]

    def test_staging_dirs_not_listed(self, store: FileSystemArtifactStore) -> None:
        (store.root / ".staging-leftover").mkdir()
        assert store.list_names() == []

    def test_corrupt_metadata(self, store: FileSystemArtifactStore) -> None:
        store.put("a.zip", b"x", platform=Platform.WIN32, release_tag="v1")
        (store.root / "a.zip" / "metadata.json").write_text("{not json")
        with pytest.raises(ArtifactStoreError):
            store.get("a.zip")


def test_concurrent_puts_of_distinct_names(store: FileSystemArtifactStore) -> None:
    """Parallel jobs write distinct names without interfering."""
    errors: list[Exception] = []

    def upload(platform: Platform) -> None:
        try:
            name = artifact_name("v1", platform)
            store.put(name, platform.value.encode() * 1000, platform=platform, release_tag="v1")
        except Exception as e:  # pragma: no cover - surfaced by the assert below
            errors.append(e)

    threads = [threading.Thread(target=upload, args=(p,)) for p in Platform]
    for t in threads:
        t.start()
    for t in threads:
        t.join()

    assert errors == []
    assert len(store.list_names()) == 4
    for platform in Platform:
        assert store.get(artifact_name("v1", platform)).metadata.platform == platform
