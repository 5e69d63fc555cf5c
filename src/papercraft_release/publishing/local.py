"""
Local directory publisher.

Publishes a release by copying its artifacts into ``<release_dir>/<tag>/``
next to a ``release.json`` record. Used for dry runs and air-gapped builds.
"""

import hashlib
import json
import logging
import shutil
from datetime import datetime, timezone
from pathlib import Path

from papercraft_release.core.exceptions import PublishError
from papercraft_release.publishing.base import PublishResult, ReleasePublisher

logger = logging.getLogger(__name__)

RECORD_FILE = "release.json"


class LocalReleasePublisher(ReleasePublisher):
    """Publishes releases into a local directory tree."""

    publisher_type = "local"

    def __init__(self, release_dir: Path):
        self._release_dir = release_dir

    def publish(
        self,
        release_tag: str,
        files: list[Path],
        *,
        prerelease: bool = True,
    ) -> PublishResult:
        target = self._release_dir / release_tag
        record_path = target / RECORD_FILE

        existing = self._load_record(record_path)
        clashes = sorted({f.name for f in files} & set(existing.get("assets", {})))
        if clashes:
            raise PublishError(
                "Release already has assets with these names",
                release_tag=release_tag,
                details={"assets": clashes},
            )

        try:
            target.mkdir(parents=True, exist_ok=True)
            assets = dict(existing.get("assets", {}))
            for path in files:
                shutil.copyfile(path, target / path.name)
                assets[path.name] = _sha256(path)

            record = {
                "tag": release_tag,
                "prerelease": prerelease,
                "published_at": datetime.now(timezone.utc).isoformat(),
                "assets": assets,
            }
            record_path.write_text(json.dumps(record, indent=2, sort_keys=True))
        except OSError as e:
            raise PublishError(
                f"Failed to write release: {e}", release_tag=release_tag
            ) from e

        logger.info("Published %d assets to %s", len(files), target)
        return PublishResult(
            release_tag=release_tag,
            prerelease=prerelease,
            assets=sorted(f.name for f in files),
            url=target.resolve().as_uri(),
        )

    @staticmethod
    def _load_record(path: Path) -> dict:
        if not path.is_file():
            return {}
        try:
            return json.loads(path.read_text())
        except (OSError, json.JSONDecodeError) as e:
            raise PublishError(f"Unreadable release record {path}: {e}") from e


def _sha256(path: Path) -> str:
    hasher = hashlib.sha256()
    with open(path, "rb") as f:
        for chunk in iter(lambda: f.read(65536), b""):
            hasher.update(chunk)
    return hasher.hexdigest()
