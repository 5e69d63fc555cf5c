"""
GitHub Releases publisher.

Creates (or updates) the release for a tag as a pre-release and uploads
every asset. All preconditions are checked before the first upload, and a
failed upload removes whatever this call attached, so a rejected publish
leaves nothing half-attached. No retries.
"""

import logging
from pathlib import Path
from typing import Any

import httpx

from papercraft_release.core.config import PipelineConfig
from papercraft_release.core.exceptions import ConfigurationError, PublishError
from papercraft_release.publishing.base import PublishResult, ReleasePublisher

logger = logging.getLogger(__name__)

API_VERSION = "2022-11-28"


class GitHubReleasePublisher(ReleasePublisher):
    """Publishes releases through the GitHub REST API."""

    publisher_type = "github"

    def __init__(
        self,
        repository: str,
        token: str,
        *,
        api_url: str = "https://api.github.com",
        upload_url: str = "https://uploads.github.com",
        client: httpx.Client | None = None,
        timeout_seconds: int = 300,
    ):
        if not token:
            raise ConfigurationError(
                "GitHub token not configured", env_var="GITHUB_TOKEN"
            )
        if not repository:
            raise ConfigurationError(
                "GitHub repository not configured", env_var="PCR_GITHUB_REPOSITORY"
            )
        self._repository = repository
        self._api_url = api_url.rstrip("/")
        self._upload_url = upload_url.rstrip("/")
        self._client = client or httpx.Client(timeout=timeout_seconds)
        self._headers = {
            "Authorization": f"Bearer {token}",
            "Accept": "application/vnd.github+json",
            "X-GitHub-Api-Version": API_VERSION,
        }

    @classmethod
    def from_config(cls, config: PipelineConfig) -> "GitHubReleasePublisher":
        return cls(
            config.github_repository or "",
            config.github_token,
            api_url=config.github_api_url,
            upload_url=config.github_upload_url,
        )

    def publish(
        self,
        release_tag: str,
        files: list[Path],
        *,
        prerelease: bool = True,
    ) -> PublishResult:
        try:
            release = self._get_release(release_tag)
            created = release is None
            if release is None:
                release = self._create_release(release_tag, prerelease)
            elif release.get("prerelease") != prerelease:
                release = self._update_release(release["id"], prerelease)

            attached = {asset["name"] for asset in release.get("assets", [])}
            clashes = sorted(attached & {f.name for f in files})
            if clashes:
                raise PublishError(
                    "Release already has assets with these names",
                    release_tag=release_tag,
                    details={"assets": clashes},
                )

            uploaded: list[int] = []
            try:
                for path in files:
                    uploaded.append(self._upload_asset(release["id"], path))
            except (httpx.HTTPError, OSError):
                self._rollback(release["id"], uploaded, delete_release=created)
                raise
        except httpx.HTTPStatusError as e:
            raise PublishError(
                f"GitHub rejected the publish: {e.response.text[:200]}",
                release_tag=release_tag,
                status_code=e.response.status_code,
            ) from e
        except httpx.HTTPError as e:
            raise PublishError(
                f"HTTP error during publish: {e}", release_tag=release_tag
            ) from e
        except OSError as e:
            raise PublishError(
                f"Cannot read asset: {e}", release_tag=release_tag
            ) from e

        logger.info(
            "Published %s with %d assets: %s",
            release_tag,
            len(files),
            release.get("html_url"),
        )
        return PublishResult(
            release_tag=release_tag,
            prerelease=prerelease,
            assets=sorted(f.name for f in files),
            url=release.get("html_url"),
        )

    def _repo_url(self, suffix: str) -> str:
        return f"{self._api_url}/repos/{self._repository}/{suffix}"

    def _get_release(self, tag: str) -> dict[str, Any] | None:
        response = self._client.get(
            self._repo_url(f"releases/tags/{tag}"), headers=self._headers
        )
        if response.status_code == 404:
            return None
        response.raise_for_status()
        return response.json()

    def _create_release(self, tag: str, prerelease: bool) -> dict[str, Any]:
        response = self._client.post(
            self._repo_url("releases"),
            headers=self._headers,
            json={"tag_name": tag, "name": tag, "prerelease": prerelease},
        )
        response.raise_for_status()
        return response.json()

    def _update_release(self, release_id: int, prerelease: bool) -> dict[str, Any]:
        response = self._client.patch(
            self._repo_url(f"releases/{release_id}"),
            headers=self._headers,
            json={"prerelease": prerelease},
        )
        response.raise_for_status()
        return response.json()

    def _upload_asset(self, release_id: int, path: Path) -> int:
        logger.info("Uploading %s", path.name)
        response = self._client.post(
            f"{self._upload_url}/repos/{self._repository}/releases/{release_id}/assets",
            params={"name": path.name},
            headers={**self._headers, "Content-Type": "application/octet-stream"},
            content=path.read_bytes(),
        )
        response.raise_for_status()
        return response.json()["id"]

    def _rollback(
        self, release_id: int, asset_ids: list[int], *, delete_release: bool
    ) -> None:
        """Remove assets uploaded by a failed publish, and its release if new."""
        if delete_release:
            # Deleting the release also deletes its assets
            targets = [self._repo_url(f"releases/{release_id}")]
        else:
            targets = [self._repo_url(f"releases/assets/{a}") for a in asset_ids]

        for url in targets:
            try:
                response = self._client.delete(url, headers=self._headers)
                response.raise_for_status()
            except httpx.HTTPError as e:
                logger.error("Rollback of %s failed: %s", url, e)
            else:
                logger.warning("Rolled back %s", url)
