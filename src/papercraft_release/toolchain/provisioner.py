"""
Toolchain provisioning.

Installs per-job helper tools (packaging binaries, compiler shims) into a
private bin directory and returns an explicit Toolchain object. The search
path is only ever changed in the environment mapping handed to child
processes, never in ``os.environ``.
"""

import logging
import os
import shutil
import stat
from collections.abc import Mapping
from dataclasses import dataclass, field
from pathlib import Path

import httpx

from papercraft_release.core.config import PipelineConfig
from papercraft_release.core.exceptions import ProvisioningError, ValidationError
from papercraft_release.core.models import Platform

logger = logging.getLogger(__name__)

ELF_MAGIC = b"\x7fELF"
LINUXDEPLOY_NAME = "linuxdeploy-x86_64.AppImage"

# Old g++ releases accept -std=c++2a but not -std=c++20.
COMPILER_SHIM_TEMPLATE = """#!/bin/bash
args=()
for arg in "$@"; do
    if [ "$arg" = "-std=c++20" ]; then
        args+=("-std=c++2a")
    else
        args+=("$arg")
    fi
done
exec {compiler} "${{args[@]}}"
"""


@dataclass(frozen=True)
class Toolchain:
    """Provisioned helper tools for one PlatformJob."""

    platform: Platform
    bin_dir: Path
    tools: dict[str, Path] = field(default_factory=dict)

    def tool(self, name: str) -> Path:
        """Return the path of a provisioned tool."""
        try:
            return self.tools[name]
        except KeyError:
            raise ProvisioningError(
                f"Tool '{name}' was not provisioned",
                platform=self.platform.value,
            ) from None

    def environment(self, base_env: Mapping[str, str] | None = None) -> dict[str, str]:
        """Return a new environment with the bin dir prepended to PATH."""
        env = dict(os.environ if base_env is None else base_env)
        path = env.get("PATH", "")
        env["PATH"] = os.pathsep.join(p for p in (str(self.bin_dir), path) if p)
        return env


class ToolchainProvisioner:
    """
    Ensures a platform's helper tools exist before its build starts.

    Linux jobs get linuxdeploy and the g++/c++ shim; macOS jobs need
    hdiutil on the host; Windows jobs need nothing extra.
    """

    def __init__(
        self,
        config: PipelineConfig,
        http_client: httpx.Client | None = None,
    ):
        self._config = config
        self._client = http_client

    def provision(
        self,
        platform: Platform | str,
        job_dir: Path,
        base_env: Mapping[str, str] | None = None,
    ) -> Toolchain:
        """
        Provision helper tools for ``platform`` under ``job_dir/bin``.

        Raises:
            ProvisioningError: If the platform is unsupported or a tool
                cannot be fetched; the bin dir is removed in that case
        """
        try:
            platform = Platform.parse(platform)
        except ValidationError as e:
            raise ProvisioningError(e.message, platform=str(platform)) from e

        bin_dir = job_dir / "bin"
        if bin_dir.exists():
            shutil.rmtree(bin_dir)
        bin_dir.mkdir(parents=True)

        env = dict(os.environ if base_env is None else base_env)
        try:
            match platform:
                case Platform.LINUX_X86_64:
                    tools = {
                        "linuxdeploy": self._fetch_linuxdeploy(bin_dir),
                        **self._install_compiler_shims(bin_dir, env),
                    }
                case Platform.MACOS:
                    tools = {"hdiutil": self._require_host_tool("hdiutil", platform, env)}
                case _:
                    tools = {}
        except ProvisioningError:
            shutil.rmtree(bin_dir, ignore_errors=True)
            raise

        logger.info(
            "Provisioned %s toolchain: %s",
            platform.value,
            ", ".join(sorted(tools)) or "no helpers",
        )
        return Toolchain(platform=platform, bin_dir=bin_dir, tools=tools)

    def _fetch_linuxdeploy(self, bin_dir: Path) -> Path:
        """Download linuxdeploy and mark it executable."""
        target = bin_dir / LINUXDEPLOY_NAME
        partial = target.with_suffix(".part")
        url = self._config.linuxdeploy_url
        logger.info("Downloading %s", url)

        client = self._client or httpx.Client(
            timeout=self._config.download_timeout_seconds, follow_redirects=True
        )
        try:
            with client.stream("GET", url) as response:
                response.raise_for_status()
                with open(partial, "wb") as f:
                    for chunk in response.iter_bytes():
                        f.write(chunk)
        except httpx.HTTPStatusError as e:
            raise ProvisioningError(
                f"Download of {LINUXDEPLOY_NAME} failed with HTTP {e.response.status_code}",
                platform=Platform.LINUX_X86_64.value,
                details={"url": url},
            ) from e
        except (httpx.HTTPError, OSError) as e:
            raise ProvisioningError(
                f"Download of {LINUXDEPLOY_NAME} failed: {e}",
                platform=Platform.LINUX_X86_64.value,
                details={"url": url},
            ) from e
        finally:
            if self._client is None:
                client.close()

        with open(partial, "rb") as f:
            magic = f.read(len(ELF_MAGIC))
        if magic != ELF_MAGIC:
            partial.unlink()
            raise ProvisioningError(
                f"{LINUXDEPLOY_NAME} is not an ELF executable",
                platform=Platform.LINUX_X86_64.value,
                details={"url": url},
            )

        partial.replace(target)
        _make_executable(target)
        return target

    def _install_compiler_shims(
        self, bin_dir: Path, env: Mapping[str, str]
    ) -> dict[str, Path]:
        """Install g++ and c++ wrappers that rewrite -std=c++20."""
        custom = self._config.resolved_assets().compiler_shim
        if custom is not None:
            if not custom.is_file():
                raise ProvisioningError(
                    f"Compiler shim not found: {custom}",
                    platform=Platform.LINUX_X86_64.value,
                )
            script = custom.read_text()
        else:
            compiler = self._require_host_tool("g++", Platform.LINUX_X86_64, env)
            script = COMPILER_SHIM_TEMPLATE.format(compiler=compiler)

        shims = {}
        for name in ("g++", "c++"):
            path = bin_dir / name
            path.write_text(script)
            _make_executable(path)
            shims[name] = path
        return shims

    @staticmethod
    def _require_host_tool(
        name: str, platform: Platform, env: Mapping[str, str]
    ) -> Path:
        found = shutil.which(name, path=env.get("PATH"))
        if not found:
            raise ProvisioningError(
                f"Required host tool '{name}' is not on PATH",
                platform=platform.value,
            )
        return Path(found)


def _make_executable(path: Path) -> None:
    mode = path.stat().st_mode
    path.chmod(mode | stat.S_IXUSR | stat.S_IXGRP | stat.S_IXOTH)
