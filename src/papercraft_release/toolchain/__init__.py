"""
Papercraft Release Toolchain Module.

Provisions per-job helper tools and compiler shims.
"""

__all__ = ["Toolchain", "ToolchainProvisioner"]

from papercraft_release.toolchain.provisioner import Toolchain, ToolchainProvisioner
