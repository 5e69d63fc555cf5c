"""
Papercraft Release Build Module.

Runs the native release build of one platform.
"""

__all__ = ["PlatformBuilder", "default_build_command"]

from papercraft_release.build.builder import PlatformBuilder, default_build_command
