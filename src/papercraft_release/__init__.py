"""
Papercraft Release - multi-platform release-build orchestration.

Builds the Papercraft desktop application for Linux, Windows (32 and
64-bit) and macOS, packages each build natively and publishes every
artifact together as one pre-release.
"""

__version__ = "0.1.0"

__all__ = []
