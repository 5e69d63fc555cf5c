"""
External command runner shared by the builder and packagers.

Captures combined output, honours a cancellation event and a timeout,
and converts failures into the caller's PlatformJobError subclass.
"""

import logging
import subprocess
import threading
import time
from collections.abc import Mapping
from dataclasses import dataclass
from pathlib import Path
from typing import Protocol

from papercraft_release.core.exceptions import PipelineCancelledError, PlatformJobError

logger = logging.getLogger(__name__)

POLL_INTERVAL_SECONDS = 0.5
OUTPUT_TAIL_LINES = 40


@dataclass
class CommandResult:
    """Outcome of a finished command."""

    command: list[str]
    returncode: int
    output: str
    duration_ms: float

    def tail(self, lines: int = OUTPUT_TAIL_LINES) -> str:
        return _tail(self.output, lines)


class CommandRunner(Protocol):
    """Callable signature of :func:`run_command`, used for injection in tests."""

    def __call__(
        self,
        command: list[str],
        *,
        cwd: Path | None = None,
        env: Mapping[str, str] | None = None,
        error_cls: type[PlatformJobError] = PlatformJobError,
        platform: str | None = None,
        cancel_event: threading.Event | None = None,
        timeout: float | None = None,
    ) -> CommandResult: ...


def run_command(
    command: list[str],
    *,
    cwd: Path | None = None,
    env: Mapping[str, str] | None = None,
    error_cls: type[PlatformJobError] = PlatformJobError,
    platform: str | None = None,
    cancel_event: threading.Event | None = None,
    timeout: float | None = None,
) -> CommandResult:
    """
    Run an external command to completion.

    Args:
        command: Argument vector, never passed through a shell
        cwd: Working directory
        env: Complete environment for the child process
        error_cls: Exception raised on failure
        platform: Platform id recorded on raised errors
        cancel_event: Terminates the child when set
        timeout: Seconds before the child is killed

    Returns:
        CommandResult with the captured output

    Raises:
        error_cls: On missing executable, timeout or non-zero exit
        PipelineCancelledError: If cancel_event is set while running
    """
    logger.debug("Running %s (cwd=%s)", " ".join(command), cwd)
    start = time.monotonic()

    if cancel_event is not None and cancel_event.is_set():
        raise PipelineCancelledError(
            "Cancelled before command start", platform=platform, command=command
        )

    try:
        proc = subprocess.Popen(
            command,
            cwd=cwd,
            env=dict(env) if env is not None else None,
            stdout=subprocess.PIPE,
            stderr=subprocess.STDOUT,
            text=True,
            encoding="utf-8",
            errors="replace",
            shell=False,
        )
    except (FileNotFoundError, PermissionError) as e:
        raise error_cls(
            f"Cannot execute '{command[0]}': {e}",
            platform=platform,
            command=command,
        ) from e

    deadline = start + timeout if timeout else None
    while True:
        try:
            output, _ = proc.communicate(timeout=POLL_INTERVAL_SECONDS)
            break
        except subprocess.TimeoutExpired:
            if cancel_event is not None and cancel_event.is_set():
                proc.terminate()
                proc.communicate()
                raise PipelineCancelledError(
                    "Cancelled while running", platform=platform, command=command
                ) from None
            if deadline is not None and time.monotonic() > deadline:
                proc.kill()
                output, _ = proc.communicate()
                raise error_cls(
                    f"'{command[0]}' timed out after {timeout:.0f}s",
                    platform=platform,
                    command=command,
                    output_tail=_tail(output or ""),
                ) from None

    result = CommandResult(
        command=command,
        returncode=proc.returncode,
        output=output or "",
        duration_ms=(time.monotonic() - start) * 1000,
    )

    if result.returncode != 0:
        logger.error(
            "%s exited with %d:\n%s", command[0], result.returncode, result.tail()
        )
        raise error_cls(
            f"'{command[0]}' exited with status {result.returncode}",
            platform=platform,
            command=command,
            returncode=result.returncode,
            output_tail=result.tail(),
        )
    return result


def _tail(output: str, lines: int = OUTPUT_TAIL_LINES) -> str:
    return "\n".join(output.splitlines()[-lines:])
