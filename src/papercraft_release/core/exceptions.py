"""
Papercraft Release Exception Hierarchy.

Defines all custom exceptions used across the release pipeline.
Per-platform errors carry the platform and the stage that failed so the
aggregator can report them individually.
"""

from typing import Any


class ReleaseError(Exception):
    """
    Root of every error raised by the release pipeline.

    ``details`` carries the structured context (platform, stage, command,
    artifact name, HTTP status) that ends up in JobResult records and in
    the persisted run summary.
    """

    def __init__(self, message: str, *, details: dict[str, Any] | None = None):
        super().__init__(message)
        self.message = message
        self.details = details or {}

    def __str__(self) -> str:
        if not self.details:
            return self.message
        context = ", ".join(f"{key}={value}" for key, value in self.details.items())
        return f"{self.message} ({context})"

    def to_dict(self) -> dict[str, Any]:
        """Serializable form used in run summaries."""
        return {
            "error_type": type(self).__name__,
            "message": self.message,
            "details": self.details,
        }


class PlatformJobError(ReleaseError):
    """
    Errors that are fatal to a single PlatformJob.

    Raised during one of the job stages:
    - provision
    - build
    - package
    - upload

    Never propagated past the job boundary; siblings keep running.
    """

    stage: str = "job"

    def __init__(
        self,
        message: str,
        *,
        platform: str | None = None,
        command: list[str] | None = None,
        returncode: int | None = None,
        output_tail: str | None = None,
        details: dict[str, Any] | None = None,
    ):
        """
        Initialize a PlatformJobError.

        Args:
            message: Human-readable error message
            platform: Platform id of the failing job
            command: External command that failed, if any
            returncode: Exit status of that command
            output_tail: Last lines of the command output
            details: Optional structured data for debugging
        """
        details = details or {}
        if platform:
            details["platform"] = platform
        details["stage"] = self.stage
        if command:
            details["command"] = " ".join(command)
        if returncode is not None:
            details["returncode"] = returncode

        super().__init__(message, details=details)
        self.platform = platform
        self.command = command
        self.returncode = returncode
        self.output_tail = output_tail


class ProvisioningError(PlatformJobError):
    """Raised when a required toolchain helper cannot be fetched or used."""

    stage = "provision"


class BuildError(PlatformJobError):
    """Raised when the native build fails or produces no executable."""

    stage = "build"


class PackagingError(PlatformJobError):
    """Raised when a packaging tool fails; partial output is discarded."""

    stage = "package"


class ArtifactStoreError(ReleaseError):
    """
    Errors in artifact store operations.

    Raised when:
    - An artifact name is not present
    - An upload would overwrite a stored artifact
    - The backing storage cannot be read or written
    """

    def __init__(
        self,
        message: str,
        *,
        name: str | None = None,
        operation: str | None = None,
        details: dict[str, Any] | None = None,
    ):
        details = details or {}
        if name:
            details["name"] = name
        if operation:
            details["operation"] = operation

        super().__init__(message, details=details)
        self.name = name
        self.operation = operation


class ArtifactNotFoundError(ArtifactStoreError):
    """
    Raised when a requested artifact does not exist in the store.

    The aggregator treats this as "job failed or never finished",
    never as a transient condition to retry.
    """

    def __init__(self, message: str = "Artifact not found", *, name: str | None = None):
        super().__init__(message, name=name, operation="get")


class ArtifactImmutableError(ArtifactStoreError):
    """Raised when a put would change the content of a stored artifact."""

    def __init__(
        self,
        message: str = "Artifact already stored with different content",
        *,
        name: str | None = None,
        expected: str | None = None,
        actual: str | None = None,
    ):
        super().__init__(
            message,
            name=name,
            operation="put",
            details={"expected": expected, "actual": actual},
        )
        self.expected = expected
        self.actual = actual


class PublishError(ReleaseError):
    """
    Raised when the release host rejects the publish call.

    Fatal to the whole run.
    """

    def __init__(
        self,
        message: str,
        *,
        release_tag: str | None = None,
        status_code: int | None = None,
        details: dict[str, Any] | None = None,
    ):
        details = details or {}
        if release_tag:
            details["release_tag"] = release_tag
        if status_code:
            details["status_code"] = status_code

        super().__init__(message, details=details)
        self.release_tag = release_tag
        self.status_code = status_code


class ConfigurationError(ReleaseError):
    """
    PipelineConfig could not be assembled.

    Covers an unreadable or non-mapping YAML file passed with ``--config``,
    a ``PCR_*`` variable holding an invalid value, and a publisher that
    lacks its repository or token. Whichever source was at fault is named
    by ``config_file``, ``env_var`` or ``config_key``.
    """

    def __init__(
        self,
        message: str,
        *,
        config_file: str | None = None,
        env_var: str | None = None,
        config_key: str | None = None,
        details: dict[str, Any] | None = None,
    ):
        details = dict(details or {})
        for key, value in (
            ("config_file", config_file),
            ("env_var", env_var),
            ("config_key", config_key),
        ):
            if value:
                details[key] = value

        super().__init__(message, details=details)
        self.config_file = config_file
        self.env_var = env_var
        self.config_key = config_key


class ValidationError(ReleaseError):
    """Raised when a release tag or platform id is malformed."""

    def __init__(
        self,
        message: str,
        *,
        field: str | None = None,
        value: str | None = None,
    ):
        details = {}
        if field:
            details["field"] = field
        if value is not None:
            details["value"] = value
        super().__init__(message, details=details)
        self.field = field
        self.value = value


class PipelineCancelledError(PlatformJobError):
    """Raised inside a job when the pipeline was cancelled."""

    stage = "cancelled"


class StateTransitionError(ReleaseError):
    """Raised when the aggregator is driven through an illegal transition."""

    def __init__(self, current: str, target: str):
        super().__init__(
            f"Illegal aggregator transition {current} -> {target}",
            details={"current": current, "target": target},
        )
        self.current = current
        self.target = target


def format_exception(error: Exception, tail_lines: int = 5) -> str:
    """
    Render an error for the CLI.

    Job errors are followed by the last ``tail_lines`` lines of the failing
    command's output, when it was captured.
    """
    if not isinstance(error, ReleaseError):
        return f"{type(error).__name__}: {error}"
    text = str(error)
    if isinstance(error, PlatformJobError) and error.output_tail:
        tail = error.output_tail.splitlines()[-tail_lines:]
        text += "\n" + "\n".join(f"  | {line}" for line in tail)
    return text
