"""Exceptions raised by pipeline components.

Each exception carries the ``ErrorKind`` the controller reports for it.
"""

from ota_agent.models.status import ErrorKind


class PipelineError(Exception):
    """Base class for stage-local pipeline failures."""

    kind: ErrorKind

    def __str__(self) -> str:
        return f"{self.kind.value}: {super().__str__()}"


class SourceUnavailableError(PipelineError):
    """The source directory is missing or cannot be listed."""

    kind = ErrorKind.SOURCE_UNAVAILABLE


class StagingIOError(PipelineError):
    """Delete, create or transfer of the staged copy failed."""

    kind = ErrorKind.STAGING_IO_ERROR


class VerificationError(PipelineError):
    """The staged package failed signature or integrity verification."""

    kind = ErrorKind.VERIFICATION_ERROR


class InstallInvocationError(PipelineError):
    """The platform installer refused or failed the hand-off."""

    kind = ErrorKind.INSTALL_INVOCATION_ERROR
