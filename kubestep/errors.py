"""Exception hierarchy for KubeStep."""

from __future__ import annotations

from collections.abc import Sequence


class KubeStepError(Exception):
    """Base class for all KubeStep failures."""


class ConfigurationError(KubeStepError):
    """A required deployment variable is missing or cannot be parsed."""


class CommandError(KubeStepError):
    """An external command exited non-zero or could not be started."""

    def __init__(
        self,
        message: str,
        command: Sequence[str],
        exit_code: int | None = None,
        stderr: str = "",
    ) -> None:
        super().__init__(message)
        self.command = list(command)
        self.exit_code = exit_code
        self.stderr = stderr

    @classmethod
    def from_exit(cls, command: Sequence[str], exit_code: int, stderr: str) -> CommandError:
        detail = stderr.strip() or "no output on stderr"
        return cls(
            f"Command '{_executable(command)}' failed with exit code {exit_code}: {detail}",
            command,
            exit_code,
            stderr,
        )


class CommandTimeoutError(CommandError):
    """An external command did not finish within its time budget."""

    def __init__(self, command: Sequence[str], timeout: float) -> None:
        super().__init__(f"Command '{_executable(command)}' timed out after {timeout:.1f}s", command)
        self.timeout = timeout


class CommandNotFoundError(CommandError):
    """The executable for an external command does not exist."""

    def __init__(self, command: Sequence[str]) -> None:
        super().__init__(f"Could not find executable '{_executable(command)}'", command)


class KubectlError(KubeStepError):
    """kubectl failed or produced output that could not be parsed."""


class AwsApiError(KubeStepError):
    """An AWS API call failed or returned an unusable response."""


class KubernetesContextError(KubeStepError):
    """The Kubernetes execution context could not be configured."""


def _executable(command: Sequence[str]) -> str:
    return command[0] if command else ""
