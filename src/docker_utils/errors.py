"""Exceptions raised by docker_utils."""

from __future__ import annotations

from collections.abc import Sequence


class DockerUtilsError(Exception):
    """Base class for every error raised by this package."""


class InvalidMappingSpecError(DockerUtilsError, ValueError):
    """A volume mapping value is neither a path string nor a path/mode spec."""


class RuntimeUnavailableError(DockerUtilsError):
    """The container runtime binary or its daemon cannot be reached."""


class ProcessTimeoutError(DockerUtilsError, TimeoutError):
    """An async process did not exit before its deadline."""


class ContainerTimeoutError(DockerUtilsError, TimeoutError):
    """A container run exceeded its timeout; the container has been removed."""

    def __init__(self, container_name: str, timeout: float) -> None:
        self.container_name = container_name
        self.timeout = timeout
        super().__init__(f"Exceeded timeout of {timeout:g}s running container {container_name}")


class NonZeroExitError(DockerUtilsError):
    """Raised when a runtime command exits with a non-zero code."""

    def __init__(
        self, command: Sequence[str], returncode: int, stdout: str = "", stderr: str = ""
    ) -> None:
        self.command = list(command)
        self.returncode = returncode
        self.stdout = stdout
        self.stderr = stderr
        detail = stderr.strip() or stdout.strip()
        super().__init__(f"{' '.join(self.command)} failed (exit {returncode}): {detail}")
