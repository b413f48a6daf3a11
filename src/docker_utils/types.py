"""Data models for docker_utils."""

from __future__ import annotations

import shlex
from collections.abc import Mapping, Sequence
from dataclasses import dataclass, field
from typing import Any, Literal

AccessMode = Literal["rw", "ro"]

# Synthetic exit code reported when a run is interrupted before the process exits.
INTERRUPTED_EXIT_CODE = 127


@dataclass(frozen=True)
class BindMount:
    container_path: str
    mode: AccessMode | None = None  # None: let the runtime pick (read-write)


# Host path -> container path, {"path": ..., "mode": ...}, (path, mode) or BindMount
MappingSpec = str | Mapping[str, Any] | tuple[str, str | None] | BindMount
VolumeMappings = Mapping[str, MappingSpec]


# ---------------------------------------------------------------------------
# Run option variants
# ---------------------------------------------------------------------------


@dataclass(frozen=True)
class Flag:
    """Emit ``--key`` with no value."""


@dataclass(frozen=True)
class FlagWithValue:
    """Emit ``--key value``."""

    value: str


@dataclass(frozen=True)
class Suppressed:
    """Emit nothing for this key."""


RunOption = Flag | FlagWithValue | Suppressed
RunOptionValue = RunOption | bool | str | int | float | None
RunOptions = Mapping[str, RunOptionValue]


def to_run_option(value: RunOptionValue) -> RunOption:
    """Normalize a loosely-typed option value into its variant.

    ``True`` and ``None`` are bare flags, ``False`` drops the flag, anything
    else becomes the flag's value.
    """
    if isinstance(value, Flag | FlagWithValue | Suppressed):
        return value
    if value is None or value is True:
        return Flag()
    if value is False:
        return Suppressed()
    return FlagWithValue(str(value))


# ---------------------------------------------------------------------------
# Run request / result
# ---------------------------------------------------------------------------


def command_argv(command: str | Sequence[str]) -> list[str]:
    """Tokenize a command given as a shell-like string, or copy a sequence."""
    if isinstance(command, str):
        return shlex.split(command)
    return [str(part) for part in command]


@dataclass(frozen=True)
class RunRequest:
    image: str
    command: str | Sequence[str]
    mappings: VolumeMappings = field(default_factory=dict)
    run_options: RunOptions = field(default_factory=dict)
    timeout: float | None = None  # Seconds; None = no deadline
    exit_on_end: bool = False

    def __post_init__(self) -> None:
        if not self.image:
            raise ValueError("image must not be empty")
        if not command_argv(self.command):
            raise ValueError("command must not be empty")

    @property
    def argv(self) -> list[str]:
        return command_argv(self.command)


@dataclass
class ContainerHandle:
    """A named container; ``id`` is filled in once the runtime reports it."""

    name: str
    id: str | None = None


@dataclass
class ExecutionResult:
    exit_code: int
    stdout: str = ""
    stderr: str = ""
    interrupted: bool = False

    @property
    def ok(self) -> bool:
        return self.exit_code == 0 and not self.interrupted
