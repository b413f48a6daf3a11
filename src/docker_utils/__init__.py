"""docker_utils — drive the docker CLI from Python.

Builds argument lists for ``run``, ``build``, ``pull``, ``load`` and friends
and executes them as subprocesses of the runtime binary on PATH.

This package is split into focused submodules:
  _args          — bind-mount and run-option flag construction
  _process       — blocking and streamed async subprocess execution
  _docker        — one helper per runtime sub-command, container removal
  _orchestrator  — run_in_container(_async) and shell entry points
"""

from docker_utils._args import build_bind_flags, build_option_flags, build_run_args
from docker_utils._docker import (
    build,
    exec_,
    exec_command,
    get_container_id,
    get_image_id,
    image_exists,
    load_image,
    pull,
    remove_container,
    runtime_available,
    verify_connection,
)
from docker_utils._orchestrator import (
    OnComplete,
    generate_container_name,
    interrupt_on_signals,
    run_in_container,
    run_in_container_async,
    shell,
)
from docker_utils.errors import (
    ContainerTimeoutError,
    DockerUtilsError,
    InvalidMappingSpecError,
    NonZeroExitError,
    ProcessTimeoutError,
    RuntimeUnavailableError,
)
from docker_utils.types import (
    INTERRUPTED_EXIT_CODE,
    BindMount,
    ContainerHandle,
    ExecutionResult,
    Flag,
    FlagWithValue,
    RunRequest,
    Suppressed,
)

__all__ = [
    "INTERRUPTED_EXIT_CODE",
    "BindMount",
    "ContainerHandle",
    "ContainerTimeoutError",
    "DockerUtilsError",
    "ExecutionResult",
    "Flag",
    "FlagWithValue",
    "InvalidMappingSpecError",
    "NonZeroExitError",
    "OnComplete",
    "ProcessTimeoutError",
    "RunRequest",
    "RuntimeUnavailableError",
    "Suppressed",
    "build",
    "build_bind_flags",
    "build_option_flags",
    "build_run_args",
    "exec_",
    "exec_command",
    "generate_container_name",
    "get_container_id",
    "get_image_id",
    "image_exists",
    "interrupt_on_signals",
    "load_image",
    "pull",
    "remove_container",
    "run_in_container",
    "run_in_container_async",
    "runtime_available",
    "shell",
    "verify_connection",
]
