"""Bind-mount and run-option flag construction for ``docker run``."""

from __future__ import annotations

import json
from collections.abc import Mapping, Sequence
from typing import Any

from docker_utils.errors import InvalidMappingSpecError
from docker_utils.types import (
    BindMount,
    Flag,
    FlagWithValue,
    RunOptions,
    VolumeMappings,
    command_argv,
    to_run_option,
)

_VALID_MODES = frozenset({"rw", "ro"})


def _describe(spec: Any) -> str:
    try:
        return json.dumps(spec)
    except (TypeError, ValueError):
        return repr(spec)


def parse_mapping_spec(spec: Any) -> BindMount:
    """Turn one mapping value into a BindMount, or raise InvalidMappingSpecError."""
    if isinstance(spec, BindMount):
        bind = spec
    elif isinstance(spec, str):
        bind = BindMount(spec)
    elif isinstance(spec, Mapping):
        path = spec.get("path")
        if not isinstance(path, str):
            raise InvalidMappingSpecError(f"Invalid mapping spec {_describe(spec)}")
        bind = BindMount(path, spec.get("mode") or None)
    elif isinstance(spec, tuple | list) and len(spec) == 2 and isinstance(spec[0], str):
        bind = BindMount(spec[0], spec[1] or None)
    else:
        raise InvalidMappingSpecError(f"Invalid mapping spec {_describe(spec)}")

    if not bind.container_path:
        raise InvalidMappingSpecError(f"Invalid mapping spec {_describe(spec)}")
    if bind.mode is not None and bind.mode not in _VALID_MODES:
        raise InvalidMappingSpecError(
            f"Invalid access mode {bind.mode!r} in mapping spec {_describe(spec)}"
        )
    return bind


def build_bind_flags(mappings: VolumeMappings | None) -> list[str]:
    """Emit ``-v host:container[:mode]`` for each mapping, in mapping order."""
    args: list[str] = []
    for host_path, spec in (mappings or {}).items():
        bind = parse_mapping_spec(spec)
        bind_spec = f"{host_path}:{bind.container_path}"
        if bind.mode:
            bind_spec += f":{bind.mode}"
        args.extend(["-v", bind_spec])
    return args


def build_option_flags(options: RunOptions | None) -> list[str]:
    """Emit ``--key [value]`` per option; ``False`` values are left out."""
    args: list[str] = []
    for key, value in (options or {}).items():
        option = to_run_option(value)
        if isinstance(option, Flag):
            args.append(f"--{key}")
        elif isinstance(option, FlagWithValue):
            args.extend([f"--{key}", option.value])
    return args


def with_defaults(options: RunOptions | None, **defaults: Any) -> dict[str, Any]:
    """Copy ``options`` and append each default whose key is absent."""
    merged = dict(options or {})
    for key, value in defaults.items():
        merged.setdefault(key, value)
    return merged


def build_run_args(
    image: str,
    command: str | Sequence[str],
    run_options: RunOptions | None,
    mappings: VolumeMappings | None,
) -> list[str]:
    """Build ``run <binds> <options> <image> <command...>``.

    ``interactive`` is added as a bare flag unless the caller set it.
    """
    options = with_defaults(run_options, interactive=None)
    return [
        "run",
        *build_bind_flags(mappings),
        *build_option_flags(options),
        image,
        *command_argv(command),
    ]
