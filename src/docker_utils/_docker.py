"""Docker CLI helpers — thin synchronous wrappers around runtime sub-commands.

Every helper shells out to the configured runtime binary (``docker`` unless
``runtime.cli`` says otherwise). The async orchestrator calls the blocking
ones through ``asyncio.to_thread``.
"""

from __future__ import annotations

import gzip
import shutil
import subprocess
from collections.abc import Sequence
from pathlib import Path

from docker_utils._process import run_program
from docker_utils.config import get_settings
from docker_utils.errors import NonZeroExitError, RuntimeUnavailableError
from docker_utils.logger import RunLogger, logger
from docker_utils.types import ExecutionResult, command_argv


def runtime_available() -> bool:
    """Check if the runtime binary is on PATH."""
    return shutil.which(get_settings().runtime.cli) is not None


def exec_command(
    command: str | Sequence[str],
    *,
    retrieve_std_streams: bool = False,
    cwd: str | None = None,
    env: dict[str, str] | None = None,
    timeout: float | None = None,
) -> str | ExecutionResult:
    """Run a runtime sub-command, e.g. ``exec_command("cp test:/tmp/log /tmp/log")``.

    Returns stdout, or the whole ExecutionResult when ``retrieve_std_streams``
    is set. Raises NonZeroExitError if the command fails.
    """
    result = run_program(
        get_settings().runtime.cli,
        command_argv(command),
        cwd=cwd,
        env=env,
        timeout=timeout,
    )
    return result if retrieve_std_streams else result.stdout


# ``exec`` is a builtin, so the short alias carries a trailing underscore.
exec_ = exec_command


def _first_line(output: str) -> str | None:
    lines = output.strip().splitlines()
    return lines[0].strip() if lines and lines[0].strip() else None


def pull(image: str) -> str:
    logger.info("Pulling image", image=image)
    return exec_command(["pull", image])


def build(path: str | Path, name: str, *, tag: str = "latest") -> str:
    """Build the Dockerfile directory at ``path`` as ``name:tag``."""
    logger.info("Building image", path=str(path), image=f"{name}:{tag}")
    return exec_command(["build", "-t", f"{name}:{tag}", str(path)])


def load_image(image_path: str | Path) -> str:
    """Load an image tarball (``.tar`` or ``.tar.gz``).

    Gzipped tarballs are decompressed next to the original first; the
    ``.gz`` file is left in place.
    """
    path = Path(image_path)
    if not path.exists():
        raise FileNotFoundError(f"Cannot load {path} as docker image: file does not exist.")
    if path.suffix == ".gz":
        target = path.with_suffix("")
        logger.debug("Decompressing image tarball", source=str(path), target=str(target))
        with gzip.open(path, "rb") as src, target.open("wb") as dst:
            shutil.copyfileobj(src, dst)
        path = target
    return exec_command(["load", "-i", str(path)])


def get_image_id(image_name: str) -> str | None:
    """Return the short id of ``image_name``, or None if it is not present."""
    return _first_line(exec_command(["images", "-q", image_name]))


def image_exists(image_name: str) -> bool:
    return bool(get_image_id(image_name))


def get_container_id(name: str) -> str | None:
    """Return the id of the container called exactly ``name`` (running or not)."""
    return _first_line(exec_command(["ps", "-aq", "--filter", f"name=^{name}$"]))


def _default_logger() -> RunLogger:
    return logger


def remove_container(
    container_id: str | None,
    *,
    force: bool = False,
    logger: RunLogger | None = None,
) -> None:
    """Remove a container. Best-effort: failures are logged, never raised."""
    log = logger or _default_logger()
    if not container_id:
        log.debug("No container to remove")
        return
    args = ["rm", "-f", container_id] if force else ["rm", container_id]
    try:
        exec_command(args)
    except (NonZeroExitError, OSError, subprocess.SubprocessError) as exc:
        log.error(f"Failed to delete container {container_id}: {exc}")
        return
    log.debug("Temporary container successfully deleted")


def verify_connection() -> bool:
    """Check that the runtime binary works and its daemon answers.

    Raises RuntimeUnavailableError with the underlying message otherwise.
    """
    try:
        exec_command(["ps"])
    except (NonZeroExitError, OSError, subprocess.SubprocessError) as exc:
        raise RuntimeUnavailableError(f"Docker is not available: \n{exc}") from exc
    return True
