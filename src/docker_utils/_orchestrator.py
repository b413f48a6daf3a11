"""Main entry points — run a command in a throwaway container.

run_in_container_async() is the managed path: it names the container, streams
its output into a logger, enforces a deadline and always removes the
container afterwards. run_in_container() and shell() are plain blocking calls
that leave the container to the caller.
"""

from __future__ import annotations

import asyncio
import contextlib
import inspect
import math
import signal
import subprocess
import sys
import time
from collections.abc import Awaitable, Callable, Iterator, Sequence
from pathlib import Path

from docker_utils._args import (
    build_bind_flags,
    build_option_flags,
    build_run_args,
    with_defaults,
)
from docker_utils._docker import exec_command, get_container_id, remove_container
from docker_utils._process import AsyncProcess, spawn, split_lines
from docker_utils.config import get_settings
from docker_utils.errors import ContainerTimeoutError, NonZeroExitError, ProcessTimeoutError
from docker_utils.logger import RunLogger, logger
from docker_utils.types import (
    INTERRUPTED_EXIT_CODE,
    ContainerHandle,
    ExecutionResult,
    RunOptions,
    RunRequest,
    VolumeMappings,
)

# ---------------------------------------------------------------------------
# Type aliases
# ---------------------------------------------------------------------------

OnComplete = Callable[[ContainerHandle, ExecutionResult], Awaitable[None] | None]

# Any negative timeout means "use run.timeout from Settings"; None means no timeout.
_DEFAULT_TIMEOUT: float | None = -1.0


# ---------------------------------------------------------------------------
# Container name helpers
# ---------------------------------------------------------------------------


def generate_container_name(prefix: str | None = None) -> str:
    """Timestamped container name, unique enough to look the container up later."""
    prefix = prefix or get_settings().run.name_prefix
    return f"{prefix}-{int(time.time() * 1000)}"


def _resolve_timeout(timeout: float | None) -> float | None:
    if timeout is not None and timeout < 0:
        return get_settings().run.timeout
    if timeout is not None and math.isinf(timeout):
        return None
    return timeout


# ---------------------------------------------------------------------------
# Termination sequence
# ---------------------------------------------------------------------------


async def _lookup_container_id(name: str, log: RunLogger) -> str | None:
    try:
        return await asyncio.to_thread(get_container_id, name)
    except (NonZeroExitError, OSError, subprocess.SubprocessError) as exc:
        log.error(f"Failed to look up container {name}: {exc}")
        return None


async def _remove(container_id: str | None, log: RunLogger) -> None:
    await asyncio.to_thread(remove_container, container_id, force=True, logger=log)


class _Termination:
    """End-of-run sequence that runs at most once per container.

    Order: resolve the container id by name, hand it and the result to the
    completion callback, force-remove the container. Called by the controller
    after the process wait returns, so the deadline never covers it.
    """

    def __init__(
        self, handle: ContainerHandle, on_complete: OnComplete | None, log: RunLogger
    ) -> None:
        self._handle = handle
        self._on_complete = on_complete
        self._log = log
        self._consumed = False

    async def fire(self, result: ExecutionResult) -> None:
        if self._consumed:
            return
        self._consumed = True

        self._handle.id = await _lookup_container_id(self._handle.name, self._log)
        try:
            if self._on_complete is not None:
                ret = self._on_complete(self._handle, result)
                if inspect.isawaitable(ret):
                    await ret
        finally:
            await _remove(self._handle.id, self._log)


async def _wait_or_interrupt(
    proc: AsyncProcess, timeout: float | None, cancel: asyncio.Event | None
) -> ExecutionResult | None:
    """Wait for the process to exit; return None if ``cancel`` is set first.

    Raises ProcessTimeoutError when the deadline passes.
    """
    if cancel is None:
        return await proc.wait(timeout=timeout)

    waiter = asyncio.ensure_future(proc.wait(timeout=timeout))
    interrupt = asyncio.ensure_future(cancel.wait())
    try:
        done, _ = await asyncio.wait({waiter, interrupt}, return_when=asyncio.FIRST_COMPLETED)
    finally:
        for task in (waiter, interrupt):
            if not task.done():
                task.cancel()
    if waiter in done:
        return waiter.result()
    return None


async def _reap(proc: AsyncProcess, name: str, reap_timeout: float) -> None:
    """Kill the local ``docker run`` client and wait for its streams to close."""
    proc.kill()
    if await proc.wait(timeout=reap_timeout, throw_on_timeout=False) is None:
        logger.warning("Container client did not exit after kill", container=name, pid=proc.pid)


# ---------------------------------------------------------------------------
# Managed async run
# ---------------------------------------------------------------------------


async def run_in_container_async(
    image: str,
    command: str | Sequence[str],
    on_complete: OnComplete | None = None,
    *,
    mappings: VolumeMappings | None = None,
    run_options: RunOptions | None = None,
    timeout: float | None = _DEFAULT_TIMEOUT,
    exit_on_end: bool | None = None,
    logger: RunLogger | None = None,
    cancel: asyncio.Event | None = None,
) -> ExecutionResult:
    """Run ``command`` in a new container from ``image`` and clean it up.

    Output is streamed line by line: stdout to ``logger.debug``, stderr to
    ``logger.error``. The run ends when the process exits, when ``cancel`` is
    set, or when the awaiting task is cancelled. On each of those paths the
    container id is resolved, ``on_complete(handle, result)`` is called once
    and the container is force-removed. Interrupted runs report exit code 127.

    Args:
        image: Image to run.
        command: Command to execute, as a shell-like string or argv list.
        on_complete: Sync or async callable invoked with the container handle
            and result. Never called when the run times out.
        mappings: Host path -> container path or path/mode spec.
        run_options: ``docker run`` options; ``name`` is generated if absent.
        timeout: Seconds before the run is aborted; None or ``math.inf``
            disables it. Defaults to ``run.timeout`` from Settings.
        exit_on_end: Exit the host process once cleanup is done. Defaults to
            ``run.exit_on_end``.
        logger: Sink for streamed output; defaults to the package logger.
        cancel: Event that interrupts the run when set.

    Returns:
        The ExecutionResult passed to ``on_complete``.

    Raises:
        InvalidMappingSpecError: A mapping is malformed (nothing is spawned).
        ContainerTimeoutError: The deadline passed; the container was removed.
    """
    s = get_settings()
    log: RunLogger = logger if logger is not None else _module_logger()
    request = RunRequest(
        image=image,
        command=command,
        mappings=mappings or {},
        run_options=with_defaults(run_options, name=generate_container_name()),
        timeout=_resolve_timeout(timeout),
        exit_on_end=s.run.exit_on_end if exit_on_end is None else exit_on_end,
    )
    args = build_run_args(request.image, request.argv, request.run_options, request.mappings)

    handle = ContainerHandle(name=str(request.run_options["name"]))
    termination = _Termination(handle, on_complete, log)
    prefix = s.run.log_prefix

    def on_stdout(chunk: str) -> None:
        for line in split_lines(chunk):
            log.debug(f"{prefix} {line}")

    def on_stderr(chunk: str) -> None:
        for line in split_lines(chunk):
            log.error(f"{prefix} {line}")

    _module_logger().info(
        "Spawning container",
        container=handle.name,
        image=request.image,
        timeout=request.timeout,
    )
    proc = await spawn(s.runtime.cli, args, on_stdout=on_stdout, on_stderr=on_stderr)
    interrupted = ExecutionResult(exit_code=INTERRUPTED_EXIT_CODE, interrupted=True)

    try:
        result = await _wait_or_interrupt(proc, request.timeout, cancel)
    except ProcessTimeoutError as exc:
        log.error(f"{prefix} Exceeded timeout of {request.timeout:g}s, removing {handle.name}")
        try:
            await _remove(await _lookup_container_id(handle.name, log), log)
        finally:
            await _reap(proc, handle.name, s.run.reap_timeout)
        raise ContainerTimeoutError(handle.name, request.timeout) from exc
    except asyncio.CancelledError:
        try:
            await termination.fire(interrupted)
        finally:
            await _reap(proc, handle.name, s.run.reap_timeout)
        raise

    if result is None:
        log.info(f"{prefix} Interrupted, removing {handle.name}")
        try:
            await termination.fire(interrupted)
        finally:
            await _reap(proc, handle.name, s.run.reap_timeout)
        result = interrupted
    else:
        await termination.fire(result)

    _module_logger().info(
        "Container run finished",
        container=handle.name,
        container_id=handle.id,
        exit_code=result.exit_code,
        interrupted=result.interrupted,
    )
    if request.exit_on_end:
        sys.exit(result.exit_code)
    return result


def _module_logger() -> RunLogger:
    return logger


@contextlib.contextmanager
def interrupt_on_signals(
    cancel: asyncio.Event,
    signals: Sequence[signal.Signals] = (signal.SIGINT,),
) -> Iterator[asyncio.Event]:
    """Set ``cancel`` when one of ``signals`` arrives, for the duration of the block.

    Must be entered inside a running event loop. Handlers are removed on exit.

    Usage::

        cancel = asyncio.Event()
        with interrupt_on_signals(cancel):
            await run_in_container_async("centos", "make", cancel=cancel)
    """
    loop = asyncio.get_running_loop()
    for sig in signals:
        loop.add_signal_handler(sig, cancel.set)
    try:
        yield cancel
    finally:
        for sig in signals:
            loop.remove_signal_handler(sig)


# ---------------------------------------------------------------------------
# Unmanaged blocking runs
# ---------------------------------------------------------------------------


def run_in_container(
    image: str,
    command: str | Sequence[str],
    *,
    mappings: VolumeMappings | None = None,
    run_options: RunOptions | None = None,
    retrieve_std_streams: bool = False,
    cwd: str | None = None,
    env: dict[str, str] | None = None,
    timeout: float | None = None,
) -> str | ExecutionResult:
    """Run ``command`` in a new container and block until it exits.

    The container is not removed; pass ``run_options={"rm": True}`` or clean
    up with remove_container(). Raises NonZeroExitError on failure.
    """
    args = build_run_args(image, command, run_options, mappings)
    return exec_command(
        args,
        retrieve_std_streams=retrieve_std_streams,
        cwd=cwd,
        env=env,
        timeout=timeout,
    )


def shell(
    image: str,
    *,
    root: str | Path | None = None,
    mappings: VolumeMappings | None = None,
    run_options: RunOptions | None = None,
) -> subprocess.CompletedProcess[bytes]:
    """Open an interactive bash shell in ``image`` on the current terminal.

    With ``root``, every entry directly under it is mounted at ``/<name>``
    inside the container.
    """
    options = with_defaults(run_options, interactive=True, tty=True)
    binds = dict(mappings or {})
    if root is not None:
        for entry in sorted(Path(root).glob("*")):
            binds[str(entry)] = f"/{entry.name}"
    args = ["run", *build_option_flags(options), *build_bind_flags(binds), image, "bash"]
    return subprocess.run([get_settings().runtime.cli, *args])
