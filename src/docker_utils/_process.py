"""Process driver — blocking runs and streamed async runs of the runtime CLI.

Provides:
  - run_program() — blocking run with captured or inherited stdio
  - spawn() — start an async process whose stdout/stderr are pumped to callbacks
  - AsyncProcess — handle with a deadline-aware wait() and kill()
  - split_lines() — chunk → non-empty lines
"""

from __future__ import annotations

import asyncio
import contextlib
import inspect
import subprocess
from collections.abc import Awaitable, Callable, Sequence

from docker_utils.errors import NonZeroExitError, ProcessTimeoutError
from docker_utils.logger import logger
from docker_utils.types import ExecutionResult

OnChunk = Callable[[str], object]
OnExit = Callable[[ExecutionResult], Awaitable[None] | None]

_CHUNK_SIZE = 8192


def split_lines(chunk: str) -> list[str]:
    """Split a decoded chunk into lines, dropping empty ones."""
    return [line for line in chunk.splitlines() if line.strip()]


def run_program(
    cli: str,
    args: Sequence[str],
    *,
    capture: bool = True,
    cwd: str | None = None,
    env: dict[str, str] | None = None,
    timeout: float | None = None,
) -> ExecutionResult:
    """Run ``cli args...`` to completion.

    With ``capture=False`` the child inherits this process's stdio and the
    result carries no output. Raises NonZeroExitError on a non-zero exit.
    """
    argv = [cli, *args]
    logger.debug("Running command", argv=argv)
    result = subprocess.run(
        argv,
        capture_output=capture,
        text=True,
        cwd=cwd,
        env=env,
        timeout=timeout,
    )
    stdout = result.stdout or ""
    stderr = result.stderr or ""
    if result.returncode != 0:
        raise NonZeroExitError(argv, result.returncode, stdout, stderr)
    return ExecutionResult(exit_code=result.returncode, stdout=stdout, stderr=stderr)


async def _pump(stream: asyncio.StreamReader, on_chunk: OnChunk | None) -> None:
    """Read a stream to EOF, handing each decoded chunk to the callback."""
    while True:
        chunk = await stream.read(_CHUNK_SIZE)
        if not chunk:
            break
        if on_chunk is not None:
            on_chunk(chunk.decode(errors="replace"))


class AsyncProcess:
    """A running subprocess with pumped output.

    The exit task (drain both streams, reap, call ``on_exit``) is created once
    and shielded, so a wait() that times out leaves it running; a later kill()
    lets it finish normally.
    """

    def __init__(
        self,
        proc: asyncio.subprocess.Process,
        on_stdout: OnChunk | None = None,
        on_stderr: OnChunk | None = None,
        on_exit: OnExit | None = None,
    ) -> None:
        assert proc.stdout is not None
        assert proc.stderr is not None
        self._proc = proc
        self._on_exit = on_exit
        self._pumps = [
            asyncio.ensure_future(_pump(proc.stdout, on_stdout)),
            asyncio.ensure_future(_pump(proc.stderr, on_stderr)),
        ]
        self._exit_task: asyncio.Future[ExecutionResult] | None = None

    @property
    def pid(self) -> int:
        return self._proc.pid

    @property
    def returncode(self) -> int | None:
        return self._proc.returncode

    async def _run_to_exit(self) -> ExecutionResult:
        await asyncio.gather(*self._pumps)
        exit_code = await self._proc.wait()
        result = ExecutionResult(exit_code=exit_code)
        if self._on_exit is not None:
            ret = self._on_exit(result)
            if inspect.isawaitable(ret):
                await ret
        return result

    async def wait(
        self, timeout: float | None = None, throw_on_timeout: bool = True
    ) -> ExecutionResult | None:
        """Wait for exit; on expiry raise ProcessTimeoutError or return None."""
        if self._exit_task is None:
            self._exit_task = asyncio.ensure_future(self._run_to_exit())
        try:
            return await asyncio.wait_for(asyncio.shield(self._exit_task), timeout)
        except TimeoutError:
            if throw_on_timeout:
                raise ProcessTimeoutError(
                    f"Process {self.pid} did not exit within {timeout:g}s"
                ) from None
            return None

    def kill(self) -> None:
        if self._proc.returncode is not None:
            return
        with contextlib.suppress(ProcessLookupError):
            self._proc.kill()


async def spawn(
    cli: str,
    args: Sequence[str],
    *,
    on_stdout: OnChunk | None = None,
    on_stderr: OnChunk | None = None,
    on_exit: OnExit | None = None,
) -> AsyncProcess:
    """Start ``cli args...`` with stdin closed and both output streams pumped.

    Raises OSError if the process cannot be started.
    """
    proc = await asyncio.create_subprocess_exec(
        cli,
        *args,
        stdin=asyncio.subprocess.DEVNULL,
        stdout=asyncio.subprocess.PIPE,
        stderr=asyncio.subprocess.PIPE,
    )
    return AsyncProcess(proc, on_stdout=on_stdout, on_stderr=on_stderr, on_exit=on_exit)
