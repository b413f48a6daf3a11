"""Shared test fixtures for docker_utils."""

from __future__ import annotations

import asyncio
import os
import stat
from pathlib import Path
from typing import Any

import pytest

# ---------------------------------------------------------------------------
# Shared helpers (plain functions, not fixtures — importable by test files)
# ---------------------------------------------------------------------------


def make_settings(**overrides):
    """Create a Settings object from pure defaults — no TOML, no .env.

    Usage::

        s = make_settings(runtime=RuntimeConfig(cli="podman"))
    """
    from docker_utils.config import LoggingConfig, RunConfig, RuntimeConfig, Settings

    defaults = {
        "runtime": RuntimeConfig(),
        "run": RunConfig(),
        "logging": LoggingConfig(),
    }
    defaults.update(overrides)
    return Settings.model_construct(**defaults)


class RecordingLogger:
    """Collects (level, message) pairs; satisfies the RunLogger protocol."""

    def __init__(self) -> None:
        self.records: list[tuple[str, str]] = []

    def info(self, event: str, *args: Any, **kwargs: Any) -> None:
        self.records.append(("info", event))

    def debug(self, event: str, *args: Any, **kwargs: Any) -> None:
        self.records.append(("debug", event))

    def error(self, event: str, *args: Any, **kwargs: Any) -> None:
        self.records.append(("error", event))

    def messages(self, level: str | None = None) -> list[str]:
        return [msg for lvl, msg in self.records if level is None or lvl == level]

    @property
    def text(self) -> str:
        return "\n".join(self.messages())


# ---------------------------------------------------------------------------
# Fake asyncio subprocess
# ---------------------------------------------------------------------------


class FakeProcess:
    """Simulates asyncio.subprocess.Process for testing.

    No stdin — the driver always spawns with stdin=DEVNULL.
    """

    def __init__(self) -> None:
        self.stdin = None
        self.stdout = asyncio.StreamReader()
        self.stderr = asyncio.StreamReader()
        self._returncode: int | None = None
        self._wait_event = asyncio.Event()
        self.pid = 12345
        self.killed = False

    def emit_stdout(self, data: bytes) -> None:
        self.stdout.feed_data(data)

    def emit_stderr(self, data: bytes) -> None:
        self.stderr.feed_data(data)

    def close(self, code: int = 0) -> None:
        """Simulate process exit."""
        if self._returncode is not None:
            return
        self._returncode = code
        self.stdout.feed_eof()
        self.stderr.feed_eof()
        self._wait_event.set()

    async def wait(self) -> int:
        await self._wait_event.wait()
        return self._returncode  # type: ignore[return-value]

    def kill(self) -> None:
        self.killed = True
        self.close(-9)

    @property
    def returncode(self) -> int | None:
        return self._returncode


@pytest.fixture
async def fake_proc() -> FakeProcess:
    """Must be async so StreamReader is created on the test's event loop."""
    return FakeProcess()


# ---------------------------------------------------------------------------
# Fake docker binary
# ---------------------------------------------------------------------------

# Records every invocation, remembers containers created with --name so that
# `ps -aq --filter name=^<name>$` and `rm -f <id>` behave like the real thing.
# FAKE_DOCKER_SLEEP / FAKE_DOCKER_EXIT / FAKE_DOCKER_STDERR shape `run`.
_FAKE_DOCKER = r"""#!/bin/bash
echo "$@" >> "$FAKE_DOCKER_DIR/calls.log"
state="$FAKE_DOCKER_DIR/containers"
mkdir -p "$state"
case "$1" in
  run)
    name=""
    prev=""
    for arg in "$@"; do
      if [ "$prev" = "--name" ]; then name="$arg"; fi
      prev="$arg"
    done
    if [ -n "$name" ]; then echo "id-$name" > "$state/$name"; fi
    echo "$@"
    if [ -n "$FAKE_DOCKER_STDERR" ]; then echo "$FAKE_DOCKER_STDERR" >&2; fi
    if [ -n "$FAKE_DOCKER_SLEEP" ]; then exec sleep "$FAKE_DOCKER_SLEEP"; fi
    exit "${FAKE_DOCKER_EXIT:-0}"
    ;;
  ps)
    if [ "$#" -eq 1 ]; then
      echo "CONTAINER ID   IMAGE   COMMAND   CREATED   STATUS   PORTS   NAMES"
      exit 0
    fi
    filter="${@: -1}"
    case "$filter" in
      name=*)
        n="${filter#name=^}"
        n="${n%\$}"
        if [ -f "$state/$n" ]; then cat "$state/$n"; fi
        ;;
    esac
    exit 0
    ;;
  rm)
    id="${@: -1}"
    n="${id#id-}"
    if [ -f "$state/$n" ]; then
      rm -f "$state/$n"
      echo "$id"
      exit 0
    fi
    echo "Error response from daemon: No such container: $id" >&2
    exit 1
    ;;
  *)
    echo -n "$@"
    ;;
esac
"""


class FakeDocker:
    def __init__(self, root: Path, monkeypatch: pytest.MonkeyPatch) -> None:
        self.root = root
        self._monkeypatch = monkeypatch

    def configure(
        self, *, sleep: float | None = None, exit_code: int | None = None, stderr: str | None = None
    ) -> None:
        for var, value in (
            ("FAKE_DOCKER_SLEEP", sleep),
            ("FAKE_DOCKER_EXIT", exit_code),
            ("FAKE_DOCKER_STDERR", stderr),
        ):
            if value is None:
                self._monkeypatch.delenv(var, raising=False)
            else:
                self._monkeypatch.setenv(var, str(value))

    def calls(self) -> list[str]:
        log = self.root / "calls.log"
        return log.read_text().splitlines() if log.exists() else []

    def containers(self) -> list[str]:
        state = self.root / "containers"
        return sorted(p.name for p in state.iterdir()) if state.exists() else []


@pytest.fixture
def fake_docker(tmp_path: Path, monkeypatch: pytest.MonkeyPatch) -> FakeDocker:
    """Put an executable ``docker`` stand-in first on PATH."""
    bin_dir = tmp_path / "bin"
    bin_dir.mkdir()
    script = bin_dir / "docker"
    script.write_text(_FAKE_DOCKER)
    script.chmod(script.stat().st_mode | stat.S_IXUSR | stat.S_IXGRP | stat.S_IXOTH)

    state_dir = tmp_path / "docker-state"
    state_dir.mkdir()
    monkeypatch.setenv("FAKE_DOCKER_DIR", str(state_dir))
    monkeypatch.setenv("PATH", f"{bin_dir}:{os.environ.get('PATH', '')}")
    fake = FakeDocker(state_dir, monkeypatch)
    fake.configure()
    return fake


# ---------------------------------------------------------------------------
# Autouse fixtures
# ---------------------------------------------------------------------------


@pytest.fixture(autouse=True)
def reset_settings(monkeypatch):
    """Ensure each test starts with a clean Settings singleton.

    Tests that mock ``get_settings()`` at the call site are unaffected — their
    mock takes precedence over the cached singleton.
    """
    monkeypatch.setattr("docker_utils.config._settings", make_settings())


@pytest.fixture
def run_logger() -> RecordingLogger:
    return RecordingLogger()
