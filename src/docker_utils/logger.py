"""Structured logging singleton.

Reads LOG_LEVEL from os.environ directly — the logger must exist before
Settings is loaded so that config errors can be logged. Once Settings load,
``logging.level`` sets the ``docker_utils`` logger level via set_level().
"""

from __future__ import annotations

import logging
import os
import sys
from typing import Any, Protocol, runtime_checkable

import structlog


@runtime_checkable
class RunLogger(Protocol):
    """Sink for streamed container output.

    Anything exposing ``info``, ``debug`` and ``error`` works, including a
    structlog BoundLogger or a stdlib ``logging.Logger``.
    """

    def info(self, event: str, *args: Any, **kwargs: Any) -> Any: ...
    def debug(self, event: str, *args: Any, **kwargs: Any) -> Any: ...
    def error(self, event: str, *args: Any, **kwargs: Any) -> Any: ...


def _setup_logging() -> structlog.stdlib.BoundLogger:
    # Leave an application's own structlog setup alone
    if structlog.is_configured():
        return structlog.get_logger("docker_utils")

    level_name = os.environ.get("LOG_LEVEL", "INFO").upper()
    level = getattr(logging, level_name, logging.INFO)

    # Configure stdlib root logger first so structlog's filter_by_level works
    logging.basicConfig(level=level, format="%(message)s", stream=sys.stderr)

    structlog.configure(
        processors=[
            structlog.stdlib.filter_by_level,
            structlog.contextvars.merge_contextvars,
            structlog.stdlib.add_log_level,
            structlog.dev.set_exc_info,
            structlog.processors.TimeStamper(fmt="iso"),
            structlog.processors.StackInfoRenderer(),
            structlog.dev.ConsoleRenderer(colors=sys.stderr.isatty()),
        ],
        wrapper_class=structlog.stdlib.BoundLogger,
        context_class=dict,
        logger_factory=structlog.stdlib.LoggerFactory(),
        cache_logger_on_first_use=True,
    )

    return structlog.get_logger("docker_utils")


logger = _setup_logging()


def set_level(level_name: str) -> None:
    """Apply ``logging.level`` from Settings to the package logger."""
    level = getattr(logging, level_name.upper(), logging.INFO)
    logging.getLogger("docker_utils").setLevel(level)
