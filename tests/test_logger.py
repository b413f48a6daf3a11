"""Tests for the structlog setup."""

from __future__ import annotations

import logging
from unittest.mock import patch

from docker_utils.logger import _setup_logging, set_level


class TestSetupLogging:
    def test_existing_structlog_setup_is_kept(self):
        with (
            patch("docker_utils.logger.structlog.is_configured", return_value=True),
            patch("docker_utils.logger.structlog.configure") as configure,
            patch("docker_utils.logger.logging.basicConfig") as basic_config,
        ):
            _setup_logging()
        configure.assert_not_called()
        basic_config.assert_not_called()

    def test_configures_when_nothing_is_set_up(self, monkeypatch):
        monkeypatch.setenv("LOG_LEVEL", "warning")
        with (
            patch("docker_utils.logger.structlog.is_configured", return_value=False),
            patch("docker_utils.logger.structlog.configure") as configure,
            patch("docker_utils.logger.logging.basicConfig") as basic_config,
        ):
            _setup_logging()
        configure.assert_called_once()
        assert basic_config.call_args.kwargs["level"] == logging.WARNING


class TestSetLevel:
    def test_sets_package_logger_level(self, monkeypatch):
        pkg_logger = logging.getLogger("docker_utils")
        monkeypatch.setattr(pkg_logger, "level", pkg_logger.level)
        set_level("error")
        assert pkg_logger.level == logging.ERROR

    def test_unknown_name_falls_back_to_info(self, monkeypatch):
        pkg_logger = logging.getLogger("docker_utils")
        monkeypatch.setattr(pkg_logger, "level", pkg_logger.level)
        set_level("chatty")
        assert pkg_logger.level == logging.INFO
