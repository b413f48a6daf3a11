"""Centralized configuration — Pydantic BaseSettings with TOML + dotenv sources.

Defaults live in code; ``docker-utils.toml`` in the working directory can
override them. Environment variables override both using the
``DOCKER_UTILS_`` prefix and ``__`` as the nested delimiter
(e.g. ``DOCKER_UTILS_RUNTIME__CLI=podman``).

Priority (highest wins): init args > env vars > .env > docker-utils.toml

Usage::

    from docker_utils.config import get_settings

    s = get_settings()
    print(s.runtime.cli)
    print(s.run.timeout)
"""

from __future__ import annotations

import math

from pydantic import BaseModel, field_validator
from pydantic_settings import (
    BaseSettings,
    PydanticBaseSettingsSource,
    SettingsConfigDict,
    TomlConfigSettingsSource,
)

from docker_utils.logger import set_level

# ---------------------------------------------------------------------------
# Sub-models (each maps to a [section] in docker-utils.toml)
# ---------------------------------------------------------------------------


class _StrictModel(BaseModel):
    """Base for all config sub-models — reject unknown keys so typos fail loudly."""

    model_config = {"extra": "forbid"}


class RuntimeConfig(_StrictModel):
    cli: str = "docker"  # any docker-compatible binary on PATH, e.g. "podman"


class RunConfig(_StrictModel):
    timeout: float | None = 10800.0  # 3 hours; None = wait forever
    exit_on_end: bool = False
    name_prefix: str = "docker-utils"
    log_prefix: str = "[docker]"
    reap_timeout: float = 5.0  # wait for a killed `docker run` client to exit

    @field_validator("timeout")
    @classmethod
    def infinite_means_none(cls, v: float | None) -> float | None:
        if v is not None and math.isinf(v):
            return None
        return v


class LoggingConfig(_StrictModel):
    level: str = "INFO"

    @field_validator("level")
    @classmethod
    def normalize_level(cls, v: str) -> str:
        return v.upper()


# ---------------------------------------------------------------------------
# Root Settings
# ---------------------------------------------------------------------------


class Settings(BaseSettings):
    model_config = SettingsConfigDict(
        toml_file="docker-utils.toml",
        env_file=".env",
        env_prefix="DOCKER_UTILS_",
        env_nested_delimiter="__",
        extra="ignore",
    )

    runtime: RuntimeConfig = RuntimeConfig()
    run: RunConfig = RunConfig()
    logging: LoggingConfig = LoggingConfig()

    @classmethod
    def settings_customise_sources(
        cls,
        settings_cls: type[BaseSettings],
        init_settings: PydanticBaseSettingsSource,
        env_settings: PydanticBaseSettingsSource,
        dotenv_settings: PydanticBaseSettingsSource,
        file_secret_settings: PydanticBaseSettingsSource,
    ) -> tuple[PydanticBaseSettingsSource, ...]:
        """Priority: init > env vars > .env > docker-utils.toml > file secrets."""
        return (
            init_settings,
            env_settings,
            dotenv_settings,
            TomlConfigSettingsSource(settings_cls),
            file_secret_settings,
        )


# ---------------------------------------------------------------------------
# Singleton
# ---------------------------------------------------------------------------

_settings: Settings | None = None


def get_settings() -> Settings:
    """Lazy cached singleton."""
    global _settings
    if _settings is None:
        _settings = Settings()
        set_level(_settings.logging.level)
    return _settings


def reset_settings() -> None:
    """Clear the cached singleton (for tests)."""
    global _settings
    _settings = None
