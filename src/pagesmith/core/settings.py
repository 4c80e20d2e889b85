"""Centralized application configuration using Pydantic Settings (v2).

This module exposes a single, cached `settings` instance that reads from:
- Real environment variables (highest precedence)
- `.env` files at the repository root: .env, .env.local, .env.dev/.env.test/.env.prod
"""

from __future__ import annotations

import logging
import os
from functools import lru_cache
from pathlib import Path
from typing import Literal

from pydantic import Field
from pydantic_settings import BaseSettings, SettingsConfigDict

EnvName = Literal["dev", "test", "prod"]
LogLevelName = Literal["DEBUG", "INFO", "WARNING", "ERROR", "CRITICAL"]
FailurePolicyName = Literal["fail", "fallback"]


class Settings(BaseSettings):
    """Typed application configuration loaded from env and `.env` files.

    Attributes
    ----------
    environment : EnvName
        Runtime environment flag; maps from `PAGESMITH_ENV`.
    log_level : LogLevelName
        Global log level string; maps from `LOG_LEVEL`.
    openrouter_api_key : Optional[str]
        API key for the generation provider. Maps from `OPENROUTER_API_KEY`.
    openrouter_base_url : str
        Chat-completions base URL. Maps from `OPENROUTER_BASE_URL`.
    model : str
        Default model alias or concrete model id. Maps from `PAGESMITH_MODEL`.
    manifest_path : Optional[Path]
        Operator-supplied manifest overriding the bundled one. Maps from
        `PAGESMITH_MANIFEST_PATH`.
    failure_policy : FailurePolicyName
        What to do when the repaired output is still not compliant:
        ``"fail"`` surfaces the warnings, ``"fallback"`` emits the in-band
        fallback block. Maps from `PAGESMITH_FAILURE_POLICY`.
    timeout_seconds : float
        Network timeout for provider calls. Maps from `PAGESMITH_TIMEOUT_SECONDS`.
    """

    environment: EnvName = Field(default="dev", alias="PAGESMITH_ENV")
    log_level: LogLevelName = Field(default="INFO", alias="LOG_LEVEL")
    openrouter_api_key: str | None = Field(default=None, alias="OPENROUTER_API_KEY")
    openrouter_base_url: str = Field(
        default="https://openrouter.ai/api/v1", alias="OPENROUTER_BASE_URL"
    )
    model: str = Field(default="sonnet", alias="PAGESMITH_MODEL")
    manifest_path: Path | None = Field(default=None, alias="PAGESMITH_MANIFEST_PATH")
    failure_policy: FailurePolicyName = Field(default="fail", alias="PAGESMITH_FAILURE_POLICY")
    timeout_seconds: float = Field(default=60.0, gt=0, alias="PAGESMITH_TIMEOUT_SECONDS")

    model_config = SettingsConfigDict(
        env_file=(".env", ".env.local", ".env.dev", ".env.test", ".env.prod"),
        env_file_encoding="utf-8",
        extra="ignore",
    )

    @property
    def is_dev(self) -> bool:
        """Return True if running in the development environment."""
        return self.environment == "dev"

    @property
    def is_test(self) -> bool:
        """Return True if running in the test environment."""
        return self.environment == "test"

    @property
    def is_prod(self) -> bool:
        """Return True if running in the production environment."""
        return self.environment == "prod"

    def log_level_numeric(self) -> int:
        """Return the numeric logging level corresponding to `self.log_level`."""
        return getattr(logging, self.log_level, logging.INFO)


@lru_cache(maxsize=1)
def load_settings() -> Settings:
    """Create and cache a `Settings` instance.

    We keep this behind an LRU cache so tests can force a rebuild via
    `load_settings.cache_clear()` after mutating `os.environ`.
    """
    os.environ.setdefault("PAGESMITH_ENV", "dev")
    return Settings()


# Export a ready-to-use singleton (import-time read of env / .env files).
settings: Settings = load_settings()


def get_logger(name: str = "pagesmith") -> logging.Logger:
    """Return a process-global logger configured to the current `LOG_LEVEL`."""
    logger = logging.getLogger(name)
    if not logger.handlers:
        handler = logging.StreamHandler()
        handler.setFormatter(
            logging.Formatter("%(asctime)s | %(levelname)s | %(name)s | %(message)s")
        )
        logger.addHandler(handler)
    logger.setLevel(load_settings().log_level_numeric())
    logger.propagate = False
    return logger
