"""Configuration loader for navgate using Pydantic settings.

Config precedence (highest wins):
  1. Explicit constructor values / CLI flags
  2. Environment variables (NAVGATE_* with __ for nesting)
  3. settings.local.toml
  4. settings.{env}.toml
  5. settings.default.toml
"""

from __future__ import annotations

import os
import tomllib
from functools import lru_cache
from pathlib import Path
from typing import Any, Literal

from pydantic import Field, model_validator
from pydantic_settings import BaseSettings, SettingsConfigDict

# ---------------------------------------------------------------------------
# Path helpers
# ---------------------------------------------------------------------------

_THIS_DIR = Path(__file__).resolve().parent
PROJECT_ROOT = Path(os.getenv("NAVGATE_PROJECT_ROOT", _THIS_DIR.parents[2]))
CONFIG_DIR = PROJECT_ROOT / "config"

ENV_VAR_NAME = "NAVGATE_ENV"
DEFAULT_ENV = "local"


def _resolve_env() -> str:
    return (os.getenv(ENV_VAR_NAME) or DEFAULT_ENV).strip()


def _load_toml(path: Path) -> dict[str, Any]:
    if path.is_file():
        with open(path, "rb") as f:
            return tomllib.load(f)
    return {}


# ---------------------------------------------------------------------------
# Section models
# ---------------------------------------------------------------------------


class GateSettings(BaseSettings):
    """Loop-breaker thresholds.

    Where historical revisions disagreed the more conservative value is the
    default (e.g. two login attempts rather than three).
    """

    model_config = SettingsConfigDict(env_prefix="NAVGATE_GATE__")

    short_window_ms: int = Field(default=15_000, gt=0)
    max_short: int = Field(default=1, gt=0)
    long_window_ms: int = Field(default=60_000, gt=0)
    max_long: int = Field(default=3, gt=0)
    history_limit: int = Field(default=10, gt=0)
    max_login_attempts: int = Field(default=2, gt=0)
    attempt_window_ms: int = Field(default=60_000, gt=0)

    @model_validator(mode="after")
    def _check_windows(self) -> "GateSettings":
        if self.short_window_ms > self.long_window_ms:
            raise ValueError(
                f"short_window_ms ({self.short_window_ms}) must not exceed "
                f"long_window_ms ({self.long_window_ms})"
            )
        return self


class StoreSettings(BaseSettings):
    """Session store backend."""

    model_config = SettingsConfigDict(env_prefix="NAVGATE_STORE__")

    backend: Literal["memory", "redis"] = "memory"
    redis_url: str = "redis://localhost:6379/0"
    key_prefix: str = "navgate:"
    default_ttl_seconds: int = 0
    # Per-process read cache. Only safe when a single process owns the store.
    cache_reads: bool = False


class SessionSettings(BaseSettings):
    """Automation session lifetime."""

    model_config = SettingsConfigDict(env_prefix="NAVGATE_SESSION__")

    cleanup_timeout_seconds: float = 60.0


class NotifierSettings(BaseSettings):
    """User-visible block signal."""

    model_config = SettingsConfigDict(env_prefix="NAVGATE_NOTIFIER__")

    backend: Literal["console", "logging"] = "console"
    badge_text: str = "LOOP"
    badge_color: str = "#dc2626"


class LoggingSettings(BaseSettings):
    """Log output configuration."""

    model_config = SettingsConfigDict(env_prefix="NAVGATE_LOGGING__")

    level: str = "INFO"
    format: str = "%(asctime)s %(levelname)s %(name)s: %(message)s"


# ---------------------------------------------------------------------------
# Root settings
# ---------------------------------------------------------------------------


class Settings(BaseSettings):
    """Root navgate settings with nested sections."""

    model_config = SettingsConfigDict(
        env_prefix="NAVGATE_",
        env_nested_delimiter="__",
        extra="ignore",
    )

    env: str = Field(default_factory=_resolve_env)
    project_root: Path = Field(default=PROJECT_ROOT)
    debug: bool = False

    gate: GateSettings = Field(default_factory=GateSettings)
    store: StoreSettings = Field(default_factory=StoreSettings)
    session: SessionSettings = Field(default_factory=SessionSettings)
    notifier: NotifierSettings = Field(default_factory=NotifierSettings)
    logging: LoggingSettings = Field(default_factory=LoggingSettings)

    @model_validator(mode="before")
    @classmethod
    def _merge_toml_files(cls, values: dict[str, Any]) -> dict[str, Any]:
        """Layer TOML config files before env var overrides."""
        defaults = _load_toml(CONFIG_DIR / "settings.default.toml")
        env_name = (values.get("env") or os.getenv(ENV_VAR_NAME) or DEFAULT_ENV).strip()
        env_overrides = _load_toml(CONFIG_DIR / f"settings.{env_name}.toml")
        local_overrides = _load_toml(CONFIG_DIR / "settings.local.toml")

        # Merge: defaults < env-specific < local < explicit values
        merged: dict[str, Any] = {}
        for layer in (defaults, env_overrides, local_overrides, values):
            for key, val in layer.items():
                if isinstance(val, dict) and isinstance(merged.get(key), dict):
                    merged[key] = {**merged[key], **val}
                else:
                    merged[key] = val
        return merged


@lru_cache(maxsize=1)
def get_settings() -> Settings:
    """Return the singleton settings instance (cached)."""
    return Settings()
