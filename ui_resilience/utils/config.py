# ui_resilience/utils/config.py
from __future__ import annotations

import functools
from enum import Enum
from pathlib import Path
from typing import Optional

from pydantic import Field, field_validator
from pydantic_settings import BaseSettings, SettingsConfigDict


# ---------- Enums ----------

class LogLevel(str, Enum):
    DEBUG = "DEBUG"
    INFO = "INFO"
    WARNING = "WARNING"
    ERROR = "ERROR"
    CRITICAL = "CRITICAL"


# ---------- Settings ----------

class Settings(BaseSettings):
    """
    Central configuration for element resolution, healing and retries.

    Values load in this order of precedence:
      1) Environment variables
      2) .env file in project root
      3) Defaults below
    """

    # ---- Resolution ----
    DEFAULT_TIMEOUT_MS: int = Field(default=10000, ge=1, description="Timeout for actions and assertions")
    PROBE_TIMEOUT_MS: int = Field(default=2000, ge=1, description="Visibility probe for primary/fallback locators")
    STRATEGY_PROBE_TIMEOUT_MS: int = Field(default=1000, ge=1, description="Visibility probe per healing candidate")

    # ---- Healing ----
    ENABLE_HEALING: bool = Field(default=True)
    MAX_HEALING_ATTEMPTS: int = Field(default=0, ge=0, description="Cap on applicable strategies per chain run, 0 = run the whole chain")
    LOG_HEALING: bool = Field(default=True)
    HEALING_REPORT_ENABLED: bool = Field(default=True)
    HEALING_REPORT_FILE: Optional[Path] = Field(default=None, description="Write the healing report JSON here at session end")
    PURE_ROLE_AMBIGUITY_LIMIT: int = Field(default=10, ge=2, description="Reject pure-role matches at or above this count")

    # ---- Retry & error handling ----
    RETRY_MAX_ATTEMPTS: int = Field(default=3, ge=1)
    RETRY_INITIAL_DELAY_MS: int = Field(default=500, ge=0)
    RETRY_MAX_DELAY_MS: int = Field(default=5000, ge=0)
    RETRY_BACKOFF_FACTOR: float = Field(default=2.0, ge=1.0)
    FIXED_RETRY_DELAY_MS: int = Field(default=1000, ge=0)
    OPTION_TIMEOUT_MS: int = Field(default=5000, ge=1, description="Wait for a dropdown option to appear")
    VALUE_CHECK_TIMEOUT_MS: int = Field(default=2000, ge=1, description="Wait for a filled value to settle")

    # ---- Element repository ----
    DESCRIPTORS_DIR: Path = Field(default=Path("./descriptors"))

    # ---- Logging ----
    LOG_LEVEL: LogLevel = Field(default=LogLevel.INFO)
    LOG_TO_FILE: bool = Field(default=False)
    LOG_FILE: Path = Field(default=Path("./ui-resilience.log"))
    COLORIZED_OUTPUT: bool = Field(default=True)

    model_config = SettingsConfigDict(
        env_file=".env",
        env_file_encoding="utf-8",
        extra="ignore",  # ignore unknown envs to keep things flexible
    )

    @field_validator("DESCRIPTORS_DIR", "LOG_FILE", "HEALING_REPORT_FILE", mode="before")
    @classmethod
    def _coerce_to_path(cls, v):
        if v is None or isinstance(v, Path):
            return v
        return Path(str(v))

    @field_validator("DESCRIPTORS_DIR", "LOG_FILE", "HEALING_REPORT_FILE", mode="after")
    @classmethod
    def _absolutize(cls, v: Optional[Path]):
        if v is None:
            return v
        return v if v.is_absolute() else Path.cwd() / v

    @field_validator("RETRY_MAX_DELAY_MS")
    @classmethod
    def _max_delay_floor(cls, v: int, info):
        # never below the first delay
        initial = info.data.get("RETRY_INITIAL_DELAY_MS", 0)
        return max(v, initial)

    def ensure_dirs(self) -> None:
        """Create directories for file outputs (idempotent)."""
        if self.LOG_TO_FILE:
            self.LOG_FILE.parent.mkdir(parents=True, exist_ok=True)
        if self.HEALING_REPORT_FILE is not None:
            self.HEALING_REPORT_FILE.parent.mkdir(parents=True, exist_ok=True)

    def retry_kwargs(self) -> dict:
        """Keyword arguments for retry_with_backoff built from these settings."""
        return {
            "max_attempts": self.RETRY_MAX_ATTEMPTS,
            "initial_delay_ms": self.RETRY_INITIAL_DELAY_MS,
            "max_delay_ms": self.RETRY_MAX_DELAY_MS,
            "backoff_factor": self.RETRY_BACKOFF_FACTOR,
        }


# --------- Public accessor (memoized) ---------

@functools.lru_cache(maxsize=1)
def get_settings() -> Settings:
    """
    Load and cache settings once per process.
    Call `get_settings.cache_clear()` if you need to reload after changing env.
    """
    s = Settings()
    s.ensure_dirs()
    return s
