"""Configuration management for crashrec."""

import logging
import os
import sys
from functools import lru_cache
from pathlib import Path

from pydantic import Field, field_validator
from pydantic_settings import BaseSettings, SettingsConfigDict

APP_NAME = "CrashRecorder"
APP_SLUG = "crash-recorder"
RECORDS_FILE = "records.json"
LOG_FILE = "crashrec.log"


def user_data_dir() -> Path:
    """
    Return a per-user data directory suitable for the platform.

    Falls back to the current working directory when no home directory
    can be resolved.
    """
    if sys.platform.startswith("win"):
        base = os.environ.get("APPDATA")
        if base:
            return Path(base) / APP_NAME

    try:
        home = Path.home()
    except RuntimeError:
        return Path.cwd()

    if sys.platform.startswith("win"):
        return home / "AppData" / "Roaming" / APP_NAME
    if sys.platform == "darwin":
        return home / "Library" / "Application Support" / APP_NAME
    base = os.environ.get("XDG_DATA_HOME") or (home / ".local" / "share")
    return Path(base) / APP_SLUG


class Settings(BaseSettings):
    """Runtime configuration sourced from CRASHREC_* environment variables and optional .env file."""

    model_config = SettingsConfigDict(
        env_prefix="CRASHREC_", env_file=".env", env_file_encoding="utf-8", extra="ignore"
    )

    data_dir: Path = Field(default_factory=user_data_dir)
    log_level: str = "INFO"
    log_file: Path | None = None
    save_interval: float = 2.0
    tick_rate: float = 1.0

    @field_validator("log_level")
    @classmethod
    def _normalize_log_level(cls, value: str) -> str:
        normalized = value.strip().upper()
        if normalized not in {"CRITICAL", "ERROR", "WARNING", "INFO", "DEBUG"}:
            raise ValueError(
                "CRASHREC_LOG_LEVEL must be one of CRITICAL, ERROR, WARNING, INFO, DEBUG"
            )
        return normalized

    @field_validator("save_interval")
    @classmethod
    def _validate_save_interval(cls, value: float) -> float:
        if value < 0:
            raise ValueError("CRASHREC_SAVE_INTERVAL must be >= 0")
        return value

    @field_validator("tick_rate")
    @classmethod
    def _validate_tick_rate(cls, value: float) -> float:
        if value <= 0:
            raise ValueError("CRASHREC_TICK_RATE must be > 0")
        return value

    @property
    def records_file(self) -> Path:
        """Path of the persisted records file."""
        return self.data_dir / RECORDS_FILE

    @property
    def resolved_log_file(self) -> Path:
        """Path of the log file, defaulting to one beside the records."""
        return self.log_file if self.log_file is not None else self.data_dir / LOG_FILE


@lru_cache(maxsize=1)
def get_settings() -> Settings:
    """Return cached settings instance."""

    settings = Settings()
    settings.data_dir = settings.data_dir.expanduser().resolve()
    if settings.log_file is not None:
        settings.log_file = settings.log_file.expanduser().resolve()
    return settings


def configure_logging(level: str, log_file: Path | None = None) -> None:
    """
    Configure root logging for crashrec.

    The terminal belongs to the UI, so records go to a file when one is given.
    """
    kwargs = {}
    if log_file is not None:
        log_file.parent.mkdir(parents=True, exist_ok=True)
        kwargs["filename"] = str(log_file)
        kwargs["encoding"] = "utf-8"
    logging.basicConfig(
        level=getattr(logging, level, logging.INFO),
        format="[%(asctime)s] [%(levelname)s] %(name)s: %(message)s",
        **kwargs,
    )


__all__ = ["Settings", "configure_logging", "get_settings", "user_data_dir"]
