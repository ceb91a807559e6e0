"""Runtime configuration from `ACROFLOW_*` environment variables."""

from __future__ import annotations

import logging
from pathlib import Path

from pydantic import field_validator
from pydantic_settings import BaseSettings, SettingsConfigDict

DEFAULT_HOME = ".acroflow"
DEFAULT_LOG_LEVEL = "WARNING"
HANDLER_NAME = "acroflow"


class AppConfig(BaseSettings):
    """Application settings; blank variables fall back to defaults."""

    model_config = SettingsConfigDict(env_prefix="ACROFLOW_", case_sensitive=False, env_ignore_empty=True)

    home: Path = Path(DEFAULT_HOME)
    db: Path | None = None
    catalog: Path | None = None
    log_level: str = DEFAULT_LOG_LEVEL

    @field_validator("log_level", mode="before")
    @classmethod
    def normalize_log_level(cls, v: object) -> object:
        """Accept any case; reject names the logging module does not know."""
        if not isinstance(v, str):
            return v
        level = v.strip().upper() or DEFAULT_LOG_LEVEL
        if not isinstance(logging.getLevelName(level), int):
            raise ValueError(f"Unknown log level: {level}")
        return level

    @property
    def db_path(self) -> Path:
        """SQLite file, `ACROFLOW_DB` or `flows.db` under the home dir."""
        return self.db if self.db is not None else self.home / "flows.db"

    @property
    def catalog_path(self) -> Path | None:
        return self.catalog


def load_config() -> AppConfig:
    """Read settings from the current environment."""
    return AppConfig()


def configure_logging(level: str = DEFAULT_LOG_LEVEL) -> None:
    """Attach a stderr handler to the root logger once at start-up."""
    root = logging.getLogger()
    if not any(getattr(item, "name", None) == HANDLER_NAME for item in root.handlers):
        handler = logging.StreamHandler()
        handler.set_name(HANDLER_NAME)
        handler.setFormatter(logging.Formatter("%(asctime)s %(levelname)s %(name)s: %(message)s"))
        root.addHandler(handler)
    root.setLevel(getattr(logging, level.upper(), logging.WARNING))
