"""Application configuration utilities."""
from __future__ import annotations

import json
import logging
import os
from pathlib import Path
from typing import Any, Dict, Optional
from zoneinfo import ZoneInfo, ZoneInfoNotFoundError

from pydantic import BaseModel, Field, field_validator, model_validator

logger = logging.getLogger(__name__)


class EngineSettings(BaseModel):
    """Caregiver-level knobs the inference engine reads on every evaluation."""

    night_start_hour: int = Field(default=19, ge=0, le=23)
    night_end_hour: int = Field(default=7, ge=0, le=23)
    timezone: str = Field(default="UTC", description="IANA zone used to localize loggedAt")

    @field_validator("timezone")
    @classmethod
    def _known_timezone(cls, value: str) -> str:
        try:
            ZoneInfo(value)
        except (ZoneInfoNotFoundError, ValueError) as exc:
            raise ValueError(f"Unknown timezone: {value}") from exc
        return value

    @model_validator(mode="after")
    def _non_empty_window(self) -> "EngineSettings":
        if self.night_start_hour == self.night_end_hour:
            raise ValueError("night_start_hour and night_end_hour must differ")
        return self

    @property
    def tzinfo(self) -> ZoneInfo:
        return ZoneInfo(self.timezone)


class AppConfig(BaseModel):
    """Strongly typed configuration loaded from config.json."""

    database_path: str = Field(default="./data/rhythm.db")
    log_level: str = Field(default="INFO")
    engine: EngineSettings = Field(default_factory=EngineSettings)

    @property
    def resolved_database_path(self) -> Path:
        """Return the absolute path for the SQLite database file."""
        return (Path(__file__).resolve().parents[1] / self.database_path).resolve()


def _config_path() -> Path:
    return Path(__file__).resolve().parents[1] / "config.json"


def load_config(path: Optional[str] = None) -> AppConfig:
    """Load configuration from config.json.

    An explicitly requested file (argument or RHYTHM_CONFIG) must exist; the
    default location is optional and falls back to built-in defaults.
    """

    requested = path or os.getenv("RHYTHM_CONFIG")
    config_file = Path(requested) if requested else _config_path()
    if not config_file.exists():
        if requested:
            example = _config_path().with_name("config.example.json")
            raise FileNotFoundError(
                f"Missing config file at {config_file}. Copy {example} and adjust it."
            )
        logger.info("no config.json found, using defaults", extra={"path": str(config_file)})
        return AppConfig()

    contents: Dict[str, Any] = json.loads(config_file.read_text())
    return AppConfig(**contents)


CONFIG = load_config()
