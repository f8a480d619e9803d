# config.py

"""Settings for the POS service.

``config.json`` next to this file seeds the defaults; environment variables
(``DATABASE_URL``, ``STRICT_TOTALS`` ...) win over it. Call
``get_settings.cache_clear()`` after changing either in tests.
"""

from __future__ import annotations

import json
import os
from functools import lru_cache
from pathlib import Path
from typing import Any
from zoneinfo import ZoneInfo, ZoneInfoNotFoundError

from pydantic import field_validator
from pydantic_settings import BaseSettings, SettingsConfigDict

CONFIG_FILE = Path(__file__).with_name("config.json")


class Settings(BaseSettings):
    model_config = SettingsConfigDict(env_file=".env", extra="ignore")

    database_url: str = "sqlite+aiosqlite:///./tablepos.db"
    redis_url: str = "redis://localhost:6379/0"
    # Used for restaurants that have not set their own timezone.
    default_tz: str = "UTC"
    env: str = "dev"
    log_level: str = "INFO"
    error_dsn: str | None = None
    slow_query_ms: int = 200
    log_sample_2xx: float = 0.1
    history_limit: int = 30
    # Reject orders whose declared total differs from the sum of line totals.
    strict_totals: bool = True

    @field_validator("default_tz")
    @classmethod
    def _known_zone(cls, value: str) -> str:
        try:
            ZoneInfo(value)
        except (ZoneInfoNotFoundError, ValueError) as exc:
            raise ValueError(f"unknown timezone {value!r}") from exc
        return value

    @field_validator("log_sample_2xx")
    @classmethod
    def _ratio(cls, value: float) -> float:
        if not 0 <= value <= 1:
            raise ValueError("log_sample_2xx must be between 0 and 1")
        return value

    @field_validator("history_limit")
    @classmethod
    def _positive(cls, value: int) -> int:
        if value <= 0:
            raise ValueError("history_limit must be positive")
        return value


def _file_values() -> dict[str, Any]:
    if not CONFIG_FILE.exists():
        return {}
    return json.loads(CONFIG_FILE.read_text())


@lru_cache
def get_settings() -> Settings:
    """Return the process-wide settings."""

    values = _file_values()
    for key, raw in os.environ.items():
        name = key.lower()
        if name in Settings.model_fields:
            values[name] = raw
    return Settings(**values)
