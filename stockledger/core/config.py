"""Human-friendly configuration loader.

The ``Settings`` class centralises every environment variable the ledger
relies on. Anyone inspecting the project can quickly answer the questions:

*What:* Which settings exist and what do they control?
*When:* They are read once, the first time ``get_settings`` is called.
*Why:* Centralising configuration prevents magic strings scattered all over the
codebase.
*How:* ``pydantic-settings`` reads the environment (and an optional ``.env``
file) and validates each value against the declared type.
"""

from __future__ import annotations

import json
from functools import lru_cache
from pathlib import Path
from typing import Annotated, Any

from pydantic import AliasChoices, Field, field_validator, model_validator
from pydantic_settings import BaseSettings, NoDecode, SettingsConfigDict


class Settings(BaseSettings):
    """Environment-driven application configuration."""

    model_config = SettingsConfigDict(
        env_file=(".env", ".env.local"),
        env_file_encoding="utf-8",
        extra="ignore",
    )

    APP_NAME: str = "Stock Ledger"
    APP_ENV: str = "dev"

    # Base folders keep file-path building consistent. ``DATA_DIR`` holds the
    # SQLite file when no explicit database URL is configured.
    BASE_DIR: Path = Field(default_factory=lambda: Path(__file__).resolve().parents[2])
    DATA_DIR: Path = Field(default_factory=lambda: Path(__file__).resolve().parents[2] / "data")

    # Day boundaries for today/yesterday reports are computed in this zone.
    TZ: str = "Africa/Johannesburg"
    CURRENCY: str = "ZAR"

    # ---- API authentication (single operator)
    # Leave empty for an open, personal-use install.
    API_KEY: str = Field(default="", validation_alias=AliasChoices("API_KEY", "API_TOKEN"))

    DB_URL: str = Field(default="", validation_alias=AliasChoices("DB_URL", "DATABASE_URL"))

    LOG_LEVEL: str = "INFO"

    HOST: str = "0.0.0.0"
    PORT: int = 8089

    # ---- Reporting / alerts
    RECENT_SALES_LIMIT: int = 5
    LOW_STOCK_DEFAULT_THRESHOLD: int = 10
    # ``NoDecode`` lets the validator below see the raw ``name=n`` string.
    LOW_STOCK_THRESHOLDS: Annotated[dict[str, int], NoDecode] = Field(default_factory=dict)
    LOW_STOCK_MAX_ALERTS_PER_DAY: int = 2

    @field_validator("LOW_STOCK_THRESHOLDS", mode="before")
    @classmethod
    def parse_thresholds(cls, value: Any) -> dict[str, int]:
        """Accept a JSON object or ``name=n,name=n`` pairs."""

        if value in (None, "", {}):
            return {}
        if isinstance(value, dict):
            return {str(k).strip(): int(v) for k, v in value.items()}
        if isinstance(value, str):
            text = value.strip()
            if text.startswith("{"):
                return {str(k).strip(): int(v) for k, v in json.loads(text).items()}
            pairs: dict[str, int] = {}
            for chunk in text.split(","):
                if not chunk.strip():
                    continue
                name, sep, raw = chunk.partition("=")
                if not sep:
                    raise ValueError(f"invalid threshold entry: {chunk!r}")
                pairs[name.strip()] = int(raw.strip())
            return pairs
        raise TypeError("LOW_STOCK_THRESHOLDS must be a JSON object or name=n pairs")

    @model_validator(mode="after")
    def default_db_url(self) -> "Settings":
        if not self.DB_URL:
            self.DB_URL = f"sqlite:///{self.DATA_DIR / 'ledger.db'}"
        return self


@lru_cache(maxsize=1)
def get_settings() -> Settings:
    settings = Settings()
    settings.DATA_DIR.mkdir(parents=True, exist_ok=True)
    return settings


# Importing ``settings`` anywhere instantly gives access to the configured
# values without rebuilding the object each time.
settings = get_settings()
