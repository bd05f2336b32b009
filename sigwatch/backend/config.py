"""
backend/config.py

Application configuration via Pydantic Settings.
All values can be overridden with environment variables or a .env file.

Quick start — create a .env file in your project root:
    SEARCH_URL=http://localhost:9200
    ALERT_MERGE_STRATEGY=missingFields
    ALERT_IGNORE_FIELDS=secret,/^internal\\..*/
"""

from __future__ import annotations

from typing import Annotated, Literal

from pydantic import field_validator
from pydantic_settings import BaseSettings, NoDecode, SettingsConfigDict


class Settings(BaseSettings):
    model_config = SettingsConfigDict(
        env_file=".env",
        env_file_encoding="utf-8",
        case_sensitive=False,
    )

    # Alert building
    ALERT_MERGE_STRATEGY: Literal["allFields", "missingFields", "noFields"] = "missingFields"
    ALERT_IGNORE_FIELDS: Annotated[list[str], NoDecode] = []
    DEFAULT_SPACE_ID: str = "default"

    # Rule execution
    MAX_SIGNALS: int = 100
    RULE_LOOKBACK_SECONDS: int = 360

    # Search backend
    SEARCH_URL: str = "http://localhost:9200"
    SEARCH_API_KEY: str | None = None
    SEARCH_TIMEOUT_SECONDS: float = 10.0

    # Chart preview
    PREVIEW_TRANSACTION_INDEX: str = "traces-apm*"
    PREVIEW_MAX_SERIES: int = 3

    # Storage
    DB_PATH: str = "data/alerts.db"

    # API
    API_HOST: str = "0.0.0.0"
    API_PORT: int = 8000

    # Logging
    LOG_LEVEL: str = "INFO"

    @field_validator("ALERT_IGNORE_FIELDS", mode="before")
    @classmethod
    def parse_ignore_fields(cls, v):
        if isinstance(v, str):
            import json as _json
            v = v.strip()
            if v.startswith("["):
                try:
                    return _json.loads(v)
                except ValueError:
                    pass
            return [name.strip() for name in v.split(",") if name.strip()]
        return v


settings = Settings()
