from __future__ import annotations

import logging
from functools import lru_cache
from pathlib import Path
from typing import Optional

from pydantic_settings import BaseSettings, SettingsConfigDict


class Settings(BaseSettings):
    """Process configuration, read from the environment and an optional `.env` file."""

    model_config = SettingsConfigDict(env_file=".env", extra="ignore")

    WEBHOOK_SECRET: Optional[str] = None
    WEBHOOK_TOLERANCE_SECONDS: int = 300

    MONGODB_URL: Optional[str] = None
    MONGODB_DB_NAME: str = "identity_sync"

    CLERK_SECRET_KEY: Optional[str] = None
    CLERK_API_URL: str = "https://api.clerk.com/v1"
    CLERK_TIMEOUT_SECONDS: float = 10.0

    LEDGER_FILE_PATH: Path = Path("logs/sync_ledger.log")
    LOG_LEVEL: str = "INFO"


@lru_cache()
def get_settings() -> Settings:
    return Settings()


def configure_logging(level: str = "INFO") -> None:
    logging.basicConfig(
        level=getattr(logging, level.upper(), logging.INFO),
        format="%(asctime)s  %(levelname)-8s  %(name)s  %(message)s",
    )
