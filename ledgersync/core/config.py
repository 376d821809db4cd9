from __future__ import annotations

from functools import lru_cache
from typing import Literal, Optional

from pydantic_settings import BaseSettings, SettingsConfigDict


class Settings(BaseSettings):
    """Application settings loaded from environment variables and .env file.

    This uses pydantic-settings so that we get type validation and defaults.
    Settings are loaded from environment variables with optional .env file override.
    """

    # App basics
    ENV: Literal["development", "staging", "production"] = "development"
    """Environment mode: affects log rendering and the default bank client."""

    DEBUG: bool = True
    """Enable debug mode: verbose logging."""

    # DB
    DATABASE_URL: Optional[str] = None
    """Database connection URL. If None, uses a local SQLite file."""

    # Bank API
    BANK_CLIENT_TYPE: Literal["qonto", "mock"] = "qonto"
    """Which bank client implementation to build ('qonto' or 'mock')."""

    BANK_API_BASE_URL: str = "https://thirdparty.qonto.com"
    """Base URL of the remote bank API."""

    BANK_API_LOGIN: Optional[str] = None
    """Organization login used in the Authorization header."""

    BANK_API_SECRET: Optional[str] = None
    """Secret key used in the Authorization header."""

    BANK_API_TIMEOUT: float = 30.0
    """HTTP timeout in seconds for bank API calls."""

    BANK_API_PAGE_SIZE: int = 100
    """Transactions requested per page when listing transactions."""

    # Sync policy
    SYNC_COOLDOWN_MINUTES: int = 60
    """Minimum minutes between two automatic syncs."""

    SYNC_EXCLUDE_BOUNDARY_ID: bool = False
    """Drop the previous run's boundary transaction from incremental fetches."""

    # Model config
    model_config = SettingsConfigDict(
        env_file=".env", env_file_encoding="utf-8", extra="ignore"
    )

    @property
    def database_url(self) -> str:
        """Resolved database URL, falling back to the local SQLite file."""
        return self.DATABASE_URL or "sqlite+aiosqlite:///./ledgersync.db"


@lru_cache(maxsize=1)
def get_settings() -> Settings:
    """Return a cached Settings instance to avoid re-parsing .env repeatedly.

    Uses LRU cache to ensure only one Settings instance exists per process,
    improving performance and ensuring consistency.
    """
    return Settings()
