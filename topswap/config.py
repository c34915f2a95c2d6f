"""Configuration management for topswap."""

from functools import lru_cache

from pydantic_settings import BaseSettings, SettingsConfigDict


class Settings(BaseSettings):
    """Application settings loaded from environment variables."""

    model_config = SettingsConfigDict(
        env_prefix="TOPSWAP_",
        env_file=".env",
        env_file_encoding="utf-8",
    )

    # Drain wait
    drain_timeout_seconds: float = 600.0
    poll_interval_seconds: float = 5.0

    # Management API
    api_url: str = "http://127.0.0.1:8080"
    api_timeout_seconds: float = 30.0

    # Swap history
    database_url: str = "sqlite+aiosqlite:///./topswap.db"

    debug: bool = False

    # Logging
    log_level: str = "INFO"


@lru_cache
def get_settings() -> Settings:
    """Get cached settings instance."""
    return Settings()
