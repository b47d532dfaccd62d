"""
Application settings module.

Manages all configuration via environment variables using pydantic-settings.
"""

from functools import lru_cache
from typing import Literal

from pydantic_settings import BaseSettings, SettingsConfigDict


class PostgresSettings(BaseSettings):
    """PostgreSQL connection settings."""

    model_config = SettingsConfigDict(env_file=".env", env_prefix="PG_", extra="ignore")

    host: str = "localhost"
    port: int = 5432
    user: str = "admin"
    password: str = "1234"
    database: str = "dwv_dev"
    pool_max: int = 10
    init_schema: bool = True


class RedisSettings(BaseSettings):
    """Redis connection settings."""

    model_config = SettingsConfigDict(env_file=".env", env_prefix="REDIS_", extra="ignore")

    host: str = "localhost"
    port: int = 6379
    db: int = 0
    password: str = ""


class DwvSettings(BaseSettings):
    """Target site, credentials and browser settings."""

    model_config = SettingsConfigDict(env_file=".env", env_prefix="DWV_", extra="ignore")

    base_url: str = "https://app.dwvapp.com.br"
    email: str = ""
    password: str = ""
    user_agent: str = (
        "Mozilla/5.0 (Windows NT 10.0; Win64; x64) "
        "AppleWebKit/537.36 (KHTML, like Gecko) "
        "Chrome/120.0.0.0 Safari/537.36"
    )
    request_timeout: float = 30.0

    # Session cache
    session_ttl_seconds: int = 60 * 60 * 24  # 24 hours
    session_backend: Literal["memory", "redis"] = "memory"

    # Browser strategy
    browser_enabled: bool = True
    browser_headless: bool = True
    browser_launch_timeout_ms: int = 30000
    browser_navigation_timeout_ms: int = 30000


class CrawlerSettings(BaseSettings):
    """Extraction chain settings."""

    model_config = SettingsConfigDict(env_file=".env", env_prefix="CRAWLER_", extra="ignore")

    # Per-request retry (linear backoff: retry_delay * attempt)
    request_retries: int = 3
    retry_delay: float = 2.0

    # Courtesy delays between requests, in seconds
    api_delay: float = 1.0
    page_delay: float = 2.0
    dashboard_delay: float = 1.5
    search_delay: float = 2.0

    # Fallback stages run while fewer listings than this were collected
    fallback_threshold: int = 10
    max_followed_links: int = 3


class PipelineSettings(BaseSettings):
    """Orchestrator and scheduler settings."""

    model_config = SettingsConfigDict(env_file=".env", env_prefix="PIPELINE_", extra="ignore")

    max_retries: int = 3
    retry_delay: float = 2.0
    batch_size: int = 10
    batch_delay: float = 1.0

    schedule_enabled: bool = False
    interval_minutes: int = 60


class Settings(BaseSettings):
    """Main application settings."""

    model_config = SettingsConfigDict(
        env_file=".env",
        env_file_encoding="utf-8",
        extra="ignore",
    )

    log_level: str = "INFO"
    cors_origins: str = "*"  # comma-separated

    postgres: PostgresSettings = PostgresSettings()
    redis: RedisSettings = RedisSettings()
    dwv: DwvSettings = DwvSettings()
    crawler: CrawlerSettings = CrawlerSettings()
    pipeline: PipelineSettings = PipelineSettings()


@lru_cache
def get_settings() -> Settings:
    """Get cached settings instance."""
    return Settings()
