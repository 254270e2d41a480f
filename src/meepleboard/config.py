"""
Application configuration using Pydantic Settings.

Loads configuration from environment variables with validation,
type coercion, and sensible defaults.
"""

from functools import lru_cache
from typing import Literal

from pydantic import Field, SecretStr, field_validator
from pydantic_settings import BaseSettings, SettingsConfigDict


class BGGAPIConfig(BaseSettings):
    """BoardGameGeek XML API 2 configuration."""

    model_config = SettingsConfigDict(env_prefix="BGG_")

    base_url: str = Field(
        default="https://boardgamegeek.com/xmlapi2",
        description="Base URL for the BGG XML API 2",
    )
    api_token: SecretStr | None = Field(
        default=None,
        description="Bearer token for registered BGG API applications",
    )
    timeout_seconds: int = Field(
        default=30,
        ge=5,
        le=120,
        description="HTTP request timeout in seconds",
    )
    candidate_delay_seconds: float = Field(
        default=1.0,
        ge=0.0,
        le=10.0,
        description="Pause between sequential detail fetches",
    )
    max_search_candidates: int | None = Field(
        default=None,
        ge=1,
        description=(
            "Optional cap on search hits expanded into detail fetches. "
            "Unset fetches every hit; a cap bounds request time but can "
            "drop the exact-name match"
        ),
    )
    batch_size: int = Field(
        default=20,
        ge=1,
        le=20,
        description="Ids per batched /thing request",
    )
    user_agent: str = Field(
        default="MeepleBoard/1.0",
        description="User-Agent header sent to BGG",
    )

    @field_validator("base_url")
    @classmethod
    def strip_trailing_slash(cls, v: str) -> str:
        """Normalize base URL so endpoint paths can be appended."""
        return v.rstrip("/")


class RetryConfig(BaseSettings):
    """Retry behavior configuration."""

    model_config = SettingsConfigDict(env_prefix="RETRY_")

    max_attempts: int = Field(
        default=5,
        ge=1,
        le=10,
        description="Maximum number of attempts per request",
    )
    base_delay_seconds: float = Field(
        default=2.0,
        ge=0.1,
        le=30.0,
        description="Delay before the first retry (doubles afterwards)",
    )
    max_delay_seconds: float = Field(
        default=30.0,
        ge=1.0,
        le=300.0,
        description="Maximum delay between retries",
    )
    exponential_base: float = Field(
        default=2.0,
        ge=1.5,
        le=4.0,
        description="Base for exponential backoff calculation",
    )


class DatabaseConfig(BaseSettings):
    """Catalog store database configuration."""

    model_config = SettingsConfigDict(env_prefix="DATABASE_")

    url: str = Field(
        default="sqlite+aiosqlite:///meepleboard.db",
        description="SQLAlchemy async database URL",
    )
    echo: bool = Field(
        default=False,
        description="Echo SQL statements (debugging)",
    )


class LoggingConfig(BaseSettings):
    """Logging configuration."""

    model_config = SettingsConfigDict(env_prefix="LOG_")

    level: Literal["DEBUG", "INFO", "WARNING", "ERROR", "CRITICAL"] = Field(
        default="INFO",
        description="Logging level",
    )
    format: Literal["json", "console"] = Field(
        default="json",
        description="Log output format",
    )
    include_timestamp: bool = Field(
        default=True,
        description="Include timestamp in log entries",
    )


class Settings(BaseSettings):
    """
    Main application settings.

    Aggregates all configuration sections and provides
    a single entry point for configuration access.
    """

    model_config = SettingsConfigDict(
        env_file=".env",
        env_file_encoding="utf-8",
        extra="ignore",
    )

    # Environment
    environment: Literal["development", "staging", "production"] = Field(
        default="development",
        description="Deployment environment",
    )

    # Sub-configurations
    bgg: BGGAPIConfig = Field(default_factory=BGGAPIConfig)
    retry: RetryConfig = Field(default_factory=RetryConfig)
    database: DatabaseConfig = Field(default_factory=DatabaseConfig)
    logging: LoggingConfig = Field(default_factory=LoggingConfig)

    @property
    def is_production(self) -> bool:
        """Check if running in production environment."""
        return self.environment == "production"


@lru_cache
def get_settings() -> Settings:
    """
    Get cached application settings.

    Uses lru_cache to ensure settings are only loaded once
    and reused across the application.

    Returns:
        Settings: Application configuration instance
    """
    return Settings()
