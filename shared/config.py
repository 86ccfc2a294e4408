"""
Shared Configuration Module

Centralized configuration for the campus activity services using Pydantic Settings.
Supports environment variables, .env files, and runtime overrides.
"""

from functools import lru_cache
from typing import Literal

from pydantic import Field
from pydantic_settings import BaseSettings, SettingsConfigDict


class Settings(BaseSettings):
    """Application-wide configuration settings."""

    model_config = SettingsConfigDict(
        env_file=".env",
        env_file_encoding="utf-8",
        case_sensitive=False,
        extra="ignore",
    )

    # Environment
    environment: Literal["development", "staging", "production"] = "development"
    debug: bool = Field(default=True, description="Enable debug mode")

    # Database - PostgreSQL
    postgres_user: str = "postgres"
    postgres_password: str = "postgres"
    postgres_host: str = "localhost"
    postgres_port: int = 5432
    postgres_db: str = "campus-activities"
    database_url: str | None = Field(
        default=None,
        description="Full async SQLAlchemy URL; overrides the postgres_* fields when set",
    )

    @property
    def async_database_url(self) -> str:
        """Construct async database URL."""
        if self.database_url:
            return self.database_url
        return f"postgresql+psycopg://{self.postgres_user}:{self.postgres_password}@{self.postgres_host}:{self.postgres_port}/{self.postgres_db}"

    db_isolation_level: str | None = Field(
        default="SERIALIZABLE",
        description="Transaction isolation level passed to the engine (None = driver default)",
    )
    db_pool_size: int = 20
    db_max_overflow: int = 40

    # Enrollment engine
    enrollment_max_attempts: int = Field(
        default=3,
        ge=1,
        description="Attempts per enroll/cancel/waitlist call before a transient failure is surfaced",
    )
    enrollment_retry_backoff_seconds: float = Field(
        default=0.05,
        ge=0.0,
        description="Base delay for exponential backoff between attempts",
    )

    # API Configuration
    api_v1_prefix: str = "/api/v1"
    activity_service_host: str = "0.0.0.0"
    activity_service_port: int = 8010

    # Logging
    log_level: Literal["DEBUG", "INFO", "WARNING", "ERROR", "CRITICAL"] = "INFO"
    log_format: Literal["json", "text"] = "json"

    @property
    def is_development(self) -> bool:
        """True when running in the development environment."""
        return self.environment == "development"


@lru_cache
def get_settings() -> Settings:
    """
    Get cached settings instance.

    Returns:
        Settings: Application settings singleton
    """
    return Settings()


# Convenience exports
settings = get_settings()
