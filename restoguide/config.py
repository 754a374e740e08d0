"""
Configuration and settings for the restaurant guide API.
"""

from __future__ import annotations

import logging
from functools import lru_cache
from typing import Optional

from pydantic import Field, field_validator
from pydantic_settings import BaseSettings, SettingsConfigDict

MIN_JWT_SECRET_LENGTH = 32


class Settings(BaseSettings):
    """Environment-backed settings for the FastAPI service."""

    model_config = SettingsConfigDict(
        env_file=".env",
        env_file_encoding="utf-8",
        extra="ignore",
        populate_by_name=True,
    )

    api_prefix: str = Field(default="/api")
    api_version: str = Field(default="v1")
    environment: str = Field(default="development", alias="APP_ENV")
    log_level: str = Field(default="INFO", alias="LOG_LEVEL")

    # Database (Postgres + PostGIS expected; SQLite when unset)
    database_url: Optional[str] = Field(default=None, alias="DATABASE_URL")

    # Counters for rate limiting and review quotas (Redis)
    redis_url: Optional[str] = Field(default=None, alias="REDIS_URL")

    # Auth
    jwt_secret: str = Field(
        default="local-development-secret-change-me-0123456789",
        alias="JWT_SECRET",
    )
    jwt_access_ttl_seconds: int = Field(default=900, alias="JWT_ACCESS_TTL_SECONDS")
    refresh_token_ttl_days: int = Field(default=30, alias="REFRESH_TOKEN_TTL_DAYS")
    jwt_issuer: str = Field(default="restaurant-guide-belarus")
    jwt_audience: str = Field(default="restaurant-guide-api")
    bcrypt_rounds: int = Field(default=12, alias="BCRYPT_ROUNDS")

    cors_origins: list[str] = Field(default_factory=lambda: ["*"], alias="CORS_ORIGINS")

    # Global rate limiting
    rate_limit_enabled: bool = Field(default=True, alias="RATE_LIMIT_ENABLED")
    rate_limit_authenticated: int = Field(default=100)
    rate_limit_authenticated_window: int = Field(default=60)
    rate_limit_unauthenticated: int = Field(default=300)
    rate_limit_unauthenticated_window: int = Field(default=3600)

    # Review quota
    review_daily_limit: int = Field(default=10, alias="REVIEW_DAILY_LIMIT")
    review_limit_window_seconds: int = Field(default=86400)

    # S3-compatible media storage
    media_bucket: Optional[str] = Field(default=None, alias="MEDIA_BUCKET")
    media_endpoint: Optional[str] = Field(default=None, alias="MEDIA_ENDPOINT")
    media_region: Optional[str] = Field(default=None, alias="MEDIA_REGION")
    media_public_base_url: Optional[str] = Field(
        default=None, alias="MEDIA_PUBLIC_BASE_URL"
    )
    aws_access_key_id: Optional[str] = Field(default=None, alias="AWS_ACCESS_KEY_ID")
    aws_secret_access_key: Optional[str] = Field(
        default=None, alias="AWS_SECRET_ACCESS_KEY"
    )

    # Development toggles
    use_in_memory_backends: bool = Field(
        default=False, alias="RESTOGUIDE_USE_IN_MEMORY_BACKENDS"
    )

    @field_validator("jwt_secret")
    @classmethod
    def _check_secret_length(cls, value: str) -> str:
        if len(value) < MIN_JWT_SECRET_LENGTH:
            raise ValueError(
                f"JWT_SECRET must be at least {MIN_JWT_SECRET_LENGTH} characters"
            )
        return value

    @property
    def api_root(self) -> str:
        return f"{self.api_prefix}/{self.api_version}"


@lru_cache(maxsize=1)
def get_settings() -> Settings:
    """Return cached settings instance."""
    return Settings()


def configure_logging(level: str = "INFO") -> None:
    logging.basicConfig(
        level=getattr(logging, level.upper(), logging.INFO),
        format="%(asctime)s %(levelname)s %(name)s: %(message)s",
    )
