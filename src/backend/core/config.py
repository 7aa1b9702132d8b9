"""
Application configuration using Pydantic Settings.

All configuration is loaded from environment variables (or a local .env file).
"""

import json
from functools import lru_cache
from typing import Any

from pydantic import field_validator
from pydantic_settings import BaseSettings, SettingsConfigDict


class Settings(BaseSettings):
    """Application settings loaded from environment variables."""

    model_config = SettingsConfigDict(
        env_file=".env",
        env_file_encoding="utf-8",
        case_sensitive=True,
        extra="ignore",
    )

    # Application
    APP_NAME: str = "TrustShield"
    APP_ENV: str = "development"
    DEBUG: bool = False
    SECRET_KEY: str = ""  # Required - loaded from environment

    # Logging
    LOG_LEVEL: str = "INFO"
    LOG_JSON: bool = False

    # Database - PostgreSQL
    POSTGRES_HOST: str = "localhost"
    POSTGRES_PORT: int = 5432
    POSTGRES_USER: str = "trustshield"
    POSTGRES_PASSWORD: str = ""  # Required - loaded from environment
    POSTGRES_DB: str = "trustshield"
    POSTGRES_SSL: bool = True
    DATABASE_URL: str | None = None  # Full URL override (local dev, CI)
    DB_POOL_SIZE: int = 10
    DB_MAX_OVERFLOW: int = 20

    @field_validator("SECRET_KEY", "POSTGRES_PASSWORD")
    @classmethod
    def validate_required_secrets(cls, v: str, info: Any) -> str:
        """Validate that required secrets are set."""
        if not v:
            raise ValueError(f"{info.field_name} must be set in environment")
        return v

    @property
    def POSTGRES_URL(self) -> str:
        """Construct PostgreSQL connection URL."""
        if self.DATABASE_URL:
            return self.DATABASE_URL
        url = (
            f"postgresql+asyncpg://{self.POSTGRES_USER}:{self.POSTGRES_PASSWORD}"
            f"@{self.POSTGRES_HOST}:{self.POSTGRES_PORT}/{self.POSTGRES_DB}"
        )
        return f"{url}?ssl=require" if self.POSTGRES_SSL else url

    # Identity tokens (issued by the external auth service)
    JWT_ALGORITHM: str = "HS256"
    TOKEN_ISSUER: str = "trustshield-auth"
    TOKEN_AUDIENCE: str = "trustshield-client"
    ACCESS_TOKEN_EXPIRE_MINUTES: int = 30
    ADMIN_ROLE: str = "trust_admin"

    # Device fingerprinting - salt for the one-way fingerprint digest.
    # Falls back to SECRET_KEY when unset.
    FINGERPRINT_SALT: str | None = None

    @property
    def fingerprint_salt(self) -> str:
        return self.FINGERPRINT_SALT or self.SECRET_KEY

    # CORS - stored as comma-separated string to avoid pydantic-settings JSON parsing issues
    CORS_ORIGINS: str = "http://localhost:3000"

    @property
    def cors_origins_list(self) -> list[str]:
        """Get CORS origins as a list."""
        try:
            return json.loads(self.CORS_ORIGINS)
        except json.JSONDecodeError:
            return [origin.strip() for origin in self.CORS_ORIGINS.split(",") if origin.strip()]

    # Rate limiting - JSON object overriding the built-in per-action policies, e.g.
    # {"comment": {"max_count": 10, "window_minutes": 1}}
    RATE_LIMIT_OVERRIDES: str = ""

    @property
    def rate_limit_overrides(self) -> dict[str, dict[str, int]]:
        """Parse rate limit policy overrides."""
        if not self.RATE_LIMIT_OVERRIDES.strip():
            return {}
        parsed = json.loads(self.RATE_LIMIT_OVERRIDES)
        if not isinstance(parsed, dict):
            raise ValueError("RATE_LIMIT_OVERRIDES must be a JSON object")
        return parsed

    # Trust scoring
    TRUST_SCORE_CACHE_TTL_SECONDS: int = 30

    # Session security
    FAILED_LOGIN_THRESHOLD: int = 5  # per trailing hour
    FAILED_LOGIN_LOCKOUT_MINUTES: int = 30
    ACCOUNT_LOCK_THRESHOLD: int = 3  # suspicious reports per trailing 24h

    # Check-ins
    CHECKIN_COOLDOWN_HOURS: int = 24
    CHECKIN_DEFAULT_MAX_DISTANCE_METERS: int = 100

    # External collaborators
    LEDGER_SERVICE_URL: str | None = None
    LEDGER_SERVICE_TOKEN: str | None = None
    NOTIFICATION_SERVICE_URL: str | None = None
    NOTIFICATION_SERVICE_TOKEN: str | None = None
    EXTERNAL_SERVICE_TIMEOUT_SECONDS: float = 5.0


@lru_cache
def get_settings() -> Settings:
    """Get cached settings instance."""
    return Settings()


settings = get_settings()
