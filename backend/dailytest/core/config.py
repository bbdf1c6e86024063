"""
Application configuration settings.
"""

from datetime import time
from pydantic import Field, model_validator
from pydantic_settings import BaseSettings, SettingsConfigDict
from typing import List, Self


# Fixed offsets accepted for the platform clock (UTC-12:00 .. UTC+14:00)
_MIN_UTC_OFFSET_MINUTES = -720
_MAX_UTC_OFFSET_MINUTES = 840


class Settings(BaseSettings):
    """Application settings loaded from environment variables."""

    # Application
    APP_NAME: str = "Daily Test API"
    APP_VERSION: str = "0.1.0"
    ENV: str = "development"
    DEBUG: bool = True
    LOG_LEVEL: str = "INFO"

    # API
    API_V1_PREFIX: str = "/v1"

    # CORS
    CORS_ORIGINS: List[str] = [
        "http://localhost:3000",
        "http://localhost:5173",
    ]

    # Database
    DATABASE_URL: str = "postgresql://localhost:5432/dailytest_dev"
    DB_POOL_SIZE: int = 10  # Number of connections to maintain
    DB_POOL_MAX_OVERFLOW: int = 20  # Max extra connections when pool exhausted
    DB_POOL_TIMEOUT: int = 30  # Seconds to wait for available connection
    DB_POOL_RECYCLE: int = 3600  # Recycle connections after 1 hour
    DB_POOL_PRE_PING: bool = True
    DB_CREATE_TABLES: bool = True

    # Platform clock
    # Window comparisons and the "today" lookup use this fixed offset.
    # Default is Indian Standard Time (UTC+05:30).
    PLATFORM_UTC_OFFSET_MINUTES: int = Field(
        default=330,
        description="Offset of the platform timezone from UTC, in minutes",
    )
    # Daily wall-clock time (platform timezone) after which ranks are shown
    RANK_REVEAL_TIME: time = time(20, 0)

    # Leaderboards
    LEADERBOARD_DEFAULT_LIMIT: int = Field(default=50, ge=1)
    LEADERBOARD_MAX_LIMIT: int = Field(default=100, ge=1)

    # Request limits
    MAX_REQUEST_BODY_BYTES: int = 10 * 1024  # 10KB

    # Rate limiting (per client IP, fixed window)
    RATE_LIMIT_ENABLED: bool = True
    RATE_LIMIT_REQUESTS: int = Field(default=500, ge=1)  # requests per window
    RATE_LIMIT_WINDOW_SECONDS: int = Field(default=15 * 60, ge=1)

    # Identity provider (Firebase Admin)
    FIREBASE_SERVICE_ACCOUNT: str = Field(
        default="",
        repr=False,
        description="Firebase service account JSON (leave empty to disable auth-gated routes)",
    )
    FIREBASE_PROJECT_ID: str = ""

    # Sentry Error Tracking
    SENTRY_DSN: str = Field(
        default="",
        description="Sentry DSN for error tracking (leave empty to disable)",
    )
    SENTRY_TRACES_SAMPLE_RATE: float = Field(
        default=0.1,
        ge=0.0,
        le=1.0,
        description="Sentry traces sample rate (0.0-1.0, 0.1 = 10% of transactions)",
    )

    model_config = SettingsConfigDict(
        env_file=".env",
        env_file_encoding="utf-8",
        case_sensitive=True,
        extra="ignore",  # Ignore extra fields from .env not defined in Settings
    )

    @model_validator(mode="after")
    def validate_platform_offset(self) -> Self:
        """Validate PLATFORM_UTC_OFFSET_MINUTES is a real-world UTC offset."""
        offset = self.PLATFORM_UTC_OFFSET_MINUTES
        if not _MIN_UTC_OFFSET_MINUTES <= offset <= _MAX_UTC_OFFSET_MINUTES:
            raise ValueError(
                f"PLATFORM_UTC_OFFSET_MINUTES must be between "
                f"{_MIN_UTC_OFFSET_MINUTES} and {_MAX_UTC_OFFSET_MINUTES}, got {offset}"
            )
        return self

    @model_validator(mode="after")
    def validate_leaderboard_limits(self) -> Self:
        """Validate the default leaderboard page fits under the maximum."""
        if self.LEADERBOARD_DEFAULT_LIMIT > self.LEADERBOARD_MAX_LIMIT:
            raise ValueError(
                f"LEADERBOARD_DEFAULT_LIMIT ({self.LEADERBOARD_DEFAULT_LIMIT}) must not "
                f"exceed LEADERBOARD_MAX_LIMIT ({self.LEADERBOARD_MAX_LIMIT})"
            )
        return self


settings = Settings()
