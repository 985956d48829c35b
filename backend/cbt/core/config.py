"""
Application configuration settings.
"""

from pydantic import Field, model_validator
from pydantic_settings import BaseSettings, SettingsConfigDict
from typing import List, Self


class Settings(BaseSettings):
    """Application settings loaded from environment variables."""

    # Application
    APP_NAME: str = "CBT Portal API"
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

    # Security
    # IMPORTANT: These MUST be set in .env file - no defaults for security
    SECRET_KEY: str = Field(
        ..., description="Secret used to sign the student test-session cookie"
    )
    JWT_SECRET_KEY: str = Field(..., description="JWT verification secret (required)")
    JWT_ALGORITHM: str = "HS256"
    ACCESS_TOKEN_EXPIRE_MINUTES: int = 30

    # Database
    DATABASE_URL: str = "postgresql://localhost:5432/cbt_dev"
    DB_POOL_SIZE: int = 10
    DB_POOL_MAX_OVERFLOW: int = 20
    DB_POOL_TIMEOUT: int = 30  # Seconds to wait for a pooled connection
    DB_POOL_RECYCLE: int = 3600
    DB_CONNECT_TIMEOUT: int = 10  # Seconds; store calls must never hang

    # Test code generation
    CODE_LENGTH: int = Field(
        default=8,
        ge=4,
        le=32,
        description="Length of generated test codes (hex characters, even number)",
    )
    CODE_GENERATION_MAX_ATTEMPTS: int = Field(
        default=10,
        ge=1,
        description="Regeneration attempts per code before a batch is abandoned",
    )
    MAX_CODES_PER_BATCH: int = 50

    # Student test sessions
    # Trackers outlive the test duration by this grace period so that a
    # timer-triggered submission arriving slightly late is still accepted.
    TEST_SESSION_GRACE_SECONDS: int = Field(default=300, ge=0)
    TEST_SESSION_COOKIE: str = "cbt_session"
    TEST_SESSION_COOKIE_MAX_AGE: int = 14400  # 4 hours

    model_config = SettingsConfigDict(
        env_file=".env",
        env_file_encoding="utf-8",
        case_sensitive=True,
        extra="ignore",  # Ignore extra fields from .env not defined in Settings
    )

    @model_validator(mode="after")
    def validate_code_length(self) -> Self:
        """Codes are built from whole random bytes rendered as hex."""
        if self.CODE_LENGTH % 2 != 0:
            raise ValueError(
                f"CODE_LENGTH must be an even number of hex characters, "
                f"got {self.CODE_LENGTH}"
            )
        return self


# mypy doesn't understand that pydantic_settings loads required fields from env vars
settings = Settings()  # type: ignore[call-arg]
