"""
Application Settings for Fashion Studio

Centralized configuration using Pydantic Settings with .env support.
All environment variables are validated at startup.
"""

from functools import lru_cache
from typing import Optional
from pydantic import model_validator
from pydantic_settings import BaseSettings, SettingsConfigDict


class Settings(BaseSettings):
    """
    Application settings loaded from environment variables.

    Stripe keys are optional at import time so the API can boot for
    health checks; services that need them raise ConfigurationError
    on first use.
    """

    # Supabase Configuration
    supabase_url: str = "http://localhost:54321"
    supabase_anon_key: Optional[str] = None
    supabase_service_role_key: Optional[str] = None
    supabase_jwt_secret: Optional[str] = None

    # Stripe Configuration
    stripe_secret_key: Optional[str] = None
    stripe_webhook_secret: Optional[str] = None
    stripe_api_version: str = "2024-11-20.acacia"

    # Redirect base for hosted checkout
    app_url: str = "http://localhost:5454"

    # Google AI Configuration (accepts GOOGLE_API_KEY or GEMINI_API_KEY)
    google_api_key: Optional[str] = None
    gemini_api_key: Optional[str] = None
    gemini_model: str = "gemini-2.0-flash"

    # Application Settings
    environment: str = "development"
    debug: bool = False
    log_level: str = "INFO"

    # CORS Configuration
    allowed_origins: list[str] = [
        "http://localhost:5454",
        "http://localhost:5173",
        "http://127.0.0.1:5454",
    ]

    # Billing behaviour
    # When False, redelivered Stripe events are applied again (a replayed
    # invoice.payment_succeeded resets tokens twice).
    webhook_deduplicate_events: bool = False
    transaction_history_limit: int = 50

    # Long-running generation polling
    video_poll_max_attempts: int = 60
    video_poll_interval_seconds: float = 5.0

    # Database Configuration (SQLModel/SQLAlchemy)
    supabase_password: Optional[str] = None
    database_url: Optional[str] = None
    database_pool_size: int = 5
    database_max_overflow: int = 10
    database_pool_timeout: int = 30
    database_echo: bool = False

    model_config = SettingsConfigDict(
        env_file=".env",
        env_file_encoding="utf-8",
        case_sensitive=False,
        extra="ignore",
    )

    @model_validator(mode="after")
    def normalize_api_keys(self) -> "Settings":
        """Normalize gemini_api_key to google_api_key."""
        if not self.google_api_key and self.gemini_api_key:
            self.google_api_key = self.gemini_api_key

        if self.transaction_history_limit < 1:
            raise ValueError("TRANSACTION_HISTORY_LIMIT must be at least 1")

        if self.video_poll_max_attempts < 1:
            raise ValueError("VIDEO_POLL_MAX_ATTEMPTS must be at least 1")

        return self

    @property
    def is_production(self) -> bool:
        """Check if running in production."""
        return self.environment.lower() == "production"

    @property
    def is_development(self) -> bool:
        """Check if running in development."""
        return self.environment.lower() == "development"


@lru_cache
def get_settings() -> Settings:
    """Get cached settings instance."""
    return Settings()


# Convenience export for direct import
settings = get_settings()
