"""Application configuration using Pydantic settings."""

from functools import lru_cache

from pydantic_settings import BaseSettings, SettingsConfigDict


class Settings(BaseSettings):
    """Application settings loaded from environment variables."""

    model_config = SettingsConfigDict(
        env_file=".env",
        env_file_encoding="utf-8",
        case_sensitive=False,
    )

    # Database
    database_url: str = "postgresql+asyncpg://localhost:5432/roadtracker"

    # Bearer tokens are issued by the identity provider; we only verify them
    jwt_secret_key: str = "change-me"
    jwt_algorithm: str = "HS256"

    # AI image enrichment
    ai_service_url: str | None = None
    ai_timeout_seconds: float = 15.0

    # Geocoding / weather enrichment
    geocoding_base_url: str = "https://nominatim.openstreetmap.org"
    weather_base_url: str = "https://api.open-meteo.com/v1"
    enrichment_timeout_seconds: float = 5.0

    # Outbound notifications (email relay webhook)
    notification_webhook_url: str | None = None
    notification_timeout_seconds: float = 10.0

    # Stats / concurrency
    stats_reconcile_interval_minutes: int = 15
    mutation_retry_attempts: int = 3

    # Reports of the same type closer than this are duplicate candidates
    duplicate_radius_meters: float = 100.0

    # API settings
    api_v1_prefix: str = "/api/v1"
    cors_origins: list[str] = ["*"]  # Restrict in production
    rate_limit_per_minute: int = 60

    # Environment
    debug: bool = False


@lru_cache
def get_settings() -> Settings:
    """Get cached settings instance."""
    return Settings()
