"""Application configuration via pydantic-settings."""

from __future__ import annotations

from decimal import Decimal
from functools import lru_cache
from typing import List, Literal, Optional

from pydantic import Field, computed_field
from pydantic_settings import BaseSettings, SettingsConfigDict


class Settings(BaseSettings):
    """Application settings loaded from environment variables."""

    model_config = SettingsConfigDict(
        env_file=".env",
        env_file_encoding="utf-8",
        case_sensitive=False,
        extra="ignore",
    )

    # Application
    app_name: str = "Stowage"
    app_version: str = "1.0.0"
    environment: Literal["development", "staging", "production", "test"] = "development"
    debug: bool = False
    api_prefix: str = "/api/v1"
    log_level: str = "INFO"

    # Server
    host: str = "0.0.0.0"
    port: int = 8000
    workers: int = 4

    # Database
    postgres_host: str = "localhost"
    postgres_port: int = 5432
    postgres_user: str = "stowage"
    postgres_password: str = Field(default="stowage_secret")
    postgres_db: str = "stowage"
    db_pool_size: int = 20
    db_max_overflow: int = 10
    database_url_override: Optional[str] = None  # e.g. sqlite+aiosqlite:///./stowage.db

    @computed_field
    @property
    def database_url(self) -> str:
        """Async database connection URL."""
        if self.database_url_override:
            return self.database_url_override
        return (
            f"postgresql+asyncpg://{self.postgres_user}:{self.postgres_password}"
            f"@{self.postgres_host}:{self.postgres_port}/{self.postgres_db}"
        )

    # Pricing
    tax_rate: Decimal = Decimal("0.10")
    pricing_timezone: str = "UTC"  # weekday/hour conditions are evaluated here

    # Booking rules
    min_booking_minutes: int = 60
    check_in_window_minutes: int = 60
    booking_number_max_attempts: int = 10
    access_code_max_attempts: int = 10

    # Payment Gateways
    payment_gateway: Literal["stripe", "manual"] = "stripe"
    stripe_secret_key: Optional[str] = None
    stripe_webhook_secret: Optional[str] = None

    # CORS
    cors_origins: List[str] = ["http://localhost:3000", "http://localhost:5173"]


@lru_cache
def get_settings() -> Settings:
    """Get cached settings instance."""
    return Settings()


settings = get_settings()
