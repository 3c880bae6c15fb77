"""Application settings and configuration."""

from typing import Literal

from pydantic import Field, field_validator
from pydantic_settings import BaseSettings, SettingsConfigDict

# Referrer bonus rate per action type. "other" doubles as the fallback rate.
DEFAULT_BONUS_RATES: dict[str, float] = {
    "enrollment": 0.20,
    "social_post": 0.10,
    "tech_module": 0.15,
    "spend_multiplier": 0.25,
    "coffee_wall": 0.05,
    "other": 0.10,
}


class Settings(BaseSettings):
    """Application configuration."""

    model_config = SettingsConfigDict(
        env_file=".env",
        env_file_encoding="utf-8",
        env_prefix="CREDIT_ENGINE_",
        case_sensitive=False,
        extra="ignore",
    )

    # Application
    app_name: str = "credit-engine"
    env: Literal["development", "production", "test"] = "development"
    allowed_origins: str = "*"

    # Logging
    log_level: Literal["DEBUG", "INFO", "WARNING", "ERROR"] = Field(
        default="INFO",
        description="Logging level",
    )
    log_format: Literal["console", "json"] = Field(
        default="console",
        description="Log output format",
    )

    # Storage
    storage_backend: Literal["sql", "memory"] = Field(
        default="sql",
        description="Event store implementation",
    )
    database_url: str = Field(
        default="sqlite:///./credit_engine.db",
        description="Database connection URL (sql backend only)",
    )
    seed_demo_data: bool = Field(
        default=False,
        description="Append demo events on startup when the store is empty",
    )

    # Rate Limiting
    rate_limit: str = "1000 per 15 minutes"

    # Ledger rules
    bonus_rates: dict[str, float] = Field(default_factory=lambda: dict(DEFAULT_BONUS_RATES))
    default_enrollment_credits: int = 100
    max_batch_size: int = 100

    # Aggregation
    default_page_size: int = 50
    max_page_size: int = 100
    recent_window_hours: int = 24
    recent_events_limit: int = 10

    @field_validator("bonus_rates")
    @classmethod
    def _check_bonus_rates(cls, value: dict[str, float]) -> dict[str, float]:
        if "other" not in value:
            raise ValueError("bonus_rates must define an 'other' fallback rate")
        for action_type, rate in value.items():
            if rate < 0:
                raise ValueError(f"bonus rate for {action_type!r} cannot be negative")
        return value

    @property
    def is_development(self) -> bool:
        return self.env == "development"


# Global settings instance
settings = Settings()
