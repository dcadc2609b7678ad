"""
Configuration module with strict validation.

Key principles:
- APP STARTUP requires only DATABASE_URL
- Scheduling, retry and ingestion knobs are all configurable
- Safe defaults for all optional settings
"""
from typing import Optional
from pydantic import Field, field_validator
from pydantic_settings import BaseSettings, SettingsConfigDict


class Settings(BaseSettings):
    """Application settings with validation.

    Loads from environment variables and .env file.
    """
    model_config = SettingsConfigDict(
        env_file=".env",
        env_file_encoding="utf-8",
        case_sensitive=False,
        extra="ignore"
    )

    # Database (REQUIRED for API startup)
    database_url: str = Field(
        ...,
        description="SQLAlchemy connection URL for the spatial store"
    )

    # Startup connection retry
    db_connect_max_retries: int = Field(
        default=10,
        ge=1,
        le=50,
        description="Connection attempts before giving up at startup"
    )

    db_connect_retry_delay_seconds: float = Field(
        default=3.0,
        ge=0.0,
        le=60.0,
        description="Base delay between startup connection attempts"
    )

    # Logging
    log_level: str = Field(
        default="INFO",
        description="Logging level (DEBUG, INFO, WARNING, ERROR, CRITICAL)"
    )

    # Scheduling
    scheduler_enabled: bool = Field(
        default=True,
        description="Register the recurring and startup pipeline triggers"
    )

    pipeline_cron_hour: int = Field(default=2, ge=0, le=23)
    pipeline_cron_minute: int = Field(default=0, ge=0, le=59)
    pipeline_timezone: str = Field(default="UTC")

    startup_run_enabled: bool = Field(
        default=True,
        description="Run the pipeline once shortly after startup"
    )

    startup_delay_seconds: float = Field(
        default=15.0,
        ge=0.0,
        description="Delay before the startup run so the store can come up"
    )

    # Aggregation and ingestion
    occurrence_radius_km: float = Field(
        default=10.0,
        gt=0.0,
        description="Radius for associating occurrences with a site"
    )

    insert_batch_size: int = Field(
        default=25,
        ge=1,
        le=1000,
        description="Rows per insert statement during ingestion"
    )

    ingest_random_seed: Optional[int] = Field(
        default=None,
        description="Seed for synthetic source generation (reproducible runs)"
    )

    @field_validator("log_level")
    @classmethod
    def validate_log_level(cls, v: str) -> str:
        """Validate log level is one of the standard levels."""
        valid_levels = {"DEBUG", "INFO", "WARNING", "ERROR", "CRITICAL"}
        v_upper = v.upper()
        if v_upper not in valid_levels:
            raise ValueError(f"log_level must be one of {valid_levels}")
        return v_upper


# Global settings instance
_settings: Optional[Settings] = None


def get_settings() -> Settings:
    """
    Get or create the global settings instance.

    Lazy-loaded on first access; tests call reset_settings() between cases.
    """
    global _settings
    if _settings is None:
        _settings = Settings()
    return _settings


def reset_settings() -> None:
    """Reset the global settings instance."""
    global _settings
    _settings = None
