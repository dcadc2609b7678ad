"""
Unit tests for configuration module.

Tests run WITHOUT .env file.
"""
import pytest
from pydantic import ValidationError

from ehi_mapper.core.config import Settings, get_settings, reset_settings


@pytest.mark.unit
def test_config_requires_database_url(clean_env):
    """Database URL is required for app startup."""
    with pytest.raises(ValidationError):
        Settings(_env_file=None)


@pytest.mark.unit
def test_config_defaults(clean_env, monkeypatch):
    """Test default values for optional settings."""
    monkeypatch.setenv("DATABASE_URL", "postgresql://test")

    settings = Settings(_env_file=None)

    assert settings.database_url == "postgresql://test"
    assert settings.db_connect_max_retries == 10
    assert settings.db_connect_retry_delay_seconds == 3.0
    assert settings.log_level == "INFO"
    assert settings.scheduler_enabled is True
    assert settings.pipeline_cron_hour == 2
    assert settings.pipeline_cron_minute == 0
    assert settings.pipeline_timezone == "UTC"
    assert settings.startup_run_enabled is True
    assert settings.startup_delay_seconds == 15.0
    assert settings.occurrence_radius_km == 10.0
    assert settings.insert_batch_size == 25
    assert settings.ingest_random_seed is None


@pytest.mark.unit
def test_config_log_level_normalized(clean_env, monkeypatch):
    """Log level is upper-cased."""
    monkeypatch.setenv("DATABASE_URL", "postgresql://test")
    monkeypatch.setenv("LOG_LEVEL", "debug")

    settings = Settings(_env_file=None)
    assert settings.log_level == "DEBUG"


@pytest.mark.unit
def test_config_log_level_invalid(clean_env, monkeypatch):
    """Unknown log levels are rejected."""
    monkeypatch.setenv("DATABASE_URL", "postgresql://test")
    monkeypatch.setenv("LOG_LEVEL", "VERBOSE")

    with pytest.raises(ValidationError):
        Settings(_env_file=None)


@pytest.mark.unit
@pytest.mark.parametrize("var,value", [
    ("INSERT_BATCH_SIZE", "0"),
    ("INSERT_BATCH_SIZE", "5000"),
    ("DB_CONNECT_MAX_RETRIES", "0"),
    ("PIPELINE_CRON_HOUR", "24"),
    ("OCCURRENCE_RADIUS_KM", "0"),
])
def test_config_bounds(clean_env, monkeypatch, var, value):
    """Out-of-range numeric settings fail validation."""
    monkeypatch.setenv("DATABASE_URL", "postgresql://test")
    monkeypatch.setenv(var, value)

    with pytest.raises(ValidationError):
        Settings(_env_file=None)


@pytest.mark.unit
def test_config_from_env(clean_env, monkeypatch):
    """Scheduling and ingestion knobs are read from the environment."""
    monkeypatch.setenv("DATABASE_URL", "postgresql://test")
    monkeypatch.setenv("SCHEDULER_ENABLED", "false")
    monkeypatch.setenv("PIPELINE_CRON_HOUR", "5")
    monkeypatch.setenv("INGEST_RANDOM_SEED", "42")

    settings = Settings(_env_file=None)
    assert settings.scheduler_enabled is False
    assert settings.pipeline_cron_hour == 5
    assert settings.ingest_random_seed == 42


@pytest.mark.unit
def test_get_settings_singleton():
    """get_settings() caches until reset_settings()."""
    first = get_settings()
    assert get_settings() is first

    reset_settings()
    assert get_settings() is not first
