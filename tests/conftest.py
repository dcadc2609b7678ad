"""
Pytest configuration and shared fixtures.
"""
import pytest
from sqlalchemy import create_engine
from sqlalchemy.orm import sessionmaker
from sqlalchemy.pool import StaticPool

from ehi_mapper.core.config import reset_settings
from ehi_mapper.core.models import Base, MonitoringSite, point_geojson


@pytest.fixture(autouse=True)
def test_settings(monkeypatch):
    """
    Minimal settings for every test.

    Modules read get_settings() lazily, so a DATABASE_URL must exist even
    for tests that never touch the configured engine.
    """
    monkeypatch.setenv("DATABASE_URL", "sqlite://")
    monkeypatch.setenv("SCHEDULER_ENABLED", "false")
    reset_settings()
    yield
    reset_settings()


@pytest.fixture(scope="function")
def clean_env(monkeypatch):
    """
    Clean environment for testing.

    Removes all app-related env vars to ensure clean state.
    """
    env_vars = [
        "DATABASE_URL",
        "DB_CONNECT_MAX_RETRIES",
        "DB_CONNECT_RETRY_DELAY_SECONDS",
        "LOG_LEVEL",
        "SCHEDULER_ENABLED",
        "PIPELINE_CRON_HOUR",
        "PIPELINE_CRON_MINUTE",
        "PIPELINE_TIMEZONE",
        "STARTUP_RUN_ENABLED",
        "STARTUP_DELAY_SECONDS",
        "OCCURRENCE_RADIUS_KM",
        "INSERT_BATCH_SIZE",
        "INGEST_RANDOM_SEED",
    ]
    for var in env_vars:
        monkeypatch.delenv(var, raising=False)

    # Reset settings singleton
    reset_settings()

    yield

    # Reset again after test
    reset_settings()


@pytest.fixture(scope="function")
def test_engine():
    """
    In-memory SQLite engine shared across threads.

    Pipeline steps run in worker threads with their own sessions, so every
    connection must see the same in-memory database.
    """
    engine = create_engine(
        "sqlite://",
        poolclass=StaticPool,
        connect_args={"check_same_thread": False},
    )
    Base.metadata.create_all(bind=engine)
    yield engine
    Base.metadata.drop_all(bind=engine)
    engine.dispose()


@pytest.fixture(scope="function")
def session_factory(test_engine):
    return sessionmaker(autocommit=False, autoflush=False, bind=test_engine)


@pytest.fixture(scope="function")
def test_db(session_factory):
    """
    Create an in-memory SQLite database session for testing.

    Fresh database for each test.
    """
    db = session_factory()
    try:
        yield db
    finally:
        db.close()


def make_site(name, latitude, longitude, protected_area=False, elevation=None):
    return MonitoringSite(
        name=name,
        latitude=latitude,
        longitude=longitude,
        position=point_geojson(longitude, latitude),
        elevation=elevation,
        protected_area=protected_area,
    )


@pytest.fixture
def sample_sites(test_db):
    """Three Arizona sites, each more than 100 km from the others."""
    sites = [
        make_site("Phoenix Urban Preserve", 33.4484, -112.0740, elevation=331),
        make_site("Grand Canyon NP", 36.1069, -112.1129, protected_area=True, elevation=2100),
        make_site("Verde Valley Riparian Area", 34.7000, -111.9000, elevation=1050),
    ]
    test_db.add_all(sites)
    test_db.commit()
    for site in sites:
        test_db.refresh(site)
    return sites
