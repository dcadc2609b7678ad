"""
Database connection and session management.
"""

import logging
from typing import Generator, Optional

from sqlalchemy import create_engine, text
from sqlalchemy.exc import OperationalError
from sqlalchemy.orm import sessionmaker, Session
from sqlalchemy.pool import QueuePool
from tenacity import (
    Retrying,
    RetryCallState,
    retry_if_exception_type,
    stop_after_attempt,
    wait_exponential,
)

from ehi_mapper.core.config import get_settings
from ehi_mapper.core.errors import StoreUnavailableError
from ehi_mapper.core.models import Base

logger = logging.getLogger(__name__)

# ---------------------------------------------------------------------------
# Singleton engine & session factory, created once per process
# ---------------------------------------------------------------------------
_engine = None
_SessionLocal = None


def get_engine():
    """
    Get the shared database engine (singleton).

    The pool is shared by the read path and the pipeline.
    """
    global _engine
    if _engine is None:
        settings = get_settings()
        _engine = create_engine(
            settings.database_url,
            poolclass=QueuePool,
            pool_size=5,
            max_overflow=10,
            pool_pre_ping=True,  # Verify connections before using
            echo=False,
        )
    return _engine


def create_tables(engine=None):
    """
    Create all tables if they don't exist.

    Idempotent - safe to call multiple times.
    """
    if engine is None:
        engine = get_engine()

    logger.info("Creating tables if they don't exist...")
    Base.metadata.create_all(bind=engine)
    logger.info("Tables ready")


def get_session_factory():
    """Get the shared session factory (singleton)."""
    global _SessionLocal
    if _SessionLocal is None:
        _SessionLocal = sessionmaker(
            autocommit=False, autoflush=False, bind=get_engine()
        )
    return _SessionLocal


def get_db() -> Generator[Session, None, None]:
    """
    Dependency for FastAPI routes to get a database session.

    Usage:
        @router.get("/endpoint")
        def endpoint(db: Session = Depends(get_db)):
            ...
    """
    SessionLocal = get_session_factory()
    db = SessionLocal()
    try:
        yield db
    finally:
        db.close()


def _log_retry(retry_state: RetryCallState) -> None:
    exc = retry_state.outcome.exception() if retry_state.outcome else None
    logger.warning(
        f"Database connection attempt {retry_state.attempt_number} failed: {exc}"
    )


def wait_for_database(
    engine=None,
    max_retries: Optional[int] = None,
    retry_delay: Optional[float] = None,
) -> int:
    """
    Block until the store answers a trivial query.

    Only used at startup; pipeline steps never retry mid-run.

    Returns:
        Number of attempts it took to connect

    Raises:
        StoreUnavailableError: If every attempt failed
    """
    settings = get_settings()
    if engine is None:
        engine = get_engine()
    attempts = max_retries or settings.db_connect_max_retries
    delay = settings.db_connect_retry_delay_seconds if retry_delay is None else retry_delay

    retryer = Retrying(
        stop=stop_after_attempt(attempts),
        wait=wait_exponential(multiplier=delay, max=max(delay * 10, delay)),
        retry=retry_if_exception_type(OperationalError),
        before_sleep=_log_retry,
        reraise=True,
    )

    try:
        for attempt in retryer:
            with attempt:
                with engine.connect() as conn:
                    conn.execute(text("SELECT 1"))
                attempt_number = attempt.retry_state.attempt_number
    except OperationalError as e:
        logger.error(f"Database unreachable after {attempts} attempts: {e}")
        raise StoreUnavailableError(
            f"Database unreachable after {attempts} attempts", attempts=attempts
        ) from e

    logger.info(f"Database connected (attempt {attempt_number}/{attempts})")
    return attempt_number
