"""
Main FastAPI application.

Hosts the EHI pipeline triggers and the read-only scoring endpoints, and
owns the scheduler lifecycle.
"""
import asyncio
import logging
from contextlib import asynccontextmanager

from fastapi import FastAPI
from fastapi.middleware.cors import CORSMiddleware

from ehi_mapper.api.v1 import ehi, pipeline
from ehi_mapper.core.config import get_settings
from ehi_mapper.core.database import create_tables, wait_for_database
from ehi_mapper.core.errors import StoreUnavailableError
from ehi_mapper.jobs.pipeline import get_orchestrator
from ehi_mapper.jobs.scheduler import (
    register_pipeline_schedules,
    start_scheduler,
    stop_scheduler,
)

# Configure logging
logging.basicConfig(
    level=logging.INFO,
    format="%(asctime)s - %(name)s - %(levelname)s - %(message)s"
)
logger = logging.getLogger(__name__)


@asynccontextmanager
async def lifespan(app: FastAPI):
    """
    Application lifespan context manager.

    Startup waits for the store, creates tables and starts the scheduler;
    shutdown stops the scheduler.
    """
    settings = get_settings()
    logging.getLogger().setLevel(settings.log_level)
    logger.info("Starting EHI Mapper service")
    logger.info(f"Log level: {settings.log_level}")

    try:
        attempts = await asyncio.to_thread(wait_for_database)
        logger.info(f"Database reachable after {attempts} attempt(s)")
        await asyncio.to_thread(create_tables)
        logger.info("Database tables ready")
    except StoreUnavailableError as e:
        logger.error(f"Database unavailable, refusing to start: {e}")
        raise

    if settings.scheduler_enabled:
        registered = register_pipeline_schedules()
        logger.info(f"Pipeline schedules registered: {registered}")
        start_scheduler()
    else:
        logger.info("Scheduler disabled; pipeline runs only on request")

    yield

    if settings.scheduler_enabled:
        stop_scheduler()
    logger.info("Shutting down")


app = FastAPI(
    title="EHI Mapper",
    description="Ecosystem Health Index pipeline for environmental monitoring sites",
    version="0.1.0",
    lifespan=lifespan
)

app.add_middleware(
    CORSMiddleware,
    allow_origins=["*"],
    allow_credentials=True,
    allow_methods=["*"],
    allow_headers=["*"],
)

app.include_router(pipeline.router, prefix="/api/v1")
app.include_router(ehi.router, prefix="/api/v1")


@app.get("/")
def root():
    """Root endpoint with service info."""
    return {
        "service": "EHI Mapper",
        "version": "0.1.0",
        "sources": ["gbif", "climate", "landcover", "footprint"],
        "docs": "/docs"
    }


@app.get("/health")
def health_check():
    """
    Health check endpoint.

    Returns status of the service, database connectivity and pipeline state.
    """
    from sqlalchemy import text

    from ehi_mapper.core.database import get_engine

    health_status = {
        "status": "healthy",
        "service": "running",
        "database": "unknown",
        "pipeline": get_orchestrator().state.value,
    }

    try:
        engine = get_engine()
        with engine.connect() as conn:
            conn.execute(text("SELECT 1"))
        health_status["database"] = "connected"
    except Exception as e:
        health_status["status"] = "degraded"
        health_status["database"] = f"error: {str(e)}"
        logger.warning(f"Database health check failed: {e}")

    return health_status
