"""
Pipeline API endpoints.

Thin triggers over the orchestrator: full runs, single-source ingestion,
score recompute, status and schedule inspection.
"""

import logging
from typing import Any, Dict, Optional

from fastapi import APIRouter, Depends, HTTPException
from sqlalchemy.exc import OperationalError

from ehi_mapper.core.errors import (
    EHIError,
    PipelineAlreadyRunningError,
    PipelineStepError,
    StoreUnavailableError,
    UnknownSourceError,
)
from ehi_mapper.jobs.pipeline import PipelineOrchestrator, get_orchestrator
from ehi_mapper.jobs.scheduler import get_schedule_status

logger = logging.getLogger(__name__)

router = APIRouter(prefix="/pipeline", tags=["pipeline"])


def _store_unreachable(e: Optional[BaseException]) -> bool:
    """Whether a connection-level failure sits anywhere in the cause chain."""
    seen = set()
    while e is not None and id(e) not in seen:
        if isinstance(e, (OperationalError, StoreUnavailableError)):
            return True
        seen.add(id(e))
        e = getattr(e, "cause", None) or e.__cause__
    return False


def _pipeline_http_error(e: EHIError) -> HTTPException:
    """Map orchestrator errors onto HTTP responses."""
    if isinstance(e, UnknownSourceError):
        status_code = 400
    elif isinstance(e, PipelineAlreadyRunningError):
        status_code = 409
    elif _store_unreachable(e):
        status_code = 503
    else:
        status_code = 500
    detail: Dict[str, Any] = {"success": False, "message": e.message}
    if isinstance(e, PipelineStepError):
        detail["step"] = e.step
    return HTTPException(status_code=status_code, detail=detail)


@router.post("/run")
async def run_full_pipeline(
    orchestrator: PipelineOrchestrator = Depends(get_orchestrator),
):
    """Run every ingestor in order, then recompute all scores."""
    try:
        result = await orchestrator.run_full_pipeline(trigger="manual")
    except (PipelineAlreadyRunningError, PipelineStepError) as e:
        raise _pipeline_http_error(e)

    return {
        "success": True,
        "message": "Full data pipeline completed successfully",
        "run": result.model_dump(mode="json"),
    }


@router.post("/ingest/{source}")
async def ingest_source(
    source: str,
    orchestrator: PipelineOrchestrator = Depends(get_orchestrator),
):
    """
    Re-ingest one source (gbif, climate, landcover, footprint) and
    recompute scores afterwards.
    """
    try:
        result = await orchestrator.run_single_source(source, trigger="manual")
    except (UnknownSourceError, PipelineAlreadyRunningError, PipelineStepError) as e:
        raise _pipeline_http_error(e)

    source_name = source.lower()
    rows = result.step_counts.get(source_name, 0)
    return {
        "success": True,
        "source": source_name,
        "rows": rows,
        "message": f"Ingested {rows} {source_name} records and recalculated scores",
    }


@router.post("/recalculate")
async def recalculate_scores(
    orchestrator: PipelineOrchestrator = Depends(get_orchestrator),
):
    """Recompute scores from the current source tables."""
    try:
        result = await orchestrator.recompute_scores(trigger="manual")
    except (PipelineAlreadyRunningError, PipelineStepError) as e:
        raise _pipeline_http_error(e)

    sites = result.step_counts.get("score", 0)
    return {
        "success": True,
        "sites": sites,
        "message": f"Recalculated scores for {sites} sites",
    }


@router.get("/status")
async def pipeline_status(
    orchestrator: PipelineOrchestrator = Depends(get_orchestrator),
):
    """Per-table row counts, average composite EHI and run state."""
    try:
        return await orchestrator.status()
    except OperationalError as e:
        logger.error(f"Status query failed, store unreachable: {e}")
        raise HTTPException(status_code=503, detail="Database unavailable")
    except Exception as e:
        logger.error(f"Status query failed: {e}", exc_info=True)
        raise HTTPException(status_code=500, detail="Failed to read pipeline status")


@router.get("/schedule")
def pipeline_schedule():
    """Status of the daily and startup pipeline jobs."""
    return get_schedule_status()
