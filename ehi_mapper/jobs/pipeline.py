"""
EHI Pipeline Orchestrator.

Runs the four ingestors in fixed order followed by the score recompute.
One run at a time: a request made while a run holds the lock is rejected
with PipelineAlreadyRunningError, never queued. Each step's blocking
database work runs in a worker thread with its own session so the event
loop keeps serving requests.

States: IDLE -> RUNNING -> (COMPLETED | FAILED) -> IDLE
"""

import asyncio
import logging
import random
from datetime import datetime
from enum import Enum
from typing import Any, Callable, Dict, List, Optional, Tuple

from pydantic import BaseModel
from sqlalchemy.exc import SQLAlchemyError
from sqlalchemy.orm import Session

from ehi_mapper.core.database import get_session_factory
from ehi_mapper.core.errors import PipelineAlreadyRunningError, PipelineStepError
from ehi_mapper.core.models import PipelineRun, RunStatus
from ehi_mapper.core.repository import SourceRepository
from ehi_mapper.scoring.calculator import EHICalculator
from ehi_mapper.sources.registry import get_ingestor, resolve_source
from ehi_mapper.sources.types import INGESTION_ORDER, EHISource

logger = logging.getLogger(__name__)

SCORE_STEP = "score"

Step = Tuple[str, Callable[[Session], int]]


class PipelineState(str, Enum):
    IDLE = "idle"
    RUNNING = "running"
    COMPLETED = "completed"
    FAILED = "failed"


class PipelineRunResult(BaseModel):
    """Outcome of one pipeline run."""
    run_id: Optional[int] = None
    run_type: str
    trigger: str
    status: RunStatus
    step_counts: Dict[str, int] = {}
    failed_step: Optional[str] = None
    error_message: Optional[str] = None
    started_at: datetime
    completed_at: datetime
    duration_seconds: float


class PipelineOrchestrator:
    """
    Orchestrates ingestion and scoring runs.

    Usage:
        orchestrator = get_orchestrator()

        result = await orchestrator.run_full_pipeline(trigger="manual")
        result = await orchestrator.run_single_source("climate")
    """

    def __init__(
        self,
        session_factory: Optional[Callable[[], Session]] = None,
        rng: Optional[random.Random] = None,
    ):
        """
        Args:
            session_factory: Session factory for step work (defaults to the app's)
            rng: Random source shared by the ingestors (defaults to settings seed)
        """
        self._session_factory = session_factory
        self.rng = rng
        self._lock = asyncio.Lock()
        self.state = PipelineState.IDLE
        self.current_step: Optional[str] = None
        self.last_outcome: Optional[PipelineState] = None
        self.last_result: Optional[PipelineRunResult] = None

    @property
    def session_factory(self) -> Callable[[], Session]:
        return self._session_factory or get_session_factory()

    @property
    def is_running(self) -> bool:
        return self._lock.locked()

    # =========================================================================
    # STEP PLUMBING
    # =========================================================================

    async def _call_in_session(self, fn: Callable[[Session], Any]) -> Any:
        """Run fn(db) in a worker thread with a fresh session."""

        def _work():
            db = self.session_factory()
            try:
                return fn(db)
            finally:
                db.close()

        return await asyncio.to_thread(_work)

    def _ingest_step(self, source: EHISource) -> Step:
        def _run(db: Session) -> int:
            return get_ingestor(source, db, rng=self.rng).ingest().rows_written

        return source.value, _run

    @staticmethod
    def _score_step() -> Step:
        def _run(db: Session) -> int:
            return EHICalculator(db).calculate_all_sites()

        return SCORE_STEP, _run

    # =========================================================================
    # RUN LOG (best-effort; the run itself does not depend on it)
    # =========================================================================

    async def _record_start(self, run_type: str, trigger: str, started_at: datetime) -> Optional[int]:
        def _insert(db: Session) -> int:
            run = PipelineRun(
                run_type=run_type,
                trigger=trigger,
                status=RunStatus.RUNNING,
                started_at=started_at,
            )
            db.add(run)
            db.commit()
            return run.id

        try:
            return await self._call_in_session(_insert)
        except SQLAlchemyError as e:
            logger.warning(f"Could not record pipeline run start: {e}")
            return None

    async def _record_finish(self, result: PipelineRunResult) -> None:
        if result.run_id is None:
            return

        def _update(db: Session) -> None:
            run = db.get(PipelineRun, result.run_id)
            if run is None:
                return
            run.status = result.status
            run.completed_at = result.completed_at
            run.step_counts = result.step_counts
            run.failed_step = result.failed_step
            run.error_message = result.error_message
            db.commit()

        try:
            await self._call_in_session(_update)
        except SQLAlchemyError as e:
            logger.warning(f"Could not record pipeline run {result.run_id} outcome: {e}")

    # =========================================================================
    # RUN EXECUTION
    # =========================================================================

    async def _execute(self, run_type: str, trigger: str, steps: List[Step]) -> PipelineRunResult:
        if self._lock.locked():
            logger.warning(f"Rejected {run_type} run ({trigger}): pipeline already running")
            raise PipelineAlreadyRunningError()

        async with self._lock:
            self.state = PipelineState.RUNNING
            started_at = datetime.utcnow()
            logger.info(f"Starting {run_type} pipeline run (trigger={trigger})")

            step_counts: Dict[str, int] = {}
            failure: Optional[PipelineStepError] = None
            try:
                run_id = await self._record_start(run_type, trigger, started_at)

                for step_name, step_fn in steps:
                    self.current_step = step_name
                    logger.info(f"Pipeline step: {step_name}")
                    try:
                        step_counts[step_name] = await self._call_in_session(step_fn)
                    except Exception as e:
                        failure = PipelineStepError(step_name, e)
                        logger.error(
                            f"Pipeline failed at step '{step_name}': {e}", exc_info=True
                        )
                        break

                completed_at = datetime.utcnow()
                result = PipelineRunResult(
                    run_id=run_id,
                    run_type=run_type,
                    trigger=trigger,
                    status=RunStatus.FAILED if failure else RunStatus.SUCCESS,
                    step_counts=step_counts,
                    failed_step=failure.step if failure else None,
                    error_message=str(failure.cause) if failure else None,
                    started_at=started_at,
                    completed_at=completed_at,
                    duration_seconds=(completed_at - started_at).total_seconds(),
                )
                self.state = PipelineState.FAILED if failure else PipelineState.COMPLETED
                self.last_outcome = self.state
                self.last_result = result
                await self._record_finish(result)
            finally:
                self.current_step = None
                self.state = PipelineState.IDLE

        if failure:
            raise failure from failure.cause

        logger.info(
            f"{run_type} pipeline run completed in {result.duration_seconds:.1f}s: {step_counts}"
        )
        return result

    async def run_full_pipeline(self, trigger: str = "manual") -> PipelineRunResult:
        """Run every ingestor in fixed order, then recompute scores."""
        steps = [self._ingest_step(source) for source in INGESTION_ORDER]
        steps.append(self._score_step())
        return await self._execute("full", trigger, steps)

    async def run_single_source(self, name: str, trigger: str = "manual") -> PipelineRunResult:
        """
        Re-ingest one source by name, then recompute scores.

        Raises:
            UnknownSourceError: Before taking the lock, for an unknown name
        """
        source = resolve_source(name)
        steps = [self._ingest_step(source), self._score_step()]
        return await self._execute("single_source", trigger, steps)

    async def recompute_scores(self, trigger: str = "manual") -> PipelineRunResult:
        """Aggregate, score and persist without re-ingesting."""
        return await self._execute("recompute", trigger, [self._score_step()])

    # =========================================================================
    # STATUS
    # =========================================================================

    async def status(self) -> Dict[str, Any]:
        """Table row counts, average composite score and run state."""

        def _read(db: Session) -> Dict[str, Any]:
            repository = SourceRepository(db)
            last_run = db.query(PipelineRun).order_by(PipelineRun.id.desc()).first()
            return {
                "tables": repository.table_counts(),
                "average_composite_ehi": repository.average_composite(),
                "last_run": last_run.to_dict() if last_run else None,
            }

        data = await self._call_in_session(_read)
        data["pipeline"] = {
            "state": self.state.value,
            "current_step": self.current_step,
            "last_outcome": self.last_outcome.value if self.last_outcome else None,
        }
        return data


_orchestrator: Optional[PipelineOrchestrator] = None


def get_orchestrator() -> PipelineOrchestrator:
    """Process-wide orchestrator; every trigger goes through its lock."""
    global _orchestrator
    if _orchestrator is None:
        _orchestrator = PipelineOrchestrator()
    return _orchestrator


def reset_orchestrator() -> None:
    global _orchestrator
    _orchestrator = None
