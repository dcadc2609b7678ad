"""
Source ingestion - Base Ingestor.

Abstract base class for the synthetic source ingestors. Each ingestor
derives its rows from the current site registry and wholesale-replaces
its table through SourceRepository.replace_all().
"""
import logging
import random
from abc import ABC, abstractmethod
from datetime import datetime
from typing import Any, Dict, List, Optional, Type

from sqlalchemy.orm import Session

from ehi_mapper.core.config import get_settings
from ehi_mapper.core.models import MonitoringSite
from ehi_mapper.core.repository import SourceRepository
from ehi_mapper.sources.types import EHISource, IngestionResult, IngestionStatus

logger = logging.getLogger(__name__)


class BaseIngestor(ABC):
    """
    Abstract base class for source ingestors.

    Subclasses must implement:
    - source: The source identifier
    - model: The SQLAlchemy model of the table this ingestor owns
    - data_source: Provenance label written on every row
    - build_rows(): Row generation from the site registry
    """

    # Must be overridden by subclasses
    source: EHISource
    model: Type
    data_source: str

    def __init__(
        self,
        db: Session,
        rng: Optional[random.Random] = None,
        batch_size: Optional[int] = None,
    ):
        """
        Initialize the ingestor.

        Args:
            db: SQLAlchemy database session
            rng: Random source; defaults to one seeded from settings
            batch_size: Rows per insert statement (defaults to settings)
        """
        self.db = db
        self.repository = SourceRepository(db, batch_size=batch_size)
        self.rng = rng or random.Random(get_settings().ingest_random_seed)

    @abstractmethod
    def build_rows(
        self,
        sites: List[MonitoringSite],
        run_time: datetime,
    ) -> List[Dict[str, Any]]:
        """
        Generate this source's rows for the given sites.

        Args:
            sites: Current site registry
            run_time: Timestamp of this ingestion run

        Returns:
            Row dictionaries ready for insert
        """
        pass

    def ingest(self, run_time: Optional[datetime] = None) -> IngestionResult:
        """
        Regenerate and replace this source's table.

        Write failures propagate as IngestionWriteError so the
        orchestrator can fail the run.
        """
        started_at = datetime.utcnow()
        run_time = run_time or started_at
        logger.info(f"Ingesting {self.source.value} into {self.model.__tablename__}")

        sites = self.repository.list_sites()
        rows = self.build_rows(sites, run_time)
        written = self.repository.replace_all(self.model, rows, self.source.value)

        completed_at = datetime.utcnow()
        logger.info(
            f"{self.data_source}: wrote {written} records for {len(sites)} sites"
        )
        return IngestionResult(
            source=self.source,
            status=IngestionStatus.SUCCESS,
            rows_written=written,
            started_at=started_at,
            completed_at=completed_at,
            duration_seconds=(completed_at - started_at).total_seconds(),
        )
