"""
Data-access layer for source tables and the site registry.

replace_all() is NON-atomic: it deletes and commits, then
inserts in committed chunks. An interrupted replace leaves the table
partially populated and raises IngestionWriteError; readers may observe
the half-replaced table while a run is in progress. Locking and retry
policy belong to the orchestrator, not to this layer.
"""

import logging
from typing import Any, Dict, List, Optional, Type

from sqlalchemy import func, insert
from sqlalchemy.exc import SQLAlchemyError
from sqlalchemy.orm import Session

from ehi_mapper.core.config import get_settings
from ehi_mapper.core.errors import IngestionWriteError
from ehi_mapper.core.models import (
    ClimateRecord,
    HumanPressureRecord,
    LandCoverRecord,
    MonitoringSite,
    SpeciesOccurrence,
)

logger = logging.getLogger(__name__)

# Tables reported by the status query, in display order
STATUS_TABLES: Dict[str, Type] = {
    "monitoring_sites": MonitoringSite,
    "species_occurrences": SpeciesOccurrence,
    "climate_data": ClimateRecord,
    "land_cover_data": LandCoverRecord,
    "human_footprint_data": HumanPressureRecord,
}


class SourceRepository:
    """Repository over the site registry and the four source tables."""

    def __init__(self, db: Session, batch_size: Optional[int] = None):
        self.db = db
        self.batch_size = batch_size or get_settings().insert_batch_size

    # =========================================================================
    # SITE REGISTRY (read-only here)
    # =========================================================================

    def list_sites(self) -> List[MonitoringSite]:
        return self.db.query(MonitoringSite).order_by(MonitoringSite.id).all()

    # =========================================================================
    # SOURCE TABLES
    # =========================================================================

    def replace_all(
        self,
        model: Type,
        rows: List[Dict[str, Any]],
        source: str,
    ) -> int:
        """
        Replace the contents of a source table.

        Args:
            model: SQLAlchemy model of the source table
            rows: Row dictionaries to insert
            source: Source name, used in logs and errors

        Returns:
            Number of rows inserted

        Raises:
            IngestionWriteError: On any failure; rows_written holds the
                number of rows committed before the failure
        """
        table = model.__tablename__

        try:
            deleted = self.db.query(model).delete(synchronize_session=False)
            self.db.commit()
        except SQLAlchemyError as e:
            self.db.rollback()
            raise IngestionWriteError(
                f"Failed to clear {table}: {e}",
                source=source,
                rows_written=0,
                cause=e,
            ) from e

        logger.info(f"Cleared {deleted} existing rows from {table}")

        written = 0
        for i in range(0, len(rows), self.batch_size):
            batch = rows[i:i + self.batch_size]
            try:
                self.db.execute(insert(model), batch)
                self.db.commit()
            except SQLAlchemyError as e:
                self.db.rollback()
                logger.error(
                    f"Batch insert failed for {table} after {written} rows: {e}"
                )
                raise IngestionWriteError(
                    f"Batch insert failed for {table} after {written} rows: {e}",
                    source=source,
                    rows_written=written,
                    cause=e,
                ) from e
            written += len(batch)
            logger.debug(f"Inserted batch into {table}: {written}/{len(rows)}")

        logger.info(f"Inserted {written} records into {table}")
        return written

    def count_rows(self, model: Type) -> int:
        return self.db.query(func.count(model.id)).scalar() or 0

    def table_counts(self) -> Dict[str, int]:
        return {name: self.count_rows(model) for name, model in STATUS_TABLES.items()}

    def average_composite(self) -> Optional[float]:
        """Average composite EHI over scored sites, or None if none are scored."""
        value = self.db.query(func.avg(MonitoringSite.composite_ehi)).scalar()
        return float(value) if value is not None else None
