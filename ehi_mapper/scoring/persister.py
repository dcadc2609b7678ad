"""
Writes computed scores back onto the site registry.

One UPDATE per site, each committed on its own: a failed site is rolled
back and recorded, and the remaining sites are still written. Values are
stored unrounded so later recomputes do not compound rounding.
"""

import logging
from dataclasses import dataclass, field
from datetime import datetime
from typing import Iterable, List, Optional

from sqlalchemy.exc import SQLAlchemyError
from sqlalchemy.orm import Session

from ehi_mapper.core.models import MonitoringSite
from ehi_mapper.scoring.scorer import SiteScores

logger = logging.getLogger(__name__)


@dataclass
class PersistResult:
    updated: int = 0
    failed_site_ids: List[int] = field(default_factory=list)


def persist_scores(
    db: Session,
    scores: Iterable[SiteScores],
    calculated_at: Optional[datetime] = None,
) -> PersistResult:
    """Write the full scoring block for each site, stamped with calculated_at."""
    calculated_at = calculated_at or datetime.utcnow()
    result = PersistResult()

    for site_scores in scores:
        try:
            db.query(MonitoringSite).filter(
                MonitoringSite.id == site_scores.site_id
            ).update(
                {
                    MonitoringSite.biodiversity_score: site_scores.biodiversity,
                    MonitoringSite.climate_score: site_scores.climate,
                    MonitoringSite.human_pressure_score: site_scores.human_pressure,
                    MonitoringSite.vegetation_score: site_scores.vegetation,
                    MonitoringSite.composite_ehi: site_scores.composite,
                    MonitoringSite.last_calculated: calculated_at,
                },
                synchronize_session=False,
            )
            db.commit()
            result.updated += 1
        except SQLAlchemyError as e:
            db.rollback()
            logger.error(f"Failed to update scores for site {site_scores.site_id}: {e}")
            result.failed_site_ids.append(site_scores.site_id)

    return result
