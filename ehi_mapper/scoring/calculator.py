"""
Ecosystem Health Index recompute and read paths.

calculate_all_sites() is the pipeline's aggregate -> score -> persist
step. calculate_ehi() re-weights the persisted sub-scores for a caller
without writing anything.
"""

import logging
from datetime import datetime
from typing import Any, Dict, List, Mapping, Optional

from sqlalchemy.orm import Session

from ehi_mapper.core.errors import ScorePersistenceError
from ehi_mapper.core.models import LandCoverRecord, MonitoringSite
from ehi_mapper.scoring.aggregator import build_site_aggregates
from ehi_mapper.scoring.persister import persist_scores
from ehi_mapper.scoring.scorer import (
    DEFAULT_WEIGHTS,
    NEUTRAL_SCORE,
    REPORT_DECIMALS,
    SiteScores,
    score_site,
    validate_weights,
    weighted_composite,
)

logger = logging.getLogger(__name__)


def _round(value: Optional[float]) -> Optional[float]:
    return round(value, REPORT_DECIMALS) if value is not None else None


class EHICalculator:
    """Compute, persist and report ecosystem health scores."""

    def __init__(self, db: Session):
        self.db = db

    # ------------------------------------------------------------------
    # Pipeline step
    # ------------------------------------------------------------------

    def calculate_all_sites(self, radius_km: Optional[float] = None) -> int:
        """
        Recompute and persist scores for every site.

        Returns:
            Number of sites updated

        Raises:
            ScorePersistenceError: If any site update failed (after all
                other sites were written)
        """
        logger.info("Calculating EHI scores for all sites...")
        aggregates = build_site_aggregates(self.db, radius_km=radius_km)
        scores = [score_site(aggregate, DEFAULT_WEIGHTS) for aggregate in aggregates]

        result = persist_scores(self.db, scores, calculated_at=datetime.utcnow())
        if result.failed_site_ids:
            raise ScorePersistenceError(
                f"Failed to update {len(result.failed_site_ids)} of {len(scores)} sites",
                failed_site_ids=result.failed_site_ids,
            )

        logger.info(f"EHI: calculated scores for {result.updated} sites")
        return result.updated

    # ------------------------------------------------------------------
    # Read paths
    # ------------------------------------------------------------------

    @staticmethod
    def _sub_scores(site: MonitoringSite) -> Dict[str, float]:
        """Persisted sub-scores; a never-scored site is neutral throughout."""
        values = {
            "biodiversity": site.biodiversity_score,
            "climate": site.climate_score,
            "human_pressure": site.human_pressure_score,
            "vegetation": site.vegetation_score,
        }
        return {k: NEUTRAL_SCORE if v is None else float(v) for k, v in values.items()}

    def calculate_ehi(self, weights: Mapping[str, float]) -> List[Dict[str, Any]]:
        """
        Composite scores for every site under caller-supplied weights.

        Weights are validated before the store is queried.

        Returns:
            Per-site results sorted by ehi_score descending
        """
        weights = validate_weights(weights)

        cover_by_site = self.dominant_land_cover()
        sites = self.db.query(MonitoringSite).order_by(MonitoringSite.id).all()
        results = []
        for site in sites:
            sub_scores = self._sub_scores(site)
            scores = SiteScores(
                site_id=site.id,
                composite=weighted_composite(sub_scores, weights),
                **sub_scores,
            )
            breakdown = scores.rounded()
            ehi_score = breakdown.pop("composite")
            results.append({
                "id": site.id,
                "name": site.name,
                "longitude": float(site.longitude),
                "latitude": float(site.latitude),
                "ehi_score": ehi_score,
                "breakdown": breakdown,
                "metadata": {
                    "land_cover": cover_by_site.get(site.id),
                    "protected": bool(site.protected_area),
                    "elevation": site.elevation,
                },
            })

        results.sort(key=lambda r: r["ehi_score"], reverse=True)
        return results

    def dominant_land_cover(self) -> Dict[int, str]:
        """Land cover type of the highest-coverage row per site."""
        rows = self.db.query(
            LandCoverRecord.site_id,
            LandCoverRecord.land_cover_type,
            LandCoverRecord.coverage_percentage,
        ).all()

        best: Dict[int, tuple] = {}
        for site_id, cover_type, coverage in rows:
            if coverage is None:
                continue
            if site_id not in best or coverage > best[site_id][1]:
                best[site_id] = (cover_type, coverage)
        return {site_id: value[0] for site_id, value in best.items()}

    def list_site_scores(self, land_cover: Optional[str] = None) -> List[Dict[str, Any]]:
        """Persisted scoring block per site, optionally filtered by dominant land cover."""
        cover_by_site = self.dominant_land_cover()
        sites = self.db.query(MonitoringSite).order_by(MonitoringSite.id).all()

        results = []
        for site in sites:
            cover_type = cover_by_site.get(site.id)
            if land_cover and cover_type != land_cover.lower():
                continue
            results.append({
                "id": site.id,
                "name": site.name,
                "longitude": float(site.longitude),
                "latitude": float(site.latitude),
                "elevation": site.elevation,
                "protected_area": bool(site.protected_area),
                "land_cover_type": cover_type,
                "composite_ehi": _round(site.composite_ehi),
                "scores": {
                    "biodiversity": _round(site.biodiversity_score),
                    "climate": _round(site.climate_score),
                    "human_pressure": _round(site.human_pressure_score),
                    "vegetation": _round(site.vegetation_score),
                },
                "last_calculated": (
                    site.last_calculated.isoformat() if site.last_calculated else None
                ),
            })
        return results
