"""
Copernicus Land Cover Ingestor (simulated).
"""

from datetime import datetime
from typing import Any, Dict, List

from ehi_mapper.core.models import LandCoverRecord, MonitoringSite
from ehi_mapper.sources.base_ingestor import BaseIngestor
from ehi_mapper.sources.registry import register_ingestor
from ehi_mapper.sources.types import EHISource

LAND_COVER_TYPES = ["forest", "grassland", "wetland", "agriculture", "urban"]

LAND_COVER_YEAR = 2022


@register_ingestor(EHISource.LANDCOVER)
class LandCoverIngestor(BaseIngestor):
    """One random land cover category per site with coverage in [20, 100)."""

    source = EHISource.LANDCOVER
    model = LandCoverRecord
    data_source = "Copernicus"

    def build_rows(
        self,
        sites: List[MonitoringSite],
        run_time: datetime,
    ) -> List[Dict[str, Any]]:
        return [
            {
                "site_id": site.id,
                "land_cover_type": self.rng.choice(LAND_COVER_TYPES),
                "coverage_percentage": self.rng.random() * 80 + 20,
                "data_source": self.data_source,
                "year": LAND_COVER_YEAR,
            }
            for site in sites
        ]
