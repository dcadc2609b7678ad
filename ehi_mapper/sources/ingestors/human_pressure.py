"""
SEDAC Human Footprint Ingestor (simulated).

The footprint index is drawn from a range chosen by a per-site
SiteContext. classify_site_context() is a placeholder for a real
land-use classification: it looks at name keywords and the
protected-area flag only.
"""

from datetime import datetime
from typing import Any, Dict, List, Tuple

from ehi_mapper.core.models import HumanPressureRecord, MonitoringSite
from ehi_mapper.sources.base_ingestor import BaseIngestor
from ehi_mapper.sources.registry import register_ingestor
from ehi_mapper.sources.types import EHISource, SiteContext

URBAN_KEYWORDS = ("Phoenix", "Urban")
PROTECTED_KEYWORDS = ("NP", "National Park", "Canyon")

# Footprint index draw ranges: [low, high)
PRESSURE_RANGES: Dict[SiteContext, Tuple[float, float]] = {
    SiteContext.URBAN: (0.7, 1.0),
    SiteContext.PROTECTED: (0.0, 0.2),
    SiteContext.MIXED: (0.1, 0.4),
}

URBANIZATION_THRESHOLD = 0.5

FOOTPRINT_YEAR = 2020


def classify_site_context(site: MonitoringSite) -> SiteContext:
    """Urban keywords win over protected keywords and the protected flag."""
    name = site.name or ""
    if any(keyword in name for keyword in URBAN_KEYWORDS):
        return SiteContext.URBAN
    if site.protected_area or any(keyword in name for keyword in PROTECTED_KEYWORDS):
        return SiteContext.PROTECTED
    return SiteContext.MIXED


def pressure_type_for(index: float) -> str:
    return "urbanization" if index > URBANIZATION_THRESHOLD else "agriculture"


@register_ingestor(EHISource.FOOTPRINT)
class HumanPressureIngestor(BaseIngestor):
    """Simulated human footprint index per site."""

    source = EHISource.FOOTPRINT
    model = HumanPressureRecord
    data_source = "SEDAC"

    def draw_index(self, context: SiteContext) -> float:
        low, high = PRESSURE_RANGES[context]
        return low + self.rng.random() * (high - low)

    def build_rows(
        self,
        sites: List[MonitoringSite],
        run_time: datetime,
    ) -> List[Dict[str, Any]]:
        rows = []
        for site in sites:
            index = self.draw_index(classify_site_context(site))
            rows.append({
                "site_id": site.id,
                "human_footprint_index": index,
                "pressure_type": pressure_type_for(index),
                "data_source": self.data_source,
                "year": FOOTPRINT_YEAR,
            })
        return rows
