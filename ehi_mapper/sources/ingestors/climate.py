"""
WorldClim Climate Ingestor (simulated).

Temperature falls with latitude and precipitation rises with longitude;
trend and drought index are random draws.
"""

from datetime import datetime
from typing import Any, Dict, List

from ehi_mapper.core.models import ClimateRecord, MonitoringSite
from ehi_mapper.sources.base_ingestor import BaseIngestor
from ehi_mapper.sources.registry import register_ingestor
from ehi_mapper.sources.types import EHISource

CLIMATE_YEAR = 2020


def annual_temperature(latitude: float) -> float:
    return 15 + (latitude - 40) * -0.6


def annual_precipitation(longitude: float) -> float:
    return 800 + (longitude + 100) * 10


@register_ingestor(EHISource.CLIMATE)
class ClimateIngestor(BaseIngestor):
    """Simulated WorldClim annual climate per site."""

    source = EHISource.CLIMATE
    model = ClimateRecord
    data_source = "WorldClim"

    def build_rows(
        self,
        sites: List[MonitoringSite],
        run_time: datetime,
    ) -> List[Dict[str, Any]]:
        return [
            {
                "site_id": site.id,
                "temperature_annual": annual_temperature(float(site.latitude)),
                "precipitation_annual": annual_precipitation(float(site.longitude)),
                # [-0.04, 0.04)
                "temperature_trend": self.rng.random() * 0.08 - 0.04,
                # [0.1, 0.9)
                "drought_index": self.rng.random() * 0.8 + 0.1,
                "data_source": self.data_source,
                "year": CLIMATE_YEAR,
            }
            for site in sites
        ]
