"""
GBIF Species Occurrence Ingestor (simulated).

Generates point observations for a fixed species list. Each observation
is placed on the coordinates of a randomly chosen existing site; the
association to sites happens later, by distance, in the aggregator.
"""

import logging
from datetime import datetime
from typing import Any, Dict, List

from ehi_mapper.core.models import MonitoringSite, SpeciesOccurrence, point_geojson
from ehi_mapper.sources.base_ingestor import BaseIngestor
from ehi_mapper.sources.registry import register_ingestor
from ehi_mapper.sources.types import EHISource

logger = logging.getLogger(__name__)


SPECIES = [
    {"scientific": "Ambystoma tigrinum", "common": "Tiger Salamander", "habitat": "wetland"},
    {"scientific": "Gila elegans", "common": "Colorado Pikeminnow", "habitat": "river"},
    {"scientific": "Falco mexicanus", "common": "Prairie Falcon", "habitat": "grassland"},
    {"scientific": "Canis latrans", "common": "Coyote", "habitat": "general"},
    {"scientific": "Lepus californicus", "common": "Black-tailed Jackrabbit", "habitat": "shrubland"},
]

# Observations per species: [MIN, MAX)
MIN_OBSERVATIONS = 5
MAX_OBSERVATIONS = 15

# Observation years: [FIRST_YEAR, LAST_YEAR)
FIRST_YEAR = 2020
LAST_YEAR = 2024


def make_species_id(scientific_name: str, sequence: int, run_time: datetime) -> str:
    """Reproducible per-run key for one synthetic observation."""
    run_ms = int(run_time.timestamp() * 1000)
    return f"sim_{'_'.join(scientific_name.split())}_{sequence}_{run_ms}"


@register_ingestor(EHISource.GBIF)
class OccurrenceIngestor(BaseIngestor):
    """Simulated GBIF species occurrences."""

    source = EHISource.GBIF
    model = SpeciesOccurrence
    data_source = "GBIF_Simulated"

    def build_rows(
        self,
        sites: List[MonitoringSite],
        run_time: datetime,
    ) -> List[Dict[str, Any]]:
        if not sites:
            logger.warning("No monitoring sites registered; no occurrences generated")
            return []

        rows = []
        for species in SPECIES:
            count = self.rng.randrange(MIN_OBSERVATIONS, MAX_OBSERVATIONS)
            for i in range(count):
                site = self.rng.choice(sites)
                rows.append({
                    "species_id": make_species_id(species["scientific"], i, run_time),
                    "scientific_name": species["scientific"],
                    "common_name": species["common"],
                    "latitude": float(site.latitude),
                    "longitude": float(site.longitude),
                    "position": point_geojson(site.longitude, site.latitude),
                    "year": FIRST_YEAR + self.rng.randrange(LAST_YEAR - FIRST_YEAR),
                    "data_source": self.data_source,
                })

        return rows
