"""
Source Ingestors.

Importing this package registers every ingestor:
- gbif: species occurrences (GBIF_Simulated)
- climate: annual climate (WorldClim)
- landcover: land cover (Copernicus)
- footprint: human footprint (SEDAC)
"""

from ehi_mapper.sources.ingestors.occurrence import OccurrenceIngestor
from ehi_mapper.sources.ingestors.climate import ClimateIngestor
from ehi_mapper.sources.ingestors.land_cover import LandCoverIngestor
from ehi_mapper.sources.ingestors.human_pressure import HumanPressureIngestor

__all__ = [
    "OccurrenceIngestor",
    "ClimateIngestor",
    "LandCoverIngestor",
    "HumanPressureIngestor",
]
