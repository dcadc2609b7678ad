"""
Source ingestion - Types and Pydantic Models.

Defines enums and result schemas used across all ingestors.
"""
from datetime import datetime
from enum import Enum
from typing import Optional
from pydantic import BaseModel


# =============================================================================
# ENUMS
# =============================================================================

class EHISource(str, Enum):
    """Source datasets feeding the ecosystem health index."""
    GBIF = "gbif"  # species occurrences
    CLIMATE = "climate"  # WorldClim-style climate normals
    LANDCOVER = "landcover"  # Copernicus-style land cover
    FOOTPRINT = "footprint"  # SEDAC-style human footprint


# Fixed execution order within a pipeline run
INGESTION_ORDER = [
    EHISource.GBIF,
    EHISource.CLIMATE,
    EHISource.LANDCOVER,
    EHISource.FOOTPRINT,
]


class IngestionStatus(str, Enum):
    """Status of one ingestor run."""
    SUCCESS = "success"
    FAILED = "failed"


class SiteContext(str, Enum):
    """Categorical land-use context driving the human pressure draw."""
    URBAN = "urban"
    PROTECTED = "protected"
    MIXED = "mixed"


# =============================================================================
# RESULT MODELS
# =============================================================================

class IngestionResult(BaseModel):
    """Result of one ingestor run."""
    source: EHISource
    status: IngestionStatus
    rows_written: int = 0

    started_at: Optional[datetime] = None
    completed_at: Optional[datetime] = None
    duration_seconds: Optional[float] = None

    error_message: Optional[str] = None
