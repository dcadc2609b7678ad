"""
Source ingestion for the ecosystem health index.

Usage:
    from ehi_mapper.sources import EHISource, get_ingestor

    result = get_ingestor(EHISource.CLIMATE, db).ingest()
"""

from ehi_mapper.sources.types import (
    EHISource,
    INGESTION_ORDER,
    IngestionResult,
    IngestionStatus,
)
from ehi_mapper.sources.base_ingestor import BaseIngestor
from ehi_mapper.sources.registry import get_ingestor, resolve_source

__all__ = [
    'EHISource',
    'INGESTION_ORDER',
    'IngestionResult',
    'IngestionStatus',
    'BaseIngestor',
    'get_ingestor',
    'resolve_source',
]
