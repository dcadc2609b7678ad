"""
Source ingestion - Ingestor Registry.

Maps source names to ingestor classes. Ingestor modules register
themselves with @register_ingestor when ehi_mapper.sources.ingestors
is imported.
"""

import importlib
import logging
from typing import Dict, Type

from sqlalchemy.orm import Session

from ehi_mapper.core.errors import UnknownSourceError
from ehi_mapper.sources.base_ingestor import BaseIngestor
from ehi_mapper.sources.types import EHISource

logger = logging.getLogger(__name__)

INGESTOR_REGISTRY: Dict[EHISource, Type[BaseIngestor]] = {}

_INGESTORS_PACKAGE = "ehi_mapper.sources.ingestors"


def register_ingestor(source: EHISource):
    """Decorator to register an ingestor class."""

    def decorator(cls: Type[BaseIngestor]):
        INGESTOR_REGISTRY[source] = cls
        return cls

    return decorator


def _ensure_registered() -> None:
    if not INGESTOR_REGISTRY:
        importlib.import_module(_INGESTORS_PACKAGE)


def resolve_source(name: str) -> EHISource:
    """
    Turn a source name into an EHISource.

    Raises:
        UnknownSourceError: If no ingestor is registered under that name
    """
    _ensure_registered()
    valid = [s.value for s in EHISource]
    try:
        source = EHISource(name.lower())
    except ValueError:
        raise UnknownSourceError(name, valid)
    if source not in INGESTOR_REGISTRY:
        raise UnknownSourceError(name, valid)
    return source


def get_ingestor(source: EHISource, db: Session, **kwargs) -> BaseIngestor:
    """Instantiate the registered ingestor for a source."""
    _ensure_registered()
    ingestor_cls = INGESTOR_REGISTRY.get(source)
    if ingestor_cls is None:
        raise UnknownSourceError(source.value, [s.value for s in INGESTOR_REGISTRY])
    return ingestor_cls(db=db, **kwargs)
