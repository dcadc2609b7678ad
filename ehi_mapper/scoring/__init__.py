"""
Ecosystem Health Index scoring: aggregation, normalization, persistence.
"""

from ehi_mapper.scoring.aggregator import SiteAggregate, build_site_aggregates
from ehi_mapper.scoring.calculator import EHICalculator
from ehi_mapper.scoring.scorer import (
    DEFAULT_WEIGHTS,
    EHIWeights,
    SiteScores,
    normalize,
    score_site,
    validate_weights,
)

__all__ = [
    "SiteAggregate",
    "build_site_aggregates",
    "EHICalculator",
    "DEFAULT_WEIGHTS",
    "EHIWeights",
    "SiteScores",
    "normalize",
    "score_site",
    "validate_weights",
]
