"""
Ecosystem Health Index normalization and composite scoring.

Maps an aggregate row onto four [0, 1] sub-scores and a weighted
composite. A missing input is scored as NEUTRAL_SCORE so sites without
coverage from a source are not penalised.
"""

import logging
import math
from dataclasses import dataclass
from typing import Dict, Mapping, Optional

from pydantic import BaseModel, ConfigDict, Field

from ehi_mapper.core.errors import WeightValidationError
from ehi_mapper.scoring.aggregator import SiteAggregate

logger = logging.getLogger(__name__)

# ---------------------------------------------------------------------------
# Model configuration
# ---------------------------------------------------------------------------
DEFAULT_WEIGHTS: Dict[str, float] = {
    "biodiversity": 0.30,
    "climate": 0.25,
    "human_pressure": 0.25,
    "vegetation": 0.20,
}

WEIGHT_TOLERANCE = 0.01

NEUTRAL_SCORE = 0.5

# Normalization ranges
MAX_OCCURRENCES = 50
MAX_COVERAGE_PCT = 100

REPORT_DECIMALS = 3


def normalize(value: Optional[float], min_value: float, max_value: float) -> float:
    """
    Linearly map value onto [0, 1] and clamp.

    None (or NaN) means the input is absent and yields NEUTRAL_SCORE.
    """
    if max_value <= min_value:
        raise ValueError(f"max_value ({max_value}) must exceed min_value ({min_value})")
    if value is None or (isinstance(value, float) and math.isnan(value)):
        return NEUTRAL_SCORE
    normalized = (value - min_value) / (max_value - min_value)
    return max(0.0, min(1.0, normalized))


class EHIWeights(BaseModel):
    """Caller-supplied weights; omitted fields fall back to DEFAULT_WEIGHTS."""

    model_config = ConfigDict(populate_by_name=True, allow_inf_nan=False)

    biodiversity: Optional[float] = None
    climate: Optional[float] = None
    human_pressure: Optional[float] = Field(default=None, alias="humanPressure")
    vegetation: Optional[float] = None

    def resolved(self) -> Dict[str, float]:
        supplied = self.model_dump(exclude_none=True)
        return {name: supplied.get(name, default) for name, default in DEFAULT_WEIGHTS.items()}


def validate_weights(weights: Mapping[str, float]) -> Dict[str, float]:
    """
    Check a full weight set.

    Raises:
        WeightValidationError: On missing, non-finite or negative weights, or a total
            outside 1.0 ± WEIGHT_TOLERANCE. Never renormalizes.
    """
    missing = [name for name in DEFAULT_WEIGHTS if name not in weights]
    if missing:
        raise WeightValidationError(f"Missing weights: {', '.join(missing)}")

    non_finite = [name for name in DEFAULT_WEIGHTS if not math.isfinite(weights[name])]
    if non_finite:
        raise WeightValidationError(f"Weights must be finite numbers: {', '.join(non_finite)}")

    negative = [name for name in DEFAULT_WEIGHTS if weights[name] < 0]
    if negative:
        raise WeightValidationError(f"Weights must be non-negative: {', '.join(negative)}")

    total = sum(weights[name] for name in DEFAULT_WEIGHTS)
    if abs(total - 1.0) > WEIGHT_TOLERANCE:
        raise WeightValidationError(
            f"Weights must sum to 1.0 (±{WEIGHT_TOLERANCE}), got {total:.4f}",
            total=total,
        )
    return {name: float(weights[name]) for name in DEFAULT_WEIGHTS}


def weighted_composite(sub_scores: Mapping[str, float], weights: Mapping[str, float]) -> float:
    # Weights may total up to 1 + WEIGHT_TOLERANCE; keep the composite in [0, 1]
    total = sum(sub_scores[name] * weights[name] for name in DEFAULT_WEIGHTS)
    return max(0.0, min(1.0, total))


@dataclass
class SiteScores:
    """Unrounded scores for one site."""
    site_id: int
    biodiversity: float
    climate: float
    human_pressure: float
    vegetation: float
    composite: float

    def sub_scores(self) -> Dict[str, float]:
        return {
            "biodiversity": self.biodiversity,
            "climate": self.climate,
            "human_pressure": self.human_pressure,
            "vegetation": self.vegetation,
        }

    def rounded(self) -> Dict[str, float]:
        data = {k: round(v, REPORT_DECIMALS) for k, v in self.sub_scores().items()}
        data["composite"] = round(self.composite, REPORT_DECIMALS)
        return data


def score_site(
    aggregate: SiteAggregate,
    weights: Optional[Mapping[str, float]] = None,
) -> SiteScores:
    """Compute sub-scores and composite for one aggregate row."""
    weights = weights or DEFAULT_WEIGHTS

    # Smaller absolute trend = more stable climate
    trend = aggregate.avg_temperature_trend
    climate_input = None if trend is None else 1 - abs(trend)

    # Inverted: lower pressure scores higher
    pressure = aggregate.avg_human_pressure
    pressure_input = None if pressure is None else 1 - pressure

    sub_scores = {
        "biodiversity": normalize(aggregate.occurrence_count, 0, MAX_OCCURRENCES),
        "climate": normalize(climate_input, 0, 1),
        "human_pressure": normalize(pressure_input, 0, 1),
        "vegetation": normalize(aggregate.max_coverage_percentage, 0, MAX_COVERAGE_PCT),
    }

    return SiteScores(
        site_id=aggregate.site_id,
        composite=weighted_composite(sub_scores, weights),
        **sub_scores,
    )
