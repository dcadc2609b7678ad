"""
Ecosystem Health Index API endpoints.

Read-only over the site registry: re-weighting persisted sub-scores and
listing current site scores.
"""

import logging
from typing import Optional

from fastapi import APIRouter, Depends, HTTPException, Query
from pydantic import BaseModel
from sqlalchemy.orm import Session

from ehi_mapper.core.database import get_db
from ehi_mapper.core.errors import WeightValidationError
from ehi_mapper.scoring.calculator import EHICalculator
from ehi_mapper.scoring.scorer import EHIWeights, validate_weights

logger = logging.getLogger(__name__)

router = APIRouter(prefix="/ehi", tags=["ehi"])


class EHICalculationRequest(BaseModel):
    weights: Optional[EHIWeights] = None


@router.post("/calculate")
def calculate_ehi(
    request: Optional[EHICalculationRequest] = None,
    db: Session = Depends(get_db),
):
    """
    Composite EHI per site under caller-supplied weights, best first.

    Omitted weights fall back to the defaults; a set not summing to 1.0
    (±0.01) is rejected before any query runs.
    """
    supplied = request.weights if request and request.weights else EHIWeights()
    try:
        weights = validate_weights(supplied.resolved())
    except WeightValidationError as e:
        raise HTTPException(status_code=400, detail=e.to_dict())

    return EHICalculator(db).calculate_ehi(weights)


@router.get("/sites")
def list_sites(
    land_cover: Optional[str] = Query(
        None, description="Filter by dominant land cover type (e.g. 'forest')"
    ),
    db: Session = Depends(get_db),
):
    """Persisted scores for every site."""
    return EHICalculator(db).list_site_scores(land_cover=land_cover)
