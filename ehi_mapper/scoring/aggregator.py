"""
Per-site aggregation of the four source tables.

Occurrences carry no site key; they are associated with a site when they
lie within the configured radius. The radius join uses the composite
(latitude, longitude) index for a bounding-box prefilter and an exact
haversine check on the candidates. The other three sources are joined on
site_id. A source with no rows for a site yields None, never zero.
"""

import logging
from dataclasses import dataclass
from math import asin, atan2, cos, degrees, radians, sin, sqrt
from typing import Dict, List, Optional, Tuple

from sqlalchemy import and_, func
from sqlalchemy.orm import Session

from ehi_mapper.core.config import get_settings
from ehi_mapper.core.models import (
    ClimateRecord,
    HumanPressureRecord,
    LandCoverRecord,
    MonitoringSite,
    SpeciesOccurrence,
)

logger = logging.getLogger(__name__)

EARTH_RADIUS_KM = 6371.0088


@dataclass
class SiteAggregate:
    """Ephemeral joined view of all sources for one site."""
    site_id: int
    name: str
    latitude: float
    longitude: float
    occurrence_count: Optional[int] = None
    avg_temperature_annual: Optional[float] = None
    avg_precipitation_annual: Optional[float] = None
    avg_temperature_trend: Optional[float] = None
    avg_drought_index: Optional[float] = None
    max_coverage_percentage: Optional[float] = None
    avg_human_pressure: Optional[float] = None


def haversine_km(lat1: float, lon1: float, lat2: float, lon2: float) -> float:
    """Great-circle distance between two points in kilometres."""
    lat1_rad = radians(lat1)
    lat2_rad = radians(lat2)
    delta_lat = radians(lat2 - lat1)
    delta_lon = radians(lon2 - lon1)

    a = (
        sin(delta_lat / 2) ** 2
        + cos(lat1_rad) * cos(lat2_rad) * sin(delta_lon / 2) ** 2
    )
    c = 2 * atan2(sqrt(a), sqrt(1 - a))

    return EARTH_RADIUS_KM * c


def bounding_box(
    latitude: float, longitude: float, radius_km: float
) -> Tuple[float, float, Optional[float], Optional[float]]:
    """
    Smallest lat/lng box containing the circle of radius_km.

    Returns (min_lat, max_lat, min_lng, max_lng). The longitude bounds are
    None when the circle reaches a pole or crosses the antimeridian.
    """
    angular = radius_km / EARTH_RADIUS_KM
    lat_range = degrees(angular)
    min_lat = latitude - lat_range
    max_lat = latitude + lat_range

    if min_lat <= -90 or max_lat >= 90:
        return max(min_lat, -90.0), min(max_lat, 90.0), None, None

    lon_range = degrees(asin(min(1.0, sin(angular) / cos(radians(latitude)))))
    min_lng = longitude - lon_range
    max_lng = longitude + lon_range
    if min_lng < -180 or max_lng > 180:
        return min_lat, max_lat, None, None

    return min_lat, max_lat, min_lng, max_lng


def count_occurrences_within(
    db: Session, latitude: float, longitude: float, radius_km: float
) -> int:
    """Distinct occurrence records within radius_km of a point."""
    min_lat, max_lat, min_lng, max_lng = bounding_box(latitude, longitude, radius_km)

    filters = [SpeciesOccurrence.latitude.between(min_lat, max_lat)]
    if min_lng is not None:
        filters.append(SpeciesOccurrence.longitude.between(min_lng, max_lng))

    candidates = db.query(
        SpeciesOccurrence.species_id,
        SpeciesOccurrence.latitude,
        SpeciesOccurrence.longitude,
    ).filter(and_(*filters)).all()

    matched = {
        species_id
        for species_id, lat, lng in candidates
        if haversine_km(latitude, longitude, float(lat), float(lng)) <= radius_km
    }
    return len(matched)


def _climate_by_site(db: Session) -> Dict[int, Tuple]:
    rows = db.query(
        ClimateRecord.site_id,
        func.avg(ClimateRecord.temperature_annual),
        func.avg(ClimateRecord.precipitation_annual),
        func.avg(ClimateRecord.temperature_trend),
        func.avg(ClimateRecord.drought_index),
    ).group_by(ClimateRecord.site_id).all()
    return {row[0]: tuple(row[1:]) for row in rows}


def _max_coverage_by_site(db: Session) -> Dict[int, Optional[float]]:
    rows = db.query(
        LandCoverRecord.site_id,
        func.max(LandCoverRecord.coverage_percentage),
    ).group_by(LandCoverRecord.site_id).all()
    return {site_id: value for site_id, value in rows}


def _pressure_by_site(db: Session) -> Dict[int, Optional[float]]:
    rows = db.query(
        HumanPressureRecord.site_id,
        func.avg(HumanPressureRecord.human_footprint_index),
    ).group_by(HumanPressureRecord.site_id).all()
    return {site_id: value for site_id, value in rows}


def _as_float(value) -> Optional[float]:
    return float(value) if value is not None else None


def build_site_aggregates(
    db: Session, radius_km: Optional[float] = None
) -> List[SiteAggregate]:
    """
    Build one aggregate row per site.

    occurrence_count is None only when the occurrence table is empty;
    otherwise it is the count within the radius, possibly 0.
    """
    if radius_km is None:
        radius_km = get_settings().occurrence_radius_km

    sites = db.query(MonitoringSite).order_by(MonitoringSite.id).all()
    has_occurrences = db.query(SpeciesOccurrence.id).first() is not None
    climate = _climate_by_site(db)
    coverage = _max_coverage_by_site(db)
    pressure = _pressure_by_site(db)

    aggregates = []
    for site in sites:
        latitude = float(site.latitude)
        longitude = float(site.longitude)
        temperature, precipitation, trend, drought = climate.get(
            site.id, (None, None, None, None)
        )

        aggregates.append(SiteAggregate(
            site_id=site.id,
            name=site.name,
            latitude=latitude,
            longitude=longitude,
            occurrence_count=(
                count_occurrences_within(db, latitude, longitude, radius_km)
                if has_occurrences else None
            ),
            avg_temperature_annual=_as_float(temperature),
            avg_precipitation_annual=_as_float(precipitation),
            avg_temperature_trend=_as_float(trend),
            avg_drought_index=_as_float(drought),
            max_coverage_percentage=_as_float(coverage.get(site.id)),
            avg_human_pressure=_as_float(pressure.get(site.id)),
        ))

    logger.debug(f"Aggregated {len(aggregates)} sites (radius {radius_km} km)")
    return aggregates
