"""
SQLAlchemy models for the EHI store.

Tables:
- monitoring_sites: site registry plus the mutable scoring block
- species_occurrences: point observations, joined to sites by distance
- climate_data / land_cover_data / human_footprint_data: one row per site
  per ingestion run, foreign-keyed to the site
- pipeline_runs: operations log of pipeline and single-source runs
"""
from datetime import datetime
from typing import Any, Dict, Optional
from sqlalchemy import (
    Column,
    Integer,
    String,
    DateTime,
    Text,
    JSON,
    Boolean,
    Float,
    ForeignKey,
    Index,
    Enum,
)
from sqlalchemy.orm import declarative_base
import enum

Base = declarative_base()


def point_geojson(longitude: float, latitude: float) -> Dict[str, Any]:
    """GeoJSON Point for a (longitude, latitude) pair."""
    return {"type": "Point", "coordinates": [float(longitude), float(latitude)]}


class RunStatus(str, enum.Enum):
    """Pipeline run status - ONLY these values allowed."""
    PENDING = "pending"
    RUNNING = "running"
    SUCCESS = "success"
    FAILED = "failed"


class MonitoringSite(Base):
    """
    A monitoring site with fixed position and a mutable scoring block.

    The scoring block (four sub-scores, composite, last_calculated) is
    either entirely NULL (never computed) or entirely set.
    """
    __tablename__ = "monitoring_sites"

    id = Column(Integer, primary_key=True, autoincrement=True)
    name = Column(String(255), nullable=False)
    latitude = Column(Float, nullable=False)
    longitude = Column(Float, nullable=False)
    # Geometry stored as GeoJSON for portability across stores
    position = Column(JSON)
    elevation = Column(Integer)
    protected_area = Column(Boolean, nullable=False, default=False)

    biodiversity_score = Column(Float)
    climate_score = Column(Float)
    human_pressure_score = Column(Float)
    vegetation_score = Column(Float)
    composite_ehi = Column(Float)
    last_calculated = Column(DateTime)

    created_at = Column(DateTime, nullable=False, default=datetime.utcnow)

    __table_args__ = (
        Index("idx_monitoring_sites_location", "latitude", "longitude"),
    )

    @property
    def is_scored(self) -> bool:
        return self.composite_ehi is not None

    def __repr__(self) -> str:
        return (
            f"<MonitoringSite(id={self.id}, name={self.name}, "
            f"composite_ehi={self.composite_ehi})>"
        )


class SpeciesOccurrence(Base):
    """A single species observation. Not linked to a site by key."""
    __tablename__ = "species_occurrences"

    id = Column(Integer, primary_key=True, autoincrement=True)
    species_id = Column(String(100), nullable=False, unique=True)
    scientific_name = Column(String(255))
    common_name = Column(String(255))
    latitude = Column(Float, nullable=False)
    longitude = Column(Float, nullable=False)
    position = Column(JSON)
    year = Column(Integer)
    data_source = Column(String(50))

    __table_args__ = (
        Index("idx_species_occurrences_location", "latitude", "longitude"),
    )


class ClimateRecord(Base):
    """Per-site climate metrics."""
    __tablename__ = "climate_data"

    id = Column(Integer, primary_key=True, autoincrement=True)
    site_id = Column(Integer, ForeignKey("monitoring_sites.id"), nullable=False, index=True)
    temperature_annual = Column(Float)
    precipitation_annual = Column(Float)
    temperature_trend = Column(Float)
    drought_index = Column(Float)
    data_source = Column(String(50))
    year = Column(Integer)


class LandCoverRecord(Base):
    """Per-site land cover category and coverage."""
    __tablename__ = "land_cover_data"

    id = Column(Integer, primary_key=True, autoincrement=True)
    site_id = Column(Integer, ForeignKey("monitoring_sites.id"), nullable=False, index=True)
    land_cover_type = Column(String(50), index=True)  # forest, grassland, wetland, agriculture, urban
    coverage_percentage = Column(Float)
    data_source = Column(String(50))
    year = Column(Integer)


class HumanPressureRecord(Base):
    """Per-site human footprint index."""
    __tablename__ = "human_footprint_data"

    id = Column(Integer, primary_key=True, autoincrement=True)
    site_id = Column(Integer, ForeignKey("monitoring_sites.id"), nullable=False, index=True)
    human_footprint_index = Column(Float)
    pressure_type = Column(String(50))  # urbanization, agriculture
    data_source = Column(String(50))
    year = Column(Integer)


class PipelineRun(Base):
    """
    Tracks pipeline runs (full or single-source).

    Operations log only; scores themselves are kept as latest-per-site.
    """
    __tablename__ = "pipeline_runs"

    id = Column(Integer, primary_key=True, autoincrement=True)
    run_type = Column(String(20), nullable=False)  # full, single_source
    trigger = Column(String(20), nullable=False)  # schedule, startup, manual
    status = Column(
        Enum(RunStatus, native_enum=False, length=20),
        nullable=False,
        default=RunStatus.PENDING,
        index=True
    )

    created_at = Column(DateTime, nullable=False, default=datetime.utcnow)
    started_at = Column(DateTime, nullable=True)
    completed_at = Column(DateTime, nullable=True)

    step_counts = Column(JSON, nullable=True)  # {"gbif": 52, "climate": 3, ...}
    failed_step = Column(String(50), nullable=True)
    error_message = Column(Text, nullable=True)

    def to_dict(self) -> Dict[str, Optional[Any]]:
        return {
            "id": self.id,
            "run_type": self.run_type,
            "trigger": self.trigger,
            "status": self.status.value if self.status else None,
            "started_at": self.started_at.isoformat() if self.started_at else None,
            "completed_at": self.completed_at.isoformat() if self.completed_at else None,
            "step_counts": self.step_counts or {},
            "failed_step": self.failed_step,
            "error_message": self.error_message,
        }

    def __repr__(self) -> str:
        return (
            f"<PipelineRun(id={self.id}, run_type={self.run_type}, "
            f"status={self.status}, created_at={self.created_at})>"
        )
