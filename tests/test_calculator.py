"""
Unit tests for score persistence and the EHI calculator.
"""
import pytest
from datetime import datetime
from unittest.mock import MagicMock, patch
from sqlalchemy.exc import SQLAlchemyError

from ehi_mapper.core.errors import ScorePersistenceError, WeightValidationError
from ehi_mapper.core.models import (
    ClimateRecord,
    HumanPressureRecord,
    LandCoverRecord,
    MonitoringSite,
)
from ehi_mapper.scoring.calculator import EHICalculator
from ehi_mapper.scoring.persister import PersistResult, persist_scores
from ehi_mapper.scoring.scorer import DEFAULT_WEIGHTS, SiteScores


def _scores(site_id, value=0.7):
    return SiteScores(
        site_id=site_id,
        biodiversity=value,
        climate=value,
        human_pressure=value,
        vegetation=value,
        composite=value,
    )


@pytest.fixture
def seeded_sources(test_db, sample_sites):
    """One climate, land cover and footprint row per site."""
    phoenix, canyon, verde = sample_sites
    test_db.add_all([
        ClimateRecord(site_id=phoenix.id, temperature_trend=0.035, drought_index=0.8),
        ClimateRecord(site_id=canyon.id, temperature_trend=-0.005, drought_index=0.3),
        ClimateRecord(site_id=verde.id, temperature_trend=0.02, drought_index=0.5),
        LandCoverRecord(site_id=phoenix.id, land_cover_type="urban", coverage_percentage=90.0),
        LandCoverRecord(site_id=canyon.id, land_cover_type="forest", coverage_percentage=75.0),
        LandCoverRecord(site_id=canyon.id, land_cover_type="grassland", coverage_percentage=30.0),
        LandCoverRecord(site_id=verde.id, land_cover_type="wetland", coverage_percentage=55.0),
        HumanPressureRecord(site_id=phoenix.id, human_footprint_index=0.85),
        HumanPressureRecord(site_id=canyon.id, human_footprint_index=0.05),
        HumanPressureRecord(site_id=verde.id, human_footprint_index=0.25),
    ])
    test_db.commit()
    return sample_sites


class TestPersistScores:
    """Tests for writing scores onto sites."""

    @pytest.mark.unit
    def test_writes_full_scoring_block(self, test_db, sample_sites):
        stamp = datetime(2024, 6, 1, 2, 0, 0)
        result = persist_scores(test_db, [_scores(s.id) for s in sample_sites], calculated_at=stamp)

        assert result.updated == 3
        assert result.failed_site_ids == []

        test_db.expire_all()
        for site in test_db.query(MonitoringSite).all():
            assert site.is_scored
            assert site.biodiversity_score == pytest.approx(0.7)
            assert site.last_calculated == stamp

    @pytest.mark.unit
    def test_failed_site_does_not_block_others(self):
        db = MagicMock()
        db.query.return_value.filter.return_value.update.side_effect = [
            1, SQLAlchemyError("lock timeout"), 1,
        ]

        result = persist_scores(db, [_scores(1), _scores(2), _scores(3)])

        assert result.updated == 2
        assert result.failed_site_ids == [2]
        db.rollback.assert_called_once()
        assert db.commit.call_count == 2


class TestCalculateAllSites:
    """Tests for the aggregate -> score -> persist step."""

    @pytest.mark.unit
    def test_scores_every_site(self, test_db, seeded_sources):
        updated = EHICalculator(test_db).calculate_all_sites()

        assert updated == 3
        test_db.expire_all()
        for site in test_db.query(MonitoringSite).all():
            assert site.last_calculated is not None
            sub_scores = {
                "biodiversity": site.biodiversity_score,
                "climate": site.climate_score,
                "human_pressure": site.human_pressure_score,
                "vegetation": site.vegetation_score,
            }
            expected = sum(sub_scores[k] * w for k, w in DEFAULT_WEIGHTS.items())
            assert site.composite_ehi == pytest.approx(expected)
            assert 0.0 <= site.composite_ehi <= 1.0

    @pytest.mark.unit
    def test_no_occurrence_data_is_neutral_biodiversity(self, test_db, seeded_sources):
        EHICalculator(test_db).calculate_all_sites()

        test_db.expire_all()
        for site in test_db.query(MonitoringSite).all():
            assert site.biodiversity_score == pytest.approx(0.5)

    @pytest.mark.unit
    def test_recompute_is_stable(self, test_db, seeded_sources):
        calculator = EHICalculator(test_db)
        calculator.calculate_all_sites()
        test_db.expire_all()
        first = {s.id: s.composite_ehi for s in test_db.query(MonitoringSite).all()}

        calculator.calculate_all_sites()
        test_db.expire_all()
        second = {s.id: s.composite_ehi for s in test_db.query(MonitoringSite).all()}

        assert first == pytest.approx(second)

    @pytest.mark.unit
    def test_partial_persist_failure_raises(self, test_db, sample_sites):
        failed = PersistResult(updated=2, failed_site_ids=[sample_sites[2].id])
        with patch("ehi_mapper.scoring.calculator.persist_scores", return_value=failed):
            with pytest.raises(ScorePersistenceError) as exc_info:
                EHICalculator(test_db).calculate_all_sites()

        assert exc_info.value.failed_site_ids == [sample_sites[2].id]
        assert exc_info.value.step == "score"


class TestCalculateEHI:
    """Tests for re-weighting persisted scores."""

    @pytest.mark.unit
    def test_unscored_sites_are_neutral(self, test_db, sample_sites):
        results = EHICalculator(test_db).calculate_ehi(DEFAULT_WEIGHTS)

        assert len(results) == 3
        for result in results:
            assert result["ehi_score"] == 0.5
            assert result["breakdown"] == {
                "biodiversity": 0.5,
                "climate": 0.5,
                "human_pressure": 0.5,
                "vegetation": 0.5,
            }

    @pytest.mark.unit
    def test_sorted_descending_and_in_range(self, test_db, seeded_sources):
        calculator = EHICalculator(test_db)
        calculator.calculate_all_sites()

        results = calculator.calculate_ehi(DEFAULT_WEIGHTS)
        scores = [r["ehi_score"] for r in results]

        assert scores == sorted(scores, reverse=True)
        assert all(0.0 <= s <= 1.0 for s in scores)
        # Low-pressure protected canyon beats the city
        assert results[0]["name"] == "Grand Canyon NP"
        assert results[-1]["name"] == "Phoenix Urban Preserve"

    @pytest.mark.unit
    def test_weights_change_composite(self, test_db, seeded_sources):
        calculator = EHICalculator(test_db)
        calculator.calculate_all_sites()

        vegetation_only = {"biodiversity": 0.0, "climate": 0.0, "human_pressure": 0.0, "vegetation": 1.0}
        results = calculator.calculate_ehi(vegetation_only)

        for result in results:
            assert result["ehi_score"] == result["breakdown"]["vegetation"]
        assert results[0]["name"] == "Phoenix Urban Preserve"

    @pytest.mark.unit
    def test_rejects_invalid_weights_before_querying(self):
        db = MagicMock()
        weights = {"biodiversity": 0.2, "climate": 0.2, "human_pressure": 0.2, "vegetation": 0.2}

        with pytest.raises(WeightValidationError):
            EHICalculator(db).calculate_ehi(weights)

        db.query.assert_not_called()

    @pytest.mark.unit
    def test_rejects_nan_weight_before_querying(self):
        db = MagicMock()
        weights = dict(DEFAULT_WEIGHTS, biodiversity=float("nan"))

        with pytest.raises(WeightValidationError, match="finite"):
            EHICalculator(db).calculate_ehi(weights)

        db.query.assert_not_called()

    @pytest.mark.unit
    def test_breakdown_matches_site_scores(self, test_db, seeded_sources):
        calculator = EHICalculator(test_db)
        calculator.calculate_all_sites()

        results = calculator.calculate_ehi(DEFAULT_WEIGHTS)

        for result in results:
            assert set(result["breakdown"]) == {
                "biodiversity", "climate", "human_pressure", "vegetation",
            }
            expected = sum(result["breakdown"][k] * w for k, w in DEFAULT_WEIGHTS.items())
            assert result["ehi_score"] == pytest.approx(expected, abs=0.002)

    @pytest.mark.unit
    def test_site_metadata(self, test_db, seeded_sources):
        results = EHICalculator(test_db).calculate_ehi(DEFAULT_WEIGHTS)
        by_name = {r["name"]: r["metadata"] for r in results}

        assert by_name["Grand Canyon NP"] == {
            "land_cover": "forest", "protected": True, "elevation": 2100,
        }
        assert by_name["Phoenix Urban Preserve"] == {
            "land_cover": "urban", "protected": False, "elevation": 331,
        }

    @pytest.mark.unit
    def test_site_metadata_without_land_cover(self, test_db, sample_sites):
        results = EHICalculator(test_db).calculate_ehi(DEFAULT_WEIGHTS)

        assert all(r["metadata"]["land_cover"] is None for r in results)

    @pytest.mark.unit
    def test_does_not_write(self, test_db, sample_sites):
        EHICalculator(test_db).calculate_ehi(DEFAULT_WEIGHTS)

        test_db.expire_all()
        assert all(not s.is_scored for s in test_db.query(MonitoringSite).all())


class TestListSiteScores:
    """Tests for the read-only site listing."""

    @pytest.mark.unit
    def test_dominant_land_cover(self, test_db, seeded_sources):
        phoenix, canyon, verde = seeded_sources
        dominant = EHICalculator(test_db).dominant_land_cover()

        assert dominant == {phoenix.id: "urban", canyon.id: "forest", verde.id: "wetland"}

    @pytest.mark.unit
    def test_filter_by_land_cover(self, test_db, seeded_sources):
        calculator = EHICalculator(test_db)

        assert len(calculator.list_site_scores()) == 3
        forest = calculator.list_site_scores(land_cover="FOREST")
        assert [s["name"] for s in forest] == ["Grand Canyon NP"]
        assert calculator.list_site_scores(land_cover="agriculture") == []

    @pytest.mark.unit
    def test_unscored_sites_report_none(self, test_db, sample_sites):
        sites = EHICalculator(test_db).list_site_scores()

        for site in sites:
            assert site["composite_ehi"] is None
            assert site["last_calculated"] is None
            assert site["scores"]["climate"] is None
