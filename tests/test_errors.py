"""
Unit tests for the pipeline error hierarchy.
"""
import pytest

from ehi_mapper.core.errors import (
    EHIError,
    IngestionWriteError,
    PipelineAlreadyRunningError,
    PipelineStepError,
    UnknownSourceError,
    WeightValidationError,
)


@pytest.mark.unit
def test_error_str_includes_step():
    err = EHIError("disk full", step="climate")
    assert str(err) == "[climate] disk full"
    assert str(EHIError("plain")) == "plain"


@pytest.mark.unit
def test_weight_error_to_dict():
    err = WeightValidationError("Weights must sum to 1.0", total=0.8)
    data = err.to_dict()

    assert data["error_type"] == "WeightValidationError"
    assert data["step"] == "validate"
    assert data["total"] == 0.8
    assert data["retryable"] is False


@pytest.mark.unit
def test_ingestion_write_error_carries_partial_count():
    cause = RuntimeError("constraint violated")
    err = IngestionWriteError("insert failed", source="gbif", rows_written=50, cause=cause)

    assert err.step == "gbif"
    assert err.to_dict()["rows_written"] == 50
    assert err.cause is cause


@pytest.mark.unit
def test_unknown_source_lists_valid_names():
    err = UnknownSourceError("ndvi", ["gbif", "climate"])
    assert "ndvi" in err.message
    assert "gbif, climate" in err.message


@pytest.mark.unit
def test_step_error_wraps_cause():
    cause = IngestionWriteError("insert failed", source="landcover", rows_written=2)
    err = PipelineStepError("landcover", cause)

    assert err.step == "landcover"
    assert err.cause is cause
    assert err.to_dict()["cause"]["rows_written"] == 2

    plain = PipelineStepError("score", ValueError("nan"))
    assert plain.to_dict()["cause"] == {"error_type": "ValueError", "message": "nan"}


@pytest.mark.unit
def test_already_running_is_retryable():
    err = PipelineAlreadyRunningError()
    assert err.retryable is True
    assert err.message == "Pipeline is already running"
