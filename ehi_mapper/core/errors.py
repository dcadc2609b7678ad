"""
Error classification for the EHI pipeline.

Each error type says whether the operation may be retried and which
pipeline step it came from, so failures can be logged and mapped to
request-layer responses uniformly.
"""

from typing import Any, Dict, List, Optional


class EHIError(Exception):
    """
    Base exception for all pipeline and scoring errors.

    Attributes:
        message: Human-readable error description
        step: Pipeline step the error belongs to (e.g. 'gbif', 'score')
        retryable: Whether the operation may succeed if attempted again
    """

    def __init__(
        self,
        message: str,
        step: Optional[str] = None,
        retryable: bool = False,
    ):
        super().__init__(message)
        self.message = message
        self.step = step
        self.retryable = retryable

    def __str__(self) -> str:
        if self.step:
            return f"[{self.step}] {self.message}"
        return self.message

    def to_dict(self) -> Dict[str, Any]:
        """Convert error to dictionary for logging/serialization."""
        return {
            "error_type": self.__class__.__name__,
            "message": self.message,
            "step": self.step,
            "retryable": self.retryable,
        }


class StoreUnavailableError(EHIError):
    """The data store could not be reached after all startup retries."""

    def __init__(self, message: str, attempts: Optional[int] = None):
        super().__init__(message=message, step="connect", retryable=True)
        self.attempts = attempts


class WeightValidationError(EHIError):
    """Caller-supplied weights are missing, non-finite, negative or do not sum to 1.0."""

    def __init__(self, message: str, total: Optional[float] = None):
        super().__init__(message=message, step="validate")
        self.total = total

    def to_dict(self) -> Dict[str, Any]:
        data = super().to_dict()
        data["total"] = self.total
        return data


class IngestionWriteError(EHIError):
    """
    A source table replacement failed part way.

    The table is left in its partial state; the next run's delete-all
    clears it.
    """

    def __init__(
        self,
        message: str,
        source: str,
        rows_written: int = 0,
        cause: Optional[BaseException] = None,
    ):
        super().__init__(message=message, step=source)
        self.source = source
        self.rows_written = rows_written
        self.cause = cause

    def to_dict(self) -> Dict[str, Any]:
        data = super().to_dict()
        data["rows_written"] = self.rows_written
        return data


class ScorePersistenceError(EHIError):
    """One or more site score updates failed; the rest were applied."""

    def __init__(self, message: str, failed_site_ids: List[int]):
        super().__init__(message=message, step="score")
        self.failed_site_ids = failed_site_ids

    def to_dict(self) -> Dict[str, Any]:
        data = super().to_dict()
        data["failed_site_ids"] = self.failed_site_ids
        return data


class PipelineAlreadyRunningError(EHIError):
    """A run was requested while another one holds the run lock."""

    def __init__(self, message: str = "Pipeline is already running"):
        super().__init__(message=message, retryable=True)


class UnknownSourceError(EHIError):
    """Single-source ingestion named a source with no registered ingestor."""

    def __init__(self, name: str, valid: List[str]):
        super().__init__(
            message=f"Unknown source '{name}'. Valid sources: {', '.join(valid)}",
            step="ingest",
        )
        self.name = name
        self.valid = valid


class PipelineStepError(EHIError):
    """A pipeline step failed; wraps the underlying error with the step name."""

    def __init__(self, step: str, cause: BaseException):
        super().__init__(
            message=f"Pipeline step '{step}' failed: {cause}",
            step=step,
            retryable=getattr(cause, "retryable", False),
        )
        self.cause = cause

    def to_dict(self) -> Dict[str, Any]:
        data = super().to_dict()
        data["cause"] = (
            self.cause.to_dict()
            if isinstance(self.cause, EHIError)
            else {"error_type": type(self.cause).__name__, "message": str(self.cause)}
        )
        return data
