"""
Beat Forecast - Error Taxonomy

Non-fatal data problems are recorded as ``PipelineIssue`` entries on the stage
result and logged; they never stop the run. Exceptions are reserved for the
few conditions a caller has to act on.

Usage:
    from beat_forecast.shared.errors import IssueType, PipelineIssue

    issue = PipelineIssue(
        type=IssueType.DUPLICATE_IDENTIFIER,
        stage="normalize",
        message="Removed 3 duplicate case numbers",
        count=3,
    )
"""

from __future__ import annotations

from dataclasses import dataclass, field
from enum import StrEnum
from typing import Any


class IssueType(StrEnum):
    """Kind of non-fatal problem found while building the panel or comparing models."""

    PARSE_ERROR = "parse_error"
    DUPLICATE_IDENTIFIER = "duplicate_identifier"
    UNMAPPED_CATEGORY = "unmapped_category"
    EMPTY_WINDOW = "empty_window"
    DEGENERATE_RATIO = "degenerate_ratio"
    CANDIDATE_FIT_FAILURE = "candidate_fit_failure"


@dataclass
class PipelineIssue:
    """A single reported, resolved data problem."""

    type: IssueType
    stage: str
    message: str
    count: int = 0
    details: dict[str, Any] = field(default_factory=dict)

    def to_dict(self) -> dict[str, Any]:
        """Convert issue to dictionary for logging."""
        return {
            "type": self.type.value,
            "stage": self.stage,
            "message": self.message,
            "count": self.count,
            "details": self.details,
        }


class ConfigurationError(ValueError):
    """Configuration or mapping table failed validation at load time."""


class InvalidTimestamp(ValueError):
    """A timestamp value could not be parsed at all."""

    def __init__(self, value: Any):
        self.value = value
        super().__init__(f"Unparseable timestamp: {value!r}")


class CandidateFitFailure(RuntimeError):
    """A regression candidate could not be fit or cross-validated."""

    def __init__(self, candidate: str, reason: str):
        self.candidate = candidate
        self.reason = reason
        super().__init__(f"Candidate '{candidate}' failed: {reason}")


class NoCandidateSucceeded(RuntimeError):
    """Every candidate in a model comparison failed."""

    def __init__(self, failures: dict[str, str]):
        self.failures = failures
        names = ", ".join(sorted(failures)) or "none configured"
        super().__init__(f"No regression candidate succeeded ({names})")
