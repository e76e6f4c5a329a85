"""
Beat Forecast - Pipeline

Runs the stages end to end on one incident snapshot:

    normalize -> enrich -> grid -> history -> validate -> split -> compare

Every stage's non-fatal issues are collected on the PipelineResult. A stage
that fails outright ends the run with ``success=False``; a model comparison in
which every candidate fails raises NoCandidateSucceeded.

Usage:
    from beat_forecast.pipeline import run_pipeline

    result = run_pipeline(raw_df, config)
    print(result.comparison.ranking)
"""

from __future__ import annotations

import logging
import time
from dataclasses import dataclass, field
from datetime import UTC, datetime
from typing import Any

import pandas as pd

from beat_forecast.datasets.base import FeatureBuildResult, PreprocessingResult
from beat_forecast.datasets.crime.features import CrimeFeatureBuilder, build_incident_summary
from beat_forecast.datasets.crime.preprocess import CrimePreprocessor
from beat_forecast.modeling.harness import ComparisonResult, ModelComparisonHarness
from beat_forecast.modeling.splitter import DatasetSplitter, PanelSplit
from beat_forecast.shared.config import Settings, get_config
from beat_forecast.shared.errors import PipelineIssue
from beat_forecast.validation.panel_checks import PanelValidationResult, validate_panel

logger = logging.getLogger(__name__)


@dataclass
class PipelineResult:
    """Everything produced by one pipeline run."""

    execution_date: str
    success: bool = True
    error_message: str | None = None
    preprocessing: PreprocessingResult | None = None
    features: FeatureBuildResult | None = None
    validation: PanelValidationResult | None = None
    incidents: pd.DataFrame | None = None
    summary: pd.DataFrame | None = None
    panel: pd.DataFrame | None = None
    split: PanelSplit | None = None
    comparison: ComparisonResult | None = None
    issues: list[PipelineIssue] = field(default_factory=list)
    duration_seconds: float = 0.0

    def issue_counts(self) -> dict[str, int]:
        """Total affected records per issue type."""
        counts: dict[str, int] = {}
        for issue in self.issues:
            counts[issue.type.value] = counts.get(issue.type.value, 0) + issue.count
        return counts

    def to_dict(self) -> dict[str, Any]:
        """Convert result to dictionary for logging."""
        return {
            "execution_date": self.execution_date,
            "success": self.success,
            "error_message": self.error_message,
            "preprocessing": self.preprocessing.to_dict() if self.preprocessing else None,
            "panel_rows": len(self.panel) if self.panel is not None else 0,
            "validation": self.validation.to_dict() if self.validation else None,
            "split": self.split.summary() if self.split else None,
            "comparison": self.comparison.to_dict() if self.comparison else None,
            "issue_counts": self.issue_counts(),
            "duration_seconds": self.duration_seconds,
        }


def build_panel(
    raw_df: pd.DataFrame,
    config: Settings | None = None,
    execution_date: str | None = None,
) -> PipelineResult:
    """
    Run the data stages only: normalize, enrich, grid, history and validate.

    Args:
        raw_df: Raw incident records in feed format
        config: Configuration object (uses default if not provided)
        execution_date: Run date in YYYY-MM-DD format (defaults to today)

    Returns:
        PipelineResult with incidents, summary and panel populated
    """
    config = config or get_config()
    execution_date = execution_date or datetime.now(UTC).strftime("%Y-%m-%d")
    start_time = time.time()
    result = PipelineResult(execution_date=execution_date)

    preprocessor = CrimePreprocessor(config)
    result.preprocessing = preprocessor.run(raw_df, execution_date)
    result.issues.extend(result.preprocessing.issues)
    if not result.preprocessing.success:
        return _fail(result, f"Preprocessing failed: {result.preprocessing.error_message}", start_time)

    _check_duplicate_ratio(result.preprocessing, config.validation.quality.max_duplicate_ratio)
    result.incidents = preprocessor.get_data()
    result.summary = build_incident_summary(result.incidents)

    builder = CrimeFeatureBuilder(config)
    result.features = builder.run(result.incidents, execution_date)
    result.issues.extend(result.features.issues)
    if not result.features.success:
        return _fail(result, f"Feature building failed: {result.features.error_message}", start_time)

    result.panel = builder.get_data()
    result.validation = validate_panel(result.panel, config)
    if not result.validation.is_valid:
        return _fail(result, f"Panel validation failed: {result.validation.errors}", start_time)

    result.duration_seconds = time.time() - start_time
    return result


def run_pipeline(
    raw_df: pd.DataFrame,
    config: Settings | None = None,
    execution_date: str | None = None,
) -> PipelineResult:
    """
    Run every stage, from raw incidents to the model comparison.

    Args:
        raw_df: Raw incident records in feed format
        config: Configuration object (uses default if not provided)
        execution_date: Run date in YYYY-MM-DD format (defaults to today)

    Returns:
        PipelineResult

    Raises:
        NoCandidateSucceeded: If every regression candidate failed
    """
    config = config or get_config()
    start_time = time.time()

    logger.info(
        f"Starting pipeline on {len(raw_df)} raw records",
        extra={"environment": config.environment, "rows_input": len(raw_df)},
    )

    result = build_panel(raw_df, config, execution_date)
    if not result.success:
        return result

    try:
        result.split = DatasetSplitter(config).split(result.panel)
    except ValueError as e:
        return _fail(result, f"Split failed: {e}", start_time)

    result.comparison = ModelComparisonHarness(config).run(result.split)
    result.issues.extend(result.comparison.issues)
    result.duration_seconds = time.time() - start_time

    logger.info(
        f"Pipeline complete: best candidate {result.comparison.best_candidate}",
        extra={"issue_counts": result.issue_counts(), "duration_seconds": result.duration_seconds},
    )
    return result


def _fail(result: PipelineResult, message: str, start_time: float) -> PipelineResult:
    logger.error(message, extra={"execution_date": result.execution_date})
    result.success = False
    result.error_message = message
    result.duration_seconds = time.time() - start_time
    return result


def _check_duplicate_ratio(preprocessing: PreprocessingResult, threshold: float) -> None:
    if preprocessing.rows_input == 0:
        return
    ratio = preprocessing.excluded.get("duplicates", 0) / preprocessing.rows_input
    if ratio > threshold:
        logger.warning(
            f"Duplicate case numbers made up {ratio:.1%} of the snapshot (threshold {threshold:.1%})",
            extra={"duplicate_ratio": ratio, "threshold": threshold},
        )
