"""
Beat Forecast - Base Feature Builder

Shared lifecycle for stages that turn normalized records into a keyed feature
table. A subclass declares its features and entity key and implements
``build_features``; the base class summarizes every output column and checks
the declared bounds and key uniqueness.

Usage:
    class CrimeFeatureBuilder(BaseFeatureBuilder):
        def build_features(self, df: pd.DataFrame) -> pd.DataFrame:
            ...
        def get_feature_definitions(self) -> list[FeatureDefinition]:
            ...
"""

from __future__ import annotations

import logging
import time
from abc import ABC, abstractmethod
from dataclasses import dataclass, field
from typing import Any

import pandas as pd

from beat_forecast.shared.config import Settings, get_config
from beat_forecast.shared.errors import PipelineIssue

logger = logging.getLogger(__name__)


@dataclass
class FeatureDefinition:
    """Declared meaning and bounds of one output column."""

    name: str
    description: str
    dtype: str
    source_columns: list[str]
    aggregation: str | None = None  # count, sum, lag, ratio
    window_days: int | None = None
    nullable: bool = False
    min_value: float | None = None
    max_value: float | None = None


@dataclass
class FeatureBuildResult:
    """Outcome of one feature build."""

    dataset: str
    execution_date: str
    rows_input: int
    rows_output: int = 0
    duration_seconds: float = 0.0
    success: bool = True
    error_message: str | None = None
    feature_stats: dict[str, dict[str, Any]] = field(default_factory=dict)
    bound_violations: list[str] = field(default_factory=list)
    issues: list[PipelineIssue] = field(default_factory=list)

    def to_dict(self) -> dict[str, Any]:
        """Convert result to dictionary for logging."""
        return {
            "dataset": self.dataset,
            "execution_date": self.execution_date,
            "rows_input": self.rows_input,
            "rows_output": self.rows_output,
            "duration_seconds": self.duration_seconds,
            "success": self.success,
            "error_message": self.error_message,
            "feature_stats": self.feature_stats,
            "bound_violations": self.bound_violations,
            "issues": [issue.to_dict() for issue in self.issues],
        }


def summarize_column(series: pd.Series) -> dict[str, Any]:
    """Null rate plus either numeric moments or the distinct-value count."""
    stats: dict[str, Any] = {
        "dtype": str(series.dtype),
        "null_count": int(series.isna().sum()),
    }
    values = series.dropna()
    if pd.api.types.is_numeric_dtype(series) and not pd.api.types.is_bool_dtype(series):
        if len(values):
            stats.update(
                mean=float(values.mean()),
                std=float(values.std(ddof=0)),
                min=float(values.min()),
                max=float(values.max()),
            )
    else:
        stats["unique_count"] = int(values.nunique())
    return stats


class BaseFeatureBuilder(ABC):
    """
    Base class for feature building.

    Subclasses implement ``build_features``, ``get_dataset_name``,
    ``get_feature_definitions`` and ``get_entity_key``.
    """

    def __init__(self, config: Settings | None = None):
        self.config = config or get_config()
        self._data: pd.DataFrame | None = None
        self._issues: list[PipelineIssue] = []

    @abstractmethod
    def build_features(self, df: pd.DataFrame) -> pd.DataFrame:
        """Compute the feature table from normalized records."""

    @abstractmethod
    def get_dataset_name(self) -> str:
        pass

    @abstractmethod
    def get_feature_definitions(self) -> list[FeatureDefinition]:
        pass

    @abstractmethod
    def get_entity_key(self) -> list[str]:
        """Columns that identify one row of the output."""

    def run(self, df: pd.DataFrame, execution_date: str) -> FeatureBuildResult:
        """
        Build features and check them against their definitions.

        Build failures are reported on the result rather than raised. A
        duplicated entity key counts as a build failure.

        Args:
            df: Normalized records
            execution_date: Execution date in YYYY-MM-DD format

        Returns:
            FeatureBuildResult; the feature table is available via get_data()
        """
        start_time = time.time()
        dataset = self.get_dataset_name()
        result = FeatureBuildResult(dataset=dataset, execution_date=execution_date, rows_input=len(df))
        self._issues = []
        self._data = None

        logger.info(
            f"Building {dataset} features from {len(df)} records",
            extra={"dataset": dataset, "execution_date": execution_date},
        )

        try:
            features = self.build_features(df)
            key = self.get_entity_key()
            if features.duplicated(subset=key).any():
                raise ValueError(f"Entity key {key} is not unique in the built features")
        except Exception as e:
            result.success = False
            result.error_message = str(e)
            logger.error(
                f"Feature building failed for {dataset}: {e}",
                extra={"dataset": dataset, "error": str(e)},
                exc_info=True,
            )
        else:
            self._data = features
            result.rows_output = len(features)
            result.feature_stats = {col: summarize_column(features[col]) for col in features.columns}
            result.bound_violations = self.check_bounds(features)
            logger.info(
                f"Built {len(features)} {dataset} rows with {len(features.columns)} columns",
                extra={"dataset": dataset, "rows_output": len(features)},
            )

        result.issues = self._issues
        result.duration_seconds = time.time() - start_time
        return result

    def get_data(self) -> pd.DataFrame | None:
        """Get the most recently built features."""
        return self._data

    def check_bounds(self, df: pd.DataFrame) -> list[str]:
        """Declared nullability and range violations, logged as warnings."""
        violations = []
        for defn in self.get_feature_definitions():
            if defn.name not in df.columns:
                continue
            col = df[defn.name]
            if not defn.nullable and col.isna().any():
                violations.append(f"'{defn.name}' has missing values")
            if not pd.api.types.is_numeric_dtype(col):
                continue
            if defn.min_value is not None and (col < defn.min_value).any():
                violations.append(f"'{defn.name}' below {defn.min_value}")
            if defn.max_value is not None and (col > defn.max_value).any():
                violations.append(f"'{defn.name}' above {defn.max_value}")

        for violation in violations:
            logger.warning(f"Feature check: {violation}", extra={"dataset": self.get_dataset_name()})
        return violations
