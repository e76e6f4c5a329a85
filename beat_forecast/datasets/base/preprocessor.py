"""
Beat Forecast - Base Preprocessor

Shared lifecycle for record-level normalization stages. A subclass declares
how raw feed columns are renamed and typed and implements ``transform``; the
base class runs the steps in order, accounts for every excluded row by reason,
and collects the resolved data problems as PipelineIssue entries.

Usage:
    class CrimePreprocessor(BasePreprocessor):
        def transform(self, df: pd.DataFrame) -> pd.DataFrame:
            ...
        def get_column_mappings(self) -> dict[str, str]:
            return {"Case Number": "case_number"}
"""

from __future__ import annotations

import logging
import time
from abc import ABC, abstractmethod
from dataclasses import dataclass, field
from typing import Any

import pandas as pd

from beat_forecast.shared.config import Settings, get_config
from beat_forecast.shared.errors import IssueType, PipelineIssue

logger = logging.getLogger(__name__)

# Target dtype name -> converter applied to a raw column
CONVERTERS = {
    "string": lambda s: s.astype("string").str.strip(),
    "float": lambda s: pd.to_numeric(s, errors="coerce"),
    "int": lambda s: pd.to_numeric(s, errors="coerce").astype("Int64"),
}


@dataclass
class PreprocessingResult:
    """Row accounting and issues from one normalization run."""

    dataset: str
    execution_date: str
    rows_input: int
    rows_output: int
    duration_seconds: float = 0.0
    success: bool = True
    error_message: str | None = None
    steps: list[str] = field(default_factory=list)
    excluded: dict[str, int] = field(default_factory=dict)
    issues: list[PipelineIssue] = field(default_factory=list)

    @property
    def rows_dropped(self) -> int:
        return self.rows_input - self.rows_output

    def to_dict(self) -> dict[str, Any]:
        """Convert result to dictionary for logging."""
        return {
            "dataset": self.dataset,
            "execution_date": self.execution_date,
            "rows_input": self.rows_input,
            "rows_output": self.rows_output,
            "rows_dropped": self.rows_dropped,
            "duration_seconds": self.duration_seconds,
            "success": self.success,
            "error_message": self.error_message,
            "steps": self.steps,
            "excluded": self.excluded,
            "issues": [issue.to_dict() for issue in self.issues],
        }


class BasePreprocessor(ABC):
    """
    Base class for record-level normalization.

    Subclasses implement ``transform``, ``get_dataset_name`` and
    ``get_required_columns``, and may override the column and dtype maps.
    """

    def __init__(self, config: Settings | None = None):
        """
        Initialize the preprocessor.

        Args:
            config: Configuration object (uses default if not provided)
        """
        self.config = config or get_config()
        self._data: pd.DataFrame | None = None
        self._reset()

    @abstractmethod
    def transform(self, df: pd.DataFrame) -> pd.DataFrame:
        """Dataset-specific normalization of renamed, typed records."""

    @abstractmethod
    def get_dataset_name(self) -> str:
        pass

    @abstractmethod
    def get_required_columns(self) -> list[str]:
        """Columns every output record must carry."""

    def get_column_mappings(self) -> dict[str, str]:
        return {}

    def get_dtype_mappings(self) -> dict[str, str]:
        return {}

    def run(self, df: pd.DataFrame, execution_date: str) -> PreprocessingResult:
        """
        Normalize a raw snapshot.

        Failures are caught and reported on the result rather than raised, so
        the caller decides whether the run continues.

        Args:
            df: Raw records in feed format
            execution_date: Execution date in YYYY-MM-DD format

        Returns:
            PreprocessingResult; the normalized frame is available via get_data()
        """
        start_time = time.time()
        dataset = self.get_dataset_name()
        self._reset()
        self._data = None

        logger.info(
            f"Normalizing {len(df)} {dataset} records",
            extra={"dataset": dataset, "execution_date": execution_date, "rows_input": len(df)},
        )

        result = PreprocessingResult(
            dataset=dataset, execution_date=execution_date, rows_input=len(df), rows_output=0
        )
        try:
            out = df.rename(columns=self.get_column_mappings())
            out = self._convert_dtypes(out)
            out = self.transform(out)
            missing = set(self.get_required_columns()) - set(out.columns)
            if missing:
                raise ValueError(f"Missing required columns: {sorted(missing)}")
        except Exception as e:
            result.success = False
            result.error_message = str(e)
            logger.error(
                f"Normalization failed for {dataset}: {e}",
                extra={"dataset": dataset, "error": str(e)},
                exc_info=True,
            )
        else:
            self._data = out
            result.rows_output = len(out)
            logger.info(
                f"Normalized {dataset}: {result.rows_input} -> {result.rows_output} records",
                extra={"dataset": dataset, "excluded": self._excluded},
            )

        result.steps = self._steps
        result.excluded = self._excluded
        result.issues = self._issues
        result.duration_seconds = time.time() - start_time
        return result

    def get_data(self) -> pd.DataFrame | None:
        """Get the most recently normalized records."""
        return self._data

    def _reset(self) -> None:
        self._steps: list[str] = []
        self._excluded: dict[str, int] = {}
        self._issues: list[PipelineIssue] = []

    def _convert_dtypes(self, df: pd.DataFrame) -> pd.DataFrame:
        for col, dtype in self.get_dtype_mappings().items():
            if col not in df.columns:
                continue
            try:
                df[col] = CONVERTERS[dtype](df[col])
            except (ValueError, TypeError) as e:
                logger.warning(f"Could not convert {col} to {dtype}: {e}", extra={"column": col})
        return df

    # ==========================================================================
    # Helpers for subclasses
    # ==========================================================================

    def log_step(self, name: str) -> None:
        self._steps.append(name)

    def note_excluded(self, reason: str, count: int) -> None:
        self._excluded[reason] = self._excluded.get(reason, 0) + count

    def record_issue(self, issue_type: IssueType, message: str, count: int = 0, **details: Any) -> None:
        """Record a non-fatal, resolved data problem and log it as a warning."""
        issue = PipelineIssue(
            type=issue_type,
            stage=self.get_dataset_name(),
            message=message,
            count=count,
            details=details,
        )
        self._issues.append(issue)
        logger.warning(message, extra={"issue_type": issue_type.value, "stage": issue.stage, "count": count})

    def exclude_rows(
        self,
        df: pd.DataFrame,
        mask: pd.Series,
        reason: str,
        message: str,
        issue_type: IssueType = IssueType.PARSE_ERROR,
    ) -> pd.DataFrame:
        """
        Drop rows where ``mask`` is true and account for them.

        ``message`` may contain ``{count}``.
        """
        count = int(mask.sum())
        if count == 0:
            return df
        self.note_excluded(reason, count)
        self.record_issue(issue_type, message.format(count=count), count=count, reason=reason)
        return df[~mask].copy()

    def drop_duplicates(self, df: pd.DataFrame, subset: list[str], keep: str = "first") -> pd.DataFrame:
        """Keep one record per ``subset`` key, the first seen in input order by default."""
        duplicated = df.duplicated(subset=subset, keep=keep)
        return self.exclude_rows(
            df,
            duplicated,
            "duplicates",
            f"Removed {{count}} duplicate records by {subset} (kept {keep} occurrence)",
            issue_type=IssueType.DUPLICATE_IDENTIFIER,
        )
