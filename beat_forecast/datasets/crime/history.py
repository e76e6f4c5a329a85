"""
Beat Forecast - Rolling Crime History Features

Computes backward-looking crime and arrest history for every beat-day cell of
the complete grid.

On day d of a beat's series:
    past_crime_1   = count[d-1]
    past_crime_k   = count[d-k] + ... + count[d-1]
    past_arrest_k  = arrest[d-k] + ... + arrest[d-1]
Windows are measured in calendar days; a date absent from the grid counts as
zero. The current day never contributes to its own history.

The grid is partitioned once into contiguous per-beat row ranges and each
range is processed by a pure function, so beats can be handled in parallel.
Windows that cannot be computed at the start of a series are imputed with the
column's global mean; the policing and trend ratios are derived afterwards.

Usage:
    from beat_forecast.datasets.crime.history import HistoryFeatureEngine

    engine = HistoryFeatureEngine(config)
    result = engine.compute(grid)
    panel = result.panel
"""

from __future__ import annotations

import logging
from dataclasses import dataclass, field

import numpy as np
import pandas as pd
from joblib import Parallel, delayed

from beat_forecast.shared.config import HistoryConfig, Settings, get_config
from beat_forecast.shared.errors import IssueType, PipelineIssue

logger = logging.getLogger(__name__)


@dataclass
class HistoryResult:
    """Panel with history features plus an account of what was imputed."""

    panel: pd.DataFrame
    feature_columns: list[str]
    undefined_counts: dict[str, int] = field(default_factory=dict)
    imputation_values: dict[str, float] = field(default_factory=dict)
    degenerate_ratio_counts: dict[str, int] = field(default_factory=dict)
    issues: list[PipelineIssue] = field(default_factory=list)


def entity_slices(entities: np.ndarray) -> list[tuple[int, int]]:
    """
    Contiguous [start, end) row ranges of equal entity values.

    ``entities`` must already be sorted so that each entity's rows are adjacent.
    """
    n = len(entities)
    if n == 0:
        return []
    boundaries = np.flatnonzero(entities[1:] != entities[:-1]) + 1
    starts = np.concatenate([[0], boundaries])
    ends = np.concatenate([boundaries, [n]])
    return [(int(s), int(e)) for s, e in zip(starts, ends)]


def trailing_sum(
    values: np.ndarray,
    window: int,
    require_full_window: bool = False,
    days: np.ndarray | None = None,
) -> np.ndarray:
    """
    Sum of the values dated in the ``window`` calendar days before each row.

    ``days`` holds each row's date as an ascending integer day number; when
    omitted, rows are taken to be consecutive days. Days missing from the
    series contribute zero.

    Rows whose window lies entirely before the first day of the series are
    NaN. With ``require_full_window``, rows whose window is only partly inside
    the series are NaN as well.
    """
    n = len(values)
    if days is None:
        days = np.arange(n)
    days = np.asarray(days, dtype=np.int64)

    cumulative = np.concatenate([[0.0], np.cumsum(values, dtype=float)])
    upper = np.searchsorted(days, days, side="left")
    lower = np.searchsorted(days, days - window, side="left")
    sums = cumulative[upper] - cumulative[lower]

    if n:
        reach = window if require_full_window else 1
        sums[days - reach < days[0]] = np.nan
    return sums


def _slice_history(
    counts: np.ndarray,
    arrests: np.ndarray,
    days: np.ndarray,
    crime_windows: list[int],
    arrest_window: int,
    require_full_window: bool,
) -> dict[str, np.ndarray]:
    """History features for one beat's date-ordered series."""
    features = {
        f"past_crime_{w}": trailing_sum(counts, w, require_full_window, days) for w in crime_windows
    }
    features[f"past_arrest_{arrest_window}"] = trailing_sum(
        arrests, arrest_window, require_full_window, days
    )
    return features


def safe_ratio(numerator: np.ndarray, denominator: np.ndarray) -> np.ndarray:
    """Elementwise ratio that is 0 wherever the denominator is 0."""
    out = np.zeros(len(numerator), dtype=float)
    np.divide(numerator, denominator, out=out, where=denominator != 0)
    return out


class HistoryFeatureEngine:
    """Rolling crime/arrest history and derived ratios over the beat-day grid."""

    def __init__(self, config: Settings | None = None):
        """
        Initialize the engine.

        Args:
            config: Configuration object (uses default if not provided)
        """
        self.config = config or get_config()
        self.history: HistoryConfig = self.config.history

    @property
    def window_columns(self) -> list[str]:
        """Rolling-sum columns, in output order."""
        cols = [f"past_crime_{w}" for w in self.history.crime_windows]
        cols.append(f"past_arrest_{self.history.arrest_window}")
        return cols

    @property
    def ratio_columns(self) -> list[str]:
        return ["policing", "crime_trend"]

    @property
    def feature_columns(self) -> list[str]:
        return self.window_columns + self.ratio_columns

    def compute(self, grid: pd.DataFrame) -> HistoryResult:
        """
        Add history features to a complete beat-day grid.

        Args:
            grid: Output of ``build_beat_day_grid`` (one row per beat and date)

        Returns:
            HistoryResult whose panel has no missing history values
        """
        entity_col = self.history.entity_col
        panel = grid.sort_values([entity_col, "date"]).reset_index(drop=True)
        issues: list[PipelineIssue] = []

        if panel.empty:
            for col in self.feature_columns:
                panel[col] = pd.Series(dtype=float)
            return HistoryResult(panel=panel, feature_columns=self.feature_columns)

        self._warn_on_date_gaps(panel)

        slices = entity_slices(panel[entity_col].to_numpy())
        counts = panel["count"].to_numpy(dtype=float)
        arrests = panel["arrest"].to_numpy(dtype=float)
        days = panel["date"].to_numpy().astype("datetime64[D]").astype(np.int64)

        args = (
            self.history.crime_windows,
            self.history.arrest_window,
            self.history.require_full_window,
        )
        if self.history.n_jobs == 1:
            per_slice = [_slice_history(counts[s:e], arrests[s:e], days[s:e], *args) for s, e in slices]
        else:
            per_slice = Parallel(n_jobs=self.history.n_jobs)(
                delayed(_slice_history)(counts[s:e], arrests[s:e], days[s:e], *args) for s, e in slices
            )

        undefined_counts: dict[str, int] = {}
        imputation_values: dict[str, float] = {}

        for col in self.window_columns:
            values = np.concatenate([features[col] for features in per_slice])
            undefined = np.isnan(values)
            n_undefined = int(undefined.sum())

            if undefined.all():
                fill_value = 0.0
                logger.warning(f"No defined values for {col}; filling with 0")
            else:
                fill_value = float(values[~undefined].mean())

            values[undefined] = fill_value
            panel[col] = values
            undefined_counts[col] = n_undefined
            imputation_values[col] = fill_value

        total_undefined = sum(undefined_counts.values())
        if total_undefined > 0:
            issues.append(
                PipelineIssue(
                    type=IssueType.EMPTY_WINDOW,
                    stage="history",
                    message=f"Imputed {total_undefined} undefined history values with global means",
                    count=total_undefined,
                    details={"per_column": undefined_counts, "fill_values": imputation_values},
                )
            )

        long_col = f"past_crime_{self.history.arrest_window}"
        denominator = panel[long_col].to_numpy()
        degenerate = int((denominator == 0).sum())

        panel["policing"] = safe_ratio(
            panel[f"past_arrest_{self.history.arrest_window}"].to_numpy(), denominator
        )
        panel["crime_trend"] = safe_ratio(
            panel[f"past_crime_{self.history.trend_window}"].to_numpy(), denominator
        )

        degenerate_counts = {"policing": degenerate, "crime_trend": degenerate}
        if degenerate > 0:
            issues.append(
                PipelineIssue(
                    type=IssueType.DEGENERATE_RATIO,
                    stage="history",
                    message=f"{degenerate} cells had {long_col} == 0; ratios set to 0",
                    count=degenerate,
                    details={"denominator": long_col},
                )
            )

        for issue in issues:
            logger.warning(issue.message, extra={"issue_type": issue.type.value, "count": issue.count})

        logger.info(
            f"Computed history features for {len(slices)} beats",
            extra={"beats": len(slices), "cells": len(panel)},
        )

        return HistoryResult(
            panel=panel,
            feature_columns=self.feature_columns,
            undefined_counts=undefined_counts,
            imputation_values=imputation_values,
            degenerate_ratio_counts=degenerate_counts,
            issues=issues,
        )

    def _warn_on_date_gaps(self, panel: pd.DataFrame) -> None:
        """Dates absent from the grid are counted as zero-incident days."""
        dates = pd.Series(panel["date"].unique()).sort_values()
        if len(dates) < 2:
            return
        gaps = int((dates.diff().dropna() != pd.Timedelta(days=1)).sum())
        if gaps > 0:
            logger.warning(
                f"Observed dates have {gaps} gaps; missing days count as zero incidents",
                extra={"gaps": gaps},
            )
