"""
Beat Forecast - Panel Checks

Structural checks on the beat-day panel before it is split and modeled:
- Required columns are present
- (beat, date) is unique
- The panel is the complete beat x date cross product
- Counts are non-negative
- Model features have no missing values
- The panel meets the minimum row count

Usage:
    result = validate_panel(panel, config)
    if not result.is_valid:
        logger.error(result.errors)
"""

from __future__ import annotations

import logging
from dataclasses import dataclass, field
from enum import StrEnum

import pandas as pd

from beat_forecast.shared.config import Settings, get_config

logger = logging.getLogger(__name__)

BASE_COLUMNS = ["count", "arrest", "weekday", "month", "season"]


class CheckLevel(StrEnum):
    """Severity of a failed panel check."""

    WARNING = "warning"
    ERROR = "error"


@dataclass
class PanelCheck:
    """Outcome of a single failed check."""

    level: CheckLevel
    check: str
    message: str
    column: str | None = None
    count: int | None = None


@dataclass
class PanelValidationResult:
    """Result of panel validation."""

    is_valid: bool
    checks: list[PanelCheck] = field(default_factory=list)
    row_count: int = 0
    beat_count: int = 0
    date_count: int = 0

    @property
    def errors(self) -> list[str]:
        return [c.message for c in self.checks if c.level == CheckLevel.ERROR]

    @property
    def warnings(self) -> list[str]:
        return [c.message for c in self.checks if c.level == CheckLevel.WARNING]

    def to_dict(self) -> dict[str, object]:
        """Convert result to dictionary for logging."""
        return {
            "is_valid": self.is_valid,
            "row_count": self.row_count,
            "beat_count": self.beat_count,
            "date_count": self.date_count,
            "errors": self.errors,
            "warnings": self.warnings,
        }


def required_columns(config: Settings) -> list[str]:
    history = config.history
    return (
        [history.entity_col, "date"]
        + BASE_COLUMNS
        + [f"past_crime_{w}" for w in history.crime_windows]
        + [f"past_arrest_{history.arrest_window}", "policing", "crime_trend"]
    )


def validate_panel(panel: pd.DataFrame, config: Settings | None = None) -> PanelValidationResult:
    """
    Run every structural check on a beat-day panel.

    Args:
        panel: Output of CrimeFeatureBuilder
        config: Configuration object (uses default if not provided)

    Returns:
        PanelValidationResult; ``is_valid`` is False when any error-level check fails
    """
    config = config or get_config()
    entity_col = config.history.entity_col
    checks: list[PanelCheck] = []

    missing = [c for c in required_columns(config) if c not in panel.columns]
    if missing:
        checks.append(
            PanelCheck(
                level=CheckLevel.ERROR,
                check="required_columns",
                message=f"Panel is missing columns: {missing}",
                count=len(missing),
            )
        )
        return _finish(panel, checks, entity_col)

    duplicates = int(panel.duplicated(subset=[entity_col, "date"]).sum())
    if duplicates:
        checks.append(
            PanelCheck(
                level=CheckLevel.ERROR,
                check="unique_key",
                message=f"{duplicates} duplicate ({entity_col}, date) rows",
                count=duplicates,
            )
        )

    n_beats = panel[entity_col].nunique()
    n_dates = panel["date"].nunique()
    expected = n_beats * n_dates
    if len(panel) != expected:
        checks.append(
            PanelCheck(
                level=CheckLevel.ERROR,
                check="complete_grid",
                message=f"Panel has {len(panel)} rows, expected {n_beats} beats x {n_dates} dates = {expected}",
                count=abs(len(panel) - expected),
            )
        )

    for col in ["count", "arrest"]:
        negative = int((panel[col] < 0).sum())
        if negative:
            checks.append(
                PanelCheck(
                    level=CheckLevel.ERROR,
                    check="non_negative",
                    message=f"Column '{col}' has {negative} negative values",
                    column=col,
                    count=negative,
                )
            )

    for col in required_columns(config):
        nulls = int(panel[col].isna().sum())
        if nulls:
            checks.append(
                PanelCheck(
                    level=CheckLevel.ERROR,
                    check="no_missing",
                    message=f"Column '{col}' has {nulls} missing values",
                    column=col,
                    count=nulls,
                )
            )

    min_rows = config.validation.quality.min_row_count
    if len(panel) < min_rows:
        checks.append(
            PanelCheck(
                level=CheckLevel.WARNING,
                check="min_row_count",
                message=f"Panel has {len(panel)} rows, below minimum {min_rows}",
                count=len(panel),
            )
        )

    return _finish(panel, checks, entity_col)


def _finish(panel: pd.DataFrame, checks: list[PanelCheck], entity_col: str) -> PanelValidationResult:
    result = PanelValidationResult(
        is_valid=not any(c.level == CheckLevel.ERROR for c in checks),
        checks=checks,
        row_count=len(panel),
        beat_count=int(panel[entity_col].nunique()) if entity_col in panel.columns else 0,
        date_count=int(panel["date"].nunique()) if "date" in panel.columns else 0,
    )

    for check in checks:
        log = logger.error if check.level == CheckLevel.ERROR else logger.warning
        log(check.message, extra={"check": check.check, "column": check.column})

    if result.is_valid:
        logger.info(
            f"Panel validated: {result.row_count} rows "
            f"({result.beat_count} beats x {result.date_count} dates)"
        )
    return result
