"""
Beat Forecast - Crime Panel Feature Builder

Turns enriched incidents into the beat-day modeling panel.

Features:
    - Daily incident and arrest counts on the complete beat x date grid
    - Calendar context (weekday, month, season)
    - Rolling crime history (1, 7 and 30 days) and 30-day arrest history
    - Policing intensity and crime trend ratios

Usage:
    from beat_forecast.datasets.crime.features import CrimeFeatureBuilder

    builder = CrimeFeatureBuilder()
    result = builder.run(incidents, execution_date="2024-12-31")
    panel = builder.get_data()
"""

from __future__ import annotations

import logging
from typing import Any

import pandas as pd

from beat_forecast.datasets.base import BaseFeatureBuilder, FeatureDefinition
from beat_forecast.datasets.crime.grid import build_beat_day_grid
from beat_forecast.datasets.crime.history import HistoryFeatureEngine, HistoryResult
from beat_forecast.shared.config import Settings

logger = logging.getLogger(__name__)

# Stable table handed to map/heatmap rendering
SUMMARY_KEYS = [
    "beat",
    "date",
    "crime_category",
    "arrest",
    "latitude",
    "longitude",
    "time_bucket",
    "weekday",
    "month",
]


class CrimeFeatureBuilder(BaseFeatureBuilder):
    """
    Feature builder for the beat-day crime panel.

    Output has one row per (beat, date) for every observed beat and date.
    """

    def __init__(self, config: Settings | None = None):
        """Initialize crime feature builder."""
        super().__init__(config)
        self.engine = HistoryFeatureEngine(self.config)
        self.last_history: HistoryResult | None = None

    def get_dataset_name(self) -> str:
        """Return dataset name."""
        return "crime"

    def get_entity_key(self) -> list[str]:
        """Return entity key of the panel."""
        return [self.config.history.entity_col, "date"]

    def get_feature_definitions(self) -> list[FeatureDefinition]:
        """Return feature definitions."""
        history = self.config.history
        features = [
            FeatureDefinition(
                name=history.entity_col,
                description="Patrol beat identifier",
                dtype="string",
                source_columns=["beat"],
            ),
            FeatureDefinition(
                name="date",
                description="Calendar date",
                dtype="datetime",
                source_columns=["occurred_at"],
            ),
            FeatureDefinition(
                name="count",
                description="Incidents in the beat on the date",
                dtype="int",
                source_columns=["case_number"],
                aggregation="count",
                window_days=1,
                min_value=0,
            ),
            FeatureDefinition(
                name="arrest",
                description="Incidents with an arrest in the beat on the date",
                dtype="int",
                source_columns=["arrest"],
                aggregation="sum",
                window_days=1,
                min_value=0,
            ),
            FeatureDefinition(
                name="weekday",
                description="Day of week name",
                dtype="string",
                source_columns=["date"],
            ),
            FeatureDefinition(
                name="month",
                description="Month number",
                dtype="int",
                source_columns=["date"],
                min_value=1,
                max_value=12,
            ),
            FeatureDefinition(
                name="season",
                description="Meteorological season",
                dtype="string",
                source_columns=["month"],
            ),
        ]

        for window in history.crime_windows:
            features.append(
                FeatureDefinition(
                    name=f"past_crime_{window}",
                    description=(
                        "Incidents on the previous day"
                        if window == 1
                        else f"Incidents over the previous {window} days"
                    ),
                    dtype="float",
                    source_columns=["count"],
                    aggregation="lag" if window == 1 else "sum",
                    window_days=window,
                    min_value=0,
                )
            )

        features.extend(
            [
                FeatureDefinition(
                    name=f"past_arrest_{history.arrest_window}",
                    description=f"Arrests over the previous {history.arrest_window} days",
                    dtype="float",
                    source_columns=["arrest"],
                    aggregation="sum",
                    window_days=history.arrest_window,
                    min_value=0,
                ),
                FeatureDefinition(
                    name="policing",
                    description="Arrests per incident over the arrest window",
                    dtype="float",
                    source_columns=[
                        f"past_arrest_{history.arrest_window}",
                        f"past_crime_{history.arrest_window}",
                    ],
                    aggregation="ratio",
                    window_days=history.arrest_window,
                    min_value=0.0,
                ),
                FeatureDefinition(
                    name="crime_trend",
                    description="Short-window share of long-window incidents",
                    dtype="float",
                    source_columns=[
                        f"past_crime_{history.trend_window}",
                        f"past_crime_{history.arrest_window}",
                    ],
                    aggregation="ratio",
                    window_days=history.arrest_window,
                    min_value=0.0,
                ),
            ]
        )
        return features

    def build_features(self, df: pd.DataFrame) -> pd.DataFrame:
        """
        Build the beat-day panel from enriched incidents.

        Args:
            df: Output of CrimePreprocessor

        Returns:
            Panel DataFrame sorted by beat then date
        """
        logger.info(f"Building beat-day panel from {len(df)} incidents")

        grid = build_beat_day_grid(df, entity_col=self.config.history.entity_col)
        history = self.engine.compute(grid)

        self.last_history = history
        self._issues.extend(history.issues)

        column_order = [f.name for f in self.get_feature_definitions()]
        available_columns = [c for c in column_order if c in history.panel.columns]
        return history.panel[available_columns]


def build_incident_summary(incidents: pd.DataFrame) -> pd.DataFrame:
    """
    Aggregate enriched incidents into the stable table used for map rendering.

    Columns: beat, date, crime_category, arrest, latitude, longitude,
    time_bucket, weekday, month, count.
    """
    if incidents.empty:
        return pd.DataFrame(columns=SUMMARY_KEYS + ["count"])

    keys = [c for c in SUMMARY_KEYS if c in incidents.columns]
    summary = (
        incidents.groupby(keys, dropna=False, observed=True)
        .size()
        .reset_index(name="count")
        .sort_values(["beat", "date", "crime_category"])
        .reset_index(drop=True)
    )
    return summary


# =============================================================================
# Convenience Functions
# =============================================================================


def build_crime_features(
    df: pd.DataFrame,
    execution_date: str,
    config: Settings | None = None,
) -> dict[str, Any]:
    """
    Convenience function for building the crime panel.

    Returns result dictionary suitable for logging.
    """
    builder = CrimeFeatureBuilder(config)
    result = builder.run(df, execution_date)
    return result.to_dict()
