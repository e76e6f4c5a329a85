"""
Beat Forecast - Chronological Dataset Splitter

Expands the beat-day panel into numeric modeling rows and partitions it into a
training prefix and a validation suffix by date.

The panel is ordered by date, ties broken by beat, and cut at
floor(train_fraction * rows). Nothing is shuffled: validation rows never
precede training rows in time. Beats sharing the boundary date can land on
either side of the cut; that count is reported as ``boundary_shared_rows``.

Usage:
    from beat_forecast.modeling.splitter import DatasetSplitter

    split = DatasetSplitter(config).split(panel)
    X, y = split.X_train, split.y_train
"""

from __future__ import annotations

import logging
import math
from dataclasses import dataclass, field

import pandas as pd

from beat_forecast.datasets.crime.temporal import SEASONS, WEEKDAYS
from beat_forecast.shared.config import Settings, get_config

logger = logging.getLogger(__name__)

TARGET_COLUMN = "count"


@dataclass
class PanelSplit:
    """Training and validation partitions of the modeling panel."""

    train: pd.DataFrame
    validation: pd.DataFrame
    feature_columns: list[str]
    id_columns: list[str] = field(default_factory=lambda: ["beat", "date"])
    target_column: str = TARGET_COLUMN

    @property
    def X_train(self) -> pd.DataFrame:
        return self.train[self.feature_columns].astype(float)

    @property
    def y_train(self) -> pd.Series:
        return self.train[self.target_column].astype(float)

    @property
    def X_validation(self) -> pd.DataFrame:
        return self.validation[self.feature_columns].astype(float)

    @property
    def y_validation(self) -> pd.Series:
        return self.validation[self.target_column].astype(float)

    @property
    def boundary_date(self) -> pd.Timestamp:
        """Last date present in the training partition."""
        return self.train["date"].max()

    @property
    def boundary_shared_rows(self) -> int:
        """Validation rows dated on the last training date."""
        return int((self.validation["date"] == self.boundary_date).sum())

    def summary(self) -> dict[str, object]:
        return {
            "train_rows": len(self.train),
            "validation_rows": len(self.validation),
            "features": len(self.feature_columns),
            "train_start": str(self.train["date"].min().date()),
            "boundary_date": str(self.boundary_date.date()),
            "validation_end": str(self.validation["date"].max().date()),
            "boundary_shared_rows": self.boundary_shared_rows,
        }


class DatasetSplitter:
    """Encode the panel into modeling rows and split it chronologically."""

    def __init__(self, config: Settings | None = None):
        """
        Initialize the splitter.

        Args:
            config: Configuration object (uses default if not provided)
        """
        self.config = config or get_config()

    @property
    def entity_col(self) -> str:
        return self.config.history.entity_col

    def history_columns(self) -> list[str]:
        history = self.config.history
        cols = [f"past_crime_{w}" for w in history.crime_windows]
        cols.append(f"past_arrest_{history.arrest_window}")
        cols.extend(["policing", "crime_trend"])
        return cols

    def encode(self, panel: pd.DataFrame) -> tuple[pd.DataFrame, list[str]]:
        """
        Add the squared long-window term and weekday/season dummies.

        Dummy columns come from fixed level lists with the first level dropped,
        so every panel produces the same design columns.

        Returns:
            Tuple of (encoded copy of the panel, feature column names)
        """
        df = panel.copy()
        long_col = f"past_crime_{self.config.history.arrest_window}"
        squared_col = f"{long_col}_sq"
        df[squared_col] = df[long_col] ** 2

        weekday = pd.Categorical(df["weekday"], categories=WEEKDAYS)
        season = pd.Categorical(df["season"], categories=SEASONS)
        dummies = pd.concat(
            [
                pd.get_dummies(weekday, prefix="dow", drop_first=True, dtype=float),
                pd.get_dummies(season, prefix="season", drop_first=True, dtype=float),
            ],
            axis=1,
        )
        dummies.index = df.index
        df = pd.concat([df, dummies], axis=1)

        feature_columns = self.history_columns() + [squared_col] + list(dummies.columns)
        return df, feature_columns

    def split(self, panel: pd.DataFrame) -> PanelSplit:
        """
        Encode and split the panel chronologically.

        Raises:
            ValueError: If the panel is too small for both partitions to be non-empty
        """
        if len(panel) < 2:
            raise ValueError(f"Panel has {len(panel)} rows; at least 2 are needed to split")

        encoded, feature_columns = self.encode(panel)
        ordered = encoded.sort_values(["date", self.entity_col], kind="mergesort").reset_index(drop=True)

        cut = math.floor(self.config.split.train_fraction * len(ordered))
        if cut <= 0 or cut >= len(ordered):
            raise ValueError(
                f"Split index {cut} leaves an empty partition for {len(ordered)} rows"
            )

        split = PanelSplit(
            train=ordered.iloc[:cut].copy(),
            validation=ordered.iloc[cut:].copy(),
            feature_columns=feature_columns,
            id_columns=[self.entity_col, "date"],
        )

        logger.info("Split panel chronologically", extra=split.summary())
        if split.boundary_shared_rows > 0:
            logger.info(
                f"{split.boundary_shared_rows} validation rows share the boundary date "
                f"{split.boundary_date.date()} with training rows"
            )

        return split
