"""
Beat Forecast - Beat x Day Grid

Builds the complete beat x date panel skeleton from enriched incidents.

Every beat observed anywhere in the incidents is paired with every date
observed anywhere in the incidents, and per-(beat, date) incident and arrest
counts are left-joined onto that cross product. Cells without incidents get
zero counts; those zero cells are what make the rolling history windows
downstream line up day by day.
"""

from __future__ import annotations

import logging

import pandas as pd

from beat_forecast.datasets.crime.temporal import SEASON_BY_MONTH

logger = logging.getLogger(__name__)

GRID_COLUMNS = ["beat", "date", "count", "arrest", "weekday", "month", "season"]


def build_beat_day_grid(
    incidents: pd.DataFrame,
    entity_col: str = "beat",
    date_col: str = "date",
    arrest_col: str = "arrest",
) -> pd.DataFrame:
    """
    Aggregate incidents onto the full beat x date cross product.

    Args:
        incidents: Enriched, deduplicated incidents with entity, date and arrest columns
        entity_col: Spatial unit column
        date_col: Calendar date column (datetime64, normalized to midnight)
        arrest_col: Boolean arrest flag column

    Returns:
        DataFrame with exactly |entities| x |dates| rows, sorted by entity then date,
        holding ``count``, ``arrest``, ``weekday``, ``month`` and ``season``
    """
    columns = [entity_col if c == "beat" else c for c in GRID_COLUMNS]
    if incidents.empty:
        logger.warning("No incidents to grid; returning an empty panel")
        return pd.DataFrame(columns=columns)

    dates = pd.to_datetime(incidents[date_col]).dt.normalize()
    entities = sorted(incidents[entity_col].astype(str).unique())
    unique_dates = sorted(dates.unique())

    grid = pd.MultiIndex.from_product([entities, unique_dates], names=[entity_col, date_col]).to_frame(
        index=False
    )

    aggregated = (
        pd.DataFrame(
            {
                entity_col: incidents[entity_col].astype(str).to_numpy(),
                date_col: dates.to_numpy(),
                "arrest": incidents[arrest_col].astype(int).to_numpy(),
            }
        )
        .groupby([entity_col, date_col], as_index=False)
        .agg(count=("arrest", "size"), arrest=("arrest", "sum"))
    )

    grid = grid.merge(aggregated, on=[entity_col, date_col], how="left", validate="one_to_one")
    grid["count"] = grid["count"].fillna(0).astype(int)
    grid["arrest"] = grid["arrest"].fillna(0).astype(int)

    grid["weekday"] = grid[date_col].dt.day_name()
    grid["month"] = grid[date_col].dt.month.astype(int)
    grid["season"] = grid["month"].map(SEASON_BY_MONTH)

    grid = grid.sort_values([entity_col, date_col]).reset_index(drop=True)

    logger.info(
        f"Built beat-day grid: {len(entities)} beats x {len(unique_dates)} dates = {len(grid)} cells",
        extra={
            "beats": len(entities),
            "dates": len(unique_dates),
            "cells": len(grid),
            "zero_cells": int((grid["count"] == 0).sum()),
        },
    )

    return grid[columns]
