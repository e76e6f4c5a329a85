"""
Beat Forecast - Temporal Feature Extraction

Derives calendar date, time-of-day bucket, weekday, month and season from an
incident timestamp.

Timestamps are wall-clock times in the single configured civil time zone.
Values carrying an explicit UTC offset are converted into that zone once and
then made naive; naive values are kept exactly as written, so ambiguous or
skipped local times around DST changes are never dropped or shifted.

Usage:
    from beat_forecast.datasets.crime.temporal import extract_temporal_features

    features = extract_temporal_features("01/15/2024 02:30:00 PM", config.temporal)
    features.time_bucket  # "12-18"
"""

from __future__ import annotations

import logging
from dataclasses import dataclass
from datetime import date, datetime
from typing import Any

import numpy as np
import pandas as pd

from beat_forecast.shared.config import TemporalConfig, TimeBucketConfig
from beat_forecast.shared.errors import InvalidTimestamp

logger = logging.getLogger(__name__)

# Timestamp layout used by the municipal incident feed
FEED_TIMESTAMP_FORMAT = "%m/%d/%Y %I:%M:%S %p"

WEEKDAYS = ["Monday", "Tuesday", "Wednesday", "Thursday", "Friday", "Saturday", "Sunday"]

SEASONS = ["winter", "spring", "summer", "fall"]

SEASON_BY_MONTH = {
    12: "winter",
    1: "winter",
    2: "winter",
    3: "spring",
    4: "spring",
    5: "spring",
    6: "summer",
    7: "summer",
    8: "summer",
    9: "fall",
    10: "fall",
    11: "fall",
}


@dataclass(frozen=True)
class TemporalFeatures:
    """Calendar features derived from one timestamp."""

    date: date
    time_bucket: str
    weekday: str
    month: int
    month_name: str
    season: str


def season_for_month(month: int) -> str:
    """Map a month number (1-12) to its meteorological season."""
    try:
        return SEASON_BY_MONTH[int(month)]
    except KeyError:
        raise ValueError(f"Invalid month: {month}") from None


def assign_time_bucket(hour: int, buckets: list[TimeBucketConfig]) -> str:
    """
    Return the label of the bucket that claims ``hour``.

    Buckets are half-open [start, end) intervals, so exact midnight falls in
    the bucket starting at hour 0.
    """
    for bucket in buckets:
        if bucket.start_hour <= hour < bucket.end_hour:
            return bucket.label
    raise ValueError(f"Hour {hour} is not covered by any time bucket")


def _bucket_lookup(buckets: list[TimeBucketConfig]) -> np.ndarray:
    """Label for each hour 0-23."""
    return np.array([assign_time_bucket(h, buckets) for h in range(24)], dtype=object)


def parse_timestamp(value: Any, timezone: str) -> pd.Timestamp:
    """
    Parse a single timestamp into naive local wall-clock time.

    Raises:
        InvalidTimestamp: If the value cannot be parsed at all.
    """
    if value is None or (isinstance(value, float) and np.isnan(value)):
        raise InvalidTimestamp(value)

    try:
        if isinstance(value, (datetime, np.datetime64)):
            ts = pd.Timestamp(value)
        else:
            ts = pd.to_datetime(str(value).strip())
    except (ValueError, TypeError, OverflowError) as e:
        raise InvalidTimestamp(value) from e

    if pd.isna(ts):
        raise InvalidTimestamp(value)

    if ts.tzinfo is not None:
        ts = ts.tz_convert(timezone).tz_localize(None)
    return ts


def _parse_or_nat(value: Any, timezone: str) -> pd.Timestamp:
    try:
        return parse_timestamp(value, timezone)
    except InvalidTimestamp:
        return pd.NaT


def parse_timestamps(values: pd.Series, timezone: str) -> pd.Series:
    """
    Vectorized timestamp parsing.

    The feed layout is tried first for speed; anything it rejects is retried
    value by value with a permissive parser. Unparseable values become NaT.
    """
    if pd.api.types.is_datetime64_any_dtype(values):
        if getattr(values.dt, "tz", None) is not None:
            return values.dt.tz_convert(timezone).dt.tz_localize(None)
        return values

    parsed = pd.to_datetime(values, format=FEED_TIMESTAMP_FORMAT, errors="coerce")
    retry = parsed.isna() & values.notna()
    if retry.any():
        parsed.loc[retry] = pd.to_datetime(
            values[retry].map(lambda v: _parse_or_nat(v, timezone))
        )
    return parsed


def extract_temporal_features(value: Any, config: TemporalConfig) -> TemporalFeatures:
    """
    Derive calendar features from one timestamp.

    Args:
        value: Timestamp string or datetime
        config: Temporal configuration (time zone and buckets)

    Returns:
        TemporalFeatures for the timestamp

    Raises:
        InvalidTimestamp: If the timestamp cannot be parsed
    """
    ts = parse_timestamp(value, config.timezone)
    return TemporalFeatures(
        date=ts.date(),
        time_bucket=assign_time_bucket(ts.hour, config.time_buckets),
        weekday=ts.day_name(),
        month=ts.month,
        month_name=ts.month_name(),
        season=season_for_month(ts.month),
    )


def add_temporal_features(
    df: pd.DataFrame,
    config: TemporalConfig,
    timestamp_col: str = "occurred_at",
) -> tuple[pd.DataFrame, int]:
    """
    Add temporal feature columns to an incident DataFrame.

    Rows whose timestamp cannot be parsed are excluded.

    Returns:
        Tuple of (annotated DataFrame, number of rows excluded)
    """
    df = df.copy()
    df[timestamp_col] = parse_timestamps(df[timestamp_col], config.timezone)

    invalid = df[timestamp_col].isna()
    invalid_count = int(invalid.sum())
    if invalid_count > 0:
        logger.warning(
            f"Excluding {invalid_count} records with unparseable timestamps",
            extra={"column": timestamp_col, "count": invalid_count},
        )
        df = df[~invalid].copy()

    ts = df[timestamp_col]
    lookup = _bucket_lookup(config.time_buckets)

    df["date"] = ts.dt.normalize()
    df["hour"] = ts.dt.hour.astype(int)
    df["time_bucket"] = lookup[df["hour"].to_numpy()]
    df["weekday"] = ts.dt.day_name()
    df["month"] = ts.dt.month.astype(int)
    df["month_name"] = ts.dt.month_name()
    df["season"] = df["month"].map(SEASON_BY_MONTH)

    return df, invalid_count
