"""
Beat Forecast - Crime Incident Loader

Reads a snapshot of the municipal crime incident feed from local storage
(CSV or Parquet). Fetching the snapshot over the network is done elsewhere.

Usage:
    from beat_forecast.datasets.crime.ingest import CrimeFileIngester

    ingester = CrimeFileIngester("data/raw/crimes_2024.csv")
    result = ingester.run(execution_date="2024-12-31")
    raw_df = ingester.get_data()
"""

from __future__ import annotations

import logging
from pathlib import Path
from typing import Any

import pandas as pd

from beat_forecast.datasets.base import BaseIngester
from beat_forecast.shared.config import Settings

logger = logging.getLogger(__name__)

PRIMARY_KEY = "Case Number"
TIMESTAMP_FIELD = "Date"

# Identifier columns that must keep leading zeros
STRING_COLUMNS = {"ID": "string", "Case Number": "string", "Beat": "string", "IUCR": "string"}


class CrimeFileIngester(BaseIngester):
    """Ingester for crime incident snapshots stored as CSV or Parquet."""

    def __init__(self, path: str | Path | None = None, config: Settings | None = None):
        """Initialize with an explicit path or the configured input path."""
        super().__init__(config)
        self.path = Path(path or self.config.data.input_path)

    def get_dataset_name(self) -> str:
        """Return dataset name."""
        return "crime"

    def get_primary_key(self) -> str:
        """Return the primary key field."""
        return PRIMARY_KEY

    def get_timestamp_field(self) -> str:
        """Return the occurrence timestamp field."""
        return TIMESTAMP_FIELD

    def get_source(self) -> str:
        """Return the snapshot path."""
        return str(self.path)

    def fetch_data(self) -> pd.DataFrame:
        """Read the snapshot, keeping identifier columns as strings."""
        if not self.path.exists():
            raise FileNotFoundError(f"Incident snapshot not found: {self.path}")

        suffix = self.path.suffix.lower()
        if suffix == ".parquet":
            df = pd.read_parquet(self.path)
            for col, dtype in STRING_COLUMNS.items():
                if col in df.columns:
                    df[col] = df[col].astype(dtype)
        elif suffix in {".csv", ".txt"}:
            df = pd.read_csv(self.path, dtype=STRING_COLUMNS, low_memory=False)
        else:
            raise ValueError(f"Unsupported snapshot format: {suffix}")

        logger.info(f"Loaded {len(df)} raw incident records from {self.path}")
        return df


# =============================================================================
# Convenience Functions
# =============================================================================


def ingest_crime_data(
    path: str | Path,
    execution_date: str,
    config: Settings | None = None,
) -> dict[str, Any]:
    """
    Convenience function for loading a crime snapshot.

    Returns result dictionary suitable for logging.
    """
    ingester = CrimeFileIngester(path, config)
    result = ingester.run(execution_date)
    return result.to_dict()
