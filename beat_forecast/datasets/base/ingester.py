"""
Beat Forecast - Base Ingester

Loads a raw snapshot that has already been fetched to local storage and
checks that the fields every later stage keys on are present. Records are
returned untouched; all cleaning happens in the preprocessor.

Usage:
    class CrimeFileIngester(BaseIngester):
        def fetch_data(self) -> pd.DataFrame:
            ...
        def get_primary_key(self) -> str:
            return "Case Number"
"""

from __future__ import annotations

import logging
import time
from abc import ABC, abstractmethod
from dataclasses import dataclass, field
from typing import Any

import pandas as pd

from beat_forecast.shared.config import Settings, get_config

logger = logging.getLogger(__name__)


@dataclass
class IngestionResult:
    """Outcome of loading one snapshot."""

    dataset: str
    execution_date: str
    rows_fetched: int = 0
    source: str | None = None
    columns: list[str] = field(default_factory=list)
    schema_errors: list[str] = field(default_factory=list)
    duration_seconds: float = 0.0
    success: bool = True
    error_message: str | None = None

    def to_dict(self) -> dict[str, Any]:
        """Convert result to dictionary for logging."""
        return {
            "dataset": self.dataset,
            "execution_date": self.execution_date,
            "rows_fetched": self.rows_fetched,
            "source": self.source,
            "columns": self.columns,
            "schema_errors": self.schema_errors,
            "duration_seconds": self.duration_seconds,
            "success": self.success,
            "error_message": self.error_message,
        }


class BaseIngester(ABC):
    """
    Base class for snapshot loaders.

    Subclasses implement ``fetch_data`` plus the key-field accessors.
    """

    def __init__(self, config: Settings | None = None):
        self.config = config or get_config()
        self._data: pd.DataFrame | None = None

    @abstractmethod
    def fetch_data(self) -> pd.DataFrame:
        """Return the raw records exactly as stored."""

    @abstractmethod
    def get_primary_key(self) -> str:
        """Raw column identifying each record."""

    @abstractmethod
    def get_timestamp_field(self) -> str:
        """Raw column holding the occurrence timestamp."""

    @abstractmethod
    def get_dataset_name(self) -> str:
        pass

    def get_source(self) -> str | None:
        return None

    def run(self, execution_date: str) -> IngestionResult:
        """
        Load the snapshot.

        Load failures are reported on the result; missing key fields are
        reported as schema errors without failing the load, since the
        preprocessor decides what it can work with.

        Args:
            execution_date: Execution date in YYYY-MM-DD format

        Returns:
            IngestionResult; the records are available via get_data()
        """
        start_time = time.time()
        dataset = self.get_dataset_name()
        result = IngestionResult(dataset=dataset, execution_date=execution_date, source=self.get_source())
        self._data = None

        try:
            df = self.fetch_data()
        except Exception as e:
            result.success = False
            result.error_message = str(e)
            logger.error(
                f"Could not load {dataset} snapshot: {e}",
                extra={"dataset": dataset, "source": result.source},
                exc_info=True,
            )
        else:
            self._data = df
            result.rows_fetched = len(df)
            result.columns = list(df.columns)
            result.schema_errors = self.check_schema(df)
            for error in result.schema_errors:
                logger.warning(f"Schema check for {dataset}: {error}", extra={"dataset": dataset})
            logger.info(
                f"Loaded {len(df)} {dataset} records",
                extra={"dataset": dataset, "source": result.source, "rows_fetched": len(df)},
            )

        result.duration_seconds = time.time() - start_time
        return result

    def get_data(self) -> pd.DataFrame | None:
        """Get the most recently loaded records."""
        return self._data

    def check_schema(self, df: pd.DataFrame) -> list[str]:
        """Problems with the key fields of a loaded snapshot; empty if none."""
        errors = [
            f"Required field '{col}' not found"
            for col in (self.get_primary_key(), self.get_timestamp_field())
            if col not in df.columns
        ]
        if df.empty:
            errors.append("Snapshot is empty")
        return errors
