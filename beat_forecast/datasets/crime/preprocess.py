"""
Beat Forecast - Crime Incident Preprocessor

Normalizes raw municipal crime incident records and enriches them with
temporal and categorical features.

Transformations:
    - Column renaming to standardized names
    - Deduplication by case number (first occurrence wins)
    - Arrest/domestic flag parsing
    - Beat identifier normalization
    - Timestamp parsing and temporal feature extraction
    - Offense category collapsing
    - Missing value handling

Usage:
    from beat_forecast.datasets.crime.preprocess import CrimePreprocessor

    preprocessor = CrimePreprocessor()
    result = preprocessor.run(raw_df, execution_date="2024-01-15")
    incidents = preprocessor.get_data()
"""

from __future__ import annotations

import logging
from typing import Any

import pandas as pd

from beat_forecast.datasets.base import BasePreprocessor
from beat_forecast.datasets.crime.categories import CategoryMapper
from beat_forecast.datasets.crime.temporal import add_temporal_features
from beat_forecast.shared.config import Settings
from beat_forecast.shared.errors import IssueType

logger = logging.getLogger(__name__)

TRUE_VALUES = {"TRUE", "Y", "YES", "1", "T"}
FALSE_VALUES = {"FALSE", "N", "NO", "0", "F"}
TEXT_FILL_COLUMNS = ["block", "location_description", "secondary_description"]


class CrimePreprocessor(BasePreprocessor):
    """
    Preprocessor for municipal crime incident data.

    Produces exactly one enriched record per case number. Rows that cannot be
    used downstream (missing case number or beat, malformed flags, unparseable
    timestamp) are excluded and counted, never silently dropped.
    """

    # Column mapping from raw feed names to standardized names
    COLUMN_MAPPINGS = {
        "ID": "record_id",
        "Case Number": "case_number",
        "Date": "occurred_at",
        "Block": "block",
        "IUCR": "iucr",
        "Primary Type": "primary_type",
        "Description": "secondary_description",
        "Location Description": "location_description",
        "Arrest": "arrest",
        "Domestic": "domestic",
        "Beat": "beat",
        "District": "district",
        "Ward": "ward",
        "Community Area": "community_area",
        "FBI Code": "fbi_code",
        "X Coordinate": "x_coordinate",
        "Y Coordinate": "y_coordinate",
        "Year": "year",
        "Updated On": "updated_on",
        "Latitude": "latitude",
        "Longitude": "longitude",
        "Location": "location",
    }

    # Data type mappings
    DTYPE_MAPPINGS = {
        "case_number": "string",
        "block": "string",
        "primary_type": "string",
        "secondary_description": "string",
        "location_description": "string",
        "district": "float",
        "ward": "float",
        "community_area": "float",
        "x_coordinate": "float",
        "y_coordinate": "float",
        "latitude": "float",
        "longitude": "float",
    }

    # Required output columns
    REQUIRED_COLUMNS = [
        "case_number",
        "occurred_at",
        "beat",
        "primary_type",
        "arrest",
        "domestic",
        "date",
        "time_bucket",
        "weekday",
        "month",
        "season",
        "crime_category",
        "violence",
    ]

    OUTPUT_COLUMNS = [
        "case_number",
        "occurred_at",
        "date",
        "hour",
        "time_bucket",
        "weekday",
        "month",
        "month_name",
        "season",
        "block",
        "beat",
        "district",
        "ward",
        "community_area",
        "iucr",
        "primary_type",
        "secondary_description",
        "crime_category",
        "violence",
        "category_unmapped",
        "location_description",
        "arrest",
        "domestic",
        "x_coordinate",
        "y_coordinate",
        "latitude",
        "longitude",
    ]

    def __init__(self, config: Settings | None = None, mapper: CategoryMapper | None = None):
        """Initialize crime preprocessor."""
        super().__init__(config)
        self.mapper = mapper or CategoryMapper.from_config(self.config)
        self.unmapped_descriptions: list[str] = []

    def get_dataset_name(self) -> str:
        """Return dataset name."""
        return "crime"

    def get_required_columns(self) -> list[str]:
        """Return required output columns."""
        return self.REQUIRED_COLUMNS

    def get_column_mappings(self) -> dict[str, str]:
        """Return column name mappings."""
        return self.COLUMN_MAPPINGS

    def get_dtype_mappings(self) -> dict[str, str]:
        """Return data type mappings."""
        return self.DTYPE_MAPPINGS

    def transform(self, df: pd.DataFrame) -> pd.DataFrame:
        """
        Apply crime-specific transformations.

        Args:
            df: Raw DataFrame with renamed columns

        Returns:
            Deduplicated, enriched incident DataFrame
        """
        df = self._drop_missing_case_numbers(df)

        # Duplicate case numbers: first occurrence in input order survives
        df = self.drop_duplicates(df, subset=["case_number"], keep="first")

        df = self._process_flags(df)
        df = self._process_beat(df)
        df = self._process_datetime(df)
        df = self._standardize_categories(df)
        df = self._fill_descriptive_text(df)
        df = self._select_output_columns(df)

        return df.reset_index(drop=True)

    def _drop_missing_case_numbers(self, df: pd.DataFrame) -> pd.DataFrame:
        """Exclude records without a case number."""
        if "case_number" not in df.columns:
            raise ValueError("Missing required columns: {'case_number'}")
        missing = df["case_number"].isna() | (df["case_number"].astype("string").str.len() == 0)
        return self.exclude_rows(
            df, missing.fillna(True), "missing_case_number", "Excluded {count} records without a case number"
        )

    @staticmethod
    def _parse_flag(value: Any) -> bool | None:
        """Parse a boolean-ish flag; None if malformed."""
        if value is None or (not isinstance(value, str) and pd.isna(value)):
            return False
        if isinstance(value, bool):
            return value
        text = str(value).strip().upper()
        if text in TRUE_VALUES:
            return True
        if text in FALSE_VALUES or text == "":
            return False
        return None

    def _process_flags(self, df: pd.DataFrame) -> pd.DataFrame:
        """Convert arrest/domestic flags to booleans, excluding malformed values."""
        for col in ("arrest", "domestic"):
            if col not in df.columns:
                df[col] = False
                continue
            parsed = df[col].map(self._parse_flag)
            df = self.exclude_rows(
                df, parsed.isna(), f"malformed_{col}", f"Excluded {{count}} records with a malformed {col} flag"
            )
            df[col] = parsed.loc[df.index].astype(bool)
            self.log_step(f"convert_{col}_to_boolean")
        return df

    @staticmethod
    def _normalize_beat(value: Any) -> str | None:
        """Zero-pad numeric beat ids to four characters."""
        if value is None or pd.isna(value):
            return None
        text = str(value).strip()
        if not text:
            return None
        try:
            number = float(text)
        except ValueError:
            return text.upper()
        if number.is_integer():
            return f"{int(number):04d}"
        return text

    def _process_beat(self, df: pd.DataFrame) -> pd.DataFrame:
        """Normalize beat identifiers; records without a beat cannot be gridded."""
        if "beat" not in df.columns:
            raise ValueError("Missing required columns: {'beat'}")
        df["beat"] = df["beat"].map(self._normalize_beat)
        df = self.exclude_rows(df, df["beat"].isna(), "missing_beat", "Excluded {count} records without a beat")
        self.log_step("normalize_beat")
        return df

    def _process_datetime(self, df: pd.DataFrame) -> pd.DataFrame:
        """Parse timestamps and derive temporal features."""
        df, invalid_count = add_temporal_features(df, self.config.temporal, timestamp_col="occurred_at")
        if invalid_count > 0:
            self.note_excluded("invalid_timestamp", invalid_count)
            self.record_issue(
                IssueType.PARSE_ERROR,
                f"Excluded {invalid_count} records with unparseable timestamps",
                count=invalid_count,
                reason="invalid_timestamp",
            )
        self.log_step("process_datetime")
        return df

    def _standardize_categories(self, df: pd.DataFrame) -> pd.DataFrame:
        """Collapse offense descriptions into canonical categories."""
        df, unmapped = self.mapper.apply(df, description_col="primary_type")
        self.unmapped_descriptions = unmapped
        if unmapped:
            count = int(df["category_unmapped"].sum())
            self.record_issue(
                IssueType.UNMAPPED_CATEGORY,
                f"{len(unmapped)} offense descriptions ({count} records) passed through unmapped",
                count=count,
                descriptions=unmapped,
            )
        self.log_step("collapse_categories")
        return df

    def _fill_descriptive_text(self, df: pd.DataFrame) -> pd.DataFrame:
        """Free-text location fields default to UNKNOWN."""
        present = [c for c in TEXT_FILL_COLUMNS if c in df.columns]
        if present:
            df[present] = df[present].fillna("UNKNOWN")
            self.log_step("fill_descriptive_text")
        return df

    def _select_output_columns(self, df: pd.DataFrame) -> pd.DataFrame:
        """Select and order output columns."""
        available_columns = [c for c in self.OUTPUT_COLUMNS if c in df.columns]
        df = df[available_columns].copy()

        self.log_step("select_output_columns")
        return df


# =============================================================================
# Convenience Functions
# =============================================================================


def preprocess_crime_data(
    df: pd.DataFrame,
    execution_date: str,
    config: Settings | None = None,
) -> dict[str, Any]:
    """
    Convenience function for preprocessing crime data.

    Returns result dictionary suitable for logging.
    """
    preprocessor = CrimePreprocessor(config)
    result = preprocessor.run(df, execution_date)
    return result.to_dict()
