"""
Unit tests for CrimePreprocessor.

Tests normalization, deduplication and enrichment of raw incident records.
"""

import pandas as pd
import pytest

from beat_forecast.datasets.crime.preprocess import CrimePreprocessor, preprocess_crime_data
from beat_forecast.shared.errors import IssueType


class TestCrimePreprocessor:
    """Test cases for CrimePreprocessor class."""

    @pytest.fixture
    def preprocessor(self, test_config):
        """Create a CrimePreprocessor instance."""
        return CrimePreprocessor(test_config)

    def test_get_dataset_name(self, preprocessor):
        """Test dataset name is correct."""
        assert preprocessor.get_dataset_name() == "crime"

    def test_get_column_mappings(self, preprocessor):
        """Test feed columns map to standardized names."""
        mappings = preprocessor.get_column_mappings()
        assert mappings["Case Number"] == "case_number"
        assert mappings["Date"] == "occurred_at"
        assert mappings["Primary Type"] == "primary_type"

    def test_run_success(self, preprocessor, raw_incidents):
        """Test successful preprocessing run."""
        result = preprocessor.run(raw_incidents, execution_date="2024-01-15")

        assert result.success
        assert result.dataset == "crime"
        assert result.rows_input == 5
        assert result.rows_output == 4

    def test_duplicates_removed_first_seen(self, preprocessor, raw_incidents):
        """Test one record per case number survives, the first in input order."""
        result = preprocessor.run(raw_incidents, execution_date="2024-01-15")
        df = preprocessor.get_data()

        assert df["case_number"].is_unique
        kept = df[df["case_number"] == "JA100003"].iloc[0]
        assert kept["arrest"]
        assert kept["hour"] == 18

        duplicate_issues = [i for i in result.issues if i.type == IssueType.DUPLICATE_IDENTIFIER]
        assert len(duplicate_issues) == 1
        assert duplicate_issues[0].count == result.rows_input - result.rows_output

    def test_beats_normalized(self, preprocessor, raw_incidents):
        """Test numeric beat ids are zero-padded to four characters."""
        preprocessor.run(raw_incidents, execution_date="2024-01-15")
        df = preprocessor.get_data()
        assert set(df["beat"]) == {"0111", "0112"}

    def test_flags_are_boolean(self, preprocessor, raw_incidents):
        """Test arrest and domestic flags become booleans."""
        preprocessor.run(raw_incidents, execution_date="2024-01-15")
        df = preprocessor.get_data()

        assert df["arrest"].dtype == bool
        assert df["domestic"].dtype == bool
        assert df["arrest"].sum() == 2

    def test_enrichment_columns(self, preprocessor, raw_incidents):
        """Test temporal and category features are attached."""
        preprocessor.run(raw_incidents, execution_date="2024-01-15")
        df = preprocessor.get_data().set_index("case_number")

        assert pd.api.types.is_datetime64_any_dtype(df["occurred_at"])
        assert df.loc["JA100001", "time_bucket"] == "00-06"
        assert df.loc["JA100004", "time_bucket"] == "18-24"
        assert df.loc["JA100002", "crime_category"] == "assault"
        assert df.loc["JA100002", "violence"] == "violent"
        assert df.loc["JA100003", "crime_category"] == "drugs"
        assert df.loc["JA100003", "violence"] == "non-violent"

    def test_missing_case_number_excluded(self, preprocessor, incident_factory):
        """Test records without a case number are excluded and reported."""
        raw = incident_factory(
            [
                {"case": "JA1", "date": "01/01/2024 10:00:00 AM", "beat": "111"},
                {"case": None, "date": "01/01/2024 11:00:00 AM", "beat": "111"},
            ]
        )
        result = preprocessor.run(raw, execution_date="2024-01-15")

        assert result.rows_output == 1
        assert result.excluded["missing_case_number"] == 1
        assert any(i.type == IssueType.PARSE_ERROR for i in result.issues)

    def test_invalid_timestamp_excluded(self, preprocessor, incident_factory):
        """Test unparseable timestamps are excluded, not fatal."""
        raw = incident_factory(
            [
                {"case": "JA1", "date": "01/01/2024 10:00:00 AM", "beat": "111"},
                {"case": "JA2", "date": "yesterday-ish", "beat": "111"},
            ]
        )
        result = preprocessor.run(raw, execution_date="2024-01-15")

        assert result.success
        assert result.rows_output == 1
        assert result.excluded["invalid_timestamp"] == 1

    def test_malformed_flag_excluded(self, preprocessor, incident_factory):
        """Test an unrecognized arrest flag is excluded; a missing one is False."""
        raw = incident_factory(
            [
                {"case": "JA1", "date": "01/01/2024 10:00:00 AM", "beat": "111", "arrest": "maybe"},
                {"case": "JA2", "date": "01/01/2024 10:00:00 AM", "beat": "111", "arrest": None},
            ]
        )
        result = preprocessor.run(raw, execution_date="2024-01-15")
        df = preprocessor.get_data()

        assert result.excluded["malformed_arrest"] == 1
        assert list(df["case_number"]) == ["JA2"]
        assert not df["arrest"].iloc[0]

    def test_missing_beat_excluded(self, preprocessor, incident_factory):
        """Test records without a beat cannot be gridded and are excluded."""
        raw = incident_factory(
            [
                {"case": "JA1", "date": "01/01/2024 10:00:00 AM", "beat": "111"},
                {"case": "JA2", "date": "01/01/2024 10:00:00 AM", "beat": None},
            ]
        )
        result = preprocessor.run(raw, execution_date="2024-01-15")
        assert result.excluded["missing_beat"] == 1

    def test_unmapped_category_reported(self, preprocessor, incident_factory):
        """Test descriptions outside the table are kept and reported."""
        raw = incident_factory(
            [{"case": "JA1", "date": "01/01/2024 10:00:00 AM", "beat": "111", "type": "UNHEARD OF"}]
        )
        result = preprocessor.run(raw, execution_date="2024-01-15")
        df = preprocessor.get_data()

        assert result.rows_output == 1
        assert df["crime_category"].iloc[0] == "UNHEARD OF"
        assert df["category_unmapped"].iloc[0]
        assert preprocessor.unmapped_descriptions == ["UNHEARD OF"]
        assert any(i.type == IssueType.UNMAPPED_CATEGORY for i in result.issues)

    def test_missing_required_column_fails(self, preprocessor, raw_incidents):
        """Test a frame without beats fails the run instead of raising."""
        result = preprocessor.run(raw_incidents.drop(columns=["Beat"]), execution_date="2024-01-15")
        assert not result.success
        assert "beat" in result.error_message

    def test_empty_snapshot(self, preprocessor, incident_factory):
        """Test a snapshot with no records normalizes to an empty frame."""
        result = preprocessor.run(incident_factory([]), execution_date="2024-01-15")
        df = preprocessor.get_data()

        assert result.success
        assert result.rows_input == 0
        assert result.rows_output == 0
        assert result.excluded == {}
        assert df.empty
        assert set(preprocessor.get_required_columns()) <= set(df.columns)


def test_preprocess_crime_data_returns_dict(test_config, raw_incidents):
    """Test the convenience function."""
    result = preprocess_crime_data(raw_incidents, "2024-01-15", test_config)
    assert result["success"]
    assert result["rows_output"] == 4
