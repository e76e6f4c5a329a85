"""
Unit tests for CrimeFeatureBuilder.

Tests the beat-day panel built from preprocessed incidents.
"""

import pandas as pd
import pytest

from beat_forecast.datasets.crime.features import (
    SUMMARY_KEYS,
    CrimeFeatureBuilder,
    build_crime_features,
    build_incident_summary,
)
from beat_forecast.datasets.crime.preprocess import CrimePreprocessor


@pytest.fixture
def incidents(test_config, raw_incidents):
    """Preprocessed incidents from the shared raw sample."""
    preprocessor = CrimePreprocessor(test_config)
    preprocessor.run(raw_incidents, execution_date="2024-01-15")
    return preprocessor.get_data()


class TestCrimeFeatureBuilder:
    """Test cases for CrimeFeatureBuilder class."""

    @pytest.fixture
    def builder(self, test_config):
        """Create a CrimeFeatureBuilder instance."""
        return CrimeFeatureBuilder(test_config)

    def test_get_dataset_name(self, builder):
        """Test dataset name is correct."""
        assert builder.get_dataset_name() == "crime"

    def test_get_entity_key(self, builder):
        """Test the panel is keyed by beat and date."""
        assert builder.get_entity_key() == ["beat", "date"]

    def test_feature_definitions(self, builder):
        """Test every history feature is declared."""
        names = [f.name for f in builder.get_feature_definitions()]
        for name in ["count", "past_crime_1", "past_crime_7", "past_crime_30", "past_arrest_30", "policing"]:
            assert name in names

    def test_run_success(self, builder, incidents):
        """Test successful feature building run."""
        result = builder.run(incidents, execution_date="2024-01-15")

        assert result.success
        assert result.rows_input == 4
        # 2 beats x 3 dates
        assert result.rows_output == 6
        assert "count" in result.feature_stats

    def test_panel_contents(self, builder, incidents):
        """Test counts and columns of the built panel."""
        builder.run(incidents, execution_date="2024-01-15")
        panel = builder.get_data().set_index(["beat", "date"])

        assert panel.loc[("0111", pd.Timestamp("2024-01-01")), "count"] == 2
        assert panel.loc[("0111", pd.Timestamp("2024-01-01")), "arrest"] == 1
        assert panel.loc[("0112", pd.Timestamp("2024-01-01")), "count"] == 0
        assert not panel.isna().any().any()

    def test_history_issues_reported(self, builder, incidents):
        """Test history imputation is surfaced on the result."""
        result = builder.run(incidents, execution_date="2024-01-15")

        assert builder.last_history is not None
        assert any(issue.stage == "history" for issue in result.issues)

    def test_run_failure_is_captured(self, builder):
        """Test a malformed input fails the run instead of raising."""
        result = builder.run(pd.DataFrame({"beat": ["0111"]}), execution_date="2024-01-15")
        assert not result.success
        assert result.error_message

    def test_check_bounds(self, builder, incidents):
        """Test declared bounds are checked on the built panel."""
        result = builder.run(incidents, execution_date="2024-01-15")
        assert result.bound_violations == []

        panel = builder.get_data().copy()
        panel.loc[0, "count"] = -1
        panel.loc[1, "month"] = 13
        violations = builder.check_bounds(panel)

        assert "'count' below 0" in violations
        assert "'month' above 12" in violations


class TestIncidentSummary:
    """Test cases for build_incident_summary."""

    def test_summary_columns(self, incidents):
        """Test the stable column set."""
        summary = build_incident_summary(incidents)
        assert list(summary.columns) == SUMMARY_KEYS + ["count"]

    def test_summary_totals(self, incidents):
        """Test summary counts add up to the incident count."""
        summary = build_incident_summary(incidents)
        assert summary["count"].sum() == len(incidents)

    def test_empty_summary(self):
        """Test an empty frame yields the empty table."""
        summary = build_incident_summary(pd.DataFrame())
        assert summary.empty
        assert list(summary.columns) == SUMMARY_KEYS + ["count"]


def test_build_crime_features_returns_dict(test_config, incidents):
    """Test the convenience function."""
    result = build_crime_features(incidents, "2024-01-15", test_config)
    assert result["success"]
    assert result["rows_output"] == 6
