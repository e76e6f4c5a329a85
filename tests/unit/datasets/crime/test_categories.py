"""
Unit tests for the offense category collapser.
"""

import pandas as pd
import pytest

from beat_forecast.datasets.crime.categories import (
    CategoryMapper,
    CrimeCategory,
    ViolenceLabel,
    normalize_description,
)
from beat_forecast.shared.errors import ConfigurationError


@pytest.fixture
def small_table():
    """Minimal mapping table."""
    return {
        "categories": {
            "assault": ["BATTERY", "ASSAULT"],
            "theft": ["THEFT", "MOTOR VEHICLE THEFT"],
            "drugs": ["NARCOTICS"],
        },
        "violent": ["assault"],
    }


class TestCategoryMapper:
    """Test cases for CategoryMapper."""

    def test_collapse_known_description(self, small_table):
        """Test a known description maps to its category and violence label."""
        mapper = CategoryMapper.from_table(small_table)
        assignment = mapper.collapse("battery")

        assert assignment.category == CrimeCategory.ASSAULT.value
        assert assignment.violence == ViolenceLabel.VIOLENT
        assert not assignment.unmapped

    def test_non_violent_category(self, small_table):
        """Test categories not listed as violent are non-violent."""
        mapper = CategoryMapper.from_table(small_table)
        assert mapper.collapse("NARCOTICS").violence == ViolenceLabel.NON_VIOLENT

    def test_collapse_is_deterministic(self, small_table):
        """Test the same description always gets the same assignment."""
        mapper = CategoryMapper.from_table(small_table)
        assert mapper.collapse(" Motor  Vehicle Theft ") == mapper.collapse("MOTOR VEHICLE THEFT")

    def test_unmapped_description_passes_through(self, small_table):
        """Test an unknown description keeps its own name with an unknown label."""
        mapper = CategoryMapper.from_table(small_table)
        assignment = mapper.collapse("Ritualism")

        assert assignment.category == "RITUALISM"
        assert assignment.violence == ViolenceLabel.UNKNOWN
        assert assignment.unmapped

    def test_unknown_category_rejected(self, small_table):
        """Test a category outside the enumeration is a configuration error."""
        small_table["categories"]["jaywalking"] = ["JAYWALKING"]
        with pytest.raises(ConfigurationError):
            CategoryMapper.from_table(small_table)

    def test_conflicting_description_rejected(self, small_table):
        """Test a description listed under two categories is rejected."""
        small_table["categories"]["drugs"].append("THEFT")
        with pytest.raises(ConfigurationError):
            CategoryMapper.from_table(small_table)

    def test_unknown_violent_category_rejected(self, small_table):
        """Test the violent list may only name known categories."""
        small_table["violent"].append("mayhem")
        with pytest.raises(ConfigurationError):
            CategoryMapper.from_table(small_table)

    def test_empty_table_rejected(self):
        """Test a table without descriptions is rejected."""
        with pytest.raises(ConfigurationError):
            CategoryMapper.from_table({"categories": {}})

    def test_shipped_table_loads(self, test_config):
        """Test the configured table is valid."""
        mapper = CategoryMapper.from_config(test_config)
        assert mapper.collapse("HOMICIDE").violence == ViolenceLabel.VIOLENT
        assert mapper.collapse("DECEPTIVE PRACTICE").category == "fraud"


class TestApply:
    """Test cases for CategoryMapper.apply."""

    def test_apply_adds_columns(self, small_table):
        """Test apply annotates every row and reports unmapped descriptions."""
        mapper = CategoryMapper.from_table(small_table)
        df = pd.DataFrame({"primary_type": ["THEFT", "battery", "ARSON", None]})

        out, unmapped = mapper.apply(df)

        assert list(out["crime_category"]) == ["theft", "assault", "ARSON", "UNKNOWN"]
        assert list(out["violence"]) == ["non-violent", "violent", "unknown", "unknown"]
        assert list(out["category_unmapped"]) == [False, False, True, True]
        assert unmapped == ["ARSON", "UNKNOWN"]

    def test_apply_does_not_modify_input(self, small_table):
        """Test the input frame is left untouched."""
        mapper = CategoryMapper.from_table(small_table)
        df = pd.DataFrame({"primary_type": ["THEFT"]})
        mapper.apply(df)
        assert list(df.columns) == ["primary_type"]


def test_normalize_description():
    """Test whitespace collapsing and upper-casing."""
    assert normalize_description("  criminal   damage ") == "CRIMINAL DAMAGE"
    assert normalize_description(None) == "UNKNOWN"


def test_labels_format_as_values():
    """Test category and violence labels render as their plain values."""
    assert str(CrimeCategory.SEXUAL_ASSAULT) == "sexual_assault"
    assert f"{ViolenceLabel.NON_VIOLENT}" == "non-violent"
