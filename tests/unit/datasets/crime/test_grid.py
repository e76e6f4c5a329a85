"""
Unit tests for the beat-day grid builder.
"""

import pandas as pd

from beat_forecast.datasets.crime.grid import GRID_COLUMNS, build_beat_day_grid


def _incidents(rows):
    return pd.DataFrame(
        [{"beat": b, "date": pd.Timestamp(d), "arrest": a} for b, d, a in rows]
    )


class TestBuildBeatDayGrid:
    """Test cases for build_beat_day_grid."""

    def test_full_cross_product(self):
        """Test the grid has one row per observed beat and observed date."""
        incidents = _incidents(
            [
                ("0111", "2024-01-01", False),
                ("0112", "2024-01-02", True),
                ("0113", "2024-01-04", False),
            ]
        )
        grid = build_beat_day_grid(incidents)

        assert len(grid) == 3 * 3
        assert not grid.duplicated(subset=["beat", "date"]).any()
        assert list(grid.columns) == GRID_COLUMNS

    def test_zero_fill_and_counts(self):
        """Test unobserved cells are zero and observed cells are counted."""
        incidents = _incidents(
            [
                ("0111", "2024-01-01", True),
                ("0111", "2024-01-01", False),
                ("0112", "2024-01-02", True),
            ]
        )
        grid = build_beat_day_grid(incidents).set_index(["beat", "date"])

        assert grid.loc[("0111", pd.Timestamp("2024-01-01")), "count"] == 2
        assert grid.loc[("0111", pd.Timestamp("2024-01-01")), "arrest"] == 1
        assert grid.loc[("0111", pd.Timestamp("2024-01-02")), "count"] == 0
        assert grid.loc[("0112", pd.Timestamp("2024-01-01")), "count"] == 0
        assert grid.loc[("0112", pd.Timestamp("2024-01-02")), "arrest"] == 1

    def test_per_beat_sums_match_incidents(self):
        """Test count totals per beat equal the incident totals."""
        incidents = _incidents(
            [("0111", "2024-01-01", False)] * 4
            + [("0112", "2024-01-03", True)] * 2
            + [("0112", "2024-01-01", False)]
        )
        grid = build_beat_day_grid(incidents)

        assert grid.groupby("beat")["count"].sum().to_dict() == {"0111": 4, "0112": 3}
        assert grid.groupby("beat")["arrest"].sum().to_dict() == {"0111": 0, "0112": 2}
        assert grid["count"].sum() == len(incidents)

    def test_sorted_by_beat_then_date(self):
        """Test grid ordering."""
        incidents = _incidents(
            [("0112", "2024-01-02", False), ("0111", "2024-01-01", False)]
        )
        grid = build_beat_day_grid(incidents)

        assert list(grid["beat"]) == ["0111", "0111", "0112", "0112"]
        assert grid.groupby("beat")["date"].apply(lambda s: s.is_monotonic_increasing).all()

    def test_calendar_columns(self):
        """Test weekday, month and season come from the cell date."""
        grid = build_beat_day_grid(_incidents([("0111", "2024-07-04", False)]))
        row = grid.iloc[0]

        assert row["weekday"] == "Thursday"
        assert row["month"] == 7
        assert row["season"] == "summer"

    def test_empty_input(self):
        """Test empty input yields an empty grid with the expected columns."""
        grid = build_beat_day_grid(pd.DataFrame(columns=["beat", "date", "arrest"]))
        assert grid.empty
        assert list(grid.columns) == GRID_COLUMNS
