"""
Beat Forecast - Pytest Configuration and Fixtures

Shared fixtures for all tests:
- Configuration fixtures
- Raw incident and beat-day grid fixtures
"""

import os
from collections.abc import Generator
from pathlib import Path
from typing import Any

import pandas as pd
import pytest

# Set test environment
os.environ["BF_ENVIRONMENT"] = "dev"

RAW_COLUMNS = [
    "ID",
    "Case Number",
    "Date",
    "Block",
    "IUCR",
    "Primary Type",
    "Description",
    "Location Description",
    "Arrest",
    "Domestic",
    "Beat",
    "District",
    "Ward",
    "Community Area",
    "Latitude",
    "Longitude",
]


def make_raw_incidents(records: list[dict[str, Any]]) -> pd.DataFrame:
    """
    Build a feed-format frame from short records.

    Each record needs ``case``, ``date`` and ``beat``; ``type``, ``arrest`` and
    ``domestic`` default to THEFT / false / false.
    """
    rows = []
    for i, rec in enumerate(records):
        rows.append(
            {
                "ID": str(1000 + i),
                "Case Number": rec["case"],
                "Date": rec["date"],
                "Block": rec.get("block", "001XX N STATE ST"),
                "IUCR": rec.get("iucr", "0820"),
                "Primary Type": rec.get("type", "THEFT"),
                "Description": rec.get("description", "$500 AND UNDER"),
                "Location Description": rec.get("location", "STREET"),
                "Arrest": rec.get("arrest", "false"),
                "Domestic": rec.get("domestic", "false"),
                "Beat": rec["beat"],
                "District": rec.get("district", "1"),
                "Ward": rec.get("ward", "42"),
                "Community Area": rec.get("community_area", "32"),
                "Latitude": rec.get("latitude", "41.88"),
                "Longitude": rec.get("longitude", "-87.63"),
            }
        )
    return pd.DataFrame(rows, columns=RAW_COLUMNS)


# =============================================================================
# Path Fixtures
# =============================================================================


@pytest.fixture
def project_root() -> Path:
    """Get the project root directory."""
    return Path(__file__).parent.parent


@pytest.fixture
def configs_dir(project_root: Path) -> Path:
    """Get the configs directory."""
    return project_root / "configs"


# =============================================================================
# Configuration Fixtures
# =============================================================================


@pytest.fixture
def test_config() -> Any:
    """Get test configuration."""
    from beat_forecast.shared.config import get_config, reload_config

    # Ensure fresh config for tests
    reload_config("dev")
    return get_config("dev")


@pytest.fixture
def fast_config(test_config: Any) -> Any:
    """Test configuration with a small, quick model comparison."""
    modeling = test_config.modeling.model_copy(
        update={
            "candidates": ["elastic_net", "decision_tree"],
            "cv_folds": 3,
            "cv_repeats": 1,
            "tune_length": 2,
            "max_iter": 100,
        }
    )
    return test_config.model_copy(update={"modeling": modeling})


# =============================================================================
# Data Fixtures
# =============================================================================


@pytest.fixture
def incident_factory():
    """Factory building feed-format incident frames from short records."""
    return make_raw_incidents


@pytest.fixture
def raw_incidents() -> pd.DataFrame:
    """A handful of feed-format incidents with one duplicate case number."""
    return make_raw_incidents(
        [
            {"case": "JA100001", "date": "01/01/2024 12:00:00 AM", "beat": "111", "type": "THEFT"},
            {"case": "JA100002", "date": "01/01/2024 07:30:00 AM", "beat": "0111", "type": "BATTERY", "arrest": "true"},
            {"case": "JA100003", "date": "01/02/2024 06:00:00 PM", "beat": "112", "type": "NARCOTICS", "arrest": "true"},
            {"case": "JA100003", "date": "01/02/2024 07:00:00 PM", "beat": "112", "type": "NARCOTICS"},
            {"case": "JA100004", "date": "01/03/2024 11:59:59 PM", "beat": "112", "type": "ROBBERY"},
        ]
    )


@pytest.fixture
def three_beat_incidents() -> pd.DataFrame:
    """
    Thirty incidents over three beats and ten days.

    Beat 0111 has one incident every day; beat 0112 has two incidents on odd
    days (one with an arrest) and none on even days; beat 0113 has a single
    incident on day 5. Every cell of the 3 x 10 grid is therefore defined by
    at least one observed beat and date.
    """
    records = []
    n = 0
    for day in range(1, 11):
        date = f"03/{day:02d}/2024 10:00:00 AM"
        n += 1
        records.append({"case": f"JB{n:06d}", "date": date, "beat": "0111"})
        if day % 2 == 1:
            n += 1
            records.append({"case": f"JB{n:06d}", "date": date, "beat": "0112", "arrest": "true"})
            n += 1
            records.append({"case": f"JB{n:06d}", "date": date, "beat": "0112", "type": "BATTERY"})
    n += 1
    records.append({"case": f"JB{n:06d}", "date": "03/05/2024 09:00:00 PM", "beat": "0113", "type": "BURGLARY"})
    # pad to thirty with extra beat 0111 incidents on day 10
    while len(records) < 30:
        n += 1
        records.append({"case": f"JB{n:06d}", "date": "03/10/2024 11:00:00 PM", "beat": "0111"})
    return make_raw_incidents(records)


@pytest.fixture
def synthetic_panel(test_config: Any) -> pd.DataFrame:
    """A larger beat-day panel with history features, for modeling tests."""
    import numpy as np

    from beat_forecast.datasets.crime.grid import build_beat_day_grid
    from beat_forecast.datasets.crime.history import HistoryFeatureEngine

    rng = np.random.default_rng(7)
    dates = pd.date_range("2024-01-01", periods=60, freq="D")
    rows = []
    for b, beat in enumerate(["0111", "0112", "0113", "0114"]):
        for date in dates:
            # gamma-mixed rates give overdispersed counts
            for _ in range(int(rng.poisson(rng.gamma(2.0, (1.0 + b) / 2.0)))):
                rows.append({"beat": beat, "date": date, "arrest": bool(rng.random() < 0.3)})
    incidents = pd.DataFrame(rows)
    grid = build_beat_day_grid(incidents)
    return HistoryFeatureEngine(test_config).compute(grid).panel


# =============================================================================
# Cleanup Fixtures
# =============================================================================


@pytest.fixture(autouse=True)
def cleanup_env() -> Generator[None, None, None]:
    """Clean up environment variables after each test."""
    original_env = os.environ.copy()
    yield
    # Restore original environment
    os.environ.clear()
    os.environ.update(original_env)
