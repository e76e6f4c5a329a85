"""
Beat Forecast - Crime Dataset

Municipal crime incident records, from raw feed snapshot to beat-day panel.

Components:
    - CrimeFileIngester: Loads a CSV/Parquet snapshot of the incident feed
    - CrimePreprocessor: Deduplicates, enriches and categorizes incidents
    - CrimeFeatureBuilder: Builds the beat-day grid with rolling history

Usage:
    from beat_forecast.datasets.crime import (
        CrimeFileIngester,
        CrimePreprocessor,
        CrimeFeatureBuilder,
    )

    ingester = CrimeFileIngester("data/raw/crimes_2024.csv")
    ingester.run(execution_date="2024-12-31")

    preprocessor = CrimePreprocessor()
    preprocessor.run(ingester.get_data(), execution_date="2024-12-31")

    builder = CrimeFeatureBuilder()
    builder.run(preprocessor.get_data(), execution_date="2024-12-31")
    panel = builder.get_data()
"""

from beat_forecast.datasets.crime.categories import (
    CategoryAssignment,
    CategoryMapper,
    CrimeCategory,
    ViolenceLabel,
)
from beat_forecast.datasets.crime.features import (
    CrimeFeatureBuilder,
    build_crime_features,
    build_incident_summary,
)
from beat_forecast.datasets.crime.grid import build_beat_day_grid
from beat_forecast.datasets.crime.history import HistoryFeatureEngine, HistoryResult
from beat_forecast.datasets.crime.ingest import CrimeFileIngester, ingest_crime_data
from beat_forecast.datasets.crime.preprocess import CrimePreprocessor, preprocess_crime_data
from beat_forecast.datasets.crime.temporal import (
    TemporalFeatures,
    add_temporal_features,
    extract_temporal_features,
    season_for_month,
)

__all__ = [
    "CrimeFileIngester",
    "CrimePreprocessor",
    "CrimeFeatureBuilder",
    "CategoryMapper",
    "CategoryAssignment",
    "CrimeCategory",
    "ViolenceLabel",
    "HistoryFeatureEngine",
    "HistoryResult",
    "TemporalFeatures",
    "build_beat_day_grid",
    "build_incident_summary",
    "extract_temporal_features",
    "add_temporal_features",
    "season_for_month",
    "ingest_crime_data",
    "preprocess_crime_data",
    "build_crime_features",
]
