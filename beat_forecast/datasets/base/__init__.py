"""
Beat Forecast - Base Classes for Datasets

Abstract base classes that dataset implementations inherit from.
These provide a consistent interface for:
- Data ingestion (BaseIngester)
- Data preprocessing (BasePreprocessor)
- Feature building (BaseFeatureBuilder)

Usage:
    from beat_forecast.datasets.base import BaseIngester, BasePreprocessor, BaseFeatureBuilder

    class CrimeFileIngester(BaseIngester):
        def fetch_data(self) -> pd.DataFrame:
            ...
"""

from beat_forecast.datasets.base.feature_builder import (
    BaseFeatureBuilder,
    FeatureBuildResult,
    FeatureDefinition,
)
from beat_forecast.datasets.base.ingester import BaseIngester, IngestionResult
from beat_forecast.datasets.base.preprocessor import BasePreprocessor, PreprocessingResult

__all__ = [
    "BaseIngester",
    "IngestionResult",
    "BasePreprocessor",
    "PreprocessingResult",
    "BaseFeatureBuilder",
    "FeatureBuildResult",
    "FeatureDefinition",
]
