"""
Beat Forecast - Modeling

Chronological splitting of the beat-day panel and cross-validated comparison
of count regression candidates.
"""

from beat_forecast.modeling.candidates import (
    CANDIDATES,
    AdditiveSplineRegressor,
    CrossValidationResult,
    NegativeBinomialRegressor,
    RegressionCandidate,
    build_candidates,
)
from beat_forecast.modeling.harness import (
    ComparisonResult,
    ModelComparisonHarness,
    evaluate_predictions,
)
from beat_forecast.modeling.splitter import DatasetSplitter, PanelSplit

__all__ = [
    "CANDIDATES",
    "AdditiveSplineRegressor",
    "CrossValidationResult",
    "NegativeBinomialRegressor",
    "RegressionCandidate",
    "build_candidates",
    "ComparisonResult",
    "ModelComparisonHarness",
    "evaluate_predictions",
    "DatasetSplitter",
    "PanelSplit",
]
