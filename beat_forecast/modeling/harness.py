"""
Beat Forecast - Model Comparison Harness

Tunes every configured regression candidate by repeated k-fold
cross-validation on the training partition, refits the best hyperparameters on
the full training set and scores the refit once on the validation partition.

A candidate that raises while tuning, fitting or predicting is recorded as a
failure and left out of the ranking; the comparison only fails when no
candidate succeeds.

Usage:
    from beat_forecast.modeling.harness import ModelComparisonHarness

    harness = ModelComparisonHarness(config)
    result = harness.run(split)
    print(result.ranking)
"""

from __future__ import annotations

import logging
import time
from dataclasses import dataclass, field
from typing import Any

import numpy as np
import pandas as pd
from sklearn.metrics import mean_absolute_error, mean_squared_error, r2_score
from sklearn.model_selection import RepeatedKFold

from beat_forecast.modeling.candidates import RegressionCandidate, build_candidates
from beat_forecast.modeling.splitter import PanelSplit
from beat_forecast.shared.config import Settings, get_config
from beat_forecast.shared.errors import (
    CandidateFitFailure,
    IssueType,
    NoCandidateSucceeded,
    PipelineIssue,
)

logger = logging.getLogger(__name__)

RANKING_COLUMNS = [
    "candidate",
    "cv_r2_mean",
    "cv_r2_std",
    "validation_rmse",
    "validation_mae",
    "validation_r2",
    "best_params",
    "rank_cv",
    "rank_rmse",
]


def evaluate_predictions(y_true, y_pred) -> dict[str, float]:
    """RMSE, MAE and R^2 of a set of predictions."""
    return {
        "rmse": float(np.sqrt(mean_squared_error(y_true, y_pred))),
        "mae": float(mean_absolute_error(y_true, y_pred)),
        "r2": float(r2_score(y_true, y_pred)),
    }


@dataclass
class CandidateOutcome:
    """Scores of one successfully evaluated candidate."""

    candidate: str
    best_params: dict[str, Any]
    cv_r2_mean: float
    cv_r2_std: float
    validation: dict[str, float]
    duration_seconds: float = 0.0


@dataclass
class ComparisonResult:
    """Result of a model comparison run."""

    ranking: pd.DataFrame
    failures: dict[str, str] = field(default_factory=dict)
    fitted: dict[str, Any] = field(default_factory=dict)
    predictions: pd.DataFrame | None = None
    issues: list[PipelineIssue] = field(default_factory=list)
    duration_seconds: float = 0.0

    @property
    def best_candidate(self) -> str:
        """Candidate with the lowest validation RMSE."""
        return str(self.ranking.sort_values("rank_rmse").iloc[0]["candidate"])

    def to_dict(self) -> dict[str, Any]:
        """Convert result to dictionary for logging."""
        return {
            "ranking": self.ranking.to_dict(orient="records"),
            "failures": self.failures,
            "best_candidate": self.best_candidate,
            "duration_seconds": self.duration_seconds,
            "issues": [issue.to_dict() for issue in self.issues],
        }


class ModelComparisonHarness:
    """Cross-validated comparison of the configured regression candidates."""

    def __init__(
        self,
        config: Settings | None = None,
        candidates: list[RegressionCandidate] | None = None,
    ):
        """
        Initialize the harness.

        Args:
            config: Configuration object (uses default if not provided)
            candidates: Candidates to compare (defaults to ``modeling.candidates``)
        """
        self.config = config or get_config()
        self.modeling = self.config.modeling
        self.candidates = candidates if candidates is not None else build_candidates(self.modeling)

    def make_cv(self) -> RepeatedKFold:
        return RepeatedKFold(
            n_splits=self.modeling.cv_folds,
            n_repeats=self.modeling.cv_repeats,
            random_state=self.modeling.random_state,
        )

    def run(self, split: PanelSplit) -> ComparisonResult:
        """
        Compare all candidates on a chronological split.

        Args:
            split: Output of DatasetSplitter.split

        Returns:
            ComparisonResult with one ranking row per successful candidate

        Raises:
            NoCandidateSucceeded: If every candidate failed
        """
        start_time = time.time()
        X_train, y_train = split.X_train, split.y_train
        X_validation, y_validation = split.X_validation, split.y_validation

        logger.info(
            f"Comparing {len(self.candidates)} candidates",
            extra={
                "candidates": [c.name for c in self.candidates],
                "train_rows": len(X_train),
                "validation_rows": len(X_validation),
                "cv_folds": self.modeling.cv_folds,
                "cv_repeats": self.modeling.cv_repeats,
            },
        )

        outcomes: list[CandidateOutcome] = []
        failures: dict[str, str] = {}
        fitted: dict[str, Any] = {}
        predictions = split.validation[split.id_columns + [split.target_column]].copy()
        issues: list[PipelineIssue] = []

        for candidate in self.candidates:
            candidate_start = time.time()
            try:
                tuned = candidate.cross_validate(X_train, y_train, self.make_cv())
                model = candidate.fit(X_train, y_train, tuned.best_params)
                y_pred = candidate.predict(model, X_validation)
                if not np.all(np.isfinite(y_pred)):
                    raise ValueError("validation predictions contain non-finite values")
                scores = evaluate_predictions(y_validation, y_pred)
            except Exception as e:
                failure = CandidateFitFailure(candidate.name, f"{type(e).__name__}: {e}")
                failures[candidate.name] = failure.reason
                issues.append(
                    PipelineIssue(
                        type=IssueType.CANDIDATE_FIT_FAILURE,
                        stage="compare",
                        message=str(failure),
                        count=1,
                        details={"candidate": candidate.name},
                    )
                )
                logger.warning(
                    str(failure),
                    extra={"candidate": candidate.name, "error": failure.reason},
                    exc_info=True,
                )
                continue

            outcome = CandidateOutcome(
                candidate=candidate.name,
                best_params=tuned.best_params,
                cv_r2_mean=tuned.cv_r2_mean,
                cv_r2_std=tuned.cv_r2_std,
                validation=scores,
                duration_seconds=time.time() - candidate_start,
            )
            outcomes.append(outcome)
            fitted[candidate.name] = model
            predictions[candidate.name] = y_pred

            logger.info(
                f"Candidate {candidate.name}: cv_r2={tuned.cv_r2_mean:.4f} "
                f"validation_rmse={scores['rmse']:.4f}",
                extra={
                    "candidate": candidate.name,
                    "best_params": tuned.best_params,
                    "duration_seconds": outcome.duration_seconds,
                },
            )

        if not outcomes:
            raise NoCandidateSucceeded(failures)

        result = ComparisonResult(
            ranking=self._rank(outcomes),
            failures=failures,
            fitted=fitted,
            predictions=predictions.reset_index(drop=True),
            issues=issues,
            duration_seconds=time.time() - start_time,
        )

        logger.info(
            f"Model comparison complete: best candidate {result.best_candidate}",
            extra={"succeeded": len(outcomes), "failed": len(failures)},
        )
        return result

    def _rank(self, outcomes: list[CandidateOutcome]) -> pd.DataFrame:
        """Ranking table sorted by validation RMSE (best first)."""
        ranking = pd.DataFrame(
            [
                {
                    "candidate": o.candidate,
                    "cv_r2_mean": o.cv_r2_mean,
                    "cv_r2_std": o.cv_r2_std,
                    "validation_rmse": o.validation["rmse"],
                    "validation_mae": o.validation["mae"],
                    "validation_r2": o.validation["r2"],
                    "best_params": o.best_params,
                }
                for o in outcomes
            ]
        )
        ranking["rank_cv"] = (
            ranking["cv_r2_mean"].rank(ascending=False, method="min", na_option="bottom").astype(int)
        )
        ranking["rank_rmse"] = (
            ranking["validation_rmse"].rank(method="min", na_option="bottom").astype(int)
        )
        return (
            ranking.sort_values(["rank_rmse", "rank_cv", "candidate"])
            .reset_index(drop=True)[RANKING_COLUMNS]
        )
