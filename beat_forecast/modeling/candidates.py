"""
Beat Forecast - Regression Candidates

One class per algorithm family compared by the harness. Every candidate exposes
the same surface: a hyperparameter grid sized by ``tune_length``, an estimator
factory, cross-validated tuning, a final fit and prediction.

Candidates:
    elastic_net        Standardized linear model with L1/L2 shrinkage
    negative_binomial  NB2 count regression, log link, dispersion by maximum likelihood
    hinge_spline       Additive piecewise-linear spline basis with ridge shrinkage
    gam                Additive cubic-spline basis with ridge shrinkage
    decision_tree      CART regression tree pruned by cost complexity

Usage:
    from beat_forecast.modeling.candidates import build_candidates

    for candidate in build_candidates(config.modeling):
        tuned = candidate.cross_validate(X, y, cv)
        model = candidate.fit(X, y, tuned.best_params)
"""

from __future__ import annotations

import logging
from abc import ABC, abstractmethod
from dataclasses import dataclass, field
from typing import Any

import numpy as np
import statsmodels.api as sm
from sklearn.base import BaseEstimator, RegressorMixin
from sklearn.compose import ColumnTransformer
from sklearn.linear_model import ElasticNet, Ridge
from sklearn.model_selection import GridSearchCV, cross_val_score
from sklearn.pipeline import Pipeline
from sklearn.preprocessing import SplineTransformer, StandardScaler
from sklearn.tree import DecisionTreeRegressor
from sklearn.utils.validation import check_is_fitted
from statsmodels.discrete.discrete_model import NegativeBinomial

from beat_forecast.shared.config import ModelingConfig
from beat_forecast.shared.errors import ConfigurationError

logger = logging.getLogger(__name__)

SCORING = "r2"


# =============================================================================
# Estimators
# =============================================================================


class NegativeBinomialRegressor(RegressorMixin, BaseEstimator):
    """
    scikit-learn wrapper around the statsmodels NB2 count model.

    An intercept is always added. Columns that are constant in the training
    data are left out of the model. The dispersion parameter is estimated
    jointly with the coefficients; predictions are the conditional means.
    A fit that does not converge within ``max_iter`` iterations raises
    RuntimeError.
    """

    def __init__(self, max_iter: int = 200):
        self.max_iter = max_iter

    def fit(self, X, y):
        X = np.asarray(X, dtype=float)
        y = np.asarray(y, dtype=float)
        self.varying_ = np.ptp(X, axis=0) > 0
        exog = sm.add_constant(X[:, self.varying_], has_constant="add")

        model = NegativeBinomial(y, exog, loglike_method="nb2")
        result = model.fit(method="bfgs", maxiter=self.max_iter, disp=0)

        if not np.all(np.isfinite(result.params)):
            raise ValueError("Negative binomial fit produced non-finite coefficients")
        if not result.mle_retvals.get("converged", True):
            raise RuntimeError(f"Negative binomial fit did not converge in {self.max_iter} iterations")

        self.result_ = result
        self.coef_ = np.asarray(result.params[1:-1])
        self.intercept_ = float(result.params[0])
        self.alpha_ = float(result.params[-1])
        self.n_features_in_ = X.shape[1]
        logger.debug(f"Negative binomial fit converged with alpha={self.alpha_:.3f}")
        return self

    def predict(self, X):
        check_is_fitted(self, "result_")
        X = np.asarray(X, dtype=float)
        return np.exp(self.intercept_ + X[:, self.varying_] @ self.coef_)


class AdditiveSplineRegressor(RegressorMixin, BaseEstimator):
    """
    Additive spline regression with a ridge penalty.

    Columns with more than two distinct training values are expanded into a
    B-spline basis of the given degree; indicator columns pass through
    unchanged. Degree 1 gives a hinge (piecewise-linear) basis, degree 3 a
    cubic one.
    """

    def __init__(self, degree: int = 3, n_knots: int = 5, alpha: float = 1.0):
        self.degree = degree
        self.n_knots = n_knots
        self.alpha = alpha

    def fit(self, X, y):
        X = np.asarray(X, dtype=float)
        y = np.asarray(y, dtype=float)

        spline_columns = [
            i for i in range(X.shape[1]) if len(np.unique(X[:, i])) > 2
        ]
        basis = ColumnTransformer(
            [
                (
                    "spline",
                    SplineTransformer(
                        n_knots=self.n_knots,
                        degree=self.degree,
                        knots="uniform",
                        extrapolation="linear",
                    ),
                    spline_columns,
                )
            ],
            remainder="passthrough",
        )
        self.pipeline_ = Pipeline(
            [
                ("basis", basis),
                ("scale", StandardScaler()),
                ("ridge", Ridge(alpha=self.alpha)),
            ]
        )
        self.pipeline_.fit(X, y)
        self.spline_columns_ = spline_columns
        self.n_features_in_ = X.shape[1]
        return self

    def predict(self, X):
        check_is_fitted(self, "pipeline_")
        return self.pipeline_.predict(np.asarray(X, dtype=float))


# =============================================================================
# Candidates
# =============================================================================


@dataclass
class CrossValidationResult:
    """Outcome of tuning one candidate by cross-validation."""

    best_params: dict[str, Any]
    cv_r2_mean: float
    cv_r2_std: float
    n_splits: int
    grid_size: int = 1
    scores: list[float] = field(default_factory=list)


class RegressionCandidate(ABC):
    """
    Abstract base class for a compared regression family.

    Subclasses must implement:
    - build_estimator(): Return an unfitted estimator for the given parameters
    - param_grid(): Return the hyperparameter grid for a tuning length
    """

    name: str = ""

    def __init__(self, config: ModelingConfig | None = None):
        """
        Initialize the candidate.

        Args:
            config: Modeling configuration (uses defaults if not provided)
        """
        self.config = config or ModelingConfig()

    @abstractmethod
    def build_estimator(self, params: dict[str, Any] | None = None) -> BaseEstimator:
        """Unfitted estimator with ``params`` applied."""
        pass

    @abstractmethod
    def param_grid(self, tune_length: int) -> dict[str, list[Any]]:
        """Hyperparameter grid; an empty grid means nothing is tuned."""
        pass

    def cross_validate(self, X, y, cv) -> CrossValidationResult:
        """
        Tune the candidate by cross-validated R^2.

        Args:
            X: Training design matrix
            y: Training target
            cv: scikit-learn splitter (e.g. RepeatedKFold)

        Returns:
            CrossValidationResult for the best grid point
        """
        grid = self.param_grid(self.config.tune_length)
        estimator = self.build_estimator()

        if not grid:
            scores = cross_val_score(
                estimator, X, y, cv=cv, scoring=SCORING, n_jobs=self.config.n_jobs, error_score="raise"
            )
            return CrossValidationResult(
                best_params={},
                cv_r2_mean=float(np.mean(scores)),
                cv_r2_std=float(np.std(scores)),
                n_splits=len(scores),
                scores=[float(s) for s in scores],
            )

        search = GridSearchCV(
            estimator,
            grid,
            scoring=SCORING,
            cv=cv,
            refit=False,
            n_jobs=self.config.n_jobs,
            error_score="raise",
        )
        search.fit(X, y)

        best = search.best_index_
        results = search.cv_results_
        n_splits = search.n_splits_
        scores = [float(results[f"split{i}_test_score"][best]) for i in range(n_splits)]

        return CrossValidationResult(
            best_params=dict(search.best_params_),
            cv_r2_mean=float(results["mean_test_score"][best]),
            cv_r2_std=float(results["std_test_score"][best]),
            n_splits=n_splits,
            grid_size=len(results["params"]),
            scores=scores,
        )

    def fit(self, X, y, params: dict[str, Any] | None = None) -> BaseEstimator:
        """Fit on the full training set with the chosen parameters."""
        model = self.build_estimator(params)
        model.fit(X, y)
        return model

    def predict(self, model: BaseEstimator, X) -> np.ndarray:
        return np.asarray(model.predict(X), dtype=float)


class ElasticNetCandidate(RegressionCandidate):
    name = "elastic_net"

    def build_estimator(self, params=None):
        pipeline = Pipeline(
            [
                ("scale", StandardScaler()),
                ("model", ElasticNet(max_iter=self.config.max_iter * 10)),
            ]
        )
        return pipeline.set_params(**(params or {}))

    def param_grid(self, tune_length):
        return {
            "model__alpha": [float(a) for a in np.logspace(-3, 0, tune_length)],
            "model__l1_ratio": [float(r) for r in np.linspace(0.1, 1.0, tune_length)],
        }


class NegativeBinomialCandidate(RegressionCandidate):
    name = "negative_binomial"

    def build_estimator(self, params=None):
        pipeline = Pipeline(
            [
                ("scale", StandardScaler()),
                ("model", NegativeBinomialRegressor(max_iter=self.config.max_iter)),
            ]
        )
        return pipeline.set_params(**(params or {}))

    def param_grid(self, tune_length):
        return {}


class HingeSplineCandidate(RegressionCandidate):
    """MARS-style additive model: degree-1 splines span the hinge functions."""

    name = "hinge_spline"
    degree = 1

    def build_estimator(self, params=None):
        estimator = AdditiveSplineRegressor(degree=self.degree)
        return estimator.set_params(**(params or {}))

    def param_grid(self, tune_length):
        return {
            "n_knots": list(range(3, 3 + 2 * tune_length, 2)),
            "alpha": [float(a) for a in np.logspace(-2, 2, tune_length)],
        }


class GAMCandidate(HingeSplineCandidate):
    name = "gam"
    degree = 3


class DecisionTreeCandidate(RegressionCandidate):
    name = "decision_tree"

    def build_estimator(self, params=None):
        tree = DecisionTreeRegressor(
            min_samples_split=20,
            min_samples_leaf=7,
            random_state=self.config.random_state,
        )
        return tree.set_params(**(params or {}))

    def param_grid(self, tune_length):
        alphas = [0.0]
        if tune_length > 1:
            alphas += [float(a) for a in np.logspace(-4, -1, tune_length - 1)]
        return {"ccp_alpha": alphas}


CANDIDATES: dict[str, type[RegressionCandidate]] = {
    cls.name: cls
    for cls in (
        ElasticNetCandidate,
        NegativeBinomialCandidate,
        HingeSplineCandidate,
        GAMCandidate,
        DecisionTreeCandidate,
    )
}


def build_candidates(config: ModelingConfig) -> list[RegressionCandidate]:
    """
    Instantiate the configured candidates in configuration order.

    Raises:
        ConfigurationError: If a configured name is not a known candidate
    """
    unknown = [name for name in config.candidates if name not in CANDIDATES]
    if unknown:
        raise ConfigurationError(
            f"Unknown model candidates {unknown}; choose from {sorted(CANDIDATES)}"
        )
    return [CANDIDATES[name](config) for name in config.candidates]
