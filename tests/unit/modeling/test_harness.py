"""
Unit tests for ModelComparisonHarness.
"""

import pytest

from beat_forecast.modeling.candidates import (
    DecisionTreeCandidate,
    ElasticNetCandidate,
    NegativeBinomialCandidate,
    RegressionCandidate,
)
from beat_forecast.modeling.harness import RANKING_COLUMNS, ModelComparisonHarness, evaluate_predictions
from beat_forecast.modeling.splitter import DatasetSplitter
from beat_forecast.shared.errors import IssueType, NoCandidateSucceeded


class BrokenCandidate(RegressionCandidate):
    """Candidate whose estimator always fails to fit."""

    name = "broken"

    def build_estimator(self, params=None):
        raise RuntimeError("solver exploded")

    def param_grid(self, tune_length):
        return {}


@pytest.fixture
def split(fast_config, synthetic_panel):
    """Chronological split of the synthetic panel."""
    return DatasetSplitter(fast_config).split(synthetic_panel)


class TestModelComparisonHarness:
    """Test cases for ModelComparisonHarness."""

    def test_default_candidates_from_config(self, fast_config):
        """Test the configured candidates are built."""
        harness = ModelComparisonHarness(fast_config)
        assert [c.name for c in harness.candidates] == ["elastic_net", "decision_tree"]

    def test_cv_uses_configured_folds(self, fast_config):
        """Test repeated k-fold matches the configuration."""
        cv = ModelComparisonHarness(fast_config).make_cv()
        assert cv.get_n_splits() == fast_config.modeling.cv_folds * fast_config.modeling.cv_repeats

    def test_run_ranks_candidates(self, fast_config, split):
        """Test a ranking row per successful candidate."""
        result = ModelComparisonHarness(fast_config).run(split)
        ranking = result.ranking

        assert list(ranking.columns) == RANKING_COLUMNS
        assert set(ranking["candidate"]) == {"elastic_net", "decision_tree"}
        assert ranking["validation_rmse"].is_monotonic_increasing
        assert ranking["rank_rmse"].iloc[0] == 1
        assert result.best_candidate == ranking["candidate"].iloc[0]
        assert result.failures == {}

    def test_predictions_and_models(self, fast_config, split):
        """Test validation predictions and fitted models are kept."""
        result = ModelComparisonHarness(fast_config).run(split)

        assert len(result.predictions) == len(split.validation)
        assert {"beat", "date", "count", "elastic_net", "decision_tree"} <= set(result.predictions.columns)
        assert set(result.fitted) == {"elastic_net", "decision_tree"}

    def test_failing_candidate_is_excluded(self, fast_config, split):
        """Test one failure is recorded while the others still rank."""
        candidates = [
            ElasticNetCandidate(fast_config.modeling),
            BrokenCandidate(fast_config.modeling),
            DecisionTreeCandidate(fast_config.modeling),
        ]
        result = ModelComparisonHarness(fast_config, candidates=candidates).run(split)

        assert "broken" in result.failures
        assert "solver exploded" in result.failures["broken"]
        assert "broken" not in set(result.ranking["candidate"])
        assert len(result.ranking) == 2

        fit_failures = [i for i in result.issues if i.type == IssueType.CANDIDATE_FIT_FAILURE]
        assert len(fit_failures) == 1
        assert fit_failures[0].details["candidate"] == "broken"

    def test_unconverged_count_model_is_excluded(self, fast_config, split):
        """Test a count model that runs out of iterations is a failure, not a ranking row."""
        modeling = fast_config.modeling.model_copy(update={"max_iter": 1})
        candidates = [ElasticNetCandidate(modeling), NegativeBinomialCandidate(modeling)]
        result = ModelComparisonHarness(fast_config, candidates=candidates).run(split)

        assert "negative_binomial" in result.failures
        assert "did not converge" in result.failures["negative_binomial"]
        assert "negative_binomial" not in set(result.ranking["candidate"])
        assert list(result.ranking["candidate"]) == ["elastic_net"]

    def test_all_candidates_fail(self, fast_config, split):
        """Test zero successes raises NoCandidateSucceeded."""
        harness = ModelComparisonHarness(fast_config, candidates=[BrokenCandidate(fast_config.modeling)])

        with pytest.raises(NoCandidateSucceeded) as exc_info:
            harness.run(split)
        assert "broken" in exc_info.value.failures

    def test_to_dict(self, fast_config, split):
        """Test the result serializes for logging."""
        result = ModelComparisonHarness(fast_config).run(split)
        data = result.to_dict()

        assert data["best_candidate"] == result.best_candidate
        assert len(data["ranking"]) == 2


def test_evaluate_predictions():
    """Test RMSE, MAE and R^2 on a hand-checked example."""
    scores = evaluate_predictions([1.0, 2.0, 3.0], [1.0, 2.0, 5.0])

    assert scores["rmse"] == pytest.approx((4 / 3) ** 0.5)
    assert scores["mae"] == pytest.approx(2 / 3)
    assert scores["r2"] == pytest.approx(1 - 4 / 2)
