"""
End-to-end tests: significance -> selection -> model comparison.
"""

import json

import pytest

from fse.adapters import build_backends
from fse.config import (
    AnalysisConfig,
    EvaluationConfig,
    SelectionConfig,
    SignificanceConfig,
    SplitConfig,
)
from fse.evaluation import repeat_evaluation
from fse.pipeline import run_analysis
from fse.selection import FeatureCandidate


def test_separating_feature_end_to_end(separable_table, fast_presets):
    """Test one perfectly separating attribute is detected and predicts its label."""
    config = AnalysisConfig(
        label_col="label",
        feature_cols=["signal"],
        selection=SelectionConfig(candidate_size=1),
    )
    result = run_analysis(separable_table, config, backends=build_backends(presets=fast_presets))

    (signal,) = result.significance
    assert signal.p_value < 1e-6
    assert signal.n_significant_pairs >= 1
    assert [c.features for c in result.candidates] == [("signal",)]

    assert len(result.report) == 3
    assert not result.report.failures()
    for record in result.report:
        assert record.accuracy >= 0.95, record.backend


def test_pairs_of_separating_features(separable_table, fast_presets):
    config = AnalysisConfig(
        label_col="label",
        feature_cols=["signal", "signal_b", "noise"],
        selection=SelectionConfig(top_k=2),
    )
    result = run_analysis(separable_table, config, backends=build_backends(presets=fast_presets))

    assert [c.name for c in result.candidates] == ["signal+signal_b"]
    best = result.report.best()
    assert best.accuracy >= 0.95

    frame = result.candidates_frame()
    assert list(frame.columns) == ["candidate", "n_significant_pairs", "max_p_value"]
    assert len(result.significance_frame()) == 3
    assert not result.pairwise_frame().empty


def test_noise_does_not_beat_baseline(noise_table, fast_presets):
    """Test accuracy on label-independent features stays near the majority baseline."""
    trials = repeat_evaluation(
        noise_table,
        [FeatureCandidate(features=("noise_a", "noise_b"))],
        build_backends(presets=fast_presets),
        SplitConfig(seed=123, stratify_by="label"),
        n_trials=20,
        label_name="label",
    )

    assert len(trials.reports) == 20
    for _, row in trials.summary.iterrows():
        assert row["n_failed"] == 0
        assert row["mean_accuracy"] <= row["mean_majority_baseline"] + 0.10, row["backend"]


def test_noise_near_baseline_with_default_split(noise_table, fast_presets):
    """Test the unstratified default split also keeps noise features near the baseline."""
    trials = repeat_evaluation(
        noise_table,
        [FeatureCandidate(features=("noise_a", "noise_b"))],
        build_backends(presets=fast_presets),
        SplitConfig(seed=123),
        n_trials=20,
        label_name="label",
    )

    assert len(trials.reports) == 20
    for _, row in trials.summary.iterrows():
        assert row["n_failed"] == 0
        assert row["mean_accuracy"] <= row["mean_majority_baseline"] + 0.10, row["backend"]


def test_noise_features_yield_no_candidates(noise_table, fast_presets):
    config = AnalysisConfig(label_col="label", significance=SignificanceConfig(alpha=1e-4))
    result = run_analysis(noise_table, config, backends=build_backends(presets=fast_presets))

    assert result.candidates == []
    assert len(result.report) == 0
    assert result.report.best() is None


def test_run_is_reproducible(separable_table, fast_presets):
    config = AnalysisConfig(
        label_col="label",
        feature_cols=["signal", "signal_b"],
        split=SplitConfig(seed=7),
    )
    first = run_analysis(separable_table, config, backends=build_backends(presets=fast_presets))
    second = run_analysis(separable_table, config, backends=build_backends(presets=fast_presets))

    assert first.report.to_json() == second.report.to_json()
    assert json.loads(first.report.to_json())["split"]["seed"] == 7


def test_backends_built_from_config(separable_table):
    config = AnalysisConfig(
        label_col="label",
        feature_cols=["signal", "signal_b"],
        evaluation=EvaluationConfig(backends=["knn"]),
    )
    result = run_analysis(separable_table, config)
    assert [r.backend for r in result.report] == ["knn"]


def test_xgboost_end_to_end(separable_table):
    config = AnalysisConfig(
        label_col="label",
        feature_cols=["signal", "signal_b"],
        evaluation=EvaluationConfig(backends=["xgboost"]),
    )
    result = run_analysis(separable_table, config)

    (record,) = result.report.records
    assert record.ok
    assert record.accuracy >= 0.95
