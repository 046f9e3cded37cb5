"""
Tests for the classifier adapter contract.
"""

import numpy as np
import pandas as pd
import pytest

from fse.adapters import (
    DecisionTreeAdapter,
    KNearestNeighborsAdapter,
    RandomForestAdapter,
    XGBoostAdapter,
    available_backends,
    build_backends,
)
from fse.config import ColumnType, SplitConfig
from fse.errors import FeatureMismatchError
from fse.evaluation import evaluate
from fse.selection import FeatureCandidate
from fse.split import split_table
from fse.table import DatasetTable

FEATURES = ["signal", "signal_b"]


@pytest.fixture
def split(separable_table):
    return split_table(separable_table, 0.8, seed=123)


@pytest.mark.parametrize(
    "adapter_cls",
    [DecisionTreeAdapter, KNearestNeighborsAdapter, RandomForestAdapter],
)
def test_multiclass_fit_predict(split, adapter_cls):
    adapter = adapter_cls()
    model = adapter.fit(split.train, FEATURES, "label")

    assert model.backend == adapter.name
    assert model.feature_names == tuple(FEATURES)
    assert model.classes == ("A", "B", "C", "D")
    assert model.n_train == 160

    predicted = adapter.predict(model, split.test)
    actual = split.test.column("label").tolist()
    assert len(predicted) == len(actual)
    assert np.mean([p == a for p, a in zip(predicted, actual)]) >= 0.95


def test_xgboost_backend_decodes_labels(split):
    adapter = XGBoostAdapter(n_estimators=20)
    model = adapter.fit(split.train, FEATURES, "label")

    predicted = adapter.predict(model, split.test)
    assert set(predicted) <= {"A", "B", "C", "D"}
    assert model.classes == ("A", "B", "C", "D")


def test_predict_does_not_mutate_model(split):
    adapter = KNearestNeighborsAdapter()
    model = adapter.fit(split.train, FEATURES, "label")
    snapshot = (model.feature_names, model.classes, model.n_train)

    first = adapter.predict(model, split.test)
    second = adapter.predict(model, split.test)

    assert first == second
    assert (model.feature_names, model.classes, model.n_train) == snapshot


def test_predict_requires_fitted_features(split):
    adapter = DecisionTreeAdapter()
    model = adapter.fit(split.train, FEATURES, "label")

    with pytest.raises(FeatureMismatchError, match="signal_b"):
        adapter.predict(model, split.test.select(["signal", "label"]))


def test_fit_requires_features_in_view(split):
    with pytest.raises(FeatureMismatchError):
        DecisionTreeAdapter().fit(split.train, ["signal", "hp"], "label")


def test_fit_rejects_missing_labels(entity_table):
    with pytest.raises(ValueError, match="missing values"):
        DecisionTreeAdapter().fit(entity_table, ["attack"], "type_2")


def test_model_bound_to_backend(split):
    model = DecisionTreeAdapter().fit(split.train, FEATURES, "label")
    with pytest.raises(ValueError, match="decision_tree"):
        RandomForestAdapter().predict(model, split.test)


def test_params_resolve_presets_and_overrides():
    knn = KNearestNeighborsAdapter(n_neighbors=3)
    assert knn.params["n_neighbors"] == 3
    assert knn.params["weights"] == "distance"

    tree = DecisionTreeAdapter(presets={"decision_tree": {"max_depth": 2}})
    assert tree.params == {"max_depth": 2}


def test_build_backends():
    assert [b.name for b in build_backends()] == ["decision_tree", "knn", "random_forest"]
    assert "xgboost" in available_backends()

    with pytest.raises(ValueError, match="Unknown backends"):
        build_backends(["svm"])


@pytest.fixture
def integer_label_table():
    """Class codes 1..4 as the label vocabulary, separated by `x` and `y`."""
    rng = np.random.RandomState(3)
    codes = np.repeat([1, 2, 3, 4], 50)
    df = pd.DataFrame(
        {
            "id": np.arange(len(codes)),
            "lab": codes,
            "x": codes * 10.0 + rng.uniform(0, 3, len(codes)),
            "y": codes * 5.0 + rng.uniform(0, 2, len(codes)),
        }
    )
    schema = {"lab": ColumnType.CATEGORICAL, "x": ColumnType.NUMERIC, "y": ColumnType.NUMERIC}
    return DatasetTable(df, schema, id_col="id")


@pytest.mark.parametrize("name", ["decision_tree", "knn", "random_forest", "xgboost"])
def test_integer_label_levels(integer_label_table, name):
    split = split_table(integer_label_table, 0.8, seed=123)
    (adapter,) = build_backends([name])
    model = adapter.fit(split.train, ["x", "y"], "lab")

    assert model.classes == (1, 2, 3, 4)
    predicted = adapter.predict(model, split.test)
    actual = split.test.column("lab").tolist()
    assert set(predicted) <= {1, 2, 3, 4}
    assert np.mean([p == a for p, a in zip(predicted, actual)]) >= 0.95


def test_integer_label_levels_evaluate(integer_label_table):
    report = evaluate(
        integer_label_table,
        [FeatureCandidate(features=("x", "y"))],
        build_backends(),
        SplitConfig(seed=123),
        label_name="lab",
    )

    assert not report.failures()
    assert all(r.accuracy >= 0.95 for r in report)
    assert set(report.records[0].confusion) == {"1", "2", "3", "4"}
