# Test configuration
import sys
from pathlib import Path

import numpy as np
import pandas as pd
import pytest

# Add fse to path for imports
sys.path.insert(0, str(Path(__file__).parent.parent))

from fse.config import ColumnType  # noqa: E402
from fse.table import DatasetTable  # noqa: E402

LABELS = ["A", "B", "C", "D"]


@pytest.fixture
def entity_frame():
    """Small hand-written entity table with text, labels, stats and a flag."""
    return pd.DataFrame(
        {
            "number": [1, 2, 3, 4, 5, 6, 7, 8],
            "name": ["Bulba", "Ivy", "Char", "Charm", "Squirt", "Wart", "Pid", "Geo"],
            "type_1": ["Grass", "Grass", "Fire", "Fire", "Water", "Water", "Normal", "Rock"],
            "type_2": ["Poison", "Poison", None, "Flying", None, None, "Flying", "Ground"],
            "attack": [49.0, 62.0, 52.0, 64.0, 48.0, 63.0, 45.0, 80.0],
            "defense": [49.0, 63.0, 43.0, 58.0, 65.0, 80.0, 40.0, 100.0],
            "speed": [45.0, 60.0, 65.0, 80.0, 43.0, 58.0, 56.0, 20.0],
            "is_legendary": [False, False, False, False, False, False, False, True],
        }
    )


@pytest.fixture
def entity_schema():
    return {
        "name": ColumnType.TEXT,
        "type_1": ColumnType.CATEGORICAL,
        "type_2": ColumnType.CATEGORICAL,
        "attack": ColumnType.NUMERIC,
        "defense": ColumnType.NUMERIC,
        "speed": ColumnType.NUMERIC,
        "is_legendary": ColumnType.BOOLEAN,
    }


@pytest.fixture
def entity_table(entity_frame, entity_schema):
    return DatasetTable(entity_frame, entity_schema, id_col="number")


def _labeled_frame(features):
    n_per_label = 50
    label = np.repeat(LABELS, n_per_label)
    data = {"id": np.arange(len(label)), "label": label}
    data.update(features)
    return pd.DataFrame(data)


@pytest.fixture
def separable_table():
    """200 rows, 4 balanced labels; `signal` and `signal_b` separate them by disjoint ranges."""
    rng = np.random.RandomState(42)
    codes = np.repeat(np.arange(len(LABELS)), 50)
    df = _labeled_frame(
        {
            "signal": codes * 10.0 + rng.uniform(0, 5, len(codes)),
            "signal_b": codes * 20.0 + rng.uniform(0, 5, len(codes)),
            "noise": rng.normal(0, 1, len(codes)),
        }
    )
    schema = {
        "label": ColumnType.CATEGORICAL,
        "signal": ColumnType.NUMERIC,
        "signal_b": ColumnType.NUMERIC,
        "noise": ColumnType.NUMERIC,
    }
    return DatasetTable(df, schema, id_col="id")


@pytest.fixture
def noise_table():
    """200 rows, 4 balanced labels; both numeric features are independent of the label."""
    rng = np.random.RandomState(7)
    df = _labeled_frame(
        {
            "noise_a": rng.normal(0, 1, 200),
            "noise_b": rng.normal(0, 1, 200),
        }
    )
    schema = {
        "label": ColumnType.CATEGORICAL,
        "noise_a": ColumnType.NUMERIC,
        "noise_b": ColumnType.NUMERIC,
    }
    return DatasetTable(df, schema, id_col="id")


@pytest.fixture
def fast_presets():
    """Smaller forests keep repeated evaluations quick."""
    return {
        "decision_tree": {"min_samples_split": 20, "min_samples_leaf": 7, "random_state": 42},
        "knn": {"n_neighbors": 7, "weights": "distance"},
        "random_forest": {"n_estimators": 50, "random_state": 42, "n_jobs": 1},
    }
