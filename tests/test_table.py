"""
Tests for the immutable DatasetTable.
"""

import numpy as np
import pandas as pd
import pytest

from fse.config import ColumnType
from fse.table import DatasetTable


def test_schema_and_accessors(entity_table):
    """Test columns are grouped by semantic type."""
    assert entity_table.id_col == "number"
    assert len(entity_table) == 8
    assert entity_table.numeric_columns == ["attack", "defense", "speed"]
    assert entity_table.categorical_columns == ["type_1", "type_2"]
    assert entity_table.boolean_columns == ["is_legendary"]
    assert entity_table.row_ids == (1, 2, 3, 4, 5, 6, 7, 8)
    assert entity_table.levels("type_1") == ["Fire", "Grass", "Normal", "Rock", "Water"]


def test_from_frame_infers_schema(entity_frame):
    """Test schema inference: text, categorical, numeric and boolean columns."""
    table = DatasetTable.from_frame(entity_frame, id_col="number", max_cardinality=6)

    assert table.column_type("name") is ColumnType.TEXT
    assert table.column_type("type_1") is ColumnType.CATEGORICAL
    assert table.column_type("attack") is ColumnType.NUMERIC
    assert table.column_type("is_legendary") is ColumnType.BOOLEAN


def test_missing_secondary_label_is_allowed(entity_table):
    """Test missing categorical values are kept as 'no label'."""
    type_2 = entity_table.column("type_2")
    assert type_2.isna().sum() == 3
    assert entity_table.levels("type_2") == ["Flying", "Ground", "Poison"]


def test_rejects_duplicate_identifiers(entity_frame, entity_schema):
    entity_frame.loc[1, "number"] = 1
    with pytest.raises(ValueError, match="duplicate"):
        DatasetTable(entity_frame, entity_schema, id_col="number")


def test_rejects_non_finite_numeric(entity_frame, entity_schema):
    entity_frame.loc[0, "attack"] = np.inf
    with pytest.raises(ValueError, match="non-finite"):
        DatasetTable(entity_frame, entity_schema, id_col="number")

    entity_frame.loc[0, "attack"] = np.nan
    with pytest.raises(ValueError, match="non-finite"):
        DatasetTable(entity_frame, entity_schema, id_col="number")


def test_rejects_missing_schema_column(entity_frame, entity_schema):
    entity_schema["hp"] = ColumnType.NUMERIC
    with pytest.raises(ValueError, match="Missing schema columns"):
        DatasetTable(entity_frame, entity_schema, id_col="number")


def test_rejects_invalid_boolean(entity_frame, entity_schema):
    entity_frame["is_legendary"] = ["yes"] * 8
    with pytest.raises(ValueError, match="non-boolean"):
        DatasetTable(entity_frame, entity_schema, id_col="number")


def test_source_frame_changes_do_not_leak(entity_frame, entity_schema):
    """Test the table copies its input and returns copies."""
    table = DatasetTable(entity_frame, entity_schema, id_col="number")
    entity_frame.loc[0, "attack"] = 999.0

    assert table.column("attack").iloc[0] == 49.0

    exported = table.to_frame()
    exported.loc[0, "attack"] = 999.0
    column = table.column("attack")
    column.iloc[0] = 999.0
    assert table.column("attack").iloc[0] == 49.0


def test_filter_returns_new_table(entity_table):
    strong = entity_table.filter(entity_table.column("attack") > 60)

    assert strong.row_ids == (2, 4, 6, 8)
    assert len(entity_table) == 8
    # Closed vocabulary survives filtering
    assert strong.levels("type_1") == entity_table.levels("type_1")


def test_filter_with_callable_and_where(entity_table):
    fast = entity_table.filter(lambda df: df["speed"] >= 60)
    assert fast.row_ids == (2, 3, 4)

    fire = entity_table.where("type_1", "Fire")
    assert fire.row_ids == (3, 4)


def test_filter_length_mismatch(entity_table):
    with pytest.raises(ValueError, match="Mask length"):
        entity_table.filter([True, False])


def test_select_keeps_identifier(entity_table):
    subset = entity_table.select(["attack", "type_1"])

    assert subset.columns == ["number", "attack", "type_1"]
    assert subset.schema == {"attack": ColumnType.NUMERIC, "type_1": ColumnType.CATEGORICAL}

    with pytest.raises(KeyError, match="Unknown columns"):
        entity_table.select(["hp"])


def test_take_preserves_requested_order(entity_table):
    taken = entity_table.take([5, 1, 3])
    assert taken.row_ids == (5, 1, 3)
    assert taken.column("attack").tolist() == [48.0, 49.0, 52.0]

    with pytest.raises(KeyError):
        entity_table.take([42])


def test_drop_missing_and_unused_levels(entity_table):
    dual = entity_table.drop_missing("type_2")
    assert dual.row_ids == (1, 2, 4, 7, 8)

    fire = entity_table.where("type_1", "Fire")
    counts = fire.level_counts("type_1")
    assert counts["Grass"] == 0
    assert fire.remove_unused_levels("type_1").levels("type_1") == ["Fire"]


def test_combine_labels(entity_table):
    merged = entity_table.combine_labels(["type_1", "type_2"], name="types")

    values = merged.column("types").tolist()
    assert values[0] == "Grass/Poison"
    assert values[2] == "Fire"
    assert values[3] == "Fire/Flying"
    assert merged.column_type("types") is ColumnType.CATEGORICAL
    assert "types" not in entity_table.schema

    with pytest.raises(ValueError, match="already exists"):
        merged.combine_labels(["type_1", "type_2"], name="types")


def test_replace_numeric(entity_table):
    replaced = entity_table.replace_numeric({"attack": np.zeros(8)})

    assert replaced.column("attack").tolist() == [0.0] * 8
    assert entity_table.column("attack").iloc[0] == 49.0

    with pytest.raises(ValueError, match="expected numeric"):
        entity_table.replace_numeric({"type_1": np.zeros(8)})


def test_numeric_matrix_requires_numeric(entity_table):
    matrix = entity_table.numeric_matrix(["attack", "speed"])
    assert matrix.shape == (8, 2)
    assert matrix.dtype == float

    with pytest.raises(ValueError):
        entity_table.numeric_matrix(["type_1"])


def test_declared_vocabulary_is_kept():
    """Test categorical dtype categories define the closed vocabulary."""
    df = pd.DataFrame(
        {
            "id": [1, 2],
            "kind": pd.Categorical(["x", "x"], categories=["x", "y", "z"]),
            "value": [1.0, 2.0],
        }
    )
    table = DatasetTable(df, {"kind": "categorical", "value": "numeric"}, id_col="id")
    assert table.levels("kind") == ["x", "y", "z"]
