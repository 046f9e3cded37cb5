"""
@module: fse.table
@depends: fse.config, fse.meta
@exports: DatasetTable
@data_flow: cleaned_df + schema -> validated immutable table -> derived tables
"""

import logging
from typing import Any, Callable, Dict, Iterable, List, Mapping, Optional, Sequence, Tuple, Union

import numpy as np
import pandas as pd

from fse.config import ColumnType, detect_column_types
from fse.meta import component

logger = logging.getLogger(__name__)

MaskLike = Union[Sequence[bool], np.ndarray, pd.Series, Callable[[pd.DataFrame], Any]]

_BOOLEAN_VALUES = {True, False, 0, 1}


@component(
    name="DatasetTable",
    responsibility="Immutable, column-typed table of labeled entities",
)
class DatasetTable:
    """
    Immutable in-memory table of entities with a typed column schema.

    Every row has a unique identifier; every other column carries a
    ColumnType. Numeric columns are finite floats, categorical columns are
    pandas Categoricals with a closed vocabulary (missing values mean "no
    label"), boolean columns are non-null bools.

    All accessors return copies and every transformation returns a new
    DatasetTable, so earlier views stay valid.

    Example:
        >>> table = DatasetTable.from_frame(df, id_col="number")
        >>> grass = table.where("type_1", "Grass")
        >>> stats_only = table.select(["attack", "defense", "type_1"])
    """

    def __init__(
        self,
        frame: pd.DataFrame,
        schema: Mapping[str, Union[ColumnType, str]],
        id_col: str,
    ):
        """
        Validate and copy a DataFrame into a table.

        Args:
            frame: Source data (columns outside the schema are dropped)
            schema: Column name -> ColumnType (identifier column excluded)
            id_col: Name of the unique identifier column

        Raises:
            ValueError: If identifiers are missing/duplicated, a schema column is
                absent, a numeric column is non-finite or a boolean column is invalid
        """
        if id_col not in frame.columns:
            raise ValueError(f"Identifier column '{id_col}' not found")
        if id_col in schema:
            raise ValueError(f"Identifier column '{id_col}' must not be part of the schema")

        ids = frame[id_col]
        if ids.isna().any():
            raise ValueError(f"Identifier column '{id_col}' contains missing values")
        if not ids.is_unique:
            raise ValueError(f"Identifier column '{id_col}' contains duplicate values")

        resolved = {col: ColumnType(t) for col, t in schema.items()}
        missing = [col for col in resolved if col not in frame.columns]
        if missing:
            raise ValueError(f"Missing schema columns: {missing}")

        data: Dict[str, Any] = {id_col: ids.to_numpy(copy=True)}
        for col, ctype in resolved.items():
            data[col] = _coerce_column(frame[col], col, ctype)

        self._frame = pd.DataFrame(data)
        self._schema: Dict[str, ColumnType] = resolved
        self._id_col = id_col
        self._positions: Dict[Any, int] = {rid: i for i, rid in enumerate(self._frame[id_col])}

    @classmethod
    def from_frame(
        cls,
        df: pd.DataFrame,
        id_col: str,
        schema: Optional[Mapping[str, Union[ColumnType, str]]] = None,
        max_cardinality: int = 30,
        exclude_cols: Optional[List[str]] = None,
    ) -> "DatasetTable":
        """Build a table, inferring the schema with detect_column_types if not given."""
        if schema is None:
            schema = detect_column_types(
                df, id_col=id_col, max_cardinality=max_cardinality, exclude_cols=exclude_cols
            )
            logger.debug(f"Inferred schema: { {k: v.value for k, v in schema.items()} }")
        return cls(df, schema, id_col)

    # ------------------------------------------------------------------
    # Read accessors
    # ------------------------------------------------------------------

    def __len__(self) -> int:
        return len(self._frame)

    def __repr__(self) -> str:
        return (
            f"DatasetTable(rows={len(self)}, numeric={self.numeric_columns}, "
            f"categorical={self.categorical_columns}, boolean={self.boolean_columns})"
        )

    @property
    def id_col(self) -> str:
        return self._id_col

    @property
    def schema(self) -> Dict[str, ColumnType]:
        return dict(self._schema)

    @property
    def columns(self) -> List[str]:
        return [self._id_col] + list(self._schema)

    @property
    def row_ids(self) -> Tuple[Any, ...]:
        return tuple(self._frame[self._id_col].tolist())

    @property
    def numeric_columns(self) -> List[str]:
        return self._columns_of(ColumnType.NUMERIC)

    @property
    def categorical_columns(self) -> List[str]:
        return self._columns_of(ColumnType.CATEGORICAL)

    @property
    def boolean_columns(self) -> List[str]:
        return self._columns_of(ColumnType.BOOLEAN)

    def column_type(self, name: str) -> ColumnType:
        if name not in self._schema:
            raise KeyError(f"Unknown column '{name}'")
        return self._schema[name]

    def column(self, name: str) -> pd.Series:
        """Return a copy of one column."""
        if name not in self._frame.columns:
            raise KeyError(f"Unknown column '{name}'")
        return self._frame[name].copy()

    def numeric_matrix(self, columns: Sequence[str]) -> np.ndarray:
        """Return a float copy of the given numeric columns (rows x columns)."""
        self._require_type(columns, ColumnType.NUMERIC)
        return self._frame[list(columns)].to_numpy(dtype=float, copy=True)

    def levels(self, name: str) -> List[Any]:
        """Closed vocabulary of a categorical column."""
        self._require_type([name], ColumnType.CATEGORICAL)
        return list(self._frame[name].cat.categories)

    def level_counts(self, name: str) -> pd.Series:
        """Observation count per level, including levels with zero rows."""
        self._require_type([name], ColumnType.CATEGORICAL)
        return self._frame[name].value_counts(sort=False, dropna=True)

    def to_frame(self) -> pd.DataFrame:
        return self._frame.copy(deep=True)

    # ------------------------------------------------------------------
    # Derived tables
    # ------------------------------------------------------------------

    def filter(self, mask: MaskLike) -> "DatasetTable":
        """Rows where mask is True. mask may be a callable taking a frame copy."""
        if callable(mask):
            mask = mask(self.to_frame())
        values = np.asarray(mask, dtype=bool)
        if values.shape != (len(self),):
            raise ValueError(f"Mask length {values.shape} does not match table length {len(self)}")
        return self._derive(self._frame.loc[values])

    def where(self, name: str, value: Any) -> "DatasetTable":
        """Rows where column `name` equals `value`."""
        return self.filter(self.column(name) == value)

    def select(self, columns: Iterable[str]) -> "DatasetTable":
        """Column subset; the identifier column is always kept."""
        wanted = [c for c in dict.fromkeys(columns) if c != self._id_col]
        unknown = [c for c in wanted if c not in self._schema]
        if unknown:
            raise KeyError(f"Unknown columns: {unknown}")
        schema = {c: self._schema[c] for c in wanted}
        return self._derive(self._frame[[self._id_col] + wanted], schema)

    def take(self, row_ids: Iterable[Any]) -> "DatasetTable":
        """Rows with the given identifiers, in the given order."""
        try:
            positions = [self._positions[rid] for rid in row_ids]
        except KeyError as exc:
            raise KeyError(f"Unknown row identifier {exc.args[0]!r}") from exc
        return self._derive(self._frame.iloc[positions])

    def drop_missing(self, name: str) -> "DatasetTable":
        """Rows where `name` has a value (e.g. entities with a secondary label)."""
        return self.filter(self.column(name).notna())

    def remove_unused_levels(self, name: str) -> "DatasetTable":
        """Shrink a categorical vocabulary to the levels that still have rows."""
        self._require_type([name], ColumnType.CATEGORICAL)
        frame = self._frame.copy()
        frame[name] = frame[name].cat.remove_unused_categories()
        return self._derive(frame)

    def combine_labels(
        self,
        columns: Sequence[str],
        name: str,
        separator: str = "/",
    ) -> "DatasetTable":
        """
        Add a merged categorical label built from several label columns.

        Missing parts are skipped, so a row with only a primary label keeps
        it unchanged ("Fire" and "Fire/Flying" are distinct levels). Rows
        with every part missing get a missing merged label.

        Args:
            columns: Categorical columns to merge, in order
            name: Name of the new column
            separator: String placed between parts

        Returns:
            New table with the merged column appended
        """
        if name in self._frame.columns:
            raise ValueError(f"Column '{name}' already exists")
        if len(columns) < 2:
            raise ValueError("combine_labels needs at least two columns")
        self._require_type(columns, ColumnType.CATEGORICAL)

        parts = self._frame[list(columns)].astype(object)
        merged = [
            separator.join(str(v) for v in row if not pd.isna(v)) or np.nan
            for row in parts.itertuples(index=False, name=None)
        ]

        frame = self._frame.copy()
        frame[name] = pd.Categorical(merged)
        schema = dict(self._schema)
        schema[name] = ColumnType.CATEGORICAL
        logger.debug(f"Merged {list(columns)} into '{name}' ({frame[name].nunique()} levels)")
        return self._derive(frame, schema)

    def replace_numeric(self, values: Mapping[str, Sequence[float]]) -> "DatasetTable":
        """New table with the given numeric columns replaced by new values."""
        self._require_type(list(values), ColumnType.NUMERIC)
        frame = self._frame.copy()
        for col, new in values.items():
            arr = np.asarray(new, dtype=float)
            if arr.shape != (len(self),):
                raise ValueError(f"Replacement for '{col}' has shape {arr.shape}, expected ({len(self)},)")
            frame[col] = arr
        return self._derive(frame)

    # ------------------------------------------------------------------
    # Helpers
    # ------------------------------------------------------------------

    def _derive(
        self, frame: pd.DataFrame, schema: Optional[Mapping[str, ColumnType]] = None
    ) -> "DatasetTable":
        return DatasetTable(
            frame.reset_index(drop=True),
            schema if schema is not None else self._schema,
            self._id_col,
        )

    def _columns_of(self, ctype: ColumnType) -> List[str]:
        return [c for c, t in self._schema.items() if t is ctype]

    def _require_type(self, columns: Iterable[str], ctype: ColumnType) -> None:
        for col in columns:
            if col not in self._schema:
                raise KeyError(f"Unknown column '{col}'")
            if self._schema[col] is not ctype:
                raise ValueError(
                    f"Column '{col}' is {self._schema[col].value}, expected {ctype.value}"
                )


def _coerce_column(series: pd.Series, name: str, ctype: ColumnType) -> Any:
    if ctype is ColumnType.NUMERIC:
        try:
            values = pd.to_numeric(series, errors="raise").to_numpy(dtype=float, copy=True)
        except (TypeError, ValueError) as exc:
            raise ValueError(f"Numeric column '{name}' contains non-numeric values") from exc
        if not np.isfinite(values).all():
            raise ValueError(f"Numeric column '{name}' contains missing or non-finite values")
        return values

    if ctype is ColumnType.CATEGORICAL:
        if isinstance(series.dtype, pd.CategoricalDtype):
            return pd.Categorical(series.to_numpy(), dtype=series.dtype)
        return pd.Categorical(series.to_numpy())

    if ctype is ColumnType.BOOLEAN:
        if series.isna().any():
            raise ValueError(f"Boolean column '{name}' contains missing values")
        if not pd.api.types.is_bool_dtype(series.dtype):
            unexpected = set(series.unique()) - _BOOLEAN_VALUES
            if unexpected:
                raise ValueError(f"Boolean column '{name}' contains non-boolean values: {unexpected}")
        return series.to_numpy(dtype=bool, copy=True)

    return series.to_numpy(dtype=object, copy=True)
