"""
@module: fse.config
@depends: fse.errors
@exports: ColumnType, Correction, SignificanceConfig, SelectionConfig, SplitConfig, EvaluationConfig, AnalysisConfig, detect_column_types, load_analysis_config
@data_flow: user config / TOML -> validated parameters
"""

import tomllib
from dataclasses import dataclass, field
from enum import Enum
from pathlib import Path
from typing import TYPE_CHECKING, Any, Dict, List, Optional

from fse.errors import InvalidProportionError

if TYPE_CHECKING:
    import pandas as pd


DEFAULT_BACKENDS = ["decision_tree", "knn", "random_forest"]


class ColumnType(Enum):
    """Semantic type of a DatasetTable column."""

    NUMERIC = "numeric"
    CATEGORICAL = "categorical"
    BOOLEAN = "boolean"
    TEXT = "text"  # Display names and other passthrough columns


class Correction(Enum):
    """Multiple-comparison correction applied to pairwise p-values."""

    BONFERRONI = "bonferroni"
    HOLM = "holm"
    NONE = "none"


def detect_column_types(
    df: "pd.DataFrame",
    id_col: Optional[str] = None,
    max_cardinality: int = 30,
    exclude_cols: Optional[List[str]] = None,
) -> Dict[str, ColumnType]:
    """
    Infer a column schema from a DataFrame.

    Detection rules:
    1. Boolean dtype → boolean
    2. Category dtype → categorical
    3. Object dtype with ≤ max_cardinality unique values → categorical
    4. Other object dtype → text (e.g. display names)
    5. Numeric dtype → numeric
    6. The identifier column and any exclusions are skipped

    Args:
        df: Input DataFrame
        id_col: Identifier column (not part of the schema)
        max_cardinality: Maximum unique values for an object column to be categorical
        exclude_cols: Additional columns to leave out

    Returns:
        Mapping column name -> ColumnType

    Example:
        >>> detect_column_types(df, id_col="number")
        {'name': <ColumnType.TEXT: 'text'>, 'type_1': <ColumnType.CATEGORICAL: ...>, ...}
    """
    import pandas as pd

    exclude = set(exclude_cols or [])
    if id_col is not None:
        exclude.add(id_col)

    schema: Dict[str, ColumnType] = {}
    for col in df.columns:
        if col in exclude:
            continue

        dtype = df[col].dtype
        if pd.api.types.is_bool_dtype(dtype):
            schema[col] = ColumnType.BOOLEAN
        elif isinstance(dtype, pd.CategoricalDtype):
            schema[col] = ColumnType.CATEGORICAL
        elif pd.api.types.is_numeric_dtype(dtype):
            schema[col] = ColumnType.NUMERIC
        elif df[col].nunique(dropna=True) <= max_cardinality:
            schema[col] = ColumnType.CATEGORICAL
        else:
            schema[col] = ColumnType.TEXT

    return schema


@dataclass
class SignificanceConfig:
    """
    Thresholds for the omnibus and post-hoc group-difference tests.

    Attributes:
        alpha: Significance threshold for both the omnibus test and adjusted pairwise p-values
        correction: Multiple-comparison correction for the pairwise comparisons
    """

    alpha: float = 0.05
    correction: Correction = Correction.BONFERRONI

    def __post_init__(self) -> None:
        if isinstance(self.correction, str):
            self.correction = Correction(self.correction)
        if not 0.0 < self.alpha < 1.0:
            raise ValueError("alpha must be between 0 and 1")


@dataclass
class SelectionConfig:
    """
    Candidate generation settings.

    Attributes:
        top_k: Number of top-ranked attributes to combine (None = all that reject the null)
        candidate_size: Number of attributes per candidate feature set
    """

    top_k: Optional[int] = None
    candidate_size: int = 2

    def __post_init__(self) -> None:
        if self.candidate_size < 1:
            raise ValueError("candidate_size must be at least 1")
        if self.top_k is not None and self.top_k < self.candidate_size:
            raise ValueError("top_k must be at least candidate_size")


@dataclass
class SplitConfig:
    """
    Train/test partitioning settings.

    Attributes:
        train_proportion: Fraction of rows in the training split (0 < p < 1)
        seed: Seed of the row permutation
        stratify_by: Optional categorical column for the stratified mode.
            None keeps the plain (non-stratified) split, under which small
            classes can be missing from the test partition.
    """

    train_proportion: float = 0.8
    seed: int = 123
    stratify_by: Optional[str] = None

    def __post_init__(self) -> None:
        if not 0.0 < self.train_proportion < 1.0:
            raise InvalidProportionError(
                f"train_proportion must be strictly between 0 and 1, got {self.train_proportion}"
            )


@dataclass
class EvaluationConfig:
    """
    Model evaluation settings.

    Attributes:
        backends: Backend names to evaluate (see fse.adapters.available_backends)
        standardize: Whether to z-score features with training statistics
        n_jobs: Parallel workers over (candidate, backend) units
        presets_path: Optional TOML file overriding backend hyper-parameters
    """

    backends: List[str] = field(default_factory=lambda: list(DEFAULT_BACKENDS))
    standardize: bool = True
    n_jobs: int = 1
    presets_path: Optional[Path] = None

    def __post_init__(self) -> None:
        if not self.backends:
            raise ValueError("at least one backend must be configured")
        if self.n_jobs == 0:
            raise ValueError("n_jobs must be non-zero")
        if self.presets_path is not None:
            self.presets_path = Path(self.presets_path)


@dataclass
class AnalysisConfig:
    """
    Configuration for the full significance → selection → evaluation run.

    Attributes:
        label_col: Categorical column to test against and predict (REQUIRED)
        feature_cols: Numeric columns to consider. If None, every numeric column.
        significance: Omnibus/post-hoc test settings
        selection: Candidate generation settings
        split: Train/test partitioning settings
        evaluation: Backend and standardization settings
        skip_invalid_features: Skip (and log) constant features instead of failing

    Example:
        config = AnalysisConfig(
            label_col="type_1",
            feature_cols=["attack", "defense", "speed"],
            selection=SelectionConfig(top_k=3),
        )
    """

    label_col: str
    feature_cols: Optional[List[str]] = None
    significance: SignificanceConfig = field(default_factory=SignificanceConfig)
    selection: SelectionConfig = field(default_factory=SelectionConfig)
    split: SplitConfig = field(default_factory=SplitConfig)
    evaluation: EvaluationConfig = field(default_factory=EvaluationConfig)
    skip_invalid_features: bool = False

    def __post_init__(self) -> None:
        if not self.label_col:
            raise ValueError("label_col must be specified")
        if self.feature_cols is not None and len(self.feature_cols) == 0:
            raise ValueError("feature_cols must be None or non-empty")


def load_analysis_config(path: Path) -> AnalysisConfig:
    """Load an AnalysisConfig from TOML.

    Expected layout::

        label_col = "type_1"
        feature_cols = ["attack", "defense"]

        [significance]
        alpha = 0.05

        [split]
        seed = 123

    Args:
        path: Path to the TOML file.

    Returns:
        Validated AnalysisConfig.
    """
    with Path(path).open("rb") as f:
        data: Dict[str, Any] = tomllib.load(f)

    return AnalysisConfig(
        label_col=data.get("label_col", ""),
        feature_cols=data.get("feature_cols"),
        significance=SignificanceConfig(**data.get("significance", {})),
        selection=SelectionConfig(**data.get("selection", {})),
        split=SplitConfig(**data.get("split", {})),
        evaluation=EvaluationConfig(**data.get("evaluation", {})),
        skip_invalid_features=data.get("skip_invalid_features", False),
    )
