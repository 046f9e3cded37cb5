"""
@module: fse
@depends:
@exports: DatasetTable, test_group_difference, rank_candidates, split_table, build_backends, EvaluationHarness, run_analysis
@data_flow: public API imports
"""

from fse.adapters import (
    ClassifierAdapter,
    DecisionTreeAdapter,
    KNearestNeighborsAdapter,
    RandomForestAdapter,
    TrainedModel,
    XGBoostAdapter,
    available_backends,
    build_backends,
)
from fse.config import (
    AnalysisConfig,
    ColumnType,
    Correction,
    EvaluationConfig,
    SelectionConfig,
    SignificanceConfig,
    SplitConfig,
    detect_column_types,
    load_analysis_config,
)
from fse.errors import (
    ConstantInputError,
    EvaluationUnitError,
    FeatureMismatchError,
    FSEError,
    InsufficientGroupSizeError,
    InvalidProportionError,
)
from fse.evaluation import (
    ComparisonReport,
    EvaluationHarness,
    EvaluationRecord,
    Standardizer,
    TrialSummary,
    evaluate,
    repeat_evaluation,
)
from fse.meta import component_metadata, registered_components
from fse.model_presets import load_backend_presets, resolve_backend_params
from fse.pipeline import AnalysisResult, run_analysis
from fse.selection import FeatureCandidate, FeatureSelector, rank_candidates, rank_features
from fse.split import Split, split_table
from fse.stats import (
    PairwiseComparison,
    SignificanceResult,
    pairwise_frame,
    significance_frame,
    test_all_features,
    test_group_difference,
)
from fse.table import DatasetTable

__version__ = "0.1.0"
__all__ = [
    # Data
    "DatasetTable",
    "ColumnType",
    "detect_column_types",
    # Configuration
    "AnalysisConfig",
    "SignificanceConfig",
    "SelectionConfig",
    "SplitConfig",
    "EvaluationConfig",
    "Correction",
    "load_analysis_config",
    # Significance testing
    "test_group_difference",
    "test_all_features",
    "SignificanceResult",
    "PairwiseComparison",
    "significance_frame",
    "pairwise_frame",
    # Feature selection
    "FeatureCandidate",
    "FeatureSelector",
    "rank_candidates",
    "rank_features",
    # Partitioning
    "Split",
    "split_table",
    # Backends
    "ClassifierAdapter",
    "TrainedModel",
    "DecisionTreeAdapter",
    "KNearestNeighborsAdapter",
    "RandomForestAdapter",
    "XGBoostAdapter",
    "available_backends",
    "build_backends",
    "load_backend_presets",
    "resolve_backend_params",
    # Evaluation
    "Standardizer",
    "EvaluationRecord",
    "ComparisonReport",
    "TrialSummary",
    "EvaluationHarness",
    "evaluate",
    "repeat_evaluation",
    "run_analysis",
    "AnalysisResult",
    # Components
    "component_metadata",
    "registered_components",
    # Errors
    "FSEError",
    "InsufficientGroupSizeError",
    "ConstantInputError",
    "InvalidProportionError",
    "FeatureMismatchError",
    "EvaluationUnitError",
]
