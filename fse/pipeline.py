"""
@module: fse.pipeline
@depends: fse.stats, fse.selection, fse.adapters, fse.evaluation, fse.model_presets, fse.config
@exports: AnalysisResult, run_analysis
@data_flow: table -> significance results -> candidates -> comparison report
"""

import logging
from dataclasses import dataclass
from typing import List, Optional, Sequence

import pandas as pd

from fse.adapters import ClassifierAdapter, build_backends
from fse.config import AnalysisConfig
from fse.evaluation import ComparisonReport, EvaluationHarness
from fse.model_presets import load_backend_presets
from fse.selection import FeatureCandidate, rank_candidates
from fse.stats import SignificanceResult, pairwise_frame, significance_frame, test_all_features
from fse.table import DatasetTable

logger = logging.getLogger(__name__)


@dataclass(frozen=True)
class AnalysisResult:
    """Everything a run produces, as plain structured data."""

    significance: List[SignificanceResult]
    candidates: List[FeatureCandidate]
    report: ComparisonReport

    def significance_frame(self) -> pd.DataFrame:
        return significance_frame(self.significance)

    def pairwise_frame(self) -> pd.DataFrame:
        return pairwise_frame(self.significance)

    def candidates_frame(self) -> pd.DataFrame:
        return pd.DataFrame(
            [
                {
                    "candidate": c.name,
                    "n_significant_pairs": c.n_significant_pairs,
                    "max_p_value": c.max_p_value,
                }
                for c in self.candidates
            ],
            columns=["candidate", "n_significant_pairs", "max_p_value"],
        )


def run_analysis(
    table: DatasetTable,
    config: AnalysisConfig,
    backends: Optional[Sequence[ClassifierAdapter]] = None,
) -> AnalysisResult:
    """
    Run significance testing, candidate selection and model comparison.

    Args:
        table: Cleaned input table
        config: Analysis configuration
        backends: Explicit adapters (default: built from config.evaluation)

    Returns:
        AnalysisResult

    Example:
        >>> result = run_analysis(table, AnalysisConfig(label_col="type_1"))
        >>> result.report.to_frame().head()
    """
    logger.info(f"Running analysis on {len(table)} rows, label='{config.label_col}'")

    significance = test_all_features(
        table,
        config.label_col,
        numeric_attrs=config.feature_cols,
        config=config.significance,
        skip_invalid=config.skip_invalid_features,
    )
    candidates = rank_candidates(significance, config.selection)

    if backends is None:
        presets = load_backend_presets(config.evaluation.presets_path)
        backends = build_backends(config.evaluation.backends, presets)

    if not candidates:
        logger.warning("No attribute rejected the null; nothing to evaluate")

    harness = EvaluationHarness(
        standardize=config.evaluation.standardize,
        n_jobs=config.evaluation.n_jobs,
    )
    report = harness.evaluate(table, candidates, backends, config.split, config.label_col)

    return AnalysisResult(significance=significance, candidates=candidates, report=report)
