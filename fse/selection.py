"""
@module: fse.selection
@depends: fse.stats, fse.config, fse.meta
@exports: FeatureCandidate, FeatureSelector, rank_features, rank_candidates
@data_flow: significance results -> attribute ranking -> feature-set combinations

Candidate generation from significance evidence.
Two-stage ordering:
1. Omnibus filter: only attributes whose rank test rejects the null
2. Separation strength: number of significant pairwise comparisons
"""

import logging
from dataclasses import dataclass
from itertools import combinations
from typing import Iterable, List, Optional, Sequence, Tuple

import pandas as pd

from fse.config import SelectionConfig
from fse.meta import component
from fse.stats import SignificanceResult

logger = logging.getLogger(__name__)


@dataclass(frozen=True)
class FeatureCandidate:
    """A set of numeric attributes proposed for modeling, with its evidence."""

    features: Tuple[str, ...]
    evidence: Tuple[SignificanceResult, ...] = ()

    @property
    def name(self) -> str:
        return "+".join(self.features)

    @property
    def n_significant_pairs(self) -> int:
        return sum(r.n_significant_pairs for r in self.evidence)

    @property
    def max_p_value(self) -> float:
        """Weakest omnibus p-value among the members (1.0 without evidence)."""
        return max((r.p_value for r in self.evidence), default=1.0)


def _sort_key(result: SignificanceResult):
    return (-result.n_significant_pairs, result.p_value, -result.statistic, result.numeric_attr)


def _check_results(results: Sequence[SignificanceResult]) -> None:
    labels = {r.categorical_attr for r in results}
    if len(labels) > 1:
        raise ValueError(f"Results refer to several categorical attributes: {sorted(labels)}")
    attrs = [r.numeric_attr for r in results]
    duplicated = sorted({a for a in attrs if attrs.count(a) > 1})
    if duplicated:
        raise ValueError(f"Duplicate results for attributes: {duplicated}")


def rank_features(results: Iterable[SignificanceResult]) -> List[SignificanceResult]:
    """
    Order attributes whose omnibus test rejects the null.

    Ordering: significant pairwise comparisons (desc), omnibus p-value (asc),
    H statistic (desc), attribute name.
    """
    results = list(results)
    _check_results(results)
    return sorted((r for r in results if r.rejects_null), key=_sort_key)


def rank_candidates(
    results: Iterable[SignificanceResult],
    config: Optional[SelectionConfig] = None,
) -> List[FeatureCandidate]:
    """
    Propose feature sets from the top-ranked attributes.

    Args:
        results: One SignificanceResult per numeric attribute, all against the
            same categorical attribute
        config: top_k and candidate_size (defaults: all rejecting attributes, pairs)

    Returns:
        All unordered combinations of `candidate_size` top attributes, in
        ranking order, each carrying its members' results
    """
    config = config or SelectionConfig()
    ranked = rank_features(results)
    if config.top_k is not None:
        ranked = ranked[: config.top_k]

    candidates = [
        FeatureCandidate(
            features=tuple(r.numeric_attr for r in combo),
            evidence=tuple(combo),
        )
        for combo in combinations(ranked, config.candidate_size)
    ]

    logger.info(
        f"Ranked {len(ranked)} significant attributes into {len(candidates)} candidates "
        f"of size {config.candidate_size}"
    )
    return candidates


@component(
    name="FeatureSelector",
    responsibility="Ranks significant attributes and proposes feature sets",
    depends_on=["GroupSignificanceTester"],
)
class FeatureSelector:
    """
    Config-bound wrapper around rank_candidates.

    Example:
        >>> selector = FeatureSelector(SelectionConfig(top_k=4))
        >>> candidates = selector.rank_candidates(results)
        >>> selector.ranking_frame(results)
    """

    def __init__(self, config: Optional[SelectionConfig] = None):
        self.config = config or SelectionConfig()

    def rank_candidates(self, results: Iterable[SignificanceResult]) -> List[FeatureCandidate]:
        return rank_candidates(results, self.config)

    def ranking_frame(self, results: Iterable[SignificanceResult]) -> pd.DataFrame:
        """Attribute ranking as a table (rank 1 = strongest)."""
        ranked = rank_features(results)
        return pd.DataFrame(
            {
                "rank": range(1, len(ranked) + 1),
                "numeric_attr": [r.numeric_attr for r in ranked],
                "n_significant_pairs": [r.n_significant_pairs for r in ranked],
                "p_value": [r.p_value for r in ranked],
                "statistic": [r.statistic for r in ranked],
            }
        )
