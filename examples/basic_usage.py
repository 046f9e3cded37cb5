"""
Basic usage example for the feature significance engine.

This example demonstrates:
1. Building a DatasetTable from a DataFrame
2. Testing each numeric attribute against a categorical label
3. Ranking candidate feature pairs
4. Comparing classifiers on a seeded train/test split
"""

import logging

import numpy as np
import pandas as pd

from fse import (
    AnalysisConfig,
    DatasetTable,
    SelectionConfig,
    SplitConfig,
    run_analysis,
)


def make_frame(n_per_type: int = 60, seed: int = 0) -> pd.DataFrame:
    """Synthetic entities whose attack/speed depend on type; hp does not."""
    rng = np.random.RandomState(seed)
    types = ["Fire", "Water", "Grass", "Rock"]
    label = np.repeat(types, n_per_type)
    code = np.repeat(np.arange(len(types)), n_per_type)
    return pd.DataFrame(
        {
            "number": np.arange(len(label)) + 1,
            "type_1": label,
            "hp": rng.normal(70, 15, len(label)).round(),
            "attack": (50 + 15 * code + rng.normal(0, 8, len(label))).round(),
            "speed": (90 - 12 * code + rng.normal(0, 8, len(label))).round(),
            "defense": (60 + 5 * (code % 2) + rng.normal(0, 10, len(label))).round(),
        }
    )


def main():
    logging.basicConfig(level=logging.INFO, format="%(name)s - %(levelname)s - %(message)s")

    table = DatasetTable.from_frame(make_frame(), id_col="number")
    print(table)

    config = AnalysisConfig(
        label_col="type_1",
        selection=SelectionConfig(top_k=3),
        split=SplitConfig(train_proportion=0.8, seed=123),
    )
    result = run_analysis(table, config)

    print("\nSignificance:")
    print(result.significance_frame()[["numeric_attr", "statistic", "p_value", "n_significant_pairs"]])

    print("\nCandidates:")
    print(result.candidates_frame())

    print("\nModel comparison:")
    print(result.report.to_frame()[["candidate", "backend", "accuracy", "majority_baseline"]])

    best = result.report.best()
    if best is not None:
        print(f"\nBest: {best.candidate} with {best.backend} (accuracy {best.accuracy:.3f})")


if __name__ == "__main__":
    main()
