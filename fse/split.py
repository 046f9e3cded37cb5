"""
@module: fse.split
@depends: fse.table, fse.errors
@exports: Split, split_table
@data_flow: table + (proportion, seed) -> seeded permutation -> (train, test) views
"""

import logging
from dataclasses import dataclass
from typing import Any, Optional, Tuple

import numpy as np
from sklearn.model_selection import train_test_split

from fse.errors import InvalidProportionError
from fse.table import DatasetTable

logger = logging.getLogger(__name__)


@dataclass(frozen=True)
class Split:
    """Disjoint train/test views whose identifiers partition the source table."""

    train: DatasetTable
    test: DatasetTable
    proportion: float
    seed: int
    stratify_by: Optional[str] = None

    @property
    def train_ids(self) -> Tuple[Any, ...]:
        return self.train.row_ids

    @property
    def test_ids(self) -> Tuple[Any, ...]:
        return self.test.row_ids


def split_table(
    table: DatasetTable,
    proportion: float,
    seed: int,
    stratify_by: Optional[str] = None,
) -> Split:
    """
    Partition a table into train and test views.

    The plain mode permutes row positions with a seeded RandomState and takes
    the first round(proportion * N) rows for training. It does not stratify,
    so rare labels can be missing from the test view. `stratify_by` selects
    the stratified mode (scikit-learn train_test_split on that column).

    Both views keep the source row order.

    Args:
        table: Source table
        proportion: Training fraction, strictly between 0 and 1
        seed: Permutation seed
        stratify_by: Optional categorical column for stratified splitting

    Returns:
        Split

    Raises:
        InvalidProportionError: proportion outside (0, 1)
        ValueError: Table with fewer than two rows
    """
    if not 0.0 < proportion < 1.0:
        raise InvalidProportionError(f"proportion must be strictly between 0 and 1, got {proportion}")

    n = len(table)
    if n < 2:
        raise ValueError(f"Cannot split a table with {n} row(s)")

    n_train = int(min(max(round(proportion * n), 1), n - 1))
    positions = np.arange(n)

    if stratify_by is None:
        rng = np.random.RandomState(seed)
        train_pos = rng.permutation(n)[:n_train]
    else:
        labels = table.column(stratify_by)
        if labels.isna().any():
            raise ValueError(f"Stratification column '{stratify_by}' contains missing values")
        train_pos, _ = train_test_split(
            positions,
            train_size=n_train,
            random_state=seed,
            shuffle=True,
            stratify=labels.astype(str).to_numpy(),
        )

    in_train = np.zeros(n, dtype=bool)
    in_train[train_pos] = True
    ids = np.asarray(table.row_ids, dtype=object)

    split = Split(
        train=table.take(ids[in_train]),
        test=table.take(ids[~in_train]),
        proportion=proportion,
        seed=seed,
        stratify_by=stratify_by,
    )
    logger.debug(
        f"Split {n} rows (seed={seed}, proportion={proportion}, stratify_by={stratify_by}): "
        f"{len(split.train)} train / {len(split.test)} test"
    )
    return split
