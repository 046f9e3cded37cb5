"""
@module: fse.evaluation
@depends: fse.adapters, fse.selection, fse.split, fse.table, joblib, sklearn
@exports: Standardizer, EvaluationRecord, ComparisonReport, TrialSummary, EvaluationHarness, evaluate, repeat_evaluation
@data_flow: table + candidates x backends -> split -> standardize (train stats) -> fit -> predict -> metrics -> ComparisonReport
"""

import json
import logging
from collections import Counter
from dataclasses import asdict, dataclass, field, replace
from typing import Any, Dict, Iterable, Iterator, List, Optional, Sequence, Tuple

import numpy as np
import pandas as pd
from joblib import Parallel, delayed
from sklearn.metrics import confusion_matrix, precision_recall_fscore_support
from sklearn.preprocessing import StandardScaler
from tqdm import tqdm

from fse.adapters import ClassifierAdapter
from fse.config import SplitConfig
from fse.errors import EvaluationUnitError, FeatureMismatchError
from fse.meta import component
from fse.selection import FeatureCandidate
from fse.split import Split, split_table
from fse.table import DatasetTable

logger = logging.getLogger(__name__)


class Standardizer:
    """
    Z-scores numeric features with statistics from a training view only.

    Uses population standard deviation (StandardScaler, ddof=0). Features
    that are constant in the training view map to 0 for every row.

    Example:
        >>> scaler = Standardizer(["attack", "speed"]).fit(split.train)
        >>> train_z = scaler.transform(split.train)
        >>> test_z = scaler.transform(split.test)  # uses training mean/std
    """

    def __init__(self, feature_names: Sequence[str]):
        self.feature_names = tuple(feature_names)
        self._scaler: Optional[StandardScaler] = None
        self._constant_mask: Optional[np.ndarray] = None

    def fit(self, train: DatasetTable) -> "Standardizer":
        X = train.numeric_matrix(self.feature_names)
        if len(X) == 0:
            raise ValueError("Cannot fit a Standardizer on an empty view")
        self._scaler = StandardScaler().fit(X)
        self._constant_mask = np.ptp(X, axis=0) == 0
        if self._constant_mask.any():
            logger.debug(f"Constant training features fixed to zero: {list(self.constant_features)}")
        return self

    @property
    def mean_(self) -> np.ndarray:
        self._check_fitted()
        return self._scaler.mean_.copy()

    @property
    def scale_(self) -> np.ndarray:
        self._check_fitted()
        return self._scaler.scale_.copy()

    @property
    def constant_features(self) -> Tuple[str, ...]:
        self._check_fitted()
        return tuple(f for f, c in zip(self.feature_names, self._constant_mask) if c)

    def transform(self, table: DatasetTable) -> DatasetTable:
        """Return a new table with the features standardized."""
        self._check_fitted()
        X = table.numeric_matrix(self.feature_names)
        if len(X) == 0:
            return table
        Z = self._scaler.transform(X)
        Z[:, self._constant_mask] = 0.0
        return table.replace_numeric({f: Z[:, i] for i, f in enumerate(self.feature_names)})

    def _check_fitted(self) -> None:
        if self._scaler is None:
            raise RuntimeError("Must call fit() before transform()")


@dataclass(frozen=True)
class EvaluationRecord:
    """Result of one (feature set, backend) unit. Failed units carry `error`."""

    features: Tuple[str, ...]
    backend: str
    accuracy: Optional[float] = None
    train_accuracy: Optional[float] = None
    majority_baseline: Optional[float] = None
    macro_precision: Optional[float] = None
    macro_recall: Optional[float] = None
    macro_f1: Optional[float] = None
    confusion: Dict[str, Dict[str, int]] = field(default_factory=dict)  # actual -> predicted -> count
    n_train: int = 0
    n_test: int = 0
    seed: Optional[int] = None
    error: Optional[str] = None

    @property
    def candidate(self) -> str:
        return "+".join(self.features)

    @property
    def ok(self) -> bool:
        return self.error is None

    @property
    def overfit_gap(self) -> Optional[float]:
        if self.accuracy is None or self.train_accuracy is None:
            return None
        return self.train_accuracy - self.accuracy

    def to_dict(self) -> Dict[str, Any]:
        data = asdict(self)
        data["features"] = list(self.features)
        data["candidate"] = self.candidate
        data["overfit_gap"] = self.overfit_gap
        return data


@dataclass(frozen=True)
class ComparisonReport:
    """All evaluation records, ordered by descending held-out accuracy."""

    records: Tuple[EvaluationRecord, ...]
    label_name: str
    split_config: SplitConfig

    def __len__(self) -> int:
        return len(self.records)

    def __iter__(self) -> Iterator[EvaluationRecord]:
        return iter(self.records)

    def successes(self) -> List[EvaluationRecord]:
        return [r for r in self.records if r.ok]

    def failures(self) -> List[EvaluationRecord]:
        return [r for r in self.records if not r.ok]

    def best(self) -> Optional[EvaluationRecord]:
        ok = self.successes()
        return ok[0] if ok else None

    def to_frame(self) -> pd.DataFrame:
        columns = [
            "candidate", "backend", "accuracy", "train_accuracy", "overfit_gap",
            "majority_baseline", "macro_precision", "macro_recall", "macro_f1",
            "n_train", "n_test", "seed", "error",
        ]
        return pd.DataFrame([r.to_dict() for r in self.records], columns=columns)

    def confusion_frame(self) -> pd.DataFrame:
        """Long-format confusion counts: one row per (unit, actual, predicted)."""
        rows = [
            {
                "candidate": r.candidate,
                "backend": r.backend,
                "actual": actual,
                "predicted": predicted,
                "count": count,
            }
            for r in self.records
            for actual, row in r.confusion.items()
            for predicted, count in row.items()
        ]
        return pd.DataFrame(rows, columns=["candidate", "backend", "actual", "predicted", "count"])

    def to_dict(self) -> Dict[str, Any]:
        return {
            "label": self.label_name,
            "split": asdict(self.split_config),
            "records": [r.to_dict() for r in self.records],
        }

    def to_json(self, indent: Optional[int] = 2) -> str:
        return json.dumps(self.to_dict(), indent=indent, sort_keys=True)


@dataclass(frozen=True)
class TrialSummary:
    """Reports from repeated seeded evaluations plus per-unit aggregates."""

    reports: Tuple[ComparisonReport, ...]
    summary: pd.DataFrame


def _majority_label(labels: Iterable[Any]) -> Any:
    counts = Counter(labels)
    return min(counts.items(), key=lambda kv: (-kv[1], str(kv[0])))[0]


def _score_predictions(
    actual: Sequence[Any],
    predicted: Sequence[Any],
    classes: Iterable[Any],
) -> Dict[str, Any]:
    y_true = np.asarray([str(v) for v in actual], dtype=object)
    y_pred = np.asarray([str(v) for v in predicted], dtype=object)
    labels = sorted(set(y_true) | set(y_pred) | {str(c) for c in classes})

    matrix = confusion_matrix(y_true, y_pred, labels=labels)
    precision, recall, f1, _ = precision_recall_fscore_support(
        y_true, y_pred, average="macro", zero_division=0
    )
    confusion = {
        a: {p: int(matrix[i, j]) for j, p in enumerate(labels)}
        for i, a in enumerate(labels)
    }
    return {
        "accuracy": float(np.trace(matrix) / matrix.sum()),
        "macro_precision": float(precision),
        "macro_recall": float(recall),
        "macro_f1": float(f1),
        "confusion": confusion,
    }


@component(
    name="EvaluationHarness",
    responsibility="Fits and scores every candidate feature set with every backend",
    depends_on=["FeatureSelector", "SplitPartitioner", "ClassifierAdapter"],
)
class EvaluationHarness:
    """
    Orchestrates (candidate x backend) evaluation units.

    Every backend of a candidate sees the same Split. Each unit is
    independent: a failure is recorded on its own record and never aborts
    the report.

    Example:
        >>> harness = EvaluationHarness(standardize=True, n_jobs=1)
        >>> report = harness.evaluate(table, candidates, build_backends(), SplitConfig(seed=123))
        >>> report.to_frame().head()
    """

    def __init__(self, standardize: bool = True, n_jobs: int = 1):
        self.standardize = standardize
        self.n_jobs = n_jobs

    def evaluate(
        self,
        table: DatasetTable,
        candidates: Sequence[FeatureCandidate],
        backends: Sequence[ClassifierAdapter],
        split_config: SplitConfig,
        label_name: Optional[str] = None,
    ) -> ComparisonReport:
        """
        Evaluate every candidate with every backend.

        Args:
            table: Source table
            candidates: Feature sets to evaluate
            backends: Classifier adapters
            split_config: Proportion, seed and optional stratification
            label_name: Label to predict. If None, taken from the candidates'
                significance evidence.

        Returns:
            ComparisonReport ordered by descending held-out accuracy

        Raises:
            InvalidProportionError: Split precondition violated
            ValueError: Label cannot be resolved
        """
        label_name = label_name or _label_from_candidates(candidates)
        labeled = table.drop_missing(label_name)
        if len(labeled) < len(table):
            logger.info(f"Dropped {len(table) - len(labeled)} rows without '{label_name}'")

        # The split depends on rows only, so one split serves every candidate.
        split = split_table(
            labeled,
            split_config.train_proportion,
            split_config.seed,
            stratify_by=split_config.stratify_by,
        )

        units = [(c, b) for c in candidates for b in backends]
        logger.info(
            f"Evaluating {len(candidates)} candidates x {len(backends)} backends "
            f"({len(split.train)} train / {len(split.test)} test rows)"
        )

        records = Parallel(n_jobs=self.n_jobs, prefer="threads")(
            delayed(self._evaluate_unit)(candidate, backend, split, label_name)
            for candidate, backend in units
        )

        ordered = sorted(
            enumerate(records),
            key=lambda item: (item[1].accuracy is None, -(item[1].accuracy or 0.0), item[0]),
        )
        report = ComparisonReport(
            records=tuple(r for _, r in ordered),
            label_name=label_name,
            split_config=split_config,
        )

        if report.failures():
            logger.warning(f"{len(report.failures())} of {len(report)} evaluation units failed")
        best = report.best()
        if best is not None:
            logger.info(f"Best: {best.candidate} / {best.backend} accuracy={best.accuracy:.3f}")
        return report

    def _evaluate_unit(
        self,
        candidate: FeatureCandidate,
        backend: ClassifierAdapter,
        split: Split,
        label_name: str,
    ) -> EvaluationRecord:
        try:
            return self._score_unit(candidate, backend, split, label_name)
        except Exception as exc:
            error = EvaluationUnitError(candidate.name, backend.name, exc)
            logger.warning("%s", error)
            return EvaluationRecord(
                features=candidate.features,
                backend=backend.name,
                n_train=len(split.train),
                n_test=len(split.test),
                seed=split.seed,
                error=str(error),
            )

    def _score_unit(
        self,
        candidate: FeatureCandidate,
        backend: ClassifierAdapter,
        split: Split,
        label_name: str,
    ) -> EvaluationRecord:
        features = list(candidate.features)
        missing = [f for f in features if f not in split.train.schema]
        if missing:
            raise FeatureMismatchError(f"Table lacks candidate features {missing}")

        train = split.train.select(features + [label_name])
        test = split.test.select(features + [label_name])
        if self.standardize:
            scaler = Standardizer(features).fit(train)
            train = scaler.transform(train)
            test = scaler.transform(test)

        model = backend.fit(train, features, label_name)
        train_actual = train.column(label_name).tolist()
        test_actual = test.column(label_name).tolist()
        train_pred = backend.predict(model, train)
        test_pred = backend.predict(model, test)

        scores = _score_predictions(test_actual, test_pred, model.classes)
        train_scores = _score_predictions(train_actual, train_pred, model.classes)
        majority = _majority_label(train_actual)
        baseline = float(np.mean([a == majority for a in test_actual]))

        logger.debug(
            f"{candidate.name} / {backend.name}: test={scores['accuracy']:.3f} "
            f"train={train_scores['accuracy']:.3f} baseline={baseline:.3f}"
        )
        return EvaluationRecord(
            features=candidate.features,
            backend=backend.name,
            accuracy=scores["accuracy"],
            train_accuracy=train_scores["accuracy"],
            majority_baseline=baseline,
            macro_precision=scores["macro_precision"],
            macro_recall=scores["macro_recall"],
            macro_f1=scores["macro_f1"],
            confusion=scores["confusion"],
            n_train=len(train),
            n_test=len(test),
            seed=split.seed,
        )


def _label_from_candidates(candidates: Sequence[FeatureCandidate]) -> str:
    labels = {r.categorical_attr for c in candidates for r in c.evidence}
    if len(labels) != 1:
        raise ValueError(
            "label_name is required when candidates do not carry evidence for exactly one "
            f"categorical attribute (found {sorted(labels)})"
        )
    return labels.pop()


def evaluate(
    table: DatasetTable,
    candidates: Sequence[FeatureCandidate],
    backends: Sequence[ClassifierAdapter],
    split_config: SplitConfig,
    label_name: Optional[str] = None,
    standardize: bool = True,
    n_jobs: int = 1,
) -> ComparisonReport:
    """Convenience wrapper around EvaluationHarness.evaluate."""
    harness = EvaluationHarness(standardize=standardize, n_jobs=n_jobs)
    return harness.evaluate(table, candidates, backends, split_config, label_name)


def repeat_evaluation(
    table: DatasetTable,
    candidates: Sequence[FeatureCandidate],
    backends: Sequence[ClassifierAdapter],
    split_config: SplitConfig,
    n_trials: int = 20,
    label_name: Optional[str] = None,
    harness: Optional[EvaluationHarness] = None,
    progress: bool = False,
) -> TrialSummary:
    """
    Repeat the evaluation with seeds seed, seed+1, ..., seed+n_trials-1.

    Args:
        progress: Show a tqdm progress bar over trials

    Returns:
        TrialSummary whose `summary` has one row per (candidate, backend) with
        mean/std held-out accuracy, mean train accuracy and mean majority baseline
    """
    if n_trials < 1:
        raise ValueError("n_trials must be at least 1")
    harness = harness or EvaluationHarness()

    reports = []
    frames = []
    for trial in tqdm(range(n_trials), desc="Trials", disable=not progress):
        config = replace(split_config, seed=split_config.seed + trial)
        report = harness.evaluate(table, candidates, backends, config, label_name)
        reports.append(report)
        frame = report.to_frame()
        frame["trial"] = trial
        frames.append(frame)

    combined = pd.concat(frames, ignore_index=True)
    for col in ("accuracy", "train_accuracy", "majority_baseline"):
        combined[col] = pd.to_numeric(combined[col], errors="coerce")
    combined["failed"] = combined["error"].notna()
    summary = (
        combined.groupby(["candidate", "backend"], sort=False)
        .agg(
            mean_accuracy=("accuracy", "mean"),
            std_accuracy=("accuracy", "std"),
            mean_train_accuracy=("train_accuracy", "mean"),
            mean_majority_baseline=("majority_baseline", "mean"),
            n_failed=("failed", "sum"),
        )
        .reset_index()
        .sort_values("mean_accuracy", ascending=False, kind="mergesort")
        .reset_index(drop=True)
    )
    return TrialSummary(reports=tuple(reports), summary=summary)
