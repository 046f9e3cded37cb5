"""
@module: fse.adapters
@depends: sklearn, xgboost, fse.model_presets, fse.table
@exports: TrainedModel, ClassifierAdapter, DecisionTreeAdapter, KNearestNeighborsAdapter, RandomForestAdapter, XGBoostAdapter, available_backends, build_backends
@data_flow: train view + feature names -> fitted estimator -> predictions on test view

Uniform fit/predict interface over heterogeneous classifier backends.
New backends subclass ClassifierAdapter and register in BACKENDS.
"""

import logging
from abc import ABC, abstractmethod
from dataclasses import dataclass
from typing import Any, Dict, List, Optional, Sequence, Tuple, Type

import numpy as np
from sklearn.ensemble import RandomForestClassifier
from sklearn.neighbors import KNeighborsClassifier
from sklearn.preprocessing import LabelEncoder
from sklearn.tree import DecisionTreeClassifier
from xgboost import XGBClassifier

from fse.config import DEFAULT_BACKENDS
from fse.errors import FeatureMismatchError
from fse.meta import component
from fse.model_presets import resolve_backend_params
from fse.table import DatasetTable

logger = logging.getLogger(__name__)


@dataclass(frozen=True)
class TrainedModel:
    """A fitted backend bound to one feature set and one training view."""

    backend: str
    feature_names: Tuple[str, ...]
    label_name: str
    classes: Tuple[Any, ...]
    estimator: Any
    n_train: int
    label_encoder: LabelEncoder


@component(
    name="ClassifierAdapter",
    responsibility="Uniform fit/predict contract over classifier backends",
    depends_on=["SplitPartitioner"],
)
class ClassifierAdapter(ABC):
    """
    Base class for classifier backends.

    Subclasses set `name` and build an unfitted estimator; fitting,
    feature validation and prediction are shared.

    Example:
        >>> knn = KNearestNeighborsAdapter(n_neighbors=5)
        >>> model = knn.fit(split.train, ["attack", "speed"], "type_1")
        >>> predicted = knn.predict(model, split.test)
    """

    name: str = ""

    def __init__(self, presets: Optional[Dict[str, Dict[str, Any]]] = None, **params: Any):
        self.params = resolve_backend_params(self.name, presets, **params)

    def __repr__(self) -> str:
        return f"{type(self).__name__}({self.params})"

    @abstractmethod
    def _build_estimator(self) -> Any:
        """Return a new, unfitted estimator."""

    def _fit_estimator(self, estimator: Any, X: np.ndarray, y: np.ndarray) -> LabelEncoder:
        # Estimators see codes 0..K-1 whatever the label vocabulary's value type
        encoder = LabelEncoder().fit(y)
        estimator.fit(X, encoder.transform(y))
        return encoder

    def fit(self, train: DatasetTable, feature_names: Sequence[str], label_name: str) -> TrainedModel:
        """
        Fit the backend on `train` restricted to `feature_names`.

        Raises:
            FeatureMismatchError: A feature is not a column of the training view
            ValueError: Missing labels in the training view
        """
        features = tuple(feature_names)
        if not features:
            raise ValueError("At least one feature is required")
        missing = [f for f in features if f not in train.schema]
        if missing:
            raise FeatureMismatchError(f"Training view lacks features {missing}")

        labels = train.column(label_name)
        if labels.isna().any():
            raise ValueError(f"Training view has missing values in label '{label_name}'")

        X = train.numeric_matrix(features)
        y = labels.astype(object).to_numpy()

        estimator = self._build_estimator()
        encoder = self._fit_estimator(estimator, X, y)
        classes = tuple(encoder.classes_)

        logger.debug(f"{self.name}: fit on {len(X)} rows, features={list(features)}, classes={len(classes)}")
        return TrainedModel(
            backend=self.name,
            feature_names=features,
            label_name=label_name,
            classes=classes,
            estimator=estimator,
            n_train=len(X),
            label_encoder=encoder,
        )

    def predict(self, model: TrainedModel, test: DatasetTable) -> List[Any]:
        """
        Predict labels for every row of `test`. Does not modify the model.

        Raises:
            FeatureMismatchError: `test` does not cover the model's features
        """
        if model.backend != self.name:
            raise ValueError(f"Model was fit by '{model.backend}', not '{self.name}'")
        missing = [f for f in model.feature_names if f not in test.schema]
        if missing:
            raise FeatureMismatchError(f"Test view lacks features {missing} the model was fit on")

        X = test.numeric_matrix(model.feature_names)
        if len(X) == 0:
            return []

        codes = np.asarray(model.estimator.predict(X), dtype=int)
        return list(model.label_encoder.inverse_transform(codes))


class DecisionTreeAdapter(ClassifierAdapter):
    """Single CART decision tree."""

    name = "decision_tree"

    def _build_estimator(self) -> DecisionTreeClassifier:
        return DecisionTreeClassifier(**self.params)


class KNearestNeighborsAdapter(ClassifierAdapter):
    """Distance-weighted k-nearest-neighbor vote with a fixed neighborhood size."""

    name = "knn"

    def _build_estimator(self) -> KNeighborsClassifier:
        return KNeighborsClassifier(**self.params)


class RandomForestAdapter(ClassifierAdapter):
    """Bagged decision trees with majority voting."""

    name = "random_forest"

    def _build_estimator(self) -> RandomForestClassifier:
        return RandomForestClassifier(**self.params)


class XGBoostAdapter(ClassifierAdapter):
    """Gradient-boosted trees."""

    name = "xgboost"

    def _build_estimator(self) -> XGBClassifier:
        return XGBClassifier(**self.params)


BACKENDS: Dict[str, Type[ClassifierAdapter]] = {
    cls.name: cls
    for cls in (DecisionTreeAdapter, KNearestNeighborsAdapter, RandomForestAdapter, XGBoostAdapter)
}


def available_backends() -> List[str]:
    return list(BACKENDS)


def build_backends(
    names: Optional[Sequence[str]] = None,
    presets: Optional[Dict[str, Dict[str, Any]]] = None,
) -> List[ClassifierAdapter]:
    """
    Instantiate adapters by name.

    Args:
        names: Backend names (default: decision_tree, knn, random_forest)
        presets: Optional preset map from load_backend_presets

    Returns:
        Adapters in the requested order
    """
    names = list(names) if names is not None else list(DEFAULT_BACKENDS)
    unknown = [n for n in names if n not in BACKENDS]
    if unknown:
        raise ValueError(f"Unknown backends {unknown}; available: {available_backends()}")
    return [BACKENDS[n](presets=presets) for n in names]
