"""
@module: fse.model_presets
@depends: tomllib
@exports: load_backend_presets, resolve_backend_params
@data_flow: toml -> preset_map -> backend params
"""

from __future__ import annotations

import copy
import tomllib
from pathlib import Path
from typing import Any, Dict

_DEFAULT_PRESETS: Dict[str, Dict[str, Any]] = {
    "decision_tree": {
        "criterion": "gini",
        "min_samples_split": 20,
        "min_samples_leaf": 7,
        "random_state": 42,
    },
    "knn": {
        "n_neighbors": 7,
        "weights": "distance",
        "metric": "minkowski",
        "p": 2,
    },
    "random_forest": {
        "n_estimators": 200,
        "max_features": "sqrt",
        "bootstrap": True,
        "random_state": 42,
        "n_jobs": 1,
    },
    "xgboost": {
        "n_estimators": 100,
        "max_depth": 4,
        "learning_rate": 0.1,
        "subsample": 0.8,
        "colsample_bytree": 1.0,
        "random_state": 42,
        "n_jobs": 1,
        "verbosity": 0,
    },
}


def load_backend_presets(config_path: Path | None = None) -> Dict[str, Dict[str, Any]]:
    """Load backend hyper-parameters, overriding defaults from TOML.

    Each TOML table is a backend name; its keys override (not replace) the
    default parameters of that backend::

        [knn]
        n_neighbors = 5

    Args:
        config_path: Optional explicit path to presets TOML. Defaults to
            configs/models/backends.toml at the repository root.

    Returns:
        Dict mapping backend name -> params.
    """
    if config_path is None:
        repo_root = Path(__file__).resolve().parents[1]
        config_path = repo_root / "configs" / "models" / "backends.toml"

    presets = copy.deepcopy(_DEFAULT_PRESETS)
    if not config_path.exists():
        return presets

    with config_path.open("rb") as f:
        data = tomllib.load(f)

    for name, params in data.items():
        if isinstance(params, dict):
            presets.setdefault(name, {}).update(params)
    return presets


def resolve_backend_params(
    backend: str,
    presets: Dict[str, Dict[str, Any]] | None = None,
    **overrides: Any,
) -> Dict[str, Any]:
    """Resolve the parameters for one backend.

    Args:
        backend: Backend name.
        presets: Preset map (default: built-in defaults).
        **overrides: Explicit parameters taking precedence over presets.

    Returns:
        Parameter dict for the backend's estimator.
    """
    source = presets if presets is not None else _DEFAULT_PRESETS
    params = dict(source.get(backend, {}))
    params.update(overrides)
    return params
