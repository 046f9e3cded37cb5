"""
@module: fse.errors
@depends:
@exports: FSEError, InsufficientGroupSizeError, ConstantInputError, InvalidProportionError, FeatureMismatchError, EvaluationUnitError
@data_flow: precondition failures -> typed exceptions
"""

from __future__ import annotations

from typing import Optional


class FSEError(Exception):
    """Base class for all feature-significance errors."""


class InsufficientGroupSizeError(FSEError, ValueError):
    """A category level has no observations (or fewer than two levels exist)."""


class ConstantInputError(FSEError, ValueError):
    """Numeric attribute has zero variance, so the rank test is undefined."""


class InvalidProportionError(FSEError, ValueError):
    """Train proportion is not strictly between 0 and 1."""


class FeatureMismatchError(FSEError, ValueError):
    """A view does not cover the feature names a model needs."""


class EvaluationUnitError(FSEError, RuntimeError):
    """Wraps a fit/predict failure of one (candidate, backend) evaluation unit."""

    def __init__(self, candidate: str, backend: str, cause: Optional[BaseException] = None):
        self.candidate = candidate
        self.backend = backend
        self.cause = cause
        reason = f"{type(cause).__name__}: {cause}" if cause is not None else "unknown failure"
        super().__init__(f"Evaluation of {candidate!r} with backend {backend!r} failed ({reason})")
