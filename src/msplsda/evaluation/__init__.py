"""Cross-validated classification performance of PLS-DA."""

from .cross_validation import (
    CVResult,
    CVScheme,
    check_fold_classes,
    check_resampling_data,
    cross_validate,
)

__all__ = [
    "CVResult",
    "CVScheme",
    "check_fold_classes",
    "check_resampling_data",
    "cross_validate",
]
