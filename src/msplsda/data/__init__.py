"""
Data Package
============

Feature matrix and sample annotation types, and the preprocessing chain
(missingness filter, imputation, log transform, normalization, variance
selection).
"""

from .matrix import FeatureMatrix
from .annotation import SampleAnnotation
from .preprocess import (
    PreprocessConfig,
    filter_missing,
    impute_half_minimum,
    log_transform,
    normalize_median,
    feature_variance,
    select_top_variance,
    preprocess,
    missingness_report,
)

__all__ = [
    # Types
    "FeatureMatrix",
    "SampleAnnotation",
    # Preprocessing
    "PreprocessConfig",
    "filter_missing",
    "impute_half_minimum",
    "log_transform",
    "normalize_median",
    "feature_variance",
    "select_top_variance",
    "preprocess",
    "missingness_report",
]
