"""
msplsda -- PLS-DA for small-cohort MS/MS feature tables
=======================================================

Supervised projection (PLS-DA via NIPALS), leave-one-out cross-validated
classification accuracy and VIP feature ranking for features x samples
intensity tables with few samples and many features.

Subpackages
-----------
data        Feature matrix and sample annotation types, preprocessing
models      Class encoding, NIPALS engine, VIP scores
evaluation  Leave-one-out / k-fold cross-validation
stats       Label-permutation significance test
io          CSV/TSV input and result tables
cli         Command-line runner
utils       Configuration, logging, and run manifests

Quick start::

    from msplsda import pipeline
    from msplsda.io import read_feature_matrix, read_annotation

    raw = read_feature_matrix("feature_matrix.csv")
    annotation = read_annotation("sample_annotation.csv")
    processed = pipeline.preprocess(raw, {"top_variance_count": 500})
    model, vip = pipeline.fit_plsda(processed, annotation, n_components=2)
    cv = pipeline.cross_validate(processed, annotation, n_components=2)
"""

__version__ = "0.1.0"

from .errors import (
    InsufficientData,
    InternalInvariantViolation,
    InvalidConfiguration,
    InvalidInput,
    NumericalNonConvergence,
    NumericError,
    PLSDAError,
)
from .pipeline import cross_validate, fit_plsda, preprocess

__all__ = [
    "cross_validate",
    "fit_plsda",
    "preprocess",
    "PLSDAError",
    "InvalidInput",
    "InvalidConfiguration",
    "NumericError",
    "NumericalNonConvergence",
    "InsufficientData",
    "InternalInvariantViolation",
]
