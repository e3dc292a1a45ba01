"""
MS/MS Feature Preprocessing
===========================

Five-stage cleaning and reduction of a raw features x samples table, applied
in a fixed order:

1. Missingness filter: drop features whose missing fraction >= threshold
   (default 0.5).
2. Half-minimum imputation: remaining missing cells get half the smallest
   observed value of their feature (standard for MS intensities, where
   missing usually means "below detection limit").
3. Log transform: log_base(x + offset), default log2(x + 1).
4. Median normalisation: shift each sample so its median equals the median
   of all sample medians. Removes loading/injection differences between
   samples without changing the feature ranking inside a sample.
5. Variance selection: keep the n most variable features (default 500).
   Small cohorts (~10 samples) need aggressive reduction before PLS-DA.

Every stage is a pure function: it returns a new ``FeatureMatrix`` and never
edits its input, so each retained feature keeps its original id.

Usage:
    >>> from msplsda.data.preprocess import PreprocessConfig, preprocess
    >>> processed = preprocess(raw, PreprocessConfig(top_variance_count=200))
"""

from __future__ import annotations

import logging
from dataclasses import asdict, dataclass, fields
from typing import Any, Dict, Mapping, Optional

import numpy as np

from ..errors import InvalidConfiguration, InvalidInput, NumericError
from .matrix import FeatureMatrix

logger = logging.getLogger(__name__)


@dataclass(frozen=True)
class PreprocessConfig:
    """
    Preprocessing parameters.

    Attributes:
        missing_threshold: Drop features with missing fraction >= this value
        log_base: Base of the log transform
        log_offset: Added to every value before the log
        top_variance_count: Number of most variable features to keep
        log_transform: Whether to apply stage 3
        normalize: Whether to apply stage 4
    """

    missing_threshold: float = 0.5
    log_base: float = 2.0
    log_offset: float = 1.0
    top_variance_count: int = 500
    log_transform: bool = True
    normalize: bool = True

    @classmethod
    def from_dict(cls, params: Optional[Mapping[str, Any]]) -> "PreprocessConfig":
        """Build from a config section, rejecting unknown keys."""
        if not params:
            return cls()
        known = {f.name for f in fields(cls)}
        unknown = set(params) - known
        if unknown:
            raise InvalidConfiguration(
                f"Unknown preprocessing options: {sorted(unknown)} (known: {sorted(known)})"
            )
        return cls(**dict(params))

    def to_dict(self) -> Dict[str, Any]:
        return asdict(self)


def filter_missing(matrix: FeatureMatrix, threshold: float = 0.5) -> FeatureMatrix:
    """
    Drop features whose missing-value fraction is >= ``threshold``.

    Raises:
        InvalidConfiguration: threshold not in (0, 1]
        InvalidInput: every feature would be removed
    """
    if not 0.0 < threshold <= 1.0:
        raise InvalidConfiguration(f"missing threshold must be in (0, 1], got {threshold}")

    keep = matrix.missing_fraction() < threshold
    n_keep = int(keep.sum())
    if n_keep == 0:
        raise InvalidInput(
            f"All {matrix.n_features} features have missing fraction >= {threshold}"
        )

    logger.debug(
        f"Missingness filter (>= {threshold:.0%}): kept {n_keep}/{matrix.n_features} features"
    )
    if n_keep == matrix.n_features:
        return matrix
    return matrix.subset_features(keep)


def impute_half_minimum(matrix: FeatureMatrix) -> FeatureMatrix:
    """
    Replace missing cells with half the row's minimum observed value.

    Raises:
        InvalidInput: a feature row is entirely missing
    """
    missing = matrix.missing_mask
    if not missing.any():
        return matrix

    empty = np.flatnonzero(missing.all(axis=1))
    if empty.size:
        ids = [matrix.feature_ids[i] for i in empty]
        raise InvalidInput(
            f"Cannot impute {empty.size} feature(s) with no observed values: {ids[:10]}"
        )

    values = np.array(matrix.values)
    rows = np.flatnonzero(missing.any(axis=1))
    half_min = np.nanmin(values[rows], axis=1) / 2.0
    for row, fill in zip(rows, half_min):
        values[row, missing[row]] = fill

    logger.debug(f"Imputed {int(missing.sum())} missing cells across {rows.size} features")
    return matrix.with_values(values)


def log_transform(
    matrix: FeatureMatrix,
    offset: float = 1.0,
    base: float = 2.0,
) -> FeatureMatrix:
    """
    Elementwise ``log_base(value + offset)``.

    Raises:
        InvalidConfiguration: base <= 0 or base == 1
        NumericError: some value + offset <= 0
    """
    if base <= 0 or base == 1:
        raise InvalidConfiguration(f"log base must be positive and != 1, got {base}")

    shifted = matrix.values + offset
    bad = shifted <= 0
    if bad.any():
        r, c = np.argwhere(bad)[0]
        raise NumericError(
            f"log transform undefined for {int(bad.sum())} cell(s): e.g. feature "
            f"'{matrix.feature_ids[r]}', sample '{matrix.sample_ids[c]}' "
            f"(value {matrix.values[r, c]:g}, offset {offset:g})"
        )

    return matrix.with_values(np.log(shifted) / np.log(base))


def normalize_median(matrix: FeatureMatrix) -> FeatureMatrix:
    """
    Subtract ``(sample_median - median_of_sample_medians)`` from each sample column.
    """
    medians = np.nanmedian(matrix.values, axis=0)
    shift = medians - np.median(medians)
    logger.debug(f"Median normalisation: max |shift| = {np.abs(shift).max():.4f}")
    return matrix.with_values(matrix.values - shift[np.newaxis, :])


def feature_variance(matrix: FeatureMatrix) -> np.ndarray:
    """Sample variance (ddof=1) of every feature."""
    if matrix.n_samples < 2:
        raise InvalidInput(
            f"Feature variance needs at least 2 samples, got {matrix.n_samples}"
        )
    return np.var(matrix.values, axis=1, ddof=1)


def select_top_variance(matrix: FeatureMatrix, n: int) -> FeatureMatrix:
    """
    Keep the ``n`` highest-variance features.

    Ties are broken by original feature order (stable sort). Selected
    features keep their original relative order.

    Raises:
        InvalidConfiguration: n < 1
    """
    if n < 1:
        raise InvalidConfiguration(f"top variance count must be >= 1, got {n}")

    variance = feature_variance(matrix)
    if n >= matrix.n_features:
        return matrix

    order = np.argsort(-variance, kind="stable")
    keep = np.sort(order[:n])
    logger.debug(
        f"Variance selection: kept {n}/{matrix.n_features} features "
        f"(min kept variance {variance[order[n - 1]]:.4g})"
    )
    return matrix.subset_features(keep)


def preprocess(
    matrix: FeatureMatrix,
    config: Optional[PreprocessConfig] = None,
) -> FeatureMatrix:
    """
    Run the full preprocessing chain.

    Args:
        matrix: Raw features x samples table
        config: Preprocessing parameters (defaults if None)

    Returns:
        New, usually smaller, FeatureMatrix
    """
    if config is None:
        config = PreprocessConfig()

    n_raw = matrix.n_features
    logger.info(f"Preprocessing {n_raw} features x {matrix.n_samples} samples")

    out = filter_missing(matrix, config.missing_threshold)
    logger.info(f"  after missingness filter: {out.n_features} features")

    out = impute_half_minimum(out)

    if config.log_transform:
        out = log_transform(out, offset=config.log_offset, base=config.log_base)

    if config.normalize:
        out = normalize_median(out)

    out = select_top_variance(out, config.top_variance_count)
    logger.info(f"  after variance selection: {out.n_features} features")

    return out


def missingness_report(matrix: FeatureMatrix) -> Dict[str, Any]:
    """
    Data-quality summary of missing values.

    Returns:
        Dictionary with:
        - "overall": fraction of missing cells in the whole table
        - "per_feature": pandas Series of missing fraction per feature
        - "per_sample": pandas Series of missing fraction per sample
        - "n_complete_features": features with no missing cell
    """
    df = matrix.to_dataframe()
    mask = df.isna()
    return {
        "overall": float(mask.to_numpy().mean()),
        "per_feature": mask.mean(axis=1),
        "per_sample": mask.mean(axis=0),
        "n_complete_features": int((~mask.any(axis=1)).sum()),
    }
