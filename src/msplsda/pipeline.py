"""
PLS-DA Entry Points
===================

The three calls most analyses need, working on ``FeatureMatrix`` objects
(features x samples) and class labels:

    processed = preprocess(raw, {"top_variance_count": 500})
    model, vip = fit_plsda(processed, annotation, n_components=2)
    cv = cross_validate(processed, annotation, n_components=2)

``labels`` is either a sequence aligned with the matrix's sample order or a
``SampleAnnotation``, which is reconciled with the matrix by sample id.
"""

from __future__ import annotations

import logging
from typing import Any, Mapping, Optional, Sequence, Tuple, Union

from .data.annotation import SampleAnnotation
from .data.matrix import FeatureMatrix
from .data.preprocess import PreprocessConfig
from .data.preprocess import preprocess as _preprocess
from .errors import InvalidInput
from .evaluation.cross_validation import CVResult, CVScheme
from .evaluation.cross_validation import cross_validate as _cross_validate
from .models.encoding import ClassEncoding, encode_labels
from .models.nipals import PLSModel, fit_pls
from .models.vip import VIPTable, compute_vip
from .utils.logging_utils import log_time

logger = logging.getLogger(__name__)

Labels = Union[Sequence[str], SampleAnnotation]


def preprocess(
    raw_matrix: FeatureMatrix,
    config: Union[PreprocessConfig, Mapping[str, Any], None] = None,
) -> FeatureMatrix:
    """
    Clean and reduce a raw feature matrix.

    Args:
        raw_matrix: Raw features x samples table
        config: PreprocessConfig, a mapping of its fields
            (missing_threshold, log_base, top_variance_count, ...) or None

    Returns:
        Processed FeatureMatrix
    """
    if not isinstance(config, PreprocessConfig):
        config = PreprocessConfig.from_dict(config)
    return _preprocess(raw_matrix, config)


def encode_for_matrix(matrix: FeatureMatrix, labels: Labels) -> ClassEncoding:
    """Encode labels after aligning them with the matrix's samples."""
    if isinstance(labels, SampleAnnotation):
        labels = labels.labels_for(matrix)
    labels = list(labels)
    if len(labels) != matrix.n_samples:
        raise InvalidInput(
            f"Got {len(labels)} labels for {matrix.n_samples} samples"
        )
    return encode_labels(labels)


def fit_plsda(
    matrix: FeatureMatrix,
    labels: Labels,
    n_components: int,
    scale: bool = False,
    tol: float = 1e-6,
    max_iter: int = 100,
) -> Tuple[PLSModel, VIPTable]:
    """
    Fit PLS-DA on the full data and rank features by VIP.

    Args:
        matrix: Processed features x samples table (no missing values)
        labels: Class labels (sequence in sample order, or SampleAnnotation)
        n_components: Number of latent components
        scale, tol, max_iter: NIPALS options

    Returns:
        (model, vip_table); the model carries class, feature and sample ids
    """
    encoding = encode_for_matrix(matrix, labels)
    logger.info(
        f"Fitting PLS-DA: {matrix.n_samples} samples, {matrix.n_features} features, "
        f"classes {encoding.class_counts()}, {n_components} component(s)"
    )

    model = fit_pls(
        matrix.samples_by_features(),
        encoding.indicator,
        n_components,
        scale=scale,
        tol=tol,
        max_iter=max_iter,
    ).tagged(
        classes=encoding.classes,
        feature_ids=matrix.feature_ids,
        sample_ids=matrix.sample_ids,
    )

    vip = compute_vip(model, matrix.n_features)
    logger.info(
        f"R2Y per component: {[round(float(v), 4) for v in model.y_explained_variance]}; "
        f"{vip.n_important()} features with VIP > 1"
    )
    return model, vip


def cross_validate(
    matrix: FeatureMatrix,
    labels: Labels,
    n_components: int,
    scheme: Optional[CVScheme] = None,
    scale: bool = False,
    tol: float = 1e-6,
    max_iter: int = 100,
    n_jobs: int = 1,
    progress: bool = False,
) -> CVResult:
    """
    Cross-validated error rates for 1..n_components components.

    Leave-one-out unless another ``scheme`` is given.
    """
    encoding = encode_for_matrix(matrix, labels)
    with log_time(logger, "Cross-validation", level="DEBUG"):
        return _cross_validate(
            matrix.samples_by_features(),
            encoding.indicator,
            n_components,
            scheme=scheme,
            scale=scale,
            tol=tol,
            max_iter=max_iter,
            n_jobs=n_jobs,
            progress=progress,
            classes=encoding.classes,
        )
