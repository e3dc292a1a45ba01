"""I/O utilities for feature tables, sample sheets and result tables."""

from .tables import (
    read_feature_matrix,
    read_annotation,
    scores_frame,
    loadings_frame,
    summary_frame,
    write_results,
)

__all__ = [
    "read_feature_matrix",
    "read_annotation",
    "scores_frame",
    "loadings_frame",
    "summary_frame",
    "write_results",
]
