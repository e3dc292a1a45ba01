"""
Tabular I/O
===========

Reads the two inputs of an analysis and writes its result tables.

Inputs:
    feature_matrix.csv     rows = features (m/z or metabolite), columns = samples,
                           first column = feature id
    sample_annotation.csv  one row per sample, columns SampleID, Condition
                           (+ optional Batch, InjectionOrder, ... ignored)

Outputs (``write_results``):
    plsda_scores.csv        sample scores per component + Condition, SampleID
    plsda_loadings.csv      feature loadings per component + Feature
    plsda_top_features.csv  top-N features by VIP score
    plsda_cv_error.csv      cross-validated error rates per component count
    plsda_summary.csv       Metric / Value run summary

Files ending in .tsv/.txt are read tab-separated, everything else as CSV.
"""

from __future__ import annotations

import logging
from pathlib import Path
from typing import Dict, Optional, Union

import numpy as np
import pandas as pd

from ..data.annotation import SampleAnnotation
from ..data.matrix import FeatureMatrix
from ..errors import InvalidInput
from ..evaluation.cross_validation import CVResult
from ..models.nipals import PLSModel
from ..models.vip import VIPTable

logger = logging.getLogger(__name__)


def _sep_for(path: Path) -> str:
    return "\t" if path.suffix.lower() in (".tsv", ".txt") else ","


def read_feature_matrix(path: Union[str, Path], transpose: bool = False) -> FeatureMatrix:
    """
    Read a features x samples table.

    Args:
        path: CSV/TSV file, first column = feature ids, header = sample ids
        transpose: Set for MetaboAnalyst-style files (samples as rows)

    Returns:
        FeatureMatrix (empty / NA cells become missing)
    """
    path = Path(path)
    if not path.exists():
        raise FileNotFoundError(f"Feature matrix not found: {path}")

    df = pd.read_csv(path, sep=_sep_for(path), index_col=0)
    if transpose:
        df = df.T
    df.index = df.index.astype(str).str.strip()

    matrix = FeatureMatrix.from_dataframe(df)
    logger.info(
        f"Loaded {path.name}: {matrix.n_features} features x {matrix.n_samples} samples, "
        f"{matrix.missing_mask.mean():.1%} missing"
    )
    return matrix


def read_annotation(
    path: Union[str, Path],
    sample_col: str = "SampleID",
    class_col: str = "Condition",
) -> SampleAnnotation:
    """Read a sample annotation sheet."""
    path = Path(path)
    if not path.exists():
        raise FileNotFoundError(f"Sample annotation not found: {path}")

    df = pd.read_csv(path, sep=_sep_for(path))
    annotation = SampleAnnotation.from_dataframe(df, sample_col=sample_col, class_col=class_col)
    logger.info(f"Loaded {path.name}: {len(annotation)} annotated samples")
    return annotation


def _component_columns(n: int) -> list:
    return [f"Comp{i + 1}" for i in range(n)]


def scores_frame(model: PLSModel) -> pd.DataFrame:
    """Sample scores per component, one row per training sample."""
    if not model.sample_ids:
        raise InvalidInput("Model carries no sample ids; fit it with fit_plsda")
    df = pd.DataFrame(np.array(model.scores), columns=_component_columns(model.n_components))
    df["SampleID"] = list(model.sample_ids)
    return df


def loadings_frame(model: PLSModel) -> pd.DataFrame:
    """Feature loadings P with the distance from the origin on the first two components."""
    if not model.feature_ids:
        raise InvalidInput("Model carries no feature ids; fit it with fit_plsda")
    df = pd.DataFrame(
        np.array(model.x_loadings),
        columns=_component_columns(model.n_components),
    )
    df["Feature"] = list(model.feature_ids)
    df["distance"] = np.sqrt((model.x_loadings[:, :2] ** 2).sum(axis=1))
    return df


def summary_frame(
    raw: FeatureMatrix,
    processed: FeatureMatrix,
    model: PLSModel,
    cv: Optional[CVResult] = None,
    permutation: Optional[Dict[str, object]] = None,
) -> pd.DataFrame:
    """Metric / Value summary of a run."""
    rows = [
        ("Total Features", raw.n_features),
        ("Features Used", processed.n_features),
        ("Number of Samples", processed.n_samples),
        ("Number of Components", model.n_components),
    ]
    for h, (vx, vy) in enumerate(zip(model.x_explained_variance, model.y_explained_variance)):
        rows.append((f"Variance X Comp{h + 1} (%)", round(100 * float(vx), 2)))
        rows.append((f"Variance Y Comp{h + 1} (%)", round(100 * float(vy), 2)))
    if cv is not None:
        rows.append(("Classification Accuracy (%)", round(100 * float(cv.accuracy[-1]), 2)))
        rows.append(("Overall Error Rate", round(float(cv.error_rate[-1]), 3)))
        rows.append(("Balanced Error Rate", round(float(cv.balanced_error_rate[-1]), 3)))
    if permutation is not None:
        rows.append(("Permutation p-value", round(float(permutation["p_value"]), 4)))
        rows.append(("Permutations", permutation["n_permutations"]))
    return pd.DataFrame(rows, columns=["Metric", "Value"])


def write_results(
    out_dir: Union[str, Path],
    raw: FeatureMatrix,
    processed: FeatureMatrix,
    labels: list,
    model: PLSModel,
    vip: VIPTable,
    cv: Optional[CVResult] = None,
    permutation: Optional[Dict[str, object]] = None,
    top_n: int = 50,
) -> Dict[str, Path]:
    """
    Write all result tables.

    Args:
        out_dir: Output directory (created if needed)
        raw: Feature matrix before preprocessing
        processed: Feature matrix the model was fitted on
        labels: Class label per sample, in the processed matrix's sample order
        model, vip, cv, permutation: Analysis results
        top_n: Number of VIP-ranked features to export

    Returns:
        Mapping of table name -> written path
    """
    out_dir = Path(out_dir)
    out_dir.mkdir(parents=True, exist_ok=True)
    written = {}

    scores = scores_frame(model)
    scores.insert(model.n_components, "Condition", list(labels))
    written["scores"] = out_dir / "plsda_scores.csv"
    scores.to_csv(written["scores"], index=False)

    written["loadings"] = out_dir / "plsda_loadings.csv"
    loadings_frame(model).to_csv(written["loadings"], index=False)

    written["top_features"] = out_dir / "plsda_top_features.csv"
    vip.top(top_n).to_series().reset_index().to_csv(written["top_features"], index=False)

    if cv is not None:
        written["cv_error"] = out_dir / "plsda_cv_error.csv"
        cv.summary().to_csv(written["cv_error"])

    written["summary"] = out_dir / "plsda_summary.csv"
    summary_frame(raw, processed, model, cv, permutation).to_csv(written["summary"], index=False)

    for path in written.values():
        logger.info(f"  wrote {path}")
    return written
