"""
Feature Matrix
==============

Fixed-shape container for a features x samples intensity table, as exported
by xcms, MZmine or MS-DIAL (rows = m/z features or metabolites, columns =
samples). Missing cells are stored as ``NaN``.

The values array is made read-only on construction: every preprocessing
step returns a new ``FeatureMatrix`` rather than editing one in place, so
a processed matrix can always be traced back to the raw one by feature id.
"""

from __future__ import annotations

from dataclasses import dataclass
from typing import Sequence, Tuple

import numpy as np
import pandas as pd

from ..errors import InvalidInput


def _duplicates(ids: Sequence[str]) -> list:
    seen, dup = set(), []
    for i in ids:
        if i in seen and i not in dup:
            dup.append(i)
        seen.add(i)
    return dup


@dataclass(frozen=True, eq=False)
class FeatureMatrix:
    """
    Features x samples numeric table with unique row and column identifiers.

    Attributes:
        values: Float array, shape (n_features, n_samples). NaN marks missing.
        feature_ids: Feature identifiers, one per row
        sample_ids: Sample identifiers, one per column
    """

    values: np.ndarray
    feature_ids: Tuple[str, ...]
    sample_ids: Tuple[str, ...]

    def __post_init__(self):
        try:
            values = np.array(self.values, dtype=np.float64)
        except (TypeError, ValueError) as e:
            raise InvalidInput(f"Feature matrix contains non-numeric values: {e}")

        if values.ndim != 2:
            raise InvalidInput(f"Feature matrix must be 2-D, got {values.ndim}-D")
        if values.size == 0:
            raise InvalidInput(f"Feature matrix is empty: shape {values.shape}")

        feature_ids = tuple(str(f) for f in self.feature_ids)
        sample_ids = tuple(str(s) for s in self.sample_ids)

        if len(feature_ids) != values.shape[0]:
            raise InvalidInput(
                f"Got {len(feature_ids)} feature ids for {values.shape[0]} rows"
            )
        if len(sample_ids) != values.shape[1]:
            raise InvalidInput(
                f"Got {len(sample_ids)} sample ids for {values.shape[1]} columns"
            )

        dup = _duplicates(feature_ids)
        if dup:
            raise InvalidInput(f"Duplicate feature ids: {dup[:10]}")
        dup = _duplicates(sample_ids)
        if dup:
            raise InvalidInput(f"Duplicate sample ids: {dup[:10]}")

        if np.isinf(values).any():
            raise InvalidInput("Feature matrix contains infinite values")

        values.setflags(write=False)
        object.__setattr__(self, "values", values)
        object.__setattr__(self, "feature_ids", feature_ids)
        object.__setattr__(self, "sample_ids", sample_ids)

    @property
    def n_features(self) -> int:
        return self.values.shape[0]

    @property
    def n_samples(self) -> int:
        return self.values.shape[1]

    @property
    def shape(self) -> Tuple[int, int]:
        return self.values.shape

    @property
    def missing_mask(self) -> np.ndarray:
        return np.isnan(self.values)

    @property
    def has_missing(self) -> bool:
        return bool(self.missing_mask.any())

    def missing_fraction(self) -> np.ndarray:
        """Per-feature fraction of missing cells, shape (n_features,)."""
        return self.missing_mask.mean(axis=1)

    def with_values(self, values: np.ndarray) -> "FeatureMatrix":
        """New matrix with the same identifiers and different values."""
        return FeatureMatrix(values, self.feature_ids, self.sample_ids)

    def subset_features(self, keep: np.ndarray) -> "FeatureMatrix":
        """
        New matrix restricted to the given rows.

        Args:
            keep: Boolean mask of length n_features, or integer row indices

        Returns:
            FeatureMatrix with the selected features in the order given
        """
        keep = np.asarray(keep)
        if keep.dtype == bool:
            keep = np.flatnonzero(keep)
        if keep.size == 0:
            raise InvalidInput("Feature selection is empty")
        return FeatureMatrix(
            self.values[keep],
            tuple(self.feature_ids[i] for i in keep),
            self.sample_ids,
        )

    def subset_samples(self, sample_ids: Sequence[str]) -> "FeatureMatrix":
        """New matrix with columns reordered/restricted to ``sample_ids``."""
        index = {s: i for i, s in enumerate(self.sample_ids)}
        missing = [s for s in sample_ids if s not in index]
        if missing:
            raise InvalidInput(f"Unknown sample ids: {missing[:10]}")
        cols = [index[s] for s in sample_ids]
        return FeatureMatrix(self.values[:, cols], self.feature_ids, tuple(sample_ids))

    def samples_by_features(self) -> np.ndarray:
        """Transposed copy, shape (n_samples, n_features), as the PLS engine expects."""
        return np.array(self.values.T)

    @classmethod
    def from_dataframe(cls, df: pd.DataFrame) -> "FeatureMatrix":
        """
        Build from a DataFrame with features as rows and samples as columns.

        Non-numeric cells raise ``InvalidInput``; NA cells become missing.
        """
        if df.empty:
            raise InvalidInput(f"Feature table is empty: shape {df.shape}")
        try:
            values = df.apply(pd.to_numeric, errors="raise").to_numpy(dtype=np.float64)
        except (TypeError, ValueError) as e:
            raise InvalidInput(f"Feature table contains non-numeric cells: {e}")
        return cls(
            values,
            tuple(str(i).strip() for i in df.index),
            tuple(str(c).strip() for c in df.columns),
        )

    def to_dataframe(self) -> pd.DataFrame:
        return pd.DataFrame(
            np.array(self.values),
            index=pd.Index(self.feature_ids, name="feature"),
            columns=list(self.sample_ids),
        )

    def __repr__(self) -> str:
        return (
            f"FeatureMatrix(n_features={self.n_features}, n_samples={self.n_samples}, "
            f"missing={int(self.missing_mask.sum())})"
        )
