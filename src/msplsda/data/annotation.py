"""
Sample Annotation
=================

Maps sample identifiers to class labels (the ``Condition`` column of a
sample annotation sheet). Extra columns such as ``Batch`` or
``InjectionOrder`` are kept as metadata but never used by the core.

Labels are always reconciled with a feature matrix by identifier, never by
position.
"""

from __future__ import annotations

import logging
from typing import Dict, List, Mapping, Optional

import pandas as pd

from ..errors import InvalidInput
from .matrix import FeatureMatrix

logger = logging.getLogger(__name__)


class SampleAnnotation:
    """
    Sample id -> class label mapping with optional per-sample metadata.

    Example:
        >>> ann = SampleAnnotation({"S1": "Control", "S2": "Treatment"})
        >>> ann.labels_for(matrix)
        ['Control', 'Treatment']
    """

    def __init__(self, labels: Mapping[str, str], metadata: Optional[pd.DataFrame] = None):
        if not labels:
            raise InvalidInput("Sample annotation is empty")
        self._labels: Dict[str, str] = {str(k): str(v) for k, v in labels.items()}
        self.metadata = metadata

    @classmethod
    def from_dataframe(
        cls,
        df: pd.DataFrame,
        sample_col: str = "SampleID",
        class_col: str = "Condition",
    ) -> "SampleAnnotation":
        """
        Build from an annotation table.

        Args:
            df: Annotation table, one row per sample
            sample_col: Column holding sample ids
            class_col: Column holding class labels

        Raises:
            InvalidInput: Missing columns, duplicate sample ids or missing labels
        """
        for col in (sample_col, class_col):
            if col not in df.columns:
                raise InvalidInput(
                    f"Annotation column '{col}' not found (columns: {list(df.columns)})"
                )

        ids = df[sample_col].astype(str).str.strip()
        dup = ids[ids.duplicated()].unique().tolist()
        if dup:
            raise InvalidInput(f"Duplicate sample ids in annotation: {dup[:10]}")

        unlabeled = ids[df[class_col].isna().to_numpy()].tolist()
        if unlabeled:
            raise InvalidInput(f"Samples without a class label: {unlabeled[:10]}")

        labels = dict(zip(ids, df[class_col].astype(str).str.strip()))
        metadata = df.drop(columns=[class_col]).set_index(ids).drop(columns=[sample_col])
        return cls(labels, metadata=metadata)

    @property
    def sample_ids(self) -> List[str]:
        return list(self._labels)

    def __len__(self) -> int:
        return len(self._labels)

    def __contains__(self, sample_id: str) -> bool:
        return sample_id in self._labels

    def __getitem__(self, sample_id: str) -> str:
        return self._labels[sample_id]

    def labels_for(self, matrix: FeatureMatrix) -> List[str]:
        """
        Class labels in the matrix's sample order.

        Raises:
            InvalidInput: If any matrix sample has no annotation entry
        """
        missing = [s for s in matrix.sample_ids if s not in self._labels]
        if missing:
            raise InvalidInput(
                f"{len(missing)} of {matrix.n_samples} samples have no annotation: {missing[:10]}"
            )

        extra = set(self._labels) - set(matrix.sample_ids)
        if extra:
            logger.warning(
                f"Ignoring {len(extra)} annotated samples absent from the feature matrix: "
                f"{sorted(extra)[:10]}"
            )

        return [self._labels[s] for s in matrix.sample_ids]

    def class_table(self) -> pd.Series:
        """Sample count per class, in first-seen order."""
        return pd.Series(list(self._labels.values())).value_counts(sort=False)

    def __repr__(self) -> str:
        return f"SampleAnnotation(n_samples={len(self)})"
