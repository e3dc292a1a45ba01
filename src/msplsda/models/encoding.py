"""Class label -> indicator response matrix, with first-seen class order."""

from __future__ import annotations

from dataclasses import dataclass
from typing import Dict, Iterable, List, Sequence, Tuple

import numpy as np

from ..errors import InvalidInput


@dataclass(frozen=True, eq=False)
class ClassEncoding:
    """
    Dummy encoding of class labels.

    Attributes:
        classes: Distinct labels in first-seen order. Column k of
            ``indicator`` and class index k everywhere else refer to classes[k].
        indicator: (n_samples, n_classes) 0/1 matrix, one 1 per row
        codes: (n_samples,) class index of every sample
    """

    classes: Tuple[str, ...]
    indicator: np.ndarray
    codes: np.ndarray

    def __post_init__(self):
        self.indicator.setflags(write=False)
        self.codes.setflags(write=False)

    @property
    def n_classes(self) -> int:
        return len(self.classes)

    @property
    def n_samples(self) -> int:
        return self.indicator.shape[0]

    def index_of(self, label: str) -> int:
        try:
            return self.classes.index(label)
        except ValueError:
            raise InvalidInput(f"Unknown class label '{label}' (known: {list(self.classes)})")

    def decode(self, indices: Iterable[int]) -> List[str]:
        return [self.classes[int(i)] for i in indices]

    def class_counts(self) -> Dict[str, int]:
        counts = np.bincount(self.codes, minlength=self.n_classes)
        return {c: int(n) for c, n in zip(self.classes, counts)}


def encode_labels(labels: Sequence) -> ClassEncoding:
    """
    Encode class labels as an indicator matrix.

    Class order is the order of first appearance in ``labels`` (not sorted),
    so results are reproducible for identical input.

    Raises:
        InvalidInput: empty input or fewer than 2 distinct classes
    """
    labels = [str(label) for label in labels]
    if not labels:
        raise InvalidInput("No class labels given")

    classes: Dict[str, int] = {}
    for label in labels:
        classes.setdefault(label, len(classes))

    if len(classes) < 2:
        raise InvalidInput(
            f"PLS-DA needs at least 2 classes, got {len(classes)}: {list(classes)}"
        )

    codes = np.array([classes[label] for label in labels], dtype=np.intp)
    indicator = np.zeros((len(labels), len(classes)), dtype=np.float64)
    indicator[np.arange(len(labels)), codes] = 1.0

    return ClassEncoding(tuple(classes), indicator, codes)
