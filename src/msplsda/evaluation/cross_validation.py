"""
Cross-Validation for PLS-DA
===========================

Leave-one-out (default) or k-fold estimate of the classification error for
every component count 1..H.

Per fold, the model is fitted once with H components on the training rows.
NIPALS components are nested (component h never depends on h+1), so the
first h columns of that fit are the h-component model, and the held-out
rows are predicted at every h from a single fit.

Folds are independent and can run on a thread pool (numpy releases the GIL
inside BLAS calls). Fold results are always merged in ascending fold index,
so the outcome is identical for any ``n_jobs``.

Scientific Context:
- With ~10 samples a held-out test set is not affordable; LOOCV uses every
  sample for testing exactly once.
- The balanced error rate (mean of per-class error rates) is reported next
  to the overall error rate for unbalanced designs.
"""

from __future__ import annotations

import logging
from concurrent.futures import ThreadPoolExecutor
from dataclasses import dataclass
from typing import List, Optional, Sequence, Tuple

import numpy as np
import pandas as pd
from sklearn.model_selection import KFold, LeaveOneOut
from tqdm import tqdm

from ..errors import InsufficientData, InvalidConfiguration, InvalidInput
from ..models.nipals import fit_pls, predict

logger = logging.getLogger(__name__)


@dataclass(frozen=True)
class CVScheme:
    """
    Resampling scheme.

    Attributes:
        kind: "loo" (leave-one-out) or "kfold"
        n_folds: Number of folds for "kfold"
        interleaved: For "kfold", assign sample i to fold i % k instead of
            contiguous blocks
    """

    kind: str = "loo"
    n_folds: Optional[int] = None
    interleaved: bool = False

    def __post_init__(self):
        if self.kind not in ("loo", "kfold"):
            raise InvalidConfiguration(f"Unknown CV scheme '{self.kind}' (use 'loo' or 'kfold')")
        if self.kind == "kfold" and (self.n_folds is None or self.n_folds < 2):
            raise InvalidConfiguration(f"k-fold needs n_folds >= 2, got {self.n_folds}")

    @classmethod
    def loo(cls) -> "CVScheme":
        return cls("loo")

    @classmethod
    def kfold(cls, n_folds: int, interleaved: bool = False) -> "CVScheme":
        return cls("kfold", n_folds, interleaved)

    def split(self, n_samples: int) -> List[Tuple[np.ndarray, np.ndarray]]:
        """(train_idx, test_idx) per fold, in fold order."""
        if self.kind == "loo":
            return list(LeaveOneOut().split(np.zeros((n_samples, 1))))

        if self.n_folds > n_samples:
            raise InvalidConfiguration(
                f"n_folds={self.n_folds} exceeds the number of samples ({n_samples})"
            )
        if not self.interleaved:
            return list(KFold(n_splits=self.n_folds, shuffle=False).split(np.zeros((n_samples, 1))))

        idx = np.arange(n_samples)
        return [
            (idx[idx % self.n_folds != k], idx[idx % self.n_folds == k])
            for k in range(self.n_folds)
        ]


@dataclass(frozen=True, eq=False)
class CVResult:
    """
    Cross-validated classification performance, per component count.

    Index h-1 of every per-component array refers to the h-component model.

    Attributes:
        predictions: (n_samples, H) predicted class index of every held-out sample
        misclassified: (H,) misclassification counts
        error_rate: (H,) misclassified / n_samples
        accuracy: (H,) 1 - error_rate
        balanced_error_rate: (H,) mean per-class error rate
        confusion: (H, K, K) counts, rows = true class, columns = predicted class
        n_samples: Total number of samples
        n_folds: Number of folds
        classes: Class labels in encoding order (optional)
    """

    predictions: np.ndarray
    misclassified: np.ndarray
    error_rate: np.ndarray
    accuracy: np.ndarray
    balanced_error_rate: np.ndarray
    confusion: np.ndarray
    n_samples: int
    n_folds: int
    classes: Tuple[str, ...] = ()

    def __post_init__(self):
        for name in (
            "predictions", "misclassified", "error_rate", "accuracy",
            "balanced_error_rate", "confusion",
        ):
            getattr(self, name).setflags(write=False)

    @property
    def n_components(self) -> int:
        return self.error_rate.shape[0]

    def best_n_components(self) -> int:
        """Component count with the lowest error rate (smallest count on ties)."""
        return int(np.argmin(self.error_rate)) + 1

    def summary(self) -> pd.DataFrame:
        return pd.DataFrame(
            {
                "misclassified": self.misclassified,
                "error_rate": self.error_rate,
                "balanced_error_rate": self.balanced_error_rate,
                "accuracy": self.accuracy,
            },
            index=pd.RangeIndex(1, self.n_components + 1, name="n_components"),
        )

    def confusion_frame(self, n_components: Optional[int] = None) -> pd.DataFrame:
        h = self.n_components if n_components is None else n_components
        labels = list(self.classes) or [str(i) for i in range(self.confusion.shape[1])]
        return pd.DataFrame(
            self.confusion[h - 1],
            index=pd.Index(labels, name="true"),
            columns=pd.Index(labels, name="predicted"),
        )


def check_resampling_data(codes: np.ndarray, n_classes: int) -> None:
    """
    Raise ``InsufficientData`` for fewer than 3 samples or any class with < 2 samples.
    """
    n = codes.shape[0]
    if n < 3:
        raise InsufficientData(f"Cross-validation needs at least 3 samples, got {n}")
    counts = np.bincount(codes, minlength=n_classes)
    small = [int(k) for k in np.flatnonzero(counts < 2)]
    if small:
        raise InsufficientData(
            f"Classes {small} have fewer than 2 samples (counts {counts.tolist()}); "
            f"a held-out sample would leave its class unrepresented"
        )


def check_fold_classes(
    codes: np.ndarray,
    folds: Sequence[Tuple[np.ndarray, np.ndarray]],
    n_classes: int,
) -> None:
    """
    Raise ``InsufficientData`` if any fold's training rows miss a class.

    Contiguous k-fold on class-sorted samples can hold out a whole class.
    """
    for i, (train_idx, _) in enumerate(folds):
        present = np.bincount(codes[train_idx], minlength=n_classes) > 0
        if not present.all():
            missing = [int(c) for c in np.flatnonzero(~present)]
            raise InsufficientData(
                f"Fold {i} trains without classes {missing}; "
                f"use more folds or interleaved folds"
            )


def _run_fold(
    X: np.ndarray,
    Y: np.ndarray,
    train_idx: np.ndarray,
    test_idx: np.ndarray,
    n_components: int,
    fit_kwargs: dict,
) -> np.ndarray:
    model = fit_pls(X[train_idx], Y[train_idx], n_components, **fit_kwargs)
    preds = np.empty((test_idx.size, n_components), dtype=np.intp)
    for h in range(1, n_components + 1):
        preds[:, h - 1] = predict(model, X[test_idx], n_components=h)
    return preds


def cross_validate(
    X: np.ndarray,
    Y: np.ndarray,
    n_components: int,
    scheme: Optional[CVScheme] = None,
    scale: bool = False,
    tol: float = 1e-6,
    max_iter: int = 100,
    n_jobs: int = 1,
    progress: bool = False,
    classes: Sequence[str] = (),
) -> CVResult:
    """
    Cross-validated error rates of PLS-DA for 1..n_components components.

    Args:
        X: Features, (n_samples, n_features)
        Y: Class indicator matrix, (n_samples, n_classes)
        n_components: Largest component count H to evaluate
        scheme: Resampling scheme (leave-one-out if None)
        scale, tol, max_iter: Passed to ``fit_pls`` for every fold
        n_jobs: Worker threads for fold refits (1 = sequential)
        progress: Show a tqdm progress bar over folds
        classes: Class labels stored on the result

    Returns:
        CVResult

    Raises:
        InsufficientData: fewer than 3 samples, a class with < 2 samples, or a
            fold whose training rows miss a class
        InvalidConfiguration: bad scheme, n_jobs, or component count for a fold
    """
    if scheme is None:
        scheme = CVScheme.loo()
    if n_jobs < 1:
        raise InvalidConfiguration(f"n_jobs must be >= 1, got {n_jobs}")

    X = np.asarray(X, dtype=np.float64)
    Y = np.asarray(Y, dtype=np.float64)
    if X.ndim != 2 or Y.ndim != 2 or X.shape[0] != Y.shape[0]:
        raise InvalidInput(f"Incompatible shapes: X {X.shape}, Y {Y.shape}")
    if not np.all((Y == 0) | (Y == 1)) or not np.all(Y.sum(axis=1) == 1):
        raise InvalidInput("Y must be a class indicator matrix with exactly one 1 per row")

    n, k = Y.shape
    codes = np.argmax(Y, axis=1)
    check_resampling_data(codes, k)

    folds = scheme.split(n)
    check_fold_classes(codes, folds, k)
    fit_kwargs = {"scale": scale, "tol": tol, "max_iter": max_iter}
    logger.info(
        f"Cross-validating ({scheme.kind}, {len(folds)} folds) "
        f"with up to {n_components} components, n_jobs={n_jobs}"
    )

    if n_jobs == 1:
        fold_preds = [
            _run_fold(X, Y, tr, te, n_components, fit_kwargs)
            for tr, te in tqdm(folds, desc="CV folds", disable=not progress)
        ]
    else:
        with ThreadPoolExecutor(max_workers=n_jobs) as executor:
            futures = [
                executor.submit(_run_fold, X, Y, tr, te, n_components, fit_kwargs)
                for tr, te in folds
            ]
            # Collected by fold index, not completion order
            fold_preds = [
                f.result()
                for f in tqdm(futures, desc="CV folds", disable=not progress)
            ]

    predictions = np.full((n, n_components), -1, dtype=np.intp)
    for (_, test_idx), preds in zip(folds, fold_preds):
        predictions[test_idx] = preds

    if (predictions < 0).any():
        raise InvalidConfiguration("Resampling scheme left some samples without a prediction")

    confusion = np.zeros((n_components, k, k), dtype=np.int64)
    for h in range(n_components):
        np.add.at(confusion[h], (codes, predictions[:, h]), 1)

    correct = (predictions == codes[:, np.newaxis]).sum(axis=0)
    misclassified = n - correct
    error_rate = misclassified / n

    class_totals = confusion[0].sum(axis=1)
    per_class_error = 1.0 - np.diagonal(confusion, axis1=1, axis2=2) / class_totals
    balanced_error_rate = per_class_error.mean(axis=1)

    result = CVResult(
        predictions=predictions,
        misclassified=misclassified.astype(np.int64),
        error_rate=error_rate,
        accuracy=1.0 - error_rate,
        balanced_error_rate=balanced_error_rate,
        confusion=confusion,
        n_samples=n,
        n_folds=len(folds),
        classes=tuple(str(c) for c in classes),
    )

    for h in range(n_components):
        logger.debug(
            f"  {h + 1} component(s): error={error_rate[h]:.3f}, BER={balanced_error_rate[h]:.3f}"
        )
    logger.info(
        f"CV accuracy at {n_components} component(s): {result.accuracy[-1]:.1%} "
        f"({int(misclassified[-1])}/{n} misclassified)"
    )
    return result
