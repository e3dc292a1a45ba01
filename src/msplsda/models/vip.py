"""
Variable Importance in Projection (VIP)
=======================================

VIP_j = sqrt( p * sum_h(w_{h,j}^2 * SSY_h) / sum_h SSY_h )

with p the number of features, w_h the unit-norm NIPALS weight vector of
component h and SSY_h the fraction of the response sum of squares explained
by component h. Because every w_h has unit norm, sum_j VIP_j^2 = p, i.e. the
average squared VIP is 1; this is why VIP > 1 is the usual cut-off for an
"important" feature.

References:
- Wold, Johansson & Cocchi (1993). "PLS: partial least squares projections to latent structures"
- Chong & Jun (2005). "Performance of some variable selection methods when multicollinearity is present"
"""

from __future__ import annotations

import logging
from dataclasses import dataclass
from typing import Dict, Optional, Sequence, Tuple

import numpy as np
import pandas as pd

from ..errors import InternalInvariantViolation, InvalidInput, NumericError
from .nipals import PLSModel

logger = logging.getLogger(__name__)

_SUM_RTOL = 1e-6


@dataclass(frozen=True, eq=False)
class VIPTable:
    """
    VIP score per feature, sorted descending (ties in original feature order).

    Attributes:
        feature_ids: Feature identifiers, ranked
        scores: Matching non-negative VIP scores
        positions: Original row index of each ranked feature
    """

    feature_ids: Tuple[str, ...]
    scores: np.ndarray
    positions: np.ndarray

    def __post_init__(self):
        self.scores.setflags(write=False)
        self.positions.setflags(write=False)

    def __len__(self) -> int:
        return len(self.feature_ids)

    def __getitem__(self, feature_id: str) -> float:
        try:
            return float(self.scores[self.feature_ids.index(feature_id)])
        except ValueError:
            raise KeyError(feature_id)

    def top(self, n: int) -> "VIPTable":
        return VIPTable(self.feature_ids[:n], self.scores[:n].copy(), self.positions[:n].copy())

    def n_important(self, threshold: float = 1.0) -> int:
        """Number of features with VIP > threshold."""
        return int((self.scores > threshold).sum())

    def as_dict(self) -> Dict[str, float]:
        return {f: float(s) for f, s in zip(self.feature_ids, self.scores)}

    def in_feature_order(self) -> np.ndarray:
        """Scores re-indexed by original feature position."""
        out = np.empty_like(self.scores)
        out[self.positions] = self.scores
        return out

    def to_series(self) -> pd.Series:
        return pd.Series(
            np.array(self.scores),
            index=pd.Index(self.feature_ids, name="Feature"),
            name="VIP_Score",
        )


def vip_scores(weights: np.ndarray, ssy: np.ndarray) -> np.ndarray:
    """
    Raw VIP vector in feature order.

    Args:
        weights: (n_features, H) unit-norm weight columns
        ssy: (H,) explained response variance per component

    Raises:
        NumericError: the components explain no response variance at all
    """
    p = weights.shape[0]
    total = float(np.sum(ssy))
    if total <= 0:
        raise NumericError(
            f"VIP undefined: components explain no response variance (sum SSY = {total:g})"
        )
    return np.sqrt(p * ((weights ** 2) @ ssy) / total)


def compute_vip(model: PLSModel, n_features: int, feature_ids: Optional[Sequence[str]] = None) -> VIPTable:
    """
    VIP table of a fitted model.

    Args:
        model: Fitted PLS model
        n_features: Number of features the model was fitted on
        feature_ids: Feature identifiers (defaults to ``model.feature_ids``, then
            to "0", "1", ...)

    Raises:
        InvalidInput: n_features or feature_ids disagree with the model
        NumericError: no explained response variance
        InternalInvariantViolation: sum of squared VIP differs from n_features
    """
    if n_features != model.n_features:
        raise InvalidInput(
            f"n_features={n_features} does not match the model's {model.n_features} features"
        )

    if feature_ids is None:
        feature_ids = model.feature_ids or tuple(str(i) for i in range(n_features))
    feature_ids = tuple(str(f) for f in feature_ids)
    if len(feature_ids) != n_features:
        raise InvalidInput(f"Got {len(feature_ids)} feature ids for {n_features} features")

    vip = vip_scores(model.weights, model.y_explained_variance)

    total = float(np.sum(vip ** 2))
    if not np.isclose(total, n_features, rtol=_SUM_RTOL, atol=0.0):
        raise InternalInvariantViolation(
            f"Sum of squared VIP scores is {total:.8f}, expected {n_features}"
        )

    order = np.argsort(-vip, kind="stable")
    table = VIPTable(
        feature_ids=tuple(feature_ids[i] for i in order),
        scores=vip[order],
        positions=order,
    )
    logger.debug(f"VIP: {table.n_important()} of {n_features} features with VIP > 1")
    return table
