"""
NIPALS PLS-DA Engine
====================

Extracts PLS components one at a time from a samples x features matrix X and
a class-indicator response Y (PLS2, regression-mode deflation).

For component h, on the deflated working copies (Xh, Yh):

    u <- first non-null column of Yh
    repeat:
        w = Xh^T u / ||Xh^T u||
        t = Xh w
        q = Yh^T t / (t^T t)
        u = Yh q / (q^T q)
    until ||t - t_prev|| / ||t|| < tol
    p = Xh^T t / (t^T t)
    Xh <- Xh - t p^T,  Yh <- Yh - t q^T

Because every new score is extracted from a matrix from which all previous
scores have been removed, the columns of T are mutually orthogonal and the
fractions ||t q^T||^2 / ||Y||^2 sum to at most 1. Both facts are checked.

Prediction projects new samples with the training centring, re-applies the
same deflation sequence (equivalent to X W (P^T W)^-1), rebuilds
Y_hat = T Q^T + mean(Y) and takes the argmax.

References:
- Wold, Sjöström & Eriksson (2001). "PLS-regression: a basic tool of chemometrics"
- Barker & Rayens (2003). "Partial least squares for discrimination"
"""

from __future__ import annotations

import logging
from dataclasses import dataclass, replace
from typing import Optional, Tuple

import numpy as np

from ..errors import (
    InternalInvariantViolation,
    InvalidConfiguration,
    InvalidInput,
    NumericalNonConvergence,
)

logger = logging.getLogger(__name__)

# Relative norm below which a vector counts as numerically zero
_RANK_EPS = 1e-10
# Slack on the cumulative explained-variance bound
_VARIANCE_TOL = 1e-8


@dataclass(frozen=True, eq=False)
class PLSModel:
    """
    Fitted PLS-DA model. Immutable once created.

    Attributes:
        weights: W, (n_features, H), unit-norm columns
        x_loadings: P, (n_features, H)
        y_loadings: Q, (n_classes, H)
        scores: T, (n_samples, H), mutually orthogonal columns
        y_explained_variance: (H,) fraction of centred Y sum of squares per component
        x_explained_variance: (H,) fraction of centred X sum of squares per component
        x_mean: (n_features,) training column means
        x_scale: (n_features,) training column scales (ones when scaling is off)
        y_mean: (n_classes,) training class proportions
        n_iter: NIPALS iterations used per component
        classes: Class labels matching the Y columns (optional)
        feature_ids: Feature identifiers matching W rows (optional)
        sample_ids: Training sample identifiers matching T rows (optional)
    """

    weights: np.ndarray
    x_loadings: np.ndarray
    y_loadings: np.ndarray
    scores: np.ndarray
    y_explained_variance: np.ndarray
    x_explained_variance: np.ndarray
    x_mean: np.ndarray
    x_scale: np.ndarray
    y_mean: np.ndarray
    n_iter: Tuple[int, ...]
    classes: Tuple[str, ...] = ()
    feature_ids: Tuple[str, ...] = ()
    sample_ids: Tuple[str, ...] = ()

    def __post_init__(self):
        for name in (
            "weights", "x_loadings", "y_loadings", "scores",
            "y_explained_variance", "x_explained_variance",
            "x_mean", "x_scale", "y_mean",
        ):
            getattr(self, name).setflags(write=False)

    @property
    def n_components(self) -> int:
        return self.weights.shape[1]

    @property
    def n_features(self) -> int:
        return self.weights.shape[0]

    @property
    def n_classes(self) -> int:
        return self.y_loadings.shape[0]

    @property
    def n_samples(self) -> int:
        return self.scores.shape[0]

    def tagged(self, **tags) -> "PLSModel":
        """Copy with identifier tags (classes, feature_ids, sample_ids) attached."""
        return replace(self, **{k: tuple(str(x) for x in v) for k, v in tags.items()})


def max_components(n_samples: int, n_features: int, n_classes: int) -> int:
    """Upper bound on the component count: min(n_samples - 1, n_features, n_classes)."""
    return min(n_samples - 1, n_features, n_classes)


def _check_inputs(X: np.ndarray, Y: np.ndarray, n_components: int) -> Tuple[np.ndarray, np.ndarray]:
    X = np.asarray(X, dtype=np.float64)
    Y = np.asarray(Y, dtype=np.float64)

    if X.ndim != 2 or Y.ndim != 2:
        raise InvalidInput(f"X and Y must be 2-D, got X {X.shape}, Y {Y.shape}")
    if X.shape[0] != Y.shape[0]:
        raise InvalidInput(f"Sample mismatch: X has {X.shape[0]} samples, Y has {Y.shape[0]}")
    if X.size == 0 or Y.size == 0:
        raise InvalidInput(f"Empty input: X {X.shape}, Y {Y.shape}")
    if not np.isfinite(X).all():
        raise InvalidInput("X contains NaN or infinite values; impute before fitting")
    if not np.isfinite(Y).all():
        raise InvalidInput("Y contains NaN or infinite values")

    n, p = X.shape
    k = Y.shape[1]
    bound = max_components(n, p, k)
    if not 1 <= n_components <= bound:
        raise InvalidConfiguration(
            f"n_components={n_components} outside [1, {bound}] = "
            f"[1, min(n_samples - 1 = {n - 1}, n_features = {p}, n_classes = {k})]"
        )
    return X, Y


def _first_nonnull_column(Y: np.ndarray, ref_norm: float) -> Optional[np.ndarray]:
    for col in Y.T:
        if np.linalg.norm(col) > _RANK_EPS * max(ref_norm, 1.0):
            return col.copy()
    return None


def _nipals_component(
    X: np.ndarray,
    Y: np.ndarray,
    component: int,
    x_norm: float,
    y_norm: float,
    tol: float,
    max_iter: int,
) -> Tuple[np.ndarray, np.ndarray, np.ndarray, int]:
    """
    Inner NIPALS loop for one component. Returns (w, t, q, n_iter).

    ``x_norm`` and ``y_norm`` are the Frobenius norms of the centred,
    undeflated matrices; rank exhaustion is judged relative to them.
    """
    u = _first_nonnull_column(Y, y_norm)
    if u is None:
        raise NumericalNonConvergence(
            f"Rank exhausted at component {component}: deflated response is zero"
        )

    t_prev = None
    for it in range(1, max_iter + 1):
        w = X.T @ u
        w_norm = np.linalg.norm(w)
        if w_norm < _RANK_EPS * x_norm * np.linalg.norm(u):
            raise NumericalNonConvergence(
                f"Rank exhausted at component {component}: ||X^T u|| = {w_norm:.3g}"
            )
        w /= w_norm

        t = X @ w
        t_norm = np.linalg.norm(t)
        if t_norm < _RANK_EPS * x_norm:
            raise NumericalNonConvergence(
                f"Rank exhausted at component {component}: zero score vector"
            )
        tt = t_norm ** 2

        q = Y.T @ t / tt
        q_norm = np.linalg.norm(q)
        # ||t q^T||_F relative to ||Y||_F
        if t_norm * q_norm < _RANK_EPS * y_norm:
            raise NumericalNonConvergence(
                f"Rank exhausted at component {component}: scores uncorrelated with response"
            )
        u = Y @ q / q_norm ** 2

        if t_prev is not None and np.linalg.norm(t - t_prev) / t_norm < tol:
            return w, t, q, it
        t_prev = t

    raise NumericalNonConvergence(
        f"NIPALS did not converge for component {component} "
        f"within {max_iter} iterations (tol={tol:g})"
    )


def fit_pls(
    X: np.ndarray,
    Y: np.ndarray,
    n_components: int,
    scale: bool = False,
    tol: float = 1e-6,
    max_iter: int = 100,
) -> PLSModel:
    """
    Fit a PLS-DA model with NIPALS.

    Args:
        X: Features, shape (n_samples, n_features), no missing values
        Y: Class indicator matrix, shape (n_samples, n_classes)
        n_components: H, 1 <= H <= min(n_samples - 1, n_features, n_classes)
        scale: Divide centred X columns by their standard deviation
        tol: Relative change of the score vector that counts as converged
        max_iter: Iteration cap per component

    Returns:
        PLSModel

    Raises:
        InvalidInput: Shape mismatch or non-finite values
        InvalidConfiguration: n_components out of bounds
        NumericalNonConvergence: Iteration cap reached or rank exhausted
        InternalInvariantViolation: Explained-variance accounting broken
    """
    if tol <= 0 or max_iter < 2:
        raise InvalidConfiguration(f"Need tol > 0 and max_iter >= 2, got tol={tol}, max_iter={max_iter}")

    X, Y = _check_inputs(X, Y, n_components)
    n, p = X.shape
    k = Y.shape[1]

    x_mean = X.mean(axis=0)
    y_mean = Y.mean(axis=0)
    Xh = X - x_mean
    Yh = Y - y_mean

    if scale:
        x_scale = Xh.std(axis=0, ddof=1)
        constant = x_scale < _RANK_EPS
        if constant.any():
            logger.warning(f"{int(constant.sum())} zero-variance features left unscaled")
        x_scale[constant] = 1.0
        Xh /= x_scale
    else:
        x_scale = np.ones(p)

    x_ss = float(np.sum(Xh ** 2))
    y_ss = float(np.sum(Yh ** 2))
    if y_ss < _RANK_EPS:
        raise InvalidInput("Response has no variance: every sample is in the same class")
    if x_ss < _RANK_EPS:
        raise NumericalNonConvergence("Rank exhausted at component 1: X has no variance")
    x_norm = np.sqrt(x_ss)
    y_norm = np.sqrt(y_ss)

    W = np.zeros((p, n_components))
    P = np.zeros((p, n_components))
    Q = np.zeros((k, n_components))
    T = np.zeros((n, n_components))
    y_var = np.zeros(n_components)
    x_var = np.zeros(n_components)
    n_iter = []

    for h in range(n_components):
        w, t, q, it = _nipals_component(Xh, Yh, h + 1, x_norm, y_norm, tol, max_iter)
        tt = t @ t
        p_h = Xh.T @ t / tt

        W[:, h], T[:, h], P[:, h], Q[:, h] = w, t, p_h, q
        n_iter.append(it)

        # ||t q^T||_F^2 = (t^T t)(q^T q)
        y_var[h] = tt * (q @ q) / y_ss
        x_var[h] = tt * (p_h @ p_h) / x_ss

        Xh -= np.outer(t, p_h)
        Yh -= np.outer(t, q)

        logger.debug(
            f"Component {h + 1}: {it} iterations, "
            f"R2Y={y_var[h]:.4f}, R2X={x_var[h]:.4f}"
        )

    if (y_var < 0).any() or (x_var < 0).any():
        raise InternalInvariantViolation(f"Negative explained variance: Y {y_var}, X {x_var}")
    if y_var.sum() > 1.0 + _VARIANCE_TOL:
        raise InternalInvariantViolation(
            f"Cumulative Y explained variance {y_var.sum():.12f} exceeds 1 "
            f"over {n_components} components"
        )
    if x_var.sum() > 1.0 + _VARIANCE_TOL:
        raise InternalInvariantViolation(
            f"Cumulative X explained variance {x_var.sum():.12f} exceeds 1 "
            f"over {n_components} components"
        )

    return PLSModel(
        weights=W,
        x_loadings=P,
        y_loadings=Q,
        scores=T,
        y_explained_variance=y_var,
        x_explained_variance=x_var,
        x_mean=x_mean,
        x_scale=x_scale,
        y_mean=y_mean,
        n_iter=tuple(n_iter),
    )


def _resolve_components(model: PLSModel, n_components: Optional[int]) -> int:
    if n_components is None:
        return model.n_components
    if not 1 <= n_components <= model.n_components:
        raise InvalidConfiguration(
            f"n_components={n_components} outside [1, {model.n_components}] of the fitted model"
        )
    return n_components


def _as_samples(model: PLSModel, X_new: np.ndarray) -> np.ndarray:
    X_new = np.asarray(X_new, dtype=np.float64)
    if X_new.ndim == 1:
        X_new = X_new[np.newaxis, :]
    if X_new.ndim != 2 or X_new.shape[1] != model.n_features:
        raise InvalidInput(
            f"Expected {model.n_features} features per sample, got shape {X_new.shape}"
        )
    if not np.isfinite(X_new).all():
        raise InvalidInput("X_new contains NaN or infinite values")
    return X_new


def project(model: PLSModel, X_new: np.ndarray, n_components: Optional[int] = None) -> np.ndarray:
    """
    Scores of new samples on the first ``n_components`` components.

    Args:
        model: Fitted model
        X_new: (n_new, n_features) or a single (n_features,) sample

    Returns:
        (n_new, n_components) scores
    """
    h_max = _resolve_components(model, n_components)
    Xh = (_as_samples(model, X_new) - model.x_mean) / model.x_scale

    T = np.zeros((Xh.shape[0], h_max))
    for h in range(h_max):
        t = Xh @ model.weights[:, h]
        T[:, h] = t
        Xh = Xh - np.outer(t, model.x_loadings[:, h])
    return T


def predict_response(
    model: PLSModel,
    X_new: np.ndarray,
    n_components: Optional[int] = None,
) -> np.ndarray:
    """Predicted indicator response ``T Q^T + mean(Y)``, shape (n_new, n_classes)."""
    h = _resolve_components(model, n_components)
    T = project(model, X_new, h)
    return T @ model.y_loadings[:, :h].T + model.y_mean


def predict(
    model: PLSModel,
    X_new: np.ndarray,
    n_components: Optional[int] = None,
) -> np.ndarray:
    """
    Predicted class index per sample (largest predicted response).

    Ties go to the lowest class index.
    """
    return np.argmax(predict_response(model, X_new, n_components), axis=1)


def reconstruction_residual(
    model: PLSModel,
    X: np.ndarray,
    n_components: Optional[int] = None,
) -> float:
    """
    Frobenius norm of ``X_c - T P^T`` using the first ``n_components``.

    ``X`` must be the training matrix; ``X_c`` is its centred (and scaled) form.
    """
    h = _resolve_components(model, n_components)
    X = np.asarray(X, dtype=np.float64)
    if X.shape != (model.n_samples, model.n_features):
        raise InvalidInput(
            f"Expected the training matrix of shape {(model.n_samples, model.n_features)}, "
            f"got {X.shape}"
        )
    Xc = (X - model.x_mean) / model.x_scale
    return float(np.linalg.norm(Xc - model.scores[:, :h] @ model.x_loadings[:, :h].T))
