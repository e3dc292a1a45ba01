"""
Models Package
==============

Class encoding, the NIPALS PLS-DA engine, and VIP feature importance.
"""

from .encoding import ClassEncoding, encode_labels
from .nipals import (
    PLSModel,
    fit_pls,
    max_components,
    project,
    predict,
    predict_response,
    reconstruction_residual,
)
from .vip import VIPTable, compute_vip, vip_scores

__all__ = [
    # Encoding
    "ClassEncoding",
    "encode_labels",
    # NIPALS
    "PLSModel",
    "fit_pls",
    "max_components",
    "project",
    "predict",
    "predict_response",
    "reconstruction_residual",
    # VIP
    "VIPTable",
    "compute_vip",
    "vip_scores",
]
