"""Statistical inference for PLS-DA classification results."""

from .permutation import permutation_test

__all__ = [
    "permutation_test",
]
