"""
Error Types
===========

Every failure raised by the numerical core derives from :class:`PLSDAError`,
so callers can catch the whole family at once. Each subclass also inherits
from the closest built-in exception (``ValueError``, ``RuntimeError``,
``ArithmeticError``) so generic handlers keep working.

Errors are raised at the point of violation and carry the offending
dimension, identifier or iteration count in their message.
"""


class PLSDAError(Exception):
    """Base class for all msplsda errors."""


class InvalidInput(PLSDAError, ValueError):
    """Malformed or empty matrix, unmatched sample ids, too few classes."""


class InvalidConfiguration(PLSDAError, ValueError):
    """A parameter is outside its admissible range (e.g. component count)."""


class NumericError(PLSDAError, ArithmeticError):
    """A numeric transform received an argument outside its domain."""


class NumericalNonConvergence(PLSDAError, RuntimeError):
    """NIPALS hit its iteration cap, or the deflated matrices ran out of rank."""


class InsufficientData(PLSDAError, ValueError):
    """Too few samples (or samples per class) for the resampling scheme."""


class InternalInvariantViolation(PLSDAError, RuntimeError):
    """An accounting identity of the fit is broken. Signals a bug, not bad input."""


__all__ = [
    "PLSDAError",
    "InvalidInput",
    "InvalidConfiguration",
    "NumericError",
    "NumericalNonConvergence",
    "InsufficientData",
    "InternalInvariantViolation",
]
