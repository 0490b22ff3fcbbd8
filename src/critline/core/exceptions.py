"""Errors raised while building or querying a critical-line solver."""

import numpy as np

__all__ = [
    "InfeasibleBoundsError",
    "SingularCovarianceError",
    "NumericalPurgeError",
    "IterationLimitError",
    "EmptyFrontierError",
]


class InfeasibleBoundsError(ValueError):
    """Weight bounds cannot produce a fully invested portfolio.

    Raised when the lower bounds already sum to more than one, or when the
    upper bounds of the whole universe cannot reach one.
    """


class SingularCovarianceError(np.linalg.LinAlgError):
    """A reduced covariance block over the free assets is not invertible."""


class NumericalPurgeError(ArithmeticError):
    """A turning point violates its constraints and the purge policy is "raise"."""


class IterationLimitError(RuntimeError):
    """The turning point iteration exceeded ``Settings.max_iterations``."""


class EmptyFrontierError(ValueError):
    """A query was made against an empty turning point sequence."""
