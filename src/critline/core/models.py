"""Data models for critical-line inputs and outputs.

The models enforce validation through Pydantic v2 so that malformed inputs are
rejected before the solver starts, and so that every record the solver hands
back to callers is immutable and self-describing.

Models:
    CLAInputs: Validated dense arrays (mean, covariance, bounds) in universe
        order, built from the caller's per-asset mappings.
    TurningPoint: One vertex of the efficient frontier in weight space.
    MarkowitzPortfolio: A weight vector with any subset of expected return,
        risk and Sharpe ratio, produced by the solver's queries.
"""

import typing as tp

import numpy as np
from pydantic import BaseModel, ConfigDict, Field, field_validator, model_validator

from .types import AssetId, AssetUniverse, CovarianceLike, FiniteFloat

__all__ = [
    "CLAInputs",
    "TurningPoint",
    "MarkowitzPortfolio",
]


class CLAInputs(BaseModel):
    """Dense, validated solver inputs.

    Use :meth:`from_mappings` to build an instance from per-asset mappings:

    >>> universe = AssetUniverse(["A", "B"])
    >>> inputs = CLAInputs.from_mappings(
    ...     universe,
    ...     mean={"A": 0.1, "B": 0.2},
    ...     covar={"A": {"A": 0.04, "B": 0.0}, "B": {"A": 0.0, "B": 0.09}},
    ...     lower={"A": 0.0, "B": 0.0},
    ...     upper={"A": 1.0, "B": 1.0},
    ... )
    >>> inputs.mean
    array([0.1, 0.2])
    """

    universe: AssetUniverse = Field(..., description="Ordered asset table.")
    mean: np.ndarray = Field(..., description="Expected returns. Shape: (n,).")
    covar: np.ndarray = Field(..., description="Covariance matrix. Shape: (n, n).")
    lower: np.ndarray = Field(..., description="Lower weight bounds. Shape: (n,).")
    upper: np.ndarray = Field(..., description="Upper weight bounds. Shape: (n,).")

    model_config = ConfigDict(arbitrary_types_allowed=True, frozen=True)

    @model_validator(mode="after")
    def check_shapes_and_values(self) -> "CLAInputs":
        """Validates shapes, finiteness and ``lower <= upper``.

        Raises:
            ValueError: On any shape mismatch, non-finite entry or inverted bound.
        """
        n = len(self.universe)
        for name in ("mean", "lower", "upper"):
            arr = getattr(self, name)
            if arr.shape != (n,):
                raise ValueError(f"{name} must have shape ({n},), got {arr.shape}.")
        if self.covar.shape != (n, n):
            raise ValueError(f"covar must have shape ({n}, {n}), got {self.covar.shape}.")

        for name in ("mean", "covar", "lower", "upper"):
            if not np.all(np.isfinite(getattr(self, name))):
                raise ValueError(f"{name} contains non-finite values.")

        inverted = np.flatnonzero(self.lower > self.upper)
        if inverted.size:
            raise ValueError(
                "Lower bound exceeds upper bound for assets "
                f"{list(self.universe.subset(inverted))!r}."
            )
        return self

    @classmethod
    def from_mappings(
        cls,
        universe: AssetUniverse,
        mean: tp.Mapping[AssetId, float],
        covar: CovarianceLike,
        lower: tp.Mapping[AssetId, float],
        upper: tp.Mapping[AssetId, float],
    ) -> "CLAInputs":
        """Read per-asset mappings into dense arrays in universe order.

        Raises:
            ValueError: If any mapping's key set differs from the universe, or
                a covariance pair is missing.
        """
        universe.check_keys(mean.keys(), "mean")
        universe.check_keys(lower.keys(), "lower")
        universe.check_keys(upper.keys(), "upper")

        return cls(
            universe=universe,
            mean=universe.vector(mean),
            covar=universe.matrix(covar),
            lower=universe.vector(lower),
            upper=universe.vector(upper),
        )


class TurningPoint(BaseModel):
    """A vertex of the piecewise-linear efficient frontier.

    Attributes:
        weights: Weight of every universe asset at this point.
        lambda_: Lagrange multiplier of the point. ``None`` for the first
            (highest return) point, ``0.0`` for the minimum-variance point.
        gamma: Intercept of the weight reconstruction. ``None`` for the first
            point.
        free: Assets strictly between their bounds, in free-set order.
    """

    weights: tp.Dict[AssetId, FiniteFloat]
    lambda_: tp.Optional[float] = Field(None, serialization_alias="lambda")
    gamma: tp.Optional[float] = None
    free: tp.Tuple[AssetId, ...] = ()

    model_config = ConfigDict(frozen=True)

    @property
    def bounded(self) -> tp.Tuple[AssetId, ...]:
        free = set(self.free)
        return tuple(a for a in self.weights if a not in free)


class MarkowitzPortfolio(BaseModel):
    """Portfolio produced by a solver query.

    Which of ``expected_return``, ``risk`` and ``sharpe`` are populated
    depends on the query: the frontier fills return and risk, the maximum
    Sharpe query fills the Sharpe ratio, the minimum variance query fills risk.

    Attributes:
        weights: Weight of every universe asset. Must sum to 1.0.
        expected_return: Expected portfolio return ``w' mu``.
        risk: Portfolio standard deviation ``sqrt(w' Sigma w)``.
        sharpe: Ratio of expected return to risk.
    """

    weights: tp.Dict[AssetId, FiniteFloat]
    expected_return: tp.Optional[float] = None
    risk: tp.Optional[float] = None
    sharpe: tp.Optional[float] = None

    model_config = ConfigDict(frozen=True)

    @field_validator("weights")
    @classmethod
    def check_weights_sum(cls, weights: tp.Dict[AssetId, float]) -> tp.Dict[AssetId, float]:
        """Validates that weights are non-empty and fully invested."""
        if not weights:
            raise ValueError("Portfolio must hold at least one asset.")
        total = sum(weights.values())
        if not np.isclose(total, 1.0, atol=1e-6):
            raise ValueError(f"Weights must sum to 1.0, but sum to {total}.")
        return weights

    def weight_vector(self, universe: AssetUniverse) -> np.ndarray:
        """Weights as a vector in ``universe`` order."""
        return universe.vector(self.weights)
