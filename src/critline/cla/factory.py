"""Convenience constructors for :class:`~critline.cla.solver.CLA`.

Callers rarely hold the four per-asset mappings the solver takes. These
helpers build them from per-asset functions, from plain arrays, or from
pandas objects (for example the output of ``DataFrame.mean()`` and
``DataFrame.cov()`` over a return history).
"""

import typing as tp

import numpy as np
import pandas as pd

from critline.cla.solver import CLA
from critline.core.config import Settings
from critline.core.types import AssetId

__all__ = ["markowitz_cla", "cla_from_arrays", "cla_from_pandas"]

BoundLike = tp.Union[float, tp.Sequence[float], np.ndarray, pd.Series]


def markowitz_cla(
    universe: tp.Iterable[AssetId],
    mean_fn: tp.Callable[[AssetId], float],
    covariance_fn: tp.Callable[[AssetId, AssetId], float],
    lower_bound_fn: tp.Callable[[AssetId], float],
    upper_bound_fn: tp.Callable[[AssetId], float],
    settings: tp.Optional[Settings] = None,
) -> CLA:
    """Build a solver by evaluating per-asset functions over ``universe``.

    Args:
        universe: Assets, in the order outputs should use.
        mean_fn: Expected return of an asset.
        covariance_fn: Covariance of an asset pair.
        lower_bound_fn: Lower weight bound of an asset.
        upper_bound_fn: Upper weight bound of an asset.
        settings: Optional solver settings.

    Returns:
        A fully solved :class:`CLA`.

    Examples:
        >>> vol = {"SPY": 0.2, "TLT": 0.1}
        >>> cla = markowitz_cla(
        ...     ["SPY", "TLT"],
        ...     mean_fn={"SPY": 0.08, "TLT": 0.03}.get,
        ...     covariance_fn=lambda a, b: vol[a] ** 2 if a == b else 0.0,
        ...     lower_bound_fn=lambda a: 0.0,
        ...     upper_bound_fn=lambda a: 1.0,
        ... )
    """
    assets = list(universe)
    return CLA(
        mean={a: mean_fn(a) for a in assets},
        covar={a: {b: covariance_fn(a, b) for b in assets} for a in assets},
        lower={a: lower_bound_fn(a) for a in assets},
        upper={a: upper_bound_fn(a) for a in assets},
        assets=assets,
        settings=settings,
    )


def _bound_vector(bound: BoundLike, assets: tp.Sequence[AssetId], name: str) -> np.ndarray:
    if isinstance(bound, pd.Series):
        return bound.reindex(list(assets)).to_numpy(dtype=float)
    arr = np.asarray(bound, dtype=float)
    if arr.ndim == 0:
        return np.full(len(assets), float(arr))
    if arr.shape != (len(assets),):
        raise ValueError(f"{name} must be a scalar or have shape ({len(assets)},).")
    return arr


def cla_from_arrays(
    mean: tp.Union[tp.Sequence[float], np.ndarray],
    covar: tp.Union[tp.Sequence[tp.Sequence[float]], np.ndarray],
    lower: BoundLike = 0.0,
    upper: BoundLike = 1.0,
    assets: tp.Optional[tp.Sequence[AssetId]] = None,
    settings: tp.Optional[Settings] = None,
) -> CLA:
    """Build a solver from dense arrays.

    Args:
        mean: Expected returns. Shape: (n,).
        covar: Covariance matrix. Shape: (n, n).
        lower: Lower bounds, scalar or shape (n,). Defaults to long-only.
        upper: Upper bounds, scalar or shape (n,). Defaults to 1.0.
        assets: Asset identifiers. Defaults to ``0 .. n - 1``.
        settings: Optional solver settings.

    Raises:
        ValueError: If the shapes do not agree.
    """
    mean = np.asarray(mean, dtype=float)
    covar = np.asarray(covar, dtype=float)
    if mean.ndim != 1:
        raise ValueError("mean must be one-dimensional.")
    n = mean.shape[0]
    if covar.shape != (n, n):
        raise ValueError(f"covar must have shape ({n}, {n}), got {covar.shape}.")

    assets = list(range(n)) if assets is None else list(assets)
    if len(assets) != n:
        raise ValueError(f"Expected {n} asset identifiers, got {len(assets)}.")
    lb = _bound_vector(lower, assets, "lower")
    ub = _bound_vector(upper, assets, "upper")

    return CLA(
        mean=dict(zip(assets, mean)),
        covar={a: dict(zip(assets, row)) for a, row in zip(assets, covar)},
        lower=dict(zip(assets, lb)),
        upper=dict(zip(assets, ub)),
        assets=assets,
        settings=settings,
    )


def cla_from_pandas(
    mean: pd.Series,
    covar: pd.DataFrame,
    lower: BoundLike = 0.0,
    upper: BoundLike = 1.0,
    settings: tp.Optional[Settings] = None,
) -> CLA:
    """Build a solver from a mean Series and a covariance DataFrame.

    The order of ``mean.index`` is the asset order; ``covar`` is reindexed to
    it, so its row and column order does not matter.

    Raises:
        ValueError: If ``covar`` is missing assets present in ``mean``.
    """
    assets = list(mean.index)
    missing = [a for a in assets if a not in covar.index or a not in covar.columns]
    if missing:
        raise ValueError(f"Covariance is missing assets {missing!r}.")
    covar = covar.loc[assets, assets]
    return cla_from_arrays(
        mean.to_numpy(dtype=float),
        covar.to_numpy(dtype=float),
        lower=lower,
        upper=upper,
        assets=assets,
        settings=settings,
    )
