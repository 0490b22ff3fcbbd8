"""Reusable type definitions for the critline core.

Type Aliases:
    AssetId: Any hashable object used as an opaque asset key.
    FiniteFloat: A float that must be finite (no NaN or infinity).

Classes:
    AssetUniverse: An explicit, ordered asset table that assigns every asset
        a stable integer index. All matrix and vector positions used by the
        solver go through this table rather than through the iteration order
        of whatever mapping the caller happened to pass in.
"""

import math
import typing as tp
from typing import Annotated, Hashable

import annotated_types as at
import numpy as np

__all__ = [
    "AssetId",
    "FiniteFloat",
    "AssetUniverse",
    "CovarianceLike",
]

# Assets are compared only by equality and hashing
AssetId = Hashable

# A float validated to be finite
FiniteFloat = Annotated[float, at.Predicate(math.isfinite)]

# Nested ``{a: {b: cov}}`` or flat ``{(a, b): cov}`` covariance mappings
CovarianceLike = tp.Union[
    tp.Mapping[AssetId, tp.Mapping[AssetId, float]],
    tp.Mapping[tp.Tuple[AssetId, AssetId], float],
]


class AssetUniverse:
    """Fixed, ordered set of assets with a stable index per asset.

    Args:
        assets: Iterable of distinct hashable asset identifiers. The order of
            iteration becomes the index order for every vector and matrix.

    Raises:
        ValueError: If the universe is empty or contains duplicates.

    Examples:
        >>> universe = AssetUniverse(["SPY", "TLT", "GLD"])
        >>> universe.index("TLT")
        1
        >>> universe.vector({"GLD": 0.3, "SPY": 0.1, "TLT": 0.2})
        array([0.1, 0.2, 0.3])
    """

    def __init__(self, assets: tp.Iterable[AssetId]):
        self._assets: tp.Tuple[AssetId, ...] = tuple(assets)
        if not self._assets:
            raise ValueError("Asset universe must contain at least one asset.")
        self._index: tp.Dict[AssetId, int] = {
            asset: i for i, asset in enumerate(self._assets)
        }
        if len(self._index) != len(self._assets):
            raise ValueError("Asset universe contains duplicate assets.")

    def __len__(self) -> int:
        return len(self._assets)

    def __getitem__(self, i):
        return self._assets[i]

    def __iter__(self) -> tp.Iterator[AssetId]:
        return iter(self._assets)

    def __contains__(self, asset: object) -> bool:
        try:
            return asset in self._index
        except TypeError:  # unhashable
            return False

    def __repr__(self) -> str:
        return f"AssetUniverse({list(self._assets)!r})"

    @property
    def assets(self) -> tp.Tuple[AssetId, ...]:
        return self._assets

    def index(self, asset: AssetId) -> int:
        """Position of ``asset`` in the universe.

        Raises:
            KeyError: If the asset is not part of the universe.
        """
        try:
            return self._index[asset]
        except KeyError:
            raise KeyError(f"Asset {asset!r} is not part of the universe.") from None

    def check_keys(self, keys: tp.Iterable[AssetId], what: str) -> None:
        """Ensure ``keys`` is exactly the universe's asset set.

        Raises:
            ValueError: If assets are missing or unknown assets are present.
        """
        keys = set(keys)
        missing = [a for a in self._assets if a not in keys]
        extra = [k for k in keys if k not in self._index]
        if missing or extra:
            raise ValueError(
                f"{what} keys do not match the asset universe "
                f"(missing: {missing!r}, unexpected: {extra!r})."
            )

    def vector(self, values: tp.Mapping[AssetId, float]) -> np.ndarray:
        """Read a per-asset mapping into a float64 vector in universe order."""
        return np.array([float(values[a]) for a in self._assets], dtype=np.float64)

    def matrix(self, covar: CovarianceLike) -> np.ndarray:
        """Read a nested or tuple-keyed covariance mapping into a dense matrix.

        Raises:
            ValueError: If an asset pair is missing from the mapping.
        """
        n = len(self._assets)
        out = np.empty((n, n), dtype=np.float64)
        first = next(iter(covar.keys()), None)
        flat = isinstance(first, tuple) and first not in self._index

        for i, a in enumerate(self._assets):
            for j, b in enumerate(self._assets):
                try:
                    value = covar[(a, b)] if flat else covar[a][b]  # type: ignore[index]
                except KeyError:
                    raise ValueError(
                        f"Covariance is missing the pair ({a!r}, {b!r})."
                    ) from None
                out[i, j] = float(value)
        return out

    def to_dict(self, values: tp.Sequence[float]) -> tp.Dict[AssetId, float]:
        """Map a vector in universe order back to ``{asset: value}``."""
        if len(values) != len(self._assets):
            raise ValueError(
                f"Expected {len(self._assets)} values, got {len(values)}."
            )
        return {a: float(v) for a, v in zip(self._assets, values)}

    def subset(self, positions: tp.Iterable[int]) -> tp.Tuple[AssetId, ...]:
        """Assets at the given index positions, in that order."""
        return tuple(self._assets[i] for i in positions)
