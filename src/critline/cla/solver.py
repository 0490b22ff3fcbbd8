r"""Critical-Line Algorithm (CLA) for box-constrained mean-variance portfolios.

The solver computes every turning point of the efficient frontier for the
problem

$$
\begin{aligned}
\min_{w}\quad & \tfrac{1}{2} w^T \Sigma w - \lambda\, \mu^T w \\
\text{subject to}\quad & \mathbf{1}^T w = 1, \\
& l_i \le w_i \le u_i ,
\end{aligned}
$$

for all $\lambda \ge 0$. Between two turning points the set of assets pinned
to a bound does not change and the optimal weights move linearly, so the
whole frontier is described by the finite sequence of turning points.

The search starts at the highest-return portfolio and repeatedly either frees
a bounded asset or pins a free asset to one of its bounds, whichever happens
at the larger $\lambda$. It stops at $\lambda = 0$, the global minimum
variance portfolio.

Typical usage example:

    from critline.cla import CLA

    cla = CLA(
        mean={"A": 0.1, "B": 0.2},
        covar={"A": {"A": 0.04, "B": 0.0}, "B": {"A": 0.0, "B": 0.09}},
        lower={"A": 0.0, "B": 0.0},
        upper={"A": 1.0, "B": 1.0},
    )
    best = cla.maximum_sharpe_ratio()
    safest = cla.minimum_variance()
    frontier = list(cla.efficient_frontier(100))
"""

import typing as tp
from functools import partial

import numpy as np
import pandas as pd

from critline.core.config import PurgePolicy, Settings, settings as default_settings
from critline.core.exceptions import (
    EmptyFrontierError,
    InfeasibleBoundsError,
    IterationLimitError,
    NumericalPurgeError,
    SingularCovarianceError,
)
from critline.core.models import CLAInputs, MarkowitzPortfolio, TurningPoint
from critline.core.types import AssetId, AssetUniverse, CovarianceLike
from critline.functional.golden_section import golden_section
from critline.functional.metrics import (
    batch_variance,
    frontier_statistics,
    interpolate_segment,
    portfolio_return,
    portfolio_risk,
    portfolio_sharpe_ratio,
    segment_sharpe_ratio,
)
from critline.logger.logger import get_logger

__all__ = ["CLA"]

logger = get_logger(__name__)

# Free covariance blocks above this condition number are treated as singular
MAX_CONDITION = 1.0 / np.finfo(np.float64).eps

# Boundary for computing lambda: a (lower, upper) pair or the current weight
Boundary = tp.Union[float, tp.Tuple[float, float]]


class _Point(tp.NamedTuple):
    """Turning point in index space, as stored during the solve."""

    weights: np.ndarray
    lambda_: tp.Optional[float]
    gamma: tp.Optional[float]
    free: tp.Tuple[int, ...]


class _Reduced(tp.NamedTuple):
    """Covariance, mean and bounded weights reduced to a free set."""

    covar_f_inv: np.ndarray
    covar_fb: tp.Optional[np.ndarray]
    mean_f: np.ndarray
    w_b: tp.Optional[np.ndarray]


class CLA:
    """Critical-line solver over a fixed asset universe.

    The full turning point sequence is computed in the constructor; the
    instance is read-only afterwards and all queries work off that sequence.

    Args:
        mean: Expected return per asset.
        covar: Covariance per asset pair, either nested (``covar[a][b]``) or
            keyed by pairs (``covar[(a, b)]``). Read once, never modified.
        lower: Lower weight bound per asset.
        upper: Upper weight bound per asset.
        assets: Optional explicit asset order. Defaults to the key order of
            ``mean``. Only affects the column order of outputs.
        settings: Solver settings. Defaults to the module-level settings.

    Raises:
        ValueError: If the mappings do not share the same key set, contain
            non-finite values, or have a lower bound above its upper bound.
        InfeasibleBoundsError: If the bounds admit no fully invested portfolio.
        SingularCovarianceError: If a reduced covariance block is singular.
        IterationLimitError: If more than ``settings.max_iterations`` turning
            points are produced.
        NumericalPurgeError: If a turning point fails the post-solve checks and
            ``settings.purge_policy`` is ``"raise"``.

    Attributes:
        universe: Ordered asset table used for every vector and matrix.
        settings: Settings the solve ran with.
    """

    def __init__(
        self,
        mean: tp.Mapping[AssetId, float],
        covar: CovarianceLike,
        lower: tp.Mapping[AssetId, float],
        upper: tp.Mapping[AssetId, float],
        assets: tp.Optional[tp.Iterable[AssetId]] = None,
        settings: tp.Optional[Settings] = None,
    ):
        self.settings = settings or default_settings
        self.universe = AssetUniverse(assets if assets is not None else mean.keys())
        inputs = CLAInputs.from_mappings(self.universe, mean, covar, lower, upper)

        self._mean = inputs.mean.copy()
        self._covar = inputs.covar
        self._lower = inputs.lower
        self._upper = inputs.upper
        self._points: tp.List[_Point] = []

        # Identical means make every lambda denominator zero
        n = len(self.universe)
        if n > 1 and np.all(self._mean == self._mean[0]):
            logger.warning(
                f"All {n} means are equal; shifting the last one by "
                f"{self.settings.degenerate_mean_shift}."
            )
            self._mean[-1] += self.settings.degenerate_mean_shift

        self._solve()

    # ------------------------------------------------------------------ #
    # Solve
    # ------------------------------------------------------------------ #

    def _solve(self) -> None:
        """Compute the turning points, free sets and weights."""
        n = len(self.universe)
        free, w = self._init_algo()
        self._points.append(_Point(w.copy(), None, None, tuple(free)))
        logger.debug(f"Initial turning point with free set {self._assets(free)}")

        for _ in range(self.settings.max_iterations):
            # 1) Bound one free weight
            l_in, i_in, bi_in = None, None, None
            if len(free) > 1:
                reduced = self._get_matrices(free)
                for j, i in enumerate(free):
                    l, bi = self._compute_lambda(
                        reduced, j, (self._lower[i], self._upper[i])
                    )
                    if l is not None and (l_in is None or l > l_in):
                        l_in, i_in, bi_in = l, i, bi

            # 2) Free one bounded weight
            l_out, i_out = None, None
            if len(free) < n:
                last_lambda = self._points[-1].lambda_
                for i in self._get_b(free):
                    reduced = self._get_matrices(free + [i])
                    l, _ = self._compute_lambda(
                        reduced, len(free), float(self._points[-1].weights[i])
                    )
                    if l is None:
                        continue
                    if self._below(l, last_lambda) and (l_out is None or l > l_out):
                        l_out, i_out = l, i

            if (l_in is None or l_in < 0) and (l_out is None or l_out < 0):
                # A single-asset universe has nothing to free or bound
                if n == 1:
                    logger.debug("Single-asset universe; single turning point")
                    break

                # 3) Minimum variance solution
                lambda_ = 0.0
                reduced = self._get_matrices(free)
                reduced = reduced._replace(mean_f=np.zeros_like(reduced.mean_f))
            else:
                # 4) Decide lambda
                if l_in is not None and (l_out is None or l_in >= l_out):
                    lambda_ = l_in
                    free.remove(i_in)
                    w[i_in] = bi_in
                    logger.debug(
                        f"lambda={lambda_:.6g}: {self.universe[i_in]!r} moves to bound {bi_in:.6g}"
                    )
                else:
                    lambda_ = l_out
                    free.append(i_out)
                    logger.debug(
                        f"lambda={lambda_:.6g}: {self.universe[i_out]!r} becomes free"
                    )
                reduced = self._get_matrices(free, w)

            # 5) Compute solution vector
            w_f, gamma = self._compute_w(reduced, lambda_)
            w[free] = w_f
            self._points.append(_Point(w.copy(), lambda_, gamma, tuple(free)))
            if lambda_ == 0.0:
                break
        else:
            raise IterationLimitError(
                f"No minimum variance point after {self.settings.max_iterations} iterations."
            )

        # 6) Purge turning points
        self._purge_num_err(self.settings.tolerance)
        self._purge_excess()
        logger.info(
            f"CLA solved {n} assets with {len(self._points)} turning points"
        )

    def _init_algo(self) -> tp.Tuple[tp.List[int], np.ndarray]:
        """Find the highest-return turning point.

        All weights start at their lower bound. Following descending means,
        weights are raised to their upper bound until the total reaches one;
        the last raised weight is trimmed to make the total exactly one and
        becomes the only free asset.

        Raises:
            InfeasibleBoundsError: If lower bounds exceed one in total, or
                upper bounds cannot reach one.
        """
        tol = self.settings.tolerance
        w = self._lower.copy()
        if w.sum() > 1.0 + tol:
            raise InfeasibleBoundsError(
                f"Lower bounds sum to {w.sum():.6g}; a fully invested portfolio is impossible."
            )

        for i in np.argsort(-self._mean, kind="stable"):
            w[i] = self._upper[i]
            total = w.sum()
            if total >= 1.0 - tol:
                w[i] -= total - 1.0
                return [int(i)], w

        raise InfeasibleBoundsError(
            f"Upper bounds sum to {self._upper.sum():.6g}; a fully invested portfolio is impossible."
        )

    def _below(self, l: float, last_lambda: tp.Optional[float]) -> bool:
        """Whether ``l`` is strictly below the previous turning point's lambda.

        The margin is relative to ``last_lambda`` so that an asset pinned at
        lambda* is not freed again at lambda* by rounding.
        """
        if last_lambda is None:
            return True
        margin = self.settings.tolerance * max(1.0, abs(last_lambda))
        return l < last_lambda - margin

    @staticmethod
    def _compute_bi(c: float, bi: tp.Tuple[float, float]) -> float:
        """Upper bound of ``bi`` when ``c > 0``, lower bound otherwise."""
        return bi[1] if c > 0 else bi[0]

    def _compute_w(
        self, reduced: _Reduced, lambda_: float
    ) -> tp.Tuple[np.ndarray, float]:
        """Free weights and gamma at ``lambda_`` for the reduced problem."""
        covar_f_inv, covar_fb, mean_f, w_b = reduced

        # 1) gamma
        ones_f = np.ones(mean_f.shape[0])
        g1 = ones_f @ covar_f_inv @ mean_f
        g2 = ones_f @ covar_f_inv @ ones_f
        if w_b is None:
            g = -lambda_ * g1 / g2 + 1.0 / g2
            w1 = np.zeros(mean_f.shape[0])
        else:
            ones_b = np.ones(w_b.shape[0])
            g3 = ones_b @ w_b
            w1 = covar_f_inv @ covar_fb @ w_b
            g4 = ones_f @ w1
            g = -lambda_ * g1 / g2 + (1.0 - g3 + g4) / g2

        # 2) weights
        w2 = covar_f_inv @ ones_f
        w3 = covar_f_inv @ mean_f
        return -w1 + g * w2 + lambda_ * w3, float(g)

    def _compute_lambda(
        self, reduced: _Reduced, i: int, bi: Boundary
    ) -> tp.Tuple[tp.Optional[float], tp.Optional[float]]:
        """Lambda at which the asset at position ``i`` of F reaches ``bi``.

        Args:
            reduced: Matrices reduced to the free set.
            i: Position of the asset within the free set.
            bi: Either the ``(lower, upper)`` pair of the asset, resolved by
                the sign of the denominator, or a single boundary value.

        Returns:
            ``(lambda, boundary)``, or ``(None, None)`` when the denominator
            is exactly zero and the asset cannot be a candidate.
        """
        covar_f_inv, covar_fb, mean_f, w_b = reduced

        # 1) C
        ones_f = np.ones(mean_f.shape[0])
        c1 = ones_f @ covar_f_inv @ ones_f
        c2 = covar_f_inv @ mean_f
        c3 = ones_f @ covar_f_inv @ mean_f
        c4 = covar_f_inv @ ones_f
        c = -c1 * c2[i] + c3 * c4[i]
        if c == 0:
            return None, None

        # 2) bi
        if isinstance(bi, tuple):
            bi = self._compute_bi(c, bi)
        bi = float(bi)

        # 3) Lambda
        if w_b is None:
            return float((c4[i] - c1 * bi) / c), bi

        ones_b = np.ones(w_b.shape[0])
        l1 = ones_b @ w_b
        l3 = covar_f_inv @ covar_fb @ w_b
        l2 = ones_f @ l3
        return float(((1.0 - l1 + l2) * c4[i] - c1 * (bi + l3[i])) / c), bi

    def _get_matrices(
        self, free: tp.List[int], weights: tp.Optional[np.ndarray] = None
    ) -> _Reduced:
        """Slice the problem to the free set.

        Args:
            free: Free asset indices, in free-set order.
            weights: Source of the bounded weights. Defaults to the weights
                of the latest stored turning point.

        Raises:
            SingularCovarianceError: If the free covariance block is singular
                or too ill-conditioned to invert in float64.
        """
        if weights is None:
            weights = self._points[-1].weights
        f = np.asarray(free, dtype=int)
        b = np.asarray(self._get_b(free), dtype=int)

        covar_f = self._covar[np.ix_(f, f)]
        with np.errstate(divide="ignore", invalid="ignore"):
            cond = np.linalg.cond(covar_f)
        if not cond <= MAX_CONDITION:
            raise SingularCovarianceError(
                f"Covariance of free assets {self._assets(free)} is singular "
                f"(condition number {cond:.3g})."
            )
        try:
            covar_f_inv = np.linalg.inv(covar_f)
        except np.linalg.LinAlgError as e:
            raise SingularCovarianceError(
                f"Covariance of free assets {self._assets(free)} is singular."
            ) from e

        if b.size == 0:
            return _Reduced(covar_f_inv, None, self._mean[f], None)
        return _Reduced(covar_f_inv, self._covar[np.ix_(f, b)], self._mean[f], weights[b])

    def _get_b(self, free: tp.Sequence[int]) -> tp.List[int]:
        """Bounded asset indices, in universe order."""
        in_f = set(free)
        return [i for i in range(len(self.universe)) if i not in in_f]

    def _purge(self, index: int, reason: str) -> None:
        if self.settings.purge_policy is PurgePolicy.RAISE:
            raise NumericalPurgeError(f"Turning point {index} {reason}.")
        logger.warning(f"Dropping turning point {index}: {reason}")
        del self._points[index]

    def _purge_num_err(self, tol: float) -> None:
        """Remove turning points violating the budget or bounds by more than ``tol``."""
        i = 0
        while i < len(self._points):
            w = self._points[i].weights
            if abs(w.sum() - 1.0) > tol:
                self._purge(i, f"weights sum to {w.sum():.12g}")
            elif np.any(w - self._lower < -tol) or np.any(w - self._upper > tol):
                self._purge(i, "violates a weight bound")
            else:
                i += 1

    def _purge_excess(self) -> None:
        """Remove turning points below a later point's return (convex hull violations)."""
        i, repeat = 0, False
        while True:
            if not repeat:
                i += 1
            if i >= len(self._points) - 1:
                break
            mu = self._mean @ self._points[i].weights
            repeat = False
            for j in range(i + 1, len(self._points)):
                mu_ = self._mean @ self._points[j].weights
                if mu < mu_:
                    self._purge(i, f"return {mu:.6g} is below later point {j} ({mu_:.6g})")
                    repeat = True
                    break

    def _assets(self, positions: tp.Iterable[int]) -> tp.List[AssetId]:
        return list(self.universe.subset(positions))

    # ------------------------------------------------------------------ #
    # Read-only views
    # ------------------------------------------------------------------ #

    def _require_points(self) -> None:
        if not self._points:
            raise EmptyFrontierError("The solver holds no turning points.")

    @property
    def n_assets(self) -> int:
        return len(self.universe)

    @property
    def mean(self) -> np.ndarray:
        """Means used by the solve (after any degenerate-mean shift)."""
        return self._mean.copy()

    @property
    def covar(self) -> np.ndarray:
        return self._covar.copy()

    @property
    def weights(self) -> np.ndarray:
        """Turning point weights. Shape: (n_turning_points, n_assets)."""
        self._require_points()
        return np.stack([p.weights for p in self._points])

    @property
    def lambdas(self) -> tp.List[tp.Optional[float]]:
        return [p.lambda_ for p in self._points]

    @property
    def gammas(self) -> tp.List[tp.Optional[float]]:
        return [p.gamma for p in self._points]

    @property
    def free_sets(self) -> tp.List[tp.Tuple[AssetId, ...]]:
        return [self.universe.subset(p.free) for p in self._points]

    @property
    def points(self) -> tp.List[TurningPoint]:
        """Turning points with weights, lambda, gamma and free set."""
        return [
            TurningPoint(
                weights=self.universe.to_dict(p.weights),
                lambda_=p.lambda_,
                gamma=p.gamma,
                free=self.universe.subset(p.free),
            )
            for p in self._points
        ]

    def __len__(self) -> int:
        return len(self._points)

    # ------------------------------------------------------------------ #
    # Queries
    # ------------------------------------------------------------------ #

    def turning_points(self) -> tp.List[MarkowitzPortfolio]:
        """Turning point weights as portfolios.

        Return and risk are left at zero; use :meth:`efficient_frontier` for
        portfolio statistics.
        """
        self._require_points()
        return [
            MarkowitzPortfolio(
                weights=self.universe.to_dict(p.weights),
                expected_return=0.0,
                risk=0.0,
            )
            for p in self._points
        ]

    def efficient_frontier(self, points: int) -> tp.Iterator[MarkowitzPortfolio]:
        """Sample the frontier between adjacent turning points.

        Each of the ``len(self) - 1`` segments gets ``points // len(self)``
        fractions evenly spaced in ``[0, 1)``; the last segment also gets
        ``1.0`` so the frontier ends on the final turning point. A solver with
        a single turning point yields that point once.

        Args:
            points: Approximate total number of samples.

        Returns:
            A one-shot iterator of portfolios with return and risk, in
            decreasing return order.

        Raises:
            ValueError: If ``points`` is not positive.
            EmptyFrontierError: If there are no turning points.
        """
        if points < 1:
            raise ValueError(f"points must be positive, got {points}.")
        self._require_points()
        return self._frontier(points)

    def _frontier(self, points: int) -> tp.Iterator[MarkowitzPortfolio]:
        weights = self.weights
        segments = len(weights) - 1

        if segments == 0:
            blocks = [weights]
        else:
            fractions = np.linspace(0.0, 1.0, points // len(weights), endpoint=False)
            last = np.append(fractions, 1.0)
            blocks = [
                interpolate_segment(
                    last if i == segments - 1 else fractions, weights[i], weights[i + 1]
                )
                for i in range(segments)
            ]

        for block in blocks:
            if len(block) == 0:
                continue
            returns, risks = frontier_statistics(block, self._mean, self._covar)
            for w, mu, sigma in zip(np.asarray(block), np.asarray(returns), np.asarray(risks)):
                yield MarkowitzPortfolio(
                    weights=self.universe.to_dict(w),
                    expected_return=float(mu),
                    risk=float(sigma),
                )

    def _segment_sharpe(self, a: float, w0: np.ndarray, w1: np.ndarray) -> float:
        return float(segment_sharpe_ratio(a, w0, w1, self._mean, self._covar))

    def maximum_sharpe_ratio(self) -> MarkowitzPortfolio:
        """Portfolio with the highest Sharpe ratio on the frontier.

        Between every pair of adjacent turning points the Sharpe ratio of
        ``a * w0 + (1 - a) * w1`` is maximized over ``a`` in ``[0, 1]`` by
        golden-section search; the best segment wins, the earliest on ties.

        Returns:
            Portfolio with weights and Sharpe ratio.
        """
        self._require_points()
        weights = self.weights

        if len(weights) == 1:
            sharpe = portfolio_sharpe_ratio(weights[0], self._mean, self._covar)
            return MarkowitzPortfolio(
                weights=self.universe.to_dict(weights[0]), sharpe=float(sharpe)
            )

        best_w, best_sr = None, None
        for i in range(len(weights) - 1):
            w0, w1 = weights[i], weights[i + 1]
            a, sr = golden_section(
                partial(self._segment_sharpe, w0=w0, w1=w1),
                0.0,
                1.0,
                tol=self.settings.golden_section_tolerance,
            )
            if best_sr is None or sr > best_sr:
                best_w, best_sr = a * w0 + (1.0 - a) * w1, sr

        return MarkowitzPortfolio(weights=self.universe.to_dict(best_w), sharpe=best_sr)

    def minimum_variance(self) -> MarkowitzPortfolio:
        """Turning point with the smallest variance, earliest on ties.

        Returns:
            Portfolio with weights and risk.
        """
        self._require_points()
        weights = self.weights
        variances = np.asarray(batch_variance(weights, self._covar))
        index = int(np.argmin(variances))
        return MarkowitzPortfolio(
            weights=self.universe.to_dict(weights[index]),
            risk=float(np.sqrt(max(variances[index], 0.0))),
        )

    # ------------------------------------------------------------------ #
    # Tabular output
    # ------------------------------------------------------------------ #

    def to_frame(self) -> pd.DataFrame:
        """Turning points as a DataFrame.

        Returns:
            One row per turning point: one weight column per asset followed by
            ``lambda``, ``gamma``, ``expected_return`` and ``risk``.
        """
        weights = self.weights
        df = pd.DataFrame(weights, columns=list(self.universe))
        df["lambda"] = [np.nan if l is None else l for l in self.lambdas]
        df["gamma"] = [np.nan if g is None else g for g in self.gammas]
        df["expected_return"] = [float(portfolio_return(w, self._mean)) for w in weights]
        df["risk"] = [float(portfolio_risk(w, self._covar)) for w in weights]
        df.index.name = "turning_point"
        return df

    def frontier_frame(self, points: int) -> pd.DataFrame:
        """Efficient frontier samples as a DataFrame.

        Returns:
            Columns ``expected_return``, ``risk`` and one weight column per asset.
        """
        rows = [
            {"expected_return": p.expected_return, "risk": p.risk, **p.weights}
            for p in self.efficient_frontier(points)
        ]
        return pd.DataFrame(rows, columns=["expected_return", "risk", *self.universe])
