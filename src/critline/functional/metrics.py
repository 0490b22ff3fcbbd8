"""Portfolio statistics over weight vectors, mean returns and covariances.

These are the quantities the critical-line queries report for a weight vector
$w$ given a mean vector $\\mu$ and a covariance matrix $\\Sigma$:

    - **Expected return**: $w^T \\mu$
    - **Variance**: $w^T \\Sigma w$
    - **Risk**: $\\sqrt{w^T \\Sigma w}$
    - **Sharpe ratio**: $w^T \\mu / \\sqrt{w^T \\Sigma w}$ (no risk-free rate)

All functions are JAX-jitted and stateless. Batched variants are built with
``jax.vmap`` so a whole frontier segment is evaluated in one call. The module
switches JAX to 64-bit mode on import: turning points are checked against
constraints at a 1e-9 tolerance, which single precision cannot meet.

Examples:
    >>> import jax.numpy as jnp
    >>> from critline.functional.metrics import portfolio_risk
    >>> w = jnp.array([0.5, 0.5])
    >>> cov = jnp.array([[0.04, 0.0], [0.0, 0.09]])
    >>> float(portfolio_risk(w, cov))  # doctest: +ELLIPSIS
    0.180277...
"""

import jax

jax.config.update("jax_enable_x64", True)

import jax.numpy as jnp  # noqa: E402

__all__ = [
    "portfolio_return",
    "portfolio_variance",
    "portfolio_risk",
    "portfolio_sharpe_ratio",
    "segment_weights",
    "segment_sharpe_ratio",
    "interpolate_segment",
    "frontier_statistics",
    "batch_variance",
]


@jax.jit
def portfolio_return(weights: jax.Array, mean: jax.Array) -> jax.Array:
    """Expected return ``w' mu``."""
    return jnp.dot(weights, mean)


@jax.jit
def portfolio_variance(weights: jax.Array, covar: jax.Array) -> jax.Array:
    """Variance ``w' Sigma w``."""
    return jnp.dot(weights, jnp.dot(covar, weights))


@jax.jit
def portfolio_risk(weights: jax.Array, covar: jax.Array) -> jax.Array:
    """Standard deviation ``sqrt(w' Sigma w)``.

    Variances that round to a tiny negative number are clipped to zero.
    """
    return jnp.sqrt(jnp.maximum(portfolio_variance(weights, covar), 0.0))


@jax.jit
def portfolio_sharpe_ratio(
    weights: jax.Array, mean: jax.Array, covar: jax.Array
) -> jax.Array:
    """Ratio of expected return to risk, with a zero risk-free rate."""
    return portfolio_return(weights, mean) / portfolio_risk(weights, covar)


@jax.jit
def segment_weights(a: float, w0: jax.Array, w1: jax.Array) -> jax.Array:
    """Convex combination ``a * w0 + (1 - a) * w1``."""
    return a * w0 + (1.0 - a) * w1


@jax.jit
def segment_sharpe_ratio(
    a: float, w0: jax.Array, w1: jax.Array, mean: jax.Array, covar: jax.Array
) -> jax.Array:
    """Sharpe ratio of ``segment_weights(a, w0, w1)``.

    This is the objective maximized between two adjacent turning points.
    """
    return portfolio_sharpe_ratio(segment_weights(a, w0, w1), mean, covar)


@jax.jit
def interpolate_segment(
    fractions: jax.Array, w0: jax.Array, w1: jax.Array
) -> jax.Array:
    """Rows ``j * w1 + (1 - j) * w0`` for every fraction ``j``.

    Args:
        fractions: Interpolation fractions. Shape: (k,).
        w0: Weights at the start of the segment. Shape: (n,).
        w1: Weights at the end of the segment. Shape: (n,).

    Returns:
        Interpolated weights. Shape: (k, n).
    """
    j = fractions[:, None]
    return j * w1[None, :] + (1.0 - j) * w0[None, :]


def _return_and_risk(weights, mean, covar):
    return portfolio_return(weights, mean), portfolio_risk(weights, covar)


# (k, n) weights -> ((k,) returns, (k,) risks)
frontier_statistics = jax.jit(jax.vmap(_return_and_risk, in_axes=(0, None, None)))

# (k, n) weights -> (k,) variances
batch_variance = jax.jit(jax.vmap(portfolio_variance, in_axes=(0, None)))
