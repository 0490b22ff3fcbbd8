"""Functional primitives for critline.

Stateless helpers used by the critical-line solver: the golden-section line
search and the JAX-jitted portfolio statistics. Nothing here holds state, so
the functions can be composed freely in analysis code.
"""

from critline.functional.golden_section import golden_section
from critline.functional.metrics import (
    batch_variance,
    frontier_statistics,
    portfolio_return,
    portfolio_risk,
    portfolio_sharpe_ratio,
    portfolio_variance,
)

__all__ = [
    "golden_section",
    "portfolio_return",
    "portfolio_variance",
    "portfolio_risk",
    "portfolio_sharpe_ratio",
    "frontier_statistics",
    "batch_variance",
]
