import jax
import jax.numpy as jnp
import numpy as np
import pytest
from critline.functional.metrics import (
    batch_variance,
    frontier_statistics,
    interpolate_segment,
    portfolio_return,
    portfolio_risk,
    portfolio_sharpe_ratio,
    portfolio_variance,
    segment_sharpe_ratio,
    segment_weights,
)


@pytest.fixture
def mean():
    return jnp.array([0.1, 0.2])


@pytest.fixture
def covar():
    return jnp.array([[0.04, 0.0], [0.0, 0.09]])


@pytest.fixture
def weights():
    return jnp.array([0.5, 0.5])


def test_portfolio_return(weights, mean):
    result = portfolio_return(weights, mean)
    assert isinstance(result, jax.Array)
    assert result.shape == ()
    assert float(result) == pytest.approx(0.15)


def test_portfolio_variance(weights, covar):
    assert float(portfolio_variance(weights, covar)) == pytest.approx(0.0325)


def test_portfolio_risk(weights, covar):
    assert float(portfolio_risk(weights, covar)) == pytest.approx(np.sqrt(0.0325))


def test_portfolio_risk_clips_negative_variance():
    # Indefinite matrix, negative quadratic form
    covar = jnp.array([[0.0, -1.0], [-1.0, 0.0]])
    assert float(portfolio_risk(jnp.array([0.5, 0.5]), covar)) == 0.0


def test_portfolio_sharpe_ratio(weights, mean, covar):
    result = portfolio_sharpe_ratio(weights, mean, covar)
    assert float(result) == pytest.approx(0.15 / np.sqrt(0.0325))


def test_float64_enabled(weights, covar):
    assert portfolio_variance(weights, covar).dtype == jnp.float64


def test_segment_weights():
    w0 = jnp.array([1.0, 0.0])
    w1 = jnp.array([0.0, 1.0])
    np.testing.assert_allclose(segment_weights(1.0, w0, w1), w0)
    np.testing.assert_allclose(segment_weights(0.0, w0, w1), w1)
    np.testing.assert_allclose(segment_weights(0.25, w0, w1), [0.25, 0.75])


def test_segment_sharpe_ratio(mean, covar):
    w0 = jnp.array([1.0, 0.0])
    w1 = jnp.array([0.0, 1.0])
    result = segment_sharpe_ratio(0.5, w0, w1, mean, covar)
    assert float(result) == pytest.approx(0.15 / np.sqrt(0.0325))


def test_interpolate_segment():
    w0 = jnp.array([1.0, 0.0, 0.0])
    w1 = jnp.array([0.0, 0.5, 0.5])
    rows = interpolate_segment(jnp.array([0.0, 0.5, 1.0]), w0, w1)

    assert rows.shape == (3, 3)
    np.testing.assert_allclose(rows[0], w0)
    np.testing.assert_allclose(rows[1], [0.5, 0.25, 0.25])
    np.testing.assert_allclose(rows[2], w1)


def test_frontier_statistics(mean, covar):
    block = jnp.array([[1.0, 0.0], [0.5, 0.5], [0.0, 1.0]])
    returns, risks = frontier_statistics(block, mean, covar)

    assert returns.shape == (3,)
    assert risks.shape == (3,)
    np.testing.assert_allclose(returns, [0.1, 0.15, 0.2])
    np.testing.assert_allclose(risks, [0.2, np.sqrt(0.0325), 0.3])


def test_batch_variance(covar):
    block = jnp.array([[1.0, 0.0], [0.0, 1.0]])
    np.testing.assert_allclose(batch_variance(block, covar), [0.04, 0.09])
