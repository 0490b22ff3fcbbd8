import numpy as np
import pytest
from critline.cla import CLA
from critline.core.config import PurgePolicy, Settings
from critline.core.exceptions import (
    InfeasibleBoundsError,
    IterationLimitError,
    NumericalPurgeError,
    SingularCovarianceError,
)


def diagonal_covar(variances):
    return {a: {b: (v if a == b else 0.0) for b in variances} for a, v in variances.items()}


@pytest.fixture
def two_assets():
    # Uncorrelated, long-only
    return dict(
        mean={"A": 0.1, "B": 0.2},
        covar=diagonal_covar({"A": 0.04, "B": 0.09}),
        lower={"A": 0.0, "B": 0.0},
        upper={"A": 1.0, "B": 1.0},
    )


@pytest.fixture
def bounding_assets():
    # A and C are 90% correlated, so the minimum variance portfolio would short A.
    # A starts as the only free asset and must later be pinned at zero.
    covar = {
        "A": {"A": 0.09, "C": 0.027, "D": 0.0},
        "C": {"A": 0.027, "C": 0.01, "D": 0.0},
        "D": {"A": 0.0, "C": 0.0, "D": 0.04},
    }
    return dict(
        mean={"A": 0.2, "C": 0.1, "D": 0.05},
        covar=covar,
        lower={"A": 0.0, "C": 0.0, "D": 0.0},
        upper={"A": 1.0, "C": 1.0, "D": 1.0},
    )


def random_problem(seed, n=8, upper=0.3, lower=0.0):
    rng = np.random.default_rng(seed)
    returns = rng.normal(0.0, 0.02, size=(120, n))
    covar = np.cov(returns, rowvar=False) + 1e-4 * np.eye(n)
    mean = rng.uniform(0.01, 0.15, size=n)
    assets = [f"asset_{i}" for i in range(n)]
    return dict(
        mean=dict(zip(assets, mean)),
        covar={a: dict(zip(assets, row)) for a, row in zip(assets, covar)},
        lower={a: lower for a in assets},
        upper={a: upper for a in assets},
    )


def test_two_asset_turning_points(two_assets):
    cla = CLA(**two_assets)

    first = cla.points[0]
    assert first.weights["B"] == pytest.approx(1.0)
    assert first.weights["A"] == pytest.approx(0.0)
    assert first.lambda_ is None
    assert first.gamma is None
    assert first.free == ("B",)

    last = cla.points[-1]
    assert last.lambda_ == 0.0
    # Uncorrelated assets: weights proportional to 1 / variance
    assert last.weights["A"] == pytest.approx(0.09 / 0.13, abs=1e-9)
    assert last.weights["B"] == pytest.approx(0.04 / 0.13, abs=1e-9)


def test_two_asset_lambdas(two_assets):
    cla = CLA(**two_assets)

    assert cla.lambdas[0] is None
    assert cla.lambdas[1] == pytest.approx(0.9)
    assert cla.lambdas[-1] == 0.0
    assert cla.free_sets == [("B",), ("B", "A"), ("B", "A")]


def test_bound_free_weight_transition(bounding_assets):
    cla = CLA(**bounding_assets)

    assert len(cla) == 5
    assert cla.lambdas[0] is None
    np.testing.assert_allclose(
        cla.lambdas[1:], [0.63, 0.285, 0.16386, 0.0], atol=1e-3
    )
    assert cla.free_sets == [
        ("A",),
        ("A", "C"),
        ("A", "C", "D"),
        ("C", "D"),
        ("C", "D"),
    ]

    pinned = cla.points[3]
    assert pinned.weights["A"] == 0.0
    assert pinned.bounded == ("A",)
    assert pinned.weights["C"] == pytest.approx(0.9638, abs=1e-3)

    final = cla.points[-1].weights
    assert final["A"] == 0.0
    assert final["C"] == pytest.approx(0.8, abs=1e-9)
    assert final["D"] == pytest.approx(0.2, abs=1e-9)


@pytest.mark.parametrize("seed", [0, 1, 2, 3])
def test_turning_point_invariants(seed):
    problem = random_problem(seed)
    cla = CLA(**problem)
    lower = np.array(list(problem["lower"].values()))
    upper = np.array(list(problem["upper"].values()))
    mean = np.array(list(problem["mean"].values()))

    weights = cla.weights
    assert weights.shape[1] == 8
    np.testing.assert_allclose(weights.sum(axis=1), 1.0, atol=1e-9)
    assert np.all(weights >= lower - 1e-9)
    assert np.all(weights <= upper + 1e-9)

    lambdas = cla.lambdas
    assert lambdas[0] is None
    assert lambdas[-1] == 0.0
    assert all(a > b for a, b in zip(lambdas[1:], lambdas[2:]))

    returns = weights @ mean
    assert np.all(np.diff(returns) <= 1e-12)


def test_first_turning_point_has_highest_return():
    problem = random_problem(7, n=5, upper=0.4)
    cla = CLA(**problem)
    first = cla.points[0]
    # Two best assets at their upper bound, the third takes the remainder
    ranked = sorted(problem["mean"], key=problem["mean"].get, reverse=True)
    assert first.weights[ranked[0]] == pytest.approx(0.4)
    assert first.weights[ranked[1]] == pytest.approx(0.4)
    assert first.weights[ranked[2]] == pytest.approx(0.2)
    assert all(first.weights[a] == 0.0 for a in ranked[3:])
    assert first.free == (ranked[2],)


def test_lower_bounds_respected():
    problem = random_problem(11, n=6, upper=0.45, lower=0.05)
    cla = CLA(**problem)
    assert np.all(cla.weights >= 0.05 - 1e-9)
    np.testing.assert_allclose(cla.weights.sum(axis=1), 1.0, atol=1e-9)


def test_single_asset_universe():
    cla = CLA(
        mean={"X": 0.07},
        covar={"X": {"X": 0.02}},
        lower={"X": 1.0},
        upper={"X": 1.0},
    )
    assert len(cla) == 1
    assert cla.points[0].weights == {"X": 1.0}
    assert cla.lambdas == [None]


def test_lower_bounds_above_one_are_infeasible():
    with pytest.raises(InfeasibleBoundsError):
        CLA(
            mean={"A": 0.1, "B": 0.2},
            covar=diagonal_covar({"A": 0.04, "B": 0.09}),
            lower={"A": 0.6, "B": 0.6},
            upper={"A": 1.0, "B": 1.0},
        )


def test_upper_bounds_below_one_are_infeasible():
    with pytest.raises(InfeasibleBoundsError):
        CLA(
            mean={"A": 0.1, "B": 0.2},
            covar=diagonal_covar({"A": 0.04, "B": 0.09}),
            lower={"A": 0.0, "B": 0.0},
            upper={"A": 0.4, "B": 0.4},
        )


def test_singular_covariance_raises():
    # Perfectly correlated assets with equal variance
    covar = {"A": {"A": 0.04, "B": 0.04}, "B": {"A": 0.04, "B": 0.04}}
    with pytest.raises(SingularCovarianceError):
        CLA(
            mean={"A": 0.1, "B": 0.2},
            covar=covar,
            lower={"A": 0.0, "B": 0.0},
            upper={"A": 1.0, "B": 1.0},
        )


def test_singular_covariance_is_a_linalg_error():
    assert issubclass(SingularCovarianceError, np.linalg.LinAlgError)


def test_mismatched_keys_rejected(two_assets):
    two_assets["upper"] = {"A": 1.0}
    with pytest.raises(ValueError, match="upper"):
        CLA(**two_assets)


def test_inverted_bounds_rejected(two_assets):
    two_assets["lower"] = {"A": 0.5, "B": 0.0}
    two_assets["upper"] = {"A": 0.2, "B": 1.0}
    with pytest.raises(ValueError, match="Lower bound exceeds upper bound"):
        CLA(**two_assets)


def test_nan_mean_rejected(two_assets):
    two_assets["mean"] = {"A": float("nan"), "B": 0.2}
    with pytest.raises(ValueError):
        CLA(**two_assets)


def test_tuple_keyed_covariance(two_assets):
    flat = {
        ("A", "A"): 0.04,
        ("A", "B"): 0.0,
        ("B", "A"): 0.0,
        ("B", "B"): 0.09,
    }
    nested = CLA(**two_assets)
    two_assets["covar"] = flat
    keyed = CLA(**two_assets)
    np.testing.assert_allclose(keyed.weights, nested.weights)


def test_explicit_asset_order(two_assets):
    cla = CLA(**two_assets, assets=["B", "A"])
    assert list(cla.universe) == ["B", "A"]
    assert cla.points[-1].weights["A"] == pytest.approx(0.09 / 0.13)


def test_equal_means_are_shifted():
    assets = ["A", "B", "C"]
    covar = np.array(
        [
            [0.04, 0.0, 0.002],
            [0.0, 0.09, 0.0],
            [0.002, 0.0, 0.01],
        ]
    )
    cla = CLA(
        mean={a: 0.1 for a in assets},
        covar={a: dict(zip(assets, row)) for a, row in zip(assets, covar)},
        lower={a: 0.0 for a in assets},
        upper={a: 1.0 for a in assets},
    )
    assert cla.mean[-1] == pytest.approx(0.1 + 1e-5)
    assert cla.lambdas[-1] == 0.0

    # Fully free minimum variance portfolio
    expected = np.linalg.solve(covar, np.ones(3))
    expected /= expected.sum()
    np.testing.assert_allclose(cla.weights[-1], expected, atol=1e-9)


def test_iteration_limit(two_assets):
    with pytest.raises(IterationLimitError):
        CLA(**two_assets, settings=Settings(max_iterations=1))


def test_purge_excess_drops_dominated_point(two_assets):
    cla = CLA(**two_assets)
    n_points = len(cla)
    # Insert a point whose return is below the final minimum variance point
    dominated = cla._points[-1]._replace(weights=np.array([1.0, 0.0]))
    cla._points.insert(1, dominated)

    cla._purge_excess()

    assert len(cla) == n_points
    assert not any(np.allclose(p.weights, [1.0, 0.0]) for p in cla._points)


def test_purge_num_err_drops_infeasible_point(two_assets):
    cla = CLA(**two_assets)
    n_points = len(cla)
    cla._points.append(cla._points[-1]._replace(weights=np.array([0.9, 0.3])))

    cla._purge_num_err(1e-9)

    assert len(cla) == n_points


def test_purge_policy_raise(two_assets):
    cla = CLA(**two_assets, settings=Settings(purge_policy=PurgePolicy.RAISE))
    cla._points.append(cla._points[-1]._replace(weights=np.array([-0.1, 1.1])))

    with pytest.raises(NumericalPurgeError):
        cla._purge_num_err(1e-9)


def test_dominant_asset_ends_at_zero_lambda():
    # A has the highest mean and is also the minimum variance corner
    cla = CLA(
        mean={"A": 0.2, "B": 0.1},
        covar={"A": {"A": 0.01, "B": 0.018}, "B": {"A": 0.018, "B": 0.04}},
        lower={"A": 0.0, "B": 0.0},
        upper={"A": 1.0, "B": 1.0},
    )
    assert cla.lambdas == [None, 0.0]
    np.testing.assert_allclose(cla.weights, [[1.0, 0.0], [1.0, 0.0]], atol=1e-12)
    assert cla.minimum_variance().weights["A"] == pytest.approx(1.0)


def test_nearly_singular_covariance_raises():
    covar = {"A": {"A": 0.04, "B": 0.04}, "B": {"A": 0.04, "B": 0.04 + 1e-17}}
    with pytest.raises(SingularCovarianceError):
        CLA(
            mean={"A": 0.1, "B": 0.2},
            covar=covar,
            lower={"A": 0.0, "B": 0.0},
            upper={"A": 1.0, "B": 1.0},
        )


def test_compute_bi_picks_upper_for_positive_c():
    assert CLA._compute_bi(0.5, (0.1, 0.9)) == 0.9
    assert CLA._compute_bi(-0.5, (0.1, 0.9)) == 0.1
