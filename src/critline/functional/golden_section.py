r"""Golden-section search for one-dimensional optimization.

The search narrows a bracket $[a, b]$ by the golden ratio
$r \approx 0.618033989$ at every step. The number of steps needed to shrink
the bracket below a tolerance $\epsilon$ is known in advance,

$$
N = \left\lceil -2.078087 \cdot \ln\frac{\epsilon}{|b - a|} \right\rceil,
$$

so the loop runs exactly $N$ times and performs no convergence check.

Functions
---------
golden_section
    Maximize (default) or minimize a scalar function over an interval.
"""

import math
import typing as tp

__all__ = ["golden_section", "GOLDEN_RATIO"]

GOLDEN_RATIO = 0.618033989
ITERATION_FACTOR = -2.078087  # 1 / ln(r)


def golden_section(
    obj: tp.Callable[[float], float],
    a: float,
    b: float,
    minimum: bool = False,
    tol: float = 1e-9,
) -> tp.Tuple[float, float]:
    """Find the extremum of ``obj`` over ``[a, b]``.

    Args:
        obj: Scalar objective. Assumed unimodal over the interval.
        a: Left end of the interval.
        b: Right end of the interval.
        minimum: Minimize when True, maximize otherwise.
        tol: Final bracket width.

    Returns:
        Tuple ``(x, obj(x))`` at the located extremum.

    Examples:
        >>> x, fx = golden_section(lambda x: 1.0 - (x - 0.3) ** 2, 0.0, 1.0)
        >>> round(x, 6), round(fx, 6)
        (0.3, 1.0)
    """
    if a == b:
        return a, obj(a)

    sign = 1.0 if minimum else -1.0
    num_iter = int(math.ceil(ITERATION_FACTOR * math.log(tol / abs(b - a))))
    r = GOLDEN_RATIO
    c = 1.0 - r

    x1 = r * a + c * b
    x2 = c * a + r * b
    f1 = sign * obj(x1)
    f2 = sign * obj(x2)

    for _ in range(num_iter):
        if f1 > f2:
            a = x1
            x1, f1 = x2, f2
            x2 = c * a + r * b
            f2 = sign * obj(x2)
        else:
            b = x2
            x2, f2 = x1, f1
            x1 = r * a + c * b
            f1 = sign * obj(x1)

    if f1 < f2:
        return x1, sign * f1
    return x2, sign * f2
