"""critline: efficient frontiers by the Critical-Line Algorithm."""

from critline.cla import CLA, cla_from_arrays, cla_from_pandas, markowitz_cla
from critline.core import (
    AssetUniverse,
    EmptyFrontierError,
    InfeasibleBoundsError,
    IterationLimitError,
    MarkowitzPortfolio,
    NumericalPurgeError,
    Settings,
    SingularCovarianceError,
    TurningPoint,
)
from critline.functional import golden_section

__all__ = [
    "CLA",
    "markowitz_cla",
    "cla_from_arrays",
    "cla_from_pandas",
    "AssetUniverse",
    "MarkowitzPortfolio",
    "TurningPoint",
    "Settings",
    "golden_section",
    "InfeasibleBoundsError",
    "SingularCovarianceError",
    "NumericalPurgeError",
    "IterationLimitError",
    "EmptyFrontierError",
]
