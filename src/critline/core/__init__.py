"""Core data structures for the critical-line solver."""

from critline.core.config import PurgePolicy, Settings, settings
from critline.core.exceptions import (
    EmptyFrontierError,
    InfeasibleBoundsError,
    IterationLimitError,
    NumericalPurgeError,
    SingularCovarianceError,
)
from critline.core.models import CLAInputs, MarkowitzPortfolio, TurningPoint
from critline.core.types import AssetId, AssetUniverse

__all__ = [
    "AssetId",
    "AssetUniverse",
    "CLAInputs",
    "TurningPoint",
    "MarkowitzPortfolio",
    "Settings",
    "PurgePolicy",
    "settings",
    "InfeasibleBoundsError",
    "SingularCovarianceError",
    "NumericalPurgeError",
    "IterationLimitError",
    "EmptyFrontierError",
]
