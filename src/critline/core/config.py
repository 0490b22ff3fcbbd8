"""Solver settings.

Settings are read once, at import time, from ``CRITLINE_*`` environment
variables and an optional JSON file named by ``CRITLINE_CONFIG``. Environment
variables take precedence over the file. Every solver accepts an explicit
``Settings`` instance that overrides the module-level ``settings``.

Example ``critline.json``::

    {"tolerance": 1e-10, "purge_policy": "raise", "max_iterations": 500}
"""

import json
import os
from enum import Enum
from pathlib import Path
from typing import Any, Dict, Optional, Union

from pydantic import BaseModel, ConfigDict, Field

__all__ = ["PurgePolicy", "Settings", "settings"]

ENV_PREFIX = "CRITLINE_"


class PurgePolicy(Enum):
    """What to do with turning points that fail the post-solve checks."""

    DROP = "drop"
    RAISE = "raise"


class Settings(BaseModel):
    tolerance: float = Field(
        1e-9,
        gt=0,
        description="Tolerance for the sum-to-one and bound checks on turning points.",
    )
    golden_section_tolerance: float = Field(
        1e-9, gt=0, description="Interval tolerance of the golden-section search."
    )
    max_iterations: int = Field(
        10_000, ge=1, description="Maximum number of turning points computed."
    )
    purge_policy: PurgePolicy = Field(
        PurgePolicy.DROP,
        description="Drop or raise on turning points failing the purge checks.",
    )
    degenerate_mean_shift: float = Field(
        1e-5,
        ge=0,
        description="Shift applied to the last mean when all means are equal.",
    )

    model_config = ConfigDict(frozen=True)

    @classmethod
    def load(cls, path: Optional[Union[str, Path]] = None) -> "Settings":
        """Build settings from a JSON file and ``CRITLINE_*`` variables.

        Args:
            path: JSON file to read. Defaults to ``$CRITLINE_CONFIG``; when
                neither is set only the environment is consulted.

        Raises:
            FileNotFoundError: If a config path is given but does not exist.
        """
        values: Dict[str, Any] = {}

        path = path or os.getenv(ENV_PREFIX + "CONFIG")
        if path:
            config_path = Path(path).expanduser()
            if not config_path.exists():
                raise FileNotFoundError(f"critline config file not found at {config_path}")
            with open(config_path, "r") as f:
                values.update(json.load(f))

        for name in cls.model_fields:
            env_value = os.getenv(ENV_PREFIX + name.upper())
            if env_value is not None:
                values[name] = env_value

        return cls(**values)


settings = Settings.load()
