# pinsim/__init__.py
from __future__ import annotations

from .models.params import DeviceParams, pin_params
from .models.solution import Solution
from .workflows.equilibrate import Equilibria, LadderSettings, equilibrate

__all__ = ["DeviceParams", "pin_params", "Solution", "Equilibria",
           "LadderSettings", "equilibrate"]
__version__ = "0.1.0"
