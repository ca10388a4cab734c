# pinsim/errors.py
"""Exception types raised by the equilibration ladder."""
from __future__ import annotations

__all__ = [
    "PinSimError",
    "StabilizationError",
    "BranchCacheError",
    "ConfigurationError",
]


class PinSimError(Exception):
    """Base class for pinsim errors."""


class StabilizationError(PinSimError, RuntimeError):
    """A deliverable solution did not settle over its trailing time window."""

    def __init__(self, stage: str | None, metric: float, tolerance: float) -> None:
        self.stage = stage
        self.metric = float(metric)
        self.tolerance = float(tolerance)
        where = f" at stage '{stage}'" if stage else ""
        super().__init__(
            f"solution not stabilized{where}: relative change {self.metric:.3e} "
            f"> tolerance {self.tolerance:.3e} (extend tmax and re-run)"
        )


class BranchCacheError(PinSimError, KeyError):
    """Branch point written twice, or consumed when absent / already consumed."""

    def __str__(self) -> str:
        return str(self.args[0]) if self.args else ""


class ConfigurationError(PinSimError, ValueError):
    """Malformed parameter file or override."""
