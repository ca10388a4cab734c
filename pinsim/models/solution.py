# -*- coding: utf-8 -*-
"""
Solution container returned by a time-integrator run.

u has shape (nt, nx, 4); the last axis holds the variables in VARIABLES order.
"""
from __future__ import annotations

from dataclasses import dataclass, replace

import numpy as np

from .params import DeviceParams

__all__ = ["Solution", "VARIABLES"]

VARIABLES: tuple[str, ...] = ("n", "p", "a", "V")  # electrons, holes, ions, potential


def _c64(x) -> np.ndarray:
    return np.ascontiguousarray(np.asarray(x, dtype=np.float64))


@dataclass(frozen=True, slots=True, eq=False)
class Solution:
    params: DeviceParams
    x: np.ndarray
    t: np.ndarray
    u: np.ndarray
    mirrored: bool = False

    def __post_init__(self) -> None:
        x, t, u = _c64(self.x), _c64(self.t), _c64(self.u)
        if u.ndim != 3 or u.shape[0] != t.size or u.shape[1] != x.size:
            raise ValueError(
                f"u must have shape (nt={t.size}, nx={x.size}, nvar), got {u.shape}"
            )
        # frozen: write through object.__setattr__
        object.__setattr__(self, "x", x)
        object.__setattr__(self, "t", t)
        object.__setattr__(self, "u", u)

    @property
    def t_final(self) -> float:
        return float(self.t[-1])

    @property
    def final(self) -> np.ndarray:
        """Last snapshot, shape (nx, nvar)."""
        return self.u[-1]

    def field(self, name: str) -> np.ndarray:
        return self.u[:, :, VARIABLES.index(name)]

    def with_params(self, params: DeviceParams) -> "Solution":
        return replace(self, params=params)
