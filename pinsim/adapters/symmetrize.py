# -*- coding: utf-8 -*-
"""
Mirror a single-sided solution into a double-sided one.

The final snapshot on [0, L] is reflected about x = L, giving a symmetric
profile on [0, 2L] (p-i-n | n-i-p). Open-circuit runs start from this state:
the mirror plane carries no current, which is what open circuit means for
the single-sided device.
"""
from __future__ import annotations

import numpy as np

from pinsim.models.solution import Solution

__all__ = ["symmetrize"]


def symmetrize(sol: Solution) -> Solution:
    if sol.mirrored:
        raise ValueError("solution is already mirrored")
    x, u = sol.x, sol.final
    x_m = np.concatenate((x, 2.0 * x[-1] - x[-2::-1]))
    u_m = np.concatenate((u, u[-2::-1]), axis=0)
    return Solution(
        params=sol.params,
        x=x_m,
        t=np.array([sol.t_final]),
        u=u_m[None, :, :],
        mirrored=True,
    )
