"""
pinsim/solver/stabilization.py

Steady-state gate between ladder stages.

A solution is accepted as stabilized when every variable changes by less than
``tolerance`` (relative to its magnitude) over the trailing ``window_fraction``
of the stored snapshots:

    metric = max_v  max_{k in window} |u_v[-1] - u_v[k]| / max_{k in window} |u_v[k]|

The window always holds at least the last two snapshots. A single-snapshot
series has nothing to compare and gives metric 0.
"""

from __future__ import annotations

from typing import Optional

import numpy as np

from pinsim.errors import StabilizationError

__all__ = [
    "DEFAULT_TOLERANCE",
    "DEFAULT_WINDOW_FRACTION",
    "stabilization_metric",
    "verify_stabilization",
]

DEFAULT_TOLERANCE = 0.2
DEFAULT_WINDOW_FRACTION = 0.2


def _window_start(nt: int, window_fraction: float) -> int:
    if not (0.0 < window_fraction <= 1.0):
        raise ValueError(f"window_fraction must be in (0, 1], got {window_fraction}")
    n_win = max(2, int(np.ceil(window_fraction * nt)))
    return max(nt - n_win, 0)


def stabilization_metric(
    u: np.ndarray,
    t: np.ndarray,
    *,
    window_fraction: float = DEFAULT_WINDOW_FRACTION,
) -> float:
    """Relative change over the trailing window (0 for a constant window)."""
    u = np.asarray(u, dtype=np.float64)
    t = np.asarray(t, dtype=np.float64)
    if u.shape[0] != t.size:
        raise ValueError(f"time axis mismatch: u has {u.shape[0]} snapshots, t has {t.size}")
    if t.size < 2:
        return 0.0

    win = u[_window_start(t.size, window_fraction):]
    if not np.all(np.isfinite(win)):
        return float("inf")

    # collapse spatial axes: one column per variable
    win = win.reshape(win.shape[0], -1) if win.ndim <= 2 else win.reshape(win.shape[0], -1, win.shape[-1])
    delta = np.abs(win - win[-1])
    scale = np.abs(win)
    if win.ndim == 3:
        delta = delta.max(axis=(0, 1))
        scale = scale.max(axis=(0, 1))
    else:
        delta = np.atleast_1d(delta.max())
        scale = np.atleast_1d(scale.max())

    rel = np.zeros_like(delta)
    moving = delta > 0.0
    rel[moving] = delta[moving] / scale[moving]
    return float(rel.max())


def verify_stabilization(
    u: np.ndarray,
    t: np.ndarray,
    tolerance: float = DEFAULT_TOLERANCE,
    *,
    window_fraction: float = DEFAULT_WINDOW_FRACTION,
    stage: Optional[str] = None,
) -> float:
    """
    Raise StabilizationError if the trailing window is still moving.

    Returns the metric on success so callers can record it.
    """
    if tolerance <= 0.0:
        raise ValueError(f"tolerance must be positive, got {tolerance}")
    metric = stabilization_metric(u, t, window_fraction=window_fraction)
    if not metric <= tolerance:
        raise StabilizationError(stage, metric, tolerance)
    return metric
