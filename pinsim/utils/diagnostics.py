"""
pinsim/utils/diagnostics.py

Compact one-line progress output for the equilibration ladder.
Called from solver/continuation.py and workflows when verbose=True.
"""

from __future__ import annotations

from typing import Optional

import numpy as np


def _fmt_range(x: np.ndarray, name: str) -> str:
    if x.size == 0:
        return f"{name}: (empty)"
    return f"{name}∈[{np.min(x):+.3e},{np.max(x):+.3e}]"


def log_stage_start(
    *,
    index: int,
    name: str,
    params,
    seeded: bool,
    prefix: str = "[stage]",
) -> None:
    """Stage header: boundary mode, drive and time window."""
    bc = "OC" if params.open_circuit else "SC"
    ic = "analytic" if seeded else "previous"
    print(
        f"{prefix} {index:02d} {name} | {bc} Int={params.intensity:g} "
        f"mu_i={params.mue_i:g} mui={params.mui:g} taun_etl={params.taun_etl:g} | "
        f"t∈[{params.t0:.1e},{params.tmax:.1e}] s | ic={ic}"
    )


def log_stage_done(
    *,
    index: int,
    name: str,
    t_final: float,
    metric: Optional[float],
    deliverable: Optional[str],
    prefix: str = "[stage]",
) -> None:
    check = "" if metric is None else f" | stab={metric:.3e}"
    label = f" -> {deliverable}" if deliverable else ""
    print(f"{prefix} {index:02d} done | t_final={t_final:.3e} s{check}{label}")


def log_solution_summary(sol, *, prefix: str = "[diag]") -> None:
    """Ranges of the final snapshot of every variable."""
    from pinsim.models.solution import VARIABLES

    msg = [prefix, "mirrored" if sol.mirrored else "single-sided"]
    for k, name in enumerate(VARIABLES):
        msg.append(_fmt_range(sol.final[:, k], name))
    print(" | ".join(msg))
