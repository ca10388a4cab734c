"""
pinsim/solver/continuation.py

Stage runner and branch bookkeeping for the equilibration ladder.

A stage is one call into the time integrator: (prior solution, configuration)
-> solution. The runner records every stage (name, configuration, final time,
stabilization metric) so the configuration lineage of a run can be audited
and compared between runs.

Typical use:
    runner = ContinuationRunner(integrator=RelaxationIntegrator())
    sol = runner.solve("cold start", None, p)
    sol = runner.solve("dark equilibrium", sol, p2, verify=True, deliverable=True)

Branch points hold a (configuration, state) pair aside so a sibling branch can
start from it later. Each is written once and consumed once.
"""

from __future__ import annotations

from dataclasses import dataclass, field
from typing import Callable, Dict, List, Optional, Protocol

import numpy as np

from pinsim.errors import BranchCacheError, StabilizationError
from pinsim.models.params import DeviceParams
from pinsim.models.solution import Solution
from pinsim.solver.stabilization import (
    DEFAULT_TOLERANCE,
    DEFAULT_WINDOW_FRACTION,
    verify_stabilization,
)
from pinsim.utils import diagnostics as diag

__all__ = [
    "TimeIntegrator",
    "Verifier",
    "StageRecord",
    "BranchPoint",
    "BranchCache",
    "ContinuationRunner",
]


class TimeIntegrator(Protocol):
    def solve(self, prior: Optional[Solution], params: DeviceParams) -> Solution:
        """``prior=None`` seeds analytically from ``params``."""
        ...


# verify(u, t, tolerance, *, window_fraction, stage) -> metric, raises on failure
Verifier = Callable[..., float]


@dataclass(frozen=True, slots=True)
class StageRecord:
    index: int
    name: str
    params: DeviceParams
    t_final: float
    verified: bool
    metric: float = float("nan")
    deliverable: Optional[str] = None
    stabilized: bool = True


@dataclass(frozen=True, slots=True)
class BranchPoint:
    params: DeviceParams
    state: Optional[Solution] = None


class BranchCache:
    """Named fork points: written once, consumed once."""

    def __init__(self) -> None:
        self._points: Dict[str, BranchPoint] = {}
        self._consumed: set[str] = set()

    def park(self, name: str, params: DeviceParams, state: Optional[Solution] = None) -> None:
        if name in self._points or name in self._consumed:
            raise BranchCacheError(f"branch '{name}' already written")
        self._points[name] = BranchPoint(params=params, state=state)

    def take(self, name: str) -> BranchPoint:
        if name in self._consumed:
            raise BranchCacheError(f"branch '{name}' already consumed")
        try:
            point = self._points.pop(name)
        except KeyError:
            raise BranchCacheError(f"branch '{name}' was never written") from None
        self._consumed.add(name)
        return point

    def __contains__(self, name: str) -> bool:
        return name in self._points

    @property
    def pending(self) -> tuple[str, ...]:
        return tuple(self._points)


@dataclass
class ContinuationRunner:
    integrator: TimeIntegrator
    verifier: Verifier = verify_stabilization
    tolerance: float = DEFAULT_TOLERANCE
    window_fraction: float = DEFAULT_WINDOW_FRACTION
    verbose: bool = True

    # internal
    history: List[StageRecord] = field(default_factory=list)

    def solve(
        self,
        name: str,
        prior: Optional[Solution],
        params: DeviceParams,
        *,
        verify: bool = False,
        deliverable: Optional[str] = None,
    ) -> Solution:
        """
        Run one stage.

        verify : check stabilization of the result (StabilizationError on failure,
                 after the stage has been recorded with its metric)
        deliverable : label of a named output; the returned copy has figures on
        """
        index = len(self.history) + 1
        if self.verbose:
            diag.log_stage_start(index=index, name=name, params=params,
                                 seeded=prior is None)

        sol = self.integrator.solve(prior, params)

        metric = float("nan")
        failure: Optional[StabilizationError] = None
        if verify:
            try:
                metric = float(self.verifier(
                    sol.u, sol.t, self.tolerance,
                    window_fraction=self.window_fraction, stage=deliverable or name,
                ))
            except StabilizationError as exc:
                metric, failure = float(exc.metric), exc
        self.history.append(StageRecord(
            index=index, name=name, params=params, t_final=sol.t_final,
            verified=verify, metric=metric, deliverable=deliverable,
            stabilized=failure is None,
        ))
        if self.verbose:
            diag.log_stage_done(index=index, name=name, t_final=sol.t_final,
                                metric=metric if verify else None,
                                deliverable=deliverable)
        if failure is not None:
            raise failure

        if deliverable is not None and not sol.params.figures:
            sol = sol.with_params(sol.params.clone_with(figures=True))
        return sol

    @property
    def configurations(self) -> List[DeviceParams]:
        return [r.params for r in self.history]

    def metrics(self) -> Dict[str, float]:
        """Stabilization metric per verified deliverable."""
        return {r.deliverable: r.metric for r in self.history
                if r.deliverable is not None and r.stabilized and np.isfinite(r.metric)}
