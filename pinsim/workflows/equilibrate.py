# -*- coding: utf-8 -*-
"""
Equilibration ladder: analytic seed -> seven stabilized reference solutions.

The device is walked from a trivial configuration (no mobility, no
recombination, dark, short circuit) to the target conditions one effect at a
time, each solve continuing from the previous one. tmax is adjusted at every
step so the time mesh resolves the transient of the effect just switched on.

Deliverables (in return order):
    sol_eq        short circuit, dark, immobile ions, no SRH
    sol_i_eq      short circuit, dark, mobile ions, no SRH
    sol_i_eq_SR   short circuit, dark, mobile ions, SRH
    ssol_i_eq     open circuit,  dark, mobile ions, no SRH
    ssol_i_eq_SR  open circuit,  dark, mobile ions, SRH
    sol_i_1S_SR   short circuit, 1 sun, mobile ions, SRH
    ssol_i_1S_SR  open circuit,  1 sun, mobile ions, SRH
"""
from __future__ import annotations

import time
from dataclasses import dataclass
from typing import Callable, NamedTuple, Optional

from pinsim.adapters.integrator import RelaxationIntegrator
from pinsim.adapters.symmetrize import symmetrize
from pinsim.models.params import (
    CARRIER_MOBILITIES,
    INTENSITY,
    ION_MOBILITY,
    SR_LIFETIMES,
    DeviceParams,
    pin_params,
)
from pinsim.models.solution import Solution
from pinsim.solver.continuation import (
    BranchCache,
    ContinuationRunner,
    TimeIntegrator,
    Verifier,
)
from pinsim.solver.stabilization import (
    DEFAULT_TOLERANCE,
    DEFAULT_WINDOW_FRACTION,
    verify_stabilization,
)
from pinsim.utils import logger

__all__ = ["DELIVERABLES", "LadderSettings", "Equilibria", "equilibrate", "run_ladder"]

DELIVERABLES: tuple[str, ...] = (
    "sol_eq", "sol_i_eq", "sol_i_eq_SR",
    "ssol_i_eq", "ssol_i_eq_SR",
    "sol_i_1S_SR", "ssol_i_1S_SR",
)


@dataclass(slots=True)
class LadderSettings:
    """Time windows and knobs of the ladder (empirical, overridable)."""
    tolerance: float = DEFAULT_TOLERANCE
    window_fraction: float = DEFAULT_WINDOW_FRACTION

    disabled_lifetime: float = 1e6      # [s] SRH effectively off
    ion_accelerant_mobility: float = 1e-6
    tpoints: int = 20

    t_cold: float = 1e-9
    t0_ratio_cold: float = 1e4
    t0_ratio: float = 1e3               # default t0 = tmax / t0_ratio
    t_equilibrium: float = 1e-2
    t0_ratio_equilibrium: float = 1e10
    t_ion_fast: float = 1e-6
    t_ion_slow: float = 1e2
    t_sr: float = 1e-6
    t_open_circuit: float = 1e-9

    sr_growth: float = 10.0             # tmax multiplier between SR re-solve groups
    sr_resolves: tuple[int, ...] = (2, 3, 2)
    light_shrink: float = 10.0          # first illuminated OC step: tmax / light_shrink
    light_grow: float = 100.0           # final illuminated OC step: tmax * light_grow

    verbose: bool = True

    def __post_init__(self) -> None:
        self.sr_resolves = tuple(int(k) for k in self.sr_resolves)
        if not self.sr_resolves or any(k < 1 for k in self.sr_resolves):
            raise ValueError(f"sr_resolves must be non-empty positive counts, got {self.sr_resolves}")
        if not self.tolerance > 0:
            raise ValueError(f"tolerance must be positive, got {self.tolerance}")
        if not 0 < self.window_fraction <= 1:
            raise ValueError(f"window_fraction must be in (0, 1], got {self.window_fraction}")


class Equilibria(NamedTuple):
    sol_eq: Solution
    sol_i_eq: Solution
    sol_i_eq_SR: Solution
    ssol_i_eq: Solution
    ssol_i_eq_SR: Solution
    sol_i_1S_SR: Solution
    ssol_i_1S_SR: Solution


def _cold_start(p: DeviceParams, s: LadderSettings) -> DeviceParams:
    off = s.disabled_lifetime
    p = p.clone_with(
        klin=0.0, klincon=0.0,
        taun_etl=off, taup_etl=off, taun_htl=off, taup_htl=off,
        tpoints=s.tpoints,
        intensity=0.0, Vapp=0.0, pulse_on=False, jv_scan=False,
        open_circuit=False, bc=1, tmesh_type=2,
        figures=False, seed_from_previous=False,
    )
    return p.with_time_window(s.t_cold, s.t0_ratio_cold).with_mobilities(0.0, 0.0)


def _srh_off(p: DeviceParams, s: LadderSettings) -> DeviceParams:
    return p.clone_with(**{k: s.disabled_lifetime for k in SR_LIFETIMES})


def run_ladder(
    original: DeviceParams,
    runner: ContinuationRunner,
    settings: LadderSettings,
    symmetrizer: Callable[[Solution], Solution] = symmetrize,
) -> Equilibria:
    """Run every stage against ``runner``; ``original`` is never modified."""
    s = settings
    cache = BranchCache()

    # ---- dark short-circuit equilibrium, ions immobile --------------------
    logger.info("Initial solution, zero mobility")
    p = _cold_start(original, s)
    sol = runner.solve("zero mobility", None, p)

    logger.info("Solution with mobility switched on")
    p = p.restore(CARRIER_MOBILITIES, original).with_time_window(s.t_cold, s.t0_ratio)
    sol = runner.solve("carrier mobility on", sol, p)

    p = p.clone_with(seed_from_previous=True, calc_J=False)
    p = p.with_time_window(s.t_equilibrium, s.t0_ratio_equilibrium)
    sol_eq = runner.solve("dark equilibrium", sol, p, verify=True, deliverable="sol_eq")

    # open-circuit branch starts from this configuration after the SC ion branch
    cache.park("open_circuit_base",
               p.clone_with(open_circuit=True, bc=1, calc_J=False).with_mobilities(0.0, 0.0))

    # ---- ions, short circuit: accelerated pass then true mobility ---------
    logger.info("Closed circuit equilibrium with ions")
    p = p.with_time_window(s.t_ion_fast, s.t0_ratio).clone_with(mui=s.ion_accelerant_mobility)
    sol = runner.solve("ions accelerated (SC)", sol_eq, p)

    p = p.with_time_window(s.t_ion_slow, s.t0_ratio).restore(ION_MOBILITY, original)
    sol_i_eq = runner.solve("ion equilibrium (SC)", sol, p, verify=True, deliverable="sol_i_eq")
    cache.park("short_circuit_ions", p, sol_i_eq)

    # ---- surface recombination, short circuit -----------------------------
    logger.info("Switching on surface recombination")
    p = p.restore(SR_LIFETIMES, original).with_time_window(s.t_sr, s.t0_ratio)
    sol_i_eq_SR = runner.solve("surface recombination (SC)", sol_i_eq, p,
                               verify=True, deliverable="sol_i_eq_SR")
    cache.park("short_circuit_sr", p, sol_i_eq_SR)

    # ---- mirror the ion equilibrium for open circuit ----------------------
    logger.info("Symmetrize equilibrium ion solution")
    symsol = symmetrizer(cache.take("short_circuit_ions").state)

    # ---- open circuit: mobility off -> on, ions off -> on -----------------
    logger.info("Open circuit equilibrium with ions")
    # SRH stays off until it is introduced for this branch on its own
    p = _srh_off(cache.take("open_circuit_base").params, s)
    p = p.with_time_window(s.t_open_circuit, s.t0_ratio)
    sol = runner.solve("zero mobility (OC)", symsol, p)

    p = p.restore(CARRIER_MOBILITIES, original).clone_with(mui=0.0)
    sol = runner.solve("carrier mobility on (OC)", sol, p)

    p = p.restore(ION_MOBILITY, original).with_time_window(s.t_ion_fast, s.t0_ratio)
    sol = runner.solve("ions on (OC)", sol, p)

    p = p.with_time_window(s.t_ion_slow, s.t0_ratio)
    ssol_i_eq = runner.solve("ion equilibrium (OC)", sol, p, verify=True, deliverable="ssol_i_eq")

    # ---- surface recombination, open circuit: geometric tmax growth -------
    logger.info("Dark, mobile ions, open circuit, surface recombination")
    p = p.restore(SR_LIFETIMES, original)
    sol = ssol_i_eq
    for group, repeats in enumerate(s.sr_resolves):
        if group:
            p = p.clone_with(tmax=p.tmax * s.sr_growth)
        for k in range(repeats):
            last = group == len(s.sr_resolves) - 1 and k == repeats - 1
            sol = runner.solve(
                f"surface recombination (OC) {group + 1}.{k + 1}", sol, p,
                verify=last, deliverable="ssol_i_eq_SR" if last else None,
            )
    ssol_i_eq_SR = sol
    cache.park("open_circuit_sr", p, ssol_i_eq_SR)

    # ---- illumination, short circuit --------------------------------------
    logger.info("Illuminated, mobile ions, short circuit, surface recombination")
    branch = cache.take("short_circuit_sr")
    p = branch.params.restore(INTENSITY, original)
    sol_i_1S_SR = runner.solve("1 sun (SC)", branch.state, p,
                               verify=True, deliverable="sol_i_1S_SR")

    # ---- illumination, open circuit ---------------------------------------
    logger.info("Illuminated, mobile ions, open circuit, surface recombination")
    branch = cache.take("open_circuit_sr")
    p = branch.params.restore(INTENSITY, original)
    p = p.clone_with(tmax=p.tmax / s.light_shrink)
    sol = runner.solve("1 sun (OC) short", branch.state, p)

    p = p.clone_with(tmax=p.tmax * s.light_grow, figures=True)
    ssol_i_1S_SR = runner.solve("1 sun (OC)", sol, p, verify=True, deliverable="ssol_i_1S_SR")

    return Equilibria(sol_eq, sol_i_eq, sol_i_eq_SR, ssol_i_eq, ssol_i_eq_SR,
                      sol_i_1S_SR, ssol_i_1S_SR)


def equilibrate(
    params: Optional[DeviceParams] = None,
    *,
    integrator: Optional[TimeIntegrator] = None,
    symmetrizer: Callable[[Solution], Solution] = symmetrize,
    verifier: Optional[Verifier] = None,
    settings: Optional[LadderSettings] = None,
    runner: Optional[ContinuationRunner] = None,
) -> Equilibria:
    """
    Run the ladder and return the seven stabilized solutions.

    Parameters
    ----------
    params : DeviceParams, optional
        Original (true) parameters; defaults to ``pin_params()``.
    integrator : TimeIntegrator, optional
        Transient solver; defaults to ``RelaxationIntegrator()``.
    symmetrizer : callable
        Single-sided -> mirrored solution transform.
    verifier : callable, optional
        Stabilization check, same signature as ``verify_stabilization``
        (the default).
    settings : LadderSettings, optional
        Time windows and tolerances.
    runner : ContinuationRunner, optional
        Pass one in to keep its stage history after the run. It brings its own
        integrator, verifier and tolerances, so ``integrator`` and ``verifier``
        must not be given with it; tolerances differing from ``settings`` are
        reported with a warning.

    Raises
    ------
    StabilizationError
        A deliverable did not settle; nothing after it is run.
    TypeError
        ``runner`` given together with ``integrator`` or ``verifier``.
    """
    original = pin_params() if params is None else params
    settings = LadderSettings() if settings is None else settings
    if runner is None:
        runner = ContinuationRunner(
            integrator=RelaxationIntegrator() if integrator is None else integrator,
            verifier=verify_stabilization if verifier is None else verifier,
            tolerance=settings.tolerance,
            window_fraction=settings.window_fraction,
            verbose=settings.verbose,
        )
    elif integrator is not None or verifier is not None:
        raise TypeError("pass integrator/verifier through the runner, not alongside it")
    elif (runner.tolerance, runner.window_fraction) != (settings.tolerance, settings.window_fraction):
        logger.warn(f"runner tolerance={runner.tolerance:g}, window_fraction={runner.window_fraction:g} "
                    f"used instead of ladder settings ({settings.tolerance:g}, {settings.window_fraction:g})")

    tic = time.perf_counter()
    out = run_ladder(original, runner, settings, symmetrizer=symmetrizer)
    logger.info(f"EQUILIBRATION COMPLETE ({time.perf_counter() - tic:.2f} s, "
                f"{len(runner.history)} stages)")
    return out
