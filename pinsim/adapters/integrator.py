# -*- coding: utf-8 -*-
"""
Reference time-integrator adapter.

Design:
  * The ladder only needs ``solve(prior, params) -> Solution``; any transient
    drift-diffusion code can be wrapped to that call.
  * ``RelaxationIntegrator`` is the deterministic stand-in used by the CLI
    and by CI: every variable relaxes exponentially toward a target profile
    set by the configuration, at rates set by the mobilities.

Reference model (s = x/L folded onto one half for mirrored domains, p side at s=0):
    n*(s) = N0 exp(+Vbi (s - 1/2) / V_T) (1 - f_SR(s)) + Δn
    p*(s) = N0 exp(-Vbi (s - 1/2) / V_T) (1 - f_SR(s)) + Δn
    V*(s) = (Vbi - Vapp - V_ph) (1 - s)
    a*(s) = N_ion [1 + (1/2) ((Vbi - Vapp - V_ph) / Vbi) (1 - 2 s)]
with Δn = g0 Int τ_eff, V_ph = V_T ln(1 + Δn / N0) at open circuit only, and
f_SR the interfacial depletion from the four SRH lifetimes.
Rates: k_c = <μ_carriers> / 1e-12 s, k_a = μ_ion / 1e-16 s. Zero mobility
freezes the species; zero intensity gives Δn = 0 exactly.
"""
from __future__ import annotations

from dataclasses import dataclass
from typing import Optional

import numpy as np

from pinsim.models.params import CARRIER_MOBILITIES, DeviceParams
from pinsim.models.solution import Solution
from pinsim.utils.constants import V_T

__all__ = ["RelaxationIntegrator", "time_mesh"]


def time_mesh(params: DeviceParams) -> np.ndarray:
    """Output times: t=0 plus ``tpoints-1`` points up to tmax (linear or log)."""
    tmax, t0, n = float(params.tmax), float(params.t0), int(params.tpoints)
    if tmax <= 0.0:
        raise ValueError(f"tmax must be positive, got {tmax}")
    if n < 2:
        raise ValueError(f"tpoints must be >= 2, got {n}")
    if params.tmesh_type == 1:
        return np.linspace(0.0, tmax, n)
    if params.tmesh_type == 2:
        if not (0.0 < t0 < tmax):
            raise ValueError(f"log time mesh needs 0 < t0 < tmax, got t0={t0}, tmax={tmax}")
        return np.concatenate(([0.0], np.logspace(np.log10(t0), np.log10(tmax), n - 1)))
    raise ValueError(f"Unknown tmesh_type: {params.tmesh_type}")


@dataclass
class RelaxationIntegrator:
    carrier_time_scale: float = 1e-12   # [s * cm^2/Vs]
    ion_time_scale: float = 1e-16       # [s * cm^2/Vs]
    sr_reference_lifetime: float = 1e-9  # [s]
    sr_width: float = 0.05               # fraction of L
    bulk_lifetime: float = 1e-6          # [s]

    # ---- geometry ---------------------------------------------------------
    def _mesh(self, params: DeviceParams) -> np.ndarray:
        if params.xpoints < 3:
            raise ValueError(f"xpoints must be >= 3, got {params.xpoints}")
        return np.linspace(0.0, params.thickness, int(params.xpoints))

    @staticmethod
    def _folded(x: np.ndarray, mirrored: bool) -> np.ndarray:
        L = x[-1] / 2.0 if mirrored else x[-1]
        xf = np.where(x > L, 2.0 * L - x, x) if mirrored else x
        return xf / L

    # ---- model -------------------------------------------------------------
    def _excess(self, params: DeviceParams) -> float:
        if params.intensity == 0.0:
            return 0.0
        tau_sr = min(params.taun_etl, params.taup_etl, params.taun_htl, params.taup_htl)
        tau_eff = 1.0 / (1.0 / self.bulk_lifetime + 1.0 / tau_sr)
        return float(params.g0 * params.intensity * tau_eff)

    def _sr_depletion(self, params: DeviceParams, s: np.ndarray, carrier: str) -> np.ndarray:
        tau_ref = self.sr_reference_lifetime
        tau_htl = params.taun_htl if carrier == "n" else params.taup_htl
        tau_etl = params.taun_etl if carrier == "n" else params.taup_etl
        f_htl = tau_ref / (tau_ref + tau_htl) * np.exp(-s / self.sr_width)
        f_etl = tau_ref / (tau_ref + tau_etl) * np.exp(-(1.0 - s) / self.sr_width)
        return 0.5 * (f_htl + f_etl)

    def target(self, params: DeviceParams, s: np.ndarray) -> np.ndarray:
        """Target profile, shape (nx, 4)."""
        dn = self._excess(params)
        v_ph = V_T * np.log1p(dn / params.N0) if params.open_circuit else 0.0
        drop = params.Vbi - params.Vapp - v_ph

        n = params.N0 * np.exp(+params.Vbi * (s - 0.5) / V_T) * (1.0 - self._sr_depletion(params, s, "n")) + dn
        p = params.N0 * np.exp(-params.Vbi * (s - 0.5) / V_T) * (1.0 - self._sr_depletion(params, s, "p")) + dn
        a = params.N_ion * (1.0 + 0.5 * (drop / params.Vbi) * (1.0 - 2.0 * s))
        V = drop * (1.0 - s)
        return np.column_stack((n, p, a, V))

    def seed(self, params: DeviceParams, s: np.ndarray) -> np.ndarray:
        """Analytic initial condition: flat carriers and ions, linear potential."""
        ones = np.ones_like(s)
        return np.column_stack((params.N0 * ones, params.N0 * ones,
                                params.N_ion * ones, params.Vbi * (1.0 - s)))

    def _rates(self, params: DeviceParams) -> np.ndarray:
        mu_c = float(np.mean([getattr(params, k) for k in CARRIER_MOBILITIES]))
        k_c = mu_c / self.carrier_time_scale
        k_a = params.mui / self.ion_time_scale
        return np.array([k_c, k_c, k_a, k_c + k_a])

    # ---- public API --------------------------------------------------------
    def solve(self, prior: Optional[Solution], params: DeviceParams) -> Solution:
        if prior is None:
            x = self._mesh(params)
            mirrored = False
            s = self._folded(x, mirrored)
            u0 = self.seed(params, s)
        else:
            x = prior.x
            mirrored = prior.mirrored
            s = self._folded(x, mirrored)
            u0 = prior.final

        t = time_mesh(params)
        target = self.target(params, s)
        decay = np.exp(-np.outer(t, self._rates(params)))      # (nt, nvar)
        u = target[None, :, :] + (u0 - target)[None, :, :] * decay[:, None, :]
        return Solution(params=params, x=x, t=t, u=u, mirrored=mirrored)
