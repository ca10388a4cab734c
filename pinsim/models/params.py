# pinsim/models/params.py
"""
Device/run parameters for the p-i-n drift-diffusion device.

``DeviceParams`` is a frozen record: a stage never edits a configuration in
place, it builds the next one with ``clone_with`` (explicit overrides) or
``restore`` (fields copied from the original, user-supplied parameters).

Units follow the usual drift-diffusion conventions:
  mobilities [cm^2/Vs], lifetimes [s], lengths [cm], densities [cm^-3],
  intensity [suns], times [s].
"""

from __future__ import annotations

from dataclasses import asdict, dataclass, fields, replace
from typing import Any, Dict, Iterable, Literal

__all__ = [
    "DeviceParams",
    "pin_params",
    "CARRIER_MOBILITIES",
    "SR_LIFETIMES",
    "ION_MOBILITY",
    "INTENSITY",
]

# ---- field groups restored together ----
CARRIER_MOBILITIES: tuple[str, ...] = (
    "mue_i", "muh_i",   # intrinsic layer
    "mue_p", "muh_p",   # p-type (HTL side)
    "mue_n", "muh_n",   # n-type (ETL side)
)
SR_LIFETIMES: tuple[str, ...] = ("taun_etl", "taup_etl", "taun_htl", "taup_htl")
ION_MOBILITY: tuple[str, ...] = ("mui",)
INTENSITY: tuple[str, ...] = ("intensity",)


@dataclass(frozen=True, slots=True)
class DeviceParams:
    """One stage configuration (immutable)."""

    # ---- recombination ----
    taun_etl: float = 1e-9      # SRH time constant, electrons at ETL interface [s]
    taup_etl: float = 1e-9      # holes at ETL interface [s]
    taun_htl: float = 1e-9      # electrons at HTL interface [s]
    taup_htl: float = 1e-9      # holes at HTL interface [s]
    klin: float = 0.0           # band-to-band coefficient, intrinsic
    klincon: float = 0.0        # band-to-band coefficient, contacts

    # ---- mobilities ----
    mue_i: float = 20.0
    muh_i: float = 20.0
    mue_p: float = 0.02
    muh_p: float = 0.02
    mue_n: float = 0.02
    muh_n: float = 0.02
    mui: float = 1e-10          # ionic mobility

    # ---- boundary conditions / drive ----
    open_circuit: bool = False
    bc: int = 1
    intensity: float = 1.0      # suns
    Vapp: float = 0.0
    pulse_on: bool = False
    jv_scan: bool = False

    # ---- time domain ----
    t0: float = 1e-12
    tmax: float = 1e-9
    tpoints: int = 20
    tmesh_type: Literal[1, 2] = 2  # 1: linear, 2: logarithmic

    # ---- solver behaviour ----
    calc_J: bool = True
    figures: bool = True
    seed_from_previous: bool = False

    # ---- device / mesh hints (consumed by the integrator only) ----
    d_p: float = 200e-7
    d_i: float = 400e-7
    d_n: float = 200e-7
    xpoints: int = 201
    Vbi: float = 1.1
    N0: float = 1e10            # equilibrium carrier density scale [cm^-3]
    N_ion: float = 1e19         # mean mobile ion density [cm^-3]
    g0: float = 2.5e21          # 1-sun generation rate [cm^-3 s^-1]

    # ------------------------------------------------------------------
    def clone_with(self, **overrides: Any) -> "DeviceParams":
        """Copy with the named fields replaced; the receiver is untouched."""
        return replace(self, **overrides)

    def restore(self, names: Iterable[str], original: "DeviceParams") -> "DeviceParams":
        """Copy with ``names`` taken verbatim from ``original``."""
        return replace(self, **{k: getattr(original, k) for k in names})

    def with_mobilities(self, mu_carrier: float, mu_ion: float) -> "DeviceParams":
        """Set every electron/hole mobility to ``mu_carrier`` and ions to ``mu_ion``."""
        overrides: Dict[str, float] = {k: float(mu_carrier) for k in CARRIER_MOBILITIES}
        overrides["mui"] = float(mu_ion)
        return replace(self, **overrides)

    def with_time_window(self, tmax: float, t0_ratio: float) -> "DeviceParams":
        """Set ``tmax`` and ``t0 = tmax / t0_ratio``."""
        return replace(self, tmax=float(tmax), t0=float(tmax) / float(t0_ratio))

    @property
    def thickness(self) -> float:
        return self.d_p + self.d_i + self.d_n

    def as_dict(self) -> Dict[str, Any]:
        return asdict(self)

    @classmethod
    def field_names(cls) -> tuple[str, ...]:
        return tuple(f.name for f in fields(cls))


def pin_params(**overrides: Any) -> DeviceParams:
    """Default parameter source (p-i-n perovskite-like stack at 1 sun)."""
    return DeviceParams(**overrides)
