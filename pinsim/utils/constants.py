# pinsim/utils/constants.py
from __future__ import annotations

__all__ = ["Q", "K_B", "T_ROOM", "V_T"]

# Fundamental constants (SI)
Q    = 1.602176634e-19       # elementary charge [C]
K_B  = 1.380649e-23          # Boltzmann constant [J/K]

T_ROOM = 300.0               # default device temperature [K]
V_T    = K_B * T_ROOM / Q    # thermal voltage at T_ROOM [V]
