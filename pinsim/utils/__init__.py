# pinsim/utils/__init__.py
from __future__ import annotations
from .constants import Q, K_B, T_ROOM, V_T

__all__ = ["Q", "K_B", "T_ROOM", "V_T"]
