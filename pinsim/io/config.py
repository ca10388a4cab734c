# pinsim/io/config.py
# -*- coding: utf-8 -*-
"""
YAML → DeviceParams and LadderSettings helpers.

Schema (both sections optional; missing keys keep their defaults):

device:
  mue_i: 20.0
  mui: 1.0e-10
  taun_etl: 1.0e-9
  intensity: 1.0

ladder:
  tolerance: 0.2
  t_ion_slow: 100.0
  sr_resolves: [2, 3, 2]

Overrides use dotted keys, e.g. ``device.mui=1e-9`` or ``ladder.tolerance=0.1``;
a bare key (``mui=1e-9``) addresses the device section.
"""
from __future__ import annotations
from dataclasses import dataclass, fields
from pathlib import Path
from typing import Any, Sequence

import yaml

from pinsim.errors import ConfigurationError
from pinsim.models.params import DeviceParams
from pinsim.workflows.equilibrate import LadderSettings

__all__ = ["RunConfig", "load_config", "apply_overrides", "build_params",
           "build_settings", "load_params"]

SECTIONS = ("device", "ladder")

@dataclass
class RunConfig:
    raw: dict
    path: Path | None = None

def load_config(path: Path | None) -> RunConfig:
    if path is None:
        return RunConfig(raw={s: {} for s in SECTIONS})
    data = yaml.safe_load(Path(path).read_text())
    if data is None:
        data = {}
    if not isinstance(data, dict):
        raise ConfigurationError("Top-level YAML must be a mapping")
    _validate_minimum(data)
    for s in SECTIONS:
        data.setdefault(s, {})
    return RunConfig(raw=data, path=Path(path))

def apply_overrides(cfg: RunConfig, overrides: Sequence[str]) -> RunConfig:
    """Apply ``section.key=value`` strings in place (values parsed as YAML)."""
    for item in overrides:
        if "=" not in item:
            raise ConfigurationError(f"Override must look like key=value, got {item!r}")
        key, value = item.split("=", 1)
        section, _, name = key.strip().rpartition(".")
        section = section or "device"
        if section not in SECTIONS:
            raise ConfigurationError(f"Unknown section {section!r} in override {item!r}")
        cfg.raw.setdefault(section, {})[name] = yaml.safe_load(value)
    return cfg

def _coerce(cls_name: str, name: str, value: Any, default: Any) -> Any:
    # PyYAML reads 1e-9 (no dot) as a string, so numbers are coerced by field type
    try:
        if isinstance(default, bool):
            if isinstance(value, str):
                if value.lower() in ("true", "yes", "on", "1"):
                    return True
                if value.lower() in ("false", "no", "off", "0"):
                    return False
                raise ValueError(value)
            return bool(value)
        if isinstance(value, bool):
            raise ValueError(value)
        if isinstance(default, int):
            f = float(value)
            if not f.is_integer():
                raise ValueError(value)
            return int(f)
        if isinstance(default, float):
            return float(value)
        if isinstance(default, tuple):
            return tuple(int(float(v)) for v in value)
    except (TypeError, ValueError):
        raise ConfigurationError(
            f"{cls_name}.{name}: cannot use {value!r} (expected {type(default).__name__})"
        ) from None
    return value

def _build(cls, section: dict):
    template = cls()
    known = {f.name for f in fields(cls)}
    unknown = sorted(set(section) - known)
    if unknown:
        raise ConfigurationError(f"Unknown {cls.__name__} field(s): {', '.join(unknown)}")
    kwargs = {k: _coerce(cls.__name__, k, v, getattr(template, k)) for k, v in section.items()}
    try:
        return cls(**kwargs)
    except ValueError as exc:
        raise ConfigurationError(f"{cls.__name__}: {exc}") from None

def build_params(cfg: RunConfig) -> DeviceParams:
    return _build(DeviceParams, cfg.raw.get("device") or {})

def build_settings(cfg: RunConfig) -> LadderSettings:
    return _build(LadderSettings, cfg.raw.get("ladder") or {})

def load_params(path: Path | None, overrides: Sequence[str] = ()) -> tuple[DeviceParams, LadderSettings]:
    cfg = apply_overrides(load_config(path), overrides)
    return build_params(cfg), build_settings(cfg)

def _validate_minimum(cfg: dict) -> None:
    extra = sorted(set(cfg) - set(SECTIONS))
    if extra:
        raise ConfigurationError(f"Unknown top-level key(s): {', '.join(extra)}")
    for key in SECTIONS:
        if key in cfg and cfg[key] is not None and not isinstance(cfg[key], dict):
            raise ConfigurationError(f"Section {key!r} must be a mapping")
